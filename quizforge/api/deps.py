"""
Shared collaborators for the endpoints. Each is a FastAPI dependency so a
deployment (or a test) can swap it through ``app.dependency_overrides``.
"""

from functools import lru_cache

from quizforge.core.notifications import Notifier, log_notifier
from quizforge.services.ai_provider import GenerationCapability, ProviderGenerationCapability
from quizforge.services.persistence import InMemoryPersistence, Persistence
from quizforge.validation.rules import DEFAULT_REGISTRY, RuleRegistry


def get_registry() -> RuleRegistry:
    return DEFAULT_REGISTRY


@lru_cache
def get_generation_capability() -> GenerationCapability:
    return ProviderGenerationCapability()


@lru_cache
def get_persistence() -> Persistence:
    return InMemoryPersistence()


def get_notifier() -> Notifier:
    return log_notifier
