"""
QuizForge — AI Provider Adapter
================================
Handles all interactions with AI providers (Groq + Gemini) and exposes them
as a *generation capability*: submit a prompt, poll its status, fetch the
raw text once it has completed.

Features:
  - Multi-provider hybrid call with automatic failover
  - Job handles backed by asyncio tasks, so callers can poll
"""

import asyncio
import logging
import uuid
from typing import Dict, Optional, Protocol

import google.generativeai as genai
from groq import AsyncGroq

from quizforge.core.config import settings
from quizforge.schemas.generation import GenerationStatus

logger = logging.getLogger(__name__)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CLIENT INITIALIZATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

logger.info(f"[AI-PROVIDER] Provider mode: {settings.AI_PROVIDER}")

groq_client: Optional[AsyncGroq] = None
if settings.GROQ_API_KEY:
    groq_client = AsyncGroq(api_key=settings.GROQ_API_KEY)
    logger.info("[AI-PROVIDER] ✓ Groq client ready")
else:
    logger.warning("[AI-PROVIDER] ✗ Groq API key missing")

if settings.GOOGLE_API_KEY:
    genai.configure(api_key=settings.GOOGLE_API_KEY, transport="rest")
    logger.info("[AI-PROVIDER] ✓ Gemini client ready")
else:
    logger.warning("[AI-PROVIDER] ✗ Google API key missing")


GENERATOR_SYSTEM_PROMPT = (
    "You are an expert educational assessment designer.\n"
    "Base every question strictly on the provided context. "
    "Do NOT invent facts that the context does not support.\n"
    "Follow the requested output format exactly, with no commentary."
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PROVIDER CALLS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def _call_groq(system_prompt: str, user_prompt: str) -> str:
    """Call Groq (Llama 3) at low temperature."""
    if not groq_client:
        raise ValueError("Groq API Key missing")

    logger.info(f"[AI-PROVIDER] Calling Groq ({settings.GROQ_MODEL})...")
    completion = await groq_client.chat.completions.create(
        model=settings.GROQ_MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        temperature=0.2,
        max_tokens=8000,
    )
    result = completion.choices[0].message.content
    logger.info("[AI-PROVIDER] ✓ Groq call succeeded")
    return result


async def _call_gemini(system_prompt: str, user_prompt: str) -> str:
    """Call Gemini at low temperature."""
    if not settings.GOOGLE_API_KEY:
        raise ValueError("Google API Key missing")

    logger.info(f"[AI-PROVIDER] Calling Gemini ({settings.GEMINI_MODEL})...")
    model = genai.GenerativeModel(
        model_name=settings.GEMINI_MODEL,
        generation_config={"temperature": 0.2},
    )
    full_prompt = f"{system_prompt}\n\nUser Task:\n{user_prompt}"
    response = await asyncio.to_thread(model.generate_content, full_prompt)
    logger.info("[AI-PROVIDER] ✓ Gemini call succeeded")
    return response.text


async def hybrid_call(system_prompt: str, user_prompt: str, primary: str = "groq") -> str:
    """
    Execute AI call with automatic failover.
    In 'hybrid' mode: tries primary first, then the other.
    """
    provider = settings.AI_PROVIDER

    if provider == "groq":
        callers = [("Groq", _call_groq)]
    elif provider == "gemini":
        callers = [("Gemini", _call_gemini)]
    elif primary == "groq":
        callers = [("Groq", _call_groq), ("Gemini", _call_gemini)]
    else:
        callers = [("Gemini", _call_gemini), ("Groq", _call_groq)]

    last_error = None
    for name, caller in callers:
        try:
            return await caller(system_prompt, user_prompt)
        except Exception as e:
            last_error = e
            logger.warning(f"[AI-PROVIDER] {name} failed: {str(e)[:200]}. Trying next...")

    raise RuntimeError(f"All AI providers failed. Last error: {last_error}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# GENERATION CAPABILITY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class GenerationCapability(Protocol):
    """Anything that accepts a prompt and later hands back free text."""

    async def submit(self, prompt: str, user_message: str) -> str: ...

    async def get_status(self, handle: str) -> GenerationStatus: ...

    async def get_result(self, handle: str) -> str: ...


class ProviderGenerationCapability:
    """
    Runs each submission as a background task through ``hybrid_call``.

    The prompt becomes the system instructions and ``user_message`` the user
    turn. Results are dropped once fetched.
    """

    def __init__(self, primary: str = "groq"):
        self._primary = primary
        self._jobs: Dict[str, asyncio.Task] = {}

    async def submit(self, prompt: str, user_message: str) -> str:
        handle = uuid.uuid4().hex
        system_prompt = f"{GENERATOR_SYSTEM_PROMPT}\n\n{prompt}"
        self._jobs[handle] = asyncio.create_task(
            hybrid_call(system_prompt, user_message, primary=self._primary)
        )
        logger.info(f"[AI-PROVIDER] Submitted generation job {handle[:8]}")
        return handle

    def _job(self, handle: str) -> asyncio.Task:
        try:
            return self._jobs[handle]
        except KeyError:
            raise KeyError(f"Unknown generation handle: {handle}")

    async def get_status(self, handle: str) -> GenerationStatus:
        job = self._job(handle)
        if not job.done():
            return GenerationStatus.in_progress
        if job.cancelled() or job.exception() is not None:
            self._jobs.pop(handle, None)
            reason = "cancelled" if job.cancelled() else job.exception()
            logger.error(f"[AI-PROVIDER] Generation job {handle[:8]} failed: {reason}")
            return GenerationStatus.failed
        return GenerationStatus.completed

    async def get_result(self, handle: str) -> str:
        job = self._jobs.pop(handle)
        return job.result()

    async def cancel(self, handle: str) -> None:
        job = self._jobs.pop(handle, None)
        if job is not None and not job.done():
            job.cancel()
