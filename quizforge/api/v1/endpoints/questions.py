import logging

from fastapi import APIRouter, Depends

from quizforge.api.deps import get_notifier, get_persistence, get_registry
from quizforge.core.notifications import Notifier
from quizforge.schemas.common import (
    ApplyAllFixesRequest,
    ApplyFixRequest,
    SuggestionsRequest,
    ValidateRequest,
)
from quizforge.schemas.generation import ImportRequest
from quizforge.services.batch_processing import process_batch_questions
from quizforge.services.persistence import Persistence
from quizforge.validation.autofix import apply_all_fixes, apply_fix, get_suggestions
from quizforge.validation.batch import validate_batch
from quizforge.validation.rules import RuleRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/questions", tags=["Questions"])


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. VALIDATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/validate")
async def validate_questions(request: ValidateRequest, registry: RuleRegistry = Depends(get_registry)):
    """Validate a batch against base, subject and education-system rules."""
    return validate_batch(
        request.questions,
        subject=request.subject,
        education_system=request.education_system,
        auto_fix=request.auto_fix,
        registry=registry,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. AUTO-FIX
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/autofix/suggestions")
async def autofix_suggestions(request: SuggestionsRequest, registry: RuleRegistry = Depends(get_registry)):
    return get_suggestions(request.question, request.subject, registry)


@router.post("/autofix/apply")
async def autofix_apply(request: ApplyFixRequest, registry: RuleRegistry = Depends(get_registry)):
    return apply_fix(request.question, request.fix_id, request.subject, registry)


@router.post("/autofix/apply-all")
async def autofix_apply_all(request: ApplyAllFixesRequest, registry: RuleRegistry = Depends(get_registry)):
    return apply_all_fixes(request.question, request.subject, registry)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. BULK IMPORT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/import")
async def import_questions(
    request: ImportRequest,
    persistence: Persistence = Depends(get_persistence),
    registry: RuleRegistry = Depends(get_registry),
    notifier: Notifier = Depends(get_notifier),
):
    """Validate and store an existing batch; one result per question, in order."""
    results = await process_batch_questions(
        request.questions, persistence, request.options, registry, notifier
    )
    return {
        "total": len(results),
        "succeeded": sum(1 for r in results if r.success),
        "results": results,
    }
