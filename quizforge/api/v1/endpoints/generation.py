import json
import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from quizforge.api.deps import (
    get_generation_capability,
    get_notifier,
    get_persistence,
    get_registry,
)
from quizforge.core.config import settings
from quizforge.core.errors import ErrorCode, create_ai_error
from quizforge.core.notifications import Notifier
from quizforge.schemas.generation import BatchProcessingOptions, GenerationRequest
from quizforge.services.ai_provider import GenerationCapability
from quizforge.services.batch_processing import process_batch_questions
from quizforge.services.generation import generate_questions_batch, generate_questions_batch_stream
from quizforge.services.persistence import Persistence
from quizforge.validation.rules import RuleRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generation", tags=["Generation"])


# ── Helper: SSE Event Stream ─────────────────────────────────────────────────

async def _sse_wrapper(generator):
    """Wraps an async generator into SSE format."""
    try:
        async for chunk in generator:
            yield f"data: {chunk}\n\n"
        yield "data: [DONE]\n\n"
    except Exception as e:
        logger.error(f"[GENERATION] SSE stream error: {e}")
        yield f"data: {json.dumps({'type': 'error', 'message': str(e)})}\n\n"
        yield "data: [DONE]\n\n"


@router.post("/batch")
async def generate_batch(
    request: GenerationRequest,
    capability: GenerationCapability = Depends(get_generation_capability),
    persistence: Persistence = Depends(get_persistence),
    registry: RuleRegistry = Depends(get_registry),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Generate questions from study material in chunks.

    A failed run still answers 200 with ``success: false``; the HTTP status
    only reflects request problems and the overall timeout.
    """
    try:
        result = await asyncio.wait_for(
            generate_questions_batch(
                request.context,
                request.count,
                request.options,
                capability,
                notifier=notifier,
                registry=registry,
            ),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        raise create_ai_error(
            ErrorCode.TIMEOUT,
            f"Generation timed out after {settings.AI_TIMEOUT_SECONDS}s.",
        )

    saved = None
    if request.persist and result.success:
        options = request.options
        imported = await process_batch_questions(
            result.data,
            persistence,
            BatchProcessingOptions(
                batch_size=options.batch_size,
                max_retries=options.max_retries,
                retry_delay=options.retry_delay,
                delay_between_batches=0,
                validate_results=False,
                subject=options.subject or None,
                education_system=options.education_system or None,
            ),
            registry,
            notifier,
        )
        saved = sum(1 for r in imported if r.success)

    return {"result": result, "persisted": saved}


@router.post("/batch/stream")
async def generate_batch_stream(
    request: GenerationRequest,
    capability: GenerationCapability = Depends(get_generation_capability),
    registry: RuleRegistry = Depends(get_registry),
    notifier: Notifier = Depends(get_notifier),
):
    """Stream chunk progress and the final result via Server-Sent Events."""
    return StreamingResponse(
        _sse_wrapper(generate_questions_batch_stream(
            request.context,
            request.count,
            request.options,
            capability,
            notifier=notifier,
            registry=registry,
        )),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
