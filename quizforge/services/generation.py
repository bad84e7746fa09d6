"""
QuizForge — Batch Question Generation
======================================
Generates questions in chunks against a generation capability:

  prompt → submit → poll until completed/failed → parse → validate

Chunks run strictly one after another. A failing chunk is retried with a
linear backoff (retry_delay × attempt); a chunk that exhausts its retries
aborts the whole run and nothing generated so far is returned.
"""

import asyncio
import json
import logging
import math
import re
from typing import AsyncGenerator, Callable, List, Optional

from quizforge.core.errors import AIError, ErrorCode, create_ai_error, error_title
from quizforge.core.notifications import Notifier, log_notifier, notify
from quizforge.schemas.generation import (
    BatchGenerationOptions,
    BatchProcessingResult,
    GenerationStatus,
)
from quizforge.schemas.question import Question
from quizforge.services.ai_provider import GenerationCapability
from quizforge.services.parsing import parse_questions
from quizforge.services.prompts import build_batch_prompt, build_user_message
from quizforge.validation.batch import validate_batch
from quizforge.validation.rules import DEFAULT_REGISTRY, RuleRegistry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_MATH_EXPRESSION = re.compile(r"\$[^$]+\$|[+\-*/×÷=^]")
_SCIENCE_NOTATION = re.compile(
    r"[A-Z][a-z]?\d|\d+(?:\.\d+)?\s*(?:m/s²?|km|cm|mm|kg|mg|g|mol|Hz|Pa|°C|Ω|[mgsNJWVKAL])(?![A-Za-z])"
)
_SCIENCE_SUBJECTS = {"physics", "chemistry", "biology"}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ACCEPTANCE CHECKS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def validate_generated_question(question: Question, subject: Optional[str]) -> bool:
    """Subject structural check for a freshly generated question."""
    if not question.text or len(question.answers) < 2:
        return False

    key = (subject or "").strip().lower()
    if key == "mathematics":
        return bool(_MATH_EXPRESSION.search(question.text))
    if key in _SCIENCE_SUBJECTS:
        return bool(_SCIENCE_NOTATION.search(question.text))
    return True


def accept_generated(
    questions: List[Question],
    subject: Optional[str],
    registry: RuleRegistry = DEFAULT_REGISTRY,
) -> List[Question]:
    """Keep questions that pass the base rules and the subject structural check."""
    report = validate_batch(questions, registry=registry)
    return [
        question
        for question, result in zip(questions, report.results)
        if result.is_valid and validate_generated_question(question, subject)
    ]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# POLLING
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def poll_for_completion(
    capability: GenerationCapability,
    handle: str,
    poll_interval: float,
    max_poll_attempts: int,
) -> str:
    """
    Poll until a terminal status. Gives up with TIMEOUT after ``max_poll_attempts`` checks.

    The job is cancelled whenever polling stops before a terminal status,
    including when the polling task itself is cancelled.
    """
    terminal = False
    try:
        for _ in range(max_poll_attempts):
            status = GenerationStatus(await capability.get_status(handle))

            if status == GenerationStatus.completed:
                terminal = True
                return await capability.get_result(handle)
            if status == GenerationStatus.failed:
                terminal = True
                raise create_ai_error(ErrorCode.GENERATION_FAILED, "Failed to generate questions")

            await asyncio.sleep(poll_interval)
    finally:
        cancel = getattr(capability, "cancel", None)
        if not terminal and cancel is not None:
            logger.info(f"[GENERATION] Cancelling unfinished job {handle}")
            await cancel(handle)

    raise create_ai_error(
        ErrorCode.TIMEOUT,
        f"Generation did not finish after {max_poll_attempts} status checks",
        context={"handle": handle},
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CHUNKS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def _generate_chunk(
    context: str,
    size: int,
    options: BatchGenerationOptions,
    capability: GenerationCapability,
    registry: RuleRegistry,
) -> List[Question]:
    prompt = build_batch_prompt(
        size,
        options.subject,
        options.question_type,
        options.education_system,
        options.level,
        context,
    )

    try:
        handle = await capability.submit(prompt, build_user_message(size))
        raw = await poll_for_completion(capability, handle, options.poll_interval, options.max_poll_attempts)
    except AIError:
        raise
    except Exception as e:
        raise create_ai_error(ErrorCode.API_ERROR, f"Generation capability error: {e}") from e

    questions = parse_questions(raw, options.question_type)
    if not options.validate_results:
        return questions

    accepted = accept_generated(questions, options.subject, registry)
    if len(accepted) < size:
        raise create_ai_error(
            ErrorCode.VALIDATION_FAILED,
            f"Generated questions did not meet validation criteria ({len(accepted)}/{size} accepted)",
        )
    return accepted[:size]


async def _generate_chunk_with_retries(
    context: str,
    size: int,
    chunk_number: int,
    options: BatchGenerationOptions,
    capability: GenerationCapability,
    registry: RuleRegistry,
) -> List[Question]:
    last_error: Optional[AIError] = None

    for attempt in range(1, options.max_retries + 1):
        try:
            questions = await _generate_chunk(context, size, options, capability, registry)
            logger.info(f"[GENERATION] ✓ Chunk {chunk_number}: {len(questions)} question(s) (attempt {attempt})")
            return questions
        except AIError as e:
            last_error = e
            logger.warning(
                f"[GENERATION] Chunk {chunk_number} attempt {attempt}/{options.max_retries} failed: {e.message}"
            )
            await asyncio.sleep(options.retry_delay * attempt)

    raise create_ai_error(
        ErrorCode.GENERATION_FAILED,
        f"Failed to generate batch after {options.max_retries} retries",
        context={"chunk": chunk_number, "last_error": last_error.message if last_error else None},
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ENTRY POINTS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def generate_questions_batch(
    context: str,
    count: int,
    options: BatchGenerationOptions,
    capability: GenerationCapability,
    notifier: Notifier = log_notifier,
    registry: RuleRegistry = DEFAULT_REGISTRY,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchProcessingResult[List[Question]]:
    """Generate ``count`` questions in chunks of ``options.batch_size``."""
    total_chunks = math.ceil(count / options.batch_size) if count > 0 else 0
    logger.info(
        f"[GENERATION] Starting: {count} question(s) in {total_chunks} chunk(s), "
        f"subject={options.subject or '-'}, system={options.education_system or '-'}"
    )

    batches: List[List[Question]] = []
    try:
        for chunk_index, start in enumerate(range(0, count, options.batch_size)):
            size = min(options.batch_size, count - start)
            batch = await _generate_chunk_with_retries(
                context, size, chunk_index + 1, options, capability, registry
            )
            batches.append(batch)

            if on_progress is not None:
                on_progress(chunk_index + 1, total_chunks)

            if start + options.batch_size < count:
                await asyncio.sleep(options.delay_between_batches)
    except AIError as e:
        discarded = sum(len(batch) for batch in batches)
        logger.error(f"[GENERATION] ✗ Aborted: {e.message} ({discarded} generated question(s) discarded)")
        notify(notifier, error_title(e.code), e.message, variant="destructive")
        return BatchProcessingResult[List[Question]](
            success=False,
            error=e.message,
            data=[],
            retry_count=options.max_retries,
        )

    questions = [question for batch in batches for question in batch]
    logger.info(f"[GENERATION] ✓ Generated {len(questions)} question(s)")
    notify(notifier, "Success", f"Generated {len(questions)} questions")
    return BatchProcessingResult[List[Question]](success=True, data=questions, retry_count=0)


async def generate_questions_batch_stream(
    context: str,
    count: int,
    options: BatchGenerationOptions,
    capability: GenerationCapability,
    notifier: Notifier = log_notifier,
    registry: RuleRegistry = DEFAULT_REGISTRY,
) -> AsyncGenerator[str, None]:
    """Stream chunk progress and the final result as JSON events (for SSE)."""
    events: asyncio.Queue = asyncio.Queue()
    total_chunks = math.ceil(count / options.batch_size) if count > 0 else 0

    yield json.dumps({
        "type": "status",
        "message": f"Generating {count} questions in {total_chunks} chunk(s)...",
        "progress": 0,
    })

    task = asyncio.create_task(generate_questions_batch(
        context,
        count,
        options,
        capability,
        notifier=notifier,
        registry=registry,
        on_progress=lambda done, total: events.put_nowait(done),
    ))
    task.add_done_callback(lambda _: events.put_nowait(None))

    try:
        while True:
            done = await events.get()
            if done is None:
                break
            yield json.dumps({
                "type": "status",
                "message": f"Chunk {done}/{total_chunks} ready",
                "progress": int(done / total_chunks * 100),
            })

        result = task.result()
        yield json.dumps({"type": "result", "data": result.model_dump(mode="json", by_alias=True)})
    finally:
        if not task.done():
            task.cancel()
