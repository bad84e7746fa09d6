"""
QuizForge — Bulk Import
========================
Validates and stores an existing batch of questions (e.g. an uploaded
question bank). Each question gets its own BatchProcessingResult; one bad
question never stops the rest of the batch.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from quizforge.core.errors import AIError, ErrorCode, create_ai_error
from quizforge.core.notifications import Notifier, log_notifier, notify
from quizforge.core.retry import RetryOptions, with_retry
from quizforge.schemas.generation import BatchProcessingOptions, BatchProcessingResult
from quizforge.schemas.question import Question
from quizforge.services.persistence import Persistence
from quizforge.validation.batch import validate_question
from quizforge.validation.rules import DEFAULT_REGISTRY, RuleRegistry, ValidationRule

logger = logging.getLogger(__name__)

QUESTIONS_TABLE = "questions"
ANSWERS_TABLE = "answers"
HISTORY_TABLE = "processing_history"


def _question_row(question: Question) -> dict:
    return question.model_dump(mode="json", exclude={"answers"})


def _answer_rows(question: Question) -> List[dict]:
    return [
        {**answer.model_dump(mode="json"), "question_id": question.id}
        for answer in question.answers
    ]


async def _question_stored(question: Question, persistence: Persistence) -> bool:
    return bool(await persistence.select(QUESTIONS_TABLE, {"id": question.id}))


async def _save_question(question: Question, persistence: Persistence) -> Question:
    # A retried attempt must not insert the question row twice.
    try:
        if not await _question_stored(question, persistence):
            await persistence.insert(QUESTIONS_TABLE, [_question_row(question)])
        if question.answers:
            await persistence.insert(ANSWERS_TABLE, _answer_rows(question))
    except AIError:
        raise
    except Exception as e:
        # Storage failures are treated as transient so the retry policy applies.
        raise create_ai_error(ErrorCode.API_ERROR, f"Failed to save question {question.id}: {e}") from e
    return question


async def _process_question(
    question: Question,
    rules: List[ValidationRule],
    persistence: Persistence,
    options: BatchProcessingOptions,
    notifier: Notifier,
) -> BatchProcessingResult[Question]:
    if options.validate_results:
        result = validate_question(question, rules)
        if not result.is_valid:
            reasons = "; ".join(outcome.message for outcome in result.errors)
            logger.warning(f"[IMPORT] ✗ {question.id} rejected: {reasons}")
            return BatchProcessingResult[Question](
                success=False,
                error=f"Question validation failed: {reasons}",
                retry_count=0,
            )

    attempts = 0

    async def attempt() -> Question:
        nonlocal attempts
        attempts += 1
        return await _save_question(question, persistence)

    retry_options = RetryOptions(max_attempts=options.max_retries, initial_delay=options.retry_delay)
    try:
        saved = await with_retry(attempt, retry_options, notifier)
    except AIError as e:
        error = e.details.message
        if await _question_stored(question, persistence):
            error = f"{error} (question row saved without its answers)"
        logger.error(f"[IMPORT] ✗ {question.id} not saved after {attempts} attempt(s): {error}")
        return BatchProcessingResult[Question](success=False, error=error, retry_count=attempts)

    return BatchProcessingResult[Question](success=True, data=saved, retry_count=attempts - 1)


async def process_batch_questions(
    questions: List[Question],
    persistence: Persistence,
    options: Optional[BatchProcessingOptions] = None,
    registry: RuleRegistry = DEFAULT_REGISTRY,
    notifier: Notifier = log_notifier,
) -> List[BatchProcessingResult[Question]]:
    """Validate and persist ``questions`` in chunks, one result per question in input order."""
    opts = options or BatchProcessingOptions()
    rules = list(registry.rules_for(opts.subject, opts.education_system))
    started_at = datetime.now(timezone.utc)
    results: List[BatchProcessingResult[Question]] = []

    logger.info(f"[IMPORT] Processing {len(questions)} question(s) in chunks of {opts.batch_size}")

    for start in range(0, len(questions), opts.batch_size):
        for question in questions[start:start + opts.batch_size]:
            results.append(await _process_question(question, rules, persistence, opts, notifier))

        if start + opts.batch_size < len(questions):
            await asyncio.sleep(opts.delay_between_batches)

    succeeded = sum(1 for r in results if r.success)
    failed = len(results) - succeeded

    await persistence.insert(HISTORY_TABLE, [{
        "operation": "bulk_import",
        "total": len(results),
        "succeeded": succeeded,
        "failed": failed,
        "subject": opts.subject,
        "education_system": opts.education_system,
        "started_at": started_at.isoformat(),
        "finished_at": datetime.now(timezone.utc).isoformat(),
    }])

    logger.info(f"[IMPORT] ✓ Done: {succeeded} saved, {failed} failed")
    if failed:
        notify(notifier, "Import finished with errors", f"{succeeded} saved, {failed} failed", variant="destructive")
    else:
        notify(notifier, "Import complete", f"{succeeded} questions saved")
    return results
