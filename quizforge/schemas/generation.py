from datetime import datetime, timezone
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from quizforge.core.config import settings
from quizforge.schemas.question import EducationLevel, Question, QuestionType

T = TypeVar("T")


class GenerationStatus(str, Enum):
    queued = "queued"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


class BatchGenerationOptions(BaseModel):
    """How a generation run is chunked, prompted, validated and retried. Times in seconds."""
    subject: str = ""
    education_system: str = ""
    level: EducationLevel = EducationLevel.high
    question_type: QuestionType = QuestionType.mcq
    batch_size: int = Field(default=settings.GENERATION_BATCH_SIZE, ge=1)
    max_retries: int = Field(default=settings.GENERATION_MAX_RETRIES, ge=1)
    delay_between_batches: float = Field(default=settings.GENERATION_DELAY_BETWEEN_BATCHES, ge=0)
    validate_results: bool = True
    retry_delay: float = Field(default=settings.GENERATION_RETRY_DELAY, ge=0)
    poll_interval: float = Field(default=settings.GENERATION_POLL_INTERVAL, ge=0)
    max_poll_attempts: int = Field(default=settings.GENERATION_MAX_POLL_ATTEMPTS, ge=1)


class BatchProcessingOptions(BaseModel):
    """Options for importing/persisting an existing batch of questions."""
    batch_size: int = Field(default=settings.GENERATION_BATCH_SIZE, ge=1)
    max_retries: int = Field(default=settings.GENERATION_MAX_RETRIES, ge=1)
    delay_between_batches: float = Field(default=settings.GENERATION_DELAY_BETWEEN_BATCHES, ge=0)
    retry_delay: float = Field(default=settings.GENERATION_RETRY_DELAY, ge=0)
    validate_results: bool = True
    subject: Optional[str] = None
    education_system: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchProcessingResult(BaseModel, Generic[T]):
    """Outcome of one attempted unit of work (a question save, or a whole generation run)."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    retry_count: int = 0
    timestamp: datetime = Field(default_factory=_utcnow)


# ── Requests ─────────────────────────────────────────────────────────────────

class GenerationRequest(BaseModel):
    context: str = Field(..., min_length=20, description="Study material the questions are drawn from")
    count: int = Field(default=10, ge=1, le=100)
    options: BatchGenerationOptions = Field(default_factory=BatchGenerationOptions)
    persist: bool = False


class ImportRequest(BaseModel):
    questions: List[Question]
    options: BatchProcessingOptions = Field(default_factory=BatchProcessingOptions)
