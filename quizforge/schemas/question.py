from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class QuestionType(str, Enum):
    mcq = "mcq"
    true_false = "true-false"
    blanks = "blanks"


class EducationLevel(str, Enum):
    elementary = "elementary"
    middle = "middle"
    high = "high"
    university = "university"
    professional = "professional"


class EducationSystem(str, Enum):
    o_levels = "o-levels"
    a_levels = "a-levels"
    mcat = "mcat"
    sat = "sat"
    custom = "custom"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# camelCase on the wire (isCorrect, createdAt, quizId ...), snake_case in Python.
_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Answer(BaseModel):
    """One option of a question."""
    model_config = _WIRE_CONFIG

    id: str
    text: str = ""
    is_correct: bool = False
    explanation: Optional[str] = None


class Question(BaseModel):
    """
    A unit of assessment content.

    A question may transiently have fewer than two answers or no correct
    answer while it is being edited; the validation rules report that, the
    model does not reject it.
    """
    model_config = _WIRE_CONFIG

    id: str
    text: str = ""
    type: QuestionType = QuestionType.mcq
    explanation: Optional[str] = None
    answers: List[Answer] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    quiz_id: Optional[str] = None
    order_number: Optional[int] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
