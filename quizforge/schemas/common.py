"""
QuizForge — Envelope & Request Schemas
=======================================
Every error from this API is wrapped in ErrorResponse.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from quizforge.schemas.question import Question


class ErrorResponse(BaseModel):
    """Standard error envelope."""
    status: str = "error"
    message: str
    code: Optional[str] = None
    detail: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


# ── Validation / auto-fix requests ───────────────────────────────────────────

class ValidateRequest(BaseModel):
    questions: List[Question]
    subject: Optional[str] = None
    education_system: Optional[str] = None
    auto_fix: bool = False


class SuggestionsRequest(BaseModel):
    question: Question
    subject: Optional[str] = None


class ApplyFixRequest(BaseModel):
    question: Question
    fix_id: str = Field(..., min_length=1)
    subject: Optional[str] = None


class ApplyAllFixesRequest(BaseModel):
    question: Question
    subject: Optional[str] = None


# ── Materials ────────────────────────────────────────────────────────────────

class MaterialText(BaseModel):
    file_name: str
    characters: int
    text: str
    chunks: List[str]
