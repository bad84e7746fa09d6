from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

TextFix = Callable[[str], str]


class Severity(str, Enum):
    error = "error"      # invalidates the question
    warning = "warning"  # flagged, question stays valid
    info = "info"        # advisory only


class Category(str, Enum):
    content = "content"
    structure = "structure"
    pedagogy = "pedagogy"
    accessibility = "accessibility"


class RuleOutcome(BaseModel):
    """The result of running one rule against one question."""
    id: str
    message: str
    severity: Severity
    category: Category
    passed: bool
    auto_fix: Optional[TextFix] = Field(default=None, exclude=True, repr=False)

    @computed_field
    @property
    def auto_fixable(self) -> bool:
        return self.auto_fix is not None


class ValidationResult(BaseModel):
    """Per-question outcome: failing rules partitioned by severity, plus every outcome."""
    is_valid: bool
    errors: List[RuleOutcome] = Field(default_factory=list)
    warnings: List[RuleOutcome] = Field(default_factory=list)
    info: List[RuleOutcome] = Field(default_factory=list)
    all: List[RuleOutcome] = Field(default_factory=list)


def _empty_category_summary() -> Dict[Category, int]:
    return {category: 0 for category in Category}


class ValidationSummary(BaseModel):
    """Aggregate counts across a validated batch."""
    total_questions: int = 0
    valid_questions: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    total_info: int = 0
    category_summary: Dict[Category, int] = Field(default_factory=_empty_category_summary)
    auto_fixable_count: int = 0


class AutoFixSuggestion(BaseModel):
    """An actionable text fix derived from a failing rule that carries one."""
    id: str
    description: str
    apply: TextFix = Field(exclude=True, repr=False)
    category: Category
    severity: Severity
    question_id: Optional[str] = None


class BatchValidationReport(BaseModel):
    results: List[ValidationResult]
    summary: ValidationSummary
    auto_fix_suggestions: List[AutoFixSuggestion] = Field(default_factory=list)
