import logging
from typing import Iterable, List, Optional, Sequence

from quizforge.schemas.question import Question
from quizforge.schemas.validation import (
    AutoFixSuggestion,
    BatchValidationReport,
    RuleOutcome,
    Severity,
    ValidationResult,
    ValidationSummary,
)
from quizforge.validation.rules import DEFAULT_REGISTRY, RuleRegistry, ValidationRule

logger = logging.getLogger(__name__)


def validate_question(question: Question, rules: Sequence[ValidationRule]) -> ValidationResult:
    """Run every rule (no short-circuit). Only failing ``error`` rules invalidate."""
    outcomes = [
        RuleOutcome(
            id=rule.id,
            message=rule.message,
            severity=rule.severity,
            category=rule.category,
            passed=bool(rule.test(question)),
            auto_fix=rule.auto_fix,
        )
        for rule in rules
    ]
    failed = [o for o in outcomes if not o.passed]

    return ValidationResult(
        is_valid=all(o.severity != Severity.error for o in failed),
        errors=[o for o in failed if o.severity == Severity.error],
        warnings=[o for o in failed if o.severity == Severity.warning],
        info=[o for o in failed if o.severity == Severity.info],
        all=outcomes,
    )


def summarize(results: Sequence[ValidationResult]) -> ValidationSummary:
    summary = ValidationSummary(
        total_questions=len(results),
        valid_questions=sum(1 for r in results if r.is_valid),
        total_errors=sum(len(r.errors) for r in results),
        total_warnings=sum(len(r.warnings) for r in results),
        total_info=sum(len(r.info) for r in results),
    )
    for result in results:
        for outcome in result.all:
            if outcome.passed:
                continue
            summary.category_summary[outcome.category] += 1
            if outcome.auto_fix is not None:
                summary.auto_fixable_count += 1
    return summary


def suggestions_from(result: ValidationResult, question_id: Optional[str] = None) -> List[AutoFixSuggestion]:
    return [
        AutoFixSuggestion(
            id=outcome.id,
            description=outcome.message,
            apply=outcome.auto_fix,
            category=outcome.category,
            severity=outcome.severity,
            question_id=question_id,
        )
        for outcome in result.all
        if not outcome.passed and outcome.auto_fix is not None
    ]


def validate_batch(
    questions: Iterable[Question],
    subject: Optional[str] = None,
    education_system: Optional[str] = None,
    auto_fix: bool = False,
    registry: RuleRegistry = DEFAULT_REGISTRY,
) -> BatchValidationReport:
    """
    Validate a batch against base ++ subject ++ education-system rules.

    Unknown subjects or systems simply add no rules. Pure: no I/O, never raises
    for content problems.
    """
    rules = registry.rules_for(subject, education_system)
    results: List[ValidationResult] = []
    suggestions: List[AutoFixSuggestion] = []

    for question in questions:
        result = validate_question(question, rules)
        results.append(result)
        if auto_fix:
            suggestions.extend(suggestions_from(result, question.id))

    summary = summarize(results)
    logger.debug(
        f"[VALIDATION] {summary.valid_questions}/{summary.total_questions} valid "
        f"(subject={subject}, system={education_system}, rules={len(rules)})"
    )
    return BatchValidationReport(results=results, summary=summary, auto_fix_suggestions=suggestions)

