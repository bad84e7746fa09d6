"""
Auto-fix engine.

Fixes are text transforms. Applying one rewrites the question text and every
answer text with the same function. ``apply_all_fixes`` makes exactly one pass
over the rule list; later fixes see the output of earlier ones, nothing is
re-checked afterwards.
"""

import logging
from typing import List, Optional

from quizforge.schemas.question import Question
from quizforge.schemas.validation import AutoFixSuggestion
from quizforge.validation.rules import DEFAULT_REGISTRY, RuleRegistry, ValidationRule

logger = logging.getLogger(__name__)


def _changes(question: Question, rule: ValidationRule) -> bool:
    fix = rule.auto_fix
    return any(fix(text) != text for text in [question.text, *(a.text for a in question.answers)])


def get_suggestions(
    question: Question,
    subject: Optional[str] = None,
    registry: RuleRegistry = DEFAULT_REGISTRY,
) -> List[AutoFixSuggestion]:
    """Failing fixable rules whose transform would actually change the question."""
    return [
        AutoFixSuggestion(
            id=rule.id,
            description=rule.message,
            apply=rule.auto_fix,
            category=rule.category,
            severity=rule.severity,
            question_id=question.id,
        )
        for rule in registry.fix_rules_for(subject)
        if not rule.test(question) and _changes(question, rule)
    ]


def _rewrite(question: Question, rule: ValidationRule) -> Question:
    fix = rule.auto_fix
    return question.model_copy(
        update={
            "text": fix(question.text),
            "answers": [a.model_copy(update={"text": fix(a.text)}) for a in question.answers],
        }
    )


def apply_fix(
    question: Question,
    fix_id: str,
    subject: Optional[str] = None,
    registry: RuleRegistry = DEFAULT_REGISTRY,
) -> Question:
    """Apply one fix by id. An unknown id returns the question untouched."""
    rule = next((r for r in registry.fix_rules_for(subject) if r.id == fix_id), None)
    if rule is None:
        logger.info(f"[AUTOFIX] Unknown fix '{fix_id}' for subject={subject}; question unchanged")
        return question
    return _rewrite(question, rule)


def apply_all_fixes(
    question: Question,
    subject: Optional[str] = None,
    registry: RuleRegistry = DEFAULT_REGISTRY,
) -> Question:
    fixed = question
    applied = []
    for rule in registry.fix_rules_for(subject):
        if not rule.test(fixed):
            fixed = _rewrite(fixed, rule)
            applied.append(rule.id)

    if applied:
        logger.info(f"[AUTOFIX] Question {question.id}: applied {', '.join(applied)}")
    return fixed
