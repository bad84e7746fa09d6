"""
QuizForge — Validation Rules
=============================
Rules are plain data: a predicate over a Question (True = satisfied) plus
message, severity, category and an optional text transform that rewrites
non-conforming text.

Rule tables:
  - BASE_RULES               structural completeness, always applied
  - SUBJECT_RULES            notation checks per subject
  - EDUCATION_SYSTEM_RULES   constraints per assessment standard
  - *_FIX_RULES              text-level checks whose only purpose is their fix

``RuleRegistry`` bundles the tables so callers (and tests) can inject their own.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from quizforge.schemas.question import Question
from quizforge.schemas.validation import Category, Severity, TextFix


@dataclass(frozen=True)
class ValidationRule:
    id: str
    test: Callable[[Question], bool]
    message: str
    severity: Severity
    category: Category
    auto_fix: Optional[TextFix] = field(default=None, compare=False)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BASE RULES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _consistent_answer_lengths(q: Question) -> bool:
    lengths = [len(a.text) for a in q.answers]
    if not lengths:
        return True
    avg = sum(lengths) / len(lengths)
    return all(abs(length - avg) < avg * 0.5 for length in lengths)


BASE_RULES: Tuple[ValidationRule, ...] = (
    ValidationRule(
        id="question-text",
        test=lambda q: _has_text(q.text),
        message="Question text is required",
        severity=Severity.error,
        category=Category.content,
    ),
    ValidationRule(
        id="answer-count",
        test=lambda q: len(q.answers) >= 2,
        message="At least two answers are required",
        severity=Severity.error,
        category=Category.content,
    ),
    ValidationRule(
        id="correct-answer",
        test=lambda q: any(a.is_correct for a in q.answers),
        message="At least one correct answer is required",
        severity=Severity.error,
        category=Category.content,
    ),
    ValidationRule(
        id="answer-text",
        test=lambda q: all(_has_text(a.text) for a in q.answers),
        message="All answers must have text",
        severity=Severity.error,
        category=Category.content,
    ),
    ValidationRule(
        id="question-length",
        test=lambda q: 10 <= len(q.text or "") <= 500,
        message="Question text should be between 10 and 500 characters",
        severity=Severity.warning,
        category=Category.structure,
    ),
    ValidationRule(
        id="explanation",
        test=lambda q: _has_text(q.explanation),
        message="Question should have an explanation",
        severity=Severity.warning,
        category=Category.pedagogy,
    ),
    ValidationRule(
        id="answer-explanations",
        test=lambda q: all(_has_text(a.explanation) for a in q.answers),
        message="All answers should have explanations",
        severity=Severity.warning,
        category=Category.pedagogy,
    ),
    ValidationRule(
        id="answer-length-consistency",
        test=_consistent_answer_lengths,
        message="Answer lengths should be relatively consistent",
        severity=Severity.info,
        category=Category.accessibility,
    ),
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SUBJECT RULES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_LATEX = re.compile(r"\$.*\$")
_NUMBER_WITH_UNIT_WORD = re.compile(r"\d+\s*[A-Za-z]+")
_SI_QUANTITY = re.compile(r"\d+\s*(m/s|N|J|W|Hz|V|Ω)")
_ELEMENT_TOKEN = re.compile(r"[A-Z][a-z]?\d*")
_BINOMIAL = re.compile(r"([A-Z][a-z]+) ([a-z]+)")


def _latex_exponents(text: str) -> str:
    return re.sub(r"(\d+)\^(\d+)", r"$\1^\2$", text)


def _physics_unit_symbols(text: str) -> str:
    return (
        text.replace("meters/second", "m/s")
        .replace("newtons", "N")
        .replace("joules", "J")
    )


def _chemical_formulas(text: str) -> str:
    return text.replace("H2O", "H₂O").replace("CO2", "CO₂")


def _italic_binomial(text: str) -> str:
    return _BINOMIAL.sub(r"_\1 \2_", text, count=1)


SUBJECT_RULES: Mapping[str, Tuple[ValidationRule, ...]] = MappingProxyType({
    "mathematics": (
        ValidationRule(
            id="math-latex",
            test=lambda q: bool(_LATEX.search(q.text)),
            message="Mathematical expressions should use LaTeX formatting (e.g., $x^2$)",
            severity=Severity.warning,
            category=Category.content,
            auto_fix=_latex_exponents,
        ),
        ValidationRule(
            id="math-units",
            test=lambda q: "=" not in q.text or bool(_NUMBER_WITH_UNIT_WORD.search(q.text)),
            message="Include units with numerical values",
            severity=Severity.warning,
            category=Category.content,
        ),
    ),
    "physics": (
        ValidationRule(
            id="physics-units",
            test=lambda q: bool(_SI_QUANTITY.search(q.text)),
            message="Use SI units with proper formatting",
            severity=Severity.error,
            category=Category.content,
            auto_fix=_physics_unit_symbols,
        ),
    ),
    "chemistry": (
        ValidationRule(
            id="chemical-formulas",
            test=lambda q: bool(_ELEMENT_TOKEN.search(q.text)),
            message="Use proper chemical formula notation",
            severity=Severity.error,
            category=Category.content,
            auto_fix=_chemical_formulas,
        ),
    ),
    "biology": (
        ValidationRule(
            id="scientific-names",
            test=lambda q: bool(_BINOMIAL.search(q.text)),
            message="Scientific names should be properly formatted",
            severity=Severity.warning,
            category=Category.content,
            auto_fix=_italic_binomial,
        ),
    ),
})


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# EDUCATION SYSTEM RULES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

EDUCATION_SYSTEM_RULES: Mapping[str, Tuple[ValidationRule, ...]] = MappingProxyType({
    "o-levels": (
        ValidationRule(
            id="o-level-complexity",
            test=lambda q: all(len(word) <= 12 for word in q.text.split(" ")),
            message="Use appropriate vocabulary for O Level students",
            severity=Severity.warning,
            category=Category.accessibility,
        ),
    ),
    "a-levels": (
        ValidationRule(
            id="a-level-depth",
            test=lambda q: len(q.explanation or "") >= 50,
            message="Provide detailed explanations for A Level concepts",
            severity=Severity.warning,
            category=Category.pedagogy,
        ),
    ),
    "mcat": (
        ValidationRule(
            id="mcat-format",
            test=lambda q: len(q.answers) >= 4 and "AAMC format" in (q.explanation or ""),
            message="Follow MCAT question format guidelines",
            severity=Severity.error,
            category=Category.structure,
        ),
    ),
    "sat": (
        ValidationRule(
            id="sat-timing",
            test=lambda q: len(q.text) <= 150,
            message="Keep questions concise for SAT timing constraints",
            severity=Severity.warning,
            category=Category.structure,
        ),
    ),
    "custom": (),
})


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# AUTO-FIX RULES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Each test passes once the text no longer contains what its fix rewrites,
# so a fix is only ever offered for text that needs it.

_RAW_EXPONENT = re.compile(r"\d+\^\d")
_RAW_FRACTION = re.compile(r"\d+/\d+")
_SI_BASE_UNIT = r"(m|kg|s|A|K|mol|cd)\b"
_MISSPACED_UNIT = re.compile(r"(\d+)(?:|\s{2,})" + _SI_BASE_UNIT)
_ELEMENT_COUNT = re.compile(r"([A-Z][a-z]?)(\d+)")
_RUN_OF_SPACES = re.compile(r"\s{2,}")
_SUBSCRIPTS = str.maketrans("0123456789", "₀₁₂₃₄₅₆₇₈₉")


def _fix_exponents(text: str) -> str:
    return re.sub(r"(\d+)\^(\d+)", r"$\1^{\2}$", text)


def _fix_fractions(text: str) -> str:
    return _RAW_FRACTION.sub(lambda m: "$\\frac{%s}{%s}$" % tuple(m.group(0).split("/")), text)


def _fix_unit_spacing(text: str) -> str:
    return _MISSPACED_UNIT.sub(r"\1 \2", text)


def _fix_subscripts(text: str) -> str:
    return _ELEMENT_COUNT.sub(lambda m: m.group(1) + m.group(2).translate(_SUBSCRIPTS), text)


def _fix_question_mark(text: str) -> str:
    return text.strip() + "?"


def _fix_spacing(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


MATH_FIX_RULES: Tuple[ValidationRule, ...] = (
    ValidationRule(
        id="math-exponents",
        test=lambda q: not _RAW_EXPONENT.search(q.text),
        message="Convert basic exponents to LaTeX format",
        severity=Severity.warning,
        category=Category.content,
        auto_fix=_fix_exponents,
    ),
    ValidationRule(
        id="math-fractions",
        test=lambda q: not _RAW_FRACTION.search(q.text),
        message="Convert fractions to LaTeX format",
        severity=Severity.warning,
        category=Category.content,
        auto_fix=_fix_fractions,
    ),
)

SCIENCE_FIX_RULES: Tuple[ValidationRule, ...] = (
    ValidationRule(
        id="science-units",
        test=lambda q: not _MISSPACED_UNIT.search(q.text),
        message="Format scientific units correctly",
        severity=Severity.warning,
        category=Category.content,
        auto_fix=_fix_unit_spacing,
    ),
    ValidationRule(
        id="chemical-subscripts",
        test=lambda q: not _ELEMENT_COUNT.search(q.text),
        message="Format chemical formulas with proper subscripts",
        severity=Severity.warning,
        category=Category.content,
        auto_fix=_fix_subscripts,
    ),
)

GENERAL_FIX_RULES: Tuple[ValidationRule, ...] = (
    ValidationRule(
        id="question-mark",
        test=lambda q: q.text.strip().endswith("?"),
        message="Ensure questions end with a question mark",
        severity=Severity.info,
        category=Category.structure,
        auto_fix=_fix_question_mark,
    ),
    ValidationRule(
        id="double-spaces",
        test=lambda q: not _RUN_OF_SPACES.search(q.text),
        message="Remove double spaces",
        severity=Severity.info,
        category=Category.structure,
        auto_fix=_fix_spacing,
    ),
)

FIX_RULES: Mapping[str, Tuple[ValidationRule, ...]] = MappingProxyType({
    "mathematics": MATH_FIX_RULES,
    "physics": SCIENCE_FIX_RULES,
    "chemistry": SCIENCE_FIX_RULES,
    "biology": SCIENCE_FIX_RULES,
})


def _key(name: Optional[str]) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class RuleRegistry:
    """Immutable bundle of rule tables, built once and passed to the validators."""
    base: Sequence[ValidationRule] = BASE_RULES
    subjects: Mapping[str, Sequence[ValidationRule]] = field(default_factory=lambda: SUBJECT_RULES)
    systems: Mapping[str, Sequence[ValidationRule]] = field(default_factory=lambda: EDUCATION_SYSTEM_RULES)
    fixes: Mapping[str, Sequence[ValidationRule]] = field(default_factory=lambda: FIX_RULES)
    general_fixes: Sequence[ValidationRule] = GENERAL_FIX_RULES

    def subject_rules(self, subject: Optional[str]) -> List[ValidationRule]:
        return list(self.subjects.get(_key(subject), ()))

    def system_rules(self, education_system: Optional[str]) -> List[ValidationRule]:
        return list(self.systems.get(_key(education_system), ()))

    def rules_for(
        self,
        subject: Optional[str] = None,
        education_system: Optional[str] = None,
    ) -> List[ValidationRule]:
        """base ++ subject ++ system; unknown keys contribute nothing."""
        return [*self.base, *self.subject_rules(subject), *self.system_rules(education_system)]

    def fix_rules_for(self, subject: Optional[str] = None) -> List[ValidationRule]:
        """
        Rules the auto-fix engine may apply, in application order:
        subject fix rules, then fixable subject validation rules, then general fixes.
        """
        rules = list(self.fixes.get(_key(subject), ()))
        seen = {rule.id for rule in rules}
        for rule in self.subject_rules(subject):
            if rule.auto_fix is not None and rule.id not in seen:
                rules.append(rule)
                seen.add(rule.id)
        rules.extend(r for r in self.general_fixes if r.id not in seen)
        return rules


DEFAULT_REGISTRY = RuleRegistry()
