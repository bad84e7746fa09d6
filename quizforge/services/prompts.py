"""
QuizForge — Prompt Builder
===========================
Subject-, level- and education-system-aware prompts for question generation.
Unknown subjects, or a system/level pair marked "Not applicable", fall back to
a generic prompt.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from quizforge.schemas.question import EducationLevel, QuestionType

NOT_APPLICABLE = "Not applicable"


@dataclass(frozen=True)
class SubjectPromptConfig:
    key_terms: Tuple[str, ...]
    concepts: Tuple[str, ...]
    common_misconceptions: Tuple[str, ...]
    example_format: str


SUBJECT_CONFIGS: Dict[str, SubjectPromptConfig] = {
    "mathematics": SubjectPromptConfig(
        key_terms=("equation", "function", "variable", "theorem", "proof"),
        concepts=("algebra", "geometry", "calculus", "statistics"),
        common_misconceptions=(
            "multiplication always makes numbers bigger",
            "division always makes numbers smaller",
        ),
        example_format="Use LaTeX formatting for mathematical expressions: $x^2 + y^2 = z^2$",
    ),
    "physics": SubjectPromptConfig(
        key_terms=("force", "energy", "momentum", "velocity", "acceleration"),
        concepts=("mechanics", "thermodynamics", "electromagnetism", "quantum"),
        common_misconceptions=(
            "heavier objects fall faster",
            "heat and temperature are the same",
        ),
        example_format="Include units in SI format: 9.81 m/s²",
    ),
    "chemistry": SubjectPromptConfig(
        key_terms=("reaction", "molecule", "element", "compound", "bond"),
        concepts=("organic", "inorganic", "physical", "analytical"),
        common_misconceptions=(
            "atoms are visible under microscope",
            "chemical bonds are physical connections",
        ),
        example_format="Use proper chemical notation: H₂O, CH₃COOH",
    ),
    "biology": SubjectPromptConfig(
        key_terms=("cell", "organism", "gene", "protein", "evolution", "ecosystem"),
        concepts=("cell biology", "genetics", "evolution", "ecology", "physiology"),
        common_misconceptions=(
            "evolution is just a theory",
            "all bacteria are harmful",
            "acquired traits are inherited",
        ),
        example_format="Write scientific names as Genus species, e.g. Homo sapiens",
    ),
}

_NA = NOT_APPLICABLE

EDUCATION_SYSTEM_PROMPTS: Dict[str, Dict[EducationLevel, str]] = {
    "o-levels": {
        EducationLevel.elementary: "Focus on basic understanding and recall",
        EducationLevel.middle: "Include application of concepts",
        EducationLevel.high: "Test analytical and problem-solving skills",
        EducationLevel.university: _NA,
        EducationLevel.professional: _NA,
    },
    "a-levels": {
        EducationLevel.elementary: _NA,
        EducationLevel.middle: _NA,
        EducationLevel.high: "Focus on deep understanding and analysis",
        EducationLevel.university: "Include research and theoretical aspects",
        EducationLevel.professional: _NA,
    },
    "mcat": {
        EducationLevel.elementary: _NA,
        EducationLevel.middle: _NA,
        EducationLevel.high: "Focus on medical science foundations",
        EducationLevel.university: "Include clinical applications",
        EducationLevel.professional: "Test professional medical knowledge",
    },
    "sat": {
        EducationLevel.elementary: _NA,
        EducationLevel.middle: "Build familiarity with standardized test reasoning",
        EducationLevel.high: "Keep questions concise and test reasoning under time pressure",
        EducationLevel.university: _NA,
        EducationLevel.professional: _NA,
    },
}

QUESTION_FORMATS: Dict[QuestionType, str] = {
    QuestionType.mcq: (
        "Q1. [Question]?\n"
        "A) [Option]\n"
        "B) [Option]\n"
        "C) [Option]\n"
        "D) [Option]\n"
        "Correct Answer: [Letter]\n"
        "Explanation: [Detailed explanation]"
    ),
    QuestionType.true_false: (
        "Q1. [Statement]?\n"
        "A) True\n"
        "B) False\n"
        "Correct Answer: [Letter]\n"
        "Explanation: [Detailed explanation]"
    ),
    QuestionType.blanks: (
        "Q1. [Sentence with _____ ]?\n"
        "A) [Candidate term]\n"
        "B) [Candidate term]\n"
        "C) [Candidate term]\n"
        "D) [Candidate term]\n"
        "Correct Answer: [Letter]\n"
        "Explanation: [Context and reasoning]"
    ),
}

# Alternative to the plain-text format above; the parser accepts either.
JSON_FORMAT_HINT = (
    "You may instead answer with a JSON array of objects shaped like:\n"
    '[{"id": "q1", "text": "...", "type": "mcq", "explanation": "...", '
    '"answers": [{"id": "a1", "text": "...", "isCorrect": true}]}]'
)

USER_MESSAGE_TEMPLATE = "Generate {count} questions based on the provided context and requirements."


def _key(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def question_format(question_type: QuestionType) -> str:
    return QUESTION_FORMATS[question_type]


def build_default_prompt(question_type: QuestionType, context: str) -> str:
    return (
        f"Create {question_type.value} questions based on: {context}\n\n"
        f"Question Format:\n{question_format(question_type)}\n\n"
        "Follow standard format and ensure:\n"
        "1. Clear language\n"
        "2. Appropriate difficulty\n"
        "3. Proper explanation\n"
        "4. Correct formatting"
    )


def build_subject_prompt(
    subject: str,
    question_type: QuestionType,
    education_system: str,
    level: EducationLevel,
    context: str,
) -> str:
    config = SUBJECT_CONFIGS.get(_key(subject))
    focus = EDUCATION_SYSTEM_PROMPTS.get(_key(education_system), {}).get(level)

    if config is None or not focus or focus == NOT_APPLICABLE:
        return build_default_prompt(question_type, context)

    return (
        f"As an expert {subject} educator for {level.value} level in the {education_system} system:\n\n"
        f"Context: {context}\n\n"
        "Key Requirements:\n"
        f"1. {focus}\n"
        f"2. Focus on these key terms: {', '.join(config.key_terms)}\n"
        f"3. Cover these core concepts: {', '.join(config.concepts)}\n"
        f"4. Address these common misconceptions: {', '.join(config.common_misconceptions)}\n"
        f"5. {config.example_format}\n\n"
        f"Question Format:\n{question_format(question_type)}\n\n"
        "Ensure:\n"
        f"1. Appropriate difficulty for {level.value} level\n"
        "2. Clear and unambiguous language\n"
        "3. Subject-specific terminology\n"
        "4. Proper notation and formatting\n"
        "5. Educational system alignment"
    )


def build_batch_prompt(
    count: int,
    subject: str,
    question_type: QuestionType,
    education_system: str,
    level: EducationLevel,
    context: str,
) -> str:
    return (
        f"Generate {count} questions following this template:\n\n"
        f"{build_subject_prompt(subject, question_type, education_system, level, context)}\n\n"
        "Additional Requirements:\n"
        "1. Ensure variety in difficulty\n"
        "2. Cover different aspects of the topic\n"
        "3. Progressive complexity\n"
        "4. Varied cognitive skills\n"
        "5. Different question structures\n\n"
        f"{JSON_FORMAT_HINT}"
    )


def build_user_message(count: int) -> str:
    return USER_MESSAGE_TEMPLATE.format(count=count)
