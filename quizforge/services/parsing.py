import json
import re
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from quizforge.core.errors import ErrorCode, create_ai_error
from quizforge.schemas.question import Answer, Question, QuestionType

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_QUESTION_MARKER = re.compile(r"Q\d+[.):]")
_ANSWER_LINE = re.compile(r"^([A-D])[).:]\s*(.*)$")
_CORRECT_LINE = re.compile(r"^correct(?:\s+answer)?\s*[:\-]\s*\(?([A-D])\b", re.IGNORECASE)
_CORRECT_MARKER = re.compile(r"\s*\(correct\)\s*", re.IGNORECASE)
_EXPLANATION_LINE = re.compile(r"^explanation\s*:\s*(.*)$", re.IGNORECASE)
_FIRST_QUESTION = re.compile(r"^(.*?\?)", re.DOTALL)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# JSON RECOVERY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def clean_and_parse_json(raw_text: str) -> Any:
    """
    Robust JSON extractor:
    1. Strip markdown code fences (```json ... ```)
    2. Extract the outermost [ ... ] or { ... } block
    3. Parse with json.loads
    Raises ValueError on failure.
    """
    if not raw_text or not raw_text.strip():
        raise ValueError("Empty AI response received")

    cleaned = raw_text.strip()

    fence_match = _FENCE.search(cleaned)
    if fence_match:
        cleaned = fence_match.group(1).strip()

    if not cleaned.startswith(("[", "{")):
        block = re.search(r"\[.*\]|\{.*\}", cleaned, re.DOTALL)
        if block:
            cleaned = block.group(0)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"AI returned invalid JSON: {e}")


def _question_items(payload: Any) -> Optional[List[Dict[str, Any]]]:
    if isinstance(payload, dict):
        payload = payload.get("questions")
    if isinstance(payload, list) and payload and all(isinstance(item, dict) for item in payload):
        return payload
    return None


def _from_json_items(items: List[Dict[str, Any]], prefix: str, question_type: QuestionType) -> List[Question]:
    questions: List[Question] = []
    for index, item in enumerate(items):
        item = dict(item)
        question_id = str(item.get("id") or f"{prefix}-{index}")
        item["id"] = question_id
        item.setdefault("type", question_type.value)
        item["answers"] = [
            {**answer, "id": str(answer.get("id") or f"{question_id}-ans-{i}")}
            for i, answer in enumerate(item.get("answers") or [])
            if isinstance(answer, dict)
        ]
        try:
            questions.append(Question.model_validate(item))
        except ValidationError as e:
            logger.warning(f"[PARSER] Skipping malformed question #{index}: {e.error_count()} error(s)")
    return questions


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PLAIN-TEXT FALLBACK  (Q1. ... / A) ... / Correct Answer: B)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _parse_block(block: str, question_id: str, question_type: QuestionType) -> Question:
    lines = [line.strip() for line in block.strip().splitlines() if line.strip()]

    stem_lines: List[str] = []
    answers: List[Answer] = []
    correct_index: Optional[int] = None
    explanation_lines: List[str] = []
    in_explanation = False

    for line in lines:
        answer_match = _ANSWER_LINE.match(line)
        correct_match = _CORRECT_LINE.match(line)
        explanation_match = _EXPLANATION_LINE.match(line)

        if correct_match:
            correct_index = "ABCD".index(correct_match.group(1).upper())
            in_explanation = False
        elif explanation_match:
            explanation_lines.append(explanation_match.group(1))
            in_explanation = True
        elif answer_match and not in_explanation:
            text = answer_match.group(2)
            marked = bool(_CORRECT_MARKER.search(text))
            answers.append(Answer(
                id=f"{question_id}-ans-{len(answers)}",
                text=_CORRECT_MARKER.sub(" ", text).strip(),
                is_correct=marked,
                explanation="",
            ))
        elif in_explanation:
            explanation_lines.append(line)
        elif not answers:
            stem_lines.append(line)

    if correct_index is not None and not any(a.is_correct for a in answers):
        for i, answer in enumerate(answers):
            answer.is_correct = i == correct_index

    stem = " ".join(stem_lines).strip()
    stem_match = _FIRST_QUESTION.match(stem)
    text = stem_match.group(1).strip() if stem_match else (stem_lines[0] if stem_lines else "")

    explanation = "\n".join(part for part in explanation_lines if part).strip()
    return Question(
        id=question_id,
        text=text,
        type=question_type,
        explanation=explanation or None,
        answers=answers,
    )


def _from_plain_text(text: str, prefix: str, question_type: QuestionType) -> List[Question]:
    parts = _QUESTION_MARKER.split(text)
    # Anything before the first "Q1." is preamble.
    blocks = [block for block in parts[1:] if block.strip()]
    return [
        _parse_block(block, f"{prefix}-{index}", question_type)
        for index, block in enumerate(blocks)
    ]


def parse_questions(response: str, question_type: QuestionType = QuestionType.mcq) -> List[Question]:
    """
    Turn raw generation output into questions.

    JSON (a list, or an object with a ``questions`` list) is tried first; the
    ``Q<n>.`` plain-text format is the fallback. Raises PARSING_FAILED when
    neither yields anything.
    """
    prefix = f"gen-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"

    try:
        items = _question_items(clean_and_parse_json(response))
    except ValueError:
        items = None

    if items is not None:
        questions = _from_json_items(items, prefix, question_type)
        if questions:
            return questions

    questions = _from_plain_text(response or "", prefix, question_type)
    if not questions:
        logger.error(f"[PARSER] Unparseable response (first 300 chars): {(response or '')[:300]}")
        raise create_ai_error(ErrorCode.PARSING_FAILED, "Could not parse any questions from the AI response")

    logger.info(f"[PARSER] Parsed {len(questions)} question(s) from plain-text format")
    return questions
