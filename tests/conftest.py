import asyncio
import json
from typing import Dict, List, Optional

import pytest

from quizforge.core.notifications import Notification
from quizforge.schemas.generation import GenerationStatus
from quizforge.schemas.question import Answer, Question


def _question(
    text: str = "What is the capital of France?",
    answers: Optional[List[str]] = None,
    correct: int = 0,
    explanation: Optional[str] = "Paris has been the capital of France for centuries.",
    answer_explanation: Optional[str] = "See the question explanation.",
    qid: str = "q1",
) -> Question:
    answers = ["Paris", "Lyon"] if answers is None else answers
    return Question(
        id=qid,
        text=text,
        explanation=explanation,
        answers=[
            Answer(id=f"{qid}-a{i}", text=a, is_correct=i == correct, explanation=answer_explanation)
            for i, a in enumerate(answers)
        ],
    )


@pytest.fixture
def make_question():
    return _question


def questions_payload(count: int, text: str = "Which organelle produces ATP in the cell?") -> str:
    """Raw model output: a JSON array of ``count`` well-formed questions."""
    return json.dumps([
        {
            "text": text,
            "explanation": "Mitochondria are the site of cellular respiration.",
            "answers": [
                {"text": "Mitochondria", "isCorrect": True, "explanation": "Correct."},
                {"text": "Ribosome", "isCorrect": False, "explanation": "Makes proteins."},
            ],
        }
        for _ in range(count)
    ])


@pytest.fixture
def payload():
    return questions_payload


FAIL = object()


class FakeCapability:
    """
    Scripted generation capability. Each ``submit`` consumes the next script
    entry: a string completes with that text, ``FAIL`` reports a failed job,
    an exception instance is raised from ``submit`` itself.
    """

    def __init__(self, script):
        self.script = list(script)
        self.submissions: List[tuple] = []
        self.cancelled: List[str] = []
        self._jobs: Dict[str, object] = {}

    async def submit(self, prompt: str, user_message: str) -> str:
        self.submissions.append((prompt, user_message))
        outcome = self.script.pop(0) if self.script else FAIL
        if isinstance(outcome, Exception):
            raise outcome
        handle = f"job-{len(self.submissions)}"
        self._jobs[handle] = outcome
        return handle

    async def get_status(self, handle: str) -> GenerationStatus:
        if self._jobs[handle] is FAIL:
            return GenerationStatus.failed
        return GenerationStatus.completed

    async def get_result(self, handle: str) -> str:
        return self._jobs.pop(handle)

    async def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)


@pytest.fixture
def fake_capability():
    return FakeCapability


@pytest.fixture
def fail():
    return FAIL


@pytest.fixture
def sleeps(monkeypatch):
    """Record requested delays instead of waiting."""
    recorded: List[float] = []

    async def fake_sleep(delay, result=None):
        recorded.append(delay)
        return result

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


@pytest.fixture
def notes():
    received: List[Notification] = []
    return received


@pytest.fixture
def notifier(notes):
    return notes.append
