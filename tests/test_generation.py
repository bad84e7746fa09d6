import asyncio
import json

import pytest

from quizforge.core.errors import AIError, ErrorCode
from quizforge.schemas.generation import BatchGenerationOptions, GenerationStatus
from quizforge.schemas.question import Answer, Question
from quizforge.services import ai_provider
from quizforge.services.generation import (
    generate_questions_batch,
    generate_questions_batch_stream,
    poll_for_completion,
    validate_generated_question,
)

CONTEXT = "Cells are the basic unit of life. Mitochondria produce ATP."


def _options(**overrides):
    values = dict(
        batch_size=5,
        max_retries=2,
        delay_between_batches=1.0,
        retry_delay=1.0,
        poll_interval=1.0,
        max_poll_attempts=5,
    )
    values.update(overrides)
    return BatchGenerationOptions(**values)


def _run(capability, count, options, **kwargs):
    return asyncio.run(generate_questions_batch(CONTEXT, count, options, capability, **kwargs))


# ── Happy path ───────────────────────────────────────────────────────────────

def test_generates_in_sequential_chunks(fake_capability, payload, sleeps, notes, notifier):
    capability = fake_capability([payload(5), payload(2)])

    result = _run(capability, 7, _options(), notifier=notifier)

    assert result.success
    assert result.retry_count == 0
    assert len(result.data) == 7
    assert [msg for _, msg in capability.submissions] == [
        "Generate 5 questions based on the provided context and requirements.",
        "Generate 2 questions based on the provided context and requirements.",
    ]
    assert all(prompt.startswith("Generate ") for prompt, _ in capability.submissions)
    # one pause between the two chunks, none after the last
    assert sleeps == [1.0]
    assert notes[-1].title == "Success"


def test_progress_callback_per_chunk(fake_capability, payload, sleeps):
    capability = fake_capability([payload(2)] * 3)
    progress = []

    _run(capability, 6, _options(batch_size=2), on_progress=lambda done, total: progress.append((done, total)))

    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_extra_valid_questions_are_trimmed(fake_capability, payload, sleeps):
    result = _run(fake_capability([payload(8)]), 5, _options())

    assert result.success
    assert len(result.data) == 5


# ── Failures and retries ─────────────────────────────────────────────────────

def test_exhausted_chunk_aborts_whole_run(fake_capability, payload, fail, sleeps, notes, notifier):
    capability = fake_capability([payload(5), fail, fail])

    result = _run(capability, 10, _options(batch_size=5, max_retries=2), notifier=notifier)

    assert not result.success
    assert result.data == []
    assert result.retry_count == 2
    assert result.error == "Failed to generate batch after 2 retries"
    assert len(capability.submissions) == 3
    # between-chunk pause, then linear backoff 1s, 2s
    assert sleeps == [1.0, 1.0, 2.0]
    assert notes[-1].variant == "destructive"


def test_chunk_recovers_on_retry(fake_capability, payload, fail, sleeps):
    capability = fake_capability([fail, payload(3)])

    result = _run(capability, 3, _options(max_retries=3, retry_delay=0.5))

    assert result.success
    assert len(result.data) == 3
    assert sleeps == [0.5]


def test_too_few_valid_questions_fails_the_chunk(fake_capability, payload, sleeps):
    broken = json.loads(payload(3))
    broken[0]["answers"] = broken[0]["answers"][:1]
    capability = fake_capability([json.dumps(broken), payload(3)])

    result = _run(capability, 3, _options(max_retries=2))

    assert result.success
    assert len(capability.submissions) == 2


def test_validation_can_be_disabled(fake_capability, payload, sleeps):
    broken = json.loads(payload(2))
    broken[0]["answers"] = []

    result = _run(fake_capability([json.dumps(broken)]), 2, _options(validate_results=False))

    assert result.success
    assert len(result.data) == 2


def test_unparseable_output_is_retried(fake_capability, payload, sleeps):
    capability = fake_capability(["Sorry, no questions today.", payload(1)])

    result = _run(capability, 1, _options())

    assert result.success
    assert len(capability.submissions) == 2


def test_capability_exceptions_are_retried(fake_capability, payload, sleeps):
    capability = fake_capability([ConnectionError("socket closed"), payload(1)])

    result = _run(capability, 1, _options())

    assert result.success
    assert sleeps == [1.0]


# ── Polling ──────────────────────────────────────────────────────────────────

class SlowCapability:
    def __init__(self, ready_after):
        self.ready_after = ready_after
        self.polls = 0
        self.cancelled = []

    async def submit(self, prompt, user_message):
        return "slow-job"

    async def get_status(self, handle):
        self.polls += 1
        if self.polls >= self.ready_after:
            return GenerationStatus.completed
        return GenerationStatus.in_progress

    async def get_result(self, handle):
        return "done"

    async def cancel(self, handle):
        self.cancelled.append(handle)


def test_polls_until_completed(sleeps):
    capability = SlowCapability(ready_after=3)

    assert asyncio.run(poll_for_completion(capability, "slow-job", 0.25, 10)) == "done"
    assert sleeps == [0.25, 0.25]


def test_polling_gives_up_and_cancels(sleeps):
    capability = SlowCapability(ready_after=100)

    with pytest.raises(AIError) as info:
        asyncio.run(poll_for_completion(capability, "slow-job", 1.0, 4))

    assert info.value.code == ErrorCode.TIMEOUT
    assert capability.polls == 4
    assert capability.cancelled == ["slow-job"]


def test_cancelled_polling_cancels_the_job():
    capability = SlowCapability(ready_after=10**6)

    async def scenario():
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(poll_for_completion(capability, "slow-job", 0.01, 10**6), 0.05)

    asyncio.run(scenario())

    assert capability.cancelled == ["slow-job"]


def test_abandoned_provider_job_is_stopped(monkeypatch):
    interrupted = []

    async def stalled_call(system_prompt, user_prompt, primary="groq"):
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            interrupted.append(True)
            raise
        return "[]"

    monkeypatch.setattr(ai_provider, "hybrid_call", stalled_call)
    capability = ai_provider.ProviderGenerationCapability()

    async def scenario():
        handle = await capability.submit("prompt", "message")
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(poll_for_completion(capability, handle, 0.01, 10**6), 0.05)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert interrupted == [True]
    assert capability._jobs == {}


def test_failed_status_raises_generation_failed(fake_capability, fail, sleeps):
    capability = fake_capability([fail])
    handle = asyncio.run(capability.submit("p", "m"))

    with pytest.raises(AIError) as info:
        asyncio.run(poll_for_completion(capability, handle, 1.0, 3))

    assert info.value.code == ErrorCode.GENERATION_FAILED
    assert capability.cancelled == []


# ── Subject structure checks ─────────────────────────────────────────────────

def _candidate(text):
    return Question(
        id="g",
        text=text,
        answers=[Answer(id="a", text="yes", is_correct=True), Answer(id="b", text="no")],
    )


@pytest.mark.parametrize(
    "subject, text, accepted",
    [
        ("mathematics", "What is $x^2$ when x is 3?", True),
        ("mathematics", "What is 7 × 6?", True),
        ("mathematics", "Who proved Fermat's last theorem?", False),
        ("physics", "A ball falls 20 m. How long does it take?", True),
        ("chemistry", "What is the molar mass of H2O?", True),
        ("biology", "Which organelle holds the genome?", False),
        ("history", "When did the Roman Empire fall?", True),
        (None, "Anything at all?", True),
    ],
)
def test_subject_structure(subject, text, accepted):
    assert validate_generated_question(_candidate(text), subject) is accepted


def test_subject_check_filters_generated_questions(fake_capability, payload, sleeps):
    result = _run(fake_capability([payload(2), payload(2)]), 2, _options(subject="mathematics", max_retries=2))

    # "Which organelle produces ATP in the cell?" has no math expression
    assert not result.success


# ── Streaming ────────────────────────────────────────────────────────────────

def test_stream_emits_progress_then_result(fake_capability, payload, sleeps):
    capability = fake_capability([payload(2), payload(1)])

    async def collect():
        return [json.loads(event) async for event in generate_questions_batch_stream(
            CONTEXT, 3, _options(batch_size=2), capability
        )]

    events = asyncio.run(collect())

    assert [e["type"] for e in events] == ["status", "status", "status", "result"]
    assert [e["progress"] for e in events[:3]] == [0, 50, 100]
    assert events[-1]["data"]["success"] is True
    assert len(events[-1]["data"]["data"]) == 3
    assert "isCorrect" in events[-1]["data"]["data"][0]["answers"][0]
