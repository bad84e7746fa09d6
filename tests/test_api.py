import json

import pytest
from fastapi.testclient import TestClient

from quizforge.api.deps import get_generation_capability, get_notifier, get_persistence, get_registry
from quizforge.core.errors import ErrorCode
from quizforge.main import app, status_for
from quizforge.services.batch_processing import HISTORY_TABLE, QUESTIONS_TABLE
from quizforge.services.persistence import InMemoryPersistence

FAST = {
    "batch_size": 5,
    "max_retries": 2,
    "delay_between_batches": 0,
    "retry_delay": 0,
    "poll_interval": 0,
}

MATH_QUESTION = {
    "id": "m1",
    "text": "What is 2^3?",
    "answers": [
        {"id": "a", "text": "8", "isCorrect": True},
        {"id": "b", "text": "6", "isCorrect": False},
    ],
}


@pytest.fixture
def store():
    return InMemoryPersistence()


@pytest.fixture
def client(store, notifier):
    app.dependency_overrides[get_persistence] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def use_capability():
    def install(capability):
        app.dependency_overrides[get_generation_capability] = lambda: capability
        return capability
    return install


def test_health_check(client):
    r = client.get("/")

    assert r.status_code == 200
    assert r.json()["status"] == "operational"


# ── Validation & auto-fix ────────────────────────────────────────────────────

def test_validate_endpoint(client):
    r = client.post("/api/v1/questions/validate", json={
        "questions": [MATH_QUESTION],
        "subject": "mathematics",
        "auto_fix": True,
    })

    assert r.status_code == 200
    body = r.json()
    result = body["results"][0]
    assert result["is_valid"] is True
    assert "math-latex" in [w["id"] for w in result["warnings"]]
    assert body["summary"]["total_questions"] == 1
    assert body["summary"]["category_summary"]["content"] >= 1
    suggestion = body["auto_fix_suggestions"][0]
    assert suggestion["id"] == "math-latex"
    assert "apply" not in suggestion


def test_autofix_endpoints(client):
    r = client.post("/api/v1/questions/autofix/suggestions", json={
        "question": MATH_QUESTION, "subject": "mathematics",
    })
    assert [s["id"] for s in r.json()] == ["math-exponents", "math-latex"]

    r = client.post("/api/v1/questions/autofix/apply", json={
        "question": MATH_QUESTION, "subject": "mathematics", "fix_id": "math-exponents",
    })
    assert r.json()["text"] == "What is $2^{3}$?"
    assert r.json()["answers"][0]["isCorrect"] is True

    r = client.post("/api/v1/questions/autofix/apply-all", json={
        "question": {**MATH_QUESTION, "text": "3^2 is nine  "}, "subject": "mathematics",
    })
    assert r.json()["text"] == "$3^{2}$ is nine?"


def test_malformed_request_is_422(client):
    r = client.post("/api/v1/questions/validate", json={"questions": [{"text": "no id"}]})

    assert r.status_code == 422


# ── Import ───────────────────────────────────────────────────────────────────

def test_import_endpoint(client, store):
    bad = {**MATH_QUESTION, "id": "bad", "answers": MATH_QUESTION["answers"][:1]}

    r = client.post("/api/v1/questions/import", json={
        "questions": [MATH_QUESTION, bad],
        "options": {"delay_between_batches": 0},
    })

    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert body["succeeded"] == 1
    assert [res["success"] for res in body["results"]] == [True, False]
    assert store.count(QUESTIONS_TABLE) == 1
    assert store.count(HISTORY_TABLE) == 1


# ── Generation ───────────────────────────────────────────────────────────────

def test_generation_batch(client, store, use_capability, fake_capability, payload):
    capability = use_capability(fake_capability([payload(5), payload(2)]))

    r = client.post("/api/v1/generation/batch", json={
        "context": "Cells are the basic unit of life.",
        "count": 7,
        "options": FAST,
        "persist": True,
    })

    assert r.status_code == 200
    body = r.json()
    assert body["result"]["success"] is True
    assert len(body["result"]["data"]) == 7
    assert body["persisted"] == 7
    assert store.count(QUESTIONS_TABLE) == 7
    assert len(capability.submissions) == 2


def test_generation_failure_is_reported_in_body(client, use_capability, fake_capability, fail):
    use_capability(fake_capability([fail, fail]))

    r = client.post("/api/v1/generation/batch", json={
        "context": "Cells are the basic unit of life.",
        "count": 3,
        "options": FAST,
        "persist": True,
    })

    body = r.json()
    assert r.status_code == 200
    assert body["result"]["success"] is False
    assert body["result"]["retry_count"] == 2
    assert body["result"]["data"] == []
    assert body["persisted"] is None


def test_generation_rejects_short_context(client):
    r = client.post("/api/v1/generation/batch", json={"context": "too short", "count": 3})

    assert r.status_code == 422


def test_generation_stream(client, use_capability, fake_capability, payload):
    use_capability(fake_capability([payload(2)]))

    r = client.post("/api/v1/generation/batch/stream", json={
        "context": "Cells are the basic unit of life.",
        "count": 2,
        "options": FAST,
    })

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    events = [line[len("data: "):] for line in r.text.splitlines() if line.startswith("data: ")]
    assert events[-1] == "[DONE]"
    result = json.loads(events[-2])
    assert result["type"] == "result"
    assert result["data"]["success"] is True


# ── Materials ────────────────────────────────────────────────────────────────

def test_material_upload(client):
    text = "Mitochondria produce ATP. Ribosomes build proteins."

    r = client.post("/api/v1/materials/upload", files={"file": ("notes.txt", text.encode(), "text/plain")})

    assert r.status_code == 200
    body = r.json()
    assert body["text"] == text
    assert body["chunks"] == [text]
    assert body["characters"] == len(text)


def test_material_upload_rejects_unsupported_type(client):
    r = client.post("/api/v1/materials/upload", files={"file": ("slides.pptx", b"data", "application/octet-stream")})

    assert r.status_code == 422
    body = r.json()
    assert body["status"] == "error"
    assert body["code"] == "INVALID_INPUT"
    assert body["context"] == {"file_name": "slides.pptx"}


# ── Error envelope ───────────────────────────────────────────────────────────

def test_unhandled_errors_use_envelope():
    def broken_registry():
        raise RuntimeError("registry unavailable")

    app.dependency_overrides[get_registry] = broken_registry
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            r = test_client.post("/api/v1/questions/validate", json={"questions": []})
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 500
    assert r.json()["code"] == "UNEXPECTED"
    assert r.json()["detail"] == "registry unavailable"


@pytest.mark.parametrize(
    "code, status",
    [
        (ErrorCode.INVALID_INPUT, 422),
        (ErrorCode.UNAUTHORIZED, 401),
        (ErrorCode.FORBIDDEN, 403),
        (ErrorCode.NOT_FOUND, 404),
        (ErrorCode.DUPLICATE, 409),
        (ErrorCode.RATE_LIMIT, 429),
        (ErrorCode.TIMEOUT, 504),
        (ErrorCode.NETWORK_ERROR, 502),
        (ErrorCode.GENERATION_FAILED, 500),
    ],
)
def test_error_code_status_mapping(code, status):
    assert status_for(code) == status
