from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from intipal.answering import LLMAnswerService
from intipal.api.sessions import SessionRegistry, get_session_registry
from intipal.config import Settings
from intipal.errors import INVALID_TYPE_MESSAGE
from intipal.ingest import SUCCESS_MESSAGE
from intipal.llm_provider import MockLLM
from intipal.main import app


@pytest.fixture
def registry() -> Iterator[SessionRegistry]:
    registry = SessionRegistry(Settings(), answer_service=LLMAnswerService(MockLLM()))
    app.dependency_overrides[get_session_registry] = lambda: registry
    try:
        yield registry
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(registry: SessionRegistry) -> TestClient:
    return TestClient(app)


def test_read_root_returns_ok() -> None:
    response = TestClient(app).get("/")
    assert response.status_code == 200
    assert response.text == "ok"


def test_upload_then_ask(client: TestClient, three_page_pdf: bytes) -> None:
    created = client.post("/sessions")
    assert created.status_code == 201
    session_id = created.json()["session_id"]
    assert created.json()["can_send"] is False

    upload = client.post(
        f"/sessions/{session_id}/upload",
        files={"file": ("invoice.pdf", three_page_pdf, "application/pdf")},
    )
    assert upload.status_code == 200
    payload = upload.json()
    assert payload["status"] == "succeeded"
    assert payload["document"]["page_count"] == 3
    assert payload["upload"]["state"] == "idle"
    assert payload["upload"]["progress_percent"] == 0
    assert payload["messages"][-1]["text"] == SUCCESS_MESSAGE.format(name="invoice.pdf")

    draft = client.put(f"/sessions/{session_id}/draft", json={"text": "What is the total?"})
    assert draft.json()["can_send"] is True

    sent = client.post(f"/sessions/{session_id}/send")
    assert sent.status_code == 200
    body = sent.json()
    assert body["send_in_flight"] is False
    assert body["draft_input"] == ""
    assert [message["origin"] for message in body["messages"]] == ["assistant", "user", "assistant"]
    assert body["messages"][1]["text"] == "What is the total?"
    assert body["messages"][2]["text"].startswith("MOCK_ANSWER:")
    sequences = [message["sequence"] for message in body["messages"]]
    assert sequences == sorted(sequences)


def test_non_pdf_upload_is_reported_in_messages(client: TestClient) -> None:
    session_id = client.post("/sessions").json()["session_id"]

    response = client.post(
        f"/sessions/{session_id}/upload",
        files={"file": ("notes.txt", b"remember the milk", "text/plain")},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "rejected"
    assert payload["document"] is None
    assert payload["messages"] == [{"text": INVALID_TYPE_MESSAGE, "origin": "assistant", "sequence": 1}]


def test_upload_forwards_replace_flag(
    client: TestClient,
    registry: SessionRegistry,
    monkeypatch: pytest.MonkeyPatch,
    three_page_pdf: bytes,
) -> None:
    session_id = client.post("/sessions").json()["session_id"]
    controller = registry.get(session_id)
    forwarded = []
    original = controller.upload_file

    async def _recording_upload(descriptor, *, replace=False):
        forwarded.append(replace)
        return await original(descriptor, replace=replace)

    monkeypatch.setattr(controller, "upload_file", _recording_upload)

    plain = client.post(
        f"/sessions/{session_id}/upload",
        files={"file": ("a.pdf", three_page_pdf, "application/pdf")},
    )
    replacing = client.post(
        f"/sessions/{session_id}/upload",
        data={"replace": "true"},
        files={"file": ("b.pdf", three_page_pdf, "application/pdf")},
    )

    assert forwarded == [False, True]
    assert plain.json()["status"] == "succeeded"
    assert replacing.json()["status"] == "succeeded"
    assert replacing.json()["messages"][-1]["text"] == SUCCESS_MESSAGE.format(name="b.pdf")


def test_send_without_document_conflicts(client: TestClient) -> None:
    session_id = client.post("/sessions").json()["session_id"]
    client.put(f"/sessions/{session_id}/draft", json={"text": "Hello?"})

    response = client.post(f"/sessions/{session_id}/send")

    assert response.status_code == 409
    assert client.get(f"/sessions/{session_id}").json()["messages"] == []


def test_unknown_session_is_404(client: TestClient) -> None:
    assert client.get("/sessions/missing").status_code == 404
    assert client.post("/sessions/missing/send").status_code == 404


def test_delete_session(client: TestClient, registry: SessionRegistry) -> None:
    session_id = client.post("/sessions").json()["session_id"]
    assert len(registry) == 1

    response = client.delete(f"/sessions/{session_id}")

    assert response.status_code == 204
    assert len(registry) == 0
    assert client.get(f"/sessions/{session_id}").status_code == 404


def test_model_healthcheck_reports_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("intipal.main.get_llm", lambda: MockLLM())

    response = TestClient(app).get("/healthz/model")

    assert response.status_code == 200
    assert response.json() == {"model_loaded": True, "name": "mock"}
