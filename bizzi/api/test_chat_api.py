import pytest
from fastapi.testclient import TestClient

from bizzi.api.app import create_app
from bizzi.conftest import FakeProvider, FakeStore, make_pipeline
from bizzi.intents.registry import build_default_registry
from bizzi.pipeline.cache import ContextCache


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore(
        {
            "ar_aging": [
                {"business_id": "b1", "client": "Birch", "invoice_id": "INV-2", "amount": 800.0, "days": 50},
            ]
        }
    )


@pytest.fixture
def client(fake_store: FakeStore) -> TestClient:
    app = create_app()
    # No lifespan here: the pipeline is injected directly.
    app.state.pipeline = make_pipeline(
        build_default_registry(), fake_store, FakeProvider("Birch owes $800."), ContextCache()
    )
    return TestClient(app)


def test_health(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["pipeline"] is True


def test_chat_pipeline_returns_envelope(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/chat/pipeline",
        json={
            "userId": "ignored",
            "user_id": "u1",
            "business_id": "b1",
            "message": "what's outstanding on receivables over 45 days",
            "route": "/dashboard/accounting",
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["response_text"] == "Birch owes $800."
    assert body["actions"][-1]["kind"] == "cta"
    assert body["actions"][-1]["label"] == "Draft payment reminders"
    assert body["actions"][-1]["threshold_days"] == 45
    assert body["meta"]["intent"] == "invoice_status"
    assert set(body) == {"response_text", "actions", "follow_up_prompt", "meta"}


def test_camel_case_hints_are_accepted(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/chat/pipeline",
        json={"user_id": "u1", "message": "what's this about", "hints": {"threadId": "t1", "accountId": "a1"}},
    )

    assert resp.status_code == 200
    assert resp.json()["meta"]["intent"] == "email_summarize"


def test_forced_intent_via_type_alias(client: TestClient) -> None:
    resp = client.post("/api/v1/chat/pipeline", json={"message": "hello", "type": "tax_deadlines"})

    meta = resp.json()["meta"]
    assert meta["intent"] == "tax_deadlines"
    assert meta["forced"] is True


@pytest.mark.parametrize("message", ["", "   "])
def test_empty_message_is_400(client: TestClient, message: str) -> None:
    resp = client.post("/api/v1/chat/pipeline", json={"user_id": "u1", "message": message})

    assert resp.status_code == 400
    assert resp.json() == {"error": "missing_message"}


def test_list_intents(client: TestClient) -> None:
    resp = client.get("/api/v1/chat/intents")

    assert resp.status_code == 200
    rows = {row["key"]: row for row in resp.json()}
    assert rows["calendar_schedule"]["post_process"] is True
    assert rows["calendar_schedule"]["cache"] is False
    assert rows["invoice_status"]["module"] == "financials"
