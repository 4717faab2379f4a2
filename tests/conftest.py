"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient

from seatline.config.settings import Settings
from seatline.main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'seatline.db'}",
        SEED_TABLES="5,12,24",
        RATE_LIMIT_STANDARD=10_000,
        RATE_LIMIT_SEND=10_000,
        HEARTBEAT_INTERVAL_SECONDS=0.05,
        _env_file=None,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Entering the context runs the lifespan, which creates and seeds the schema
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def make_role(client):
    """Create a role and return its id."""

    def _make(table_id="5", seat_id=1, name="Ada", avatar="owl", signals=None, role_id=None):
        body = {"name": name, "avatar": avatar, "tableId": table_id, "seatId": seat_id, "signals": signals or []}
        if role_id:
            body["id"] = role_id
        resp = client.post("/api/v1/roles", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]["id"]

    return _make


@pytest.fixture
def send(client):
    """Send a message and return its id."""

    def _send(from_role_id, to_role_id, text="hello", kind="request", in_reply_to=None):
        body = {"fromRoleId": from_role_id, "toRoleId": to_role_id, "text": text, "kind": kind}
        if in_reply_to:
            body["inReplyTo"] = in_reply_to
        resp = client.post("/api/v1/messages", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]["id"]

    return _send
