"""Tests for message endpoints: sending, reply linkage and mailbox pagination."""

import pytest

from seatline.db.models import Message, Role
from seatline.messages.service import build_pushes


@pytest.fixture
def pair(make_role):
    ada = make_role(seat_id=1, name="Ada")
    bo = make_role(seat_id=2, name="Bo")
    return ada, bo


def test_send_message(client, pair, send):
    ada, bo = pair
    message_id = send(ada, bo, "  can you review my PR?  ")

    sent = client.get(f"/api/v1/roles/{ada}/messages/sent").json()
    assert sent["status"] == "success"
    assert "nextCursor" not in sent
    [item] = sent["data"]
    assert item["id"] == message_id
    assert item["text"] == "can you review my PR?"
    assert item["kind"] == "request"
    assert item["to"] == {"id": bo, "name": "Bo"}
    assert item["createdAt"].endswith("+00:00")

    [item] = client.get(f"/api/v1/roles/{bo}/messages/received").json()["data"]
    assert item["id"] == message_id
    assert item["from"] == {"id": ada, "name": "Ada"}


def test_missing_fields(client, pair):
    ada, bo = pair
    resp = client.post("/api/v1/messages", json={"fromRoleId": ada, "toRoleId": bo})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "MISSING_FIELDS"

    resp = client.post("/api/v1/messages", json={"fromRoleId": ada, "toRoleId": bo, "text": "   "})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "MISSING_FIELDS"


def test_unknown_kind(client, pair):
    ada, bo = pair
    resp = client.post("/api/v1/messages", json={"fromRoleId": ada, "toRoleId": bo, "text": "x", "kind": "memo"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_INPUT"


def test_unknown_recipient(client, pair):
    ada, _ = pair
    resp = client.post("/api/v1/messages", json={"fromRoleId": ada, "toRoleId": "nobody", "text": "hi"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "ROLE_NOT_FOUND"


def test_reply_to_request(client, pair, send):
    ada, bo = pair
    request_id = send(ada, bo, "help?")
    reply_id = send(bo, ada, "Sure.", kind="response", in_reply_to=request_id)

    [item] = client.get(f"/api/v1/roles/{ada}/messages/received").json()["data"]
    assert item["id"] == reply_id
    assert item["kind"] == "response"
    assert item["inReplyTo"] == request_id


def test_reply_linkage_rules(client, pair, make_role, send):
    ada, bo = pair
    cy = make_role(seat_id=3, name="Cy")
    request_id = send(ada, bo, "help?")

    def post(body):
        return client.post("/api/v1/messages", json=body)

    # A response must name what it answers
    resp = post({"fromRoleId": bo, "toRoleId": ada, "text": "ok", "kind": "response"})
    assert resp.json()["error"]["code"] == "INVALID_REPLY"

    # ...and that message must exist
    resp = post({"fromRoleId": bo, "toRoleId": ada, "text": "ok", "kind": "response", "inReplyTo": "missing"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "MESSAGE_NOT_FOUND"

    # Only the addressee can answer, and only back to the asker
    resp = post({"fromRoleId": cy, "toRoleId": ada, "text": "ok", "kind": "response", "inReplyTo": request_id})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_REPLY"

    # Requests never carry a reply link
    resp = post({"fromRoleId": bo, "toRoleId": ada, "text": "q", "kind": "request", "inReplyTo": request_id})
    assert resp.json()["error"]["code"] == "INVALID_REPLY"

    # Responses cannot be answered
    reply_id = send(bo, ada, "Sure.", kind="response", in_reply_to=request_id)
    resp = post({"fromRoleId": ada, "toRoleId": bo, "text": "thx", "kind": "response", "inReplyTo": reply_id})
    assert resp.json()["error"]["code"] == "INVALID_REPLY"


def _walk(client, url, limit):
    items, cursor, pages = [], None, 0
    while True:
        params = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        body = client.get(url, params=params).json()
        assert len(body["data"]) <= limit
        items.extend(body["data"])
        pages += 1
        cursor = body.get("nextCursor")
        if not cursor:
            return items, pages


@pytest.mark.parametrize("limit", [1, 2, 3, 7, 10])
def test_pagination_is_complete_and_ordered(client, pair, send, limit):
    ada, bo = pair
    sent_ids = [send(ada, bo, f"m{i}") for i in range(7)]

    items, _ = _walk(client, f"/api/v1/roles/{ada}/messages/sent", limit)
    ids = [m["id"] for m in items]
    assert ids == list(reversed(sent_ids))
    keys = [(m["createdAt"], m["id"]) for m in items]
    assert keys == sorted(keys, reverse=True)


@pytest.mark.parametrize("limit", [1, 2, 3])
def test_pagination_breaks_timestamp_ties_by_id(client, db, pair, limit):
    ada, bo = pair
    tied_at = "2026-01-01T00:00:00.000000+00:00"
    rows = [(f"t{i}", tied_at) for i in range(5)]
    rows += [("a-newer", "2026-01-01T00:00:01.000000+00:00"), ("z-older", "2025-12-31T23:59:59.000000+00:00")]
    for message_id, created_at in rows:
        db.add(
            Message(
                id=message_id,
                from_role_id=ada,
                to_role_id=bo,
                text=message_id,
                kind="request",
                created_at=created_at,
            )
        )
    db.commit()

    items, _ = _walk(client, f"/api/v1/roles/{bo}/messages/received", limit)
    ids = [m["id"] for m in items]
    assert ids == ["a-newer", "t4", "t3", "t2", "t1", "t0", "z-older"]


def test_limit_is_clamped(client, pair, send):
    ada, bo = pair
    for i in range(3):
        send(ada, bo, f"m{i}")

    body = client.get(f"/api/v1/roles/{bo}/messages/received", params={"limit": 0}).json()
    assert len(body["data"]) == 1
    assert body["nextCursor"]

    body = client.get(f"/api/v1/roles/{bo}/messages/received", params={"limit": 1000}).json()
    assert len(body["data"]) == 3
    assert "nextCursor" not in body


def test_invalid_cursor(client, pair):
    ada, _ = pair
    resp = client.get(f"/api/v1/roles/{ada}/messages/sent", params={"cursor": "!!!"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_CURSOR"


def test_empty_mailbox_for_unknown_role(client):
    body = client.get("/api/v1/roles/nobody/messages/received").json()
    assert body["data"] == []
    assert "nextCursor" not in body


def _message(from_role_id, to_role_id):
    return Message(
        id="m1",
        from_role_id=from_role_id,
        to_role_id=to_role_id,
        text="hi",
        kind="request",
        in_reply_to=None,
        created_at="2026-01-01T00:00:00.000000+00:00",
    )


def test_build_pushes_both_directions():
    sender = Role(id="ada", name="Ada", avatar="owl", table_id="5", seat_id=1)
    pushes = build_pushes(_message("ada", "bo"), sender)

    assert set(pushes) == {"ada", "bo"}
    assert pushes["bo"].dir == "in"
    assert pushes["ada"].dir == "out"
    payload = pushes["bo"].model_dump(mode="json", by_alias=True)
    assert payload["fromRoleName"] == "Ada"
    assert payload["fromTableId"] == "5"
    assert payload["fromSeatId"] == 1
    assert payload["toRoleId"] == "bo"


def test_build_pushes_self_message_once():
    sender = Role(id="ada", name="Ada", avatar="owl", table_id="5", seat_id=1)
    pushes = build_pushes(_message("ada", "ada"), sender)
    assert list(pushes) == ["ada"]
    assert pushes["ada"].dir == "in"
