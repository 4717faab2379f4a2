"""Tests for the live channel broker and the SSE endpoint."""

import asyncio
import json

import httpx
import pytest

from seatline.db.client import init_db
from seatline.events.broker import LiveChannelBroker, SubscriptionClosed
from seatline.events.routes import stream_subscription
from seatline.events.streaming import format_event


def _parse(frame: str) -> tuple[str, dict]:
    lines = dict(line.split(": ", 1) for line in frame.strip().splitlines())
    return lines["event"], json.loads(lines["data"])


async def _next(frames, timeout=1.0):
    return await asyncio.wait_for(frames.__anext__(), timeout)


def test_format_event():
    assert format_event("message", {"id": "m1"}) == 'event: message\ndata: {"id":"m1"}\n\n'


@pytest.mark.asyncio
async def test_subscribe_sends_ready_first():
    broker = LiveChannelBroker(heartbeat_interval=60)
    sub = broker.subscribe("ada")

    event, data = _parse(await _next(sub.frames()))
    assert event == "ready"
    assert data == {"type": "ready", "roleId": "ada", "subscriptionId": sub.id}
    broker.close()


@pytest.mark.asyncio
async def test_publish_reaches_every_channel_of_the_role():
    broker = LiveChannelBroker(heartbeat_interval=60)
    tab1, tab2 = broker.subscribe("ada"), broker.subscribe("ada")
    other = broker.subscribe("bo")

    assert broker.publish("ada", "message", {"id": "m1"}) == 2
    assert broker.publish("nobody", "message", {"id": "m2"}) == 0

    for sub in (tab1, tab2):
        frames = sub.frames()
        await _next(frames)  # ready
        assert _parse(await _next(frames)) == ("message", {"id": "m1"})
    assert other.pending == 1  # only its ready frame
    broker.close()


@pytest.mark.asyncio
async def test_dead_subscriber_is_dropped():
    broker = LiveChannelBroker(heartbeat_interval=60, max_pending=1)
    stuck = broker.subscribe("ada")  # its ready frame fills the queue

    assert broker.publish("ada", "message", {"id": "m1"}) == 0
    assert not stuck.alive
    assert broker.subscriber_count("ada") == 0
    assert not broker.has_role("ada")
    with pytest.raises(SubscriptionClosed):
        stuck.write("x")


@pytest.mark.asyncio
async def test_heartbeat_pings():
    broker = LiveChannelBroker(heartbeat_interval=0.01)
    sub = broker.subscribe("ada")
    frames = sub.frames()
    await _next(frames)

    event, data = _parse(await _next(frames))
    assert event == "ping"
    assert data["type"] == "ping"
    broker.close()


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent_and_ends_frames():
    broker = LiveChannelBroker(heartbeat_interval=60)
    keep, gone = broker.subscribe("ada"), broker.subscribe("ada")

    broker.unsubscribe(gone)
    broker.unsubscribe(gone)
    assert broker.subscriber_count("ada") == 1
    assert [f async for f in gone.frames()] == []

    broker.unsubscribe(keep)
    assert broker.subscriber_count() == 0
    assert not broker.has_role("ada")


@pytest.mark.asyncio
async def test_drop_role_closes_all_of_its_channels():
    broker = LiveChannelBroker(heartbeat_interval=60)
    tab1, tab2 = broker.subscribe("ada"), broker.subscribe("ada")
    other = broker.subscribe("bo")

    assert broker.drop_role("ada") == 2
    assert not tab1.alive and not tab2.alive
    assert not broker.has_role("ada")
    assert other.alive
    assert broker.drop_role("ada") == 0
    broker.close()


@pytest.mark.asyncio
async def test_sign_out_closes_live_channels(app):
    init_db(app.state.engine, app.state.settings.seed_table_ids)
    broker = app.state.broker
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        resp = await http.post("/api/v1/roles", json={"name": "Ada", "avatar": "owl", "tableId": "5", "seatId": 1})
        role_id = resp.json()["data"]["id"]
        sub = broker.subscribe(role_id)

        resp = await http.delete(f"/api/v1/roles/{role_id}")
        assert resp.json()["data"] == {"deleted": True}

    assert not sub.alive
    assert broker.subscriber_count(role_id) == 0
    assert [f async for f in sub.frames()] == []
    broker.close()


class _FakeRequest:
    def __init__(self):
        self.disconnected = False

    async def is_disconnected(self):
        return self.disconnected


@pytest.mark.asyncio
async def test_stream_subscription_relays_and_cleans_up():
    broker = LiveChannelBroker(heartbeat_interval=60)
    sub = broker.subscribe("ada")
    stream = stream_subscription(broker, sub, _FakeRequest())

    assert (await _next(stream)).startswith("retry: ")
    assert _parse(await _next(stream))[0] == "ready"
    broker.publish("ada", "message", {"id": "m1"})
    assert _parse(await _next(stream)) == ("message", {"id": "m1"})

    await stream.aclose()
    assert broker.subscriber_count("ada") == 0
    assert not sub.alive


@pytest.mark.asyncio
async def test_stream_subscription_stops_on_disconnect():
    broker = LiveChannelBroker(heartbeat_interval=60)
    sub = broker.subscribe("ada")
    request = _FakeRequest()
    request.disconnected = True

    frames = [f async for f in stream_subscription(broker, sub, request)]
    assert len(frames) == 1  # only the retry hint
    assert broker.subscriber_count() == 0


def test_events_requires_role_id(client):
    resp = client.get("/api/v1/events")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "MISSING_FIELDS"


def test_events_unknown_role(client):
    resp = client.get("/api/v1/events", params={"roleId": "nobody"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "ROLE_NOT_FOUND"
