import asyncio

import pytest
from fastapi.websockets import WebSocketDisconnect
from sqlalchemy import func, select

from predictleague.api import chat as chat_api
from predictleague.core.errors import ValidationError
from predictleague.models import LeagueMessage
from predictleague.services import private_leagues as league_service
from predictleague.services.chat import (
    ChatRoomRegistry,
    HeldConnection,
    add_league_message,
    chat_message,
    clean_message,
    get_recent_league_messages,
    league_room,
    saved_chat_message,
)


class FakeConnection:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_json(self, payload):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


def test_registry_broadcast_drops_failing_connections():
    rooms = ChatRoomRegistry()
    healthy = FakeConnection()
    broken = FakeConnection(fail=True)
    rooms.join("global", healthy)
    rooms.join("global", broken)

    delivered = asyncio.run(rooms.broadcast("global", {"type": "message", "message": "hi"}))

    assert delivered == 1
    assert healthy.sent == [{"type": "message", "message": "hi"}]
    assert rooms.size("global") == 1


def test_registry_excludes_sender_and_isolates_rooms():
    rooms = ChatRoomRegistry()
    sender = FakeConnection()
    peer = FakeConnection()
    elsewhere = FakeConnection()
    rooms.join(league_room(1), sender)
    rooms.join(league_room(1), peer)
    rooms.join(league_room(2), elsewhere)

    asyncio.run(rooms.broadcast(league_room(1), {"n": 1}, exclude=sender))

    assert sender.sent == []
    assert peer.sent == [{"n": 1}]
    assert elsewhere.sent == []


def test_registry_discards_empty_rooms():
    rooms = ChatRoomRegistry()
    conn = FakeConnection()
    rooms.join("league:9", conn)
    rooms.leave("league:9", conn)
    rooms.leave("league:9", conn)
    assert rooms.rooms() == []


def test_clean_message():
    assert clean_message("  hello ") == "hello"
    with pytest.raises(ValidationError):
        clean_message("   ")
    with pytest.raises(ValidationError):
        clean_message("x" * 1001)


def test_recent_messages_oldest_first(db, make_user):
    owner = make_user("owner")
    league = league_service.create_private_league(db, name="Office", creator_id=owner.id)
    for index in range(25):
        add_league_message(db, league.id, owner.id, f"m{index}")

    recent = get_recent_league_messages(db, league.id, 20)
    assert [m.message for m in recent] == [f"m{index}" for index in range(5, 25)]


def test_league_socket_refuses_non_members(client, db, make_user, auth_headers):
    owner = make_user("owner")
    outsider = make_user("outsider")
    league = league_service.create_private_league(db, name="Office", creator_id=owner.id)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/league/{league.id}", headers=auth_headers(outsider)):
            pass
    assert exc.value.code == 1008


def test_league_socket_requires_token(client, db, make_user):
    owner = make_user("owner")
    league = league_service.create_private_league(db, name="Office", creator_id=owner.id)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/league/{league.id}"):
            pass
    assert exc.value.code == 1008


def test_league_socket_history_then_live(client, db, make_user, auth_headers):
    owner = make_user("owner")
    guest = make_user("guest")
    league = league_service.create_private_league(db, name="Office", creator_id=owner.id)
    league_service.add_member(db, league.id, guest.id)
    add_league_message(db, league.id, owner.id, "first")
    add_league_message(db, league.id, guest.id, "second")

    token = auth_headers(guest)["Authorization"].split(" ", 1)[1]
    with client.websocket_connect(f"/ws/league/{league.id}?token={token}") as ws:
        history = ws.receive_json()
        assert history["type"] == "history"
        assert [m["message"] for m in history["messages"]] == ["first", "second"]

        ws.send_text('{"message": "live one"}')
        live = ws.receive_json()
        assert live["type"] == "message"
        assert live["message"] == "live one"
        assert live["username"] == "guest"

        ws.send_text("   ")
        assert ws.receive_json() == {"type": "error", "detail": "message_required"}

    count = db.execute(
        select(func.count(LeagueMessage.id)).where(LeagueMessage.private_league_id == league.id)
    ).scalar_one()
    assert count == 3


def test_league_socket_fans_out_to_room(client, db, make_user, auth_headers):
    owner = make_user("owner")
    guest = make_user("guest")
    league = league_service.create_private_league(db, name="Office", creator_id=owner.id)
    league_service.add_member(db, league.id, guest.id)

    url = f"/ws/league/{league.id}"
    with client.websocket_connect(url, headers=auth_headers(owner)) as first:
        first.receive_json()
        with client.websocket_connect(url, headers=auth_headers(guest)) as second:
            second.receive_json()
            second.send_text("hello room")
            assert second.receive_json()["message"] == "hello room"
            assert first.receive_json()["message"] == "hello room"


def test_global_socket_welcome_and_echo(client, make_user, auth_headers):
    fan = make_user("fan")
    with client.websocket_connect("/ws", headers=auth_headers(fan)) as ws:
        welcome = ws.receive_json()
        assert welcome["type"] == "system"
        assert "fan" in welcome["message"]

        ws.send_text("hi all")
        echoed = ws.receive_json()
        assert echoed["type"] == "message"
        assert echoed["message"] == "hi all"
        assert echoed["username"] == "fan"


def test_chat_message_payload():
    payload = chat_message(1, "fan", "hi all")
    assert payload["type"] == "message"
    assert payload["user_id"] == 1
    assert payload["username"] == "fan"
    assert payload["message"] == "hi all"
    assert "timestamp" in payload


def test_held_connection_skips_messages_already_in_history():
    rooms = ChatRoomRegistry()
    socket = FakeConnection()
    held = HeldConnection(socket)
    rooms.join(league_room(1), held)

    asyncio.run(rooms.broadcast(league_room(1), {"type": "message", "id": 7, "message": "m1"}))
    asyncio.run(rooms.broadcast(league_room(1), {"type": "message", "id": 8, "message": "m2"}))
    assert socket.sent == []

    asyncio.run(held.release({7}))
    asyncio.run(rooms.broadcast(league_room(1), {"type": "message", "id": 9, "message": "m3"}))

    assert [payload["message"] for payload in socket.sent] == ["m2", "m3"]


def test_league_socket_joins_room_before_history(client, db, make_user, auth_headers, monkeypatch):
    owner = make_user("owner")
    guest = make_user("guest")
    league = league_service.create_private_league(db, name="Office", creator_id=owner.id)
    league_service.add_member(db, league.id, guest.id)

    rooms = client.app.state.chat_rooms
    room = league_room(league.id)
    original = chat_api._load_history

    def load_then_race(factory, league_id):
        history = original(factory, league_id)
        saved = add_league_message(db, league_id, owner.id, "sent during join")
        asyncio.run(rooms.broadcast(room, saved_chat_message(saved)))
        return history

    monkeypatch.setattr(chat_api, "_load_history", load_then_race)

    with client.websocket_connect(f"/ws/league/{league.id}", headers=auth_headers(guest)) as ws:
        assert ws.receive_json() == {"type": "history", "messages": []}
        live = ws.receive_json()
        assert live["type"] == "message"
        assert live["message"] == "sent during join"
