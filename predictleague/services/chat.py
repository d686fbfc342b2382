from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket
from sqlalchemy import select
from sqlalchemy.orm import Session

from predictleague.core.errors import ValidationError
from predictleague.models import LeagueMessage, User
from predictleague.schemas.private_leagues import LeagueMessageOut

logger = logging.getLogger(__name__)

GLOBAL_ROOM = "global"
MAX_MESSAGE_LENGTH = 1000


def league_room(league_id: int) -> str:
    return f"league:{league_id}"


class ChatRoomRegistry:
    """Process-local map of room key to the sockets currently joined to it."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[WebSocket]] = {}

    def join(self, room: str, connection: WebSocket) -> None:
        self._rooms.setdefault(room, set()).add(connection)
        logger.info("chat_join room=%s size=%s", room, self.size(room))

    def leave(self, room: str, connection: WebSocket) -> None:
        self._discard(room, connection)
        logger.info("chat_leave room=%s size=%s", room, self.size(room))

    def _discard(self, room: str, connection: WebSocket) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._rooms[room]

    def size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    def rooms(self) -> List[str]:
        return list(self._rooms)

    async def broadcast(
        self,
        room: str,
        payload: Dict[str, Any],
        exclude: Optional[WebSocket] = None,
    ) -> int:
        """Send ``payload`` to every socket in ``room``; returns how many received it.

        A socket whose send fails is dropped from the room.
        """
        targets = [conn for conn in self._rooms.get(room, ()) if conn is not exclude]

        delivered = 0
        failed: List[WebSocket] = []
        for connection in targets:
            try:
                await connection.send_json(payload)
                delivered += 1
            except Exception as exc:
                logger.warning("chat_send_failed room=%s detail=%s", room, exc)
                failed.append(connection)

        for connection in failed:
            self._discard(room, connection)
        return delivered


class HeldConnection:
    """Room member that queues live payloads until its history frame is out.

    Joining before the history snapshot is taken means nothing sent in between
    is lost; ``release`` drops queued messages the snapshot already holds.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._held: List[Dict[str, Any]] = []
        self._live = False

    async def send_json(self, payload: Dict[str, Any]) -> None:
        if self._live:
            await self.websocket.send_json(payload)
        else:
            self._held.append(payload)

    async def release(self, seen_ids: Set[int]) -> None:
        while self._held:
            payload = self._held.pop(0)
            if payload.get("type") == "message" and payload.get("id") in seen_ids:
                continue
            await self.websocket.send_json(payload)
        self._live = True


def system_message(text: str) -> Dict[str, Any]:
    return {
        "type": "system",
        "message": text,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def chat_message(user_id: int, username: str, text: str) -> Dict[str, Any]:
    return {
        "type": "message",
        "user_id": user_id,
        "username": username,
        "message": text,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def saved_chat_message(saved: LeagueMessageOut) -> Dict[str, Any]:
    return {"type": "message", **saved.model_dump(mode="json")}


def clean_message(text: str | None) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError("message_required", "Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError("message_too_long", "Message is too long")
    return text


def add_league_message(db: Session, league_id: int, user_id: int, text: str) -> LeagueMessageOut:
    message = LeagueMessage(private_league_id=league_id, user_id=user_id, message=clean_message(text))
    db.add(message)
    db.commit()
    db.refresh(message)
    username = db.execute(select(User.username).where(User.id == user_id)).scalar_one()
    return LeagueMessageOut(
        id=message.id,
        user_id=user_id,
        username=username,
        message=message.message,
        timestamp=message.created_at,
    )


def get_recent_league_messages(db: Session, league_id: int, limit: int = 20) -> List[LeagueMessageOut]:
    """Latest ``limit`` messages of a league, oldest first."""
    rows = db.execute(
        select(LeagueMessage, User.username)
        .join(User, User.id == LeagueMessage.user_id)
        .where(LeagueMessage.private_league_id == league_id)
        .order_by(LeagueMessage.created_at.desc(), LeagueMessage.id.desc())
        .limit(limit)
    ).all()
    return [
        LeagueMessageOut(
            id=message.id,
            user_id=message.user_id,
            username=username,
            message=message.message,
            timestamp=message.created_at,
        )
        for message, username in reversed(rows)
    ]
