from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from predictleague.api.deps import websocket_claims
from predictleague.core.config import get_settings
from predictleague.core.errors import ValidationError
from predictleague.db.session import get_session_factory
from predictleague.schemas.private_leagues import LeagueMessageOut
from predictleague.services.chat import (
    GLOBAL_ROOM,
    ChatRoomRegistry,
    HeldConnection,
    add_league_message,
    chat_message,
    clean_message,
    get_recent_league_messages,
    league_room,
    saved_chat_message,
    system_message,
)
from predictleague.services.private_leagues import is_member

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def get_chat_rooms(websocket: WebSocket) -> ChatRoomRegistry:
    return websocket.app.state.chat_rooms


def _message_text(raw: str) -> str:
    """Accept either plain text or ``{"message": "..."}`` frames."""
    try:
        data = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(data, dict):
        return str(data.get("message") or "")
    return raw


def _check_member(factory: sessionmaker, league_id: int, user_id: int) -> bool:
    with factory() as db:
        return is_member(db, league_id, user_id)


def _load_history(factory: sessionmaker, league_id: int) -> list[dict[str, Any]]:
    with factory() as db:
        messages = get_recent_league_messages(db, league_id, get_settings().CHAT_HISTORY_LIMIT)
    return [message.model_dump(mode="json") for message in messages]


def _persist(factory: sessionmaker, league_id: int, user_id: int, text: str) -> LeagueMessageOut | None:
    with factory() as db:
        if not is_member(db, league_id, user_id):
            return None
        return add_league_message(db, league_id, user_id, text)


@router.websocket("/ws")
async def global_chat(
    websocket: WebSocket,
    rooms: ChatRoomRegistry = Depends(get_chat_rooms),
) -> None:
    claims = websocket_claims(websocket)
    if claims is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    username = claims["sub"]
    await websocket.accept()
    await websocket.send_json(system_message(f"Welcome to the chat, {username}!"))
    await rooms.broadcast(GLOBAL_ROOM, system_message(f"{username} joined the chat"))
    rooms.join(GLOBAL_ROOM, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                text = clean_message(_message_text(raw))
            except ValidationError as exc:
                await websocket.send_json({"type": "error", "detail": exc.code})
                continue
            await rooms.broadcast(
                GLOBAL_ROOM,
                chat_message(claims["id"], username, text),
            )
    except WebSocketDisconnect:
        logger.info("chat_disconnect room=%s user_id=%s", GLOBAL_ROOM, claims["id"])
    finally:
        rooms.leave(GLOBAL_ROOM, websocket)
        await rooms.broadcast(GLOBAL_ROOM, system_message(f"{username} left the chat"))


@router.websocket("/ws/league/{league_id}")
async def league_chat(
    websocket: WebSocket,
    league_id: int,
    rooms: ChatRoomRegistry = Depends(get_chat_rooms),
    factory: sessionmaker = Depends(get_session_factory),
) -> None:
    claims = websocket_claims(websocket)
    if claims is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user_id = int(claims["id"])
    if not await run_in_threadpool(_check_member, factory, league_id, user_id):
        logger.info("chat_refused league_id=%s user_id=%s", league_id, user_id)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    room = league_room(league_id)
    connection = HeldConnection(websocket)
    rooms.join(room, connection)
    try:
        history = await run_in_threadpool(_load_history, factory, league_id)
        await websocket.send_json({"type": "history", "messages": history})
        await connection.release({message["id"] for message in history})
        while True:
            raw = await websocket.receive_text()
            try:
                saved = await run_in_threadpool(
                    _persist, factory, league_id, user_id, _message_text(raw)
                )
            except ValidationError as exc:
                await websocket.send_json({"type": "error", "detail": exc.code})
                continue
            if saved is None:
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
                break
            await rooms.broadcast(room, saved_chat_message(saved))
    except WebSocketDisconnect:
        logger.info("chat_disconnect room=%s user_id=%s", room, user_id)
    finally:
        rooms.leave(room, connection)
