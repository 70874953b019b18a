"""
Real-time chat channel.

One socket per authenticated session, authenticated by the session cookie.
Clients send JSON frames (`sendMessage`, `joinConversation`, `markRead`,
`ping`); the server pushes `newMessage` / `messageSent` / `messagesRead` /
`conversationClosed` through the ConnectionRegistry. A rejected frame gets an
`error` event back and the socket stays open.
"""
import logging
import os

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from app.auth_utils import get_current_user
from app.chat import events
from app.chat.errors import ChatError, InvalidEvent
from app.chat.service import delivery, receipts, registry
from app.routes.chat import allow_chat_send

# -------- CONFIG --------
HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", "200"))
# ------------------------

router = APIRouter()
log = logging.getLogger("chat.ws")


async def dispatch(user: dict, event: dict):
    """Run one parsed inbound event; returns the direct reply for this socket, if any."""
    event_type = event["type"]
    user_id = user["id"]

    if event_type == events.PING:
        return events.pong_event()

    conversation_id = event["conversationId"]

    if event_type == events.SEND_MESSAGE:
        if not allow_chat_send(user_id):
            return events.error_event("rate_limited", "You are sending messages too quickly.")
        # The `messageSent` echo reaches every socket of the sender, this one included.
        await delivery.send_message(
            conversation_id,
            user_id,
            event.get("body"),
            event.get("messageType") or "text",
        )
        return None

    if event_type == events.JOIN_CONVERSATION:
        _, messages = await delivery.history(conversation_id, user_id, limit=HISTORY_LIMIT)
        return events.conversation_joined_event(conversation_id, messages)

    if event_type == events.MARK_READ:
        count = await receipts.mark_read(conversation_id, user_id)
        return events.read_ack_event(conversation_id, count)

    return events.error_event("invalid_event", f"Unhandled event type: {event_type!r}")


def frame_text(message: dict) -> str:
    """Text payload of a received frame; binary frames must hold UTF-8 JSON."""
    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes")
    if data is None:
        raise InvalidEvent("Frame carries no payload")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidEvent("Binary frames must be UTF-8 encoded JSON") from None


async def handle_frame(websocket: WebSocket, user: dict, message: dict) -> None:
    try:
        event = events.parse_event(frame_text(message))
        reply = await dispatch(user, event)
    except ChatError as exc:
        reply = events.error_event(exc.code, str(exc))
    except Exception:
        log.exception("Unhandled error while processing frame", extra={"user_id": user["id"]})
        reply = events.error_event("internal_error", "Something went wrong, please retry.")

    if reply is not None:
        await websocket.send_json(reply)


@router.websocket("/ws")
async def websocket_chat(websocket: WebSocket):
    user, _ = await run_in_threadpool(get_current_user, websocket)
    if not user:
        await websocket.close(code=1008)
        return

    user_id = user["id"]
    await websocket.accept()
    if registry.register(user_id, websocket):
        log.info("User online", extra={"user_id": user_id})

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            await handle_frame(websocket, user, message)
    except WebSocketDisconnect:
        pass
    finally:
        if registry.unregister(user_id, websocket):
            log.info("User offline", extra={"user_id": user_id})
