"""
Wire format for the real-time channel.

Store rows are snake_case dicts; clients speak camelCase JSON. Everything that
leaves the server (WebSocket events and the HTTP fallback alike) goes through
`serialize_message` / `serialize_conversation` so both transports render the
same shapes.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

from app.chat.errors import InvalidEvent

# inbound
SEND_MESSAGE = "sendMessage"
JOIN_CONVERSATION = "joinConversation"
MARK_READ = "markRead"
PING = "ping"

# outbound
NEW_MESSAGE = "newMessage"
MESSAGE_SENT = "messageSent"
MESSAGES_READ = "messagesRead"
CONVERSATION_CLOSED = "conversationClosed"
CONVERSATION_JOINED = "conversationJoined"
READ_ACK = "readAck"
PONG = "pong"
ERROR = "error"

INBOUND_TYPES = (SEND_MESSAGE, JOIN_CONVERSATION, MARK_READ, PING)


def serialize_message(msg: Dict) -> Dict[str, Any]:
    return {
        "id": msg["id"],
        "conversationId": msg["conversation_id"],
        "senderId": msg["sender_id"],
        "message": msg["message"],
        "messageType": msg.get("message_type") or "text",
        "isRead": bool(msg.get("is_read")),
        "createdAt": msg.get("created_at"),
    }


def serialize_conversation(conv: Dict, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    data = {
        "id": conv["id"],
        "recruiterId": conv["recruiter_id"],
        "jobSeekerId": conv["job_seeker_id"],
        "jobPostingId": conv.get("job_posting_id"),
        "applicationId": conv.get("application_id"),
        "lastMessageAt": conv.get("last_message_at"),
        "isActive": bool(conv.get("is_active")),
        "createdAt": conv.get("created_at"),
    }
    if "unread_count" in conv:
        data["unreadCount"] = int(conv["unread_count"] or 0)
    if extra:
        data.update(extra)
    return data


def new_message_event(msg: Dict) -> Dict[str, Any]:
    return {"type": NEW_MESSAGE, "conversationId": msg["conversation_id"], "message": serialize_message(msg)}


def message_sent_event(msg: Dict) -> Dict[str, Any]:
    return {"type": MESSAGE_SENT, "conversationId": msg["conversation_id"], "message": serialize_message(msg)}


def messages_read_event(conversation_id: int, reader_id: int, count: int) -> Dict[str, Any]:
    return {"type": MESSAGES_READ, "conversationId": conversation_id, "readerId": reader_id, "count": count}


def conversation_closed_event(conversation_id: int) -> Dict[str, Any]:
    return {"type": CONVERSATION_CLOSED, "conversationId": conversation_id}


def conversation_joined_event(conversation_id: int, messages: Iterable[Dict]) -> Dict[str, Any]:
    return {
        "type": CONVERSATION_JOINED,
        "conversationId": conversation_id,
        "messages": [serialize_message(m) for m in messages],
    }


def read_ack_event(conversation_id: int, count: int) -> Dict[str, Any]:
    return {"type": READ_ACK, "conversationId": conversation_id, "count": count}


def pong_event() -> Dict[str, Any]:
    return {"type": PONG}


def error_event(code: str, message: str) -> Dict[str, Any]:
    return {"type": ERROR, "code": code, "message": message}


def parse_event(raw: str) -> Dict[str, Any]:
    """Decode one inbound frame; raises InvalidEvent for anything we cannot route."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidEvent("Frame is not valid JSON") from exc

    if not isinstance(data, dict):
        raise InvalidEvent("Frame must be a JSON object")

    event_type = data.get("type")
    if event_type not in INBOUND_TYPES:
        raise InvalidEvent(f"Unknown event type: {event_type!r}")

    if event_type != PING:
        data["conversationId"] = require_conversation_id(data.get("conversationId"))
    return data


def require_conversation_id(value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise InvalidEvent("conversationId must be an integer")
    try:
        conversation_id = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidEvent("conversationId must be an integer") from exc
    if conversation_id <= 0:
        raise InvalidEvent("conversationId must be positive")
    return conversation_id


__all__: List[str] = [
    "SEND_MESSAGE",
    "JOIN_CONVERSATION",
    "MARK_READ",
    "PING",
    "NEW_MESSAGE",
    "MESSAGE_SENT",
    "MESSAGES_READ",
    "CONVERSATION_CLOSED",
    "CONVERSATION_JOINED",
    "READ_ACK",
    "PONG",
    "ERROR",
    "serialize_message",
    "serialize_conversation",
    "new_message_event",
    "message_sent_event",
    "messages_read_event",
    "conversation_closed_event",
    "conversation_joined_event",
    "read_ack_event",
    "pong_event",
    "error_event",
    "parse_event",
    "require_conversation_id",
]
