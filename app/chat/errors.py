"""
Chat error types.

Each error carries the HTTP status the JSON routes answer with and a stable
`code` that the WebSocket channel puts into its `error` events.
"""
from __future__ import annotations


class ChatError(Exception):
    status_code = 400
    code = "chat_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict:
        return {"error": self.code, "message": str(self)}


class ConversationNotFound(ChatError):
    status_code = 404
    code = "conversation_not_found"


class NotParticipant(ChatError):
    status_code = 403
    code = "not_participant"


class ConversationClosed(ChatError):
    status_code = 409
    code = "conversation_closed"


class InvalidMessage(ChatError):
    status_code = 400
    code = "invalid_message"


class InvalidConversation(ChatError):
    status_code = 400
    code = "invalid_conversation"


class InvalidEvent(ChatError):
    status_code = 400
    code = "invalid_event"


class PersistenceError(ChatError):
    """The store write failed; the caller may retry."""

    status_code = 503
    code = "persistence_error"
    retryable = True


__all__ = [
    "ChatError",
    "ConversationNotFound",
    "NotParticipant",
    "ConversationClosed",
    "InvalidMessage",
    "InvalidConversation",
    "InvalidEvent",
    "PersistenceError",
]
