from app.chat.delivery import DeliveryRouter
from app.chat.errors import (
    ChatError,
    ConversationClosed,
    ConversationNotFound,
    InvalidConversation,
    InvalidEvent,
    InvalidMessage,
    NotParticipant,
    PersistenceError,
)
from app.chat.receipts import ReadReceiptTracker
from app.chat.registry import ConnectionRegistry

__all__ = [
    "ChatError",
    "ConnectionRegistry",
    "ConversationClosed",
    "ConversationNotFound",
    "DeliveryRouter",
    "InvalidConversation",
    "InvalidEvent",
    "InvalidMessage",
    "NotParticipant",
    "PersistenceError",
    "ReadReceiptTracker",
]
