"""
Conversation and message storage re-exports.
"""
from core.db.chat.conversations_store import (
    create_conversation,
    deactivate_conversation,
    find_active_conversation,
    get_conversation,
    list_conversations_for_user,
    update_last_message_at,
)
from core.db.chat.messages_store import (
    count_unread_for_user,
    create_message,
    list_messages,
    mark_messages_read,
)

__all__ = [
    "create_conversation",
    "deactivate_conversation",
    "find_active_conversation",
    "get_conversation",
    "list_conversations_for_user",
    "update_last_message_at",
    "count_unread_for_user",
    "create_message",
    "list_messages",
    "mark_messages_read",
]
