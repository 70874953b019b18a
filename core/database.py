"""
Single import point for storage helpers used by routes and the chat services.
"""
from core.db.base import get_conn, utc_now_iso
from core.db.schema import init_db
from core.db.users import (
    SESSION_TIMEOUT_MINUTES,
    USER_TYPES,
    create_session,
    create_user,
    delete_session,
    get_session,
    get_user_by_email,
    get_user_by_id,
    get_users_by_ids,
    hash_password,
    touch_session,
    verify_password,
)
from core.db.chat import (
    count_unread_for_user,
    create_conversation,
    create_message,
    deactivate_conversation,
    find_active_conversation,
    get_conversation,
    list_conversations_for_user,
    list_messages,
    mark_messages_read,
    update_last_message_at,
)

__all__ = [
    "get_conn",
    "utc_now_iso",
    "init_db",
    "SESSION_TIMEOUT_MINUTES",
    "USER_TYPES",
    "create_session",
    "create_user",
    "delete_session",
    "get_session",
    "get_user_by_email",
    "get_user_by_id",
    "get_users_by_ids",
    "hash_password",
    "touch_session",
    "verify_password",
    "count_unread_for_user",
    "create_conversation",
    "create_message",
    "deactivate_conversation",
    "find_active_conversation",
    "get_conversation",
    "list_conversations_for_user",
    "list_messages",
    "mark_messages_read",
    "update_last_message_at",
]
