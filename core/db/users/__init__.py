"""
User-related storage helpers, split by responsibility.
"""
from core.db.users.auth import hash_password, verify_password
from core.db.users.user_store import (
    USER_TYPES,
    create_user,
    get_user_by_email,
    get_user_by_id,
    get_users_by_ids,
)
from core.db.users.sessions import (
    create_session,
    delete_session,
    get_session,
    touch_session,
    SESSION_TIMEOUT_MINUTES,
)

__all__ = [
    "hash_password",
    "verify_password",
    "USER_TYPES",
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "get_users_by_ids",
    "create_session",
    "delete_session",
    "get_session",
    "touch_session",
    "SESSION_TIMEOUT_MINUTES",
]
