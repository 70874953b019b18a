"""
Helpers for session cookies and current-user lookup.

`get_current_user` accepts any Starlette connection, so the WebSocket
endpoint authenticates with the same cookie as the JSON routes.
"""
from __future__ import annotations

import os

from fastapi.responses import Response
from starlette.requests import HTTPConnection

from core.database import delete_session, get_session, get_user_by_id, touch_session

SESSION_COOKIE_NAME = "session_id"
SESSION_COOKIE_MAX_AGE = 1800  # 30 minutes
SECURE_COOKIES = (
    os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes")
    or os.getenv("PUBLIC_BASE_URL", "").lower().startswith("https://")
)


def get_current_user(conn: HTTPConnection):
    """
    Read session cookie and return (user_dict, session_token) or (None, None).
    Refreshes inactivity timeout when the session is valid.
    """
    token = conn.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None, None

    session = get_session(token)
    if not session:
        return None, token

    user = get_user_by_id(session["user_id"])
    if not user:
        delete_session(token)
        return None, token

    # Deactivated accounts lose their sessions
    if not user.get("active", 1):
        delete_session(token)
        return None, token

    touch_session(token)
    return user, token


def public_user(user: dict) -> dict:
    """User fields safe to hand to clients."""
    return {
        "id": user["id"],
        "email": user.get("email"),
        "userType": user.get("user_type"),
        "displayName": user.get("display_name"),
        "role": user.get("role"),
    }


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=SESSION_COOKIE_MAX_AGE,
        samesite="lax",
        secure=SECURE_COOKIES,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)
