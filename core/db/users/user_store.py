"""
User CRUD helpers.

`user_type` decides which side of a conversation a user sits on:
recruiters talk to job seekers and vice versa.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from core.db.base import get_conn
from core.db.users.auth import hash_password

USER_TYPES = ("job_seeker", "recruiter")

_USER_COLUMNS = "id, email, password_hash, role, user_type, display_name, active, created_at"


def create_user(
    email: str,
    raw_password: str,
    role: str = "user",
    user_type: str = "job_seeker",
    display_name: str | None = None,
) -> int:
    if user_type not in USER_TYPES:
        raise ValueError(f"Unknown user_type: {user_type!r}")

    conn = get_conn()
    cur = conn.cursor()
    now = datetime.utcnow().isoformat(timespec="seconds")

    cur.execute(
        """
        INSERT INTO users (email, password_hash, role, user_type, display_name, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            email.strip().lower(),
            hash_password(raw_password),
            role,
            user_type,
            (display_name or "").strip() or None,
            now,
        ),
    )
    row = cur.fetchone()
    user_id = int(row["id"]) if row else 0

    conn.commit()
    conn.close()
    return user_id


def get_user_by_email(email: str) -> Dict | None:
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?",
        (email.strip().lower(),),
    )
    row = cur.fetchone()
    conn.close()

    return dict(row) if row else None


def get_user_by_id(user_id: int) -> Optional[Dict]:
    """Look up a user by numeric id. Returns dict or None."""
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()

    return dict(row) if row else None


def get_users_by_ids(user_ids: Iterable[int]) -> Dict[int, Dict]:
    """Batch lookup used when decorating conversation lists with counterpart names."""
    ids: List[int] = sorted({int(u) for u in user_ids if u is not None})
    if not ids:
        return {}

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT id, email, user_type, display_name FROM users WHERE id = ANY(?)",
        (ids,),
    )
    rows = cur.fetchall()
    conn.close()
    return {int(r["id"]): dict(r) for r in rows}


__all__ = [
    "USER_TYPES",
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "get_users_by_ids",
]
