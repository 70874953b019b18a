"""
Conversation store.

A conversation pairs exactly one recruiter with one job seeker, optionally
scoped to a job posting and/or an application. Rows are never deleted, only
deactivated.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from core.db.base import get_conn, utc_now_iso

_CONVERSATION_COLUMNS = (
    "id, recruiter_id, job_seeker_id, job_posting_id, application_id, "
    "last_message_at, is_active, created_at"
)


def _row_to_conversation(row) -> Dict:
    conv = dict(row)
    conv["is_active"] = bool(conv.get("is_active"))
    if "unread_count" in conv:
        conv["unread_count"] = int(conv["unread_count"] or 0)
    return conv


def get_conversation(conversation_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"SELECT {_CONVERSATION_COLUMNS} FROM chat_conversations WHERE id = ?",
        (conversation_id,),
    )
    row = cur.fetchone()
    conn.close()
    return _row_to_conversation(row) if row else None


def find_active_conversation(
    *,
    recruiter_id: int,
    job_seeker_id: int,
    job_posting_id: int | None = None,
) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_CONVERSATION_COLUMNS}
        FROM chat_conversations
        WHERE recruiter_id = ?
          AND job_seeker_id = ?
          AND COALESCE(job_posting_id, 0) = COALESCE(?, 0)
          AND is_active = 1
        ORDER BY id DESC
        LIMIT 1
        """,
        (recruiter_id, job_seeker_id, job_posting_id),
    )
    row = cur.fetchone()
    conn.close()
    return _row_to_conversation(row) if row else None


def create_conversation(
    *,
    recruiter_id: int,
    job_seeker_id: int,
    job_posting_id: int | None = None,
    application_id: int | None = None,
) -> Tuple[Dict, bool]:
    """
    Get-or-create the active conversation for (recruiter, job seeker, job posting).

    Returns (conversation, created). The partial unique index on active rows
    turns a racing duplicate insert into a no-op, after which the winner is read back.
    """
    now = utc_now_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO chat_conversations
          (recruiter_id, job_seeker_id, job_posting_id, application_id, last_message_at, is_active, created_at)
        VALUES (?, ?, ?, ?, ?, 1, ?)
        ON CONFLICT DO NOTHING
        RETURNING {_CONVERSATION_COLUMNS}
        """,
        (recruiter_id, job_seeker_id, job_posting_id, application_id, now, now),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()

    if row:
        return _row_to_conversation(row), True

    existing = find_active_conversation(
        recruiter_id=recruiter_id,
        job_seeker_id=job_seeker_id,
        job_posting_id=job_posting_id,
    )
    if existing is None:
        raise RuntimeError("Conversation insert was skipped but no active conversation exists")
    return existing, False


def list_conversations_for_user(user_id: int) -> List[Dict]:
    """
    Every conversation the user takes part in, most recent activity first,
    with the user's unread count computed from chat_messages.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
          c.id, c.recruiter_id, c.job_seeker_id, c.job_posting_id, c.application_id,
          c.last_message_at, c.is_active, c.created_at,
          (
            SELECT COUNT(*) FROM chat_messages m
            WHERE m.conversation_id = c.id AND m.sender_id <> ? AND m.is_read = 0
          ) AS unread_count
        FROM chat_conversations c
        WHERE c.recruiter_id = ? OR c.job_seeker_id = ?
        ORDER BY COALESCE(c.last_message_at, c.created_at) DESC, c.id DESC
        """,
        (user_id, user_id, user_id),
    )
    rows = cur.fetchall()
    conn.close()
    return [_row_to_conversation(r) for r in rows]


def update_last_message_at(conversation_id: int, timestamp: str) -> bool:
    """
    Move last_message_at forward to `timestamp`; never backward.
    Returns True when the row was advanced.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE chat_conversations
        SET last_message_at = ?
        WHERE id = ? AND (last_message_at IS NULL OR last_message_at < ?)
        """,
        (timestamp, conversation_id, timestamp),
    )
    advanced = cur.rowcount > 0
    conn.commit()
    conn.close()
    return advanced


def deactivate_conversation(conversation_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE chat_conversations SET is_active = 0 WHERE id = ? AND is_active = 1",
        (conversation_id,),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


__all__ = [
    "get_conversation",
    "find_active_conversation",
    "create_conversation",
    "list_conversations_for_user",
    "update_last_message_at",
    "deactivate_conversation",
]
