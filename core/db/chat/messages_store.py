"""
Chat message store.

Messages are immutable once written except for `is_read`, which only ever
moves from 0 to 1.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn, utc_now_iso

_MESSAGE_COLUMNS = "id, conversation_id, sender_id, message, message_type, is_read, created_at"


def _row_to_message(row) -> Dict:
    msg = dict(row)
    msg["is_read"] = bool(msg.get("is_read"))
    return msg


def create_message(
    *,
    conversation_id: int,
    sender_id: int,
    body: str,
    message_type: str = "text",
) -> Dict:
    """Insert one unread message and return the stored row."""
    conn = get_conn()
    cur = conn.cursor()
    try:
        cur.execute(
            f"""
            INSERT INTO chat_messages (conversation_id, sender_id, message, message_type, is_read, created_at)
            VALUES (?, ?, ?, ?, 0, ?)
            RETURNING {_MESSAGE_COLUMNS}
            """,
            (conversation_id, sender_id, body, message_type, utc_now_iso()),
        )
        row = cur.fetchone()
        conn.commit()
    finally:
        conn.close()
    return _row_to_message(row)


def list_messages(conversation_id: int, limit: Optional[int] = None) -> List[Dict]:
    """
    Messages oldest first. With `limit`, only the newest `limit` rows are
    returned (still oldest first).
    """
    conn = get_conn()
    cur = conn.cursor()
    if limit is None:
        cur.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM chat_messages
            WHERE conversation_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (conversation_id,),
        )
        rows = cur.fetchall()
    else:
        cur.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM chat_messages
            WHERE conversation_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (conversation_id, int(limit)),
        )
        rows = list(reversed(cur.fetchall()))
    conn.close()
    return [_row_to_message(r) for r in rows]


def mark_messages_read(conversation_id: int, reader_id: int) -> int:
    """Flip the reader's incoming unread messages to read; returns how many changed."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE chat_messages
        SET is_read = 1
        WHERE conversation_id = ? AND sender_id <> ? AND is_read = 0
        """,
        (conversation_id, reader_id),
    )
    changed = cur.rowcount or 0
    conn.commit()
    conn.close()
    return int(changed)


def count_unread_for_user(user_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT COUNT(*) AS n
        FROM chat_messages m
        JOIN chat_conversations c ON c.id = m.conversation_id
        WHERE (c.recruiter_id = ? OR c.job_seeker_id = ?)
          AND m.sender_id <> ?
          AND m.is_read = 0
        """,
        (user_id, user_id, user_id),
    )
    row = cur.fetchone()
    conn.close()
    return int(row["n"]) if row else 0


__all__ = [
    "create_message",
    "list_messages",
    "mark_messages_read",
    "count_unread_for_user",
]
