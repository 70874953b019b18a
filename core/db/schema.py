"""
Schema and migration helpers for Postgres.
"""
from __future__ import annotations

from core.db.base import get_conn


def init_db() -> None:
    """Create the users, sessions, chat_conversations and chat_messages tables if they don't exist."""
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users(
            id SERIAL PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            user_type TEXT NOT NULL DEFAULT 'job_seeker',
            display_name TEXT,
            active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS sessions(
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            last_seen_at TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS chat_conversations(
            id SERIAL PRIMARY KEY,
            recruiter_id INTEGER NOT NULL,
            job_seeker_id INTEGER NOT NULL,
            job_posting_id INTEGER,
            application_id INTEGER,
            last_message_at TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            FOREIGN KEY(recruiter_id) REFERENCES users(id),
            FOREIGN KEY(job_seeker_id) REFERENCES users(id)
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS chat_messages(
            id SERIAL PRIMARY KEY,
            conversation_id INTEGER NOT NULL,
            sender_id INTEGER NOT NULL,
            message TEXT NOT NULL,
            message_type TEXT NOT NULL DEFAULT 'text',
            is_read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            FOREIGN KEY(conversation_id) REFERENCES chat_conversations(id),
            FOREIGN KEY(sender_id) REFERENCES users(id)
        )
        """
    )

    cur.execute(
        "CREATE INDEX IF NOT EXISTS chat_conversations_recruiter_idx ON chat_conversations(recruiter_id)"
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS chat_conversations_job_seeker_idx ON chat_conversations(job_seeker_id)"
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS chat_messages_conversation_idx ON chat_messages(conversation_id, created_at, id)"
    )
    # One active thread per (recruiter, job seeker, job posting); NULL posting counts as its own slot.
    cur.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS chat_conversations_active_triple_idx
        ON chat_conversations (recruiter_id, job_seeker_id, COALESCE(job_posting_id, 0))
        WHERE is_active = 1
        """
    )

    conn.commit()
    conn.close()


__all__ = [
    "init_db",
]
