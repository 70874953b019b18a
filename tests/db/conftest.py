import os

import pytest

_TABLES = [
    "chat_messages",
    "chat_conversations",
    "sessions",
    "users",
]


def _truncate_all():
    from core.db.base import get_conn

    conn = get_conn()
    cur = conn.cursor()
    cur.execute("TRUNCATE " + ", ".join(_TABLES) + " RESTART IDENTITY CASCADE")
    conn.commit()
    conn.close()


@pytest.fixture(autouse=True)
def _clean_db():
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL must be set for Postgres-only tests.")

    from core.db.schema import init_db

    init_db()
    _truncate_all()
    yield
    _truncate_all()


@pytest.fixture
def pair():
    """A recruiter, a job seeker and one conversation between them."""
    from core.database import create_conversation, create_user

    recruiter_id = create_user("rita@example.com", "Passw0rd1", user_type="recruiter", display_name="Rita")
    seeker_id = create_user("jay@example.com", "Passw0rd1", user_type="job_seeker", display_name="Jay")
    conversation, _ = create_conversation(recruiter_id=recruiter_id, job_seeker_id=seeker_id)
    return recruiter_id, seeker_id, conversation["id"]
