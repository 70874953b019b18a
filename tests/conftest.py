"""
Shared fixtures.

Chat services are exercised against an in-memory stand-in for the Postgres
store (same function names as core.database) so these tests need no database.
Store SQL is covered separately in tests/db/ when DATABASE_URL is set.
"""
import threading
from datetime import datetime, timedelta

import pytest

from app import security
from app.chat.delivery import DeliveryRouter
from app.chat.receipts import ReadReceiptTracker
from app.chat.registry import ConnectionRegistry


class FakeStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._clock = datetime(2025, 1, 1, 9, 0, 0)
        self.users = {}
        self.conversations = {}
        self.messages = []
        self.fail_writes = False
        self.fail_last_message_update = False

    def _now(self) -> str:
        self._clock += timedelta(microseconds=1)
        return self._clock.isoformat(timespec="microseconds")

    # ---- seeding helpers ----
    def add_user(self, user_id, user_type, display_name=None, active=1):
        self.users[user_id] = {
            "id": user_id,
            "email": f"{str(user_id).lower()}@example.com",
            "user_type": user_type,
            "display_name": display_name,
            "role": "user",
            "active": active,
        }
        return self.users[user_id]

    def add_conversation(self, conversation_id, recruiter_id, job_seeker_id, job_posting_id=None, is_active=True):
        self.conversations[conversation_id] = {
            "id": conversation_id,
            "recruiter_id": recruiter_id,
            "job_seeker_id": job_seeker_id,
            "job_posting_id": job_posting_id,
            "application_id": None,
            "last_message_at": None,
            "is_active": is_active,
            "created_at": self._now(),
        }
        return self.conversations[conversation_id]

    def messages_in(self, conversation_id):
        return [dict(m) for m in self.messages if m["conversation_id"] == conversation_id]

    # ---- core.database surface ----
    def get_conversation(self, conversation_id):
        conv = self.conversations.get(conversation_id)
        return dict(conv) if conv else None

    def get_user_by_id(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    def get_users_by_ids(self, user_ids):
        return {uid: dict(self.users[uid]) for uid in user_ids if uid in self.users}

    def create_message(self, *, conversation_id, sender_id, body, message_type="text"):
        if self.fail_writes:
            raise RuntimeError("database unavailable")
        with self._lock:
            msg = {
                "id": len(self.messages) + 1,
                "conversation_id": conversation_id,
                "sender_id": sender_id,
                "message": body,
                "message_type": message_type,
                "is_read": False,
                "created_at": self._now(),
            }
            self.messages.append(msg)
            return dict(msg)

    def update_last_message_at(self, conversation_id, timestamp):
        if self.fail_last_message_update:
            raise RuntimeError("update failed")
        with self._lock:
            conv = self.conversations[conversation_id]
            if conv["last_message_at"] is None or conv["last_message_at"] < timestamp:
                conv["last_message_at"] = timestamp
                return True
            return False

    def list_messages(self, conversation_id, limit=None):
        rows = sorted(self.messages_in(conversation_id), key=lambda m: (m["created_at"], m["id"]))
        if limit is not None:
            rows = rows[-limit:]
        return rows

    def mark_messages_read(self, conversation_id, reader_id):
        if self.fail_writes:
            raise RuntimeError("database unavailable")
        changed = 0
        with self._lock:
            for msg in self.messages:
                if msg["conversation_id"] == conversation_id and msg["sender_id"] != reader_id and not msg["is_read"]:
                    msg["is_read"] = True
                    changed += 1
        return changed

    def _unread_in(self, conversation_id, user_id):
        return sum(
            1
            for m in self.messages
            if m["conversation_id"] == conversation_id and m["sender_id"] != user_id and not m["is_read"]
        )

    def count_unread_for_user(self, user_id):
        return sum(
            self._unread_in(c["id"], user_id)
            for c in self.conversations.values()
            if user_id in (c["recruiter_id"], c["job_seeker_id"])
        )

    def list_conversations_for_user(self, user_id):
        rows = [
            dict(c, unread_count=self._unread_in(c["id"], user_id))
            for c in self.conversations.values()
            if user_id in (c["recruiter_id"], c["job_seeker_id"])
        ]
        rows.sort(key=lambda c: (c["last_message_at"] or c["created_at"], c["id"]), reverse=True)
        return rows

    def create_conversation(self, *, recruiter_id, job_seeker_id, job_posting_id=None, application_id=None):
        if self.fail_writes:
            raise RuntimeError("database unavailable")
        with self._lock:
            for conv in self.conversations.values():
                if (
                    conv["is_active"]
                    and conv["recruiter_id"] == recruiter_id
                    and conv["job_seeker_id"] == job_seeker_id
                    and conv["job_posting_id"] == job_posting_id
                ):
                    return dict(conv), False
            new_id = max(self.conversations, default=0) + 1
        conv = self.add_conversation(new_id, recruiter_id, job_seeker_id, job_posting_id=job_posting_id)
        conv["application_id"] = application_id
        return dict(conv), True

    def deactivate_conversation(self, conversation_id):
        conv = self.conversations[conversation_id]
        changed = conv["is_active"]
        conv["is_active"] = False
        return changed


class FakeConnection:
    """Stands in for a Starlette WebSocket: records every pushed payload."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, payload):
        if self.fail:
            raise ConnectionResetError("socket gone")
        self.sent.append(payload)

    def of_type(self, event_type):
        return [p for p in self.sent if p.get("type") == event_type]


@pytest.fixture
def store():
    fake = FakeStore()
    fake.add_user("R", "recruiter", display_name="Rita Recruiter")
    fake.add_user("J", "job_seeker", display_name="Jay Seeker")
    fake.add_conversation(1, "R", "J")
    return fake


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def delivery(registry, store):
    return DeliveryRouter(registry, store=store)


@pytest.fixture
def receipts(registry, store):
    return ReadReceiptTracker(registry, store=store)


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    security.reset_rate_limits()
    yield
    security.reset_rate_limits()


SESSIONS = {"tok-R": "R", "tok-J": "J", "tok-X": "X"}
CSRF_TOKEN = "csrf-tok"


@pytest.fixture
def as_user():
    """Session cookie plus double-submit CSRF header for one of the seeded users."""

    def _headers(user_id, csrf=True):
        token = next(t for t, uid in SESSIONS.items() if uid == user_id)
        if not csrf:
            return {"cookie": f"session_id={token}"}
        return {
            "cookie": f"session_id={token}; {security.CSRF_COOKIE_NAME}={CSRF_TOKEN}",
            security.CSRF_HEADER_NAME: CSRF_TOKEN,
        }

    return _headers


@pytest.fixture
def client(monkeypatch, store, registry, delivery, receipts):
    """TestClient over the real app with chat services bound to the in-memory store."""
    from fastapi.testclient import TestClient

    import app.api as api_module
    from app.routes import chat as chat_routes
    from app.routes import ws as ws_routes

    store.add_user("X", "recruiter", display_name="Outsider")

    def fake_current_user(conn):
        token = conn.cookies.get("session_id")
        user_id = SESSIONS.get(token)
        return (store.get_user_by_id(user_id) if user_id else None), token

    for module in (chat_routes, ws_routes):
        monkeypatch.setattr(module, "get_current_user", fake_current_user)
        monkeypatch.setattr(module, "delivery", delivery)
        monkeypatch.setattr(module, "receipts", receipts)
    monkeypatch.setattr(ws_routes, "registry", registry)
    monkeypatch.setattr(api_module, "init_db", lambda: None)

    with TestClient(api_module.app) as test_client:
        yield test_client
