"""
Delivery router: the one path by which a chat message becomes durable and,
best effort, visible in real time.

Order of work for every send:
  validate -> persist (durability point) -> advance last_message_at
  -> push `newMessage` to the counterpart -> echo `messageSent` to the sender.

Only the persist step can fail the send. Everything after it is logged and
swallowed; an offline recipient simply picks the message up on the next poll.
"""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Dict, Hashable, List, Optional

from dotenv import load_dotenv
from starlette.concurrency import run_in_threadpool

from app.chat import events
from app.chat.access import load_conversation_for, other_participant
from app.chat.errors import (
    ConversationClosed,
    InvalidConversation,
    InvalidMessage,
    PersistenceError,
)
from app.chat.registry import ConnectionRegistry

load_dotenv(override=True)

# -------- CONFIG --------
MAX_MESSAGE_LENGTH = int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", "5000"))
MESSAGE_TYPES = ("text", "file", "system")
# ------------------------

log = logging.getLogger("chat.delivery")


class _KeyedLocks:
    """asyncio locks created on demand per key and dropped once nobody holds or waits."""

    def __init__(self):
        self._entries: Dict[Hashable, List] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


def _default_store():
    import core.database

    return core.database


def validate_body(body, message_type: str = "text") -> str:
    if message_type not in MESSAGE_TYPES:
        raise InvalidMessage(f"Unsupported message type: {message_type!r}")
    if not isinstance(body, str):
        raise InvalidMessage("Message body must be text")
    if not body.strip():
        raise InvalidMessage("Message body is empty")
    if len(body) > MAX_MESSAGE_LENGTH:
        raise InvalidMessage(f"Message body exceeds {MAX_MESSAGE_LENGTH} characters")
    return body


class DeliveryRouter:
    def __init__(self, registry: ConnectionRegistry, store=None):
        self.registry = registry
        self._store = store if store is not None else _default_store()
        self._send_locks = _KeyedLocks()

    async def send_message(
        self,
        conversation_id: int,
        sender_id: int,
        body: str,
        message_type: str = "text",
    ) -> Dict:
        body = validate_body(body, message_type)

        # Taken before the first await so one sender's messages reach the store in call order.
        async with self._send_locks.hold((conversation_id, sender_id)):
            conversation = await load_conversation_for(self._store, conversation_id, sender_id)
            if not conversation["is_active"]:
                raise ConversationClosed(f"Conversation {conversation_id} is closed")

            try:
                message = await run_in_threadpool(
                    self._store.create_message,
                    conversation_id=conversation_id,
                    sender_id=sender_id,
                    body=body,
                    message_type=message_type,
                )
            except Exception as exc:
                log.error(
                    "Failed to persist message",
                    exc_info=True,
                    extra={"conversation_id": conversation_id, "sender_id": sender_id},
                )
                raise PersistenceError("Message could not be saved, please retry") from exc

        try:
            await run_in_threadpool(
                self._store.update_last_message_at, conversation_id, message["created_at"]
            )
        except Exception:
            log.warning(
                "Could not advance last_message_at",
                exc_info=True,
                extra={"conversation_id": conversation_id, "message_id": message["id"]},
            )

        recipient_id = other_participant(conversation, sender_id)
        delivered = await self.registry.send(recipient_id, events.new_message_event(message))
        if not delivered:
            log.info(
                "Recipient offline, message left for polling",
                extra={"conversation_id": conversation_id, "recipient_id": recipient_id},
            )
        await self.registry.send(sender_id, events.message_sent_event(message))
        return message

    async def history(self, conversation_id: int, user_id: int, limit: Optional[int] = None):
        """Participant-only message listing, oldest first. Returns (conversation, messages)."""
        conversation = await load_conversation_for(self._store, conversation_id, user_id)
        try:
            messages = await run_in_threadpool(self._store.list_messages, conversation_id, limit)
        except Exception as exc:
            log.error("Failed to list messages", exc_info=True, extra={"conversation_id": conversation_id})
            raise PersistenceError("Messages could not be loaded, please retry") from exc
        return conversation, messages

    async def list_conversations(self, user_id: int) -> List[Dict]:
        """
        The user's conversations (newest activity first) with unread counts,
        the counterpart's profile and whether the counterpart is online.
        """
        try:
            conversations = await run_in_threadpool(self._store.list_conversations_for_user, user_id)
            counterpart_ids = [other_participant(c, user_id) for c in conversations]
            users = await run_in_threadpool(self._store.get_users_by_ids, counterpart_ids)
        except Exception as exc:
            log.error("Failed to list conversations", exc_info=True, extra={"user_id": user_id})
            raise PersistenceError("Conversations could not be loaded, please retry") from exc

        listing = []
        for conv, counterpart_id in zip(conversations, counterpart_ids):
            counterpart = users.get(counterpart_id) or {}
            listing.append(
                dict(
                    conv,
                    counterpart_id=counterpart_id,
                    counterpart_name=counterpart.get("display_name") or counterpart.get("email"),
                    counterpart_online=self.registry.is_online(counterpart_id),
                )
            )
        return listing

    async def start_conversation(
        self,
        initiator: Dict,
        other_user_id: int,
        job_posting_id: Optional[int] = None,
        application_id: Optional[int] = None,
    ):
        """
        Open (or reuse) the active conversation between `initiator` and another user.
        The initiator's user_type decides which side each of them is on.
        Returns (conversation, created).
        """
        if other_user_id == initiator["id"]:
            raise InvalidConversation("Cannot start a conversation with yourself")

        try:
            other = await run_in_threadpool(self._store.get_user_by_id, other_user_id)
        except Exception as exc:
            log.error("User lookup failed", exc_info=True, extra={"user_id": other_user_id})
            raise PersistenceError("Participant could not be loaded") from exc

        if not other or not other.get("active", 1):
            raise InvalidConversation(f"User {other_user_id} does not exist")

        initiator_type = initiator.get("user_type")
        if initiator_type == other.get("user_type"):
            raise InvalidConversation("Conversations pair a recruiter with a job seeker")
        if initiator_type == "recruiter":
            recruiter_id, job_seeker_id = initiator["id"], other["id"]
        elif initiator_type == "job_seeker":
            recruiter_id, job_seeker_id = other["id"], initiator["id"]
        else:
            raise InvalidConversation(f"Unknown user type: {initiator_type!r}")

        try:
            conversation, created = await run_in_threadpool(
                self._store.create_conversation,
                recruiter_id=recruiter_id,
                job_seeker_id=job_seeker_id,
                job_posting_id=job_posting_id,
                application_id=application_id,
            )
        except Exception as exc:
            log.error(
                "Failed to create conversation",
                exc_info=True,
                extra={"recruiter_id": recruiter_id, "job_seeker_id": job_seeker_id},
            )
            raise PersistenceError("Conversation could not be saved, please retry") from exc

        if created:
            log.info(
                "Conversation started",
                extra={"conversation_id": conversation["id"], "initiator_id": initiator["id"]},
            )
        return conversation, created

    async def deactivate_conversation(self, conversation_id: int, user_id: int) -> Dict:
        conversation = await load_conversation_for(self._store, conversation_id, user_id)
        if conversation["is_active"]:
            try:
                await run_in_threadpool(self._store.deactivate_conversation, conversation_id)
            except Exception as exc:
                log.error(
                    "Failed to deactivate conversation",
                    exc_info=True,
                    extra={"conversation_id": conversation_id},
                )
                raise PersistenceError("Conversation could not be closed, please retry") from exc
            await self.registry.send(
                other_participant(conversation, user_id),
                events.conversation_closed_event(conversation_id),
            )
        return dict(conversation, is_active=False)


__all__ = ["DeliveryRouter", "MAX_MESSAGE_LENGTH", "MESSAGE_TYPES", "validate_body"]
