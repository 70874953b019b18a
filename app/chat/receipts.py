"""
Read receipts.

Marking a conversation read is a one-way bulk transition on the store; the
counterpart only gets an advisory `messagesRead` event. Unread counts are
always recomputed from the store.
"""
from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool

from app.chat import events
from app.chat.access import load_conversation_for, other_participant
from app.chat.errors import PersistenceError
from app.chat.registry import ConnectionRegistry

log = logging.getLogger("chat.receipts")


def _default_store():
    import core.database

    return core.database


class ReadReceiptTracker:
    def __init__(self, registry: ConnectionRegistry, store=None):
        self.registry = registry
        self._store = store if store is not None else _default_store()

    async def mark_read(self, conversation_id: int, reader_id: int) -> int:
        """Mark the reader's incoming messages read. Returns how many flipped (0 when repeated)."""
        conversation = await load_conversation_for(self._store, conversation_id, reader_id)

        try:
            count = await run_in_threadpool(self._store.mark_messages_read, conversation_id, reader_id)
        except Exception as exc:
            log.error(
                "Failed to mark messages read",
                exc_info=True,
                extra={"conversation_id": conversation_id, "reader_id": reader_id},
            )
            raise PersistenceError("Read receipt could not be saved, please retry") from exc

        if count:
            await self.registry.send(
                other_participant(conversation, reader_id),
                events.messages_read_event(conversation_id, reader_id, count),
            )
        return count

    async def unread_total(self, user_id: int) -> int:
        try:
            return await run_in_threadpool(self._store.count_unread_for_user, user_id)
        except Exception as exc:
            log.error("Failed to count unread messages", exc_info=True, extra={"user_id": user_id})
            raise PersistenceError("Unread count unavailable, please retry") from exc


__all__ = ["ReadReceiptTracker"]
