"""
Participant checks shared by delivery and read receipts.
"""
from __future__ import annotations

import logging
from typing import Dict

from starlette.concurrency import run_in_threadpool

from app.chat.errors import ConversationNotFound, NotParticipant, PersistenceError

log = logging.getLogger("chat.access")


def is_participant(conversation: Dict, user_id: int) -> bool:
    return user_id in (conversation["recruiter_id"], conversation["job_seeker_id"])


def other_participant(conversation: Dict, user_id: int) -> int:
    """Whichever of recruiter/job seeker is not `user_id`."""
    if user_id == conversation["recruiter_id"]:
        return conversation["job_seeker_id"]
    if user_id == conversation["job_seeker_id"]:
        return conversation["recruiter_id"]
    raise NotParticipant()


async def load_conversation_for(store, conversation_id: int, user_id: int) -> Dict:
    """
    Fetch a conversation and make sure `user_id` takes part in it.
    Raises ConversationNotFound / NotParticipant before anything is written.
    """
    try:
        conversation = await run_in_threadpool(store.get_conversation, conversation_id)
    except Exception as exc:
        log.error(
            "Conversation lookup failed",
            exc_info=True,
            extra={"conversation_id": conversation_id},
        )
        raise PersistenceError("Conversation could not be loaded") from exc

    if not conversation:
        raise ConversationNotFound(f"Conversation {conversation_id} does not exist")
    if not is_participant(conversation, user_id):
        raise NotParticipant(f"User {user_id} is not part of conversation {conversation_id}")
    return conversation


__all__ = ["is_participant", "other_participant", "load_conversation_for"]
