"""
HTTP fallback for clients without a live socket.

Every write goes through the same DeliveryRouter / ReadReceiptTracker as the
WebSocket channel, so both transports leave identical rows behind. Chat errors
raised here are turned into JSON by the handler registered in app.api.
State-changing POSTs echo the CSRF cookie in the `X-CSRF-Token` header.
"""
import os
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from app.auth_utils import get_current_user
from app.chat.events import serialize_conversation, serialize_message
from app.chat.service import delivery, receipts
from app.security import allow_request, validate_csrf_header

# -------- CONFIG --------
CHAT_RATE_LIMIT = int(os.getenv("CHAT_RATE_LIMIT", "30"))
CHAT_RATE_WINDOW_SECONDS = int(os.getenv("CHAT_RATE_WINDOW_SECONDS", "60"))
# ------------------------

router = APIRouter(prefix="/api/chat")


class StartConversationBody(BaseModel):
    participantId: int
    jobPostingId: Optional[int] = None
    applicationId: Optional[int] = None


class SendMessageBody(BaseModel):
    message: str
    messageType: Optional[str] = None


def _unauthorized() -> JSONResponse:
    return JSONResponse({"error": "not_authenticated", "message": "Login required."}, status_code=401)


def _csrf_failed() -> JSONResponse:
    return JSONResponse({"error": "csrf", "message": "Invalid or missing CSRF token."}, status_code=403)


def _rate_limited() -> JSONResponse:
    return JSONResponse(
        {"error": "rate_limited", "message": "You are sending messages too quickly."},
        status_code=429,
    )


async def _current_user(request: Request):
    user, _ = await run_in_threadpool(get_current_user, request)
    return user


def allow_chat_send(user_id: int) -> bool:
    return allow_request(f"chat:{user_id}", limit=CHAT_RATE_LIMIT, window_seconds=CHAT_RATE_WINDOW_SECONDS)


def _listing_item(conv: dict) -> dict:
    return serialize_conversation(
        conv,
        extra={
            "counterpartId": conv.get("counterpart_id"),
            "counterpartName": conv.get("counterpart_name"),
            "counterpartOnline": bool(conv.get("counterpart_online")),
        },
    )


@router.get("/conversations")
async def list_conversations(request: Request):
    user = await _current_user(request)
    if not user:
        return _unauthorized()
    conversations = await delivery.list_conversations(user["id"])
    return [_listing_item(c) for c in conversations]


@router.post("/conversations")
async def start_conversation(request: Request, body: StartConversationBody):
    user = await _current_user(request)
    if not user:
        return _unauthorized()
    if not validate_csrf_header(request):
        return _csrf_failed()
    conversation, created = await delivery.start_conversation(
        user,
        body.participantId,
        job_posting_id=body.jobPostingId,
        application_id=body.applicationId,
    )
    return JSONResponse(serialize_conversation(conversation), status_code=201 if created else 200)


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(request: Request, conversation_id: int, limit: Optional[int] = None):
    user = await _current_user(request)
    if not user:
        return _unauthorized()
    if limit is not None and limit <= 0:
        limit = None
    _, messages = await delivery.history(conversation_id, user["id"], limit=limit)
    return [serialize_message(m) for m in messages]


@router.post("/conversations/{conversation_id}/messages")
async def send_message(request: Request, conversation_id: int, body: SendMessageBody):
    user = await _current_user(request)
    if not user:
        return _unauthorized()
    if not validate_csrf_header(request):
        return _csrf_failed()
    if not allow_chat_send(user["id"]):
        return _rate_limited()
    message = await delivery.send_message(conversation_id, user["id"], body.message, body.messageType or "text")
    return JSONResponse(serialize_message(message), status_code=201)


@router.post("/conversations/{conversation_id}/read")
async def mark_read(request: Request, conversation_id: int):
    user = await _current_user(request)
    if not user:
        return _unauthorized()
    if not validate_csrf_header(request):
        return _csrf_failed()
    count = await receipts.mark_read(conversation_id, user["id"])
    return {"conversationId": conversation_id, "markedRead": count}


@router.post("/conversations/{conversation_id}/deactivate")
async def deactivate_conversation(request: Request, conversation_id: int):
    user = await _current_user(request)
    if not user:
        return _unauthorized()
    if not validate_csrf_header(request):
        return _csrf_failed()
    conversation = await delivery.deactivate_conversation(conversation_id, user["id"])
    return serialize_conversation(conversation)


@router.get("/unread-count")
async def unread_count(request: Request):
    user = await _current_user(request)
    if not user:
        return _unauthorized()
    return {"total": await receipts.unread_total(user["id"])}
