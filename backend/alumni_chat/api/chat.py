"""Chat endpoints: conversations, message history and sending.

Sending a message stores it first and only then pushes it through the
fan-out gateway. A failed push never fails the request; clients that
missed it see the message on their next fetch.
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from uuid import UUID
import redis

from alumni_chat.database import get_db
from alumni_chat.schemas.chat import (
    CreateConversationRequest,
    SendMessageRequest,
    StatusResponse,
    MessageOut,
)
from alumni_chat.models.user import User
from alumni_chat.middleware.auth import get_current_user
from alumni_chat.middleware.logging import get_logger
from alumni_chat.services.conversations import ConversationStore
from alumni_chat.services.messages import MessageStore
from alumni_chat.services.gateway import FanoutGateway, get_gateway
from alumni_chat.services.rate_limiter import RateLimiter
from alumni_chat.services.errors import ChatError
from alumni_chat.config import get_settings

router = APIRouter(prefix="/api/chat")
settings = get_settings()
logger = get_logger()

redis_client = redis.from_url(settings.redis_url)
rate_limiter = RateLimiter(redis_client, prefix="rate_limit:messages")


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


def _http_error(error: ChatError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=str(error))


@router.post("/conversations")
async def open_conversation(
    body: CreateConversationRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Open the conversation with ``recipient_id``, creating it on first contact."""
    try:
        conversation = ConversationStore(db).get_or_create(user.id, body.recipient_id)
    except ChatError as e:
        logger.warning(
            "conversation_open_rejected",
            user_id=str(user.id),
            recipient_id=str(body.recipient_id),
            reason=type(e).__name__
        )
        raise _http_error(e)

    return {"success": True, "data": conversation}


@router.get("/conversations")
async def list_conversations(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Conversations of the current user that have messages, newest first."""
    conversations = ConversationStore(db).list_for_user(user.id)
    return {"success": True, "data": conversations}


@router.get("/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        conversation = ConversationStore(db).get(conversation_id, user.id)
    except ChatError as e:
        raise _http_error(e)

    return {"success": True, "data": conversation}


@router.delete("/conversations/{conversation_id}", response_model=StatusResponse)
async def deactivate_conversation(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Hide a conversation from conversation lists until it is used again."""
    try:
        ConversationStore(db).deactivate(conversation_id, user.id)
    except ChatError as e:
        raise _http_error(e)

    return StatusResponse(message="Conversation deactivated")


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Full message history of a conversation, oldest first."""
    try:
        messages = ConversationStore(db).list_messages(conversation_id, user.id)
    except ChatError as e:
        raise _http_error(e)

    return {"success": True, "data": messages}


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: FanoutGateway = Depends(get_gateway),
    limiter: RateLimiter = Depends(get_rate_limiter)
):
    """
    Send a message and push it to connected participants.

    Returns the stored message (real id, sequence and timestamp) so the
    client can replace its optimistic copy without another request.
    """
    user_id = str(user.id)
    limit = settings.message_rate_limit
    window = settings.message_rate_window

    try:
        allowed, count = limiter.check_rate_limit(user_id, limit=limit, window=window)
    except redis.RedisError as e:
        # Sending must keep working while Redis is unavailable
        logger.warning("rate_limit_unavailable", user_id=user_id, error=str(e))
        allowed, count = True, 0

    if not allowed:
        logger.warning("message_rate_limit_exceeded", user_id=user_id, count=count)
        raise HTTPException(
            status_code=429,
            detail=f"Too many messages. Limit: {limit} per {window} seconds",
            headers={"X-RateLimit-Limit": str(limit), "X-RateLimit-Remaining": "0"}
        )

    try:
        message = MessageStore(db).append(conversation_id, user.id, body.text)
    except ChatError as e:
        raise _http_error(e)

    await _fan_out(gateway, db, message, user)

    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(max(0, limit - count))
    return {"success": True, "data": message}


async def _fan_out(gateway: FanoutGateway, db: Session, message: MessageOut, user: User) -> None:
    """Push a stored message and the refreshed conversation; never raises."""
    try:
        delivered = await gateway.broadcast_new_message(message)
        conversation = ConversationStore(db).get(message.conversation_id, user.id)
        updated = await gateway.broadcast_conversation_update(conversation)
    except Exception as e:
        logger.error(
            "fanout_failed",
            message_id=str(message.id),
            conversation_id=str(message.conversation_id),
            error=str(e),
            error_type=type(e).__name__
        )
        return

    logger.info(
        "fanout_completed",
        message_id=str(message.id),
        conversation_id=str(message.conversation_id),
        message_deliveries=delivered,
        conversation_updates=updated
    )
