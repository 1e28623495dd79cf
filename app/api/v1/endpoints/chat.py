# app/api/v1/endpoints/chat.py
# Session chat endpoints (one channel per accepted session)
#
#   POST /chat/sessions/{session_id}/channel   → open / fetch the session's channel
#   GET  /chat/channels                        → inbox with unread counts
#   GET  /chat/channels/{id}/messages          → cursor-paginated, newest first
#   POST /chat/channels/{id}/messages          → send (only while open)
#   POST /chat/channels/{id}/read              → mark everything read
#   GET  /chat/unread-total                    → badge count across open channels
#   GET  /chat/channels/{id}/typing            → is the other party typing?
#   POST /chat/channels/{id}/typing            → set / clear own typing flag

from typing import Optional
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import get_redis, require_login
from app.db.session import get_db
from app.models.user import User
from app.schemas.chat import (
    ChannelListItem,
    ChannelListResponse,
    ChannelResponse,
    ChatMessageResponse,
    MessageCreate,
    MessagePage,
    MessageResponse,
    ReadReceipts,
    TypingResponse,
    TypingUpdate,
    UnreadTotalResponse,
)
from app.services import chat_service

router = APIRouter()


# ── Channels ──────────────────────────────────────────────────────────────────

@router.post(
    "/sessions/{session_id}/channel",
    response_model=ChannelResponse,
    summary="Open the chat channel for an accepted session",
)
def channel_from_session(
    session_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    channel = chat_service.open_channel_for_session(db, session_id, current_user)
    return ChannelResponse.model_validate(channel)


@router.get(
    "/channels",
    response_model=ChannelListResponse,
    summary="List own chat channels",
)
def list_channels(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    items = chat_service.list_channels(db, current_user)
    return ChannelListResponse(channels=[ChannelListItem(**i) for i in items])


@router.get(
    "/unread-total",
    response_model=UnreadTotalResponse,
    summary="Unread messages across open channels",
)
def unread_total(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return UnreadTotalResponse(unread=chat_service.unread_total(db, current_user))


# ── Messages ──────────────────────────────────────────────────────────────────

@router.get(
    "/channels/{channel_id}/messages",
    response_model=MessagePage,
    summary="Page through a channel's messages",
)
def list_messages(
    channel_id: UUID,
    take: int = Query(30, ge=1, le=chat_service.MAX_PAGE),
    cursor: Optional[UUID] = Query(None),
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    channel = chat_service.get_member_channel(db, channel_id, current_user)
    page = chat_service.list_messages(db, channel, current_user, take=take, cursor=cursor)
    return MessagePage(
        items=[ChatMessageResponse.model_validate(m) for m in page["items"]],
        next_cursor=page["next_cursor"],
        read=ReadReceipts(**page["read"]),
    )


@router.post(
    "/channels/{channel_id}/messages",
    response_model=ChatMessageResponse,
    status_code=201,
    summary="Send a message",
)
def send_message(
    channel_id: UUID,
    payload: MessageCreate,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
    r: redis.Redis = Depends(get_redis),
):
    channel = chat_service.get_member_channel(db, channel_id, current_user)
    message = chat_service.send_message(db, channel, current_user, payload.text)
    # Sending ends the sender's typing state
    chat_service.set_typing(r, channel, current_user, False)
    return ChatMessageResponse.model_validate(message)


@router.post(
    "/channels/{channel_id}/read",
    response_model=MessageResponse,
    summary="Mark a channel as read",
)
def mark_read(
    channel_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    channel = chat_service.get_member_channel(db, channel_id, current_user)
    chat_service.mark_read(db, channel, current_user)
    return MessageResponse(message="Channel marked as read.")


# ── Typing Indicator ──────────────────────────────────────────────────────────

@router.get(
    "/channels/{channel_id}/typing",
    response_model=TypingResponse,
    summary="Is the other party typing?",
)
def get_typing(
    channel_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
    r: redis.Redis = Depends(get_redis),
):
    channel = chat_service.get_member_channel(db, channel_id, current_user)
    return TypingResponse(other_typing=chat_service.is_other_typing(r, channel, current_user))


@router.post(
    "/channels/{channel_id}/typing",
    response_model=MessageResponse,
    summary="Set or clear own typing flag",
)
def set_typing(
    channel_id: UUID,
    payload: TypingUpdate,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
    r: redis.Redis = Depends(get_redis),
):
    channel = chat_service.get_member_channel(db, channel_id, current_user)
    chat_service.set_typing(r, channel, current_user, payload.is_typing)
    return MessageResponse(message="ok")
