# app/services/chat_service.py
# Session-scoped 1:1 chat: channels, messages, read markers, typing indicator
#
# Channel rules:
#   - opened from an ACCEPTED session by either party (idempotent)
#   - re-used / (re)timed when the session completes: close_at = end + chat window
#   - force-closed immediately when the session is cancelled
#   - open while closed_at is unset and close_at is unset or still ahead
#
# Typing indicator lives in Redis only: key chat:typing:<channel>:<user>, 5s TTL.

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

import redis
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.db.types import utcnow
from app.models.chat import ChatChannel, ChatMessage, ChatRead
from app.models.session import TutoringSession
from app.models.user import User

logger = logging.getLogger("tutorlink.chat")

TYPING_TTL_SECONDS = 5
MAX_PAGE = 50


def chat_close_at(session_end: datetime) -> datetime:
    return session_end + timedelta(hours=settings.chat_window_hours)


# ── Channels ──────────────────────────────────────────────────────────────────

def _ensure_read_markers(db: Session, channel: ChatChannel) -> None:
    existing = {
        r.user_id
        for r in db.query(ChatRead.user_id).filter(ChatRead.channel_id == channel.id).all()
    }
    for user_id in (channel.student_id, channel.tutor_id):
        if user_id not in existing:
            db.add(ChatRead(channel_id=channel.id, user_id=user_id))


def upsert_channel(
    db: Session,
    session: TutoringSession,
    close_at: Optional[datetime] = None,
) -> ChatChannel:
    """
    Channel for a session, created on first use. When close_at is given it
    replaces the current window. Caller commits.
    """
    channel = db.query(ChatChannel).filter(ChatChannel.session_id == session.id).first()
    if channel is None:
        channel = ChatChannel(
            session_id=session.id,
            student_id=session.student_id,
            tutor_id=session.tutor_id,
            close_at=close_at,
        )
        db.add(channel)
        db.flush()
    elif close_at is not None:
        channel.close_at = close_at
    _ensure_read_markers(db, channel)
    return channel


def open_channel_for_session(db: Session, session_id: UUID, user: User) -> ChatChannel:
    session = db.query(TutoringSession).filter(TutoringSession.id == session_id).first()
    if not session:
        raise NotFoundError("Session not found.")
    if user.id not in (session.student_id, session.tutor_id):
        raise ForbiddenError("You are not part of this session.")
    if session.status != "ACCEPTED" or session.tutor_id is None:
        raise ForbiddenError("Chat opens once the tutor accepts the session.")

    channel = upsert_channel(db, session)
    db.commit()
    return channel


def force_close(db: Session, session_id: UUID, now: Optional[datetime] = None) -> None:
    """Close a session's channel right away (cancellation). Caller commits."""
    now = now or utcnow()
    channel = db.query(ChatChannel).filter(ChatChannel.session_id == session_id).first()
    if channel is None:
        return
    channel.closed_at = now
    if channel.close_at is None or channel.close_at > now:
        channel.close_at = now


def get_member_channel(db: Session, channel_id: UUID, user: User) -> ChatChannel:
    channel = db.query(ChatChannel).filter(ChatChannel.id == channel_id).first()
    if not channel:
        raise NotFoundError("Channel not found.")
    if user.id not in (channel.student_id, channel.tutor_id):
        raise ForbiddenError("You are not part of this chat.")
    return channel


def _unread_filter(user_id: UUID, last_read_at: Optional[datetime]):
    clause = ChatMessage.sender_id != user_id
    if last_read_at is not None:
        clause = and_(clause, ChatMessage.created_at > last_read_at)
    return clause


def list_channels(db: Session, user: User, now: Optional[datetime] = None) -> List[dict]:
    now = now or utcnow()
    channels = (
        db.query(ChatChannel)
        .filter(or_(ChatChannel.student_id == user.id, ChatChannel.tutor_id == user.id))
        .order_by(ChatChannel.created_at.desc())
        .all()
    )

    items = []
    for c in channels:
        last = (
            db.query(ChatMessage)
            .filter(ChatMessage.channel_id == c.id)
            .order_by(ChatMessage.created_at.desc())
            .first()
        )
        marker = (
            db.query(ChatRead)
            .filter(ChatRead.channel_id == c.id, ChatRead.user_id == user.id)
            .first()
        )
        unread = (
            db.query(func.count(ChatMessage.id))
            .filter(
                ChatMessage.channel_id == c.id,
                _unread_filter(user.id, marker.last_read_at if marker else None),
            )
            .scalar()
        )

        session = c.session
        viewer_is_student = c.student_id == user.id
        other = session.tutor if viewer_is_student else session.student
        subject = session.subject
        items.append({
            "id": c.id,
            "session_id": c.session_id,
            "name": (other.name if other and other.name else ("Tutor" if viewer_is_student else "Student")),
            "subject_name": f"{subject.code} {subject.title}" if subject else "Subject",
            "last_message": last.text if last else "No messages yet",
            "last_at": last.created_at if last else c.created_at,
            "unread": unread or 0,
            "viewer_is_student": viewer_is_student,
            "is_open": c.is_open_at(now),
            "close_at": c.close_at,
        })
    return items


# ── Messages ──────────────────────────────────────────────────────────────────

def list_messages(
    db: Session,
    channel: ChatChannel,
    user: User,
    take: int = 30,
    cursor: Optional[UUID] = None,
) -> dict:
    """Newest first; `cursor` is the id of the last message of the previous page."""
    take = min(max(take, 1), MAX_PAGE)
    query = db.query(ChatMessage).filter(ChatMessage.channel_id == channel.id)

    if cursor is not None:
        anchor = (
            db.query(ChatMessage)
            .filter(ChatMessage.id == cursor, ChatMessage.channel_id == channel.id)
            .first()
        )
        if anchor is None:
            raise NotFoundError("Cursor message not found.")
        query = query.filter(
            or_(
                ChatMessage.created_at < anchor.created_at,
                and_(ChatMessage.created_at == anchor.created_at, ChatMessage.id < anchor.id),
            )
        )

    messages = (
        query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(take)
        .all()
    )
    next_cursor = messages[-1].id if len(messages) >= take else None

    reads = {
        r.user_id: r.last_read_at
        for r in db.query(ChatRead).filter(ChatRead.channel_id == channel.id).all()
    }
    other_id = channel.other_party(user.id)
    return {
        "items": messages,
        "next_cursor": next_cursor,
        "read": {
            "me_last_read_at": reads.get(user.id),
            "other_last_read_at": reads.get(other_id),
        },
    }


def _touch_read(db: Session, channel_id: UUID, user_id: UUID, at: datetime) -> None:
    marker = (
        db.query(ChatRead)
        .filter(ChatRead.channel_id == channel_id, ChatRead.user_id == user_id)
        .first()
    )
    if marker is None:
        db.add(ChatRead(channel_id=channel_id, user_id=user_id, last_read_at=at))
    else:
        marker.last_read_at = at


def send_message(
    db: Session,
    channel: ChatChannel,
    user: User,
    text: str,
    now: Optional[datetime] = None,
) -> ChatMessage:
    now = now or utcnow()
    if not channel.is_open_at(now):
        raise ConflictError("This chat is closed.")

    message = ChatMessage(channel_id=channel.id, sender_id=user.id, text=text, created_at=now)
    db.add(message)
    # Sender has read up to (and including) their own message
    _touch_read(db, channel.id, user.id, now)
    db.commit()
    return message


def mark_read(db: Session, channel: ChatChannel, user: User, now: Optional[datetime] = None) -> None:
    _touch_read(db, channel.id, user.id, now or utcnow())
    db.commit()


def unread_total(db: Session, user: User, now: Optional[datetime] = None) -> int:
    """Unread messages from the other party across the user's open channels."""
    now = now or utcnow()
    total = (
        db.query(func.count(ChatMessage.id))
        .join(ChatRead, and_(
            ChatRead.channel_id == ChatMessage.channel_id,
            ChatRead.user_id == user.id,
        ))
        .join(ChatChannel, ChatChannel.id == ChatMessage.channel_id)
        .filter(
            ChatMessage.sender_id != user.id,
            or_(ChatRead.last_read_at.is_(None), ChatMessage.created_at > ChatRead.last_read_at),
            ChatChannel.closed_at.is_(None),
            or_(ChatChannel.close_at.is_(None), ChatChannel.close_at > now),
        )
        .scalar()
    )
    return total or 0


# ── Typing Indicator ──────────────────────────────────────────────────────────

def _typing_key(channel_id: UUID, user_id: UUID) -> str:
    return f"chat:typing:{channel_id}:{user_id}"


def set_typing(r: redis.Redis, channel: ChatChannel, user: User, is_typing: bool) -> None:
    key = _typing_key(channel.id, user.id)
    try:
        if is_typing:
            r.set(key, "1", ex=TYPING_TTL_SECONDS)
        else:
            r.delete(key)
    except redis.RedisError as e:
        logger.warning("Typing indicator update failed for channel %s: %s", channel.id, e)


def is_other_typing(r: redis.Redis, channel: ChatChannel, user: User) -> bool:
    try:
        return bool(r.exists(_typing_key(channel.id, channel.other_party(user.id))))
    except redis.RedisError as e:
        logger.warning("Typing indicator read failed for channel %s: %s", channel.id, e)
        return False
