# app/api/v1/endpoints/notifications.py
# In-app notification bell
#
#   GET    /notifications/               → paginated list (optionally unread only)
#   GET    /notifications/unread-count   → badge count
#   PATCH  /notifications/{id}/read      → mark one read
#   PATCH  /notifications/read-all       → mark all read
#   DELETE /notifications/{id}           → delete one
#   DELETE /notifications/               → clear all

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import and_
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import require_login
from app.core.exceptions import NotFoundError
from app.db.session import get_db
from app.db.types import utcnow
from app.models.notification import Notification
from app.models.user import User
from app.schemas.notification import (
    MessageResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from app.services import notification_service

router = APIRouter()


def _to_response(n: Notification) -> NotificationResponse:
    data = n.extra_data or {}
    return NotificationResponse(
        id=n.id,
        type=n.notification_type,
        title=n.title,
        body=n.body or "",
        viewer=data.get("viewer"),
        href=data.get("href"),
        extra_data=n.extra_data,
        is_read=n.is_read,
        read_at=n.read_at,
        created_at=n.created_at,
    )


def _get_own(db: Session, notification_id: UUID, user: User) -> Notification:
    n = db.query(Notification).filter(
        and_(Notification.id == notification_id, Notification.user_id == user.id)
    ).first()
    if not n:
        raise NotFoundError("Notification not found.")
    return n


def _unread_query(db: Session, user: User):
    return db.query(Notification).filter(
        and_(Notification.user_id == user.id, Notification.is_read == False)  # noqa: E712
    )


@router.get(
    "/",
    response_model=NotificationListResponse,
    summary="List own notifications",
)
def list_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712

    total = query.count()
    unread_count = _unread_query(db, current_user).count()
    notifications = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

    return NotificationListResponse(
        notifications=[_to_response(n) for n in notifications],
        unread_count=unread_count,
        total=total,
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Get unread notification count",
)
def get_unread_count(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return UnreadCountResponse(count=_unread_query(db, current_user).count())


@router.patch(
    "/read-all",
    response_model=MessageResponse,
    summary="Mark all notifications as read",
)
def mark_all_read(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    _unread_query(db, current_user).update(
        {"is_read": True, "read_at": utcnow()}, synchronize_session=False
    )
    db.commit()
    return MessageResponse(message="All notifications marked as read.")


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification as read",
)
def mark_read(
    notification_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    n = _get_own(db, notification_id, current_user)
    notification_service.mark_read(n)
    db.commit()
    return _to_response(n)


@router.delete(
    "/",
    response_model=MessageResponse,
    summary="Delete all own notifications",
)
def clear_all(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    db.query(Notification).filter(Notification.user_id == current_user.id).delete(
        synchronize_session=False
    )
    db.commit()
    return MessageResponse(message="All notifications cleared.")


@router.delete(
    "/{notification_id}",
    response_model=MessageResponse,
    summary="Delete a notification",
)
def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    n = _get_own(db, notification_id, current_user)
    db.delete(n)
    db.commit()
    return MessageResponse(message="Notification deleted.")
