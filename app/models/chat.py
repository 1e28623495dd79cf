# app/models/chat.py
# 1:1 chat tied to a tutoring session
#
# A channel is opened once the session is ACCEPTED. It stays usable until
# close_at (end of session + chat window) or until closed_at is stamped by a
# cancellation. Rows are kept after closing.

import uuid

from sqlalchemy import Column, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.db.types import UTCDateTime, utcnow


class ChatChannel(Base):
    __tablename__ = "chat_channels"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid,
        ForeignKey("tutoring_sessions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    student_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tutor_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    close_at = Column(UTCDateTime, nullable=True)    # Time-boxed window end
    closed_at = Column(UTCDateTime, nullable=True)   # Forced close (cancellation)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)

    session = relationship("TutoringSession", back_populates="chat_channel")
    messages = relationship(
        "ChatMessage", back_populates="channel", cascade="all, delete-orphan"
    )
    reads = relationship("ChatRead", back_populates="channel", cascade="all, delete-orphan")

    def is_open_at(self, now) -> bool:
        if self.closed_at is not None and self.closed_at <= now:
            return False
        return self.close_at is None or self.close_at > now

    def other_party(self, user_id):
        return self.tutor_id if user_id == self.student_id else self.student_id

    def __repr__(self) -> str:
        return f"<ChatChannel session={self.session_id} close_at={self.close_at}>"


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    channel_id = Column(
        Uuid, ForeignKey("chat_channels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)

    channel = relationship("ChatChannel", back_populates="messages")


class ChatRead(Base):
    """Per-user read marker; unread = messages from the other party after last_read_at."""
    __tablename__ = "chat_reads"
    __table_args__ = (
        UniqueConstraint("channel_id", "user_id", name="uq_chat_read_channel_user"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    channel_id = Column(
        Uuid, ForeignKey("chat_channels.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    last_read_at = Column(UTCDateTime, nullable=True)

    channel = relationship("ChatChannel", back_populates="reads")
