import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationType(str, Enum):
    CALL = "call"
    TEXT = "text"


class SenderType(str, Enum):
    AGENT = "agent"
    CUSTOMER = "customer"
    OPERATOR = "operator"


class Status(str, Enum):
    ACTIVE = "active"
    BLOCKED_NEEDS_HUMAN = "blocked_needs_human"
    BOOKED = "booked"
    SPAM = "spam"
    CLOSED = "closed"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "Status":
        """Map a raw status string onto the closed set, falling back to OTHER."""
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class Base(DeclarativeBase):
    pass


class Conversation(Base):
    __tablename__ = "conversations"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    phone: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    type: Mapped[str] = mapped_column(String(8))  # "call" | "text"
    job_type: Mapped[str] = mapped_column(String(128), default="unknown")
    urgency: Mapped[int] = mapped_column(Integer, default=0)
    current_status: Mapped[str] = mapped_column(String(32), index=True)
    current_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation", order_by="Message.timestamp"
    )

    def __repr__(self):
        return f"<Conversation {self.phone} - {self.current_status}>"


class Message(Base):
    __tablename__ = "messages"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    conversation_id: Mapped[str] = mapped_column(ForeignKey("conversations.id"), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    sender_type: Mapped[str] = mapped_column(String(16))  # "agent" | "customer" | "operator"
    content: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32))
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    operator_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    conversation: Mapped[Conversation] = relationship(back_populates="messages")
    actions: Mapped[list["MessageAction"]] = relationship(back_populates="message")


class MessageAction(Base):
    __tablename__ = "message_actions"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    message_id: Mapped[str] = mapped_column(ForeignKey("messages.id"), index=True)
    action_type: Mapped[str] = mapped_column(String(128))
    result: Mapped[str] = mapped_column(Text)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    message: Mapped[Message] = relationship(back_populates="actions")
