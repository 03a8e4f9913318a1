"""
File: remindhub/models.py

Project: RemindHub WhatsApp Integration

Purpose:
SQLAlchemy ORM models for the chat inbox: chats, their messages, and the
key/value settings table that holds provider credentials.

Design principles:
- contact_phone (digits only) is the natural key of a chat
- room_id is the provider's key, backfilled once known
- Messages are append-only
- No business logic in models
"""


import uuid
from sqlalchemy import (
    Column,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

from remindhub.services.channels import CANONICAL_CHANNELS

Base = declarative_base()

LEAD_STATUSES = (
    "new",
    "not_followed_up",
    "followed_up",
    "in_progress",
    "picked_up",
    "sign_contract",
    "completed",
    "lost",
    "cancelled",
)

# Written by the room-resolved webhook only
STATUS_RESOLVED = "resolved"

CHAT_STATUSES = LEAD_STATUSES + (STATUS_RESOLVED,)

MESSAGE_SENDERS = ("agent", "customer")


def _in_list(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ---------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------
class Chat(Base):
    __tablename__ = "chats"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    room_id = Column(Text, nullable=True, index=True)
    contact_name = Column(Text, nullable=False)
    contact_phone = Column(Text, nullable=False, unique=True)
    channel = Column(Text, nullable=False, default="whatsapp", server_default="whatsapp")
    status = Column(Text, nullable=False, default="new", server_default="new")
    unread = Column(Integer, nullable=False, default=0, server_default="0")
    last_message = Column(Text, nullable=True)
    last_timestamp = Column(DateTime(timezone=True), nullable=True)
    assigned_pic = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(_in_list("channel", CANONICAL_CHANNELS), name="ck_chats_channel"),
        CheckConstraint(_in_list("status", CHAT_STATUSES), name="ck_chats_status"),
    )

    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# ---------------------------------------------------------------------
# Message (append-only)
# ---------------------------------------------------------------------
class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    chat_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(Text, nullable=False)
    sender = Column(Text, nullable=False)
    channel = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(_in_list("sender", MESSAGE_SENDERS), name="ck_messages_sender"),
    )

    chat = relationship("Chat", back_populates="messages")


# ---------------------------------------------------------------------
# App Setting (key/value, provider credentials)
# ---------------------------------------------------------------------
class AppSetting(Base):
    __tablename__ = "app_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    key = Column(Text, nullable=False, unique=True)
    value = Column(Text, nullable=True)
    updated_by = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
