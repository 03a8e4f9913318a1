"""
File: remindhub/services/chat_service.py
Project: RemindHub WhatsApp Integration

Purpose:
Shared chat service.

This is the ONLY place allowed to:
- look up a chat by phone, room or id
- change chat status / assigned PIC
- record an agent-sent message against a chat

Used by:
- services/ingest_service.py
- services/proxy_service.py
- services/sync_service.py
- api/chats.py

Design rules:
- Phone numbers are stored digits-only
- No HTTP, no provider calls
- DB is source of truth
"""

import re
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from remindhub.models import Chat, Message, CHAT_STATUSES


class ChatNotFoundError(LookupError):
    pass


class InvalidStatusError(ValueError):
    pass


def normalize_phone(raw) -> str:
    """Strip everything but digits ("+62 811-11" -> "6281111")."""
    return re.sub(r"\D", "", str(raw or ""))


def _as_uuid(chat_id) -> uuid.UUID | None:
    if isinstance(chat_id, uuid.UUID):
        return chat_id
    try:
        return uuid.UUID(str(chat_id))
    except (TypeError, ValueError):
        return None


# -------------------------------------------------
# Queries
# -------------------------------------------------

def find_chat_by_phone(db: Session, *, phone: str) -> Chat | None:
    return db.query(Chat).filter(Chat.contact_phone == phone).one_or_none()


def find_chat_by_room_id(db: Session, *, room_id: str) -> Chat | None:
    return db.query(Chat).filter(Chat.room_id == room_id).first()


def get_chat(db: Session, chat_id) -> Chat | None:
    key = _as_uuid(chat_id)
    if key is None:
        return None
    return db.get(Chat, key)


def list_chats(db: Session, *, status: str | None = None, limit: int = 50) -> list[Chat]:
    query = db.query(Chat)
    if status:
        query = query.filter(Chat.status == status)
    return (
        query.order_by(Chat.last_timestamp.desc().nullslast())
        .limit(limit)
        .all()
    )


def list_chat_messages(db: Session, chat_id) -> list[Message]:
    chat = get_chat(db, chat_id)
    if chat is None:
        raise ChatNotFoundError(str(chat_id))
    return (
        db.query(Message)
        .filter(Message.chat_id == chat.id)
        .order_by(Message.created_at.asc())
        .all()
    )


# -------------------------------------------------
# Commands
# -------------------------------------------------

def update_chat_status(db: Session, chat_id, *, status: str) -> Chat:
    if status not in CHAT_STATUSES:
        raise InvalidStatusError(status)

    chat = get_chat(db, chat_id)
    if chat is None:
        raise ChatNotFoundError(str(chat_id))

    chat.status = status
    db.commit()
    db.refresh(chat)
    return chat


def assign_pic(db: Session, chat_id, *, assigned_pic: str | None) -> Chat:
    chat = get_chat(db, chat_id)
    if chat is None:
        raise ChatNotFoundError(str(chat_id))

    chat.assigned_pic = (assigned_pic or "").strip() or None
    db.commit()
    db.refresh(chat)
    return chat


def record_agent_message(db: Session, chat: Chat, *, text: str) -> Message:
    """
    Mirror an outbound message locally and mark the chat as read.
    """
    now = datetime.now(timezone.utc)
    message = Message(chat_id=chat.id, text=text, sender="agent", created_at=now)
    db.add(message)

    chat.last_message = text
    chat.last_timestamp = now
    chat.unread = 0
    db.commit()
    db.refresh(message)
    return message
