"""
File: remindhub/api/chats.py

Project: RemindHub WhatsApp Integration

Purpose:
Local inbox endpoints (the chats table as populated by the webhook).

Endpoints:
- GET  /chats
- GET  /chats/{chat_id}/messages
- POST /chats/{chat_id}/status
- POST /chats/{chat_id}/assign

Design rules:
- Reads come straight from the DB
- Writes go through services/chat_service.py only
- No provider calls
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from remindhub.db import get_db
from remindhub.models import Chat
from remindhub.services.chat_service import (
    ChatNotFoundError,
    InvalidStatusError,
    assign_pic,
    list_chat_messages,
    list_chats,
    update_chat_status,
)

router = APIRouter(prefix="/chats", tags=["chats"])


def _chat_view(chat: Chat) -> dict:
    return {
        "id": chat.id,
        "room_id": chat.room_id,
        "contact_name": chat.contact_name,
        "contact_phone": chat.contact_phone,
        "channel": chat.channel,
        "status": chat.status,
        "unread": chat.unread,
        "last_message": chat.last_message,
        "last_timestamp": chat.last_timestamp,
        "assigned_pic": chat.assigned_pic,
        "resolved_at": chat.resolved_at,
    }


# -------------------------------------------------------------------
# Chats
# -------------------------------------------------------------------
@router.get("")
def get_chats(
    status: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    return [_chat_view(c) for c in list_chats(db, status=status, limit=limit)]


# -------------------------------------------------------------------
# Messages per chat
# -------------------------------------------------------------------
@router.get("/{chat_id}/messages")
def get_chat_messages(
    chat_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        rows = list_chat_messages(db, chat_id)
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")

    return [
        {
            "id": m.id,
            "text": m.text,
            "sender": m.sender,
            "channel": m.channel,
            "created_at": m.created_at,
        }
        for m in rows
    ]


# -------------------------------------------------------------------
# Lead status / PIC (controlled writes)
# -------------------------------------------------------------------
@router.post("/{chat_id}/status")
def set_chat_status(
    chat_id: UUID,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
):
    try:
        chat = update_chat_status(db, chat_id, status=payload.get("status"))
    except InvalidStatusError:
        raise HTTPException(status_code=400, detail="Invalid status")
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")

    return {"id": chat.id, "status": chat.status}


@router.post("/{chat_id}/assign")
def set_chat_pic(
    chat_id: UUID,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
):
    try:
        chat = assign_pic(db, chat_id, assigned_pic=payload.get("assigned_pic"))
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")

    return {"id": chat.id, "assigned_pic": chat.assigned_pic}
