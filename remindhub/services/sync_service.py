"""
File: remindhub/services/sync_service.py
Project: RemindHub WhatsApp Integration

Purpose:
Pull the current rooms page from Qontak and upsert local chats by contact phone.

Used when chats were started outside this system (or before the webhook
was configured) so the inbox and room_id links catch up.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from remindhub.models import Chat
from remindhub.qontak.client import QontakClient
from remindhub.services.channels import normalize_channel
from remindhub.services.chat_service import find_chat_by_phone
from remindhub.services.proxy_service import ProxyError, call_provider, data_list, require_token
from remindhub.services.ingest_service import parse_timestamp

logger = logging.getLogger("sync_service")

SYNC_PAGE_LIMIT = 50

_PHONE_LIKE = re.compile(r"^[0-9+]+$")


def _unique_id(room: dict) -> str:
    unique_id = str(room.get("account_uniq_id") or "")
    # Only strip if it looks like a phone number
    if _PHONE_LIKE.match(unique_id):
        unique_id = re.sub(r"\D", "", unique_id)
    return unique_id


def sync_rooms(db: Session, client: QontakClient) -> Dict[str, Any]:
    token = require_token(db)
    resp = call_provider("sync_rooms", client.list_rooms, token=token, page=1, limit=SYNC_PAGE_LIMIT)

    if not resp.ok:
        raise ProxyError(resp.status_code, {"error": "Failed to fetch rooms", "details": resp.data})

    rooms = data_list(resp.data)
    synced = 0
    skipped = 0

    for room in rooms:
        unique_id = _unique_id(room)
        if not unique_id:
            skipped += 1
            continue

        try:
            chat = find_chat_by_phone(db, phone=unique_id)
            if chat is None:
                chat = Chat(contact_phone=unique_id)
                db.add(chat)

            chat.room_id = str(room.get("id")) if room.get("id") is not None else chat.room_id
            chat.contact_name = room.get("name") or room.get("account_uniq_id") or "Unknown"
            chat.channel = normalize_channel(room.get("channel"))
            last = room.get("last_message_at") or room.get("last_message_timestamp")
            chat.last_timestamp = parse_timestamp(last) if last else datetime.now(timezone.utc)
            chat.status = "completed" if room.get("status") == "resolved" else "new"
            chat.unread = room.get("unread_count") or 0
            chat.assigned_pic = (room.get("agent") or {}).get("full_name") or None
            db.commit()
            synced += 1
        except Exception:
            db.rollback()
            logger.exception("Error syncing room %s", room.get("id"))

    logger.info("Room sync: synced=%d skipped=%d total=%d", synced, skipped, len(rooms))

    return {
        "success": True,
        "synced": synced,
        "total_fetched": len(rooms),
        "skipped": skipped,
    }
