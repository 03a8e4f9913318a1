"""
File: remindhub/services/ingest_service.py
Project: RemindHub WhatsApp Integration

Purpose:
Apply normalised webhook events to the database.

Responsibilities:
- room_resolved   -> mark the chat with that room_id as resolved
- message_status  -> log only (no per-message status tracking yet)
- message         -> find-or-create chat by phone, append a Message

Rules:
- Events are applied one at a time, in order, each in its own commit,
  so a later event for the same phone sees the chat created by an earlier one
- A failing event is rolled back and logged; the batch continues
- Never deal with HTTP, FastAPI, or responses
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from remindhub.models import Chat, Message, STATUS_RESOLVED
from remindhub.services.channels import normalize_channel
from remindhub.services.chat_service import (
    find_chat_by_phone,
    find_chat_by_room_id,
    normalize_phone,
)
from remindhub.services.normalizer import (
    EVENT_MESSAGE_STATUS,
    EVENT_ROOM_RESOLVED,
    SENDER_AGENT,
    SENDER_CUSTOMER,
    WebhookEvent,
)

logger = logging.getLogger("ingest_service")


def parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable timestamp %r, using now", value)
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _message_text(event: WebhookEvent) -> str:
    if event.message:
        return event.message
    return f"[{event.media_type or 'media'}] {event.media_url}"


class WebhookIngestService:
    def __init__(self, db: Session) -> None:
        self._db = db

    def process_events(self, events: Sequence[WebhookEvent]) -> int:
        """
        Apply events in order. Returns the number of events received,
        not the number persisted.
        """
        for event in events:
            try:
                self._process_event(event)
            except Exception:
                self._db.rollback()
                logger.exception("Failed to process webhook event phone=%s", event.phone)
        return len(events)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------
    def _process_event(self, event: WebhookEvent) -> None:
        if event.event_type == EVENT_ROOM_RESOLVED:
            self._resolve_room(event)
            return

        if event.event_type == EVENT_MESSAGE_STATUS:
            logger.info(
                "Message status: id=%s status=%s recipient=%s",
                event.message_id,
                event.status,
                event.phone,
            )
            return

        if not event.phone or not (event.message or event.media_url):
            logger.info("Skipping event - missing phone or message")
            return

        self._store_message(event)

    def _resolve_room(self, event: WebhookEvent) -> None:
        if not event.room_id:
            logger.info("Room resolved event without room_id, ignored")
            return

        chat = find_chat_by_room_id(self._db, room_id=event.room_id)
        if chat is None:
            logger.info("Room resolved for unknown room_id=%s", event.room_id)
            return

        chat.status = STATUS_RESOLVED
        chat.resolved_at = datetime.now(timezone.utc)
        self._db.commit()
        logger.info("Chat %s resolved (room_id=%s)", chat.id, event.room_id)

    def _store_message(self, event: WebhookEvent) -> None:
        phone = normalize_phone(event.phone)
        if not phone:
            logger.info("Skipping event - phone has no digits: %r", event.phone)
            return

        contact_name = event.name or phone
        sender = SENDER_AGENT if event.sender == SENDER_AGENT else SENDER_CUSTOMER
        timestamp = parse_timestamp(event.timestamp)
        text = _message_text(event)

        chat = find_chat_by_phone(self._db, phone=phone)
        if chat is None:
            chat = Chat(
                contact_name=contact_name,
                contact_phone=phone,
                channel=normalize_channel(event.channel),
                room_id=event.room_id,
                last_message=text,
                last_timestamp=timestamp,
                status="new",
                unread=1 if sender == SENDER_CUSTOMER else 0,
            )
            self._db.add(chat)
            self._db.flush()
            logger.info("Chat created for %s (id=%s)", phone, chat.id)
        else:
            chat.last_message = text
            chat.last_timestamp = timestamp
            if sender == SENDER_CUSTOMER:
                chat.unread = 1
            if contact_name != phone and chat.contact_name != contact_name:
                chat.contact_name = contact_name
            if event.room_id and chat.room_id != event.room_id:
                chat.room_id = event.room_id

        self._db.add(
            Message(
                chat_id=chat.id,
                text=text,
                sender=sender,
                channel=chat.channel,
                created_at=timestamp,
            )
        )
        self._db.commit()


def ingest_events(db: Session, events: Iterable[WebhookEvent]) -> int:
    return WebhookIngestService(db).process_events(list(events))
