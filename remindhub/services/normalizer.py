"""
File: remindhub/services/normalizer.py
Project: RemindHub WhatsApp Integration

Purpose:
Turn any inbound webhook body into a list of canonical WebhookEvent records.

Recognised shapes, in evaluation order (first match wins):
  1. qontak_message    room_id + room + sender_type          -> 1 event
  2. broadcast_status  contact_phone_number + messages_broadcast_id -> 0 events
  3. direct_event      phone + message                        -> 1 event
  4. event_array       [ {phone, message}, ... ]              -> n events
  5. waba              entry[].changes[].value.messages[]     -> n events
  6. wrapped_events    {events: [...]}                        -> n events
  7. room_resolved     service_name=room, event_name=resolved -> 1 system event
  8. message_status    {statuses: [...]}                      -> n system events
  9. qontak_data       data.from or data.messages[]           -> n events

The order is a contract: a body can satisfy more than one predicate
(e.g. a Qontak interaction that also carries phone/message).

Rules:
- No database, no HTTP
- Unknown shapes return []
- Never raises
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from remindhub.services.channels import normalize_channel
from remindhub.services.extractors import extract_qontak_content, extract_waba_content

logger = logging.getLogger("normalizer")

EVENT_MESSAGE = "message"
EVENT_ROOM_RESOLVED = "room_resolved"
EVENT_MESSAGE_STATUS = "message_status"

SENDER_AGENT = "agent"
SENDER_CUSTOMER = "customer"
SENDER_SYSTEM = "system"


@dataclass(frozen=True)
class WebhookEvent:
    """
    One inbound occurrence, provider-independent.

    event_type None means a plain message; such events are only actionable
    when phone and message (or a media url) are present.
    """
    phone: str
    message: str
    sender: str = SENDER_CUSTOMER
    name: Optional[str] = None
    timestamp: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    room_id: Optional[str] = None
    channel: Optional[str] = None
    event_type: Optional[str] = None
    status: Optional[str] = None
    message_id: Optional[str] = None


@dataclass(frozen=True)
class PayloadShape:
    name: str
    matches: Callable[[Any], bool]
    mapper: Callable[[Any], List[WebhookEvent]]


# -------------------------------------------------
# Helpers
# -------------------------------------------------

def _dig(src: Any, *path, default=None):
    """Safe dict traversal: _dig(d, 'a','b','c') -> d['a']['b']['c'] or default."""
    cur: Any = src
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def _str_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _epoch_to_iso(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _has_phone_and_message(item: Any) -> bool:
    return isinstance(item, dict) and bool(item.get("phone")) and bool(item.get("message"))


def _event_from_dict(item: dict) -> WebhookEvent:
    return WebhookEvent(
        phone=str(item.get("phone") or ""),
        message=str(item.get("message") or ""),
        sender=str(item.get("sender") or SENDER_CUSTOMER),
        name=_str_or_none(item.get("name")),
        timestamp=_str_or_none(item.get("timestamp")),
        media_url=_str_or_none(item.get("mediaUrl") or item.get("media_url")),
        media_type=_str_or_none(item.get("mediaType") or item.get("media_type")),
        room_id=_str_or_none(item.get("roomId") or item.get("room_id")),
        channel=_str_or_none(item.get("channel")),
        event_type=_str_or_none(item.get("eventType") or item.get("event_type")),
        status=_str_or_none(item.get("status")),
        message_id=_str_or_none(item.get("messageId") or item.get("message_id")),
    )


# -------------------------------------------------
# 1. Qontak message interaction
# -------------------------------------------------

def _is_qontak_message(body: Any) -> bool:
    return (
        isinstance(body, dict)
        and "room_id" in body
        and "room" in body
        and "sender_type" in body
    )


def _map_qontak_message(body: dict) -> List[WebhookEvent]:
    room = body.get("room") if isinstance(body.get("room"), dict) else {}
    is_agent = body.get("sender_type") == "agent" or body.get("participant_type") == "agent"
    content = extract_qontak_content(body)

    return [
        WebhookEvent(
            phone=str(room.get("account_uniq_id") or ""),
            name=_str_or_none(room.get("name") or _dig(body, "sender", "name")),
            message=content.text,
            sender=SENDER_AGENT if is_agent else SENDER_CUSTOMER,
            timestamp=_str_or_none(body.get("created_at")),
            media_url=content.media_url,
            media_type=content.media_type,
            room_id=_str_or_none(body.get("room_id")),
            channel=normalize_channel(room.get("channel")),
            message_id=_str_or_none(body.get("id")),
        )
    ]


# -------------------------------------------------
# 2. Broadcast status (dropped)
# -------------------------------------------------

def _is_broadcast_status(body: Any) -> bool:
    return (
        isinstance(body, dict)
        and "contact_phone_number" in body
        and "messages_broadcast_id" in body
    )


def _map_broadcast_status(body: dict) -> List[WebhookEvent]:
    logger.info(
        "Broadcast status ignored: broadcast=%s status=%s",
        body.get("messages_broadcast_id"),
        body.get("status"),
    )
    return []


# -------------------------------------------------
# 3. Direct single event / 4. Array / 6. Wrapped events
# -------------------------------------------------

def _is_direct_event(body: Any) -> bool:
    return _has_phone_and_message(body)


def _map_direct_event(body: dict) -> List[WebhookEvent]:
    return [_event_from_dict(body)]


def _is_event_array(body: Any) -> bool:
    return isinstance(body, list)


def _map_event_array(body: list) -> List[WebhookEvent]:
    return [_event_from_dict(item) for item in body if _has_phone_and_message(item)]


def _is_wrapped_events(body: Any) -> bool:
    return isinstance(body, dict) and isinstance(body.get("events"), list)


def _map_wrapped_events(body: dict) -> List[WebhookEvent]:
    return _map_event_array(body["events"])


# -------------------------------------------------
# 5. WhatsApp Business API
# -------------------------------------------------

def _waba_values(body: Any):
    entries = body.get("entry") if isinstance(body, dict) else None
    if not isinstance(entries, list):
        return
    for entry in entries:
        changes = entry.get("changes") if isinstance(entry, dict) else None
        if not isinstance(changes, list):
            continue
        for change in changes:
            value = _dig(change, "value")
            if isinstance(value, dict) and isinstance(value.get("messages"), list):
                yield value


def _is_waba(body: Any) -> bool:
    return next(_waba_values(body), None) is not None


def _map_waba(body: dict) -> List[WebhookEvent]:
    events: List[WebhookEvent] = []
    for value in _waba_values(body):
        contacts = value.get("contacts")
        first_contact = contacts[0] if isinstance(contacts, list) and contacts else {}
        name = _str_or_none(_dig(first_contact, "profile", "name"))

        for msg in value["messages"]:
            if not isinstance(msg, dict):
                continue
            content = extract_waba_content(msg)
            events.append(
                WebhookEvent(
                    phone=str(msg.get("from") or ""),
                    name=name,
                    message=content.text,
                    sender=SENDER_CUSTOMER,
                    timestamp=_epoch_to_iso(msg.get("timestamp")),
                    media_url=content.media_url,
                    media_type=content.media_type,
                    channel="whatsapp",
                    message_id=_str_or_none(msg.get("id")),
                )
            )
    return events


# -------------------------------------------------
# 7. Room resolved / 8. Delivery status
# -------------------------------------------------

def _is_room_resolved(body: Any) -> bool:
    return (
        isinstance(body, dict)
        and body.get("service_name") == "room"
        and body.get("event_name") == "resolved"
    )


def _map_room_resolved(body: dict) -> List[WebhookEvent]:
    room_id = (
        body.get("room_id")
        or _dig(body, "data", "room", "id")
        or _dig(body, "data", "room_id")
        or _dig(body, "data", "id")
        or _dig(body, "room", "id")
    )
    return [
        WebhookEvent(
            phone="",
            message="",
            sender=SENDER_SYSTEM,
            room_id=_str_or_none(room_id),
            event_type=EVENT_ROOM_RESOLVED,
        )
    ]


def _is_message_status(body: Any) -> bool:
    return isinstance(body, dict) and isinstance(body.get("statuses"), list)


def _map_message_status(body: dict) -> List[WebhookEvent]:
    events: List[WebhookEvent] = []
    for status in body["statuses"]:
        if not isinstance(status, dict):
            continue
        events.append(
            WebhookEvent(
                phone=str(status.get("recipient_id") or ""),
                message="",
                sender=SENDER_SYSTEM,
                timestamp=_str_or_none(status.get("timestamp")),
                event_type=EVENT_MESSAGE_STATUS,
                status=_str_or_none(status.get("status")),
                message_id=_str_or_none(status.get("id")),
            )
        )
    return events


# -------------------------------------------------
# 9. Qontak "data" envelope
# -------------------------------------------------

def _is_qontak_data(body: Any) -> bool:
    data = body.get("data") if isinstance(body, dict) else None
    return isinstance(data, dict) and bool(data.get("from") or data.get("messages"))


def _data_message_text(msg: dict) -> str:
    text = msg.get("text")
    if isinstance(text, dict):
        text = text.get("body")
    value = text or msg.get("body") or msg.get("message")
    return "" if value is None else str(value)


def _map_qontak_data(body: dict) -> List[WebhookEvent]:
    data = body["data"]
    messages = data.get("messages") if isinstance(data.get("messages"), list) else [data]

    events: List[WebhookEvent] = []
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        events.append(
            WebhookEvent(
                phone=str(msg.get("from") or data.get("from") or ""),
                name=_str_or_none(msg.get("name") or data.get("contact_name") or data.get("name")),
                message=_data_message_text(msg),
                sender=SENDER_AGENT if msg.get("is_outgoing") else SENDER_CUSTOMER,
                timestamp=_epoch_to_iso(msg.get("timestamp")),
                message_id=_str_or_none(msg.get("id")),
            )
        )
    return events


# -------------------------------------------------
# Dispatcher
# -------------------------------------------------

PAYLOAD_SHAPES = (
    PayloadShape("qontak_message", _is_qontak_message, _map_qontak_message),
    PayloadShape("broadcast_status", _is_broadcast_status, _map_broadcast_status),
    PayloadShape("direct_event", _is_direct_event, _map_direct_event),
    PayloadShape("event_array", _is_event_array, _map_event_array),
    PayloadShape("waba", _is_waba, _map_waba),
    PayloadShape("wrapped_events", _is_wrapped_events, _map_wrapped_events),
    PayloadShape("room_resolved", _is_room_resolved, _map_room_resolved),
    PayloadShape("message_status", _is_message_status, _map_message_status),
    PayloadShape("qontak_data", _is_qontak_data, _map_qontak_data),
)


def classify_payload(body: Any) -> Optional[PayloadShape]:
    for shape in PAYLOAD_SHAPES:
        if shape.matches(body):
            return shape
    return None


def normalize_payload(body: Any) -> List[WebhookEvent]:
    try:
        shape = classify_payload(body)
        if shape is None:
            logger.info("Unknown payload format, ignoring")
            return []
        events = shape.mapper(body)
    except Exception:
        logger.exception("Payload normalisation failed")
        return []

    logger.info("Payload shape=%s events=%d", shape.name, len(events))
    return events
