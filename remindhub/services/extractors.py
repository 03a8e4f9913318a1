"""
File: remindhub/services/extractors.py
Project: RemindHub WhatsApp Integration

Purpose:
Content extraction from provider message objects.

- extract_qontak_content: Qontak message interaction (flat fields)
- extract_waba_content:   WhatsApp Business API message (nested fields)

Rules:
- Pure functions, no I/O
- Never raise: unknown shapes fall back to the JSON of the raw object
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

MEDIA_TYPES = frozenset({"image", "video", "audio", "document", "file", "sticker", "voice"})


@dataclass(frozen=True)
class ExtractedContent:
    text: str
    media_url: Optional[str] = None
    media_type: Optional[str] = None


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


def extract_qontak_content(msg: Any) -> ExtractedContent:
    if not isinstance(msg, dict):
        return ExtractedContent(text=_dump(msg))

    msg_type = _text(msg.get("type")).lower()
    text = _text(msg.get("text"))

    if msg_type == "text":
        return ExtractedContent(text=text)

    if msg_type in MEDIA_TYPES:
        media = _as_dict(msg.get(msg_type))
        url = (
            _as_dict(msg.get("file")).get("url")
            or msg.get("url")
            or media.get("url")
        )
        caption = msg.get("caption") or text or media.get("caption")
        return ExtractedContent(
            text=_text(caption) or f"[{msg_type}]",
            media_url=_text(url) or None,
            media_type=msg_type,
        )

    if msg_type == "location":
        location = _as_dict(msg.get("location"))
        lat = msg.get("latitude", location.get("latitude"))
        lng = msg.get("longitude", location.get("longitude"))
        return ExtractedContent(text=f"[location] {lat},{lng}")

    if msg_type == "contacts":
        return ExtractedContent(text=f"[contact] {text}")

    return ExtractedContent(text=text or _dump(msg))


def _first_contact_name(msg: dict) -> str:
    contacts = msg.get("contacts")
    if isinstance(contacts, list) and contacts:
        name = _as_dict(_as_dict(contacts[0]).get("name"))
        return _text(name.get("formatted_name") or name.get("first_name"))
    return ""


def extract_waba_content(msg: Any) -> ExtractedContent:
    if not isinstance(msg, dict):
        return ExtractedContent(text=_dump(msg))

    msg_type = _text(msg.get("type")).lower()
    body = _text(_as_dict(msg.get("text")).get("body"))

    if msg_type == "text":
        return ExtractedContent(text=body)

    if msg_type in MEDIA_TYPES:
        media = _as_dict(msg.get(msg_type))
        url = media.get("link") or media.get("url") or media.get("id")
        return ExtractedContent(
            text=_text(media.get("caption")) or f"[{msg_type}]",
            media_url=_text(url) or None,
            media_type=msg_type,
        )

    if msg_type == "location":
        location = _as_dict(msg.get("location"))
        return ExtractedContent(
            text=f"[location] {location.get('latitude')},{location.get('longitude')}"
        )

    if msg_type == "contacts":
        return ExtractedContent(text=f"[contact] {_first_contact_name(msg)}")

    return ExtractedContent(text=body or _text(msg.get("body")) or _dump(msg))
