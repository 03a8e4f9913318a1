"""
File: remindhub/services/channels.py
Project: RemindHub WhatsApp Integration

Purpose:
Shared channel normalisation.

This is the ONLY place that maps provider channel codes to canonical channels.

Used by:
- services/normalizer.py (webhook ingest)
- services/proxy_service.py (rooms listing)
- services/sync_service.py (room sync)
"""

from __future__ import annotations

from typing import Any

DEFAULT_CHANNEL = "whatsapp"

CANONICAL_CHANNELS = (
    "whatsapp",
    "facebook",
    "instagram",
    "telegram",
    "email",
    "twitter",
    "line",
    "web_chat",
    "ecommerce",
    "call",
)

CHANNEL_CODES = {
    "wa": "whatsapp",
    "whatsapp": "whatsapp",
    "fb": "facebook",
    "facebook": "facebook",
    "fb_messenger": "facebook",
    "ig": "instagram",
    "instagram": "instagram",
    "telegram": "telegram",
    "tg": "telegram",
    "email": "email",
    "twitter": "twitter",
    "x": "twitter",
    "line": "line",
    "webchat": "web_chat",
    "web_chat": "web_chat",
    "livechat": "web_chat",
    "ecommerce": "ecommerce",
    "tokopedia": "ecommerce",
    "shopee": "ecommerce",
    "call": "call",
}


def normalize_channel(raw: Any) -> str:
    """
    Map a raw provider channel code to a canonical channel.

    Unknown or empty codes fall back to "whatsapp".
    """
    if raw is None:
        return DEFAULT_CHANNEL
    code = str(raw).strip().lower()
    return CHANNEL_CODES.get(code, DEFAULT_CHANNEL)
