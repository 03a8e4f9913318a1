"""
File: remindhub/qontak/signer.py

Project: RemindHub WhatsApp Integration

Purpose:
Mekari HMAC request signing for calls to the primary API host.

  Authorization: hmac username="<client id>", algorithm="hmac-sha256",
                 headers="date request-line", signature="<base64 sig>"

Signed payload:
  "date: <RFC 1123 date>\\n<lowercase method> <path?query> HTTP/1.1"

Rules:
- One signature per request (the date is part of the payload)
- Missing client id / secret is a deployment error: raise, never retry
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Dict, Optional

from remindhub.qontak.errors import QontakConfigError
from remindhub.qontak.settings import QontakSettings

logger = logging.getLogger("qontak.signer")


def rfc1123_date(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return format_datetime(now.astimezone(timezone.utc), usegmt=True)


def build_signing_payload(date_str: str, method: str, path_with_query: str) -> str:
    request_line = f"{method.lower()} {path_with_query} HTTP/1.1"
    return f"date: {date_str}\n{request_line}"


def sign(secret: str, payload: str) -> str:
    digest = hmac.new(
        key=secret.encode("utf-8"),
        msg=payload.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def generate_mekari_headers(
    settings: QontakSettings,
    method: str,
    path_with_query: str,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    if not settings.client_id or not settings.client_secret:
        raise QontakConfigError("MEKARI_CLIENT_ID or MEKARI_CLIENT_SECRET not configured")

    date_str = rfc1123_date(now)
    payload = build_signing_payload(date_str, method, path_with_query)
    signature = sign(settings.client_secret, payload)

    logger.debug("Signed %s %s at %s", method.upper(), path_with_query, date_str)

    return {
        "Authorization": (
            f'hmac username="{settings.client_id}", algorithm="hmac-sha256", '
            f'headers="date request-line", signature="{signature}"'
        ),
        "Date": date_str,
        "Content-Type": "application/json",
    }
