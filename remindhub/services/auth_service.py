"""
File: remindhub/services/auth_service.py
Project: RemindHub WhatsApp Integration

Purpose:
Obtain and rotate the Qontak bearer token (Mekari OAuth).

Grants:
- password       username + password
- refresh_token  stored or supplied refresh token

On success the new tokens are written to app_settings so every proxy
operation picks them up on its next call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from remindhub.qontak.client import QontakClient
from remindhub.qontak.errors import QontakTransportError
from remindhub.services.proxy_service import ProxyError
from remindhub.services.settings_store import (
    KEY_QONTAK_REFRESH_TOKEN,
    KEY_QONTAK_TOKEN,
    get_setting,
    set_setting,
)

logger = logging.getLogger("auth_service")

GRANT_PASSWORD = "password"
GRANT_REFRESH_TOKEN = "refresh_token"


def exchange_token(
    db: Session,
    client: QontakClient,
    *,
    grant_type: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    refresh_token: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    updated_by: Optional[str] = None,
) -> Dict[str, Any]:
    grant = grant_type or GRANT_PASSWORD

    body: Dict[str, Any] = {
        "client_id": client_id or client.settings.client_id,
        "client_secret": client_secret or client.settings.client_secret,
        "grant_type": grant,
    }

    if grant == GRANT_PASSWORD:
        if not username or not password:
            raise ProxyError(400, {"error": "Username and password required for password grant"})
        body.update(username=username, password=password)
    elif grant == GRANT_REFRESH_TOKEN:
        if not refresh_token:
            raise ProxyError(400, {"error": "Refresh token required"})
        body["refresh_token"] = refresh_token
    else:
        raise ProxyError(400, {"error": "Unsupported grant_type"})

    logger.info("Requesting token (%s)", grant)
    try:
        resp = client.request_token(body=body)
    except QontakTransportError as exc:
        raise ProxyError(502, {"error": "Authentication service unreachable", "details": str(exc)}) from exc

    data = resp.data if isinstance(resp.data, dict) else {}
    if not resp.ok:
        logger.error("Qontak auth failed: %s", resp.status_code)
        raise ProxyError(
            resp.status_code,
            {"error": data.get("error_description") or "Authentication failed"},
        )

    if data.get("access_token"):
        set_setting(db, KEY_QONTAK_TOKEN, data["access_token"], updated_by=updated_by)
    if data.get("refresh_token"):
        set_setting(db, KEY_QONTAK_REFRESH_TOKEN, data["refresh_token"], updated_by=updated_by)

    return data


def refresh_access_token(db: Session, client: QontakClient) -> Dict[str, Any]:
    """
    Exchange the stored refresh token for a new access token.
    """
    refresh_token = get_setting(db, KEY_QONTAK_REFRESH_TOKEN)
    if not refresh_token:
        raise ProxyError(400, {"error": "Refresh token required"})

    return exchange_token(
        db,
        client,
        grant_type=GRANT_REFRESH_TOKEN,
        refresh_token=refresh_token,
        updated_by="refresh",
    )
