"""
File: remindhub/qontak/client.py

Project: RemindHub WhatsApp Integration

Purpose:
Qontak chat API client (primary host: Mekari API, secondary: legacy service-chat).
Supports:
- Rooms listing (with one-time fallback to the legacy host)
- Room history
- Text message send
- WhatsApp template broadcast (start conversation)
- Token validation
- Template listing
- OAuth token exchange
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from remindhub.qontak.errors import QontakConfigError, QontakTransportError
from remindhub.qontak.settings import QontakSettings
from remindhub.qontak.signer import generate_mekari_headers

logger = logging.getLogger("qontak")

SOURCE_PRIMARY = "mekari"
SOURCE_LEGACY = "legacy"

TOKEN_SCOPE = "qontak-chat:all offline_access"


@dataclass(frozen=True)
class QontakResponse:
    ok: bool
    status_code: int
    data: Any
    raw_text: str
    source: str = SOURCE_PRIMARY
    reason: str = ""
    is_json: bool = True

    def excerpt(self, limit: int = 500) -> str:
        return (self.raw_text or "")[:limit]


def _with_query(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    if not params:
        return path
    return f"{path}?{urlencode(params)}"


class QontakClient:
    def __init__(
        self,
        settings: QontakSettings,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    @property
    def settings(self) -> QontakSettings:
        return self._settings

    # ---------------------------------------------------------
    # Transport
    # ---------------------------------------------------------
    def _primary_headers(self, method: str, path_with_query: str, token: Optional[str]) -> Dict[str, str]:
        if self._settings.use_hmac:
            return generate_mekari_headers(self._settings, method, path_with_query)
        return self._bearer_headers(token)

    def _bearer_headers(self, token: Optional[str]) -> Dict[str, str]:
        if not token:
            raise QontakConfigError("Qontak token not configured")
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        source: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> QontakResponse:
        try:
            resp = self._session.request(
                method,
                url,
                json=payload,
                headers=headers,
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise QontakTransportError(f"{method} {url} failed: {exc}") from exc

        is_json = True
        if not (resp.text or "").strip():
            data = {}
        else:
            try:
                data = resp.json()
            except ValueError:
                data = {"raw_text": resp.text}
                is_json = False

        result = QontakResponse(
            ok=200 <= resp.status_code < 300,
            status_code=resp.status_code,
            data=data,
            raw_text=resp.text or "",
            source=source,
            reason=resp.reason or "",
            is_json=is_json,
        )
        if not result.ok:
            logger.warning("%s %s -> %s", method, url, resp.status_code)
        return result

    def _primary(
        self,
        method: str,
        path_with_query: str,
        token: Optional[str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> QontakResponse:
        headers = self._primary_headers(method, path_with_query, token)
        url = f"{self._settings.api_base_url}{path_with_query}"
        return self._send(method, url, headers, SOURCE_PRIMARY, payload)

    def _legacy(
        self,
        method: str,
        path_with_query: str,
        token: Optional[str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> QontakResponse:
        headers = self._bearer_headers(token)
        url = f"{self._settings.legacy_base_url}{path_with_query}"
        return self._send(method, url, headers, SOURCE_LEGACY, payload)

    # ---------------------------------------------------------
    # ROOMS
    # ---------------------------------------------------------
    def list_rooms(self, *, token: Optional[str], page: int = 1, limit: int = 20) -> QontakResponse:
        offset = (page - 1) * limit
        primary_path = _with_query(
            f"{self._settings.chat_path}/rooms",
            {"page": page, "limit": limit, "offset": offset},
        )

        try:
            primary = self._primary("GET", primary_path, token)
            if primary.ok:
                return primary
            logger.warning("Mekari rooms failed (%s), trying legacy API", primary.status_code)
        except QontakTransportError:
            logger.warning("Mekari rooms unreachable, trying legacy API", exc_info=True)

        # Legacy host pages by offset only
        legacy_path = _with_query(
            f"{self._settings.legacy_path}/rooms",
            {"limit": limit, "offset": offset},
        )
        return self._legacy("GET", legacy_path, token)

    def room_histories(self, *, token: Optional[str], room_id: str, limit: int = 50) -> QontakResponse:
        path = _with_query(f"{self._settings.chat_path}/rooms/{room_id}/histories", {"limit": limit})
        return self._primary("GET", path, token)

    # ---------------------------------------------------------
    # MESSAGES
    # ---------------------------------------------------------
    def send_text(self, *, token: Optional[str], room_id: str, text: str) -> QontakResponse:
        path = f"{self._settings.chat_path}/rooms/{room_id}/messages"
        return self._primary("POST", path, token, {"text": text, "type": "text"})

    def send_direct_template(self, *, token: Optional[str], payload: Dict[str, Any]) -> QontakResponse:
        return self._primary("POST", "/v1/qontak/broadcasts/whatsapp/direct", token, payload)

    # ---------------------------------------------------------
    # ACCOUNT
    # ---------------------------------------------------------
    def validate_token(self, *, token: str) -> QontakResponse:
        path = _with_query(f"{self._settings.chat_path}/integrations", {"limit": 5})
        headers = self._bearer_headers(token)
        return self._send("GET", f"{self._settings.api_base_url}{path}", headers, SOURCE_PRIMARY)

    def list_templates(self, *, token: Optional[str]) -> QontakResponse:
        return self._legacy("GET", f"{self._settings.legacy_path}/templates", token)

    def request_token(self, *, body: Dict[str, Any]) -> QontakResponse:
        payload = {"scope": TOKEN_SCOPE, **body}
        headers = {"Content-Type": "application/json"}
        return self._send("POST", self._settings.token_url, headers, SOURCE_PRIMARY, payload)
