"""
remindhub/qontak/settings.py
RemindHub WhatsApp Integration
Qontak / Mekari Settings

Purpose:
- Centralised chat provider (Qontak via Mekari API) configuration.
- Keep secrets out of code via environment variables.

Notes:
- Only needed when HMAC signing is enabled (QONTAK_USE_HMAC=true):
  - MEKARI_CLIENT_ID
  - MEKARI_CLIENT_SECRET
- Optional:
  - QONTAK_API_BASE_URL (defaults to https://api.mekari.com)
  - QONTAK_LEGACY_BASE_URL (defaults to https://service-chat.qontak.com)
  - QONTAK_TIMEOUT_SECONDS (defaults to 10)
- The bearer token itself lives in the app_settings table, not here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_API_BASE_URL = "https://api.mekari.com"
DEFAULT_LEGACY_BASE_URL = "https://service-chat.qontak.com"
DEFAULT_TIMEOUT_SECONDS = 10.0


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class QontakSettings:
    api_base_url: str = DEFAULT_API_BASE_URL
    legacy_base_url: str = DEFAULT_LEGACY_BASE_URL
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    use_hmac: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def chat_path(self) -> str:
        return "/v1/qontak/chat"

    @property
    def legacy_path(self) -> str:
        return "/api/open/v1"

    @property
    def token_url(self) -> str:
        return f"{self.api_base_url}/v2/oauth/token"


def load_qontak_settings() -> QontakSettings:
    return QontakSettings(
        api_base_url=os.getenv("QONTAK_API_BASE_URL", DEFAULT_API_BASE_URL).strip().rstrip("/"),
        legacy_base_url=os.getenv("QONTAK_LEGACY_BASE_URL", DEFAULT_LEGACY_BASE_URL).strip().rstrip("/"),
        client_id=_optional_env("MEKARI_CLIENT_ID"),
        client_secret=_optional_env("MEKARI_CLIENT_SECRET"),
        use_hmac=os.getenv("QONTAK_USE_HMAC", "false").strip().lower() == "true",
        timeout_seconds=float(os.getenv("QONTAK_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
    )
