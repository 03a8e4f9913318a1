"""
File: remindhub/qontak/factory.py

Project: RemindHub WhatsApp Integration

Purpose:
- Provide a single place to construct the Qontak client
- Reuse a single client instance (singleton-style) per process

Design rules:
- No business logic here
- Only construction / wiring
"""

from __future__ import annotations

from remindhub.qontak.client import QontakClient
from remindhub.qontak.settings import load_qontak_settings

_qontak_client: QontakClient | None = None


def get_qontak_client() -> QontakClient:
    global _qontak_client
    if _qontak_client is None:
        _qontak_client = QontakClient(settings=load_qontak_settings())
    return _qontak_client
