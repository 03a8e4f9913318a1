"""
File: remindhub/services/proxy_service.py
Project: RemindHub WhatsApp Integration

Purpose:
Request/response translation between the inbox UI and the Qontak chat API.

Operations:
- list_rooms          rooms page, mapped to canonical Room views (legacy fallback)
- list_room_history   room messages, mapped to canonical Message views, oldest first
- send_message        text send, mirrored locally when a chat id is given
- start_conversation  WhatsApp template broadcast to a phone number
- validate_token      structured verdict, never raises
- list_templates      approved templates

Errors:
- ProxyError carries the HTTP status and JSON body the route must return
- Missing config (token, channel id, signing credentials) is fatal for the call
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from remindhub.qontak.client import QontakClient, QontakResponse
from remindhub.qontak.errors import QontakConfigError, QontakTransportError
from remindhub.services.channels import normalize_channel
from remindhub.services.chat_service import get_chat, record_agent_message
from remindhub.services.settings_store import get_channel_id, get_qontak_token

logger = logging.getLogger("proxy_service")

TEMPLATE_LANGUAGE = "id"


class ProxyError(Exception):
    def __init__(self, status_code: int, body: Dict[str, Any]) -> None:
        super().__init__(body.get("error", "proxy error"))
        self.status_code = status_code
        self.body = body


# -------------------------------------------------
# Helpers
# -------------------------------------------------

def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def data_list(payload: Any) -> List[dict]:
    items = _as_dict(payload).get("data")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def require_token(db: Session, *, status_code: int = 400) -> str:
    token = get_qontak_token(db)
    if not token:
        raise ProxyError(status_code, {"error": "Qontak token not configured"})
    return token


def call_provider(operation: str, func, **kwargs) -> QontakResponse:
    try:
        return func(**kwargs)
    except QontakConfigError as exc:
        logger.error("%s aborted: %s", operation, exc)
        raise ProxyError(500, {"error": str(exc)}) from exc
    except QontakTransportError as exc:
        logger.error("%s transport failure: %s", operation, exc)
        raise ProxyError(502, {"error": f"Qontak unreachable during {operation}", "details": str(exc)}) from exc


def parse_positive_int(value: Any, *, default: int, field: str) -> int:
    """
    Page / limit from a UI body. Missing -> default; anything that is not
    a whole number >= 1 is a 400.
    """
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ProxyError(400, {"error": f"{field} must be a positive integer"}) from None
    if number < 1 or isinstance(value, bool):
        raise ProxyError(400, {"error": f"{field} must be a positive integer"})
    return number


def normalize_msisdn(raw: Any) -> str:
    """
    Normalise ID numbers for template sends:
    - "0811..." -> "62811..."
    - strip spaces, +, dashes
    """
    digits = re.sub(r"\D", "", str(raw or ""))
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    return digits


# -------------------------------------------------
# Mapping
# -------------------------------------------------

def map_room(room: dict) -> Dict[str, Any]:
    last_message = _as_dict(room.get("last_message"))
    agent = _as_dict(room.get("agent"))
    return {
        "id": room.get("id"),
        "contact_name": room.get("name") or room.get("account_uniq_id") or "Unknown",
        "contact_phone": room.get("account_uniq_id") or "",
        "channel": normalize_channel(room.get("channel")),
        "raw_channel": room.get("channel"),
        "status": room.get("status"),
        "unread": room.get("unread_count") or 0,
        "last_message": last_message.get("text") or room.get("last_message_text") or "No message",
        "last_timestamp": room.get("last_message_at") or room.get("last_message_timestamp"),
        "assigned_pic": agent.get("full_name") or None,
    }


def _is_agent_message(msg: dict) -> bool:
    return (
        msg.get("sender_type") == "agent"
        or msg.get("direction") == "outbound"
        or _as_dict(msg.get("sender")).get("type") == "agent"
        or msg.get("is_room_owner") is False
    )


def _history_text(msg: dict) -> str:
    if msg.get("text"):
        return str(msg["text"])
    msg_type = msg.get("type")
    if msg_type == "file":
        return "[File]"
    if msg_type == "image":
        return "[Image]"
    return "[Media]"


def map_history_message(msg: dict) -> Dict[str, Any]:
    is_agent = _is_agent_message(msg)
    return {
        "id": msg.get("id"),
        "text": _history_text(msg),
        "created_at": msg.get("created_at"),
        "sender": "agent" if is_agent else "customer",
        "is_agent": is_agent,
        "status": msg.get("status"),
    }


# -------------------------------------------------
# Operations
# -------------------------------------------------

def list_rooms(db: Session, client: QontakClient, *, page: Any = 1, limit: Any = 20) -> Dict[str, Any]:
    page = parse_positive_int(page, default=1, field="page")
    limit = parse_positive_int(limit, default=20, field="limit")
    token = require_token(db)
    resp = call_provider("list_rooms", client.list_rooms, token=token, page=page, limit=limit)

    if not resp.ok:
        logger.error("Rooms fetch failed on both hosts: %s %s", resp.status_code, resp.excerpt(200))
        raise ProxyError(
            resp.status_code,
            {"error": "Failed to fetch chats from Qontak", "details": resp.raw_text},
        )

    rooms = [map_room(room) for room in data_list(resp.data)]
    logger.info("Fetched %d rooms from Qontak (%s)", len(rooms), resp.source)

    return {"data": rooms, "meta": _as_dict(resp.data).get("meta")}


def list_room_history(db: Session, client: QontakClient, *, room_id: Optional[str], limit: Any = 50) -> Dict[str, Any]:
    if not room_id:
        raise ProxyError(400, {"error": "Room ID required"})
    limit = parse_positive_int(limit, default=50, field="limit")

    token = require_token(db)
    resp = call_provider("list_room_history", client.room_histories, token=token, room_id=room_id, limit=limit)

    if not resp.ok:
        raise ProxyError(
            resp.status_code,
            {"error": "Failed to fetch messages", "details": resp.excerpt(), "status": resp.status_code},
        )
    if not resp.is_json:
        raise ProxyError(502, {"error": "Invalid JSON", "details": resp.excerpt()})

    # Provider returns newest first
    messages = [map_history_message(msg) for msg in data_list(resp.data)]
    messages.reverse()

    return {
        "data": messages,
        "meta": {"count": len(messages), "room_id": room_id},
    }


def send_message(
    db: Session,
    client: QontakClient,
    *,
    text: Optional[str],
    chat_id: Optional[str] = None,
    room_id: Optional[str] = None,
) -> Dict[str, Any]:
    if (not chat_id and not room_id) or not text:
        raise ProxyError(400, {"error": "chatId or roomId, and text are required"})

    chat = None
    target_room_id = room_id
    if chat_id:
        chat = get_chat(db, chat_id)
        if chat is None:
            raise ProxyError(404, {"error": "Chat not found"})
        if not target_room_id:
            if not chat.room_id:
                raise ProxyError(400, {"error": "Chat has no room_id linked to Qontak"})
            target_room_id = chat.room_id

    token = require_token(db, status_code=500)
    resp = call_provider("send_message", client.send_text, token=token, room_id=target_room_id, text=text)

    if not resp.ok:
        logger.error("Qontak send failed: %s %s", resp.status_code, resp.excerpt(200))
        raise ProxyError(
            500,
            {"error": "Failed to send message via Qontak", "details": resp.data, "status": resp.status_code},
        )

    if chat is not None:
        record_agent_message(db, chat, text=text)

    return {"success": True, "data": resp.data}


def start_conversation(
    db: Session,
    client: QontakClient,
    *,
    phone_number: Optional[str],
    template_id: Optional[str],
    name: Optional[str] = None,
    template_params: Optional[list] = None,
) -> Dict[str, Any]:
    """
    Send an approved template to a phone number outside the session window.

    The resulting room reaches the local chats table through the webhook,
    not here.
    """
    if not phone_number or not template_id:
        raise ProxyError(400, {"error": "Phone number and Template ID are required"})

    token = get_qontak_token(db)
    channel_id = get_channel_id(db)
    if not token or not channel_id:
        raise ProxyError(500, {"error": "Qontak configuration missing"})

    formatted_phone = normalize_msisdn(phone_number)
    logger.info("Starting conversation with %s using template %s", formatted_phone, template_id)

    payload = {
        "to_name": name or formatted_phone,
        "to_number": formatted_phone,
        "message_template_id": template_id,
        "channel_integration_id": channel_id,
        "language": {"code": TEMPLATE_LANGUAGE},
        "parameters": {"body": template_params or []},
    }
    resp = call_provider("start_conversation", client.send_direct_template, token=token, payload=payload)

    if not resp.ok:
        raise ProxyError(resp.status_code, {"error": "Failed to send template", "details": resp.data})

    return {
        "success": True,
        "data": _as_dict(resp.data).get("data"),
        "message": "Template sent. Conversation started.",
    }


def validate_token(client: QontakClient, *, token: Optional[str]) -> Dict[str, Any]:
    if not token:
        return {"valid": False, "error": "Token is required"}

    try:
        resp = client.validate_token(token=token)
    except QontakTransportError as exc:
        logger.warning("Token validation could not reach Qontak: %s", exc)
        return {"valid": False, "error": f"Validation failed: {exc}"}

    if not resp.ok:
        return {
            "valid": False,
            "error": f"Invalid token. Qontak API: {resp.status_code} {resp.reason}".rstrip(),
            "status": resp.status_code,
        }

    return {"valid": True, "data": resp.data}


def list_templates(db: Session, client: QontakClient) -> Dict[str, Any]:
    token = require_token(db)
    resp = call_provider("list_templates", client.list_templates, token=token)

    if not resp.ok:
        raise ProxyError(resp.status_code, {"error": "Failed to fetch templates", "details": resp.data})

    return {"data": _as_dict(resp.data).get("data") or []}
