"""
File: remindhub/api/routes.py

Project: RemindHub WhatsApp Integration

Purpose:
JSON endpoints used by the inbox UI. Each one is a thin wrapper around
services/proxy_service.py (or auth/sync) and the Qontak client.

Endpoints:
- POST /api/get-chats
- POST /api/get-messages
- POST /api/send-message
- POST /api/start-conversation
- POST /api/validate-qontak
- POST /api/qontak-auth
- POST /api/get-templates
- POST /api/sync-qontak

Design rules:
- No provider calls here, only service calls
- ProxyError -> JSON body with its status code
- Anything else -> 500 {"error": "..."}
- Handlers are plain def: requests + Session calls block, so they run in the threadpool
"""

import logging

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from remindhub.db import get_db
from remindhub.qontak.client import QontakClient
from remindhub.qontak.factory import get_qontak_client
from remindhub.services import auth_service, proxy_service, sync_service
from remindhub.services.proxy_service import ProxyError

router = APIRouter(prefix="/api", tags=["api"])
logger = logging.getLogger("api")


def _run(operation: str, func, *args, **kwargs):
    try:
        return func(*args, **kwargs)
    except ProxyError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.body)
    except Exception as exc:
        logger.exception("%s failed", operation)
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


# -------------------------------------------------------------------
# Chats / messages
# -------------------------------------------------------------------
@router.post("/get-chats")
def get_chats(
    body: dict = Body(default={}),
    db: Session = Depends(get_db),
    client: QontakClient = Depends(get_qontak_client),
):
    return _run(
        "get-chats",
        proxy_service.list_rooms,
        db,
        client,
        page=body.get("page"),
        limit=body.get("limit"),
    )


@router.post("/get-messages")
def get_messages(
    body: dict = Body(default={}),
    db: Session = Depends(get_db),
    client: QontakClient = Depends(get_qontak_client),
):
    return _run(
        "get-messages",
        proxy_service.list_room_history,
        db,
        client,
        room_id=body.get("roomId"),
        limit=body.get("limit"),
    )


@router.post("/send-message")
def send_message(
    body: dict = Body(default={}),
    db: Session = Depends(get_db),
    client: QontakClient = Depends(get_qontak_client),
):
    return _run(
        "send-message",
        proxy_service.send_message,
        db,
        client,
        text=body.get("text"),
        chat_id=body.get("chatId"),
        room_id=body.get("roomId"),
    )


@router.post("/start-conversation")
def start_conversation(
    body: dict = Body(default={}),
    db: Session = Depends(get_db),
    client: QontakClient = Depends(get_qontak_client),
):
    return _run(
        "start-conversation",
        proxy_service.start_conversation,
        db,
        client,
        phone_number=body.get("phoneNumber"),
        template_id=body.get("templateId"),
        name=body.get("name"),
        template_params=body.get("templateParams"),
    )


# -------------------------------------------------------------------
# Account / credentials
# -------------------------------------------------------------------
@router.post("/validate-qontak")
def validate_qontak(
    body: dict = Body(default={}),
    client: QontakClient = Depends(get_qontak_client),
):
    return proxy_service.validate_token(client, token=body.get("token"))


@router.post("/qontak-auth")
def qontak_auth(
    body: dict = Body(default={}),
    db: Session = Depends(get_db),
    client: QontakClient = Depends(get_qontak_client),
):
    return _run(
        "qontak-auth",
        auth_service.exchange_token,
        db,
        client,
        grant_type=body.get("grant_type"),
        username=body.get("username"),
        password=body.get("password"),
        refresh_token=body.get("refresh_token"),
        client_id=body.get("client_id"),
        client_secret=body.get("client_secret"),
    )


@router.post("/get-templates")
def get_templates(
    db: Session = Depends(get_db),
    client: QontakClient = Depends(get_qontak_client),
):
    return _run("get-templates", proxy_service.list_templates, db, client)


@router.post("/sync-qontak")
def sync_qontak(
    db: Session = Depends(get_db),
    client: QontakClient = Depends(get_qontak_client),
):
    return _run("sync-qontak", sync_service.sync_rooms, db, client)
