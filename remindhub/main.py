"""
File: remindhub/main.py

Project: RemindHub WhatsApp Integration

Purpose:
Application entry point.
Responsible only for:
- FastAPI app creation
- Logging setup
- Table creation at startup
- Router registration

Design principles:
- No business logic in this file
- All inbound webhook processing is delegated to remindhub.webhooks
- All provider calls are delegated to remindhub.api -> services

Run:
    uvicorn remindhub.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from remindhub.db import init_db
from remindhub.webhooks import router as webhooks_router
from remindhub.api.routes import router as api_router
from remindhub.api.chats import router as chats_router
from remindhub.health import router as health_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database tables ready")
    yield


app = FastAPI(title="RemindHub", lifespan=lifespan)

# -------------------------------------------------------------------
# Webhook routes (GET/POST /webhooks/whatsapp)
# -------------------------------------------------------------------
app.include_router(webhooks_router)

# -------------------------------------------------------------------
# Inbox UI: provider proxy + local chats
# -------------------------------------------------------------------
app.include_router(api_router)
app.include_router(chats_router)

# -------------------------------------------------------------------
# Health
# -------------------------------------------------------------------
app.include_router(health_router)
