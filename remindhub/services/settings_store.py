"""
File: remindhub/services/settings_store.py
Project: RemindHub WhatsApp Integration

Purpose:
Key/value access to the app_settings table.

This is the ONLY place allowed to read or write provider credentials:
- qontak_token          current bearer token
- qontak_refresh_token  used to rotate the bearer token
- qontak_channel_id     channel integration id for template sends
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from remindhub.models import AppSetting

KEY_QONTAK_TOKEN = "qontak_token"
KEY_QONTAK_REFRESH_TOKEN = "qontak_refresh_token"
KEY_QONTAK_CHANNEL_ID = "qontak_channel_id"


# -------------------------------------------------
# Queries
# -------------------------------------------------

def get_setting(db: Session, key: str) -> str | None:
    row = db.query(AppSetting).filter(AppSetting.key == key).one_or_none()
    if row is None or not row.value:
        return None
    return row.value


def get_qontak_token(db: Session) -> str | None:
    return get_setting(db, KEY_QONTAK_TOKEN)


def get_channel_id(db: Session) -> str | None:
    return get_setting(db, KEY_QONTAK_CHANNEL_ID)


# -------------------------------------------------
# Commands
# -------------------------------------------------

def set_setting(db: Session, key: str, value: str | None, *, updated_by: str | None = None) -> AppSetting:
    """
    Insert or update a setting. Commits.
    """
    row = db.query(AppSetting).filter(AppSetting.key == key).one_or_none()
    if row is None:
        row = AppSetting(key=key)
        db.add(row)

    row.value = value
    row.updated_by = updated_by
    db.commit()
    db.refresh(row)
    return row
