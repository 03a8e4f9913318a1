import json
import os
from typing import Generator

# remindhub.db reads DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from remindhub.db import get_db
from remindhub.main import app as fastapi_app
from remindhub.models import Base
from remindhub.qontak.client import QontakClient
from remindhub.qontak.factory import get_qontak_client
from remindhub.qontak.settings import QontakSettings
from remindhub.services.settings_store import (
    KEY_QONTAK_CHANNEL_ID,
    KEY_QONTAK_TOKEN,
    set_setting,
)


class FakeResponse:
    """Just enough of requests.Response for QontakClient._send."""

    def __init__(self, status_code=200, json_body=None, text=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        if text is None:
            text = json.dumps(json_body) if json_body is not None else ""
        self.text = text

    def json(self):
        return json.loads(self.text)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def http_session(mocker):
    """
    Stand-in for requests.Session. Tests queue responses with
    http_session.request.side_effect / return_value.
    """
    session = mocker.Mock(spec=requests.Session)
    session.request.return_value = FakeResponse(200, {"data": []})
    return session


@pytest.fixture
def qontak_settings() -> QontakSettings:
    return QontakSettings(
        api_base_url="https://api.test",
        legacy_base_url="https://legacy.test",
        client_id="client-id",
        client_secret="client-secret",
    )


@pytest.fixture
def qontak_client(qontak_settings, http_session) -> QontakClient:
    return QontakClient(settings=qontak_settings, session=http_session)


@pytest.fixture
def configured(db_session):
    """Token + channel id present in app_settings."""
    set_setting(db_session, KEY_QONTAK_TOKEN, "tok-123")
    set_setting(db_session, KEY_QONTAK_CHANNEL_ID, "chan-1")
    return db_session


@pytest.fixture
def client(db_session, qontak_client) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_qontak_client] = lambda: qontak_client

    yield TestClient(fastapi_app)

    fastapi_app.dependency_overrides.clear()
