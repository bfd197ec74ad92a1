from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from soundwrapped_report.db import Database
from soundwrapped_report.services.storage import ActivityStore
from soundwrapped_report.services.tokens import SqlCredentialStore, TokenLifecycleManager

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
TOKEN_URL = "https://api.test/oauth2/token"


def _response(status=200, body=None, json_error=False):
    response = MagicMock()
    response.status_code = status
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = body

    def raise_for_status():
        if status >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {status}", response=response)

    response.raise_for_status.side_effect = raise_for_status
    return response


@pytest.fixture
def make_response():
    """Factory for fake requests.Response objects"""
    return _response


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def database():
    database = Database()
    database.init("sqlite://")
    yield database
    database.dispose()


@pytest.fixture
def session(database):
    session = database.get_session()
    yield session
    session.close()


@pytest.fixture
def store(session):
    return ActivityStore(session)


@pytest.fixture
def token_http():
    return MagicMock()


@pytest.fixture
def tokens(database, token_http):
    return TokenLifecycleManager(
        SqlCredentialStore(database),
        client_id="client-id",
        client_secret="client-secret",
        token_url=TOKEN_URL,
        redirect_uri="http://localhost/callback",
        http=token_http,
        refresh_margin_seconds=300,
        clock=lambda: NOW
    )
