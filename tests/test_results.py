import pytest
from sqlalchemy.exc import OperationalError

from soundwrapped_report.exceptions import TokenRefreshFailed, UpstreamRequestFailed
from soundwrapped_report.results import fetch_source


def test_success_keeps_value():
    result = fetch_source("likes", lambda: [1, 2], [])

    assert result.ok is True
    assert result.value == [1, 2]
    assert result.note is None


def test_upstream_failure_falls_back_to_default():
    def failing():
        raise UpstreamRequestFailed("GET me/followers failed with HTTP 500", status_code=500)

    result = fetch_source("followers", failing, [])

    assert result.ok is False
    assert result.value == []
    assert result.note == "followers unavailable (GET me/followers failed with HTTP 500); shown as empty"


def test_database_failure_falls_back_to_default():
    def failing():
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    result = fetch_source("tracked activity", failing, 0)

    assert result.ok is False
    assert result.value == 0


def test_authentication_failure_propagates():
    def failing():
        raise TokenRefreshFailed("refresh rejected")

    with pytest.raises(TokenRefreshFailed):
        fetch_source("profile", failing, None)
