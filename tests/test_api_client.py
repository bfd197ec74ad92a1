from unittest.mock import MagicMock

import pytest
import requests

from soundwrapped_report.exceptions import MalformedResponse, TokenUnavailable, UpstreamRequestFailed
from soundwrapped_report.models.upstream import decode_track
from soundwrapped_report.services.api_client import ResilientApiClient

BASE = "https://api.test"


@pytest.fixture
def token_manager():
    manager = MagicMock()
    manager.require_access_token.return_value = "token-1"
    manager.refresh.return_value = "token-2"
    return manager


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def client(token_manager, http):
    return ResilientApiClient(token_manager, base_url=BASE, http=http, max_pages=10, page_size=50)


def page(items, next_href=None):
    body = {"collection": items}
    if next_href:
        body["next_href"] = next_href
    return body


def test_fetch_one_sends_bearer_token(client, http, make_response):
    http.get.return_value = make_response(body={"id": 1})

    assert client.fetch_one("me") == {"id": 1}

    args, kwargs = http.get.call_args
    assert args[0] == f"{BASE}/me"
    assert kwargs["headers"]["Authorization"] == "Bearer token-1"


def test_single_401_refreshes_once_and_retries(client, http, token_manager, make_response):
    http.get.side_effect = [make_response(status=401), make_response(body={"id": 1})]

    assert client.fetch_one("me") == {"id": 1}

    token_manager.refresh.assert_called_once_with(stale_access_token="token-1")
    assert http.get.call_count == 2
    assert http.get.call_args.kwargs["headers"]["Authorization"] == "Bearer token-2"


def test_second_401_is_not_retried_again(client, http, token_manager, make_response):
    http.get.side_effect = [make_response(status=401), make_response(status=401)]

    with pytest.raises(UpstreamRequestFailed) as excinfo:
        client.fetch_one("me")

    assert excinfo.value.status_code == 401
    assert token_manager.refresh.call_count == 1
    assert http.get.call_count == 2


def test_server_error_is_not_retried(client, http, token_manager, make_response):
    http.get.return_value = make_response(status=503)

    with pytest.raises(UpstreamRequestFailed) as excinfo:
        client.fetch_one("me")

    assert excinfo.value.status_code == 503
    assert http.get.call_count == 1
    token_manager.refresh.assert_not_called()


def test_connection_error(client, http):
    http.get.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(UpstreamRequestFailed):
        client.fetch_one("me")


def test_missing_token_propagates(client, http, token_manager):
    token_manager.require_access_token.side_effect = TokenUnavailable("no token")

    with pytest.raises(TokenUnavailable):
        client.fetch_one("me")
    http.get.assert_not_called()


def test_non_json_body(client, http, make_response):
    http.get.return_value = make_response(json_error=True)

    with pytest.raises(MalformedResponse):
        client.fetch_one("me")


def test_list_body_is_wrapped(client, http, make_response):
    http.get.return_value = make_response(body=[{"id": 1}, {"id": 2}])

    assert client.fetch_one("me/favorites") == {"collection": [{"id": 1}, {"id": 2}]}


def test_scalar_body_is_malformed(client, http, make_response):
    http.get.return_value = make_response(body="ok")

    with pytest.raises(MalformedResponse):
        client.fetch_one("me")


def test_paginated_follows_three_pages(client, http, make_response):
    http.get.side_effect = [
        make_response(body=page([{"id": 1}], f"{BASE}/me/tracks?cursor=2")),
        make_response(body=page([{"id": 2}], f"{BASE}/me/tracks?cursor=3")),
        make_response(body=page([{"id": 3}])),
    ]

    items = client.fetch_paginated("me/tracks")

    assert [item["id"] for item in items] == [1, 2, 3]
    assert http.get.call_count == 3
    first, second, third = http.get.call_args_list
    assert first.kwargs["params"] == {"linked_partitioning": "true", "limit": 50}
    assert second.args[0] == f"{BASE}/me/tracks?cursor=2"
    assert second.kwargs["params"] is None
    assert third.args[0] == f"{BASE}/me/tracks?cursor=3"


def test_paginated_returns_partial_results_when_later_page_fails(client, http, make_response):
    http.get.side_effect = [
        make_response(body=page([{"id": 1}, {"id": 2}], f"{BASE}/me/tracks?cursor=2")),
        make_response(status=500),
    ]

    items = client.fetch_paginated("me/tracks")

    assert [item["id"] for item in items] == [1, 2]


def test_paginated_raises_when_first_page_fails(client, http, make_response):
    http.get.return_value = make_response(status=500)

    with pytest.raises(UpstreamRequestFailed):
        client.fetch_paginated("me/tracks")


def test_paginated_drops_malformed_items(client, http, make_response):
    http.get.return_value = make_response(body=page([
        {"id": 1, "title": "Good", "duration": 1000},
        "not a track",
        {"title": "No id"},
        {"track": {"id": 2, "title": "Wrapped like"}},
    ]))

    tracks = client.fetch_paginated("me/favorites", decode=decode_track)

    assert [track.id for track in tracks] == ["1", "2"]


def test_paginated_stops_at_max_pages(client, http, make_response):
    http.get.side_effect = [
        make_response(body=page([{"id": n}], f"{BASE}/me/tracks?cursor={n + 1}"))
        for n in range(5)
    ]

    items = client.fetch_paginated("me/tracks", max_pages=2)

    assert len(items) == 2
    assert http.get.call_count == 2


def test_paginated_stops_on_repeated_cursor(client, http, make_response):
    http.get.return_value = make_response(body=page([{"id": 1}], f"{BASE}/me/tracks"))

    items = client.fetch_paginated("me/tracks")

    assert len(items) == 1
    assert http.get.call_count == 1


def test_paginated_page_without_collection_is_empty(client, http, make_response):
    http.get.return_value = make_response(body={"unexpected": True})

    assert client.fetch_paginated("me/tracks") == []
