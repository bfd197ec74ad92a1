import json

import pytest

from soundwrapped_report import __main__ as main
from soundwrapped_report.config import Settings
from soundwrapped_report.db import Database
from soundwrapped_report.models.report import Report


def config(**overrides):
    values = dict(
        SOUNDCLOUD_ACCESS_TOKEN=None,
        SOUNDCLOUD_REFRESH_TOKEN=None,
        SOUNDCLOUD_AUTH_CODE=None,
        DATABASE_URL="sqlite://",
        TOKEN_REFRESH_ENABLED=False,
        SYNC_DELAY_SECONDS=0,
        CANDIDATE_DELAY_SECONDS=0,
    )
    values.update(overrides)
    return Settings(**values)


def test_bootstrap_seeds_empty_store_from_settings(tokens, token_http):
    main.bootstrap_credential(tokens, config(SOUNDCLOUD_ACCESS_TOKEN="seed-access",
                                             SOUNDCLOUD_REFRESH_TOKEN="seed-refresh"))

    assert tokens.get_access_token() == "seed-access"
    assert tokens.get_refresh_token() == "seed-refresh"
    token_http.post.assert_not_called()


def test_bootstrap_prefers_auth_code_exchange(tokens, token_http, make_response):
    token_http.post.return_value = make_response(body={
        "access_token": "exchanged-access",
        "refresh_token": "exchanged-refresh",
        "expires_in": 3600,
    })

    main.bootstrap_credential(tokens, config(SOUNDCLOUD_AUTH_CODE="auth-code",
                                             SOUNDCLOUD_ACCESS_TOKEN="seed-access"))

    assert tokens.get_access_token() == "exchanged-access"
    assert token_http.post.call_args.kwargs["data"]["code"] == "auth-code"


def test_bootstrap_keeps_stored_credential(tokens, token_http):
    tokens.save_credential("stored-access", "stored-refresh", 3600)

    main.bootstrap_credential(tokens, config(SOUNDCLOUD_AUTH_CODE="auth-code",
                                             SOUNDCLOUD_ACCESS_TOKEN="seed-access"))

    assert tokens.get_access_token() == "stored-access"
    token_http.post.assert_not_called()


def test_bootstrap_without_configured_credential(tokens):
    main.bootstrap_credential(tokens, config())

    assert tokens.get_credential() is None


@pytest.fixture
def isolated_run(monkeypatch, tmp_path):
    def apply(**overrides):
        monkeypatch.setattr(main, "settings", config(OUTPUT_DIR=str(tmp_path), **overrides))
        monkeypatch.setattr(main, "db", Database())
        return tmp_path
    return apply


def test_run_exits_when_authentication_required(isolated_run):
    isolated_run()

    with pytest.raises(SystemExit) as excinfo:
        main.run()

    assert excinfo.value.code == 1


def test_run_writes_camel_case_report(isolated_run, monkeypatch):
    output_dir = isolated_run(SOUNDCLOUD_ACCESS_TOKEN="seed-access")

    class FixedAssembler:
        def __init__(self, api, store, settings):
            self.store = store

        def generate(self):
            return Report(notes=["followers unavailable (HTTP 500); shown as empty"])

    monkeypatch.setattr(main, "ReportAssembler", FixedAssembler)

    main.run()

    written = json.loads((output_dir / "report.json").read_text())
    assert written["notes"] == ["followers unavailable (HTTP 500); shown as empty"]
    assert "apiStats" in written
    assert "trackedStats" in written
