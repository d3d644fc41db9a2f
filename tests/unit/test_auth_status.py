"""Tests for Inoreader OAuth token status classification."""

import json
import os
import time
from pathlib import Path

import pytest

from rss_reader_service.config import settings
from rss_reader_service.services.auth_status_service import check_token_status

DAY = 24 * 3600


@pytest.fixture
def token_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "tokens.json"
    monkeypatch.setattr(settings, "inoreader_access_token", None)
    monkeypatch.setattr(settings, "inoreader_refresh_token", None)
    monkeypatch.setattr(settings, "inoreader_token_file", str(path))
    monkeypatch.setattr(settings, "token_expiry_days", 365)
    monkeypatch.setattr(settings, "token_expiry_warning_days", 30)
    return path


def write_tokens(path: Path, age_days: int = 0, **tokens: str) -> None:
    path.write_text(json.dumps(tokens))
    issued = time.time() - age_days * DAY - 60
    os.utime(path, (issued, issued))


class TestCheckTokenStatus:
    def test_fresh_tokens(self, token_file: Path) -> None:
        write_tokens(token_file, access_token="a", refresh_token="r")

        result = check_token_status()

        assert result.authenticated
        assert result.status == "valid"
        assert (result.token_age, result.days_remaining) == (0, 365)
        assert result.message == "OAuth tokens are valid (365 days remaining)"

    def test_expiring_soon(self, token_file: Path) -> None:
        write_tokens(token_file, age_days=340, refresh_token="r")

        result = check_token_status()

        assert result.authenticated
        assert result.status == "expiring_soon"
        assert (result.token_age, result.days_remaining) == (340, 25)

    def test_expired(self, token_file: Path) -> None:
        write_tokens(token_file, age_days=400, access_token="a")

        result = check_token_status()

        assert not result.authenticated
        assert result.status == "expired"
        assert (result.token_age, result.days_remaining) == (400, 0)

    def test_missing_file(self, token_file: Path) -> None:
        result = check_token_status()

        assert (result.authenticated, result.status) == (False, "no_tokens")
        assert result.days_remaining is None

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_invalid_format(self, token_file: Path, content: str) -> None:
        token_file.write_text(content)

        assert check_token_status().status == "invalid_format"

    def test_empty_tokens(self, token_file: Path) -> None:
        write_tokens(token_file, access_token="", refresh_token="")

        assert check_token_status().status == "empty_tokens"

    def test_unconfigured_file(self, token_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "inoreader_token_file", "")

        assert check_token_status().status == "config_error"

    def test_environment_tokens(self, token_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "inoreader_refresh_token", "r")

        result = check_token_status()

        assert (result.authenticated, result.status) == (True, "valid")
        assert result.token_age is None
