"""Tests for the analytics and auth status endpoints."""

import pytest
from httpx import AsyncClient

from rss_reader_service.config import settings


class TestFetchStatsEndpoint:
    @pytest.mark.asyncio
    async def test_shape(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/analytics/fetch-stats")

        assert response.status_code == 200
        data = response.json()
        assert set(data["overall"]) == {"today", "this_month", "lifetime"}
        assert data["overall"]["lifetime"]["manual"] == {"total": 0, "successful": 0, "failed": 0}
        assert data["feeds"] == []
        assert data["top_issues"] == {"problematic_feeds": [], "recent_failures": []}


class TestInoreaderStatusEndpoint:
    @pytest.mark.asyncio
    async def test_reports_missing_tokens(
        self, async_client: AsyncClient, tmp_path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "inoreader_access_token", None)
        monkeypatch.setattr(settings, "inoreader_refresh_token", None)
        monkeypatch.setattr(settings, "inoreader_token_file", str(tmp_path / "tokens.json"))

        response = await async_client.get("/api/auth/inoreader/status")

        assert response.status_code == 200
        data = response.json()
        assert data["authenticated"] is False
        assert data["status"] == "no_tokens"
        assert data["token_age"] is None

    @pytest.mark.asyncio
    async def test_read_only(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/api/auth/inoreader/status")

        assert response.status_code == 405
