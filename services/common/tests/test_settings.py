# noqa: D401
"""Unit tests for shared settings, schema helpers, HTTP client factory and log context."""

from __future__ import annotations

import httpx
import pytest
import structlog

from common.config import Settings
from common.http import build_headers, create_client
from common.logging import log_context
from common.schemas import LabelledOption, unwrap_content


class TestSettings:
    """Environment overrides on top of the defaults."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MEDIA_CACHE_BACKEND", raising=False)
        settings = Settings(_env_file=None)

        assert settings.media_cache_backend == "redis"
        assert settings.media_cache_ttl_seconds == 3600
        assert settings.address_separator == ", "
        assert settings.provinces_api_base_url == "https://provinces.open-api.vn"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://api.example.com")
        monkeypatch.setenv("MEDIA_CACHE_TTL_SECONDS", "120")

        settings = Settings(_env_file=None)

        assert settings.api_base_url == "https://api.example.com"
        assert settings.media_cache_ttl_seconds == 120


class TestSchemas:
    def test_unwrap_content(self) -> None:
        assert unwrap_content({"content": [1, 2]}) == [1, 2]
        assert unwrap_content({"content": None, "message": "ok"}) == {"content": None, "message": "ok"}
        assert unwrap_content([1]) == [1]

    def test_numeric_codes_become_strings(self) -> None:
        option = LabelledOption.model_validate({"code": 79, "label": "Ho Chi Minh"})
        assert option.code == "79"


class TestHttp:
    def test_headers(self) -> None:
        headers = build_headers(bearer_token="tok")
        assert headers["Authorization"] == "Bearer tok"
        assert "x-api-key" not in headers

    @pytest.mark.asyncio
    async def test_client_sends_headers(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200)

        client = create_client("https://api.test", bearer_token="tok", transport=httpx.MockTransport(handler))
        async with client:
            await client.get("/ping")

        assert seen["authorization"] == "Bearer tok"
        assert seen["accept"] == "application/json"

    def test_accept_override(self) -> None:
        assert build_headers(accept="image/*")["Accept"] == "image/*"


class TestLogging:
    def test_log_context_binds_and_restores(self) -> None:
        with log_context(session_id="s1", entity_id="p1"):
            bound = structlog.contextvars.get_contextvars()
            assert (bound["session_id"], bound["entity_id"]) == ("s1", "p1")

        assert "session_id" not in structlog.contextvars.get_contextvars()
