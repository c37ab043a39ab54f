"""Tests for WorkersAIClient.fetch_models - discovery, filtering, fail-soft behaviour."""

import logging

import httpx
import pytest
import respx

from workers_ai.client import WorkersAIClient

from tests.conftest import (
    DIRECT_BASE_URL,
    DIRECT_MODELS_URL,
    GATEWAY_BASE_URL,
    GATEWAY_MODELS_URL,
    MOCK_API_KEY,
    MOCK_MODEL_1,
    MOCK_MODEL_2,
    MOCK_MODELS_RESPONSE,
)


# ─────────────────────────────────────────────────────────────────────
# Input validation
# ─────────────────────────────────────────────────────────────────────


class TestInputValidation:
    @pytest.mark.asyncio
    async def test_empty_base_url(self):
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.route().mock(return_value=httpx.Response(200))
            assert await WorkersAIClient.fetch_models("", "key") == []
            assert not route.called

    @pytest.mark.asyncio
    async def test_empty_api_key(self):
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.route().mock(return_value=httpx.Response(200))
            assert await WorkersAIClient.fetch_models("https://x", "") == []
            assert not route.called

    @pytest.mark.asyncio
    async def test_none_inputs(self):
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.route().mock(return_value=httpx.Response(200))
            assert await WorkersAIClient.fetch_models(None, None) == []
            assert not route.called

    @pytest.mark.asyncio
    async def test_unsupported_host_makes_no_request(self):
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.route().mock(return_value=httpx.Response(200))
            assert await WorkersAIClient.fetch_models("https://x", MOCK_API_KEY) == []
            assert not route.called


# ─────────────────────────────────────────────────────────────────────
# Discovery
# ─────────────────────────────────────────────────────────────────────


class TestDiscovery:
    @pytest.mark.asyncio
    @respx.mock
    async def test_filters_text_generation_in_order(self):
        respx.get(DIRECT_MODELS_URL).mock(
            return_value=httpx.Response(200, json=MOCK_MODELS_RESPONSE)
        )

        models = await WorkersAIClient.fetch_models(DIRECT_BASE_URL, MOCK_API_KEY)

        assert models == [MOCK_MODEL_1, MOCK_MODEL_2]

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_client_side_sorting(self):
        body = {
            "result": [
                {"name": "zeta", "task": {"name": "Text Generation"}},
                {"name": "alpha", "task": {"name": "Text Generation"}},
            ]
        }
        respx.get(DIRECT_MODELS_URL).mock(return_value=httpx.Response(200, json=body))

        assert await WorkersAIClient.fetch_models(DIRECT_BASE_URL, MOCK_API_KEY) == ["zeta", "alpha"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_gateway_endpoint(self):
        route = respx.get(GATEWAY_MODELS_URL).mock(
            return_value=httpx.Response(200, json=MOCK_MODELS_RESPONSE)
        )

        models = await WorkersAIClient.fetch_models(GATEWAY_BASE_URL, MOCK_API_KEY)

        assert route.called
        assert models == [MOCK_MODEL_1, MOCK_MODEL_2]

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_bearer_token(self):
        route = respx.get(DIRECT_MODELS_URL).mock(
            return_value=httpx.Response(200, json=MOCK_MODELS_RESPONSE)
        )

        await WorkersAIClient.fetch_models(DIRECT_BASE_URL, MOCK_API_KEY)

        request = route.calls.last.request
        assert request.headers["Authorization"] == f"Bearer {MOCK_API_KEY}"


# ─────────────────────────────────────────────────────────────────────
# Fail-soft
# ─────────────────────────────────────────────────────────────────────


class TestFailSoft:
    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_status(self, caplog):
        respx.get(DIRECT_MODELS_URL).mock(
            return_value=httpx.Response(403, json={"success": False, "errors": [{"code": 10000}]})
        )

        with caplog.at_level(logging.ERROR, logger="workers_ai.client"):
            models = await WorkersAIClient.fetch_models(DIRECT_BASE_URL, MOCK_API_KEY)

        assert models == []
        assert "workersai" in caplog.text

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error(self):
        respx.get(DIRECT_MODELS_URL).mock(side_effect=httpx.ConnectError("refused"))

        assert await WorkersAIClient.fetch_models(DIRECT_BASE_URL, MOCK_API_KEY) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body(self):
        respx.get(DIRECT_MODELS_URL).mock(
            return_value=httpx.Response(200, content=b"<html>proxy error</html>")
        )

        assert await WorkersAIClient.fetch_models(DIRECT_BASE_URL, MOCK_API_KEY) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_entry_missing_task(self):
        respx.get(DIRECT_MODELS_URL).mock(
            return_value=httpx.Response(200, json={"result": [{"name": "x"}]})
        )

        assert await WorkersAIClient.fetch_models(DIRECT_BASE_URL, MOCK_API_KEY) == []

    @pytest.mark.asyncio
    async def test_malformed_base_url(self):
        assert await WorkersAIClient.fetch_models("not a url", MOCK_API_KEY) == []

    @pytest.mark.asyncio
    async def test_non_ascii_api_key(self):
        assert await WorkersAIClient.fetch_models(DIRECT_BASE_URL, "clé-é") == []


class TestModelLabel:
    def test_last_segment(self):
        assert WorkersAIClient.get_model_label(MOCK_MODEL_1) == "llama-3-8b-instruct"

    def test_plain_name(self):
        assert WorkersAIClient.get_model_label("llama") == "llama"
