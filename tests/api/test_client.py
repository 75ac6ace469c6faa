"""Tests for CMAClient transport, headers and error mapping."""

import httpx
import pytest
import respx

from asset_replacer.api.client import CMAClient, CMAConfig, ERROR_BODY_LIMIT
from asset_replacer.config import Settings
from asset_replacer.errors import DecodeError, RemoteError, TransportError
from tests.conftest import ENV_URL, SAMPLE_ENTRY_ID, SAMPLE_SPACE_ID, SAMPLE_TOKEN, entry_payload


class TestCMAConfig:
    def test_auth_value_joins_scheme_and_token(self):
        config = CMAConfig(token="tok", space_id="s")
        assert config.auth_value == "Bearer tok"

    def test_empty_scheme_sends_bare_token(self):
        config = CMAConfig(token="tok", space_id="s", auth_scheme="")
        assert config.auth_value == "tok"

    def test_environment_path(self):
        config = CMAConfig(token="tok", space_id="s1", environment="staging")
        assert config.environment_path == "/spaces/s1/environments/staging"

    def test_default_environment_matches_settings(self):
        config = CMAConfig(token="tok", space_id="s")
        assert config.environment == "testing_env"
        assert config.environment == Settings.model_fields["environment_id"].default

    def test_to_dict_masks_token(self):
        config = CMAConfig(token="CFPAT-secret-value", space_id="s")
        data = config.to_dict()
        assert data["token"] == "CFPAT-..."
        assert "secret" not in str(data)


class TestClientContext:
    def test_sub_apis_require_context(self, cma_config):
        client = CMAClient(cma_config)
        with pytest.raises(RuntimeError, match="async with"):
            client.entries
        with pytest.raises(RuntimeError, match="async with"):
            client.assets

    @pytest.mark.asyncio
    async def test_env_path(self, cma_config):
        async with CMAClient(cma_config) as cma:
            assert cma.env_path("entries", "E1") == (
                f"/spaces/{SAMPLE_SPACE_ID}/environments/testing_env/entries/E1"
            )
            assert cma.env_path() == f"/spaces/{SAMPLE_SPACE_ID}/environments/testing_env"


class TestRequests:
    @pytest.mark.asyncio
    async def test_sends_credentials_and_content_type(self, cma_config):
        with respx.mock:
            route = respx.get(f"{ENV_URL}/entries/{SAMPLE_ENTRY_ID}").mock(
                return_value=httpx.Response(200, json=entry_payload())
            )
            async with CMAClient(cma_config) as cma:
                await cma.entries.get(SAMPLE_ENTRY_ID)

            request = route.calls.last.request
            assert request.headers["Authorization"] == f"Bearer {SAMPLE_TOKEN}"
            assert request.headers["Content-Type"] == "application/vnd.contentful.management.v1+json"
            assert "X-Contentful-Version" not in request.headers

    @pytest.mark.asyncio
    async def test_custom_auth_header(self):
        config = CMAConfig(
            token="tok",
            space_id=SAMPLE_SPACE_ID,
            environment="testing_env",
            auth_header="X-Api-Key",
            auth_scheme="",
        )
        with respx.mock:
            route = respx.get(f"{ENV_URL}/entries/{SAMPLE_ENTRY_ID}").mock(
                return_value=httpx.Response(200, json=entry_payload())
            )
            async with CMAClient(config) as cma:
                await cma.entries.get(SAMPLE_ENTRY_ID)

            assert route.calls.last.request.headers["X-Api-Key"] == "tok"

    @pytest.mark.asyncio
    async def test_non_2xx_raises_remote_error_with_body(self, cma_config):
        with respx.mock:
            respx.get(f"{ENV_URL}/entries/missing").mock(
                return_value=httpx.Response(404, text='{"sys":{"id":"NotFound"}}')
            )
            async with CMAClient(cma_config) as cma:
                with pytest.raises(RemoteError) as exc_info:
                    await cma.entries.get("missing")

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == 'fetch entry failed with status 404: {"sys":{"id":"NotFound"}}'

    @pytest.mark.asyncio
    async def test_error_body_is_truncated(self, cma_config):
        with respx.mock:
            respx.get(f"{ENV_URL}/entries/big").mock(
                return_value=httpx.Response(500, text="x" * (ERROR_BODY_LIMIT * 2))
            )
            async with CMAClient(cma_config) as cma:
                with pytest.raises(RemoteError) as exc_info:
                    await cma.entries.get("big")

        assert len(exc_info.value.body) == ERROR_BODY_LIMIT

    @pytest.mark.asyncio
    async def test_network_failure_raises_transport_error(self, cma_config):
        with respx.mock:
            respx.get(f"{ENV_URL}/entries/{SAMPLE_ENTRY_ID}").mock(
                side_effect=httpx.ConnectError("connection refused")
            )
            async with CMAClient(cma_config) as cma:
                with pytest.raises(TransportError, match="fetch entry"):
                    await cma.entries.get(SAMPLE_ENTRY_ID)

    @pytest.mark.asyncio
    async def test_control_character_in_id_raises_transport_error(self, cma_config):
        with respx.mock(assert_all_called=False) as router:
            async with CMAClient(cma_config) as cma:
                with pytest.raises(TransportError, match="fetch entry: InvalidURL"):
                    await cma.entries.get("E\x0b1")

        assert not router.calls

    @pytest.mark.asyncio
    async def test_malformed_json_raises_decode_error(self, cma_config):
        with respx.mock:
            respx.get(f"{ENV_URL}/entries/{SAMPLE_ENTRY_ID}").mock(
                return_value=httpx.Response(200, text="not json")
            )
            async with CMAClient(cma_config) as cma:
                with pytest.raises(DecodeError):
                    await cma.entries.get(SAMPLE_ENTRY_ID)

    @pytest.mark.asyncio
    async def test_non_object_json_raises_decode_error(self, cma_config):
        with respx.mock:
            respx.get(f"{ENV_URL}/entries/{SAMPLE_ENTRY_ID}").mock(
                return_value=httpx.Response(200, json=[1, 2, 3])
            )
            async with CMAClient(cma_config) as cma:
                with pytest.raises(DecodeError, match="JSON object"):
                    await cma.entries.get(SAMPLE_ENTRY_ID)
