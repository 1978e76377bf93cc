"""Tests for CredentialValidator retry, routing and classification."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from avatarlink.models import ErrorKind, PlatformId
from avatarlink.validator import CredentialValidator

HEYGEN_URL = "https://api.heygen.com/v2/avatars"


class FlakyUpstream:
    """MockTransport handler that fails to connect a set number of times."""

    def __init__(self, failures: int, exc_type: type[Exception] = httpx.ConnectError) -> None:
        self.failures = failures
        self.exc_type = exc_type
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_type("connection failed", request=request)
        return httpx.Response(200, json={"ok": True})


def make_validator(handler, **kwargs) -> tuple[CredentialValidator, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("retry_base_delay", 0.0)
    return CredentialValidator(client=client, **kwargs), client


class TestEmptyKey:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("api_key", ["", "   ", "\t\n"])
    @pytest.mark.parametrize("platform", list(PlatformId))
    async def test_empty_key_never_hits_network(
        self, httpx_mock, platform: PlatformId, api_key: str
    ) -> None:
        async with CredentialValidator() as validator:
            outcome = await validator.validate(platform, api_key)

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.VALIDATION
        assert outcome.message == "API key cannot be empty."
        assert httpx_mock.get_requests() == []


class TestHttpOutcomes:
    @pytest.mark.asyncio
    async def test_200_is_valid(self, httpx_mock) -> None:
        httpx_mock.add_response(url=HEYGEN_URL, json={"data": {"avatars": []}})

        async with CredentialValidator() as validator:
            outcome = await validator.validate(PlatformId.HEYGEN, "sk_live_abc")

        assert outcome.is_valid is True
        assert outcome.error_kind is None

    @pytest.mark.asyncio
    async def test_401_is_key_invalid_without_retry(self, httpx_mock) -> None:
        httpx_mock.add_response(url=HEYGEN_URL, status_code=401, json={"error": "unauthorized"})

        async with CredentialValidator(retry_base_delay=0.0) as validator:
            outcome = await validator.validate(PlatformId.HEYGEN, "bad")

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.KEY_INVALID
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_403_is_key_invalid(self, httpx_mock) -> None:
        httpx_mock.add_response(url="https://api.d-id.com/credits", status_code=403)

        async with CredentialValidator() as validator:
            outcome = await validator.validate(PlatformId.DID, "restricted")

        assert outcome.error_kind == ErrorKind.KEY_INVALID

    @pytest.mark.asyncio
    async def test_rate_limited_scenario(self, httpx_mock) -> None:
        """Platform B with a test key and a 429 upstream."""
        httpx_mock.add_response(url=HEYGEN_URL, status_code=429)

        async with CredentialValidator() as validator:
            outcome = await validator.validate_for_platform("heygen", "sk_test_123")

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.RATE_LIMITED
        assert "rate limit" in outcome.message
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self, httpx_mock) -> None:
        httpx_mock.add_response(url="https://api.elevenlabs.io/v1/user", status_code=503)

        async with CredentialValidator(retry_base_delay=0.0) as validator:
            outcome = await validator.validate(PlatformId.ELEVENLABS, "xi_key")

        assert outcome.error_kind == ErrorKind.SERVER_ERROR
        assert outcome.status_code == 503
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_unexpected_status_echoed(self, httpx_mock) -> None:
        httpx_mock.add_response(url=HEYGEN_URL, status_code=404)

        async with CredentialValidator() as validator:
            outcome = await validator.validate(PlatformId.HEYGEN, "key")

        assert outcome.error_kind == ErrorKind.UNKNOWN
        assert "404" in outcome.message


class TestRetry:
    @pytest.mark.asyncio
    async def test_connect_error_retried_once_then_network(self, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=HEYGEN_URL)
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=HEYGEN_URL)

        async with CredentialValidator(retry_base_delay=0.0) as validator:
            outcome = await validator.validate(PlatformId.HEYGEN, "key")

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.NETWORK
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_timeout_retried_once_then_timeout(self, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=HEYGEN_URL)
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=HEYGEN_URL)

        async with CredentialValidator(retry_base_delay=0.0) as validator:
            outcome = await validator.validate(PlatformId.HEYGEN, "key")

        assert outcome.error_kind == ErrorKind.TIMEOUT
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_recovers_after_one_connect_failure(self) -> None:
        upstream = FlakyUpstream(failures=1)
        validator, client = make_validator(upstream)

        outcome = await validator.validate(PlatformId.ELEVENLABS, "key")

        assert outcome.is_valid is True
        assert upstream.calls == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_attempts_capped_even_if_later_attempt_would_succeed(self) -> None:
        """Two connect failures exhaust the budget; a third attempt is never made."""
        upstream = FlakyUpstream(failures=2)
        validator, client = make_validator(upstream)

        outcome = await validator.validate(PlatformId.DID, "key")

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.NETWORK
        assert upstream.calls == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_backoff_doubles(self) -> None:
        upstream = FlakyUpstream(failures=5)
        validator, client = make_validator(upstream, max_attempts=3, retry_base_delay=1.0)

        with patch("avatarlink.probes.base.asyncio.sleep", new_callable=AsyncMock) as sleep:
            outcome = await validator.validate(PlatformId.HEYGEN, "key")

        assert outcome.error_kind == ErrorKind.NETWORK
        assert upstream.calls == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_default_policy_sleeps_once_for_one_second(self) -> None:
        upstream = FlakyUpstream(failures=5)
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        validator = CredentialValidator(client=client)

        with patch("avatarlink.probes.base.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await validator.validate(PlatformId.HEYGEN, "key")

        sleep.assert_awaited_once_with(1.0)
        assert upstream.calls == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_cancellation_during_backoff_abandons_retries(self) -> None:
        first_attempt = asyncio.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            first_attempt.set()
            raise httpx.ConnectError("Connection refused", request=request)

        calls = []
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: calls.append(r) or handler(r))
        )
        validator = CredentialValidator(client=client, retry_base_delay=30.0)

        task = asyncio.create_task(validator.validate(PlatformId.HEYGEN, "key"))
        await first_attempt.wait()
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(calls) == 1
        await client.aclose()


class TestUnexpectedErrors:
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_unknown(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("boom")

        validator, client = make_validator(handler)

        outcome = await validator.validate(PlatformId.HEYGEN, "key")

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.UNKNOWN
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_transport_http_error_is_unknown_and_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.DecodingError("bad gzip", request=request)

        validator, client = make_validator(handler)

        outcome = await validator.validate(PlatformId.HEYGEN, "key")

        assert outcome.error_kind == ErrorKind.UNKNOWN
        assert len(calls) == 1
        await client.aclose()


class TestRouting:
    @pytest.mark.asyncio
    async def test_unknown_platform(self, httpx_mock) -> None:
        async with CredentialValidator() as validator:
            outcome = await validator.validate_for_platform("synthesia", "key")

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.UNKNOWN
        assert "unknown platform" in outcome.message.lower()
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw,url",
        [
            ("did", "https://api.d-id.com/credits"),
            (" HeyGen ", HEYGEN_URL),
            (PlatformId.ELEVENLABS, "https://api.elevenlabs.io/v1/user"),
        ],
    )
    async def test_routes_to_platform_probe(self, httpx_mock, raw, url: str) -> None:
        httpx_mock.add_response(url=url, json={"ok": True})

        async with CredentialValidator() as validator:
            outcome = await validator.validate_for_platform(raw, "key")

        assert outcome.is_valid is True
        assert str(httpx_mock.get_requests()[0].url) == url

    def test_probe_for(self) -> None:
        validator = CredentialValidator()
        assert validator.probe_for(PlatformId.DID).probe_url == "https://api.d-id.com/credits"

    @pytest.mark.asyncio
    async def test_shared_client_not_closed(self) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(FlakyUpstream(failures=0)))

        async with CredentialValidator(client=client) as validator:
            await validator.validate(PlatformId.DID, "key")

        assert client.is_closed is False
        await client.aclose()


class TestMalformedKeys:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("api_key", ["sk_abc\r\nX-Injected: 1", "sk_abc\n", "sk\x00abc"])
    async def test_control_characters_rejected_without_request(
        self, httpx_mock, api_key: str
    ) -> None:
        async with CredentialValidator() as validator:
            outcome = await validator.validate(PlatformId.HEYGEN, f"{api_key}tail")

        assert outcome.is_valid is False
        assert outcome.error_kind == ErrorKind.VALIDATION
        assert "cannot be sent" in outcome.message
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_request_refused_by_httpx_is_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.LocalProtocolError("Illegal header value")

        validator, client = make_validator(handler, retry_base_delay=1.0)

        with patch("avatarlink.probes.base.asyncio.sleep", new_callable=AsyncMock) as sleep:
            outcome = await validator.validate(PlatformId.ELEVENLABS, "xi_key")

        assert outcome.error_kind == ErrorKind.VALIDATION
        assert "Network error" not in outcome.message
        assert len(calls) == 1
        sleep.assert_not_awaited()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unsupported_protocol_is_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.UnsupportedProtocol("Request URL has an unsupported protocol")

        validator, client = make_validator(handler)

        outcome = await validator.validate(PlatformId.DID, "key")

        assert outcome.error_kind == ErrorKind.UNKNOWN
        assert len(calls) == 1
        await client.aclose()
