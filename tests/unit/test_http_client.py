"""Unit tests for JsonHttpClient using httpx.MockTransport."""

import json

import httpx
import pytest

from citation_sweep.adapters.http.client import JsonHttpClient, ProviderError, classify_response, status_message
from citation_sweep.adapters.http.token_cache import TokenCache
from citation_sweep.domain.results import Failure, FailureKind, Ok
from citation_sweep.domain.retry import RetryPolicy

FAST = RetryPolicy(max_attempts=3, base_delay=0.001)
BASE_URL = "https://backend.test/api/"


def response(status: int, content: bytes = b"", json: object = None) -> httpx.Response:
    request = httpx.Request("GET", "https://backend.test/api/x")
    if json is not None:
        return httpx.Response(status, json=json, request=request)
    return httpx.Response(status, content=content, request=request)


class TestStatusMessage:
    @pytest.mark.parametrize(
        ("status", "message"),
        [(400, "Bad request"), (404, "Not found"), (429, "Too many requests"), (504, "Gateway timeout")],
    )
    def test_known(self, status: int, message: str) -> None:
        assert status_message(status) == message

    def test_unknown(self) -> None:
        assert status_message(418, "teapot") == "HTTP 418: teapot"


class TestClassifyResponse:
    """Tests for turning responses into Results."""

    def test_ok(self) -> None:
        assert classify_response(response(200, json={"a": 1})) == Ok({"a": 1})

    def test_parse_applied(self) -> None:
        assert classify_response(response(200, json={"a": 1}), lambda d: d["a"]) == Ok(1)

    def test_empty_body(self) -> None:
        result = classify_response(response(200))
        assert result.code == 204
        assert result.message == "Empty response content"

    def test_invalid_json(self) -> None:
        result = classify_response(response(200, content=b"<html>"))
        assert result.kind == FailureKind.PARSE
        assert result.code == 422

    def test_shape_mismatch(self) -> None:
        result = classify_response(response(200, json=[]), lambda d: d["missing"])
        assert result.kind == FailureKind.PARSE
        assert result.code == 422

    def test_provider_error(self) -> None:
        def parse(data: object) -> object:
            raise ProviderError("No violation found", code=7)

        result = classify_response(response(200, json={}), parse)
        assert result == Failure(FailureKind.PROVIDER, "No violation found", code=7)

    def test_unauthorized(self) -> None:
        result = classify_response(response(401, content=b"expired"))
        assert result.kind == FailureKind.UNAUTHORIZED
        assert result.is_unauthorized

    def test_http_error_keeps_body(self) -> None:
        result = classify_response(response(503, content=b"maintenance"))
        assert result.kind == FailureKind.HTTP
        assert result.message == "Service unavailable"
        assert result.details["body"] == "maintenance"


class TestJsonHttpClient:
    """Tests for the retrying client."""

    def test_bearer_token_and_base_url(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        cache = TokenCache()
        cache.cache("secret")
        client = JsonHttpClient(BASE_URL, token_cache=cache, policy=FAST, transport=httpx.MockTransport(handler))

        assert client.get("ExternalVehicles", params={"page": "1"}) == Ok({"ok": True})
        assert str(seen[0].url) == "https://backend.test/api/ExternalVehicles?page=1"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    def test_retries_server_errors(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(502)
            return httpx.Response(200, json=[1, 2])

        client = JsonHttpClient(BASE_URL, policy=FAST, transport=httpx.MockTransport(handler))

        assert client.get("x") == Ok([1, 2])
        assert len(calls) == 3

    def test_transport_error_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        client = JsonHttpClient(BASE_URL, policy=FAST, transport=httpx.MockTransport(handler))
        result = client.get("x")

        assert result.kind == FailureKind.TRANSPORT
        assert result.code == 500
        assert len(calls) == 3

    def test_read_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = JsonHttpClient(BASE_URL, policy=RetryPolicy(max_attempts=1), transport=httpx.MockTransport(handler))
        result = client.get("x")

        assert result.kind == FailureKind.TIMEOUT
        assert result.code == 408

    def test_refresh_on_401(self) -> None:
        cache = TokenCache()
        cache.cache("stale")

        def refresh() -> bool:
            cache.cache("fresh")
            return True

        def handler(request: httpx.Request) -> httpx.Response:
            if request.headers.get("Authorization") == "Bearer fresh":
                return httpx.Response(200, json={"ok": True})
            return httpx.Response(401)

        client = JsonHttpClient(
            BASE_URL,
            token_cache=cache,
            policy=FAST,
            refresh_credentials=refresh,
            transport=httpx.MockTransport(handler),
        )

        assert client.get("x") == Ok({"ok": True})

    def test_on_failure_short_circuits_retries(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, text="No violation found for plate")

        client = JsonHttpClient(BASE_URL, policy=FAST, transport=httpx.MockTransport(handler))
        result = client.get("x", on_failure=lambda failure: Ok([]))

        assert result == Ok([])
        assert len(calls) == 1

    def test_post_json(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"reason": 0})

        with JsonHttpClient(BASE_URL, policy=FAST, transport=httpx.MockTransport(handler)) as client:
            client.post("UserAuth/signin", json={"email": "a@b.c"})

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"email": "a@b.c"}

    def test_get_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>ok</html>")

        client = JsonHttpClient(BASE_URL, policy=FAST, transport=httpx.MockTransport(handler))
        assert client.get_text("portal") == Ok("<html>ok</html>")

    def test_get_text_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="denied")

        client = JsonHttpClient(BASE_URL, policy=RetryPolicy(max_attempts=1), transport=httpx.MockTransport(handler))
        result = client.get_text("portal")
        assert result.code == 403
        assert result.message == "Forbidden"
