"""JSON over HTTP with retries, bearer auth and response classification."""

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import httpx

from ...domain.cancellation import CancellationToken
from ...domain.results import Failure, FailureKind, Ok, Result
from ...domain.retry import API_RETRY_POLICY, RetryingExecutor, RetryPolicy
from .token_cache import TokenCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "citation-sweep/0.1"
MAX_BODY_DETAIL = 2000
RETRYABLE_EXCEPTIONS = (httpx.TransportError, TimeoutError, ConnectionError)

STATUS_MESSAGES = {
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    409: "Conflict",
    422: "Unprocessable entity",
    429: "Too many requests",
    500: "Internal server error",
    502: "Bad gateway",
    503: "Service unavailable",
    504: "Gateway timeout",
}


class ProviderError(Exception):
    """Raised by payload parsers when a well-formed response reports an error."""

    def __init__(self, message: str, code: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def status_message(status: int, body: str = "") -> str:
    return STATUS_MESSAGES.get(status, f"HTTP {status}: {body}")


def http_failure(response: httpx.Response) -> Failure:
    """Failure for a non-2xx response. The raw body is kept in details."""
    status = response.status_code
    kind = FailureKind.UNAUTHORIZED if status == 401 else FailureKind.HTTP
    return Failure(
        kind,
        status_message(status, response.text),
        code=status,
        details={"body": response.text[:MAX_BODY_DETAIL]},
    )


def classify_response(response: httpx.Response, parse: Callable[[Any], T] | None = None) -> Result[T]:
    """Turn one HTTP response into a Result.

    Non-2xx responses become HTTP failures (401 is UNAUTHORIZED). A 2xx
    response with an empty body is a 204 failure. Bodies that cannot be
    decoded or do not fit `parse` are PARSE failures with code 422.
    """
    if not response.is_success:
        return http_failure(response)

    if not response.content.strip():
        return Failure(FailureKind.HTTP, "Empty response content", code=204)

    try:
        data = response.json()
    except ValueError as e:
        return Failure(FailureKind.PARSE, f"JSON deserialization error: {e}", code=422)

    if parse is None:
        return Ok(data)
    try:
        return Ok(parse(data))
    except ProviderError as e:
        return Failure(FailureKind.PROVIDER, e.message, code=e.code)
    except (ValueError, KeyError, TypeError) as e:
        return Failure(FailureKind.PARSE, f"Unexpected response shape: {e}", code=422)


class JsonHttpClient:
    """httpx client whose every call goes through a RetryingExecutor."""

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
        token_cache: TokenCache | None = None,
        policy: RetryPolicy = API_RETRY_POLICY,
        refresh_credentials: Callable[[], bool] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.token_cache = token_cache
        self.executor = RetryingExecutor(
            policy,
            refresh_credentials=refresh_credentials,
            retryable_exceptions=RETRYABLE_EXCEPTIONS,
        )
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, **(headers or {})},
            transport=transport,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        parse: Callable[[Any], T] | None = None,
        on_failure: Callable[[Failure], Result[T]] | None = None,
        token: CancellationToken | None = None,
    ) -> Result[T]:
        """Send a request, retrying per the client's policy.

        `on_failure` sees each failed attempt before the retry decision and
        may turn it into a final result (e.g. a "nothing found" 404).
        """
        return self.executor.execute(
            lambda: self._send_once(method, path, json=json, params=params, parse=parse, on_failure=on_failure),
            token,
        )

    def get(self, path: str, **kwargs: Any) -> Result[Any]:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Result[Any]:
        return self.request("POST", path, **kwargs)

    def get_text(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        token: CancellationToken | None = None,
    ) -> Result[str]:
        """Fetch a text body, for portals that only serve HTML."""

        def attempt() -> Result[str]:
            response = self._client.get(path, params=params, headers=self._auth_headers())
            if not response.is_success:
                return http_failure(response)
            if not response.text.strip():
                return Failure(FailureKind.HTTP, "Empty response content", code=204)
            return Ok(response.text)

        return self.executor.execute(attempt, token)

    def _send_once(
        self,
        method: str,
        path: str,
        *,
        json: Any,
        params: Mapping[str, Any] | None,
        parse: Callable[[Any], T] | None,
        on_failure: Callable[[Failure], Result[T]] | None,
    ) -> Result[T]:
        logger.debug(f"{method} {path}")
        response = self._client.request(method, path, json=json, params=params, headers=self._auth_headers())
        result = classify_response(response, parse)
        if isinstance(result, Failure):
            logger.debug(f"{method} {path} failed: {result.code} {result.message}")
            if on_failure is not None:
                return on_failure(result)
        return result

    def _auth_headers(self) -> dict[str, str]:
        if self.token_cache is None:
            return {}
        bearer = self.token_cache.get()
        return {"Authorization": f"Bearer {bearer}"} if bearer else {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "JsonHttpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
