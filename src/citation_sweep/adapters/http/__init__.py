"""HTTP transport adapters."""

from .client import JsonHttpClient, ProviderError, classify_response, http_failure, status_message
from .token_cache import TokenCache

__all__ = [
    "JsonHttpClient",
    "ProviderError",
    "TokenCache",
    "classify_response",
    "http_failure",
    "status_message",
]
