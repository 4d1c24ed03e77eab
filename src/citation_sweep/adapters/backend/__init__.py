"""Fleet backend adapters: auth, vehicle list and violation sink."""

from dataclasses import dataclass, field

import httpx

from ...config import BackendConfig
from ...domain.registry import ConfigError
from ...domain.retry import API_RETRY_POLICY
from ..http.client import JsonHttpClient
from ..http.token_cache import TokenCache
from .auth import BackendAuthAdapter
from .sink import BackendViolationSink
from .vehicles import BackendVehicleAdapter

__all__ = [
    "BackendAdapters",
    "BackendAuthAdapter",
    "BackendVehicleAdapter",
    "BackendViolationSink",
    "create_backend_adapters",
]


@dataclass
class BackendAdapters:
    auth: BackendAuthAdapter
    vehicles: BackendVehicleAdapter
    sink: BackendViolationSink
    token_cache: TokenCache
    clients: list[JsonHttpClient] = field(default_factory=list)

    def close(self) -> None:
        for client in self.clients:
            client.close()


def create_backend_adapters(
    config: BackendConfig, transport: httpx.BaseTransport | None = None
) -> BackendAdapters:
    """Wire the backend adapters around one shared token cache.

    The sign-in client has no refresher; the API client refreshes through
    the auth adapter on a 401.
    """
    if not config.base_url:
        raise ConfigError("backend.base_url is not configured")

    token_cache = TokenCache()
    auth_client = JsonHttpClient(
        config.base_url,
        timeout=config.timeout,
        policy=API_RETRY_POLICY,
        transport=transport,
    )
    auth = BackendAuthAdapter(auth_client, token_cache, config.email, config.password.get_secret_value())

    api_client = JsonHttpClient(
        config.base_url,
        timeout=config.timeout,
        token_cache=token_cache,
        policy=API_RETRY_POLICY,
        refresh_credentials=auth.try_authorize,
        transport=transport,
    )
    return BackendAdapters(
        auth=auth,
        vehicles=BackendVehicleAdapter(api_client),
        sink=BackendViolationSink(api_client),
        token_cache=token_cache,
        clients=[auth_client, api_client],
    )
