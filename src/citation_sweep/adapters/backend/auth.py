"""Sign-in against the fleet backend."""

import logging
import threading

from ...domain.results import Failure, Ok
from ...ports.auth import AuthPort
from ..http.client import JsonHttpClient
from ..http.token_cache import TokenCache
from .dtos import AuthDto, SignInRequest, unwrap_envelope

logger = logging.getLogger(__name__)

SIGNIN_PATH = "UserAuth/signin"


def _parse_auth(data: object) -> AuthDto:
    return AuthDto.model_validate(unwrap_envelope(data))


class BackendAuthAdapter(AuthPort):
    """Obtains a bearer token and stores it in the shared TokenCache.

    The client passed in must not itself refresh credentials.
    """

    def __init__(self, client: JsonHttpClient, token_cache: TokenCache, email: str, password: str) -> None:
        self.client = client
        self.token_cache = token_cache
        self.email = email
        self.password = password
        self._lock = threading.Lock()

    def try_authorize(self) -> bool:
        with self._lock:
            self.token_cache.clear()
            logger.info(f"Starting sign-in process for user: {self.email}")

            request = SignInRequest(email=self.email, password=self.password)
            result = self.client.post(SIGNIN_PATH, json=request.model_dump(by_alias=True), parse=_parse_auth)

            if isinstance(result, Ok) and result.value.token:
                self.token_cache.cache(result.value.token, result.value.token_expired)
                logger.info("Sign-in successful")
                return True

            if isinstance(result, Failure):
                logger.error(f"Sign-in failed: {result.code} {result.message}")
            else:
                logger.error("Sign-in returned no token")
            return False
