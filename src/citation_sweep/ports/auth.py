"""Auth port - interface for obtaining backend credentials."""

from abc import ABC, abstractmethod


class AuthPort(ABC):
    """Interface for authorizing against the system of record."""

    @abstractmethod
    def try_authorize(self) -> bool:
        """Obtain a fresh credential.

        On success the credential is placed in the shared token cache that
        the HTTP layer consults; callers never see it directly.
        """
        pass
