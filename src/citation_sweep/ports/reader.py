"""Reader port - interface for one external citation source."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.cancellation import CancellationToken
    from ..domain.models import CitationRecord, Provider
    from ..domain.results import Result


class CitationReaderPort(ABC):
    """Fetches and normalizes citations for a plate from one provider."""

    @property
    @abstractmethod
    def provider(self) -> "Provider":
        """The provider this reader serves."""
        pass

    @abstractmethod
    def read_citations(
        self,
        plate: str,
        state: str,
        token: "CancellationToken | None" = None,
    ) -> "Result[list[CitationRecord]]":
        """Look up citations for a plate.

        "No citations found" is Ok([]), never a Failure. Ordinary no-data
        conditions must not raise.
        """
        pass
