"""
Protocol interfaces for the forecast projector's collaborators.

The projector depends on these abstractions rather than on concrete debt
schedules or random number generators, so callers can substitute
pre-computed debt service or pre-resolved grant renewals.
"""

from typing import Iterable, Optional, Protocol


class DebtServiceProvider(Protocol):
    """
    Provides annual debt service by fund and by instrument.

    Implemented by ``DebtServiceLookup``; any object with these methods can
    be handed to the projector.
    """

    def annual_debt_service(
        self, fund_id: str, year: int, exclude: Optional[Iterable[str]] = None
    ) -> float:
        """
        Get total debt service a fund pays in a fiscal year.

        Args:
            fund_id: Paying fund
            year: Fiscal year
            exclude: Instrument ids to leave out of the total

        Returns:
            Annual debt service
        """
        ...

    def instrument_debt_service(self, instrument_id: str, year: int) -> float:
        """Get debt service of a single instrument in a fiscal year."""
        ...


class RandomSource(Protocol):
    """
    Source of uniform draws in ``[0, 1)``.

    ``numpy.random.Generator`` satisfies this protocol. Seed it (or supply a
    stub returning fixed values) to make grant renewal outcomes reproducible.
    """

    def random(self) -> float:
        """Draw a uniform value in ``[0, 1)``."""
        ...
