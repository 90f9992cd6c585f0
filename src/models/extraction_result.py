# src/models/extraction_result.py

"""Transient result of scraping one product page."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of a single extraction attempt.

    ``id`` and ``date`` are always set; ``price`` and ``title`` are
    ``None`` whenever the corresponding step failed.
    """

    id: str
    url: str
    price: Decimal | None
    title: str | None
    date: datetime

    @property
    def has_price(self) -> bool:
        """True when a price was extracted."""
        return self.price is not None
