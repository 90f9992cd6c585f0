# src/models/price_sample.py

"""Price observation model and tracking-period helpers."""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime (naive means UTC)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def tracking_period(moment: datetime) -> str:
    """Canonical period key (``YYYY-MM-DD``, UTC day) for ``moment``.

    Both the "already tracked" lookup and the stored sample use this key,
    so they always compare equal within one UTC calendar day.
    """
    return as_utc(moment).date().isoformat()


@dataclass
class PriceSample:
    """A single price observation for a product at a point in time.

    ``id`` is assigned by the store on insert.
    """

    product_id: str
    price: Decimal | None
    currency: str
    date: datetime
    id: int | None = None
    deleted_at: datetime | None = None

    @property
    def period(self) -> str:
        """The tracking period this sample belongs to."""
        return tracking_period(self.date)
