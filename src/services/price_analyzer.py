# src/services/price_analyzer.py

"""Derived price fields over a product's price history."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from src.models.price_sample import PriceSample

logger = logging.getLogger("pricewatch.analyzer")

_CENTS = Decimal("0.01")
_MIN_PRECISION = 28


@dataclass(frozen=True)
class PriceTrend:
    """The two most recent samples and the percentage change between them."""

    latest: PriceSample | None
    previous: PriceSample | None
    rate_of_change: Decimal | None


@dataclass(frozen=True)
class PriceStats:
    """Aggregate statistics over the priced samples of a series."""

    count: int
    min: Decimal
    max: Decimal
    avg: Decimal


def _precision_for(*values: Decimal) -> int:
    """Context precision that fits ``values`` and their ratios at cent scale."""
    widest = max(abs(v.adjusted()) for v in values)
    return max(_MIN_PRECISION, 2 * widest + 10)


def rate_of_change(
    latest: Decimal | None, previous: Decimal | None,
) -> Decimal | None:
    """Percentage change from ``previous`` to ``latest``, rounded half-up.

    ``None`` when either price is missing, ``previous`` is zero, or the
    values cannot be represented (e.g. non-finite).
    """
    if latest is None or previous is None or previous == 0:
        return None
    try:
        with localcontext() as ctx:
            ctx.prec = _precision_for(latest, previous)
            change = (latest - previous) / previous * 100
            return change.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        logger.warning(
            "Cannot compute rate of change from %s to %s", previous, latest,
        )
        return None


def analyze_price_history(samples: Sequence[PriceSample]) -> PriceTrend:
    """Derive latest, previous and rate of change from a series.

    ``samples`` must be ordered most recent first.
    """
    latest = samples[0] if len(samples) > 0 else None
    previous = samples[1] if len(samples) > 1 else None
    rate = None
    if latest is not None and previous is not None:
        rate = rate_of_change(latest.price, previous.price)
    return PriceTrend(latest=latest, previous=previous, rate_of_change=rate)


def summarize_prices(samples: Sequence[PriceSample]) -> PriceStats | None:
    """Compute min / max / avg / count over samples that carry a price.

    Returns ``None`` when no sample is priced or the prices cannot be
    averaged.
    """
    prices = [s.price for s in samples if s.price is not None]
    if not prices:
        return None
    try:
        with localcontext() as ctx:
            ctx.prec = _precision_for(*prices) + len(str(len(prices)))
            avg = (sum(prices, Decimal(0)) / len(prices)).quantize(
                _CENTS, rounding=ROUND_HALF_UP,
            )
            return PriceStats(
                count=len(prices), min=min(prices), max=max(prices), avg=avg,
            )
    except InvalidOperation:
        logger.warning("Cannot summarise %d prices", len(prices))
        return None
