# src/services/tracking_job.py

"""Daily price tracking run over every active product."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from src.config.settings import Settings
from src.models.extraction_result import ExtractionResult
from src.models.price_sample import PriceSample, tracking_period
from src.models.product import Product
from src.scrapers.product_page_scraper import utc_now

logger = logging.getLogger("pricewatch.tracker")


class TrackingStore(Protocol):
    """Persistence operations a tracking run depends on."""

    def list_products(self) -> list[Product]: ...

    def list_prices_for_period(self, period: str) -> list[PriceSample]: ...

    def create_price_sample(self, sample: PriceSample) -> PriceSample: ...


class PageExtractor(Protocol):
    """Anything that turns a URL into an :class:`ExtractionResult`."""

    def extract(self, url: str) -> ExtractionResult: ...


@dataclass
class TrackingFailure:
    """A product whose extraction or persistence raised."""

    product_id: str
    url: str
    message: str


@dataclass
class TrackingReport:
    """Outcome of one tracking run."""

    period: str
    started_at: datetime
    finished_at: datetime | None = None
    total_products: int = 0
    already_tracked: int = 0
    attempted: int = 0
    recorded: int = 0
    no_price: int = 0
    skipped: bool = False
    samples: list[PriceSample] = field(
        default_factory=lambda: list[PriceSample]()
    )
    failures: list[TrackingFailure] = field(
        default_factory=lambda: list[TrackingFailure]()
    )


def select_products_to_track(
    products: list[Product], samples: list[PriceSample],
) -> list[Product]:
    """Products with no sample among ``samples``, in listing order."""
    tracked_ids = {s.product_id for s in samples}
    return [p for p in products if p.id not in tracked_ids]


class TrackingJob:
    """Record at most one price sample per product per tracking period.

    Products are processed one at a time in the order the store lists
    them.  A failure for one product is logged and recorded in the
    report; only failing to list products or existing samples aborts
    the run.
    """

    def __init__(
        self,
        store: TrackingStore,
        scraper: PageExtractor,
        currency: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.scraper = scraper
        self.currency = currency or Settings.DEFAULT_CURRENCY
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        """True while a run holds the job lock."""
        return self._lock.locked()

    async def _track_product(
        self, product: Product, report: TrackingReport,
    ) -> None:
        """Extract and, when priced, persist one product's sample."""
        result = await asyncio.to_thread(self.scraper.extract, product.url)
        if result.price is None:
            report.no_price += 1
            logger.warning(
                "No price extracted for product %s (%s); nothing recorded",
                product.id,
                product.url,
            )
            return

        sample = PriceSample(
            product_id=product.id,
            price=result.price,
            currency=self.currency,
            date=result.date,
        )
        stored = await asyncio.to_thread(
            self.store.create_price_sample, sample,
        )
        report.recorded += 1
        report.samples.append(stored)
        logger.info(
            "Recorded %s %s for product %s (period %s)",
            stored.price,
            stored.currency,
            product.id,
            sample.period,
        )

    async def _run_locked(self) -> TrackingReport:
        started = self._clock()
        period = tracking_period(started)
        report = TrackingReport(period=period, started_at=started)

        # Listing failures are fatal and propagate to the caller
        products = await asyncio.to_thread(self.store.list_products)
        existing = await asyncio.to_thread(
            self.store.list_prices_for_period, period,
        )

        to_track = select_products_to_track(products, existing)
        report.total_products = len(products)
        report.already_tracked = len(products) - len(to_track)
        logger.info(
            "Tracking run for %s: %d products, %d already tracked",
            period,
            report.total_products,
            report.already_tracked,
        )

        for product in to_track:
            report.attempted += 1
            try:
                await self._track_product(product, report)
            except Exception as exc:
                report.failures.append(
                    TrackingFailure(
                        product_id=product.id,
                        url=product.url,
                        message=str(exc),
                    )
                )
                logger.error(
                    "Tracking failed for product %s (%s): %s",
                    product.id,
                    product.url,
                    exc,
                    exc_info=True,
                )

        report.finished_at = self._clock()
        logger.info(
            "Tracking run for %s finished: %d recorded, %d without price, "
            "%d failed",
            period,
            report.recorded,
            report.no_price,
            len(report.failures),
        )
        return report

    async def run(self) -> TrackingReport:
        """Execute one tracking run.

        If a run is already in progress the call returns immediately
        with ``skipped=True`` and touches neither the store nor the web.
        """
        if self._lock.locked():
            now = self._clock()
            logger.warning("Tracking run already in progress; skipping")
            return TrackingReport(
                period=tracking_period(now),
                started_at=now,
                finished_at=now,
                skipped=True,
            )
        async with self._lock:
            return await self._run_locked()
