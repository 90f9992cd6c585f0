# tests/test_product_catalog.py

"""Tests for ProductCatalog registration and enriched listing."""

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

from src.filters.product_validator import ValidationError
from src.models.extraction_result import ExtractionResult
from src.models.price_sample import PriceSample
from src.scrapers.fingerprint import fingerprint
from src.scrapers.product_page_scraper import ProductPageScraper
from src.services.product_catalog import (
    DuplicateProductError,
    ProductCatalog,
    ProductNotFoundError,
)
from src.storage.price_history_db import PriceHistoryDB

URL = "https://www.bol.com/nl/nl/p/airfryer/9200000055838389/"
NOW = datetime(2026, 3, 1, 12, 15, tzinfo=timezone.utc)


def _result(
    url: str, price: str | None, title: str | None = "Airfryer XL",
) -> ExtractionResult:
    return ExtractionResult(
        id=fingerprint(url),
        url=url,
        price=Decimal(price) if price is not None else None,
        title=title,
        date=NOW,
    )


class TestProductCatalog(unittest.IsolatedAsyncioTestCase):
    """ProductCatalog against a temporary database and a mocked scraper."""

    def setUp(self) -> None:
        self.db = PriceHistoryDB(
            db_path=Path(tempfile.mkdtemp()) / "catalog.db",
        )
        self.scraper = MagicMock(spec=ProductPageScraper)
        self.catalog = ProductCatalog(self.db, self.scraper, currency="EUR")

    def tearDown(self) -> None:
        self.db.close()

    def _add_sample(self, product_id: str, price: str, days_ago: int) -> None:
        self.db.create_price_sample(
            PriceSample(
                product_id=product_id,
                price=Decimal(price),
                currency="EUR",
                date=NOW - timedelta(days=days_ago),
            )
        )

    # ── register ─────────────────────────────────────────

    async def test_register_creates_product_and_sample(self) -> None:
        """A priced page yields a product plus an initial sample."""
        self.scraper.extract.return_value = _result(URL, "38.90")

        result = await self.catalog.register("Airfryer", URL)

        self.assertEqual(result.product.id, fingerprint(URL))
        self.assertEqual(result.product.title, "Airfryer XL")
        self.assertEqual(result.product.name, "Airfryer")
        self.assertEqual(result.scraped_price, Decimal("38.90"))
        history = self.db.list_prices_for_product(result.product.id)
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].currency, "EUR")

    async def test_register_without_price(self) -> None:
        """No price means a product but no sample; title falls back to name."""
        self.scraper.extract.return_value = _result(URL, None, title=None)

        result = await self.catalog.register("  Airfryer  ", URL)

        self.assertIsNone(result.sample)
        self.assertEqual(result.product.title, "Airfryer")
        self.assertEqual(
            self.db.list_prices_for_product(result.product.id), [],
        )

    async def test_register_duplicate_rejected(self) -> None:
        """A URL can only be registered once; no second fetch happens."""
        self.scraper.extract.return_value = _result(URL, "38.90")
        await self.catalog.register("Airfryer", URL)

        with self.assertRaises(DuplicateProductError):
            await self.catalog.register("Again", URL)
        self.assertEqual(self.scraper.extract.call_count, 1)

    async def test_register_invalid_input_never_fetches(self) -> None:
        """Validation happens before any extraction."""
        with self.assertRaises(ValidationError) as ctx:
            await self.catalog.register("", "not a url")
        self.assertEqual(len(ctx.exception.errors), 2)
        self.scraper.extract.assert_not_called()

    async def test_register_after_remove(self) -> None:
        """A removed product can be registered again."""
        self.scraper.extract.return_value = _result(URL, "38.90")
        await self.catalog.register("Airfryer", URL)
        self.assertTrue(self.catalog.remove(URL))

        result = await self.catalog.register("Airfryer v2", URL)
        self.assertEqual(result.product.name, "Airfryer v2")

    # ── list_with_prices ─────────────────────────────────

    async def test_list_with_prices(self) -> None:
        """Views carry latest, previous and the rate of change."""
        self.scraper.extract.return_value = _result(URL, None)
        product = (await self.catalog.register("Airfryer", URL)).product
        self._add_sample(product.id, "39.99", days_ago=1)
        self._add_sample(product.id, "38.90", days_ago=0)

        views = self.catalog.list_with_prices()

        self.assertEqual(len(views), 1)
        view = views[0]
        self.assertEqual(view.latest_price, Decimal("38.90"))
        self.assertEqual(view.previous_price, Decimal("39.99"))
        self.assertEqual(view.price_change_rate, Decimal("-2.73"))
        self.assertEqual(view.latest_price_date, NOW)
        payload = view.to_dict()
        self.assertEqual(payload["price_change_rate"], -2.73)
        self.assertEqual(payload["latest_price"], 38.9)

    async def test_list_with_single_price(self) -> None:
        """One sample: latest only, no previous, no rate."""
        self.scraper.extract.return_value = _result(URL, "25.50")
        await self.catalog.register("Airfryer", URL)

        view = self.catalog.list_with_prices()[0]

        self.assertEqual(view.latest_price, Decimal("25.50"))
        self.assertIsNone(view.previous_price)
        self.assertIsNone(view.previous_price_date)
        self.assertIsNone(view.price_change_rate)

    async def test_list_with_wide_price(self) -> None:
        """A price wider than 28 digits does not break the listing."""
        wide = "1" * 30 + ".00"
        self.scraper.extract.return_value = _result(URL, wide)
        product = (await self.catalog.register("Airfryer", URL)).product
        self._add_sample(product.id, "1.00", days_ago=1)

        view = self.catalog.list_with_prices()[0]

        self.assertEqual(view.latest_price, Decimal(wide))
        self.assertEqual(view.price_change_rate, Decimal("1" * 29 + "000.00"))

    def test_list_empty(self) -> None:
        """No products yields an empty list."""
        self.assertEqual(self.catalog.list_with_prices(), [])

    # ── history / stats / remove ─────────────────────────

    async def test_history_and_stats(self) -> None:
        """History is newest first; stats summarise it."""
        self.scraper.extract.return_value = _result(URL, "30.00")
        product = (await self.catalog.register("Airfryer", URL)).product
        self._add_sample(product.id, "20.00", days_ago=2)

        history = self.catalog.history(URL)
        self.assertEqual(
            [s.price for s in history], [Decimal("30.00"), Decimal("20.00")],
        )
        stats = self.catalog.stats(URL)
        assert stats is not None
        self.assertEqual(stats.avg, Decimal("25.00"))

    def test_history_unknown_url(self) -> None:
        """Unknown URLs raise ProductNotFoundError."""
        with self.assertRaises(ProductNotFoundError):
            self.catalog.history("https://example.com/unknown")

    def test_remove_unknown_url(self) -> None:
        """Removing an unknown URL returns False."""
        self.assertFalse(self.catalog.remove("https://example.com/unknown"))


if __name__ == "__main__":
    unittest.main()
