# tests/test_product_model.py

"""Tests for the Product, PriceSample and ExtractionResult models."""

import dataclasses
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from src.models.extraction_result import ExtractionResult
from src.models.price_sample import PriceSample, as_utc, tracking_period
from src.models.product import Product

NOW = datetime(2026, 3, 1, 12, 15, tzinfo=timezone.utc)


class TestProductModel(unittest.TestCase):
    """Product dataclass unit tests."""

    def test_defaults(self) -> None:
        """Optional fields default to None and the product is active."""
        product = Product(id="abc", url="https://example.com/p", name="X")
        self.assertIsNone(product.title)
        self.assertIsNone(product.created_at)
        self.assertTrue(product.is_active)

    def test_soft_deleted_is_inactive(self) -> None:
        """A deletion timestamp makes the product inactive."""
        product = Product(
            id="abc", url="https://example.com/p", name="X", deleted_at=NOW,
        )
        self.assertFalse(product.is_active)

    def test_equality(self) -> None:
        """Two products with identical fields are equal."""
        a = Product(id="1", url="u", name="A")
        b = Product(id="1", url="u", name="A")
        self.assertEqual(a, b)


class TestTrackingPeriod(unittest.TestCase):
    """UTC day keys."""

    def test_utc_day(self) -> None:
        """Period is the ISO date of the UTC day."""
        self.assertEqual(tracking_period(NOW), "2026-03-01")

    def test_offset_converted(self) -> None:
        """Aware non-UTC times are converted before taking the day."""
        tokyo = timezone(timedelta(hours=9))
        moment = datetime(2026, 3, 2, 8, 0, tzinfo=tokyo)
        self.assertEqual(tracking_period(moment), "2026-03-01")

    def test_naive_is_utc(self) -> None:
        """Naive datetimes are taken as UTC."""
        naive = datetime(2026, 3, 1, 23, 59)
        self.assertEqual(as_utc(naive).tzinfo, timezone.utc)
        self.assertEqual(tracking_period(naive), "2026-03-01")


class TestPriceSample(unittest.TestCase):
    """PriceSample fields and period."""

    def test_period_property(self) -> None:
        """period follows the sample date."""
        sample = PriceSample(
            product_id="p", price=Decimal("38.90"), currency="EUR", date=NOW,
        )
        self.assertEqual(sample.period, "2026-03-01")
        self.assertIsNone(sample.id)

    def test_null_price_allowed(self) -> None:
        """A sample may carry no price."""
        sample = PriceSample(
            product_id="p", price=None, currency="EUR", date=NOW,
        )
        self.assertIsNone(sample.price)


class TestExtractionResult(unittest.TestCase):
    """ExtractionResult is an immutable value."""

    def test_has_price(self) -> None:
        """has_price reflects whether a price was found."""
        found = ExtractionResult("id", "u", Decimal("1"), "T", NOW)
        missing = ExtractionResult("id", "u", None, None, NOW)
        self.assertTrue(found.has_price)
        self.assertFalse(missing.has_price)

    def test_frozen(self) -> None:
        """Fields cannot be reassigned."""
        result = ExtractionResult("id", "u", None, None, NOW)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            result.price = Decimal("2")  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
