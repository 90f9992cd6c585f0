# src/services/product_catalog.py

"""Register tracked products and read them back with price trends."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.config.settings import Settings
from src.filters.product_validator import ProductValidator
from src.models.price_sample import PriceSample
from src.models.product import Product
from src.scrapers.product_page_scraper import ProductPageScraper
from src.services.price_analyzer import (
    PriceStats,
    analyze_price_history,
    summarize_prices,
)
from src.storage.price_history_db import PriceHistoryDB

logger = logging.getLogger("pricewatch.catalog")


class DuplicateProductError(Exception):
    """Raised when registering a URL that is already tracked."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Product with this URL already exists: {url}")
        self.url = url


class ProductNotFoundError(LookupError):
    """Raised when no active product is registered under a URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No tracked product for URL: {url}")
        self.url = url


@dataclass
class RegistrationResult:
    """A newly registered product and what its first scrape returned."""

    product: Product
    scraped_price: Decimal | None
    scraped_date: datetime
    sample: PriceSample | None = None


@dataclass
class ProductPriceView:
    """A product together with its two most recent prices."""

    product: Product
    latest_price: Decimal | None
    latest_price_date: datetime | None
    previous_price: Decimal | None
    previous_price_date: datetime | None
    price_change_rate: Decimal | None

    def to_dict(self) -> dict[str, object]:
        """Plain-JSON representation."""
        p = self.product

        def _dt(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        def _num(value: Decimal | None) -> float | None:
            return float(value) if value is not None else None

        return {
            "id": p.id,
            "title": p.title,
            "name": p.name,
            "url": p.url,
            "created_at": _dt(p.created_at),
            "updated_at": _dt(p.updated_at),
            "deleted_at": _dt(p.deleted_at),
            "latest_price": _num(self.latest_price),
            "latest_price_date": _dt(self.latest_price_date),
            "previous_price": _num(self.previous_price),
            "previous_price_date": _dt(self.previous_price_date),
            "price_change_rate": _num(self.price_change_rate),
        }


class ProductCatalog:
    """Front door for adding, listing and removing tracked products."""

    def __init__(
        self,
        store: PriceHistoryDB,
        scraper: ProductPageScraper | None = None,
        currency: str | None = None,
    ) -> None:
        self.store = store
        self._scraper = scraper
        self.currency = currency or Settings.DEFAULT_CURRENCY

    @property
    def scraper(self) -> ProductPageScraper:
        """The page scraper, created on first registration."""
        if self._scraper is None:
            self._scraper = ProductPageScraper()
        return self._scraper

    async def register(
        self, name: str | None, url: str | None,
    ) -> RegistrationResult:
        """Validate, scrape and store a new product.

        The product title falls back to ``name`` when the page has none.
        A first price sample is stored only if a price was extracted.

        Raises:
            ValidationError: on malformed input (nothing is fetched).
            DuplicateProductError: if ``url`` is already tracked.
        """
        clean_name, clean_url = ProductValidator.validate(name, url)

        existing = await asyncio.to_thread(
            self.store.get_product_by_url, clean_url,
        )
        if existing is not None:
            raise DuplicateProductError(clean_url)

        scraped = await asyncio.to_thread(self.scraper.extract, clean_url)

        product = await asyncio.to_thread(
            self.store.create_product,
            Product(
                id=scraped.id,
                url=scraped.url,
                name=clean_name,
                title=scraped.title or clean_name,
            ),
        )

        sample = None
        if scraped.price is not None:
            sample = await asyncio.to_thread(
                self.store.create_price_sample,
                PriceSample(
                    product_id=product.id,
                    price=scraped.price,
                    currency=self.currency,
                    date=scraped.date,
                ),
            )
        else:
            logger.warning(
                "Registered %s without an initial price", clean_url,
            )

        return RegistrationResult(
            product=product,
            scraped_price=scraped.price,
            scraped_date=scraped.date,
            sample=sample,
        )

    def _view(self, product: Product) -> ProductPriceView:
        samples = self.store.list_prices_for_product(product.id, limit=2)
        trend = analyze_price_history(samples)
        return ProductPriceView(
            product=product,
            latest_price=trend.latest.price if trend.latest else None,
            latest_price_date=trend.latest.date if trend.latest else None,
            previous_price=(
                trend.previous.price if trend.previous else None
            ),
            previous_price_date=(
                trend.previous.date if trend.previous else None
            ),
            price_change_rate=trend.rate_of_change,
        )

    def list_with_prices(
        self, **list_options: Any,
    ) -> list[ProductPriceView]:
        """List active products enriched with their latest price trend.

        ``list_options`` are passed to ``PriceHistoryDB.list_products``.
        """
        products = self.store.list_products(**list_options)
        return [self._view(p) for p in products]

    def _require(self, url: str) -> Product:
        product = self.store.get_product_by_url(url.strip())
        if product is None:
            raise ProductNotFoundError(url)
        return product

    def history(self, url: str) -> list[PriceSample]:
        """All price samples of a tracked URL, most recent first."""
        product = self._require(url)
        return self.store.list_prices_for_product(product.id)

    def stats(self, url: str) -> PriceStats | None:
        """Min / max / avg / count over a tracked URL's prices."""
        return summarize_prices(self.history(url))

    def remove(self, url: str) -> bool:
        """Soft-delete the product tracked under ``url``."""
        product = self.store.get_product_by_url(url.strip())
        if product is None:
            return False
        return self.store.delete_product(product.id)
