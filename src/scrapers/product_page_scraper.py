# src/scrapers/product_page_scraper.py

"""Price and title extraction from a single product page."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from bs4 import BeautifulSoup, Comment, Tag

from src.models.extraction_result import ExtractionResult
from src.scrapers.fingerprint import fingerprint
from src.scrapers.page_fetcher import PageFetcher

logger = logging.getLogger("pricewatch.scraper")


@dataclass(frozen=True)
class PageSelectors:
    """CSS selectors for the supported product page layout.

    The price is rendered as two text nodes: the integer part directly
    inside the price element and the fraction in a nested ``<sup>``.
    """

    title: str = 'h1.page-heading span[data-test="title"]'
    price_section: str = 'section[data-test="prices"]'
    price: str = 'span[data-test="price"]'
    price_fraction: str = 'sup[data-test="price-fraction"]'


DEFAULT_SELECTORS = PageSelectors()


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def select_first(root: Tag, selector: str) -> Tag | None:
    """Return the first element under ``root`` matching ``selector``."""
    found = root.select_one(selector)
    return found if isinstance(found, Tag) else None


def own_text(element: Tag) -> str:
    """Text of ``element`` itself, excluding nested elements and comments."""
    parts = [
        str(node)
        for node in element.find_all(string=True, recursive=False)
        if not isinstance(node, Comment)
    ]
    return "".join(parts).strip()


def compose_price(integer_part: str, fraction_part: str) -> Decimal | None:
    """Join the two rendered price parts into a decimal.

    Returns ``None`` when either part is empty or the joined string is
    not a finite number. Negative values are also rejected, even
    though they parse as valid decimals.
    """
    if not integer_part or not fraction_part:
        return None
    try:
        value = Decimal(f"{integer_part}.{fraction_part}")
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


class ProductPageScraper:
    """Turn a product page URL into an :class:`ExtractionResult`.

    :meth:`extract` never raises: transport errors, missing markup and
    unparseable numbers all degrade to ``None`` fields and a log record.
    """

    def __init__(
        self,
        fetcher: PageFetcher | None = None,
        selectors: PageSelectors = DEFAULT_SELECTORS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.fetcher = fetcher or PageFetcher()
        self.selectors = selectors
        self._clock = clock

    def _parse_title(self, soup: BeautifulSoup) -> str | None:
        """Return the trimmed product title, or ``None``."""
        title_el = select_first(soup, self.selectors.title)
        if title_el is None:
            logger.warning("Could not find title element")
            return None
        title = title_el.get_text().strip()
        return title or None

    def _parse_price(self, soup: BeautifulSoup, url: str) -> Decimal | None:
        """Return the composed price, or ``None`` at the first failed step."""
        section = select_first(soup, self.selectors.price_section)
        if section is None:
            logger.warning("No price section on %s", url)
            return None

        price_el = select_first(section, self.selectors.price)
        if price_el is None:
            logger.warning("No price element in price section on %s", url)
            return None

        integer_part = own_text(price_el)
        fraction_el = select_first(price_el, self.selectors.price_fraction)
        fraction_part = (
            fraction_el.get_text().strip() if fraction_el else ""
        )
        logger.debug(
            "Price parts on %s: integer=%r fraction=%r",
            url,
            integer_part,
            fraction_part,
        )

        if not integer_part or not fraction_part:
            logger.warning("Incomplete price components on %s", url)
            return None

        price = compose_price(integer_part, fraction_part)
        if price is None:
            logger.warning(
                "Invalid price value '%s.%s' on %s",
                integer_part,
                fraction_part,
                url,
            )
        return price

    def parse(
        self, html: str, url: str, date: datetime,
    ) -> ExtractionResult:
        """Extract title and price from already-fetched markup."""
        product_id = fingerprint(url)
        soup = BeautifulSoup(html, "lxml")
        title = self._parse_title(soup)
        price = self._parse_price(soup, url)
        return ExtractionResult(
            id=product_id, url=url, price=price, title=title, date=date,
        )

    def extract(self, url: str) -> ExtractionResult:
        """Fetch ``url`` and extract its price and title."""
        product_id = fingerprint(url)
        date = self._clock()
        logger.debug("Extracting %s (id=%s)", url, product_id)

        try:
            html = self.fetcher.fetch(url)
        except Exception as exc:
            logger.error("Fetch failed for %s: %s", url, exc)
            return ExtractionResult(
                id=product_id, url=url, price=None, title=None, date=date,
            )

        try:
            result = self.parse(html, url, date)
        except Exception as exc:
            logger.error(
                "Parsing failed for %s: %s", url, exc, exc_info=True,
            )
            return ExtractionResult(
                id=product_id, url=url, price=None, title=None, date=date,
            )

        if result.has_price:
            logger.info(
                "Extracted price %s for %s", result.price, url,
            )
        return result

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.fetcher.close()
