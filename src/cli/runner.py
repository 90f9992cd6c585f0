# src/cli/runner.py

"""Headless command runners for the tracker."""

import json
import logging
import sys
from decimal import Decimal

from rich.console import Console
from rich.table import Table

from src.filters.product_validator import ValidationError
from src.models.price_sample import PriceSample
from src.scrapers.product_page_scraper import ProductPageScraper
from src.services.product_catalog import (
    DuplicateProductError,
    ProductCatalog,
    ProductNotFoundError,
    ProductPriceView,
)
from src.services.scheduler import TrackingScheduler
from src.services.tracking_job import TrackingJob, TrackingReport
from src.storage.price_history_db import PriceHistoryDB

logger = logging.getLogger("pricewatch.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _fmt_price(value: Decimal | None, currency: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{currency} {value:,.2f}".strip()


def _fmt_rate(value: Decimal | None) -> str:
    if value is None:
        return "N/A"
    colour = "red" if value > 0 else "green" if value < 0 else "white"
    return f"[{colour}]{value:+.2f}%[/{colour}]"


def _dump_json(data: object) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _report_to_dict(report: TrackingReport) -> dict[str, object]:
    return {
        "period": report.period,
        "skipped": report.skipped,
        "total_products": report.total_products,
        "already_tracked": report.already_tracked,
        "attempted": report.attempted,
        "recorded": report.recorded,
        "no_price": report.no_price,
        "failures": [
            {"product_id": f.product_id, "url": f.url, "message": f.message}
            for f in report.failures
        ],
    }


def _samples_to_dicts(samples: list[PriceSample]) -> list[dict[str, object]]:
    return [
        {
            "price": float(s.price) if s.price is not None else None,
            "currency": s.currency,
            "date": s.date.isoformat(),
        }
        for s in samples
    ]


def _print_products(views: list[ProductPriceView]) -> None:
    """Render tracked products with their latest price movement."""
    table = Table(
        title="Tracked Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", max_width=40)
    table.add_column("Latest", justify="right", style="green")
    table.add_column("Previous", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, view in enumerate(views, 1):
        table.add_row(
            str(idx),
            view.product.title or view.product.name,
            _fmt_price(view.latest_price),
            _fmt_price(view.previous_price),
            _fmt_rate(view.price_change_rate),
            view.product.url,
        )

    Console().print(table)


def _print_history(url: str, samples: list[PriceSample]) -> None:
    table = Table(title=f"Price history: {url}", title_style="bold cyan")
    table.add_column("Date", style="dim")
    table.add_column("Price", justify="right", style="green")
    for s in samples:
        table.add_row(
            s.date.strftime("%Y-%m-%d %H:%M"),
            _fmt_price(s.price, s.currency),
        )
    Console().print(table)


def _close_owned(db: PriceHistoryDB, store: PriceHistoryDB | None) -> None:
    """Close ``db`` unless the caller supplied it."""
    if db is not store:
        db.close()


def _build(
    store: PriceHistoryDB | None = None,
) -> tuple[PriceHistoryDB, ProductPageScraper]:
    return store or PriceHistoryDB(), ProductPageScraper()


async def run_track(
    output_format: str = "table",
    store: PriceHistoryDB | None = None,
) -> int:
    """Run one tracking pass now; exit code 1 if any product failed."""
    db, scraper = _build(store)
    try:
        job = TrackingJob(db, scraper)
        _err.print("[bold]Running tracking job...[/bold]")
        try:
            report = await job.run()
        except Exception as exc:
            logger.critical("Tracking run aborted: %s", exc, exc_info=True)
            _err.print(f"[red]Tracking run aborted: {exc}[/red]")
            return 1
    finally:
        _close_owned(db, store)
        scraper.close()

    if output_format == "json":
        _dump_json(_report_to_dict(report))
    else:
        _err.print(
            f"[green]✓ {report.recorded} recorded[/green], "
            f"{report.already_tracked} already tracked, "
            f"{report.no_price} without price, "
            f"{len(report.failures)} failed "
            f"[dim](period {report.period})[/dim]"
        )
        for failure in report.failures:
            _err.print(f"[red]✗ {failure.url}: {failure.message}[/red]")
    return 1 if report.failures else 0


async def run_add(
    name: str | None,
    url: str,
    output_format: str = "table",
    store: PriceHistoryDB | None = None,
) -> int:
    """Register a product and print its first scrape."""
    db, scraper = _build(store)
    catalog = ProductCatalog(db, scraper)
    try:
        result = await catalog.register(name, url)
    except ValidationError as exc:
        for message in exc.errors:
            _err.print(f"[red]{message}[/red]")
        return 1
    except DuplicateProductError as exc:
        _err.print(f"[yellow]{exc}[/yellow]")
        return 1
    finally:
        _close_owned(db, store)
        scraper.close()

    product = result.product
    if output_format == "json":
        _dump_json({
            "id": product.id,
            "title": product.title,
            "name": product.name,
            "url": product.url,
            "scraped_price": (
                float(result.scraped_price)
                if result.scraped_price is not None
                else None
            ),
            "scraped_date": result.scraped_date.isoformat(),
        })
    else:
        _err.print(
            f"[green]✓ Tracking[/green] {product.title} "
            f"[dim]({product.id[:12]})[/dim] "
            f"price: {_fmt_price(result.scraped_price, catalog.currency)}"
        )
    return 0


def run_list(
    search: str | None = None,
    output_format: str = "table",
    store: PriceHistoryDB | None = None,
) -> int:
    """Print tracked products with latest / previous price and change."""
    db = store or PriceHistoryDB()
    try:
        catalog = ProductCatalog(db)
        views = catalog.list_with_prices(search=search)
    finally:
        _close_owned(db, store)

    if output_format == "json":
        _dump_json([v.to_dict() for v in views])
    elif not views:
        _err.print("[yellow]No tracked products.[/yellow]")
    else:
        _print_products(views)
    return 0


def run_history(
    url: str,
    output_format: str = "table",
    store: PriceHistoryDB | None = None,
) -> int:
    """Print every price sample of a tracked URL."""
    db = store or PriceHistoryDB()
    try:
        catalog = ProductCatalog(db)
        samples = catalog.history(url)
        stats = catalog.stats(url)
    except ProductNotFoundError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    finally:
        _close_owned(db, store)

    if output_format == "json":
        _dump_json(_samples_to_dicts(samples))
        return 0

    _print_history(url, samples)
    if stats is not None:
        _err.print(
            f"[dim]min {stats.min:,.2f} · max {stats.max:,.2f} · "
            f"avg {stats.avg:,.2f} over {stats.count} samples[/dim]"
        )
    return 0


def run_remove(url: str, store: PriceHistoryDB | None = None) -> int:
    """Stop tracking a URL (soft delete)."""
    db = store or PriceHistoryDB()
    try:
        catalog = ProductCatalog(db)
        removed = catalog.remove(url)
    finally:
        _close_owned(db, store)

    if not removed:
        _err.print(f"[yellow]Not tracked: {url}[/yellow]")
        return 1
    _err.print(f"[green]✓ Stopped tracking {url}[/green]")
    return 0


async def run_schedule(expression: str | None = None) -> int:
    """Run the tracker at start-up and then on the cron schedule."""
    db, scraper = _build()
    job = TrackingJob(db, scraper)
    try:
        try:
            scheduler = TrackingScheduler(job, expression)
        except ValueError as exc:
            _err.print(f"[red]{exc}[/red]")
            return 1
        _err.print(
            f"[bold]Tracker scheduled:[/bold] {scheduler.expression} (UTC)"
        )
        await scheduler.serve()
    finally:
        db.close()
        scraper.close()
    return 0
