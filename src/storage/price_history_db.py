# src/storage/price_history_db.py

"""SQLite-backed store for tracked products and their price samples."""

import logging
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.price_sample import PriceSample, as_utc, tracking_period
from src.models.product import Product

logger = logging.getLogger("pricewatch.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id         TEXT PRIMARY KEY,
    url        TEXT NOT NULL,
    name       TEXT NOT NULL,
    title      TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS prices (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id TEXT    NOT NULL
               REFERENCES products(id) ON DELETE CASCADE,
    price      TEXT,
    currency   TEXT    NOT NULL,
    date       TEXT    NOT NULL,
    period     TEXT    NOT NULL,
    deleted_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_prices_period
    ON prices(period);
CREATE INDEX IF NOT EXISTS idx_prices_product_date
    ON prices(product_id, date);
"""

# Columns callers may filter, search or sort products on
PRODUCT_COLUMNS: frozenset[str] = frozenset({
    "id", "url", "name", "title", "created_at", "updated_at",
})
DEFAULT_SEARCH_COLUMNS: tuple[str, ...] = ("title", "name")
_UPDATABLE_COLUMNS: frozenset[str] = frozenset({"url", "name", "title"})


def _iso(moment: datetime | None) -> str | None:
    """Serialise a datetime as a UTC ISO-8601 string."""
    if moment is None:
        return None
    return as_utc(moment).isoformat(timespec="microseconds")


def _parse_dt(raw: str | None) -> datetime | None:
    """Parse a stored ISO-8601 string back into an aware datetime."""
    return as_utc(datetime.fromisoformat(raw)) if raw else None


def _check_columns(columns: list[str] | tuple[str, ...]) -> None:
    """Reject column names that are not product columns."""
    unknown = [c for c in columns if c not in PRODUCT_COLUMNS]
    if unknown:
        msg = f"Invalid product column(s): {', '.join(unknown)}"
        raise ValueError(msg)


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        url=row["url"],
        name=row["name"],
        title=row["title"],
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
        deleted_at=_parse_dt(row["deleted_at"]),
    )


def _row_to_sample(row: sqlite3.Row) -> PriceSample:
    raw_price: str | None = row["price"]
    date = _parse_dt(row["date"])
    if date is None:
        msg = f"Price sample {row['id']} has no date"
        raise sqlite3.DataError(msg)
    return PriceSample(
        id=row["id"],
        product_id=row["product_id"],
        price=Decimal(raw_price) if raw_price is not None else None,
        currency=row["currency"],
        date=date,
        deleted_at=_parse_dt(row["deleted_at"]),
    )


class PriceHistoryDB:
    """SQLite-backed store for products and daily price samples.

    Deletion is soft: rows get a ``deleted_at`` timestamp and every
    read below ignores them.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.PRICE_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("PriceHistoryDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Products ─────────────────────────────────────────

    def create_product(self, product: Product) -> Product:
        """Insert a product, or revive a soft-deleted one with the same id.

        Raises:
            sqlite3.IntegrityError: if an active product has this id.
        """
        now = datetime.now(timezone.utc)
        created = product.created_at or now
        cur = self._conn.execute(
            "INSERT INTO products "
            "(id, url, name, title, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "  url=excluded.url, name=excluded.name, "
            "  title=excluded.title, updated_at=?, deleted_at=NULL "
            "WHERE products.deleted_at IS NOT NULL",
            (
                product.id, product.url, product.name, product.title,
                _iso(created), _iso(product.updated_at), _iso(now),
            ),
        )
        if cur.rowcount == 0:
            self._conn.rollback()
            msg = f"Product {product.id} already exists"
            raise sqlite3.IntegrityError(msg)
        self._conn.commit()
        logger.info("Created product %s (%s)", product.id, product.url)
        stored = self.get_product(product.id)
        if stored is None:
            msg = f"Product {product.id} missing after insert"
            raise sqlite3.DatabaseError(msg)
        return stored

    def get_product(self, product_id: str) -> Product | None:
        """Return the active product with this id, if any."""
        row = self._conn.execute(
            "SELECT * FROM products "
            "WHERE id = ? AND deleted_at IS NULL",
            (product_id,),
        ).fetchone()
        return _row_to_product(row) if row else None

    def get_product_by_url(self, url: str) -> Product | None:
        """Return the active product registered under ``url``, if any."""
        row = self._conn.execute(
            "SELECT * FROM products "
            "WHERE url = ? AND deleted_at IS NULL "
            "ORDER BY rowid LIMIT 1",
            (url,),
        ).fetchone()
        return _row_to_product(row) if row else None

    def list_products(
        self,
        filters: dict[str, Any] | None = None,
        search: str | None = None,
        search_columns: list[str] | tuple[str, ...] = DEFAULT_SEARCH_COLUMNS,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Product]:
        """Return active products, in insertion order unless sorted.

        ``filters`` match exactly; ``search`` is a case-insensitive
        substring match over ``search_columns``.

        Raises:
            ValueError: on an unknown column name.
        """
        clauses = ["deleted_at IS NULL"]
        params: list[Any] = []

        if filters:
            _check_columns(list(filters))
            for column, value in filters.items():
                clauses.append(f"{column} = ?")
                params.append(value)

        if search:
            _check_columns(search_columns)
            if not search_columns:
                msg = "At least one search column is required"
                raise ValueError(msg)
            escaped = (
                search.replace("\\", "\\\\")
                .replace("%", "\\%")
                .replace("_", "\\_")
            )
            likes = [
                f"{column} LIKE ? ESCAPE '\\'" for column in search_columns
            ]
            clauses.append("(" + " OR ".join(likes) + ")")
            params.extend([f"%{escaped}%"] * len(search_columns))

        sql = "SELECT * FROM products WHERE " + " AND ".join(clauses)
        if order_by:
            _check_columns([order_by])
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY {order_by} {direction}, rowid ASC"
        else:
            sql += " ORDER BY rowid ASC"

        if limit is not None or offset:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit if limit is not None else -1, offset])

        rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_product(r) for r in rows]

    def update_product(
        self, product_id: str, **fields: Any,
    ) -> Product | None:
        """Update url / name / title of an active product.

        Returns the updated product, or ``None`` if it does not exist.
        """
        unknown = [k for k in fields if k not in _UPDATABLE_COLUMNS]
        if unknown:
            msg = f"Cannot update column(s): {', '.join(unknown)}"
            raise ValueError(msg)

        assignments = [f"{k} = ?" for k in fields] + ["updated_at = ?"]
        params: list[Any] = [*fields.values(), _iso(datetime.now(timezone.utc))]
        cur = self._conn.execute(
            "UPDATE products SET " + ", ".join(assignments) + " "
            "WHERE id = ? AND deleted_at IS NULL",
            (*params, product_id),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_product(product_id)

    def delete_product(self, product_id: str) -> bool:
        """Soft-delete a product. Returns False if it was not active."""
        cur = self._conn.execute(
            "UPDATE products SET deleted_at = ? "
            "WHERE id = ? AND deleted_at IS NULL",
            (_iso(datetime.now(timezone.utc)), product_id),
        )
        self._conn.commit()
        deleted = cur.rowcount > 0
        if deleted:
            logger.info("Soft-deleted product %s", product_id)
        return deleted

    # ── Price samples ────────────────────────────────────

    def create_price_sample(self, sample: PriceSample) -> PriceSample:
        """Insert one price sample; no upsert or merge is performed."""
        cur = self._conn.execute(
            "INSERT INTO prices "
            "(product_id, price, currency, date, period) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                sample.product_id,
                str(sample.price) if sample.price is not None else None,
                sample.currency,
                _iso(sample.date),
                tracking_period(sample.date),
            ),
        )
        self._conn.commit()
        sample_id = cur.lastrowid
        logger.debug(
            "Stored price sample %s for product %s",
            sample_id,
            sample.product_id,
        )
        return PriceSample(
            id=sample_id,
            product_id=sample.product_id,
            price=sample.price,
            currency=sample.currency,
            date=as_utc(sample.date),
        )

    def list_prices_for_period(self, period: str) -> list[PriceSample]:
        """Return every active sample stamped with ``period``."""
        rows = self._conn.execute(
            "SELECT * FROM prices "
            "WHERE period = ? AND deleted_at IS NULL "
            "ORDER BY id ASC",
            (period,),
        ).fetchall()
        return [_row_to_sample(r) for r in rows]

    def list_prices_for_product(
        self, product_id: str, limit: int | None = None,
    ) -> list[PriceSample]:
        """Return a product's samples, most recent first."""
        rows = self._conn.execute(
            "SELECT * FROM prices "
            "WHERE product_id = ? AND deleted_at IS NULL "
            "ORDER BY date DESC, id DESC "
            "LIMIT ?",
            (product_id, limit if limit is not None else -1),
        ).fetchall()
        return [_row_to_sample(r) for r in rows]
