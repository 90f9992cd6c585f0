# src/models/product.py

"""Tracked product model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Product:
    """A product page whose price is sampled once per tracking period.

    ``id`` is the fingerprint of ``url``, so re-registering the same URL
    string always yields the same identity.
    """

    id: str
    url: str
    name: str
    title: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        """True until the product has been soft-deleted."""
        return self.deleted_at is None
