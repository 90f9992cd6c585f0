# src/filters/product_validator.py

"""Validation of product registration input."""

import logging
from urllib.parse import urlparse

from src.config.settings import Settings

logger = logging.getLogger("pricewatch.filters")


class ValidationError(ValueError):
    """Raised when registration input is rejected."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class ProductValidator:
    """Validate and normalise the name/url pair of a new product."""

    @staticmethod
    def _url_errors(url: str) -> list[str]:
        if not url:
            return ["Product URL is required"]
        errors: list[str] = []
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("Product URL must be a valid URL")
        if len(url) > Settings.URL_MAX_LENGTH:
            errors.append(
                "Product URL must be less than "
                f"{Settings.URL_MAX_LENGTH} characters"
            )
        return errors

    @staticmethod
    def _name_errors(name: str) -> list[str]:
        if not name:
            return ["Product name is required"]
        if len(name) > Settings.NAME_MAX_LENGTH:
            return [
                "Product name must be less than "
                f"{Settings.NAME_MAX_LENGTH} characters"
            ]
        return []

    @staticmethod
    def validate(
        name: str | None, url: str | None,
    ) -> tuple[str, str]:
        """Return the trimmed ``(name, url)`` pair.

        All problems are collected before raising, so the caller can
        report them together.

        Raises:
            ValidationError: if either field is missing or malformed.
        """
        clean_name = (name or "").strip()
        clean_url = (url or "").strip()

        errors = ProductValidator._name_errors(clean_name)
        errors += ProductValidator._url_errors(clean_url)
        if errors:
            logger.debug(
                "Rejected product input (name=%r, url=%r): %s",
                name,
                url,
                errors,
            )
            raise ValidationError(errors)

        return clean_name, clean_url
