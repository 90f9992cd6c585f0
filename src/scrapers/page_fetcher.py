# src/scrapers/page_fetcher.py

"""HTTP transport for product pages."""

import logging
import time
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from src.config.settings import Settings

logger = logging.getLogger("pricewatch.fetcher")


class FetchError(Exception):
    """Raised when a page could not be retrieved."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class PageFetcher:
    """Fetch product pages with retries, adaptive delay and a fallback.

    Requests go through a browser-impersonating ``curl_cffi`` session;
    when every attempt fails, ``cloudscraper`` gets one more try.
    """

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def __init__(self, timeout: int | None = None) -> None:
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = (
            timeout or self.settings.REQUEST_TIMEOUT
        )
        self._current_delay: float = self.settings.REQUEST_DELAY

    def _wait(self) -> None:
        """Sleep using the current (possibly escalated) delay."""
        time.sleep(self._current_delay)

    def _is_challenge(self, text: str) -> bool:
        """Detect Cloudflare challenge pages and CAPTCHA walls."""
        lower = text.lower()
        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                logger.warning(
                    "Cloudflare challenge detected (marker: '%s')",
                    marker,
                )
                return True

        # Real product pages are large; only scan short bodies
        has_body_content = "<body" in lower and len(text) > 5000
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    logger.warning(
                        "CAPTCHA keyword '%s' detected", keyword,
                    )
                    return True
        return False

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(self._current_delay * 2, max_delay)
        logger.warning(
            "Rate-limited, delay escalated to %.1fs",
            self._current_delay,
        )

    def _fetch_get(
        self, url: str, headers: dict[str, str],
    ) -> tuple[str | None, str, bool]:
        """GET with retries.

        Returns the body (or ``None``), a failure reason, and whether a
        fallback transport is worth trying.
        """
        reason = "no attempt made"
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=headers,
                    timeout=self._request_timeout,
                )
            except Exception as exc:
                reason = f"request error: {exc}"
                logger.warning(
                    "Request error on attempt %d for %s: %s",
                    attempt + 1,
                    url,
                    exc,
                    exc_info=True,
                )
                time.sleep(self._current_delay * (attempt + 1))
                continue

            if 200 <= resp.status_code < 300:
                if self._is_challenge(resp.text):
                    reason = "challenge page"
                    self._escalate_delay()
                    time.sleep(self._current_delay)
                    continue
                self._current_delay = self.settings.REQUEST_DELAY
                return resp.text, "", False

            reason = f"HTTP {resp.status_code}"
            logger.warning(
                "HTTP %d on attempt %d for %s",
                resp.status_code,
                attempt + 1,
                url,
            )
            if resp.status_code in (429, 403):
                self._escalate_delay()
                time.sleep(self._current_delay)
            elif resp.status_code < 500:
                # Other client errors will not change on retry
                return None, reason, False
        return None, reason, True

    def _fetch_fallback(
        self, url: str, headers: dict[str, str],
    ) -> str | None:
        """Last-resort fetch through cloudscraper's challenge solver."""
        logger.info(
            "curl_cffi exhausted for %s, falling back to cloudscraper",
            url,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
            if 200 <= resp.status_code < 300:
                text = str(resp.text)
                if not self._is_challenge(text):
                    return text
        except Exception as exc:
            logger.error(
                "cloudscraper fallback also failed for %s: %s",
                url,
                exc,
                exc_info=True,
            )
        return None

    def fetch(self, url: str) -> str:
        """Return the markup at ``url``.

        Raises:
            FetchError: when neither transport produced a 2xx page.
        """
        headers: dict[str, str] = dict(self.settings.DEFAULT_HEADERS)
        self._wait()

        body, reason, try_fallback = self._fetch_get(url, headers)
        if body is not None:
            return body
        if not try_fallback:
            raise FetchError(url, reason)

        body = self._fetch_fallback(url, headers)
        if body is not None:
            return body

        raise FetchError(url, reason)

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
