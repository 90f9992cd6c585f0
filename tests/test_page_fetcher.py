# tests/test_page_fetcher.py

"""Tests for PageFetcher retries, challenge detection and fallback."""

import unittest
from unittest.mock import MagicMock, patch

from src.scrapers.page_fetcher import FetchError, PageFetcher

URL = "https://www.bol.com/nl/nl/p/item/1/"
PRODUCT_HTML = "<html><body>" + ("<p>product</p>" * 500) + "</body></html>"


def _resp(status: int, text: str = PRODUCT_HTML) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


@patch("src.scrapers.page_fetcher.cloudscraper")
@patch("src.scrapers.page_fetcher.curl_requests.Session")
class TestPageFetcher(unittest.TestCase):
    """Behaviour of PageFetcher.fetch with a mocked session."""

    def _fetcher(self, session_cls: MagicMock) -> tuple[PageFetcher, MagicMock]:
        session = MagicMock()
        session_cls.return_value = session
        return PageFetcher(), session

    def test_returns_body_on_200(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """A 200 response body is returned as-is."""
        fetcher, session = self._fetcher(session_cls)
        session.get.return_value = _resp(200)
        self.assertEqual(fetcher.fetch(URL), PRODUCT_HTML)
        cloud.create_scraper.assert_not_called()

    def test_passes_timeout(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """Every request carries the configured timeout."""
        fetcher, session = self._fetcher(session_cls)
        session.get.return_value = _resp(200)
        fetcher.fetch(URL)
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["timeout"], fetcher.settings.REQUEST_TIMEOUT)

    def test_404_fails_without_fallback(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """Plain client errors are not retried or handed to cloudscraper."""
        fetcher, session = self._fetcher(session_cls)
        session.get.return_value = _resp(404, "not found")
        with self.assertRaises(FetchError) as ctx:
            fetcher.fetch(URL)
        self.assertEqual(ctx.exception.reason, "HTTP 404")
        self.assertEqual(session.get.call_count, 1)
        cloud.create_scraper.assert_not_called()

    def test_server_error_retries_then_falls_back(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """5xx responses are retried, then cloudscraper is tried."""
        fetcher, session = self._fetcher(session_cls)
        session.get.return_value = _resp(503, "down")
        cloud.create_scraper.return_value.get.return_value = _resp(200)

        self.assertEqual(fetcher.fetch(URL), PRODUCT_HTML)
        self.assertEqual(
            session.get.call_count, fetcher.settings.MAX_RETRIES,
        )

    def test_fallback_failure_raises(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """When both transports fail a FetchError is raised."""
        fetcher, session = self._fetcher(session_cls)
        session.get.side_effect = ConnectionError("dns failure")
        cloud.create_scraper.return_value.get.side_effect = (
            ConnectionError("dns failure")
        )
        with self.assertRaises(FetchError) as ctx:
            fetcher.fetch(URL)
        self.assertIn("dns failure", ctx.exception.reason)

    def test_challenge_page_is_not_returned(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """A Cloudflare interstitial counts as a failed attempt."""
        fetcher, session = self._fetcher(session_cls)
        session.get.return_value = _resp(
            200, "<html><title>Just a moment...</title></html>",
        )
        cloud.create_scraper.return_value.get.return_value = _resp(
            200, "<html>cf-turnstile</html>",
        )
        with self.assertRaises(FetchError) as ctx:
            fetcher.fetch(URL)
        self.assertEqual(ctx.exception.reason, "challenge page")

    def test_rate_limit_escalates_delay(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """429 doubles the delay, and a success resets it."""
        fetcher, session = self._fetcher(session_cls)
        base = fetcher.settings.REQUEST_DELAY
        session.get.side_effect = [_resp(429, "slow down"), _resp(200)]

        self.assertEqual(fetcher.fetch(URL), PRODUCT_HTML)
        self.assertEqual(fetcher._current_delay, base)

    def test_delay_is_capped(
        self, session_cls: MagicMock, cloud: MagicMock,
    ) -> None:
        """Escalation never exceeds REQUEST_DELAY * MAX_DELAY_MULTIPLIER."""
        fetcher, _ = self._fetcher(session_cls)
        for _ in range(20):
            fetcher._escalate_delay()
        self.assertEqual(
            fetcher._current_delay,
            fetcher.settings.REQUEST_DELAY
            * fetcher.settings.MAX_DELAY_MULTIPLIER,
        )


if __name__ == "__main__":
    unittest.main()
