# src/config/settings.py

"""Central configuration for the pricewatch tracker."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the pricewatch tracker."""

    # --- Fetching ---
    REQUEST_DELAY: float = 2.0          # Seconds between requests
    REQUEST_TIMEOUT: int = int(
        os.getenv("PRICEWATCH_REQUEST_TIMEOUT", "15")
    )
    MAX_RETRIES: int = 2                # Attempts per fetch
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Tracking ---
    DEFAULT_CURRENCY: str = os.getenv("PRICEWATCH_CURRENCY", "EUR")
    TRACK_SCHEDULE: str = os.getenv(
        "PRICEWATCH_SCHEDULE", "15 12 * * *"
    )

    # --- Validation ---
    NAME_MAX_LENGTH: int = 500
    URL_MAX_LENGTH: int = 2048

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "nl-NL,nl;q=0.9,en-US;q=0.8,en;q=0.7",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    PRICE_DB_PATH: Path = Path(
        os.getenv(
            "PRICEWATCH_DB_PATH", str(DATA_DIR / "price_history.db")
        )
    )
    LOGS_DIR: Path = Path(
        os.getenv("PRICEWATCH_LOGS_DIR", str(BASE_DIR / "logs"))
    )
