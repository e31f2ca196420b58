from __future__ import annotations

import logging
import re
from typing import List, Optional, Protocol
from urllib.parse import urlencode

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from .config import TripQuery
from .models import FareObservation

logger = logging.getLogger(__name__)

BASE_URL = "https://www.southwest.com"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_14_5) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/76.0.3809.100 Safari/537.36"
)
FARE_VALUE_SELECTOR = ".fare-button--value-total"
_LEG_LIST = (
    ".search-results--container .container_standard:nth-child({n}) "
    ".air-booking-select-price-matrix .transition-content ul"
)
OUTBOUND_LIST_SELECTOR = _LEG_LIST.format(n=2)
RETURN_LIST_SELECTOR = _LEG_LIST.format(n=3)
LEG_FARE_SELECTOR = "li .fare-button--value-total"
PAGE_TIMEOUT_MS = 60_000

_AMOUNT = re.compile(r"\d[\d,]*")


class ScrapeError(RuntimeError):
    """Fare lists could not be read from the booking site."""

    def __init__(self, message: str, diagnostic: Optional[str] = None) -> None:
        super().__init__(message)
        self.diagnostic = diagnostic


class FareSource(Protocol):
    async def fetch_fares(self, query: TripQuery) -> FareObservation:
        ...


def parse_fare(text: str) -> int:
    """Return the whole-dollar amount shown in *text* (e.g. ``"$1,204"``)."""
    match = _AMOUNT.search(text or "")
    if not match:
        raise ScrapeError("Fare is not a number", diagnostic=repr(text))
    return int(match.group(0).replace(",", ""))


def build_search_url(query: TripQuery, base_url: str = BASE_URL) -> str:
    """Return the roundtrip fare selection URL for *query*."""
    params = {
        "adultPassengersCount": query.passengers,
        "departureDate": query.departure_date.isoformat(),
        "departureTimeOfDay": query.departure_time_of_day.value,
        "destinationAirportCode": query.destination,
        "fareType": "USD",
        "originationAirportCode": query.origin,
        "passengerType": "ADULT",
        "returnDate": query.return_date.isoformat(),
        "returnTimeOfDay": query.return_time_of_day.value,
        "seniorPassengersCount": 0,
        "tripType": "roundtrip",
    }
    return f"{base_url.rstrip('/')}/air/booking/select.html?{urlencode(params)}"


class SouthwestFetcher:
    """Reads roundtrip fares from southwest.com with headless Chromium."""

    def __init__(self, headless: bool = True, base_url: str = BASE_URL) -> None:
        self.headless = headless
        self.base_url = base_url.rstrip("/")

    async def fetch_fares(self, query: TripQuery) -> FareObservation:
        url = build_search_url(query, self.base_url)
        logger.debug("Opening %s", url)
        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(headless=self.headless)
                try:
                    page = await browser.new_page(user_agent=USER_AGENT)
                    await page.goto(
                        url, wait_until="networkidle", timeout=PAGE_TIMEOUT_MS
                    )
                    await page.wait_for_selector(
                        FARE_VALUE_SELECTOR, timeout=PAGE_TIMEOUT_MS
                    )
                    outbound = await self._leg_fares(
                        page, OUTBOUND_LIST_SELECTOR, "outbound"
                    )
                    return_ = await self._leg_fares(
                        page, RETURN_LIST_SELECTOR, "return"
                    )
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise ScrapeError("Browser navigation failed", diagnostic=str(exc)) from exc

        logger.debug("Observed fares outbound=%s return=%s", outbound, return_)
        return FareObservation(outbound=outbound, return_=return_)

    async def _leg_fares(self, page: Page, selector: str, leg: str) -> List[int]:
        handle = await page.query_selector(selector)
        if handle is None:
            raise ScrapeError(f"No {leg} fare list on page", diagnostic=selector)
        try:
            texts = await handle.eval_on_selector_all(
                LEG_FARE_SELECTOR, "nodes => nodes.map(n => n.innerText)"
            )
        finally:
            await handle.dispose()
        return sorted(parse_fare(t) for t in texts)


__all__ = [
    "FareSource",
    "ScrapeError",
    "SouthwestFetcher",
    "build_search_url",
    "parse_fare",
]
