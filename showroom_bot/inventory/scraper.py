"""Live inventory scraper for the showroom website.

Page structure (one listing per card):

    <div class="main-car">
      <a href="/luxury-used-cars/<slug>/<id>/"><img class="car-image [carstatus]"></a>
      <div class="car-text">
        <span class="comment">2020</span>
        <h3><a href="...">MODEL NAME</a></h3>
        <span class="carbg">KA 09</span> <span class="carbg">Diesel</span> ...
        <span class="posted_by">₹ 29,75,000</span>
      </div>
    </div>

Cards whose image carries ``carstatus`` are sold and skipped.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin

import httpx
import structlog
from bs4 import BeautifulSoup, Tag

from showroom_bot.config import settings
from showroom_bot.errors import InventoryFetchError
from showroom_bot.schemas.inventory import Vehicle

logger = structlog.get_logger()

LISTING_PATH = "/luxury-used-cars/"
MIN_PAGE_LENGTH = 1000
DEFAULT_PRICE = "Contact for price"

# The site blocks obvious bots; plain-text encoding keeps parsing simple
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-IN,en;q=0.9",
    "Accept-Encoding": "identity",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Upgrade-Insecure-Requests": "1",
}

_WHITESPACE = re.compile(r"\s+")
_RUPEE_ARTEFACTS = re.compile(r"\?|Rs\.?", re.IGNORECASE)


def _text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return _WHITESPACE.sub(" ", element.get_text()).strip()


def normalize_price(raw: str) -> str:
    """Fix the rupee sign ("?" encoding artefact, "Rs.") and default when blank."""
    price = _RUPEE_ARTEFACTS.sub("₹", raw).strip()
    return price or DEFAULT_PRICE


def _parse_card(card: Tag, base_url: str) -> Optional[Vehicle]:
    image = card.select_one("img.car-image")
    if image is None:
        return None
    if "carstatus" in (image.get("class") or []):
        return None  # sold

    link = image.find_parent("a")
    href = link.get("href", "") if link is not None else ""
    if LISTING_PATH not in href:
        return None
    url = href if href.startswith("http") else urljoin(base_url, href)

    car_text = card.select_one("div.car-text")
    if car_text is None:
        return None

    model = _text(car_text.select_one("h3 a"))
    if not model:
        return None

    details = [_text(span) for span in car_text.select("span.carbg")]
    return Vehicle(
        model=model,
        year=_text(car_text.select_one("span.comment")) or None,
        price=normalize_price(_text(car_text.select_one("span.posted_by"))),
        details=" · ".join(d for d in details if d),
        url=url,
    )


def parse_inventory(html: str, base_url: str = settings.inventory_base_url) -> list[Vehicle]:
    """Parse the listings page into available (unsold) vehicles."""
    soup = BeautifulSoup(html, "html.parser")
    vehicles = []
    for card in soup.select("div.main-car"):
        vehicle = _parse_card(card, base_url)
        if vehicle is not None:
            vehicles.append(vehicle)
    return vehicles


class InventoryScraper:
    """Fetches and parses the live listings page. One attempt per call."""

    def __init__(
        self,
        url: str = settings.inventory_url,
        base_url: str = settings.inventory_base_url,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    async def fetch_current_listings(self) -> list[Vehicle]:
        """Download and parse the inventory page.

        Raises:
            InventoryFetchError: network failure, a blocked/short page, or no cars parsed
        """
        try:
            async with httpx.AsyncClient(
                headers=BROWSER_HEADERS,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise InventoryFetchError(f"Inventory request failed: {e}") from e

        html = response.text
        if len(html) < MIN_PAGE_LENGTH:
            raise InventoryFetchError("Response too short, likely blocked")

        vehicles = parse_inventory(html, self.base_url)
        if not vehicles:
            raise InventoryFetchError("No cars parsed, page structure may have changed")

        logger.info("inventory_scraped", url=self.url, vehicles=len(vehicles))
        return vehicles
