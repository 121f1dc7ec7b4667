"""Tests for inventory parsing, scraping and the snapshot cache."""

import httpx
import pytest
from unittest.mock import AsyncMock

from showroom_bot.errors import InventoryFetchError
from showroom_bot.inventory.cache import InventoryCache
from showroom_bot.inventory.scraper import InventoryScraper, normalize_price, parse_inventory
from showroom_bot.schemas.inventory import Vehicle

BASE = "https://www.9thgear.co.in"


def card(model, slug, year="2020", price="₹ 29,75,000", sold=False, details=("KA 09", "Diesel", "41000 km")):
    status = " carstatus" if sold else ""
    spans = "".join(f'<span class="carbg">{d}</span>' for d in details)
    return f"""
    <div class="main-car">
      <div><a href="/luxury-used-cars/{slug}/"><img class="car-image{status}" src="x.jpg"></a></div>
      <div class="car-text">
        <div class="row"><span class="type">Hot Deal</span><span class="comment">{year}</span></div>
        <h3><a href="/luxury-used-cars/{slug}/">{model}</a></h3>
        {spans}
        <span class="posted_by">{price}</span>
      </div>
    </div>"""


def page(*cards):
    padding = "<!-- " + "x" * 1200 + " -->"
    return f"<html><body>{padding}{''.join(cards)}</body></html>"


def vehicles(n):
    return [
        Vehicle(model=f"CAR {i}", url=f"{BASE}/luxury-used-cars/car-{i}/{i}/")
        for i in range(n)
    ]


class TestParseInventory:

    def test_parses_card_fields(self):
        result = parse_inventory(page(card("MERCEDES BENZ GLA 200", "gla-200/101")), BASE)

        assert result == [
            Vehicle(
                model="MERCEDES BENZ GLA 200",
                year="2020",
                price="₹ 29,75,000",
                details="KA 09 · Diesel · 41000 km",
                url=f"{BASE}/luxury-used-cars/gla-200/101/",
            )
        ]

    def test_sold_cards_are_excluded(self):
        html = page(card("BMW X1", "bmw-x1/1", sold=True), card("AUDI Q5", "audi-q5/2"))
        assert [v.model for v in parse_inventory(html, BASE)] == ["AUDI Q5"]

    def test_cards_without_listing_link_are_skipped(self):
        html = page(
            '<div class="main-car"><a href="/blog/post"><img class="car-image"></a>'
            '<div class="car-text"><h3><a>Not a car</a></h3></div></div>',
            '<div class="main-car"><p>advert</p></div>',
        )
        assert parse_inventory(html, BASE) == []

    def test_price_normalization(self):
        assert normalize_price("? 12,00,000") == "₹ 12,00,000"
        assert normalize_price("Rs. 45,00,000") == "₹ 45,00,000"
        assert normalize_price("  ") == "Contact for price"

    def test_missing_price_and_year(self):
        result = parse_inventory(page(card("VOLVO XC60", "xc60/9", year="", price="")), BASE)
        assert result[0].year is None
        assert result[0].price == "Contact for price"


class TestInventoryScraper:

    @pytest.mark.asyncio
    async def test_fetch_parses_page(self):
        html = page(card("BMW X1", "bmw-x1/1"), card("AUDI Q5", "audi-q5/2"))
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=html))
        scraper = InventoryScraper(url=f"{BASE}/luxury-used-cars-bangalore", base_url=BASE, transport=transport)

        result = await scraper.fetch_current_listings()
        assert [v.model for v in result] == ["BMW X1", "AUDI Q5"]

    @pytest.mark.asyncio
    async def test_short_page_is_a_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="Access denied"))
        scraper = InventoryScraper(url=f"{BASE}/x", base_url=BASE, transport=transport)

        with pytest.raises(InventoryFetchError):
            await scraper.fetch_current_listings()

    @pytest.mark.asyncio
    async def test_page_without_cars_is_a_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=page()))
        scraper = InventoryScraper(url=f"{BASE}/x", base_url=BASE, transport=transport)

        with pytest.raises(InventoryFetchError):
            await scraper.fetch_current_listings()

    @pytest.mark.asyncio
    async def test_http_error_is_a_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(406, text="blocked"))
        scraper = InventoryScraper(url=f"{BASE}/x", base_url=BASE, transport=transport)

        with pytest.raises(InventoryFetchError):
            await scraper.fetch_current_listings()


class TestInventoryCache:

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self, clock):
        source = AsyncMock()
        source.fetch_current_listings = AsyncMock(return_value=vehicles(33))
        cache = InventoryCache(source, retry_delays=(2, 5, 10), clock=clock, sleep=clock.sleep)
        await cache.refresh()
        assert len(cache.snapshot.vehicles) == 33

        source.fetch_current_listings = AsyncMock(side_effect=InventoryFetchError("blocked"))
        snapshot = await cache.refresh()

        assert source.fetch_current_listings.await_count == 4
        assert clock.sleeps == [2, 5, 10]
        assert len(snapshot.vehicles) == 33
        assert cache.snapshot.available is True

    @pytest.mark.asyncio
    async def test_failure_without_snapshot_is_unavailable(self, clock):
        source = AsyncMock()
        source.fetch_current_listings = AsyncMock(side_effect=InventoryFetchError("down"))
        cache = InventoryCache(source, retry_delays=(2,), clock=clock, sleep=clock.sleep)

        snapshot = await cache.refresh()
        assert snapshot.available is False
        assert snapshot.fetched_at is None

    @pytest.mark.asyncio
    async def test_new_listings_are_announced(self, clock):
        source = AsyncMock()
        source.fetch_current_listings = AsyncMock(return_value=vehicles(2))
        announce = AsyncMock()
        cache = InventoryCache(source, retry_delays=(), on_new_listings=announce, clock=clock, sleep=clock.sleep)

        await cache.refresh()
        announce.assert_not_awaited()

        source.fetch_current_listings = AsyncMock(return_value=vehicles(3))
        await cache.refresh()

        announce.assert_awaited_once()
        (new_listings,) = announce.await_args.args
        assert [v.model for v in new_listings] == ["CAR 2"]

    @pytest.mark.asyncio
    async def test_announce_failure_does_not_break_refresh(self, clock):
        source = AsyncMock()
        source.fetch_current_listings = AsyncMock(return_value=vehicles(1))
        cache = InventoryCache(
            source,
            retry_delays=(),
            on_new_listings=AsyncMock(side_effect=RuntimeError("sheets down")),
            clock=clock,
            sleep=clock.sleep,
        )
        await cache.refresh()
        source.fetch_current_listings = AsyncMock(return_value=vehicles(2))

        snapshot = await cache.refresh()
        assert len(snapshot.vehicles) == 2
