"""Fetch the live inventory once and print what the assistant would see."""

import asyncio

from showroom_bot.errors import InventoryFetchError
from showroom_bot.inventory.scraper import InventoryScraper
from showroom_bot.llm.prompts.persona import build_inventory_text
from showroom_bot.schemas.inventory import InventorySnapshot


async def scrape():
    scraper = InventoryScraper()
    try:
        vehicles = await scraper.fetch_current_listings()
    except InventoryFetchError as e:
        print(f"Scrape failed: {e}")
        return

    print(build_inventory_text(InventorySnapshot(vehicles=tuple(vehicles))))
    print(f"\n{len(vehicles)} cars available (sold cars excluded)")


if __name__ == "__main__":
    asyncio.run(scrape())
