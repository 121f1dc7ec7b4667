"""Inventory schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Vehicle(BaseModel):
    """A single live listing scraped from the showroom site."""

    model_config = ConfigDict(frozen=True)

    model: str
    year: Optional[str] = None
    price: str = "Contact for price"
    details: str = ""
    url: str


class InventorySnapshot(BaseModel):
    """Immutable list of listings from one successful scrape."""

    model_config = ConfigDict(frozen=True)

    vehicles: tuple[Vehicle, ...] = ()
    fetched_at: Optional[float] = None  # None = never fetched successfully

    @property
    def available(self) -> bool:
        return len(self.vehicles) > 0
