"""Default keyword tables for the showroom (Bangalore, luxury pre-owned cars).

The extractors only depend on the table shapes below; swap these out to run
the bot for a different showroom or city.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProductTable:
    """Brand/model tokens and buying-intent phrases."""

    brands: tuple[str, ...]
    buying_phrases: tuple[str, ...]
    max_length: int = 200


@dataclass(frozen=True)
class Gazetteer:
    """Place names in priority order: local areas, regional cities, other cities."""

    region: str
    state: str
    local_areas: tuple[str, ...]
    regional_cities: tuple[str, ...]
    other_cities: tuple[str, ...]


CAR_BRANDS = (
    "bmw", "mercedes", "benz", "audi", "toyota", "honda", "hyundai", "kia",
    "ford", "tata", "mahindra", "maruti", "suzuki", "volkswagen", "vw", "volvo",
    "jeep", "range rover", "land rover", "porsche", "lexus", "jaguar", "skoda",
    "evoque", "defender", "discovery", "freelander", "cayenne", "macan",
    "gle", "glc", "gla", "glb", "e class", "c class", "s class", "a class",
    "e200", "e220", "c200", "c220", "c300",
    "3 series", "5 series", "7 series", "x1", "x3", "x5", "x7",
    "320d", "520d", "530d", "730d", "118i", "120i",
    "a4", "a6", "a8", "q3", "q5", "q7", "q8",
    "xc60", "xc90", "xc40",
    "fortuner", "innova", "crysta", "legender",
    "creta", "nexon", "harrier", "safari", "thar",
    "city", "civic", "accord", "cr-v",
    "celerio", "baleno", "brezza", "ertiga", "swift",
    "tucson", "santa fe", "veloster", "elantra",
    "octavia", "superb", "kodiaq",
    "endeavour", "mustang", "ecosport",
    "bolero", "xuv", "xuv500", "xuv700", "scorpio",
)

BUYING_PHRASES = (
    "looking for", "i want", "i need", "want to buy", "planning to buy",
    "interested in", "searching for", "i am looking", "im looking",
    "budget is", "my budget", "can i get",
)

BANGALORE_AREAS = (
    "jp nagar", "hsr layout", "hsr", "koramangala", "indiranagar", "whitefield",
    "electronic city", "marathahalli", "bellandur", "sarjapur", "bannerghatta",
    "jayanagar", "btm layout", "btm", "wilson garden", "shivajinagar", "mg road",
    "brigade road", "lavelle road", "ub city", "sadashivanagar", "malleshwaram",
    "yeshwanthpur", "rajajinagar", "vijayanagar", "hebbal", "yelahanka",
    "devanahalli", "kengeri", "mysore road", "tumkur road", "cunningham road",
    "richmond town", "langford town", "cox town", "frazer town", "banaswadi",
    "hbr layout", "kalyan nagar", "rt nagar", "ramamurthy nagar", "mahadevapura",
    "kr puram", "tin factory", "old airport road", "hal", "domlur", "ejipura",
    "jakkur", "thanisandra", "hennur", "nagawara", "sahakara nagar", "sanjaynagar",
    "mathikere", "peenya", "dasarahalli", "chikkabanavara", "bangalore", "bengaluru", "blr",
)

KARNATAKA_CITIES = (
    "mysore", "mysuru", "mangalore", "mangaluru", "hubli", "dharwad",
    "belgaum", "bellary", "tumkur", "hassan", "mandya", "shimoga", "davangere",
)

OTHER_CITIES = (
    "mumbai", "delhi", "chennai", "hyderabad", "pune", "kolkata", "ahmedabad",
    "surat", "jaipur", "lucknow", "noida", "gurgaon",
)

DEFAULT_PRODUCT_TABLE = ProductTable(brands=CAR_BRANDS, buying_phrases=BUYING_PHRASES)

DEFAULT_GAZETTEER = Gazetteer(
    region="Bangalore",
    state="Karnataka",
    local_areas=BANGALORE_AREAS,
    regional_cities=KARNATAKA_CITIES,
    other_cities=OTHER_CITIES,
)
