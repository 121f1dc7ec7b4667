"""Tests for product-interest and location extraction."""

from showroom_bot.conversation.extractors import extract_location, extract_product_interest, is_local
from showroom_bot.conversation.gazetteers import Gazetteer, ProductTable


class TestProductInterest:

    def test_brand_mention_returns_original_text(self):
        text = "Do you have a BMW X5?"
        assert extract_product_interest(text) == text

    def test_buying_phrase_without_brand(self):
        assert extract_product_interest("I am looking for an SUV") == "I am looking for an SUV"

    def test_no_match(self):
        assert extract_product_interest("What time do you open?") is None

    def test_short_input_never_matches(self):
        assert extract_product_interest("x5") is None
        assert extract_product_interest("  q7 ") is None

    def test_long_text_is_truncated(self):
        text = "I want a Mercedes " + "with sunroof " * 30
        result = extract_product_interest(text)
        assert result.endswith("...")
        assert len(result) == 203

    def test_custom_table(self):
        table = ProductTable(brands=("yamaha",), buying_phrases=())
        assert extract_product_interest("any Yamaha bikes?", table) == "any Yamaha bikes?"
        assert extract_product_interest("any BMW cars?", table) is None


class TestLocation:

    def test_local_area_is_prefixed_with_region(self):
        assert extract_location("I stay in HSR Layout") == "Bangalore - Hsr Layout"

    def test_regional_city(self):
        assert extract_location("from mysore") == "Mysore, Karnataka"

    def test_other_city(self):
        assert extract_location("I'm in Mumbai right now") == "Mumbai"

    def test_local_areas_take_priority_over_cities(self):
        assert extract_location("moved from mumbai to koramangala") == "Bangalore - Koramangala"

    def test_no_location(self):
        assert extract_location("price please") is None
        assert extract_location("ok") is None

    def test_is_local(self):
        assert is_local("Bangalore - Whitefield") is True
        assert is_local("Mumbai") is False
        assert is_local(None) is False

    def test_custom_gazetteer(self):
        gazetteer = Gazetteer(
            region="Pune",
            state="Maharashtra",
            local_areas=("baner",),
            regional_cities=("nashik",),
            other_cities=("goa",),
        )
        assert extract_location("near Baner", gazetteer) == "Pune - Baner"
        assert extract_location("from nashik", gazetteer) == "Nashik, Maharashtra"
