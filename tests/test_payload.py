"""
Tests for listing payload parsing and validation.
"""

import pytest

from core.errors import ValidationError
from processors.payload import ListingPayload


class TestFromDict:

    def test_camel_case_keys(self):
        payload = ListingPayload.from_dict({
            "title": "Vintage Lamp",
            "price": "$1,045.50",
            "mercariCategory": "Home > Lighting > Lamps",
            "shipsFrom": "94105",
            "deliveryMethod": "prepaid label",
            "smartPricing": True,
            "floorPrice": 30,
            "photos": [{"preview": "https://x/a.jpg"}, {"id": 2}],
        })
        assert payload.price == 1045.5
        assert payload.category_levels == ["Home", "Lighting", "Lamps"]
        assert payload.ships_from == "94105"
        assert payload.delivery_method == "prepaid label"
        assert payload.smart_pricing is True
        assert payload.smart_offers is None
        assert payload.photo_refs == [{"preview": "https://x/a.jpg"}]

    def test_snake_case_keys(self):
        payload = ListingPayload.from_dict({"title": "Lamp", "price": 45, "ships_from": "10001", "smart_offers": "no"})
        assert payload.ships_from == "10001"
        assert payload.smart_offers is False

    def test_shipping_object(self):
        payload = ListingPayload.from_dict({"shipping": {"method": "Ship on your own", "paidBy": "buyer"}})
        assert payload.delivery_method == "Ship on your own"
        assert payload.shipping_payer == "buyer"


class TestValidate:

    def test_valid(self):
        payload = ListingPayload.from_dict({"title": "Vintage Lamp", "price": "45", "photos": ["a.jpg"]})
        assert payload.validate() is payload

    @pytest.mark.parametrize("data,missing", [
        ({"price": 5, "photos": ["a"]}, "title"),
        ({"title": "x", "price": 0, "photos": ["a"]}, "price"),
        ({"title": "x", "price": "free", "photos": ["a"]}, "price"),
        ({"title": "x", "price": 5, "photos": []}, "photos"),
    ])
    def test_missing_fields(self, data, missing):
        with pytest.raises(ValidationError, match=missing):
            ListingPayload.from_dict(data).validate()
