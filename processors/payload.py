"""
Typed view over a job's listing payload.

Enqueuers write camelCase (web and mobile clients) or snake_case keys; both
are accepted. Unknown keys are kept in ``raw``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.errors import ValidationError
from core.photo_ingestion import photo_source

CATEGORY_SEPARATOR = ">"


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _as_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).replace("$", "").replace(",", "").strip())
    except ValueError:
        return None


def _as_optional_bool(value: Any) -> Optional[bool]:
    """None when the key was absent, so untouched toggles keep the site default."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class ListingPayload:
    title: str = ""
    description: str = ""
    price: Optional[float] = None
    category: str = ""
    brand: str = ""
    condition: str = ""
    color: str = ""
    size: str = ""
    ships_from: str = ""
    delivery_method: str = ""
    shipping_payer: str = ""
    smart_pricing: Optional[bool] = None
    floor_price: Optional[float] = None
    smart_offers: Optional[bool] = None
    minimum_price: Optional[float] = None
    marketplace: str = ""
    photos: List[Any] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ListingPayload":
        data = dict(data or {})
        shipping = data.get("shipping") if isinstance(data.get("shipping"), dict) else {}

        photos = _pick(data, "photos", "images", "imageUrls", "image_urls", "photoUrls")
        if not isinstance(photos, list):
            photos = [photos] if photos else []

        return cls(
            title=_as_text(_pick(data, "title", "name")),
            description=_as_text(_pick(data, "description")),
            price=_as_price(_pick(data, "price", "listingPrice", "listing_price")),
            category=_as_text(_pick(data, "category", "mercariCategory", "mercari_category", "categoryPath")),
            brand=_as_text(_pick(data, "brand")),
            condition=_as_text(_pick(data, "condition")),
            color=_as_text(_pick(data, "color")),
            size=_as_text(_pick(data, "size")),
            ships_from=_as_text(_pick(data, "shipsFrom", "ships_from", "zipCode", "zip_code", "zip")),
            delivery_method=_as_text(
                shipping.get("method")
                or _pick(data, "deliveryMethod", "delivery_method", "shippingMethod", "shippingCarrier")
            ),
            shipping_payer=_as_text(shipping.get("paidBy") or _pick(data, "shippingPayer", "shipping_payer")),
            smart_pricing=_as_optional_bool(_pick(data, "smartPricing", "smart_pricing")),
            floor_price=_as_price(_pick(data, "floorPrice", "floor_price", "smartPricingFloor")),
            smart_offers=_as_optional_bool(_pick(data, "smartOffers", "smart_offers")),
            minimum_price=_as_price(_pick(data, "minimumPrice", "minimum_price", "minPrice")),
            marketplace=_as_text(_pick(data, "marketplace", "platform")).lower(),
            photos=photos,
            raw=data,
        )

    @property
    def category_levels(self) -> List[str]:
        """Category path split into levels, outermost first."""
        return [part.strip() for part in self.category.split(CATEGORY_SEPARATOR) if part.strip()]

    @property
    def photo_refs(self) -> List[Any]:
        return [p for p in self.photos if photo_source(p)]

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.title:
            missing.append("title")
        if self.price is None or self.price <= 0:
            missing.append("price")
        if not self.photo_refs:
            missing.append("photos")
        return missing

    def validate(self) -> "ListingPayload":
        missing = self.missing_fields()
        if missing:
            raise ValidationError(f"Listing payload missing or invalid: {', '.join(missing)}")
        return self
