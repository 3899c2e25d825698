"""
Mercari listing processor.

Selectors prefer Mercari's data-testid attributes and fall back to the
legacy element ids and generic attribute heuristics.
"""

import logging

from browser.selectors import SelectorChain, is_visible
from core.errors import ImageUploadError
from core.models import Marketplace
from processors.base import FillReport, MarketplaceProcessor
from processors.payload import ListingPayload
from processors.registry import register_processor
from processors.success import MERCARI_RULES

logger = logging.getLogger(__name__)


def _chain(name: str, *selectors: str) -> SelectorChain:
    return SelectorChain.of(name, *selectors, predicate=is_visible)


def category_level_chain(level: int) -> SelectorChain:
    return _chain(f"category level {level}", f'[data-testid="CategoryL{level}"]')


def delivery_option_label(method: str) -> str:
    """Map free-form delivery preferences onto Mercari's option labels."""
    lowered = method.lower()
    if "prepaid" in lowered or "label" in lowered:
        return "Prepaid"
    if "own" in lowered:
        return "Ship on your own"
    return method



def shipping_payer_label(payer: str) -> str:
    """Map who pays shipping onto Mercari's option text."""
    lowered = payer.lower()
    if "buyer" in lowered:
        return "Buyer"
    if "seller" in lowered or lowered in ("me", "self", "i"):
        return "Seller"
    return payer

@register_processor(Marketplace.MERCARI)
class MercariProcessor(MarketplaceProcessor):
    create_url = "https://www.mercari.com/sell/"
    cookie_url = "https://www.mercari.com/"
    success_rules = MERCARI_RULES

    file_inputs = SelectorChain.of(
        "photo file input",
        '[data-testid="PhotoUploader"] input[type="file"]',
        'input[type="file"][accept*="image"]',
        'input[type="file"]',
    )
    uploader_openers = _chain(
        "photo uploader",
        '[data-testid="PhotoUploaderButton"]',
        'button:has-text("Add more")',
        'button:has-text("Add photos")',
    )
    submit_buttons = SelectorChain.of(
        "list button",
        '[data-testid="ListButton"]',
        'form button[type="submit"]',
    )
    thumbnail_selector = 'img[src^="blob:"], img[src*="mercari"]'
    verification_selectors = (
        'iframe[src*="captcha"]',
        'iframe[src*="hcaptcha"]',
        'iframe[src*="recaptcha"]',
        'text=/captcha/i',
        'text=/are you a robot/i',
        'text=/unusual traffic/i',
    )
    inline_error_selectors = (
        '[data-testid="ErrorMessage"]',
        'form [role="alert"]',
        '.error-message',
    )

    title = _chain("title", '[data-testid="Title"]', '#sellName', 'input[name="sellName"]')
    description = _chain(
        "description", '[data-testid="Description"]', '#sellDescription', 'textarea[name="sellDescription"]'
    )
    price = _chain("price", '[data-testid="Price"]', '#Price', 'input[name="sellPrice"]')
    brand = _chain("brand", '[data-testid="Brand"]')
    condition = _chain("condition", '[data-testid="Condition"]')
    color = _chain("color", '[data-testid="Color"]')
    size = _chain("size", '[data-testid="Size"]')
    ships_from_edit = _chain("ships from edit", '[data-testid="ShipsFromEditButton"]')
    ships_from_zip = _chain("ships from zip", '[data-testid="ShipsFromZipInput"]', 'input[name="zipCode"]')
    delivery = _chain("delivery method", '[data-testid="ShippingMethod"]')
    shipping_payer = _chain("shipping payer", '[data-testid="ShippingPayer"]', '[data-testid="WhoPaysShipping"]')
    smart_pricing_toggle = _chain("smart pricing", '[data-testid="SmartPricingButton"]')
    floor_price = _chain("floor price", '#sellMinPriceForAutoPriceDrop', '[data-testid="SmartPricingFloorPrice"]')
    smart_offers_toggle = _chain("smart offers", '[data-testid="SmartOffersButton"]', '[data-testid="SmartOffersToggle"]')
    minimum_price = _chain("minimum price", '[data-testid="SmartOffersMinPrice"]', '#sellMinPriceForSmartOffers')

    async def after_upload(self, count: int):
        thumbnails = await self.page.locator(self.thumbnail_selector).count()
        logger.info(f"Mercari shows {thumbnails} thumbnail(s) for {count} uploaded photo(s)")
        if thumbnails == 0:
            raise ImageUploadError(count, "no photo thumbnails rendered after upload")

    async def _fill_fields(self, payload: ListingPayload, report: FillReport):
        await self.fill_field(report, "title", self.title, payload.title)
        await self.fill_field(report, "description", self.description, payload.description)

        await self._fill_category(payload, report)

        await self.select_field(report, "brand", self.brand, payload.brand, partial_match=True)
        await self.select_field(report, "condition", self.condition, payload.condition)
        await self.select_field(report, "color", self.color, payload.color)
        await self.select_field(report, "size", self.size, payload.size)

        if payload.ships_from:
            edit = await self.ships_from_edit.resolve(self.page)
            if edit is not None:
                await edit.locator.click()
            await self.fill_field(report, "ships_from", self.ships_from_zip, payload.ships_from)

        if payload.delivery_method:
            await self.select_field(
                report, "delivery_method", self.delivery,
                delivery_option_label(payload.delivery_method), partial_match=True,
            )

        if payload.shipping_payer:
            await self.select_field(
                report, "shipping_payer", self.shipping_payer,
                shipping_payer_label(payload.shipping_payer), partial_match=True,
            )

        if payload.price is not None:
            await self.fill_field(report, "price", self.price, str(int(round(payload.price))))

        if await self.toggle_field(report, "smart_pricing", self.smart_pricing_toggle, payload.smart_pricing):
            if payload.smart_pricing and payload.floor_price:
                await self.fill_field(report, "floor_price", self.floor_price, str(int(round(payload.floor_price))))

        if await self.toggle_field(report, "smart_offers", self.smart_offers_toggle, payload.smart_offers):
            if payload.smart_offers and payload.minimum_price:
                await self.fill_field(
                    report, "minimum_price", self.minimum_price, str(int(round(payload.minimum_price)))
                )

    async def _fill_category(self, payload: ListingPayload, report: FillReport):
        """Walk category levels in order, stopping at the first level that fails."""
        levels = payload.category_levels
        for level, name in enumerate(levels):
            ok = await self.select_field(report, f"category_l{level}", category_level_chain(level), name)
            if not ok:
                for remaining in range(level + 1, len(levels)):
                    report.mark(f"category_l{remaining}", False, f"level {level} not selected")
                break
