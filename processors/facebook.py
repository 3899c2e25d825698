"""
Facebook Marketplace listing processor.
"""

import logging

from browser.selectors import SelectorChain, is_visible, is_visible_and_enabled
from core.models import Marketplace
from processors.base import FillReport, MarketplaceProcessor
from processors.payload import ListingPayload
from processors.registry import register_processor
from processors.success import FACEBOOK_RULES

logger = logging.getLogger(__name__)

NEXT_STEP_DELAY_MS = 1500


def _chain(name: str, *selectors: str) -> SelectorChain:
    return SelectorChain.of(name, *selectors, predicate=is_visible)


@register_processor(Marketplace.FACEBOOK)
class FacebookProcessor(MarketplaceProcessor):
    create_url = "https://www.facebook.com/marketplace/create/item"
    cookie_url = "https://www.facebook.com/"
    success_rules = FACEBOOK_RULES

    file_inputs = SelectorChain.of(
        "photo file input",
        'input[type="file"][accept*="image"]',
        'input[type="file"]',
    )
    uploader_openers = _chain(
        "add photos",
        'div[role="button"][aria-label*="photo" i]',
        'div[aria-label*="photo" i]',
        'span:has-text("Add photos")',
    )
    submit_buttons = SelectorChain.of(
        "publish button",
        'div[aria-label="Publish"][role="button"]',
        'div[aria-label*="Publish" i]',
        'button:has-text("Publish")',
    )
    next_buttons = SelectorChain.of(
        "next button",
        'div[aria-label="Next"][role="button"]',
        'button:has-text("Next")',
        predicate=is_visible_and_enabled,
    )
    thumbnail_selector = 'img[src^="blob:"]'
    verification_selectors = (
        'iframe[src*="captcha"]',
        'text=/security check/i',
        'text=/confirm your identity/i',
    )
    verification_path_hints = ("/checkpoint",)
    inline_error_selectors = ('[role="alert"]',)

    title = _chain(
        "title",
        'label[aria-label="Title"] input',
        'input[aria-label="Title"]',
        'input[placeholder*="What are you selling" i]',
    )
    price = _chain("price", 'label[aria-label="Price"] input', 'input[aria-label="Price"]')
    description = _chain(
        "description",
        'label[aria-label="Description"] textarea',
        'textarea[aria-label*="Description" i]',
        'div[contenteditable="true"][aria-label*="Description" i]',
    )
    category = _chain("category", 'label[aria-label="Category"]', 'div[aria-label="Category"]')
    condition = _chain("condition", 'label[aria-label="Condition"]', 'div[aria-label="Condition"]')

    async def _fill_fields(self, payload: ListingPayload, report: FillReport):
        await self.fill_field(report, "title", self.title, payload.title)
        if payload.price is not None:
            await self.fill_field(report, "price", self.price, f"{payload.price:.2f}")

        levels = payload.category_levels
        if levels:
            await self.select_field(report, "category", self.category, levels[-1], partial_match=True)
        await self.select_field(report, "condition", self.condition, payload.condition, partial_match=True)

        await self.fill_field(report, "description", self.description, payload.description)

    async def before_submit(self):
        """Advance past the 'Next' step when Publish is not on screen yet."""
        publish = SelectorChain.of(self.submit_buttons.name, *self.submit_buttons.selectors, predicate=is_visible)
        if await publish.resolve(self.page) is not None:
            return
        step = await self.next_buttons.resolve(self.page)
        if step is not None:
            logger.info("Facebook: clicking Next before Publish")
            await step.locator.click()
            await self.page.wait_for_timeout(NEXT_STEP_DELAY_MS)
