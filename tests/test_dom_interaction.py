"""
Tests for selector chains, dropdown matching, toggles and file inputs.
"""

import pytest

from browser.dom_interaction import (
    OPTION_SELECTOR,
    detect_toggle_state,
    match_option,
    select_dropdown_option,
    set_toggle,
    toggle_state_from_attributes,
    wait_for_file_input,
)
from browser.selectors import SelectorCandidate, SelectorChain, is_enabled, is_visible
from core.errors import ElementNotFoundError
from tests.utils.fake_browser import FakeElement, FakePage


class TestSelectorChain:

    @pytest.mark.asyncio
    async def test_first_matching_candidate_wins(self):
        page = FakePage()
        page.add("#legacy", FakeElement(text="legacy"))
        page.add('[data-testid="Title"]', FakeElement(text="testid"))
        chain = SelectorChain.of("title", '[data-testid="Title"]', "#legacy")

        match = await chain.resolve(page)

        assert match.selector == '[data-testid="Title"]'

    @pytest.mark.asyncio
    async def test_predicate_skips_to_next_candidate(self):
        page = FakePage()
        page.add("button.primary", FakeElement(enabled=False))
        page.add("button.fallback", FakeElement())
        chain = SelectorChain.of("submit", "button.primary", "button.fallback", predicate=is_enabled)

        match = await chain.resolve(page)

        assert match.selector == "button.fallback"

    @pytest.mark.asyncio
    async def test_predicate_checks_later_matches_of_same_selector(self):
        page = FakePage()
        page.add("input", FakeElement(visible=False), FakeElement(text="second"))
        chain = SelectorChain("input", [SelectorCandidate("input", is_visible)])

        match = await chain.resolve(page)

        assert match.index == 1

    @pytest.mark.asyncio
    async def test_require_raises_with_selectors(self):
        chain = SelectorChain.of("list button", "#a", "#b")
        with pytest.raises(ElementNotFoundError) as exc:
            await chain.require(FakePage())
        assert exc.value.selectors == ["#a", "#b"]


class TestMatchOption:

    def test_exact_does_not_match_superstring(self):
        assert match_option(["Very Good", "Fair"], "Good") is None

    def test_exact_is_case_insensitive(self):
        assert match_option(["New", "Like new", "Good"], "good") == 2

    def test_partial_takes_first_substring(self):
        assert match_option(["Very Good", "Good"], "good", partial_match=True) == 0

    def test_whitespace_is_normalized(self):
        assert match_option(["  Ship on\n your own "], "ship on your own") == 0

    def test_empty_target(self):
        assert match_option(["Anything"], "", partial_match=True) is None


class TestDropdown:

    def _page(self, *options):
        page = FakePage()
        page.add('[data-testid="Condition"]', FakeElement())
        page.add(OPTION_SELECTOR, *(FakeElement(text=o) for o in options))
        return page

    @pytest.mark.asyncio
    async def test_selects_exact_option(self):
        page = self._page("Very Good", "Good")
        chain = SelectorChain.of("condition", '[data-testid="Condition"]')

        assert await select_dropdown_option(page, chain, "Good") is True

        assert page.elements[OPTION_SELECTOR][0].clicks == 0
        assert page.elements[OPTION_SELECTOR][1].clicks == 1

    @pytest.mark.asyncio
    async def test_partial_selects_first_substring(self):
        page = self._page("Very Good", "Good")
        chain = SelectorChain.of("condition", '[data-testid="Condition"]')

        assert await select_dropdown_option(page, chain, "good", partial_match=True) is True

        assert page.elements[OPTION_SELECTOR][0].clicks == 1

    @pytest.mark.asyncio
    async def test_no_match_returns_false_and_closes(self):
        page = self._page("New", "Fair")
        chain = SelectorChain.of("condition", '[data-testid="Condition"]')

        assert await select_dropdown_option(page, chain, "Good") is False
        assert page.keyboard.pressed == ["Escape"]

    @pytest.mark.asyncio
    async def test_missing_trigger_returns_false(self):
        chain = SelectorChain.of("condition", '[data-testid="Condition"]')
        assert await select_dropdown_option(FakePage(), chain, "Good") is False

    @pytest.mark.asyncio
    async def test_option_list_never_appears(self):
        page = FakePage()
        page.add('[data-testid="Condition"]', FakeElement())
        chain = SelectorChain.of("condition", '[data-testid="Condition"]')
        assert await select_dropdown_option(page, chain, "Good") is False


class TestToggle:

    @pytest.mark.parametrize("attrs,expected", [
        ({"checked": True}, True),
        ({"checked": False}, False),
        ({"ariaChecked": "true"}, True),
        ({"ariaPressed": "true"}, True),
        ({"ariaPressed": "false"}, False),
        ({"className": "toggle checked"}, True),
        ({"className": "unchecked"}, False),
        ({"dataState": "checked"}, True),
        ({}, False),
        (None, False),
    ])
    def test_state_from_attributes(self, attrs, expected):
        assert toggle_state_from_attributes(attrs) is expected

    @pytest.mark.asyncio
    async def test_detect_reads_element(self):
        assert await detect_toggle_state(FakeElement(attrs={"ariaPressed": "true"})) is True

    @pytest.mark.asyncio
    async def test_equal_state_clicks_zero_times(self):
        element = FakeElement(attrs={"ariaPressed": "true"}, toggles=True)
        assert await set_toggle(element, True) is False
        assert element.clicks == 0

    @pytest.mark.asyncio
    async def test_different_state_clicks_once(self):
        element = FakeElement(attrs={"ariaPressed": "false"}, toggles=True)
        assert await set_toggle(element, True) is True
        assert element.clicks == 1
        assert await set_toggle(element, True) is False
        assert element.clicks == 1


class TestFileInput:

    INPUTS = SelectorChain.of("file input", 'input[type="file"]')
    OPENERS = SelectorChain.of("uploader", "button.add-photos", predicate=is_visible)

    @pytest.mark.asyncio
    async def test_direct_input(self):
        page = FakePage()
        page.add('input[type="file"]', FakeElement(visible=False))
        assert await wait_for_file_input(page, self.INPUTS, self.OPENERS) is not None

    @pytest.mark.asyncio
    async def test_clicks_opener_then_retries(self):
        page = FakePage()

        def render_input(element):
            page.add('input[type="file"]', FakeElement(visible=False))

        opener = page.add("button.add-photos", FakeElement(on_click=render_input))

        locator = await wait_for_file_input(page, self.INPUTS, self.OPENERS)

        assert locator is not None
        assert opener.clicks == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_one_retry(self):
        page = FakePage()
        opener = page.add("button.add-photos", FakeElement())

        assert await wait_for_file_input(page, self.INPUTS, self.OPENERS) is None
        assert opener.clicks == 1
