"""
In-memory stand-ins for the Playwright objects the worker touches.

Pages hold a dict of selector -> elements; locators resolve lazily against it
so elements added by click/upload callbacks show up on the next query.
"""

import asyncio
import inspect
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse


class FakeTimeoutError(Exception):
    pass


class FakeElement:
    def __init__(
        self,
        text: str = "",
        visible: bool = True,
        enabled: bool = True,
        attrs: Optional[Dict[str, Any]] = None,
        on_click: Optional[Callable] = None,
        on_files: Optional[Callable] = None,
        toggles: bool = False,
    ):
        self.text = text
        self.visible = visible
        self.enabled = enabled
        self.attrs = dict(attrs or {})
        self.on_click = on_click
        self.on_files = on_files
        self.toggles = toggles
        self.clicks = 0
        self.value = None
        self.files: List[Any] = []

    async def _call(self, callback, *args):
        if callback is None:
            return
        result = callback(*args)
        if inspect.isawaitable(result):
            await result

    async def is_visible(self):
        return self.visible

    async def is_enabled(self):
        return self.enabled

    async def click(self, **kwargs):
        self.clicks += 1
        if self.toggles:
            self.attrs["ariaPressed"] = "false" if self.attrs.get("ariaPressed") == "true" else "true"
        await self._call(self.on_click, self)

    async def fill(self, value):
        self.value = value

    async def set_input_files(self, files):
        self.files.append(files)
        await self._call(self.on_files, self, files)

    async def evaluate(self, script, arg=None):
        return dict(self.attrs)

    async def inner_text(self):
        return self.text


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, index: Optional[int] = None):
        self.page = page
        self.selector = selector
        self.index = index

    def _items(self) -> List[FakeElement]:
        return self.page.elements.get(self.selector, [])

    def _element(self) -> Optional[FakeElement]:
        items = self._items()
        index = self.index or 0
        return items[index] if index < len(items) else None

    def _require(self) -> FakeElement:
        element = self._element()
        if element is None:
            raise FakeTimeoutError(f"No element for {self.selector!r}")
        return element

    @property
    def first(self):
        return FakeLocator(self.page, self.selector, 0)

    def nth(self, index: int):
        return FakeLocator(self.page, self.selector, index)

    async def count(self):
        if self.index is None:
            return len(self._items())
        return 1 if self._element() is not None else 0

    async def all_inner_texts(self):
        return [e.text for e in self._items()]

    async def is_visible(self):
        element = self._element()
        return bool(element and element.visible)

    async def is_enabled(self):
        return await self._require().is_enabled()

    async def click(self, **kwargs):
        await self._require().click(**kwargs)

    async def fill(self, value):
        await self._require().fill(value)

    async def set_input_files(self, files):
        await self._require().set_input_files(files)

    async def evaluate(self, script, arg=None):
        return await self._require().evaluate(script, arg)

    async def inner_text(self):
        return await self._require().inner_text()

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None):
        element = self._element()
        if element is None or (state == "visible" and not element.visible):
            raise FakeTimeoutError(f"Timed out waiting for {self.selector!r}")


class FakeKeyboard:
    def __init__(self):
        self.pressed: List[str] = []

    async def press(self, key):
        self.pressed.append(key)


class FakePage:
    def __init__(self, url: str = "about:blank", html: str = "", redirect_to: Optional[str] = None):
        self.url = url
        self.html = html
        self.redirect_to = redirect_to
        self.elements: Dict[str, List[FakeElement]] = {}
        self.goto_calls: List[str] = []
        self.keyboard = FakeKeyboard()
        self.closed = False

    def add(self, selector: str, *elements: FakeElement) -> FakeElement:
        self.elements.setdefault(selector, []).extend(elements)
        return elements[0] if elements else None

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def goto(self, url, **kwargs):
        self.goto_calls.append(url)
        self.url = self.redirect_to or url

    async def wait_for_timeout(self, ms):
        await asyncio.sleep(0)

    async def wait_for_url(self, pattern, timeout: Optional[float] = None):
        deadline = time.monotonic() + (timeout or 30000) / 1000
        while not pattern.search(self.url):
            if time.monotonic() >= deadline:
                raise FakeTimeoutError(f"URL never matched {pattern.pattern}")
            await asyncio.sleep(0.01)

    async def content(self):
        return self.html

    async def close(self):
        self.closed = True


def _cookie_matches(cookie: Dict[str, Any], host: str) -> bool:
    if "url" in cookie:
        return urlparse(cookie["url"]).hostname == host
    domain = str(cookie.get("domain", "")).lstrip(".")
    return host == domain or host.endswith("." + domain)


class FakeContext:
    def __init__(self, page: Optional[FakePage] = None, options: Optional[Dict[str, Any]] = None):
        self.page = page or FakePage()
        self.options = dict(options or {})
        self.stored_cookies: List[Dict[str, Any]] = []
        self.init_scripts: List[str] = []
        self.default_timeout = None
        self.default_navigation_timeout = None
        self.pages: List[FakePage] = []
        self.closed = False

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def add_cookies(self, cookies):
        for cookie in cookies:
            if "url" in cookie and ("domain" in cookie or "path" in cookie):
                raise ValueError("Cookie should have either url or domain/path")
            if "url" not in cookie and not ("domain" in cookie and "path" in cookie):
                raise ValueError("Cookie should have a url or a domain/path pair")
        self.stored_cookies.extend(cookies)

    async def cookies(self, urls=None):
        if urls is None:
            return list(self.stored_cookies)
        host = urlparse(urls if isinstance(urls, str) else urls[0]).hostname
        return [c for c in self.stored_cookies if _cookie_matches(c, host)]

    def set_default_timeout(self, ms):
        self.default_timeout = ms

    def set_default_navigation_timeout(self, ms):
        self.default_navigation_timeout = ms

    async def new_page(self):
        self.pages.append(self.page)
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page_factory: Optional[Callable[[], FakePage]] = None):
        self.page_factory = page_factory or FakePage
        self.contexts: List[FakeContext] = []

    async def new_context(self, **options):
        context = FakeContext(self.page_factory(), options)
        self.contexts.append(context)
        return context

    def is_connected(self):
        return True
