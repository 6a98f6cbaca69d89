"""Browser session controller using Playwright."""

import asyncio
import re
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Dialog,
    Error as PlaywrightError,
    Locator,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt

from webpilot.utils import log, config, BrowserSettings

from .errors import BrowserNotStartedError, InvalidTabError
from .models import SelectorDescriptor, Snapshot, TabInfo
from .perception import MAX_OPTIONS, MAX_SELECTOR_TEXT, SNAPSHOT_SCRIPT, build_snapshot
from .selectors import click_via_script, locator_for

T = TypeVar("T")

CONTEXT_DESTROYED = re.compile(
    r"Execution context was destroyed|Target closed|Frame was detached", re.IGNORECASE
)

SCROLL_VECTORS = {
    "down": (0, 1),
    "up": (0, -1),
    "left": (-1, 0),
    "right": (1, 0),
}


def is_context_destroyed(error: BaseException) -> bool:
    """True for the transient failure raised when a navigation tears down the document mid-read."""
    return isinstance(error, PlaywrightError) and bool(CONTEXT_DESTROYED.search(str(error)))


class BrowserController:
    """Manages the browser session: tabs, navigation, page reads and low-level input."""

    def __init__(self, settings: Optional[BrowserSettings] = None):
        """
        Initialize the browser controller.

        Args:
            settings: Browser settings (defaults to the global config)
        """
        self.settings = settings or config.browser
        self.browser_type = self.settings.browser_type
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Start the browser and pick (or open) the first tab."""
        log.info(f"Starting {self.browser_type} browser")

        self.playwright = await async_playwright().start()
        self.context, self.browser_type = await self._launch_context(self.browser_type)

        for page in self.context.pages:
            self._attach_dialog_handler(page)
        self.context.on("page", self._attach_dialog_handler)

        pages = self.context.pages
        self._page = pages[0] if pages else await self.context.new_page()
        log.info("Browser started successfully")
        return self._page

    def _launch_options(self) -> dict:
        return {
            "headless": self.settings.headless,
            "args": ["--no-sandbox"] if self.browser_type == "chromium" else [],
        }

    async def _launch_context(self, browser_type: str) -> Tuple[BrowserContext, str]:
        """Launch the requested browser type, falling back to WebKit if Chromium fails."""
        browser_map = {
            "chromium": self.playwright.chromium,
            "firefox": self.playwright.firefox,
            "webkit": self.playwright.webkit,
        }
        target = browser_map.get(browser_type.lower())
        if not target:
            log.warning(f"Unknown browser_type '{browser_type}', defaulting to Chromium")
            target = self.playwright.chromium
            browser_type = "chromium"
        self.browser_type = browser_type

        try:
            log.info(f"Launching Playwright browser: {browser_type}")
            return await self._open_context(target), browser_type
        except Exception as launch_error:
            log.error(f"Failed to launch {browser_type}: {launch_error}")
            if browser_type == "chromium":
                log.info("Attempting fallback to WebKit")
                self.browser_type = "webkit"
                return await self._open_context(self.playwright.webkit), "webkit"
            raise

    async def _open_context(self, target) -> BrowserContext:
        viewport = {"width": self.settings.viewport_width, "height": self.settings.viewport_height}
        options = self._launch_options()
        if self.settings.user_data_dir:
            # Persistent profile keeps logins between runs
            return await target.launch_persistent_context(
                self.settings.user_data_dir, viewport=viewport, **options
            )
        self.browser = await target.launch(**options)
        return await self.browser.new_context(viewport=viewport)

    def _attach_dialog_handler(self, page: Page):
        """Auto-accept alert/confirm/prompt so they never block the agent."""
        page.on("dialog", self._accept_dialog)

    @staticmethod
    async def _accept_dialog(dialog: Dialog):
        log.info(f"Auto-accepting {dialog.type} dialog: {dialog.message[:80]}")
        try:
            await dialog.accept()
        except PlaywrightError as e:
            log.debug(f"Dialog already handled: {e}")

    async def close(self):
        """Close the browser and cleanup."""
        log.info("Closing browser")

        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.context = None
        self.browser = None
        self.playwright = None
        self._page = None

    @property
    def page(self) -> Page:
        """The active tab."""
        if not self._page:
            raise BrowserNotStartedError("Browser not launched")
        return self._page

    @property
    def pages(self) -> List[Page]:
        if not self.context:
            raise BrowserNotStartedError("Browser not launched")
        return list(self.context.pages)

    async def settle(self, seconds: Optional[float] = None):
        """Give event handlers and async UI updates time to run."""
        await asyncio.sleep(self.settings.action_delay if seconds is None else seconds)

    async def wait_for_load(self, state: str = "domcontentloaded", timeout: Optional[int] = None) -> bool:
        """Wait for a load state; a timeout is not an error."""
        try:
            await self.page.wait_for_load_state(state, timeout=timeout or self.settings.load_timeout)
            return True
        except PlaywrightTimeoutError:
            log.debug(f"Load state '{state}' not reached in time")
            return False

    async def _with_navigation_retry(self, read: Callable[[], Awaitable[T]], what: str) -> T:
        """Run a read once more after the document finishes loading if a navigation interrupted it."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(is_context_destroyed),
            stop=stop_after_attempt(2),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log.warning(f"{what} interrupted by navigation, waiting for load and retrying")
                    await self.settle()
                    await self.wait_for_load("domcontentloaded", self.settings.retry_load_timeout)
                return await read()

    async def navigate(self, url: str):
        """
        Navigate the active tab to a URL.

        Waits for the DOM, then briefly for network idle so dynamic content can render.
        """
        log.info(f"Navigating to: {url}")
        page = self.page

        async def goto():
            await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout)

        await self._with_navigation_retry(goto, "Navigation")
        await self.wait_for_load("networkidle", self.settings.network_idle_timeout)
        await self.settle()

    async def new_tab(self, url: Optional[str] = None) -> int:
        """Open a new tab (optionally at a URL); it becomes the active tab. Returns its index."""
        if not self.context:
            raise BrowserNotStartedError("Browser not launched")
        self._page = await self.context.new_page()
        if url:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout)
            await self.wait_for_load("networkidle", self.settings.network_idle_timeout)
        await self.settle()
        return self.pages.index(self._page)

    async def switch_tab(self, tab_index: int):
        """Make the tab at a 0-based index the active one."""
        pages = self.pages
        if tab_index < 0 or tab_index >= len(pages):
            raise InvalidTabError(f"Invalid tab index: {tab_index} (tabs: 0-{len(pages) - 1})")
        self._page = pages[tab_index]
        await self._page.bring_to_front()
        await self.settle()

    async def list_tabs(self) -> List[TabInfo]:
        """URL and title of every open tab."""
        tabs = []
        for index, page in enumerate(self.pages):
            try:
                tabs.append(TabInfo(index=index, url=page.url, title=await page.title()))
            except PlaywrightError:
                tabs.append(TabInfo(index=index, url="(navigating)", title="(loading)"))
        return tabs

    async def get_snapshot(self) -> Snapshot:
        """Capture the active tab plus the inventory of all tabs."""
        page = self.page
        pages = self.pages
        active_index = pages.index(page) if page in pages else 0
        tabs = await self.list_tabs()

        await self.wait_for_load("domcontentloaded", self.settings.load_timeout)

        limits = {
            "maxElements": self.settings.max_elements,
            "maxHeadings": self.settings.max_headings,
            "maxContentChars": self.settings.max_content_chars,
            "maxOptions": MAX_OPTIONS,
            "maxSelectorText": MAX_SELECTOR_TEXT,
        }

        async def read():
            return await page.evaluate(SNAPSHOT_SCRIPT, limits)

        payload = await self._with_navigation_retry(read, "Snapshot")
        snapshot = build_snapshot(
            payload,
            tabs=tabs,
            active_tab_index=active_index,
            max_elements=self.settings.max_elements,
            max_headings=self.settings.max_headings,
            max_content_chars=self.settings.max_content_chars,
        )
        log.debug(f"Snapshot of {snapshot.url}: {len(snapshot.elements)} elements")
        return snapshot

    def locator_for(self, descriptor: SelectorDescriptor) -> Locator:
        return locator_for(self.page, descriptor)

    async def click_via_script(self, descriptor: SelectorDescriptor, text_hint: str = "") -> Any:
        return await click_via_script(self.page, descriptor, text_hint)

    async def clear_focused(self):
        """Select and delete the content of the focused field."""
        await self.page.keyboard.press("ControlOrMeta+A")
        await self.page.keyboard.press("Backspace")

    async def type_into_focused(self, text: str):
        """Type into whatever element currently has focus."""
        await self.page.keyboard.type(text, delay=50)

    async def scroll(self, direction: str = "down"):
        """Scroll the active tab with the mouse wheel."""
        dx, dy = SCROLL_VECTORS[direction]
        delta = self.settings.scroll_delta
        log.info(f"Scrolling {direction} by {delta}px")
        await self.page.mouse.wheel(dx * delta, dy * delta)
        await self.settle()
