"""Executes element actions with ordered fallback strategies."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from playwright.async_api import Locator

from webpilot.utils import log, config, BrowserSettings

from .errors import ElementNotFoundError
from .models import ActionResult, Element, Snapshot

Strategy = Tuple[str, Callable[[], Awaitable[Any]]]

WRAPPER_TAGS = ("div", "span", "li", "article", "section")

DISABLED_MESSAGE = (
    "Element is disabled. Fill required fields or wait for it to become enabled, then try again."
)
CLICK_REMEDIATION = (
    "Try scroll(down) to bring the element into view, then wait(2), then click again; "
    "or the element may have changed (re-check snapshot)."
)


@dataclass(frozen=True)
class Attempt:
    """Result of one strategy: either it worked or the next one should run."""
    strategy: str
    ok: bool
    error: Optional[str] = None


def _first_line(error: BaseException) -> str:
    text = str(error).strip() or error.__class__.__name__
    return text.splitlines()[0]


async def attempt(name: str, action: Callable[[], Awaitable[Any]]) -> Attempt:
    """Run one strategy and turn its failure into a value."""
    try:
        await action()
        return Attempt(name, True)
    except Exception as e:
        return Attempt(name, False, _first_line(e))


async def run_chain(strategies: Sequence[Strategy], description: str = "") -> List[Attempt]:
    """Try strategies left to right and stop at the first success."""
    attempts: List[Attempt] = []
    for name, action in strategies:
        result = await attempt(name, action)
        attempts.append(result)
        if result.ok:
            log.info(f"[{name}] succeeded ({description})")
            break
        log.warning(f"[{name}] failed ({description}): {result.error}")
    return attempts


def chain_succeeded(attempts: Sequence[Attempt]) -> bool:
    return bool(attempts) and attempts[-1].ok


def is_wrapper_card(element: Element) -> bool:
    """Container element posing as a button; the real target is usually a link inside it."""
    return element.tag in WRAPPER_TAGS and element.role == "button"


class ActionExecutor:
    """Acts on snapshot elements in the live page, tolerating DOM changes since capture."""

    def __init__(self, browser, settings: Optional[BrowserSettings] = None):
        """
        Args:
            browser: BrowserController (or anything with the same page-level methods)
            settings: Browser settings with timeouts and delays
        """
        self.browser = browser
        self.settings = settings or getattr(browser, "settings", None) or config.browser

    def _target(self, snapshot: Snapshot, element_id: int) -> Union[Element, ActionResult]:
        """Find the element or the failure to report; disabled elements are refused here."""
        try:
            element = snapshot.require(element_id)
        except ElementNotFoundError as e:
            return ActionResult.fail(f"{e}. Use an id from the latest snapshot.")
        if element.disabled:
            log.info(f"Refusing action on disabled element #{element_id}")
            return ActionResult.fail(DISABLED_MESSAGE)
        return element

    async def _prepare(self, locator: Locator, element: Element):
        """Best effort: wait until visible and scroll into view. Later strategies can still succeed."""
        try:
            await locator.wait_for(state="visible", timeout=self.settings.visible_timeout)
            await locator.scroll_into_view_if_needed(timeout=self.settings.scroll_timeout)
        except Exception as e:
            log.warning(f"Element #{element.id} not ready: {_first_line(e)}")
        await self.browser.settle()

    def _click_strategies(self, locator: Locator, element: Element) -> List[Strategy]:
        s = self.settings

        async def native():
            await locator.click(timeout=s.click_timeout)

        async def forced():
            await locator.click(timeout=s.force_click_timeout, force=True)

        async def scripted():
            await self.browser.click_via_script(element.selector, element.text_hint)

        if not is_wrapper_card(element):
            return [("native click", native), ("forced click", forced), ("script click", scripted)]

        inner_link = locator.locator("a[href]").first

        async def inner_native():
            await inner_link.wait_for(state="visible", timeout=s.inner_link_timeout)
            await inner_link.click(timeout=s.inner_link_click_timeout)

        async def inner_forced():
            await inner_link.click(timeout=s.force_click_timeout, force=True)

        return [
            ("script click", scripted),
            ("inner link click", inner_native),
            ("forced inner link click", inner_forced),
        ]

    async def click(self, snapshot: Snapshot, element_id: int) -> ActionResult:
        """Click an element by snapshot id."""
        target = self._target(snapshot, element_id)
        if isinstance(target, ActionResult):
            return target

        label = " | ".join(part for part in (target.text, target.href) if part) or "(no label)"
        log.info(f"Clicking element #{element_id} selector={target.selector} label={label[:80]}")

        locator = self.browser.locator_for(target.selector)
        await self._prepare(locator, target)

        attempts = await run_chain(self._click_strategies(locator, target), f"element #{element_id}")
        if not chain_succeeded(attempts):
            return ActionResult.fail(f"Could not click element {element_id}: {attempts[-1].error}. {CLICK_REMEDIATION}")

        await self.browser.settle(self.settings.click_settle_delay)
        return ActionResult.ok(f"Clicked element {element_id}")

    async def type_text(self, snapshot: Snapshot, element_id: Optional[int], text: str) -> ActionResult:
        """Replace the content of a field, or type into the focused field when no id is given."""
        if element_id is None:
            try:
                await self.browser.type_into_focused(text)
            except Exception as e:
                return ActionResult.fail(_first_line(e))
            await self.browser.settle()
            return ActionResult.ok("Typed text into focused field")

        target = self._target(snapshot, element_id)
        if isinstance(target, ActionResult):
            return target

        log.info(f"Typing into element #{element_id}")
        locator = self.browser.locator_for(target.selector)
        timeout = self.settings.input_timeout

        async def fill():
            await locator.fill("", timeout=timeout)
            await locator.fill(text, timeout=timeout)

        async def forced_fill():
            await locator.click(timeout=timeout, force=True)
            await fill()

        async def keyboard():
            await locator.focus(timeout=timeout)
            await self.browser.clear_focused()
            await self.browser.type_into_focused(text)

        attempts = await run_chain(
            [("fill", fill), ("forced fill", forced_fill), ("keyboard typing", keyboard)],
            f"element #{element_id}",
        )
        if not chain_succeeded(attempts):
            return ActionResult.fail(f"Could not type into element {element_id}: {attempts[-1].error}")

        await self.browser.settle()
        return ActionResult.ok(f"Typed text into element {element_id}")

    async def select_option(self, snapshot: Snapshot, element_id: int, value_or_label: str) -> ActionResult:
        """Select a dropdown option by value, then by visible label."""
        target = self._target(snapshot, element_id)
        if isinstance(target, ActionResult):
            return target

        locator = self.browser.locator_for(target.selector)
        timeout = self.settings.input_timeout

        async def by_value():
            await locator.select_option(value=value_or_label, timeout=timeout)

        async def by_label():
            await locator.select_option(label=value_or_label, timeout=timeout)

        attempts = await run_chain(
            [("select by value", by_value), ("select by label", by_label)],
            f"element #{element_id}",
        )
        if not chain_succeeded(attempts):
            return ActionResult.fail(
                f'Could not select "{value_or_label}" in element {element_id}: {attempts[-1].error}'
            )

        await self.browser.settle()
        return ActionResult.ok(f'Selected "{value_or_label}" in element {element_id}')

    async def set_checkbox(self, snapshot: Snapshot, element_id: int, checked: bool) -> ActionResult:
        """Check or uncheck a checkbox or radio button."""
        target = self._target(snapshot, element_id)
        if isinstance(target, ActionResult):
            return target

        locator = self.browser.locator_for(target.selector)
        timeout = self.settings.input_timeout
        try:
            if checked:
                await locator.check(timeout=timeout)
            else:
                await locator.uncheck(timeout=timeout)
        except Exception as e:
            return ActionResult.fail(_first_line(e))

        await self.browser.settle()
        return ActionResult.ok(f"{'Checked' if checked else 'Unchecked'} element {element_id}")
