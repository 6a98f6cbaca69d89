"""Tests for the fallback chains of the action executor."""

import asyncio

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from webpilot.core.action_executor import (
    CLICK_REMEDIATION,
    DISABLED_MESSAGE,
    ActionExecutor,
    attempt,
    is_wrapper_card,
    run_chain,
)

from fakes import FakeBrowser, FakeLocator, fast_browser_settings, make_element, make_snapshot


def timeout(message="Timeout 10000ms exceeded."):
    return PlaywrightTimeoutError(message)


def executor_for(locator=None, script_error=None):
    browser = FakeBrowser(locator=locator, script_error=script_error)
    return ActionExecutor(browser, fast_browser_settings()), browser


def test_native_click_success_skips_other_tiers():
    executor, browser = executor_for()
    snapshot = make_snapshot(make_element(1, "Save"))

    result = asyncio.run(executor.click(snapshot, 1))

    assert result.success
    assert result.message == "Clicked element 1"
    assert browser.locator.calls.count("click") == 1
    assert "click:force" not in browser.locator.calls
    assert "script click" not in browser.calls


def test_native_timeout_tries_forced_before_script():
    executor, browser = executor_for(FakeLocator({"click": timeout()}))
    snapshot = make_snapshot(make_element(1, "Save"))

    result = asyncio.run(executor.click(snapshot, 1))

    assert result.success
    calls = browser.locator.calls
    assert calls.index("click") < calls.index("click:force")
    assert "script click" not in browser.calls


def test_script_click_is_the_last_tier():
    executor, browser = executor_for(FakeLocator({"click": timeout(), "click:force": timeout()}))
    snapshot = make_snapshot(make_element(1, "Save"))

    result = asyncio.run(executor.click(snapshot, 1))

    assert result.success
    assert browser.calls[-1] == "script click"


def test_exhausted_chain_reports_remediation():
    executor, _ = executor_for(
        FakeLocator({"click": timeout(), "click:force": timeout()}),
        script_error=PlaywrightError("Element not found or not clickable"),
    )
    snapshot = make_snapshot(make_element(1, "Save"))

    result = asyncio.run(executor.click(snapshot, 1))

    assert not result.success
    assert "Element not found or not clickable" in result.message
    assert result.message.endswith(CLICK_REMEDIATION)


def test_preparation_failure_does_not_stop_the_chain():
    executor, browser = executor_for(FakeLocator({"wait_for": timeout("Timeout 15000ms exceeded.")}))
    snapshot = make_snapshot(make_element(1, "Save"))

    result = asyncio.run(executor.click(snapshot, 1))

    assert result.success
    assert "click" in browser.locator.calls


def test_disabled_element_is_refused_before_any_tier():
    executor, browser = executor_for()
    snapshot = make_snapshot(make_element(1, "Submit", disabled=True))

    result = asyncio.run(executor.click(snapshot, 1))

    assert not result.success
    assert result.message == DISABLED_MESSAGE
    assert browser.calls == []
    assert browser.locator.calls == []


def test_unknown_element_id():
    executor, browser = executor_for()
    result = asyncio.run(executor.click(make_snapshot(make_element(1, "Save")), 42))

    assert not result.success
    assert result.message.startswith("Element id not found in snapshot: 42. Use an id from the latest snapshot.")
    assert browser.calls == []


def test_wrapper_card_uses_script_click_first():
    executor, browser = executor_for()
    card = make_element(1, "Hotel Paris", tag="div", role="button")
    assert is_wrapper_card(card)

    result = asyncio.run(executor.click(make_snapshot(card), 1))

    assert result.success
    assert "script click" in browser.calls
    assert "click" not in browser.locator.calls


def test_wrapper_card_falls_back_to_inner_link():
    executor, browser = executor_for(script_error=PlaywrightError("Element not found or not clickable"))
    card = make_element(1, "Hotel Paris", tag="li", role="button")

    result = asyncio.run(executor.click(make_snapshot(card), 1))

    assert result.success
    assert browser.locator.children["a[href]"].calls[-1] == "click"


def test_type_text_fill_fallbacks():
    executor, browser = executor_for(FakeLocator({"fill": timeout("Timeout 5000ms exceeded.")}))
    field = make_element(1, "placeholder: Email", tag="input", type="email")

    result = asyncio.run(executor.type_text(make_snapshot(field), 1, "me@example.com"))

    assert result.success
    assert "focus" in browser.locator.calls
    assert browser.calls[-2:] == ["clear_focused", "type_into_focused"]
    assert browser.typed == ["me@example.com"]


def test_type_text_without_element_types_into_focus():
    executor, browser = executor_for()

    result = asyncio.run(executor.type_text(make_snapshot(), None, "hello"))

    assert result.success
    assert result.message == "Typed text into focused field"
    assert browser.typed == ["hello"]
    assert "locator_for" not in browser.calls


def test_select_option_falls_back_to_label():
    executor, browser = executor_for(FakeLocator({"select_option:value": timeout()}))
    select = make_element(1, "Country", tag="select")

    result = asyncio.run(executor.select_option(make_snapshot(select), 1, "France"))

    assert result.success
    assert result.message == 'Selected "France" in element 1'
    assert browser.locator.calls == ["select_option:value", "select_option:label"]


def test_set_checkbox():
    executor, browser = executor_for()
    box = make_element(1, "label: Accept terms", tag="input", type="checkbox")

    checked = asyncio.run(executor.set_checkbox(make_snapshot(box), 1, True))
    unchecked = asyncio.run(executor.set_checkbox(make_snapshot(box), 1, False))

    assert checked.message == "Checked element 1"
    assert unchecked.message == "Unchecked element 1"
    assert browser.locator.calls == ["check", "uncheck"]


def test_run_chain_stops_at_first_success():
    called = []

    async def failing():
        called.append("a")
        raise PlaywrightError("boom\nstack")

    async def working():
        called.append("b")

    async def never():
        called.append("c")

    attempts = asyncio.run(run_chain([("a", failing), ("b", working), ("c", never)]))

    assert called == ["a", "b"]
    assert [(a.strategy, a.ok) for a in attempts] == [("a", False), ("b", True)]
    assert attempts[0].error == "boom"


def test_attempt_turns_failure_into_value():
    async def broken():
        raise PlaywrightTimeoutError("Timeout 5000ms exceeded.")

    result = asyncio.run(attempt("forced click", broken))
    assert not result.ok
    assert result.error == "Timeout 5000ms exceeded."
