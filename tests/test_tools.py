"""Tests for tool argument validation and dispatch."""

import asyncio

from playwright.async_api import Error as PlaywrightError

from webpilot.core.errors import InvalidTabError
from webpilot.core.models import ActionResult
from webpilot.core.tool_catalog import TOOL_DEFINITIONS, anthropic_tools, tool_names
from webpilot.core.tools import TOOLS, ClickElement, ToolContext, Wait, execute_tool, parse_tool_call
from webpilot.core.action_executor import ActionExecutor

from fakes import FakeBrowser, fast_browser_settings, make_element, make_snapshot


def context(browser=None, snapshot=None, slept=None):
    browser = browser or FakeBrowser()

    async def sleep(seconds):
        if slept is not None:
            slept.append(seconds)

    return ToolContext(
        snapshot=snapshot or make_snapshot(make_element(1, "Save")),
        browser=browser,
        executor=ActionExecutor(browser, fast_browser_settings()),
        sleep=sleep,
    )


def test_catalog_matches_registry():
    assert set(tool_names()) == set(TOOLS)
    converted = anthropic_tools()
    assert len(converted) == len(TOOL_DEFINITIONS)
    assert converted[0]["name"] == "navigate"
    assert converted[0]["input_schema"]["required"] == ["url"]


def test_valid_call_ignores_extra_keys():
    call = parse_tool_call("click_element", {"element_id": 3, "reason": "looks right"})
    assert isinstance(call, ClickElement)
    assert call.element_id == 3


def test_wrong_type_is_reported():
    result = parse_tool_call("click_element", {"element_id": "3"})
    assert isinstance(result, ActionResult)
    assert not result.success
    assert result.message.startswith("Invalid arguments for click_element: element_id: ")


def test_missing_argument_is_reported():
    result = parse_tool_call("set_checkbox", {"element_id": 1})
    assert result.message.startswith("Invalid arguments for set_checkbox: checked: ")


def test_bad_scroll_direction():
    result = parse_tool_call("scroll", {"direction": "sideways"})
    assert isinstance(result, ActionResult)
    assert "direction" in result.message


def test_unknown_tool():
    result = parse_tool_call("take_screenshot", {})
    assert result == ActionResult.fail("Unknown tool: take_screenshot")


def test_wait_is_clamped():
    assert parse_tool_call("wait", {"seconds": 30}).seconds == 10
    assert parse_tool_call("wait", {"seconds": 0.2}).seconds == 1
    assert parse_tool_call("wait", {"seconds": 3}).seconds == 3
    assert parse_tool_call("wait", {"seconds": "soon"}).seconds == 2
    assert parse_tool_call("wait", {"seconds": 0}).seconds == 2
    assert parse_tool_call("wait", {}).seconds == 2


def test_wait_sleeps():
    slept = []
    result = asyncio.run(execute_tool("wait", {"seconds": 4}, context(slept=slept)))
    assert result.message == "Waited 4 seconds"
    assert slept == [4]


def test_task_done_stops():
    result = asyncio.run(execute_tool("task_done", {"result": "Ordered 2 pizzas"}, context()))
    assert result.success and result.stop
    assert result.message == "Ordered 2 pizzas"
    assert asyncio.run(execute_tool("task_done", {}, context())).message == "Done"


def test_request_user_input_stops_with_question():
    result = asyncio.run(execute_tool("request_user_input", {"question": "Which size?"}, context()))
    assert result.stop
    assert result.user_question == "Which size?"


def test_navigation_tools_use_the_browser():
    browser = FakeBrowser()
    ctx = context(browser)

    assert asyncio.run(execute_tool("navigate", {"url": "https://example.com"}, ctx)).message == (
        "Navigated to https://example.com"
    )
    assert asyncio.run(execute_tool("open_new_tab", {}, ctx)).message.startswith("Opened new tab 1 (blank)")
    assert asyncio.run(execute_tool("switch_tab", {"tab_index": 0}, ctx)).message == "Switched to tab 0"
    assert asyncio.run(execute_tool("scroll", {"direction": "up"}, ctx)).message == "Scrolled up"
    assert ("navigate", "https://example.com") in browser.calls
    assert ("scroll", "up") in browser.calls


def test_browser_errors_become_failed_results():
    class BrokenBrowser(FakeBrowser):
        async def navigate(self, url):
            raise PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://nowhere.invalid/")

        async def switch_tab(self, tab_index):
            raise InvalidTabError(f"Invalid tab index: {tab_index} (tabs: 0-0)")

    ctx = context(BrokenBrowser())

    navigated = asyncio.run(execute_tool("navigate", {"url": "https://nowhere.invalid/"}, ctx))
    switched = asyncio.run(execute_tool("switch_tab", {"tab_index": 5}, ctx))

    assert not navigated.success
    assert "ERR_NAME_NOT_RESOLVED" in navigated.message
    assert switched.message == "Invalid tab index: 5 (tabs: 0-0)"


def test_click_goes_through_the_executor():
    browser = FakeBrowser()
    result = asyncio.run(execute_tool("click_element", {"element_id": 1}, context(browser)))
    assert result.message == "Clicked element 1"
    assert "locator_for" in browser.calls


def test_wait_model_direct():
    assert Wait(seconds=12).seconds == 10
