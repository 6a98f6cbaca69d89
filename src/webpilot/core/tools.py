"""Typed tool calls and their execution against the browser."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Dict, Literal, Mapping, Optional, Type, Union

from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel, ConfigDict, StrictBool, StrictInt, StrictStr, ValidationError, field_validator

from webpilot.utils import log

from .errors import WebPilotError
from .models import ActionResult, Snapshot

MIN_WAIT_SECONDS = 1.0
MAX_WAIT_SECONDS = 10.0
DEFAULT_WAIT_SECONDS = 2.0


@dataclass
class ToolContext:
    """Everything a tool needs for one execution."""
    snapshot: Snapshot
    browser: Any
    executor: Any
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep


def _error_text(error: BaseException) -> str:
    text = str(error).strip() or error.__class__.__name__
    return text.splitlines()[0]


def _text_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class ToolCall(BaseModel):
    """Base for every tool; subclasses validate their own arguments."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    tool_name: ClassVar[str] = ""

    async def run(self, ctx: ToolContext) -> ActionResult:
        try:
            return await self.execute(ctx)
        except (PlaywrightError, WebPilotError) as e:
            log.warning(f"{self.tool_name} failed: {_error_text(e)}")
            return ActionResult.fail(_error_text(e))

    async def execute(self, ctx: ToolContext) -> ActionResult:
        raise NotImplementedError


class Navigate(ToolCall):
    tool_name: ClassVar[str] = "navigate"
    url: StrictStr

    async def execute(self, ctx: ToolContext) -> ActionResult:
        await ctx.browser.navigate(self.url)
        return ActionResult.ok(f"Navigated to {self.url}")


class OpenNewTab(ToolCall):
    tool_name: ClassVar[str] = "open_new_tab"
    url: Optional[StrictStr] = None

    async def execute(self, ctx: ToolContext) -> ActionResult:
        index = await ctx.browser.new_tab(self.url)
        if self.url:
            return ActionResult.ok(f"Opened new tab {index} and navigated to {self.url}")
        return ActionResult.ok(f"Opened new tab {index} (blank). Use navigate(url) to go to a page.")


class SwitchTab(ToolCall):
    tool_name: ClassVar[str] = "switch_tab"
    tab_index: StrictInt

    async def execute(self, ctx: ToolContext) -> ActionResult:
        await ctx.browser.switch_tab(self.tab_index)
        return ActionResult.ok(f"Switched to tab {self.tab_index}")


class ClickElement(ToolCall):
    tool_name: ClassVar[str] = "click_element"
    element_id: StrictInt

    async def execute(self, ctx: ToolContext) -> ActionResult:
        return await ctx.executor.click(ctx.snapshot, self.element_id)


class TypeText(ToolCall):
    tool_name: ClassVar[str] = "type_text"
    text: StrictStr
    element_id: Optional[StrictInt] = None

    async def execute(self, ctx: ToolContext) -> ActionResult:
        return await ctx.executor.type_text(ctx.snapshot, self.element_id, self.text)


class SelectOption(ToolCall):
    tool_name: ClassVar[str] = "select_option"
    element_id: StrictInt
    value_or_label: StrictStr

    async def execute(self, ctx: ToolContext) -> ActionResult:
        return await ctx.executor.select_option(ctx.snapshot, self.element_id, self.value_or_label)


class SetCheckbox(ToolCall):
    tool_name: ClassVar[str] = "set_checkbox"
    element_id: StrictInt
    checked: StrictBool

    async def execute(self, ctx: ToolContext) -> ActionResult:
        return await ctx.executor.set_checkbox(ctx.snapshot, self.element_id, self.checked)


class Scroll(ToolCall):
    tool_name: ClassVar[str] = "scroll"
    direction: Literal["up", "down", "left", "right"]

    async def execute(self, ctx: ToolContext) -> ActionResult:
        await ctx.browser.scroll(self.direction)
        return ActionResult.ok(f"Scrolled {self.direction}")


class Wait(ToolCall):
    tool_name: ClassVar[str] = "wait"
    seconds: float = DEFAULT_WAIT_SECONDS

    @field_validator("seconds", mode="before")
    @classmethod
    def clamp_seconds(cls, value: Any) -> float:
        # Anything non-numeric (or zero) waits the default
        if isinstance(value, bool):
            value = int(value)
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            seconds = 0.0
        if seconds != seconds or not seconds:
            seconds = DEFAULT_WAIT_SECONDS
        return min(MAX_WAIT_SECONDS, max(MIN_WAIT_SECONDS, seconds))

    async def execute(self, ctx: ToolContext) -> ActionResult:
        await ctx.sleep(self.seconds)
        return ActionResult.ok(f"Waited {self.seconds:g} seconds")


class TaskDone(ToolCall):
    tool_name: ClassVar[str] = "task_done"
    result: Optional[str] = None

    @field_validator("result", mode="before")
    @classmethod
    def text_only(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    async def execute(self, ctx: ToolContext) -> ActionResult:
        return ActionResult(success=True, message=self.result or "Done", stop=True)


class RequestUserInput(ToolCall):
    tool_name: ClassVar[str] = "request_user_input"
    question: Optional[str] = None

    @field_validator("question", mode="before")
    @classmethod
    def text_only(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    async def execute(self, ctx: ToolContext) -> ActionResult:
        return ActionResult(
            success=True,
            message=self.question or "Need your input",
            stop=True,
            user_question=self.question,
        )


TOOLS: Dict[str, Type[ToolCall]] = {
    tool.tool_name: tool
    for tool in (
        Navigate,
        OpenNewTab,
        SwitchTab,
        ClickElement,
        TypeText,
        SelectOption,
        SetCheckbox,
        Scroll,
        Wait,
        TaskDone,
        RequestUserInput,
    )
}


def _validation_message(tool_name: str, error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "arguments"
    return f"Invalid arguments for {tool_name}: {field}: {first.get('msg', 'invalid value')}"


def parse_tool_call(name: str, args: Optional[Mapping[str, Any]]) -> Union[ToolCall, ActionResult]:
    """Validate raw oracle arguments into a tool call, or the failed result to report."""
    tool = TOOLS.get(name)
    if tool is None:
        return ActionResult.fail(f"Unknown tool: {name}")
    try:
        return tool.model_validate(dict(args or {}))
    except ValidationError as e:
        return ActionResult.fail(_validation_message(name, e))


async def execute_tool(name: str, args: Optional[Mapping[str, Any]], ctx: ToolContext) -> ActionResult:
    """Parse and run one tool call."""
    call = parse_tool_call(name, args)
    if isinstance(call, ActionResult):
        log.warning(call.message)
        return call
    return await call.run(ctx)
