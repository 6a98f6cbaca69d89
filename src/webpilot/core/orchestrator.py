"""Agent loop that coordinates perception, decisions, the policy gate and execution."""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from rich.markup import escape

from webpilot.utils import log, config, console, shorten, AgentSettings

from .action_executor import ActionExecutor
from .errors import OracleUnavailableError
from .llm_agent import Decision
from .models import ActionResult, AgentOutcome, OutcomeStatus, Snapshot, ToolCallRecord, Transcript
from .perception import format_snapshot
from .prompts import DEFAULT_TASK_TYPE, opening_message, system_prompt_for
from .security import evaluate_action
from .tool_catalog import TOOL_DEFINITIONS
from .tools import ToolContext, execute_tool

ConfirmCallback = Callable[[str], Awaitable[bool]]

DENIED_MESSAGE = "User denied the action."


class LoopState(str, Enum):
    INIT = "init"
    PERCEIVE = "perceive"
    DECIDE = "decide"
    GATE = "gate"
    EXECUTE = "execute"
    FOLD = "fold"
    TERMINATED = "terminated"


def format_tool_call(name: str, args: Mapping[str, Any]) -> str:
    """One-line rendering of a tool call with long values shortened."""
    parts = ", ".join(f"{key}={shorten(value)!r}" for key, value in (args or {}).items())
    return f"{name}({parts})"


class AgentOrchestrator:
    """Runs one task: perceive, decide, gate, execute, fold, until a terminal condition."""

    def __init__(
        self,
        browser,
        oracle,
        executor: Optional[ActionExecutor] = None,
        settings: Optional[AgentSettings] = None,
        confirm: Optional[ConfirmCallback] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the orchestrator.

        Args:
            browser: BrowserController (snapshot, navigation and tabs)
            oracle: Decision oracle with `decide(transcript, tools)`
            executor: Element action executor (built from the browser by default)
            settings: Agent settings (defaults to the global config)
            confirm: Async callback asked before destructive clicks; without it they proceed
            tools: Tool catalog offered to the oracle
            sleep: Sleep used by the wait tool
        """
        self.browser = browser
        self.oracle = oracle
        self.executor = executor or ActionExecutor(browser)
        self.settings = settings or config.agent
        self.confirm = confirm
        self.tools = tools if tools is not None else TOOL_DEFINITIONS
        self.sleep = sleep
        self.state = LoopState.INIT

    def _enter(self, state: LoopState):
        self.state = state
        log.debug(f"Loop state: {state.value}")

    async def _system_prompt(self, task: str) -> str:
        task_type = DEFAULT_TASK_TYPE
        if self.settings.classify_tasks and hasattr(self.oracle, "classify_task"):
            task_type = await self.oracle.classify_task(task)
        log.info(f"Task type: {task_type}")
        return system_prompt_for(task_type)

    async def run(self, task: str, max_iterations: Optional[int] = None) -> AgentOutcome:
        """
        Run the agent loop on a task.

        Args:
            task: The user's task in natural language
            max_iterations: Iteration ceiling (overrides the settings)

        Returns:
            AgentOutcome with the terminal status and the full transcript
        """
        console.print(f"\n[bold blue]Starting task: {escape(task)}[/bold blue]\n")
        limit = self.settings.max_iterations if max_iterations is None else max_iterations

        self._enter(LoopState.INIT)
        transcript = Transcript()
        transcript.add_system(await self._system_prompt(task))
        transcript.add_state(opening_message(task))

        idle_replies = 0
        for iteration in range(1, limit + 1):
            console.print(f"[cyan]Step {iteration}/{limit}[/cyan]")

            self._enter(LoopState.PERCEIVE)
            snapshot = await self.browser.get_snapshot()
            state_text = "Current page state:\n\n" + format_snapshot(snapshot)
            if iteration == 1:
                transcript.extend_opening(state_text)
            else:
                transcript.add_state(state_text)

            self._enter(LoopState.DECIDE)
            try:
                decision = await self.oracle.decide(transcript, self.tools)
            except OracleUnavailableError as e:
                log.error(f"Oracle unavailable: {e}")
                return self._finish(OutcomeStatus.ORACLE_FAILED, iteration, transcript, error=str(e))

            if not decision.is_tool_call:
                transcript.add_observation(decision.text)
                console.print(f"  [dim]{escape(shorten(decision.text or '', 120))}[/dim]")
                idle_replies += 1
                if self.settings.max_idle_replies and idle_replies >= self.settings.max_idle_replies:
                    log.warning(f"{idle_replies} replies in a row without an action, stopping")
                    return self._finish(
                        OutcomeStatus.STALLED,
                        iteration,
                        transcript,
                        error=f"No action in {idle_replies} consecutive replies",
                    )
                continue
            idle_replies = 0

            log.info(f"Tool call: {format_tool_call(decision.tool_name, decision.arguments)}")
            console.print(f"  → [yellow]{decision.tool_name}[/yellow] {escape(shorten(decision.raw_arguments, 80))}")

            self._enter(LoopState.GATE)
            result = await self._gate(decision, snapshot)
            if result is None:
                self._enter(LoopState.EXECUTE)
                result = await self._execute(decision, snapshot)

            self._enter(LoopState.FOLD)
            call_id = decision.call_id or f"call_{iteration}"
            transcript.add_decision(ToolCallRecord(call_id, decision.tool_name, decision.raw_arguments))
            transcript.add_observation(result.as_observation(), tool_call_id=call_id)

            if result.success:
                console.print(f"  [green]✓[/green] {escape(shorten(result.message, 100))}")
            else:
                console.print(f"  [red]✗[/red] {escape(shorten(result.message, 100))}")

            if result.stop:
                if decision.tool_name == "request_user_input":
                    question = result.user_question or result.message
                    log.info(f"Asking user: {question}")
                    return self._finish(OutcomeStatus.NEEDS_INPUT, iteration, transcript, user_question=question)
                log.info(f"Finished. Result: {result.message}")
                return self._finish(OutcomeStatus.COMPLETED, iteration, transcript, result=result.message)

        log.warning(f"Reached maximum iterations ({limit})")
        return self._finish(OutcomeStatus.EXHAUSTED, limit, transcript, error="Max iterations reached")

    async def _gate(self, decision: Decision, snapshot: Snapshot) -> Optional[ActionResult]:
        """Return the denial result, or None when the action may run."""
        verdict = evaluate_action(decision.tool_name, decision.arguments, snapshot)
        if not verdict.destructive:
            return None

        description = verdict.description or "Sensitive action"
        log.warning(f"Destructive action ({verdict.category}): {description}")
        if self.confirm is None:
            return None

        if await self.confirm(description):
            log.info(f"User confirmed: {description}")
            return None
        log.info(f"User denied: {description}")
        return ActionResult.fail(DENIED_MESSAGE)

    async def _execute(self, decision: Decision, snapshot: Snapshot) -> ActionResult:
        ctx = ToolContext(snapshot=snapshot, browser=self.browser, executor=self.executor, sleep=self.sleep)
        return await execute_tool(decision.tool_name, decision.arguments, ctx)

    def _finish(self, status: OutcomeStatus, iterations: int, transcript: Transcript, **details) -> AgentOutcome:
        self._enter(LoopState.TERMINATED)
        return AgentOutcome(status=status, iterations=iterations, transcript=transcript, **details)
