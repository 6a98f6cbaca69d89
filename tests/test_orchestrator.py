"""Tests for the agent loop."""

import asyncio

from webpilot.core.action_executor import ActionExecutor
from webpilot.core.errors import OracleUnavailableError
from webpilot.core.llm_agent import Decision
from webpilot.core.models import OutcomeStatus, TurnRole
from webpilot.core.orchestrator import DENIED_MESSAGE, AgentOrchestrator, LoopState, format_tool_call

from fakes import (
    FakeBrowser,
    FakeOracle,
    agent_settings,
    fast_browser_settings,
    make_element,
    make_snapshot,
    tool_decision,
)


async def no_sleep(seconds):
    pass


def orchestrator(browser, oracle, confirm=None, **settings):
    return AgentOrchestrator(
        browser,
        oracle,
        executor=ActionExecutor(browser, fast_browser_settings()),
        settings=agent_settings(**settings),
        confirm=confirm,
        sleep=no_sleep,
    )


def test_task_done_on_first_decision_runs_one_cycle():
    browser = FakeBrowser()
    oracle = FakeOracle([tool_decision("task_done", result="Nothing to do")])

    outcome = asyncio.run(orchestrator(browser, oracle).run("Check the page"))

    assert outcome.status is OutcomeStatus.COMPLETED
    assert outcome.done
    assert outcome.iterations == 1
    assert outcome.result == "Nothing to do"
    assert browser.calls.count("get_snapshot") == 1

    roles = [turn.role for turn in outcome.transcript]
    assert roles == [TurnRole.SYSTEM, TurnRole.STATE, TurnRole.DECISION, TurnRole.OBSERVATION]
    opening = outcome.transcript[1].content
    assert opening.startswith("Current task from user: Check the page")
    assert "Current page state:" in opening


def test_never_terminal_stops_at_the_ceiling():
    browser = FakeBrowser()
    oracle = FakeOracle([tool_decision("scroll", direction="down")])

    outcome = asyncio.run(orchestrator(browser, oracle, max_iterations=5).run("Scroll forever"))

    assert outcome.status is OutcomeStatus.EXHAUSTED
    assert not outcome.done
    assert outcome.iterations == 5
    assert len(oracle.requests) == 5
    assert browser.calls.count(("scroll", "down")) == 5


def test_max_iterations_argument_overrides_settings():
    oracle = FakeOracle([tool_decision("scroll", direction="down")])
    outcome = asyncio.run(orchestrator(FakeBrowser(), oracle).run("Scroll", max_iterations=3))
    assert outcome.iterations == 3


def test_zero_max_iterations_is_not_replaced_by_the_default():
    browser = FakeBrowser()
    oracle = FakeOracle([tool_decision("scroll", direction="down")])

    outcome = asyncio.run(orchestrator(browser, oracle, max_iterations=5).run("Scroll", max_iterations=0))

    assert outcome.status is OutcomeStatus.EXHAUSTED
    assert outcome.iterations == 0
    assert oracle.requests == []


def test_denied_destructive_click_never_touches_the_page():
    snapshot = make_snapshot(make_element(1, "Delete account"), make_element(2, "Back"))
    browser = FakeBrowser([snapshot])
    oracle = FakeOracle([
        tool_decision("click_element", call_id="call_1", element_id=1),
        tool_decision("task_done", call_id="call_2", result="Left the account alone"),
    ])
    asked = []

    async def confirm(description):
        asked.append(description)
        return False

    agent = orchestrator(browser, oracle, confirm=confirm)
    outcome = asyncio.run(agent.run("Delete my account"))

    assert asked == ["Delete account"]
    assert not browser.touched_page
    assert browser.locator.calls == []
    assert outcome.status is OutcomeStatus.COMPLETED
    assert outcome.iterations == 2
    observations = [t for t in outcome.transcript if t.role is TurnRole.OBSERVATION]
    assert observations[0].content == f"Error: {DENIED_MESSAGE}"
    assert observations[0].tool_call_id == "call_1"
    assert agent.state is LoopState.TERMINATED


def test_confirmed_destructive_click_runs():
    browser = FakeBrowser([make_snapshot(make_element(1, "Pay now"))])
    oracle = FakeOracle([
        tool_decision("click_element", element_id=1),
        tool_decision("task_done", call_id="call_2", result="Paid"),
    ])

    async def confirm(description):
        return True

    outcome = asyncio.run(orchestrator(browser, oracle, confirm=confirm).run("Pay the bill"))

    assert outcome.status is OutcomeStatus.COMPLETED
    assert "click" in browser.locator.calls


def test_without_confirm_callback_destructive_click_proceeds():
    browser = FakeBrowser([make_snapshot(make_element(1, "Delete"))])
    oracle = FakeOracle([tool_decision("click_element", element_id=1), tool_decision("task_done", result="ok")])

    asyncio.run(orchestrator(browser, oracle).run("Delete the draft"))

    assert "click" in browser.locator.calls


def test_plain_text_reply_continues_the_loop():
    browser = FakeBrowser()
    oracle = FakeOracle([Decision(text="Let me think."), tool_decision("task_done", result="Done")])

    outcome = asyncio.run(orchestrator(browser, oracle).run("Think first"))

    assert outcome.status is OutcomeStatus.COMPLETED
    assert outcome.iterations == 2
    text_turns = [t for t in outcome.transcript if t.role is TurnRole.OBSERVATION and t.tool_call_id is None]
    assert [t.content for t in text_turns] == ["Let me think."]


def test_idle_reply_limit_stalls():
    oracle = FakeOracle([Decision(text="Hmm.")])

    outcome = asyncio.run(orchestrator(FakeBrowser(), oracle, max_idle_replies=2).run("Anything"))

    assert outcome.status is OutcomeStatus.STALLED
    assert outcome.iterations == 2


def test_oracle_failure_ends_the_run():
    oracle = FakeOracle(error=OracleUnavailableError("No response from model"))

    outcome = asyncio.run(orchestrator(FakeBrowser(), oracle).run("Anything"))

    assert outcome.status is OutcomeStatus.ORACLE_FAILED
    assert outcome.iterations == 1
    assert outcome.error == "No response from model"


def test_request_user_input_needs_input():
    oracle = FakeOracle([tool_decision("request_user_input", question="Which city?")])

    outcome = asyncio.run(orchestrator(FakeBrowser(), oracle).run("Book a hotel"))

    assert outcome.status is OutcomeStatus.NEEDS_INPUT
    assert outcome.done
    assert outcome.user_question == "Which city?"


def test_failed_action_is_folded_back_as_error():
    browser = FakeBrowser([make_snapshot(make_element(1, "Save"))])
    oracle = FakeOracle([
        tool_decision("click_element", element_id=99),
        tool_decision("task_done", call_id="call_2", result="gave up"),
    ])

    outcome = asyncio.run(orchestrator(browser, oracle).run("Save"))

    first_observation = next(t for t in outcome.transcript if t.role is TurnRole.OBSERVATION)
    assert first_observation.content.startswith("Error: Element id not found in snapshot: 99")


def test_later_snapshots_are_appended_as_state_turns():
    first = make_snapshot(url="https://a.example/", title="A")
    second = make_snapshot(url="https://b.example/", title="B")
    browser = FakeBrowser([first, second])
    oracle = FakeOracle([
        tool_decision("navigate", url="https://b.example/"),
        tool_decision("task_done", call_id="call_2", result="Arrived"),
    ])

    outcome = asyncio.run(orchestrator(browser, oracle).run("Go to B"))

    states = [t.content for t in outcome.transcript if t.role is TurnRole.STATE]
    assert len(states) == 2
    assert "URL: https://a.example/" in states[0]
    assert states[1].startswith("Current page state:")
    assert "URL: https://b.example/" in states[1]


def test_task_classification_selects_prompt():
    class ClassifyingOracle(FakeOracle):
        async def classify_task(self, task):
            return "form"

    oracle = ClassifyingOracle([tool_decision("task_done", result="ok")])
    agent = AgentOrchestrator(
        FakeBrowser(), oracle, settings=agent_settings(classify_tasks=True), sleep=no_sleep
    )

    outcome = asyncio.run(agent.run("Fill the contact form"))

    assert outcome.transcript[0].content.startswith("You are a form-filling agent.")


def test_format_tool_call_shortens_values():
    line = format_tool_call("type_text", {"text": "x" * 100, "element_id": 2})
    assert line.startswith("type_text(text='" + "x" * 60 + "...'")
    assert "element_id='2'" in line
