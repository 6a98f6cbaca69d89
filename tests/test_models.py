"""Tests for snapshot and transcript models."""

import pytest

from webpilot.core.errors import ElementNotFoundError
from webpilot.core.models import (
    ActionResult,
    AgentOutcome,
    OutcomeStatus,
    TextQualifiedSelector,
    ToolCallRecord,
    Transcript,
    TurnRole,
    xpath_literal,
)

from fakes import make_element, make_snapshot


def test_xpath_literal_quoting():
    assert xpath_literal("Buy now") == '"Buy now"'
    assert xpath_literal('Say "hi"') == "'Say \"hi\"'"
    assert xpath_literal("a\"b'c") == "concat(\"a\", '\"', \"b'c\")"


def test_text_qualified_xpath_matches_whole_text():
    descriptor = TextQualifiedSelector("//button", "Add to cart")
    assert descriptor.xpath == '(//button[normalize-space(.)="Add to cart"])[1]'
    assert descriptor.to_payload() == {"type": "xpath", "value": descriptor.xpath}


def test_text_qualified_xpath_for_cut_text_uses_prefix_and_occurrence():
    descriptor = TextQualifiedSelector("//a", "Read more", exact=False, index=2)
    assert descriptor.xpath == '(//a[starts-with(normalize-space(.), "Read more")])[3]'


def test_snapshot_find_only_matches_integer_ids():
    snapshot = make_snapshot(make_element(1, "Save"), make_element(2, "Cancel"))
    assert snapshot.find(2).text == "Cancel"
    assert snapshot.find(3) is None
    assert snapshot.find("1") is None
    assert snapshot.find(True) is None
    assert snapshot.require(1).text == "Save"
    with pytest.raises(ElementNotFoundError) as excinfo:
        snapshot.require(7)
    assert excinfo.value.element_id == 7


def test_text_hint_falls_back_to_href():
    element = make_element(1, "", tag="a", href="https://example.com/some/long/path")
    assert element.text_hint == "https://example.com/some/long/path"


def test_text_hint_uses_own_text_not_display_prefix():
    link = make_element(1, "link: /cart", tag="a", href="/cart")
    assert link.text_hint == "/cart"

    labelled = make_element(2, "placeholder: Email", tag="input", own_text="")
    assert labelled.text_hint == ""

    button = make_element(3, "Checkout", own_text="Checkout")
    assert button.text_hint == "Checkout"


def test_action_result_observation():
    assert ActionResult.ok("Clicked element 3").as_observation() == "Clicked element 3"
    assert ActionResult.fail("Timeout").as_observation() == "Error: Timeout"


def test_transcript_opening_merge():
    transcript = Transcript()
    transcript.add_system("rules")
    transcript.add_state("Current task from user: x")
    transcript.extend_opening("Current page state:\n\nURL: about:blank")

    assert len(transcript) == 2
    assert transcript[1].role is TurnRole.STATE
    assert transcript[1].content == "Current task from user: x\n\nCurrent page state:\n\nURL: about:blank"


def test_transcript_opening_is_frozen_after_first_decision():
    transcript = Transcript()
    transcript.add_system("rules")
    transcript.add_state("task")
    transcript.add_decision(ToolCallRecord("call_1", "scroll", '{"direction": "down"}'))
    transcript.add_observation("Scrolled down", tool_call_id="call_1")
    transcript.add_state("Current page state: ...")

    with pytest.raises(ValueError):
        transcript.extend_opening("more")


def test_outcome_done():
    assert AgentOutcome(OutcomeStatus.COMPLETED, 1).done
    assert AgentOutcome(OutcomeStatus.NEEDS_INPUT, 1).done
    assert not AgentOutcome(OutcomeStatus.EXHAUSTED, 80).done
