"""Detects destructive actions (pay, delete, ...) that need the user's confirmation."""

import re
from typing import Any, Mapping, Pattern, Tuple

from .models import SecurityVerdict, Snapshot

GATED_TOOLS = ("click_element",)


def _pattern(expression: str) -> Pattern:
    return re.compile(expression, re.IGNORECASE | re.UNICODE)


# (pattern, category). English phrases match as whole words, Russian ones as word stems.
DESTRUCTIVE_PATTERNS: Tuple[Tuple[Pattern, str], ...] = (
    (_pattern(r"\b(?:pay|pay\s+now|buy|buy\s+now|purchase|submit\s+payment)\b"), "payment"),
    (_pattern(r"\b(?:оплат\w*|купи\w*)"), "payment"),
    (_pattern(r"\b(?:checkout|check\s+out|place\s+order|confirm\s+order)\b"), "order"),
    (_pattern(r"\b(?:оформ\w*\s+заказ\w*|оформить|подтверд\w*|подтвержд\w*\s+заказ\w*)"), "order"),
    (_pattern(r"\b(?:delete|remove)\b"), "deletion"),
    (_pattern(r"\bудал\w*"), "deletion"),
    (_pattern(r"\bunsubscribe\b"), "unsubscribe"),
    (_pattern(r"\bотпис\w*"), "unsubscribe"),
    (_pattern(r"\bcancel\s+(?:my\s+|your\s+)?subscription\b"), "subscription cancellation"),
    (_pattern(r"\bотмен\w*\s+подписк\w*"), "subscription cancellation"),
    (_pattern(r"\b(?:send\s+money|transfer)\b"), "money transfer"),
    (_pattern(r"\b(?:перевод\w*|перевести)"), "money transfer"),
)


def match_destructive(text: str) -> Tuple[bool, str]:
    """Return (matched, category) for the first pattern found in the text."""
    for pattern, category in DESTRUCTIVE_PATTERNS:
        if pattern.search(text):
            return True, category
    return False, ""


def evaluate_action(tool_name: str, args: Mapping[str, Any], snapshot: Snapshot) -> SecurityVerdict:
    """
    Classify a proposed tool call.

    Only clicks are gated. The verdict depends on nothing but the arguments and
    the snapshot, so every destructive click is checked again.
    """
    if tool_name not in GATED_TOOLS:
        return SecurityVerdict(destructive=False)

    element = snapshot.find((args or {}).get("element_id"))
    if element is None:
        return SecurityVerdict(destructive=False)

    surface = " ".join(
        str(part).lower() for part in (element.text, element.value, element.title, element.label) if part
    )
    if not surface:
        return SecurityVerdict(destructive=False)

    matched, category = match_destructive(surface)
    if not matched:
        return SecurityVerdict(destructive=False)

    description = str(element.text or element.value or "Action")[:80].strip()
    return SecurityVerdict(
        destructive=True, description=description or "Sensitive action", category=category
    )
