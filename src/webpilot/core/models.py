"""Data models shared by perception, execution and the agent loop."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .errors import ElementNotFoundError


def xpath_literal(text: str) -> str:
    """Quote a string as an XPath 1.0 literal (no escape syntax exists)."""
    if '"' not in text:
        return f'"{text}"'
    if "'" not in text:
        return f"'{text}'"
    parts = text.split('"')
    pieces = []
    for i, part in enumerate(parts):
        if part:
            pieces.append(f'"{part}"')
        if i < len(parts) - 1:
            pieces.append("'\"'")
    return "concat(" + ", ".join(pieces) + ")"


@dataclass(frozen=True)
class PlainSelector:
    """Structural selector that matched exactly one node at capture time."""
    selector: str

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "selector", "value": self.selector}


@dataclass(frozen=True)
class IndexedSelector:
    """Structural selector plus which of its several matches was captured."""
    selector: str
    index: int

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "nth", "selector": self.selector, "index": self.index}


@dataclass(frozen=True)
class TextQualifiedSelector:
    """
    XPath location path filtered by the element's visible text.

    `exact` is False when the captured text was cut short, so only its prefix
    is compared. `index` picks the captured node among the nodes passing the
    text filter, in document order.
    """
    path: str
    text: str
    exact: bool = True
    index: int = 0

    @property
    def xpath(self) -> str:
        literal = xpath_literal(self.text)
        if self.exact:
            condition = f"normalize-space(.)={literal}"
        else:
            condition = f"starts-with(normalize-space(.), {literal})"
        return f"({self.path}[{condition}])[{self.index + 1}]"

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "xpath", "value": self.xpath}


SelectorDescriptor = Union[PlainSelector, IndexedSelector, TextQualifiedSelector]


@dataclass(frozen=True)
class ChoiceOption:
    value: str
    label: str


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class TabInfo:
    index: int
    url: str
    title: str


@dataclass(frozen=True)
class Element:
    """One interactive element of a snapshot, addressed by its snapshot-local id."""
    id: int
    role: str
    tag: str
    text: str
    selector: SelectorDescriptor
    placeholder: Optional[str] = None
    href: Optional[str] = None
    value: Optional[str] = None
    type: Optional[str] = None
    label: Optional[str] = None
    title: Optional[str] = None
    own_text: Optional[str] = None
    in_dialog: bool = False
    disabled: bool = False
    options: Tuple[ChoiceOption, ...] = ()

    @property
    def is_button(self) -> bool:
        return self.role == "button"

    @property
    def text_hint(self) -> str:
        """Text used to re-find the element when its selector no longer resolves."""
        return (self.own_text or self.href or "").strip()[:40]


@dataclass(frozen=True)
class Snapshot:
    """Bounded, point-in-time view of the active tab."""
    url: str
    title: str
    elements: Tuple[Element, ...] = ()
    headings: Tuple[Heading, ...] = ()
    content_excerpt: str = ""
    tabs: Tuple[TabInfo, ...] = ()
    active_tab_index: int = 0
    truncated: bool = False

    def find(self, element_id: Any) -> Optional[Element]:
        """Look up an element by id; ids from other snapshots never match."""
        if not isinstance(element_id, int) or isinstance(element_id, bool):
            return None
        return next((el for el in self.elements if el.id == element_id), None)

    def require(self, element_id: int) -> Element:
        element = self.find(element_id)
        if element is None:
            raise ElementNotFoundError(element_id)
        return element


@dataclass(frozen=True)
class SecurityVerdict:
    destructive: bool
    description: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one tool call, folded back into the transcript."""
    success: bool
    message: str
    stop: bool = False
    user_question: Optional[str] = None

    @classmethod
    def ok(cls, message: str) -> "ActionResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, message: str) -> "ActionResult":
        return cls(success=False, message=message)

    def as_observation(self) -> str:
        return self.message if self.success else f"Error: {self.message}"


class TurnRole(str, Enum):
    SYSTEM = "system"
    STATE = "state"
    DECISION = "decision"
    OBSERVATION = "observation"


@dataclass(frozen=True)
class ToolCallRecord:
    """The action chosen by the oracle, as it was requested."""
    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class Turn:
    role: TurnRole
    content: Optional[str] = None
    tool_call: Optional[ToolCallRecord] = None
    tool_call_id: Optional[str] = None


class Transcript:
    """Append-only conversation of one task run."""

    def __init__(self):
        self._turns: List[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    def append(self, turn: Turn) -> Turn:
        self._turns.append(turn)
        return turn

    def add_system(self, content: str) -> Turn:
        return self.append(Turn(TurnRole.SYSTEM, content))

    def add_state(self, content: str) -> Turn:
        return self.append(Turn(TurnRole.STATE, content))

    def add_decision(self, tool_call: ToolCallRecord) -> Turn:
        return self.append(Turn(TurnRole.DECISION, tool_call=tool_call))

    def add_observation(self, content: str, tool_call_id: Optional[str] = None) -> Turn:
        return self.append(Turn(TurnRole.OBSERVATION, content, tool_call_id=tool_call_id))

    def extend_opening(self, content: str) -> Turn:
        """Merge text into the opening state turn before any decision exists."""
        opening_only = (
            bool(self._turns)
            and self._turns[-1].role is TurnRole.STATE
            and all(turn.role is TurnRole.SYSTEM for turn in self._turns[:-1])
        )
        if not opening_only:
            raise ValueError("The opening turn can only be extended before the first decision")
        opening = self._turns[-1]
        merged = replace(opening, content=f"{opening.content}\n\n{content}")
        self._turns[-1] = merged
        return merged


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    NEEDS_INPUT = "needs_input"
    EXHAUSTED = "exhausted"
    ORACLE_FAILED = "oracle_failed"
    STALLED = "stalled"


@dataclass
class AgentOutcome:
    """Result of running the agent loop on one task."""
    status: OutcomeStatus
    iterations: int
    result: Optional[str] = None
    user_question: Optional[str] = None
    error: Optional[str] = None
    transcript: Optional[Transcript] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status in (OutcomeStatus.COMPLETED, OutcomeStatus.NEEDS_INPUT)
