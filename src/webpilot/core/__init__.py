"""Core components of WebPilot."""

from .browser_controller import BrowserController
from .action_executor import ActionExecutor
from .llm_agent import LLMAgent, Decision
from .orchestrator import AgentOrchestrator, LoopState
from .models import (
    ActionResult,
    AgentOutcome,
    Element,
    OutcomeStatus,
    SecurityVerdict,
    Snapshot,
    Transcript,
)
from .security import evaluate_action
from .tool_catalog import TOOL_DEFINITIONS
from .tools import ToolContext, parse_tool_call, execute_tool
from .errors import (
    WebPilotError,
    BrowserNotStartedError,
    InvalidTabError,
    ElementNotFoundError,
    OracleUnavailableError,
)

__all__ = [
    'BrowserController',
    'ActionExecutor',
    'LLMAgent',
    'Decision',
    'AgentOrchestrator',
    'LoopState',
    'ActionResult',
    'AgentOutcome',
    'Element',
    'OutcomeStatus',
    'SecurityVerdict',
    'Snapshot',
    'Transcript',
    'evaluate_action',
    'TOOL_DEFINITIONS',
    'ToolContext',
    'parse_tool_call',
    'execute_tool',
    'WebPilotError',
    'BrowserNotStartedError',
    'InvalidTabError',
    'ElementNotFoundError',
    'OracleUnavailableError'
]
