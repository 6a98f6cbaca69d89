"""LLM decision oracle: picks the next tool call from the transcript."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from webpilot.utils import log, config, AgentSettings

from .errors import OracleUnavailableError
from .models import Transcript, TurnRole
from .prompts import CLASSIFIER_PROMPT, DEFAULT_TASK_TYPE, normalize_task_type
from .tool_catalog import anthropic_tools

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
}

NO_CONTENT = "(no content)"


@dataclass(frozen=True)
class Decision:
    """One oracle response: either a tool call or plain text."""
    tool_name: Optional[str] = None
    arguments: Dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None
    raw_arguments: str = "{}"
    text: Optional[str] = None

    @property
    def is_tool_call(self) -> bool:
        return self.tool_name is not None


def parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    """Decode tool arguments; anything but a JSON object becomes {}."""
    try:
        value = json.loads(raw or "{}")
    except (TypeError, ValueError):
        log.warning(f"Malformed tool arguments: {(raw or '')[:80]}")
        return {}
    return value if isinstance(value, dict) else {}


def to_openai_messages(transcript: Transcript) -> List[Dict[str, Any]]:
    """Map transcript turns to Chat Completions messages."""
    messages = []
    for turn in transcript:
        if turn.role is TurnRole.SYSTEM:
            messages.append({"role": "system", "content": turn.content})
        elif turn.role is TurnRole.STATE:
            messages.append({"role": "user", "content": turn.content})
        elif turn.role is TurnRole.DECISION:
            call = turn.tool_call
            messages.append({
                "role": "assistant",
                "content": None,
                "tool_calls": [{
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }],
            })
        elif turn.tool_call_id:
            messages.append({"role": "tool", "tool_call_id": turn.tool_call_id, "content": turn.content})
        else:
            # Plain-text reply of the model
            messages.append({"role": "assistant", "content": turn.content or NO_CONTENT})
    return messages


def to_anthropic_messages(transcript: Transcript) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Map transcript turns to the Messages API.

    Returns the system prompt and the message list. Consecutive turns with the
    same role are merged since the API requires alternating roles.
    """
    system_parts = []
    messages: List[Dict[str, Any]] = []

    def add(role: str, block: Dict[str, Any]):
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"].append(block)
        else:
            messages.append({"role": role, "content": [block]})

    for turn in transcript:
        if turn.role is TurnRole.SYSTEM:
            system_parts.append(turn.content or "")
        elif turn.role is TurnRole.STATE:
            add("user", {"type": "text", "text": turn.content or NO_CONTENT})
        elif turn.role is TurnRole.DECISION:
            call = turn.tool_call
            add("assistant", {
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": parse_arguments(call.arguments),
            })
        elif turn.tool_call_id:
            add("user", {"type": "tool_result", "tool_use_id": turn.tool_call_id, "content": turn.content or ""})
        else:
            add("assistant", {"type": "text", "text": turn.content or NO_CONTENT})

    return "\n\n".join(system_parts), messages


class LLMAgent:
    """Decision oracle backed by OpenAI or Anthropic tool calling."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        settings: Optional[AgentSettings] = None,
        client: Any = None,
    ):
        """
        Initialize the LLM agent.

        Args:
            provider: LLM provider ("openai" or "anthropic"), defaults to the configured one
            model: Model name (defaults to gpt-4o-mini or claude-3-5-sonnet)
            settings: Agent settings (defaults to the global config)
            client: Pre-built API client, mainly for tests
        """
        self.settings = settings or config.agent
        self.provider = (provider or self.settings.llm_provider).lower()

        if self.provider not in DEFAULT_MODELS:
            raise ValueError(f"Unsupported provider: {self.provider}")

        self.model = model or self.settings.model or DEFAULT_MODELS[self.provider]
        self.classifier_model = self.settings.classifier_model or self.model

        if client is not None:
            self.client = client
        elif self.provider == "openai":
            self.client = AsyncOpenAI(api_key=config.get_api_key("openai"))
        else:
            self.client = AsyncAnthropic(api_key=config.get_api_key("anthropic"))

    async def decide(self, transcript: Transcript, tools: List[Dict[str, Any]]) -> Decision:
        """
        Ask the model for the next action.

        Only the first tool call of a response is used. Raises
        OracleUnavailableError when the provider fails or returns no choice.
        """
        try:
            if self.provider == "openai":
                decision = await self._decide_with_openai(transcript, tools)
            else:
                decision = await self._decide_with_anthropic(transcript, tools)
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            raise OracleUnavailableError(f"{self.provider} request failed: {e}") from e

        if decision.is_tool_call:
            log.debug(f"LLM chose {decision.tool_name} {decision.raw_arguments}")
        else:
            log.debug(f"LLM replied with text: {(decision.text or '')[:120]}")
        return decision

    async def _decide_with_openai(self, transcript: Transcript, tools: List[Dict[str, Any]]) -> Decision:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(transcript),
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        response = await self.client.chat.completions.create(**request)
        if not response.choices:
            raise OracleUnavailableError("No response from model")

        message = response.choices[0].message
        tool_calls = message.tool_calls or []
        if tool_calls:
            call = tool_calls[0]
            raw = call.function.arguments or "{}"
            return Decision(
                tool_name=call.function.name,
                arguments=parse_arguments(raw),
                call_id=call.id,
                raw_arguments=raw,
            )
        return Decision(text=message.content or NO_CONTENT)

    async def _decide_with_anthropic(self, transcript: Transcript, tools: List[Dict[str, Any]]) -> Decision:
        system, messages = to_anthropic_messages(transcript)
        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "messages": messages,
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = anthropic_tools(tools)

        response = await self.client.messages.create(**request)
        blocks = response.content or []
        if not blocks:
            raise OracleUnavailableError("No response from model")

        for block in blocks:
            if block.type == "tool_use":
                arguments = block.input if isinstance(block.input, dict) else {}
                return Decision(
                    tool_name=block.name,
                    arguments=arguments,
                    call_id=block.id,
                    raw_arguments=json.dumps(arguments),
                )

        text = "".join(block.text for block in blocks if block.type == "text")
        return Decision(text=text or NO_CONTENT)

    async def classify_task(self, task: str) -> str:
        """Pick the task type (browse / form / read / default) with a one-word completion."""
        try:
            if self.provider == "openai":
                response = await self.client.chat.completions.create(
                    model=self.classifier_model,
                    messages=[
                        {"role": "system", "content": CLASSIFIER_PROMPT},
                        {"role": "user", "content": f"Task: {task}"},
                    ],
                    max_tokens=10,
                )
                word = response.choices[0].message.content if response.choices else ""
            else:
                response = await self.client.messages.create(
                    model=self.classifier_model,
                    max_tokens=10,
                    system=CLASSIFIER_PROMPT,
                    messages=[{"role": "user", "content": f"Task: {task}"}],
                )
                word = "".join(block.text for block in response.content if block.type == "text")
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            log.warning(f"Task classification failed, using the default prompt: {e}")
            return DEFAULT_TASK_TYPE

        return normalize_task_type(word or "")
