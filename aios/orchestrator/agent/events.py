"""Events yielded by the model gateway's streaming entry point.

A closed set of dataclasses; the orchestrator dispatches on type.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    text: str


@dataclass(frozen=True)
class ToolCall:
    tool_call_id: str
    tool_name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    tool_name: str
    output: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Finish:
    finish_reason: str
    steps: int = 1


@dataclass(frozen=True)
class StreamError:
    error: BaseException


GatewayEvent = TextDelta | ReasoningDelta | ToolCall | ToolResult | Finish | StreamError
