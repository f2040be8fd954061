"""
Enforcement stage primitives.

A stage is an object exposing any of three hooks:

    on_input(messages, ctx)              -> StageResult   (before generation)
    on_step(messages, tool_calls, ctx)   -> StageResult   (before tool execution)
    on_result(messages, ctx)             -> StageResult   (after the final response)

Hooks return ``Continue`` with the (possibly rewritten) messages, or
``Abort`` to end the interaction. A retryable abort asks the generator to
try again; the pipeline turns it into a hard abort once the retry budget is
spent. Stages never raise for flow control.
"""

import json
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from ..policy.schema import Policy

Message = dict[str, Any]

# Audit statuses
STATUS_SUCCESS = "success"
STATUS_BLOCKED = "blocked"
STATUS_ESCALATED = "escalated"
STATUS_ERROR = "error"

# Retries granted to a retryable abort before it becomes terminal
MAX_RETRIES = 2


@dataclass(frozen=True)
class Continue:
    """Let the interaction proceed with these messages."""

    messages: list[Message]


@dataclass(frozen=True)
class Abort:
    """
    End (or retry) the interaction.

    Attributes:
        reason: User-visible outcome, or feedback for the generator on retry.
        retry: Whether the generator may try again.
        status: Audit status recorded for the abort.
    """

    reason: str
    retry: bool = False
    status: str = STATUS_BLOCKED


StageResult = Union[Continue, Abort]


@dataclass
class ToolCall:
    """
    Tool call proposed by the model.

    Attributes:
        tool_name: Tool identifier.
        args: Arbitrarily nested arguments.
    """

    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolCall":
        """
        Build from a host runtime descriptor.

        Accepts ``toolName``, ``tool_name`` or ``name`` for the identifier.

        Args:
            raw: Descriptor dictionary.

        Returns:
            Tool call.
        """
        name = raw.get("toolName") or raw.get("tool_name") or raw.get("name") or ""
        return cls(tool_name=name, args=raw.get("args") or {})

    def args_json(self) -> str:
        return json.dumps(self.args, sort_keys=True, default=str)

    def to_dict(self) -> dict[str, Any]:
        return {"toolName": self.tool_name, "args": self.args}


@dataclass
class StageContext:
    """
    Per-interaction context handed to every hook.

    Attributes:
        session_id: Conversation session identifier.
        retry_count: Retries already spent on this interaction.
        state: Scratch space shared by stages for this interaction.
    """

    session_id: str = "default"
    retry_count: int = 0
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= MAX_RETRIES


class Stage:
    """
    Base class for enforcement stages.

    Subclasses define ``name`` and implement any of ``on_input``,
    ``on_step`` or ``on_result``; the pipeline skips hooks a stage lacks.
    """

    name: str = "stage"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


StageFactory = Callable[[Policy], Stage]


def content_text(message: Message | None) -> str:
    """
    Extract text content from a message.

    Args:
        message: Chat message or None.

    Returns:
        String content, JSON-encoded when the content is structured.
    """
    if message is None:
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    return json.dumps(content, default=str)


def find_last(messages: list[Message], role: str) -> int:
    """
    Index of the last message with a role.

    Args:
        messages: Conversation messages.
        role: Role to look for ("user", "assistant").

    Returns:
        Index, or -1 when absent.
    """
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].get("role") == role:
            return index
    return -1


def last_text(messages: list[Message], role: str) -> str | None:
    """
    Text of the last message with a role.

    Returns:
        Text, or None when no such message exists.
    """
    index = find_last(messages, role)
    if index == -1:
        return None
    return content_text(messages[index])


def replace_content(messages: list[Message], index: int, text: str) -> list[Message]:
    """
    Copy messages with one message's content replaced.

    Args:
        messages: Conversation messages (left untouched).
        index: Message to rewrite.
        text: New content.

    Returns:
        New message list.
    """
    updated = list(messages)
    updated[index] = {**messages[index], "content": text}
    return updated


def humanize(label: str) -> str:
    """Turn a snake_case label into words."""
    return label.replace("_", " ")


def normalize_keyword(keyword: str) -> str:
    """Lowercase a detection keyword, keeping acronyms such as "IVA" as written."""
    keyword = keyword.strip()
    return keyword if keyword.isupper() else keyword.lower()


def compile_keyword(keyword: str) -> re.Pattern[str]:
    """
    Compile a detection keyword into a case-insensitive pattern.

    Plain keywords match anywhere in the text so "criminal" also catches
    "criminals". Acronyms only match as whole words, otherwise "IVA" would
    fire on "private" and "DRO" on "drop".
    """
    escaped = re.escape(keyword)
    if keyword.isupper():
        return re.compile(rf"\b{escaped}\b", re.IGNORECASE)
    return re.compile(escaped, re.IGNORECASE)


def first_match(patterns: Sequence[tuple[str, re.Pattern[str]]], text: str) -> str | None:
    """Return the keyword of the first pattern found in text."""
    return next((kw for kw, pattern in patterns if pattern.search(text)), None)
