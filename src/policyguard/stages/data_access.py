"""
Data access stage.

Applies ``capabilities.data_access`` to tool-call arguments:

1. File types: any argument string whose last path segment ends in a
   2 to 6 letter extension must use an extension some rule allows.
2. Write permission: when no rule grants write, calls whose arguments or
   tool name read like a write operation are rejected.
"""

import logging
import re
from collections.abc import Iterator
from typing import Any

from ..policy.schema import Permission, Policy
from .base import Abort, Continue, Message, Stage, StageContext, StageResult, ToolCall

logger = logging.getLogger(__name__)

_EXTENSION_PATTERN = re.compile(r"[^.]\.([a-z]{2,6})$")
_PATH_SEPARATORS = re.compile(r"[\\/]")

WRITE_ARG_PATTERN = re.compile(
    r"\b(write|save|create|delete|update|modify|append|overwrite)\b", re.IGNORECASE
)
WRITE_TOOL_PATTERN = re.compile(r"write|save|create|delete|upload|send", re.IGNORECASE)

MSG_READ_ONLY = (
    "Write operations are not permitted under the current policy. "
    "All data access is read-only."
)


def iter_strings(value: Any) -> Iterator[str]:
    """
    Yield every string inside a nested argument structure.

    Args:
        value: Scalar, list or dict.
    """
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_strings(item)


def file_extension(value: str) -> str | None:
    """
    Extension of a filename-like string.

    Args:
        value: Argument string.

    Returns:
        Lowercase extension with leading dot (".pdf"), or None.
    """
    segment = _PATH_SEPARATORS.split(value.lower())[-1]
    match = _EXTENSION_PATTERN.search(segment)
    return f".{match.group(1)}" if match else None


def normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


class DataAccessStage(Stage):
    """File type and read-only enforcement on tool arguments."""

    name = "data_access"

    def __init__(self, policy: Policy) -> None:
        rules = policy.capabilities.data_access
        self.policy = policy
        self.allowed_extensions: frozenset[str] = frozenset(
            normalize_extension(ext) for rule in rules for ext in (rule.file_types or ())
        )
        self.write_allowed = any(Permission.write in rule.permissions for rule in rules)

    def on_step(
        self,
        messages: list[Message],
        tool_calls: list[ToolCall],
        ctx: StageContext,
    ) -> StageResult:
        for call in tool_calls:
            if self.allowed_extensions:
                for value in iter_strings(call.args):
                    ext = file_extension(value)
                    if ext is not None and ext not in self.allowed_extensions:
                        logger.warning(f"📁 Tool '{call.tool_name}' blocked: file type {ext} not permitted")
                        return Abort(
                            f'File type "{ext}" is not permitted. '
                            f"Allowed types: {', '.join(sorted(self.allowed_extensions))}",
                            retry=True,
                        )

            if not self.write_allowed and self._is_write(call):
                logger.warning(f"📁 Tool '{call.tool_name}' blocked: write on read-only data")
                return Abort(MSG_READ_ONLY, retry=True)

        return Continue(messages)

    @staticmethod
    def _is_write(call: ToolCall) -> bool:
        return bool(WRITE_ARG_PATTERN.search(call.args_json()) or WRITE_TOOL_PATTERN.search(call.tool_name))


def create_data_access_stage(policy: Policy) -> DataAccessStage:
    return DataAccessStage(policy)
