"""
Tool Resolver: whitelist and prohibition filter.

Computes the exact subset of tools a policy allows before the agent is
built, so the model never sees a disallowed tool. A tool survives only if it
is whitelisted, offered by some extension, not exactly prohibited and not
prefix-matched by a wildcard prohibition. Prohibition always wins.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from .schema import Policy

logger = logging.getLogger(__name__)

WILDCARD = "*"

ToolT = TypeVar("ToolT")


@dataclass(frozen=True)
class ToolProhibitions:
    """
    Compiled form of ``prohibitions.tools``.

    Attributes:
        exact: Tool identifiers prohibited verbatim.
        prefixes: Literal prefixes of wildcard entries ("email-*" -> "email-").
    """

    exact: frozenset[str]
    prefixes: tuple[str, ...]

    @classmethod
    def from_entries(cls, entries: tuple[str, ...] | list[str]) -> "ToolProhibitions":
        """
        Split prohibition entries into exact ids and wildcard prefixes.

        Args:
            entries: Raw ``prohibitions.tools`` entries.

        Returns:
            Compiled prohibitions.
        """
        exact = frozenset(e for e in entries if WILDCARD not in e)
        prefixes = tuple(e.split(WILDCARD, 1)[0] for e in entries if WILDCARD in e)
        return cls(exact=exact, prefixes=prefixes)

    @classmethod
    def from_policy(cls, policy: Policy) -> "ToolProhibitions":
        return cls.from_entries(policy.prohibitions.tools)

    def exact_match(self, tool_id: str) -> bool:
        return tool_id in self.exact

    def wildcard_match(self, tool_id: str) -> str | None:
        """
        Find the wildcard prohibition a tool falls under.

        Args:
            tool_id: Tool identifier.

        Returns:
            The matching wildcard entry (e.g. "email-*") or None.
        """
        for prefix in self.prefixes:
            if tool_id.startswith(prefix):
                return prefix + WILDCARD
        return None

    def blocks(self, tool_id: str) -> bool:
        return self.exact_match(tool_id) or self.wildcard_match(tool_id) is not None


def resolve_tools(
    all_tools: Mapping[str, ToolT],
    policy: Policy,
) -> dict[str, ToolT]:
    """
    Return the tools a policy allows, preserving source order.

    Args:
        all_tools: Every tool the agent could expose, keyed by identifier.
        policy: Policy to apply.

    Returns:
        Allowed tools keyed by identifier.
    """
    allowed_ids = set(policy.capabilities.tools)
    prohibitions = ToolProhibitions.from_policy(policy)

    result: dict[str, ToolT] = {}
    for tool_id, tool in all_tools.items():
        if tool_id not in allowed_ids:
            continue
        if prohibitions.exact_match(tool_id):
            logger.debug(f"  🚫 Tool '{tool_id}' dropped: explicitly prohibited")
            continue
        wildcard = prohibitions.wildcard_match(tool_id)
        if wildcard:
            logger.debug(f"  🚫 Tool '{tool_id}' dropped: matches '{wildcard}'")
            continue
        result[tool_id] = tool

    missing = allowed_ids - set(all_tools)
    if missing:
        logger.debug(f"  📋 Whitelisted but not offered: {sorted(missing)}")

    logger.info(
        f"🔒 Tool resolution: {len(all_tools)} → {len(result)} tools "
        f"(policy={policy.name})"
    )
    return result


def resolve_tool_ids(all_tools: Mapping[str, Any] | set[str], policy: Policy) -> list[str]:
    """
    Convenience wrapper returning only identifiers.

    Args:
        all_tools: Tool mapping or plain set of identifiers.
        policy: Policy to apply.

    Returns:
        Sorted list of allowed tool identifiers.
    """
    if not isinstance(all_tools, Mapping):
        all_tools = {tool_id: tool_id for tool_id in all_tools}
    return sorted(resolve_tools(all_tools, policy))
