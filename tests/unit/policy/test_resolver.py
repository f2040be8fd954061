"""Unit tests for tool resolution."""

from collections.abc import Callable

import pytest

from policyguard.policy.resolver import ToolProhibitions, resolve_tool_ids, resolve_tools
from policyguard.policy.schema import Policy

ALL_TOOLS = {
    "legislation-lookup": "legislation",
    "case-law-search": "caselaw",
    "deadline-calculator": "deadline",
    "formal-letter": "letter",
    "email-send": "email",
    "web-browse": "browse",
    "unlisted-tool": "unlisted",
}


class TestToolProhibitions:
    """Tests for ToolProhibitions."""

    def test_from_entries_splits_exact_and_wildcard(self) -> None:
        """Test wildcard entries become literal prefixes."""
        prohibitions = ToolProhibitions.from_entries(["email-*", "web-browse"])

        assert prohibitions.exact == frozenset({"web-browse"})
        assert prohibitions.prefixes == ("email-",)

    def test_wildcard_match(self) -> None:
        """Test prefix matching returns the original entry."""
        prohibitions = ToolProhibitions.from_entries(["email-*"])

        assert prohibitions.wildcard_match("email-send") == "email-*"
        assert prohibitions.wildcard_match("emails") is None
        assert prohibitions.wildcard_match("send-email") is None

    def test_blocks(self) -> None:
        """Test blocks covers both exact and wildcard entries."""
        prohibitions = ToolProhibitions.from_entries(["email-*", "web-browse"])

        assert prohibitions.blocks("web-browse") is True
        assert prohibitions.blocks("email-draft") is True
        assert prohibitions.blocks("formal-letter") is False


class TestResolveTools:
    """Tests for resolve_tools."""

    def test_whitelist_filter(self, policy: Policy) -> None:
        """Test only whitelisted, offered, unprohibited tools survive."""
        result = resolve_tools(ALL_TOOLS, policy)

        assert list(result) == [
            "legislation-lookup",
            "case-law-search",
            "deadline-calculator",
            "formal-letter",
        ]
        assert result["formal-letter"] == "letter"

    def test_preserves_source_order(self, policy: Policy) -> None:
        """Test the output follows the order of the input mapping."""
        reordered = dict(reversed(list(ALL_TOOLS.items())))

        assert list(resolve_tools(reordered, policy)) == [
            "formal-letter",
            "deadline-calculator",
            "case-law-search",
            "legislation-lookup",
        ]

    def test_whitelisted_but_missing_tool_is_skipped(self, policy: Policy) -> None:
        """Test a whitelisted id nobody offers is simply absent."""
        result = resolve_tools({"legislation-lookup": "x"}, policy)

        assert list(result) == ["legislation-lookup"]

    @pytest.mark.parametrize("entry", ["formal-letter", "formal-*", "formal*"])
    def test_prohibition_wins_over_whitelist(
        self, make_policy: Callable[..., Policy], entry: str
    ) -> None:
        """Test no prohibited tool is ever returned, even when whitelisted."""
        policy = make_policy({"prohibitions.tools": [entry]})

        assert "formal-letter" not in resolve_tools(ALL_TOOLS, policy)

    def test_result_never_intersects_prohibitions(self, make_policy: Callable[..., Policy]) -> None:
        """Test resolution excludes every prohibited id for a broad whitelist."""
        policy = make_policy(
            {
                "capabilities.tools": list(ALL_TOOLS),
                "prohibitions.tools": ["email-*", "web-browse", "deadline-*"],
            }
        )
        prohibitions = ToolProhibitions.from_policy(policy)

        result = resolve_tools(ALL_TOOLS, policy)

        assert not any(prohibitions.blocks(tool_id) for tool_id in result)
        assert set(result) == {"legislation-lookup", "case-law-search", "formal-letter", "unlisted-tool"}

    def test_resolve_tool_ids_accepts_set(self, policy: Policy) -> None:
        """Test the id-only helper returns a sorted list."""
        assert resolve_tool_ids(set(ALL_TOOLS), policy) == [
            "case-law-search",
            "deadline-calculator",
            "formal-letter",
            "legislation-lookup",
        ]
