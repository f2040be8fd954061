"""Unit tests for the policy consistency validator."""

from collections.abc import Callable

import pytest

from policyguard.policy.schema import Policy
from policyguard.policy.validator import validate_policy

CRIMINAL_TRIGGER = {
    "condition": "topic_match",
    "topics": ["criminal_defence"],
    "action": "refuse",
    "message": "Please see a solicitor.",
}


class TestValidatePolicy:
    """Tests for validate_policy."""

    def test_fixture_policy_is_valid(self, policy: Policy) -> None:
        """Test the reference policy has no errors or warnings."""
        result = validate_policy(policy)

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_exact_prohibition_collision(self, make_policy: Callable[..., Policy]) -> None:
        """Test a tool both whitelisted and prohibited is an error naming the tool."""
        policy = make_policy({"prohibitions.tools": ["formal-letter"]})

        result = validate_policy(policy)

        assert result.valid is False
        assert any('"formal-letter"' in e and "capabilities.tools" in e for e in result.errors)

    def test_wildcard_prohibition_collision(self, make_policy: Callable[..., Policy]) -> None:
        """Test a whitelisted tool under a wildcard prohibition is an error."""
        policy = make_policy({"prohibitions.tools": ["case-law-*"]})

        result = validate_policy(policy)

        assert result.valid is False
        assert any('"case-law-search"' in e and '"case-law-*"' in e for e in result.errors)

    @pytest.mark.parametrize("entry", ["legislation-lookup", "legislation-*", "legislation*"])
    def test_collision_is_symmetric_in_entry_form(
        self, make_policy: Callable[..., Policy], entry: str
    ) -> None:
        """Test whitelist/prohibition overlap is caught for every entry form."""
        policy = make_policy({"prohibitions.tools": [entry]})

        assert validate_policy(policy).valid is False

    def test_topic_match_without_topics(self, make_policy: Callable[..., Policy]) -> None:
        """Test topic_match requires topics."""
        trigger = {**CRIMINAL_TRIGGER, "topics": None}
        policy = make_policy({"escalation.triggers": [trigger]})

        result = validate_policy(policy)

        assert result.valid is False
        assert any("escalation.triggers[0]" in e and "topic_match" in e for e in result.errors)

    def test_topic_match_with_empty_topics(self, make_policy: Callable[..., Policy]) -> None:
        """Test an empty topics list counts as missing."""
        trigger = {**CRIMINAL_TRIGGER, "topics": []}
        policy = make_policy({"escalation.triggers": [trigger]})

        assert validate_policy(policy).valid is False

    def test_confidence_below_without_threshold(self, make_policy: Callable[..., Policy]) -> None:
        """Test confidence_below requires a threshold."""
        trigger = {"condition": "confidence_below", "action": "disclose_and_defer", "message": "Unsure."}
        policy = make_policy({"escalation.triggers": [trigger]})

        result = validate_policy(policy)

        assert result.valid is False
        assert any("confidence_below" in e for e in result.errors)

    def test_confidence_below_with_threshold(self, make_policy: Callable[..., Policy]) -> None:
        """Test confidence_below with a threshold is fine."""
        trigger = {
            "condition": "confidence_below",
            "threshold": 0.6,
            "action": "disclose_and_defer",
            "message": "Unsure.",
        }
        policy = make_policy({"escalation.triggers": [trigger]})

        assert validate_policy(policy).valid is True

    def test_custom_disclaimer_without_pattern(self, make_policy: Callable[..., Policy]) -> None:
        """Test custom disclaimers need a pattern."""
        disclaimer = {"trigger": "custom", "text": "Check local rules.", "placement": "end"}
        policy = make_policy({"requirements.disclaimers": [disclaimer]})

        result = validate_policy(policy)

        assert result.valid is False
        assert any("requirements.disclaimers[0]" in e and "custom_pattern" in e for e in result.errors)

    def test_custom_disclaimer_with_invalid_pattern(self, make_policy: Callable[..., Policy]) -> None:
        """Test custom patterns must compile."""
        disclaimer = {
            "trigger": "custom",
            "text": "Check local rules.",
            "placement": "end",
            "custom_pattern": "(unclosed",
        }
        policy = make_policy({"requirements.disclaimers": [disclaimer]})

        result = validate_policy(policy)

        assert result.valid is False
        assert any("not a valid regex" in e for e in result.errors)

    def test_warning_tools_without_extensions(self, make_policy: Callable[..., Policy]) -> None:
        """Test declaring tools with no extension modules warns."""
        policy = make_policy({"metadata.extensions": []})

        result = validate_policy(policy)

        assert result.valid is True
        assert any("No extensions" in w for w in result.warnings)

    def test_warning_turn_cap_above_daily_budget(self, make_policy: Callable[..., Policy]) -> None:
        """Test a per-turn cap larger than the daily budget warns."""
        policy = make_policy({"limits.max_tokens_per_turn": 20000})

        result = validate_policy(policy)

        assert result.valid is True
        assert any("token_budget_daily" in w for w in result.warnings)

    def test_warning_empty_scope(self, make_policy: Callable[..., Policy]) -> None:
        """Test an empty allowed-scope list warns."""
        policy = make_policy({"scope.allowed": []})

        assert any("scope" in w.lower() for w in validate_policy(policy).warnings)

    def test_warning_zero_min_per_claim(self, make_policy: Callable[..., Policy]) -> None:
        """Test required citations with min_per_claim 0 warns."""
        policy = make_policy({"requirements.citations.min_per_claim": 0})

        assert any("min_per_claim" in w for w in validate_policy(policy).warnings)

    def test_warning_redirect_without_resources(self, make_policy: Callable[..., Policy]) -> None:
        """Test refuse_and_redirect with no resources warns."""
        trigger = {**CRIMINAL_TRIGGER, "action": "refuse_and_redirect"}
        policy = make_policy({"escalation.triggers": [trigger]})

        result = validate_policy(policy)

        assert result.valid is True
        assert any("refuse_and_redirect" in w for w in result.warnings)

    def test_collects_all_errors(self, make_policy: Callable[..., Policy]) -> None:
        """Test every error is reported, not just the first."""
        policy = make_policy(
            {
                "prohibitions.tools": ["formal-letter", "case-law-*"],
                "escalation.triggers": [{**CRIMINAL_TRIGGER, "topics": None}],
            }
        )

        assert len(validate_policy(policy).errors) == 3

    def test_does_not_mutate(self, policy: Policy) -> None:
        """Test validation leaves the policy unchanged."""
        before = policy.model_dump()

        validate_policy(policy)

        assert policy.model_dump() == before
