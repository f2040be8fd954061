"""Unit tests for the disclaimer stage."""

from collections.abc import Callable
from typing import Any

import pytest

from policyguard.policy.schema import Policy
from policyguard.stages.base import Continue, StageContext
from policyguard.stages.disclaimer import create_disclaimer_stage

DISCLAIMER = "This is legal information, not legal advice."
REVIEW = "Please have a qualified adviser review this before you act on it."


def reply(text: str) -> list[dict[str, Any]]:
    return [{"role": "user", "content": "help"}, {"role": "assistant", "content": text}]


def rule(trigger: str, text: str, placement: str = "end", **extra: Any) -> dict[str, Any]:
    return {"trigger": trigger, "text": text, "placement": placement, **extra}


def final_text(result: Continue) -> str:
    return result.messages[-1]["content"]


class TestDisclaimerStage:
    """Tests for DisclaimerStage."""

    def test_always_appends(self, policy: Policy, ctx: StageContext) -> None:
        """Test an always-on disclaimer is appended at the end."""
        stage = create_disclaimer_stage(policy)
        messages = reply("Deposits must be protected.")

        result = stage.on_result(messages, ctx)

        assert final_text(result) == f"Deposits must be protected.\n\n---\n_{DISCLAIMER}_"
        assert messages[-1]["content"] == "Deposits must be protected."

    def test_not_duplicated(self, policy: Policy, ctx: StageContext) -> None:
        """Test text already containing the disclaimer is left alone."""
        stage = create_disclaimer_stage(policy)
        text = f"Deposits must be protected. {DISCLAIMER}"

        assert final_text(stage.on_result(reply(text), ctx)) == text

    def test_idempotent(self, policy: Policy, ctx: StageContext) -> None:
        """Test running the stage twice adds each text once."""
        stage = create_disclaimer_stage(policy)

        once = stage.on_result(reply("Send the letter before action to your landlord."), ctx)
        twice = stage.on_result(once.messages, ctx)

        assert final_text(twice) == final_text(once)
        assert final_text(twice).count(DISCLAIMER) == 1
        assert final_text(twice).count(REVIEW) == 1

    def test_placement_start_and_both(self, make_policy: Callable[..., Policy], ctx: StageContext) -> None:
        """Test start and both placements."""
        policy = make_policy(
            {
                "requirements.disclaimers": [rule("always", "Top.", "start"), rule("always", "Wrap.", "both")],
                "requirements.human_review.required_before": [],
            }
        )
        stage = create_disclaimer_stage(policy)

        text = final_text(stage.on_result(reply("Body"), ctx))

        assert text == "_Wrap._\n\n---\n\n_Top._\n\n---\n\nBody\n\n---\n_Wrap._"

    @pytest.mark.parametrize(
        "body,expected",
        [
            ("Dear Landlord, I am writing about my deposit.", True),
            ("x" * 501, True),
            ("A short answer.", False),
        ],
    )
    def test_document_generation_trigger(
        self, make_policy: Callable[..., Policy], ctx: StageContext, body: str, expected: bool
    ) -> None:
        """Test document disclaimers fire on letter headings or long responses."""
        policy = make_policy(
            {
                "requirements.disclaimers": [rule("on_document_generation", "Draft document.")],
                "requirements.human_review.required_before": [],
            }
        )
        stage = create_disclaimer_stage(policy)

        assert ("Draft document." in final_text(stage.on_result(reply(body), ctx))) is expected

    @pytest.mark.parametrize("trigger", ["on_claim", "on_legal_claim"])
    def test_claim_trigger(self, make_policy: Callable[..., Policy], ctx: StageContext, trigger: str) -> None:
        """Test claim disclaimers fire on statutory language only."""
        policy = make_policy({"requirements.disclaimers": [rule(trigger, "Check the statute.")]})
        stage = create_disclaimer_stage(policy)

        assert "Check the statute." in final_text(stage.on_result(reply("Under section 21 you may..."), ctx))
        assert "Check the statute." not in final_text(stage.on_result(reply("Hello there"), ctx))

    def test_custom_trigger(self, make_policy: Callable[..., Policy], ctx: StageContext) -> None:
        """Test custom disclaimers use the policy's pattern case-insensitively."""
        policy = make_policy(
            {"requirements.disclaimers": [rule("custom", "Deposit rules vary.", custom_pattern=r"\bdeposit\b")]}
        )
        stage = create_disclaimer_stage(policy)

        assert "Deposit rules vary." in final_text(stage.on_result(reply("Your DEPOSIT is safe"), ctx))
        assert "Deposit rules vary." not in final_text(stage.on_result(reply("Your rent is due"), ctx))

    @pytest.mark.parametrize(
        "body",
        [
            "DRAFT: letter to your landlord",
            "You must act before the deadline.",
            "Serve it within 14 days.",
        ],
    )
    def test_review_prompt_added(self, policy: Policy, ctx: StageContext, body: str) -> None:
        """Test review triggers append the review prompt once, after the disclaimer."""
        stage = create_disclaimer_stage(policy)

        text = final_text(stage.on_result(reply(body), ctx))

        assert text.endswith(f"\n\n---\n⚠️ **{REVIEW}**")
        assert text.index(DISCLAIMER) < text.index(REVIEW)

    def test_review_only_for_listed_actions(self, make_policy: Callable[..., Policy], ctx: StageContext) -> None:
        """Test review patterns apply only to labels the policy lists."""
        policy = make_policy({"requirements.human_review.required_before": ["send_correspondence"]})
        stage = create_disclaimer_stage(policy)

        assert REVIEW not in final_text(stage.on_result(reply("The deadline is Friday."), ctx))
        assert REVIEW in final_text(stage.on_result(reply("Please send the letter today."), ctx))

    def test_no_assistant_message(self, policy: Policy, ctx: StageContext) -> None:
        """Test conversations without a reply pass unchanged."""
        stage = create_disclaimer_stage(policy)
        messages = [{"role": "user", "content": "hi"}]

        assert stage.on_result(messages, ctx).messages is messages
