"""Output validator stage: catch prohibited action language in the final response."""

import logging
import re
from collections.abc import Mapping

from ..policy.schema import Policy
from .base import Abort, Continue, Message, Stage, StageContext, StageResult, humanize, last_text

logger = logging.getLogger(__name__)


class OutputValidatorStage(Stage):
    name = "output_validator"

    def __init__(self, policy: Policy, action_patterns: Mapping[str, re.Pattern[str]] | None = None) -> None:
        patterns = action_patterns or {}
        self.policy = policy
        # Prohibited actions without a registered pattern are prompt-only
        self.checks: list[tuple[str, re.Pattern[str]]] = [
            (action, patterns[action]) for action in policy.prohibitions.actions if action in patterns
        ]

    def on_result(self, messages: list[Message], ctx: StageContext) -> StageResult:
        text = last_text(messages, "assistant")
        if text is None:
            return Continue(messages)

        for action, pattern in self.checks:
            if pattern.search(text):
                logger.warning(f"🛑 Response matched prohibited action '{action}'")
                return Abort(
                    f"I need to rephrase: I cannot {humanize(action)}. "
                    "Let me try again with proper framing."
                )

        return Continue(messages)


def create_output_validator_stage(
    policy: Policy,
    action_patterns: Mapping[str, re.Pattern[str]] | None = None,
) -> OutputValidatorStage:
    """
    Build the output validator for a policy.

    Args:
        policy: Governing policy.
        action_patterns: Action label -> pattern map merged from extension modules.

    Returns:
        Output validator stage.
    """
    return OutputValidatorStage(policy, action_patterns)
