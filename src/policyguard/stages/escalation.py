"""
Escalation stage.

Scans the latest user message for topics the policy hands off to humans and
for generalized distress language. Only the most recent user message is
inspected; earlier turns were checked when they arrived.
"""

import logging
import re
from collections.abc import Mapping, Sequence

from ..policy.schema import CONDITION_DISTRESS, CONDITION_TOPIC_MATCH, EscalationTrigger, Policy
from .base import (
    STATUS_ESCALATED,
    Abort,
    Continue,
    Message,
    Stage,
    StageContext,
    StageResult,
    compile_keyword,
    first_match,
    humanize,
    last_text,
    normalize_keyword,
)

logger = logging.getLogger(__name__)

# Universal, not domain-specific
DISTRESS_KEYWORDS: tuple[str, ...] = (
    "desperate",
    "no way out",
    "can't take it",
    "losing everything",
    "threat",
    "threatened",
    "scared for my life",
    "help me please",
    "don't know what to do",
    "emergency",
)

NOTICES_KEY = "escalation_notices"


def expand_topics(topics: Sequence[str], expansions: Mapping[str, Sequence[str]]) -> tuple[str, ...]:
    """
    Expand topic labels into keywords.

    Keywords are lowercased except acronyms, which keep their case and are
    later matched as whole words. A topic with no registered expansion matches its own label with
    underscores read as spaces.

    Args:
        topics: Topic labels from a trigger.
        expansions: Merged topic -> keywords map.

    Returns:
        Keywords to look for.
    """
    keywords: list[str] = []
    for topic in topics:
        keywords.extend(normalize_keyword(kw) for kw in expansions.get(topic) or (humanize(topic),))
    return tuple(keywords)


class EscalationStage(Stage):
    """Topic and distress detection on user input."""

    name = "escalation"

    def __init__(self, policy: Policy, expansions: Mapping[str, Sequence[str]] | None = None) -> None:
        expansions = expansions or {}
        self.policy = policy
        self.topic_triggers: list[tuple[EscalationTrigger, list[tuple[str, re.Pattern[str]]]]] = [
            (trigger, [(kw, compile_keyword(kw)) for kw in expand_topics(trigger.topics, expansions)])
            for trigger in policy.escalation.triggers
            if trigger.condition == CONDITION_TOPIC_MATCH and trigger.topics
        ]
        self.distress_trigger = next(
            (t for t in policy.escalation.triggers if t.condition == CONDITION_DISTRESS),
            None,
        )

    def on_input(self, messages: list[Message], ctx: StageContext) -> StageResult:
        text = last_text(messages, "user")
        if text is None:
            return Continue(messages)
        lowered = text.lower()

        for trigger, patterns in self.topic_triggers:
            matched = first_match(patterns, text)
            if matched is None:
                continue
            if trigger.action.refuses:
                logger.warning(
                    f"🆘 Escalation: '{matched}' matched topics {list(trigger.topics)} "
                    f"(action={trigger.action.value})"
                )
                return Abort(trigger.render_message(), status=STATUS_ESCALATED)
            self._record_notice(ctx, trigger, matched)
            break

        if self.distress_trigger is not None:
            matched = next((kw for kw in DISTRESS_KEYWORDS if kw in lowered), None)
            if matched is not None:
                logger.warning(f"🆘 Distress language detected: '{matched}'")
                return Abort(self.distress_trigger.render_message(), status=STATUS_ESCALATED)

        return Continue(messages)

    @staticmethod
    def _record_notice(ctx: StageContext, trigger: EscalationTrigger, keyword: str) -> None:
        logger.info(
            f"⚠️ Escalation notice: '{keyword}' matched topics {list(trigger.topics)} "
            f"(action={trigger.action.value})"
        )
        ctx.state.setdefault(NOTICES_KEY, []).append(
            {"keyword": keyword, "action": trigger.action.value, "message": trigger.render_message()}
        )


def create_escalation_stage(
    policy: Policy,
    expansions: Mapping[str, Sequence[str]] | None = None,
) -> EscalationStage:
    """
    Build the escalation stage for a policy.

    Args:
        policy: Governing policy.
        expansions: Topic -> keywords map merged from extension modules.

    Returns:
        Escalation stage.
    """
    return EscalationStage(policy, expansions)
