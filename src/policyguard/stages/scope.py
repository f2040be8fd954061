"""Scope stage: refuse or escalate requests about unsupported jurisdictions or domains."""

import logging
import re
from collections.abc import Mapping, Sequence

from ..policy.schema import Policy, UnsupportedScopeBehavior
from .base import (
    STATUS_BLOCKED,
    STATUS_ESCALATED,
    Abort,
    Continue,
    Message,
    Stage,
    StageContext,
    StageResult,
    compile_keyword,
    first_match,
    last_text,
)

logger = logging.getLogger(__name__)


class ScopeStage(Stage):
    name = "scope"

    def __init__(self, policy: Policy, scope_keywords: Mapping[str, Sequence[str]] | None = None) -> None:
        allowed = set(policy.scope.allowed)
        self.policy = policy
        self.behavior = policy.scope.behavior_on_unsupported
        # Only scopes outside the allowed set need scanning
        self.unsupported: dict[str, list[tuple[str, re.Pattern[str]]]] = {
            scope: [(kw, compile_keyword(kw)) for kw in keywords]
            for scope, keywords in (scope_keywords or {}).items()
            if scope not in allowed
        }

    def on_input(self, messages: list[Message], ctx: StageContext) -> StageResult:
        text = last_text(messages, "user")
        if text is None or not self.unsupported:
            return Continue(messages)
        for scope, patterns in self.unsupported.items():
            matched = first_match(patterns, text)
            if matched is None:
                continue
            if self.behavior == UnsupportedScopeBehavior.warn_and_attempt:
                logger.info(f"🌐 Unsupported scope {scope} ('{matched}'), attempting anyway")
                return Continue(messages)
            logger.warning(f"🌐 Unsupported scope {scope} ('{matched}'), {self.behavior.value}")
            status = STATUS_ESCALATED if self.behavior == UnsupportedScopeBehavior.escalate else STATUS_BLOCKED
            return Abort(self.policy.scope.escalation_message, status=status)

        return Continue(messages)


def create_scope_stage(
    policy: Policy,
    scope_keywords: Mapping[str, Sequence[str]] | None = None,
) -> ScopeStage:
    """
    Build the scope stage for a policy.

    Args:
        policy: Governing policy.
        scope_keywords: Scope id -> keywords map merged from extension modules.

    Returns:
        Scope stage.
    """
    return ScopeStage(policy, scope_keywords)
