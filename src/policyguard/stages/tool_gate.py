"""
Tool gate stage.

Validates every proposed tool call before it executes: batch size, whitelist,
exact and wildcard prohibitions, and prohibited data categories in the
arguments. Each decision, allowed or blocked, is written to the audit log
because this is where physical side effects are gated.
"""

import logging

from ..audit import AuditLogger, AuditRecord
from ..policy.resolver import ToolProhibitions
from ..policy.schema import Policy
from .base import (
    STATUS_BLOCKED,
    STATUS_SUCCESS,
    Abort,
    Continue,
    Message,
    Stage,
    StageContext,
    StageResult,
    ToolCall,
    humanize,
)

logger = logging.getLogger(__name__)

# Detection keywords for well-known data categories; others match their own label
DATA_CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "financial_accounts": ("bank_account", "credit_card", "routing_number", "account_number"),
    "medical_records": ("medical", "diagnosis", "prescription", "health_record"),
    "national_insurance_numbers": ("national insurance", "ni number", "nino"),
    "social_security_numbers": ("social security", "ssn"),
    "credentials_and_passwords": ("password", "api_key", "secret", "token", "credential"),
}

MSG_GIVE_UP = "Unable to complete this request within my operating guidelines."


class ToolGateStage(Stage):
    """Per-call whitelist, prohibition and data-category checks."""

    name = "tool_gate"

    def __init__(self, policy: Policy, audit: AuditLogger | None = None) -> None:
        self.policy = policy
        self.audit = audit
        self.allowed = frozenset(policy.capabilities.tools)
        self.prohibitions = ToolProhibitions.from_policy(policy)
        self.data_keywords: dict[str, tuple[str, ...]] = {
            category: DATA_CATEGORY_KEYWORDS.get(category, (humanize(category),))
            for category in policy.prohibitions.data
        }

    def on_step(
        self,
        messages: list[Message],
        tool_calls: list[ToolCall],
        ctx: StageContext,
    ) -> StageResult:
        if not tool_calls:
            return Continue(messages)

        cap = self.policy.limits.max_tool_calls_per_turn
        if len(tool_calls) > cap:
            self._record("tool_call_limit", "blocked", f"{len(tool_calls)} calls exceeds limit of {cap}")
            return Abort(f"Too many tool calls. Maximum is {cap}.", retry=True)

        for call in tool_calls:
            result = self._check(call, ctx)
            if result is not None:
                logger.warning(f"🚫 Tool call '{call.tool_name}' blocked: {result.reason}")
                return result
            self._record("tool_gate", "allowed", f'Tool "{call.tool_name}" passed all policy checks')
            logger.debug(f"  ✅ Tool call '{call.tool_name}' allowed")

        return Continue(messages)

    def _check(self, call: ToolCall, ctx: StageContext) -> Abort | None:
        tool = call.tool_name

        if tool not in self.allowed:
            self._record("tool_whitelist", "blocked", f'Tool "{tool}" not in allowed tools')
            if ctx.retries_exhausted:
                return Abort(MSG_GIVE_UP)
            return Abort(
                f'Tool "{tool}" is not available. Only use: {", ".join(sorted(self.allowed))}',
                retry=True,
            )

        if self.prohibitions.exact_match(tool):
            self._record("tool_prohibition", "blocked", f'Tool "{tool}" is explicitly prohibited')
            return Abort(f'Tool "{tool}" is prohibited by my operating policy.', retry=True)

        wildcard = self.prohibitions.wildcard_match(tool)
        if wildcard is not None:
            self._record(
                "tool_prohibition_wildcard",
                "blocked",
                f'Tool "{tool}" matches wildcard prohibition "{wildcard}"',
            )
            return Abort(f'Tool "{tool}" is prohibited by my operating policy.', retry=True)

        args_text = call.args_json().lower()
        for category, keywords in self.data_keywords.items():
            keyword = next((kw for kw in keywords if kw.lower() in args_text), None)
            if keyword is not None:
                self._record(
                    "data_prohibition",
                    "blocked",
                    f'Tool args reference prohibited data category "{category}" (keyword: "{keyword}")',
                )
                return Abort(f"I cannot access {humanize(category)} data.", retry=True)

        return None

    def _record(self, check: str, result: str, detail: str) -> None:
        if self.audit is None:
            return
        self.audit.log(
            AuditRecord(
                policy_name=self.policy.name,
                policy_version=self.policy.version,
                status=STATUS_SUCCESS if result == "allowed" else STATUS_BLOCKED,
                check_name=check,
                check_result=result,
                check_detail=detail,
            )
        )


def create_tool_gate_stage(policy: Policy, audit: AuditLogger | None = None) -> ToolGateStage:
    """
    Build the tool gate for a policy.

    Args:
        policy: Governing policy.
        audit: Audit logger receiving one entry per decision.

    Returns:
        Tool gate stage.
    """
    return ToolGateStage(policy, audit)
