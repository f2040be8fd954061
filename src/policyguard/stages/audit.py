"""Audit stage: record one summary entry per completed interaction."""

import json
import logging

from ..audit import AuditLogger, AuditRecord
from ..policy.schema import AuditLevel, Policy
from .base import STATUS_SUCCESS, Continue, Message, Stage, StageContext, StageResult, last_text
from .escalation import NOTICES_KEY

logger = logging.getLogger(__name__)

TOOL_CALLS_KEY = "tool_calls"


class AuditStage(Stage):
    """
    Writes the interaction summary. Always last, never aborts.

    Input and output text are stored only at audit level ``full``; approved
    tool calls are stored when the policy asks for them.
    """

    name = "audit"

    def __init__(self, policy: Policy, audit: AuditLogger | None) -> None:
        self.policy = policy
        self.audit = audit
        self.settings = policy.requirements.audit

    def on_result(self, messages: list[Message], ctx: StageContext) -> StageResult:
        if self.audit is None:
            return Continue(messages)

        record = AuditRecord(
            policy_name=self.policy.name,
            policy_version=self.policy.version,
            status=STATUS_SUCCESS,
        )
        if self.settings.log_level == AuditLevel.full:
            record.input_text = last_text(messages, "user")
            record.output_text = last_text(messages, "assistant")
        if self.settings.include_tool_calls and ctx.state.get(TOOL_CALLS_KEY):
            record.tool_calls = json.dumps([call.to_dict() for call in ctx.state[TOOL_CALLS_KEY]], default=str)
        notices = ctx.state.get(NOTICES_KEY)
        if notices:
            record.check_name = "escalation_notice"
            record.check_result = "notified"
            record.check_detail = "; ".join(n["keyword"] for n in notices)

        self.audit.log_interaction(record)
        logger.debug(f"  📝 Interaction logged for session '{ctx.session_id}'")
        return Continue(messages)


def create_audit_stage(policy: Policy, audit: AuditLogger | None) -> AuditStage:
    return AuditStage(policy, audit)
