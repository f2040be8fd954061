"""
Enforcement Pipeline

Drives an ordered list of stages through the three interception points of
an interaction:

    user input  -> run_input   -> (host generates)
    tool calls  -> run_step    -> (host executes approved calls)
    final reply -> run_result  -> delivered to the user

Each hook runs the stages that implement it, in list order, threading the
(possibly rewritten) messages from one stage to the next. The first abort
ends the chain. A retryable abort raised after the retry budget is spent is
delivered as terminal.
"""

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from .audit import AuditLogger, AuditRecord
from .policy.schema import AuditLevel, Policy
from .stages.audit import TOOL_CALLS_KEY
from .stages.base import (
    STATUS_ERROR,
    Abort,
    Continue,
    Message,
    Stage,
    StageContext,
    StageResult,
    ToolCall,
    last_text,
)

logger = logging.getLogger(__name__)

HOOK_INPUT = "on_input"
HOOK_STEP = "on_step"
HOOK_RESULT = "on_result"


@dataclass
class PipelineResult:
    """
    Outcome of one hook chain.

    Attributes:
        messages: Messages after every stage that ran.
        abort: The abort that ended the chain, if any.
        stage: Name of the stage that aborted.
    """

    messages: list[Message]
    abort: Abort | None = None
    stage: str | None = None

    @property
    def aborted(self) -> bool:
        return self.abort is not None

    @property
    def should_retry(self) -> bool:
        """Whether the host should regenerate with ``abort.reason`` as feedback."""
        return self.abort is not None and self.abort.retry


class EnforcementPipeline:
    """
    Ordered chain of enforcement stages for one policy.

    Usage:
        pipeline = EnforcementPipeline(policy, stages, audit=audit)
        ctx = StageContext(session_id="abc")
        result = pipeline.run_input(messages, ctx)
        if result.aborted:
            reply(result.abort.reason)
    """

    def __init__(
        self,
        policy: Policy,
        stages: Sequence[Stage],
        audit: AuditLogger | None = None,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            policy: Governing policy.
            stages: Stages in pipeline order.
            audit: Audit logger for aborts and errors.
        """
        self.policy = policy
        self.stages = list(stages)
        self.audit = audit

    def stages_for(self, hook: str) -> list[Stage]:
        """Stages implementing a hook, in order."""
        return [stage for stage in self.stages if callable(getattr(stage, hook, None))]

    def run_input(self, messages: list[Message], ctx: StageContext | None = None) -> PipelineResult:
        """
        Run the input stages on incoming user messages.

        Args:
            messages: Conversation so far, ending with the user message.
            ctx: Interaction context.

        Returns:
            Pipeline result.
        """
        ctx = ctx or StageContext()
        return self._run(HOOK_INPUT, messages, ctx, lambda stage, msgs: stage.on_input(msgs, ctx))

    def run_step(
        self,
        messages: list[Message],
        tool_calls: Iterable[ToolCall | dict[str, Any]],
        ctx: StageContext | None = None,
    ) -> PipelineResult:
        """
        Run the step stages on a batch of proposed tool calls.

        Approved calls are recorded in ``ctx.state`` for the audit summary.

        Args:
            messages: Conversation so far.
            tool_calls: Proposed calls (ToolCall or host descriptors).
            ctx: Interaction context.

        Returns:
            Pipeline result.
        """
        ctx = ctx or StageContext()
        calls = [c if isinstance(c, ToolCall) else ToolCall.from_dict(c) for c in tool_calls]
        result = self._run(HOOK_STEP, messages, ctx, lambda stage, msgs: stage.on_step(msgs, calls, ctx))
        if not result.aborted:
            ctx.state.setdefault(TOOL_CALLS_KEY, []).extend(calls)
        return result

    def run_result(self, messages: list[Message], ctx: StageContext | None = None) -> PipelineResult:
        """
        Run the result stages on the final response.

        Args:
            messages: Conversation ending with the assistant reply.
            ctx: Interaction context.

        Returns:
            Pipeline result with the reply as it should be delivered.
        """
        ctx = ctx or StageContext()
        return self._run(HOOK_RESULT, messages, ctx, lambda stage, msgs: stage.on_result(msgs, ctx))

    def _run(
        self,
        hook: str,
        messages: list[Message],
        ctx: StageContext,
        invoke: Callable[[Stage, list[Message]], StageResult],
    ) -> PipelineResult:
        current = messages
        for stage in self.stages_for(hook):
            try:
                outcome = invoke(stage, current)
            except Exception as e:
                logger.error(f"❌ Stage '{stage.name}' failed in {hook}: {e}")
                self._record_error(stage, current, e)
                raise

            if isinstance(outcome, Continue):
                current = outcome.messages
                continue

            abort = outcome
            if abort.retry and ctx.retries_exhausted:
                abort = Abort(abort.reason, retry=False, status=abort.status)
            logger.warning(
                f"🛑 {stage.name}.{hook} aborted "
                f"({'retry' if abort.retry else abort.status}, attempt {ctx.retry_count + 1}): {abort.reason}"
            )
            self._record_abort(stage, current, abort)
            return PipelineResult(messages=current, abort=abort, stage=stage.name)

        return PipelineResult(messages=current)

    def _record_abort(self, stage: Stage, messages: list[Message], abort: Abort) -> None:
        if self.audit is None:
            return
        record = self._record(stage, abort.status)
        record.check_result = "retry" if abort.retry else abort.status
        record.check_detail = abort.reason
        if self.policy.requirements.audit.log_level == AuditLevel.full:
            record.input_text = last_text(messages, "user")
        self.audit.log(record)

    def _record_error(self, stage: Stage, messages: list[Message], error: Exception) -> None:
        if self.audit is None:
            return
        record = self._record(stage, STATUS_ERROR)
        record.check_result = "error"
        record.error = json.dumps({"type": type(error).__name__, "message": str(error)})
        self.audit.log(record)

    def _record(self, stage: Stage, status: str) -> AuditRecord:
        return AuditRecord(
            policy_name=self.policy.name,
            policy_version=self.policy.version,
            status=status,
            check_name=stage.name,
        )
