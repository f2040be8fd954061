"""
Governed agent factory.

Turns a policy and an extension registry into everything a host runtime
needs to run a governed agent: the resolved tools, the system prompt and the
enforcement pipeline. Every configuration problem (inconsistent policy,
missing extension module, tool-id collision) is raised here, before the
first message is processed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from .audit import AuditLogger
from .config import PolicyGuardSettings, get_settings
from .exceptions import PolicyConsistencyError
from .extensions.base import ExtensionModule
from .extensions.keywords import KeywordRegistry
from .extensions.registry import ExtensionRegistry
from .pipeline import EnforcementPipeline, PipelineResult
from .policy.prompt import build_system_prompt
from .policy.resolver import resolve_tools
from .policy.schema import Policy
from .policy.validator import validate_policy
from .stages.audit import create_audit_stage
from .stages.base import Message, Stage, StageContext, ToolCall
from .stages.citation import create_citation_stage
from .stages.data_access import create_data_access_stage
from .stages.disclaimer import create_disclaimer_stage
from .stages.escalation import create_escalation_stage
from .stages.limits import SessionStore, create_limits_stage
from .stages.output_validator import create_output_validator_stage
from .stages.scope import create_scope_stage
from .stages.tool_gate import create_tool_gate_stage

logger = logging.getLogger(__name__)


def build_stages(
    policy: Policy,
    keywords: KeywordRegistry,
    extensions: list[ExtensionModule],
    audit: AuditLogger | None,
    session_store: SessionStore | None = None,
) -> list[Stage]:
    """
    Build the ordered stage list for a policy.

    Input hooks: limits, escalation, scope, extension input stages.
    Step hooks: tool gate, data access.
    Result hooks: limits, output validator, citation, disclaimer, extension
    output stages, audit.

    Args:
        policy: Governing policy.
        keywords: Vocabularies published by the extension modules.
        extensions: Modules the policy depends on.
        audit: Audit logger shared by the audited stages.
        session_store: Session store for the limits stage.

    Returns:
        Stages in pipeline order.
    """
    return [
        create_limits_stage(policy, session_store),
        create_escalation_stage(policy, keywords.merged_escalation_keywords()),
        create_scope_stage(policy, keywords.merged_scope_keywords()),
        *(factory(policy) for ext in extensions for factory in ext.input_stages),
        create_tool_gate_stage(policy, audit),
        create_data_access_stage(policy),
        create_output_validator_stage(policy, keywords.merged_action_patterns()),
        create_citation_stage(policy),
        create_disclaimer_stage(policy),
        *(factory(policy) for ext in extensions for factory in ext.output_stages),
        create_audit_stage(policy, audit),
    ]


@dataclass
class GovernedAgent:
    """
    A policy bound to its tools, prompt and enforcement pipeline.

    Attributes:
        policy: Governing policy.
        tools: Tools the model may see, keyed by identifier.
        system_prompt: Instructions for the model.
        pipeline: Enforcement pipeline.
        extensions: Extension modules in use.
        warnings: Non-fatal consistency findings.
    """

    policy: Policy
    tools: dict[str, Any]
    system_prompt: str
    pipeline: EnforcementPipeline
    extensions: list[ExtensionModule] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.policy.name

    def new_context(self, session_id: str = "default") -> StageContext:
        return StageContext(session_id=session_id)

    def check_input(self, messages: list[Message], ctx: StageContext) -> PipelineResult:
        return self.pipeline.run_input(messages, ctx)

    def check_tool_calls(
        self,
        messages: list[Message],
        tool_calls: list[ToolCall | dict[str, Any]],
        ctx: StageContext,
    ) -> PipelineResult:
        return self.pipeline.run_step(messages, tool_calls, ctx)

    def check_result(self, messages: list[Message], ctx: StageContext) -> PipelineResult:
        return self.pipeline.run_result(messages, ctx)


def create_governed_agent(
    policy: Policy,
    registry: ExtensionRegistry,
    *,
    description: str | None = None,
    audit: AuditLogger | None = None,
    session_store: SessionStore | None = None,
    settings: PolicyGuardSettings | None = None,
) -> GovernedAgent:
    """
    Build a governed agent for a policy.

    Args:
        policy: Parsed policy.
        registry: Registry holding the extension modules.
        description: Agent description for the prompt (defaults to the policy's).
        audit: Audit logger (defaults to one built from settings).
        session_store: Session store for the limits stage (defaults to the
            process-wide store).
        settings: Settings used when no audit logger is given.

    Returns:
        Governed agent.

    Raises:
        PolicyConsistencyError: If the policy has consistency errors.
        ExtensionNotRegisteredError: If a declared extension is missing.
        ToolCollisionError: If two extensions offer the same tool id.
    """
    result = validate_policy(policy)
    for warning in result.warnings:
        logger.warning(f"⚠️ Policy '{policy.name}': {warning}")
    if not result.valid:
        raise PolicyConsistencyError(policy.name, result.errors, result.warnings)

    extensions = registry.require(policy.metadata.extensions, policy.name)
    all_tools = registry.all_tools(extensions)
    tools = resolve_tools(all_tools, policy)

    keywords = KeywordRegistry()
    registry.setup_all(keywords, extensions)

    if audit is None:
        settings = settings or get_settings()
        audit = AuditLogger(settings.audit_database_url, strict=settings.audit_strict)

    stages = build_stages(policy, keywords, extensions, audit, session_store)
    pipeline = EnforcementPipeline(policy, stages, audit=audit)
    system_prompt = build_system_prompt(policy, description or policy.metadata.description, extensions)

    logger.info(
        f"🛡️ Governed agent '{policy.name}' ready: {len(tools)} tools, "
        f"{len(stages)} stages, extensions={[e.id for e in extensions]}"
    )
    return GovernedAgent(
        policy=policy,
        tools=tools,
        system_prompt=system_prompt,
        pipeline=pipeline,
        extensions=extensions,
        warnings=list(result.warnings),
    )
