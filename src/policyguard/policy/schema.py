"""
Policy Document Schema

Defines the complete shape of a policy document using Pydantic models.
Documents are loaded from YAML by ``PolicyParser`` and are immutable once
parsed: every model is frozen and collections are held as tuples.

Structural validation only. Cross-field consistency (e.g. a tool that is
both whitelisted and prohibited) is checked by ``validate_policy``.
"""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class PolicyModel(BaseModel):
    """Base class for all policy document models."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class Permission(str, Enum):
    read = "read"
    write = "write"


class DisclaimerTrigger(str, Enum):
    always = "always"
    on_document_generation = "on_document_generation"
    on_legal_claim = "on_legal_claim"
    on_claim = "on_claim"
    custom = "custom"


class Placement(str, Enum):
    start = "start"
    end = "end"
    both = "both"


class CitationFormat(str, Enum):
    inline = "inline"
    footnote = "footnote"
    end = "end"


class AuditLevel(str, Enum):
    """Audit verbosity, ordered from most to least verbose."""

    full = "full"
    actions_only = "actions_only"
    errors_only = "errors_only"


class EscalationAction(str, Enum):
    warn_user = "warn_user"
    refuse_and_redirect = "refuse_and_redirect"
    provide_resources = "provide_resources"
    disclose_and_defer = "disclose_and_defer"
    refuse = "refuse"

    @property
    def refuses(self) -> bool:
        """Whether this action ends the interaction."""
        return self in (EscalationAction.refuse, EscalationAction.refuse_and_redirect)


class UnsupportedScopeBehavior(str, Enum):
    escalate = "escalate"
    refuse = "refuse"
    warn_and_attempt = "warn_and_attempt"


# Well-known escalation trigger conditions
CONDITION_TOPIC_MATCH = "topic_match"
CONDITION_DISTRESS = "user_distress_detected"
CONDITION_CONFIDENCE_BELOW = "confidence_below"


class PolicyMetadata(PolicyModel):
    """
    Identity of a policy.

    Attributes:
        name: Unique policy name (used in audit entries)
        description: Human-readable summary
        author: Policy author
        created: Creation date (free-form, usually ISO date)
        tags: Free-text tags
        extensions: IDs of extension modules the policy depends on
    """

    name: str
    description: str
    author: str
    created: str
    tags: tuple[str, ...]
    # skill_packs is the legacy wire name
    extensions: tuple[str, ...] = Field((), validation_alias=AliasChoices("extensions", "skill_packs"))

    @field_validator("created", mode="before")
    @classmethod
    def stringify_created(cls, v: Any) -> Any:
        # YAML parses unquoted ISO dates into date objects
        if isinstance(v, date):
            return v.isoformat()
        return v


class DataAccessRule(PolicyModel):
    """Access rule for one data scope."""

    scope: str
    permissions: tuple[Permission, ...]
    file_types: tuple[str, ...] | None = None
    databases: tuple[str, ...] | None = None


class Capabilities(PolicyModel):
    tools: tuple[str, ...] = Field(..., description="Whitelisted tool identifiers")
    data_access: tuple[DataAccessRule, ...]
    output_types: tuple[str, ...]


class Prohibitions(PolicyModel):
    tools: tuple[str, ...] = Field(
        ..., description="Banned tool identifiers, exact or trailing-wildcard ('email-*')"
    )
    actions: tuple[str, ...] = Field(
        ..., description="Banned action labels, matched via registered patterns"
    )
    data: tuple[str, ...] = Field(..., description="Banned data category labels")


class DisclaimerRule(PolicyModel):
    trigger: DisclaimerTrigger
    text: str
    placement: Placement
    custom_pattern: str | None = None


class CitationPolicy(PolicyModel):
    required: bool
    format: CitationFormat
    min_per_claim: int = Field(..., ge=0)
    allowed_sources: tuple[str, ...]
    blocked_sources: tuple[str, ...]


class HumanReviewPolicy(PolicyModel):
    required_before: tuple[str, ...] = Field(
        ..., description="Trigger action labels that require human review"
    )
    review_prompt: str


class AuditPolicy(PolicyModel):
    log_level: AuditLevel
    include_llm_calls: bool
    include_tool_calls: bool
    retention_days: int = Field(..., ge=1)


class Requirements(PolicyModel):
    disclaimers: tuple[DisclaimerRule, ...]
    citations: CitationPolicy
    human_review: HumanReviewPolicy
    audit: AuditPolicy


class ScopePolicy(PolicyModel):
    allowed: tuple[str, ...]
    behavior_on_unsupported: UnsupportedScopeBehavior
    escalation_message: str


class EscalationTrigger(PolicyModel):
    """
    Condition that diverts a conversation away from the agent.

    Attributes:
        condition: Trigger condition (topic_match, user_distress_detected, ...)
        threshold: Numeric threshold for confidence-based conditions
        topics: Topic labels for topic_match conditions
        action: What to do when the trigger fires
        message: User-facing message
        resources: Optional resource lines appended to the message
    """

    condition: str
    threshold: float | None = None
    topics: tuple[str, ...] | None = None
    action: EscalationAction
    message: str
    resources: tuple[str, ...] | None = None

    def render_message(self) -> str:
        """
        Build the user-facing message with any resources appended.

        Returns:
            Message text.
        """
        if self.resources:
            return self.message + "\n\n" + "\n".join(self.resources)
        return self.message


class EscalationPolicy(PolicyModel):
    triggers: tuple[EscalationTrigger, ...]


class PolicyLimits(PolicyModel):
    max_tokens_per_turn: int = Field(..., ge=1)
    max_tool_calls_per_turn: int = Field(..., ge=1)
    max_turns_per_session: int = Field(..., ge=1)
    max_concurrent_sessions: int = Field(..., ge=1)
    token_budget_daily: int = Field(..., ge=1)
    timeout_seconds: int = Field(..., ge=1)


LIMIT_FIELDS: tuple[str, ...] = tuple(PolicyLimits.model_fields)


class Policy(PolicyModel):
    """
    Root policy document.

    This is the top-level object loaded from YAML. It declares what an agent
    may do (capabilities), must never do (prohibitions), must always do
    (requirements), where it operates (scope), when it hands off
    (escalation) and how much it may consume (limits).
    """

    version: str
    metadata: PolicyMetadata
    capabilities: Capabilities
    prohibitions: Prohibitions
    requirements: Requirements
    scope: ScopePolicy
    escalation: EscalationPolicy
    limits: PolicyLimits

    @field_validator("version", mode="before")
    @classmethod
    def stringify_version(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @property
    def name(self) -> str:
        """Policy name from metadata."""
        return self.metadata.name
