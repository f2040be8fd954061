"""
Policy composition for multi-agent workflows.

Merges several policies into one effective policy that is at least as
restrictive as every input:

- Capabilities: intersection (only tools every policy allows)
- Prohibitions: union (anything any policy prohibits)
- Scope: intersection
- Limits: element-wise minimum
- Disclaimers: union, deduplicated by text
- Escalation triggers: union
- Audit: forced to full verbosity, longest retention
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from typing import TypeVar

from .schema import (
    LIMIT_FIELDS,
    AuditLevel,
    AuditPolicy,
    Capabilities,
    EscalationPolicy,
    Policy,
    PolicyLimits,
    PolicyMetadata,
    Prohibitions,
    Requirements,
    ScopePolicy,
    UnsupportedScopeBehavior,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _union(groups: Iterable[Iterable[T]]) -> tuple[T, ...]:
    """Ordered union, first occurrence wins."""
    return tuple(dict.fromkeys(item for group in groups for item in group))


def _intersection(groups: Sequence[Sequence[T]]) -> tuple[T, ...]:
    """Ordered intersection, following the first group's order."""
    rest = [set(group) for group in groups[1:]]
    return tuple(dict.fromkeys(item for item in groups[0] if all(item in s for s in rest)))


def compose_policies(policies: Sequence[Policy]) -> Policy:
    """
    Compose policies into a single most-restrictive policy.

    Args:
        policies: Policies to merge. The first one supplies the fields that
            have no reduction rule (citations, human review, data access).

    Returns:
        The composed policy, or the sole input itself when given one.

    Raises:
        ValueError: If no policies are given.
    """
    if not policies:
        raise ValueError("Cannot compose zero policies")
    if len(policies) == 1:
        return policies[0]

    base = policies[0]
    names = [p.name for p in policies]

    seen_disclaimers: set[str] = set()
    disclaimers = []
    for disclaimer in (d for p in policies for d in p.requirements.disclaimers):
        if disclaimer.text in seen_disclaimers:
            continue
        seen_disclaimers.add(disclaimer.text)
        disclaimers.append(disclaimer)

    limits = PolicyLimits(
        **{name: min(getattr(p.limits, name) for p in policies) for name in LIMIT_FIELDS}
    )

    composed = Policy(
        version=base.version,
        metadata=PolicyMetadata(
            name="composed-" + "-".join(names),
            description="Composed policy from: " + ", ".join(names),
            author="system",
            created=date.today().isoformat(),
            tags=_union(p.metadata.tags for p in policies),
            extensions=_union(p.metadata.extensions for p in policies),
        ),
        capabilities=Capabilities(
            tools=_intersection([p.capabilities.tools for p in policies]),
            data_access=base.capabilities.data_access,
            output_types=_union(p.capabilities.output_types for p in policies),
        ),
        prohibitions=Prohibitions(
            tools=_union(p.prohibitions.tools for p in policies),
            actions=_union(p.prohibitions.actions for p in policies),
            data=_union(p.prohibitions.data for p in policies),
        ),
        requirements=Requirements(
            disclaimers=tuple(disclaimers),
            citations=base.requirements.citations,
            human_review=base.requirements.human_review,
            audit=AuditPolicy(
                log_level=AuditLevel.full,
                include_llm_calls=True,
                include_tool_calls=True,
                retention_days=max(p.requirements.audit.retention_days for p in policies),
            ),
        ),
        scope=ScopePolicy(
            allowed=_intersection([p.scope.allowed for p in policies]),
            behavior_on_unsupported=UnsupportedScopeBehavior.escalate,
            escalation_message=base.scope.escalation_message,
        ),
        escalation=EscalationPolicy(
            triggers=tuple(t for p in policies for t in p.escalation.triggers),
        ),
        limits=limits,
    )

    logger.info(
        f"🧩 Composed {len(policies)} policies into '{composed.name}' "
        f"({len(composed.capabilities.tools)} tools, {len(composed.prohibitions.tools)} prohibitions)"
    )
    return composed
