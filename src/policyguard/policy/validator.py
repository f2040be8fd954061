"""
Policy consistency validator.

Structural validation (types, enums, required fields) happens in the parser.
This module checks semantics: configurations that would contradict
themselves or crash a stage are errors; risky-but-legal configurations are
warnings. Validation is pure and never mutates the policy.
"""

import re
from dataclasses import dataclass, field

from .resolver import ToolProhibitions
from .schema import (
    CONDITION_CONFIDENCE_BELOW,
    CONDITION_TOPIC_MATCH,
    DisclaimerTrigger,
    EscalationAction,
    Policy,
)


@dataclass
class ValidationResult:
    """
    Outcome of a consistency check.

    Attributes:
        valid: True when there are no errors.
        errors: Contradictions that make the policy undeployable.
        warnings: Non-blocking risk signals.
    """

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_policy(policy: Policy) -> ValidationResult:
    """
    Check a parsed policy for logical consistency.

    Args:
        policy: Parsed policy.

    Returns:
        Validation result with errors and warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []

    # Whitelist vs prohibitions
    prohibitions = ToolProhibitions.from_policy(policy)
    for tool in policy.capabilities.tools:
        if prohibitions.exact_match(tool):
            errors.append(
                f'Tool "{tool}" is listed in both capabilities.tools and prohibitions.tools. '
                f"It would be blocked at runtime."
            )
        wildcard = prohibitions.wildcard_match(tool)
        if wildcard:
            errors.append(
                f'Tool "{tool}" is listed in capabilities.tools but matches wildcard '
                f'prohibition "{wildcard}".'
            )

    # Tools must come from extension modules
    if not policy.metadata.extensions and policy.capabilities.tools:
        warnings.append(
            f"No extensions listed in metadata, but {len(policy.capabilities.tools)} tools are "
            f"declared in capabilities. Tools must be provided by registered extensions."
        )

    # Escalation triggers
    for index, trigger in enumerate(policy.escalation.triggers):
        where = f"escalation.triggers[{index}]"
        if trigger.condition == CONDITION_TOPIC_MATCH and not trigger.topics:
            errors.append(f'{where}: condition "topic_match" has no topics defined.')
        if trigger.condition == CONDITION_CONFIDENCE_BELOW and trigger.threshold is None:
            errors.append(f'{where}: condition "confidence_below" has no threshold defined.')
        if (
            trigger.action in (EscalationAction.refuse_and_redirect, EscalationAction.provide_resources)
            and not trigger.resources
        ):
            warnings.append(
                f'{where}: action "{trigger.action.value}" has no resources listed. '
                f"Consider adding resources for user guidance."
            )

    # Disclaimers
    for index, disclaimer in enumerate(policy.requirements.disclaimers):
        if disclaimer.trigger != DisclaimerTrigger.custom:
            continue
        where = f"requirements.disclaimers[{index}]"
        if not disclaimer.custom_pattern:
            errors.append(f'{where}: trigger "custom" must define a custom_pattern regex.')
            continue
        try:
            re.compile(disclaimer.custom_pattern)
        except re.error as e:
            errors.append(f"{where}: custom_pattern is not a valid regex ({e}).")

    # Limits
    limits = policy.limits
    if limits.max_tokens_per_turn > limits.token_budget_daily:
        warnings.append(
            f"max_tokens_per_turn ({limits.max_tokens_per_turn}) exceeds "
            f"token_budget_daily ({limits.token_budget_daily}). A single turn "
            f"could exhaust the daily budget."
        )

    # Scope
    if not policy.scope.allowed:
        warnings.append(
            "No allowed scopes defined. Every query naming a known scope will be treated as unsupported."
        )

    # Citations
    citations = policy.requirements.citations
    if citations.required and citations.min_per_claim == 0:
        warnings.append(
            "Citations are required but min_per_claim is 0. Consider setting it to at least 1."
        )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
