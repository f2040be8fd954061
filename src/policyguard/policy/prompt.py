"""
System prompt builder.

Renders a policy into instructions for the model. This is an advisory
layer only: the enforcement stages hold regardless of what the model does
with these instructions.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .schema import Policy

if TYPE_CHECKING:
    from ..extensions.base import ExtensionModule

DISCLAIMER_PREVIEW_CHARS = 80


def _bullets(items: Sequence[str], empty: str = "- none") -> str:
    if not items:
        return empty
    return "\n".join(f"- {item}" for item in items)


def build_system_prompt(
    policy: Policy,
    description: str,
    extensions: Sequence["ExtensionModule"] = (),
) -> str:
    """
    Build the system prompt for a governed agent.

    Args:
        policy: Governing policy.
        description: What the agent is for.
        extensions: Extension modules whose prompt fragments are appended.

    Returns:
        Prompt text.
    """
    requirements = policy.requirements
    prohibited_actions = [a.replace("_", " ") for a in policy.prohibitions.actions]
    escalation_topics = [topic for t in policy.escalation.triggers if t.topics for topic in t.topics]

    requirement_lines: list[str] = []
    if requirements.citations.required:
        line = "- Every factual claim MUST include a citation to an authoritative source"
        if requirements.citations.allowed_sources:
            line += f" ({', '.join(requirements.citations.allowed_sources)})"
        requirement_lines.append(line)
        if requirements.citations.blocked_sources:
            requirement_lines.append(
                f"- Never rely on: {', '.join(requirements.citations.blocked_sources)}"
            )
    if requirements.human_review.required_before:
        requirement_lines.append(
            "- Request human review before: "
            + ", ".join(a.replace("_", " ") for a in requirements.human_review.required_before)
        )
    for disclaimer in requirements.disclaimers:
        preview = disclaimer.text
        if len(preview) > DISCLAIMER_PREVIEW_CHARS:
            preview = preview[:DISCLAIMER_PREVIEW_CHARS] + "..."
        requirement_lines.append(f"- Disclaimer ({disclaimer.trigger.value}): {preview}")

    sections = [
        f"You are an AI assistant: {description}",
        "## Operating Policy",
        "You operate under a strict policy. The runtime enforces every rule below: "
        "tool calls outside your policy will be blocked, and responses that break "
        "its requirements will be rejected. You should also govern yourself.",
        "### Capabilities\n"
        f"- Available tools: {', '.join(policy.capabilities.tools) or 'none'}\n"
        f"- You can produce: {', '.join(policy.capabilities.output_types) or 'text'}",
        "### Prohibitions: you MUST NOT\n" + _bullets(prohibited_actions),
        "### Scope\n"
        f"You have reliable data for: {', '.join(policy.scope.allowed) or 'none'}\n"
        f"For out-of-scope queries: {policy.scope.escalation_message}",
        "### Requirements\n" + ("\n".join(requirement_lines) or "- none"),
        "### Escalation\n"
        f"If the topic involves: {', '.join(escalation_topics) or 'N/A'}\n"
        "Decline and suggest the user consult a qualified professional.",
    ]

    fragments = [text for text in (ext.render_prompt(policy) for ext in extensions) if text]
    if fragments:
        sections.append("## Domain Knowledge\n\n" + "\n\n".join(fragments))

    return "\n\n".join(sections)
