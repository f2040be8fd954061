"""
Extension module contract.

An extension module packages everything a domain contributes to a governed
agent: tools, extra enforcement stages, system prompt content and the
keyword/pattern vocabularies used by the core stages.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..policy.schema import Policy
from ..stages.base import StageFactory
from .keywords import KeywordRegistry


@dataclass(frozen=True)
class ToolSpec:
    """
    Opaque descriptor for a tool offered by an extension.

    The enforcement core only ever looks at ``id``; the host runtime owns
    the implementation behind it.
    """

    id: str
    description: str = ""
    handler: Callable[..., Any] | None = None


@dataclass
class ExtensionModule:
    """
    A pluggable domain module.

    Attributes:
        id: Unique identifier referenced by policies (e.g. "uk-law")
        name: Human-readable name
        description: What the module covers
        version: Module version
        tools: Tools offered, keyed by identifier
        input_stages: Stage factories run after the core input stages
        output_stages: Stage factories run after the core output stages
        prompt_fragment: System prompt text, or a function of the policy
        escalation_keywords: Topic -> keywords expansions
        scope_keywords: Scope id -> keywords
        action_patterns: Prohibited action label -> regex
        setup: Optional hook run once at boot with the keyword registry
    """

    id: str
    name: str
    description: str = ""
    version: str = "0.1.0"
    tools: dict[str, Any] = field(default_factory=dict)
    input_stages: list[StageFactory] = field(default_factory=list)
    output_stages: list[StageFactory] = field(default_factory=list)
    prompt_fragment: str | Callable[[Policy], str] = ""
    escalation_keywords: dict[str, list[str]] = field(default_factory=dict)
    scope_keywords: dict[str, list[str]] = field(default_factory=dict)
    action_patterns: dict[str, str] = field(default_factory=dict)
    setup: Callable[[KeywordRegistry], None] | None = None

    def render_prompt(self, policy: Policy) -> str:
        """
        Resolve the prompt fragment for a policy.

        Args:
            policy: Policy the agent runs under.

        Returns:
            Prompt text (may be empty).
        """
        if callable(self.prompt_fragment):
            return self.prompt_fragment(policy)
        return self.prompt_fragment
