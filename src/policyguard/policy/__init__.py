"""
Policy documents: schema, parsing, consistency checks, tool resolution,
composition and system prompt rendering.
"""

from .composer import compose_policies
from .parser import ParseReport, PolicyParser, load_policy
from .prompt import build_system_prompt
from .resolver import ToolProhibitions, resolve_tool_ids, resolve_tools
from .schema import Policy
from .validator import ValidationResult, validate_policy

__all__ = [
    "ParseReport",
    "Policy",
    "PolicyParser",
    "ToolProhibitions",
    "ValidationResult",
    "build_system_prompt",
    "compose_policies",
    "load_policy",
    "resolve_tool_ids",
    "resolve_tools",
    "validate_policy",
]
