"""
policyguard - Deterministic Policy Enforcement for Conversational Agents

This package wraps a non-deterministic agent with:
- A declarative, validated policy document (YAML)
- A tool resolver applying whitelist and prohibition rules
- A nine-stage enforcement pipeline (input, step, result hooks)
- Policy composition for multi-agent workflows
- An append-only SQL audit trail

The agent runtime itself (generation, tool execution) is provided by the host.
"""

__version__ = "0.1.0"

from .audit import AuditLogger
from .exceptions import (
    AuditWriteError,
    ExtensionNotRegisteredError,
    PolicyConsistencyError,
    PolicyGuardError,
    PolicyParseError,
    ToolCollisionError,
)
from .extensions import ExtensionModule, ExtensionRegistry, uk_law_extension
from .factory import GovernedAgent, create_governed_agent
from .pipeline import EnforcementPipeline, PipelineResult
from .policy import PolicyParser, compose_policies, load_policy, resolve_tools, validate_policy

__all__ = [
    "AuditLogger",
    "AuditWriteError",
    "EnforcementPipeline",
    "ExtensionModule",
    "ExtensionNotRegisteredError",
    "ExtensionRegistry",
    "GovernedAgent",
    "PipelineResult",
    "PolicyConsistencyError",
    "PolicyGuardError",
    "PolicyParseError",
    "PolicyParser",
    "ToolCollisionError",
    "compose_policies",
    "create_governed_agent",
    "load_policy",
    "resolve_tools",
    "uk_law_extension",
    "validate_policy",
]
