"""
Enforcement stages.

Input hooks:  limits, escalation, scope
Step hooks:   tool gate, data access
Result hooks: limits, output validator, citation, disclaimer, audit
"""

from .audit import AuditStage, create_audit_stage
from .base import MAX_RETRIES, Abort, Continue, Stage, StageContext, StageResult, ToolCall
from .citation import CitationStage, create_citation_stage
from .data_access import DataAccessStage, create_data_access_stage
from .disclaimer import DisclaimerStage, create_disclaimer_stage
from .escalation import EscalationStage, create_escalation_stage
from .limits import InMemorySessionStore, LimitsStage, SessionStore, create_limits_stage
from .output_validator import OutputValidatorStage, create_output_validator_stage
from .scope import ScopeStage, create_scope_stage
from .tool_gate import ToolGateStage, create_tool_gate_stage

__all__ = [
    "MAX_RETRIES",
    "Abort",
    "AuditStage",
    "CitationStage",
    "Continue",
    "DataAccessStage",
    "DisclaimerStage",
    "EscalationStage",
    "InMemorySessionStore",
    "LimitsStage",
    "OutputValidatorStage",
    "ScopeStage",
    "SessionStore",
    "Stage",
    "StageContext",
    "StageResult",
    "ToolCall",
    "ToolGateStage",
    "create_audit_stage",
    "create_citation_stage",
    "create_data_access_stage",
    "create_disclaimer_stage",
    "create_escalation_stage",
    "create_limits_stage",
    "create_output_validator_stage",
    "create_scope_stage",
    "create_tool_gate_stage",
]
