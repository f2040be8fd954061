"""
policyguard domain exceptions.

Configuration and persistence failures raised by the enforcement runtime.
Policy-driven terminations of an interaction are not exceptions: stages
return an ``Abort`` result instead (see ``policyguard.stages.base``).
"""


class PolicyGuardError(Exception):
    """Base exception for policyguard errors."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        """
        Initialize policyguard error.

        Args:
            message: Error message.
            retryable: Whether the operation can be retried.
        """
        self.message = message
        self.retryable = retryable
        super().__init__(message)


class PolicyParseError(PolicyGuardError):
    """Policy document is malformed or structurally incomplete."""

    def __init__(self, issues: list[tuple[str, str]]) -> None:
        """
        Initialize parse error.

        Args:
            issues: Every offending (field path, message) pair.
        """
        self.issues = issues
        lines = "\n".join(f"  - {path}: {msg}" for path, msg in issues)
        super().__init__(
            f"Invalid policy document ({len(issues)} issue(s)):\n{lines}",
            retryable=False,
        )

    def format_issues(self) -> list[str]:
        """
        Render issues as ``path: message`` strings.

        Returns:
            One string per issue.
        """
        return [f"{path}: {msg}" for path, msg in self.issues]


class PolicyConsistencyError(PolicyGuardError):
    """Policy document is structurally valid but logically contradictory."""

    def __init__(
        self,
        policy_name: str,
        errors: list[str],
        warnings: list[str] | None = None,
    ) -> None:
        """
        Initialize consistency error.

        Args:
            policy_name: Name of the offending policy.
            errors: Consistency errors reported by the validator.
            warnings: Non-fatal warnings reported alongside.
        """
        self.policy_name = policy_name
        self.errors = errors
        self.warnings = warnings or []
        super().__init__(
            f"Policy '{policy_name}' is inconsistent: " + "; ".join(errors),
            retryable=False,
        )


class ExtensionNotRegisteredError(PolicyGuardError):
    """A policy requires an extension module that is not registered."""

    def __init__(self, extension_id: str, policy_name: str | None = None) -> None:
        """
        Initialize missing extension error.

        Args:
            extension_id: ID of the missing extension module.
            policy_name: Name of the policy that requires it.
        """
        self.extension_id = extension_id
        self.policy_name = policy_name
        owner = f"Policy '{policy_name}'" if policy_name else "Policy"
        super().__init__(
            f"{owner} requires extension '{extension_id}' but it is not registered",
            retryable=False,
        )


class ToolCollisionError(PolicyGuardError):
    """Two extension modules offer a tool under the same identifier."""

    def __init__(self, tool_id: str, first: str, second: str) -> None:
        """
        Initialize tool collision error.

        Args:
            tool_id: Colliding tool identifier.
            first: Extension that registered the tool first.
            second: Extension that tried to register it again.
        """
        self.tool_id = tool_id
        self.first = first
        self.second = second
        super().__init__(
            f"Tool ID collision: '{tool_id}' is provided by both '{first}' and '{second}'",
            retryable=False,
        )


class AuditWriteError(PolicyGuardError):
    """Failed to persist an audit entry."""

    def __init__(self, message: str) -> None:
        """
        Initialize audit write error.

        Args:
            message: Error message.
        """
        super().__init__(message, retryable=True)
