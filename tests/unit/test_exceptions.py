"""Unit tests for policyguard exceptions."""

from policyguard.exceptions import (
    AuditWriteError,
    ExtensionNotRegisteredError,
    PolicyConsistencyError,
    PolicyGuardError,
    PolicyParseError,
    ToolCollisionError,
)


class TestPolicyGuardError:
    """Tests for PolicyGuardError base class."""

    def test_init_with_message(self) -> None:
        """Test initialization with message."""
        error = PolicyGuardError("test error")
        assert error.message == "test error"
        assert error.retryable is False
        assert str(error) == "test error"

    def test_init_with_retryable(self) -> None:
        """Test initialization with retryable flag."""
        error = PolicyGuardError("test error", retryable=True)
        assert error.retryable is True

    def test_subclasses(self) -> None:
        """Test every domain error shares the base class."""
        for cls in (
            PolicyParseError,
            PolicyConsistencyError,
            ExtensionNotRegisteredError,
            ToolCollisionError,
            AuditWriteError,
        ):
            assert issubclass(cls, PolicyGuardError)


class TestPolicyParseError:
    """Tests for PolicyParseError."""

    def test_lists_every_issue(self) -> None:
        """Test the message counts and lists each issue."""
        error = PolicyParseError([("metadata.name", "Field required"), ("limits", "Field required")])

        assert str(error).startswith("Invalid policy document (2 issue(s)):")
        assert "  - metadata.name: Field required" in str(error)
        assert error.format_issues() == ["metadata.name: Field required", "limits: Field required"]
        assert error.retryable is False


class TestPolicyConsistencyError:
    """Tests for PolicyConsistencyError."""

    def test_message(self) -> None:
        """Test errors are joined into the message and warnings kept."""
        error = PolicyConsistencyError("tenant-rights", ["first", "second"], ["careful"])

        assert str(error) == "Policy 'tenant-rights' is inconsistent: first; second"
        assert error.warnings == ["careful"]

    def test_warnings_default(self) -> None:
        """Test warnings default to an empty list."""
        assert PolicyConsistencyError("p", ["e"]).warnings == []


class TestExtensionNotRegisteredError:
    """Tests for ExtensionNotRegisteredError."""

    def test_with_policy(self) -> None:
        """Test the message names the policy when known."""
        error = ExtensionNotRegisteredError("uk-law", "tenant-rights")

        assert str(error) == "Policy 'tenant-rights' requires extension 'uk-law' but it is not registered"

    def test_without_policy(self) -> None:
        """Test the message without a policy name."""
        assert str(ExtensionNotRegisteredError("uk-law")).startswith("Policy requires extension 'uk-law'")


class TestToolCollisionError:
    """Tests for ToolCollisionError."""

    def test_message(self) -> None:
        """Test both owners are named."""
        error = ToolCollisionError("search", "uk-law", "web")

        assert str(error) == "Tool ID collision: 'search' is provided by both 'uk-law' and 'web'"


class TestAuditWriteError:
    """Tests for AuditWriteError."""

    def test_retryable(self) -> None:
        """Test audit write failures are retryable."""
        error = AuditWriteError("disk full")

        assert error.retryable is True
        assert error.message == "disk full"
