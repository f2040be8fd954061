"""
Policy Parser

Loads YAML policy documents and converts them to typed, immutable
``Policy`` objects. Supports environment variable expansion using ${VAR} or
${VAR:-default} syntax.

The parser only performs structural validation. Callers run
``validate_policy`` on the result to check logical consistency.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..config import get_settings
from ..exceptions import PolicyParseError
from .schema import Policy

logger = logging.getLogger(__name__)

DOCUMENT_PATH = "<document>"

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(.*?))?\}")


@dataclass
class ParseReport:
    """
    Non-raising parse outcome.

    Attributes:
        success: Whether the document parsed.
        policy: Parsed policy when successful.
        errors: ``path: message`` strings when unsuccessful.
    """

    success: bool
    policy: Policy | None = None
    errors: list[str] = field(default_factory=list)


class PolicyParser:
    """
    YAML policy parser with environment variable expansion.

    Usage:
        parser = PolicyParser()
        policy = parser.from_file("policies/tenant-rights.policy.yaml")
    """

    def __init__(self, expand_env_vars: bool = True) -> None:
        """
        Initialize parser.

        Args:
            expand_env_vars: Expand ${VAR} placeholders before validation.
        """
        self.expand_env_vars = expand_env_vars

    def from_string(self, raw_text: str) -> Policy:
        """
        Parse a serialized policy document.

        Args:
            raw_text: YAML (or JSON) document text.

        Returns:
            Structurally valid policy.

        Raises:
            PolicyParseError: Listing every offending field path.
        """
        try:
            raw = yaml.safe_load(raw_text)
        except yaml.YAMLError as e:
            raise PolicyParseError([(DOCUMENT_PATH, f"invalid YAML: {e}")]) from e

        if not isinstance(raw, dict):
            raise PolicyParseError(
                [(DOCUMENT_PATH, f"expected a mapping, got {type(raw).__name__}")]
            )

        if self.expand_env_vars:
            raw = self._expand_env_vars(raw)

        try:
            policy = Policy.model_validate(raw)
        except ValidationError as e:
            raise PolicyParseError(self._issues_from(e)) from e

        logger.info(f"📜 Parsed policy '{policy.name}' (version {policy.version})")
        return policy

    def from_file(self, path: str | Path) -> Policy:
        """
        Parse a policy document from disk.

        Args:
            path: Path to the YAML file.

        Returns:
            Structurally valid policy.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            PolicyParseError: If the document is invalid.
        """
        policy_path = Path(path)
        if not policy_path.exists():
            raise FileNotFoundError(f"Policy file not found: {policy_path}")

        with open(policy_path, "r", encoding="utf-8") as f:
            return self.from_string(f.read())

    def check_file(self, path: str | Path) -> ParseReport:
        """
        Parse a policy file without raising.

        Args:
            path: Path to the YAML file.

        Returns:
            Parse report with the policy or the error list.
        """
        try:
            return ParseReport(success=True, policy=self.from_file(path))
        except PolicyParseError as e:
            return ParseReport(success=False, errors=e.format_issues())
        except OSError as e:
            return ParseReport(success=False, errors=[str(e)])

    def _expand_env_vars(self, config: Any) -> Any:
        """
        Recursively expand ${ENV_VAR} and ${ENV_VAR:-default} placeholders.

        Args:
            config: Document value (can be dict, list, str, etc.)

        Returns:
            Value with environment variables expanded
        """

        def replacer(match: re.Match[str]) -> str:
            return os.getenv(match.group(1), match.group(2) or "")

        if isinstance(config, str):
            return _ENV_PATTERN.sub(replacer, config)
        if isinstance(config, dict):
            return {k: self._expand_env_vars(v) for k, v in config.items()}
        if isinstance(config, list):
            return [self._expand_env_vars(v) for v in config]
        return config

    @staticmethod
    def _issues_from(error: ValidationError) -> list[tuple[str, str]]:
        issues = []
        for item in error.errors():
            path = ".".join(str(part) for part in item["loc"]) or DOCUMENT_PATH
            issues.append((path, item["msg"]))
        return issues


def load_policy(path: str | Path, expand_env_vars: bool | None = None) -> Policy:
    """
    Parse a policy file with a default parser.

    Args:
        path: Path to the YAML file.
        expand_env_vars: Expand ${VAR} placeholders (defaults to settings).

    Returns:
        Structurally valid policy.
    """
    if expand_env_vars is None:
        expand_env_vars = get_settings().expand_env_vars
    return PolicyParser(expand_env_vars=expand_env_vars).from_file(path)
