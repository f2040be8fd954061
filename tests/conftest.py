"""
Pytest configuration and fixtures for policyguard tests.
"""

import copy
from collections.abc import Callable, Generator
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import yaml

from policyguard.audit import AuditLogger
from policyguard.config import reset_settings
from policyguard.policy.schema import Policy
from policyguard.stages.base import StageContext
from policyguard.stages.limits import InMemorySessionStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"
POLICY_FILE = FIXTURES_DIR / "tenant-rights.policy.yaml"

# In-memory SQLite for tests
TEST_AUDIT_URL = "sqlite:///:memory:"


class FakeClock:
    """Controllable clock for session timing tests."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def set_path(data: dict[str, Any], dotted: str, value: Any) -> None:
    """Set a nested key addressed as "section.field"."""
    *parents, last = dotted.split(".")
    target = data
    for key in parents:
        target = target[key]
    target[last] = value


@pytest.fixture
def policy_data() -> dict[str, Any]:
    """Raw tenant-rights policy document as a dict."""
    with open(POLICY_FILE, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def make_policy(policy_data: dict[str, Any]) -> Callable[..., Policy]:
    """
    Build policies from the tenant-rights document with overrides.

    Usage:
        policy = make_policy({"limits.max_turns_per_session": 2})
    """

    def factory(overrides: dict[str, Any] | None = None) -> Policy:
        data = copy.deepcopy(policy_data)
        for path, value in (overrides or {}).items():
            set_path(data, path, value)
        return Policy.model_validate(data)

    return factory


@pytest.fixture
def policy(make_policy: Callable[..., Policy]) -> Policy:
    """The tenant-rights policy, unmodified."""
    return make_policy()


@pytest.fixture
def audit() -> Generator[AuditLogger, None, None]:
    """Audit logger backed by in-memory SQLite."""
    logger = AuditLogger(TEST_AUDIT_URL)
    yield logger
    logger.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 15, 10, 0, 0))


@pytest.fixture
def store(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def ctx() -> StageContext:
    return StageContext(session_id="session-1")


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Clear cached settings around every test."""
    reset_settings()
    yield
    reset_settings()
