"""Unit tests for the limits stage and session store."""

import json
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from policyguard.policy.schema import Policy
from policyguard.stages.base import Abort, Continue, StageContext
from policyguard.stages.limits import (
    MSG_DAILY_BUDGET,
    MSG_TIMEOUT,
    MSG_TOO_MANY_SESSIONS,
    TRUNCATION_MARKER,
    InMemorySessionStore,
    create_limits_stage,
    estimate_tokens,
)


def user(text: str) -> dict[str, Any]:
    return {"role": "user", "content": text}


def assistant(text: str) -> dict[str, Any]:
    return {"role": "assistant", "content": text}


class TestInMemorySessionStore:
    """Tests for InMemorySessionStore."""

    def test_increment_opens_session(self, store: InMemorySessionStore, clock) -> None:
        """Test the first turn creates a counter stamped with the clock."""
        counter = store.increment_turn("a")

        assert counter is not None
        assert counter.turns == 1
        assert counter.started_at == clock()
        assert store.active_count() == 1

    def test_increment_respects_capacity(self, store: InMemorySessionStore) -> None:
        """Test new sessions are refused at capacity but existing ones continue."""
        store.increment_turn("a", max_active=1)

        assert store.increment_turn("b", max_active=1) is None
        assert store.increment_turn("a", max_active=1).turns == 2

    def test_evict(self, store: InMemorySessionStore) -> None:
        """Test eviction forgets the session."""
        store.increment_turn("a")
        store.evict("a")

        assert store.get("a") is None
        assert store.active_count() == 0

    def test_daily_tokens_roll_over(self, store: InMemorySessionStore, clock) -> None:
        """Test the daily counter resets on a new calendar day."""
        store.add_daily_tokens(100)
        assert store.daily_tokens() == 100

        clock.advance(days=1)

        assert store.daily_tokens() == 0
        assert store.add_daily_tokens(5) == 5

    def test_reset(self, store: InMemorySessionStore) -> None:
        """Test reset clears sessions and tokens."""
        store.increment_turn("a")
        store.add_daily_tokens(10)

        store.reset()

        assert store.active_count() == 0
        assert store.daily_tokens() == 0

    def test_concurrent_turns(self, store: InMemorySessionStore) -> None:
        """Test concurrent increments are not lost."""
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: store.increment_turn("shared"), range(200)))

        assert store.get("shared").turns == 200


class TestLimitsInput:
    """Tests for LimitsStage.on_input."""

    def test_allows_within_limits(self, policy: Policy, store: InMemorySessionStore) -> None:
        """Test a fresh session passes."""
        stage = create_limits_stage(policy, store)
        messages = [user("hello")]

        result = stage.on_input(messages, StageContext(session_id="a"))

        assert isinstance(result, Continue)
        assert result.messages is messages

    def test_turn_boundary(self, make_policy: Callable[..., Policy], store: InMemorySessionStore) -> None:
        """Test turns 1..N pass and turn N+1 aborts and evicts."""
        stage = create_limits_stage(make_policy({"limits.max_turns_per_session": 3}), store)
        ctx = StageContext(session_id="a")

        for _ in range(3):
            assert isinstance(stage.on_input([user("hi")], ctx), Continue)

        result = stage.on_input([user("hi")], ctx)

        assert isinstance(result, Abort)
        assert result.retry is False
        assert result.reason == "Session limit reached (3 turns). Please start a new conversation."
        assert store.get("a") is None

    def test_evicted_session_starts_over(
        self, make_policy: Callable[..., Policy], store: InMemorySessionStore
    ) -> None:
        """Test a session closed by its turn limit restarts from turn 1."""
        stage = create_limits_stage(make_policy({"limits.max_turns_per_session": 1}), store)
        ctx = StageContext(session_id="a")

        stage.on_input([user("1")], ctx)
        assert isinstance(stage.on_input([user("2")], ctx), Abort)
        assert isinstance(stage.on_input([user("3")], ctx), Continue)

    def test_concurrent_session_cap(self, policy: Policy, store: InMemorySessionStore) -> None:
        """Test a new session beyond the cap is refused."""
        stage = create_limits_stage(policy, store)
        stage.on_input([user("hi")], StageContext(session_id="a"))
        stage.on_input([user("hi")], StageContext(session_id="b"))

        result = stage.on_input([user("hi")], StageContext(session_id="c"))

        assert isinstance(result, Abort)
        assert result.reason == MSG_TOO_MANY_SESSIONS
        assert isinstance(stage.on_input([user("again")], StageContext(session_id="a")), Continue)

    def test_timeout(self, policy: Policy, store: InMemorySessionStore, clock) -> None:
        """Test a session older than the timeout aborts and is evicted."""
        stage = create_limits_stage(policy, store)
        ctx = StageContext(session_id="a")
        stage.on_input([user("hi")], ctx)

        clock.advance(seconds=601)
        result = stage.on_input([user("still there?")], ctx)

        assert isinstance(result, Abort)
        assert result.reason == MSG_TIMEOUT
        assert store.get("a") is None

    def test_daily_budget_exhausted(self, policy: Policy, store: InMemorySessionStore) -> None:
        """Test input is refused once the daily budget is spent."""
        stage = create_limits_stage(policy, store)
        store.add_daily_tokens(10000)

        result = stage.on_input([user("hi")], StageContext(session_id="a"))

        assert isinstance(result, Abort)
        assert result.reason == MSG_DAILY_BUDGET

    def test_daily_budget_resets_next_day(self, policy: Policy, store: InMemorySessionStore, clock) -> None:
        """Test the budget is available again after midnight."""
        stage = create_limits_stage(policy, store)
        store.add_daily_tokens(10000)
        clock.advance(days=1)

        assert isinstance(stage.on_input([user("hi")], StageContext(session_id="a")), Continue)


class TestLimitsResult:
    """Tests for LimitsStage.on_result."""

    def test_estimate_tokens(self) -> None:
        """Test the four-characters-per-token estimate rounds up."""
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_short_response_accumulates(self, policy: Policy, store: InMemorySessionStore, ctx) -> None:
        """Test responses within the cap count toward the daily budget."""
        stage = create_limits_stage(policy, store)
        messages = [user("q"), assistant("a" * 400)]

        result = stage.on_result(messages, ctx)

        assert isinstance(result, Continue)
        assert result.messages is messages
        assert store.daily_tokens() == 100

    def test_truncation(self, make_policy: Callable[..., Policy], store: InMemorySessionStore, ctx) -> None:
        """Test an over-long response is cut to cap*4 characters plus the marker."""
        stage = create_limits_stage(make_policy({"limits.max_tokens_per_turn": 10}), store)
        messages = [user("q"), assistant("x" * 100)]

        result = stage.on_result(messages, ctx)

        assert isinstance(result, Continue)
        text = result.messages[-1]["content"]
        assert text == "x" * 40 + TRUNCATION_MARKER
        assert text.startswith("x" * 40)
        assert messages[-1]["content"] == "x" * 100
        assert store.daily_tokens() == 0

    def test_exact_cap_is_not_truncated(
        self, make_policy: Callable[..., Policy], store: InMemorySessionStore, ctx
    ) -> None:
        """Test a response exactly at the cap passes untouched."""
        stage = create_limits_stage(make_policy({"limits.max_tokens_per_turn": 10}), store)
        messages = [user("q"), assistant("x" * 40)]

        assert stage.on_result(messages, ctx).messages[-1]["content"] == "x" * 40

    def test_structured_response_accumulates(self, policy: Policy, store: InMemorySessionStore, ctx) -> None:
        """Test list content counts toward the daily budget as its JSON text."""
        stage = create_limits_stage(policy, store)
        parts = [{"type": "text", "text": "a" * 200}, {"type": "text", "text": "b" * 200}]
        messages = [user("q"), {"role": "assistant", "content": parts}]

        result = stage.on_result(messages, ctx)

        assert result.messages is messages
        assert store.daily_tokens() == estimate_tokens(json.dumps(parts))
        assert store.daily_tokens() > 100

    def test_structured_response_truncated(
        self, make_policy: Callable[..., Policy], store: InMemorySessionStore, ctx
    ) -> None:
        """Test an over-long structured response is cut like text."""
        stage = create_limits_stage(make_policy({"limits.max_tokens_per_turn": 10}), store)
        payload = {"answer": "x" * 100}

        result = stage.on_result([user("q"), {"role": "assistant", "content": payload}], ctx)

        assert result.messages[-1]["content"] == json.dumps(payload)[:40] + TRUNCATION_MARKER

    def test_no_assistant_message(self, policy: Policy, store: InMemorySessionStore, ctx) -> None:
        """Test a conversation without a reply passes through."""
        stage = create_limits_stage(policy, store)

        assert isinstance(stage.on_result([user("q")], ctx), Continue)
