"""
Limits stage.

Per-session turn and wall-clock caps, a cap on concurrently active sessions,
a process-wide daily token budget and a per-turn output cap. Counters live in
a ``SessionStore`` so hosts can swap the in-memory default for shared storage.
"""

import logging
import math
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from ..policy.schema import Policy
from .base import Abort, Continue, Message, Stage, StageContext, StageResult, content_text, find_last, replace_content

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

TRUNCATION_MARKER = "\n\n---\n_[Response truncated: exceeded maximum length for this policy]_"

MSG_TOO_MANY_SESSIONS = "Maximum concurrent sessions reached. Please try again later."
MSG_TURN_LIMIT = "Session limit reached ({turns} turns). Please start a new conversation."
MSG_TIMEOUT = "Session has timed out. Please start a new conversation."
MSG_DAILY_BUDGET = "Daily token budget has been exhausted. Service will resume tomorrow."


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass
class SessionCounter:
    """
    Bookkeeping for one session.

    Attributes:
        turns: Turns taken so far.
        started_at: Time of the first turn.
    """

    turns: int = 0
    started_at: datetime = field(default_factory=datetime.now)


class SessionStore(ABC):
    """Storage for session counters and the daily token counter."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as seen by the store."""

    @abstractmethod
    def get(self, session_id: str) -> SessionCounter | None:
        """Counter for a session, or None when the session is not active."""

    @abstractmethod
    def increment_turn(self, session_id: str, max_active: int | None = None) -> SessionCounter | None:
        """
        Count one more turn, opening the session if needed.

        Args:
            session_id: Session identifier.
            max_active: Refuse to open a new session when this many are active.

        Returns:
            Updated counter, or None when a new session was refused.
        """

    @abstractmethod
    def evict(self, session_id: str) -> None:
        """Forget a session."""

    @abstractmethod
    def reset(self) -> None:
        """Forget every session and the daily counter."""

    @abstractmethod
    def active_count(self) -> int:
        """Number of active sessions."""

    @abstractmethod
    def daily_tokens(self) -> int:
        """Tokens consumed today."""

    @abstractmethod
    def add_daily_tokens(self, tokens: int) -> int:
        """
        Add to today's token counter.

        Returns:
            New total for today.
        """


class InMemorySessionStore(SessionStore):
    """
    Process-local session store.

    Thread-safe for concurrent sessions. The daily counter resets lazily the
    first time it is touched on a new local calendar day.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        """
        Initialize store.

        Args:
            clock: Returns the current local time.
        """
        self._clock = clock
        self._sessions: dict[str, SessionCounter] = {}
        self._daily_tokens = 0
        self._day: date = clock().date()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    def get(self, session_id: str) -> SessionCounter | None:
        with self._lock:
            return self._sessions.get(session_id)

    def increment_turn(self, session_id: str, max_active: int | None = None) -> SessionCounter | None:
        with self._lock:
            counter = self._sessions.get(session_id)
            if counter is None:
                if max_active is not None and len(self._sessions) >= max_active:
                    return None
                counter = SessionCounter(started_at=self._clock())
                self._sessions[session_id] = counter
            counter.turns += 1
            return counter

    def evict(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._daily_tokens = 0
            self._day = self._clock().date()

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def daily_tokens(self) -> int:
        with self._lock:
            self._roll_day()
            return self._daily_tokens

    def add_daily_tokens(self, tokens: int) -> int:
        with self._lock:
            self._roll_day()
            self._daily_tokens += tokens
            return self._daily_tokens

    def _roll_day(self) -> None:
        # Caller holds the lock
        today = self._clock().date()
        if today != self._day:
            logger.info(f"🌅 New day {today.isoformat()}, daily token counter reset")
            self._day = today
            self._daily_tokens = 0


_default_store: SessionStore | None = None


def default_session_store() -> SessionStore:
    """
    Get the process-wide session store.

    Returns:
        Shared InMemorySessionStore instance.
    """
    global _default_store
    if _default_store is None:
        _default_store = InMemorySessionStore()
    return _default_store


class LimitsStage(Stage):
    """Session, daily-budget and output-length enforcement."""

    name = "limits"

    def __init__(self, policy: Policy, store: SessionStore) -> None:
        self.policy = policy
        self.limits = policy.limits
        self.store = store

    def on_input(self, messages: list[Message], ctx: StageContext) -> StageResult:
        session_id = ctx.session_id
        counter = self.store.increment_turn(session_id, max_active=self.limits.max_concurrent_sessions)
        if counter is None:
            logger.warning(
                f"🚫 Session '{session_id}' refused: "
                f"{self.limits.max_concurrent_sessions} sessions already active"
            )
            return Abort(MSG_TOO_MANY_SESSIONS)

        if counter.turns > self.limits.max_turns_per_session:
            self.store.evict(session_id)
            logger.warning(f"🚫 Session '{session_id}' exceeded {self.limits.max_turns_per_session} turns")
            return Abort(MSG_TURN_LIMIT.format(turns=self.limits.max_turns_per_session))

        elapsed = (self.store.now() - counter.started_at).total_seconds()
        if elapsed > self.limits.timeout_seconds:
            self.store.evict(session_id)
            logger.warning(f"⏰ Session '{session_id}' timed out after {elapsed:.0f}s")
            return Abort(MSG_TIMEOUT)

        if self.store.daily_tokens() >= self.limits.token_budget_daily:
            logger.warning(f"🚫 Daily token budget of {self.limits.token_budget_daily} exhausted")
            return Abort(MSG_DAILY_BUDGET)

        logger.debug(f"  ⏱️ Session '{session_id}' turn {counter.turns}/{self.limits.max_turns_per_session}")
        return Continue(messages)

    def on_result(self, messages: list[Message], ctx: StageContext) -> StageResult:
        index = find_last(messages, "assistant")
        if index == -1:
            return Continue(messages)

        # Structured content is counted and truncated as its JSON text
        content = content_text(messages[index])

        tokens = estimate_tokens(content)
        if tokens > self.limits.max_tokens_per_turn:
            budget = self.limits.max_tokens_per_turn * CHARS_PER_TOKEN
            logger.warning(
                f"✂️ Response of ~{tokens} tokens truncated to {self.limits.max_tokens_per_turn}"
            )
            return Continue(replace_content(messages, index, content[:budget] + TRUNCATION_MARKER))

        total = self.store.add_daily_tokens(tokens)
        logger.debug(f"  🪙 +{tokens} tokens, {total}/{self.limits.token_budget_daily} used today")
        return Continue(messages)


def create_limits_stage(policy: Policy, store: SessionStore | None = None) -> LimitsStage:
    """
    Build the limits stage for a policy.

    Args:
        policy: Governing policy.
        store: Session store (defaults to the process-wide store).

    Returns:
        Limits stage.
    """
    return LimitsStage(policy, store if store is not None else default_session_store())
