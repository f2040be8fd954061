"""
SQL-backed audit logger.

Append-only record of every enforcement decision and every completed
interaction. Writes are best-effort by default: a storage failure is logged
and the interaction continues. Pass ``strict=True`` (or set
POLICYGUARD_AUDIT_STRICT) to raise ``AuditWriteError`` instead.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import AuditWriteError
from .models import AuditLogEntry, Base

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 50


@dataclass
class AuditRecord:
    """
    Audit entry to be written.

    Attributes:
        policy_name: Name of the governing policy.
        policy_version: Version of the governing policy.
        status: success, blocked, escalated or error.
        input_text: Latest user message.
        output_text: Final assistant message.
        check_name: Check that produced the entry.
        check_result: Outcome of the check (allowed, blocked, ...).
        check_detail: Human-readable explanation.
        tool_calls: Serialized tool-call list.
        error: Error text.
        timestamp: Event time (defaults to now). Naive values are read as local time and stored as UTC.
    """

    policy_name: str = "unknown"
    policy_version: str = "1.0"
    status: str = "success"
    input_text: str | None = None
    output_text: str | None = None
    check_name: str | None = None
    check_result: str | None = None
    check_detail: str | None = None
    tool_calls: str | None = None
    error: str | None = None
    timestamp: datetime | None = None


@dataclass
class AuditStats:
    """Entry counts by status."""

    total: int = 0
    blocked: int = 0
    escalated: int = 0
    errors: int = 0


def _to_utc(value: datetime) -> datetime:
    # Naive values are local time
    return value.astimezone(timezone.utc)


class AuditLogger:
    """
    Manages the audit database.

    Usage:
        audit = AuditLogger("sqlite:///./data/audit/audit.db")
        audit.log(AuditRecord(policy_name="tenant-rights", status="success"))
        rows = audit.query(status="blocked", limit=10)
        audit.close()
    """

    def __init__(self, database_url: str, strict: bool = False, echo: bool = False) -> None:
        """
        Initialize the audit logger and create the table if needed.

        Args:
            database_url: SQLAlchemy URL (sqlite:///path.db, postgresql://...)
            strict: Raise AuditWriteError when a write fails.
            echo: If True, log all SQL statements.
        """
        self.strict = strict
        self._engine = create_engine(database_url, echo=echo, **self._engine_options(database_url))
        self._session_factory = sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )
        Base.metadata.create_all(self._engine)
        logger.info(f"🗄️ Audit log ready ({self._engine.url.render_as_string(hide_password=True)})")

    @staticmethod
    def _engine_options(database_url: str) -> dict[str, Any]:
        url = make_url(database_url)
        if url.get_backend_name() != "sqlite":
            return {"pool_pre_ping": True}

        options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise each session sees an empty database
            options["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return options

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Get a database session committed on success, rolled back on error.

        Usage:
            with audit.session() as session:
                session.execute(query)
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def log(self, record: AuditRecord) -> int | None:
        """
        Append one entry.

        Args:
            record: Entry to write.

        Returns:
            New entry id, or None when a best-effort write failed.

        Raises:
            AuditWriteError: If the write failed and the logger is strict.
        """
        values = {f.name: getattr(record, f.name) for f in fields(record)}
        values["timestamp"] = _to_utc(record.timestamp or datetime.now(timezone.utc))
        try:
            with self.session() as session:
                entry = AuditLogEntry(**values)
                session.add(entry)
                session.flush()
                entry_id = entry.id
        except SQLAlchemyError as e:
            if self.strict:
                raise AuditWriteError(f"Failed to write audit entry: {e}") from e
            logger.error(f"❌ Audit write failed (best-effort, continuing): {e}")
            return None

        logger.debug(
            f"  📝 Audit #{entry_id}: {record.status} "
            f"policy={record.policy_name} check={record.check_name or '-'}"
        )
        return entry_id

    def log_interaction(self, record: AuditRecord) -> int | None:
        """Append the summary entry of a completed interaction."""
        return self.log(record)

    def query(
        self,
        *,
        status: str | None = None,
        policy_name: str | None = None,
        since: datetime | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[AuditLogEntry]:
        """
        Fetch entries, newest first.

        Args:
            status: Only entries with this status.
            policy_name: Only entries for this policy.
            since: Only entries at or after this time. Naive values are read as local time.
            limit: Maximum number of entries.

        Returns:
            Matching entries.
        """
        stmt = select(AuditLogEntry)
        if status:
            stmt = stmt.where(AuditLogEntry.status == status)
        if policy_name:
            stmt = stmt.where(AuditLogEntry.policy_name == policy_name)
        if since is not None:
            stmt = stmt.where(AuditLogEntry.timestamp >= _to_utc(since))
        stmt = stmt.order_by(AuditLogEntry.timestamp.desc(), AuditLogEntry.id.desc()).limit(limit)

        with self.session() as session:
            return list(session.execute(stmt).scalars().all())

    def stats(self, policy_name: str | None = None) -> AuditStats:
        """
        Count entries by status.

        Args:
            policy_name: Restrict to one policy.

        Returns:
            Summary statistics.
        """
        stmt = select(AuditLogEntry.status, func.count(AuditLogEntry.id))
        if policy_name:
            stmt = stmt.where(AuditLogEntry.policy_name == policy_name)
        stmt = stmt.group_by(AuditLogEntry.status)

        result = AuditStats()
        with self.session() as session:
            for status, count in session.execute(stmt).all():
                result.total += count
                if status == "blocked":
                    result.blocked = count
                elif status == "escalated":
                    result.escalated = count
                elif status == "error":
                    result.errors = count
        return result

    def close(self) -> None:
        """Close all database connections."""
        self._engine.dispose()

    @property
    def engine(self):
        """Get the SQLAlchemy engine."""
        return self._engine
