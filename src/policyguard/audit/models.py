"""Audit log ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for audit ORM models."""
    pass


class AuditLogEntry(Base):
    """One enforcement decision or completed interaction. Write-once."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    policy_name: Mapped[str] = mapped_column(String(255), nullable=False)
    policy_version: Mapped[str] = mapped_column(String(50), nullable=False, default="1.0")
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    input_text: Mapped[str | None] = mapped_column(Text)
    output_text: Mapped[str | None] = mapped_column(Text)
    check_name: Mapped[str | None] = mapped_column(String(100))
    check_result: Mapped[str | None] = mapped_column(String(50))
    check_detail: Mapped[str | None] = mapped_column(Text)
    tool_calls: Mapped[str | None] = mapped_column(Text)
    error: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_audit_ts", "timestamp"),
        Index("idx_audit_status", "status"),
        Index("idx_audit_policy", "policy_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLogEntry id={self.id} policy={self.policy_name!r} "
            f"status={self.status!r} check={self.check_name!r}>"
        )
