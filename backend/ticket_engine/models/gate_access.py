"""
Gate access codes: one row per scanner device credential for an event.

Codes are generated upper-case and unique across events, so a device can
present just its code. Revoking a code deactivates it; rows are never deleted
because scan_log.gate_label still refers to them.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String

from ticket_engine.db.base import Base, TimestampMixin


class ScannerAccessCode(Base, TimestampMixin):
    __tablename__ = "scanner_access_codes"

    id = Column(String(36), primary_key=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(50), nullable=False, unique=True)
    label = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ScannerAccessCode(label={self.label}, event_id={self.event_id}, active={self.is_active})>"
