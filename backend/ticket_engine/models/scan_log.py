"""
Gate scan audit log. One row per redemption attempt, including forged and
mismatched scans, so `ticket_id` is not a foreign key.
"""

from sqlalchemy import Column, DateTime, Index, String

from ticket_engine.db.base import Base


class ScanLog(Base):
    __tablename__ = "scan_log"

    id = Column(String(36), primary_key=True)
    event_key = Column(String(60), nullable=False)
    ticket_id = Column(String(64), nullable=True, index=True)
    outcome = Column(String(20), nullable=False)
    session_id = Column(String(100), nullable=True)
    gate_label = Column(String(100), nullable=True)
    scanned_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_scan_log_event_key_scanned_at", "event_key", "scanned_at"),
    )
