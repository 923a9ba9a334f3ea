"""
Promo code model.

`code_normalized` (upper-cased) carries the per-event uniqueness so lookups are
case-insensitive. `used_count` only moves through a guarded increment.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from ticket_engine.db.base import Base, TimestampMixin


class PromoCode(Base, TimestampMixin):
    __tablename__ = "promo_codes"

    id = Column(String(36), primary_key=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    code_normalized = Column(String(50), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False)
    ticket_limit = Column(Integer, nullable=False)
    used_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("event_id", "code_normalized", name="uq_promo_code_per_event"),
        CheckConstraint(
            "discount_percentage > 0 AND discount_percentage <= 100",
            name="check_promo_discount_range",
        ),
        CheckConstraint("ticket_limit > 0", name="check_promo_limit_positive"),
        CheckConstraint("used_count >= 0 AND used_count <= ticket_limit", name="check_promo_usage_bound"),
    )

    def __repr__(self) -> str:
        return f"<PromoCode(code={self.code}, used={self.used_count}/{self.ticket_limit})>"
