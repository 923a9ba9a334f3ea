"""
Payment confirmation hook.

The engine does not talk to payment gateways. A purchase waits (bounded by
PAYMENT_CONFIRM_TIMEOUT_SECONDS) for a confirmer to say the charge succeeded,
while only a capacity hold, never a lock, is outstanding.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PaymentRequest:
    hold_id: str
    event_id: str
    owner_email: str
    amount: Decimal
    currency: str


@dataclass(frozen=True)
class PaymentResult:
    confirmed: bool
    reference: str | None = None
    reason: str | None = None


class PaymentConfirmer(ABC):
    @abstractmethod
    async def confirm(self, request: PaymentRequest) -> PaymentResult:
        pass


class AutoConfirm(PaymentConfirmer):
    """Confirms every request; for free events and deployments that settle payment upstream."""

    async def confirm(self, request: PaymentRequest) -> PaymentResult:
        return PaymentResult(confirmed=True, reference=f"auto-{request.hold_id}")
