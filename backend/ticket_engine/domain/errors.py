"""Domain error codes for issuance and engine administration.

Ticket outcomes at the gate are values (see ScanOutcome); the only scan-time
error is GateAccessDenied, for a device that fails its access code check.
"""

from enum import Enum

from ticket_engine.domain.models import EventStatus, GateAccessRejection, PromoRejection


class ErrorCode(Enum):
    """Domain error codes."""

    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    PROMO_INVALID = "PROMO_INVALID"
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_NOT_ACTIVE = "EVENT_NOT_ACTIVE"
    PAYMENT_NOT_CONFIRMED = "PAYMENT_NOT_CONFIRMED"
    INVALID_PURCHASE = "INVALID_PURCHASE"
    INVALID_EVENT = "INVALID_EVENT"
    INVALID_PROMO = "INVALID_PROMO"
    PROMO_NOT_FOUND = "PROMO_NOT_FOUND"
    DUPLICATE_PROMO = "DUPLICATE_PROMO"
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    GATE_ACCESS_DENIED = "GATE_ACCESS_DENIED"
    GATE_CODE_NOT_FOUND = "GATE_CODE_NOT_FOUND"
    INVALID_GATE_CODE = "INVALID_GATE_CODE"
    CONSISTENCY_VIOLATION = "CONSISTENCY_VIOLATION"


class TicketingError(Exception):
    """Base domain error with code, user-safe message and structured details."""

    def __init__(self, code: ErrorCode, message: str, **details) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class CapacityExceeded(TicketingError):
    def __init__(self, event_id: str, requested: int, remaining: int) -> None:
        super().__init__(
            ErrorCode.CAPACITY_EXCEEDED,
            f"Not enough tickets. Requested: {requested}, Available: {remaining}",
            requested=requested,
            remaining=remaining,
        )
        self.event_id = event_id


class PromoInvalid(TicketingError):
    def __init__(self, code: str, reason: PromoRejection) -> None:
        super().__init__(
            ErrorCode.PROMO_INVALID,
            "Promo code is invalid, expired, or has reached its usage limit",
            reason=reason.value,
        )
        self.promo_code = code
        self.reason = reason


class SeatUnavailable(TicketingError):
    def __init__(self, seat_ids: list[str], message: str = "Seats are no longer available") -> None:
        super().__init__(ErrorCode.SEAT_UNAVAILABLE, message, seat_ids=sorted(seat_ids))
        self.seat_ids = sorted(seat_ids)


class EventNotFound(TicketingError):
    def __init__(self, event_id: str) -> None:
        super().__init__(ErrorCode.EVENT_NOT_FOUND, "Event not found")
        self.event_id = event_id


class EventNotActive(TicketingError):
    def __init__(self, event_id: str, status: EventStatus) -> None:
        super().__init__(
            ErrorCode.EVENT_NOT_ACTIVE,
            f"Event is {status.value} and not selling tickets",
            status=status.value,
        )
        self.event_id = event_id


class PaymentNotConfirmed(TicketingError):
    def __init__(self, reason: str, reference: str | None = None) -> None:
        details = {"reason": reason}
        if reference is not None:
            details["payment_reference"] = reference
        super().__init__(ErrorCode.PAYMENT_NOT_CONFIRMED, "Payment was not confirmed", **details)
        self.reason = reason
        self.reference = reference


class InvalidPurchase(TicketingError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_PURCHASE, message)


class InvalidEvent(TicketingError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_EVENT, message)


class PromoNotFound(TicketingError):
    def __init__(self, promo_id: str) -> None:
        super().__init__(ErrorCode.PROMO_NOT_FOUND, "Promo code not found")
        self.promo_id = promo_id


class DuplicatePromoCode(TicketingError):
    def __init__(self, code: str) -> None:
        super().__init__(ErrorCode.DUPLICATE_PROMO, "Promo code already exists for this event", code=code)


class TicketNotFound(TicketingError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(ErrorCode.TICKET_NOT_FOUND, "Ticket not found")
        self.ticket_id = ticket_id


class AlreadyClaimed(TicketingError):
    def __init__(self, event_id: str) -> None:
        super().__init__(ErrorCode.ALREADY_CLAIMED, "Already claimed a ticket for this event")
        self.event_id = event_id


class ConsistencyError(TicketingError):
    """A guarded update did not apply when it must have. Fatal; never retried."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.CONSISTENCY_VIOLATION, message)


class InvalidPromo(TicketingError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_PROMO, message)


class HoldExpired(TicketingError):
    """The capacity hold was released (expiry sweep) before the purchase could commit."""

    def __init__(self, hold_id: str) -> None:
        super().__init__(ErrorCode.HOLD_EXPIRED, "Reservation expired before the purchase completed")
        self.hold_id = hold_id


class GateAccessDenied(TicketingError):
    def __init__(self, reason: GateAccessRejection) -> None:
        super().__init__(
            ErrorCode.GATE_ACCESS_DENIED,
            "Scanner is not authorized for this gate",
            reason=reason.value,
        )
        self.reason = reason


class GateCodeNotFound(TicketingError):
    def __init__(self, code_id: str) -> None:
        super().__init__(ErrorCode.GATE_CODE_NOT_FOUND, "Gate access code not found")
        self.code_id = code_id


class InvalidGateCode(TicketingError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_GATE_CODE, message)
