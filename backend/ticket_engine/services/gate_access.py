"""
Gate access codes: which scanner devices may redeem tickets for an event.

An organizer issues a code per gate (label "North Gate", optional expiry).
A device presents the code; once verified, its gate label is what the
ticket's `used_by` and the scan log record, so every admission traces back
to a gate.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import uuid4

from ticket_engine.core.logging import get_logger
from ticket_engine.core.metrics import record_gate_access
from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import EventNotFound, GateAccessDenied, GateCodeNotFound, InvalidGateCode
from ticket_engine.domain.models import GateAccessCode, GateAccessRejection
from ticket_engine.domain.value_objects import generate_access_code
from ticket_engine.stores.interfaces import TicketStore

logger = get_logger(__name__)

LABEL_MAX_LENGTH = 100


@dataclass(frozen=True)
class GateAccess:
    """A verified gate: the event it scans for and the label it signs scans with."""

    code_id: str
    event_id: str
    event_key: str
    event_title: str
    label: str


class GateAccessService:
    def __init__(self, store: TicketStore) -> None:
        self._store = store

    async def create(self, event_id: str, label: str, expires_at: Optional[datetime] = None) -> GateAccessCode:
        label = label.strip()
        if not label:
            raise InvalidGateCode("Gate label must not be empty")
        if len(label) > LABEL_MAX_LENGTH:
            raise InvalidGateCode(f"Gate label must be at most {LABEL_MAX_LENGTH} characters")

        gate_code = GateAccessCode(
            id=str(uuid4()),
            event_id=event_id,
            code=generate_access_code(),
            label=label,
            is_active=True,
            expires_at=expires_at,
            created_at=utcnow(),
        )
        async with self._store.transaction() as tx:
            if await tx.get_event(event_id) is None:
                raise EventNotFound(event_id)
            await tx.add_gate_code(gate_code)

        logger.info("gate_code_created", code_id=gate_code.id, event_id=event_id, label=label)
        return gate_code

    async def list_for_event(self, event_id: str) -> list[GateAccessCode]:
        async with self._store.transaction() as tx:
            if await tx.get_event(event_id) is None:
                raise EventNotFound(event_id)
            return await tx.list_gate_codes(event_id)

    async def revoke(self, code_id: str) -> GateAccessCode:
        async with self._store.transaction() as tx:
            if not await tx.set_gate_code_active(code_id, False):
                raise GateCodeNotFound(code_id)
            gate_code = await tx.get_gate_code(code_id)

        logger.info("gate_code_revoked", code_id=code_id, event_id=gate_code.event_id)
        return gate_code

    async def check(self, code: str, event_key: Optional[str] = None) -> Optional[GateAccess]:
        """The verified gate, or None. `event_key`, when given, must be the code's event."""
        access, _ = await self._lookup(code, event_key)
        return access

    async def verify(self, code: Optional[str], event_key: Optional[str] = None) -> GateAccess:
        """Like check(), but raises GateAccessDenied with the reason."""
        if code is None or not code.strip():
            record_gate_access(GateAccessRejection.MISSING.value)
            logger.warning("gate_access_denied", reason=GateAccessRejection.MISSING.value, event_key=event_key)
            raise GateAccessDenied(GateAccessRejection.MISSING)
        access, reason = await self._lookup(code, event_key)
        if access is None:
            raise GateAccessDenied(reason)
        return access

    async def _lookup(
        self, code: str, event_key: Optional[str]
    ) -> tuple[Optional[GateAccess], Optional[GateAccessRejection]]:
        async with self._store.transaction() as tx:
            gate_code = await tx.find_gate_code(code)
            event = await tx.get_event(gate_code.event_id) if gate_code else None

        if gate_code is None or event is None:
            reason = GateAccessRejection.NOT_FOUND
        elif event_key is not None and event.event_key != event_key.strip():
            reason = GateAccessRejection.WRONG_EVENT
        else:
            reason = gate_code.rejection(utcnow())

        if reason is not None:
            record_gate_access(reason.value)
            logger.warning(
                "gate_access_denied",
                reason=reason.value,
                code_id=gate_code.id if gate_code else None,
                event_key=event_key,
            )
            return None, reason

        record_gate_access("verified")
        return (
            GateAccess(
                code_id=gate_code.id,
                event_id=event.id,
                event_key=event.event_key,
                event_title=event.title,
                label=gate_code.label,
            ),
            None,
        )
