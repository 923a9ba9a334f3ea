"""
Gate redemption: valid -> used, exactly once.

CONCURRENCY STRATEGY: Atomic Test-and-Set
=========================================

Problem:
  Two gate devices scan the same ticket at the same moment. A read followed by
  a write lets both see 'valid' and both admit.

Solution:
  The transition is a single guarded update:

    UPDATE tickets SET status='used', used_at=:now, used_by=:session
      WHERE ticket_id=:id AND status='valid'

  Exactly one caller gets rowcount == 1 and admits. Every other caller re-reads
  the ticket and reports already_used with the ORIGINAL used_at. A guard miss
  on a ticket that still reads 'valid' means the store is broken; that is a
  ConsistencyError, never a retry.

Scan outcomes are values, not exceptions. Unknown tickets, tickets for another
event and undecodable payloads all show "invalid" on the scanner, but keep
their own reason in the log, the metrics and the scan log.

A gate that presents an access code is verified first (GateAccessDenied, not a
scan outcome, when it fails). A verified gate signs its admissions: the gate
label becomes the ticket's `used_by` and is stored on the scan log.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional
from uuid import uuid4

from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger
from ticket_engine.core.metrics import record_scan, scan_latency
from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import ConsistencyError, EventNotFound
from ticket_engine.domain.models import ScanOutcome, ScanRecord, ScanStats, Ticket, TicketStatus
from ticket_engine.domain.value_objects import EVENT_KEY_MAX_LENGTH, TICKET_ID_MAX_LENGTH
from ticket_engine.services.gate_access import GateAccess, GateAccessService
from ticket_engine.services.publisher import LoggingPublisher, Publisher, TicketRedeemed
from ticket_engine.services.qr import decode_qr_payload
from ticket_engine.services.scan_tally import LocalScanTally, ScanTally
from ticket_engine.stores.interfaces import StoreTransaction, TicketStore

logger = get_logger(__name__)

DEFAULT_SESSION = "default"

_LOG_EVENTS = {
    ScanOutcome.ADMITTED: "ticket_admitted",
    ScanOutcome.ALREADY_USED: "scan_already_used",
    ScanOutcome.NOT_FOUND: "scan_ticket_not_found",
    ScanOutcome.EVENT_MISMATCH: "scan_event_mismatch",
    ScanOutcome.MALFORMED: "scan_malformed_payload",
}


@dataclass(frozen=True)
class RedemptionResult:
    outcome: ScanOutcome
    ticket: Optional[Ticket] = None
    used_at: Optional[datetime] = None
    tally: dict[str, int] = field(default_factory=dict)
    gate_label: Optional[str] = None

    @property
    def result(self) -> str:
        return self.outcome.result

    @property
    def reason(self) -> str:
        return self.outcome.value

    @property
    def admitted(self) -> bool:
        return self.outcome == ScanOutcome.ADMITTED


class RedemptionService:
    def __init__(
        self,
        store: TicketStore,
        tally: Optional[ScanTally] = None,
        publisher: Optional[Publisher] = None,
        gate_access: Optional[GateAccessService] = None,
        require_access: Optional[bool] = None,
    ) -> None:
        self._store = store
        self._tally = LocalScanTally() if tally is None else tally
        self._publisher = publisher or LoggingPublisher()
        self._gate_access = gate_access or GateAccessService(store)
        if require_access is None:
            require_access = get_settings().GATE_ACCESS_REQUIRED
        self._require_access = require_access

    async def redeem(
        self,
        ticket_id: str,
        event_key: str,
        session_id: Optional[str] = None,
        access_code: Optional[str] = None,
    ) -> RedemptionResult:
        """
        Redeem a ticket at the gate for `event_key`. Also used for manual id entry.

        Raises GateAccessDenied when an access code is given (or required) and
        does not verify for this event; nothing is recorded in that case.
        """
        start = time.perf_counter()
        gate = await self._authorize(access_code, event_key)
        return await self._redeem(ticket_id, event_key, session_id, gate, start)

    async def redeem_payload(
        self,
        raw_payload: str,
        event_key: Optional[str] = None,
        session_id: Optional[str] = None,
        access_code: Optional[str] = None,
    ) -> RedemptionResult:
        """
        Redeem from raw QR text. `event_key` is the scanning gate's event. When
        omitted, a verified gate's own event is used, else the key inside the
        payload is trusted.
        """
        start = time.perf_counter()
        gate = await self._authorize(access_code, event_key)
        gate_key = event_key or (gate.event_key if gate else None)

        payload = decode_qr_payload(raw_payload)
        if payload is None:
            return await self._finish(ScanOutcome.MALFORMED, gate_key or "", None, session_id, gate, start)
        return await self._redeem(payload.ticket_id, gate_key or payload.event_key, session_id, gate, start)

    async def _authorize(self, access_code: Optional[str], event_key: Optional[str]) -> Optional[GateAccess]:
        if not (access_code and access_code.strip()) and not self._require_access:
            return None
        return await self._gate_access.verify(access_code, event_key)

    async def _redeem(
        self,
        ticket_id: str,
        event_key: str,
        session_id: Optional[str],
        gate: Optional[GateAccess],
        start: float,
    ) -> RedemptionResult:
        ticket_id = (ticket_id or "").strip()
        event_key = (event_key or "").strip()

        if not ticket_id or not event_key or len(event_key) > EVENT_KEY_MAX_LENGTH:
            return await self._finish(ScanOutcome.MALFORMED, event_key, ticket_id or None, session_id, gate, start)
        if len(ticket_id) > TICKET_ID_MAX_LENGTH:
            # longer than any issued id: forged, no lookup needed
            return await self._finish(ScanOutcome.NOT_FOUND, event_key, ticket_id, session_id, gate, start)

        used_by = gate.label if gate else session_id
        async with self._store.transaction() as tx:
            ticket = await tx.get_ticket(ticket_id)
            used_at = None
            if ticket is None:
                outcome = ScanOutcome.NOT_FOUND
            elif ticket.event_key != event_key:
                outcome = ScanOutcome.EVENT_MISMATCH
                ticket = None
            else:
                now = utcnow()
                if await tx.try_mark_used(ticket_id, now, used_by):
                    outcome = ScanOutcome.ADMITTED
                    ticket = replace(ticket, status=TicketStatus.USED, used_at=now, used_by=used_by)
                else:
                    ticket = await tx.get_ticket(ticket_id)
                    if ticket.status == TicketStatus.VALID:
                        raise ConsistencyError(f"Redemption guard missed on valid ticket {ticket_id}")
                    outcome = ScanOutcome.ALREADY_USED
                used_at = ticket.used_at

            await self._record(tx, outcome, event_key, ticket_id, session_id, gate)

        result = await self._finish(
            outcome, event_key, ticket_id, session_id, gate, start, ticket=ticket, used_at=used_at, recorded=True
        )
        if result.admitted:
            await self._publisher.publish(
                TicketRedeemed(
                    ticket_id=ticket_id,
                    event_key=event_key,
                    used_at=used_at,
                    session_id=session_id,
                    gate_label=gate.label if gate else None,
                )
            )
        return result

    @staticmethod
    async def _record(
        tx: StoreTransaction,
        outcome: ScanOutcome,
        event_key: str,
        ticket_id: Optional[str],
        session_id: Optional[str],
        gate: Optional[GateAccess],
    ) -> None:
        # garbage longer than the scan_log columns is logged, not stored
        if ticket_id is not None and len(ticket_id) > TICKET_ID_MAX_LENGTH:
            ticket_id = None
        await tx.add_scan_record(
            ScanRecord(
                id=str(uuid4()),
                event_key=event_key[:EVENT_KEY_MAX_LENGTH],
                ticket_id=ticket_id,
                outcome=outcome,
                session_id=session_id,
                scanned_at=utcnow(),
                gate_label=gate.label if gate else None,
            )
        )

    async def _finish(
        self,
        outcome: ScanOutcome,
        event_key: str,
        ticket_id: Optional[str],
        session_id: Optional[str],
        gate: Optional[GateAccess],
        start: float,
        ticket: Optional[Ticket] = None,
        used_at: Optional[datetime] = None,
        recorded: bool = False,
    ) -> RedemptionResult:
        if not recorded:
            async with self._store.transaction() as tx:
                await self._record(tx, outcome, event_key, ticket_id, session_id, gate)

        tally_session = session_id or (gate.label if gate else None) or DEFAULT_SESSION
        tally = await self._tally.record(tally_session, outcome.result)

        record_scan(outcome.result, outcome.value)
        scan_latency.observe(time.perf_counter() - start)
        log = logger.info if outcome == ScanOutcome.ADMITTED else logger.warning
        log(
            _LOG_EVENTS[outcome],
            ticket_id=ticket_id[:TICKET_ID_MAX_LENGTH] if ticket_id else None,
            event_key=event_key[:EVENT_KEY_MAX_LENGTH],
            session_id=session_id,
            gate_label=gate.label if gate else None,
            used_at=used_at.isoformat() if used_at else None,
        )
        return RedemptionResult(
            outcome=outcome,
            ticket=ticket,
            used_at=used_at,
            tally=tally,
            gate_label=gate.label if gate else None,
        )

    async def session_tally(self, session_id: str) -> dict[str, int]:
        return await self._tally.get(session_id)

    async def stats(self, event_id: str) -> ScanStats:
        async with self._store.transaction() as tx:
            event = await tx.get_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            scanned, remaining = await tx.ticket_totals(event_id)
        return ScanStats(
            event_id=event_id,
            total_tickets=event.total_tickets,
            sold_tickets=event.sold_tickets,
            scanned=scanned,
            remaining=remaining,
        )
