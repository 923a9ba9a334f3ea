"""
Service wiring.

One TicketEngine per application: the store plus every service built on it.
The API reaches it through app.state; tests build their own around a
MemoryTicketStore.
"""

from dataclasses import dataclass
from typing import Optional

from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger
from ticket_engine.infrastructure.redis_client import get_redis
from ticket_engine.services.capacity_ledger import CapacityLedger
from ticket_engine.services.event_service import EventService
from ticket_engine.services.gate_access import GateAccessService
from ticket_engine.services.payments import PaymentConfirmer
from ticket_engine.services.promo_validator import PromoValidator
from ticket_engine.services.publisher import LoggingPublisher, Publisher, RedisPublisher
from ticket_engine.services.redemption_service import RedemptionService
from ticket_engine.services.scan_tally import LocalScanTally, RedisScanTally, ScanTally
from ticket_engine.services.ticket_issuer import TicketIssuer
from ticket_engine.stores.interfaces import TicketStore

logger = get_logger(__name__)


@dataclass
class TicketEngine:
    store: TicketStore
    events: EventService
    ledger: CapacityLedger
    promos: PromoValidator
    issuer: TicketIssuer
    gate_access: GateAccessService
    redemption: RedemptionService


def build_engine(
    store: TicketStore,
    payments: Optional[PaymentConfirmer] = None,
    publisher: Optional[Publisher] = None,
    tally: Optional[ScanTally] = None,
    payment_timeout: Optional[float] = None,
    require_gate_access: Optional[bool] = None,
) -> TicketEngine:
    publisher = publisher or LoggingPublisher()
    events = EventService(store)
    ledger = CapacityLedger(store)
    promos = PromoValidator(store)
    gate_access = GateAccessService(store)
    return TicketEngine(
        store=store,
        events=events,
        ledger=ledger,
        promos=promos,
        issuer=TicketIssuer(
            store,
            ledger,
            promos,
            events,
            payments=payments,
            publisher=publisher,
            payment_timeout=payment_timeout,
        ),
        gate_access=gate_access,
        redemption=RedemptionService(
            store,
            tally=tally,
            publisher=publisher,
            gate_access=gate_access,
            require_access=require_gate_access,
        ),
    )


async def redis_backed_collaborators() -> tuple[Publisher, ScanTally]:
    """Redis pub/sub and shared tallies when Redis is reachable, local fallbacks otherwise."""
    client = await get_redis()
    if client is None:
        logger.warning("redis_unavailable", message="Using in-process tallies and log-only events")
        return LoggingPublisher(), LocalScanTally()
    return RedisPublisher(client, get_settings().EVENTS_CHANNEL), RedisScanTally(client)
