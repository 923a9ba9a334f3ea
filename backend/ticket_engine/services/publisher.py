"""
Domain event publication.

Issuance and redemption announce what happened so notification, analytics and
dashboard consumers can react. Delivery is best effort and happens after the
store transaction commits: a publish failure never undoes a sale or an entry.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Optional

import redis.asyncio as redis

from ticket_engine.core.logging import get_logger
from ticket_engine.core.metrics import redis_errors
from ticket_engine.db.base import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    name: ClassVar[str] = "domain_event"

    occurred_at: datetime = field(default_factory=utcnow, kw_only=True)

    def to_message(self) -> str:
        body = {"type": self.name, **asdict(self)}
        return json.dumps(body, default=_encode)


@dataclass(frozen=True)
class TicketIssued(DomainEvent):
    name: ClassVar[str] = "ticket_issued"

    ticket_id: str
    event_id: str
    event_key: str
    owner_email: str
    quantity: int
    total_price: Decimal
    currency: str
    promo_code_id: Optional[str] = None


@dataclass(frozen=True)
class TicketRedeemed(DomainEvent):
    name: ClassVar[str] = "ticket_redeemed"

    ticket_id: str
    event_key: str
    used_at: datetime
    session_id: Optional[str] = None
    gate_label: Optional[str] = None


def _encode(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Cannot encode {type(value).__name__}")


class Publisher(ABC):
    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        pass


class LoggingPublisher(Publisher):
    """Writes domain events to the structured log only."""

    async def publish(self, event: DomainEvent) -> None:
        logger.info("domain_event", type=event.name, payload=event.to_message())


class RedisPublisher(Publisher):
    """Redis pub/sub fan-out; falls back to the log when Redis errors."""

    def __init__(self, client: redis.Redis, channel: str) -> None:
        self._client = client
        self._channel = channel
        self._fallback = LoggingPublisher()

    async def publish(self, event: DomainEvent) -> None:
        message = event.to_message()
        try:
            receivers = await self._client.publish(self._channel, message)
        except redis.RedisError as e:
            redis_errors.labels(operation="publish").inc()
            logger.error("domain_event_publish_failed", type=event.name, error=str(e))
            await self._fallback.publish(event)
            return
        logger.debug("domain_event_published", type=event.name, channel=self._channel, receivers=receivers)
