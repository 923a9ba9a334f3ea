"""
Store backend factory.
Configures which persistence backend the engine runs on.
"""

from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger
from ticket_engine.stores.interfaces import TicketStore
from ticket_engine.stores.memory_store import MemoryTicketStore
from ticket_engine.stores.sql_store import SqlTicketStore

logger = get_logger(__name__)


def create_store(backend: str | None = None) -> TicketStore:
    """
    Build the configured store.

    - sql: PostgreSQL via SQLAlchemy (multi-process, durable)
    - memory: single process, per-entity locks (local runs and tests)

    Selected by the STORE_BACKEND env var.
    """
    settings = get_settings()
    backend = backend or settings.STORE_BACKEND

    if backend == "memory":
        logger.info("store_selected", backend="memory")
        return MemoryTicketStore()
    if backend == "sql":
        from ticket_engine.db.session import create_engine

        logger.info("store_selected", backend="sql")
        return SqlTicketStore(create_engine(), create_schema=settings.DB_CREATE_SCHEMA)
    raise ValueError(f"Unknown STORE_BACKEND: {backend!r}")
