from ticket_engine.stores.factory import create_store
from ticket_engine.stores.interfaces import StoreTransaction, TicketStore
from ticket_engine.stores.memory_store import MemoryTicketStore
from ticket_engine.stores.sql_store import SqlTicketStore

__all__ = ["create_store", "StoreTransaction", "TicketStore", "MemoryTicketStore", "SqlTicketStore"]
