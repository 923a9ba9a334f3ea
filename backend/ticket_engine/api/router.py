"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from ticket_engine.api.routes import events, gates, promos, purchases, scans, tickets

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events.router)
api_router.include_router(promos.router)
api_router.include_router(gates.router)
api_router.include_router(purchases.router)
api_router.include_router(tickets.router)
api_router.include_router(scans.router)
