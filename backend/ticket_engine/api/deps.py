"""
FastAPI dependencies. The engine is built once in the lifespan and stored on app.state.
"""

from fastapi import Request

from ticket_engine.services.engine import TicketEngine


def get_engine(request: Request) -> TicketEngine:
    return request.app.state.engine
