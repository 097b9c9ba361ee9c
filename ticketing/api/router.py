"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from ticketing.api.routes import slots, bookings, tickets, gate, memberships, notifications

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(slots.router)
api_router.include_router(bookings.router)
api_router.include_router(tickets.router)
api_router.include_router(gate.router)
api_router.include_router(memberships.router)
api_router.include_router(notifications.router)
