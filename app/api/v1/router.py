"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from app.api.v1 import bookings, cancellation_policies, health

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Booking lifecycle
api_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["bookings"],
)

# Cancellation policies
api_router.include_router(
    cancellation_policies.router,
    prefix="/cancellation-policies",
    tags=["cancellation-policies"],
)
