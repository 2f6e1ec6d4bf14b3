"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.db.session import get_db
from app.services.booking_lifecycle import BookingLifecycleService


async def get_lifecycle_service(
    session: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BookingLifecycleService:
    """Build the lifecycle service for a request."""
    return BookingLifecycleService(session, settings=settings)


DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
LifecycleService = Annotated[BookingLifecycleService, Depends(get_lifecycle_service)]
