"""FastAPI dependency injection for database sessions and the ledger service."""

from collections.abc import AsyncGenerator

from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from curtailment.core.database import async_session_factory
from curtailment.service import CurtailmentService

# Shared rate limiter; registered on the app in curtailment.api.main
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

_service: CurtailmentService | None = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; auto-rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_service() -> CurtailmentService:
    """Return the process-wide CurtailmentService, created on first use."""
    global _service
    if _service is None:
        _service = CurtailmentService()
    return _service
