"""FastAPI dependency injection functions."""

from typing import AsyncGenerator

from fastapi import Request

from tokenmeta.core.metrics import Metrics
from tokenmeta.uow import UnitOfWork


async def get_uow(request: Request) -> AsyncGenerator[UnitOfWork, None]:
    """FastAPI dependency for Unit of Work injection.

    Retrieves the UoW factory from app.state and yields a UoW instance.
    The UoW is automatically committed on successful request completion
    or rolled back if an exception occurs.
    """
    uow_factory = request.app.state.uow_factory
    async with await uow_factory() as uow:
        yield uow


def get_metrics(request: Request) -> Metrics:
    """FastAPI dependency returning the application's metrics collectors."""
    return request.app.state.metrics
