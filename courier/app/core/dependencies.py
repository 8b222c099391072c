"""
FastAPI dependencies.

Handlers never reach for module globals: the runtime context lives on
``app.state`` and is handed out per request.
"""

import secrets
from typing import Optional

from fastapi import Depends, Header, Request

from courier.app.core.context import TransitContext
from courier.app.core.exceptions import TickForbiddenError


def get_context(request: Request) -> TransitContext:
    """Runtime context created in the application lifespan."""
    return request.app.state.context


async def get_db(context: TransitContext = Depends(get_context)):
    """
    FastAPI dependency for database sessions.

    Yields an async database session and ensures it's properly closed.
    """
    async with context.session_factory() as session:
        yield session


async def require_tick_token(
    x_tick_token: Optional[str] = Header(None),
    context: TransitContext = Depends(get_context),
) -> None:
    """Guard the manual tick endpoint when a shared token is configured."""
    expected = context.settings.tick_token
    if not expected:
        return
    if not x_tick_token or not secrets.compare_digest(x_tick_token, expected):
        raise TickForbiddenError()
