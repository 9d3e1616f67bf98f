"""
FastAPI Dependencies.

Shared dependencies for request handling.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.backend.core.database import get_db_session

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_request_id(request: Request) -> str:
    """
    Correlation id of the current request.

    RequestContextMiddleware sets it on request.state; the header and a
    fresh uuid4 cover apps mounted without the middleware.
    """
    request_id = getattr(request.state, "request_id", None)
    return request_id or request.headers.get("x-request-id") or str(uuid.uuid4())


RequestId = Annotated[str, Depends(get_request_id)]
