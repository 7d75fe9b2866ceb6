"""Shared dependencies for API routes."""

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from docflow.db.session import async_session
from docflow.db.session import get_db as _get_db
from docflow.pipeline.engine import WorkflowEngine
from docflow.pipeline.wiring import build_engine

_engine: WorkflowEngine | None = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session."""
    async for session in _get_db():
        yield session


def get_workflow_engine() -> WorkflowEngine:
    """Process-wide WorkflowEngine over the shared session factory."""
    global _engine
    if _engine is None:
        _engine = build_engine(async_session)
    return _engine
