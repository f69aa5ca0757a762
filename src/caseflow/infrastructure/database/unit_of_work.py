"""
SQLAlchemy Unit of Work
=======================

One AsyncSession shared by every repository of an operation.
"""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from caseflow.audit.infrastructure.repositories import SQLAlchemyRevisionRepository
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.infrastructure.database import get_session_maker
from caseflow.records.infrastructure.repositories import (
    SQLAlchemyCommentRepository,
    SQLAlchemyRecordRepository,
    SQLAlchemyTransitionHistoryRepository,
)
from caseflow.workflow.infrastructure.repositories import SQLAlchemyWorkflowRepository


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """Repositories over one session. Nothing is committed implicitly."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.workflows = SQLAlchemyWorkflowRepository(session)
        self.records = SQLAlchemyRecordRepository(session)
        self.history = SQLAlchemyTransitionHistoryRepository(session)
        self.comments = SQLAlchemyCommentRepository(session)
        self.revisions = SQLAlchemyRevisionRepository(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


def uow_factory(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None
) -> Callable[[], AsyncContextManager[SQLAlchemyUnitOfWork]]:
    """
    Build a zero-argument factory of unit-of-work context managers.

    Uncommitted work is rolled back when the block exits, also on error.
    """
    @asynccontextmanager
    async def _unit_of_work() -> AsyncGenerator[SQLAlchemyUnitOfWork, None]:
        maker = session_maker or get_session_maker()
        async with maker() as session:
            uow = SQLAlchemyUnitOfWork(session)
            try:
                yield uow
            except Exception:
                await uow.rollback()
                raise

    return _unit_of_work


async def get_unit_of_work() -> AsyncGenerator[SQLAlchemyUnitOfWork, None]:
    """
    FastAPI dependency yielding a unit of work per request.

    Services commit explicitly; anything left uncommitted is discarded when
    the session closes.
    """
    async with uow_factory()() as uow:
        yield uow
