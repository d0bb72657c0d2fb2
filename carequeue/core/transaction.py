"""Atomic unit helper for multi-row writes."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core.exceptions import TransientStoreException

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one transaction on the session.

    Commits when the block finishes, rolls back on any exception. Integrity
    errors propagate unchanged so callers can map them to the business rule
    the constraint enforces; other driver errors become a retryable
    TransientStoreException.

    Args:
        db: Database session
        operation: Name used in log events

    Yields:
        The same session
    """
    try:
        yield db
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("atomic_unit_constraint_violation", operation=operation)
        raise
    except DBAPIError as e:
        await db.rollback()
        logger.error("atomic_unit_store_failure", operation=operation, error=str(e))
        raise TransientStoreException() from e
    except BaseException:
        await db.rollback()
        raise
