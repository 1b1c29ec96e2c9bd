"""Engine, request-scoped sessions and the unit-of-work helper.

The approval engine is synchronous: every HTTP request and every Celery task
gets one ``Session`` and wraps its mutations in ``transaction(db)``.
"""
import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> Engine:
    return create_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(
        bind=get_engine(),
        expire_on_commit=False,
        autoflush=False,
    )


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, always closed."""
    db = get_session_factory()()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or nothing at all.

    Any exception rolls the session back before propagating, so a partially
    built ledger or a half-applied decision is never visible to other
    sessions.
    """
    try:
        yield db
        db.commit()
    except Exception:
        logger.debug("Rolling back unit of work", exc_info=True)
        db.rollback()
        raise
