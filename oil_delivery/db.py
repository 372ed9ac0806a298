from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from typing import TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from oil_delivery.config import settings

logger = logging.getLogger(__name__)

T = TypeVar('T')

_TRANSIENT_MARKERS = ('unavailable', 'could not connect', 'connection refused', 'database is locked', 'server closed')

engine = create_engine(settings.database_url_normalized, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    from oil_delivery.models import Base

    Base.metadata.create_all(bind=engine)


def is_transient_store_error(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    if exc.connection_invalidated:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


def run_with_retry(
    db: Session,
    operation: Callable[[], T],
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` and retry it when the store is temporarily unavailable.

    The session is rolled back before each retry so the operation starts from a
    clean unit of work. Waits double from ``base_delay``; after the last attempt
    the error is re-raised.
    """
    max_attempts = attempts if attempts is not None else settings.store_retry_attempts
    delay = base_delay if base_delay is not None else settings.store_retry_base_seconds
    attempt = 1
    while True:
        try:
            return operation()
        except OperationalError as exc:
            if not is_transient_store_error(exc) or attempt >= max_attempts:
                raise
            logger.warning('Store unavailable (attempt %s/%s), retrying in %.1fs', attempt, max_attempts, delay)
            db.rollback()
            sleep(delay)
            delay *= 2
            attempt += 1
