"""Translation of database failures into StoreError, plus a bounded retry helper."""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError

from .errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise connection, timeout and lock-wait failures as StoreError."""
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        logger.error("%s failed: %s", operation, exc)
        raise StoreError(f"{operation} failed, try again later") from exc
    except DBAPIError as exc:
        if not exc.connection_invalidated:
            raise
        logger.error("%s lost its connection: %s", operation, exc)
        raise StoreError(f"{operation} failed, try again later") from exc


def retry_store_call(
    func: Callable[[], T],
    attempts: int,
    backoff: float,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func``, retrying StoreError up to ``attempts`` times with doubling backoff."""
    delay = backoff
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except StoreError:
            if attempt >= attempts:
                raise
            logger.info("store call failed (attempt %s/%s), retrying in %.2fs", attempt, attempts, delay)
            sleep(delay)
            delay *= 2
    raise StoreError("no attempts configured")
