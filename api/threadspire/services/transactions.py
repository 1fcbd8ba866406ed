"""Transaction boundary for multi-step writes."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, PartialFailureError, ThreadSpireError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, operation: str) -> Iterator[Session]:
    """
    Run a block of writes as one transaction and commit it.

    Every step inside the block either lands together or not at all. On any
    failure the session is rolled back before the error leaves this function,
    so callers can retry the whole operation safely.

    Domain errors raised inside the block propagate unchanged. Version-counter
    and uniqueness violations become ConflictError; any other database error
    becomes PartialFailureError.
    """
    try:
        yield db
        db.commit()
    except ThreadSpireError:
        db.rollback()
        raise
    except StaleDataError as e:
        db.rollback()
        logger.info(f"{operation}: concurrent modification detected: {e}")
        raise ConflictError(
            "The thread was modified by another request. Reload and try again."
        ) from e
    except IntegrityError as e:
        db.rollback()
        logger.info(f"{operation}: integrity conflict: {e.orig}")
        raise ConflictError(f"{operation} conflicted with a concurrent write") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{operation}: rolled back after database error: {e}", exc_info=True)
        raise PartialFailureError(operation, str(e)) from e
