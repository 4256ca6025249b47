"""Service-layer error taxonomy.

Services raise these; the API layer turns them into HTTP responses. Anything
else coming out of a service (SQLAlchemy errors in particular) is a store
failure and is reported as a generic 500.
"""
import logging
from contextlib import contextmanager

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class TontineError(Exception):
    """Base class for handled domain errors."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TontineError):
    """Missing or invalid input, or an operation not allowed in the current state."""
    status_code = 400


class PermissionDeniedError(TontineError):
    """Caller lacks the admin/recipient role needed for the action."""
    status_code = 403


class NotFoundError(TontineError):
    """Referenced group, cycle, member or notification does not exist."""
    status_code = 404


class ConflictError(TontineError):
    """A conditional update lost a race with a concurrent writer."""
    status_code = 409


@contextmanager
def handle_service_errors(db: Session, action: str):
    """Translate service failures raised inside the block into HTTP errors.

    Domain errors keep their message; store errors are rolled back, logged and
    reported generically.
    """
    try:
        yield
    except TontineError as e:
        raise HTTPException(status_code=e.status_code, detail=f"Failed to {action}: {e.message}")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Store error while trying to %s", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}. Please try again."
        )
