# errors.py
import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import status

logger = logging.getLogger(__name__)


class BookingServiceError(Exception):
    """Base class for errors that map onto a client-facing response."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(BookingServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(BookingServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BookingServiceError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflicting_booking: Optional[dict] = None):
        super().__init__(message)
        self.conflicting_booking = conflicting_booking


class StoreError(BookingServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


@contextmanager
def store_errors(message: str):
    """Turns unexpected store failures into a StoreError carrying only `message`.

    Domain errors raised inside the block pass through untouched.
    """
    try:
        yield
    except BookingServiceError:
        raise
    except Exception as exc:
        logger.exception("%s: %s", message, exc)
        raise StoreError(message) from exc
