"""
Translation of governance errors into HTTP responses.

    ValidationFailedError   -> 400
    InvalidTransitionError  -> 409
    StorageUnavailableError -> 503

Not-found is decided by each endpoint from a None result.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from send_governance.core.errors import (
    InvalidTransitionError,
    StorageUnavailableError,
    ValidationFailedError,
)


logger = logging.getLogger(__name__)


@contextmanager
def http_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except ValidationFailedError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except StorageUnavailableError as e:
        logger.error(f"Storage unavailable during {operation}: {e.message}")
        raise HTTPException(status_code=503, detail=e.message)


def not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")
