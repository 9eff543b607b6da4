"""
MongoDB helpers
Bounded store calls and id handling shared by the mission services
"""
import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError

from premiads.core.config import STORE_TIMEOUT_SECONDS
from premiads.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def guarded(operation: Awaitable[T], timeout: Optional[float] = None) -> T:
    """
    Await a store operation with a bounded timeout.

    Timeouts and driver/network errors become StoreUnavailable and are never
    retried here. DuplicateKeyError passes through untouched: it is a
    uniqueness answer from the store, not an outage.
    """
    limit = STORE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(operation, timeout=limit)
    except DuplicateKeyError:
        raise
    except asyncio.TimeoutError as e:
        logger.error("Store operation timed out after %ss", limit)
        raise StoreUnavailable(f"Store operation timed out after {limit}s") from e
    except PyMongoError as e:
        logger.error("Store operation failed: %s", e)
        raise StoreUnavailable(f"Store operation failed: {e}") from e


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string; malformed ids resolve to None"""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None

