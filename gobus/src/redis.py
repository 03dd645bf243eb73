from typing import Optional
from redis import Redis
from redis.lock import Lock

from gobus.src import exceptions
from gobus.src.constants import (
    REDIS_HOST,
    REDIS_PORT,
    REDIS_PASSWORD,
    REDIS_SOCKET_TIMEOUT,
    MUTEX_LOCK_TIMEOUT,
    MUTEX_LOCK_MAX_WAIT_TIME,
)

# Lock service client, shared by every request
redisClient = Redis(
    host=REDIS_HOST,
    port=int(REDIS_PORT),
    password=REDIS_PASSWORD,
    socket_timeout=REDIS_SOCKET_TIMEOUT,
    decode_responses=True,
)


def lockName(tableName: str, pk: Optional[int] = None) -> str:
    """`lock:<table>` for a whole table, `lock:<table>:<pk>` for one row."""
    if pk is None:
        return f"lock:{tableName}"
    return f"lock:{tableName}:{pk}"


def acquireLock(
    tableName: str,
    pk: Optional[int] = None,
    timeOut: int = MUTEX_LOCK_TIMEOUT,
    blockingTimeOut: int = MUTEX_LOCK_MAX_WAIT_TIME,
) -> Lock:
    """
    Take the mutex of a parent row before a read-compute-write cycle.

    Writers that derive the next value of a per-parent sequence (trip numbers
    of a bus, stop sequences of a trip, driver slots of an owner) or flip an
    owner-wide flag (the default bank account) hold the lock of the parent
    row until they have committed. The lock expires after `timeOut` seconds
    even if its holder dies.

    Raises:
        exceptions.LockAcquireTimeout: If the lock stays taken for `blockingTimeOut` seconds.
        exceptions.LockServiceError: If Redis cannot be reached.
    """
    try:
        lock = redisClient.lock(lockName(tableName, pk), timeout=timeOut)
        if not lock.acquire(blocking=True, blocking_timeout=blockingTimeOut):
            raise exceptions.LockAcquireTimeout()
        return lock
    except Exception as e:
        exceptions.handle(e)


def releaseLock(lock: Optional[Lock]) -> None:
    # Expired or never acquired locks are left alone
    if lock is not None and lock.locked() and lock.owned():
        lock.release()


def ping() -> bool:
    """Check that the lock service answers."""
    return bool(redisClient.ping())
