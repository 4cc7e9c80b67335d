import logging
import os
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import redis

log = logging.getLogger("profilehub.locks")

REDIS_URL = os.getenv("REDIS_URL")
LOCK_TTL_SECONDS = 30
LOCK_WAIT_SECONDS = 10.0
LOCK_POLL_SECONDS = 0.05


class UserLockTimeout(RuntimeError):
    pass


class LocalUserLocks:
    """In-process per-user mutexes; enough for a single worker.

    A user's entry lives only while some request holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # user id -> [lock, number of holders and waiters]
        self._locks: Dict[int, List] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, user_id: int) -> threading.Lock:
        with self._guard:
            entry = self._locks.setdefault(user_id, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, user_id: int) -> None:
        with self._guard:
            entry = self._locks[user_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[user_id]

    @contextmanager
    def hold(self, user_id: int, timeout: Optional[float] = None) -> Iterator[None]:
        lock = self._checkout(user_id)
        try:
            if not lock.acquire(timeout=LOCK_WAIT_SECONDS if timeout is None else timeout):
                raise UserLockTimeout(f"Timed out waiting for photo lock of user {user_id}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(user_id)


_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisUserLocks:
    """Per-user locks shared by every worker that talks to the same Redis."""

    def __init__(self, client, ttl_seconds: int = LOCK_TTL_SECONDS, prefix: str = "profilehub:photo-lock"):
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, user_id: int) -> str:
        return f"{self.prefix}:{user_id}"

    @contextmanager
    def hold(self, user_id: int, timeout: Optional[float] = None) -> Iterator[None]:
        key = self._key(user_id)
        token = uuid.uuid4().hex
        deadline = time.monotonic() + (LOCK_WAIT_SECONDS if timeout is None else timeout)
        while not self._client.set(key, token, nx=True, ex=self.ttl_seconds):
            if time.monotonic() >= deadline:
                raise UserLockTimeout(f"Timed out waiting for photo lock of user {user_id}")
            time.sleep(LOCK_POLL_SECONDS)
        try:
            yield
        finally:
            try:
                self._client.eval(_RELEASE_SCRIPT, 1, key, token)
            except redis.RedisError:
                # The TTL frees the key eventually
                log.warning("Failed to release photo lock of user %s", user_id, exc_info=True)


_user_locks = None


def get_user_locks():
    global _user_locks
    if _user_locks is None:
        if REDIS_URL:
            _user_locks = RedisUserLocks(redis.from_url(REDIS_URL, decode_responses=True))
        else:
            _user_locks = LocalUserLocks()
    return _user_locks


def set_user_locks(locks: Optional[object]) -> None:
    global _user_locks
    _user_locks = locks
