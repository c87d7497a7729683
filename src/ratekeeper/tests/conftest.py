import asyncio
from datetime import datetime, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError, WatchError

from ratekeeper.core.counter import RedisCounterStore


class FakeRedis:
    """
    In-memory stand-in for redis.asyncio.Redis covering the commands the
    counter store sends. WATCH is tracked with per-key versions, so a write
    from another pipeline between WATCH and EXEC aborts the EXEC exactly like
    redis does. Time only moves through advance().
    """

    def __init__(self) -> None:
        self.now_ms = 1_700_000_000_000
        self._data: dict[str, str] = {}
        self._expire_at: dict[str, int] = {}
        self._versions: dict[str, int] = {}

        # knobs for tests
        self.conflicts_to_inject = 0
        self.fail_pexpire = False
        self.down = False
        self.latency = 0.0

        self.exec_calls = 0
        self.watch_calls = 0

    # time

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)

    def clock(self) -> datetime:
        return datetime.fromtimestamp(self.now_ms / 1000, tz=timezone.utc)

    # bookkeeping

    def _version(self, key: str) -> int:
        self._purge(key)
        return self._versions.get(key, 0)

    def _touch(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def _purge(self, key: str) -> None:
        at = self._expire_at.get(key)
        if at is not None and at <= self.now_ms:
            self._data.pop(key, None)
            self._expire_at.pop(key, None)
            self._touch(key)

    def _check_up(self) -> None:
        if self.down:
            raise RedisConnectionError("Error 111 connecting to redis:6379. Connection refused.")

    # commands

    def dispatch(self, name: str, *args, **kwargs):
        return getattr(self, f"_cmd_{name}")(*args, **kwargs)

    def _cmd_get(self, key):
        self._purge(key)
        return self._data.get(key)

    def _cmd_set(self, key, value, nx=False, px=None, ex=None):
        self._purge(key)
        if nx and key in self._data:
            return None
        self._data[key] = str(value)
        self._expire_at.pop(key, None)
        if px is not None:
            self._expire_at[key] = self.now_ms + int(px)
        elif ex is not None:
            self._expire_at[key] = self.now_ms + int(ex) * 1000
        self._touch(key)
        return True

    def _cmd_incr(self, key):
        self._purge(key)
        raw = self._data.get(key, "0")
        try:
            value = int(raw) + 1
        except ValueError:
            raise ResponseError("value is not an integer or out of range") from None
        self._data[key] = str(value)
        self._touch(key)
        return value

    def _cmd_pttl(self, key):
        self._purge(key)
        if key not in self._data:
            return -2
        at = self._expire_at.get(key)
        if at is None:
            return -1
        return at - self.now_ms

    def _cmd_pexpire(self, key, ms):
        self._purge(key)
        if self.fail_pexpire or key not in self._data:
            return False
        self._expire_at[key] = self.now_ms + int(ms)
        self._touch(key)
        return True

    def _cmd_delete(self, *keys):
        removed = 0
        for key in keys:
            self._purge(key)
            if key in self._data:
                del self._data[key]
                self._expire_at.pop(key, None)
                self._touch(key)
                removed += 1
        return removed

    # client api

    async def _call(self, name, *args, **kwargs):
        self._check_up()
        if self.latency:
            await asyncio.sleep(self.latency)
        await asyncio.sleep(0)
        return self.dispatch(name, *args, **kwargs)

    async def get(self, key):
        return await self._call("get", key)

    async def set(self, key, value, nx=False, px=None, ex=None):
        return await self._call("set", key, value, nx=nx, px=px, ex=ex)

    async def incr(self, key):
        return await self._call("incr", key)

    async def pttl(self, key):
        return await self._call("pttl", key)

    async def pexpire(self, key, ms):
        return await self._call("pexpire", key, ms)

    async def delete(self, *keys):
        return await self._call("delete", *keys)

    async def ping(self):
        self._check_up()
        return True

    async def aclose(self):
        return None

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._watched: dict[str, int] = {}
        self._stack: list = []
        self._explicit = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.reset()

    async def reset(self) -> None:
        self._watched = {}
        self._stack = []
        self._explicit = False

    @property
    def watching(self) -> bool:
        return bool(self._watched)

    async def watch(self, *keys):
        self._redis._check_up()
        self._redis.watch_calls += 1
        if self._redis.latency:
            await asyncio.sleep(self._redis.latency)
        for key in keys:
            self._watched[key] = self._redis._version(key)
        await asyncio.sleep(0)
        return True

    def multi(self) -> None:
        self._explicit = True

    def _command(self, name, *args, **kwargs):
        if self.watching and not self._explicit:
            return self._redis._call(name, *args, **kwargs)
        self._stack.append((name, args, kwargs))
        return self

    def get(self, key):
        return self._command("get", key)

    def set(self, key, value, nx=False, px=None, ex=None):
        return self._command("set", key, value, nx=nx, px=px, ex=ex)

    def incr(self, key):
        return self._command("incr", key)

    def pttl(self, key):
        return self._command("pttl", key)

    def pexpire(self, key, ms):
        return self._command("pexpire", key, ms)

    def delete(self, *keys):
        return self._command("delete", *keys)

    async def execute(self):
        redis = self._redis
        stack = self._stack
        try:
            redis._check_up()
            await asyncio.sleep(0)
            redis.exec_calls += 1

            if redis.conflicts_to_inject > 0:
                redis.conflicts_to_inject -= 1
                raise WatchError("Watched variable changed.")
            for key, version in self._watched.items():
                if redis._version(key) != version:
                    raise WatchError("Watched variable changed.")

            results, first_error = [], None
            for i, (name, args, kwargs) in enumerate(stack, start=1):
                try:
                    results.append(redis.dispatch(name, *args, **kwargs))
                except ResponseError as exc:
                    results.append(exc)
                    if first_error is None:
                        first_error = ResponseError(
                            f"Command # {i} ({name.upper()} {' '.join(map(str, args))}) "
                            f"of pipeline caused error: {exc}"
                        )
            if first_error is not None:
                raise first_error
            return results
        finally:
            await self.reset()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    return RedisCounterStore(fake_redis, prefix="rl", max_retry=3, clock=fake_redis.clock)
