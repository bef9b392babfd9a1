# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Time-bounded memoization for coroutine results. Concurrent callers asking for the same
missing key share a single in-flight fetch, and failed fetches are never cached.
"""

from __future__ import annotations

import asyncio
import time
import unittest
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple


class AsyncTtlCache:
    """Values are stored as `(expires_at, future)` so in-flight and settled entries share a slot."""

    _entries: Dict[str, Tuple[float, asyncio.Future]]
    clock: Callable[[], float]

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._entries = {}
        self.clock = clock or time.monotonic

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry[0] > self.clock()

    async def get_or_fetch(
        self, key: str, ttl: float, fetch: Callable[[], Awaitable[Any]]
    ) -> Any:
        entry = self._entries.get(key)
        if entry is not None and entry[0] > self.clock():
            return await asyncio.shield(entry[1])

        # Shared by every caller, cancelling one caller leaves the fetch running
        task = asyncio.ensure_future(fetch())
        self._entries[key] = (self.clock() + ttl, task)
        task.add_done_callback(lambda done: self._settle(key, done))
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Future):
        # Retrieving the exception also keeps waiter-less failures from being logged
        if task.cancelled() or task.exception() is not None:
            entry = self._entries.get(key)
            if entry is not None and entry[1] is task:
                del self._entries[key]

    def invalidate(self, key: str):
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class Test(unittest.IsolatedAsyncioTestCase):
    async def test_memoizes_within_ttl(self):
        clock = FakeClock()
        cache = AsyncTtlCache(clock)
        calls = []

        async def fetch():
            calls.append(1)
            return len(calls)

        self.assertEqual(await cache.get_or_fetch("k", 300, fetch), 1)
        clock.now += 299
        self.assertEqual(await cache.get_or_fetch("k", 300, fetch), 1)
        self.assertIn("k", cache)
        clock.now += 2
        self.assertNotIn("k", cache)
        self.assertEqual(await cache.get_or_fetch("k", 300, fetch), 2)
        self.assertEqual(len(calls), 2)

    async def test_concurrent_misses_share_fetch(self):
        cache = AsyncTtlCache()
        calls = []
        release = asyncio.Event()

        async def fetch():
            calls.append(1)
            await release.wait()
            return "value"

        tasks = [
            asyncio.create_task(cache.get_or_fetch("k", 60, fetch)) for _ in range(5)
        ]
        await asyncio.sleep(0)
        release.set()
        self.assertEqual(await asyncio.gather(*tasks), ["value"] * 5)
        self.assertEqual(len(calls), 1)

    async def test_failures_are_not_cached(self):
        cache = AsyncTtlCache()
        attempts = []

        async def fetch():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return "ok"

        with self.assertRaises(RuntimeError):
            await cache.get_or_fetch("k", 60, fetch)
        self.assertEqual(len(cache), 0)
        self.assertEqual(await cache.get_or_fetch("k", 60, fetch), "ok")

    async def test_waiters_see_shared_failure(self):
        cache = AsyncTtlCache()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            raise KeyError("missing")

        first = asyncio.create_task(cache.get_or_fetch("k", 60, fetch))
        await asyncio.sleep(0)
        second = asyncio.create_task(cache.get_or_fetch("k", 60, fetch))
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(first, second, return_exceptions=True)
        self.assertTrue(all(isinstance(r, KeyError) for r in results))

    async def test_cancelled_caller_does_not_cancel_others(self):
        cache = AsyncTtlCache()
        calls = []
        release = asyncio.Event()

        async def fetch():
            calls.append(1)
            await release.wait()
            return "value"

        first = asyncio.create_task(cache.get_or_fetch("k", 60, fetch))
        await asyncio.sleep(0)
        second = asyncio.create_task(cache.get_or_fetch("k", 60, fetch))
        await asyncio.sleep(0)
        first.cancel()
        await asyncio.sleep(0)
        release.set()

        self.assertEqual(await second, "value")
        with self.assertRaises(asyncio.CancelledError):
            await first
        self.assertEqual(len(calls), 1)
        self.assertEqual(await cache.get_or_fetch("k", 60, fetch), "value")
        self.assertEqual(len(calls), 1)

    async def test_invalidate_and_clear(self):
        cache = AsyncTtlCache()

        async def fetch():
            return 1

        await cache.get_or_fetch("a", 60, fetch)
        await cache.get_or_fetch("b", 60, fetch)
        cache.invalidate("a")
        self.assertNotIn("a", cache)
        self.assertIn("b", cache)
        cache.clear()
        self.assertEqual(len(cache), 0)


if __name__ == "__main__":
    unittest.main()
