# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import heapq
import logging
import unittest
import unittest.mock
from typing import Callable, List, Optional

from .account_address import AccountAddress
from .async_client import ApiError, RestClient


class AccountSequenceNumberConfig:
    """Common configuration for account number generation"""

    maximum_in_flight: int = 100
    maximum_wait_time: int = 30
    sleep_time: float = 0.01


class AccountSequenceNumber:
    """
    Hands out sequence numbers for one account while keeping at most `maximum_in_flight`
    of them uncommitted, the limit mempool places on a single account.

    The counter starts at the on-chain sequence number. When the window is full the
    committed number is refreshed; if it stays full, the allocator polls until ledger time
    has moved `maximum_wait_time` seconds past the start of the wait and then restarts from
    the on-chain value. Numbers handed back through `reclaim` are reissued, smallest
    first, before the counter advances, since a number that is never broadcast would
    otherwise hold back every later one. Restarting from the chain drops them.

    Requests are served in arrival order under a lock, so many tasks can share one
    allocator. `synchronize` holds the same lock until every issued number is committed.
    An account must be managed by a single allocator and not used otherwise.
    """

    _client: RestClient
    _account: AccountAddress
    _lock: asyncio.Lock

    _maximum_in_flight: int = 100
    _maximum_wait_time: int = 30
    _sleep_time: float = 0.01

    _last_uncommitted_number: Optional[int]
    _current_number: Optional[int]
    _reclaimed: List[int]

    def __init__(
        self,
        client: RestClient,
        account: AccountAddress,
        config: AccountSequenceNumberConfig = AccountSequenceNumberConfig(),
    ):
        self._client = client
        self._account = account
        self._lock = asyncio.Lock()

        self._last_uncommitted_number = None
        self._current_number = None
        self._reclaimed = []

        self._maximum_in_flight = config.maximum_in_flight
        self._maximum_wait_time = config.maximum_wait_time
        self._sleep_time = config.sleep_time

    async def next_sequence_number(self, block: bool = True) -> Optional[int]:
        """
        Returns the next sequence number available on this account. This leverages a lock to
        guarantee first-in, first-out ordering of requests.
        """
        async with self._lock:
            if self._last_uncommitted_number is None or self._current_number is None:
                await self._initialize()

            reclaimed = self._next_reclaimed()
            if reclaimed is not None:
                return reclaimed

            # If there are more than self._maximum_in_flight in flight, wait for a slot.
            # Or at least check to see if there is a slot and exit if in non-blocking mode.
            if (
                self._current_number - self._last_uncommitted_number
                >= self._maximum_in_flight
            ):
                await self._update()
                if (
                    self._current_number - self._last_uncommitted_number
                    >= self._maximum_in_flight
                ):
                    if not block:
                        return None
                    await self._resync(
                        lambda acn: acn._current_number - acn._last_uncommitted_number
                        >= acn._maximum_in_flight
                    )

            next_number = self._current_number
            self._current_number += 1
        return next_number

    def reclaim(self, sequence_number: int) -> bool:
        """
        Return an issued number that was never broadcast so it is handed out again. Numbers
        the counter has not reached, as happens after a resync from chain, and numbers
        already committed are ignored. Returns whether the number was pooled.
        """
        if (
            self._current_number is None
            or sequence_number >= self._current_number
            or sequence_number < self._last_uncommitted_number
        ):
            return False
        if sequence_number not in self._reclaimed:
            heapq.heappush(self._reclaimed, sequence_number)
        return True

    def _next_reclaimed(self) -> Optional[int]:
        while self._reclaimed:
            number = heapq.heappop(self._reclaimed)
            # Committed since it was reclaimed, for example by a resubmission
            if number >= self._last_uncommitted_number:
                return number
        return None

    async def _initialize(self):
        """Optional initializer. called by next_sequence_number if not called prior."""
        self._current_number = await self._current_sequence_number()
        self._last_uncommitted_number = self._current_number
        self._reclaimed = []

    async def synchronize(self):
        """
        Poll the network until all submitted transactions have either been committed or until
        the maximum wait time has elapsed. This will prevent any calls to next_sequence_number
        until this called has returned.
        """
        async with self._lock:
            await self._update()
            await self._resync(
                lambda acn: acn._last_uncommitted_number != acn._current_number
            )

    async def _resync(self, check: Callable[[AccountSequenceNumber], bool]):
        """Forces a resync with the upstream, this should be called within the lock"""
        start_time = await self._client.current_timestamp()
        failed = False
        while check(self):
            ledger_time = await self._client.current_timestamp()
            if ledger_time - start_time > self._maximum_wait_time:
                logging.warning(
                    f"Waited over {self._maximum_wait_time} seconds for a transaction to commit, resyncing {self._account}"
                )
                failed = True
                break
            else:
                await asyncio.sleep(self._sleep_time)
                await self._update()
        if not failed:
            return
        for seq_num in range(self._last_uncommitted_number + 1, self._current_number):
            while True:
                try:
                    result = (
                        await self._client.account_transaction_sequence_number_status(
                            self._account, seq_num
                        )
                    )
                    if result:
                        break
                except ApiError as error:
                    if error.status_code == 404:
                        break
                    raise
                await asyncio.sleep(self._sleep_time)
        await self._initialize()

    async def _update(self):
        self._last_uncommitted_number = await self._current_sequence_number()
        return self._last_uncommitted_number

    async def _current_sequence_number(self) -> int:
        return await self._client.account_sequence_number(self._account)


class Test(unittest.IsolatedAsyncioTestCase):
    def patch_sequence_number(self, value: int) -> unittest.mock.Mock:
        patcher = unittest.mock.patch(
            "aptos_txn.async_client.RestClient.account_sequence_number",
            return_value=value,
        )
        self.addCleanup(patcher.stop)
        return patcher.start()

    async def asyncSetUp(self):
        self.rest_client = RestClient("https://fullnode.devnet.example/v1")
        self.account = AccountAddress.from_str_relaxed("b0b")

    async def asyncTearDown(self):
        await self.rest_client.close()

    async def test_common_path(self):
        """
        Verifies that:
        * AccountSequenceNumber returns sequential numbers starting from 0
        * When the account has been updated on-chain include that in computations 100 -> 105
        * Ensure that none is returned if the call for next_sequence_number would block
        * Ensure that synchronize completes if the value matches on-chain
        """
        patcher = self.patch_sequence_number(0)
        account_sequence_number = AccountSequenceNumber(self.rest_client, self.account)
        last_seq_num = 0
        for seq_num in range(5):
            last_seq_num = await account_sequence_number.next_sequence_number()
            self.assertEqual(last_seq_num, seq_num)

        patcher.return_value = 5

        for seq_num in range(AccountSequenceNumber._maximum_in_flight):
            last_seq_num = await account_sequence_number.next_sequence_number()
            self.assertEqual(last_seq_num, seq_num + 5)

        self.assertEqual(
            await account_sequence_number.next_sequence_number(block=False), None
        )
        next_sequence_number = last_seq_num + 1
        patcher.return_value = next_sequence_number

        self.assertNotEqual(account_sequence_number._current_number, last_seq_num)
        await account_sequence_number.synchronize()
        self.assertEqual(account_sequence_number._current_number, next_sequence_number)

    async def test_concurrent_numbers_are_distinct(self):
        self.patch_sequence_number(42)
        account_sequence_number = AccountSequenceNumber(self.rest_client, self.account)
        numbers = await asyncio.gather(
            *[account_sequence_number.next_sequence_number() for _ in range(50)]
        )
        self.assertEqual(sorted(numbers), list(range(42, 92)))
        # FIFO with respect to callers
        self.assertEqual(list(numbers), list(range(42, 92)))

    async def test_reclaimed_numbers_are_reissued_first(self):
        self.patch_sequence_number(0)
        account_sequence_number = AccountSequenceNumber(self.rest_client, self.account)
        for _ in range(5):
            await account_sequence_number.next_sequence_number()

        account_sequence_number.reclaim(3)
        account_sequence_number.reclaim(1)
        account_sequence_number.reclaim(3)

        self.assertEqual(await account_sequence_number.next_sequence_number(), 1)
        self.assertEqual(await account_sequence_number.next_sequence_number(), 3)
        self.assertEqual(await account_sequence_number.next_sequence_number(), 5)

        # Never issued
        self.assertFalse(account_sequence_number.reclaim(6))
        self.assertEqual(account_sequence_number._reclaimed, [])

    async def test_reclaimed_numbers_below_chain_are_dropped(self):
        patcher = self.patch_sequence_number(0)
        config = AccountSequenceNumberConfig()
        config.maximum_in_flight = 3
        account_sequence_number = AccountSequenceNumber(
            self.rest_client, self.account, config
        )
        for _ in range(3):
            await account_sequence_number.next_sequence_number()
        # The window is full, so this refreshes the committed number
        patcher.return_value = 2
        self.assertEqual(await account_sequence_number.next_sequence_number(), 3)

        self.assertFalse(account_sequence_number.reclaim(0))
        self.assertTrue(account_sequence_number.reclaim(2))
        self.assertEqual(await account_sequence_number.next_sequence_number(), 2)
        self.assertEqual(account_sequence_number._reclaimed, [])

    async def test_resync_discards_reclaimed(self):
        self.patch_sequence_number(0)
        account_sequence_number = AccountSequenceNumber(self.rest_client, self.account)
        for _ in range(3):
            await account_sequence_number.next_sequence_number()
        account_sequence_number.reclaim(2)

        with unittest.mock.patch.object(
            RestClient, "current_timestamp", side_effect=[0.0, 100.0]
        ), unittest.mock.patch.object(
            RestClient, "account_transaction_sequence_number_status", return_value=True
        ) as status, self.assertLogs(
            level="WARNING"
        ):
            await account_sequence_number.synchronize()

        self.assertEqual(status.await_count, 2)
        self.assertEqual(account_sequence_number._reclaimed, [])
        # Issued before the resync, the counter has not reached it again
        self.assertFalse(account_sequence_number.reclaim(1))
        self.assertEqual(await account_sequence_number.next_sequence_number(), 0)


if __name__ == "__main__":
    unittest.main()
