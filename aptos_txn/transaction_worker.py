# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import collections
import logging
import time
import typing
import unittest
import unittest.mock

import httpx

from .account import Account
from .account_address import AccountAddress
from .account_sequence_number import AccountSequenceNumber, AccountSequenceNumberConfig
from .async_client import ApiError, RestClient
from .bcs import Serializer
from .transaction_builder import (
    TransactionOptions,
    build_transaction,
    generate_signed_transaction,
    sign_transaction,
)
from .transactions import (
    EntryFunction,
    SignedTransaction,
    TransactionArgument,
    TransactionPayload,
)


class TransactionExpired(Exception):
    """A submitted transaction passed its expiration without being committed."""

    txn_hash: str
    sequence_number: int

    def __init__(self, txn_hash: str, sequence_number: int):
        super().__init__(
            f"Transaction {txn_hash} with sequence number {sequence_number} expired"
        )
        self.txn_hash = txn_hash
        self.sequence_number = sequence_number


class WorkerStopped(Exception):
    pass


class TransactionWorkerConfig:
    """Common configuration for the transaction worker"""

    maximum_pending: int = 100
    poll_interval: float = 1.0
    transaction_options: typing.Optional[TransactionOptions] = None


class PendingTransaction:
    txn_hash: str
    sequence_number: int
    expiration: int
    future: asyncio.Future

    def __init__(
        self,
        txn_hash: str,
        sequence_number: int,
        expiration: int,
        future: asyncio.Future,
    ):
        self.txn_hash = txn_hash
        self.sequence_number = sequence_number
        self.expiration = expiration
        self.future = future


QueuedPayload = typing.Tuple[
    TransactionPayload, typing.Optional[TransactionOptions], asyncio.Future
]


class TransactionWorker:
    """
    The TransactionWorker receives payloads, acquires sequence numbers for them, then builds,
    signs and submits the transactions. A single loop task polls the account's on-chain
    sequence number and resolves each push once its transaction is committed, or rejects it
    once it expires.

    * At most `maximum_pending` transactions are submitting or awaiting confirmation, the rest
      wait in a FIFO queue.
    * A sequence number that was never broadcast, or whose transaction expired, is handed back
      to the allocator and reused by the next push.
    * Stopping rejects queued pushes with WorkerStopped and lets in flight ones finish.

    Note: a committed transaction may still have aborted during execution, the worker only
    tracks that the sequence number was consumed.
    """

    _account: Account
    _account_sequence_number: AccountSequenceNumber
    _rest_client: RestClient
    _maximum_pending: int
    _poll_interval: float
    _transaction_options: typing.Optional[TransactionOptions]

    _started: bool
    _stopped: bool
    _queue: typing.Deque[QueuedPayload]
    _pending: typing.List[PendingTransaction]
    _submitting: int
    _submit_tasks: typing.Set[asyncio.Task]
    _wake: asyncio.Event
    _loop_task: typing.Optional[asyncio.Task]
    _failure: typing.Optional[Exception]

    def __init__(
        self,
        account: Account,
        rest_client: RestClient,
        config: TransactionWorkerConfig = TransactionWorkerConfig(),
        sequence_number_config: AccountSequenceNumberConfig = AccountSequenceNumberConfig(),
    ):
        self._account = account
        self._account_sequence_number = AccountSequenceNumber(
            rest_client, account.address(), sequence_number_config
        )
        self._rest_client = rest_client
        self._maximum_pending = config.maximum_pending
        self._poll_interval = config.poll_interval
        self._transaction_options = config.transaction_options

        self._started = False
        self._stopped = False
        self._queue = collections.deque()
        self._pending = []
        self._submitting = 0
        self._submit_tasks = set()
        self._wake = asyncio.Event()
        self._loop_task = None
        self._failure = None

    def address(self) -> AccountAddress:
        return self._account.address()

    def push(
        self,
        payload: TransactionPayload,
        options: typing.Optional[TransactionOptions] = None,
    ) -> asyncio.Future:
        """
        Returns a future that resolves to the transaction hash once the transaction is
        committed.
        """
        if self._stopped:
            raise WorkerStopped("Worker no longer accepts transactions")
        future = asyncio.get_running_loop().create_future()
        self._queue.append((payload, options, future))
        if self._started:
            self._drain()
        self._wake.set()
        return future

    def clear(self):
        """Drop every queued payload that has not been submitted yet"""
        while self._queue:
            (_, _, future) = self._queue.popleft()
            future.cancel()

    def start(self):
        """Begin the task for managing transactions"""
        if self._started:
            raise Exception("Already started")
        self._started = True
        self._drain()
        self._loop_task = asyncio.create_task(self._run())

    def stop(self):
        """Stop accepting transactions, anything already submitted is still tracked"""
        if not self._started:
            raise Exception("Start not yet called")
        if self._stopped:
            raise Exception("Already stopped")
        self._stopped = True

        while self._queue:
            (_, _, future) = self._queue.popleft()
            if not future.done():
                future.set_exception(WorkerStopped("Worker stopped before submission"))
        self._wake.set()

    async def join(self):
        """Wait for the loop to exit, that is after stop once in flight work is done"""
        if self._loop_task is None:
            raise Exception("Start not yet called")
        await self._loop_task

    def _in_flight(self) -> int:
        return self._submitting + len(self._pending)

    def _drain(self):
        while self._queue and self._in_flight() < self._maximum_pending:
            (payload, options, future) = self._queue.popleft()
            if future.done():
                continue
            self._submitting += 1
            task = asyncio.create_task(self._submit(payload, options, future))
            self._submit_tasks.add(task)
            task.add_done_callback(self._submit_tasks.discard)

    def _options(
        self, options: typing.Optional[TransactionOptions], sequence_number: int
    ) -> TransactionOptions:
        options = options or self._transaction_options or TransactionOptions()
        return TransactionOptions(
            max_gas_amount=options.max_gas_amount,
            gas_unit_price=options.gas_unit_price,
            expiration_timestamps_secs=options.expiration_timestamps_secs,
            account_sequence_number=sequence_number,
        )

    async def _submit(
        self,
        payload: TransactionPayload,
        options: typing.Optional[TransactionOptions],
        future: asyncio.Future,
    ):
        try:
            try:
                sequence_number = (
                    await self._account_sequence_number.next_sequence_number()
                )
            except Exception as e:
                _reject(future, e)
                return

            try:
                transaction = await build_transaction(
                    self._rest_client,
                    self.address(),
                    payload,
                    self._options(options, sequence_number),
                )
                signed_transaction = generate_signed_transaction(
                    transaction, sign_transaction(self._account, transaction)
                )
                txn_hash = await self._rest_client.submit_bcs_transaction(
                    signed_transaction
                )
            except Exception as e:
                try:
                    self._reclaim(sequence_number, e)
                finally:
                    _reject(future, e)
                return

            if self._failure is not None:
                _reject(future, self._failure)
                return
            self._pending.append(
                PendingTransaction(
                    txn_hash,
                    sequence_number,
                    transaction.raw_transaction.expiration_timestamps_secs,
                    future,
                )
            )
        finally:
            self._submitting -= 1
            self._wake.set()

    def _reclaim(self, sequence_number: int, reason: Exception):
        if self._account_sequence_number.reclaim(sequence_number):
            logging.info(
                f"Reclaiming sequence number {sequence_number} for {self.address()}: {reason}"
            )

    async def _poll(self):
        try:
            on_chain = await self._rest_client.account_sequence_number(self.address())
        except (ApiError, httpx.HTTPError) as e:
            logging.warning(
                f"Unable to fetch the sequence number for {self.address()}, retrying: {e}"
            )
            return

        now = time.time()
        still_pending = []
        for pending in self._pending:
            if on_chain > pending.sequence_number:
                if not pending.future.done():
                    pending.future.set_result(pending.txn_hash)
            elif now > pending.expiration:
                error = TransactionExpired(pending.txn_hash, pending.sequence_number)
                try:
                    self._reclaim(pending.sequence_number, error)
                finally:
                    _reject(pending.future, error)
            else:
                still_pending.append(pending)
        self._pending = still_pending

    async def _run(self):
        try:
            while True:
                if not self._pending and not self._queue:
                    if self._stopped and self._submitting == 0:
                        return
                    self._wake.clear()
                    await self._wake.wait()
                    continue

                if self._pending:
                    await self._poll()
                self._drain()
                await asyncio.sleep(self._poll_interval)
        except Exception as e:
            logging.error(e, exc_info=True)
            # Submissions still running reject themselves against _failure
            self._failure = e
            self._stopped = True
            for pending in self._pending:
                _reject(pending.future, e)
            self._pending = []
            for (_, _, future) in self._queue:
                _reject(future, e)
            self._queue.clear()


def _reject(future: asyncio.Future, error: BaseException):
    if not future.done():
        future.set_exception(error)


class FakeChain:
    """Commits every contiguous sequence number that has been submitted."""

    def __init__(self):
        self.submitted: typing.List[int] = []
        self.failures: typing.Set[int] = set()
        self.hold = False

    def on_chain(self) -> int:
        number = 0
        while not self.hold and number in self.submitted:
            number += 1
        return number

    async def account_sequence_number(self, address: AccountAddress) -> int:
        return self.on_chain()

    async def submit_bcs_transaction(self, signed_transaction: SignedTransaction) -> str:
        sequence_number = signed_transaction.transaction.sequence_number
        if sequence_number in self.failures:
            self.failures.remove(sequence_number)
            raise ApiError("sequence number too old", 400)
        self.submitted.append(sequence_number)
        return f"0x{sequence_number:02x}"


class Test(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.chain = FakeChain()
        self.rest_client = RestClient("https://fullnode.devnet.example/v1")
        for name, value in [
            ("account_sequence_number", self.chain.account_sequence_number),
            ("submit_bcs_transaction", self.chain.submit_bcs_transaction),
        ]:
            patcher = unittest.mock.patch.object(RestClient, name, side_effect=value)
            self.addCleanup(patcher.stop)
            patcher.start()
        for name, value in [("chain_id", 4), ("estimate_gas_price", 100)]:
            patcher = unittest.mock.patch.object(RestClient, name, return_value=value)
            self.addCleanup(patcher.stop)
            patcher.start()

        config = TransactionWorkerConfig()
        config.poll_interval = 0.01
        self.worker = TransactionWorker(Account.generate(), self.rest_client, config)
        transaction_arguments = [
            TransactionArgument(AccountAddress.from_str_relaxed("b0b"), Serializer.struct),
            TransactionArgument(100, Serializer.u64),
        ]
        self.payload = TransactionPayload(
            EntryFunction.natural(
                "0x1::aptos_account",
                "transfer",
                [],
                transaction_arguments,
            )
        )

    async def asyncTearDown(self):
        await self.rest_client.close()

    async def finish(self):
        self.worker.stop()
        await asyncio.wait_for(self.worker.join(), 5)

    async def test_common_path(self):
        self.worker.start()
        futures = [self.worker.push(self.payload) for _ in range(3)]
        hashes = await asyncio.wait_for(asyncio.gather(*futures), 5)
        self.assertEqual(hashes, ["0x00", "0x01", "0x02"])
        self.assertEqual(sorted(self.chain.submitted), [0, 1, 2])
        await self.finish()

    async def test_submission_failure_reclaims_number(self):
        self.chain.failures.add(0)
        self.worker.start()
        first = self.worker.push(self.payload)
        second = self.worker.push(self.payload)
        with self.assertLogs(level="INFO") as logs:
            with self.assertRaises(ApiError):
                await asyncio.wait_for(first, 5)
        self.assertIn("Reclaiming sequence number 0", logs.output[0])

        third = self.worker.push(self.payload)
        hashes = await asyncio.wait_for(asyncio.gather(second, third), 5)
        self.assertEqual(hashes, ["0x01", "0x00"])
        self.assertEqual(self.chain.submitted, [1, 0])
        await self.finish()

    async def test_expired_transaction_is_rejected(self):
        self.chain.hold = True
        self.worker.start()
        future = self.worker.push(
            self.payload, TransactionOptions(expiration_timestamps_secs=1)
        )
        with self.assertRaises(TransactionExpired) as context:
            await asyncio.wait_for(future, 5)
        self.assertEqual(context.exception.sequence_number, 0)
        self.assertEqual(context.exception.txn_hash, "0x00")
        self.assertEqual(self.worker._account_sequence_number._reclaimed, [0])
        await self.finish()

    async def test_submission_failure_after_resync(self):
        allocator = self.worker._account_sequence_number
        attempts = []

        async def resync_then_fail(signed_transaction: SignedTransaction) -> str:
            attempts.append(signed_transaction.transaction.sequence_number)
            if len(attempts) == 1:
                # The counter restarts at the on-chain value, 0, so 0 was never issued
                await allocator._initialize()
                raise ApiError("mempool is full", 400)
            return await self.chain.submit_bcs_transaction(signed_transaction)

        self.worker.start()
        with unittest.mock.patch.object(
            RestClient, "submit_bcs_transaction", side_effect=resync_then_fail
        ):
            with self.assertRaises(ApiError):
                await asyncio.wait_for(self.worker.push(self.payload), 2)
            self.assertEqual(allocator._reclaimed, [])

            txn_hash = await asyncio.wait_for(self.worker.push(self.payload), 2)
        self.assertEqual(txn_hash, "0x00")
        self.assertEqual(attempts, [0, 0])
        await self.finish()

    async def test_loop_failure_stops_worker(self):
        self.chain.hold = True
        self.worker.start()
        with unittest.mock.patch.object(
            self.worker, "_poll", side_effect=RuntimeError("poll crashed")
        ), self.assertLogs(level="ERROR"):
            with self.assertRaises(RuntimeError):
                await asyncio.wait_for(self.worker.push(self.payload), 2)
            await asyncio.wait_for(self.worker.join(), 2)

        with self.assertRaises(WorkerStopped):
            self.worker.push(self.payload)

    async def test_poll_failure_is_retried(self):
        calls = []

        async def flaky(address: AccountAddress) -> int:
            calls.append(address)
            # The first call seeds the allocator, the second is the first poll
            if len(calls) == 2:
                raise ApiError("unavailable", 503)
            return self.chain.on_chain()

        self.worker.start()
        with unittest.mock.patch.object(
            RestClient, "account_sequence_number", side_effect=flaky
        ), self.assertLogs(level="WARNING"):
            txn_hash = await asyncio.wait_for(self.worker.push(self.payload), 5)
        self.assertEqual(txn_hash, "0x00")
        self.assertGreaterEqual(len(calls), 3)
        await self.finish()

    async def test_queue_is_bounded(self):
        config = TransactionWorkerConfig()
        config.maximum_pending = 1
        config.poll_interval = 0.01
        worker = TransactionWorker(Account.generate(), self.rest_client, config)
        worker.start()
        futures = [worker.push(self.payload) for _ in range(3)]
        self.assertEqual(worker._in_flight(), 1)
        self.assertEqual(len(worker._queue), 2)
        hashes = await asyncio.wait_for(asyncio.gather(*futures), 5)
        self.assertEqual(hashes, ["0x00", "0x01", "0x02"])
        worker.stop()
        await asyncio.wait_for(worker.join(), 5)

    async def test_stop_rejects_queued(self):
        config = TransactionWorkerConfig()
        config.maximum_pending = 1
        config.poll_interval = 0.01
        worker = TransactionWorker(Account.generate(), self.rest_client, config)
        first = worker.push(self.payload)
        second = worker.push(self.payload)
        worker.start()
        worker.stop()

        with self.assertRaises(WorkerStopped):
            await second
        with self.assertRaises(WorkerStopped):
            worker.push(self.payload)
        self.assertEqual(await asyncio.wait_for(first, 5), "0x00")
        await asyncio.wait_for(worker.join(), 5)

    async def test_clear(self):
        futures = [self.worker.push(self.payload) for _ in range(2)]
        self.worker.clear()
        self.assertTrue(all(future.cancelled() for future in futures))
        self.worker.start()
        await self.finish()
        self.assertEqual(self.chain.submitted, [])


if __name__ == "__main__":
    unittest.main()
