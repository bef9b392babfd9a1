# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import asyncio
import unittest
import unittest.mock
from typing import Any, Dict, Optional

import httpx

from .account_address import AccountAddress
from .cache import AsyncTtlCache
from .metadata import Metadata
from .transactions import SignedTransaction

U64_MAX = 18446744073709551615


class ClientConfig:
    """Common configuration for clients, particularly for submitting transactions"""

    expiration_ttl: int = 600
    # None means the node's gas estimate is used
    gas_unit_price: Optional[int] = None
    max_gas_amount: int = 200_000
    transaction_wait_in_seconds: int = 20
    http2: bool = False
    abi_cache_ttl: int = 300
    gas_estimate_ttl: int = 300


class RestClient:
    """A wrapper around the Aptos-core Rest API"""

    _chain_id: Optional[int]
    cache: AsyncTtlCache
    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str

    def __init__(self, base_url: str, client_config: ClientConfig = ClientConfig()):
        self.base_url = base_url
        # Default limits
        limits = httpx.Limits()
        # Default timeouts but do not set a pool timeout, since the idea is that jobs will wait as
        # long as progress is being made.
        timeout = httpx.Timeout(60.0, pool=None)
        # Default headers
        headers = {Metadata.APTOS_HEADER: Metadata.get_aptos_header_val()}
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=limits,
            timeout=timeout,
            headers=headers,
        )
        self.client_config = client_config
        self.cache = AsyncTtlCache()
        self._chain_id = None

    async def close(self):
        await self.client.aclose()

    async def chain_id(self) -> int:
        if not self._chain_id:
            info = await self.info()
            self._chain_id = int(info["chain_id"])
        return self._chain_id

    #
    # Account accessors
    #

    async def account(
        self, account_address: AccountAddress, ledger_version: Optional[int] = None
    ) -> Dict[str, str]:
        """
        Fetch the authentication key and the sequence number for an account address.

        :param account_address: Address of the account, with or without a '0x' prefix.
        :param ledger_version: Ledger version to get state of account. If not provided, it will be the latest version.
        :return: The authentication key and sequence number for the specified address.
        """
        response = await self._get(
            endpoint=f"accounts/{account_address}",
            params={"ledger_version": ledger_version},
        )
        if response.status_code == 404:
            raise AccountNotFound(f"{response.text} - {account_address}", account_address)
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {account_address}", response.status_code)
        return response.json()

    async def account_sequence_number(
        self, account_address: AccountAddress, ledger_version: Optional[int] = None
    ) -> int:
        """
        Fetch the current sequence number for an account address.

        :param account_address: Address of the account, with or without a '0x' prefix.
        :param ledger_version: Ledger version to get state of account. If not provided, it will be the latest version.
        :return: The current sequence number for the specified address.
        """
        account_res = await self.account(account_address, ledger_version)
        return int(account_res["sequence_number"])

    async def account_module(
        self,
        account_address: AccountAddress,
        module_name: str,
        ledger_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Retrieves an individual module, bytecode and ABI, from a given account.

        :param account_address: Address of the account, with or without a '0x' prefix.
        :param module_name: Name of module to retrieve e.g. 'coin'
        :param ledger_version: Ledger version to get state of account. If not provided, it will be the latest version.
        :return: The module bytecode and its ABI under the "abi" key
        """
        response = await self._get(
            endpoint=f"accounts/{account_address}/module/{module_name}",
            params={"ledger_version": ledger_version},
        )
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {account_address}", response.status_code)

        return response.json()

    async def account_transaction_sequence_number_status(
        self, address: AccountAddress, sequence_number: int
    ) -> bool:
        """Retrieve the state of a transaction by account and sequence number."""
        response = await self._get(
            endpoint=f"accounts/{address}/transactions",
            params={
                "limit": 1,
                "start": sequence_number,
            },
        )
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        data = response.json()
        return len(data) == 1 and data[0]["type"] != "pending_transaction"

    #
    # Ledger accessors
    #

    async def info(self) -> Dict[str, str]:
        response = await self.client.get(self.base_url)
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()

    async def current_timestamp(self) -> float:
        info = await self.info()
        return float(info["ledger_timestamp"]) / 1_000_000

    async def estimate_gas_price(self) -> int:
        """The node's gas unit price estimate, memoized for `gas_estimate_ttl` seconds."""

        async def fetch() -> int:
            response = await self._get(endpoint="estimate_gas_price")
            if response.status_code >= 400:
                raise ApiError(response.text, response.status_code)
            return int(response.json()["gas_estimate"])

        return await self.cache.get_or_fetch(
            f"gas-price-{self.base_url}", self.client_config.gas_estimate_ttl, fetch
        )

    #
    # Transactions
    #

    async def simulate_bcs_transaction(
        self,
        signed_transaction: SignedTransaction,
        estimate_gas_usage: bool = False,
    ) -> Dict[str, Any]:
        headers = {"Content-Type": "application/x.aptos.signed_transaction+bcs"}
        params = {}
        if estimate_gas_usage:
            params = {
                "estimate_gas_unit_price": "true",
                "estimate_max_gas_amount": "true",
            }

        response = await self.client.post(
            f"{self.base_url}/transactions/simulate",
            params=params,
            headers=headers,
            content=signed_transaction.bytes(),
        )
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)

        return response.json()

    async def submit_bcs_transaction(
        self, signed_transaction: SignedTransaction
    ) -> str:
        headers = {"Content-Type": "application/x.aptos.signed_transaction+bcs"}
        response = await self.client.post(
            f"{self.base_url}/transactions",
            headers=headers,
            content=signed_transaction.bytes(),
        )
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()["hash"]

    async def transaction_pending(self, txn_hash: str) -> bool:
        response = await self._get(endpoint=f"transactions/by_hash/{txn_hash}")
        # A transaction the node has not seen yet is treated as still pending
        if response.status_code == 404:
            return True
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()["type"] == "pending_transaction"

    async def wait_for_transaction(self, txn_hash: str) -> Dict[str, Any]:
        """
        Waits up to the duration specified in client_config for a transaction to move past pending
        state, then returns the committed transaction. Raises ApiError if it did not succeed.
        """

        count = 0
        while await self.transaction_pending(txn_hash):
            if count >= self.client_config.transaction_wait_in_seconds:
                raise asyncio.TimeoutError(f"transaction {txn_hash} timed out")
            await asyncio.sleep(1)
            count += 1

        response = await self._get(endpoint=f"transactions/by_hash/{txn_hash}")
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        data = response.json()
        if not data.get("success"):
            raise ApiError(f"{response.text} - {txn_hash}", response.status_code)
        return data

    async def transaction_by_hash(self, txn_hash: str) -> Dict[str, Any]:
        response = await self._get(endpoint=f"transactions/by_hash/{txn_hash}")
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        # format params:
        params = {} if params is None else params
        params = {key: val for key, val in params.items() if val is not None}
        return await self.client.get(
            url=f"{self.base_url}/{endpoint}",
            params=params,
        )


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.status_code = status_code


class AccountNotFound(ApiError):
    """The account was not found"""

    account: AccountAddress

    def __init__(self, message: str, account: AccountAddress):
        super().__init__(message, 404)
        self.account = account


class Test(unittest.IsolatedAsyncioTestCase):
    BASE_URL = "https://node.example/v1"

    def client_with(self, handler) -> RestClient:
        rest_client = RestClient(self.BASE_URL)
        rest_client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return rest_client

    async def test_account_sequence_number(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/v1/accounts/0x1")
            return httpx.Response(200, json={"sequence_number": "42"})

        rest_client = self.client_with(handler)
        seq = await rest_client.account_sequence_number(AccountAddress.from_str("0x1"))
        self.assertEqual(seq, 42)
        await rest_client.close()

    async def test_account_not_found(self):
        rest_client = self.client_with(
            lambda request: httpx.Response(404, json={"error_code": "account_not_found"})
        )
        with self.assertRaises(AccountNotFound) as cm:
            await rest_client.account(AccountAddress.from_str("0x2"))
        self.assertEqual(cm.exception.status_code, 404)
        await rest_client.close()

    async def test_chain_id_is_cached(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"chain_id": 4, "ledger_timestamp": "2500000"})

        rest_client = self.client_with(handler)
        self.assertEqual(await rest_client.chain_id(), 4)
        self.assertEqual(await rest_client.chain_id(), 4)
        self.assertEqual(len(calls), 1)
        self.assertEqual(await rest_client.current_timestamp(), 2.5)
        await rest_client.close()

    async def test_gas_estimate_is_memoized(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"gas_estimate": 150})

        rest_client = self.client_with(handler)
        self.assertEqual(await rest_client.estimate_gas_price(), 150)
        self.assertEqual(await rest_client.estimate_gas_price(), 150)
        self.assertEqual(len(calls), 1)
        await rest_client.close()

    async def test_simulate_bcs_transaction(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=[{"success": True, "gas_used": "7"}])

        signed_transaction = unittest.mock.Mock(spec=SignedTransaction)
        signed_transaction.bytes.return_value = b"\x01\x02"
        rest_client = self.client_with(handler)

        result = await rest_client.simulate_bcs_transaction(signed_transaction)
        self.assertEqual(result, [{"success": True, "gas_used": "7"}])
        await rest_client.simulate_bcs_transaction(
            signed_transaction, estimate_gas_usage=True
        )

        (plain, estimated) = requests
        self.assertEqual(plain.url.path, "/v1/transactions/simulate")
        self.assertEqual(
            plain.headers["Content-Type"], "application/x.aptos.signed_transaction+bcs"
        )
        self.assertEqual(plain.content, b"\x01\x02")
        self.assertEqual(dict(plain.url.params), {})
        self.assertEqual(
            dict(estimated.url.params),
            {"estimate_gas_unit_price": "true", "estimate_max_gas_amount": "true"},
        )
        await rest_client.close()

    async def test_api_error(self):
        rest_client = self.client_with(lambda request: httpx.Response(500, text="bad"))
        with self.assertRaises(ApiError) as cm:
            await rest_client.transaction_by_hash("0xabc")
        self.assertEqual(cm.exception.status_code, 500)
        await rest_client.close()

    async def test_transaction_pending(self):
        responses = {
            "/v1/transactions/by_hash/0x1": httpx.Response(404),
            "/v1/transactions/by_hash/0x2": httpx.Response(
                200, json={"type": "pending_transaction"}
            ),
            "/v1/transactions/by_hash/0x3": httpx.Response(
                200, json={"type": "user_transaction", "success": True}
            ),
        }
        rest_client = self.client_with(lambda request: responses[request.url.path])
        self.assertTrue(await rest_client.transaction_pending("0x1"))
        self.assertTrue(await rest_client.transaction_pending("0x2"))
        self.assertFalse(await rest_client.transaction_pending("0x3"))
        data = await rest_client.wait_for_transaction("0x3")
        self.assertTrue(data["success"])
        await rest_client.close()

    async def test_sequence_number_status(self):
        rest_client = self.client_with(
            lambda request: httpx.Response(200, json=[{"type": "user_transaction"}])
        )
        self.assertTrue(
            await rest_client.account_transaction_sequence_number_status(
                AccountAddress.from_str("0x1"), 3
            )
        )
        await rest_client.close()


if __name__ == "__main__":
    unittest.main()
