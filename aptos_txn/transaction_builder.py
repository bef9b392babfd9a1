# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
The transaction creation lifecycle: generate a payload from an entry function and loosely
typed arguments, build an unsigned transaction from current chain state, derive the signing
message, and assemble signed transactions for submission or simulation.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
import unittest
from typing import Any, List, Optional, Union
from unittest.mock import patch

from . import asymmetric_crypto, secp256k1_ecdsa
from .account import Account
from .account_address import AccountAddress
from .async_client import AccountNotFound, ApiError, ClientConfig, RestClient
from .authenticator import (
    AccountAuthenticator,
    Authenticator,
    FeePayerAuthenticator,
    MultiAgentAuthenticator,
    NoAccountAuthenticator,
    SingleSenderAuthenticator,
)
from .bcs import Deserializer, Serializer
from .move_values import MoveValue
from .remote_abi import (
    MODULE_ADDRESS,
    AbiError,
    ArgumentCountMismatch,
    EntryFunctionABI,
    ViewFunctionABI,
    fetch_entry_function_abi,
    fetch_view_function_abi,
    fixture_module,
    generate_entry_function_arguments,
    split_function_id,
    standardize_type_tags,
)
from .transactions import (
    RAW_TRANSACTION_SALT,
    RAW_TRANSACTION_WITH_DATA_SALT,
    AnyRawTransaction,
    EntryFunction,
    FeePayerRawTransaction,
    MultiAgentRawTransaction,
    MultiAgentTransaction,
    Multisig,
    MultisigTransactionPayload,
    RawTransaction,
    RawTransactionInternal,
    Script,
    ScriptArgument,
    SignedTransaction,
    SimpleTransaction,
    TransactionPayload,
    simulated_authenticator,
)
from .type_tag import TypeTag


class TransactionOptions:
    """Per-transaction overrides, anything left as None comes from ClientConfig or the chain."""

    max_gas_amount: Optional[int]
    gas_unit_price: Optional[int]
    expiration_timestamps_secs: Optional[int]
    account_sequence_number: Optional[int]

    def __init__(
        self,
        max_gas_amount: Optional[int] = None,
        gas_unit_price: Optional[int] = None,
        expiration_timestamps_secs: Optional[int] = None,
        account_sequence_number: Optional[int] = None,
    ):
        self.max_gas_amount = max_gas_amount
        self.gas_unit_price = gas_unit_price
        self.expiration_timestamps_secs = expiration_timestamps_secs
        self.account_sequence_number = account_sequence_number


#
# Payloads
#


async def generate_transaction_payload(
    client: RestClient,
    function: str,
    type_arguments: Optional[List[Union[str, TypeTag]]] = None,
    function_arguments: Optional[List[Any]] = None,
    multisig_address: Optional[Union[str, AccountAddress]] = None,
    abi: Optional[EntryFunctionABI] = None,
    allow_unknown_structs: bool = False,
) -> TransactionPayload:
    """
    Builds an entry function payload, or a multisig payload wrapping one when
    `multisig_address` is given. Arguments are checked and converted against the remote ABI,
    which is fetched and memoized unless `abi` is passed in.
    """
    address, module, name = split_function_id(function)

    if abi is None:
        abi = await client.cache.get_or_fetch(
            f"entry-function-{client.base_url}-{address}-{module}-{name}",
            client.client_config.abi_cache_ttl,
            lambda: fetch_entry_function_abi(address, module, name, client),
        )

    entry_function = await build_entry_function(
        client,
        function,
        abi,
        type_arguments,
        function_arguments,
        allow_unknown_structs,
    )

    if multisig_address is not None:
        return TransactionPayload(
            Multisig(
                AccountAddress.from_any(multisig_address),
                MultisigTransactionPayload(entry_function),
            )
        )
    return TransactionPayload(entry_function)


async def generate_view_function_payload(
    client: RestClient,
    function: str,
    type_arguments: Optional[List[Union[str, TypeTag]]] = None,
    function_arguments: Optional[List[Any]] = None,
    abi: Optional[ViewFunctionABI] = None,
) -> EntryFunction:
    address, module, name = split_function_id(function)

    if abi is None:
        abi = await client.cache.get_or_fetch(
            f"view-function-{client.base_url}-{address}-{module}-{name}",
            client.client_config.abi_cache_ttl,
            lambda: fetch_view_function_abi(address, module, name, client),
        )

    return await build_entry_function(
        client, function, abi, type_arguments, function_arguments
    )


async def build_entry_function(
    client: Optional[RestClient],
    function: str,
    abi: Union[EntryFunctionABI, ViewFunctionABI],
    type_arguments: Optional[List[Union[str, TypeTag]]],
    function_arguments: Optional[List[Any]],
    allow_unknown_structs: bool = False,
) -> EntryFunction:
    address, module, name = split_function_id(function)
    ty_args = standardize_type_tags(type_arguments)
    args = await generate_entry_function_arguments(
        function,
        abi,
        ty_args,
        function_arguments or [],
        client,
        allow_unknown_structs,
    )
    return EntryFunction.natural(f"{address}::{module}", name, ty_args, args)


def generate_script_payload(
    code: bytes,
    type_arguments: Optional[List[Union[str, TypeTag]]] = None,
    arguments: Optional[List[ScriptArgument]] = None,
) -> TransactionPayload:
    return TransactionPayload(
        Script(code, standardize_type_tags(type_arguments), arguments or [])
    )


#
# Raw transactions
#


async def generate_raw_transaction(
    client: RestClient,
    sender: Union[str, AccountAddress],
    payload: TransactionPayload,
    options: Optional[TransactionOptions] = None,
    sponsored: bool = False,
) -> RawTransaction:
    """
    Fills in whatever `options` leaves out. The sequence number, chain id and gas estimate are
    fetched concurrently. A sponsored sender that does not exist on chain yet starts at
    sequence number 0.
    """
    options = options or TransactionOptions()
    config = client.client_config
    sender = AccountAddress.from_any(sender)

    async def sequence_number() -> int:
        if options.account_sequence_number is not None:
            return options.account_sequence_number
        try:
            return await client.account_sequence_number(sender)
        except AccountNotFound:
            if not sponsored:
                raise
            logging.info(f"Sponsored account {sender} does not exist yet, using 0")
            return 0

    async def gas_unit_price() -> int:
        if options.gas_unit_price is not None:
            return options.gas_unit_price
        if config.gas_unit_price is not None:
            return config.gas_unit_price
        return await client.estimate_gas_price()

    seq, chain_id, gas_price = await asyncio.gather(
        sequence_number(), client.chain_id(), gas_unit_price()
    )

    max_gas_amount = (
        config.max_gas_amount
        if options.max_gas_amount is None
        else options.max_gas_amount
    )
    expiration = options.expiration_timestamps_secs
    if expiration is None:
        expiration = int(time.time()) + config.expiration_ttl

    return RawTransaction(
        sender,
        seq,
        payload,
        max_gas_amount,
        gas_price,
        expiration,
        chain_id,
    )


async def build_transaction(
    client: RestClient,
    sender: Union[str, AccountAddress],
    payload: TransactionPayload,
    options: Optional[TransactionOptions] = None,
    secondary_signer_addresses: Optional[List[Union[str, AccountAddress]]] = None,
    fee_payer_address: Optional[Union[str, AccountAddress]] = None,
    with_fee_payer: bool = False,
) -> AnyRawTransaction:
    """
    `with_fee_payer` marks the transaction as sponsored before the sponsor is known: the
    fee payer address stays 0x0 until the sponsor fills it in.
    """
    fee_payer = None
    if fee_payer_address is not None:
        fee_payer = AccountAddress.from_any(fee_payer_address)
    elif with_fee_payer:
        fee_payer = AccountAddress.zero()

    raw_transaction = await generate_raw_transaction(
        client, sender, payload, options, sponsored=fee_payer is not None
    )

    if secondary_signer_addresses is not None:
        return MultiAgentTransaction(
            raw_transaction,
            [AccountAddress.from_any(signer) for signer in secondary_signer_addresses],
            fee_payer,
        )
    return SimpleTransaction(raw_transaction, fee_payer)


def derive_transaction_type(transaction: AnyRawTransaction) -> RawTransactionInternal:
    if transaction.fee_payer_address is not None:
        return FeePayerRawTransaction(
            transaction.raw_transaction,
            transaction.secondary_signer_addresses or [],
            transaction.fee_payer_address,
        )
    if transaction.secondary_signer_addresses is not None:
        return MultiAgentRawTransaction(
            transaction.raw_transaction, transaction.secondary_signer_addresses
        )
    return transaction.raw_transaction


#
# Signing messages
#


def generate_signing_message_for_bytes(data: bytes, domain_separator: str) -> bytes:
    if not domain_separator.startswith("APTOS::"):
        raise ValueError(
            f"Domain separator needs to start with 'APTOS::'. Provided - {domain_separator}"
        )
    hasher = hashlib.sha3_256()
    hasher.update(domain_separator.encode())
    return hasher.digest() + data


def generate_signing_message_for_serializable(serializable: Any) -> bytes:
    """Signing message using the value's class name as the domain separator."""
    ser = Serializer()
    serializable.serialize(ser)
    return generate_signing_message_for_bytes(
        ser.output(), f"APTOS::{type(serializable).__name__}"
    )


def generate_signing_message(transaction: AnyRawTransaction) -> bytes:
    to_sign = derive_transaction_type(transaction)
    ser = Serializer()
    to_sign.serialize(ser)
    if isinstance(to_sign, RawTransaction):
        salt = RAW_TRANSACTION_SALT
    else:
        salt = RAW_TRANSACTION_WITH_DATA_SALT
    return generate_signing_message_for_bytes(ser.output(), salt.decode())


#
# Signed transactions
#


def sign_transaction(account: Account, transaction: AnyRawTransaction) -> AccountAuthenticator:
    return account.sign_transaction(derive_transaction_type(transaction))


def generate_signed_transaction(
    transaction: AnyRawTransaction,
    sender_authenticator: AccountAuthenticator,
    fee_payer_authenticator: Optional[AccountAuthenticator] = None,
    additional_signers_authenticators: Optional[List[AccountAuthenticator]] = None,
) -> SignedTransaction:
    raw_transaction = transaction.raw_transaction

    if transaction.fee_payer_address is not None:
        if fee_payer_authenticator is None:
            raise ValueError(
                "Must provide a fee_payer_authenticator to generate a signed fee payer transaction"
            )
        return SignedTransaction(
            raw_transaction,
            Authenticator(
                FeePayerAuthenticator(
                    sender_authenticator,
                    transaction.secondary_signer_addresses or [],
                    additional_signers_authenticators or [],
                    transaction.fee_payer_address,
                    fee_payer_authenticator,
                )
            ),
        )

    if transaction.secondary_signer_addresses is not None:
        if additional_signers_authenticators is None:
            raise ValueError(
                "Must provide additional_signers_authenticators to generate a signed "
                "multi agent transaction"
            )
        return SignedTransaction(
            raw_transaction,
            Authenticator(
                MultiAgentAuthenticator(
                    sender_authenticator,
                    transaction.secondary_signer_addresses,
                    additional_signers_authenticators,
                )
            ),
        )

    if sender_authenticator.variant in (
        AccountAuthenticator.ED25519,
        AccountAuthenticator.MULTI_ED25519,
    ):
        authenticator = Authenticator(sender_authenticator.authenticator)
    elif sender_authenticator.variant in (
        AccountAuthenticator.SINGLE_KEY,
        AccountAuthenticator.MULTI_KEY,
    ):
        authenticator = Authenticator(SingleSenderAuthenticator(sender_authenticator))
    else:
        raise ValueError(
            f"Cannot generate a signed transaction, {sender_authenticator} is not a "
            "supported account authentication scheme"
        )
    return SignedTransaction(raw_transaction, authenticator)


def get_authenticator_for_simulation(
    public_key: Optional[asymmetric_crypto.PublicKey],
) -> AccountAuthenticator:
    if public_key is None:
        return AccountAuthenticator(NoAccountAuthenticator())
    return simulated_authenticator(public_key)


def generate_signed_transaction_for_simulation(
    transaction: AnyRawTransaction,
    signer_public_key: asymmetric_crypto.PublicKey,
    secondary_signers_public_keys: Optional[
        List[Optional[asymmetric_crypto.PublicKey]]
    ] = None,
    fee_payer_public_key: Optional[asymmetric_crypto.PublicKey] = None,
) -> SignedTransaction:
    """
    A signed transaction whose signatures are all zero. Secondary signers and a fee payer
    without a known public key are represented by NoAccountAuthenticator.
    """
    sender_authenticator = get_authenticator_for_simulation(signer_public_key)

    secondary_authenticators = None
    if transaction.secondary_signer_addresses is not None:
        public_keys = secondary_signers_public_keys
        if public_keys is None:
            public_keys = [None] * len(transaction.secondary_signer_addresses)
        secondary_authenticators = [
            get_authenticator_for_simulation(key) for key in public_keys
        ]

    fee_payer_authenticator = None
    if transaction.fee_payer_address is not None:
        fee_payer_authenticator = get_authenticator_for_simulation(fee_payer_public_key)

    return generate_signed_transaction(
        transaction,
        sender_authenticator,
        fee_payer_authenticator,
        secondary_authenticators,
    )


SENDER_KEY = "9bf49a6a0755f953811fce125f2683d50429c3bb49e074147e0089a52eae155f"

PLAY_ARGUMENTS = [
    "7",
    2**40,
    "false",
    "0x1",
    "hi",
    "[1, 2]",
    "name",
    None,
    AccountAddress.from_str("0x3"),
    "9",
]


def fixture_raw_transaction() -> RawTransaction:
    return RawTransaction(
        Account.load_key(SENDER_KEY).address(),
        11,
        generate_script_payload(b"\xa1\x1c\xeb\x0b"),
        2000,
        100,
        1234567890,
        4,
    )


async def fixture_modules(address: AccountAddress, module: str, ledger_version=None):
    if module == "game":
        return {"abi": fixture_module()}
    raise ApiError(f"Module not found - {address}::{module}", 404)


class Test(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.client = RestClient("https://fullnode.devnet.example/v1", ClientConfig())
        self.account = Account.load_key(SENDER_KEY)
        self.patches = [
            patch.object(RestClient, "account_sequence_number", return_value=7),
            patch.object(RestClient, "chain_id", return_value=4),
            patch.object(RestClient, "estimate_gas_price", return_value=150),
        ]
        self.sequence_number, self.chain_id, self.gas_price = [
            p.start() for p in self.patches
        ]

    async def asyncTearDown(self):
        for p in self.patches:
            p.stop()
        await self.client.close()

    async def test_raw_transaction_defaults(self):
        payload = generate_script_payload(b"\x00")
        with patch("time.time", return_value=1000.0):
            raw = await generate_raw_transaction(
                self.client, str(self.account.address()), payload
            )

        self.sequence_number.assert_awaited_once_with(self.account.address())
        self.assertEqual(raw.sender, self.account.address())
        self.assertEqual(raw.sequence_number, 7)
        self.assertEqual(raw.chain_id, 4)
        self.assertEqual(raw.gas_unit_price, 150)
        self.assertEqual(raw.max_gas_amount, 200_000)
        self.assertEqual(raw.expiration_timestamps_secs, 1600)
        self.assertEqual(raw.payload, payload)

    async def test_raw_transaction_options(self):
        options = TransactionOptions(
            max_gas_amount=10,
            gas_unit_price=1,
            expiration_timestamps_secs=55,
            account_sequence_number=9,
        )
        raw = await generate_raw_transaction(
            self.client, self.account.address(), generate_script_payload(b""), options
        )
        self.sequence_number.assert_not_awaited()
        self.gas_price.assert_not_awaited()
        self.assertEqual(
            (raw.sequence_number, raw.max_gas_amount, raw.gas_unit_price),
            (9, 10, 1),
        )
        self.assertEqual(raw.expiration_timestamps_secs, 55)

    async def test_configured_gas_price(self):
        config = ClientConfig()
        config.gas_unit_price = 5
        client = RestClient("https://fullnode.devnet.example/v1", config)
        raw = await generate_raw_transaction(
            client, self.account.address(), generate_script_payload(b"")
        )
        await client.close()
        self.gas_price.assert_not_awaited()
        self.assertEqual(raw.gas_unit_price, 5)

    async def test_sponsored_sender_without_account(self):
        self.sequence_number.side_effect = AccountNotFound(
            "Account not found", self.account.address()
        )
        payload = generate_script_payload(b"")

        with self.assertLogs(level="INFO"):
            transaction = await build_transaction(
                self.client, self.account.address(), payload, with_fee_payer=True
            )
        self.assertIsInstance(transaction, SimpleTransaction)
        self.assertEqual(transaction.fee_payer_address, AccountAddress.zero())
        self.assertEqual(transaction.raw_transaction.sequence_number, 0)

        with self.assertRaises(AccountNotFound):
            await build_transaction(self.client, self.account.address(), payload)

    async def test_build_multi_agent(self):
        transaction = await build_transaction(
            self.client,
            self.account.address(),
            generate_script_payload(b""),
            secondary_signer_addresses=["0x2"],
            fee_payer_address="0x3",
        )
        self.assertIsInstance(transaction, MultiAgentTransaction)
        self.assertEqual(
            transaction.secondary_signer_addresses, [AccountAddress.from_str("0x2")]
        )
        self.assertEqual(transaction.fee_payer_address, AccountAddress.from_str("0x3"))
        self.assertIsInstance(derive_transaction_type(transaction), FeePayerRawTransaction)

    def test_signing_messages(self):
        raw = fixture_raw_transaction()
        simple = SimpleTransaction(raw)
        multi_agent = MultiAgentTransaction(raw, [])
        sponsored = SimpleTransaction(raw, AccountAddress.from_str("0x5"))

        self.assertEqual(generate_signing_message(simple), raw.keyed())
        self.assertEqual(
            generate_signing_message(simple),
            generate_signing_message(SimpleTransaction(fixture_raw_transaction())),
        )
        self.assertEqual(
            generate_signing_message(multi_agent),
            MultiAgentRawTransaction(raw, []).keyed(),
        )
        self.assertNotEqual(
            generate_signing_message(multi_agent)[:32],
            generate_signing_message(simple)[:32],
        )
        self.assertEqual(generate_signing_message(sponsored)[32], 1)
        self.assertEqual(generate_signing_message_for_serializable(raw), raw.keyed())
        with self.assertRaises(ValueError):
            generate_signing_message_for_bytes(b"", "OTHER::RawTransaction")

    def test_single_signer(self):
        raw = fixture_raw_transaction()
        transaction = SimpleTransaction(raw)
        signed = generate_signed_transaction(
            transaction, sign_transaction(self.account, transaction)
        )
        self.assertEqual(signed.authenticator.variant, Authenticator.ED25519)
        self.assertTrue(signed.verify())

        secp_account = Account.generate_secp256k1_ecdsa()
        signed = generate_signed_transaction(
            transaction, sign_transaction(secp_account, transaction)
        )
        self.assertEqual(signed.authenticator.variant, Authenticator.SINGLE_SENDER)
        self.assertTrue(signed.verify())

        with self.assertRaises(ValueError):
            generate_signed_transaction(
                transaction, AccountAuthenticator(NoAccountAuthenticator())
            )

    def test_multi_agent(self):
        second = Account.generate()
        transaction = MultiAgentTransaction(
            fixture_raw_transaction(), [second.address()]
        )
        sender_auth = sign_transaction(self.account, transaction)
        second_auth = sign_transaction(second, transaction)

        with self.assertRaises(ValueError):
            generate_signed_transaction(transaction, sender_auth)
        with self.assertRaises(ValueError):
            generate_signed_transaction(
                transaction, sender_auth, additional_signers_authenticators=[]
            )

        signed = generate_signed_transaction(
            transaction, sender_auth, additional_signers_authenticators=[second_auth]
        )
        self.assertEqual(signed.authenticator.variant, Authenticator.MULTI_AGENT)
        self.assertTrue(signed.verify())

    def test_fee_payer(self):
        sponsor = Account.generate_secp256k1_ecdsa()
        transaction = SimpleTransaction(fixture_raw_transaction(), sponsor.address())
        sender_auth = sign_transaction(self.account, transaction)

        with self.assertRaises(ValueError):
            generate_signed_transaction(transaction, sender_auth)

        signed = generate_signed_transaction(
            transaction, sender_auth, sign_transaction(sponsor, transaction)
        )
        self.assertEqual(signed.authenticator.variant, Authenticator.FEE_PAYER)
        self.assertTrue(signed.verify())

    def test_simulation(self):
        raw = fixture_raw_transaction()

        simulated = generate_signed_transaction_for_simulation(
            SimpleTransaction(raw), self.account.public_key()
        )
        self.assertEqual(simulated.authenticator.variant, Authenticator.ED25519)
        self.assertEqual(
            simulated.authenticator.authenticator.signature.data(), b"\x00" * 64
        )
        self.assertFalse(simulated.verify())

        simulated = generate_signed_transaction_for_simulation(
            SimpleTransaction(raw, AccountAddress.zero()), self.account.public_key()
        )
        fee_payer = simulated.authenticator.authenticator.fee_payer
        self.assertEqual(fee_payer.variant, AccountAuthenticator.NO_ACCOUNT_AUTHENTICATOR)
        self.assertEqual(
            SignedTransaction.deserialize(Deserializer(simulated.bytes())), simulated
        )

        secp_key = secp256k1_ecdsa.PrivateKey.random().public_key()
        simulated = generate_signed_transaction_for_simulation(
            MultiAgentTransaction(
                raw, [AccountAddress.from_str("0x2"), AccountAddress.from_str("0x3")]
            ),
            self.account.public_key(),
            [secp_key, None],
        )
        secondary = simulated.authenticator.authenticator.secondary_signers
        self.assertEqual(secondary[0].variant, AccountAuthenticator.SINGLE_KEY)
        self.assertEqual(
            secondary[1].variant, AccountAuthenticator.NO_ACCOUNT_AUTHENTICATOR
        )

    async def test_entry_function_payload(self):
        function = f"{MODULE_ADDRESS}::game::play"
        with patch.object(
            RestClient, "account_module", side_effect=fixture_modules
        ) as account_module:
            payload = await generate_transaction_payload(
                self.client, function, ["u16"], PLAY_ARGUMENTS
            )
            again = await generate_transaction_payload(
                self.client, function, ["u16"], PLAY_ARGUMENTS
            )

        self.assertEqual(account_module.await_count, 1)
        self.assertEqual(payload, again)
        self.assertEqual(payload.variant, TransactionPayload.ENTRY_FUNCTION)
        entry_function = payload.value
        self.assertEqual(entry_function.function, "play")
        self.assertEqual(entry_function.ty_args, [TypeTag.from_str("u16")])
        self.assertEqual(len(entry_function.args), 10)
        self.assertEqual(entry_function.args[0], b"\x07")
        self.assertEqual(entry_function.args[1], (2**40).to_bytes(8, "little"))
        self.assertEqual(entry_function.args[7], b"\x00")

    async def test_multisig_payload(self):
        multisig_address = "0x" + "12" * 32
        with patch.object(RestClient, "account_module", side_effect=fixture_modules):
            payload = await generate_transaction_payload(
                self.client,
                f"{MODULE_ADDRESS}::game::play",
                ["u16"],
                PLAY_ARGUMENTS,
                multisig_address=multisig_address,
            )
        self.assertEqual(payload.variant, TransactionPayload.MULTISIG)
        self.assertEqual(
            payload.value.multisig_address, AccountAddress.from_str(multisig_address)
        )
        self.assertEqual(payload.value.transaction_payload.entry_function.function, "play")

    async def test_struct_argument_payload(self):
        function = f"{MODULE_ADDRESS}::game::place"
        with patch.object(RestClient, "account_module", side_effect=fixture_modules):
            payload = await generate_transaction_payload(
                self.client, function, [], [{"row": "1", "col": "2"}]
            )
            with self.assertRaisesRegex(ArgumentCountMismatch, "Too few arguments"):
                await generate_transaction_payload(self.client, function, [], [])

        self.assertEqual(payload.value.args, [b"\x01\x02"])

    async def test_payload_with_known_abi(self):
        abi = EntryFunctionABI(
            [{"constraints": []}],
            [TypeTag.from_str("address"), TypeTag.from_str("u64")],
        )
        with patch.object(RestClient, "account_module") as account_module:
            payload = await generate_transaction_payload(
                self.client,
                "0x1::coin::transfer",
                ["0x1::aptos_coin::AptosCoin"],
                ["0x2", 100],
                abi=abi,
            )
        account_module.assert_not_called()
        self.assertEqual(
            payload.value.args,
            [MoveValue.address("0x2").to_bytes(), MoveValue.u64(100).to_bytes()],
        )

    async def test_view_function_payload(self):
        with patch.object(RestClient, "account_module", side_effect=fixture_modules):
            entry_function = await generate_view_function_payload(
                self.client, f"{MODULE_ADDRESS}::game::score", [], ["0x1"]
            )
            with self.assertRaises(AbiError):
                await generate_view_function_payload(
                    self.client, f"{MODULE_ADDRESS}::game::play", ["u8"], []
                )
        self.assertEqual(entry_function.function, "score")
        self.assertEqual(entry_function.args, [AccountAddress.from_str("0x1").address])


if __name__ == "__main__":
    unittest.main()
