# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import tempfile
import unittest
from typing import Union

from . import asymmetric_crypto, ed25519, secp256k1_ecdsa
from .account_address import AccountAddress
from .authenticator import AccountAuthenticator
from .transactions import RawTransactionInternal

PrivateKey = Union[ed25519.PrivateKey, secp256k1_ecdsa.PrivateKey]


class Account:
    """Represents an account as well as the private, public key-pair for the Aptos blockchain."""

    account_address: AccountAddress
    private_key: asymmetric_crypto.PrivateKey

    def __init__(
        self, account_address: AccountAddress, private_key: asymmetric_crypto.PrivateKey
    ):
        self.account_address = account_address
        self.private_key = private_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return (
            self.account_address == other.account_address
            and self.private_key == other.private_key
        )

    @staticmethod
    def generate() -> Account:
        private_key = ed25519.PrivateKey.random()
        account_address = AccountAddress.from_key(private_key.public_key())
        return Account(account_address, private_key)

    @staticmethod
    def generate_secp256k1_ecdsa() -> Account:
        private_key = secp256k1_ecdsa.PrivateKey.random()
        account_address = AccountAddress.from_key(private_key.public_key())
        return Account(account_address, private_key)

    @staticmethod
    def load_key(key: str) -> Account:
        private_key = ed25519.PrivateKey.from_str(key)
        account_address = AccountAddress.from_key(private_key.public_key())
        return Account(account_address, private_key)

    @staticmethod
    def load(path: str) -> Account:
        with open(path) as file:
            data = json.load(file)
        if data.get("scheme") == "secp256k1_ecdsa":
            private_key: PrivateKey = secp256k1_ecdsa.PrivateKey.from_str(
                data["private_key"]
            )
        else:
            private_key = ed25519.PrivateKey.from_str(data["private_key"])
        return Account(AccountAddress.from_str_relaxed(data["account_address"]), private_key)

    def store(self, path: str):
        scheme = (
            "secp256k1_ecdsa"
            if isinstance(self.private_key, secp256k1_ecdsa.PrivateKey)
            else "ed25519"
        )
        data = {
            "account_address": str(self.account_address),
            "private_key": self.private_key.hex(),
            "scheme": scheme,
        }
        with open(path, "w") as file:
            json.dump(data, file)

    def address(self) -> AccountAddress:
        """Returns the address associated with the given account"""

        return self.account_address

    def auth_key(self) -> str:
        """Returns the auth_key for the associated account"""
        return str(AccountAddress.from_key(self.private_key.public_key()))

    def sign(self, data: bytes) -> asymmetric_crypto.Signature:
        return self.private_key.sign(data)

    def sign_transaction(
        self, transaction: RawTransactionInternal
    ) -> AccountAuthenticator:
        return transaction.sign(self.private_key)

    def sign_simulated_transaction(
        self, transaction: RawTransactionInternal
    ) -> AccountAuthenticator:
        return transaction.sign_simulated(self.private_key.public_key())

    def public_key(self) -> asymmetric_crypto.PublicKey:
        """Returns the public key for the associated account"""

        return self.private_key.public_key()


class Test(unittest.TestCase):
    def test_load_and_store(self):
        for start in [Account.generate(), Account.generate_secp256k1_ecdsa()]:
            (file, path) = tempfile.mkstemp()
            start.store(path)
            load = Account.load(path)

            self.assertEqual(start, load)
            # Auth key and Account address should be the same at start
            self.assertEqual(str(start.address()), start.auth_key())

    def test_key(self):
        message = b"test message"
        for account in [Account.generate(), Account.generate_secp256k1_ecdsa()]:
            signature = account.sign(message)
            self.assertTrue(account.public_key().verify(message, signature))

    def test_load_key(self):
        account = Account.load_key(
            "9bf49a6a0755f953811fce125f2683d50429c3bb49e074147e0089a52eae155f"
        )
        self.assertEqual(
            str(account.address()),
            "0x7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d6",
        )


if __name__ == "__main__":
    unittest.main()
