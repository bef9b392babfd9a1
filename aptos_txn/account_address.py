# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import hashlib
import unittest
from typing import Union

from . import asymmetric_crypto, asymmetric_crypto_wrapper, ed25519, secp256k1_ecdsa
from .bcs import Deserializer, Serializer


class AuthKeyScheme:
    Ed25519: bytes = b"\x00"
    MultiEd25519: bytes = b"\x01"
    SingleKey: bytes = b"\x02"
    MultiKey: bytes = b"\x03"


class ParseAddressError(ValueError):
    """
    There was an error parsing an address.
    """


class AccountAddress:
    address: bytes
    LENGTH: int = 32

    def __init__(self, address: bytes):
        if len(address) != AccountAddress.LENGTH:
            raise ParseAddressError(
                f"Expected address of length 32, got {len(address)}"
            )
        self.address = bytes(address)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAddress):
            return NotImplemented
        return self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __str__(self):
        """
        AIP-40 representation: addresses 0x0 through 0xf are written in SHORT form, all
        others as 0x followed by 64 hex characters.
        """
        suffix = self.address.hex()
        if self.is_special():
            suffix = suffix.lstrip("0") or "0"
        return f"0x{suffix}"

    def __repr__(self):
        return self.__str__()

    def is_special(self) -> bool:
        return all(b == 0 for b in self.address[:-1]) and self.address[-1] < 0b10000

    @staticmethod
    def zero() -> AccountAddress:
        return AccountAddress(b"\x00" * AccountAddress.LENGTH)

    @staticmethod
    def from_str(address: str) -> AccountAddress:
        """
        Strict AIP-40 parsing: 0x plus 64 hex characters, or 0x0 through 0xf for the
        special addresses. Use `from_str_relaxed` to accept any 1-64 character form.
        """
        if not address.startswith("0x"):
            raise ParseAddressError("Hex string must start with a leading 0x.")

        out = AccountAddress.from_str_relaxed(address)
        if len(address) == AccountAddress.LENGTH * 2 + 2:
            return out
        if not out.is_special():
            raise ParseAddressError(
                "The given hex string is not a special address, it must be represented "
                "as 0x + 64 chars."
            )
        if len(address) != 3:
            raise ParseAddressError(
                "The given hex string is a special address not in LONG form, "
                "it must be 0x0 to 0xf without padding zeroes."
            )
        return out

    @staticmethod
    def from_str_relaxed(address: str) -> AccountAddress:
        """Accepts 1 to 64 hex characters with or without 0x, padding zeroes allowed."""
        addr = address[2:] if address[0:2] == "0x" else address

        if not 1 <= len(addr) <= AccountAddress.LENGTH * 2:
            raise ParseAddressError(
                "Hex string must be 1 to 64 chars long, excluding the leading 0x."
            )

        try:
            return AccountAddress(bytes.fromhex(addr.rjust(AccountAddress.LENGTH * 2, "0")))
        except ValueError as e:
            if isinstance(e, ParseAddressError):
                raise
            raise ParseAddressError(f"Invalid hex string: {address}") from e

    @staticmethod
    def from_any(value: Union[str, bytes, AccountAddress]) -> AccountAddress:
        if isinstance(value, AccountAddress):
            return value
        if isinstance(value, (bytes, bytearray)):
            return AccountAddress(bytes(value))
        if isinstance(value, str):
            return AccountAddress.from_str_relaxed(value)
        raise ParseAddressError(f"Cannot interpret {type(value).__name__} as an address")

    @staticmethod
    def is_valid(value: str) -> bool:
        try:
            AccountAddress.from_str_relaxed(value)
        except ParseAddressError:
            return False
        return True

    @staticmethod
    def from_key(key: asymmetric_crypto.PublicKey) -> AccountAddress:
        hasher = hashlib.sha3_256()
        hasher.update(key.to_crypto_bytes())

        if isinstance(key, ed25519.PublicKey):
            hasher.update(AuthKeyScheme.Ed25519)
        elif isinstance(key, ed25519.MultiPublicKey):
            hasher.update(AuthKeyScheme.MultiEd25519)
        elif isinstance(key, asymmetric_crypto_wrapper.PublicKey):
            hasher.update(AuthKeyScheme.SingleKey)
        elif isinstance(key, asymmetric_crypto_wrapper.MultiPublicKey):
            hasher.update(AuthKeyScheme.MultiKey)
        elif isinstance(key, secp256k1_ecdsa.PublicKey):
            return AccountAddress.from_key(asymmetric_crypto_wrapper.PublicKey(key))
        else:
            raise NotImplementedError(f"Unsupported public key type: {type(key)}")

        return AccountAddress(hasher.digest())

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AccountAddress:
        return AccountAddress(deserializer.fixed_bytes(AccountAddress.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.address)


class Test(unittest.TestCase):
    def test_multi_ed25519(self):
        private_key_1 = ed25519.PrivateKey.from_str(
            "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
        )
        private_key_2 = ed25519.PrivateKey.from_str(
            "1e70e49b78f976644e2c51754a2f049d3ff041869c669523ba95b172c7329901"
        )
        multisig_public_key = ed25519.MultiPublicKey(
            [private_key_1.public_key(), private_key_2.public_key()], 1
        )

        expected = AccountAddress.from_str_relaxed(
            "835bb8c5ee481062946b18bbb3b42a40b998d6bf5316ca63834c959dc739acf0"
        )
        self.assertEqual(AccountAddress.from_key(multisig_public_key), expected)

    def test_secp256k1_uses_single_key_scheme(self):
        public_key = secp256k1_ecdsa.PrivateKey.random().public_key()
        self.assertEqual(
            AccountAddress.from_key(public_key),
            AccountAddress.from_key(asymmetric_crypto_wrapper.PublicKey(public_key)),
        )

    def test_to_standard_string(self):
        for value, expected in [
            ("0x0000000000000000000000000000000000000000000000000000000000000000", "0x0"),
            ("0x0000000000000000000000000000000000000000000000000000000000000001", "0x1"),
            ("0x000000000000000000000000000000000000000000000000000000000000000f", "0xf"),
            ("d", "0xd"),
            (
                "0x0000000000000000000000000000000000000000000000000000000000000010",
                "0x0000000000000000000000000000000000000000000000000000000000000010",
            ),
            (
                "0f00000000000000000000000000000000000000000000000000000000000000",
                "0x0f00000000000000000000000000000000000000000000000000000000000000",
            ),
        ]:
            self.assertEqual(str(AccountAddress.from_str_relaxed(value)), expected)

    def test_from_str(self):
        self.assertEqual(str(AccountAddress.from_str("0x1")), "0x1")
        long_ten = "0x" + "0" * 62 + "10"
        self.assertEqual(str(AccountAddress.from_str(long_ten)), long_ten)

        for bad in ["1", "0x01", "0x10", "0x" + "0" * 63]:
            with self.assertRaises(ParseAddressError):
                AccountAddress.from_str(bad)

    def test_from_str_relaxed_errors(self):
        for bad in ["", "0x", "0x" + "1" * 65, "0xzz"]:
            with self.assertRaises(ParseAddressError):
                AccountAddress.from_str_relaxed(bad)
        self.assertFalse(AccountAddress.is_valid("0xzz"))
        self.assertTrue(AccountAddress.is_valid("0xcafe"))

    def test_from_any(self):
        addr = AccountAddress.from_str_relaxed("0xcafe")
        self.assertIs(AccountAddress.from_any(addr), addr)
        self.assertEqual(AccountAddress.from_any("cafe"), addr)
        self.assertEqual(AccountAddress.from_any(addr.address), addr)
        with self.assertRaises(ParseAddressError):
            AccountAddress.from_any(5)  # type: ignore[arg-type]

    def test_hashable(self):
        self.assertEqual(
            len({AccountAddress.from_str("0x1"), AccountAddress.from_str_relaxed("01")}),
            1,
        )

    def test_serialization(self):
        addr = AccountAddress.from_str_relaxed("0xcafe")
        ser = Serializer()
        addr.serialize(ser)
        self.assertEqual(len(ser.output()), 32)
        self.assertEqual(AccountAddress.deserialize(Deserializer(ser.output())), addr)


if __name__ == "__main__":
    unittest.main()
