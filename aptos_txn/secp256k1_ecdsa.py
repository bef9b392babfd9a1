# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import hashlib
import unittest

from ecdsa import SECP256k1, BadSignatureError, SigningKey, VerifyingKey, util

from . import asymmetric_crypto
from .asymmetric_crypto import KeyLengthError, parse_hex
from .bcs import Deserializer, Serializer


class PrivateKey(asymmetric_crypto.PrivateKey):
    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self):
        return self.hex()

    @staticmethod
    def from_bytes_raw(key: bytes) -> PrivateKey:
        return PrivateKey(SigningKey.from_string(key, SECP256k1, hashlib.sha3_256))

    @staticmethod
    def from_str(value: str) -> PrivateKey:
        return PrivateKey.from_bytes_raw(parse_hex(value, PrivateKey.LENGTH))

    def hex(self) -> str:
        return f"0x{self.key.to_string().hex()}"

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verifying_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(
            SigningKey.generate(curve=SECP256k1, hashfunc=hashlib.sha3_256)
        )

    def sign(self, data: bytes) -> Signature:
        sig = self.key.sign_deterministic(data, hashfunc=hashlib.sha3_256)
        n = SECP256k1.generator.order()
        r, s = util.sigdecode_string(sig, n)
        # Only the low-s form is accepted on chain.
        if s > (n // 2):
            sig = util.sigencode_string(r, (-s) % n, n)
        return Signature(sig)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PrivateKey:
        key = deserializer.to_bytes()
        if len(key) != PrivateKey.LENGTH:
            raise KeyLengthError(
                f"Secp256k1 private key must be 32 bytes, got {len(key)}"
            )
        return PrivateKey.from_bytes_raw(key)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.to_string())


class PublicKey(asymmetric_crypto.PublicKey):
    LENGTH: int = 64
    LENGTH_WITH_PREFIX_LENGTH: int = 65

    key: VerifyingKey

    def __init__(self, key: VerifyingKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self) -> str:
        return self.hex()

    @staticmethod
    def from_raw(key: bytes) -> PublicKey:
        if len(key) == PublicKey.LENGTH_WITH_PREFIX_LENGTH:
            # Uncompressed SEC1 prefix.
            key = key[1:]
        if len(key) != PublicKey.LENGTH:
            raise KeyLengthError(
                f"Secp256k1 public key must be 64 or 65 bytes, got {len(key)}"
            )
        return PublicKey(VerifyingKey.from_string(key, SECP256k1, hashlib.sha3_256))

    @staticmethod
    def from_str(value: str) -> PublicKey:
        return PublicKey.from_raw(
            parse_hex(value, PublicKey.LENGTH, PublicKey.LENGTH_WITH_PREFIX_LENGTH)
        )

    def hex(self) -> str:
        return f"0x{self.to_crypto_bytes().hex()}"

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        try:
            return self.key.verify(signature.data(), data)
        except BadSignatureError:
            return False

    def to_crypto_bytes(self) -> bytes:
        return b"\x04" + self.key.to_string()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        return PublicKey.from_raw(deserializer.to_bytes())

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.to_crypto_bytes())


class Signature(asymmetric_crypto.Signature):
    LENGTH: int = 64

    signature: bytes

    def __init__(self, signature: bytes):
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return self.hex()

    def hex(self) -> str:
        return f"0x{self.signature.hex()}"

    @staticmethod
    def from_str(value: str) -> Signature:
        return Signature(parse_hex(value, Signature.LENGTH))

    @staticmethod
    def zero() -> Signature:
        return Signature(b"\x00" * Signature.LENGTH)

    def data(self) -> bytes:
        return self.signature

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        signature = deserializer.to_bytes()
        if len(signature) != Signature.LENGTH:
            raise KeyLengthError(
                f"Secp256k1 signature must be 64 bytes, got {len(signature)}"
            )
        return Signature(signature)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.signature)


class Test(unittest.TestCase):
    def test_vectors(self):
        private_key_hex = (
            "0x306fa009600e27c09d2659145ce1785249360dd5fb992da01a578fe67ed607f4"
        )
        public_key_hex = (
            "0x04210c9129e35337ff5d6488f90f18d842cf985f06e0baeff8df4bfb2ac4221863"
            "e2631b971a237b5db0aa71188e33250732dd461d56ee623cbe0426a5c2db79ef"
        )
        signature_hex = (
            "0xa539b0973e76fa99b2a864eebd5da950b4dfb399c7afe57ddb34130e454fc9db"
            "04dceb2c3d4260b8cc3d3952ab21b5d36c7dc76277fe3747764e6762d12bd9a9"
        )
        data = b"Hello world"

        private_key = PrivateKey.from_str(private_key_hex)
        local_public_key = private_key.public_key()
        self.assertEqual(local_public_key.hex(), public_key_hex)

        original_public_key = PublicKey.from_str(public_key_hex)
        self.assertTrue(original_public_key.verify(data, private_key.sign(data)))
        self.assertTrue(
            original_public_key.verify(data, Signature.from_str(signature_hex))
        )
        self.assertFalse(original_public_key.verify(data, Signature.zero()))

    def test_low_s(self):
        private_key = PrivateKey.random()
        n = SECP256k1.generator.order()
        for message in [b"a", b"b", b"c", b"d"]:
            _, s = util.sigdecode_string(private_key.sign(message).data(), n)
            self.assertLessEqual(s, n // 2)

    def test_serialization(self):
        private_key = PrivateKey.random()
        self.assertEqual(PrivateKey.from_bytes(private_key.to_bytes()), private_key)

        public_key = private_key.public_key()
        encoded = public_key.to_bytes()
        self.assertEqual(len(encoded), 66)
        self.assertEqual(PublicKey.from_bytes(encoded), public_key)

        signature = private_key.sign(b"another_message")
        self.assertEqual(Signature.from_bytes(signature.to_bytes()), signature)

    def test_bad_lengths(self):
        with self.assertRaises(KeyLengthError):
            PublicKey.from_str("0x0400")
        with self.assertRaises(KeyLengthError):
            Signature.from_bytes(b"\x02\x00\x00")


if __name__ == "__main__":
    unittest.main()
