# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import unittest
from typing import List, Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

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
        return self.key == other.key

    def __str__(self):
        return self.hex()

    @staticmethod
    def from_str(value: str) -> PrivateKey:
        return PrivateKey(SigningKey(parse_hex(value, PrivateKey.LENGTH)))

    def hex(self) -> str:
        return f"0x{self.key.encode().hex()}"

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verify_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate())

    def sign(self, data: bytes) -> Signature:
        return Signature(self.key.sign(data).signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PrivateKey:
        key = deserializer.to_bytes()
        if len(key) != PrivateKey.LENGTH:
            raise KeyLengthError(f"Ed25519 private key must be 32 bytes, got {len(key)}")
        return PrivateKey(SigningKey(key))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.encode())


class PublicKey(asymmetric_crypto.PublicKey):
    LENGTH: int = 32

    key: VerifyKey

    def __init__(self, key: VerifyKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self) -> str:
        return f"0x{self.key.encode().hex()}"

    @staticmethod
    def from_str(value: str) -> PublicKey:
        return PublicKey(VerifyKey(parse_hex(value, PublicKey.LENGTH)))

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        try:
            self.key.verify(data, signature.data())
        except BadSignatureError:
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.key.encode()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        key = deserializer.to_bytes()
        if len(key) != PublicKey.LENGTH:
            raise KeyLengthError(f"Ed25519 public key must be 32 bytes, got {len(key)}")
        return PublicKey(VerifyKey(key))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.encode())


class MultiPublicKey(asymmetric_crypto.PublicKey):
    """Legacy k-of-n MultiEd25519 key: concatenated keys followed by the threshold."""

    keys: List[PublicKey]
    threshold: int

    MIN_KEYS = 2
    MAX_KEYS = 32
    MIN_THRESHOLD = 1

    def __init__(self, keys: List[PublicKey], threshold: int):
        if not self.MIN_KEYS <= len(keys) <= self.MAX_KEYS:
            raise ValueError(
                f"Must have between {self.MIN_KEYS} and {self.MAX_KEYS} keys."
            )
        if not self.MIN_THRESHOLD <= threshold <= len(keys):
            raise ValueError(
                f"Threshold must be between {self.MIN_THRESHOLD} and {len(keys)}."
            )

        self.keys = keys
        self.threshold = threshold

    def __eq__(self, other: object):
        if not isinstance(other, MultiPublicKey):
            return NotImplemented
        return self.keys == other.keys and self.threshold == other.threshold

    def __str__(self) -> str:
        return f"{self.threshold}-of-{len(self.keys)} Multi-Ed25519 public key"

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, MultiSignature):
            return False
        if len(signature.signatures) < self.threshold:
            return False
        for idx, inner in signature.signatures:
            if idx >= len(self.keys) or not self.keys[idx].verify(data, inner):
                return False
        return True

    @staticmethod
    def from_crypto_bytes(indata: bytes) -> MultiPublicKey:
        total_keys = len(indata) // PublicKey.LENGTH
        keys = [
            PublicKey(VerifyKey(indata[idx * PublicKey.LENGTH : (idx + 1) * PublicKey.LENGTH]))
            for idx in range(total_keys)
        ]
        return MultiPublicKey(keys, indata[-1])

    def to_crypto_bytes(self) -> bytes:
        key_bytes = bytearray()
        for key in self.keys:
            key_bytes.extend(key.to_crypto_bytes())
        key_bytes.append(self.threshold)
        return bytes(key_bytes)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiPublicKey:
        return MultiPublicKey.from_crypto_bytes(deserializer.to_bytes())

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
        return f"0x{self.signature.hex()}"

    @staticmethod
    def zero() -> Signature:
        """Placeholder used when simulating, the node skips verification."""
        return Signature(b"\x00" * Signature.LENGTH)

    def data(self) -> bytes:
        return self.signature

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        signature = deserializer.to_bytes()
        if len(signature) != Signature.LENGTH:
            raise KeyLengthError(
                f"Ed25519 signature must be 64 bytes, got {len(signature)}"
            )
        return Signature(signature)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.signature)


class MultiSignature(asymmetric_crypto.Signature):
    """Signatures by key index plus a big-endian 32-bit bitmap of the signing indices."""

    signatures: List[Tuple[int, Signature]]
    BITMAP_NUM_OF_BYTES: int = 4

    def __init__(self, signatures: List[Tuple[int, Signature]]):
        for idx, _ in signatures:
            if idx >= self.BITMAP_NUM_OF_BYTES * 8:
                raise ValueError("bitmap value exceeds maximum value")
        self.signatures = sorted(signatures, key=lambda entry: entry[0])

    def __eq__(self, other: object):
        if not isinstance(other, MultiSignature):
            return NotImplemented
        return self.signatures == other.signatures

    def __str__(self) -> str:
        return f"{self.signatures}"

    @staticmethod
    def from_key_map(
        public_key: MultiPublicKey,
        signatures_map: List[Tuple[PublicKey, Signature]],
    ) -> MultiSignature:
        return MultiSignature(
            [(public_key.keys.index(key), signature) for key, signature in signatures_map]
        )

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiSignature:
        signature_bytes = deserializer.to_bytes()
        count = len(signature_bytes) // Signature.LENGTH
        if count * Signature.LENGTH + MultiSignature.BITMAP_NUM_OF_BYTES != len(
            signature_bytes
        ):
            raise KeyLengthError("MultiSignature length is invalid")

        bitmap = int.from_bytes(signature_bytes[-4:], "big")
        positions = [pos for pos in range(32) if bitmap & (1 << (31 - pos))]
        if len(positions) != count:
            raise ValueError("MultiSignature bitmap does not match signature count")

        signatures = []
        for current, position in enumerate(positions):
            left = current * Signature.LENGTH
            signatures.append(
                (position, Signature(signature_bytes[left : left + Signature.LENGTH]))
            )
        return MultiSignature(signatures)

    def serialize(self, serializer: Serializer):
        signature_bytes = bytearray()
        bitmap = 0

        for idx, signature in self.signatures:
            bitmap |= 1 << (31 - idx)
            signature_bytes.extend(signature.data())

        signature_bytes.extend(
            bitmap.to_bytes(MultiSignature.BITMAP_NUM_OF_BYTES, "big")
        )
        serializer.to_bytes(bytes(signature_bytes))


class Test(unittest.TestCase):
    def test_sign_and_verify(self):
        private_key = PrivateKey.random()
        public_key = private_key.public_key()

        signature = private_key.sign(b"test_message")
        self.assertTrue(public_key.verify(b"test_message", signature))
        self.assertFalse(public_key.verify(b"other_message", signature))
        self.assertFalse(public_key.verify(b"test_message", Signature.zero()))

    def test_key_serialization(self):
        private_key = PrivateKey.random()
        self.assertEqual(PrivateKey.from_bytes(private_key.to_bytes()), private_key)
        public_key = private_key.public_key()
        self.assertEqual(PublicKey.from_bytes(public_key.to_bytes()), public_key)
        self.assertEqual(PrivateKey.from_str(private_key.hex()), private_key)

    def test_bad_lengths(self):
        with self.assertRaises(KeyLengthError):
            PublicKey.from_bytes(b"\x02\x00\x00")
        with self.assertRaises(KeyLengthError):
            Signature.from_bytes(b"\x01\x00")
        with self.assertRaises(KeyLengthError):
            PrivateKey.from_str("0x1234")

    def test_multisig(self):
        private_key_1 = PrivateKey.from_str(
            "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
        )
        private_key_2 = PrivateKey.from_str(
            "1e70e49b78f976644e2c51754a2f049d3ff041869c669523ba95b172c7329901"
        )
        multisig_public_key = MultiPublicKey(
            [private_key_1.public_key(), private_key_2.public_key()], 1
        )
        expected_public_key_bcs = (
            "41754bb6a4720a658bdd5f532995955db0971ad3519acbde2f1149c3857348006c"
            "1634cd4607073f2be4a6f2aadc2b866ddb117398a675f2096ed906b20e0bf2c901"
        )
        self.assertEqual(multisig_public_key.to_bytes().hex(), expected_public_key_bcs)
        self.assertEqual(
            MultiPublicKey.from_bytes(multisig_public_key.to_bytes()),
            multisig_public_key,
        )

        signature = private_key_2.sign(b"multisig")
        multisig_signature = MultiSignature.from_key_map(
            multisig_public_key, [(private_key_2.public_key(), signature)]
        )
        expected_multisig_signature_bcs = (
            "4402e90d8f300d79963cb7159ffa6f620f5bba4af5d32a7176bfb5480b43897cf"
            "4886bbb4042182f4647c9b04f02dbf989966f0facceec52d22bdcc7ce631bfc0c"
            "40000000"
        )
        self.assertEqual(
            multisig_signature.to_bytes().hex(), expected_multisig_signature_bcs
        )
        self.assertEqual(
            MultiSignature.from_bytes(bytes.fromhex(expected_multisig_signature_bcs)),
            multisig_signature,
        )
        self.assertTrue(multisig_public_key.verify(b"multisig", multisig_signature))
        self.assertFalse(multisig_public_key.verify(b"other", multisig_signature))

    def test_multisig_range_checks(self):
        keys = [
            PrivateKey.random().public_key() for _ in range(MultiPublicKey.MAX_KEYS + 1)
        ]
        with self.assertRaisesRegex(ValueError, "Must have between 2 and 32 keys."):
            MultiPublicKey([keys[0]], 1)
        with self.assertRaisesRegex(ValueError, "Must have between 2 and 32 keys."):
            MultiPublicKey(keys, 1)
        with self.assertRaisesRegex(ValueError, "Threshold must be between 1 and 4."):
            MultiPublicKey(keys[0:4], 0)
        with self.assertRaisesRegex(ValueError, "Threshold must be between 1 and 4."):
            MultiPublicKey(keys[0:4], 5)
        with self.assertRaises(ValueError):
            MultiSignature([(32, Signature.zero())])


if __name__ == "__main__":
    unittest.main()
