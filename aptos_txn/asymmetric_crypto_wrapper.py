# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Scheme-tagged keys and signatures used by the SingleKey and MultiKey authenticators.
"""

from __future__ import annotations

import unittest
from typing import List, Tuple

from . import asymmetric_crypto, ed25519, secp256k1_ecdsa
from .bcs import Deserializer, Serializer


class PublicKey(asymmetric_crypto.PublicKey):
    ED25519: int = 0
    SECP256K1_ECDSA: int = 1

    variant: int
    public_key: asymmetric_crypto.PublicKey

    def __init__(self, public_key: asymmetric_crypto.PublicKey):
        if isinstance(public_key, ed25519.PublicKey):
            self.variant = PublicKey.ED25519
        elif isinstance(public_key, secp256k1_ecdsa.PublicKey):
            self.variant = PublicKey.SECP256K1_ECDSA
        else:
            raise NotImplementedError(f"Unsupported public key: {type(public_key)}")
        self.public_key = public_key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.variant == other.variant and self.public_key == other.public_key

    def __str__(self) -> str:
        return str(self.public_key)

    def to_crypto_bytes(self) -> bytes:
        return self.to_bytes()

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if isinstance(signature, Signature):
            signature = signature.signature
        return self.public_key.verify(data, signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        variant = deserializer.uleb128()

        if variant == PublicKey.ED25519:
            public_key: asymmetric_crypto.PublicKey = ed25519.PublicKey.deserialize(
                deserializer
            )
        elif variant == PublicKey.SECP256K1_ECDSA:
            public_key = secp256k1_ecdsa.PublicKey.deserialize(deserializer)
        else:
            raise ValueError(f"Invalid public key variant: {variant}")

        return PublicKey(public_key)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.public_key)


class Signature(asymmetric_crypto.Signature):
    ED25519: int = 0
    SECP256K1_ECDSA: int = 1

    variant: int
    signature: asymmetric_crypto.Signature

    def __init__(self, signature: asymmetric_crypto.Signature):
        if isinstance(signature, ed25519.Signature):
            self.variant = Signature.ED25519
        elif isinstance(signature, secp256k1_ecdsa.Signature):
            self.variant = Signature.SECP256K1_ECDSA
        else:
            raise NotImplementedError(f"Unsupported signature: {type(signature)}")
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.variant == other.variant and self.signature == other.signature

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        variant = deserializer.uleb128()

        if variant == Signature.ED25519:
            signature: asymmetric_crypto.Signature = ed25519.Signature.deserialize(
                deserializer
            )
        elif variant == Signature.SECP256K1_ECDSA:
            signature = secp256k1_ecdsa.Signature.deserialize(deserializer)
        else:
            raise ValueError(f"Invalid signature variant: {variant}")

        return Signature(signature)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.signature)


class MultiPublicKey(asymmetric_crypto.PublicKey):
    """A k-of-n set of scheme-tagged keys, any mix of Ed25519 and Secp256k1."""

    keys: List[PublicKey]
    threshold: int

    MIN_KEYS = 1
    MAX_KEYS = 32
    MIN_THRESHOLD = 1

    def __init__(self, keys: List[asymmetric_crypto.PublicKey], threshold: int):
        if not self.MIN_KEYS <= len(keys) <= self.MAX_KEYS:
            raise ValueError(
                f"Must have between {self.MIN_KEYS} and {self.MAX_KEYS} keys."
            )
        if not self.MIN_THRESHOLD <= threshold <= len(keys):
            raise ValueError(
                f"Threshold must be between {self.MIN_THRESHOLD} and {len(keys)}."
            )

        self.keys = [key if isinstance(key, PublicKey) else PublicKey(key) for key in keys]
        self.threshold = threshold

    def __eq__(self, other: object):
        if not isinstance(other, MultiPublicKey):
            return NotImplemented
        return self.keys == other.keys and self.threshold == other.threshold

    def __str__(self) -> str:
        return f"{self.threshold}-of-{len(self.keys)} MultiKey public key"

    def index_of(self, key: asymmetric_crypto.PublicKey) -> int:
        wrapped = key if isinstance(key, PublicKey) else PublicKey(key)
        for idx, candidate in enumerate(self.keys):
            if candidate == wrapped:
                return idx
        raise ValueError(f"Public key {key} not found in multi key set")

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, MultiSignature):
            return False
        if len(signature.signatures) < self.threshold:
            return False
        for idx, inner in signature.signatures:
            if idx >= len(self.keys) or not self.keys[idx].verify(data, inner):
                return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.to_bytes()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiPublicKey:
        keys = deserializer.sequence(PublicKey.deserialize)
        threshold = deserializer.u8()
        return MultiPublicKey(keys, threshold)

    def serialize(self, serializer: Serializer):
        serializer.sequence(self.keys, Serializer.struct)
        serializer.u8(self.threshold)


class MultiSignature(asymmetric_crypto.Signature):
    """
    Signatures ordered by signer index. The bitmap is four bytes where index i sets bit
    `128 >> (i % 8)` of byte `i // 8`.
    """

    BITMAP_NUM_OF_BYTES: int = 4
    MAX_SIGNATURES: int = BITMAP_NUM_OF_BYTES * 8

    signatures: List[Tuple[int, Signature]]

    def __init__(self, signatures: List[Tuple[int, asymmetric_crypto.Signature]]):
        if len(signatures) > self.MAX_SIGNATURES:
            raise ValueError(
                f"The number of signatures cannot be greater than {self.MAX_SIGNATURES}"
            )
        seen = set()
        normalized = []
        for idx, signature in signatures:
            if idx < 0 or idx >= self.MAX_SIGNATURES:
                raise ValueError(f"Signer index {idx} exceeds bitmap size")
            if idx in seen:
                raise ValueError(f"Duplicate bit {idx} detected.")
            seen.add(idx)
            if not isinstance(signature, Signature):
                signature = Signature(signature)
            normalized.append((idx, signature))
        self.signatures = sorted(normalized, key=lambda entry: entry[0])

    def __eq__(self, other: object):
        if not isinstance(other, MultiSignature):
            return NotImplemented
        return self.signatures == other.signatures

    def bitmap(self) -> bytes:
        bitmap = bytearray(self.BITMAP_NUM_OF_BYTES)
        for idx, _ in self.signatures:
            bitmap[idx // 8] |= 128 >> (idx % 8)
        return bytes(bitmap)

    @staticmethod
    def indices_from_bitmap(bitmap: bytes) -> List[int]:
        return [
            idx
            for idx in range(len(bitmap) * 8)
            if bitmap[idx // 8] & (128 >> (idx % 8))
        ]

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiSignature:
        signatures = deserializer.sequence(Signature.deserialize)
        bitmap = deserializer.to_bytes()
        if len(bitmap) != MultiSignature.BITMAP_NUM_OF_BYTES:
            raise ValueError(
                f"Bitmap length should be {MultiSignature.BITMAP_NUM_OF_BYTES}"
            )
        indices = MultiSignature.indices_from_bitmap(bitmap)
        if len(indices) != len(signatures):
            raise ValueError(
                f"Expecting {len(indices)} signatures from the bitmap, "
                f"but got {len(signatures)}"
            )
        return MultiSignature(list(zip(indices, signatures)))

    def serialize(self, serializer: Serializer):
        serializer.sequence([sig for _, sig in self.signatures], Serializer.struct)
        serializer.to_bytes(self.bitmap())


class Test(unittest.TestCase):
    def test_any_public_key(self):
        ed_key = ed25519.PrivateKey.random().public_key()
        wrapped = PublicKey(ed_key)
        encoded = wrapped.to_bytes()
        self.assertEqual(encoded[0], PublicKey.ED25519)
        self.assertEqual(PublicKey.from_bytes(encoded), wrapped)

        secp_key = secp256k1_ecdsa.PrivateKey.random().public_key()
        wrapped = PublicKey(secp_key)
        encoded = wrapped.to_bytes()
        self.assertEqual(encoded[0], PublicKey.SECP256K1_ECDSA)
        self.assertEqual(PublicKey.from_bytes(encoded), wrapped)

    def test_any_signature_verify(self):
        private_key = secp256k1_ecdsa.PrivateKey.random()
        wrapped_key = PublicKey(private_key.public_key())
        signature = Signature(private_key.sign(b"message"))
        self.assertTrue(wrapped_key.verify(b"message", signature))
        self.assertEqual(Signature.from_bytes(signature.to_bytes()), signature)

    def test_multi_key(self):
        key_1 = ed25519.PrivateKey.random()
        key_2 = secp256k1_ecdsa.PrivateKey.random()
        key_3 = ed25519.PrivateKey.random()
        multi_key = MultiPublicKey(
            [key_1.public_key(), key_2.public_key(), key_3.public_key()], 2
        )
        encoded = multi_key.to_bytes()
        self.assertEqual(encoded[0], 3)
        self.assertEqual(encoded[-1], 2)
        self.assertEqual(MultiPublicKey.from_bytes(encoded), multi_key)
        self.assertEqual(multi_key.index_of(key_3.public_key()), 2)

        signature = MultiSignature(
            [(2, key_3.sign(b"data")), (0, key_1.sign(b"data"))]
        )
        self.assertEqual(signature.bitmap(), bytes([0b10100000, 0, 0, 0]))
        self.assertEqual(MultiSignature.from_bytes(signature.to_bytes()), signature)
        self.assertTrue(multi_key.verify(b"data", signature))
        self.assertFalse(
            multi_key.verify(b"data", MultiSignature([(0, key_1.sign(b"data"))]))
        )

    def test_bitmap_high_index(self):
        signature = MultiSignature([(9, ed25519.Signature.zero())])
        self.assertEqual(signature.bitmap(), bytes([0, 0b01000000, 0, 0]))
        self.assertEqual(MultiSignature.indices_from_bitmap(signature.bitmap()), [9])

    def test_bitmap_mismatch(self):
        ser = Serializer()
        ser.sequence([Signature(ed25519.Signature.zero())], Serializer.struct)
        ser.to_bytes(bytes([0b11000000, 0, 0, 0]))
        with self.assertRaises(ValueError):
            MultiSignature.from_bytes(ser.output())

    def test_duplicate_index(self):
        with self.assertRaises(ValueError):
            MultiSignature(
                [(1, ed25519.Signature.zero()), (1, ed25519.Signature.zero())]
            )


if __name__ == "__main__":
    unittest.main()
