# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Key and signature protocols shared by every signing scheme a transaction sender can use.
"""

from __future__ import annotations

from typing_extensions import Protocol

from .bcs import Deserializable, Serializable


class KeyLengthError(ValueError):
    """Key or signature material has the wrong number of bytes."""


def parse_hex(value: str, *lengths: int) -> bytes:
    """Decode an optionally 0x-prefixed hex string of one of the given byte lengths."""
    if value[0:2] == "0x":
        value = value[2:]
    data = bytes.fromhex(value)
    if lengths and len(data) not in lengths:
        raise KeyLengthError(
            f"Expected {' or '.join(str(n) for n in lengths)} bytes, got {len(data)}"
        )
    return data


class PrivateKey(Deserializable, Serializable, Protocol):
    def hex(self) -> str:
        ...

    def public_key(self) -> PublicKey:
        ...

    def sign(self, data: bytes) -> Signature:
        ...


class PublicKey(Deserializable, Serializable, Protocol):
    def to_crypto_bytes(self) -> bytes:
        """
        Bytes hashed into the authentication key. For most keys this is the raw key,
        MultiEd25519 and the single/multi key wrappers define their own layout.
        """
        ...

    def verify(self, data: bytes, signature: Signature) -> bool:
        ...


class Signature(Deserializable, Serializable, Protocol):
    ...
