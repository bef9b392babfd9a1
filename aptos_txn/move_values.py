# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Typed Move values that know their own BCS encoding. These are what entry function and
view function arguments are converted into before they are placed in a payload.
"""

from __future__ import annotations

import unittest
from typing import Any, List, Optional, Sequence, Union

from .account_address import AccountAddress
from .bcs import (
    MAX_U8,
    MAX_U16,
    MAX_U32,
    MAX_U64,
    MAX_U128,
    MAX_U256,
    Deserializer,
    Serializable,
    Serializer,
)
from .type_tag import TypeTag, parse_type_tag


class MoveValue(Serializable):
    """
    A closed tagged union over every value kind an argument can take. `kind` selects
    the encoding and `value` holds the payload:

    * integers: a Python int within the kind's range
    * BOOL: bool, ADDRESS: AccountAddress, STRING: str
    * VECTOR: list of MoveValue, all of the same kind
    * OPTION: a MoveValue or None
    * FIXED_BYTES / SERIALIZED: bytes written as-is, used for struct and enum values
    """

    BOOL = "bool"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    U128 = "u128"
    U256 = "u256"
    ADDRESS = "address"
    STRING = "string"
    VECTOR = "vector"
    OPTION = "option"
    FIXED_BYTES = "fixed_bytes"
    SERIALIZED = "serialized"

    INTEGER_MAXIMUMS = {
        U8: MAX_U8,
        U16: MAX_U16,
        U32: MAX_U32,
        U64: MAX_U64,
        U128: MAX_U128,
        U256: MAX_U256,
    }

    TAG_KINDS = {
        TypeTag.BOOL: BOOL,
        TypeTag.U8: U8,
        TypeTag.U16: U16,
        TypeTag.U32: U32,
        TypeTag.U64: U64,
        TypeTag.U128: U128,
        TypeTag.U256: U256,
        TypeTag.ACCOUNT_ADDRESS: ADDRESS,
    }

    kind: str
    value: Any

    def __init__(self, kind: str, value: Any):
        self.kind = kind
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MoveValue):
            return NotImplemented
        return self.kind == other.kind and self.value == other.value

    def __repr__(self) -> str:
        return f"MoveValue.{self.kind}({self.value!r})"

    def __str__(self) -> str:
        if self.kind == MoveValue.VECTOR:
            return f"[{', '.join(str(v) for v in self.value)}]"
        if self.kind in (MoveValue.FIXED_BYTES, MoveValue.SERIALIZED):
            return f"0x{self.value.hex()}"
        return str(self.value)

    @staticmethod
    def integer(kind: str, value: int) -> MoveValue:
        if kind not in MoveValue.INTEGER_MAXIMUMS:
            raise ValueError(f"{kind} is not an integer kind")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Expected an int for {kind}, got {type(value).__name__}")
        if value < 0 or value > MoveValue.INTEGER_MAXIMUMS[kind]:
            raise ValueError(f"{value} is out of range for {kind}")
        return MoveValue(kind, value)

    @staticmethod
    def bool(value: bool) -> MoveValue:
        if not isinstance(value, bool):
            raise ValueError(f"Expected a bool, got {type(value).__name__}")
        return MoveValue(MoveValue.BOOL, value)

    @staticmethod
    def u8(value: int) -> MoveValue:
        return MoveValue.integer(MoveValue.U8, value)

    @staticmethod
    def u16(value: int) -> MoveValue:
        return MoveValue.integer(MoveValue.U16, value)

    @staticmethod
    def u32(value: int) -> MoveValue:
        return MoveValue.integer(MoveValue.U32, value)

    @staticmethod
    def u64(value: int) -> MoveValue:
        return MoveValue.integer(MoveValue.U64, value)

    @staticmethod
    def u128(value: int) -> MoveValue:
        return MoveValue.integer(MoveValue.U128, value)

    @staticmethod
    def u256(value: int) -> MoveValue:
        return MoveValue.integer(MoveValue.U256, value)

    @staticmethod
    def address(value: Union[str, bytes, AccountAddress]) -> MoveValue:
        return MoveValue(MoveValue.ADDRESS, AccountAddress.from_any(value))

    @staticmethod
    def string(value: str) -> MoveValue:
        if not isinstance(value, str):
            raise ValueError(f"Expected a str, got {type(value).__name__}")
        return MoveValue(MoveValue.STRING, value)

    @staticmethod
    def vector(values: Sequence[MoveValue]) -> MoveValue:
        values = list(values)
        for value in values:
            if not isinstance(value, MoveValue):
                raise ValueError(f"Vector elements must be MoveValues, got {value!r}")
            if value.kind != values[0].kind:
                raise ValueError(
                    f"Vector elements must share one kind, got {values[0].kind} "
                    f"and {value.kind}"
                )
        return MoveValue(MoveValue.VECTOR, values)

    @staticmethod
    def vector_u8(data: bytes) -> MoveValue:
        return MoveValue(MoveValue.VECTOR, [MoveValue(MoveValue.U8, b) for b in bytes(data)])

    @staticmethod
    def from_str_vector(values: Sequence[str]) -> MoveValue:
        return MoveValue.vector([MoveValue.string(v) for v in values])

    @staticmethod
    def option(value: Optional[MoveValue]) -> MoveValue:
        if value is not None and not isinstance(value, MoveValue):
            raise ValueError(f"Option payload must be a MoveValue, got {value!r}")
        return MoveValue(MoveValue.OPTION, value)

    @staticmethod
    def fixed_bytes(value: bytes) -> MoveValue:
        return MoveValue(MoveValue.FIXED_BYTES, bytes(value))

    @staticmethod
    def serialized(value: bytes) -> MoveValue:
        return MoveValue(MoveValue.SERIALIZED, bytes(value))

    def is_integer(self) -> bool:
        return self.kind in MoveValue.INTEGER_MAXIMUMS

    def serialize(self, serializer: Serializer):
        if self.kind == MoveValue.BOOL:
            serializer.bool(self.value)
        elif self.is_integer():
            getattr(serializer, self.kind)(self.value)
        elif self.kind == MoveValue.ADDRESS:
            serializer.struct(self.value)
        elif self.kind == MoveValue.STRING:
            serializer.str(self.value)
        elif self.kind == MoveValue.VECTOR:
            serializer.uleb128(len(self.value))
            for item in self.value:
                item.serialize(serializer)
        elif self.kind == MoveValue.OPTION:
            serializer.option(self.value, Serializer.struct)
        elif self.kind in (MoveValue.FIXED_BYTES, MoveValue.SERIALIZED):
            serializer.fixed_bytes(self.value)
        else:
            raise ValueError(f"Unknown MoveValue kind: {self.kind}")

    @staticmethod
    def deserialize(deserializer: Deserializer, type_tag: TypeTag) -> MoveValue:
        """Decode a value whose Move type is known. Generic parameters must be resolved."""
        if type_tag.variant in MoveValue.TAG_KINDS:
            kind = MoveValue.TAG_KINDS[type_tag.variant]
            if kind == MoveValue.ADDRESS:
                return MoveValue(kind, AccountAddress.deserialize(deserializer))
            return MoveValue(kind, getattr(deserializer, kind)())
        if type_tag.is_vector():
            inner = type_tag.value.inner
            length = deserializer.uleb128()
            return MoveValue(
                MoveValue.VECTOR,
                [MoveValue.deserialize(deserializer, inner) for _ in range(length)],
            )
        if type_tag.is_string():
            return MoveValue(MoveValue.STRING, deserializer.str())
        if type_tag.is_object():
            return MoveValue(MoveValue.ADDRESS, AccountAddress.deserialize(deserializer))
        if type_tag.is_option():
            inner = type_tag.value.type_args[0]
            return MoveValue.option(
                deserializer.option(lambda der: MoveValue.deserialize(der, inner))
            )
        if type_tag.is_struct():
            raise NotImplementedError(
                f"Cannot decode {type_tag} without its field layout"
            )
        raise ValueError(f"Type {type_tag} cannot be decoded as a value")

    def matches(self, type_tag: TypeTag) -> bool:
        """
        Shallow check that this value was built for `type_tag`. Vectors look at their
        first element only and options at their payload only.
        """
        if type_tag.variant in MoveValue.TAG_KINDS:
            return self.kind == MoveValue.TAG_KINDS[type_tag.variant]
        if type_tag.is_vector():
            if self.kind != MoveValue.VECTOR:
                return False
            return len(self.value) == 0 or self.value[0].matches(type_tag.value.inner)
        if type_tag.is_string():
            return self.kind == MoveValue.STRING
        if type_tag.is_object():
            return self.kind == MoveValue.ADDRESS
        if type_tag.is_option():
            if self.kind != MoveValue.OPTION:
                return False
            return self.value is None or self.value.matches(type_tag.value.type_args[0])
        if type_tag.is_struct():
            return self.kind in (MoveValue.FIXED_BYTES, MoveValue.SERIALIZED)
        return False


class Test(unittest.TestCase):
    def test_primitive_encodings(self):
        self.assertEqual(MoveValue.bool(True).to_bytes(), b"\x01")
        self.assertEqual(MoveValue.u16(0x0102).to_bytes(), b"\x02\x01")
        self.assertEqual(MoveValue.u64(10).to_bytes(), b"\x0a" + b"\x00" * 7)
        self.assertEqual(len(MoveValue.u256(1).to_bytes()), 32)
        self.assertEqual(MoveValue.string("abc").to_bytes(), b"\x03abc")
        self.assertEqual(MoveValue.address("0x1").to_bytes(), b"\x00" * 31 + b"\x01")

    def test_range_checks(self):
        with self.assertRaises(ValueError):
            MoveValue.u8(256)
        with self.assertRaises(ValueError):
            MoveValue.u64(-1)
        with self.assertRaises(ValueError):
            MoveValue.u32(True)
        with self.assertRaises(ValueError):
            MoveValue.bool(1)  # type: ignore[arg-type]

    def test_vector_and_option(self):
        self.assertEqual(MoveValue.vector_u8(b"hi").to_bytes(), b"\x02hi")
        self.assertEqual(MoveValue.option(None).to_bytes(), b"\x00")
        self.assertEqual(MoveValue.option(MoveValue.u8(5)).to_bytes(), b"\x01\x05")
        self.assertEqual(
            MoveValue.from_str_vector(["a", "bc"]).to_bytes(), b"\x02\x01a\x02bc"
        )
        with self.assertRaises(ValueError):
            MoveValue.vector([MoveValue.u8(1), MoveValue.u16(1)])

    def test_raw_bytes_are_not_framed(self):
        self.assertEqual(MoveValue.serialized(b"\x01\x02").to_bytes(), b"\x01\x02")
        self.assertEqual(MoveValue.fixed_bytes(b"\x03").to_bytes(), b"\x03")

    def test_round_trip(self):
        cases = [
            ("bool", MoveValue.bool(False)),
            ("u128", MoveValue.u128(2**100)),
            ("address", MoveValue.address("0xcafe")),
            ("0x1::string::String", MoveValue.string("héllo")),
            ("vector<vector<u8>>", MoveValue.vector([MoveValue.vector_u8(b"ab")])),
            ("0x1::option::Option<u64>", MoveValue.option(MoveValue.u64(42))),
            ("0x1::option::Option<address>", MoveValue.option(None)),
            ("0x1::object::Object<0x1::a::B>", MoveValue.address("0x2")),
        ]
        for type_str, value in cases:
            tag = parse_type_tag(type_str)
            der = Deserializer(value.to_bytes())
            self.assertEqual(MoveValue.deserialize(der, tag), value)
            self.assertEqual(der.remaining(), 0)

    def test_matches(self):
        self.assertTrue(MoveValue.u8(1).matches(parse_type_tag("u8")))
        self.assertFalse(MoveValue.u8(1).matches(parse_type_tag("u16")))
        self.assertTrue(
            MoveValue.vector([]).matches(parse_type_tag("vector<address>"))
        )
        self.assertFalse(
            MoveValue.vector_u8(b"a").matches(parse_type_tag("vector<u64>"))
        )
        self.assertTrue(
            MoveValue.option(MoveValue.string("x")).matches(
                parse_type_tag("0x1::option::Option<0x1::string::String>")
            )
        )
        self.assertTrue(
            MoveValue.address("0x1").matches(parse_type_tag("0x1::object::Object<u8>"))
        )
        self.assertTrue(
            MoveValue.serialized(b"").matches(parse_type_tag("0x3::m::Point"))
        )
        self.assertFalse(MoveValue.string("x").matches(parse_type_tag("0x3::m::Point")))


if __name__ == "__main__":
    unittest.main()
