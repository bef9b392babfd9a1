# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Move type tags and the parser that turns strings such as
`0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>` into them.
"""

from __future__ import annotations

import re
import typing
import unittest
from typing import List

from .account_address import AccountAddress, ParseAddressError
from .bcs import Deserializer, Serializer


class TypeTag:
    """TypeTag represents a type in Move."""

    BOOL: int = 0
    U8: int = 1
    U64: int = 2
    U128: int = 3
    ACCOUNT_ADDRESS: int = 4
    SIGNER: int = 5
    VECTOR: int = 6
    STRUCT: int = 7
    U16: int = 8
    U32: int = 9
    U256: int = 10
    # Only appear in ABIs, never on chain.
    REFERENCE: int = 254
    GENERIC: int = 255

    value: typing.Any

    def __init__(self, value: typing.Any):
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeTag):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __hash__(self) -> int:
        return hash(str(self))

    def __str__(self):
        return self.value.__str__()

    def __repr__(self):
        return self.__str__()

    @property
    def variant(self) -> int:
        return self.value.variant()

    @staticmethod
    def from_str(type_tag: str, allow_generics: bool = False) -> TypeTag:
        return parse_type_tag(type_tag, allow_generics)

    def is_bool(self) -> bool:
        return self.variant == TypeTag.BOOL

    def is_address(self) -> bool:
        return self.variant == TypeTag.ACCOUNT_ADDRESS

    def is_signer(self) -> bool:
        return self.variant == TypeTag.SIGNER

    def is_vector(self) -> bool:
        return self.variant == TypeTag.VECTOR

    def is_struct(self) -> bool:
        return self.variant == TypeTag.STRUCT

    def is_generic(self) -> bool:
        return self.variant == TypeTag.GENERIC

    def is_reference(self) -> bool:
        return self.variant == TypeTag.REFERENCE

    def is_number(self) -> bool:
        return isinstance(self.value, PrimitiveTag) and self.value.BITS > 0

    def is_u8_vector(self) -> bool:
        return self.is_vector() and self.value.inner.variant == TypeTag.U8

    def is_string(self) -> bool:
        return self.is_struct() and self.value.is_string()

    def is_option(self) -> bool:
        return self.is_struct() and self.value.is_option()

    def is_object(self) -> bool:
        return self.is_struct() and self.value.is_object()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TypeTag:
        variant = deserializer.uleb128()
        if variant in PRIMITIVE_TAGS:
            return TypeTag(PRIMITIVE_TAGS[variant]())
        elif variant == TypeTag.VECTOR:
            return TypeTag(VectorTag.deserialize(deserializer))
        elif variant == TypeTag.STRUCT:
            return TypeTag(StructTag.deserialize(deserializer))
        elif variant == TypeTag.REFERENCE:
            return TypeTag(ReferenceTag.deserialize(deserializer))
        elif variant == TypeTag.GENERIC:
            return TypeTag(GenericTag.deserialize(deserializer))
        raise NotImplementedError(f"Unknown type tag variant: {variant}")

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.value)


class PrimitiveTag:
    """Payload-free tags, identified only by their variant."""

    VARIANT: int
    NAME: str
    BITS: int = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrimitiveTag):
            return NotImplemented
        return self.VARIANT == other.VARIANT

    def __str__(self):
        return self.NAME

    def variant(self) -> int:
        return self.VARIANT

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> PrimitiveTag:
        return cls()

    def serialize(self, serializer: Serializer):
        pass


class BoolTag(PrimitiveTag):
    VARIANT = TypeTag.BOOL
    NAME = "bool"


class U8Tag(PrimitiveTag):
    VARIANT = TypeTag.U8
    NAME = "u8"
    BITS = 8


class U16Tag(PrimitiveTag):
    VARIANT = TypeTag.U16
    NAME = "u16"
    BITS = 16


class U32Tag(PrimitiveTag):
    VARIANT = TypeTag.U32
    NAME = "u32"
    BITS = 32


class U64Tag(PrimitiveTag):
    VARIANT = TypeTag.U64
    NAME = "u64"
    BITS = 64


class U128Tag(PrimitiveTag):
    VARIANT = TypeTag.U128
    NAME = "u128"
    BITS = 128


class U256Tag(PrimitiveTag):
    VARIANT = TypeTag.U256
    NAME = "u256"
    BITS = 256


class AccountAddressTag(PrimitiveTag):
    VARIANT = TypeTag.ACCOUNT_ADDRESS
    NAME = "address"


class SignerTag(PrimitiveTag):
    VARIANT = TypeTag.SIGNER
    NAME = "signer"


PRIMITIVE_TAGS = {
    tag.VARIANT: tag
    for tag in [
        BoolTag,
        U8Tag,
        U16Tag,
        U32Tag,
        U64Tag,
        U128Tag,
        U256Tag,
        AccountAddressTag,
        SignerTag,
    ]
}
PRIMITIVE_NAMES = {tag.NAME: tag for tag in PRIMITIVE_TAGS.values()}


class VectorTag:
    inner: TypeTag

    def __init__(self, inner: TypeTag):
        self.inner = inner

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorTag):
            return NotImplemented
        return self.inner == other.inner

    def __str__(self):
        return f"vector<{self.inner}>"

    def variant(self) -> int:
        return TypeTag.VECTOR

    @staticmethod
    def deserialize(deserializer: Deserializer) -> VectorTag:
        return VectorTag(TypeTag.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.inner)


class ReferenceTag:
    inner: TypeTag

    def __init__(self, inner: TypeTag):
        self.inner = inner

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReferenceTag):
            return NotImplemented
        return self.inner == other.inner

    def __str__(self):
        return f"&{self.inner}"

    def variant(self) -> int:
        return TypeTag.REFERENCE

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ReferenceTag:
        return ReferenceTag(TypeTag.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.inner)


class GenericTag:
    """Placeholder `T<index>` for a function or struct type parameter."""

    index: int

    def __init__(self, index: int):
        if index < 0:
            raise ValueError(f"Generic type parameter index must be >= 0, got {index}")
        self.index = index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenericTag):
            return NotImplemented
        return self.index == other.index

    def __str__(self):
        return f"T{self.index}"

    def variant(self) -> int:
        return TypeTag.GENERIC

    @staticmethod
    def deserialize(deserializer: Deserializer) -> GenericTag:
        return GenericTag(deserializer.u32())

    def serialize(self, serializer: Serializer):
        serializer.u32(self.index)


class StructTag:
    address: AccountAddress
    module: str
    name: str
    type_args: List[TypeTag]

    def __init__(
        self,
        address: AccountAddress,
        module: str,
        name: str,
        type_args: List[TypeTag],
    ):
        self.address = address
        self.module = module
        self.name = name
        self.type_args = type_args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StructTag):
            return NotImplemented
        return (
            self.address == other.address
            and self.module == other.module
            and self.name == other.name
            and self.type_args == other.type_args
        )

    def __str__(self) -> str:
        value = f"{self.address}::{self.module}::{self.name}"
        if len(self.type_args) > 0:
            value += f"<{', '.join(str(arg) for arg in self.type_args)}>"
        return value

    @staticmethod
    def from_str(type_tag: str) -> StructTag:
        tag = parse_type_tag(type_tag)
        if not tag.is_struct():
            raise TypeTagParserError(type_tag, "unknown type")
        return tag.value

    def variant(self) -> int:
        return TypeTag.STRUCT

    def module_id(self) -> str:
        return f"{self.address}::{self.module}"

    def _is_framework(self, module: str, name: str) -> bool:
        return (
            self.address == AccountAddress.from_str("0x1")
            and self.module == module
            and self.name == name
        )

    def is_string(self) -> bool:
        return self._is_framework("string", "String")

    def is_option(self) -> bool:
        return self._is_framework("option", "Option")

    def is_object(self) -> bool:
        return self._is_framework("object", "Object")

    @staticmethod
    def deserialize(deserializer: Deserializer) -> StructTag:
        address = deserializer.struct(AccountAddress)
        module = deserializer.str()
        name = deserializer.str()
        type_args = deserializer.sequence(TypeTag.deserialize)
        return StructTag(address, module, name, type_args)

    def serialize(self, serializer: Serializer):
        self.address.serialize(serializer)
        serializer.str(self.module)
        serializer.str(self.name)
        serializer.sequence(self.type_args, Serializer.struct)


class TypeTagParserError(ValueError):
    def __init__(self, type_tag_str: str, reason: str):
        super().__init__(f"Failed to parse typeTag '{type_tag_str}', {reason}")
        self.type_tag_str = type_tag_str
        self.reason = reason


IDENTIFIER_RE = re.compile(r"^[_a-zA-Z0-9]+$")
GENERIC_RE = re.compile(r"^T[0-9]+$")


class _Frame:
    def __init__(self, expected_types: int, current: str, types: List[TypeTag]):
        self.expected_types = expected_types
        self.current = current
        self.types = types


def parse_type_tag(type_str: str, allow_generics: bool = False) -> TypeTag:
    """
    Single pass over the input keeping an explicit stack of enclosing `<...>` frames,
    so arbitrarily nested type arguments never recurse on the call stack.
    """
    saved: List[_Frame] = []
    # Type arguments of the most recently closed `<...>`.
    inner_types: List[TypeTag] = []
    # Completed types in the current comma separated list.
    cur_types: List[TypeTag] = []
    current = ""
    expected_types = 1
    pos = 0

    while pos < len(type_str):
        char = type_str[pos]

        if char == "<":
            saved.append(_Frame(expected_types, current, cur_types))
            current = ""
            cur_types = []
            expected_types = 1
        elif char == ">":
            if current != "":
                cur_types.append(_parse_inner(current, inner_types, allow_generics))

            if not saved:
                raise TypeTagParserError(type_str, "unexpected '>'")
            frame = saved.pop()
            if expected_types != len(cur_types):
                raise TypeTagParserError(
                    type_str, "type argument count doesn't match expected amount"
                )

            inner_types = cur_types
            cur_types = frame.types
            current = frame.current
            expected_types = frame.expected_types
        elif char == ",":
            if not saved:
                raise TypeTagParserError(type_str, "unexpected ','")
            if current == "":
                raise TypeTagParserError(type_str, "no type argument before ','")

            cur_types.append(_parse_inner(current, inner_types, allow_generics))
            inner_types = []
            current = ""
            expected_types += 1
        elif char.isspace():
            parsed = False
            if current != "":
                cur_types.append(_parse_inner(current, inner_types, allow_generics))
                inner_types = []
                current = ""
                parsed = True

            while pos < len(type_str) and type_str[pos].isspace():
                pos += 1

            # After a complete type only `,` or `>` may follow.
            if pos < len(type_str) and parsed and type_str[pos] not in ",>":
                raise TypeTagParserError(type_str, "unexpected whitespace character")
            continue
        else:
            current += char

        pos += 1

    if saved:
        raise TypeTagParserError(type_str, "no matching '>' for '<'")

    if len(cur_types) == 0:
        return _parse_inner(current, inner_types, allow_generics)
    if len(cur_types) == 1:
        if current == "":
            return cur_types[0]
        raise TypeTagParserError(type_str, "unexpected ','")
    raise TypeTagParserError(type_str, "unexpected whitespace character")


def _parse_inner(text: str, types: List[TypeTag], allow_generics: bool) -> TypeTag:
    trimmed = text.strip()
    lowered = trimmed.lower()

    if lowered in PRIMITIVE_NAMES:
        if len(types) > 0:
            raise TypeTagParserError(
                text, "primitive types not expected to have type arguments"
            )
        return TypeTag(PRIMITIVE_NAMES[lowered]())

    if lowered == "vector":
        if len(types) != 1:
            raise TypeTagParserError(
                text, "vector type expected to have exactly one type argument"
            )
        return TypeTag(VectorTag(types[0]))

    if trimmed.startswith("&") and len(trimmed) > 1:
        return TypeTag(ReferenceTag(_parse_inner(trimmed[1:], types, allow_generics)))

    if GENERIC_RE.match(trimmed):
        if allow_generics:
            return TypeTag(GenericTag(int(trimmed[1:])))
        raise TypeTagParserError(text, "unexpected generic type")

    if ":" not in trimmed:
        raise TypeTagParserError(text, "unknown type")

    parts = trimmed.split("::")
    if len(parts) != 3:
        raise TypeTagParserError(
            text,
            "unexpected struct format, must be of the form "
            "0xaddress::module_name::struct_name",
        )

    try:
        address = AccountAddress.from_str_relaxed(parts[0])
    except ParseAddressError:
        raise TypeTagParserError(text, "struct address must be valid")

    if not IDENTIFIER_RE.match(parts[1]):
        raise TypeTagParserError(
            text, "module name must only contain alphanumeric or '_' characters"
        )
    if not IDENTIFIER_RE.match(parts[2]):
        raise TypeTagParserError(
            text, "struct name must only contain alphanumeric or '_' characters"
        )

    return TypeTag(StructTag(address, parts[1], parts[2], types))


class Test(unittest.TestCase):
    def assert_parse_error(self, text: str, reason: str, **kwargs):
        with self.assertRaises(TypeTagParserError) as ctx:
            parse_type_tag(text, **kwargs)
        self.assertEqual(ctx.exception.reason, reason)
        return ctx.exception

    def test_primitives(self):
        for name, tag in PRIMITIVE_NAMES.items():
            self.assertEqual(parse_type_tag(name), TypeTag(tag()))
            self.assertEqual(parse_type_tag(name.upper()), TypeTag(tag()))
        self.assertEqual(parse_type_tag(" address "), TypeTag(AccountAddressTag()))

    def test_nested_struct(self):
        tag = parse_type_tag(
            "0x1::coin::CoinStore<0x1::pair::Pair<u8, vector<0x1::string::String>>>"
        )
        self.assertTrue(tag.is_struct())
        outer = tag.value
        self.assertEqual(outer.module, "coin")
        self.assertEqual(outer.name, "CoinStore")
        pair = outer.type_args[0].value
        self.assertEqual(pair.type_args[0], TypeTag(U8Tag()))
        self.assertTrue(pair.type_args[1].is_vector())
        self.assertTrue(pair.type_args[1].value.inner.is_string())
        self.assertEqual(
            str(tag),
            "0x1::coin::CoinStore<0x1::pair::Pair<u8, vector<0x1::string::String>>>",
        )

    def test_round_trip(self):
        for text in [
            "u256",
            "vector<vector<u8>>",
            "&signer",
            "T3",
            "0x1::option::Option<T0>",
            "0x1::object::Object<0x1::fungible_asset::Metadata>",
            "0x" + "ab" * 32 + "::m::S<bool, address, u16, u32, u64, u128>",
        ]:
            tag = parse_type_tag(text, allow_generics=True)
            self.assertEqual(str(tag), text)
            self.assertEqual(parse_type_tag(str(tag), allow_generics=True), tag)

    def test_whitespace_between_arguments(self):
        self.assertEqual(
            parse_type_tag("0x1::tag::Tag< u8,\tu16 >"),
            parse_type_tag("0x1::tag::Tag<u8,u16>"),
        )
        self.assert_parse_error("0x1::tag::Tag<u8 , u16>", "no type argument before ','")

    def test_generics(self):
        self.assertEqual(
            parse_type_tag("T1337", allow_generics=True), TypeTag(GenericTag(1337))
        )
        self.assert_parse_error("T1337", "unexpected generic type")
        with self.assertRaises(ValueError):
            GenericTag(-1)

    def test_framework_predicates(self):
        self.assertTrue(parse_type_tag("0x1::string::String").is_string())
        self.assertTrue(parse_type_tag("0x1::option::Option<u8>").is_option())
        self.assertTrue(parse_type_tag("0x1::object::Object<0x1::a::B>").is_object())
        self.assertFalse(parse_type_tag("0x2::string::String").is_string())
        self.assertTrue(parse_type_tag("vector<u8>").is_u8_vector())
        self.assertTrue(parse_type_tag("u64").is_number())
        self.assertFalse(parse_type_tag("bool").is_number())

    def test_errors(self):
        err = self.assert_parse_error(
            "0x1::tag::Tag<u8<u8>>",
            "primitive types not expected to have type arguments",
        )
        self.assertEqual(err.type_tag_str, "u8")
        self.assertEqual(
            str(err),
            "Failed to parse typeTag 'u8', primitive types not expected to have type arguments",
        )
        self.assert_parse_error(
            "0x1::tag::Tag<>", "type argument count doesn't match expected amount"
        )
        self.assert_parse_error("u8, u8", "unexpected ','")
        self.assert_parse_error(
            "0x1::tag::Tag <u8>", "unexpected whitespace character"
        )
        self.assert_parse_error("u8 u8", "unexpected whitespace character")
        self.assert_parse_error("0x1::tag::Tag<<u8>", "no matching '>' for '<'")
        self.assert_parse_error("0x1::tag::Tag<u8>>", "unexpected '>'")
        self.assert_parse_error("0x1::tag::Tag<u8,,u8>", "no type argument before ','")
        self.assert_parse_error("vector<u8, u8>", "vector type expected to have exactly one type argument")
        self.assert_parse_error("vector", "vector type expected to have exactly one type argument")
        self.assert_parse_error("notatype", "unknown type")
        self.assert_parse_error("", "unknown type")
        self.assert_parse_error(
            "0x1::tag",
            "unexpected struct format, must be of the form "
            "0xaddress::module_name::struct_name",
        )
        self.assert_parse_error("0xzz::tag::Tag", "struct address must be valid")
        self.assert_parse_error(
            "0x1::ta-g::Tag",
            "module name must only contain alphanumeric or '_' characters",
        )
        self.assert_parse_error(
            "0x1::tag::Ta-g",
            "struct name must only contain alphanumeric or '_' characters",
        )

    def test_serialization(self):
        for text in [
            "bool",
            "vector<u8>",
            "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>",
            "&u64",
            "T2",
        ]:
            tag = parse_type_tag(text, allow_generics=True)
            ser = Serializer()
            tag.serialize(ser)
            self.assertEqual(TypeTag.deserialize(Deserializer(ser.output())), tag)

        ser = Serializer()
        parse_type_tag("T2", allow_generics=True).serialize(ser)
        self.assertEqual(ser.output(), b"\xff\x01" + b"\x02\x00\x00\x00")

        ser = Serializer()
        parse_type_tag("vector<u16>").serialize(ser)
        self.assertEqual(ser.output(), b"\x06\x08")

    def test_struct_tag_from_str(self):
        struct_tag = StructTag.from_str("0x1::aptos_coin::AptosCoin")
        self.assertEqual(struct_tag.module_id(), "0x1::aptos_coin")
        with self.assertRaises(TypeTagParserError):
            StructTag.from_str("u8")


if __name__ == "__main__":
    unittest.main()
