# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Encodes user supplied dictionaries into the BCS form of public Move structs and enums,
driven by the struct definitions found in on-chain module ABIs.

Structs are given as `{"field": value, ...}` and encode as their fields concatenated in
declaration order. Enums are given as `{"Variant": fields}` and encode as the ULEB128
variant index followed by the variant's fields. `0x1::option::Option` accepts both the
vector form (`[]` / `[value]`) and the enum form (`{"None": {}}` / `{"Some": value}`).
"""

from __future__ import annotations

import unittest
from typing import Any, Dict, List

from .account_address import AccountAddress
from .bcs import Serializer
from .move_values import MoveValue
from .type_tag import (
    StructTag,
    TypeTag,
    VectorTag,
    parse_type_tag,
)

MAX_NESTING_DEPTH = 7


class StructEnumEncodingError(ValueError):
    """A struct or enum value could not be encoded against its on-chain definition."""


class StructEnumArgumentParser:
    """
    Holds a per-instance cache of module ABIs keyed `address::module`. Modules can be
    preloaded, anything missing is fetched through `client.account_module`.
    """

    client: Any
    module_cache: Dict[str, Dict[str, Any]]

    def __init__(self, client: Any = None):
        self.client = client
        self.module_cache = {}

    @staticmethod
    def module_key(address: Any, module: str) -> str:
        return f"{AccountAddress.from_any(address)}::{module}"

    def preload_modules(self, modules: Dict[str, Dict[str, Any]]):
        for module_id, abi in modules.items():
            address, name = module_id.split("::")
            self.module_cache[self.module_key(address, name)] = abi

    def parse_type_string(self, type_str: str) -> TypeTag:
        return parse_type_tag(type_str, allow_generics=True)

    def is_struct_or_enum(self, type_tag: TypeTag) -> bool:
        if not type_tag.is_struct():
            return False
        struct = type_tag.value
        return not (struct.is_string() or struct.is_object() or struct.is_option())

    @staticmethod
    def check_depth(depth: int, kind: str):
        if depth > MAX_NESTING_DEPTH:
            raise StructEnumEncodingError(
                f"{kind} nesting depth {depth} exceeds maximum allowed depth of "
                f"{MAX_NESTING_DEPTH}"
            )

    async def fetch_module(self, address: AccountAddress, module: str) -> Dict[str, Any]:
        key = self.module_key(address, module)
        if key in self.module_cache:
            return self.module_cache[key]

        if self.client is None:
            raise StructEnumEncodingError(
                f"Failed to fetch module {key}: no client configured"
            )
        try:
            response = await self.client.account_module(address, module)
        except Exception as e:
            raise StructEnumEncodingError(f"Failed to fetch module {key}: {e}") from e

        abi = response.get("abi")
        if not abi:
            raise StructEnumEncodingError(f"Module {key} has no ABI")
        self.module_cache[key] = abi
        return abi

    async def find_definition(self, struct: StructTag, kind: str) -> Dict[str, Any]:
        abi = await self.fetch_module(struct.address, struct.module)
        for definition in abi.get("structs", []):
            if definition["name"] == struct.name:
                return definition
        raise StructEnumEncodingError(
            f"{kind} {struct.name} not found in module {struct.module_id()}"
        )

    async def encode_struct_argument(
        self, type_tag: TypeTag, value: Any, depth: int = 0
    ) -> MoveValue:
        self.check_depth(depth, "Struct")
        if not isinstance(value, dict):
            raise StructEnumEncodingError(
                f"Expected object for struct argument, got {type(value).__name__}"
            )

        struct = type_tag.value
        definition = await self.find_definition(struct, "Struct")
        if definition.get("is_enum"):
            raise StructEnumEncodingError(
                f"Type {struct.name} is an enum. Use enum variant syntax instead "
                '(e.g., {"VariantName": {...}})'
            )
        if definition.get("is_native"):
            raise StructEnumEncodingError(
                f"Struct {struct.name} is a native struct and cannot be used as an argument"
            )

        ser = Serializer()
        for field in definition.get("fields", []):
            name = field["name"]
            if name not in value:
                raise StructEnumEncodingError(
                    f"Missing field '{name}' for struct {struct.name}"
                )
            field_type = self.substitute_type_params(
                self.parse_type_string(field["type"]), struct
            )
            ser.fixed_bytes(
                await self.encode_value_by_type(field_type, value[name], depth + 1)
            )
        return MoveValue.serialized(ser.output())

    async def encode_enum_argument(
        self, type_tag: TypeTag, value: Any, depth: int = 0
    ) -> MoveValue:
        self.check_depth(depth, "Enum")
        if not isinstance(value, dict):
            raise StructEnumEncodingError(
                f"Expected object for enum argument, got {type(value).__name__}"
            )
        if len(value) != 1:
            raise StructEnumEncodingError(
                f"Enum value must have exactly one variant, got {len(value)}"
            )

        struct = type_tag.value
        variant_name, variant_fields = next(iter(value.items()))
        if struct.is_option():
            return await self.encode_option_argument(
                struct, variant_name, variant_fields, depth
            )

        definition = await self.find_definition(struct, "Enum")
        if not definition.get("is_enum"):
            raise StructEnumEncodingError(
                f"Type {struct.name} is a struct, not an enum. Provide field values "
                "directly as an object."
            )

        # Variants are listed in the ABI's fields, in declaration order
        variants = definition.get("fields", [])
        names = [variant["name"] for variant in variants]
        if variant_name not in names:
            raise StructEnumEncodingError(
                f"Variant '{variant_name}' not found in enum {struct.name}. "
                f"Available variants: {', '.join(names)}"
            )
        variant_index = names.index(variant_name)

        ser = Serializer()
        ser.uleb128(variant_index)

        # The ABI has one type per variant, so every field is encoded with it.
        variant_type = self.substitute_type_params(
            self.parse_type_string(variants[variant_index]["type"]), struct
        )
        if isinstance(variant_fields, dict):
            for key in self.ordered_field_keys(variant_name, list(variant_fields)):
                ser.fixed_bytes(
                    await self.encode_value_by_type(
                        variant_type, variant_fields[key], depth + 1
                    )
                )
        elif variant_fields is not None:
            ser.fixed_bytes(
                await self.encode_value_by_type(variant_type, variant_fields, depth + 1)
            )
        return MoveValue.serialized(ser.output())

    @staticmethod
    def ordered_field_keys(variant_name: str, keys: List[str]) -> List[str]:
        if all(key.isdigit() for key in keys):
            keys = sorted(keys, key=int)
        if len(keys) > 1:
            for idx, key in enumerate(keys):
                if key != str(idx):
                    raise StructEnumEncodingError(
                        "Enum variant with multiple fields must use sequential numeric "
                        f'keys starting from "0". Expected key "{idx}" at position {idx}, '
                        f'got "{key}". Use format: {{ {variant_name}: {{ "0": value1, '
                        '"1": value2, ... } }'
                    )
        return keys

    async def encode_option_argument(
        self, struct: StructTag, variant: str, fields: Any, depth: int
    ) -> MoveValue:
        if not struct.type_args:
            raise StructEnumEncodingError("Option must have a type parameter")

        ser = Serializer()
        if variant == "None":
            ser.uleb128(0)
        elif variant == "Some":
            ser.uleb128(1)
            if isinstance(fields, dict) and "0" in fields:
                fields = fields["0"]
            ser.fixed_bytes(
                await self.encode_value_by_type(struct.type_args[0], fields, depth + 1)
            )
        else:
            raise StructEnumEncodingError(
                f"Unknown Option variant '{variant}'. Expected 'None' or 'Some'"
            )
        return MoveValue.serialized(ser.output())

    def substitute_type_params(self, field_type: TypeTag, struct: StructTag) -> TypeTag:
        """Replace T<i> in a field type with the i-th type argument of `struct`."""
        if field_type.is_generic():
            index = field_type.value.index
            if index >= len(struct.type_args):
                raise StructEnumEncodingError(
                    f"Generic type parameter T{index} out of bounds. {struct.name} has "
                    f"{len(struct.type_args)} type arguments."
                )
            return struct.type_args[index]
        if field_type.is_vector():
            return TypeTag(
                VectorTag(self.substitute_type_params(field_type.value.inner, struct))
            )
        if field_type.is_struct() and field_type.value.type_args:
            inner = field_type.value
            return TypeTag(
                StructTag(
                    inner.address,
                    inner.module,
                    inner.name,
                    [self.substitute_type_params(arg, struct) for arg in inner.type_args],
                )
            )
        return field_type

    async def encode_value_by_type(self, type_tag: TypeTag, value: Any, depth: int) -> bytes:
        self.check_depth(depth, "Type")

        if type_tag.variant == TypeTag.BOOL:
            if not isinstance(value, bool):
                raise StructEnumEncodingError(
                    f"Expected boolean for bool type, got {type(value).__name__}"
                )
            return MoveValue.bool(value).to_bytes()
        if type_tag.variant in (TypeTag.U8, TypeTag.U16, TypeTag.U32):
            kind = str(type_tag)
            return MoveValue.integer(kind, self.parse_number(value, kind)).to_bytes()
        if type_tag.variant in (TypeTag.U64, TypeTag.U128, TypeTag.U256):
            kind = str(type_tag)
            return MoveValue.integer(kind, self.parse_big_number(value, kind)).to_bytes()
        if type_tag.is_address():
            return MoveValue.address(value).to_bytes()
        if type_tag.is_vector():
            return await self.encode_vector(type_tag, value, depth)
        if type_tag.is_struct():
            return await self.encode_struct(type_tag, value, depth)

        raise StructEnumEncodingError(f"Unsupported type: {type_tag}")

    async def encode_vector(self, type_tag: TypeTag, value: Any, depth: int) -> bytes:
        inner = type_tag.value.inner
        ser = Serializer()
        if not isinstance(value, list):
            if inner.variant == TypeTag.U8 and isinstance(value, str):
                ser.to_bytes(value.encode("utf-8"))
                return ser.output()
            raise StructEnumEncodingError(
                f"Expected array for vector type, got {type(value).__name__}"
            )

        ser.uleb128(len(value))
        for item in value:
            ser.fixed_bytes(await self.encode_value_by_type(inner, item, depth + 1))
        return ser.output()

    async def encode_struct(self, type_tag: TypeTag, value: Any, depth: int) -> bytes:
        struct = type_tag.value
        if struct.is_string():
            if not isinstance(value, str):
                raise StructEnumEncodingError(
                    f"Expected string for String type, got {type(value).__name__}"
                )
            return MoveValue.string(value).to_bytes()
        if struct.is_object():
            return MoveValue.address(value).to_bytes()
        if struct.is_option():
            return await self.encode_option(type_tag, value, depth)

        if isinstance(value, dict) and len(value) == 1:
            definition = await self.find_definition(struct, "Struct")
            if definition.get("is_enum"):
                return (await self.encode_enum_argument(type_tag, value, depth)).to_bytes()
        return (await self.encode_struct_argument(type_tag, value, depth)).to_bytes()

    async def encode_option(self, type_tag: TypeTag, value: Any, depth: int) -> bytes:
        struct = type_tag.value
        if isinstance(value, list):
            if len(value) > 1:
                raise StructEnumEncodingError(
                    f"Option as vector must have 0 or 1 elements, got {len(value)}"
                )
            if not value:
                return MoveValue.option(None).to_bytes()
            if not struct.type_args:
                raise StructEnumEncodingError("Option must have a type parameter")
            ser = Serializer()
            ser.uleb128(1)
            ser.fixed_bytes(
                await self.encode_value_by_type(struct.type_args[0], value[0], depth + 1)
            )
            return ser.output()
        if isinstance(value, dict) and len(value) == 1:
            return (await self.encode_enum_argument(type_tag, value, depth)).to_bytes()
        raise StructEnumEncodingError(
            "Invalid Option format. Expected array [] or [value], or enum "
            '{"None": {}} or {"Some": {...}}'
        )

    @staticmethod
    def parse_number(value: Any, kind: str) -> int:
        if isinstance(value, bool):
            raise StructEnumEncodingError(
                f"Expected number or string for {kind}, got bool"
            )
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value, 10)
            except ValueError:
                raise StructEnumEncodingError(f"Invalid {kind} value: {value}") from None
        raise StructEnumEncodingError(
            f"Expected number or string for {kind}, got {type(value).__name__}"
        )

    @staticmethod
    def parse_big_number(value: Any, kind: str) -> int:
        if isinstance(value, bool):
            raise StructEnumEncodingError(
                f"Expected number, bigint, or string for {kind}, got bool"
            )
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                if value.lower().startswith("0x"):
                    return int(value, 16)
                return int(value, 10)
            except ValueError:
                raise StructEnumEncodingError(f"Invalid {kind} value: {value}") from None
        raise StructEnumEncodingError(
            f"Expected number, bigint, or string for {kind}, got {type(value).__name__}"
        )


MODULE_ADDRESS = "0x" + "ab" * 32


def fixture_modules() -> Dict[str, Dict[str, Any]]:
    return {
        f"{MODULE_ADDRESS}::shapes": {
            "address": MODULE_ADDRESS,
            "name": "shapes",
            "exposed_functions": [],
            "structs": [
                {
                    "name": "Point",
                    "is_native": False,
                    "is_enum": False,
                    "abilities": ["copy", "drop"],
                    "generic_type_params": [],
                    "fields": [
                        {"name": "x", "type": "u64"},
                        {"name": "y", "type": "u64"},
                    ],
                },
                {
                    "name": "Color",
                    "is_native": False,
                    "is_enum": True,
                    "abilities": ["copy", "drop"],
                    "generic_type_params": [],
                    "fields": [
                        {"name": "Red", "type": "u8"},
                        {"name": "Custom", "type": "u8"},
                    ],
                },
                {
                    "name": "Amount",
                    "is_native": False,
                    "is_enum": True,
                    "abilities": ["copy", "drop"],
                    "generic_type_params": [],
                    "fields": [
                        {"name": "VariantA", "type": "u64"},
                        {"name": "VariantB", "type": "u8"},
                    ],
                },
                {
                    "name": "Box",
                    "is_native": False,
                    "is_enum": False,
                    "abilities": ["copy", "drop"],
                    "generic_type_params": [{"constraints": []}],
                    "fields": [{"name": "value", "type": "vector<T0>"}],
                },
                {
                    "name": "Named",
                    "is_native": False,
                    "is_enum": False,
                    "abilities": ["copy", "drop"],
                    "generic_type_params": [],
                    "fields": [
                        {"name": "label", "type": "0x1::string::String"},
                        {"name": "tag", "type": "vector<u8>"},
                        {"name": "extra", "type": "0x1::option::Option<u16>"},
                    ],
                },
                {
                    "name": "Nest",
                    "is_native": False,
                    "is_enum": False,
                    "abilities": ["copy", "drop"],
                    "generic_type_params": [],
                    "fields": [
                        {
                            "name": "inner",
                            "type": f"0x1::option::Option<{MODULE_ADDRESS}::shapes::Nest>",
                        }
                    ],
                },
                {
                    "name": "Handle",
                    "is_native": True,
                    "is_enum": False,
                    "abilities": [],
                    "generic_type_params": [],
                    "fields": [],
                },
            ],
        }
    }


class FakeClient:
    def __init__(self, modules: Dict[str, Dict[str, Any]]):
        self.modules = modules
        self.fetches: List[str] = []

    async def account_module(self, address: AccountAddress, module: str) -> Dict[str, Any]:
        key = f"{address}::{module}"
        self.fetches.append(key)
        if key not in self.modules:
            raise LookupError(f"module {key} not found")
        return {"abi": self.modules[key]}


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.client = FakeClient(fixture_modules())
        self.parser = StructEnumArgumentParser(self.client)

    def tag(self, text: str) -> TypeTag:
        return parse_type_tag(text.replace("ADDR", MODULE_ADDRESS))

    async def test_struct_fields_in_declaration_order(self):
        encoded = await self.parser.encode_struct_argument(
            self.tag("ADDR::shapes::Point"), {"y": "20", "x": 10}
        )
        self.assertEqual(encoded.kind, MoveValue.SERIALIZED)
        self.assertEqual(
            encoded.to_bytes(),
            (10).to_bytes(8, "little") + (20).to_bytes(8, "little"),
        )

    async def test_missing_field(self):
        with self.assertRaisesRegex(StructEnumEncodingError, "Missing field 'y'"):
            await self.parser.encode_struct_argument(
                self.tag("ADDR::shapes::Point"), {"x": 1}
            )

    async def test_enum_variant(self):
        encoded = await self.parser.encode_enum_argument(
            self.tag("ADDR::shapes::Color"), {"Custom": 100}
        )
        self.assertEqual(encoded.to_bytes(), bytes([1, 100]))

        encoded = await self.parser.encode_enum_argument(
            self.tag("ADDR::shapes::Color"), {"Red": {}}
        )
        self.assertEqual(encoded.to_bytes(), bytes([0]))

    async def test_single_field_variant_with_numeric_key(self):
        encoded = await self.parser.encode_enum_argument(
            self.tag("ADDR::shapes::Amount"), {"VariantA": {"0": "100"}}
        )
        self.assertEqual(encoded.to_bytes(), bytes([0, 100, 0, 0, 0, 0, 0, 0, 0]))

        encoded = await self.parser.encode_enum_argument(
            self.tag("ADDR::shapes::Amount"), {"VariantB": {"0": 7}}
        )
        self.assertEqual(encoded.to_bytes(), bytes([1, 7]))

    async def test_enum_errors(self):
        color = self.tag("ADDR::shapes::Color")
        with self.assertRaisesRegex(StructEnumEncodingError, "Available variants: Red, Custom"):
            await self.parser.encode_enum_argument(color, {"Blue": {}})
        with self.assertRaisesRegex(StructEnumEncodingError, "exactly one variant, got 2"):
            await self.parser.encode_enum_argument(color, {"Red": {}, "Custom": 1})
        with self.assertRaisesRegex(StructEnumEncodingError, 'Expected key "1" at position 1'):
            await self.parser.encode_enum_argument(color, {"Custom": {"0": 1, "2": 2}})
        with self.assertRaisesRegex(StructEnumEncodingError, "is an enum"):
            await self.parser.encode_struct_argument(color, {"Red": {}})
        with self.assertRaisesRegex(StructEnumEncodingError, "is a struct, not an enum"):
            await self.parser.encode_enum_argument(self.tag("ADDR::shapes::Point"), {"x": 1})

    async def test_multi_field_keys_are_sorted(self):
        encoded = await self.parser.encode_enum_argument(
            self.tag("ADDR::shapes::Color"), {"Custom": {"1": 2, "0": 1}}
        )
        self.assertEqual(encoded.to_bytes(), bytes([1, 1, 2]))

    async def test_native_struct_rejected(self):
        with self.assertRaisesRegex(StructEnumEncodingError, "native struct"):
            await self.parser.encode_struct_argument(self.tag("ADDR::shapes::Handle"), {})

    async def test_option_formats_are_equivalent(self):
        option = self.tag("0x1::option::Option<u64>")
        some_vector = await self.parser.encode_value_by_type(option, [7], 0)
        some_enum = await self.parser.encode_value_by_type(option, {"Some": {"0": 7}}, 0)
        some_bare = await self.parser.encode_value_by_type(option, {"Some": 7}, 0)
        self.assertEqual(some_vector, bytes([1]) + (7).to_bytes(8, "little"))
        self.assertEqual(some_vector, some_enum)
        self.assertEqual(some_vector, some_bare)

        none_vector = await self.parser.encode_value_by_type(option, [], 0)
        none_enum = await self.parser.encode_value_by_type(option, {"None": {}}, 0)
        self.assertEqual(none_vector, b"\x00")
        self.assertEqual(none_vector, none_enum)

        with self.assertRaisesRegex(StructEnumEncodingError, "0 or 1 elements, got 2"):
            await self.parser.encode_value_by_type(option, [1, 2], 0)
        with self.assertRaisesRegex(StructEnumEncodingError, "Unknown Option variant"):
            await self.parser.encode_value_by_type(option, {"Maybe": 1}, 0)

    async def test_framework_field_types(self):
        encoded = await self.parser.encode_struct_argument(
            self.tag("ADDR::shapes::Named"),
            {"label": "hi", "tag": "ab", "extra": []},
        )
        self.assertEqual(encoded.to_bytes(), b"\x02hi" + b"\x02ab" + b"\x00")

    async def test_generic_substitution(self):
        encoded = await self.parser.encode_struct_argument(
            self.tag("ADDR::shapes::Box<u16>"), {"value": [1, "2"]}
        )
        self.assertEqual(encoded.to_bytes(), bytes([2, 1, 0, 2, 0]))

        with self.assertRaisesRegex(StructEnumEncodingError, "T0 out of bounds"):
            await self.parser.encode_struct_argument(
                self.tag("ADDR::shapes::Box"), {"value": []}
            )

    async def test_depth_limit(self):
        nest = self.tag("ADDR::shapes::Nest")

        def nested(levels: int) -> Dict[str, Any]:
            value: Dict[str, Any] = {"inner": []}
            for _ in range(levels):
                value = {"inner": [value]}
            return value

        # Each Nest level adds a field and an option payload, two levels of depth.
        await self.parser.encode_struct_argument(nest, nested(3))
        with self.assertRaisesRegex(
            StructEnumEncodingError,
            "nesting depth 8 exceeds maximum allowed depth of 7",
        ):
            await self.parser.encode_struct_argument(nest, nested(4))

    async def test_value_errors(self):
        with self.assertRaisesRegex(StructEnumEncodingError, "Invalid u8 value: abc"):
            await self.parser.encode_value_by_type(self.tag("u8"), "abc", 0)
        with self.assertRaisesRegex(StructEnumEncodingError, "Expected boolean"):
            await self.parser.encode_value_by_type(self.tag("bool"), "true", 0)
        with self.assertRaisesRegex(StructEnumEncodingError, "Expected array"):
            await self.parser.encode_value_by_type(self.tag("vector<u64>"), 5, 0)
        with self.assertRaisesRegex(StructEnumEncodingError, "Unsupported type: signer"):
            await self.parser.encode_value_by_type(self.tag("signer"), 5, 0)

    async def test_preloaded_modules_skip_fetch(self):
        parser = StructEnumArgumentParser(FakeClient({}))
        parser.preload_modules(fixture_modules())
        await parser.encode_struct_argument(self.tag("ADDR::shapes::Point"), {"x": 1, "y": 2})
        self.assertEqual(parser.client.fetches, [])

    async def test_module_cache(self):
        point = self.tag("ADDR::shapes::Point")
        await self.parser.encode_struct_argument(point, {"x": 1, "y": 2})
        await self.parser.encode_struct_argument(point, {"x": 3, "y": 4})
        self.assertEqual(len(self.client.fetches), 1)

    async def test_fetch_failure(self):
        with self.assertRaisesRegex(StructEnumEncodingError, "Failed to fetch module"):
            await self.parser.encode_struct_argument(self.tag("0x5::nope::Thing"), {})

    def test_is_struct_or_enum(self):
        self.assertTrue(self.parser.is_struct_or_enum(self.tag("ADDR::shapes::Point")))
        self.assertFalse(self.parser.is_struct_or_enum(self.tag("0x1::string::String")))
        self.assertFalse(self.parser.is_struct_or_enum(self.tag("0x1::option::Option<u8>")))
        self.assertFalse(self.parser.is_struct_or_enum(self.tag("u8")))


if __name__ == "__main__":
    unittest.main()
