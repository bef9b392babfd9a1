# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Fetches Move function ABIs from a node and coerces loosely typed Python values (bools,
ints, numeric strings, address strings, lists, bytes, dicts) into `MoveValue`s that
match the declared parameter types.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import unittest
from typing import Any, Dict, List, Optional, Set, Union

from .account_address import AccountAddress
from .async_client import ClientConfig
from .cache import AsyncTtlCache
from .move_values import MoveValue
from .struct_enum_parser import StructEnumArgumentParser
from .type_tag import TypeTag, parse_type_tag

STRUCT_REFERENCE_RE = re.compile(r"(0x[a-fA-F0-9]+)::([\w_]+)::([\w_]+)")
DECIMAL_RE = re.compile(r"[0-9]+")


class ArgumentError(ValueError):
    """An argument could not be converted to its parameter type."""


class TypeMismatchError(ArgumentError):
    def __init__(self, expected_type: str, position: int):
        super().__init__(
            f"Type mismatch for argument {position}, expected '{expected_type}'"
        )
        self.expected_type = expected_type
        self.position = position


class ArgumentCountMismatch(ArgumentError):
    """Too many or too few arguments or type arguments were given."""


class AbiError(Exception):
    """A module or function ABI is missing or unsuitable for the requested use."""


class EntryFunctionABI:
    type_parameters: List[Dict[str, Any]]
    parameters: List[TypeTag]
    # Leading signer parameters, filled in by the transaction's signers
    signers: int

    def __init__(
        self,
        type_parameters: List[Dict[str, Any]],
        parameters: List[TypeTag],
        signers: int = 0,
    ):
        self.type_parameters = type_parameters
        self.parameters = parameters
        self.signers = signers


class ViewFunctionABI:
    type_parameters: List[Dict[str, Any]]
    parameters: List[TypeTag]
    return_types: List[TypeTag]

    def __init__(
        self,
        type_parameters: List[Dict[str, Any]],
        parameters: List[TypeTag],
        return_types: List[TypeTag],
    ):
        self.type_parameters = type_parameters
        self.parameters = parameters
        self.return_types = return_types


FunctionABI = Union[EntryFunctionABI, ViewFunctionABI]


def standardize_type_tags(type_arguments: Optional[List[Union[str, TypeTag]]]) -> List[TypeTag]:
    return [
        parse_type_tag(arg) if isinstance(arg, str) else arg
        for arg in (type_arguments or [])
    ]


def split_function_id(function: str):
    parts = function.split("::")
    if len(parts) != 3:
        raise AbiError(f"Invalid function {function}")
    return parts[0], parts[1], parts[2]


#
# ABI fetching
#


async def fetch_module_abi(address: str, module: str, client) -> Optional[Dict[str, Any]]:
    """Module ABI memoized in `client.cache` for `abi_cache_ttl` seconds."""

    async def fetch():
        response = await client.account_module(
            AccountAddress.from_str_relaxed(address), module
        )
        return response.get("abi")

    return await client.cache.get_or_fetch(
        f"module-abi-{address}-{module}", client.client_config.abi_cache_ttl, fetch
    )


def extract_referenced_modules(module_abi: Dict[str, Any]) -> Set[str]:
    """Module ids, other than this module and 0x1, named in struct fields and signatures."""
    own_id = f"{module_abi['address']}::{module_abi['name']}"
    type_strings = [
        field["type"]
        for struct in module_abi.get("structs", [])
        for field in struct.get("fields", [])
    ]
    for function in module_abi.get("exposed_functions", []):
        type_strings.extend(function.get("params", []))
        type_strings.extend(function.get("return", []))

    referenced = set()
    for type_string in type_strings:
        for match in STRUCT_REFERENCE_RE.finditer(type_string):
            module_id = f"{match.group(1)}::{match.group(2)}"
            if module_id != own_id and not module_id.startswith("0x1::"):
                referenced.add(module_id)
    return referenced


async def fetch_module_abi_with_structs(
    address: str, module: str, client
) -> Dict[str, Dict[str, Any]]:
    """
    The module's ABI plus those of every module its types reference, keyed
    `address::module`. Referenced modules that fail to load are left out, encoding
    reports them if they turn out to be needed.
    """
    module_abi = await fetch_module_abi(address, module, client)
    if not module_abi:
        raise AbiError(f"Module not found: {address}::{module}")

    bundle = {f"{address}::{module}": module_abi}
    referenced = sorted(extract_referenced_modules(module_abi))
    results = await asyncio.gather(
        *[fetch_module_abi(*module_id.split("::"), client) for module_id in referenced],
        return_exceptions=True,
    )
    for module_id, result in zip(referenced, results):
        if isinstance(result, Exception):
            logging.debug(f"Skipping referenced module {module_id}: {result}")
        elif result:
            bundle[module_id] = result
    return bundle


async def fetch_function_abi(
    address: str, module: str, function: str, client
) -> Optional[Dict[str, Any]]:
    module_abi = await fetch_module_abi(address, module, client)
    if not module_abi:
        raise AbiError(f"Could not find module ABI for '{address}::{module}'")
    for candidate in module_abi.get("exposed_functions", []):
        if candidate["name"] == function:
            return candidate
    return None


def first_non_signer_arg(function_abi: Dict[str, Any]) -> int:
    for idx, param in enumerate(function_abi["params"]):
        if param not in ("signer", "&signer"):
            return idx
    return len(function_abi["params"])


async def fetch_entry_function_abi(
    address: str, module: str, function: str, client
) -> EntryFunctionABI:
    function_abi = await fetch_function_abi(address, module, function, client)
    if function_abi is None:
        raise AbiError(
            f"Could not find entry function ABI for '{address}::{module}::{function}'"
        )
    if not function_abi.get("is_entry"):
        raise AbiError(f"'{address}::{module}::{function}' is not an entry function")

    signers = first_non_signer_arg(function_abi)
    return EntryFunctionABI(
        function_abi["generic_type_params"],
        [parse_type_tag(p, allow_generics=True) for p in function_abi["params"][signers:]],
        signers,
    )


async def fetch_view_function_abi(
    address: str, module: str, function: str, client
) -> ViewFunctionABI:
    function_abi = await fetch_function_abi(address, module, function, client)
    if function_abi is None:
        raise AbiError(
            f"Could not find view function ABI for '{address}::{module}::{function}'"
        )
    if not function_abi.get("is_view"):
        raise AbiError(f"'{address}::{module}::{function}' is not an view function")

    return ViewFunctionABI(
        function_abi["generic_type_params"],
        [parse_type_tag(p, allow_generics=True) for p in function_abi["params"]],
        [parse_type_tag(r, allow_generics=True) for r in function_abi["return"]],
    )


#
# Argument coercion
#


async def convert_argument(
    function_name: str,
    abi: Union[Dict[str, Any], FunctionABI],
    arg: Any,
    position: int,
    generic_type_params: List[TypeTag],
    client=None,
    allow_unknown_structs: bool = False,
) -> MoveValue:
    """
    Convert the argument at `position`. `abi` is either a parsed function ABI or a raw
    module ABI, in which case the function's parameters are looked up by name.
    """
    module_abi = None
    if isinstance(abi, dict):
        module_abi = abi
        function_abi = next(
            (f for f in abi.get("exposed_functions", []) if f["name"] == function_name),
            None,
        )
        if function_abi is None:
            raise AbiError(
                f"Could not find function ABI for "
                f"'{abi['address']}::{abi['name']}::{function_name}'"
            )
        params = function_abi["params"]
        if position >= len(params):
            raise ArgumentCountMismatch(
                f"Too many arguments for '{function_name}', expected {len(params)}"
            )
        param = parse_type_tag(params[position], allow_generics=True)
    else:
        if position >= len(abi.parameters):
            raise ArgumentCountMismatch(
                f"Too many arguments for '{function_name}', expected {len(abi.parameters)}"
            )
        param = abi.parameters[position]

    return await check_or_convert_argument(
        arg,
        param,
        position,
        generic_type_params,
        client,
        module_abi,
        allow_unknown_structs,
    )


async def check_or_convert_argument(
    arg: Any,
    param: TypeTag,
    position: int,
    generic_type_params: List[TypeTag],
    client=None,
    module_abi: Optional[Dict[str, Any]] = None,
    allow_unknown_structs: bool = False,
) -> MoveValue:
    if isinstance(arg, MoveValue):
        check_type(param, arg, position)
        return arg
    return await parse_arg(
        arg, param, position, generic_type_params, client, module_abi, allow_unknown_structs
    )


def check_type(param: TypeTag, arg: MoveValue, position: int):
    """Pre-encoded values are checked shallowly: first vector element, option payload."""
    if not arg.matches(param):
        raise TypeMismatchError(str(param), position)


def is_number(arg: Any) -> bool:
    return isinstance(arg, int) and not isinstance(arg, bool)


def convert_number(arg: Any) -> Optional[int]:
    """Ints, integral floats and plain decimal strings, no sign, underscores or spaces."""
    if is_number(arg):
        return arg
    if isinstance(arg, float) and arg.is_integer():
        return int(arg)
    if isinstance(arg, str) and DECIMAL_RE.fullmatch(arg):
        return int(arg)
    return None
    return None


async def parse_arg(
    arg: Any,
    param: TypeTag,
    position: int,
    generic_type_params: List[TypeTag],
    client=None,
    module_abi: Optional[Dict[str, Any]] = None,
    allow_unknown_structs: bool = False,
) -> MoveValue:
    if param.is_bool():
        if isinstance(arg, bool):
            return MoveValue.bool(arg)
        if arg == "true":
            return MoveValue.bool(True)
        if arg == "false":
            return MoveValue.bool(False)
        raise TypeMismatchError("boolean", position)

    if param.is_address():
        if isinstance(arg, (str, AccountAddress)):
            return MoveValue.address(arg)
        raise TypeMismatchError("string | AccountAddress", position)

    if param.variant in (TypeTag.U8, TypeTag.U16, TypeTag.U32):
        num = convert_number(arg)
        if num is None:
            raise TypeMismatchError("number | string", position)
        return MoveValue.integer(str(param), num)

    if param.variant in (TypeTag.U64, TypeTag.U128, TypeTag.U256):
        num = convert_number(arg)
        if num is None:
            raise TypeMismatchError("bigint | number | string", position)
        return MoveValue.integer(str(param), num)

    if param.is_generic():
        index = param.value.index
        if index >= len(generic_type_params):
            raise ArgumentError(
                f"Generic argument {param} is invalid for argument {position}"
            )
        return await check_or_convert_argument(
            arg,
            generic_type_params[index],
            position,
            generic_type_params,
            client,
            module_abi,
            allow_unknown_structs,
        )

    if param.is_vector():
        inner = param.value.inner
        if inner.variant == TypeTag.U8:
            if isinstance(arg, str):
                return MoveValue.vector_u8(arg.encode("utf-8"))
            if isinstance(arg, (bytes, bytearray, memoryview)):
                return MoveValue.vector_u8(bytes(arg))

        # Web style callers pass vectors as JSON strings
        if isinstance(arg, str) and arg.startswith("["):
            return await check_or_convert_argument(
                json.loads(arg),
                param,
                position,
                generic_type_params,
                client,
                module_abi,
                allow_unknown_structs,
            )

        if isinstance(arg, (list, tuple)):
            return MoveValue.vector(
                [
                    await check_or_convert_argument(
                        item,
                        inner,
                        position,
                        generic_type_params,
                        client,
                        module_abi,
                        allow_unknown_structs,
                    )
                    for item in arg
                ]
            )
        raise ArgumentError(f"Type mismatch for argument {position}, type '{param}'")

    if param.is_struct():
        return await parse_struct_arg(
            arg, param, position, generic_type_params, client, module_abi, allow_unknown_structs
        )

    raise ArgumentError(f"Type mismatch for argument {position}, type '{param}'")


async def parse_struct_arg(
    arg: Any,
    param: TypeTag,
    position: int,
    generic_type_params: List[TypeTag],
    client,
    module_abi: Optional[Dict[str, Any]],
    allow_unknown_structs: bool,
) -> MoveValue:
    struct = param.value
    if struct.is_string():
        if isinstance(arg, str):
            return MoveValue.string(arg)
        raise TypeMismatchError("string", position)

    if struct.is_object():
        # The inner type of Object is not checked
        if isinstance(arg, (str, AccountAddress)):
            return MoveValue.address(arg)
        raise TypeMismatchError("string | AccountAddress", position)

    if struct.is_option():
        if arg is None:
            return MoveValue.option(None)
        return MoveValue.option(
            await check_or_convert_argument(
                arg,
                struct.type_args[0],
                position,
                generic_type_params,
                client,
                module_abi,
                allow_unknown_structs,
            )
        )

    if isinstance(arg, dict):
        return await encode_struct_or_enum(arg, param, position, client)

    definition = None
    if module_abi is not None:
        definition = next(
            (s for s in module_abi.get("structs", []) if s["name"] == struct.name), None
        )
    # Field-less structs are assumed to be enums that cannot be checked further
    if definition is not None and not definition.get("fields") and isinstance(arg, bytes):
        return MoveValue.fixed_bytes(arg)

    if isinstance(arg, bytes) and allow_unknown_structs:
        logging.warning(
            f"Unsupported struct input type for argument {position}. Continuing since "
            "'allow_unknown_structs' is enabled."
        )
        return MoveValue.fixed_bytes(arg)

    raise ArgumentError(
        f"Unsupported struct input type for argument {position}, type '{param}'"
    )


async def encode_struct_or_enum(
    arg: Dict[str, Any], param: TypeTag, position: int, client
) -> MoveValue:
    if client is None:
        raise ArgumentError(
            f"A client is required for struct/enum argument at position {position}, "
            f"type '{param}'"
        )

    struct = param.value
    address = str(struct.address)
    try:
        bundle = await fetch_module_abi_with_structs(address, struct.module, client)
        parser = StructEnumArgumentParser(client)
        parser.preload_modules(bundle)

        module_abi = bundle[f"{address}::{struct.module}"]
        definition = next(
            (s for s in module_abi.get("structs", []) if s["name"] == struct.name), None
        )
        if definition is not None:
            is_enum = bool(definition.get("is_enum"))
        else:
            # Without a definition, `{"Variant": {...}}` is taken to be an enum
            is_enum = len(arg) == 1 and isinstance(next(iter(arg.values())), dict)

        if is_enum:
            return await parser.encode_enum_argument(param, arg)
        return await parser.encode_struct_argument(param, arg)
    except Exception as e:
        raise ArgumentError(
            f"Failed to encode struct/enum argument at position {position}, "
            f"type '{param}': {e}"
        ) from e


async def generate_entry_function_arguments(
    function: str,
    abi: FunctionABI,
    type_arguments: List[TypeTag],
    function_arguments: List[Any],
    client=None,
    allow_unknown_structs: bool = False,
) -> List[MoveValue]:
    """Convert a complete argument list, enforcing the ABI's type and value arity."""
    if len(type_arguments) != len(abi.type_parameters):
        raise ArgumentCountMismatch(
            f"Type argument count mismatch, expected {len(abi.type_parameters)}, "
            f"received {len(type_arguments)}"
        )

    converted = [
        await convert_argument(
            function,
            abi,
            arg,
            position,
            type_arguments,
            client,
            allow_unknown_structs,
        )
        for position, arg in enumerate(function_arguments)
    ]
    if len(converted) != len(abi.parameters):
        raise ArgumentCountMismatch(
            f"Too few arguments for '{function}', expected {len(abi.parameters)} "
            f"but got {len(converted)}"
        )
    return converted


MODULE_ADDRESS = "0x" + "cd" * 32


def fixture_module() -> Dict[str, Any]:
    return {
        "address": MODULE_ADDRESS,
        "name": "game",
        "friends": [],
        "exposed_functions": [
            {
                "name": "play",
                "visibility": "public",
                "is_entry": True,
                "is_view": False,
                "generic_type_params": [{"constraints": []}],
                "params": [
                    "&signer",
                    "u8",
                    "u64",
                    "bool",
                    "address",
                    "vector<u8>",
                    "vector<u32>",
                    "0x1::string::String",
                    "0x1::option::Option<u16>",
                    "0x1::object::Object<0x1::object::ObjectCore>",
                    "T0",
                ],
                "return": [],
            },
            {
                "name": "place",
                "visibility": "public",
                "is_entry": True,
                "is_view": False,
                "generic_type_params": [],
                "params": ["signer", f"{MODULE_ADDRESS}::game::Move"],
                "return": [],
            },
            {
                "name": "score",
                "visibility": "public",
                "is_entry": False,
                "is_view": True,
                "generic_type_params": [],
                "params": ["address"],
                "return": ["u64", f"0x{'ee' * 32}::board::Board"],
            },
            {
                "name": "opaque",
                "visibility": "public",
                "is_entry": True,
                "is_view": False,
                "generic_type_params": [],
                "params": [f"{MODULE_ADDRESS}::game::Marker", "0x7::other::Thing"],
                "return": [],
            },
        ],
        "structs": [
            {
                "name": "Move",
                "is_native": False,
                "is_enum": False,
                "abilities": ["copy", "drop"],
                "generic_type_params": [],
                "fields": [
                    {"name": "row", "type": "u8"},
                    {"name": "col", "type": "u8"},
                ],
            },
            {
                "name": "Marker",
                "is_native": False,
                "is_enum": True,
                "abilities": ["copy", "drop"],
                "generic_type_params": [],
                "fields": [],
            },
        ],
    }


class FakeClient:
    def __init__(self, modules: Dict[str, Dict[str, Any]]):
        self.modules = modules
        self.fetches: List[str] = []
        self.cache = AsyncTtlCache()
        self.client_config = ClientConfig()

    async def account_module(self, address: AccountAddress, module: str) -> Dict[str, Any]:
        key = f"{address}::{module}"
        self.fetches.append(key)
        if key not in self.modules:
            raise LookupError(f"module {key} not found")
        return {"abi": self.modules[key]}


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.client = FakeClient({f"{MODULE_ADDRESS}::game": fixture_module()})

    async def entry_abi(self, function: str) -> EntryFunctionABI:
        return await fetch_entry_function_abi(MODULE_ADDRESS, "game", function, self.client)

    async def test_entry_abi_strips_signers(self):
        abi = await self.entry_abi("play")
        self.assertEqual(abi.signers, 1)
        self.assertEqual(len(abi.parameters), 10)
        self.assertEqual(str(abi.parameters[0]), "u8")
        self.assertTrue(abi.parameters[-1].is_generic())

    async def test_module_abi_is_memoized(self):
        await self.entry_abi("play")
        await self.entry_abi("place")
        await fetch_view_function_abi(MODULE_ADDRESS, "game", "score", self.client)
        self.assertEqual(len(self.client.fetches), 1)

    async def test_abi_errors(self):
        with self.assertRaisesRegex(AbiError, "is not an entry function"):
            await self.entry_abi("score")
        with self.assertRaisesRegex(AbiError, "is not an view function"):
            await fetch_view_function_abi(MODULE_ADDRESS, "game", "play", self.client)
        with self.assertRaisesRegex(AbiError, "Could not find entry function ABI"):
            await self.entry_abi("missing")

    async def test_view_abi(self):
        abi = await fetch_view_function_abi(MODULE_ADDRESS, "game", "score", self.client)
        self.assertEqual([str(t) for t in abi.parameters], ["address"])
        self.assertEqual(str(abi.return_types[0]), "u64")

    async def test_coercion_table(self):
        abi = await self.entry_abi("play")
        values = await generate_entry_function_arguments(
            "play",
            abi,
            [parse_type_tag("u16")],
            [
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
            ],
        )
        self.assertEqual(values[0], MoveValue.u8(7))
        self.assertEqual(values[1], MoveValue.u64(2**40))
        self.assertEqual(values[2], MoveValue.bool(False))
        self.assertEqual(values[3], MoveValue.address("0x1"))
        self.assertEqual(values[4], MoveValue.vector_u8(b"hi"))
        self.assertEqual(values[5], MoveValue.vector([MoveValue.u32(1), MoveValue.u32(2)]))
        self.assertEqual(values[6], MoveValue.string("name"))
        self.assertEqual(values[7], MoveValue.option(None))
        self.assertEqual(values[8], MoveValue.address("0x3"))
        self.assertEqual(values[9], MoveValue.u16(9))

    async def test_type_mismatches(self):
        abi = await self.entry_abi("play")
        cases = [
            (0, "x", "number | string"),
            (0, True, "number | string"),
            (0, "1_0", "number | string"),
            (1, 1.5, "bigint | number | string"),
            (1, "1_000", "bigint | number | string"),
            (1, " 5", "bigint | number | string"),
            (1, "-1", "bigint | number | string"),
            (2, 1, "boolean"),
            (3, 5, "string | AccountAddress"),
            (6, 5, "string"),
        ]
        for position, arg, expected in cases:
            with self.assertRaises(TypeMismatchError) as cm:
                await convert_argument("play", abi, arg, position, [parse_type_tag("u8")])
            self.assertEqual(
                str(cm.exception),
                f"Type mismatch for argument {position}, expected '{expected}'",
            )

        with self.assertRaisesRegex(ArgumentError, "type 'vector<u32>'"):
            await convert_argument("play", abi, 5, 5, [parse_type_tag("u8")])
        with self.assertRaisesRegex(ArgumentError, "Generic argument T0 is invalid"):
            await convert_argument("play", abi, 1, 9, [])

        # Integral floats are accepted like ints
        value = await convert_argument("play", abi, 2.0, 1, [parse_type_tag("u8")])
        self.assertEqual(value.to_bytes(), (2).to_bytes(8, "little"))

    async def test_argument_counts(self):
        abi = await self.entry_abi("place")
        with self.assertRaisesRegex(
            ArgumentCountMismatch, "Too many arguments for 'place', expected 1"
        ):
            await convert_argument("place", abi, 1, 1, [])
        with self.assertRaisesRegex(ArgumentCountMismatch, "Too few arguments"):
            await generate_entry_function_arguments("place", abi, [], [])
        with self.assertRaisesRegex(ArgumentCountMismatch, "Type argument count mismatch"):
            await generate_entry_function_arguments("place", abi, [parse_type_tag("u8")], [])

    async def test_pre_encoded_values(self):
        abi = await self.entry_abi("play")
        value = MoveValue.u64(5)
        self.assertIs(await convert_argument("play", abi, value, 1, []), value)
        with self.assertRaisesRegex(TypeMismatchError, "expected 'u8'"):
            await convert_argument("play", abi, value, 0, [])
        self.assertEqual(
            await convert_argument("play", abi, MoveValue.address("0x1"), 8, []),
            MoveValue.address("0x1"),
        )

    async def test_struct_argument(self):
        abi = await self.entry_abi("place")
        value = await convert_argument(
            "place", abi, {"row": 1, "col": "2"}, 0, [], self.client
        )
        self.assertEqual(value.to_bytes(), bytes([1, 2]))

        with self.assertRaisesRegex(
            ArgumentError, "Failed to encode struct/enum argument at position 0.*Missing field"
        ):
            await convert_argument("place", abi, {"row": 1}, 0, [], self.client)
        with self.assertRaisesRegex(ArgumentError, "A client is required"):
            await convert_argument("place", abi, {"row": 1, "col": 2}, 0, [])

    async def test_raw_struct_bytes(self):
        module_abi = fixture_module()
        value = await convert_argument("opaque", module_abi, b"\x01", 0, [])
        self.assertEqual(value, MoveValue.fixed_bytes(b"\x01"))

        with self.assertRaisesRegex(ArgumentError, "Unsupported struct input type"):
            await convert_argument("opaque", module_abi, b"\x01", 1, [])
        with self.assertLogs(level="WARNING"):
            value = await convert_argument(
                "opaque", module_abi, b"\x02", 1, [], allow_unknown_structs=True
            )
        self.assertEqual(value, MoveValue.fixed_bytes(b"\x02"))

    async def test_referenced_modules(self):
        module_abi = fixture_module()
        self.assertEqual(
            extract_referenced_modules(module_abi),
            {"0x7::other", f"0x{'ee' * 32}::board"},
        )
        # Neither referenced module exists, the bundle still loads.
        bundle = await fetch_module_abi_with_structs(MODULE_ADDRESS, "game", self.client)
        self.assertEqual(list(bundle), [f"{MODULE_ADDRESS}::game"])

        with self.assertRaises(LookupError):
            await fetch_module_abi_with_structs("0x9", "absent", self.client)

    def test_standardize_type_tags(self):
        tag = parse_type_tag("u64")
        self.assertEqual(standardize_type_tags(["bool", tag]), [parse_type_tag("bool"), tag])
        self.assertEqual(standardize_type_tags(None), [])


if __name__ == "__main__":
    unittest.main()
