# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Binary Canonical Serialization (BCS). Integers are little-endian, lengths and enum
discriminants are ULEB128, options are zero or one element vectors. Learn more at
https://github.com/diem/bcs
"""

from __future__ import annotations

import io
import typing
import unittest
from typing import Dict, List

from typing_extensions import Protocol

MAX_U8 = 2**8 - 1
MAX_U16 = 2**16 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MAX_U128 = 2**128 - 1
MAX_U256 = 2**256 - 1

# A u32 never needs more than five 7-bit groups.
MAX_ULEB128_BYTES = 5


class DeserializationError(Exception):
    """Input bytes do not form a valid BCS encoding of the requested type."""


class Deserializable(Protocol):
    @classmethod
    def from_bytes(cls, indata: bytes) -> Deserializable:
        der = Deserializer(indata)
        return der.struct(cls)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deserializable:
        ...


class Serializable(Protocol):
    def to_bytes(self) -> bytes:
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def serialize(self, serializer: Serializer):
        ...


class Deserializer:
    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        return self._length - self._input.tell()

    def bool(self) -> bool:
        value = self._read_int(1)
        if value == 0:
            return False
        elif value == 1:
            return True
        raise DeserializationError(f"Unexpected boolean value: {value}")

    def to_bytes(self) -> bytes:
        return self._read(self.uleb128())

    def fixed_bytes(self, length: int) -> bytes:
        return self._read(length)

    def map(
        self,
        key_decoder: typing.Callable[[Deserializer], typing.Any],
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> Dict[typing.Any, typing.Any]:
        length = self.uleb128()
        values: Dict = {}
        while len(values) < length:
            key = key_decoder(self)
            value = value_decoder(self)
            values[key] = value
        return values

    def option(
        self, value_decoder: typing.Callable[[Deserializer], typing.Any]
    ) -> typing.Optional[typing.Any]:
        tag = self.uleb128()
        if tag == 0:
            return None
        if tag == 1:
            return value_decoder(self)
        raise DeserializationError(f"Unexpected option length: {tag}")

    def sequence(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> List[typing.Any]:
        length = self.uleb128()
        values: List = []
        while len(values) < length:
            values.append(value_decoder(self))
        return values

    def str(self) -> str:
        raw = self.to_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DeserializationError(f"Invalid UTF-8 string: {e}") from e

    def struct(self, struct: typing.Any) -> typing.Any:
        return struct.deserialize(self)

    def u8(self) -> int:
        return self._read_int(1)

    def u16(self) -> int:
        return self._read_int(2)

    def u32(self) -> int:
        return self._read_int(4)

    def u64(self) -> int:
        return self._read_int(8)

    def u128(self) -> int:
        return self._read_int(16)

    def u256(self) -> int:
        return self._read_int(32)

    def uleb128(self) -> int:
        value = 0
        shift = 0

        for _ in range(MAX_ULEB128_BYTES):
            byte = self._read_int(1)
            value |= (byte & 0x7F) << shift
            if byte & 0x80 == 0:
                if value > MAX_U32:
                    raise DeserializationError(
                        f"Unexpectedly large uleb128 value: {value}"
                    )
                return value
            shift += 7

        raise DeserializationError("uleb128 value does not fit into a u32")

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            error = (
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
            raise DeserializationError(error)
        return value

    def _read_int(self, length: int) -> int:
        return int.from_bytes(self._read(length), byteorder="little", signed=False)


class Serializer:
    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def bool(self, value: bool):
        self._write_int(int(value), 1)

    def to_bytes(self, value: bytes):
        self.uleb128(len(value))
        self._output.write(value)

    def fixed_bytes(self, value: bytes):
        self._output.write(value)

    def map(
        self,
        values: typing.Dict[typing.Any, typing.Any],
        key_encoder: typing.Callable[[Serializer, typing.Any], None],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        encoded_values = []
        for key, value in values.items():
            encoded_values.append(
                (encoder(key, key_encoder), encoder(value, value_encoder))
            )
        encoded_values.sort(key=lambda item: item[0])

        self.uleb128(len(encoded_values))
        for key, value in encoded_values:
            self.fixed_bytes(key)
            self.fixed_bytes(value)

    def option(
        self,
        value: typing.Optional[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        if value is None:
            self.uleb128(0)
        else:
            self.uleb128(1)
            value_encoder(self, value)

    @staticmethod
    def sequence_serializer(
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        return lambda self, values: self.sequence(values, value_encoder)

    def sequence(
        self,
        values: typing.Sequence[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        self.uleb128(len(values))
        for value in values:
            self.fixed_bytes(encoder(value, value_encoder))

    def str(self, value: str):
        self.to_bytes(value.encode("utf-8"))

    def struct(self, value: typing.Any):
        value.serialize(self)

    def u8(self, value: int):
        self._write_bounded(value, 1, MAX_U8, "u8")

    def u16(self, value: int):
        self._write_bounded(value, 2, MAX_U16, "u16")

    def u32(self, value: int):
        self._write_bounded(value, 4, MAX_U32, "u32")

    def u64(self, value: int):
        self._write_bounded(value, 8, MAX_U64, "u64")

    def u128(self, value: int):
        self._write_bounded(value, 16, MAX_U128, "u128")

    def u256(self, value: int):
        self._write_bounded(value, 32, MAX_U256, "u256")

    def uleb128(self, value: int):
        if value < 0 or value > MAX_U32:
            raise ValueError(f"Cannot encode {value} into uleb128")

        while value >= 0x80:
            # Low 7 bits with the continuation bit set.
            byte = value & 0x7F
            self.u8(byte | 0x80)
            value >>= 7

        self.u8(value & 0x7F)

    def _write_bounded(self, value: int, length: int, maximum: int, name: str):
        if value < 0 or value > maximum:
            raise ValueError(f"Cannot encode {value} into {name}")
        self._write_int(value, length)

    def _write_int(self, value: int, length: int):
        self._output.write(value.to_bytes(length, "little", signed=False))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], None]
) -> bytes:
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


class Test(unittest.TestCase):
    def test_bool(self):
        for in_value in [True, False]:
            ser = Serializer()
            ser.bool(in_value)
            self.assertEqual(Deserializer(ser.output()).bool(), in_value)

    def test_bool_error(self):
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x20").bool()

    def test_bytes(self):
        in_value = b"1234567890"

        ser = Serializer()
        ser.to_bytes(in_value)
        self.assertEqual(ser.output(), b"\x0a" + in_value)
        der = Deserializer(ser.output())
        self.assertEqual(der.to_bytes(), in_value)
        self.assertEqual(der.remaining(), 0)

    def test_map(self):
        in_value = {"c": 23829, "a": 12345, "b": 99234}

        ser = Serializer()
        ser.map(in_value, Serializer.str, Serializer.u32)
        der = Deserializer(ser.output())
        out_value = der.map(Deserializer.str, Deserializer.u32)

        self.assertEqual(in_value, out_value)
        self.assertEqual(ser.output()[:3], b"\x03\x01a")

    def test_option(self):
        ser = Serializer()
        ser.option(None, Serializer.u8)
        ser.option(7, Serializer.u8)
        self.assertEqual(ser.output(), b"\x00\x01\x07")

        der = Deserializer(ser.output())
        self.assertIsNone(der.option(Deserializer.u8))
        self.assertEqual(der.option(Deserializer.u8), 7)

        with self.assertRaises(DeserializationError):
            Deserializer(b"\x02").option(Deserializer.u8)

    def test_sequence_serializer(self):
        in_value = ["a", "abc", "def", "ghi"]

        ser = Serializer()
        seq_ser = Serializer.sequence_serializer(Serializer.str)
        seq_ser(ser, in_value)
        der = Deserializer(ser.output())
        out_value = der.sequence(Deserializer.str)

        self.assertEqual(in_value, out_value)

    def test_str(self):
        in_value = "héllo wörld"

        ser = Serializer()
        ser.str(in_value)
        self.assertEqual(Deserializer(ser.output()).str(), in_value)

    def test_str_invalid_utf8(self):
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x02\xc3\x28").str()

    def test_integers(self):
        ser = Serializer()
        ser.u8(15)
        ser.u16(11115)
        ser.u32(1111111115)
        ser.u64(1111111111111111115)
        ser.u128(1111111111111111111111111111111111115)
        ser.u256(MAX_U256)
        der = Deserializer(ser.output())

        self.assertEqual(der.u8(), 15)
        self.assertEqual(der.u16(), 11115)
        self.assertEqual(der.u32(), 1111111115)
        self.assertEqual(der.u64(), 1111111111111111115)
        self.assertEqual(der.u128(), 1111111111111111111111111111111111115)
        self.assertEqual(der.u256(), MAX_U256)

    def test_little_endian(self):
        ser = Serializer()
        ser.u16(0x0102)
        ser.u64(1)
        self.assertEqual(ser.output(), b"\x02\x01" + b"\x01" + b"\x00" * 7)

    def test_integer_bounds(self):
        ser = Serializer()
        with self.assertRaises(ValueError):
            ser.u8(256)
        with self.assertRaises(ValueError):
            ser.u64(-1)
        with self.assertRaises(ValueError):
            ser.u256(MAX_U256 + 1)

    def test_uleb128(self):
        for value, encoded in [
            (0, b"\x00"),
            (127, b"\x7f"),
            (128, b"\x80\x01"),
            (16384, b"\x80\x80\x01"),
            (MAX_U32, b"\xff\xff\xff\xff\x0f"),
        ]:
            ser = Serializer()
            ser.uleb128(value)
            self.assertEqual(ser.output(), encoded)
            self.assertEqual(Deserializer(encoded).uleb128(), value)

    def test_uleb128_overflow(self):
        with self.assertRaises(ValueError):
            Serializer().uleb128(MAX_U32 + 1)
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x80\x80\x80\x80\x10").uleb128()
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x80\x80\x80\x80\x80\x01").uleb128()

    def test_truncated(self):
        der = Deserializer(b"\x01\x02")
        with self.assertRaisesRegex(
            DeserializationError, "Requested: 4, found: 2"
        ):
            der.u32()
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x05ab").to_bytes()


if __name__ == "__main__":
    unittest.main()
