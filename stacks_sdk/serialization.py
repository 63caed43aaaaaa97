# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Binary serialization primitives for the Stacks consensus wire format.

Stacks transactions, post conditions and Clarity values are all encoded with the
same small set of building blocks: big-endian fixed width integers, fixed
length byte strings, and byte strings prefixed with either a one byte or a four
byte length. This module provides a stream oriented serializer and deserializer
for those building blocks that every other encoder in the SDK builds on.

The module contains:
- Protocol interfaces for serializable and deserializable objects
- Deserializer class for reading wire encoded data
- Serializer class for writing wire encoded data
- The ``encoder`` helper for one-off encodings

Examples:
    Basic serialization::

        from stacks_sdk.serialization import Serializer, Deserializer

        ser = Serializer()
        ser.u32(7)
        ser.lp_str("counter")
        data = ser.output()

        der = Deserializer(data)
        der.u32()      # 7
        der.lp_str()   # "counter"

    Working with custom structures::

        class Pair:
            def serialize(self, serializer):
                serializer.u8(self.left)
                serializer.u64(self.right)

            @staticmethod
            def deserialize(deserializer):
                return Pair(deserializer.u8(), deserializer.u64())
"""

from __future__ import annotations

import io
import typing
import unittest
from typing import List

from typing_extensions import Protocol

MAX_U8 = 2**8 - 1
MAX_U16 = 2**16 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MAX_U128 = 2**128 - 1
MIN_I128 = -(2**127)
MAX_I128 = 2**127 - 1


class SerializationError(Exception):
    """A value could not be encoded, or the input stream was malformed."""


class Deserializable(Protocol):
    """Protocol for objects that can be read back from the wire format.

    Implementations provide a static ``deserialize`` method; ``from_bytes`` is
    inherited and wraps the raw bytes in a ``Deserializer``.

    Examples:
        Implementing a deserializable class::

            class Name:
                def __init__(self, value: str):
                    self.value = value

                @staticmethod
                def deserialize(deserializer: Deserializer) -> "Name":
                    return Name(deserializer.lp_str())

            Name.from_bytes(b"\\x03abc").value  # "abc"
    """

    @classmethod
    def from_bytes(cls, indata: bytes) -> Deserializable:
        """Create an instance of this class from encoded bytes.

        Args:
            indata: The encoded byte data.

        Returns:
            An instance of the implementing class.

        Raises:
            SerializationError: If the data is truncated or malformed.
        """
        der = Deserializer(indata)
        return der.struct(cls)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deserializable:
        """Read an instance from a Deserializer."""
        ...


class Serializable(Protocol):
    """Protocol for objects that can be written to the wire format.

    Implementations provide ``serialize``; ``to_bytes`` is inherited.
    """

    def to_bytes(self) -> bytes:
        """Convert this object to its encoded bytes.

        Returns:
            The encoded representation of this object.
        """
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def serialize(self, serializer: Serializer):
        """Write this object to the provided Serializer."""
        ...


class Deserializer:
    """A deserializer for reading big-endian wire data from a byte stream.

    The Deserializer maintains a position in the input and exposes one method
    per primitive. Every read checks that enough input remains and raises
    ``SerializationError`` otherwise, so truncated payloads never decode into
    partial values.

    Attributes:
        _input: Internal BytesIO stream for reading data.
        _length: Total length of the input data.

    Examples:
        Reading a length prefixed contract name followed by a nonce::

            der = Deserializer(bytes.fromhex("03616263" "0000000000000005"))
            der.lp_str()  # "abc"
            der.u64()     # 5
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        """Get the number of bytes remaining in the input stream."""
        return self._length - self._input.tell()

    def to_bytes(self) -> bytes:
        """Read a byte string prefixed with a four byte big-endian length.

        Returns:
            The raw bytes that followed the length prefix.
        """
        return self._read(self.u32())

    def fixed_bytes(self, length: int) -> bytes:
        """Read exactly ``length`` bytes from the stream.

        Args:
            length: The exact number of bytes to read.

        Returns:
            The bytes read.
        """
        return self._read(length)

    def lp_bytes(self) -> bytes:
        """Read a byte string prefixed with a single length byte."""
        return self._read(self.u8())

    def lp_str(self) -> str:
        """Read an ASCII string prefixed with a single length byte.

        Contract names, function names and asset names are all encoded this
        way, which limits them to 255 bytes on the wire.

        Returns:
            The decoded string.

        Raises:
            SerializationError: If the bytes are not ASCII.
        """
        raw = self.lp_bytes()
        try:
            return raw.decode("ascii")
        except UnicodeDecodeError as e:
            raise SerializationError(f"Expected ASCII name, found {raw!r}") from e

    def sequence(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> List[typing.Any]:
        """Read a sequence prefixed with a four byte element count.

        Args:
            value_decoder: Function to decode each element from the stream.

        Returns:
            A list containing the decoded elements.

        Examples:
            Reading a list of post conditions::

                conditions = der.sequence(FungiblePostCondition.deserialize)
        """
        length = self.u32()
        values: List = []
        while len(values) < length:
            values.append(value_decoder(self))
        return values

    def str(self) -> str:
        """Read a UTF-8 string prefixed with a four byte length."""
        raw = self.to_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError("Invalid UTF-8 string") from e

    def struct(self, struct: typing.Any) -> typing.Any:
        """Deserialize a custom struct by delegating to its ``deserialize``."""
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

    def i128(self) -> int:
        """Read a 128-bit two's complement signed integer."""
        return int.from_bytes(self._read(16), byteorder="big", signed=True)

    def _read(self, length: int) -> bytes:
        """Read a specified number of bytes from the input stream.

        Raises:
            SerializationError: If there are insufficient bytes remaining.
        """
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            error = (
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
            raise SerializationError(error)
        return value

    def _read_int(self, length: int) -> int:
        return int.from_bytes(self._read(length), byteorder="big", signed=False)


class Serializer:
    """A serializer for writing big-endian wire data to a byte stream.

    Every integer writer checks its range before writing, so an out of range
    amount or nonce fails loudly instead of being truncated.

    Attributes:
        _output: Internal BytesIO buffer for accumulating serialized data.

    Examples:
        Basic usage::

            ser = Serializer()
            ser.u8(0x02)
            ser.lp_str("transfer")
            data = ser.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        """Get all bytes written so far."""
        return self._output.getvalue()

    def to_bytes(self, value: bytes):
        """Write a byte string prefixed with its four byte length."""
        self.u32(len(value))
        self._output.write(value)

    def fixed_bytes(self, value: bytes):
        """Write raw bytes without any length prefix."""
        self._output.write(value)

    def lp_bytes(self, value: bytes):
        """Write a byte string prefixed with a single length byte.

        Raises:
            SerializationError: If the value is longer than 255 bytes.
        """
        if len(value) > MAX_U8:
            raise SerializationError(
                f"Cannot encode {len(value)} bytes behind a one byte length prefix"
            )
        self.u8(len(value))
        self._output.write(value)

    def lp_str(self, value: str):
        """Write an ASCII string prefixed with a single length byte."""
        try:
            raw = value.encode("ascii")
        except UnicodeEncodeError as e:
            raise SerializationError(f"Expected ASCII name, found {value!r}") from e
        self.lp_bytes(raw)

    def sequence(
        self,
        values: typing.List[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a four byte element count followed by each encoded element.

        Args:
            values: The elements to encode.
            value_encoder: Function writing a single element.
        """
        self.u32(len(values))
        for value in values:
            self.fixed_bytes(encoder(value, value_encoder))

    def str(self, value: str):
        """Write a UTF-8 string prefixed with its four byte byte-length."""
        self.to_bytes(value.encode("utf-8"))

    def struct(self, value: typing.Any):
        """Serialize a custom struct by delegating to its ``serialize``."""
        value.serialize(self)

    def u8(self, value: int):
        if value < 0 or value > MAX_U8:
            raise SerializationError(f"Cannot encode {value} into u8")

        self._write_int(value, 1)

    def u16(self, value: int):
        if value < 0 or value > MAX_U16:
            raise SerializationError(f"Cannot encode {value} into u16")

        self._write_int(value, 2)

    def u32(self, value: int):
        if value < 0 or value > MAX_U32:
            raise SerializationError(f"Cannot encode {value} into u32")

        self._write_int(value, 4)

    def u64(self, value: int):
        """Write a 64-bit unsigned integer, the width of fees, nonces and amounts."""
        if value < 0 or value > MAX_U64:
            raise SerializationError(f"Cannot encode {value} into u64")

        self._write_int(value, 8)

    def u128(self, value: int):
        """Write a 128-bit unsigned integer, the width of a Clarity ``uint``."""
        if value < 0 or value > MAX_U128:
            raise SerializationError(f"Cannot encode {value} into u128")

        self._write_int(value, 16)

    def i128(self, value: int):
        """Write a 128-bit two's complement integer, the width of a Clarity ``int``."""
        if value < MIN_I128 or value > MAX_I128:
            raise SerializationError(f"Cannot encode {value} into i128")

        self._output.write(value.to_bytes(16, "big", signed=True))

    def _write_int(self, value: int, length: int):
        self._output.write(value.to_bytes(length, "big", signed=False))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], typing.Any]
) -> bytes:
    """Encode a single value using the specified encoder function.

    Args:
        value: The value to encode.
        encoder: Function that takes a serializer and value and encodes the value.

    Returns:
        The encoded bytes for the value.

    Examples:
        Encoding a nonce::

            data = encoder(5, Serializer.u64)
    """
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


class Test(unittest.TestCase):
    def test_integers_are_big_endian(self):
        ser = Serializer()
        ser.u8(1)
        ser.u16(2)
        ser.u32(3)
        ser.u64(4)
        self.assertEqual(
            ser.output().hex(), "01" "0002" "00000003" "0000000000000004"
        )

    def test_u128_and_i128(self):
        ser = Serializer()
        ser.u128(1)
        ser.i128(-1)
        output = ser.output()
        self.assertEqual(output[:16].hex(), "00" * 15 + "01")
        self.assertEqual(output[16:].hex(), "ff" * 16)

        der = Deserializer(output)
        self.assertEqual(der.u128(), 1)
        self.assertEqual(der.i128(), -1)
        self.assertEqual(der.remaining(), 0)

    def test_out_of_range(self):
        ser = Serializer()
        with self.assertRaises(SerializationError):
            ser.u64(2**64)
        with self.assertRaises(SerializationError):
            ser.u8(-1)
        with self.assertRaises(SerializationError):
            ser.i128(2**127)

    def test_length_prefixes(self):
        ser = Serializer()
        ser.lp_str("vote")
        ser.str("héllo")
        ser.to_bytes(b"\x01\x02")
        der = Deserializer(ser.output())
        self.assertEqual(der.lp_str(), "vote")
        self.assertEqual(der.str(), "héllo")
        self.assertEqual(der.to_bytes(), b"\x01\x02")

    def test_lp_str_rejects_long_and_non_ascii(self):
        ser = Serializer()
        with self.assertRaises(SerializationError):
            ser.lp_str("a" * 256)
        with self.assertRaises(SerializationError):
            ser.lp_str("café")

    def test_sequence(self):
        in_value = [1, 2, 3]

        ser = Serializer()
        ser.sequence(in_value, Serializer.u64)
        der = Deserializer(ser.output())
        self.assertEqual(der.sequence(Deserializer.u64), in_value)

    def test_truncated_input(self):
        der = Deserializer(b"\x00\x00\x00\x05abc")
        with self.assertRaises(SerializationError):
            der.to_bytes()


if __name__ == "__main__":
    unittest.main()
