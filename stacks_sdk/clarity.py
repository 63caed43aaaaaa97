# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Clarity values and their consensus serialization.

Clarity values are the arguments passed to contract functions and the results
returned from them. They form a closed discriminated union: every encoded
value starts with a one byte type prefix, followed by a type specific body.
Integers are 128-bit big-endian, sequences are prefixed with a four byte
length, and tuple entries are written sorted by key.

The module contains:
- ClarityType: The type prefixes of the union
- ClarityValue: The base class every value derives from
- One class per value kind (IntCV, UIntCV, BufferCV, BoolCV, principals,
  responses, optionals, ListCV, TupleCV, string types)
- Helpers to build principals and optionals from plain Python values

Every value can be rendered three ways: as hex for the node API
(``to_hex``), as a native Python value (``to_value``), and as the typed JSON
structure shown to users (``to_json``)::

    {"type": "(response uint UnknownType)",
     "value": {"type": "uint", "value": "100"},
     "success": True}

Examples:
    Encoding arguments::

        from stacks_sdk.clarity import UIntCV, StringAsciiCV, principal_cv

        UIntCV(1).to_hex()  # "0x0100000000000000000000000000000001"
        args = [StringAsciiCV("Increase Treasury"), UIntCV(10080)]
        owner = principal_cv("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB")

    Decoding a read-only result::

        result = ClarityValue.from_hex("0x070100000000000000000000000000000064")
        result.to_json()["success"]  # True
        result.to_value()            # 100
"""

from __future__ import annotations

import typing
import unittest
from typing import Any, Dict, List, Optional

from .address import ParseAddressError, StacksAddress, parse_contract_id
from .serialization import (
    MAX_I128,
    MAX_U128,
    MIN_I128,
    Deserializable,
    Deserializer,
    Serializable,
    SerializationError,
    Serializer,
)


class ClarityError(Exception):
    """A Clarity value is out of range, malformed, or does not decode."""


class ClarityType:
    """Type prefixes of the Clarity value union.

    Attributes:
        INT: Signed 128-bit integer (0x00)
        UINT: Unsigned 128-bit integer (0x01)
        BUFFER: Byte buffer (0x02)
        BOOL_TRUE: Boolean true (0x03)
        BOOL_FALSE: Boolean false (0x04)
        PRINCIPAL_STANDARD: Account principal (0x05)
        PRINCIPAL_CONTRACT: Contract principal (0x06)
        RESPONSE_OK: Successful response (0x07)
        RESPONSE_ERR: Error response (0x08)
        OPTIONAL_NONE: Empty optional (0x09)
        OPTIONAL_SOME: Present optional (0x0a)
        LIST: Homogeneous list (0x0b)
        TUPLE: Named fields (0x0c)
        STRING_ASCII: ASCII string (0x0d)
        STRING_UTF8: UTF-8 string (0x0e)
    """

    INT: int = 0x00
    UINT: int = 0x01
    BUFFER: int = 0x02
    BOOL_TRUE: int = 0x03
    BOOL_FALSE: int = 0x04
    PRINCIPAL_STANDARD: int = 0x05
    PRINCIPAL_CONTRACT: int = 0x06
    RESPONSE_OK: int = 0x07
    RESPONSE_ERR: int = 0x08
    OPTIONAL_NONE: int = 0x09
    OPTIONAL_SOME: int = 0x0A
    LIST: int = 0x0B
    TUPLE: int = 0x0C
    STRING_ASCII: int = 0x0D
    STRING_UTF8: int = 0x0E


UNKNOWN_TYPE = "UnknownType"


class ClarityValue(Deserializable, Serializable):
    """Base class of all Clarity values.

    Subclasses implement ``variant``, ``serialize_body``, ``type_string`` and
    ``to_value``. Equality compares the encoded form, so two values are equal
    exactly when the chain would treat them as the same value.
    """

    def variant(self) -> int:
        raise NotImplementedError

    def serialize_body(self, serializer: Serializer):
        raise NotImplementedError

    def type_string(self) -> str:
        """The Clarity type of this value, e.g. ``(optional (buff 3))``."""
        raise NotImplementedError

    def to_value(self) -> Any:
        """The closest native Python value."""
        raise NotImplementedError

    def to_json(self) -> Dict[str, Any]:
        """The typed JSON structure for this value.

        Integers are rendered as strings and buffers as ``0x`` hex so the
        result survives any JSON encoder without loss.
        """
        return {"type": self.type_string(), "value": self._json_value()}

    def _json_value(self) -> Any:
        return self.to_value()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClarityValue):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self):
        return f"{type(self).__name__}({self.to_value()!r})"

    def to_hex(self) -> str:
        return f"0x{self.to_bytes().hex()}"

    @staticmethod
    def from_hex(value: str) -> ClarityValue:
        """Decode a hex encoded value, with or without ``0x``.

        Raises:
            ClarityError: If the input is not hex, is truncated, or has trailing bytes.
        """
        if value.startswith("0x"):
            value = value[2:]
        try:
            data = bytes.fromhex(value)
        except ValueError as e:
            raise ClarityError(f"Invalid hex for Clarity value: {value!r}") from e
        return ClarityValue.from_bytes(data)

    @classmethod
    def from_bytes(cls, indata: bytes) -> ClarityValue:
        deserializer = Deserializer(indata)
        try:
            value = ClarityValue.deserialize(deserializer)
        except SerializationError as e:
            raise ClarityError(f"Unable to decode Clarity value: {e}") from e
        if deserializer.remaining() != 0:
            raise ClarityError(
                f"Unexpected {deserializer.remaining()} trailing bytes after Clarity value"
            )
        return value

    def serialize(self, serializer: Serializer):
        serializer.u8(self.variant())
        self.serialize_body(serializer)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ClarityValue:
        variant = deserializer.u8()
        if variant == ClarityType.INT:
            return IntCV(deserializer.i128())
        elif variant == ClarityType.UINT:
            return UIntCV(deserializer.u128())
        elif variant == ClarityType.BUFFER:
            return BufferCV(deserializer.to_bytes())
        elif variant == ClarityType.BOOL_TRUE:
            return BoolCV(True)
        elif variant == ClarityType.BOOL_FALSE:
            return BoolCV(False)
        elif variant == ClarityType.PRINCIPAL_STANDARD:
            return StandardPrincipalCV(_deserialize_address(deserializer))
        elif variant == ClarityType.PRINCIPAL_CONTRACT:
            address = _deserialize_address(deserializer)
            return ContractPrincipalCV(address, deserializer.lp_str())
        elif variant == ClarityType.RESPONSE_OK:
            return ResponseOkCV(ClarityValue.deserialize(deserializer))
        elif variant == ClarityType.RESPONSE_ERR:
            return ResponseErrCV(ClarityValue.deserialize(deserializer))
        elif variant == ClarityType.OPTIONAL_NONE:
            return NoneCV()
        elif variant == ClarityType.OPTIONAL_SOME:
            return SomeCV(ClarityValue.deserialize(deserializer))
        elif variant == ClarityType.LIST:
            return ListCV(deserializer.sequence(ClarityValue.deserialize))
        elif variant == ClarityType.TUPLE:
            length = deserializer.u32()
            data = {}
            for _ in range(length):
                key = deserializer.lp_str()
                data[key] = ClarityValue.deserialize(deserializer)
            return TupleCV(data)
        elif variant == ClarityType.STRING_ASCII:
            raw = deserializer.to_bytes()
            try:
                return StringAsciiCV(raw.decode("ascii"))
            except UnicodeDecodeError as e:
                raise ClarityError("Invalid ASCII in string-ascii value") from e
        elif variant == ClarityType.STRING_UTF8:
            return StringUtf8CV(deserializer.str())
        raise ClarityError(f"Unknown Clarity type prefix {variant:#04x}")


def _deserialize_address(deserializer: Deserializer) -> StacksAddress:
    try:
        return StacksAddress.deserialize(deserializer)
    except ParseAddressError as e:
        raise ClarityError(str(e)) from e


def _check_int(value: Any, low: int, high: int, kind: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ClarityError(f"{kind} expects an integer, found {value!r}")
    if value < low or value > high:
        raise ClarityError(f"{value} is out of range for {kind}")
    return value


class IntCV(ClarityValue):
    value: int

    def __init__(self, value: int):
        self.value = _check_int(value, MIN_I128, MAX_I128, "int")

    def variant(self) -> int:
        return ClarityType.INT

    def serialize_body(self, serializer: Serializer):
        serializer.i128(self.value)

    def type_string(self) -> str:
        return "int"

    def to_value(self) -> int:
        return self.value

    def _json_value(self) -> str:
        return str(self.value)


class UIntCV(ClarityValue):
    value: int

    def __init__(self, value: int):
        self.value = _check_int(value, 0, MAX_U128, "uint")

    def variant(self) -> int:
        return ClarityType.UINT

    def serialize_body(self, serializer: Serializer):
        serializer.u128(self.value)

    def type_string(self) -> str:
        return "uint"

    def to_value(self) -> int:
        return self.value

    def _json_value(self) -> str:
        return str(self.value)


class BufferCV(ClarityValue):
    buffer: bytes

    def __init__(self, buffer: bytes):
        if not isinstance(buffer, (bytes, bytearray)):
            raise ClarityError(f"buff expects bytes, found {buffer!r}")
        self.buffer = bytes(buffer)

    def variant(self) -> int:
        return ClarityType.BUFFER

    def serialize_body(self, serializer: Serializer):
        serializer.to_bytes(self.buffer)

    def type_string(self) -> str:
        return f"(buff {len(self.buffer)})"

    def to_value(self) -> bytes:
        return self.buffer

    def _json_value(self) -> str:
        return f"0x{self.buffer.hex()}"


class BoolCV(ClarityValue):
    value: bool

    def __init__(self, value: bool):
        self.value = bool(value)

    def variant(self) -> int:
        return ClarityType.BOOL_TRUE if self.value else ClarityType.BOOL_FALSE

    def serialize_body(self, serializer: Serializer):
        pass

    def type_string(self) -> str:
        return "bool"

    def to_value(self) -> bool:
        return self.value


class StandardPrincipalCV(ClarityValue):
    address: StacksAddress

    def __init__(self, address: StacksAddress):
        self.address = address

    def variant(self) -> int:
        return ClarityType.PRINCIPAL_STANDARD

    def serialize_body(self, serializer: Serializer):
        self.address.serialize(serializer)

    def type_string(self) -> str:
        return "principal"

    def to_value(self) -> str:
        return str(self.address)


class ContractPrincipalCV(ClarityValue):
    address: StacksAddress
    contract_name: str

    def __init__(self, address: StacksAddress, contract_name: str):
        self.address = address
        self.contract_name = contract_name

    def variant(self) -> int:
        return ClarityType.PRINCIPAL_CONTRACT

    def serialize_body(self, serializer: Serializer):
        self.address.serialize(serializer)
        serializer.lp_str(self.contract_name)

    def type_string(self) -> str:
        return "principal"

    def to_value(self) -> str:
        return f"{self.address}.{self.contract_name}"


class ResponseOkCV(ClarityValue):
    value: ClarityValue

    def __init__(self, value: ClarityValue):
        self.value = value

    def variant(self) -> int:
        return ClarityType.RESPONSE_OK

    def serialize_body(self, serializer: Serializer):
        serializer.struct(self.value)

    def type_string(self) -> str:
        return f"(response {self.value.type_string()} {UNKNOWN_TYPE})"

    def to_value(self) -> Any:
        return self.value.to_value()

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": self.type_string(),
            "value": self.value.to_json(),
            "success": True,
        }


class ResponseErrCV(ClarityValue):
    value: ClarityValue

    def __init__(self, value: ClarityValue):
        self.value = value

    def variant(self) -> int:
        return ClarityType.RESPONSE_ERR

    def serialize_body(self, serializer: Serializer):
        serializer.struct(self.value)

    def type_string(self) -> str:
        return f"(response {UNKNOWN_TYPE} {self.value.type_string()})"

    def to_value(self) -> Any:
        return self.value.to_value()

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": self.type_string(),
            "value": self.value.to_json(),
            "success": False,
        }


class NoneCV(ClarityValue):
    def variant(self) -> int:
        return ClarityType.OPTIONAL_NONE

    def serialize_body(self, serializer: Serializer):
        pass

    def type_string(self) -> str:
        return "(optional none)"

    def to_value(self) -> None:
        return None

    def __repr__(self):
        return "NoneCV()"


class SomeCV(ClarityValue):
    value: ClarityValue

    def __init__(self, value: ClarityValue):
        self.value = value

    def variant(self) -> int:
        return ClarityType.OPTIONAL_SOME

    def serialize_body(self, serializer: Serializer):
        serializer.struct(self.value)

    def type_string(self) -> str:
        return f"(optional {self.value.type_string()})"

    def to_value(self) -> Any:
        return self.value.to_value()

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.type_string(), "value": self.value.to_json()}


class ListCV(ClarityValue):
    values: List[ClarityValue]

    def __init__(self, values: typing.Sequence[ClarityValue]):
        self.values = list(values)

    def variant(self) -> int:
        return ClarityType.LIST

    def serialize_body(self, serializer: Serializer):
        serializer.sequence(self.values, Serializer.struct)

    def type_string(self) -> str:
        element = self.values[0].type_string() if self.values else UNKNOWN_TYPE
        return f"(list {len(self.values)} {element})"

    def to_value(self) -> List[Any]:
        return [value.to_value() for value in self.values]

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": self.type_string(),
            "value": [value.to_json() for value in self.values],
        }


class TupleCV(ClarityValue):
    data: Dict[str, ClarityValue]

    def __init__(self, data: Dict[str, ClarityValue]):
        for key in data:
            if not key or len(key) > 128:
                raise ClarityError(f"Invalid tuple key {key!r}")
        self.data = dict(data)

    def variant(self) -> int:
        return ClarityType.TUPLE

    def serialize_body(self, serializer: Serializer):
        serializer.u32(len(self.data))
        for key in sorted(self.data):
            serializer.lp_str(key)
            serializer.struct(self.data[key])

    def type_string(self) -> str:
        fields = " ".join(
            f"({key} {self.data[key].type_string()})" for key in sorted(self.data)
        )
        return f"(tuple {fields})"

    def to_value(self) -> Dict[str, Any]:
        return {key: value.to_value() for key, value in self.data.items()}

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": self.type_string(),
            "value": {key: value.to_json() for key, value in self.data.items()},
        }


class StringAsciiCV(ClarityValue):
    data: str

    def __init__(self, data: str):
        try:
            data.encode("ascii")
        except (AttributeError, UnicodeEncodeError) as e:
            raise ClarityError(f"string-ascii expects ASCII text, found {data!r}") from e
        self.data = data

    def variant(self) -> int:
        return ClarityType.STRING_ASCII

    def serialize_body(self, serializer: Serializer):
        serializer.to_bytes(self.data.encode("ascii"))

    def type_string(self) -> str:
        return f"(string-ascii {len(self.data)})"

    def to_value(self) -> str:
        return self.data


class StringUtf8CV(ClarityValue):
    data: str

    def __init__(self, data: str):
        if not isinstance(data, str):
            raise ClarityError(f"string-utf8 expects text, found {data!r}")
        self.data = data

    def variant(self) -> int:
        return ClarityType.STRING_UTF8

    def serialize_body(self, serializer: Serializer):
        serializer.str(self.data)

    def type_string(self) -> str:
        return f"(string-utf8 {len(self.data.encode('utf-8'))})"

    def to_value(self) -> str:
        return self.data


def principal_cv(principal: str) -> ClarityValue:
    """Build a standard or contract principal from its text form.

    Args:
        principal: ``SP...`` for an account or ``SP....contract-name`` for a contract.

    Raises:
        ParseAddressError: If the address or contract name is invalid.
    """
    if "." in principal:
        address, name = parse_contract_id(principal)
        return ContractPrincipalCV(address, name)
    return StandardPrincipalCV(StacksAddress.from_str(principal))


def optional_cv(value: Optional[ClarityValue]) -> ClarityValue:
    return NoneCV() if value is None else SomeCV(value)


class Test(unittest.TestCase):
    ADDRESS = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
    HASH = "a46ff88886c2ef9762d970b4d2c63678835bd39d"

    def test_integers(self):
        self.assertEqual(UIntCV(1).to_hex(), "0x0100000000000000000000000000000001")
        self.assertEqual(IntCV(-1).to_hex(), "0x00" + "ff" * 16)
        self.assertEqual(ClarityValue.from_hex(IntCV(-42).to_hex()), IntCV(-42))
        self.assertEqual(UIntCV(2**128 - 1).to_value(), 2**128 - 1)

        with self.assertRaises(ClarityError):
            UIntCV(-1)
        with self.assertRaises(ClarityError):
            UIntCV(2**128)
        with self.assertRaises(ClarityError):
            IntCV(2**127)
        with self.assertRaises(ClarityError):
            UIntCV(True)

    def test_simple_values(self):
        self.assertEqual(BoolCV(True).to_hex(), "0x03")
        self.assertEqual(BoolCV(False).to_hex(), "0x04")
        self.assertEqual(NoneCV().to_hex(), "0x09")
        self.assertEqual(BufferCV(b"\x01\x02").to_hex(), "0x02000000020102")
        self.assertEqual(StringAsciiCV("hi").to_hex(), "0x0d000000026869")
        self.assertEqual(StringUtf8CV("é").to_hex(), "0x0e00000002c3a9")
        with self.assertRaises(ClarityError):
            StringAsciiCV("café")

    def test_principals(self):
        standard = principal_cv(self.ADDRESS)
        self.assertIsInstance(standard, StandardPrincipalCV)
        self.assertEqual(standard.to_hex(), "0x0516" + self.HASH)

        contract = principal_cv(self.ADDRESS + ".sentinel-token")
        self.assertIsInstance(contract, ContractPrincipalCV)
        self.assertEqual(
            contract.to_hex(),
            "0x0616" + self.HASH + "0e" + b"sentinel-token".hex(),
        )
        self.assertEqual(contract.to_value(), self.ADDRESS + ".sentinel-token")
        self.assertEqual(ClarityValue.from_hex(contract.to_hex()), contract)

        with self.assertRaises(ParseAddressError):
            principal_cv("SP1234...recipient")

    def test_composites(self):
        self.assertEqual(
            ResponseOkCV(UIntCV(1)).to_hex(), "0x07" + UIntCV(1).to_hex()[2:]
        )
        self.assertEqual(
            ResponseErrCV(UIntCV(1)).to_hex(), "0x08" + UIntCV(1).to_hex()[2:]
        )
        self.assertEqual(
            optional_cv(UIntCV(1)).to_hex(), "0x0a" + UIntCV(1).to_hex()[2:]
        )
        self.assertEqual(optional_cv(None), NoneCV())
        self.assertEqual(
            ListCV([BoolCV(True), BoolCV(False)]).to_hex(), "0x0b000000020304"
        )

    def test_tuple_keys_are_sorted(self):
        value = TupleCV({"b": BoolCV(True), "a": UIntCV(1)})
        self.assertEqual(
            value.to_hex(),
            "0x0c00000002" + "0161" + UIntCV(1).to_hex()[2:] + "0162" + "03",
        )
        self.assertEqual(ClarityValue.from_hex(value.to_hex()), value)
        self.assertEqual(value.type_string(), "(tuple (a uint) (b bool))")

    def test_to_json(self):
        ok = ClarityValue.from_hex("0x070100000000000000000000000000000064")
        self.assertEqual(
            ok.to_json(),
            {
                "type": "(response uint UnknownType)",
                "value": {"type": "uint", "value": "100"},
                "success": True,
            },
        )
        self.assertEqual(ok.to_value(), 100)

        err = ResponseErrCV(UIntCV(1))
        self.assertFalse(err.to_json()["success"])
        self.assertEqual(err.type_string(), "(response UnknownType uint)")

        self.assertEqual(
            NoneCV().to_json(), {"type": "(optional none)", "value": None}
        )
        self.assertEqual(
            SomeCV(BufferCV(b"\xab")).to_json(),
            {
                "type": "(optional (buff 1))",
                "value": {"type": "(buff 1)", "value": "0xab"},
            },
        )
        proposal = TupleCV(
            {"title": StringAsciiCV("Treasury"), "votes": ListCV([UIntCV(3)])}
        )
        self.assertEqual(
            proposal.to_json()["value"]["votes"],
            {"type": "(list 1 uint)", "value": [{"type": "uint", "value": "3"}]},
        )
        self.assertEqual(
            proposal.to_value(), {"title": "Treasury", "votes": [3]}
        )

    def test_decode_errors(self):
        with self.assertRaises(ClarityError):
            ClarityValue.from_hex("0x01")
        with self.assertRaises(ClarityError):
            ClarityValue.from_hex("0x0304")
        with self.assertRaises(ClarityError):
            ClarityValue.from_hex("0xff")
        with self.assertRaises(ClarityError):
            ClarityValue.from_hex("zz")


if __name__ == "__main__":
    unittest.main()
