# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Contract function signatures and argument type checking.

The node describes a deployed contract through its interface JSON
(``/v2/contracts/interface/{address}/{name}``). Each function entry lists its
arguments with a type written in the interface's JSON type language, e.g.
``"uint128"`` or ``{"optional": {"buffer": {"length": 34}}}``. A
``FunctionSignature`` built from that entry checks a list of Clarity values
against the declared types before anything is signed, so a call with the
wrong arity or argument types is rejected locally instead of being paid for
and aborted on chain.
"""

from __future__ import annotations

import typing
import unittest
from dataclasses import dataclass
from typing import Any, Dict, Sequence

from .clarity import (
    BoolCV,
    BufferCV,
    ClarityError,
    ClarityValue,
    ContractPrincipalCV,
    IntCV,
    ListCV,
    NoneCV,
    ResponseErrCV,
    ResponseOkCV,
    SomeCV,
    StandardPrincipalCV,
    StringAsciiCV,
    StringUtf8CV,
    TupleCV,
    UIntCV,
    principal_cv,
)

AbiType = typing.Union[str, Dict[str, Any]]


@dataclass(frozen=True)
class FunctionArg:
    name: str
    type: AbiType


@dataclass(frozen=True)
class FunctionSignature:
    """The name, access level and argument types of a contract function.

    Attributes:
        name: The function name.
        args: The declared arguments, in call order.
        access: ``public``, ``read_only`` or ``private``.

    Examples:
        Checking arguments against the node's interface::

            interface = await rest_client.contract_interface(address, "voting")
            signature = FunctionSignature.from_interface(interface, "vote")
            signature.validate([UIntCV(0), UIntCV(0), UIntCV(100)])
    """

    name: str
    args: typing.Tuple[FunctionArg, ...]
    access: str = "public"

    @property
    def arity(self) -> int:
        return len(self.args)

    @staticmethod
    def from_interface(interface: Dict[str, Any], function_name: str) -> FunctionSignature:
        """Find ``function_name`` in a contract interface document.

        Raises:
            ClarityError: If the interface does not define the function.
        """
        for function in interface.get("functions", []):
            if function["name"] == function_name:
                return FunctionSignature(
                    name=function_name,
                    args=tuple(
                        FunctionArg(arg["name"], arg["type"])
                        for arg in function.get("args", [])
                    ),
                    access=function.get("access", "public"),
                )
        raise ClarityError(f"Function {function_name!r} not found in contract interface")

    def validate(self, arguments: Sequence[ClarityValue]):
        """Check ``arguments`` against the declared argument types.

        No conversion is attempted: the count must match exactly and each value
        must already have the declared type.

        Raises:
            ClarityError: On an arity or type mismatch, naming the argument.
        """
        if len(arguments) != self.arity:
            raise ClarityError(
                f"{self.name} expects {self.arity} arguments, found {len(arguments)}"
            )
        for arg, value in zip(self.args, arguments):
            if not matches(arg.type, value):
                raise ClarityError(
                    f"Argument {arg.name!r} of {self.name} expects {type_repr(arg.type)}, "
                    f"found {value.type_string()}"
                )

    def __str__(self) -> str:
        args = " ".join(f"({arg.name} {type_repr(arg.type)})" for arg in self.args)
        return f"({self.name} ({args}))"


def matches(abi_type: AbiType, value: ClarityValue) -> bool:
    """Whether ``value`` is an inhabitant of ``abi_type``."""
    if isinstance(abi_type, str):
        if abi_type == "uint128":
            return isinstance(value, UIntCV)
        elif abi_type == "int128":
            return isinstance(value, IntCV)
        elif abi_type == "bool":
            return isinstance(value, BoolCV)
        elif abi_type == "principal":
            return isinstance(value, (StandardPrincipalCV, ContractPrincipalCV))
        elif abi_type == "trait_reference":
            return isinstance(value, ContractPrincipalCV)
        elif abi_type == "none":
            return isinstance(value, NoneCV)
        raise ClarityError(f"Unsupported interface type {abi_type!r}")

    if len(abi_type) != 1:
        raise ClarityError(f"Unsupported interface type {abi_type!r}")
    (kind, inner), = abi_type.items()

    if kind == "buffer":
        return isinstance(value, BufferCV) and len(value.buffer) <= inner["length"]
    elif kind == "string-ascii":
        return isinstance(value, StringAsciiCV) and len(value.data) <= inner["length"]
    elif kind == "string-utf8":
        return isinstance(value, StringUtf8CV) and len(value.data) <= inner["length"]
    elif kind == "optional":
        if isinstance(value, NoneCV):
            return True
        return isinstance(value, SomeCV) and matches(inner, value.value)
    elif kind == "response":
        if isinstance(value, ResponseOkCV):
            return matches(inner["ok"], value.value)
        if isinstance(value, ResponseErrCV):
            return matches(inner["error"], value.value)
        return False
    elif kind == "list":
        return (
            isinstance(value, ListCV)
            and len(value.values) <= inner["length"]
            and all(matches(inner["type"], item) for item in value.values)
        )
    elif kind == "tuple":
        if not isinstance(value, TupleCV):
            return False
        fields = {field["name"]: field["type"] for field in inner}
        if set(fields) != set(value.data):
            return False
        return all(matches(fields[key], value.data[key]) for key in fields)
    raise ClarityError(f"Unsupported interface type {abi_type!r}")


def type_repr(abi_type: AbiType) -> str:
    """Render an interface type in Clarity syntax, e.g. ``(optional (buff 34))``."""
    if isinstance(abi_type, str):
        return {"uint128": "uint", "int128": "int"}.get(abi_type, abi_type)
    (kind, inner), = abi_type.items()
    if kind == "buffer":
        return f"(buff {inner['length']})"
    elif kind in ("string-ascii", "string-utf8"):
        return f"({kind} {inner['length']})"
    elif kind == "optional":
        return f"(optional {type_repr(inner)})"
    elif kind == "response":
        return f"(response {type_repr(inner['ok'])} {type_repr(inner['error'])})"
    elif kind == "list":
        return f"(list {inner['length']} {type_repr(inner['type'])})"
    elif kind == "tuple":
        fields = " ".join(f"({f['name']} {type_repr(f['type'])})" for f in inner)
        return f"(tuple {fields})"
    return str(abi_type)


SIP010_TRANSFER = FunctionSignature(
    name="transfer",
    args=(
        FunctionArg("amount", "uint128"),
        FunctionArg("sender", "principal"),
        FunctionArg("recipient", "principal"),
        FunctionArg("memo", {"optional": {"buffer": {"length": 34}}}),
    ),
)


class Test(unittest.TestCase):
    ADDRESS = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"

    INTERFACE = {
        "functions": [
            {
                "name": "create-proposal",
                "access": "public",
                "args": [
                    {"name": "title", "type": {"string-ascii": {"length": 64}}},
                    {"name": "description", "type": {"string-ascii": {"length": 256}}},
                    {"name": "duration", "type": "uint128"},
                ],
                "outputs": {"type": {"response": {"ok": "uint128", "error": "uint128"}}},
            },
            {
                "name": "get-proposal",
                "access": "read_only",
                "args": [{"name": "proposal-id", "type": "uint128"}],
                "outputs": {"type": {"optional": "none"}},
            },
        ]
    }

    def test_from_interface(self):
        signature = FunctionSignature.from_interface(self.INTERFACE, "get-proposal")
        self.assertEqual(signature.access, "read_only")
        self.assertEqual(signature.arity, 1)
        signature.validate([UIntCV(0)])

        with self.assertRaises(ClarityError):
            FunctionSignature.from_interface(self.INTERFACE, "missing")

    def test_arity_and_types(self):
        signature = FunctionSignature.from_interface(self.INTERFACE, "create-proposal")
        signature.validate(
            [StringAsciiCV("Increase Treasury"), StringAsciiCV("10%"), UIntCV(10080)]
        )
        with self.assertRaises(ClarityError):
            signature.validate([StringAsciiCV("Increase Treasury"), UIntCV(10080)])
        with self.assertRaises(ClarityError):
            signature.validate(
                [StringAsciiCV("Increase Treasury"), StringAsciiCV("10%"), IntCV(10080)]
            )
        with self.assertRaises(ClarityError):
            signature.validate(
                [StringAsciiCV("x" * 65), StringAsciiCV("10%"), UIntCV(10080)]
            )

    def test_sip010_transfer(self):
        sender = principal_cv(self.ADDRESS)
        recipient = principal_cv(self.ADDRESS + ".vault")
        SIP010_TRANSFER.validate([UIntCV(1), sender, recipient, NoneCV()])
        SIP010_TRANSFER.validate(
            [UIntCV(1), sender, recipient, SomeCV(BufferCV(b"x" * 34))]
        )
        with self.assertRaises(ClarityError):
            SIP010_TRANSFER.validate(
                [UIntCV(1), sender, recipient, SomeCV(BufferCV(b"x" * 35))]
            )
        with self.assertRaises(ClarityError):
            SIP010_TRANSFER.validate(
                [UIntCV(1), sender, recipient, SomeCV(StringUtf8CV("memo"))]
            )
        self.assertEqual(
            str(SIP010_TRANSFER),
            "(transfer ((amount uint) (sender principal) (recipient principal) "
            "(memo (optional (buff 34)))))",
        )

    def test_composite_types(self):
        tuple_type = {
            "tuple": [
                {"name": "votes", "type": {"list": {"type": "uint128", "length": 2}}},
                {"name": "open", "type": "bool"},
            ]
        }
        self.assertTrue(
            matches(
                tuple_type,
                TupleCV({"open": BoolCV(True), "votes": ListCV([UIntCV(1)])}),
            )
        )
        self.assertFalse(
            matches(tuple_type, TupleCV({"votes": ListCV([UIntCV(1)])}))
        )
        self.assertFalse(
            matches(
                tuple_type,
                TupleCV(
                    {"open": BoolCV(True), "votes": ListCV([UIntCV(1)] * 3)}
                ),
            )
        )
        response_type = {"response": {"ok": "bool", "error": "uint128"}}
        self.assertTrue(matches(response_type, ResponseErrCV(UIntCV(1))))
        self.assertFalse(matches(response_type, ResponseOkCV(UIntCV(1))))
        self.assertTrue(
            matches("trait_reference", principal_cv(self.ADDRESS + ".token"))
        )
        self.assertFalse(matches("trait_reference", principal_cv(self.ADDRESS)))


if __name__ == "__main__":
    unittest.main()
