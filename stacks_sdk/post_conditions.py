# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Post conditions: limits on the assets a transaction may move.

A post condition is checked by the node after the transaction runs. If any
condition fails, or if the transaction is in ``DENY`` mode and moves an asset
that no condition covers, the transaction is aborted and every effect is rolled
back (the fee is still paid).

Only fungible token conditions are provided; they are what SIP-010 transfers
need. The wire layout of one condition is::

    u8 condition type (0x01 fungible)
    principal (0x01 origin | 0x02 address | 0x03 address + contract name)
    asset info (address, contract name, asset name)
    u8 condition code
    u64 amount

Examples:
    Guarding a token transfer::

        from stacks_sdk.post_conditions import (
            AssetInfo,
            FungibleConditionCode,
            FungiblePostCondition,
            PostConditionPrincipal,
        )

        condition = FungiblePostCondition(
            PostConditionPrincipal.origin(),
            AssetInfo.from_str(
                "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.sentinel-token::sentinel-token"
            ),
            FungibleConditionCode.EQUAL,
            1_000_000,
        )
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .address import ParseAddressError, StacksAddress, parse_contract_id
from .serialization import Deserializer, SerializationError, Serializer


class PostConditionMode(IntEnum):
    ALLOW = 0x01
    DENY = 0x02


class PostConditionType(IntEnum):
    STX = 0x00
    FUNGIBLE = 0x01
    NON_FUNGIBLE = 0x02


class FungibleConditionCode(IntEnum):
    """How the amount an account sends compares to the condition's amount."""

    EQUAL = 0x01
    GREATER = 0x02
    GREATER_EQUAL = 0x03
    LESS = 0x04
    LESS_EQUAL = 0x05

    @staticmethod
    def parse(value: str) -> FungibleConditionCode:
        """Parse a code from its name (``equal``, ``gte``) or symbol (``==``, ``>=``).

        Raises:
            ValueError: If the text names no condition code.
        """
        aliases = {
            "=": FungibleConditionCode.EQUAL,
            "==": FungibleConditionCode.EQUAL,
            "eq": FungibleConditionCode.EQUAL,
            ">": FungibleConditionCode.GREATER,
            "gt": FungibleConditionCode.GREATER,
            ">=": FungibleConditionCode.GREATER_EQUAL,
            "gte": FungibleConditionCode.GREATER_EQUAL,
            "<": FungibleConditionCode.LESS,
            "lt": FungibleConditionCode.LESS,
            "<=": FungibleConditionCode.LESS_EQUAL,
            "lte": FungibleConditionCode.LESS_EQUAL,
        }
        key = value.strip().lower().replace("-", "_")
        if key in aliases:
            return aliases[key]
        try:
            return FungibleConditionCode[key.upper()]
        except KeyError:
            raise ValueError(f"Unknown fungible condition code {value!r}") from None


class PrincipalType(IntEnum):
    ORIGIN = 0x01
    STANDARD = 0x02
    CONTRACT = 0x03


@dataclass(frozen=True)
class PostConditionPrincipal:
    """The account whose outgoing assets a condition restricts.

    ``ORIGIN`` means the transaction's signer, whichever address that is.
    """

    principal_type: PrincipalType
    address: Optional[StacksAddress] = None
    contract_name: Optional[str] = None

    @staticmethod
    def origin() -> PostConditionPrincipal:
        return PostConditionPrincipal(PrincipalType.ORIGIN)

    @staticmethod
    def from_str(principal: str) -> PostConditionPrincipal:
        """Parse ``SP...`` or ``SP....contract-name``."""
        if "." in principal:
            address, name = parse_contract_id(principal)
            return PostConditionPrincipal(PrincipalType.CONTRACT, address, name)
        return PostConditionPrincipal(
            PrincipalType.STANDARD, StacksAddress.from_str(principal)
        )

    def __str__(self) -> str:
        if self.principal_type == PrincipalType.ORIGIN:
            return "origin"
        if self.principal_type == PrincipalType.CONTRACT:
            return f"{self.address}.{self.contract_name}"
        return str(self.address)

    def serialize(self, serializer: Serializer):
        serializer.u8(self.principal_type)
        if self.principal_type == PrincipalType.ORIGIN:
            return
        self.address.serialize(serializer)
        if self.principal_type == PrincipalType.CONTRACT:
            serializer.lp_str(self.contract_name)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PostConditionPrincipal:
        principal_type = deserializer.u8()
        if principal_type == PrincipalType.ORIGIN:
            return PostConditionPrincipal.origin()
        if principal_type == PrincipalType.STANDARD:
            return PostConditionPrincipal(
                PrincipalType.STANDARD, StacksAddress.deserialize(deserializer)
            )
        if principal_type == PrincipalType.CONTRACT:
            address = StacksAddress.deserialize(deserializer)
            return PostConditionPrincipal(
                PrincipalType.CONTRACT, address, deserializer.lp_str()
            )
        raise SerializationError(f"Unknown post condition principal {principal_type}")


@dataclass(frozen=True)
class AssetInfo:
    """A fungible token: the contract defining it and the token's name there."""

    address: StacksAddress
    contract_name: str
    asset_name: str

    @staticmethod
    def from_str(asset: str) -> AssetInfo:
        """Parse ``ADDRESS.contract-name::asset-name``.

        Raises:
            ParseAddressError: If any part is missing or invalid.
        """
        contract_id, sep, asset_name = asset.partition("::")
        if not sep or not asset_name:
            raise ParseAddressError(
                f"Expected asset identifier ADDRESS.contract::asset, found {asset!r}"
            )
        address, contract_name = parse_contract_id(contract_id)
        return AssetInfo(address, contract_name, asset_name)

    @property
    def contract_id(self) -> str:
        return f"{self.address}.{self.contract_name}"

    def __str__(self) -> str:
        return f"{self.contract_id}::{self.asset_name}"

    def serialize(self, serializer: Serializer):
        self.address.serialize(serializer)
        serializer.lp_str(self.contract_name)
        serializer.lp_str(self.asset_name)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AssetInfo:
        address = StacksAddress.deserialize(deserializer)
        contract_name = deserializer.lp_str()
        return AssetInfo(address, contract_name, deserializer.lp_str())


@dataclass(frozen=True)
class FungiblePostCondition:
    principal: PostConditionPrincipal
    asset: AssetInfo
    condition_code: FungibleConditionCode
    amount: int

    def serialize(self, serializer: Serializer):
        serializer.u8(PostConditionType.FUNGIBLE)
        self.principal.serialize(serializer)
        self.asset.serialize(serializer)
        serializer.u8(self.condition_code)
        serializer.u64(self.amount)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> FungiblePostCondition:
        condition_type = deserializer.u8()
        if condition_type != PostConditionType.FUNGIBLE:
            raise SerializationError(
                f"Only fungible post conditions are supported, found type {condition_type}"
            )
        principal = PostConditionPrincipal.deserialize(deserializer)
        asset = AssetInfo.deserialize(deserializer)
        code = deserializer.u8()
        try:
            condition_code = FungibleConditionCode(code)
        except ValueError as e:
            raise SerializationError(f"Unknown condition code {code}") from e
        return FungiblePostCondition(principal, asset, condition_code, deserializer.u64())


class Test(unittest.TestCase):
    ADDRESS = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"
    HASH = "ace5ce42e07ed6bc57b9bc47f67f736da4c93815"

    def test_asset_info(self):
        asset = AssetInfo.from_str(f"{self.ADDRESS}.sentinel-token::sentinel-token")
        self.assertEqual(asset.contract_name, "sentinel-token")
        self.assertEqual(asset.asset_name, "sentinel-token")
        self.assertEqual(asset.contract_id, f"{self.ADDRESS}.sentinel-token")
        self.assertEqual(str(asset), f"{self.ADDRESS}.sentinel-token::sentinel-token")

        with self.assertRaises(ParseAddressError):
            AssetInfo.from_str(f"{self.ADDRESS}.sentinel-token")
        with self.assertRaises(ParseAddressError):
            AssetInfo.from_str("sentinel-token::sentinel-token")

    def test_condition_codes(self):
        self.assertEqual(FungibleConditionCode.parse("=="), FungibleConditionCode.EQUAL)
        self.assertEqual(
            FungibleConditionCode.parse("greater-equal"),
            FungibleConditionCode.GREATER_EQUAL,
        )
        self.assertEqual(FungibleConditionCode.parse("lte"), FungibleConditionCode.LESS_EQUAL)
        self.assertEqual(int(FungibleConditionCode.LESS), 4)
        with self.assertRaises(ValueError):
            FungibleConditionCode.parse("!=")

    def test_serialize_standard(self):
        condition = FungiblePostCondition(
            PostConditionPrincipal.from_str(self.ADDRESS),
            AssetInfo.from_str(f"{self.ADDRESS}.tok::tok"),
            FungibleConditionCode.EQUAL,
            1_000_000,
        )
        ser = Serializer()
        condition.serialize(ser)
        expected = (
            "01"
            + "02" + "16" + self.HASH
            + "16" + self.HASH + "03" + b"tok".hex() + "03" + b"tok".hex()
            + "01"
            + "00000000000f4240"
        )
        self.assertEqual(ser.output().hex(), expected)
        self.assertEqual(
            FungiblePostCondition.deserialize(Deserializer(ser.output())), condition
        )

    def test_serialize_origin_and_contract(self):
        for principal in (
            PostConditionPrincipal.origin(),
            PostConditionPrincipal.from_str(f"{self.ADDRESS}.vault"),
        ):
            condition = FungiblePostCondition(
                principal,
                AssetInfo.from_str(f"{self.ADDRESS}.tok::tok"),
                FungibleConditionCode.LESS_EQUAL,
                5,
            )
            ser = Serializer()
            condition.serialize(ser)
            self.assertEqual(ser.output()[1], principal.principal_type)
            self.assertEqual(
                FungiblePostCondition.deserialize(Deserializer(ser.output())), condition
            )


if __name__ == "__main__":
    unittest.main()
