# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Stacks address handling and validation.

A Stacks address is a one byte version and a 20-byte hash160 of the owning
public key (or redeem script), displayed in c32check form. The version encodes
both the network and the hash mode, which is why mainnet single-signature
addresses start with ``SP`` and testnet ones with ``ST``.

Contracts are addressed by the deployer's address and the contract name,
written ``ADDRESS.contract-name``.

Examples:
    Parsing and formatting::

        from stacks_sdk.address import StacksAddress, parse_contract_id

        address = StacksAddress.from_str("SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7")
        address.version       # 22
        address.is_mainnet()  # True
        str(address)          # "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"

        contract_address, name = parse_contract_id(
            "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.sentinel-token"
        )

    Deriving an address from a public key::

        address = StacksAddress.from_public_key(
            public_key.to_bytes(), AddressVersion.TESTNET_SINGLE_SIG
        )
"""

from __future__ import annotations

import hashlib
import re
import unittest
from typing import Tuple

from . import c32
from .serialization import Deserializer, Serializer

CONTRACT_NAME_PATTERN = re.compile(r"^[a-zA-Z]([a-zA-Z0-9]|[-_])*$")
CONTRACT_NAME_MAX_LENGTH = 128
# Names of newly deployed contracts are held to a tighter limit.
DEPLOY_CONTRACT_NAME_MAX_LENGTH = 40


class AddressVersion:
    """Address version bytes for each network and hash mode.

    Attributes:
        MAINNET_SINGLE_SIG: Mainnet pay-to-public-key-hash (22, ``SP``)
        MAINNET_MULTI_SIG: Mainnet pay-to-script-hash (20, ``SM``)
        TESTNET_SINGLE_SIG: Testnet pay-to-public-key-hash (26, ``ST``)
        TESTNET_MULTI_SIG: Testnet pay-to-script-hash (21, ``SN``)
    """

    MAINNET_SINGLE_SIG: int = 22
    MAINNET_MULTI_SIG: int = 20
    TESTNET_SINGLE_SIG: int = 26
    TESTNET_MULTI_SIG: int = 21

    MAINNET = (MAINNET_SINGLE_SIG, MAINNET_MULTI_SIG)
    TESTNET = (TESTNET_SINGLE_SIG, TESTNET_MULTI_SIG)


class ParseAddressError(Exception):
    """Exception raised when an address or contract identifier cannot be parsed.

    Examples:
        Catching parse errors::

            try:
                StacksAddress.from_str("SP-not-an-address")
            except ParseAddressError as e:
                print(f"Failed to parse address: {e}")
    """


def hash160(data: bytes) -> bytes:
    """RIPEMD-160 of SHA-256, the hash used for Stacks and Bitcoin key hashes.

    Raises:
        RuntimeError: If the interpreter's OpenSSL build lacks RIPEMD-160.
    """
    sha = hashlib.sha256(data).digest()
    try:
        ripemd = hashlib.new("ripemd160")
    except ValueError as e:
        raise RuntimeError(
            "ripemd160 digest is unavailable in this Python build; cannot derive address."
        ) from e
    ripemd.update(sha)
    return ripemd.digest()


class StacksAddress:
    """A Stacks account address: a version byte and a 20-byte hash160.

    Attributes:
        version: The address version (see ``AddressVersion``).
        hash160: The 20-byte hash of the owning key.
        LENGTH: The required byte length of the hash (20).
    """

    version: int
    hash160: bytes
    LENGTH: int = 20

    def __init__(self, version: int, hash160: bytes):
        """Initialize a StacksAddress.

        Raises:
            ParseAddressError: If the hash is not 20 bytes or the version is out of range.
        """
        if len(hash160) != StacksAddress.LENGTH:
            raise ParseAddressError("Expected address hash of length 20")
        if version < 0 or version >= 32:
            raise ParseAddressError(f"Invalid address version {version}")
        self.version = version
        self.hash160 = hash160

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StacksAddress):
            return NotImplemented
        return self.version == other.version and self.hash160 == other.hash160

    def __hash__(self) -> int:
        return hash((self.version, self.hash160))

    def __str__(self):
        return c32.c32address(self.version, self.hash160)

    def __repr__(self):
        return self.__str__()

    def is_mainnet(self) -> bool:
        return self.version in AddressVersion.MAINNET

    @staticmethod
    def from_str(address: str) -> StacksAddress:
        """Parse a c32check encoded address such as ``SP2J6ZY...``.

        Args:
            address: The address string. Lower case input is accepted.

        Returns:
            The parsed address.

        Raises:
            ParseAddressError: If the string is malformed or its checksum is wrong.
        """
        try:
            version, data = c32.c32address_decode(address)
        except c32.C32Error as e:
            raise ParseAddressError(str(e)) from e
        return StacksAddress(version, data)

    @staticmethod
    def is_valid(address: str) -> bool:
        try:
            StacksAddress.from_str(address)
        except ParseAddressError:
            return False
        return True

    @staticmethod
    def from_public_key(public_key: bytes, version: int) -> StacksAddress:
        """Derive the single-signature address owning ``public_key``.

        Args:
            public_key: The SEC1 encoded public key (33 or 65 bytes). The hash is
                taken over the encoding as given, so the compressed and
                uncompressed forms of one key map to different addresses.
            version: The address version to use.
        """
        return StacksAddress(version, hash160(public_key))

    @staticmethod
    def deserialize(deserializer: Deserializer) -> StacksAddress:
        version = deserializer.u8()
        return StacksAddress(version, deserializer.fixed_bytes(StacksAddress.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.u8(self.version)
        serializer.fixed_bytes(self.hash160)


def validate_contract_name(
    name: str, max_length: int = CONTRACT_NAME_MAX_LENGTH
) -> str:
    """Check a Clarity contract name and return it unchanged.

    Raises:
        ParseAddressError: If the name is empty, too long, or has illegal characters.
    """
    if not name or len(name) > max_length:
        raise ParseAddressError(
            f"Contract name must be 1 to {max_length} characters, found {name!r}"
        )
    if not CONTRACT_NAME_PATTERN.match(name):
        raise ParseAddressError(f"Invalid contract name {name!r}")
    return name


def parse_contract_id(contract_id: str) -> Tuple[StacksAddress, str]:
    """Split ``ADDRESS.contract-name`` into its address and validated name.

    Raises:
        ParseAddressError: If either part is invalid.
    """
    address, sep, name = contract_id.partition(".")
    if not sep:
        raise ParseAddressError(
            f"Expected contract identifier ADDRESS.name, found {contract_id!r}"
        )
    return (StacksAddress.from_str(address), validate_contract_name(name))


class Test(unittest.TestCase):
    def test_round_trip(self):
        text = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"
        address = StacksAddress.from_str(text)
        self.assertEqual(str(address), text)
        self.assertTrue(address.is_mainnet())

        ser = Serializer()
        address.serialize(ser)
        self.assertEqual(ser.output()[0], 22)
        self.assertEqual(StacksAddress.deserialize(Deserializer(ser.output())), address)

    def test_from_public_key(self):
        public_key = bytes.fromhex(
            "03ef788b3830c00abe8f64f62dc32fc863bc0b2cafeb073b6c8e1c7657d9c2c3ab"
        )
        self.assertEqual(
            str(StacksAddress.from_public_key(public_key, AddressVersion.MAINNET_SINGLE_SIG)),
            "SPAW66WC3G8WA5F28JVNG1NTRJ6H76E7EN5H6QQD",
        )
        testnet = StacksAddress.from_public_key(
            public_key, AddressVersion.TESTNET_SINGLE_SIG
        )
        self.assertEqual(str(testnet), "STAW66WC3G8WA5F28JVNG1NTRJ6H76E7EMHDBMBN")
        self.assertFalse(testnet.is_mainnet())

    def test_invalid(self):
        self.assertFalse(StacksAddress.is_valid("SP1234...recipient"))
        with self.assertRaises(ParseAddressError):
            StacksAddress.from_str("SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ8")
        with self.assertRaises(ParseAddressError):
            StacksAddress(22, b"\x00" * 19)

    def test_contract_id(self):
        address, name = parse_contract_id(
            "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.sentinel-token"
        )
        self.assertEqual(str(address), "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB")
        self.assertEqual(name, "sentinel-token")

        with self.assertRaises(ParseAddressError):
            parse_contract_id("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB")
        with self.assertRaises(ParseAddressError):
            parse_contract_id("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.1token")

    def test_contract_name_limits(self):
        validate_contract_name("a" * 40, DEPLOY_CONTRACT_NAME_MAX_LENGTH)
        with self.assertRaises(ParseAddressError):
            validate_contract_name("a" * 41, DEPLOY_CONTRACT_NAME_MAX_LENGTH)
        with self.assertRaises(ParseAddressError):
            validate_contract_name("")


if __name__ == "__main__":
    unittest.main()
