# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Crockford base32 ("c32") encoding and the c32check address scheme.

Stacks addresses are a version byte and a 20-byte hash160 rendered with a
Crockford style base32 alphabet and a 4-byte double SHA-256 checksum::

    "S" + c32(version) + c32encode(hash160 + checksum(version, hash160))

Leading zero bytes are preserved as one ``0`` character each, which is what
makes the burn address ``SP000000000000000000002Q6VF78`` round-trip.

Examples:
    Encoding and decoding an address::

        from stacks_sdk import c32

        address = c32.c32address(22, bytes.fromhex("a46ff88886c2ef9762d970b4d2c63678835bd39d"))
        # "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"

        version, hash160 = c32.c32address_decode(address)
"""

from __future__ import annotations

import hashlib
import unittest
from typing import Tuple

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
CHECKSUM_LENGTH = 4
HASH160_LENGTH = 20


class C32Error(ValueError):
    """Raised for malformed c32 input or a checksum mismatch."""


def _normalize(text: str) -> str:
    # Crockford aliases: O reads as zero, L and I read as one.
    return text.upper().replace("O", "0").replace("L", "1").replace("I", "1")


def c32encode(data: bytes) -> str:
    """Encode bytes as c32, keeping one ``0`` per leading zero byte."""
    value = int.from_bytes(data, "big")
    digits = []
    while value > 0:
        value, remainder = divmod(value, 32)
        digits.append(C32_ALPHABET[remainder])
    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return "0" * leading_zeros + "".join(reversed(digits))


def c32decode(text: str) -> bytes:
    """Decode a c32 string back into bytes.

    Raises:
        C32Error: If the input contains characters outside the alphabet.
    """
    normalized = _normalize(text)
    stripped = normalized.lstrip("0")
    leading_zeros = len(normalized) - len(stripped)

    value = 0
    for char in stripped:
        index = C32_ALPHABET.find(char)
        if index < 0:
            raise C32Error(f"Invalid c32 character {char!r} in {text!r}")
        value = value * 32 + index

    body = b""
    if value > 0:
        body = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return b"\x00" * leading_zeros + body


def checksum(version: int, data: bytes) -> bytes:
    payload = bytes([version]) + data
    return hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:CHECKSUM_LENGTH]


def c32check_encode(version: int, data: bytes) -> str:
    """Encode ``data`` with a version character and trailing checksum.

    Args:
        version: Version number, 0 to 31.
        data: Payload bytes.

    Returns:
        The version character followed by the c32 encoded payload and checksum.
    """
    if version < 0 or version >= 32:
        raise C32Error(f"Invalid c32 version {version}, expected 0..31")
    return C32_ALPHABET[version] + c32encode(data + checksum(version, data))


def c32check_decode(text: str) -> Tuple[int, bytes]:
    """Decode a c32check string into its version and payload.

    Raises:
        C32Error: If the string is too short, malformed, or the checksum does not match.
    """
    normalized = _normalize(text)
    if len(normalized) < 2:
        raise C32Error(f"c32check string too short: {text!r}")

    version = C32_ALPHABET.find(normalized[0])
    if version < 0:
        raise C32Error(f"Invalid c32 version character in {text!r}")

    decoded = c32decode(normalized[1:])
    if len(decoded) < CHECKSUM_LENGTH:
        raise C32Error(f"c32check string too short: {text!r}")

    data, expected = decoded[:-CHECKSUM_LENGTH], decoded[-CHECKSUM_LENGTH:]
    if checksum(version, data) != expected:
        raise C32Error(f"Checksum mismatch for {text!r}")
    return (version, data)


def c32address(version: int, hash160: bytes) -> str:
    """Render a version and 20-byte hash as an ``S``-prefixed Stacks address."""
    if len(hash160) != HASH160_LENGTH:
        raise C32Error(f"Expected a 20 byte hash, found {len(hash160)} bytes")
    return "S" + c32check_encode(version, hash160)


def c32address_decode(address: str) -> Tuple[int, bytes]:
    """Parse an ``S``-prefixed Stacks address into its version and hash160."""
    if len(address) <= 5 or address[0].upper() != "S":
        raise C32Error(f"Invalid Stacks address {address!r}")
    version, data = c32check_decode(address[1:])
    if len(data) != HASH160_LENGTH:
        raise C32Error(f"Invalid Stacks address {address!r}, bad hash length")
    return (version, data)


class Test(unittest.TestCase):
    def test_known_addresses(self):
        self.assertEqual(
            c32address(22, bytes.fromhex("a46ff88886c2ef9762d970b4d2c63678835bd39d")),
            "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7",
        )
        self.assertEqual(
            c32address(26, bytes.fromhex("6d78de7b0625dfbfc16c3a8a5735f6dc3dc3f2ce")),
            "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM",
        )

    def test_burn_address_keeps_leading_zeros(self):
        burn = c32address(22, b"\x00" * 20)
        self.assertEqual(burn, "SP000000000000000000002Q6VF78")
        self.assertEqual(c32address_decode(burn), (22, b"\x00" * 20))

    def test_decode(self):
        version, data = c32address_decode("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB")
        self.assertEqual(version, 22)
        self.assertEqual(data.hex(), "ace5ce42e07ed6bc57b9bc47f67f736da4c93815")

    def test_encode_small_values(self):
        self.assertEqual(c32encode(b"\x00\x01"), "01")
        self.assertEqual(c32encode(b"\xff"), "7Z")
        self.assertEqual(c32encode(b""), "")
        self.assertEqual(c32decode("01"), b"\x00\x01")

    def test_lowercase_is_accepted(self):
        self.assertEqual(
            c32address_decode("sp2j6zy48gv1ez5v2v5rb9mp66sw86pykknrv9ej7")[0], 22
        )

    def test_bad_checksum(self):
        with self.assertRaises(C32Error):
            c32address_decode("SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ8")

    def test_bad_prefix(self):
        with self.assertRaises(C32Error):
            c32address_decode("XP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7")


if __name__ == "__main__":
    unittest.main()
