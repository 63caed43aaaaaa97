# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
secp256k1 ECDSA keys and recoverable signatures for Stacks transactions.

Stacks signs transactions with secp256k1 ECDSA over a SHA-512/256 digest and
transmits the signature in a 65-byte recoverable form: one recovery id byte
followed by the 32-byte ``r`` and 32-byte ``s`` values (``VRS``). Verifiers
recover the signer's public key from the signature and compare its hash160 to
the one in the spending condition, so the recovery id must be correct.

Private keys are commonly exchanged as hex. A 64 character key produces an
uncompressed public key, while a 66 character key whose last byte is ``01``
produces a compressed one. Both forms are accepted and preserved.

Cryptographic properties:
- Curve: secp256k1, the Bitcoin curve
- Nonces: RFC 6979 deterministic with HMAC-SHA256
- Signatures: normalized to low ``s`` (``s <= n/2``)

Examples:
    Signing a digest and recovering the signer::

        from stacks_sdk.secp256k1 import PrivateKey, PublicKey

        private_key = PrivateKey.from_hex(
            "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"
        )
        digest = hashlib.sha256(b"message").digest()
        signature = private_key.sign(digest)

        recovered = PublicKey.recover(digest, signature)
        assert recovered == private_key.public_key()
"""

from __future__ import annotations

import hashlib
import unittest
from typing import List

from ecdsa import (
    SECP256k1,
    BadSignatureError,
    MalformedPointError,
    SigningKey,
    VerifyingKey,
    util,
)

from .serialization import Deserializer, Serializer

COMPRESSED_SUFFIX = b"\x01"


class PrivateKey:
    """A secp256k1 private key plus the public key encoding it produces.

    Attributes:
        LENGTH: The byte length of the raw secret (32).
        key: The underlying ecdsa signing key.
        compressed: Whether the matching public key is in compressed form.
    """

    LENGTH: int = 32

    key: SigningKey
    compressed: bool

    def __init__(self, key: SigningKey, compressed: bool = True):
        self.key = key
        self.compressed = compressed

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return (
            self.key.to_string() == other.key.to_string()
            and self.compressed == other.compressed
        )

    def __str__(self):
        return self.hex()

    @staticmethod
    def from_hex(value: str | bytes) -> PrivateKey:
        """Create a private key from hex text or raw bytes.

        Args:
            value: 32 bytes for a key with an uncompressed public key, or 33
                bytes ending in ``01`` for one with a compressed public key.
                Hex text may carry a ``0x`` prefix.

        Returns:
            The parsed private key.

        Raises:
            ValueError: If the length or the compression suffix is wrong.

        Examples:
            Compressed key::

                key = PrivateKey.from_hex("edf9...70bc01")
                key.compressed  # True
        """
        if isinstance(value, str):
            if value.startswith("0x"):
                value = value[2:]
            try:
                raw = bytes.fromhex(value)
            except ValueError as e:
                raise ValueError("Private key is not valid hex") from e
        else:
            raw = value

        compressed = False
        if len(raw) == PrivateKey.LENGTH + 1:
            if raw[-1:] != COMPRESSED_SUFFIX:
                raise ValueError(
                    "A 33 byte private key must end with 01 to mark compression"
                )
            raw = raw[: PrivateKey.LENGTH]
            compressed = True
        elif len(raw) != PrivateKey.LENGTH:
            raise ValueError(
                f"Expected a 32 or 33 byte private key, found {len(raw)} bytes"
            )

        return PrivateKey(
            SigningKey.from_string(raw, SECP256k1, hashlib.sha256), compressed
        )

    def hex(self) -> str:
        suffix = COMPRESSED_SUFFIX.hex() if self.compressed else ""
        return self.key.to_string().hex() + suffix

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verifying_key, self.compressed)

    @staticmethod
    def random(compressed: bool = True) -> PrivateKey:
        return PrivateKey(
            SigningKey.generate(curve=SECP256k1, hashfunc=hashlib.sha256), compressed
        )

    def sign(self, digest: bytes) -> MessageSignature:
        """Sign a 32-byte digest and return a recoverable signature.

        The nonce is derived with RFC 6979, so signing the same digest twice
        yields the same signature. ``s`` is normalized to the lower half of the
        curve order, and the recovery id is chosen to match the normalized
        signature.

        Args:
            digest: The 32-byte message digest. It is signed as is, without
                further hashing.

        Returns:
            The 65-byte recoverable signature.
        """
        sig = self.key.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=util.sigencode_string
        )
        n = SECP256k1.generator.order()
        r, s = util.sigdecode_string(sig, n)
        # Both s and -s verify; only the low half is canonical.
        if s > (n // 2):
            sig = util.sigencode_string(r, n - s, n)

        expected = self.key.verifying_key.to_string("compressed")
        for recovery_id, candidate in enumerate(_recover_candidates(digest, sig)):
            if candidate.to_string("compressed") == expected:
                return MessageSignature(bytes([recovery_id]) + sig)
        raise ValueError("Unable to compute a recovery id for signature")


class PublicKey:
    """A secp256k1 public key and the encoding it is presented in.

    Attributes:
        COMPRESSED_LENGTH: Length of the SEC1 compressed encoding (33).
        UNCOMPRESSED_LENGTH: Length of the SEC1 uncompressed encoding (65).
    """

    COMPRESSED_LENGTH: int = 33
    UNCOMPRESSED_LENGTH: int = 65

    key: VerifyingKey
    compressed: bool

    def __init__(self, key: VerifyingKey, compressed: bool = True):
        self.key = key
        self.compressed = compressed

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __str__(self) -> str:
        return self.hex()

    @staticmethod
    def from_bytes(value: bytes) -> PublicKey:
        """Parse a SEC1 encoded public key, keeping its compression form.

        Raises:
            ValueError: If the bytes are not a point on the curve.
        """
        if len(value) not in (PublicKey.COMPRESSED_LENGTH, PublicKey.UNCOMPRESSED_LENGTH):
            raise ValueError(f"Invalid public key length {len(value)}")
        try:
            key = VerifyingKey.from_string(value, SECP256k1, hashlib.sha256)
        except MalformedPointError as e:
            raise ValueError(f"Invalid public key: {e}") from e
        return PublicKey(key, len(value) == PublicKey.COMPRESSED_LENGTH)

    @staticmethod
    def from_str(value: str) -> PublicKey:
        if value.startswith("0x"):
            value = value[2:]
        return PublicKey.from_bytes(bytes.fromhex(value))

    def to_bytes(self) -> bytes:
        return self.key.to_string("compressed" if self.compressed else "uncompressed")

    def hex(self) -> str:
        return self.to_bytes().hex()

    def verify(self, digest: bytes, signature: MessageSignature) -> bool:
        try:
            self.key.verify_digest(
                signature.rs(), digest, sigdecode=util.sigdecode_string
            )
        except BadSignatureError:
            return False
        return True

    @staticmethod
    def recover(
        digest: bytes, signature: MessageSignature, compressed: bool = True
    ) -> PublicKey:
        """Recover the signer's public key from a recoverable signature.

        Raises:
            ValueError: If the recovery id does not select a candidate key.
        """
        candidates = _recover_candidates(digest, signature.rs())
        if signature.recovery_id >= len(candidates):
            raise ValueError(f"Invalid recovery id {signature.recovery_id}")
        return PublicKey(candidates[signature.recovery_id], compressed)


def _recover_candidates(digest: bytes, rs: bytes) -> List[VerifyingKey]:
    # The first candidate uses the even-y point R, which is recovery id 0.
    return VerifyingKey.from_public_key_recovery_with_digest(
        rs,
        digest,
        curve=SECP256k1,
        hashfunc=hashlib.sha256,
        sigdecode=util.sigdecode_string,
    )


class MessageSignature:
    """A 65-byte recoverable signature laid out as recovery id, ``r``, ``s``."""

    LENGTH: int = 65

    signature: bytes

    def __init__(self, signature: bytes):
        if len(signature) != MessageSignature.LENGTH:
            raise ValueError(
                f"Expected a 65 byte signature, found {len(signature)} bytes"
            )
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, MessageSignature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return self.hex()

    @staticmethod
    def empty() -> MessageSignature:
        """The all-zero placeholder used while computing the signing hash."""
        return MessageSignature(b"\x00" * MessageSignature.LENGTH)

    @property
    def recovery_id(self) -> int:
        return self.signature[0]

    def rs(self) -> bytes:
        return self.signature[1:]

    def hex(self) -> str:
        return self.signature.hex()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MessageSignature:
        return MessageSignature(deserializer.fixed_bytes(MessageSignature.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.signature)


class Test(unittest.TestCase):
    KEY = "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc"
    COMPRESSED = "03ef788b3830c00abe8f64f62dc32fc863bc0b2cafeb073b6c8e1c7657d9c2c3ab"
    UNCOMPRESSED = (
        "04ef788b3830c00abe8f64f62dc32fc863bc0b2cafeb073b6c8e1c7657d9c2c3ab"
        "5b435d20ea91337cdd8c30dd7427bb098a5355e9c9bfad43797899b8137237cf"
    )

    def test_private_key_forms(self):
        compressed = PrivateKey.from_hex(self.KEY + "01")
        self.assertTrue(compressed.compressed)
        self.assertEqual(compressed.hex(), self.KEY + "01")
        self.assertEqual(compressed.public_key().hex(), self.COMPRESSED)

        uncompressed = PrivateKey.from_hex("0x" + self.KEY)
        self.assertFalse(uncompressed.compressed)
        self.assertEqual(uncompressed.public_key().hex(), self.UNCOMPRESSED)

        with self.assertRaises(ValueError):
            PrivateKey.from_hex(self.KEY + "02")
        with self.assertRaises(ValueError):
            PrivateKey.from_hex("abcd")
        with self.assertRaises(ValueError):
            PrivateKey.from_hex("zz" * 32)

    def test_public_key_parsing(self):
        self.assertEqual(PublicKey.from_str(self.COMPRESSED).hex(), self.COMPRESSED)
        self.assertNotEqual(
            PublicKey.from_str(self.UNCOMPRESSED), PublicKey.from_str(self.COMPRESSED)
        )
        self.assertFalse(PublicKey.from_str(self.UNCOMPRESSED).compressed)
        with self.assertRaises(ValueError):
            PublicKey.from_bytes(b"\x02" * 10)

    def test_sign_verify_recover(self):
        private_key = PrivateKey.from_hex(self.KEY + "01")
        digest = hashlib.sha256(b"stacks").digest()
        signature = private_key.sign(digest)

        self.assertEqual(signature, private_key.sign(digest))
        self.assertIn(signature.recovery_id, (0, 1))
        self.assertTrue(private_key.public_key().verify(digest, signature))
        self.assertFalse(
            private_key.public_key().verify(hashlib.sha256(b"other").digest(), signature)
        )
        self.assertEqual(PublicKey.recover(digest, signature), private_key.public_key())

    def test_low_s(self):
        private_key = PrivateKey.random()
        n = SECP256k1.generator.order()
        for i in range(8):
            digest = hashlib.sha256(bytes([i])).digest()
            signature = private_key.sign(digest)
            _r, s = util.sigdecode_string(signature.rs(), n)
            self.assertLessEqual(s, n // 2)
            self.assertEqual(
                PublicKey.recover(digest, signature), private_key.public_key()
            )

    def test_signature_serialization(self):
        signature = MessageSignature(b"\x01" + b"\x02" * 64)
        ser = Serializer()
        signature.serialize(ser)
        self.assertEqual(len(ser.output()), 65)
        self.assertEqual(MessageSignature.deserialize(Deserializer(ser.output())), signature)
        self.assertEqual(MessageSignature.empty().hex(), "00" * 65)
        with self.assertRaises(ValueError):
            MessageSignature(b"\x00" * 64)


if __name__ == "__main__":
    unittest.main()
