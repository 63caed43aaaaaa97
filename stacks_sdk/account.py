# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Stacks account management: a signing key and the addresses it controls.

The same key controls one address per network, since the address version
differs between mainnet and testnet. An ``Account`` therefore derives its
address from an explicit ``NetworkTarget`` instead of storing one.

Examples:
    Generate a new account::

        from stacks_sdk.account import Account
        from stacks_sdk.network import NetworkTarget

        account = Account.generate()
        print(f"Address: {account.address(NetworkTarget.TESTNET)}")

    Load an existing key::

        account = Account.load_key(
            "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"
        )

    Persist and restore::

        account.store("./wallet.json")
        restored = Account.load("./wallet.json")
        assert restored == account
"""

from __future__ import annotations

import json
import tempfile
import unittest

from .address import StacksAddress
from .network import NetworkTarget
from .secp256k1 import MessageSignature, PrivateKey, PublicKey


class Account:
    """A Stacks account backed by a secp256k1 private key.

    Attributes:
        private_key: The key that signs for this account.
    """

    private_key: PrivateKey

    def __init__(self, private_key: PrivateKey):
        self.private_key = private_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.private_key == other.private_key

    @staticmethod
    def generate(compressed: bool = True) -> Account:
        return Account(PrivateKey.random(compressed))

    @staticmethod
    def load_key(key: str) -> Account:
        """Create an account from a hex private key.

        Args:
            key: 64 hex characters, or 66 ending in ``01`` for a compressed key.

        Raises:
            ValueError: If the key is malformed.
        """
        return Account(PrivateKey.from_hex(key.strip()))

    @staticmethod
    def load(path: str) -> Account:
        """Load an account from a JSON file written by ``store``.

        Expected JSON structure::

            {
                "private_key": "edf9...01",
                "testnet_address": "ST...",
                "mainnet_address": "SP..."
            }

        Only ``private_key`` is required; the addresses are informational.

        Raises:
            FileNotFoundError: If the file does not exist.
            KeyError: If ``private_key`` is missing.
            ValueError: If the key is malformed.
        """
        with open(path) as file:
            data = json.load(file)
        return Account.load_key(data["private_key"])

    def store(self, path: str):
        """Store the account to a JSON file.

        The file holds the private key in plain text.
        """
        data = {
            "private_key": self.private_key.hex(),
            "mainnet_address": str(self.address(NetworkTarget.MAINNET)),
            "testnet_address": str(self.address(NetworkTarget.TESTNET)),
        }
        with open(path, "w") as file:
            json.dump(data, file)

    def address(self, network: NetworkTarget) -> StacksAddress:
        """The single-signature address this key controls on ``network``."""
        return StacksAddress.from_public_key(
            self.public_key().to_bytes(), network.address_version
        )

    def public_key(self) -> PublicKey:
        return self.private_key.public_key()

    def sign(self, digest: bytes) -> MessageSignature:
        return self.private_key.sign(digest)


class Test(unittest.TestCase):
    KEY = "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc"

    def test_load_and_store(self):
        (file, path) = tempfile.mkstemp()
        start = Account.generate()
        start.store(path)
        load = Account.load(path)

        self.assertEqual(start, load)
        self.assertEqual(
            start.address(NetworkTarget.TESTNET), load.address(NetworkTarget.TESTNET)
        )

        with open(path) as stored:
            data = json.load(stored)
        self.assertEqual(data["testnet_address"], str(start.address(NetworkTarget.TESTNET)))

    def test_addresses(self):
        account = Account.load_key(self.KEY + "01")
        self.assertEqual(
            str(account.address(NetworkTarget.MAINNET)),
            "SPAW66WC3G8WA5F28JVNG1NTRJ6H76E7EN5H6QQD",
        )
        self.assertEqual(
            str(account.address(NetworkTarget.TESTNET)),
            "STAW66WC3G8WA5F28JVNG1NTRJ6H76E7EMHDBMBN",
        )
        self.assertEqual(
            account.address(NetworkTarget.DEVNET), account.address(NetworkTarget.TESTNET)
        )

    def test_uncompressed_address(self):
        account = Account.load_key(self.KEY)
        self.assertEqual(
            str(account.address(NetworkTarget.TESTNET)),
            "STZG6BAY4JVR9RNAB1HY92B7Q208ZYY4HZG8ZXFM",
        )

    def test_sign(self):
        account = Account.generate()
        digest = bytes(range(32))
        signature = account.sign(digest)
        self.assertTrue(account.public_key().verify(digest, signature))


if __name__ == "__main__":
    unittest.main()
