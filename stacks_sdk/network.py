# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Network targets: where a request is sent and how it is encoded for that chain.

A ``NetworkTarget`` is a plain value passed through every call. It carries the
node URL together with the chain constants that end up in the transaction
bytes, so a testnet transaction can never be broadcast to mainnet by accident
of a shared global.

Examples:
    Built-in targets::

        from stacks_sdk.network import NetworkTarget

        NetworkTarget.MAINNET.core_api_url  # "https://api.mainnet.hiro.so"
        NetworkTarget.from_name("testnet")

    A private node::

        target = NetworkTarget.from_name("testnet", url="http://10.0.0.5:20443")
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass, replace
from typing import ClassVar, Optional

from .address import AddressVersion


class TransactionVersion:
    MAINNET: int = 0x00
    TESTNET: int = 0x80


class ChainID:
    MAINNET: int = 0x00000001
    TESTNET: int = 0x80000000


EXPLORER_URL = "https://explorer.hiro.so"


@dataclass(frozen=True)
class NetworkTarget:
    """An explicit network selection.

    Attributes:
        name: ``mainnet``, ``testnet`` or ``devnet``.
        core_api_url: Base URL of the node and Hiro API.
        chain_id: Chain id written into every transaction.
        transaction_version: Version byte written into every transaction.
        address_version: Single-signature address version for this chain.
    """

    name: str
    core_api_url: str
    chain_id: int
    transaction_version: int
    address_version: int

    MAINNET: ClassVar[NetworkTarget]
    TESTNET: ClassVar[NetworkTarget]
    DEVNET: ClassVar[NetworkTarget]

    def __post_init__(self):
        object.__setattr__(self, "core_api_url", self.core_api_url.rstrip("/"))

    @property
    def is_mainnet(self) -> bool:
        return self.transaction_version == TransactionVersion.MAINNET

    def with_url(self, url: str) -> NetworkTarget:
        return replace(self, core_api_url=url)

    def explorer_url(self, txid: str) -> str:
        """Link to a transaction in the Hiro explorer."""
        if not txid.startswith("0x"):
            txid = f"0x{txid}"
        chain = "mainnet" if self.is_mainnet else "testnet"
        if self.name == "devnet":
            return (
                f"{EXPLORER_URL}/txid/{txid}?chain=testnet&api={self.core_api_url}"
            )
        return f"{EXPLORER_URL}/txid/{txid}?chain={chain}"

    @staticmethod
    def from_name(name: str, url: Optional[str] = None) -> NetworkTarget:
        """Resolve a network by name, optionally pointing it at another node.

        Raises:
            ValueError: If the name is not a known network.
        """
        aliases = {
            "main": NetworkTarget.MAINNET,
            "mainnet": NetworkTarget.MAINNET,
            "test": NetworkTarget.TESTNET,
            "testnet": NetworkTarget.TESTNET,
            "dev": NetworkTarget.DEVNET,
            "devnet": NetworkTarget.DEVNET,
            "mocknet": NetworkTarget.DEVNET,
        }
        try:
            network = aliases[name.strip().lower()]
        except KeyError:
            raise ValueError(
                f"Unknown network {name!r}, expected mainnet, testnet or devnet"
            ) from None
        if url:
            return network.with_url(url)
        return network


NetworkTarget.MAINNET = NetworkTarget(
    name="mainnet",
    core_api_url="https://api.mainnet.hiro.so",
    chain_id=ChainID.MAINNET,
    transaction_version=TransactionVersion.MAINNET,
    address_version=AddressVersion.MAINNET_SINGLE_SIG,
)
NetworkTarget.TESTNET = NetworkTarget(
    name="testnet",
    core_api_url="https://api.testnet.hiro.so",
    chain_id=ChainID.TESTNET,
    transaction_version=TransactionVersion.TESTNET,
    address_version=AddressVersion.TESTNET_SINGLE_SIG,
)
NetworkTarget.DEVNET = NetworkTarget(
    name="devnet",
    core_api_url="http://localhost:3999",
    chain_id=ChainID.TESTNET,
    transaction_version=TransactionVersion.TESTNET,
    address_version=AddressVersion.TESTNET_SINGLE_SIG,
)


class Test(unittest.TestCase):
    def test_from_name(self):
        self.assertIs(NetworkTarget.from_name("Mainnet"), NetworkTarget.MAINNET)
        self.assertIs(NetworkTarget.from_name("test"), NetworkTarget.TESTNET)
        self.assertIs(NetworkTarget.from_name("mocknet"), NetworkTarget.DEVNET)
        with self.assertRaises(ValueError):
            NetworkTarget.from_name("regtest")

    def test_custom_url(self):
        target = NetworkTarget.from_name("testnet", url="http://node:20443/")
        self.assertEqual(target.core_api_url, "http://node:20443")
        self.assertEqual(target.chain_id, ChainID.TESTNET)
        self.assertEqual(NetworkTarget.TESTNET.core_api_url, "https://api.testnet.hiro.so")

    def test_explorer_url(self):
        self.assertEqual(
            NetworkTarget.MAINNET.explorer_url("abc"),
            "https://explorer.hiro.so/txid/0xabc?chain=mainnet",
        )
        self.assertEqual(
            NetworkTarget.TESTNET.explorer_url("0xabc"),
            "https://explorer.hiro.so/txid/0xabc?chain=testnet",
        )

    def test_chain_constants(self):
        self.assertTrue(NetworkTarget.MAINNET.is_mainnet)
        self.assertFalse(NetworkTarget.DEVNET.is_mainnet)
        self.assertEqual(NetworkTarget.MAINNET.address_version, 22)
        self.assertEqual(NetworkTarget.TESTNET.address_version, 26)


if __name__ == "__main__":
    unittest.main()
