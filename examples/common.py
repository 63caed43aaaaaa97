# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Configuration shared by the examples, read from the environment.

Environment Variables:
    STACKS_NETWORK: mainnet, testnet or devnet (default: mainnet)
    STACKS_NODE_URL: A node to use instead of the network's Hiro API
    STACKS_API_KEY: Hiro API key, sent as x-api-key
    STACKS_PRIVATE_KEY: Hex signing key; state-changing steps are skipped without it
    STACKS_CONTRACT_ADDRESS: Deployer of the voting and token contracts
    STACKS_LOG_LEVEL: Log level (default: INFO)
"""

import logging
import os
from typing import Optional

from stacks_sdk.async_client import ClientConfig
from stacks_sdk.network import NetworkTarget
from stacks_sdk.secp256k1 import PrivateKey

NETWORK = NetworkTarget.from_name(
    os.getenv("STACKS_NETWORK", "mainnet"), os.getenv("STACKS_NODE_URL")
)

CLIENT_CONFIG = ClientConfig(api_key=os.getenv("STACKS_API_KEY"))

CONTRACT_ADDRESS = os.getenv(
    "STACKS_CONTRACT_ADDRESS", "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"
)

LOG_LEVEL = os.getenv("STACKS_LOG_LEVEL", "INFO")


def signing_key() -> Optional[PrivateKey]:
    key = os.getenv("STACKS_PRIVATE_KEY")
    return PrivateKey.from_hex(key) if key else None


def setup_logging():
    logging.basicConfig(level=LOG_LEVEL.upper())
