# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Deploy a simple counter contract.

The contract keeps one ``uint`` and exposes ``increment``, ``decrement`` and
the read-only ``get-counter``. It is deployed as ``my-counter`` under the
signer's address with a 0.05 STX fee.

Run on testnet::

    STACKS_NETWORK=testnet STACKS_PRIVATE_KEY=... python -m examples.contract_deployment
"""

import asyncio
import logging

from stacks_sdk.account import Account
from stacks_sdk.contract_deployer import COUNTER_CONTRACT, DEPLOY_FEE
from stacks_sdk.ledger_client import StacksLedgerClient
from stacks_sdk.operations import TransactionBuilder, execute

from .common import CLIENT_CONFIG, NETWORK, setup_logging, signing_key

CONTRACT_NAME = "my-counter"


async def main():
    setup_logging()
    key = signing_key()
    if key is None:
        logging.error("Set STACKS_PRIVATE_KEY to deploy the contract")
        return

    deployer = Account(key).address(NETWORK)
    print(f"Deploying {deployer}.{CONTRACT_NAME} to {NETWORK.name}")

    request = TransactionBuilder.deploy(CONTRACT_NAME, COUNTER_CONTRACT, DEPLOY_FEE, key)
    async with StacksLedgerClient(CLIENT_CONFIG) as client:
        operation = await execute(request, client, NETWORK)

    print(f"Deployment initiated: {operation.txid}")
    print(f"Explorer: {NETWORK.explorer_url(operation.txid)}")


if __name__ == "__main__":
    asyncio.run(main())
