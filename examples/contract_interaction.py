# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Interact with a deployed voting contract.

- ``get-proposal`` is read-only: no key, no fee, nothing broadcast.
- ``create-proposal`` and ``vote`` change state and need a signing key.

The state-changing steps only run when STACKS_PRIVATE_KEY is set::

    python -m examples.contract_interaction
"""

import asyncio
import json
import logging
from typing import Any, Dict

from stacks_sdk.clarity import StringAsciiCV, UIntCV
from stacks_sdk.ledger_client import StacksLedgerClient
from stacks_sdk.operations import SubmissionClient, TransactionBuilder, execute
from stacks_sdk.secp256k1 import PrivateKey

from .common import CLIENT_CONFIG, CONTRACT_ADDRESS, NETWORK, setup_logging, signing_key

CONTRACT_NAME = "voting"
CREATE_PROPOSAL_FEE = 50_000
VOTE_FEE = 30_000

# About seven days of blocks
PROPOSAL_DURATION = 10080

YES = 0
NO = 1


async def get_proposal(client: SubmissionClient, proposal_id: int) -> Dict[str, Any]:
    request = TransactionBuilder.read_only(
        CONTRACT_ADDRESS, CONTRACT_NAME, "get-proposal", [UIntCV(proposal_id)]
    )
    operation = await execute(request, client, NETWORK)
    return operation.value.to_json()


async def create_proposal(
    client: SubmissionClient,
    title: str,
    description: str,
    duration: int,
    key: PrivateKey,
) -> str:
    request = TransactionBuilder.call(
        CONTRACT_ADDRESS,
        CONTRACT_NAME,
        "create-proposal",
        [StringAsciiCV(title), StringAsciiCV(description), UIntCV(duration)],
        CREATE_PROPOSAL_FEE,
        key,
    )
    operation = await execute(request, client, NETWORK)
    return operation.txid


async def vote(
    client: SubmissionClient, proposal_id: int, option_id: int, weight: int, key: PrivateKey
) -> str:
    request = TransactionBuilder.call(
        CONTRACT_ADDRESS,
        CONTRACT_NAME,
        "vote",
        [UIntCV(proposal_id), UIntCV(option_id), UIntCV(weight)],
        VOTE_FEE,
        key,
    )
    operation = await execute(request, client, NETWORK)
    return operation.txid


async def main():
    setup_logging()
    async with StacksLedgerClient(CLIENT_CONFIG) as client:
        proposal = await get_proposal(client, 0)
        print(f"Proposal: {json.dumps(proposal, indent=2)}")

        key = signing_key()
        if key is None:
            logging.info("STACKS_PRIVATE_KEY not set, skipping create-proposal and vote")
            return

        txid = await create_proposal(
            client,
            "Increase Treasury",
            "Proposal to increase treasury allocation by 10%",
            PROPOSAL_DURATION,
            key,
        )
        print(f"Proposal created: {txid}")

        txid = await vote(client, 0, YES, 100, key)
        print(f"Vote cast: {txid}")


if __name__ == "__main__":
    asyncio.run(main())
