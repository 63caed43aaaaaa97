# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
SIP-010 token operations: balance, total supply and a guarded transfer.

The transfer runs in DENY mode with a post condition that the signer sends
exactly the transferred amount, so the transaction aborts if the token
contract tries to move anything else.

Set STACKS_PRIVATE_KEY and TRANSFER_RECIPIENT to run the transfer::

    TRANSFER_RECIPIENT=SP... STACKS_PRIVATE_KEY=... python -m examples.token_operations
"""

import asyncio
import logging
import os

from stacks_sdk.ledger_client import StacksLedgerClient
from stacks_sdk.sip010 import Sip010Client, format_token_amount

from .common import CLIENT_CONFIG, CONTRACT_ADDRESS, NETWORK, setup_logging, signing_key

TOKEN_CONTRACT = "sentinel-token"
SYMBOL = "SNTL"

# 1 SNTL, the token has 6 decimals
TRANSFER_AMOUNT = 1_000_000


async def main():
    setup_logging()
    async with StacksLedgerClient(CLIENT_CONFIG) as client:
        token = Sip010Client(client, NETWORK, CONTRACT_ADDRESS, TOKEN_CONTRACT)

        balance, supply = await asyncio.gather(
            token.get_balance(CONTRACT_ADDRESS), token.get_total_supply()
        )
        print(f"Balance: {format_token_amount(balance)} {SYMBOL}")
        print(f"Total Supply: {format_token_amount(supply)} {SYMBOL}")

        key = signing_key()
        recipient = os.getenv("TRANSFER_RECIPIENT")
        if key is None or recipient is None:
            logging.info("STACKS_PRIVATE_KEY or TRANSFER_RECIPIENT not set, skipping transfer")
            return

        txid = await token.transfer(
            TRANSFER_AMOUNT, recipient, key, memo="Payment for services"
        )
        print(f"Transfer successful! TX: {txid}")


if __name__ == "__main__":
    asyncio.run(main())
