# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Stacks Python SDK: build, sign and submit Stacks transactions, and query Clarity contracts.

Every ledger action follows the same path: ``TransactionBuilder`` validates
typed parameters into an immutable ``OperationRequest``, a ``SubmissionClient``
signs and broadcasts it, and ``ResultReporter`` turns the outcome into a
transaction id or a ``SubmissionFailed`` error. Read-only contract calls skip
signing and go through ``ReadOnlyQuery``.

Modules:
- **operations**: The workflow: builder, requests, results, reporter, read-only queries
- **ledger_client**: ``StacksLedgerClient``, the ``SubmissionClient`` for real nodes
- **async_client**: ``RestClient`` for the node RPC and the Hiro API
- **sip010**: SIP-010 fungible token client and amount formatting
- **contract_deployer**: Contract and Clarinet project deployment
- **transactions**: Transaction wire format, signing and transaction ids
- **clarity** / **abi**: Clarity values and function signature checks
- **post_conditions**: Asset guards enforced by the node
- **address** / **c32** / **secp256k1** / **account**: Addresses and keys
- **network**: Mainnet, testnet and devnet targets
- **cli**: ``python -m stacks_sdk.cli``

Quick Start:
    Reading a proposal and casting a vote::

        import asyncio
        from stacks_sdk.clarity import UIntCV
        from stacks_sdk.ledger_client import StacksLedgerClient
        from stacks_sdk.network import NetworkTarget
        from stacks_sdk.operations import TransactionBuilder, execute

        CONTRACT = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"

        async def main(key):
            async with StacksLedgerClient() as client:
                read = TransactionBuilder.read_only(
                    CONTRACT, "voting", "get-proposal", [UIntCV(0)]
                )
                print((await execute(read, client, NetworkTarget.MAINNET)).value.to_json())

                vote = TransactionBuilder.call(
                    CONTRACT, "voting", "vote", [UIntCV(0), UIntCV(0), UIntCV(100)],
                    30_000, key,
                )
                print((await execute(vote, client, NetworkTarget.MAINNET)).txid)

Security Considerations:
    - **Private Keys**: Never logged; keep key files out of version control
    - **Post Conditions**: Guard token transfers so a contract cannot move more than intended
    - **Testnet First**: Try contracts on testnet or devnet before mainnet
"""
