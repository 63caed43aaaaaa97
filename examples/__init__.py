"""
Stacks Python SDK examples.

- contract_deployment.py: Deploy the counter contract
- contract_interaction.py: Read, create and vote on proposals in a voting contract
- token_operations.py: SIP-010 balance, supply and a guarded transfer
- common.py: Shared configuration read from the environment

Run an example as a module::

    STACKS_NETWORK=testnet python -m examples.contract_interaction

State-changing steps only run when STACKS_PRIVATE_KEY is set.
"""
