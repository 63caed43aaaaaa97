# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Command-line interface for deploying, calling and querying Clarity contracts.

Supported commands:
- deploy: Deploy a contract from a source file, or every contract of a Clarinet project
- call: Call a public contract function
- read: Evaluate a read-only contract function and print the result as JSON
- balance: Print a SIP-010 token balance
- supply: Print a SIP-010 token's total supply
- transfer: Transfer SIP-010 tokens, guarded by an exact-amount post condition

Contract arguments are given as ``--arg TYPE:VALUE`` and may repeat. Types are
``uint``, ``int``, ``bool``, ``principal``, ``ascii``, ``utf8``, ``buff`` (hex),
``hex`` (a serialized Clarity value), and the bare word ``none``.

Examples:
    Reading a proposal::

        python -m stacks_sdk.cli read \
            --network mainnet \
            --contract SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.voting \
            --function get-proposal \
            --arg uint:0

    Voting::

        python -m stacks_sdk.cli call \
            --contract SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.voting \
            --function vote --arg uint:0 --arg uint:0 --arg uint:100 \
            --fee 30000 --private-key-path ./key.json --wait

    Deploying::

        python -m stacks_sdk.cli deploy --network testnet \
            --name my-counter --source ./counter.clar --private-key-path ./key.json

Environment variables:
    STACKS_NETWORK, STACKS_NODE_URL, STACKS_API_KEY and STACKS_PRIVATE_KEY
    provide defaults for ``--network``, ``--node-url``, ``--api-key`` and the
    signing key. STACKS_LOG_LEVEL sets the log level unless ``--verbose`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import io
import json
import logging
import os
import sys
import unittest
from typing import List, Optional, Tuple

import httpx

from .account import Account
from .address import ParseAddressError, StacksAddress, parse_contract_id
from .async_client import ApiError, ClientConfig, TransactionAborted, TransactionTimeout
from .clarity import (
    BoolCV,
    BufferCV,
    ClarityError,
    ClarityValue,
    IntCV,
    NoneCV,
    ResponseOkCV,
    SomeCV,
    StringAsciiCV,
    StringUtf8CV,
    TupleCV,
    UIntCV,
    principal_cv,
)
from .contract_deployer import DEPLOY_FEE, ContractDeployer, DeploymentError
from .exceptions import InvalidRequest, QueryFailed, SubmissionFailed
from .ledger_client import StacksLedgerClient
from .network import NetworkTarget
from .operations import (
    OperationRequest,
    SubmissionSuccess,
    TransactionBuilder,
    execute,
)
from .secp256k1 import PrivateKey
from .sip010 import TRANSFER_FEE, Sip010Client, format_token_amount

COMMANDS = ["deploy", "call", "read", "balance", "supply", "transfer"]


def clarity_arg(indata: str) -> ClarityValue:
    """Parse a ``TYPE:VALUE`` command-line argument into a Clarity value.

    Examples:
        >>> clarity_arg("uint:10")
        UIntCV(10)
        >>> clarity_arg("none")
        NoneCV
    """
    kind, sep, value = indata.partition(":")
    kind = kind.strip().lower()
    try:
        if kind == "none" and not sep:
            return NoneCV()
        if not sep:
            raise ValueError("expected TYPE:VALUE")
        if kind == "uint":
            return UIntCV(int(value))
        elif kind == "int":
            return IntCV(int(value))
        elif kind == "bool":
            if value.lower() not in ("true", "false"):
                raise ValueError("expected true or false")
            return BoolCV(value.lower() == "true")
        elif kind == "principal":
            return principal_cv(value)
        elif kind == "ascii":
            return StringAsciiCV(value)
        elif kind == "utf8":
            return StringUtf8CV(value)
        elif kind == "buff":
            return BufferCV(bytes.fromhex(value[2:] if value.startswith("0x") else value))
        elif kind == "hex":
            return ClarityValue.from_hex(value)
    except (ValueError, ClarityError, ParseAddressError) as e:
        raise argparse.ArgumentTypeError(f"Invalid Clarity argument {indata!r}: {e}") from e
    raise argparse.ArgumentTypeError(
        f"Unknown Clarity argument type {kind!r}, expected one of "
        "uint, int, bool, principal, ascii, utf8, buff, hex, none"
    )


def contract_id(indata: str) -> Tuple[StacksAddress, str]:
    try:
        return parse_contract_id(indata)
    except ParseAddressError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def load_private_key(path: Optional[str]) -> PrivateKey:
    """Read a key from a JSON account file, a hex key file, or STACKS_PRIVATE_KEY.

    Raises:
        ValueError: If no key is configured or the key is malformed.
    """
    if path is None:
        key = os.environ.get("STACKS_PRIVATE_KEY")
        if not key:
            raise ValueError(
                "Missing required argument '--private-key-path' (or STACKS_PRIVATE_KEY)"
            )
        return PrivateKey.from_hex(key.strip())
    try:
        if path.endswith(".json"):
            return Account.load(path).private_key
        with open(path) as f:
            return PrivateKey.from_hex(f.read().strip())
    except FileNotFoundError:
        raise ValueError(f"Private key file not found: {path}") from None
    except (KeyError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load private key from {path}: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stacks Python CLI")
    parser.add_argument(
        "command", type=str, help="The command to execute", choices=COMMANDS
    )
    parser.add_argument(
        "--network",
        help="mainnet, testnet or devnet",
        default=os.environ.get("STACKS_NETWORK", "testnet"),
    )
    parser.add_argument(
        "--node-url",
        help="Use this node instead of the network's default API",
        default=os.environ.get("STACKS_NODE_URL"),
    )
    parser.add_argument(
        "--api-key",
        help="Hiro API key, sent as x-api-key",
        default=os.environ.get("STACKS_API_KEY"),
    )
    parser.add_argument(
        "--contract", help="Contract identifier ADDRESS.name", type=contract_id
    )
    parser.add_argument("--function", help="Contract function name", type=str)
    parser.add_argument(
        "--arg",
        help="Contract argument as TYPE:VALUE, e.g. uint:10 (repeatable)",
        action="append",
        type=clarity_arg,
        default=[],
    )
    parser.add_argument("--fee", help="Fee in micro-STX", type=int)
    parser.add_argument(
        "--private-key-path",
        help="Path to a JSON account file or a file holding a hex private key",
        type=str,
    )
    parser.add_argument("--amount", help="Token amount in base units", type=int)
    parser.add_argument("--recipient", help="Transfer recipient principal", type=str)
    parser.add_argument("--owner", help="Principal whose balance to read", type=str)
    parser.add_argument("--memo", help="Transfer memo, at most 34 bytes", type=str)
    parser.add_argument(
        "--asset-name", help="Fungible token name when it differs from the contract name"
    )
    parser.add_argument(
        "--decimals", help="Token decimals used for display", type=int, default=6
    )
    parser.add_argument("--name", help="Contract name to deploy as", type=str)
    parser.add_argument("--source", help="Path to the Clarity source to deploy", type=str)
    parser.add_argument(
        "--project-dir", help="Deploy every contract of this Clarinet project", type=str
    )
    parser.add_argument(
        "--clarity-version", help="Clarity version for deploys", type=int
    )
    parser.add_argument(
        "--wait", help="Wait until the transaction is mined", action="store_true"
    )
    parser.add_argument("--verbose", help="Log debug output", action="store_true")
    return parser


def require(parser: argparse.ArgumentParser, parsed_args: argparse.Namespace, *names: str):
    for name in names:
        if getattr(parsed_args, name) is None:
            parser.error(f"Missing required argument '--{name.replace('_', '-')}'")


async def submit(
    client: StacksLedgerClient,
    network: NetworkTarget,
    request: OperationRequest,
    wait: bool,
) -> str:
    operation = await execute(request, client, network)
    if wait:
        await client.wait_for_transaction(operation.txid, network)
        logging.info(f"Transaction {operation.txid} confirmed")
    return operation.txid


async def run(
    parser: argparse.ArgumentParser,
    parsed_args: argparse.Namespace,
    client: StacksLedgerClient,
    network: NetworkTarget,
):
    command = parsed_args.command

    if command in ("call", "read"):
        require(parser, parsed_args, "contract", "function")
        address, name = parsed_args.contract
        if command == "read":
            request = TransactionBuilder.read_only(
                address, name, parsed_args.function, parsed_args.arg
            )
            operation = await execute(request, client, network)
            print(json.dumps(operation.value.to_json(), indent=2))
            return
        require(parser, parsed_args, "fee")
        request = TransactionBuilder.call(
            address,
            name,
            parsed_args.function,
            parsed_args.arg,
            parsed_args.fee,
            load_private_key(parsed_args.private_key_path),
        )
        print(await submit(client, network, request, parsed_args.wait))

    elif command in ("balance", "supply", "transfer"):
        require(parser, parsed_args, "contract")
        address, name = parsed_args.contract
        token = Sip010Client(client, network, address, name, parsed_args.asset_name)
        if command == "balance":
            require(parser, parsed_args, "owner")
            balance = await token.get_balance(parsed_args.owner)
            print(format_token_amount(balance, parsed_args.decimals))
        elif command == "supply":
            supply = await token.get_total_supply()
            print(format_token_amount(supply, parsed_args.decimals))
        else:
            require(parser, parsed_args, "amount", "recipient")
            request = token.build_transfer(
                parsed_args.amount,
                parsed_args.recipient,
                load_private_key(parsed_args.private_key_path),
                memo=parsed_args.memo,
                fee=parsed_args.fee if parsed_args.fee is not None else TRANSFER_FEE,
            )
            print(await submit(client, network, request, parsed_args.wait))

    elif command == "deploy":
        fee = parsed_args.fee if parsed_args.fee is not None else DEPLOY_FEE
        key = load_private_key(parsed_args.private_key_path)
        deployer = ContractDeployer(client, network)
        if parsed_args.project_dir is not None:
            for txid in await deployer.deploy_project(parsed_args.project_dir, fee, key):
                print(txid)
            return
        require(parser, parsed_args, "name", "source")
        try:
            with open(parsed_args.source, encoding="utf-8") as f:
                source = f.read()
        except FileNotFoundError:
            parser.error(f"Contract source not found: {parsed_args.source}")
        request = TransactionBuilder.deploy(
            parsed_args.name, source, fee, key, clarity_version=parsed_args.clarity_version
        )
        print(await submit(client, network, request, parsed_args.wait))


async def main(args: List[str]):
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    level = "DEBUG" if parsed_args.verbose else os.environ.get("STACKS_LOG_LEVEL", "INFO")
    logging.basicConfig(level=level.upper())

    try:
        network = NetworkTarget.from_name(parsed_args.network, parsed_args.node_url)
    except ValueError as e:
        parser.error(str(e))

    async with StacksLedgerClient(ClientConfig(api_key=parsed_args.api_key)) as client:
        try:
            await run(parser, parsed_args, client, network)
        except (InvalidRequest, ValueError) as e:
            parser.error(str(e))
        except (
            SubmissionFailed,
            QueryFailed,
            DeploymentError,
            ApiError,
            TransactionAborted,
            TransactionTimeout,
            httpx.HTTPError,
        ) as e:
            parser.exit(1, f"{parsed_args.command} failed: {e}\n")


class Test(unittest.IsolatedAsyncioTestCase):
    VOTING = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.voting"
    TOKEN = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.sentinel-token"
    KEY = "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"

    def test_clarity_arg(self):
        self.assertEqual(clarity_arg("uint:10"), UIntCV(10))
        self.assertEqual(clarity_arg("int:-3"), IntCV(-3))
        self.assertEqual(clarity_arg("bool:true"), BoolCV(True))
        self.assertEqual(clarity_arg("ascii:Increase Treasury"), StringAsciiCV("Increase Treasury"))
        self.assertEqual(clarity_arg("utf8:hello"), StringUtf8CV("hello"))
        self.assertEqual(clarity_arg("buff:0x0102"), BufferCV(b"\x01\x02"))
        self.assertEqual(clarity_arg("none"), NoneCV())
        self.assertEqual(clarity_arg(f"hex:{UIntCV(7).to_hex()}"), UIntCV(7))
        self.assertEqual(
            clarity_arg("principal:SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"),
            principal_cv("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"),
        )
        for bad in ("uint:-1", "uint:abc", "bool:yes", "principal:SP1234", "float:1.5", "uint"):
            with self.subTest(bad=bad):
                with self.assertRaises(argparse.ArgumentTypeError):
                    clarity_arg(bad)

    async def test_read(self):
        from unittest.mock import AsyncMock, patch

        proposal = SomeCV(TupleCV({"title": StringAsciiCV("Increase Treasury")}))
        output = io.StringIO()
        with patch.object(
            StacksLedgerClient, "query", AsyncMock(return_value=proposal)
        ) as query, contextlib.redirect_stdout(output):
            await main(
                ["read", "--network", "mainnet", "--contract", self.VOTING,
                 "--function", "get-proposal", "--arg", "uint:0"]
            )
        self.assertEqual(json.loads(output.getvalue()), proposal.to_json())
        self.assertEqual(query.call_args.args[2], "get-proposal")
        self.assertEqual(query.call_args.args[3], (UIntCV(0),))

    async def test_call(self):
        from unittest.mock import AsyncMock, patch

        output = io.StringIO()
        with patch.dict(os.environ, {"STACKS_PRIVATE_KEY": self.KEY}), patch.object(
            StacksLedgerClient,
            "sign_and_submit",
            AsyncMock(return_value=SubmissionSuccess("ab" * 32)),
        ) as sign_and_submit, contextlib.redirect_stdout(output):
            await main(
                ["call", "--contract", self.VOTING, "--function", "vote",
                 "--arg", "uint:0", "--arg", "uint:0", "--arg", "uint:100",
                 "--fee", "30000"]
            )
        self.assertEqual(output.getvalue().strip(), "ab" * 32)
        request, network = sign_and_submit.call_args.args
        self.assertEqual(request.fee, 30_000)
        self.assertEqual(len(request.arguments), 3)
        self.assertEqual(network, NetworkTarget.TESTNET)

    async def test_supply(self):
        from unittest.mock import AsyncMock, patch

        output = io.StringIO()
        with patch.object(
            StacksLedgerClient,
            "query",
            AsyncMock(return_value=ResponseOkCV(UIntCV(1_234_500_000))),
        ), contextlib.redirect_stdout(output):
            await main(["supply", "--network", "mainnet", "--contract", self.TOKEN])
        self.assertEqual(output.getvalue().strip(), "1,234.50")

    async def test_wait_transport_error(self):
        from unittest.mock import AsyncMock, patch

        with patch.dict(os.environ, {"STACKS_PRIVATE_KEY": self.KEY}), patch.object(
            StacksLedgerClient,
            "sign_and_submit",
            AsyncMock(return_value=SubmissionSuccess("ab" * 32)),
        ), patch.object(
            StacksLedgerClient,
            "wait_for_transaction",
            AsyncMock(side_effect=httpx.ConnectError("connection refused")),
        ), contextlib.redirect_stderr(io.StringIO()) as stderr:
            with self.assertRaises(SystemExit) as context:
                await main(
                    ["call", "--contract", self.VOTING, "--function", "vote",
                     "--arg", "uint:0", "--fee", "30000", "--wait"]
                )
        self.assertEqual(context.exception.code, 1)
        self.assertIn("connection refused", stderr.getvalue())

    async def test_missing_arguments(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                await main(["read", "--function", "get-proposal"])
            with self.assertRaises(SystemExit):
                await main(["read", "--contract", "not-a-contract"])
            with self.assertRaises(SystemExit):
                await main(["supply", "--network", "moon", "--contract", self.TOKEN])


def entrypoint():
    asyncio.run(main(sys.argv[1:]))


if __name__ == "__main__":
    entrypoint()
