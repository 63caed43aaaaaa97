# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
A client for SIP-010 fungible token contracts.

SIP-010 is the Stacks fungible token standard. A conforming contract exposes
``transfer`` plus the read-only functions ``get-name``, ``get-symbol``,
``get-decimals``, ``get-balance``, ``get-total-supply`` and
``get-token-uri``. ``Sip010Client`` wraps those for one token contract.

Examples:
    Balance, supply and a guarded transfer::

        from stacks_sdk.ledger_client import StacksLedgerClient
        from stacks_sdk.network import NetworkTarget
        from stacks_sdk.sip010 import Sip010Client, format_token_amount

        async with StacksLedgerClient() as ledger:
            token = Sip010Client(
                ledger,
                NetworkTarget.MAINNET,
                "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB",
                "sentinel-token",
            )
            balance = await token.get_balance("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB")
            print(f"Balance: {format_token_amount(balance)} SNTL")
            txid = await token.transfer(1_000_000, recipient, private_key, memo="Payment")
"""

import logging
import unittest
from typing import Optional, Union

from .address import ParseAddressError, StacksAddress
from .clarity import (
    ClarityValue,
    NoneCV,
    ResponseErrCV,
    ResponseOkCV,
    SomeCV,
    StringAsciiCV,
    StringUtf8CV,
    UIntCV,
    principal_cv,
)
from .exceptions import InvalidRequest, QueryFailed, SubmissionFailed
from .network import NetworkTarget
from .operations import (
    AssetGuard,
    OperationRequest,
    ReadOnlyQuery,
    ResultReporter,
    SubmissionClient,
    SubmissionFailure,
    SubmissionSuccess,
    TransactionBuilder,
    decode_uint,
    execute,
)
from .post_conditions import AssetInfo, FungibleConditionCode, PostConditionMode
from .secp256k1 import PrivateKey

TRANSFER_FEE = 30_000


class Sip010Client:
    """Reads and transfers one SIP-010 token.

    Attributes:
        client: Signs, submits and queries.
        network: Where the token contract lives.
        contract_address: The deployer of the token contract.
        contract_name: The token contract's name.
        asset_name: The ``define-fungible-token`` name inside the contract,
            used for post conditions. Defaults to the contract name.
    """

    client: SubmissionClient
    network: NetworkTarget
    contract_address: StacksAddress
    contract_name: str
    asset_name: str

    def __init__(
        self,
        client: SubmissionClient,
        network: NetworkTarget,
        contract_address: Union[str, StacksAddress],
        contract_name: str,
        asset_name: Optional[str] = None,
    ):
        if isinstance(contract_address, str):
            contract_address = StacksAddress.from_str(contract_address)
        self.client = client
        self.network = network
        self.contract_address = contract_address
        self.contract_name = contract_name
        self.asset_name = asset_name or contract_name

    def __str__(self) -> str:
        return f"{self.contract_address}.{self.contract_name}"

    def asset_info(self) -> AssetInfo:
        return AssetInfo(self.contract_address, self.contract_name, self.asset_name)

    async def _read(self, function_name: str, *arguments: ClarityValue) -> ClarityValue:
        query = ReadOnlyQuery(
            self.contract_address, self.contract_name, function_name, arguments
        )
        return await query.run(self.client, self.network)

    async def get_balance(self, owner: Union[str, StacksAddress]) -> int:
        """
        The token balance of ``owner`` in the token's smallest unit.

        A contract answering ``(err ...)`` is reported as a zero balance.

        :param owner: An account or contract principal.
        :raises QueryFailed: If the node fails or answers with a non-uint value.
        """
        try:
            principal = principal_cv(str(owner))
        except ParseAddressError as e:
            raise InvalidRequest(f"Invalid owner {owner!r}: {e}") from e
        result = await self._read("get-balance", principal)
        if isinstance(result, ResponseErrCV):
            logging.warning(
                f"{self}::get-balance answered {result.type_string()}, reporting 0"
            )
            return 0
        return decode_uint(result)

    async def get_total_supply(self) -> int:
        return decode_uint(await self._read("get-total-supply"))

    async def get_decimals(self) -> int:
        return decode_uint(await self._read("get-decimals"))

    async def get_name(self) -> str:
        return _decode_string(await self._read("get-name"))

    async def get_symbol(self) -> str:
        return _decode_string(await self._read("get-symbol"))

    async def get_token_uri(self) -> Optional[str]:
        result = await self._read("get-token-uri")
        if isinstance(result, ResponseOkCV):
            result = result.value
        if isinstance(result, NoneCV):
            return None
        if isinstance(result, SomeCV):
            return _decode_string(result.value)
        raise QueryFailed(
            f"Expected an optional token URI, found {result.type_string()}", result
        )

    def build_transfer(
        self,
        amount: int,
        recipient: Union[str, StacksAddress],
        signing_key: PrivateKey,
        memo: Optional[Union[str, bytes]] = None,
        sender: Optional[Union[str, StacksAddress]] = None,
        fee: int = TRANSFER_FEE,
        guarded: bool = True,
        nonce: Optional[int] = None,
    ) -> OperationRequest:
        """
        Build a transfer of ``amount`` from ``sender`` to ``recipient``.

        :param sender: Defaults to the signer's address on this network.
        :param guarded: Attach an ``EQUAL amount`` guard on the signer's
            outgoing tokens and run in ``DENY`` mode.
        :raises InvalidRequest: If any parameter is invalid.
        """
        if sender is None:
            if not isinstance(signing_key, PrivateKey):
                raise InvalidRequest("A signing key is required for this operation")
            sender = StacksAddress.from_public_key(
                signing_key.public_key().to_bytes(), self.network.address_version
            )
        guard = None
        if guarded:
            guard = AssetGuard(self.asset_info(), FungibleConditionCode.EQUAL, amount)
        return TransactionBuilder.transfer(
            token_contract_address=self.contract_address,
            token_contract_name=self.contract_name,
            amount=amount,
            sender=sender,
            recipient=recipient,
            fee=fee,
            signing_key=signing_key,
            memo=memo,
            asset_guard=guard,
            nonce=nonce,
        )

    async def transfer(
        self,
        amount: int,
        recipient: Union[str, StacksAddress],
        signing_key: PrivateKey,
        memo: Optional[Union[str, bytes]] = None,
        sender: Optional[Union[str, StacksAddress]] = None,
        fee: int = TRANSFER_FEE,
        reporter: Optional[ResultReporter] = None,
    ) -> str:
        """
        Transfer tokens and return the transaction id.

        :raises InvalidRequest: If any parameter is invalid.
        :raises SubmissionFailed: If the node rejects the transaction.
        """
        request = self.build_transfer(amount, recipient, signing_key, memo, sender, fee)
        operation = await execute(request, self.client, self.network, reporter)
        return operation.txid


def _decode_string(value: ClarityValue) -> str:
    if isinstance(value, ResponseOkCV):
        value = value.value
    if isinstance(value, (StringAsciiCV, StringUtf8CV)):
        return value.data
    raise QueryFailed(f"Expected a string result, found {value.type_string()}", value)


def format_token_amount(micro_amount: int, decimals: int = 6) -> str:
    """Render a base-unit amount for display, e.g. ``1234500000`` -> ``1,234.50``.

    Uses en-US digit grouping with between 2 and ``decimals`` fraction digits.
    Integer arithmetic keeps every digit of a 128-bit amount exact.
    """
    sign = "-" if micro_amount < 0 else ""
    whole, fraction = divmod(abs(micro_amount), 10**decimals)
    digits = str(fraction).rjust(decimals, "0").rstrip("0") if decimals else ""
    digits = digits.ljust(2, "0")
    return f"{sign}{whole:,}.{digits}"


class Test(unittest.IsolatedAsyncioTestCase):
    TOKEN = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"
    RECIPIENT = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
    KEY = PrivateKey.from_hex(
        "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"
    )

    def client(self, query_result=None, result=None):
        from unittest.mock import AsyncMock, Mock

        client = Mock(spec=["query", "sign_and_submit"])
        client.query = AsyncMock(return_value=query_result)
        client.sign_and_submit = AsyncMock(return_value=result)
        return client

    def token(self, client) -> Sip010Client:
        return Sip010Client(client, NetworkTarget.MAINNET, self.TOKEN, "sentinel-token")

    def test_format_token_amount(self):
        self.assertEqual(format_token_amount(1_000_000), "1.00")
        self.assertEqual(format_token_amount(1_234_500_000), "1,234.50")
        self.assertEqual(format_token_amount(1), "0.000001")
        self.assertEqual(format_token_amount(0), "0.00")
        self.assertEqual(format_token_amount(123_456_789, decimals=8), "1.23456789")
        self.assertEqual(format_token_amount(5, decimals=0), "5.00")
        self.assertEqual(
            format_token_amount(2**128 - 1),
            "340,282,366,920,938,463,463,374,607,431,768.211455",
        )

    async def test_get_balance(self):
        client = self.client(query_result=ResponseOkCV(UIntCV(2_500_000)))
        self.assertEqual(await self.token(client).get_balance(self.RECIPIENT), 2_500_000)
        address, name, function, arguments, sender, network = client.query.call_args.args
        self.assertEqual(function, "get-balance")
        self.assertEqual(arguments, (principal_cv(self.RECIPIENT),))
        self.assertEqual(sender, StacksAddress.from_str(self.TOKEN))
        self.assertEqual(network, NetworkTarget.MAINNET)

    async def test_get_balance_err_is_zero(self):
        client = self.client(query_result=ResponseErrCV(UIntCV(1)))
        with self.assertLogs(level="WARNING"):
            self.assertEqual(await self.token(client).get_balance(self.RECIPIENT), 0)

    async def test_total_supply_never_negative(self):
        client = self.client(query_result=ResponseOkCV(UIntCV(10**15)))
        self.assertEqual(await self.token(client).get_total_supply(), 10**15)

        client = self.client(query_result=ResponseErrCV(UIntCV(1)))
        with self.assertRaises(QueryFailed):
            await self.token(client).get_total_supply()

    async def test_metadata(self):
        token = self.token(self.client(query_result=ResponseOkCV(StringAsciiCV("SNTL"))))
        self.assertEqual(await token.get_symbol(), "SNTL")

        token = self.token(self.client(query_result=ResponseOkCV(NoneCV())))
        self.assertIsNone(await token.get_token_uri())

        uri = ResponseOkCV(SomeCV(StringUtf8CV("https://example.com/token.json")))
        token = self.token(self.client(query_result=uri))
        self.assertEqual(await token.get_token_uri(), "https://example.com/token.json")

    def test_build_transfer(self):
        token = self.token(self.client())
        request = token.build_transfer(1_000_000, self.RECIPIENT, self.KEY)
        self.assertEqual(request.post_condition_mode, PostConditionMode.DENY)
        guard = request.asset_guards[0]
        self.assertEqual(guard.condition_code, FungibleConditionCode.EQUAL)
        self.assertEqual(guard.amount, 1_000_000)
        self.assertEqual(
            str(guard.asset), f"{self.TOKEN}.sentinel-token::sentinel-token"
        )
        signer = StacksAddress.from_public_key(
            self.KEY.public_key().to_bytes(), NetworkTarget.MAINNET.address_version
        )
        self.assertEqual(request.arguments[1], principal_cv(str(signer)))

        unguarded = token.build_transfer(5, self.RECIPIENT, self.KEY, guarded=False)
        self.assertEqual(unguarded.post_condition_mode, PostConditionMode.ALLOW)

    async def test_transfer(self):
        client = self.client(result=SubmissionSuccess("ef" * 32))
        txid = await self.token(client).transfer(
            1_000_000, self.RECIPIENT, self.KEY, memo="Payment for services"
        )
        self.assertEqual(txid, "ef" * 32)
        request, network = client.sign_and_submit.call_args.args
        self.assertEqual(network, NetworkTarget.MAINNET)
        self.assertEqual(request.memo, b"Payment for services")

    async def test_transfer_rejected(self):
        client = self.client(result=SubmissionFailure("NotEnoughFunds"))
        with self.assertRaises(SubmissionFailed):
            await self.token(client).transfer(1_000_000, self.RECIPIENT, self.KEY)


if __name__ == "__main__":
    unittest.main()
