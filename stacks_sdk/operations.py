# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
The operation workflow: build a request, submit it, report the outcome.

Every ledger action in this SDK goes through the same three steps:

1. ``TransactionBuilder`` turns typed parameters into an immutable
   ``OperationRequest``. All validation happens here, without network access,
   and failures raise ``InvalidRequest``.
2. A ``SubmissionClient`` signs, encodes and broadcasts the request and
   answers with a ``SubmissionSuccess`` (carrying the transaction id) or a
   ``SubmissionFailure`` (carrying the node's message).
3. ``ResultReporter`` logs the outcome, returning the transaction id or
   raising ``SubmissionFailed``.

Read-only contract calls skip signing and broadcasting entirely and go through
``ReadOnlyQuery`` instead. ``execute`` ties the steps together and routes a
call built without a signing key to the read-only path.

Examples:
    A guarded SIP-010 transfer::

        from stacks_sdk.ledger_client import StacksLedgerClient
        from stacks_sdk.network import NetworkTarget
        from stacks_sdk.operations import AssetGuard, TransactionBuilder, execute

        request = TransactionBuilder.transfer(
            token_contract_address="SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB",
            token_contract_name="sentinel-token",
            amount=1_000_000,
            sender=sender_address,
            recipient=recipient_address,
            fee=30_000,
            signing_key=private_key,
            asset_guard=AssetGuard.parse(
                "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB.sentinel-token::sentinel-token",
                "==",
                1_000_000,
            ),
        )
        async with StacksLedgerClient() as client:
            operation = await execute(request, client, NetworkTarget.MAINNET)
        print(operation.txid)

    A read-only lookup::

        request = TransactionBuilder.read_only(
            "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB", "voting", "get-proposal", [UIntCV(0)]
        )
        operation = await execute(request, client, NetworkTarget.MAINNET)
        print(operation.value.to_json())
"""

from __future__ import annotations

import asyncio
import logging
import typing
import unittest
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import httpx
from typing_extensions import Protocol

from .abi import SIP010_TRANSFER, FunctionSignature
from .address import (
    DEPLOY_CONTRACT_NAME_MAX_LENGTH,
    ParseAddressError,
    StacksAddress,
    validate_contract_name,
)
from .async_client import ApiError
from .clarity import (
    BufferCV,
    ClarityError,
    ClarityValue,
    NoneCV,
    ResponseErrCV,
    ResponseOkCV,
    SomeCV,
    StandardPrincipalCV,
    TupleCV,
    UIntCV,
    optional_cv,
    principal_cv,
)
from .exceptions import InvalidRequest, QueryFailed, SubmissionFailed
from .network import NetworkTarget
from .post_conditions import (
    AssetInfo,
    FungibleConditionCode,
    FungiblePostCondition,
    PostConditionMode,
    PostConditionPrincipal,
)
from .secp256k1 import PrivateKey
from .serialization import MAX_U64, MAX_U128
from .transactions import AnchorMode, ClarityVersion

MEMO_MAX_LENGTH = 34


class OperationKind(Enum):
    DEPLOY = "deploy"
    CALL = "call"
    TRANSFER = "transfer"


class OperationState(Enum):
    BUILT = "built"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


TRANSITIONS = {
    OperationState.BUILT: (OperationState.SUBMITTED,),
    OperationState.SUBMITTED: (OperationState.CONFIRMED, OperationState.REJECTED),
    OperationState.CONFIRMED: (),
    OperationState.REJECTED: (),
}


@dataclass(frozen=True)
class AssetGuard:
    """A bound on how much of one fungible token the transaction may move.

    Attributes:
        asset: The token, e.g. ``SP...sentinel-token::sentinel-token``.
        condition_code: How the moved amount compares to ``amount``.
        amount: The bound, in the token's smallest unit.
        principal: Whose outgoing tokens are bounded; the signer when ``None``.
    """

    asset: AssetInfo
    condition_code: FungibleConditionCode
    amount: int
    principal: Optional[PostConditionPrincipal] = None

    @staticmethod
    def parse(
        asset: str,
        condition: str,
        amount: int,
        principal: Optional[str] = None,
    ) -> AssetGuard:
        """Build a guard from text, e.g. ``AssetGuard.parse("SP...c::tok", ">=", 5)``.

        Raises:
            InvalidRequest: If the asset, condition or principal do not parse.
        """
        try:
            return AssetGuard(
                AssetInfo.from_str(asset),
                FungibleConditionCode.parse(condition),
                amount,
                PostConditionPrincipal.from_str(principal) if principal else None,
            )
        except (ParseAddressError, ValueError) as e:
            raise InvalidRequest(f"Invalid asset guard: {e}") from e

    def to_post_condition(self) -> FungiblePostCondition:
        return FungiblePostCondition(
            self.principal or PostConditionPrincipal.origin(),
            self.asset,
            self.condition_code,
            self.amount,
        )

    def __str__(self) -> str:
        return f"{self.principal or 'origin'} sends {self.condition_code.name} {self.amount} {self.asset}"


@dataclass(frozen=True)
class OperationRequest:
    """An immutable description of one ledger action.

    ``arguments`` holds the call arguments the caller supplied. For a
    transfer the optional memo is kept as plain bytes in ``memo`` and only
    becomes a Clarity optional in ``call_arguments()``.
    """

    kind: OperationKind
    contract_address: Optional[StacksAddress]
    contract_name: str
    function_name: Optional[str] = None
    arguments: Tuple[ClarityValue, ...] = ()
    fee: int = 0
    signing_key: Optional[PrivateKey] = field(default=None, repr=False)
    post_condition_mode: PostConditionMode = PostConditionMode.ALLOW
    asset_guards: Tuple[AssetGuard, ...] = ()
    memo: Optional[bytes] = None
    code_body: Optional[str] = field(default=None, repr=False)
    clarity_version: Optional[ClarityVersion] = None
    nonce: Optional[int] = None
    anchor_mode: AnchorMode = AnchorMode.ANY

    @property
    def is_read_only(self) -> bool:
        return self.kind == OperationKind.CALL and self.signing_key is None

    @property
    def contract_id(self) -> str:
        return f"{self.contract_address}.{self.contract_name}"

    def call_arguments(self) -> Tuple[ClarityValue, ...]:
        """The arguments as they are encoded into the contract call."""
        if self.kind == OperationKind.TRANSFER:
            memo = None if self.memo is None else BufferCV(self.memo)
            return self.arguments + (optional_cv(memo),)
        return self.arguments

    def post_conditions(self) -> typing.List[FungiblePostCondition]:
        return [guard.to_post_condition() for guard in self.asset_guards]

    def __str__(self) -> str:
        if self.kind == OperationKind.DEPLOY:
            return f"deploy {self.contract_name}"
        return f"{self.kind.value} {self.contract_id}::{self.function_name}"


@dataclass(frozen=True)
class SubmissionSuccess:
    txid: str

    def __post_init__(self):
        if not isinstance(self.txid, str) or not self.txid:
            raise ValueError("A successful submission needs a transaction id")


@dataclass(frozen=True)
class SubmissionFailure:
    message: str

    def __post_init__(self):
        if not isinstance(self.message, str) or not self.message:
            raise ValueError("A failed submission needs a message")


SubmissionResult = Union[SubmissionSuccess, SubmissionFailure]


class SubmissionClient(Protocol):
    """What the workflow needs from a ledger client.

    ``sign_and_submit`` must be atomic from the caller's point of view: the
    node either accepts the whole transaction or rejects it before any state
    changes. Transport errors may be raised; ``execute`` applies the
    ``SubmissionPolicy`` to them.
    """

    async def sign_and_submit(
        self, request: OperationRequest, network: NetworkTarget
    ) -> SubmissionResult:
        ...

    async def query(
        self,
        contract_address: StacksAddress,
        contract_name: str,
        function_name: str,
        arguments: Sequence[ClarityValue],
        sender_address: StacksAddress,
        network: NetworkTarget,
    ) -> ClarityValue:
        ...


@dataclass(frozen=True)
class SubmissionPolicy:
    """How hard to try delivering a transaction.

    Only transport failures and timeouts are retried. A rejection from the
    node is final. The default is a single attempt with no timeout beyond the
    HTTP client's own.

    Attributes:
        attempts: Total attempts, at least 1.
        timeout: Seconds allowed per attempt, or ``None``.
        backoff: Seconds before the first retry; doubles after each retry.
    """

    attempts: int = 1
    timeout: Optional[float] = None
    backoff: float = 0.5

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("SubmissionPolicy needs at least one attempt")


class TransactionBuilder:
    """Builds validated ``OperationRequest`` values. Never touches the network."""

    @staticmethod
    def deploy(
        contract_name: str,
        code_body: str,
        fee: int,
        signing_key: PrivateKey,
        clarity_version: Optional[int] = None,
        post_condition_mode: PostConditionMode = PostConditionMode.ALLOW,
        nonce: Optional[int] = None,
        anchor_mode: AnchorMode = AnchorMode.ANY,
    ) -> OperationRequest:
        """Request deployment of a contract under the signer's address.

        Raises:
            InvalidRequest: If the name, code, fee, key or version is invalid.
        """
        _check_fee(fee)
        _check_nonce(nonce)
        _check_signing_key(signing_key)
        name = _check_contract_name(contract_name, DEPLOY_CONTRACT_NAME_MAX_LENGTH)
        if not isinstance(code_body, str) or not code_body.strip():
            raise InvalidRequest("Contract code body must be a non-empty string")
        version = None
        if clarity_version is not None:
            try:
                version = ClarityVersion(clarity_version)
            except ValueError:
                raise InvalidRequest(
                    f"Unknown Clarity version {clarity_version}"
                ) from None
        return OperationRequest(
            kind=OperationKind.DEPLOY,
            contract_address=None,
            contract_name=name,
            fee=fee,
            signing_key=signing_key,
            post_condition_mode=PostConditionMode(post_condition_mode),
            code_body=code_body,
            clarity_version=version,
            nonce=nonce,
            anchor_mode=anchor_mode,
        )

    @staticmethod
    def call(
        contract_address: Union[str, StacksAddress],
        contract_name: str,
        function_name: str,
        arguments: Sequence[ClarityValue],
        fee: int,
        signing_key: PrivateKey,
        post_condition_mode: PostConditionMode = PostConditionMode.ALLOW,
        asset_guards: Sequence[AssetGuard] = (),
        signature: Optional[FunctionSignature] = None,
        nonce: Optional[int] = None,
        anchor_mode: AnchorMode = AnchorMode.ANY,
    ) -> OperationRequest:
        """Request a state-changing contract call.

        Args:
            signature: When given, the arguments are checked against it.

        Raises:
            InvalidRequest: If any parameter is invalid or the arguments do
                not match ``signature``.
        """
        _check_fee(fee)
        _check_nonce(nonce)
        _check_signing_key(signing_key)
        request = OperationRequest(
            kind=OperationKind.CALL,
            contract_address=_check_address(contract_address),
            contract_name=_check_contract_name(contract_name),
            function_name=_check_function_name(function_name),
            arguments=_check_arguments(arguments),
            fee=fee,
            signing_key=signing_key,
            post_condition_mode=PostConditionMode(post_condition_mode),
            asset_guards=_check_guards(asset_guards),
            nonce=nonce,
            anchor_mode=anchor_mode,
        )
        _check_signature(request, signature)
        return request

    @staticmethod
    def read_only(
        contract_address: Union[str, StacksAddress],
        contract_name: str,
        function_name: str,
        arguments: Sequence[ClarityValue] = (),
        signature: Optional[FunctionSignature] = None,
    ) -> OperationRequest:
        """Request a read-only call: no signing key, no fee, never broadcast."""
        request = OperationRequest(
            kind=OperationKind.CALL,
            contract_address=_check_address(contract_address),
            contract_name=_check_contract_name(contract_name),
            function_name=_check_function_name(function_name),
            arguments=_check_arguments(arguments),
        )
        _check_signature(request, signature)
        return request

    @staticmethod
    def transfer(
        token_contract_address: Union[str, StacksAddress],
        token_contract_name: str,
        amount: int,
        sender: Union[str, StacksAddress],
        recipient: Union[str, StacksAddress],
        fee: int,
        signing_key: PrivateKey,
        memo: Optional[Union[str, bytes]] = None,
        asset_guard: Optional[AssetGuard] = None,
        function_name: str = "transfer",
        nonce: Optional[int] = None,
        anchor_mode: AnchorMode = AnchorMode.ANY,
    ) -> OperationRequest:
        """Request a SIP-010 ``transfer(amount, sender, recipient, memo)``.

        When ``asset_guard`` is given the transaction runs in ``DENY`` mode,
        so it aborts if it moves any asset the guard does not cover.

        Raises:
            InvalidRequest: If any parameter is invalid, the memo is longer
                than 34 bytes, or the guard names a different token contract.
        """
        _check_fee(fee)
        _check_nonce(nonce)
        _check_signing_key(signing_key)
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidRequest(f"Transfer amount must be an integer, found {amount!r}")
        if amount < 0 or amount > MAX_U128:
            raise InvalidRequest(f"Transfer amount {amount} is out of range")

        address = _check_address(token_contract_address)
        name = _check_contract_name(token_contract_name)
        guards = _check_guards([asset_guard] if asset_guard is not None else [])
        for guard in guards:
            if guard.asset.address != address or guard.asset.contract_name != name:
                raise InvalidRequest(
                    f"Asset guard for {guard.asset} does not match the transferred "
                    f"token {address}.{name}"
                )

        if isinstance(memo, str):
            memo = memo.encode("utf-8")
        if memo is not None and len(memo) > MEMO_MAX_LENGTH:
            raise InvalidRequest(
                f"Memo is {len(memo)} bytes, at most {MEMO_MAX_LENGTH} are allowed"
            )

        request = OperationRequest(
            kind=OperationKind.TRANSFER,
            contract_address=address,
            contract_name=name,
            function_name=_check_function_name(function_name),
            arguments=(UIntCV(amount), _check_principal(sender), _check_principal(recipient)),
            fee=fee,
            signing_key=signing_key,
            post_condition_mode=(
                PostConditionMode.DENY if guards else PostConditionMode.ALLOW
            ),
            asset_guards=guards,
            memo=memo,
            nonce=nonce,
            anchor_mode=anchor_mode,
        )
        _check_signature(request, SIP010_TRANSFER)
        return request


def _check_fee(fee: int):
    if isinstance(fee, bool) or not isinstance(fee, int):
        raise InvalidRequest(f"Fee must be an integer amount of micro-STX, found {fee!r}")
    if fee < 0 or fee > MAX_U64:
        raise InvalidRequest(f"Fee {fee} is out of range")


def _check_nonce(nonce: Optional[int]):
    if nonce is None:
        return
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0 or nonce > MAX_U64:
        raise InvalidRequest(f"Nonce must be a non-negative integer, found {nonce!r}")


def _check_signing_key(signing_key: Optional[PrivateKey]):
    if not isinstance(signing_key, PrivateKey):
        raise InvalidRequest("A signing key is required for this operation")


def _check_address(address: Union[str, StacksAddress]) -> StacksAddress:
    if isinstance(address, StacksAddress):
        return address
    try:
        return StacksAddress.from_str(address)
    except (ParseAddressError, TypeError) as e:
        raise InvalidRequest(f"Invalid contract address {address!r}: {e}") from e


def _check_principal(principal: Union[str, StacksAddress]) -> ClarityValue:
    if isinstance(principal, StacksAddress):
        return StandardPrincipalCV(principal)
    try:
        return principal_cv(principal)
    except (ParseAddressError, TypeError) as e:
        raise InvalidRequest(f"Invalid principal {principal!r}: {e}") from e


def _check_contract_name(name: str, max_length: int = 128) -> str:
    try:
        return validate_contract_name(name, max_length)
    except (ParseAddressError, TypeError) as e:
        raise InvalidRequest(str(e)) from e


def _check_function_name(name: Optional[str]) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidRequest("A function name is required for contract calls")
    if len(name) > 128 or not name.isascii():
        raise InvalidRequest(f"Invalid function name {name!r}")
    return name


def _check_arguments(arguments: Sequence[ClarityValue]) -> Tuple[ClarityValue, ...]:
    arguments = tuple(arguments)
    for index, argument in enumerate(arguments):
        if not isinstance(argument, ClarityValue):
            raise InvalidRequest(
                f"Argument {index} must be a Clarity value, found {argument!r}"
            )
    return arguments


def _check_guards(guards: Sequence[AssetGuard]) -> Tuple[AssetGuard, ...]:
    for guard in guards:
        if not isinstance(guard, AssetGuard):
            raise InvalidRequest(f"Expected an AssetGuard, found {guard!r}")
        if isinstance(guard.amount, bool) or not isinstance(guard.amount, int):
            raise InvalidRequest(f"Asset guard amount must be an integer: {guard}")
        if guard.amount < 0 or guard.amount > MAX_U64:
            raise InvalidRequest(f"Asset guard amount is out of range: {guard}")
    return tuple(guards)


def _check_signature(request: OperationRequest, signature: Optional[FunctionSignature]):
    if signature is None:
        return
    try:
        signature.validate(request.call_arguments())
    except ClarityError as e:
        raise InvalidRequest(str(e)) from e


class ResultReporter:
    """Turns a ``SubmissionResult`` into a transaction id or an exception."""

    def report(
        self, result: SubmissionResult, network: Optional[NetworkTarget] = None
    ) -> str:
        """Log the outcome and return the transaction id.

        Raises:
            SubmissionFailed: If the result is a failure. Nothing is retried.
        """
        if isinstance(result, SubmissionSuccess):
            logging.info(f"Transaction broadcast successfully, txid: {result.txid}")
            if network is not None:
                logging.info(f"Explorer: {network.explorer_url(result.txid)}")
            return result.txid
        if isinstance(result, SubmissionFailure):
            logging.error(f"Transaction failed: {result.message}")
            raise SubmissionFailed(result.message)
        raise TypeError(f"Unknown submission result {result!r}")


@dataclass(frozen=True)
class ReadOnlyQuery:
    """A read-only contract call: no signing key, no fee, no broadcast.

    Attributes:
        sender_address: The nominal caller. Any valid address works since
            no state changes; the contract's own address is used when unset.
    """

    contract_address: StacksAddress
    contract_name: str
    function_name: str
    arguments: Tuple[ClarityValue, ...] = ()
    sender_address: Optional[StacksAddress] = None

    @staticmethod
    def from_request(
        request: OperationRequest, sender_address: Optional[StacksAddress] = None
    ) -> ReadOnlyQuery:
        """Convert a read-only ``OperationRequest``.

        Raises:
            InvalidRequest: If the request carries a signing key or a fee, or
                is not a contract call.
        """
        if request.kind != OperationKind.CALL:
            raise InvalidRequest(f"Only contract calls can be queried, found {request.kind.value}")
        if request.signing_key is not None:
            raise InvalidRequest("Read-only queries do not accept a signing key")
        if request.fee != 0:
            raise InvalidRequest("Read-only queries do not accept a fee")
        return ReadOnlyQuery(
            request.contract_address,
            request.contract_name,
            request.function_name,
            request.call_arguments(),
            sender_address,
        )

    async def run(self, client: SubmissionClient, network: NetworkTarget) -> ClarityValue:
        """Evaluate the call on ``network``.

        Raises:
            QueryFailed: If the node errors or the result cannot be decoded.
        """
        sender = self.sender_address or self.contract_address
        try:
            return await client.query(
                self.contract_address,
                self.contract_name,
                self.function_name,
                self.arguments,
                sender,
                network,
            )
        except QueryFailed as e:
            logging.error(
                f"Read-only call {self.contract_name}::{self.function_name} failed: {e}"
            )
            raise
        except (ApiError, ClarityError, httpx.HTTPError, asyncio.TimeoutError) as e:
            logging.error(
                f"Read-only call {self.contract_name}::{self.function_name} failed: {e}",
                exc_info=True,
            )
            raise QueryFailed(
                f"{self.contract_name}::{self.function_name} failed: {e}", e
            ) from e


def decode_uint(value: ClarityValue) -> int:
    """Unwrap ``(ok uint)`` or ``uint`` into a non-negative ``int``.

    Raises:
        QueryFailed: For any other value, including ``(err ...)``.
    """
    if isinstance(value, ResponseOkCV):
        value = value.value
    if isinstance(value, UIntCV):
        return value.value
    raise QueryFailed(f"Expected an unsigned integer result, found {value.type_string()}", value)


@dataclass
class Operation:
    """The progress of one request through the workflow.

    A read-only request stays ``BUILT``; its decoded result is in ``value``.
    """

    request: OperationRequest
    state: OperationState = OperationState.BUILT
    result: Optional[SubmissionResult] = None
    value: Optional[ClarityValue] = None

    @property
    def txid(self) -> Optional[str]:
        if isinstance(self.result, SubmissionSuccess):
            return self.result.txid
        return None

    def transition(self, state: OperationState):
        if state not in TRANSITIONS[self.state]:
            raise ValueError(f"Cannot move operation from {self.state.name} to {state.name}")
        self.state = state


async def submit(
    client: SubmissionClient,
    request: OperationRequest,
    network: NetworkTarget,
    policy: SubmissionPolicy = SubmissionPolicy(),
) -> SubmissionResult:
    """Hand ``request`` to ``client``, retrying transport failures per ``policy``.

    Transport failures that outlast the policy become a ``SubmissionFailure``.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            if policy.timeout is None:
                return await client.sign_and_submit(request, network)
            return await asyncio.wait_for(
                client.sign_and_submit(request, network), policy.timeout
            )
        except (httpx.TransportError, asyncio.TimeoutError) as e:
            reason = f"{type(e).__name__}: {e}".rstrip(": ")
            if attempt >= policy.attempts:
                logging.error(f"Giving up on {request} after {attempt} attempt(s): {reason}")
                return SubmissionFailure(
                    f"Could not reach {network.core_api_url} after {attempt} attempt(s): {reason}"
                )
            delay = policy.backoff * 2 ** (attempt - 1)
            logging.warning(
                f"Attempt {attempt} of {request} failed ({reason}), retrying in {delay}s"
            )
            await asyncio.sleep(delay)


async def execute(
    request: OperationRequest,
    client: SubmissionClient,
    network: NetworkTarget,
    reporter: Optional[ResultReporter] = None,
    policy: SubmissionPolicy = SubmissionPolicy(),
) -> Operation:
    """Run a built request to completion.

    A contract call built without a signing key is evaluated read-only and
    never submitted. Anything else is submitted once (or per ``policy``) and
    reported.

    Raises:
        SubmissionFailed: If the node rejects the transaction.
        QueryFailed: If a read-only call fails.
    """
    operation = Operation(request)
    if request.is_read_only:
        operation.value = await ReadOnlyQuery.from_request(request).run(client, network)
        return operation

    operation.transition(OperationState.SUBMITTED)
    result = await submit(client, request, network, policy)
    operation.result = result
    operation.transition(
        OperationState.CONFIRMED
        if isinstance(result, SubmissionSuccess)
        else OperationState.REJECTED
    )
    (reporter or ResultReporter()).report(result, network)
    return operation


class Test(unittest.IsolatedAsyncioTestCase):
    class FakeClient:
        """A scripted ``SubmissionClient``."""

        def __init__(self, results=(), query_result=None, query_error=None):
            self.results = list(results)
            self.query_result = query_result
            self.query_error = query_error
            self.submitted = []
            self.queries = []

        async def sign_and_submit(self, request, network):
            self.submitted.append((request, network))
            result = self.results.pop(0)
            if isinstance(result, BaseException):
                raise result
            return result

        async def query(
            self, contract_address, contract_name, function_name, arguments,
            sender_address, network,
        ):
            self.queries.append(
                (contract_address, contract_name, function_name, tuple(arguments), sender_address)
            )
            if self.query_error is not None:
                raise self.query_error
            return self.query_result

    TOKEN ="SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"
    RECIPIENT = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
    KEY = PrivateKey.from_hex(
        "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"
    )

    def guard(self, amount: int = 1_000_000, asset: Optional[str] = None) -> AssetGuard:
        return AssetGuard.parse(
            asset or f"{self.TOKEN}.sentinel-token::sentinel-token", "==", amount
        )

    def transfer(self, **overrides) -> OperationRequest:
        params = dict(
            token_contract_address=self.TOKEN,
            token_contract_name="sentinel-token",
            amount=1_000_000,
            sender=self.TOKEN,
            recipient=self.RECIPIENT,
            fee=30_000,
            signing_key=self.KEY,
            asset_guard=self.guard(),
        )
        params.update(overrides)
        return TransactionBuilder.transfer(**params)

    def test_transfer_request(self):
        request = self.transfer()
        self.assertEqual(request.kind, OperationKind.TRANSFER)
        self.assertEqual(request.post_condition_mode, PostConditionMode.DENY)
        self.assertEqual(len(request.call_arguments()), SIP010_TRANSFER.arity)
        self.assertEqual(request.call_arguments()[0], UIntCV(1_000_000))
        self.assertEqual(request.call_arguments()[3], NoneCV())
        self.assertEqual(
            request.post_conditions()[0].principal, PostConditionPrincipal.origin()
        )
        self.assertNotIn("signing_key", repr(request))

    def test_transfer_memo(self):
        request = self.transfer(memo="Payment for services")
        self.assertEqual(
            request.call_arguments()[3], SomeCV(BufferCV(b"Payment for services"))
        )
        with self.assertRaises(InvalidRequest):
            self.transfer(memo="x" * 35)

    def test_transfer_without_guard_allows(self):
        request = self.transfer(asset_guard=None)
        self.assertEqual(request.post_condition_mode, PostConditionMode.ALLOW)
        self.assertEqual(request.asset_guards, ())

    def test_transfer_guard_must_match_token(self):
        with self.assertRaises(InvalidRequest):
            self.transfer(asset_guard=self.guard(asset=f"{self.TOKEN}.other-token::other"))
        with self.assertRaises(InvalidRequest):
            self.transfer(
                asset_guard=self.guard(asset=f"{self.RECIPIENT}.sentinel-token::sentinel-token")
            )

    def test_invalid_parameters(self):
        for overrides in (
            {"fee": -1},
            {"fee": 1.5},
            {"fee": True},
            {"amount": -5},
            {"recipient": "SP1234...recipient"},
            {"token_contract_name": "1-bad"},
            {"function_name": ""},
            {"signing_key": None},
            {"nonce": -1},
        ):
            with self.subTest(overrides=overrides):
                with self.assertRaises(InvalidRequest):
                    self.transfer(**overrides)

    def test_call_checks_signature(self):
        signature = FunctionSignature.from_interface(
            {
                "functions": [
                    {
                        "name": "vote",
                        "access": "public",
                        "args": [
                            {"name": "proposal-id", "type": "uint128"},
                            {"name": "option-id", "type": "uint128"},
                            {"name": "weight", "type": "uint128"},
                        ],
                    }
                ]
            },
            "vote",
        )
        request = TransactionBuilder.call(
            self.TOKEN, "voting", "vote", [UIntCV(0), UIntCV(0), UIntCV(100)],
            30_000, self.KEY, signature=signature,
        )
        self.assertEqual(len(request.call_arguments()), 3)

        with self.assertRaises(InvalidRequest):
            TransactionBuilder.call(
                self.TOKEN, "voting", "vote", [UIntCV(0), UIntCV(0)],
                30_000, self.KEY, signature=signature,
            )
        with self.assertRaises(InvalidRequest):
            TransactionBuilder.call(
                self.TOKEN, "voting", "vote", [UIntCV(0), UIntCV(0), 100],
                30_000, self.KEY,
            )
        with self.assertRaises(InvalidRequest):
            TransactionBuilder.call(self.TOKEN, "voting", "vote", [], 30_000, None)

    def test_deploy(self):
        request = TransactionBuilder.deploy(
            "my-counter", "(define-data-var counter uint u0)", 50_000, self.KEY,
            clarity_version=2,
        )
        self.assertEqual(request.kind, OperationKind.DEPLOY)
        self.assertEqual(request.clarity_version, ClarityVersion.CLARITY2)
        self.assertIsNone(request.contract_address)
        with self.assertRaises(InvalidRequest):
            TransactionBuilder.deploy("my-counter", "  ", 50_000, self.KEY)
        with self.assertRaises(InvalidRequest):
            TransactionBuilder.deploy("a" * 41, "(ok u1)", 50_000, self.KEY)
        with self.assertRaises(InvalidRequest):
            TransactionBuilder.deploy("my-counter", "(ok u1)", 50_000, self.KEY, clarity_version=9)

    def test_submission_results(self):
        self.assertEqual(SubmissionSuccess("ab").txid, "ab")
        self.assertEqual(SubmissionFailure("rejected").message, "rejected")
        with self.assertRaises(ValueError):
            SubmissionSuccess("")
        with self.assertRaises(ValueError):
            SubmissionFailure("")

    def test_reporter(self):
        reporter = ResultReporter()
        with self.assertLogs(level="INFO") as logs:
            self.assertEqual(
                reporter.report(SubmissionSuccess("ab"), NetworkTarget.MAINNET), "ab"
            )
        self.assertIn("https://explorer.hiro.so/txid/0xab?chain=mainnet", "\n".join(logs.output))

        with self.assertLogs(level="ERROR"):
            with self.assertRaises(SubmissionFailed) as context:
                reporter.report(SubmissionFailure("BadNonce"))
        self.assertEqual(context.exception.message, "BadNonce")

    def test_read_only_query_rejects_key_and_fee(self):
        with self.assertRaises(InvalidRequest):
            ReadOnlyQuery.from_request(self.transfer())
        signed_call = TransactionBuilder.call(
            self.TOKEN, "voting", "get-proposal", [UIntCV(0)], 0, self.KEY
        )
        with self.assertRaises(InvalidRequest):
            ReadOnlyQuery.from_request(signed_call)

    def test_decode_uint(self):
        self.assertEqual(decode_uint(ResponseOkCV(UIntCV(5))), 5)
        self.assertEqual(decode_uint(UIntCV(0)), 0)
        with self.assertRaises(QueryFailed):
            decode_uint(ResponseErrCV(UIntCV(1)))
        with self.assertRaises(QueryFailed):
            decode_uint(ResponseOkCV(BufferCV(b"\x01")))

    async def test_execute_transfer(self):
        client = self.FakeClient(results=[SubmissionSuccess("ab" * 32)])
        operation = await execute(self.transfer(), client, NetworkTarget.MAINNET)
        self.assertEqual(operation.state, OperationState.CONFIRMED)
        self.assertEqual(operation.txid, "ab" * 32)
        self.assertEqual(len(client.submitted), 1)

    async def test_execute_rejected(self):
        client = self.FakeClient(results=[SubmissionFailure("ConflictingNonceInMempool")])
        with self.assertRaises(SubmissionFailed) as context:
            await execute(self.transfer(), client, NetworkTarget.MAINNET)
        self.assertEqual(context.exception.message, "ConflictingNonceInMempool")
        self.assertEqual(len(client.submitted), 1)

    async def test_execute_read_only(self):
        proposal = SomeCV(TupleCV({"title": UIntCV(1)}))
        client = self.FakeClient(query_result=proposal)
        request = TransactionBuilder.read_only(
            self.TOKEN, "voting", "get-proposal", [UIntCV(0)]
        )
        operation = await execute(request, client, NetworkTarget.MAINNET)

        self.assertEqual(operation.value, proposal)
        self.assertEqual(operation.state, OperationState.BUILT)
        self.assertEqual(client.submitted, [])
        self.assertEqual(client.queries[0][2], "get-proposal")
        self.assertEqual(client.queries[0][4], StacksAddress.from_str(self.TOKEN))

    async def test_query_errors_become_query_failed(self):
        client = self.FakeClient(query_error=ApiError("boom", 500))
        query = ReadOnlyQuery(StacksAddress.from_str(self.TOKEN), "voting", "get-proposal")
        with self.assertRaises(QueryFailed) as context:
            await query.run(client, NetworkTarget.MAINNET)
        self.assertIsInstance(context.exception.cause, ApiError)

    async def test_policy_retries_transport_errors(self):
        client = self.FakeClient(
            results=[httpx.ConnectError("refused"), SubmissionSuccess("cd")]
        )
        result = await submit(
            client, self.transfer(), NetworkTarget.TESTNET,
            SubmissionPolicy(attempts=2, backoff=0),
        )
        self.assertEqual(result, SubmissionSuccess("cd"))
        self.assertEqual(len(client.submitted), 2)

    async def test_policy_exhausted(self):
        client = self.FakeClient(results=[httpx.ConnectError("refused")])
        result = await submit(client, self.transfer(), NetworkTarget.TESTNET)
        self.assertIsInstance(result, SubmissionFailure)
        self.assertIn("refused", result.message)

    async def test_operation_transitions(self):
        operation = Operation(self.transfer())
        with self.assertRaises(ValueError):
            operation.transition(OperationState.CONFIRMED)
        operation.transition(OperationState.SUBMITTED)
        operation.transition(OperationState.REJECTED)
        with self.assertRaises(ValueError):
            operation.transition(OperationState.SUBMITTED)


if __name__ == "__main__":
    unittest.main()
