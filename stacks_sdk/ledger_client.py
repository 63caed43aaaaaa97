# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
The ``SubmissionClient`` that talks to real Stacks nodes.

``StacksLedgerClient`` keeps one ``RestClient`` per network. For each request
it resolves the signer's nonce (unless the request pins one), builds the
payload and post conditions, signs the transaction and broadcasts it. The
node's verdict is mapped onto ``SubmissionSuccess`` or ``SubmissionFailure``.

Transport errors are raised, not mapped, so ``operations.submit`` can apply
its ``SubmissionPolicy`` to them.
"""

import logging
import unittest
from typing import Dict, Optional, Sequence

import httpx

from .address import StacksAddress
from .async_client import ApiError, ClientConfig, RestClient
from .clarity import ClarityError, ClarityValue, UIntCV
from .exceptions import InvalidRequest, QueryFailed, SubmissionFailed
from .network import NetworkTarget
from .operations import (
    AssetGuard,
    OperationKind,
    OperationRequest,
    ReadOnlyQuery,
    SubmissionFailure,
    SubmissionResult,
    SubmissionSuccess,
    TransactionBuilder,
    execute,
)
from .secp256k1 import PrivateKey
from .serialization import SerializationError
from .transactions import (
    ContractCallPayload,
    SmartContractPayload,
    StacksTransaction,
    TransactionPayload,
    VersionedSmartContractPayload,
)


class StacksLedgerClient:
    """Signs and submits ``OperationRequest`` values, and runs read-only calls.

    Use it as an async context manager, or call ``close()`` when done::

        async with StacksLedgerClient(ClientConfig(api_key=key)) as client:
            operation = await execute(request, client, NetworkTarget.TESTNET)
    """

    client_config: ClientConfig
    _clients: Dict[NetworkTarget, RestClient]

    def __init__(
        self,
        client_config: ClientConfig = ClientConfig(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_config = client_config
        self._transport = transport
        self._clients = {}

    async def __aenter__(self) -> "StacksLedgerClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        for client in self._clients.values():
            await client.close()
        self._clients.clear()

    def rest_client(self, network: NetworkTarget) -> RestClient:
        if network not in self._clients:
            self._clients[network] = RestClient(
                network, self.client_config, self._transport
            )
        return self._clients[network]

    def payload(self, request: OperationRequest) -> TransactionPayload:
        if request.kind == OperationKind.DEPLOY:
            if request.clarity_version is None:
                return SmartContractPayload(request.contract_name, request.code_body)
            return VersionedSmartContractPayload(
                request.clarity_version, request.contract_name, request.code_body
            )
        return ContractCallPayload(
            request.contract_address,
            request.contract_name,
            request.function_name,
            request.call_arguments(),
        )

    async def build_transaction(
        self, request: OperationRequest, network: NetworkTarget
    ) -> StacksTransaction:
        """Build and sign the transaction for ``request`` on ``network``.

        The nonce is fetched from the node when the request does not set one.

        Raises:
            InvalidRequest: If the request has no signing key or cannot be encoded.
            ApiError: If the nonce lookup fails.
        """
        if request.signing_key is None:
            raise InvalidRequest(f"{request} has no signing key")
        public_key = request.signing_key.public_key()
        signer = StacksAddress.from_public_key(
            public_key.to_bytes(), network.address_version
        )
        nonce = request.nonce
        if nonce is None:
            nonce = await self.rest_client(network).account_nonce(signer)

        try:
            transaction = StacksTransaction.create(
                network,
                self.payload(request),
                public_key,
                nonce,
                request.fee,
                request.anchor_mode,
                request.post_condition_mode,
                request.post_conditions(),
            )
            transaction.sign(request.signing_key)
            # Encoding failures must surface before anything is broadcast.
            transaction.to_bytes()
        except (ClarityError, SerializationError, ValueError) as e:
            raise InvalidRequest(f"Unable to encode {request}: {e}") from e
        return transaction

    async def sign_and_submit(
        self, request: OperationRequest, network: NetworkTarget
    ) -> SubmissionResult:
        try:
            transaction = await self.build_transaction(request, network)
        except ApiError as e:
            logging.error(f"Unable to prepare {request}: {e}")
            return SubmissionFailure(f"Unable to fetch account nonce: {e}")

        logging.info(
            f"Broadcasting {request} (nonce {transaction.spending_condition.nonce}, "
            f"fee {request.fee}) to {network.name}"
        )
        try:
            response = await self.rest_client(network).broadcast_transaction(transaction)
        except ApiError as e:
            return SubmissionFailure(f"Broadcast failed with status {e.status_code}: {e}")

        if "error" in response:
            message = str(response["error"])
            if response.get("reason"):
                message = f"{message}: {response['reason']}"
            if response.get("reason_data"):
                message = f"{message} {response['reason_data']}"
            return SubmissionFailure(message)
        return SubmissionSuccess(response["txid"])

    async def query(
        self,
        contract_address: StacksAddress,
        contract_name: str,
        function_name: str,
        arguments: Sequence[ClarityValue],
        sender_address: StacksAddress,
        network: NetworkTarget,
    ) -> ClarityValue:
        return await self.rest_client(network).call_read_only(
            contract_address, contract_name, function_name, arguments, sender_address
        )

    async def wait_for_transaction(self, txid: str, network: NetworkTarget) -> Dict:
        """Poll until ``txid`` is mined. See ``RestClient.wait_for_transaction``."""
        return await self.rest_client(network).wait_for_transaction(txid)


class Test(unittest.IsolatedAsyncioTestCase):
    TOKEN = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"
    RECIPIENT = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
    KEY = PrivateKey.from_hex(
        "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"
    )

    def setUp(self):
        self.requests = []
        self.broadcast_status = 200
        self.broadcast_body = None
        self.broadcast_text = None
        self.read_response = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.startswith("/v2/accounts/"):
            return httpx.Response(200, json={"balance": "0x0", "nonce": 7})
        if request.url.path == "/v2/transactions":
            transaction = StacksTransaction.from_bytes(request.content)
            if self.broadcast_status == 200:
                text = self.broadcast_text
                if text is None:
                    text = f'"{transaction.txid()}"'
                return httpx.Response(200, text=text)
            return httpx.Response(self.broadcast_status, json=self.broadcast_body)
        if request.url.path.startswith("/v2/contracts/call-read/"):
            if self.read_response is not None:
                return self.read_response
            return httpx.Response(
                200, json={"okay": True, "result": UIntCV(5).to_hex()}
            )
        return httpx.Response(404, text="not found")

    def client(self) -> StacksLedgerClient:
        return StacksLedgerClient(transport=httpx.MockTransport(self.handler))

    def transfer(self, **overrides) -> OperationRequest:
        params = dict(
            token_contract_address=self.TOKEN,
            token_contract_name="sentinel-token",
            amount=1_000_000,
            sender=self.TOKEN,
            recipient=self.RECIPIENT,
            fee=30_000,
            signing_key=self.KEY,
            asset_guard=AssetGuard.parse(
                f"{self.TOKEN}.sentinel-token::sentinel-token", "==", 1_000_000
            ),
        )
        params.update(overrides)
        return TransactionBuilder.transfer(**params)

    async def test_submit_transfer(self):
        async with self.client() as client:
            result = await client.sign_and_submit(self.transfer(), NetworkTarget.MAINNET)

        self.assertIsInstance(result, SubmissionSuccess)
        broadcast = self.requests[-1]
        self.assertEqual(broadcast.headers["content-type"], "application/octet-stream")
        transaction = StacksTransaction.from_bytes(broadcast.content)
        self.assertEqual(result.txid, transaction.txid())
        self.assertEqual(transaction.spending_condition.nonce, 7)
        self.assertEqual(transaction.spending_condition.fee, 30_000)
        self.assertEqual(len(transaction.post_conditions), 1)
        self.assertTrue(transaction.verify_origin())
        self.assertEqual(transaction.payload.arguments[0], UIntCV(1_000_000))

    async def test_pinned_nonce_skips_lookup(self):
        async with self.client() as client:
            result = await client.sign_and_submit(
                self.transfer(nonce=3), NetworkTarget.TESTNET
            )
        self.assertIsInstance(result, SubmissionSuccess)
        self.assertEqual(len(self.requests), 1)
        transaction = StacksTransaction.from_bytes(self.requests[0].content)
        self.assertEqual(transaction.spending_condition.nonce, 3)
        self.assertEqual(transaction.version, NetworkTarget.TESTNET.transaction_version)

    async def test_deploy(self):
        request = TransactionBuilder.deploy(
            "my-counter", "(define-data-var counter uint u0)", 50_000, self.KEY,
            clarity_version=2, nonce=0,
        )
        async with self.client() as client:
            result = await client.sign_and_submit(request, NetworkTarget.TESTNET)
        self.assertIsInstance(result, SubmissionSuccess)
        transaction = StacksTransaction.from_bytes(self.requests[0].content)
        self.assertIsInstance(transaction.payload, VersionedSmartContractPayload)
        self.assertEqual(transaction.payload.contract_name, "my-counter")

    async def test_rejection(self):
        self.broadcast_status = 400
        self.broadcast_body = {
            "error": "transaction rejected",
            "reason": "BadNonce",
            "txid": "ab" * 32,
        }
        async with self.client() as client:
            result = await client.sign_and_submit(self.transfer(), NetworkTarget.MAINNET)
        self.assertEqual(result, SubmissionFailure("transaction rejected: BadNonce"))

    async def test_server_error(self):
        self.broadcast_status = 503
        async with self.client() as client:
            result = await client.sign_and_submit(self.transfer(), NetworkTarget.MAINNET)
        self.assertIsInstance(result, SubmissionFailure)
        self.assertIn("503", result.message)

    async def test_empty_txid_is_a_failure(self):
        self.broadcast_text = ""
        async with self.client() as client:
            result = await client.sign_and_submit(self.transfer(), NetworkTarget.MAINNET)
            self.assertIsInstance(result, SubmissionFailure)
            self.assertIn("without a txid", result.message)

            with self.assertRaises(SubmissionFailed):
                await execute(self.transfer(), client, NetworkTarget.MAINNET)

    async def test_undecodable_query_result(self):
        query = ReadOnlyQuery(
            StacksAddress.from_str(self.TOKEN), "sentinel-token", "get-total-supply"
        )
        for response in (
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json={"okay": True}),
        ):
            self.read_response = response
            async with self.client() as client:
                with self.assertRaises(QueryFailed):
                    await query.run(client, NetworkTarget.MAINNET)

    async def test_query(self):
        async with self.client() as client:
            value = await client.query(
                StacksAddress.from_str(self.TOKEN),
                "sentinel-token",
                "get-total-supply",
                [],
                StacksAddress.from_str(self.TOKEN),
                NetworkTarget.MAINNET,
            )
        self.assertEqual(value, UIntCV(5))
        self.assertEqual(
            self.requests[0].url.path,
            f"/v2/contracts/call-read/{self.TOKEN}/sentinel-token/get-total-supply",
        )


if __name__ == "__main__":
    unittest.main()
