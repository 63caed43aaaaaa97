# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous client for the Stacks node RPC and the Hiro API.

``RestClient`` wraps an ``httpx.AsyncClient`` bound to one ``NetworkTarget``.
It covers what the SDK needs from a node: account nonces and balances,
broadcasting signed transactions, read-only contract calls, contract
interfaces and sources, and transaction status polling.

Endpoints used:
- ``GET  /v2/info``
- ``GET  /v2/accounts/{address}``
- ``POST /v2/transactions`` (raw transaction bytes)
- ``POST /v2/contracts/call-read/{address}/{contract}/{function}``
- ``GET  /v2/contracts/interface/{address}/{contract}``
- ``GET  /v2/contracts/source/{address}/{contract}``
- ``GET  /extended/v1/tx/{txid}``

Examples:
    Reading a token balance::

        import asyncio
        from stacks_sdk.async_client import RestClient
        from stacks_sdk.clarity import principal_cv
        from stacks_sdk.network import NetworkTarget

        async def main():
            async with RestClient(NetworkTarget.MAINNET) as client:
                result = await client.call_read_only(
                    "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB",
                    "sentinel-token",
                    "get-balance",
                    [principal_cv("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB")],
                    "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB",
                )
                print(result.to_json())

        asyncio.run(main())

Note:
    All client operations are async and must be awaited. Call ``close()`` or
    use the client as an async context manager to release connections.
"""

import asyncio
import logging
import unittest
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from .address import StacksAddress
from .clarity import ClarityError, ClarityValue, UIntCV, principal_cv
from .exceptions import QueryFailed
from .metadata import Metadata
from .network import NetworkTarget
from .transactions import StacksTransaction

PENDING = "pending"
SUCCESS = "success"

Address = Union[str, StacksAddress]


@dataclass
class ClientConfig:
    """Configuration parameters for ``RestClient``.

    Attributes:
        transaction_wait_in_seconds: How long ``wait_for_transaction`` polls
            before giving up (default: 600, blocks take minutes).
        poll_interval_in_seconds: Delay between status polls (default: 5).
        request_timeout_in_seconds: Per request timeout (default: 60).
        http2: Enable HTTP/2 (default: True).
        api_key: Optional Hiro API key, sent as ``x-api-key``.

    Examples:
        Authenticated requests::

            config = ClientConfig(api_key="your-api-key-here")
            client = RestClient(NetworkTarget.MAINNET, config)
    """

    transaction_wait_in_seconds: int = 600
    poll_interval_in_seconds: float = 5
    request_timeout_in_seconds: float = 60.0
    http2: bool = True
    api_key: Optional[str] = None


class RestClient:
    """A client for one Stacks network.

    Attributes:
        network: The network every request is sent to.
        client: The underlying ``httpx.AsyncClient``.
        client_config: Timeouts and credentials.
        base_url: The node URL taken from ``network``.
    """

    network: NetworkTarget
    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str

    def __init__(
        self,
        network: NetworkTarget,
        client_config: ClientConfig = ClientConfig(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            network: Which network, and which node, to talk to.
            client_config: Timeouts and credentials.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
                in tests.
        """
        self.network = network
        self.base_url = network.core_api_url
        # Default limits
        limits = httpx.Limits()
        # No pool timeout: jobs wait as long as progress is being made.
        timeout = httpx.Timeout(client_config.request_timeout_in_seconds, pool=None)
        # Default headers
        headers = {Metadata.STACKS_HEADER: Metadata.get_stacks_header_val()}
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=limits,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.client_config = client_config
        if client_config.api_key:
            self.client.headers["x-api-key"] = client_config.api_key

    async def __aenter__(self) -> "RestClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        """Close the underlying HTTP client connection."""
        await self.client.aclose()

    async def info(self) -> Dict[str, Any]:
        """Node information: chain tip, burn block height, network id."""
        response = await self._get(endpoint="v2/info")
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()

    #
    # Account accessors
    #

    async def account(self, address: Address) -> Dict[str, Any]:
        """
        Fetch the nonce and STX balance of an account.

        :param address: The account's Stacks address.
        :return: The node's account document, e.g. ``{"balance": "0x...", "nonce": 3}``.
        """
        response = await self._get(
            endpoint=f"v2/accounts/{address}", params={"proof": 0}
        )
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {address}", response.status_code)
        return response.json()

    async def account_nonce(self, address: Address) -> int:
        """The next nonce the node expects from ``address``."""
        return int((await self.account(address))["nonce"])

    async def account_stx_balance(self, address: Address) -> int:
        """The STX balance of ``address`` in micro-STX."""
        balance = (await self.account(address))["balance"]
        return int(balance, 16) if balance.startswith("0x") else int(balance)

    #
    # Contracts
    #

    async def call_read_only(
        self,
        contract_address: Address,
        contract_name: str,
        function_name: str,
        arguments: Sequence[ClarityValue],
        sender: Address,
    ) -> ClarityValue:
        """
        Evaluate a read-only contract function on the node.

        Nothing is signed or broadcast and no fee is paid.

        :param sender: Address the call is evaluated as; any valid address works.
        :return: The decoded result value.
        :raises ApiError: If the node answers with an HTTP error status.
        :raises QueryFailed: If the node could not evaluate the call, or the
            result does not decode.
        """
        endpoint = f"v2/contracts/call-read/{contract_address}/{contract_name}/{function_name}"
        body = {
            "sender": str(sender),
            "arguments": [argument.to_hex() for argument in arguments],
        }
        response = await self._post(endpoint=endpoint, data=body)
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)

        try:
            result = response.json()
        except ValueError as e:
            raise QueryFailed(f"Unable to decode result of {function_name}: {e}", e) from e
        if not isinstance(result, dict):
            raise QueryFailed(
                f"Unable to decode result of {function_name}: {response.text}", None
            )
        if not result.get("okay"):
            cause = result.get("cause")
            raise QueryFailed(f"{function_name} failed: {cause}", cause)
        encoded = result.get("result")
        if not isinstance(encoded, str):
            raise QueryFailed(
                f"Unable to decode result of {function_name}: no result in {result}", None
            )
        try:
            return ClarityValue.from_hex(encoded)
        except ClarityError as e:
            raise QueryFailed(f"Unable to decode result of {function_name}: {e}", e) from e

    async def contract_interface(
        self, contract_address: Address, contract_name: str
    ) -> Dict[str, Any]:
        """The contract's interface document: functions, maps, tokens."""
        response = await self._get(
            endpoint=f"v2/contracts/interface/{contract_address}/{contract_name}"
        )
        if response.status_code >= 400:
            raise ApiError(
                f"{response.text} - {contract_address}.{contract_name}",
                response.status_code,
            )
        return response.json()

    async def contract_source(self, contract_address: Address, contract_name: str) -> str:
        response = await self._get(
            endpoint=f"v2/contracts/source/{contract_address}/{contract_name}",
            params={"proof": 0},
        )
        if response.status_code >= 400:
            raise ApiError(
                f"{response.text} - {contract_address}.{contract_name}",
                response.status_code,
            )
        return response.json()["source"]

    #
    # Transactions
    #

    async def broadcast_transaction(self, transaction: StacksTransaction) -> Dict[str, Any]:
        """
        Submit a signed transaction to the node's mempool.

        The node's verdict is returned rather than raised, so the caller can
        decide how to report a rejection.

        :param transaction: The signed transaction.
        :return: ``{"txid": ...}`` when accepted, or the node's rejection
            document ``{"error": ..., "reason": ..., "txid": ...}``.
        :raises ApiError: If the node fails without a rejection document, or
            answers success without a transaction id.
        """
        headers = {"Content-Type": "application/octet-stream"}
        response = await self.client.post(
            f"{self.base_url}/v2/transactions",
            headers=headers,
            content=transaction.to_bytes(),
        )
        if response.status_code >= 400:
            try:
                rejection = response.json()
            except ValueError:
                rejection = None
            if isinstance(rejection, dict) and "error" in rejection:
                logging.warning(
                    f"Transaction {transaction.txid()} rejected: "
                    f"{rejection['error']} {rejection.get('reason', '')}"
                )
                return rejection
            raise ApiError(response.text, response.status_code)

        txid = response.text.strip().strip('"')
        if txid.startswith("0x"):
            txid = txid[2:]
        if not txid:
            raise ApiError(
                f"Node accepted the transaction without a txid: {response.text!r}",
                response.status_code,
            )
        logging.info(f"Transaction {txid} accepted by {self.base_url}")
        return {"txid": txid}

    async def transaction_status(self, txid: str) -> str:
        """
        The transaction's status as reported by the Hiro API.

        A transaction the API has not indexed yet is reported as ``pending``.

        :return: ``pending``, ``success``, or one of the ``abort_*`` and
            ``dropped_*`` statuses.
        """
        response = await self._get(endpoint=f"extended/v1/tx/{_prefixed(txid)}")
        if response.status_code == 404:
            return PENDING
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()["tx_status"]

    async def transaction_pending(self, txid: str) -> bool:
        return await self.transaction_status(txid) == PENDING

    async def transaction_by_id(self, txid: str) -> Dict[str, Any]:
        response = await self._get(endpoint=f"extended/v1/tx/{_prefixed(txid)}")
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()

    async def wait_for_transaction(self, txid: str) -> Dict[str, Any]:
        """
        Poll until the transaction leaves the pending state.

        Waits up to ``transaction_wait_in_seconds`` from the client config.

        :return: The confirmed transaction document.
        :raises TransactionTimeout: If it is still pending when time runs out.
        :raises TransactionAborted: If it was mined but aborted, or dropped.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.client_config.transaction_wait_in_seconds
        while await self.transaction_pending(txid):
            if loop.time() >= deadline:
                raise TransactionTimeout(f"transaction {txid} timed out", txid)
            await asyncio.sleep(self.client_config.poll_interval_in_seconds)

        transaction = await self.transaction_by_id(txid)
        status = transaction["tx_status"]
        if status != SUCCESS:
            result = transaction.get("tx_result", {}).get("repr", "")
            raise TransactionAborted(f"{status} {result} - {txid}".strip(), txid, status)
        return transaction

    async def _post(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        # format params:
        params = {} if params is None else params
        params = {key: val for key, val in params.items() if val is not None}
        return await self.client.post(
            url=f"{self.base_url}/{endpoint}",
            params=params,
            headers=headers,
            json=data,
        )

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        # format params:
        params = {} if params is None else params
        params = {key: val for key, val in params.items() if val is not None}
        return await self.client.get(
            url=f"{self.base_url}/{endpoint}",
            params=params,
        )


def _prefixed(txid: str) -> str:
    return txid if txid.startswith("0x") else f"0x{txid}"


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.status_code = status_code


class TransactionAborted(Exception):
    """The transaction was mined but aborted, or dropped from the mempool"""

    txid: str
    status: str

    def __init__(self, message: str, txid: str, status: str):
        super().__init__(message)
        self.txid = txid
        self.status = status


class TransactionTimeout(Exception):
    """The transaction was still pending when the wait ran out"""

    txid: str

    def __init__(self, message: str, txid: str):
        super().__init__(message)
        self.txid = txid


class Test(unittest.IsolatedAsyncioTestCase):
    ADDRESS = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"

    def client_for(self, handler, config: ClientConfig = ClientConfig()) -> RestClient:
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        return RestClient(NetworkTarget.MAINNET, config, httpx.MockTransport(record))

    async def test_account(self):
        client = self.client_for(
            lambda request: httpx.Response(
                200, json={"balance": "0x00000000000000000000000000000064", "nonce": 7}
            )
        )
        async with client:
            self.assertEqual(await client.account_nonce(self.ADDRESS), 7)
            self.assertEqual(await client.account_stx_balance(self.ADDRESS), 100)
        self.assertEqual(
            str(self.requests[0].url),
            f"https://api.mainnet.hiro.so/v2/accounts/{self.ADDRESS}?proof=0",
        )

    async def test_api_key_header(self):
        client = self.client_for(
            lambda request: httpx.Response(200, json={"network_id": 1}),
            ClientConfig(api_key="secret"),
        )
        async with client:
            await client.info()
        self.assertEqual(self.requests[0].headers["x-api-key"], "secret")
        self.assertIn(Metadata.STACKS_HEADER, self.requests[0].headers)

    async def test_call_read_only(self):
        client = self.client_for(
            lambda request: httpx.Response(
                200, json={"okay": True, "result": UIntCV(5).to_hex()}
            )
        )
        async with client:
            result = await client.call_read_only(
                self.ADDRESS, "sentinel-token", "get-balance",
                [principal_cv(self.ADDRESS)], self.ADDRESS,
            )
        self.assertEqual(result, UIntCV(5))
        request = self.requests[0]
        self.assertEqual(
            request.url.path,
            f"/v2/contracts/call-read/{self.ADDRESS}/sentinel-token/get-balance",
        )
        self.assertIn(principal_cv(self.ADDRESS).to_hex(), request.content.decode())

    async def test_call_read_only_failures(self):
        client = self.client_for(
            lambda request: httpx.Response(
                200, json={"okay": False, "cause": "Unchecked(NoSuchContract)"}
            )
        )
        async with client:
            with self.assertRaises(QueryFailed) as context:
                await client.call_read_only(
                    self.ADDRESS, "missing", "get-balance", [], self.ADDRESS
                )
        self.assertEqual(context.exception.cause, "Unchecked(NoSuchContract)")

        client = self.client_for(lambda request: httpx.Response(500, text="boom"))
        async with client:
            with self.assertRaises(ApiError) as api_context:
                await client.call_read_only(
                    self.ADDRESS, "sentinel-token", "get-balance", [], self.ADDRESS
                )
        self.assertEqual(api_context.exception.status_code, 500)

        for response in (
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json={"okay": True}),
            httpx.Response(200, json={"okay": True, "result": None}),
            httpx.Response(200, json=["okay"]),
            httpx.Response(200, json={"okay": True, "result": "0xzz"}),
        ):
            with self.subTest(body=response.text):
                client = self.client_for(lambda request, response=response: response)
                async with client:
                    with self.assertRaises(QueryFailed) as context:
                        await client.call_read_only(
                            self.ADDRESS, "sentinel-token", "get-balance", [], self.ADDRESS
                        )
                self.assertIn("Unable to decode result of get-balance", str(context.exception))

    async def test_broadcast(self):
        from unittest.mock import MagicMock

        transaction = MagicMock()
        transaction.to_bytes.return_value = b"\x00\x01"
        transaction.txid.return_value = "ab" * 32

        client = self.client_for(lambda request: httpx.Response(200, text=f'"{"ab" * 32}"'))
        async with client:
            self.assertEqual(
                await client.broadcast_transaction(transaction), {"txid": "ab" * 32}
            )
        self.assertEqual(self.requests[0].content, b"\x00\x01")
        self.assertEqual(
            self.requests[0].headers["content-type"], "application/octet-stream"
        )

        rejection = {
            "error": "transaction rejected",
            "reason": "BadNonce",
            "txid": "ab" * 32,
        }
        client = self.client_for(lambda request: httpx.Response(400, json=rejection))
        async with client:
            self.assertEqual(await client.broadcast_transaction(transaction), rejection)

        client = self.client_for(lambda request: httpx.Response(502, text="bad gateway"))
        async with client:
            with self.assertRaises(ApiError):
                await client.broadcast_transaction(transaction)

        for body in ("", '""', "  \n"):
            client = self.client_for(lambda request, body=body: httpx.Response(200, text=body))
            async with client:
                with self.assertRaises(ApiError) as context:
                    await client.broadcast_transaction(transaction)
            self.assertEqual(context.exception.status_code, 200)

    async def test_transaction_status(self):
        responses = {
            "/extended/v1/tx/0xaa": httpx.Response(404),
            "/extended/v1/tx/0xbb": httpx.Response(200, json={"tx_status": "success"}),
        }
        client = self.client_for(lambda request: responses[request.url.path])
        async with client:
            self.assertEqual(await client.transaction_status("aa"), PENDING)
            self.assertEqual(await client.transaction_status("0xbb"), SUCCESS)

    async def test_wait_for_transaction(self):
        statuses = iter(["pending", "pending", "abort_by_post_condition"])

        def handler(request: httpx.Request) -> httpx.Response:
            status = next(statuses, "abort_by_post_condition")
            return httpx.Response(
                200, json={"tx_status": status, "tx_result": {"repr": "(err none)"}}
            )

        client = self.client_for(
            handler, ClientConfig(poll_interval_in_seconds=0)
        )
        async with client:
            with self.assertRaises(TransactionAborted) as context:
                await client.wait_for_transaction("cc")
        self.assertEqual(context.exception.status, "abort_by_post_condition")

    async def test_wait_for_transaction_timeout(self):
        client = self.client_for(
            lambda request: httpx.Response(404),
            ClientConfig(transaction_wait_in_seconds=0, poll_interval_in_seconds=0),
        )
        async with client:
            with self.assertRaises(TransactionTimeout):
                await client.wait_for_transaction("dd")


if __name__ == "__main__":
    unittest.main()
