# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Clarity contract deployment.

``ContractDeployer`` deploys a single contract from source text, or every
contract of a Clarinet project. A Clarinet project is a directory with a
``Clarinet.toml`` manifest listing its contracts::

    my_project/
    ├── Clarinet.toml
    └── contracts/
        ├── counter.clar
        └── voting.clar

with entries such as::

    [contracts.counter]
    path = "contracts/counter.clar"
    clarity_version = 2

Contracts are deployed in manifest order, one transaction each, with
consecutive nonces so they can all sit in the mempool together. A contract is
deployed under the signer's address, so ``my-counter`` deployed by ``ST1...``
becomes ``ST1....my-counter``.

Examples:
    Deploying a project::

        async with StacksLedgerClient() as ledger:
            deployer = ContractDeployer(ledger, NetworkTarget.TESTNET)
            txids = await deployer.deploy_project("./my_project", 50_000, key)
"""

import os
import tempfile
import unittest
from dataclasses import dataclass
from typing import List, Optional

import httpx
import tomli

from .address import StacksAddress
from .ledger_client import StacksLedgerClient
from .network import NetworkTarget
from .operations import ResultReporter, TransactionBuilder, execute
from .secp256k1 import PrivateKey
from .transactions import StacksTransaction, VersionedSmartContractPayload

DEPLOY_FEE = 50_000

COUNTER_CONTRACT = """
;; Simple Counter Contract
(define-data-var counter uint u0)

(define-public (increment)
  (begin
    (var-set counter (+ (var-get counter) u1))
    (ok (var-get counter))
  )
)

(define-public (decrement)
  (begin
    (var-set counter (- (var-get counter) u1))
    (ok (var-get counter))
  )
)

(define-read-only (get-counter)
  (var-get counter)
)
"""


@dataclass(frozen=True)
class ContractSource:
    name: str
    path: str
    source: str
    clarity_version: Optional[int] = None


class ContractDeployer:
    """Deploys Clarity contracts through a ``StacksLedgerClient``."""

    client: StacksLedgerClient
    network: NetworkTarget

    def __init__(
        self,
        client: StacksLedgerClient,
        network: NetworkTarget,
        reporter: Optional[ResultReporter] = None,
    ):
        self.client = client
        self.network = network
        self.reporter = reporter

    async def deploy(
        self,
        name: str,
        source: str,
        fee: int,
        signing_key: PrivateKey,
        clarity_version: Optional[int] = None,
        nonce: Optional[int] = None,
    ) -> str:
        """
        Deploy one contract and return the transaction id.

        :param nonce: Fetched from the node when not given.
        :raises InvalidRequest: If the name, source or fee is invalid.
        :raises SubmissionFailed: If the node rejects the transaction.
        """
        request = TransactionBuilder.deploy(
            name, source, fee, signing_key, clarity_version=clarity_version, nonce=nonce
        )
        operation = await execute(request, self.client, self.network, self.reporter)
        return operation.txid

    @staticmethod
    def load_project(project_dir: str) -> List[ContractSource]:
        """
        Read the contracts listed in ``project_dir/Clarinet.toml``.

        :raises DeploymentError: If the manifest or a contract file is missing
            or malformed.
        """
        manifest_path = os.path.join(project_dir, "Clarinet.toml")
        try:
            with open(manifest_path, "rb") as f:
                manifest = tomli.load(f)
        except FileNotFoundError:
            raise DeploymentError(f"No Clarinet.toml in {project_dir}") from None
        except tomli.TOMLDecodeError as e:
            raise DeploymentError(f"Invalid {manifest_path}: {e}") from e

        entries = manifest.get("contracts", {})
        if not isinstance(entries, dict):
            raise DeploymentError(f"[contracts] in {manifest_path} must be a table")

        contracts = []
        for name, entry in entries.items():
            if not isinstance(entry, dict):
                raise DeploymentError(
                    f"Contract {name} in {manifest_path} must be a table, found {entry!r}"
                )
            if not isinstance(entry.get("path"), str):
                raise DeploymentError(f"Contract {name} in {manifest_path} has no path")
            path = os.path.join(project_dir, entry["path"])
            try:
                with open(path, "r", encoding="utf-8") as f:
                    source = f.read()
            except FileNotFoundError:
                raise DeploymentError(f"Contract {name}: {path} does not exist") from None
            clarity_version = entry.get("clarity_version")
            if clarity_version is not None:
                try:
                    clarity_version = int(clarity_version)
                except (TypeError, ValueError):
                    raise DeploymentError(
                        f"Contract {name} in {manifest_path} has an invalid "
                        f"clarity_version {clarity_version!r}"
                    ) from None
            contracts.append(ContractSource(name, path, source, clarity_version))
        if not contracts:
            raise DeploymentError(f"{manifest_path} lists no contracts")
        return contracts

    async def deploy_project(
        self, project_dir: str, fee: int, signing_key: PrivateKey
    ) -> List[str]:
        """
        Deploy every contract of a Clarinet project, in manifest order.

        :return: The transaction ids, one per contract.
        :raises DeploymentError: If the project cannot be read.
        :raises SubmissionFailed: If the node rejects a contract. Contracts
            already submitted stay submitted.
        """
        contracts = self.load_project(project_dir)
        signer = StacksAddress.from_public_key(
            signing_key.public_key().to_bytes(), self.network.address_version
        )
        nonce = await self.client.rest_client(self.network).account_nonce(signer)

        txids = []
        for contract in contracts:
            txids.append(
                await self.deploy(
                    contract.name,
                    contract.source,
                    fee,
                    signing_key,
                    contract.clarity_version,
                    nonce,
                )
            )
            nonce += 1
        return txids


class DeploymentError(Exception):
    """A contract project could not be read."""


class Test(unittest.IsolatedAsyncioTestCase):
    KEY = PrivateKey.from_hex(
        "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"
    )

    def setUp(self):
        self.broadcasts = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/v2/accounts/"):
            return httpx.Response(200, json={"balance": "0x0", "nonce": 4})
        transaction = StacksTransaction.from_bytes(request.content)
        self.broadcasts.append(transaction)
        return httpx.Response(200, text=f'"{transaction.txid()}"')

    def deployer(self) -> ContractDeployer:
        client = StacksLedgerClient(transport=httpx.MockTransport(self.handler))
        return ContractDeployer(client, NetworkTarget.TESTNET)

    def write_project(self, root: str, manifest: str):
        os.makedirs(os.path.join(root, "contracts"))
        with open(os.path.join(root, "Clarinet.toml"), "w") as f:
            f.write(manifest)
        for name in ("counter", "voting"):
            with open(os.path.join(root, "contracts", f"{name}.clar"), "w") as f:
                f.write(COUNTER_CONTRACT)

    async def test_deploy(self):
        deployer = self.deployer()
        txid = await deployer.deploy("my-counter", COUNTER_CONTRACT, DEPLOY_FEE, self.KEY)
        await deployer.client.close()

        self.assertEqual(txid, self.broadcasts[0].txid())
        payload = self.broadcasts[0].payload
        self.assertEqual(payload.contract_name, "my-counter")
        self.assertEqual(payload.code_body, COUNTER_CONTRACT)
        self.assertEqual(self.broadcasts[0].spending_condition.fee, DEPLOY_FEE)

    async def test_deploy_project(self):
        with tempfile.TemporaryDirectory() as root:
            self.write_project(
                root,
                "[project]\nname = \"demo\"\n\n"
                "[contracts.counter]\npath = \"contracts/counter.clar\"\nclarity_version = 2\n\n"
                "[contracts.voting]\npath = \"contracts/voting.clar\"\n",
            )
            deployer = self.deployer()
            txids = await deployer.deploy_project(root, DEPLOY_FEE, self.KEY)
            await deployer.client.close()

        self.assertEqual(len(txids), 2)
        self.assertEqual(
            [tx.payload.contract_name for tx in self.broadcasts], ["counter", "voting"]
        )
        self.assertEqual(
            [tx.spending_condition.nonce for tx in self.broadcasts], [4, 5]
        )
        self.assertIsInstance(self.broadcasts[0].payload, VersionedSmartContractPayload)
        self.assertNotIsInstance(
            self.broadcasts[1].payload, VersionedSmartContractPayload
        )

    def test_load_project_errors(self):
        with tempfile.TemporaryDirectory() as root:
            with self.assertRaises(DeploymentError):
                ContractDeployer.load_project(root)

            self.write_project(
                root, "[contracts.missing]\npath = \"contracts/missing.clar\"\n"
            )
            with self.assertRaises(DeploymentError):
                ContractDeployer.load_project(root)

        for manifest in (
            "[contracts.counter\n",
            "contracts = \"counter\"\n",
            "[contracts]\ncounter = \"contracts/counter.clar\"\n",
            "[contracts.counter]\npath = 2\n",
            "[contracts.counter]\npath = \"contracts/counter.clar\"\nclarity_version = \"two\"\n",
        ):
            with self.subTest(manifest=manifest):
                with tempfile.TemporaryDirectory() as root:
                    self.write_project(root, manifest)
                    with self.assertRaises(DeploymentError):
                        ContractDeployer.load_project(root)


if __name__ == "__main__":
    unittest.main()
