# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Stacks transactions: payloads, single-signature authorization and signing.

A transaction is serialized as::

    u8   version              (0x00 mainnet, 0x80 testnet)
    u32  chain id
    auth                      (0x04 standard + spending condition)
    u8   anchor mode
    u8   post condition mode
    u32  post condition count, then each condition
    payload                   (u8 payload type + body)

and its id is the SHA-512/256 digest of those bytes.

Signing follows the sighash chain used by Stacks nodes. The initial sighash is
taken over the transaction with its spending condition cleared (nonce, fee and
signature zeroed). The pre-sign hash then commits to the authorization type,
fee and nonce, and the secp256k1 signature is made over that pre-sign hash.

Examples:
    Building and signing a contract call::

        from stacks_sdk.clarity import UIntCV
        from stacks_sdk.network import NetworkTarget
        from stacks_sdk.transactions import ContractCallPayload, StacksTransaction

        payload = ContractCallPayload(
            StacksAddress.from_str("SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"),
            "voting",
            "vote",
            [UIntCV(0), UIntCV(0), UIntCV(100)],
        )
        transaction = StacksTransaction.create(
            NetworkTarget.MAINNET, payload, private_key.public_key(), nonce=7, fee=30_000
        )
        transaction.sign(private_key)
        raw = transaction.to_bytes()
        txid = transaction.txid()
"""

from __future__ import annotations

import copy
import hashlib
import typing
import unittest
from enum import IntEnum
from typing import List, Sequence

from .address import StacksAddress, hash160
from .clarity import ClarityValue, UIntCV, principal_cv
from .network import NetworkTarget
from .post_conditions import (
    AssetInfo,
    FungibleConditionCode,
    FungiblePostCondition,
    PostConditionMode,
    PostConditionPrincipal,
)
from .secp256k1 import MessageSignature, PrivateKey, PublicKey
from .serialization import (
    Deserializable,
    Deserializer,
    Serializable,
    SerializationError,
    Serializer,
)


def sha512_256(data: bytes) -> bytes:
    """SHA-512/256, the digest behind transaction ids and sighashes."""
    return hashlib.new("sha512_256", data).digest()


class AnchorMode(IntEnum):
    ON_CHAIN_ONLY = 0x01
    OFF_CHAIN_ONLY = 0x02
    ANY = 0x03


class AuthType(IntEnum):
    STANDARD = 0x04
    SPONSORED = 0x05


class HashMode(IntEnum):
    P2PKH = 0x00


class KeyEncoding(IntEnum):
    COMPRESSED = 0x00
    UNCOMPRESSED = 0x01


class PayloadType(IntEnum):
    SMART_CONTRACT = 0x01
    CONTRACT_CALL = 0x02
    VERSIONED_SMART_CONTRACT = 0x06


class ClarityVersion(IntEnum):
    CLARITY1 = 1
    CLARITY2 = 2
    CLARITY3 = 3


class ContractCallPayload:
    contract_address: StacksAddress
    contract_name: str
    function_name: str
    arguments: List[ClarityValue]

    def __init__(
        self,
        contract_address: StacksAddress,
        contract_name: str,
        function_name: str,
        arguments: Sequence[ClarityValue],
    ):
        self.contract_address = contract_address
        self.contract_name = contract_name
        self.function_name = function_name
        self.arguments = list(arguments)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContractCallPayload):
            return NotImplemented
        return (
            self.contract_address == other.contract_address
            and self.contract_name == other.contract_name
            and self.function_name == other.function_name
            and self.arguments == other.arguments
        )

    def __str__(self) -> str:
        return f"{self.contract_address}.{self.contract_name}::{self.function_name}"

    def variant(self) -> int:
        return PayloadType.CONTRACT_CALL

    def serialize_body(self, serializer: Serializer):
        self.contract_address.serialize(serializer)
        serializer.lp_str(self.contract_name)
        serializer.lp_str(self.function_name)
        serializer.sequence(self.arguments, Serializer.struct)

    @staticmethod
    def deserialize_body(deserializer: Deserializer) -> ContractCallPayload:
        address = StacksAddress.deserialize(deserializer)
        contract_name = deserializer.lp_str()
        function_name = deserializer.lp_str()
        arguments = deserializer.sequence(ClarityValue.deserialize)
        return ContractCallPayload(address, contract_name, function_name, arguments)


class SmartContractPayload:
    contract_name: str
    code_body: str

    def __init__(self, contract_name: str, code_body: str):
        self.contract_name = contract_name
        self.code_body = code_body

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SmartContractPayload):
            return NotImplemented
        return (
            self.variant() == other.variant()
            and self.contract_name == other.contract_name
            and self.code_body == other.code_body
        )

    def __str__(self) -> str:
        return f"deploy {self.contract_name}"

    def variant(self) -> int:
        return PayloadType.SMART_CONTRACT

    def serialize_body(self, serializer: Serializer):
        serializer.lp_str(self.contract_name)
        serializer.str(self.code_body)

    @staticmethod
    def deserialize_body(deserializer: Deserializer) -> SmartContractPayload:
        contract_name = deserializer.lp_str()
        return SmartContractPayload(contract_name, deserializer.str())


class VersionedSmartContractPayload(SmartContractPayload):
    """A contract deploy pinned to a Clarity language version."""

    clarity_version: ClarityVersion

    def __init__(
        self, clarity_version: ClarityVersion, contract_name: str, code_body: str
    ):
        super().__init__(contract_name, code_body)
        self.clarity_version = ClarityVersion(clarity_version)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionedSmartContractPayload):
            return NotImplemented
        return super().__eq__(other) and self.clarity_version == other.clarity_version

    def variant(self) -> int:
        return PayloadType.VERSIONED_SMART_CONTRACT

    def serialize_body(self, serializer: Serializer):
        serializer.u8(self.clarity_version)
        super().serialize_body(serializer)

    @staticmethod
    def deserialize_body(deserializer: Deserializer) -> VersionedSmartContractPayload:
        version = deserializer.u8()
        try:
            clarity_version = ClarityVersion(version)
        except ValueError as e:
            raise SerializationError(f"Unknown Clarity version {version}") from e
        contract_name = deserializer.lp_str()
        return VersionedSmartContractPayload(
            clarity_version, contract_name, deserializer.str()
        )


TransactionPayload = typing.Union[
    ContractCallPayload, SmartContractPayload, VersionedSmartContractPayload
]


def serialize_payload(payload: TransactionPayload, serializer: Serializer):
    serializer.u8(payload.variant())
    payload.serialize_body(serializer)


def deserialize_payload(deserializer: Deserializer) -> TransactionPayload:
    variant = deserializer.u8()
    if variant == PayloadType.CONTRACT_CALL:
        return ContractCallPayload.deserialize_body(deserializer)
    elif variant == PayloadType.SMART_CONTRACT:
        return SmartContractPayload.deserialize_body(deserializer)
    elif variant == PayloadType.VERSIONED_SMART_CONTRACT:
        return VersionedSmartContractPayload.deserialize_body(deserializer)
    raise SerializationError(f"Unsupported payload type {variant:#04x}")


class SingleSigSpendingCondition:
    """Who pays for and authorizes a transaction, with a single key.

    Attributes:
        hash_mode: Always ``P2PKH``.
        signer: hash160 of the signer's public key.
        nonce: The signer's account nonce.
        fee: The fee in micro-STX.
        key_encoding: Whether the signer's public key is compressed.
        signature: The recoverable signature, zero until signed.
    """

    hash_mode: HashMode
    signer: bytes
    nonce: int
    fee: int
    key_encoding: KeyEncoding
    signature: MessageSignature

    def __init__(
        self,
        signer: bytes,
        nonce: int,
        fee: int,
        key_encoding: KeyEncoding = KeyEncoding.COMPRESSED,
        signature: typing.Optional[MessageSignature] = None,
        hash_mode: HashMode = HashMode.P2PKH,
    ):
        if len(signer) != StacksAddress.LENGTH:
            raise ValueError("Expected a 20 byte signer hash")
        self.hash_mode = hash_mode
        self.signer = signer
        self.nonce = nonce
        self.fee = fee
        self.key_encoding = key_encoding
        self.signature = signature or MessageSignature.empty()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SingleSigSpendingCondition):
            return NotImplemented
        return (
            self.hash_mode == other.hash_mode
            and self.signer == other.signer
            and self.nonce == other.nonce
            and self.fee == other.fee
            and self.key_encoding == other.key_encoding
            and self.signature == other.signature
        )

    @staticmethod
    def from_public_key(
        public_key: PublicKey, nonce: int, fee: int
    ) -> SingleSigSpendingCondition:
        encoding = (
            KeyEncoding.COMPRESSED if public_key.compressed else KeyEncoding.UNCOMPRESSED
        )
        return SingleSigSpendingCondition(
            hash160(public_key.to_bytes()), nonce, fee, encoding
        )

    def cleared(self) -> SingleSigSpendingCondition:
        return SingleSigSpendingCondition(
            self.signer, 0, 0, self.key_encoding, MessageSignature.empty(), self.hash_mode
        )

    def signer_address(self, network: NetworkTarget) -> StacksAddress:
        return StacksAddress(network.address_version, self.signer)

    def serialize(self, serializer: Serializer):
        serializer.u8(self.hash_mode)
        serializer.fixed_bytes(self.signer)
        serializer.u64(self.nonce)
        serializer.u64(self.fee)
        serializer.u8(self.key_encoding)
        self.signature.serialize(serializer)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> SingleSigSpendingCondition:
        hash_mode = deserializer.u8()
        if hash_mode != HashMode.P2PKH:
            raise SerializationError(f"Unsupported hash mode {hash_mode:#04x}")
        signer = deserializer.fixed_bytes(StacksAddress.LENGTH)
        nonce = deserializer.u64()
        fee = deserializer.u64()
        key_encoding = deserializer.u8()
        if key_encoding not in (KeyEncoding.COMPRESSED, KeyEncoding.UNCOMPRESSED):
            raise SerializationError(f"Unknown key encoding {key_encoding}")
        signature = MessageSignature.deserialize(deserializer)
        return SingleSigSpendingCondition(
            signer, nonce, fee, KeyEncoding(key_encoding), signature, HashMode(hash_mode)
        )


class StandardAuthorization:
    """Origin-pays authorization: the signer also pays the fee."""

    spending_condition: SingleSigSpendingCondition

    def __init__(self, spending_condition: SingleSigSpendingCondition):
        self.spending_condition = spending_condition

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StandardAuthorization):
            return NotImplemented
        return self.spending_condition == other.spending_condition

    def auth_type(self) -> AuthType:
        return AuthType.STANDARD

    def serialize(self, serializer: Serializer):
        serializer.u8(self.auth_type())
        self.spending_condition.serialize(serializer)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> StandardAuthorization:
        auth_type = deserializer.u8()
        if auth_type != AuthType.STANDARD:
            raise SerializationError(f"Unsupported authorization type {auth_type:#04x}")
        return StandardAuthorization(SingleSigSpendingCondition.deserialize(deserializer))


class StacksTransaction(Deserializable, Serializable):
    version: int
    chain_id: int
    auth: StandardAuthorization
    anchor_mode: AnchorMode
    post_condition_mode: PostConditionMode
    post_conditions: List[FungiblePostCondition]
    payload: TransactionPayload

    def __init__(
        self,
        version: int,
        chain_id: int,
        auth: StandardAuthorization,
        payload: TransactionPayload,
        anchor_mode: AnchorMode = AnchorMode.ANY,
        post_condition_mode: PostConditionMode = PostConditionMode.ALLOW,
        post_conditions: Sequence[FungiblePostCondition] = (),
    ):
        self.version = version
        self.chain_id = chain_id
        self.auth = auth
        self.anchor_mode = anchor_mode
        self.post_condition_mode = post_condition_mode
        self.post_conditions = list(post_conditions)
        self.payload = payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StacksTransaction):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __str__(self) -> str:
        return f"StacksTransaction({self.payload}, txid={self.txid()})"

    @staticmethod
    def create(
        network: NetworkTarget,
        payload: TransactionPayload,
        public_key: PublicKey,
        nonce: int,
        fee: int,
        anchor_mode: AnchorMode = AnchorMode.ANY,
        post_condition_mode: PostConditionMode = PostConditionMode.ALLOW,
        post_conditions: Sequence[FungiblePostCondition] = (),
    ) -> StacksTransaction:
        """Create an unsigned single-signature transaction for ``network``."""
        condition = SingleSigSpendingCondition.from_public_key(public_key, nonce, fee)
        return StacksTransaction(
            network.transaction_version,
            network.chain_id,
            StandardAuthorization(condition),
            payload,
            anchor_mode,
            post_condition_mode,
            post_conditions,
        )

    @property
    def spending_condition(self) -> SingleSigSpendingCondition:
        return self.auth.spending_condition

    def txid(self) -> str:
        return sha512_256(self.to_bytes()).hex()

    def initial_sighash(self) -> bytes:
        cleared = copy.copy(self)
        cleared.auth = StandardAuthorization(self.spending_condition.cleared())
        return sha512_256(cleared.to_bytes())

    def presign_sighash(self, sighash: bytes) -> bytes:
        ser = Serializer()
        ser.fixed_bytes(sighash)
        ser.u8(self.auth.auth_type())
        ser.u64(self.spending_condition.fee)
        ser.u64(self.spending_condition.nonce)
        return sha512_256(ser.output())

    def sign(self, private_key: PrivateKey):
        """Sign in place as the origin.

        Raises:
            ValueError: If ``private_key`` does not match the spending condition.
        """
        condition = self.spending_condition
        public_key = private_key.public_key()
        if hash160(public_key.to_bytes()) != condition.signer:
            raise ValueError("Private key does not match the transaction signer")
        presign = self.presign_sighash(self.initial_sighash())
        condition.signature = private_key.sign(presign)

    def verify_origin(self) -> bool:
        """Check that the origin signature recovers to the signer's key hash."""
        condition = self.spending_condition
        presign = self.presign_sighash(self.initial_sighash())
        compressed = condition.key_encoding == KeyEncoding.COMPRESSED
        try:
            public_key = PublicKey.recover(presign, condition.signature, compressed)
        except ValueError:
            return False
        return (
            hash160(public_key.to_bytes()) == condition.signer
            and public_key.verify(presign, condition.signature)
        )

    def serialize(self, serializer: Serializer):
        serializer.u8(self.version)
        serializer.u32(self.chain_id)
        self.auth.serialize(serializer)
        serializer.u8(self.anchor_mode)
        serializer.u8(self.post_condition_mode)
        serializer.sequence(self.post_conditions, Serializer.struct)
        serialize_payload(self.payload, serializer)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> StacksTransaction:
        version = deserializer.u8()
        chain_id = deserializer.u32()
        auth = StandardAuthorization.deserialize(deserializer)
        anchor_mode = deserializer.u8()
        post_condition_mode = deserializer.u8()
        try:
            anchor = AnchorMode(anchor_mode)
            mode = PostConditionMode(post_condition_mode)
        except ValueError as e:
            raise SerializationError(str(e)) from e
        post_conditions = deserializer.sequence(FungiblePostCondition.deserialize)
        payload = deserialize_payload(deserializer)
        return StacksTransaction(
            version, chain_id, auth, payload, anchor, mode, post_conditions
        )


class Test(unittest.TestCase):
    KEY = "edf9aee84d9b7abc145504dde6726c64f369d37ee34ded868fabd876c26570bc01"
    SIGNER = "15c31b8c1c11c515e244b75806bac48d1399c775"
    CONTRACT = "SP2PEBKJ2W1ZDDF2QQ6Y4FXKZEDPT9J9R2NKD9WJB"
    CONTRACT_HASH = "ace5ce42e07ed6bc57b9bc47f67f736da4c93815"

    def call_payload(self) -> ContractCallPayload:
        return ContractCallPayload(
            StacksAddress.from_str(self.CONTRACT), "voting", "vote", [UIntCV(1)]
        )

    def test_sha512_256(self):
        self.assertEqual(
            sha512_256(b"abc").hex(),
            "53048e2681941ef99b2e29b76b4c7dabe4c2d0c634fc6d46e0e2f13107e7af23",
        )

    def test_unsigned_layout(self):
        private_key = PrivateKey.from_hex(self.KEY)
        transaction = StacksTransaction.create(
            NetworkTarget.TESTNET,
            self.call_payload(),
            private_key.public_key(),
            nonce=5,
            fee=30_000,
        )
        expected = (
            "80"
            "80000000"
            "04"
            "00" + self.SIGNER
            + "0000000000000005"
            + "0000000000007530"
            + "00"
            + "00" * 65
            + "03"
            + "01"
            + "00000000"
            + "02"
            + "16" + self.CONTRACT_HASH
            + "06" + b"voting".hex()
            + "04" + b"vote".hex()
            + "00000001" + UIntCV(1).to_hex()[2:]
        )
        self.assertEqual(transaction.to_bytes().hex(), expected)
        self.assertEqual(transaction.txid(), sha512_256(bytes.fromhex(expected)).hex())

    def test_sign_and_verify(self):
        private_key = PrivateKey.from_hex(self.KEY)
        transaction = StacksTransaction.create(
            NetworkTarget.MAINNET,
            self.call_payload(),
            private_key.public_key(),
            nonce=0,
            fee=50_000,
        )
        sighash = transaction.initial_sighash()
        transaction.sign(private_key)

        self.assertNotEqual(transaction.spending_condition.signature, MessageSignature.empty())
        self.assertEqual(transaction.initial_sighash(), sighash)
        self.assertTrue(transaction.verify_origin())

        restored = StacksTransaction.from_bytes(transaction.to_bytes())
        self.assertEqual(restored, transaction)
        self.assertEqual(restored.txid(), transaction.txid())
        self.assertTrue(restored.verify_origin())

        restored.spending_condition.fee = 1
        self.assertFalse(restored.verify_origin())

    def test_sign_rejects_other_key(self):
        private_key = PrivateKey.from_hex(self.KEY)
        transaction = StacksTransaction.create(
            NetworkTarget.MAINNET,
            self.call_payload(),
            private_key.public_key(),
            nonce=0,
            fee=1,
        )
        with self.assertRaises(ValueError):
            transaction.sign(PrivateKey.random())

    def test_uncompressed_signer(self):
        private_key = PrivateKey.from_hex(self.KEY[:-2])
        transaction = StacksTransaction.create(
            NetworkTarget.TESTNET,
            SmartContractPayload("my-counter", "(define-data-var counter uint u0)"),
            private_key.public_key(),
            nonce=3,
            fee=50_000,
        )
        self.assertEqual(
            transaction.spending_condition.key_encoding, KeyEncoding.UNCOMPRESSED
        )
        transaction.sign(private_key)
        self.assertTrue(transaction.verify_origin())

    def test_deploy_payloads(self):
        ser = Serializer()
        serialize_payload(SmartContractPayload("c", "(ok u1)"), ser)
        self.assertEqual(ser.output().hex(), "01" "0163" "00000007" + b"(ok u1)".hex())

        ser = Serializer()
        versioned = VersionedSmartContractPayload(ClarityVersion.CLARITY2, "c", "(ok u1)")
        serialize_payload(versioned, ser)
        self.assertEqual(ser.output()[:2].hex(), "0602")
        self.assertEqual(deserialize_payload(Deserializer(ser.output())), versioned)

    def test_post_conditions_round_trip(self):
        private_key = PrivateKey.from_hex(self.KEY)
        condition = FungiblePostCondition(
            PostConditionPrincipal.origin(),
            AssetInfo.from_str(f"{self.CONTRACT}.sentinel-token::sentinel-token"),
            FungibleConditionCode.EQUAL,
            1_000_000,
        )
        payload = ContractCallPayload(
            StacksAddress.from_str(self.CONTRACT),
            "sentinel-token",
            "transfer",
            [UIntCV(1_000_000), principal_cv(self.CONTRACT)],
        )
        transaction = StacksTransaction.create(
            NetworkTarget.MAINNET,
            payload,
            private_key.public_key(),
            nonce=1,
            fee=30_000,
            post_condition_mode=PostConditionMode.DENY,
            post_conditions=[condition],
        )
        transaction.sign(private_key)
        restored = StacksTransaction.from_bytes(transaction.to_bytes())
        self.assertEqual(restored.post_conditions, [condition])
        self.assertEqual(restored.post_condition_mode, PostConditionMode.DENY)
        self.assertEqual(restored.payload, payload)


if __name__ == "__main__":
    unittest.main()
