# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import typing
import unittest
from typing import List

from . import asymmetric_crypto, asymmetric_crypto_wrapper, ed25519, secp256k1_ecdsa
from .account_address import AccountAddress
from .bcs import Deserializer, Serializer


class Authenticator:
    """
    Each transaction submitted to the Aptos blockchain contains a `TransactionAuthenticator`.
    During transaction execution, the executor will check if every `AccountAuthenticator`'s
    signature on the transaction hash is well-formed and whether `AccountAuthenticator`'s  matches
    the `AuthenticationKey` stored under the participating signer's account address.
    """

    ED25519: int = 0
    MULTI_ED25519: int = 1
    MULTI_AGENT: int = 2
    FEE_PAYER: int = 3
    SINGLE_SENDER: int = 4

    variant: int
    authenticator: typing.Any

    def __init__(self, authenticator: typing.Any):
        if isinstance(authenticator, Ed25519Authenticator):
            self.variant = Authenticator.ED25519
        elif isinstance(authenticator, MultiEd25519Authenticator):
            self.variant = Authenticator.MULTI_ED25519
        elif isinstance(authenticator, MultiAgentAuthenticator):
            self.variant = Authenticator.MULTI_AGENT
        elif isinstance(authenticator, FeePayerAuthenticator):
            self.variant = Authenticator.FEE_PAYER
        elif isinstance(authenticator, SingleSenderAuthenticator):
            self.variant = Authenticator.SINGLE_SENDER
        else:
            raise ValueError(f"Invalid transaction authenticator: {type(authenticator)}")
        self.authenticator = authenticator

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Authenticator):
            return NotImplemented
        return (
            self.variant == other.variant and self.authenticator == other.authenticator
        )

    def __str__(self) -> str:
        return self.authenticator.__str__()

    def verify(self, data: bytes) -> bool:
        return self.authenticator.verify(data)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Authenticator:
        variant = deserializer.uleb128()

        if variant == Authenticator.ED25519:
            authenticator: typing.Any = Ed25519Authenticator.deserialize(deserializer)
        elif variant == Authenticator.MULTI_ED25519:
            authenticator = MultiEd25519Authenticator.deserialize(deserializer)
        elif variant == Authenticator.MULTI_AGENT:
            authenticator = MultiAgentAuthenticator.deserialize(deserializer)
        elif variant == Authenticator.FEE_PAYER:
            authenticator = FeePayerAuthenticator.deserialize(deserializer)
        elif variant == Authenticator.SINGLE_SENDER:
            authenticator = SingleSenderAuthenticator.deserialize(deserializer)
        else:
            raise ValueError(f"Invalid transaction authenticator variant: {variant}")

        return Authenticator(authenticator)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.authenticator)


class AccountAuthenticator:
    ED25519: int = 0
    MULTI_ED25519: int = 1
    SINGLE_KEY: int = 2
    MULTI_KEY: int = 3
    NO_ACCOUNT_AUTHENTICATOR: int = 4

    variant: int
    authenticator: typing.Any

    def __init__(self, authenticator: typing.Any):
        if isinstance(authenticator, Ed25519Authenticator):
            self.variant = AccountAuthenticator.ED25519
        elif isinstance(authenticator, MultiEd25519Authenticator):
            self.variant = AccountAuthenticator.MULTI_ED25519
        elif isinstance(authenticator, SingleKeyAuthenticator):
            self.variant = AccountAuthenticator.SINGLE_KEY
        elif isinstance(authenticator, MultiKeyAuthenticator):
            self.variant = AccountAuthenticator.MULTI_KEY
        elif isinstance(authenticator, NoAccountAuthenticator):
            self.variant = AccountAuthenticator.NO_ACCOUNT_AUTHENTICATOR
        else:
            raise ValueError(f"Invalid account authenticator: {type(authenticator)}")
        self.authenticator = authenticator

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAuthenticator):
            return NotImplemented
        return (
            self.variant == other.variant and self.authenticator == other.authenticator
        )

    def __repr__(self) -> str:
        return self.__str__()

    def __str__(self) -> str:
        return self.authenticator.__str__()

    def verify(self, data: bytes) -> bool:
        return self.authenticator.verify(data)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AccountAuthenticator:
        variant = deserializer.uleb128()

        if variant == AccountAuthenticator.ED25519:
            authenticator: typing.Any = Ed25519Authenticator.deserialize(deserializer)
        elif variant == AccountAuthenticator.MULTI_ED25519:
            authenticator = MultiEd25519Authenticator.deserialize(deserializer)
        elif variant == AccountAuthenticator.SINGLE_KEY:
            authenticator = SingleKeyAuthenticator.deserialize(deserializer)
        elif variant == AccountAuthenticator.MULTI_KEY:
            authenticator = MultiKeyAuthenticator.deserialize(deserializer)
        elif variant == AccountAuthenticator.NO_ACCOUNT_AUTHENTICATOR:
            authenticator = NoAccountAuthenticator.deserialize(deserializer)
        else:
            raise ValueError(f"Invalid account authenticator variant: {variant}")

        return AccountAuthenticator(authenticator)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.authenticator)


class Ed25519Authenticator:
    public_key: ed25519.PublicKey
    signature: ed25519.Signature

    def __init__(self, public_key: ed25519.PublicKey, signature: ed25519.Signature):
        self.public_key = public_key
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ed25519Authenticator):
            return NotImplemented

        return self.public_key == other.public_key and self.signature == other.signature

    def __str__(self) -> str:
        return f"PublicKey: {self.public_key}, Signature: {self.signature}"

    def verify(self, data: bytes) -> bool:
        return self.public_key.verify(data, self.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Ed25519Authenticator:
        key = deserializer.struct(ed25519.PublicKey)
        signature = deserializer.struct(ed25519.Signature)
        return Ed25519Authenticator(key, signature)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.public_key)
        serializer.struct(self.signature)


def check_secondary_signers(
    addresses: List[AccountAddress], authenticators: List[AccountAuthenticator]
):
    if len(addresses) != len(authenticators):
        raise ValueError(
            f"Got {len(addresses)} secondary signer addresses but "
            f"{len(authenticators)} secondary signer authenticators"
        )


class FeePayerAuthenticator:
    sender: AccountAuthenticator
    secondary_signer_addresses: List[AccountAddress]
    secondary_signers: List[AccountAuthenticator]
    fee_payer_address: AccountAddress
    fee_payer: AccountAuthenticator

    def __init__(
        self,
        sender: AccountAuthenticator,
        secondary_signer_addresses: List[AccountAddress],
        secondary_signers: List[AccountAuthenticator],
        fee_payer_address: AccountAddress,
        fee_payer: AccountAuthenticator,
    ):
        check_secondary_signers(secondary_signer_addresses, secondary_signers)
        self.sender = sender
        self.secondary_signer_addresses = secondary_signer_addresses
        self.secondary_signers = secondary_signers
        self.fee_payer_address = fee_payer_address
        self.fee_payer = fee_payer

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeePayerAuthenticator):
            return NotImplemented
        return (
            self.sender == other.sender
            and self.secondary_signer_addresses == other.secondary_signer_addresses
            and self.secondary_signers == other.secondary_signers
            and self.fee_payer_address == other.fee_payer_address
            and self.fee_payer == other.fee_payer
        )

    def __str__(self) -> str:
        return (
            f"FeePayer: \n\tSender: {self.sender}\n\tSecondary Signers: "
            f"{self.secondary_signers}\n\t{self.fee_payer_address}: {self.fee_payer}"
        )

    def verify(self, data: bytes) -> bool:
        if not self.sender.verify(data):
            return False
        if not self.fee_payer.verify(data):
            return False
        return all([x.verify(data) for x in self.secondary_signers])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> FeePayerAuthenticator:
        sender = deserializer.struct(AccountAuthenticator)
        secondary_addresses = deserializer.sequence(AccountAddress.deserialize)
        secondary_authenticators = deserializer.sequence(
            AccountAuthenticator.deserialize
        )
        fee_payer_address = deserializer.struct(AccountAddress)
        fee_payer_authenticator = deserializer.struct(AccountAuthenticator)
        return FeePayerAuthenticator(
            sender,
            secondary_addresses,
            secondary_authenticators,
            fee_payer_address,
            fee_payer_authenticator,
        )

    def serialize(self, serializer: Serializer):
        serializer.struct(self.sender)
        serializer.sequence(self.secondary_signer_addresses, Serializer.struct)
        serializer.sequence(self.secondary_signers, Serializer.struct)
        serializer.struct(self.fee_payer_address)
        serializer.struct(self.fee_payer)


class MultiAgentAuthenticator:
    sender: AccountAuthenticator
    secondary_signer_addresses: List[AccountAddress]
    secondary_signers: List[AccountAuthenticator]

    def __init__(
        self,
        sender: AccountAuthenticator,
        secondary_signer_addresses: List[AccountAddress],
        secondary_signers: List[AccountAuthenticator],
    ):
        check_secondary_signers(secondary_signer_addresses, secondary_signers)
        self.sender = sender
        self.secondary_signer_addresses = secondary_signer_addresses
        self.secondary_signers = secondary_signers

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiAgentAuthenticator):
            return NotImplemented
        return (
            self.sender == other.sender
            and self.secondary_signer_addresses == other.secondary_signer_addresses
            and self.secondary_signers == other.secondary_signers
        )

    def verify(self, data: bytes) -> bool:
        if not self.sender.verify(data):
            return False
        return all([x.verify(data) for x in self.secondary_signers])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiAgentAuthenticator:
        sender = deserializer.struct(AccountAuthenticator)
        secondary_addresses = deserializer.sequence(AccountAddress.deserialize)
        secondary_authenticators = deserializer.sequence(
            AccountAuthenticator.deserialize
        )
        return MultiAgentAuthenticator(
            sender, secondary_addresses, secondary_authenticators
        )

    def serialize(self, serializer: Serializer):
        serializer.struct(self.sender)
        serializer.sequence(self.secondary_signer_addresses, Serializer.struct)
        serializer.sequence(self.secondary_signers, Serializer.struct)


class MultiEd25519Authenticator:
    public_key: ed25519.MultiPublicKey
    signature: ed25519.MultiSignature

    def __init__(
        self, public_key: ed25519.MultiPublicKey, signature: ed25519.MultiSignature
    ):
        self.public_key = public_key
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiEd25519Authenticator):
            return NotImplemented
        return self.public_key == other.public_key and self.signature == other.signature

    def __str__(self) -> str:
        return f"PublicKey: {self.public_key}, Signature: {self.signature}"

    def verify(self, data: bytes) -> bool:
        return self.public_key.verify(data, self.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiEd25519Authenticator:
        public_key = deserializer.struct(ed25519.MultiPublicKey)
        signature = deserializer.struct(ed25519.MultiSignature)
        return MultiEd25519Authenticator(public_key, signature)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.public_key)
        serializer.struct(self.signature)


class SingleSenderAuthenticator:
    sender: AccountAuthenticator

    def __init__(
        self,
        sender: AccountAuthenticator,
    ):
        self.sender = sender

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SingleSenderAuthenticator):
            return NotImplemented
        return self.sender == other.sender

    def __str__(self) -> str:
        return f"SingleSender: {self.sender}"

    def verify(self, data: bytes) -> bool:
        return self.sender.verify(data)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> SingleSenderAuthenticator:
        sender = deserializer.struct(AccountAuthenticator)
        return SingleSenderAuthenticator(sender)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.sender)


class SingleKeyAuthenticator:
    public_key: asymmetric_crypto_wrapper.PublicKey
    signature: asymmetric_crypto_wrapper.Signature

    def __init__(
        self,
        public_key: asymmetric_crypto.PublicKey,
        signature: asymmetric_crypto.Signature,
    ):
        if isinstance(public_key, asymmetric_crypto_wrapper.PublicKey):
            self.public_key = public_key
        else:
            self.public_key = asymmetric_crypto_wrapper.PublicKey(public_key)

        if isinstance(signature, asymmetric_crypto_wrapper.Signature):
            self.signature = signature
        else:
            self.signature = asymmetric_crypto_wrapper.Signature(signature)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SingleKeyAuthenticator):
            return NotImplemented
        return self.public_key == other.public_key and self.signature == other.signature

    def __str__(self) -> str:
        return f"PublicKey: {self.public_key}, Signature: {self.signature.signature}"

    def verify(self, data: bytes) -> bool:
        return self.public_key.verify(data, self.signature.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> SingleKeyAuthenticator:
        public_key = deserializer.struct(asymmetric_crypto_wrapper.PublicKey)
        signature = deserializer.struct(asymmetric_crypto_wrapper.Signature)
        return SingleKeyAuthenticator(public_key, signature)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.public_key)
        serializer.struct(self.signature)


class MultiKeyAuthenticator:
    public_key: asymmetric_crypto_wrapper.MultiPublicKey
    signature: asymmetric_crypto_wrapper.MultiSignature

    def __init__(
        self,
        public_key: asymmetric_crypto_wrapper.MultiPublicKey,
        signature: asymmetric_crypto_wrapper.MultiSignature,
    ):
        self.public_key = public_key
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiKeyAuthenticator):
            return NotImplemented
        return self.public_key == other.public_key and self.signature == other.signature

    def __str__(self) -> str:
        return f"PublicKey: {self.public_key}, Signatures: {len(self.signature.signatures)}"

    def verify(self, data: bytes) -> bool:
        return self.public_key.verify(data, self.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiKeyAuthenticator:
        public_key = deserializer.struct(asymmetric_crypto_wrapper.MultiPublicKey)
        signature = deserializer.struct(asymmetric_crypto_wrapper.MultiSignature)
        return MultiKeyAuthenticator(public_key, signature)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.public_key)
        serializer.struct(self.signature)


class NoAccountAuthenticator:
    """Placeholder for a signer that has not signed yet, for example an unknown fee payer."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NoAccountAuthenticator):
            return NotImplemented
        return True

    def __str__(self) -> str:
        return "NoAccountAuthenticator"

    def verify(self, data: bytes) -> bool:
        return False

    @staticmethod
    def deserialize(deserializer: Deserializer) -> NoAccountAuthenticator:
        return NoAccountAuthenticator()

    def serialize(self, serializer: Serializer):
        pass


def ed25519_account_authenticator(
    private_key: ed25519.PrivateKey, data: bytes
) -> AccountAuthenticator:
    return AccountAuthenticator(
        Ed25519Authenticator(private_key.public_key(), private_key.sign(data))
    )


class Test(unittest.TestCase):
    def test_ed25519_round_trip(self):
        private_key = ed25519.PrivateKey.random()
        authenticator = Authenticator(
            Ed25519Authenticator(private_key.public_key(), private_key.sign(b"txn"))
        )
        ser = Serializer()
        authenticator.serialize(ser)
        encoded = ser.output()
        self.assertEqual(encoded[0], Authenticator.ED25519)
        self.assertEqual(Authenticator.deserialize(Deserializer(encoded)), authenticator)
        self.assertTrue(authenticator.verify(b"txn"))
        self.assertFalse(authenticator.verify(b"other"))

    def test_multi_agent_and_fee_payer(self):
        sender = ed25519.PrivateKey.random()
        second = ed25519.PrivateKey.random()
        payer = secp256k1_ecdsa.PrivateKey.random()
        data = b"signing message"
        second_address = AccountAddress.from_key(second.public_key())

        fee_payer_auth = AccountAuthenticator(
            SingleKeyAuthenticator(payer.public_key(), payer.sign(data))
        )
        for inner in [
            MultiAgentAuthenticator(
                ed25519_account_authenticator(sender, data),
                [second_address],
                [ed25519_account_authenticator(second, data)],
            ),
            FeePayerAuthenticator(
                ed25519_account_authenticator(sender, data),
                [second_address],
                [ed25519_account_authenticator(second, data)],
                AccountAddress.from_key(payer.public_key()),
                fee_payer_auth,
            ),
        ]:
            authenticator = Authenticator(inner)
            ser = Serializer()
            authenticator.serialize(ser)
            self.assertEqual(
                Authenticator.deserialize(Deserializer(ser.output())), authenticator
            )
            self.assertTrue(authenticator.verify(data))

    def test_secondary_signer_counts_must_match(self):
        sender = ed25519_account_authenticator(ed25519.PrivateKey.random(), b"x")
        with self.assertRaises(ValueError):
            MultiAgentAuthenticator(sender, [AccountAddress.from_str("0x1")], [])
        with self.assertRaises(ValueError):
            FeePayerAuthenticator(
                sender, [], [sender], AccountAddress.from_str("0x1"), sender
            )

    def test_multi_ed25519(self):
        keys = [ed25519.PrivateKey.random() for _ in range(3)]
        public_key = ed25519.MultiPublicKey([k.public_key() for k in keys], 2)
        signature = ed25519.MultiSignature(
            [(0, keys[0].sign(b"data")), (2, keys[2].sign(b"data"))]
        )
        authenticator = AccountAuthenticator(
            MultiEd25519Authenticator(public_key, signature)
        )
        ser = Serializer()
        authenticator.serialize(ser)
        self.assertEqual(
            AccountAuthenticator.deserialize(Deserializer(ser.output())), authenticator
        )
        self.assertTrue(authenticator.verify(b"data"))

    def test_multi_key(self):
        ed_key = ed25519.PrivateKey.random()
        secp_key = secp256k1_ecdsa.PrivateKey.random()
        public_key = asymmetric_crypto_wrapper.MultiPublicKey(
            [ed_key.public_key(), secp_key.public_key()], 1
        )
        signature = asymmetric_crypto_wrapper.MultiSignature(
            [(1, secp_key.sign(b"data"))]
        )
        authenticator = AccountAuthenticator(MultiKeyAuthenticator(public_key, signature))
        self.assertEqual(authenticator.variant, AccountAuthenticator.MULTI_KEY)
        ser = Serializer()
        authenticator.serialize(ser)
        self.assertEqual(
            AccountAuthenticator.deserialize(Deserializer(ser.output())), authenticator
        )
        self.assertTrue(authenticator.verify(b"data"))

    def test_no_account_authenticator(self):
        authenticator = AccountAuthenticator(NoAccountAuthenticator())
        ser = Serializer()
        authenticator.serialize(ser)
        self.assertEqual(ser.output(), b"\x04")
        self.assertEqual(
            AccountAuthenticator.deserialize(Deserializer(b"\x04")), authenticator
        )
        self.assertFalse(authenticator.verify(b"data"))

    def test_invalid_variants(self):
        with self.assertRaises(ValueError):
            AccountAuthenticator.deserialize(Deserializer(b"\x09"))
        with self.assertRaises(ValueError):
            Authenticator(NoAccountAuthenticator())


if __name__ == "__main__":
    unittest.main()
