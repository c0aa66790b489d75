"""
Wallet signers - sign whole batches of transactions at once.

A wallet is only ever asked to sign every remaining transaction in a single
call, which is how browser and hardware wallets expose batch approval.
"""

import copy
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, List, Optional

import structlog

from pycardano import (
    Address,
    Network,
    PaymentSigningKey,
    PaymentVerificationKey,
    Transaction,
    TransactionWitnessSet,
    VerificationKeyWitness,
)

from smartsender.config import NetworkType, SenderConfig, get_config

logger = structlog.get_logger(__name__)


class SigningError(Exception):
    """Raised when a wallet fails to sign a batch."""
    pass


class WalletSigner(ABC):
    """
    Signing authority for the sender.

    Implementations must sign the whole list or fail; partial results are
    not accepted.
    """

    @property
    @abstractmethod
    def address(self) -> Optional[Any]:
        """Address paying the fees, or None when the wallet is not connected."""
        pass

    @abstractmethod
    async def sign_all(self, transactions: List[Any]) -> List[Any]:
        """
        Sign every transaction in one call.

        Args:
            transactions: Unsigned or partially signed transactions

        Returns:
            Signed transactions in the same order
        """
        pass


def add_vkey_witnesses(
    tx: Transaction,
    signing_keys: Iterable[PaymentSigningKey],
) -> Transaction:
    """
    Add signatures to an existing transaction.

    Existing witnesses are kept, so co-signers and the wallet can sign in turn.

    Args:
        tx: Transaction to sign
        signing_keys: Keys to sign with

    Returns:
        Transaction with the added signatures
    """
    tx_hash = tx.transaction_body.hash()

    witness_set = copy.copy(tx.transaction_witness_set) or TransactionWitnessSet()
    vkey_witnesses = list(witness_set.vkey_witnesses or [])

    for signing_key in signing_keys:
        vkey_witnesses.append(
            VerificationKeyWitness(
                PaymentVerificationKey.from_signing_key(signing_key),
                signing_key.sign(tx_hash),
            )
        )

    witness_set.vkey_witnesses = vkey_witnesses

    return Transaction(
        tx.transaction_body,
        witness_set,
        auxiliary_data=tx.auxiliary_data,
    )


class KeyWalletSigner(WalletSigner):
    """
    Wallet backed by a payment signing key.

    Supports loading keys from:
    - File path (standard Cardano signing key format)
    - CBOR-encoded key (for environment variable configuration)

    Security note: In production, consider using a HSM or
    secure key management service.
    """

    def __init__(self, config: Optional[SenderConfig] = None):
        """
        Initialize the wallet signer.

        Args:
            config: Sender configuration
        """
        self.config = config or get_config()
        self._signing_key: Optional[PaymentSigningKey] = None
        self._verification_key: Optional[PaymentVerificationKey] = None
        self._address: Optional[Address] = None

    def load_key_from_file(self, key_path: str) -> None:
        """
        Load signing key from a file.

        Args:
            key_path: Path to the signing key file
        """
        path = Path(key_path)
        if not path.exists():
            raise FileNotFoundError(f"Signing key file not found: {key_path}")

        self._set_key(PaymentSigningKey.load(str(path)))
        logger.info("signing_key_loaded", path=key_path, address=str(self._address)[:30] + "...")

    def load_key_from_cbor(self, cbor_hex: str) -> None:
        """
        Load signing key from CBOR hex string.

        Args:
            cbor_hex: CBOR-encoded signing key in hex
        """
        self._set_key(PaymentSigningKey.from_primitive(bytes.fromhex(cbor_hex)))
        logger.info("signing_key_loaded_from_cbor", address=str(self._address)[:30] + "...")

    def load_from_config(self) -> None:
        """Load signing key from configuration."""
        if self.config.wallet_signing_key_path:
            self.load_key_from_file(self.config.wallet_signing_key_path)
        elif self.config.wallet_signing_key_cbor:
            self.load_key_from_cbor(self.config.wallet_signing_key_cbor)
        else:
            raise ValueError("No signing key configured")

    def _set_key(self, signing_key: PaymentSigningKey) -> None:
        self._signing_key = signing_key
        self._verification_key = PaymentVerificationKey.from_signing_key(signing_key)

        network = Network.MAINNET if self.config.network == NetworkType.MAINNET else Network.TESTNET
        self._address = Address(self._verification_key.hash(), network=network)

    @property
    def address(self) -> Optional[Address]:
        """Get the wallet's address."""
        return self._address

    @property
    def address_str(self) -> Optional[str]:
        """Get the wallet's address as string."""
        return str(self._address) if self._address else None

    @property
    def is_loaded(self) -> bool:
        """Check if a signing key is loaded."""
        return self._signing_key is not None

    async def sign_all(self, transactions: List[Transaction]) -> List[Transaction]:
        """Sign every transaction with the wallet key."""
        if not self._signing_key:
            raise SigningError("No signing key loaded")

        signed = [add_vkey_witnesses(tx, [self._signing_key]) for tx in transactions]

        logger.debug("transactions_signed", count=len(signed))
        return signed


def generate_test_key(config: Optional[SenderConfig] = None) -> KeyWalletSigner:
    """
    Generate a new random signing key for testing.

    WARNING: Do not use in production. The key is not persisted.

    Returns:
        KeyWalletSigner with a new random key
    """
    signer = KeyWalletSigner(config)
    signer._set_key(PaymentSigningKey.generate())

    logger.warning("test_key_generated", address=str(signer._address)[:30] + "...")

    return signer
