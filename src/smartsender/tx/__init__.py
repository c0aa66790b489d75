"""
Transaction module.

Handles transaction construction and signing.
"""

from smartsender.tx.builder import (
    CardanoTransactionFactory,
    TransactionBuildError,
    TransactionFactory,
)
from smartsender.tx.signer import KeyWalletSigner, SigningError, WalletSigner

__all__ = [
    "CardanoTransactionFactory",
    "TransactionBuildError",
    "TransactionFactory",
    "KeyWalletSigner",
    "SigningError",
    "WalletSigner",
]
