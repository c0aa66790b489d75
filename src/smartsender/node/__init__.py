"""
Node Integration Layer.

Provides abstracted access to chain state, transaction submission and confirmation.
Supports multiple backends (Blockfrost, Ogmios).
"""

from smartsender.node.interface import (
    EXPIRY_MARGIN,
    ChainTip,
    Confirmation,
    ConfirmationTimeoutError,
    NodeConnectionError,
    NodeInterface,
    TransactionRejectedError,
    TransactionSubmitError,
    ValidityWindow,
)
from smartsender.node.blockfrost import BlockfrostAdapter
from smartsender.node.ogmios import OgmiosAdapter

__all__ = [
    "EXPIRY_MARGIN",
    "ChainTip",
    "Confirmation",
    "ConfirmationTimeoutError",
    "NodeConnectionError",
    "NodeInterface",
    "TransactionRejectedError",
    "TransactionSubmitError",
    "ValidityWindow",
    "BlockfrostAdapter",
    "OgmiosAdapter",
]
