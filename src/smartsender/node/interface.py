"""
Abstract interface for Cardano node integration.

Defines the contract for blockchain access that all node adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from smartsender.config import Commitment


# Slots after the reference slot at which a validity window is treated as exhausted.
EXPIRY_MARGIN = 150


@dataclass
class ChainTip:
    """Chain tip information at a given commitment level."""
    slot: int
    block_hash: str
    block_height: int


@dataclass(frozen=True)
class ValidityWindow:
    """
    Expiry material a transaction is bound to.

    Attributes:
        slot: Reference slot the window was observed at
        block_hash: Hash of the reference block
        last_valid_slot: Last slot at which transactions built against
            this window can still be included
    """
    slot: int
    block_hash: str
    last_valid_slot: int

    @property
    def exhausted_at(self) -> int:
        """First slot at which the window counts as exhausted."""
        return self.slot + EXPIRY_MARGIN

    def is_exhausted(self, slot: int) -> bool:
        """Check whether the chain has reached the end of this window."""
        return slot >= self.exhausted_at


@dataclass
class Confirmation:
    """A transaction observed on-chain."""
    tx_id: str
    slot: int


class NodeInterface(ABC):
    """
    Abstract interface for Cardano node access.

    This interface defines the blockchain operations the sender needs:
    - Chain tip, slot and validity window queries
    - Transaction submission
    - Transaction confirmation
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the node/API.

        Raises:
            NodeConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the node/API."""
        pass

    @abstractmethod
    async def get_chain_tip(
        self,
        commitment: Commitment = Commitment.PROCESSED,
    ) -> ChainTip:
        """
        Get the chain tip as seen at a commitment level.

        Args:
            commitment: How many blocks deep the returned block must be

        Returns:
            Chain tip information
        """
        pass

    @abstractmethod
    async def submit_transaction(self, tx: Any) -> str:
        """
        Submit a signed transaction to the network.

        Args:
            tx: Signed transaction to submit

        Returns:
            Transaction hash

        Raises:
            TransactionRejectedError: If the ledger rejects the transaction
            TransactionSubmitError: If submission fails for any other reason
        """
        pass

    @abstractmethod
    async def await_transaction_confirmation(
        self,
        tx_hash: str,
        timeout_seconds: int = 120,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> Confirmation:
        """
        Wait for a transaction to be confirmed.

        Args:
            tx_hash: Hash of the transaction to monitor
            timeout_seconds: Maximum time to wait
            commitment: Level the transaction must reach

        Returns:
            The confirmation, including the slot it landed in

        Raises:
            ConfirmationTimeoutError: If not confirmed within the timeout
        """
        pass

    async def get_slot(self, commitment: Commitment = Commitment.PROCESSED) -> int:
        """Get the current slot at a commitment level."""
        tip = await self.get_chain_tip(commitment)
        return tip.slot

    async def get_validity_window(
        self,
        commitment: Commitment = Commitment.PROCESSED,
    ) -> ValidityWindow:
        """
        Get a fresh validity window anchored at the current tip.

        Args:
            commitment: Level the reference block is read at

        Returns:
            Validity window for newly built transactions
        """
        tip = await self.get_chain_tip(commitment)
        return ValidityWindow(
            slot=tip.slot,
            block_hash=tip.block_hash,
            last_valid_slot=tip.slot + EXPIRY_MARGIN,
        )

    async def send_and_confirm(
        self,
        tx: Any,
        commitment: Commitment = Commitment.CONFIRMED,
        timeout_seconds: int = 120,
    ) -> Confirmation:
        """
        Submit a signed transaction and wait until it is confirmed.

        Args:
            tx: Signed transaction
            commitment: Level the transaction must reach
            timeout_seconds: Maximum time to wait for the confirmation

        Returns:
            The confirmation
        """
        tx_hash = await self.submit_transaction(tx)
        return await self.await_transaction_confirmation(
            tx_hash,
            timeout_seconds=timeout_seconds,
            commitment=commitment,
        )


class NodeConnectionError(Exception):
    """Raised when connection to node fails."""
    pass


class TransactionSubmitError(Exception):
    """Raised when transaction submission fails."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        tx_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.tx_id = tx_id


class TransactionRejectedError(TransactionSubmitError):
    """Raised when the ledger rejects a transaction's content."""
    pass


class ConfirmationTimeoutError(Exception):
    """Raised when a submitted transaction is not confirmed in time."""

    def __init__(self, tx_id: str, timeout_seconds: float):
        super().__init__(
            f"Transaction was not confirmed in {timeout_seconds} seconds: {tx_id}"
        )
        self.tx_id = tx_id
        self.timeout_seconds = timeout_seconds
