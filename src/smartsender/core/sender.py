"""
Smart Instruction Sender.

Delivers an ordered batch of instruction sets as transactions, strictly one
at a time, re-signing the unsent remainder of the batch whenever the
validity window the transactions were built against runs out.
"""

import asyncio
from typing import Any, Callable, List, Optional, Sequence

import structlog

from smartsender.config import SenderConfig, get_config
from smartsender.core.instruction import InstructionSet
from smartsender.core.state import DeliveryState, ItemOutcome
from smartsender.node.interface import (
    Confirmation,
    ConfirmationTimeoutError,
    NodeInterface,
    ValidityWindow,
)
from smartsender.tx.builder import CardanoTransactionFactory, TransactionFactory
from smartsender.tx.signer import SigningError, WalletSigner

logger = structlog.get_logger(__name__)


# (index, tx_id)
ProgressCallback = Callable[[int, str], None]
# (attempt, index)
ReSignCallback = Callable[[int, int], None]
# (error, successful_items, index, instruction_set)
FailureCallback = Callable[[Exception, int, int, InstructionSet], None]


class SendPreconditionError(Exception):
    """Raised before any network work when a send cannot start."""
    pass


class WalletNotConnectedError(SendPreconditionError):
    """Raised when the wallet has no address."""
    pass


class NoInstructionSetsError(SendPreconditionError):
    """Raised when there is nothing to send."""
    pass


class SenderConsumedError(RuntimeError):
    """Raised when a sender instance is asked to send a second time."""
    pass


class MaxSigningAttemptsReachedError(Exception):
    """Raised when a transaction keeps timing out after every allowed attempt."""

    def __init__(self, index: int, attempts: int):
        super().__init__(f"Item {index} not confirmed after {attempts} attempts")
        self.index = index
        self.attempts = attempts


class SmartInstructionSender:
    """
    Sends instruction sets as transactions, handling re-signing and window expiry.

    Transactions are submitted in input order and each one is confirmed
    before the next is sent. Confirmation timeouts are retried up to
    ``max_signing_attempts`` times; when the chain has moved past the
    validity window, the unsent part of the batch is rebuilt against a
    fresh window and handed to the wallet again in one call.

    Callback indices always refer to positions in the caller's list,
    including instruction sets that were skipped for being empty.

    Usage:
        ```python
        sender = (
            SmartInstructionSender.build(wallet, node)
            .with_instruction_sets(instruction_sets)
            .on_progress(lambda index, tx_id: print(index, tx_id))
        )
        await sender.send()
        ```
    """

    def __init__(
        self,
        wallet: WalletSigner,
        node: NodeInterface,
        factory: Optional[TransactionFactory] = None,
        config: Optional[SenderConfig] = None,
        instruction_sets: Optional[Sequence[InstructionSet]] = None,
    ):
        """
        Initialize the sender.

        Args:
            wallet: Signing authority that also pays the fees
            node: Node interface for submission and chain queries
            factory: Transaction factory (Cardano factory if not provided)
            config: Sender configuration
            instruction_sets: Instruction sets to deliver
        """
        self.wallet = wallet
        self.node = node
        self.factory = factory or CardanoTransactionFactory()
        self.config = config or get_config()
        self.instruction_sets: List[InstructionSet] = list(instruction_sets or [])

        self._on_progress: Optional[ProgressCallback] = None
        self._on_re_sign: Optional[ReSignCallback] = None
        self._on_failure: Optional[FailureCallback] = None

        self._state: Optional[DeliveryState] = None
        self._consumed = False

    @classmethod
    def build(
        cls,
        wallet: WalletSigner,
        node: NodeInterface,
        factory: Optional[TransactionFactory] = None,
        config: Optional[SenderConfig] = None,
    ) -> "SmartInstructionSender":
        """Create a new sender."""
        return cls(wallet, node, factory=factory, config=config)

    def with_config(self, config: SenderConfig) -> "SmartInstructionSender":
        """Set the configuration."""
        self.config = config
        return self

    def with_instruction_sets(
        self,
        instruction_sets: Sequence[InstructionSet],
    ) -> "SmartInstructionSender":
        """Set the instruction sets to deliver."""
        self.instruction_sets = list(instruction_sets)
        return self

    def on_progress(self, callback: ProgressCallback) -> "SmartInstructionSender":
        """Register callback for confirmed transactions."""
        self._on_progress = callback
        return self

    def on_re_sign(self, callback: ReSignCallback) -> "SmartInstructionSender":
        """Register callback for transactions being rebuilt and re-signed."""
        self._on_re_sign = callback
        return self

    def on_failure(self, callback: FailureCallback) -> "SmartInstructionSender":
        """Register callback for items that could not be delivered."""
        self._on_failure = callback
        return self

    @property
    def successful_items(self) -> int:
        """Number of confirmed transactions so far."""
        return self._state.successful_items if self._state else 0

    async def send(self) -> None:
        """
        Deliver every instruction set.

        Item failures are reported through the failure callback and never
        raised from here.

        Raises:
            WalletNotConnectedError: If the wallet has no address
            NoInstructionSetsError: If no instruction sets were given
            SenderConsumedError: If this sender was already used
        """
        if self.wallet.address is None:
            raise WalletNotConnectedError("Wallet not connected")
        if not self.instruction_sets:
            raise NoInstructionSetsError("No instruction sets to send")
        if self._consumed:
            raise SenderConsumedError("Sender already used, build a new one for each batch")
        self._consumed = True

        if all(instruction_set.is_empty for instruction_set in self.instruction_sets):
            logger.warning("nothing_to_send", instruction_sets=len(self.instruction_sets))
            return

        try:
            window = await self.node.get_validity_window(self.config.commitment)
            state = DeliveryState.from_instruction_sets(self.instruction_sets, window)
            state.transactions = await self._sign_batch(state.instruction_sets, window)
        except Exception as e:
            # Nothing can be delivered without a signed batch
            first = next(i for i, s in enumerate(self.instruction_sets) if not s.is_empty)
            logger.error("batch_preparation_failed", error=str(e), error_type=type(e).__name__)
            self._emit(self._on_failure, e, 0, first, self.instruction_sets[first])
            return

        self._state = state
        logger.info(
            "batch_prepared",
            size=state.size,
            skipped_empty=len(self.instruction_sets) - state.size,
            slot=window.slot,
        )

        for index in range(state.size):
            state.cursor = index
            try:
                await self._process_item(state, index)
            except Exception as e:
                abort = self.config.abort_on_failure
                state.outcomes[index] = (
                    ItemOutcome.SKIPPED_ABORT if abort else ItemOutcome.SKIPPED_CONTINUE
                )
                logger.error(
                    "item_failed",
                    index=state.source_indices[index],
                    error=str(e),
                    error_type=type(e).__name__,
                    successful_items=state.successful_items,
                    abort=abort,
                )
                self._emit(
                    self._on_failure,
                    e,
                    state.successful_items,
                    state.source_indices[index],
                    state.instruction_sets[index],
                )
                if abort:
                    break

        logger.info(
            "batch_finished",
            size=state.size,
            successful_items=state.successful_items,
        )

    async def _process_item(self, state: DeliveryState, index: int) -> None:
        """
        Deliver one item, retrying on confirmation timeouts.

        Raises the error that ended the item; anything but a timeout ends it
        immediately.
        """
        attempt = 0

        while True:
            attempt += 1
            try:
                if state.stale:
                    await self._refresh(state, index)
                confirmation = await self._deliver(state, index)
            except ConfirmationTimeoutError as e:
                if attempt >= self.config.max_signing_attempts:
                    raise MaxSigningAttemptsReachedError(state.source_indices[index], attempt) from e

                logger.warning(
                    "item_timeout",
                    index=state.source_indices[index],
                    attempt=attempt,
                    tx_id=e.tx_id,
                )
                await self._prepare_retry(state, index, attempt)
                continue

            self._record_success(state, index, confirmation)
            return

    async def _deliver(self, state: DeliveryState, index: int) -> Confirmation:
        """Submit the item's transaction and wait for its confirmation."""
        return await self.node.send_and_confirm(
            state.transactions[index],
            commitment=self.config.confirmation_commitment,
            timeout_seconds=self.config.confirmation_timeout_seconds,
        )

    def _record_success(
        self,
        state: DeliveryState,
        index: int,
        confirmation: Confirmation,
    ) -> None:
        state.outcomes[index] = ItemOutcome.SUCCESS
        self._emit(self._on_progress, state.source_indices[index], confirmation.tx_id)
        state.successful_items += 1

        logger.info(
            "item_confirmed",
            index=state.source_indices[index],
            tx_id=confirmation.tx_id,
            slot=confirmation.slot,
        )

        # Rebuild the rest before sending anything bound to a used-up window
        if state.window.is_exhausted(confirmation.slot) and state.has_items_after(index):
            logger.info(
                "window_exhausted",
                slot=confirmation.slot,
                exhausted_at=state.window.exhausted_at,
                remaining=state.size - index - 1,
            )
            state.stale = True

    async def _prepare_retry(self, state: DeliveryState, index: int, attempt: int) -> None:
        """Rebuild from the timed-out item if the chain has moved past the window."""
        if self.config.retry_delay_seconds:
            await asyncio.sleep(self.config.retry_delay_seconds)

        slot = await self.node.get_slot(self.config.commitment)
        if state.window.is_exhausted(slot):
            logger.info(
                "window_exhausted",
                slot=slot,
                exhausted_at=state.window.exhausted_at,
                remaining=state.size - index,
            )
            await self._refresh(state, index, attempt)

    async def _refresh(self, state: DeliveryState, start: int, attempt: int = 0) -> None:
        """Fetch a new window and rebuild the batch from ``start``."""
        window = await self.node.get_validity_window(self.config.commitment)
        await self._rebuild_from(state, start, window, attempt)

    async def _rebuild_from(
        self,
        state: DeliveryState,
        start: int,
        window: ValidityWindow,
        attempt: int = 0,
    ) -> None:
        """
        Rebuild and re-sign the unconfirmed suffix of the batch.

        Args:
            state: Delivery state holding the signed batch
            start: First batch index to rebuild
            window: Fresh validity window
            attempt: Attempt number reported to the re-sign callback
        """
        self._emit(self._on_re_sign, attempt, state.source_indices[start])

        logger.info(
            "rebuilding_transactions",
            index=state.source_indices[start],
            count=state.size - start,
            attempt=attempt,
            slot=window.slot,
        )

        signed = await self._sign_batch(state.instruction_sets[start:], window)
        state.splice(start, signed, window)

    async def _sign_batch(
        self,
        instruction_sets: Sequence[InstructionSet],
        window: ValidityWindow,
    ) -> List[Any]:
        """Build, co-sign and wallet-sign one transaction per instruction set."""
        unsigned = []
        for instruction_set in instruction_sets:
            tx = self.factory.build(
                instruction_set.instructions,
                window,
                self.wallet.address,
                signers=instruction_set.signers,
            )
            if instruction_set.signers:
                tx = self.factory.partial_sign(tx, instruction_set.signers)
            unsigned.append(tx)

        signed = list(await self.wallet.sign_all(unsigned))
        if len(signed) != len(unsigned):
            raise SigningError(
                f"Wallet returned {len(signed)} signed transactions for {len(unsigned)}"
            )
        return signed

    def _emit(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.warning(
                "callback_failed",
                callback=getattr(callback, "__name__", repr(callback)),
                error=str(e),
            )

    def get_stats(self) -> dict:
        """Get delivery statistics."""
        state = self._state
        return {
            "consumed": self._consumed,
            "instruction_sets": len(self.instruction_sets),
            "batch_size": state.size if state else 0,
            "successful_items": self.successful_items,
            "failed_items": (
                state.count(ItemOutcome.SKIPPED_ABORT) + state.count(ItemOutcome.SKIPPED_CONTINUE)
                if state else 0
            ),
            "cursor": state.cursor if state else None,
            "window_slot": state.window.slot if state else None,
        }
