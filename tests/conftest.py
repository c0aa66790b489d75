"""
Pytest configuration and shared fixtures for the test suite.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pytest

from smartsender.config import Commitment, SenderConfig
from smartsender.core.instruction import InstructionSet
from smartsender.core.sender import SmartInstructionSender
from smartsender.node.interface import (
    ChainTip,
    Confirmation,
    ConfirmationTimeoutError,
    NodeConnectionError,
    NodeInterface,
    TransactionRejectedError,
    ValidityWindow,
)
from smartsender.tx.builder import TransactionFactory
from smartsender.tx.signer import SigningError, WalletSigner


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> SenderConfig:
    """Create a test configuration."""
    return SenderConfig(
        max_signing_attempts=3,
        abort_on_failure=True,
        retry_delay_seconds=0,
        confirmation_timeout_seconds=1,
        blockfrost_project_id="test_project_id",
        blockfrost_base_url="https://blockfrost.test",
        log_level="DEBUG",
    )


@pytest.fixture
def continue_config(test_config) -> SenderConfig:
    """Test configuration that keeps going after failures."""
    return test_config.model_copy(update={"abort_on_failure": False})


# ============================================================================
# Fake Transactions
# ============================================================================

@dataclass(frozen=True)
class FakeTransaction:
    """Transaction stand-in that remembers what it was built from."""
    label: str
    block_hash: str
    fee_payer: Any
    cosigners: Tuple[Any, ...] = ()
    signed: bool = False

    @property
    def tx_id(self) -> str:
        return f"{self.label}@{self.block_hash}"


class FakeTransactionFactory(TransactionFactory):
    """Builds FakeTransactions labelled after their instructions."""

    def build(
        self,
        instructions: Sequence[Any],
        window: ValidityWindow,
        fee_payer: Any,
        signers: Sequence[Any] = (),
    ) -> FakeTransaction:
        return FakeTransaction(
            label="+".join(instructions),
            block_hash=window.block_hash,
            fee_payer=fee_payer,
        )

    def partial_sign(self, tx: FakeTransaction, signers: Sequence[Any]) -> FakeTransaction:
        return replace(tx, cosigners=tx.cosigners + tuple(signers))


class FakeWallet(WalletSigner):
    """Wallet that records every batch it is asked to sign."""

    def __init__(self, address: Optional[str] = "addr_test_wallet"):
        self._address = address
        self.calls: List[List[str]] = []
        self.fail_on_calls: Set[int] = set()
        self.drop_last = False

    @property
    def address(self) -> Optional[str]:
        return self._address

    async def sign_all(self, transactions: List[FakeTransaction]) -> List[FakeTransaction]:
        self.calls.append([tx.label for tx in transactions])
        if len(self.calls) in self.fail_on_calls:
            raise SigningError("User rejected the request")

        signed = [replace(tx, signed=True) for tx in transactions]
        return signed[:-1] if self.drop_last else signed


# ============================================================================
# Scripted Node Interface
# ============================================================================

OK = "ok"
TIMEOUT = "timeout"
REJECT = "reject"
TRANSPORT = "transport"


def ok(slot: Optional[int] = None) -> Tuple[str, Optional[int]]:
    """Confirm, optionally moving the chain to ``slot`` first."""
    return (OK, slot)


def timeout(slot: Optional[int] = None) -> Tuple[str, Optional[int]]:
    """Time out, optionally moving the chain to ``slot`` first."""
    return (TIMEOUT, slot)


def reject() -> Tuple[str, Optional[int]]:
    """Ledger rejects the transaction."""
    return (REJECT, None)


def transport_error() -> Tuple[str, Optional[int]]:
    """Connection drops while confirming."""
    return (TRANSPORT, None)


class ScriptedNode(NodeInterface):
    """
    Node whose confirmation results are scripted per transaction label.

    Each submission of a label consumes the next scripted outcome; labels
    without a script (or with an exhausted one) confirm at the current slot.
    """

    def __init__(self, slot: int = 1000):
        self.slot = slot
        self.outcomes: Dict[str, List[Tuple[str, Optional[int]]]] = {}
        self.submitted: List[FakeTransaction] = []
        self.window_fetches = 0
        self.slot_queries = 0
        self.connected = False

    def script(self, label: str, *outcomes: Tuple[str, Optional[int]]) -> None:
        self.outcomes[label] = list(outcomes)

    def attempts(self, label: str) -> int:
        return sum(1 for tx in self.submitted if tx.label == label)

    @property
    def submitted_labels(self) -> List[str]:
        return [tx.label for tx in self.submitted]

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def get_chain_tip(self, commitment: Commitment = Commitment.PROCESSED) -> ChainTip:
        return ChainTip(slot=self.slot, block_hash=f"hash-{self.slot}", block_height=self.slot // 20)

    async def get_slot(self, commitment: Commitment = Commitment.PROCESSED) -> int:
        self.slot_queries += 1
        return await super().get_slot(commitment)

    async def get_validity_window(self, commitment: Commitment = Commitment.PROCESSED) -> ValidityWindow:
        self.window_fetches += 1
        return await super().get_validity_window(commitment)

    async def submit_transaction(self, tx: FakeTransaction) -> str:
        self.submitted.append(tx)
        return tx.tx_id

    async def await_transaction_confirmation(
        self,
        tx_hash: str,
        timeout_seconds: int = 120,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> Confirmation:
        label = tx_hash.split("@")[0]
        queue = self.outcomes.get(label) or []
        kind, slot = queue.pop(0) if queue else (OK, None)

        if slot is not None:
            self.slot = slot

        if kind == TIMEOUT:
            raise ConfirmationTimeoutError(tx_hash, timeout_seconds)
        if kind == REJECT:
            raise TransactionRejectedError("Transaction conflicts with a spent input", tx_id=tx_hash)
        if kind == TRANSPORT:
            raise NodeConnectionError("Connection reset by peer")

        return Confirmation(tx_id=tx_hash, slot=self.slot)


# ============================================================================
# Callback Recorder
# ============================================================================

class CallbackRecorder:
    """Collects every callback the sender fires."""

    def __init__(self):
        self.progress: List[Tuple[int, str]] = []
        self.re_sign: List[Tuple[int, int]] = []
        self.failures: List[Tuple[Exception, int, int, InstructionSet]] = []

    def attach(self, sender: SmartInstructionSender) -> SmartInstructionSender:
        return (
            sender
            .on_progress(lambda index, tx_id: self.progress.append((index, tx_id)))
            .on_re_sign(lambda attempt, index: self.re_sign.append((attempt, index)))
            .on_failure(
                lambda error, successful, index, instruction_set: self.failures.append(
                    (error, successful, index, instruction_set)
                )
            )
        )

    @property
    def progress_indices(self) -> List[int]:
        return [index for index, _ in self.progress]


# ============================================================================
# Test Data Generators
# ============================================================================

def make_sets(*labels: Optional[str]) -> List[InstructionSet]:
    """One instruction set per label; None makes an empty set."""
    return [
        InstructionSet(instructions=[label]) if label is not None else InstructionSet()
        for label in labels
    ]


@pytest.fixture
def node() -> ScriptedNode:
    """Create a scripted node at slot 1000."""
    return ScriptedNode(slot=1000)


@pytest.fixture
def wallet() -> FakeWallet:
    """Create a fake wallet."""
    return FakeWallet()


@pytest.fixture
def recorder() -> CallbackRecorder:
    """Create a callback recorder."""
    return CallbackRecorder()


@pytest.fixture
def make_sender(wallet, node, test_config, recorder):
    """Factory for senders wired to the fakes and the recorder."""

    def _make(instruction_sets, config: Optional[SenderConfig] = None) -> SmartInstructionSender:
        sender = SmartInstructionSender.build(
            wallet,
            node,
            factory=FakeTransactionFactory(),
            config=config or test_config,
        ).with_instruction_sets(instruction_sets)
        return recorder.attach(sender)

    return _make
