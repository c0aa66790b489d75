"""
Transaction Factory - turns instruction lists into transactions.

Builds one transaction per instruction set, bound to a validity window,
and lets co-signers add their signatures before the wallet signs.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Sequence

import structlog

from pycardano import (
    Address,
    PaymentSigningKey,
    PaymentVerificationKey,
    Transaction,
    TransactionBody,
    TransactionInput,
    TransactionOutput,
    TransactionWitnessSet,
    UTxO,
    Value,
)

from smartsender.node.interface import ValidityWindow
from smartsender.tx.signer import add_vkey_witnesses

logger = structlog.get_logger(__name__)


class TransactionBuildError(Exception):
    """Raised when transaction construction fails."""
    pass


class TransactionFactory(ABC):
    """
    Builds transactions from opaque instructions.

    Implementations decide what an instruction is; the sender only hands
    them over together with the window and the fee payer.
    """

    @abstractmethod
    def build(
        self,
        instructions: Sequence[Any],
        window: ValidityWindow,
        fee_payer: Any,
        signers: Sequence[Any] = (),
    ) -> Any:
        """
        Build an unsigned transaction.

        Args:
            instructions: Instructions of one instruction set
            window: Validity window the transaction is bound to
            fee_payer: Identity paying for the transaction
            signers: Co-signers that will sign before the wallet

        Returns:
            Unsigned transaction
        """
        pass

    @abstractmethod
    def partial_sign(self, tx: Any, signers: Sequence[Any]) -> Any:
        """
        Add co-signer signatures to a transaction.

        Args:
            tx: Transaction to sign
            signers: Co-signers required by the instruction set

        Returns:
            Partially signed transaction
        """
        pass


class CardanoTransactionFactory(TransactionFactory):
    """
    Builds balanced Cardano transactions with PyCardano.

    Instructions are ``UTxO`` objects to spend and ``TransactionOutput``
    objects to create. Inputs are spent in full: whatever the outputs and
    the fee leave over goes back to the fee payer as a change output, or
    into the fee when it is too small for an output of its own. The
    transaction's ``ttl`` comes from the validity window and the fee payer
    plus every co-signer are listed as required signers.
    """

    def __init__(
        self,
        min_fee_a: int = 44,
        min_fee_b: int = 155381,
        min_change: int = 1_000_000,
    ):
        """
        Initialize the factory.

        Args:
            min_fee_a: Fee coefficient (per byte)
            min_fee_b: Fee constant
            min_change: Smallest change worth its own output (min UTxO value)
        """
        self.min_fee_a = min_fee_a
        self.min_fee_b = min_fee_b
        self.min_change = min_change

    def build(
        self,
        instructions: Sequence[Any],
        window: ValidityWindow,
        fee_payer: Address,
        signers: Sequence[PaymentSigningKey] = (),
    ) -> Transaction:
        utxos: List[UTxO] = []
        outputs: List[TransactionOutput] = []

        for instruction in instructions:
            if isinstance(instruction, UTxO):
                utxos.append(instruction)
            elif isinstance(instruction, TransactionOutput):
                outputs.append(instruction)
            elif isinstance(instruction, TransactionInput):
                raise TransactionBuildError(
                    f"Input {instruction} has no known value, pass it as a UTxO"
                )
            else:
                raise TransactionBuildError(
                    f"Unsupported instruction type: {type(instruction).__name__}"
                )

        if not utxos:
            raise TransactionBuildError("Transaction needs at least one input")

        total_input = Value(0)
        for utxo in utxos:
            total_input += utxo.output.amount

        total_output = Value(0)
        for output in outputs:
            total_output += output.amount

        # Size the fee as if a change output will be added
        fee = self._estimate_fee(len(utxos), len(outputs) + 1, 1 + len(signers))
        leftover = total_input - total_output
        change = leftover.coin - fee

        if change < 0:
            raise TransactionBuildError(
                f"Insufficient input value: {total_input.coin} lovelace in, "
                f"{total_output.coin} out plus {fee} fee"
            )

        if change >= self.min_change or leftover.multi_asset:
            if change < self.min_change:
                raise TransactionBuildError(
                    f"Change of {change} lovelace cannot carry the leftover assets"
                )
            outputs.append(TransactionOutput(fee_payer, Value(change, leftover.multi_asset)))
        else:
            fee += change

        required = [fee_payer.payment_part]
        for signing_key in signers:
            key_hash = PaymentVerificationKey.from_signing_key(signing_key).hash()
            if key_hash not in required:
                required.append(key_hash)

        tx_body = TransactionBody(
            inputs=[utxo.input for utxo in utxos],
            outputs=outputs,
            fee=fee,
            ttl=window.last_valid_slot,
            required_signers=required,
        )

        logger.debug(
            "transaction_built",
            inputs=len(utxos),
            outputs=len(outputs),
            fee=fee,
            ttl=window.last_valid_slot,
        )

        return Transaction(tx_body, TransactionWitnessSet())

    def partial_sign(
        self,
        tx: Transaction,
        signers: Sequence[PaymentSigningKey],
    ) -> Transaction:
        # Co-signers must be listed as required signers before anyone signs the body
        body = tx.transaction_body
        required = list(body.required_signers or [])
        for signing_key in signers:
            key_hash = PaymentVerificationKey.from_signing_key(signing_key).hash()
            if key_hash not in required:
                required.append(key_hash)
        body.required_signers = required

        return add_vkey_witnesses(tx, signers)

    def _estimate_fee(self, num_inputs: int, num_outputs: int, num_witnesses: int = 1) -> int:
        """
        Estimate transaction fee.

        This is a simplified estimation based on a rough serialized size.

        Args:
            num_inputs: Number of inputs
            num_outputs: Number of outputs
            num_witnesses: Number of signatures the transaction will carry

        Returns:
            Estimated fee in lovelace
        """
        base_size = 200  # Base transaction overhead
        input_size = 40 * num_inputs
        output_size = 65 * num_outputs
        witness_size = 150 * num_witnesses

        total_size = base_size + input_size + output_size + witness_size

        fee = self.min_fee_a * total_size + self.min_fee_b

        # Add 20% margin
        return int(fee * 1.2)
