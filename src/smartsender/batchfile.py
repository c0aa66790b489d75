"""
Batch file loading.

Reads a JSON list of instruction sets and turns it into PyCardano objects:

    [
        {
            "inputs": [{"ref": "<tx_hash>#<index>", "lovelace": 5000000}],
            "outputs": [{"address": "addr_test1...", "lovelace": 2000000}],
            "signers": ["keys/cosigner.skey"]
        }
    ]

Inputs are spent in full, so each one states the lovelace it holds. An
input's ``address`` defaults to the owner passed to the loader, normally
the wallet paying the fees.
"""

import json
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import BaseModel, Field, TypeAdapter, field_validator

from pycardano import (
    Address,
    PaymentSigningKey,
    TransactionId,
    TransactionInput,
    TransactionOutput,
    UTxO,
    Value,
)

from smartsender.core.instruction import InstructionSet

logger = structlog.get_logger(__name__)


class BatchFileError(Exception):
    """Raised when a batch file cannot be read."""
    pass


class InputEntry(BaseModel):
    """An output to spend."""
    ref: str
    lovelace: int = Field(ge=0)
    address: Optional[str] = None

    @field_validator("ref")
    @classmethod
    def check_ref(cls, value: str) -> str:
        tx_hash, sep, index = value.partition("#")
        if not sep or len(tx_hash) != 64 or not index.isdigit():
            raise ValueError(f"Invalid input reference: {value}")
        return value

    def to_utxo(self, owner: Optional[Address]) -> UTxO:
        tx_hash, _, index = self.ref.partition("#")
        if self.address:
            address = Address.from_primitive(self.address)
        elif owner is not None:
            address = owner
        else:
            raise BatchFileError(f"Input {self.ref} has no address and no owner was given")

        return UTxO(
            TransactionInput(TransactionId.from_primitive(tx_hash), int(index)),
            TransactionOutput(address, Value(self.lovelace)),
        )


class OutputEntry(BaseModel):
    """A payment to create."""
    address: str
    lovelace: int = Field(ge=0)


class InstructionSetEntry(BaseModel):
    """One instruction set as written in a batch file."""
    inputs: List[InputEntry] = Field(default_factory=list)
    outputs: List[OutputEntry] = Field(default_factory=list)
    signers: List[str] = Field(default_factory=list)

    def to_instruction_set(self, base_dir: Path, owner: Optional[Address] = None) -> InstructionSet:
        """Convert to an InstructionSet, loading co-signer keys relative to ``base_dir``."""
        instructions = [entry.to_utxo(owner) for entry in self.inputs]
        for output in self.outputs:
            instructions.append(
                TransactionOutput(Address.from_primitive(output.address), Value(output.lovelace))
            )

        signers = []
        for key_path in self.signers:
            path = Path(key_path)
            if not path.is_absolute():
                path = base_dir / path
            if not path.exists():
                raise BatchFileError(f"Signing key file not found: {path}")
            signers.append(PaymentSigningKey.load(str(path)))

        return InstructionSet(instructions=instructions, signers=signers)


_entries_adapter = TypeAdapter(List[InstructionSetEntry])


def load_instruction_sets(path: str, owner: Optional[Address] = None) -> List[InstructionSet]:
    """
    Load instruction sets from a batch file.

    Args:
        path: Path to the JSON batch file
        owner: Address of inputs that do not name one

    Returns:
        Instruction sets in file order, empty entries included

    Raises:
        BatchFileError: If the file is missing or malformed
    """
    batch_path = Path(path)
    if not batch_path.exists():
        raise BatchFileError(f"Batch file not found: {path}")

    try:
        raw = json.loads(batch_path.read_text())
        entries = _entries_adapter.validate_python(raw)
    except ValueError as e:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        raise BatchFileError(f"Invalid batch file {path}: {e}")

    try:
        instruction_sets = [
            entry.to_instruction_set(batch_path.parent, owner) for entry in entries
        ]
    except BatchFileError:
        raise
    except Exception as e:
        raise BatchFileError(f"Invalid batch file {path}: {e}")

    logger.info("batch_file_loaded", path=path, instruction_sets=len(instruction_sets))
    return instruction_sets
