"""
Instruction Set model.

One caller-defined unit of work that becomes exactly one transaction.
"""

from dataclasses import dataclass, field
from typing import Any, Tuple


@dataclass(frozen=True)
class InstructionSet:
    """
    Instructions and the co-signers that must authorize them.

    Attributes:
        instructions: Opaque instructions, in order
        signers: Co-signers besides the wallet (may be empty)
    """

    instructions: Tuple[Any, ...] = field(default_factory=tuple)
    signers: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """Freeze list arguments into tuples."""
        object.__setattr__(self, "instructions", tuple(self.instructions))
        object.__setattr__(self, "signers", tuple(self.signers))

    @property
    def is_empty(self) -> bool:
        """Check if the set carries no instructions."""
        return len(self.instructions) == 0
