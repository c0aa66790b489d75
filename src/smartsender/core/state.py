"""
Delivery state.

Mutable per-send state shared by the batch builder, the delivery loop
and the retry controller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from smartsender.core.instruction import InstructionSet
from smartsender.node.interface import ValidityWindow


class ItemOutcome(str, Enum):
    """Terminal state of one batch item."""
    SUCCESS = "success"
    SKIPPED_ABORT = "skipped_abort"           # Failed, rest of the batch abandoned
    SKIPPED_CONTINUE = "skipped_continue"     # Failed, batch carried on


@dataclass
class DeliveryState:
    """
    State of one send call.

    ``transactions`` and ``instruction_sets`` are index-aligned and only
    contain non-empty sets; ``source_indices`` maps each position back to
    the caller's list.

    Attributes:
        window: Window the unconfirmed suffix is bound to
        instruction_sets: Non-empty instruction sets, in order
        source_indices: Input index of every entry
        transactions: Signed batch
        successful_items: Number of confirmed items
        cursor: Index of the item being delivered
        stale: Window was found exhausted and the suffix needs rebuilding
        outcomes: Terminal outcome per batch index
    """

    window: ValidityWindow
    instruction_sets: List[InstructionSet]
    source_indices: List[int]
    transactions: List[Any] = field(default_factory=list)
    successful_items: int = 0
    cursor: int = 0
    stale: bool = False
    outcomes: Dict[int, ItemOutcome] = field(default_factory=dict)

    @classmethod
    def from_instruction_sets(
        cls,
        instruction_sets: List[InstructionSet],
        window: ValidityWindow,
    ) -> "DeliveryState":
        """Create state for the non-empty sets of a caller's list."""
        kept = [
            (index, instruction_set)
            for index, instruction_set in enumerate(instruction_sets)
            if not instruction_set.is_empty
        ]
        return cls(
            window=window,
            instruction_sets=[instruction_set for _, instruction_set in kept],
            source_indices=[index for index, _ in kept],
        )

    @property
    def size(self) -> int:
        """Number of transactions in the batch."""
        return len(self.instruction_sets)

    def has_items_after(self, index: int) -> bool:
        """Check if unsent items follow the given index."""
        return index + 1 < self.size

    def splice(self, start: int, signed: List[Any], window: ValidityWindow) -> None:
        """Replace the suffix from ``start`` with transactions signed against ``window``."""
        self.transactions[start:start + len(signed)] = signed
        self.window = window
        self.stale = False

    def count(self, outcome: ItemOutcome) -> int:
        """Number of items that ended in the given outcome."""
        return sum(1 for value in self.outcomes.values() if value == outcome)
