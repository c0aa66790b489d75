"""
Smart Sender

Delivers ordered batches of transactions to a ledger whose transactions expire
after a short validity window. Transactions are sent one by one, timeouts are
retried, and the unsent remainder of a batch is re-signed in a single wallet
call whenever the window runs out.
"""

__version__ = "0.1.0"

from smartsender.core.instruction import InstructionSet
from smartsender.core.sender import SmartInstructionSender
from smartsender.core.state import ItemOutcome

__all__ = [
    "InstructionSet",
    "ItemOutcome",
    "SmartInstructionSender",
]
