"""
Core delivery components.

This module contains the instruction set model, the per-send delivery
state and the smart instruction sender that drives delivery.
"""

from smartsender.core.instruction import InstructionSet
from smartsender.core.state import DeliveryState, ItemOutcome
from smartsender.core.sender import (
    MaxSigningAttemptsReachedError,
    NoInstructionSetsError,
    SendPreconditionError,
    SenderConsumedError,
    SmartInstructionSender,
    WalletNotConnectedError,
)

__all__ = [
    "InstructionSet",
    "DeliveryState",
    "ItemOutcome",
    "MaxSigningAttemptsReachedError",
    "NoInstructionSetsError",
    "SendPreconditionError",
    "SenderConsumedError",
    "SmartInstructionSender",
    "WalletNotConnectedError",
]
