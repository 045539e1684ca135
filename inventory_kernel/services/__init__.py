"""Kernel services.  Flush-only: the caller owns every transaction."""

from inventory_kernel.services.base import BaseService
from inventory_kernel.services.movement_ledger import MovementLedger
from inventory_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "BaseService",
    "MovementLedger",
    "SequenceCounter",
    "SequenceService",
]
