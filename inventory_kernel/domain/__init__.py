"""Pure domain core: vocabularies, DTOs, costing, stock guard, numbering, clock."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.costing import weighted_average
from inventory_kernel.domain.numbering import (
    format_document_number,
    parse_document_number,
)
from inventory_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from inventory_kernel.domain.stock_guard import StockCheck, check_stock
from inventory_kernel.domain.values import (
    DocumentPrefix,
    KardexLine,
    KardexSummary,
    MovementDirection,
    MovementFilter,
    MovementPage,
    MovementReason,
    MovementRecord,
    MovementStats,
    ProductType,
    ReferenceType,
    ReplayResult,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "weighted_average",
    "DEFAULT_POLICY",
    "LedgerPolicy",
    "format_document_number",
    "parse_document_number",
    "StockCheck",
    "check_stock",
    "DocumentPrefix",
    "KardexLine",
    "KardexSummary",
    "MovementDirection",
    "MovementFilter",
    "MovementPage",
    "MovementReason",
    "MovementRecord",
    "MovementStats",
    "ProductType",
    "ReferenceType",
    "ReplayResult",
]
