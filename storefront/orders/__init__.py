"""Orders package: pricing, checkout assembly and order history."""
from .pricing import OrderTotals, compute_totals
from .assembler import AssembledOrder, OrderAssembler, PlacedOrder
from .service import OrderService

__all__ = [
    "OrderTotals",
    "compute_totals",
    "AssembledOrder",
    "OrderAssembler",
    "PlacedOrder",
    "OrderService",
]
