"""Checkout fees and tax."""
from dataclasses import dataclass
from decimal import Decimal

from storefront.services.money import Number, percent, round_money, to_decimal, to_wire

FREE_DELIVERY_THRESHOLD = Decimal("500")  # strictly above this, delivery is free
DELIVERY_FEE = Decimal("40")
PLATFORM_FEE = Decimal("5")
GST_PERCENT = Decimal("5")


@dataclass(frozen=True)
class OrderTotals:
    """Breakdown shown at checkout and sent with the order."""
    subtotal: Decimal
    delivery_fee: Decimal
    platform_fee: Decimal
    gst: Decimal
    total: Decimal

    def to_payload(self) -> dict:
        return {
            "subtotal": to_wire(self.subtotal),
            "deliveryFee": to_wire(self.delivery_fee),
            "platformFee": to_wire(self.platform_fee),
            "gst": to_wire(self.gst),
            "totalAmount": to_wire(self.total),
        }


def delivery_fee_for(subtotal: Number) -> Decimal:
    return Decimal("0") if to_decimal(subtotal) > FREE_DELIVERY_THRESHOLD else DELIVERY_FEE


def compute_totals(subtotal: Number) -> OrderTotals:
    """
    Compute fees for a subtotal.

    GST is 5% rounded half-up to whole rupees (12.5 -> 13).

    Example:
        subtotal 250 -> delivery 40, platform 5, gst 13, total 308
    """
    amount = to_decimal(subtotal)
    delivery = delivery_fee_for(amount)
    gst = round_money(percent(amount, GST_PERCENT), to_int=True)
    return OrderTotals(
        subtotal=amount,
        delivery_fee=delivery,
        platform_fee=PLATFORM_FEE,
        gst=gst,
        total=amount + delivery + PLATFORM_FEE + gst,
    )
