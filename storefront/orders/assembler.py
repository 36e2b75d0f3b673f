"""Checkout: turn the cart into an order and submit it."""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from storefront.auth.executor import AuthenticatedRequestExecutor, read_envelope
from storefront.cart.models import Cart, PriceLookup
from storefront.cart.service import CartStore
from storefront.errors import (
    ERROR_CART_EMPTY,
    ERROR_NO_VALID_ITEMS,
    ERROR_PAYMENT_METHOD_REQUIRED,
    EmptyCart,
    ValidationError,
)
from storefront.logging import get_logger
from storefront.models import Order, OrderLine, OrderStatus, ShippingAddress
from .pricing import OrderTotals, compute_totals

logger = get_logger(__name__)


def _method_value(payment_method: Union[str, Enum]) -> str:
    if isinstance(payment_method, Enum):
        return str(payment_method.value)
    return str(payment_method or "").strip()


def _invalid_fields(error: PydanticValidationError) -> List[str]:
    """Field names (not aliases) from a pydantic error, in report order."""
    by_alias = {info.alias: name for name, info in ShippingAddress.model_fields.items() if info.alias}
    fields: List[str] = []
    for detail in error.errors():
        loc = detail.get("loc") or ("shipping_address",)
        name = by_alias.get(str(loc[0]), str(loc[0]))
        if name not in fields:
            fields.append(name)
    return fields


@dataclass(frozen=True)
class AssembledOrder:
    """Order lines and totals ready for submission."""
    lines: List[OrderLine]
    totals: OrderTotals
    dropped_count: int = 0
    # Cart contents the order was built from
    cart_items: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PlacedOrder:
    """Result of a confirmed submission."""
    order: Order
    dropped_count: int = 0


class OrderAssembler:
    """Builds the order payload from CartStore and clears the cart only after success."""

    def __init__(self, executor: AuthenticatedRequestExecutor, cart_store: CartStore):
        self.executor = executor
        self.cart_store = cart_store

    @staticmethod
    def validate(
        shipping_address: Union[ShippingAddress, Mapping[str, Any]],
        payment_method: Union[str, Enum],
    ) -> ShippingAddress:
        """
        Check required checkout fields.

        Raises:
            ValidationError: naming the missing or malformed fields
        """
        if isinstance(shipping_address, ShippingAddress):
            address = shipping_address
        elif isinstance(shipping_address, Mapping):
            try:
                address = ShippingAddress.model_validate(dict(shipping_address))
            except PydanticValidationError as e:
                raise ValidationError(fields=_invalid_fields(e)) from e
        else:
            raise ValidationError(fields=list(ShippingAddress.REQUIRED_FIELDS))

        missing = address.missing_fields()
        if missing:
            raise ValidationError(fields=missing)
        if not _method_value(payment_method):
            raise ValidationError(ERROR_PAYMENT_METHOD_REQUIRED, fields=["payment_method"])
        return address

    def check_not_empty(self, price_lookup: PriceLookup) -> Cart:
        """
        Raises:
            EmptyCart: no lines, or none the lookup can price

        Returns:
            The cart that was checked
        """
        cart = self.cart_store.cart
        if cart.is_empty:
            raise EmptyCart(ERROR_CART_EMPTY)
        if cart.total_amount(price_lookup) == 0:
            raise EmptyCart(ERROR_NO_VALID_ITEMS)
        return cart

    def assemble(self, price_lookup: PriceLookup) -> AssembledOrder:
        """
        Build order lines from the cart.

        Products the lookup cannot resolve are dropped (never priced at zero)
        and counted in dropped_count.

        Raises:
            EmptyCart: nothing orderable in the cart
        """
        return self._build(self.check_not_empty(price_lookup), price_lookup)

    @staticmethod
    def _build(cart: Cart, price_lookup: PriceLookup) -> AssembledOrder:
        lines: List[OrderLine] = []
        dropped = 0
        for product_id, quantity in cart.items.items():
            price = price_lookup(product_id)
            if price is None:
                dropped += 1
                continue
            lines.append(OrderLine(product_id=product_id, quantity=quantity, unit_price_snapshot=price))

        if dropped:
            logger.warning("Dropped %d unknown product(s) from order", dropped)

        subtotal = sum((line.line_total for line in lines), Decimal("0"))
        return AssembledOrder(
            lines=lines, totals=compute_totals(subtotal), dropped_count=dropped, cart_items=cart.to_dict()
        )

    async def place_order(
        self,
        shipping_address: Union[ShippingAddress, Mapping[str, Any]],
        payment_method: Union[str, Enum],
        price_lookup: PriceLookup,
        notes: str = "",
    ) -> PlacedOrder:
        """
        Submit the cart as an order.

        Only after the backend confirms the order are the submitted
        quantities taken out of the cart (locally and remotely); items added
        while the request was in flight stay. Any failure leaves the cart
        untouched.

        Raises:
            EmptyCart / ValidationError: before any network call
            RemoteError / NetworkError / SessionExpired: submission failed
        """
        cart = self.check_not_empty(price_lookup)
        address = self.validate(shipping_address, payment_method)
        assembled = self._build(cart, price_lookup)

        payload = {
            "items": [line.to_payload() for line in assembled.lines],
            "shippingAddress": address.to_payload(),
            "paymentMethod": _method_value(payment_method),
            "notes": notes or "",
            **assembled.totals.to_payload(),
        }

        response = await self.executor.request("POST", "/orders", json=payload)
        data = read_envelope(response)
        created = data.get("order") if isinstance(data.get("order"), dict) else data

        self.cart_store.remove_submitted(assembled.cart_items)

        totals = assembled.totals
        order_id = created.get("_id") or created.get("id")
        order = Order(
            id=str(order_id) if order_id else None,
            items=assembled.lines,
            shipping_address=address,
            payment_method=_method_value(payment_method),
            subtotal=totals.subtotal,
            delivery_fee=totals.delivery_fee,
            platform_fee=totals.platform_fee,
            gst=totals.gst,
            total=totals.total,
            status=str(created.get("orderStatus") or created.get("status") or OrderStatus.PENDING.value),
            notes=notes or "",
        )
        logger.info("Order %s placed: %d line(s), total %s", order.id or "?", len(order.items), order.total)
        return PlacedOrder(order=order, dropped_count=assembled.dropped_count)
