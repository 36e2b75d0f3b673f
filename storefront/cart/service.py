"""Cart store: local, persisted, optimistic cart with remote mirroring."""
import json
from decimal import Decimal
from typing import Dict, Mapping, Optional

from storefront.logging import get_logger, sanitize_id_for_logging
from .mirror import CartMirror, CartOperation
from .models import Cart, PriceLookup
from .storage import KeyValueStorage, StorageKeys

logger = get_logger(__name__)


class CartStore:
    """
    Sole owner of the in-memory cart.

    Features:
    - Every mutation applies to local state synchronously and persists
      before returning
    - Remote mirroring goes through the CartMirror outbox and never blocks
    - Mirror failures are logged, never rolled back (local state wins
      while offline)
    """

    def __init__(self, storage: KeyValueStorage, mirror: Optional[CartMirror] = None):
        self._storage = storage
        self._mirror = mirror
        self._cart = self._load()

    def _load(self) -> Cart:
        """Rebuild the cart from persisted storage."""
        data = self._storage.get(StorageKeys.CART)
        if not data:
            return Cart()

        try:
            raw = json.loads(data)
            if not isinstance(raw, dict):
                raise TypeError(f"expected object, got {type(raw).__name__}")
            cart = Cart.from_dict(raw)
        except (json.JSONDecodeError, TypeError) as e:
            # Corrupted data - clear it and start empty
            logger.warning("Corrupted persisted cart: %s", e)
            self._storage.delete(StorageKeys.CART)
            return Cart()

        if len(cart.items) != len(raw):
            logger.warning("Dropped %d invalid cart entries", len(raw) - len(cart.items))
        return cart

    def _save(self) -> None:
        self._storage.set(StorageKeys.CART, json.dumps(self._cart.to_dict()))

    def _mirror_op(self, operation: CartOperation) -> None:
        if self._mirror is not None:
            self._mirror.submit(operation)

    @property
    def cart(self) -> Cart:
        """Read-only copy of the current cart."""
        return Cart(items=self._cart.to_dict())

    def snapshot(self) -> Dict[str, int]:
        return self._cart.to_dict()

    def quantity(self, product_id: str) -> int:
        return self._cart.quantity(product_id)

    def add_item(self, product_id: str) -> int:
        """
        Add one unit of a product.

        Returns:
            New quantity of the product
        """
        if not product_id or not isinstance(product_id, str):
            raise ValueError("product_id must be a non-empty string")

        quantity = self._cart.quantity(product_id) + 1
        self._cart.items[product_id] = quantity
        self._save()
        self._mirror_op(CartOperation.add(product_id, 1))
        return quantity

    def remove_item(self, product_id: str, remove_all: bool = False) -> int:
        """
        Remove one unit (or every unit) of a product.

        Returns:
            Remaining quantity of the product (0 when the entry is gone)
        """
        if not product_id or not isinstance(product_id, str):
            raise ValueError("product_id must be a non-empty string")

        current = self._cart.quantity(product_id)
        if current == 0:
            return 0

        if remove_all or current == 1:
            del self._cart.items[product_id]
            self._save()
            self._mirror_op(CartOperation.remove(product_id))
            return 0

        quantity = current - 1
        self._cart.items[product_id] = quantity
        self._save()
        self._mirror_op(CartOperation.update(product_id, quantity))
        return quantity

    def clear(self) -> None:
        """Empty the cart locally and remotely."""
        self._cart = Cart()
        self._save()
        self._mirror_op(CartOperation.clear())

    def remove_submitted(self, submitted: Mapping[str, int]) -> Dict[str, int]:
        """
        Take the quantities of a confirmed order out of the cart.

        Units added after the order was assembled stay in the cart. When
        nothing is left the remote cart is cleared in one call, otherwise
        each touched product is mirrored on its own.

        Returns:
            Remaining cart items
        """
        touched: Dict[str, int] = {}
        for product_id, ordered in submitted.items():
            current = self._cart.quantity(product_id)
            if current == 0:
                continue
            remaining = current - ordered
            if remaining > 0:
                self._cart.items[product_id] = remaining
            else:
                del self._cart.items[product_id]
            touched[product_id] = max(remaining, 0)

        if not touched:
            return self.snapshot()

        self._save()
        if self._cart.is_empty:
            self._mirror_op(CartOperation.clear())
            return {}

        for product_id, remaining in touched.items():
            if remaining:
                self._mirror_op(CartOperation.update(product_id, remaining))
            else:
                self._mirror_op(CartOperation.remove(product_id))
        logger.info("Cart kept %d product(s) added during checkout", len(self._cart.items))
        return self.snapshot()

    def replace(self, items: Mapping[str, int]) -> None:
        """Install a new cart without mirroring (reconciliation result)."""
        self._cart = Cart(items=dict(items))
        self._save()
        logger.debug("Cart replaced: %d products", len(self._cart.items))

    def reset(self) -> None:
        """Forget the cart locally only (logout)."""
        self._cart = Cart()
        self._storage.delete(StorageKeys.CART)

    def total_amount(self, price_lookup: PriceLookup) -> Decimal:
        return self._cart.total_amount(price_lookup)

    def total_items(self) -> int:
        return self._cart.total_items

    def describe(self) -> str:
        return ", ".join(
            f"{sanitize_id_for_logging(pid)}x{qty}" for pid, qty in self._cart.items.items()
        ) or "empty"
