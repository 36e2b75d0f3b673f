"""Login-time cart reconciliation: fetch remote, local-wins merge, push back."""
import asyncio
from typing import Dict, Optional

from storefront.auth.executor import AuthenticatedRequestExecutor, read_envelope
from storefront.logging import get_logger
from storefront.models import CartLine
from .mirror import CartMirror, CartOperation
from .models import Cart, merge_carts
from .service import CartStore

logger = get_logger(__name__)


class CartReconciler:
    """
    Runs once per session start.

    Push semantics: merged quantities are absolute. A product already in the
    remote cart is pushed with PUT /cart/update; a product absent remotely is
    pushed with POST /cart/add, where incrementing from zero yields the same
    absolute value. Products whose remote quantity already matches are
    skipped. One round trip per product, in order, via the mirror outbox so
    pushes also serialize with later cart mutations.
    """

    def __init__(self, executor: AuthenticatedRequestExecutor, cart_store: CartStore, mirror: CartMirror):
        self.executor = executor
        self.cart_store = cart_store
        self.mirror = mirror
        self.push_task: Optional[asyncio.Task] = None

    async def fetch_remote_cart(self) -> Dict[str, int]:
        """GET /cart as a product -> quantity mapping."""
        response = await self.executor.request("GET", "/cart")
        data = read_envelope(response)

        cart = data.get("cart") or {}
        raw_items = cart.get("items", []) if isinstance(cart, dict) else cart
        if not isinstance(raw_items, list):
            raw_items = []

        lines = [line for line in (CartLine.from_payload(item) for item in raw_items) if line is not None]
        return Cart.from_lines(lines).to_dict()

    async def reconcile(self) -> Dict[str, int]:
        """
        Merge the remote cart into the local one and schedule the push.

        Returns:
            The merged cart now owned by CartStore

        Raises:
            StorefrontError: the remote cart could not be fetched; local
                state is left untouched
        """
        remote = await self.fetch_remote_cart()
        local = self.cart_store.snapshot()
        merged = merge_carts(local, remote)

        self.cart_store.replace(merged)
        logger.info(
            "Cart reconciled: %d local, %d remote, %d merged products",
            len(local), len(remote), len(merged),
        )

        if local:
            self.push_task = asyncio.create_task(self._push(merged, remote))
        return merged

    async def _push(self, merged: Dict[str, int], remote: Dict[str, int]) -> None:
        for product_id, quantity in merged.items():
            if quantity <= 0 or remote.get(product_id) == quantity:
                continue
            if product_id in remote:
                self.mirror.submit(CartOperation.update(product_id, quantity))
            else:
                self.mirror.submit(CartOperation.add(product_id, quantity))
        await self.mirror.drain()
        logger.debug("Cart push finished: %s", self.cart_store.describe())
