"""
Storefront facade.

One explicitly owned application-state object: it wires storage, the
session, the cart and the order pipeline together, and is the only thing
presentation code talks to. Every command returns an OperationResult;
StorefrontError never escapes this boundary.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Dict, Iterable, Mapping, Optional, Union

import httpx

from storefront.auth.executor import AuthenticatedRequestExecutor
from storefront.auth.service import AuthService
from storefront.auth.tokens import TokenManager
from storefront.cart.mirror import CartMirror
from storefront.cart.models import PriceLookup
from storefront.cart.reconciler import CartReconciler
from storefront.cart.service import CartStore
from storefront.config import Settings, load_settings
from storefront.db import KeyValueStorage, create_storage, get_storage
from storefront.errors import ERROR_NOT_AUTHENTICATED, StorefrontError
from storefront.logging import get_logger, sanitize_string_for_logging
from storefront.models import OperationResult, Product, SavedAddress, ShippingAddress, User
from storefront.orders.assembler import OrderAssembler
from storefront.orders.service import OrderService
from storefront.services.catalog import ProductCatalog

logger = get_logger(__name__)


class Storefront:
    """
    Application state for one device.

    Session lifecycle:
    - start() restores a persisted session and reconciles the cart once
    - login()/register() begin a session and reconcile once
    - logout() (or a failed token refresh) clears tokens and cart locally,
      drops unsent cart mirror operations and never cancels in-flight calls
    """

    def __init__(
        self,
        settings: Settings,
        storage: KeyValueStorage,
        http_client: Optional[httpx.AsyncClient] = None,
        products: Optional[Iterable[Product]] = None,
    ):
        self.settings = settings
        self.storage = storage

        self.tokens = TokenManager(storage)
        self.executor = AuthenticatedRequestExecutor(
            settings.api_url,
            self.tokens,
            http_client=http_client,
            timeout=settings.http_timeout,
            on_session_expired=self._logout_locally,
        )
        self.mirror = CartMirror(self.executor, self.tokens, attempts=settings.mirror_attempts)
        self.cart = CartStore(storage, self.mirror)
        self.reconciler = CartReconciler(self.executor, self.cart, self.mirror)
        self.assembler = OrderAssembler(self.executor, self.cart)
        self.auth = AuthService(self.executor, self.tokens)
        self.orders = OrderService(self.executor)
        self.catalog = ProductCatalog(self.executor, products)

        self._user: Optional[User] = None
        self._synced = False

    # ==================== SESSION ====================

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self.tokens.is_active

    async def start(self) -> OperationResult:
        """Restore the persisted session, if any, and sync the cart."""
        session = self.tokens.load()
        if not session.is_active:
            return OperationResult.ok(message="No saved session")

        try:
            self._user = await self.auth.fetch_profile()
        except StorefrontError as e:
            # A profile failure does not end the session (unless the refresh did)
            logger.warning("Profile fetch failed: %s", sanitize_string_for_logging(e.message))

        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)

        await self._begin_session()
        return OperationResult.ok(self._user)

    async def login(self, email: str, password: str) -> OperationResult:
        try:
            self._user = await self.auth.login(email, password)
        except StorefrontError as e:
            logger.info("Login failed: %s", sanitize_string_for_logging(e.message))
            return OperationResult.fail(e.message)

        await self._begin_session()
        return OperationResult.ok(self._user, message="Login successful")

    async def register(self, name: str, email: str, password: str, phone: str = "") -> OperationResult:
        try:
            user = await self.auth.register(name, email, password, phone)
        except StorefrontError as e:
            logger.info("Registration failed: %s", sanitize_string_for_logging(e.message))
            return OperationResult.fail(e.message)

        if self.tokens.is_active:
            self._user = user
            await self._begin_session()
        return OperationResult.ok(user, message="Registration successful")

    async def logout(self) -> OperationResult:
        """Revoke remotely (best effort) and clear local state."""
        # Unsent cart operations must not reach the backend after logout
        self.mirror.discard_pending()
        await self.auth.logout()
        self._logout_locally()
        return OperationResult.ok(message="Logged out")

    async def refresh_profile(self) -> OperationResult:
        result = await self._call("refresh_profile", self.auth.fetch_profile())
        if result.success:
            self._user = result.data
        return result

    async def update_profile(self, name: str, phone: Optional[str] = None) -> OperationResult:
        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)
        result = await self._call("update_profile", self.auth.update_profile(name, phone))
        if result.success:
            self._user = result.data
        return result

    # ==================== ADDRESS BOOK ====================

    async def list_addresses(self) -> OperationResult:
        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)
        return await self._call("list_addresses", self.auth.list_addresses())

    async def add_address(self, address: Union[SavedAddress, Mapping[str, Any]]) -> OperationResult:
        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)
        return await self._address_call("add_address", self.auth.add_address(address))

    async def update_address(
        self, address_id: str, address: Union[SavedAddress, Mapping[str, Any]]
    ) -> OperationResult:
        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)
        return await self._address_call("update_address", self.auth.update_address(address_id, address))

    async def delete_address(self, address_id: str) -> OperationResult:
        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)
        return await self._address_call("delete_address", self.auth.delete_address(address_id))

    async def _address_call(self, operation: str, awaitable: Awaitable[User]) -> OperationResult:
        """Run an address change; the data is the refreshed address list."""
        result = await self._call(operation, awaitable)
        if not result.success:
            return result
        self._user = result.data
        return OperationResult.ok(self._user.addresses)

    async def _begin_session(self) -> None:
        """Reconcile once per no-session -> session transition."""
        if self._synced:
            return
        try:
            await self.reconciler.reconcile()
        except StorefrontError as e:
            # Local cart untouched; a later sync_cart() can retry
            logger.warning("Cart sync failed: %s", sanitize_string_for_logging(e.message))
            return
        self._synced = True

    async def sync_cart(self) -> OperationResult:
        """Retry reconciliation after a failed sync at session start."""
        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)
        result = await self._call("sync_cart", self.reconciler.reconcile())
        if result.success:
            self._synced = True
        return result

    def _logout_locally(self) -> None:
        dropped = self.mirror.discard_pending()
        self.tokens.clear()
        self.cart.reset()
        self._user = None
        self._synced = False
        logger.info("Session ended locally (%d pending cart operation(s) dropped)", dropped)

    # ==================== CART ====================

    def add_item(self, product_id: str) -> OperationResult:
        try:
            quantity = self.cart.add_item(product_id)
        except ValueError as e:
            return OperationResult.fail(str(e))
        return OperationResult.ok({"product_id": product_id, "quantity": quantity})

    def remove_item(self, product_id: str, remove_all: bool = False) -> OperationResult:
        try:
            quantity = self.cart.remove_item(product_id, remove_all=remove_all)
        except ValueError as e:
            return OperationResult.fail(str(e))
        return OperationResult.ok({"product_id": product_id, "quantity": quantity})

    def clear_cart(self) -> OperationResult:
        self.cart.clear()
        return OperationResult.ok(message="Cart cleared")

    def cart_items(self) -> Dict[str, int]:
        return self.cart.snapshot()

    def total_items(self) -> int:
        return self.cart.total_items()

    def total_amount(self, price_lookup: Optional[PriceLookup] = None) -> Decimal:
        return self.cart.total_amount(price_lookup or self.catalog.price_of)

    # ==================== CATALOG ====================

    async def fetch_products(self) -> OperationResult:
        return await self._call("fetch_products", self.catalog.fetch_products())

    async def get_product(self, product_id: str) -> OperationResult:
        return await self._call("get_product", self.catalog.get_product(product_id))

    async def search_products(self, query: str) -> OperationResult:
        return await self._call("search_products", self.catalog.search(query))

    # ==================== ORDERS ====================

    async def place_order(
        self,
        shipping_address: Union[ShippingAddress, Mapping[str, Any]],
        payment_method: Union[str, Enum],
        notes: str = "",
        price_lookup: Optional[PriceLookup] = None,
    ) -> OperationResult:
        """
        Submit the cart as an order.

        The result data is the created Order; when unknown products were
        dropped from it, the message says how many.
        """
        if not self.tokens.is_active:
            return OperationResult.fail(ERROR_NOT_AUTHENTICATED)

        try:
            placed = await self.assembler.place_order(
                shipping_address, payment_method, price_lookup or self.catalog.price_of, notes=notes
            )
        except StorefrontError as e:
            logger.warning("place_order failed: %s", sanitize_string_for_logging(e.message))
            return OperationResult.fail(e.message)

        message = "Order placed successfully"
        if placed.dropped_count:
            message = f"{message} ({placed.dropped_count} unavailable item(s) left out)"
        return OperationResult.ok(placed.order, message=message)

    async def list_orders(self) -> OperationResult:
        return await self._call("list_orders", self.orders.list_orders())

    async def get_order(self, order_id: str) -> OperationResult:
        return await self._call("get_order", self.orders.get_order(order_id))

    async def cancel_order(self, order_id: str, reason: str = "") -> OperationResult:
        return await self._call("cancel_order", self.orders.cancel_order(order_id, reason))

    async def track_order(self, order_id: str) -> OperationResult:
        return await self._call("track_order", self.orders.track_order(order_id))

    # ==================== LIFECYCLE ====================

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> OperationResult:
        try:
            return OperationResult.ok(await awaitable)
        except StorefrontError as e:
            # SessionExpired: the executor has already logged out
            logger.warning("%s failed: %s", operation, sanitize_string_for_logging(e.message))
            return OperationResult.fail(e.message)

    async def aclose(self) -> None:
        """Flush the cart outbox and release the HTTP client."""
        push_task = self.reconciler.push_task
        if push_task is not None and not push_task.done():
            await push_task
        await self.mirror.aclose()
        await self.executor.aclose()


def create_storefront(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    storage: Optional[KeyValueStorage] = None,
    products: Optional[Iterable[Product]] = None,
) -> Storefront:
    """
    Build a Storefront from settings (environment by default).

    Args:
        settings: Resolved settings; load_settings() when omitted
        http_client: Injected httpx client (tests)
        storage: Injected storage; the configured backend when omitted
        products: Initial catalog contents
    """
    if storage is None:
        storage = create_storage(settings) if settings is not None else get_storage()
    if settings is None:
        settings = load_settings()
    return Storefront(settings, storage, http_client=http_client, products=products)
