"""
Cart mirror outbox.

Local cart mutations never wait for the network. Each mutation is turned
into a CartOperation and queued here; a single worker task delivers the
operations to the remote cart in FIFO order, retrying transport failures
with tenacity. Failures after the last attempt are logged and dropped:
local state stays authoritative.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.auth.executor import AuthenticatedRequestExecutor, read_envelope
from storefront.auth.tokens import TokenManager
from storefront.errors import NetworkError, StorefrontError
from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


class CartOperationKind(str, Enum):
    ADD = "add"  # POST /cart/add, increments remote quantity
    UPDATE = "update"  # PUT /cart/update, sets absolute quantity
    REMOVE = "remove"  # DELETE /cart/remove/{productId}
    CLEAR = "clear"  # DELETE /cart/clear


@dataclass(frozen=True)
class CartOperation:
    """One remote cart call waiting in the outbox."""
    kind: CartOperationKind
    product_id: Optional[str] = None
    quantity: int = 0

    @classmethod
    def add(cls, product_id: str, quantity: int = 1) -> "CartOperation":
        return cls(CartOperationKind.ADD, product_id, quantity)

    @classmethod
    def update(cls, product_id: str, quantity: int) -> "CartOperation":
        return cls(CartOperationKind.UPDATE, product_id, quantity)

    @classmethod
    def remove(cls, product_id: str) -> "CartOperation":
        return cls(CartOperationKind.REMOVE, product_id)

    @classmethod
    def clear(cls) -> "CartOperation":
        return cls(CartOperationKind.CLEAR)

    def describe(self) -> str:
        if self.kind == CartOperationKind.CLEAR:
            return "clear"
        return f"{self.kind.value} {sanitize_id_for_logging(self.product_id)} x{self.quantity}"


class CartMirror:
    """Ordered outbox that mirrors local cart mutations to the backend."""

    def __init__(
        self,
        executor: AuthenticatedRequestExecutor,
        token_manager: TokenManager,
        attempts: int = 3,
        retry_wait: float = 0.5,
    ):
        self.executor = executor
        self.tokens = token_manager
        self.attempts = max(1, attempts)
        self.retry_wait = retry_wait
        self.failed_count = 0

        self._queue: asyncio.Queue[CartOperation] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, operation: CartOperation) -> bool:
        """
        Queue an operation for delivery.

        Returns:
            False when no session is active (nothing to mirror to)
        """
        if not self.tokens.is_active:
            return False
        self._queue.put_nowait(operation)
        self._ensure_worker()
        return True

    def _ensure_worker(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: operations stay queued until drain() runs in one
            logger.debug("No running event loop, %d cart operation(s) queued", self._queue.qsize())
            return
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run())

    async def _run(self) -> None:
        while not self._queue.empty():
            operation = self._queue.get_nowait()
            try:
                await self._deliver(operation)
            except StorefrontError as e:
                self.failed_count += 1
                logger.warning("Cart mirror %s failed: %s", operation.describe(), e)
            finally:
                self._queue.task_done()

    async def _deliver(self, operation: CartOperation) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.retry_wait, max=10 * self.retry_wait),
            retry=retry_if_exception_type(NetworkError),
            reraise=True,
        ):
            with attempt:
                response = await self._send(operation)
                read_envelope(response)

    async def _send(self, operation: CartOperation) -> httpx.Response:
        if operation.kind == CartOperationKind.ADD:
            body = {"productId": operation.product_id, "quantity": operation.quantity}
            return await self.executor.request("POST", "/cart/add", json=body)
        if operation.kind == CartOperationKind.UPDATE:
            body = {"productId": operation.product_id, "quantity": operation.quantity}
            return await self.executor.request("PUT", "/cart/update", json=body)
        if operation.kind == CartOperationKind.REMOVE:
            return await self.executor.request("DELETE", f"/cart/remove/{operation.product_id}")
        return await self.executor.request("DELETE", "/cart/clear")

    async def drain(self) -> None:
        """Wait until every queued operation has been delivered or dropped."""
        self._ensure_worker()
        await self._queue.join()

    def discard_pending(self) -> int:
        """Drop operations not yet sent (logout). In-flight calls are not cancelled."""
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.info("Discarded %d pending cart operation(s)", dropped)
        return dropped

    async def aclose(self) -> None:
        """Deliver what is queued, then stop."""
        if self._worker is not None and not self._worker.done():
            await self.drain()
        self._worker = None
