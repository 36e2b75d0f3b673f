"""Order history: list, fetch, cancel and track the user's orders."""
from typing import Any, Dict, List

from storefront.auth.executor import AuthenticatedRequestExecutor, read_envelope
from storefront.errors import RemoteError
from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


class OrderService:
    """
    Read-mostly order endpoints.

    Orders are returned as the backend sends them; status transitions are
    owned by the backend.
    """

    def __init__(self, executor: AuthenticatedRequestExecutor):
        self.executor = executor

    async def list_orders(self) -> List[Dict[str, Any]]:
        response = await self.executor.request("GET", "/orders")
        data = read_envelope(response)
        orders = data.get("orders") or []
        return orders if isinstance(orders, list) else []

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        response = await self.executor.request("GET", f"/orders/{order_id}")
        return self._order_from(read_envelope(response))

    async def cancel_order(self, order_id: str, reason: str = "") -> Dict[str, Any]:
        """Ask the backend to cancel; it rejects orders past confirmation."""
        response = await self.executor.request("PUT", f"/orders/{order_id}/cancel", json={"reason": reason})
        order = self._order_from(read_envelope(response))
        logger.info("Order %s cancelled", sanitize_id_for_logging(order_id))
        return order

    async def track_order(self, order_id: str) -> Dict[str, Any]:
        response = await self.executor.request("GET", f"/orders/{order_id}/track")
        data = read_envelope(response)
        tracking = data.get("tracking")
        if not isinstance(tracking, dict):
            raise RemoteError("Tracking information not available", status_code=response.status_code)
        return tracking

    @staticmethod
    def _order_from(data: Dict[str, Any]) -> Dict[str, Any]:
        order = data.get("order")
        if not isinstance(order, dict):
            raise RemoteError("Order not found")
        return order
