"""
Product Catalog

Caches the public product list and serves as the price lookup for cart
totals and checkout.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from storefront.auth.executor import AuthenticatedRequestExecutor, read_envelope
from storefront.errors import ERROR_UNEXPECTED_RESPONSE, RemoteError, StorefrontError
from storefront.logging import get_logger, sanitize_string_for_logging
from storefront.models import Product

logger = get_logger(__name__)

CATALOG_PAGE_LIMIT = 1000


class ProductCatalog:
    """In-memory product index backed by the public /products endpoints."""

    def __init__(self, executor: AuthenticatedRequestExecutor, products: Optional[Iterable[Product]] = None):
        self.executor = executor
        self._products: Dict[str, Product] = {}
        if products:
            self.load(products)

    @property
    def products(self) -> List[Product]:
        return list(self._products.values())

    def load(self, products: Iterable[Product]) -> None:
        """Replace the index with the given products."""
        self._products = {product.id: product for product in products}

    @staticmethod
    def _parse_products(raw: object) -> List[Product]:
        products: List[Product] = []
        if not isinstance(raw, list):
            return products
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                products.append(Product.model_validate(item))
            except ValueError as e:
                logger.warning("Skipping malformed product: %s", e)
        return products

    async def fetch_products(self, limit: int = CATALOG_PAGE_LIMIT) -> List[Product]:
        """
        Refresh the catalog.

        On failure the previously loaded products stay in place and the
        error propagates to the caller.
        """
        response = await self.executor.request("GET", "/products", params={"limit": limit}, auth=False)
        data = read_envelope(response)
        products = self._parse_products(data.get("products"))
        self.load(products)
        logger.info("Catalog loaded: %d products", len(products))
        return products

    async def get_product(self, product_id: str) -> Product:
        """Fetch one product and update the index."""
        response = await self.executor.request("GET", f"/products/{product_id}", auth=False)
        data = read_envelope(response)
        raw = data.get("product")
        if not isinstance(raw, dict):
            raise RemoteError("Product not found", status_code=response.status_code)
        try:
            product = Product.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning("Malformed product in response: %d error(s)", e.error_count())
            raise RemoteError(ERROR_UNEXPECTED_RESPONSE, status_code=response.status_code) from e
        self._products[product.id] = product
        return product

    def find(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def price_of(self, product_id: str) -> Optional[Decimal]:
        """Price lookup: None for products the catalog does not know."""
        product = self._products.get(product_id)
        return product.price if product is not None else None

    def search_local(self, query: str) -> List[Product]:
        """Case-insensitive match on name, category and description."""
        term = (query or "").strip().lower()
        if not term:
            return []
        return [
            product
            for product in self._products.values()
            if any(term in (text or "").lower() for text in (product.name, product.category, product.description))
        ]

    async def search(self, query: str) -> List[Product]:
        """
        Search the backend, then append local matches it did not return.

        A blank query returns nothing without a request. When the backend
        search fails the local matches are returned on their own.
        """
        query = (query or "").strip()
        if not query:
            return []

        local = self.search_local(query)
        try:
            response = await self.executor.request("GET", "/products/search", params={"q": query}, auth=False)
            remote = self._parse_products(read_envelope(response).get("products"))
        except StorefrontError as e:
            logger.warning("Product search failed, using local results: %s", sanitize_string_for_logging(e.message))
            return local

        seen = {product.id for product in remote}
        return remote + [product for product in local if product.id not in seen]
