"""Pytest configuration and fixtures"""
import json
import os
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

# Set test environment variables
os.environ.setdefault("STOREFRONT_STORAGE", "memory")
os.environ.setdefault("STOREFRONT_LOG_SIMPLE", "1")

from storefront.auth.executor import AuthenticatedRequestExecutor
from storefront.auth.tokens import TokenManager
from storefront.db import MemoryStorage
from storefront.models import Product

API_URL = "http://test.local/api"

Handler = Union[httpx.Response, Callable[[httpx.Request], Any]]


def envelope(
    data: Optional[Dict[str, Any]] = None,
    success: bool = True,
    message: Optional[str] = None,
    status_code: int = 200,
) -> httpx.Response:
    """Backend-style {success, data, message} response."""
    body: Dict[str, Any] = {"success": success, "data": data if data is not None else {}}
    if message:
        body["message"] = message
    return httpx.Response(status_code, json=body)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


class FakeBackend:
    """
    Routes requests by (method, path) and records every request seen.

    A route is either a fixed Response or a callable (sync or async)
    taking the request. Unknown routes answer 404.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Handler] = {}

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and self._path(r) == path]

    def sent(self) -> List[Tuple[str, str]]:
        return [(r.method, self._path(r)) for r in self.requests]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        return path[len("/api"):] if path.startswith("/api") else path

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        handler = self.routes.get((request.method, self._path(request)))
        if handler is None:
            return envelope(success=False, message="Not found", status_code=404)
        if isinstance(handler, httpx.Response):
            return handler
        return handler(request)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def http_client(backend):
    return httpx.AsyncClient(transport=httpx.MockTransport(backend))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def tokens(storage):
    return TokenManager(storage)


@pytest.fixture
def logged_in(tokens):
    """Token manager holding an active session."""
    tokens.set("access-1", "refresh-1")
    return tokens


@pytest.fixture
def executor(tokens, http_client):
    return AuthenticatedRequestExecutor(API_URL, tokens, http_client=http_client)


@pytest.fixture
def sample_products():
    return [
        Product(id="P1", name="Basmati Rice 1kg", price=100, category="grains"),
        Product(id="P2", name="Toor Dal 500g", price=50, category="pulses"),
        Product(id="P3", name="Amul Butter 500g", price="275.50", category="dairy"),
    ]


@pytest.fixture
def prices(sample_products):
    """Price lookup over sample_products."""
    index = {p.id: p.price for p in sample_products}
    return index.get


@pytest.fixture
def sample_address():
    return {
        "firstName": "Asha",
        "lastName": "Verma",
        "email": "asha@example.com",
        "street": "12 MG Road",
        "city": "Pune",
        "state": "Maharashtra",
        "zipcode": "411001",
        "phone": "9876543210",
    }
