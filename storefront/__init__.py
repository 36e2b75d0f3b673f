"""
Storefront client core.

This package contains the client-side session and cart synchronization core
of the grocery storefront:
- auth: token storage, authenticated requests with refresh, login/logout
- cart: persisted local cart, remote mirroring outbox, login reconciliation
- orders: fee computation, order assembly and order history
- store: the Storefront facade handed to presentation code

Note: Imports are lazy so that importing a submodule does not pull the
whole client (and its HTTP stack) into memory.
"""

__all__ = [
    "Storefront",
    "create_storefront",
    "load_settings",
]


def __getattr__(name):
    """Lazy attribute access for the public entry points."""
    if name == "Storefront":
        from storefront.store import Storefront
        return Storefront
    elif name == "create_storefront":
        from storefront.store import create_storefront
        return create_storefront
    elif name == "load_settings":
        from storefront.config import load_settings
        return load_settings
    raise AttributeError(f"module 'storefront' has no attribute '{name}'")
