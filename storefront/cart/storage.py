"""Local persistence access for the cart."""
from storefront.db import KeyValueStorage, StorageKeys

__all__ = ["KeyValueStorage", "StorageKeys"]
