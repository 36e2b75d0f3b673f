"""Cart package: models, storage, mirror outbox, store and reconciler."""
from .models import Cart, PriceLookup, merge_carts
from .mirror import CartMirror, CartOperation, CartOperationKind
from .service import CartStore
from .reconciler import CartReconciler

__all__ = [
    "Cart",
    "PriceLookup",
    "merge_carts",
    "CartMirror",
    "CartOperation",
    "CartOperationKind",
    "CartStore",
    "CartReconciler",
]
