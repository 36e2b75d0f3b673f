"""Cart model: product id -> quantity, always positive."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from storefront.models import CartLine
from storefront.services.money import multiply, to_decimal

# Price of a product, or None when the product is unknown
PriceLookup = Callable[[str], Optional[Decimal]]


def _clean_quantity(value: Any) -> Optional[int]:
    """Positive int quantity, or None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        return None
    return value


@dataclass
class Cart:
    """Shopping cart. No entry ever holds a quantity below 1."""
    items: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        self.items = normalize_items(self.items)

    def quantity(self, product_id: str) -> int:
        return self.items.get(product_id, 0)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_items(self) -> int:
        """Total number of units in cart."""
        return sum(self.items.values())

    def total_amount(self, price_lookup: PriceLookup) -> Decimal:
        """Sum of quantity * price, skipping products the lookup does not know."""
        total = Decimal("0")
        for product_id, quantity in self.items.items():
            price = price_lookup(product_id)
            if price is None:
                continue
            total += multiply(to_decimal(price), quantity)
        return total

    def to_dict(self) -> Dict[str, int]:
        return dict(self.items)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Cart":
        """Create from a persisted mapping, dropping invalid entries."""
        return cls(items=dict(data))

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine]) -> "Cart":
        """Create from remote cart lines; repeated products are summed."""
        items: Dict[str, int] = {}
        for line in lines:
            if line.quantity > 0:
                items[line.product_id] = items.get(line.product_id, 0) + line.quantity
        return cls(items=items)


def normalize_items(data: Mapping[str, Any]) -> Dict[str, int]:
    """Keep only entries with a non-empty id and a positive integer quantity."""
    items: Dict[str, int] = {}
    for product_id, raw in data.items():
        quantity = _clean_quantity(raw)
        if product_id and quantity is not None:
            items[str(product_id)] = quantity
    return items


def merge_carts(local: Mapping[str, int], remote: Mapping[str, int]) -> Dict[str, int]:
    """
    Local-wins merge.

    Keys present on both sides keep the local quantity; keys only present
    remotely are kept as-is. Merging the result again with the same remote
    input yields the same mapping.
    """
    merged = dict(normalize_items(remote))
    merged.update(normalize_items(local))
    return merged
