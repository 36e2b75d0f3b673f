"""
Pydantic Models - wire schemas exchanged with the storefront backend.

Backend payloads are camelCase and wrapped in a {success, data, message}
envelope; models accept both the alias and the Python field name.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.services.money import to_decimal as _to_decimal, to_wire


def _as_text(v: Any) -> Any:
    """None becomes "" and numbers become their string form (form input, zipcodes)."""
    if v is None:
        return ""
    if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
        return str(v)
    return v


class OrderStatus(str, Enum):
    """Order status lifecycle (owned by the backend)."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Orders the customer may still cancel
CANCELLABLE_STATUSES = {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value}


class PaymentMethod(str, Enum):
    """Payment methods offered at checkout."""
    COD = "cod"
    CARD = "card"
    UPI = "upi"


class CartLine(BaseModel):
    """Single remote cart entry: {productId, quantity}."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: str = Field(alias="productId")
    quantity: int

    @classmethod
    def from_payload(cls, item: Any) -> Optional["CartLine"]:
        """
        Parse a cart item from the backend.

        Accepts both {productId, quantity} and the populated form
        {product: {_id, ...}, quantity}. Returns None for unusable items.
        """
        if not isinstance(item, dict):
            return None
        product_id = item.get("productId")
        if product_id is None:
            product = item.get("product")
            product_id = product.get("_id") if isinstance(product, dict) else product
        if not product_id:
            return None
        try:
            return cls(product_id=str(product_id), quantity=int(item.get("quantity", 0)))
        except (TypeError, ValueError):
            return None

    def to_payload(self) -> dict:
        return {"productId": self.product_id, "quantity": self.quantity}


class Product(BaseModel):
    """Catalog product (only the fields the client needs)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    name: str = ""
    price: Decimal = Decimal("0")
    category: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("id", mode="before")
    @classmethod
    def convert_id_to_str(cls, v):
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @field_validator("name", mode="before")
    @classmethod
    def convert_name_to_str(cls, v):
        return _as_text(v)


class SavedAddress(BaseModel):
    """Entry of the user's address book (/users/address)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    full_name: str = Field(default="", alias="fullName")
    phone: str = ""
    street: str = ""
    city: str = ""
    pincode: str = ""
    is_default: bool = Field(default=False, alias="isDefault")

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("full_name", "phone", "street", "city", "pincode")

    @field_validator("full_name", "phone", "street", "city", "pincode", mode="before")
    @classmethod
    def convert_to_text(cls, v):
        return _as_text(v)

    @field_validator("is_default", mode="before")
    @classmethod
    def convert_default_flag(cls, v):
        return bool(v)

    def missing_fields(self) -> list[str]:
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name).strip()]

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"id"})

    def to_shipping_address(self, email: str = "", state: str = "") -> "ShippingAddress":
        """Checkout address prefilled from this entry (fullName split on the first space)."""
        first_name, _, last_name = self.full_name.strip().partition(" ")
        return ShippingAddress(
            first_name=first_name,
            last_name=last_name.strip(),
            email=email,
            street=self.street,
            city=self.city,
            state=state,
            zipcode=self.pincode,
            phone=self.phone,
        )


class User(BaseModel):
    """Authenticated user profile."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    role: str = "user"
    addresses: list[SavedAddress] = Field(default_factory=list)

    @field_validator("name", "email", "role", mode="before")
    @classmethod
    def convert_to_text(cls, v):
        return _as_text(v)

    @field_validator("phone", mode="before")
    @classmethod
    def convert_phone_to_str(cls, v):
        return None if v is None else _as_text(v)

    @field_validator("addresses", mode="before")
    @classmethod
    def drop_malformed_addresses(cls, v):
        return [item for item in v if isinstance(item, dict)] if isinstance(v, list) else []


class ShippingAddress(BaseModel):
    """Delivery address entered at checkout."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    email: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zipcode: str = ""
    country: str = "India"
    phone: str = ""

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("first_name", "last_name", "email", "street", "city", "state", "zipcode", "phone")

    @field_validator("*", mode="before")
    @classmethod
    def convert_to_text(cls, v):
        return _as_text(v)

    def missing_fields(self) -> list[str]:
        """Names of required fields that are blank."""
        return [name for name in self.REQUIRED_FIELDS if not str(getattr(self, name) or "").strip()]

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class OrderLine(BaseModel):
    """Order line with the unit price captured at submission time."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: str = Field(alias="productId")
    quantity: int
    unit_price_snapshot: Decimal = Field(alias="unitPriceSnapshot")

    @field_validator("unit_price_snapshot", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price_snapshot * self.quantity

    def to_payload(self) -> dict:
        price = to_wire(self.unit_price_snapshot)
        return {
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": price,
            "unitPriceSnapshot": price,
        }


class Order(BaseModel):
    """Order created by a successful checkout."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    items: list[OrderLine]
    shipping_address: ShippingAddress
    payment_method: str
    subtotal: Decimal
    delivery_fee: Decimal
    platform_fee: Decimal
    gst: Decimal
    total: Decimal
    status: str = OrderStatus.PENDING.value
    notes: str = ""

    @field_validator("subtotal", "delivery_fee", "platform_fee", "gst", "total", mode="before")
    @classmethod
    def convert_amount_to_decimal(cls, v):
        return _to_decimal(v)

    @property
    def can_cancel(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


class OperationResult(BaseModel):
    """Uniform result handed to presentation code."""
    success: bool
    message: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "OperationResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str) -> "OperationResult":
        return cls(success=False, message=message)
