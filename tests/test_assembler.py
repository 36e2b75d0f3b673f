"""
Tests for OrderAssembler (checkout)
"""

import asyncio
from decimal import Decimal

import pytest

from conftest import envelope, request_json
from storefront.cart.service import CartStore
from storefront.errors import ERROR_NO_VALID_ITEMS, ERROR_PAYMENT_METHOD_REQUIRED, EmptyCart, RemoteError, ValidationError
from storefront.models import PaymentMethod, ShippingAddress
from storefront.orders.assembler import OrderAssembler


@pytest.fixture
def cart_store(storage):
    return CartStore(storage)


@pytest.fixture
def assembler(executor, cart_store):
    return OrderAssembler(executor, cart_store)


def created_order(order_id="ord-1", status="pending"):
    return envelope({"order": {"_id": order_id, "orderStatus": status}}, status_code=201)


class TestValidate:
    def test_valid_address(self, sample_address):
        address = OrderAssembler.validate(sample_address, PaymentMethod.COD)

        assert isinstance(address, ShippingAddress)
        assert address.country == "India"

    def test_missing_fields_are_named(self, sample_address):
        sample_address["city"] = ""
        sample_address["phone"] = "   "

        with pytest.raises(ValidationError) as exc:
            OrderAssembler.validate(sample_address, "cod")

        assert exc.value.fields == ["city", "phone"]

    def test_payment_method_required(self, sample_address):
        with pytest.raises(ValidationError) as exc:
            OrderAssembler.validate(sample_address, "")

        assert exc.value.message == ERROR_PAYMENT_METHOD_REQUIRED


class TestAssemble:
    def test_lines_and_totals(self, assembler, cart_store, prices):
        cart_store.replace({"P1": 2, "P2": 1})

        assembled = assembler.assemble(prices)

        assert [(line.product_id, line.quantity) for line in assembled.lines] == [("P1", 2), ("P2", 1)]
        assert assembled.totals.total == Decimal("308")
        assert assembled.dropped_count == 0

    def test_unknown_products_dropped(self, assembler, cart_store, prices):
        cart_store.replace({"P1": 1, "GONE": 2})

        assembled = assembler.assemble(prices)

        assert [line.product_id for line in assembled.lines] == ["P1"]
        assert assembled.dropped_count == 1

    def test_empty_cart(self, assembler, prices):
        with pytest.raises(EmptyCart):
            assembler.assemble(prices)

    def test_only_unknown_products(self, assembler, cart_store):
        cart_store.replace({"GONE": 2})

        with pytest.raises(EmptyCart) as exc:
            assembler.assemble(lambda pid: None)

        assert exc.value.message == ERROR_NO_VALID_ITEMS


@pytest.mark.asyncio
async def test_empty_cart_makes_no_network_call(backend, assembler, logged_in, sample_address, prices):
    with pytest.raises(EmptyCart):
        await assembler.place_order(sample_address, "cod", prices)

    assert backend.requests == []


@pytest.mark.asyncio
async def test_zero_priced_lines_rejected_before_validation(backend, assembler, cart_store, logged_in):
    cart_store.replace({"FREE": 1})

    with pytest.raises(EmptyCart):
        await assembler.place_order({}, "", lambda pid: Decimal("0"))

    assert backend.requests == []


@pytest.mark.asyncio
async def test_invalid_address_makes_no_network_call(backend, assembler, cart_store, logged_in, prices):
    cart_store.replace({"P1": 1})

    with pytest.raises(ValidationError):
        await assembler.place_order({"firstName": "Asha"}, "cod", prices)

    assert backend.requests == []
    assert cart_store.snapshot() == {"P1": 1}


@pytest.mark.asyncio
async def test_successful_order_clears_cart(backend, assembler, cart_store, logged_in, sample_address, prices):
    backend.route("POST", "/orders", created_order())
    cart_store.replace({"P1": 2, "P2": 1})

    placed = await assembler.place_order(sample_address, PaymentMethod.UPI, prices, notes="Ring the bell")

    body = request_json(backend.calls("POST", "/orders")[0])
    assert body["items"] == [
        {"productId": "P1", "quantity": 2, "price": 100, "unitPriceSnapshot": 100},
        {"productId": "P2", "quantity": 1, "price": 50, "unitPriceSnapshot": 50},
    ]
    assert body["paymentMethod"] == "upi"
    assert body["notes"] == "Ring the bell"
    assert body["shippingAddress"]["firstName"] == "Asha"
    assert (body["subtotal"], body["deliveryFee"], body["platformFee"], body["gst"], body["totalAmount"]) == (
        250, 40, 5, 13, 308
    )

    assert placed.order.id == "ord-1"
    assert placed.order.total == Decimal("308")
    assert placed.order.status == "pending"
    assert placed.order.can_cancel
    assert cart_store.cart.is_empty


@pytest.mark.asyncio
async def test_dropped_count_returned(backend, assembler, cart_store, logged_in, sample_address, prices):
    backend.route("POST", "/orders", created_order())
    cart_store.replace({"P1": 1, "GONE": 1})

    placed = await assembler.place_order(sample_address, "cod", prices)

    assert placed.dropped_count == 1
    assert [line.product_id for line in placed.order.items] == ["P1"]


@pytest.mark.asyncio
async def test_failed_order_leaves_cart(backend, assembler, cart_store, logged_in, sample_address, prices):
    backend.route("POST", "/orders", envelope(success=False, message="Out of stock", status_code=400))
    cart_store.replace({"P1": 2, "P2": 1})

    with pytest.raises(RemoteError) as exc:
        await assembler.place_order(sample_address, "cod", prices)

    assert exc.value.message == "Out of stock"
    assert cart_store.snapshot() == {"P1": 2, "P2": 1}



@pytest.mark.asyncio
async def test_items_added_during_submission_stay(backend, assembler, cart_store, logged_in, sample_address, prices):
    submitted = asyncio.Event()

    async def slow_order(request):
        submitted.set()
        await asyncio.sleep(0.02)
        return created_order()

    backend.route("POST", "/orders", slow_order)
    cart_store.replace({"P1": 1})

    task = asyncio.create_task(assembler.place_order(sample_address, "cod", prices))
    await submitted.wait()
    cart_store.add_item("P2")
    cart_store.add_item("P1")
    placed = await task

    assert [(line.product_id, line.quantity) for line in placed.order.items] == [("P1", 1)]
    assert cart_store.snapshot() == {"P1": 1, "P2": 1}


@pytest.mark.asyncio
async def test_cart_is_priced_once_for_checks_and_once_for_lines(backend, assembler, cart_store, logged_in,
                                                                 sample_address, prices):
    backend.route("POST", "/orders", created_order())
    cart_store.replace({"P1": 1})
    looked_up = []

    def counting(product_id):
        looked_up.append(product_id)
        return prices(product_id)

    await assembler.place_order(sample_address, "cod", counting)

    assert looked_up == ["P1", "P1"]


class TestAddressInput:
    def test_numeric_zipcode_is_accepted(self, sample_address):
        sample_address["zipcode"] = 411001

        address = OrderAssembler.validate(sample_address, "cod")

        assert address.zipcode == "411001"

    def test_none_field_is_reported_missing(self, sample_address):
        sample_address["street"] = None

        with pytest.raises(ValidationError) as exc:
            OrderAssembler.validate(sample_address, "cod")

        assert exc.value.fields == ["street"]

    def test_malformed_field_is_named(self, sample_address):
        sample_address["firstName"] = ["Asha"]

        with pytest.raises(ValidationError) as exc:
            OrderAssembler.validate(sample_address, "cod")

        assert exc.value.fields == ["first_name"]

    def test_non_mapping_address(self):
        with pytest.raises(ValidationError) as exc:
            OrderAssembler.validate(None, "cod")

        assert "street" in exc.value.fields
