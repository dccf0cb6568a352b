"""
Tests for checkout: totals, stock commits, cart hand-off and recovery of
orders whose lines could not all be applied.
"""
import asyncio

import pytest

from coffeeshop.config import Config
from coffeeshop.exceptions import InvariantViolation, NetworkFailure
from coffeeshop.models.order import OrderStatus
from coffeeshop.models.user import User
from coffeeshop.services.checkout_service import CheckoutService, calculate_totals
from coffeeshop.services.inventory_repository import TableInventoryRepository


@pytest.fixture
def user(clock):
    return User(uid="owner-1", email="ana@example.com", name="Ana", created_at=clock.now, last_login=clock.now)


@pytest.fixture
def checkout(store, inventory):
    return CheckoutService(store, inventory, retry_delay=0)


class FlakyInventory(TableInventoryRepository):
    """Refuses commits for chosen products until told otherwise."""

    def __init__(self, store, broken=()):
        super().__init__(store)
        self.broken = set(broken)
        self.commits = []

    async def commit(self, product_id, quantity):
        if product_id in self.broken:
            raise InvariantViolation(f"commit of {product_id} refused")
        self.commits.append((product_id, quantity))
        return await super().commit(product_id, quantity)


class TestCalculateTotals:
    def test_flat_shipping_and_tax(self):
        totals = calculate_totals(3500)
        assert (totals.shipping_cost, totals.tax_amount, totals.total_amount) == (500, 280, 4280)

    def test_free_shipping_above_threshold(self):
        totals = calculate_totals(Config.FREE_SHIPPING_THRESHOLD + 1)
        assert totals.shipping_cost == 0

    def test_threshold_itself_still_pays_shipping(self):
        assert calculate_totals(Config.FREE_SHIPPING_THRESHOLD).shipping_cost == 500

    def test_tax_rounds_half_up(self):
        # 8% of 1006 cents is 80.48, of 1019 is 81.52
        assert calculate_totals(1006).tax_amount == 80
        assert calculate_totals(1019).tax_amount == 82


class TestCheckout:
    @pytest.mark.asyncio
    async def test_successful_checkout(self, store, cart, checkout, user, add_product):
        # Given: a cart with 2 x A at $10 and 1 x B at $15
        a = await add_product(name="A", price=1000, current_stock=10)
        b = await add_product(name="B", price=1500, current_stock=5)
        await cart.add_item(a, 2)
        await cart.add_item(b, 1)

        # When
        result = await checkout.checkout(cart, user)

        # Then: totals are computed in cents and stock is committed
        assert result.success is True
        order = result.order
        assert (order.subtotal, order.shipping_cost, order.tax_amount, order.total_amount) == (3500, 500, 280, 4280)
        assert order.order_status == OrderStatus.CONFIRMED
        assert order.customer_email == "ana@example.com"
        row_a = store.inventory_row(a.product_id)
        row_b = store.inventory_row(b.product_id)
        assert (row_a["current_stock"], row_a["reserved_stock"], row_a["total_sold"]) == (8, 0, 2)
        assert (row_b["current_stock"], row_b["reserved_stock"]) == (4, 0)
        assert cart.items == []

    @pytest.mark.asyncio
    async def test_order_row_is_stored_confirmed(self, store, cart, checkout, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 1)

        result = await checkout.checkout(cart, user)

        stored = await checkout.get_order(result.order.order_number)
        assert stored.order_status == OrderStatus.CONFIRMED
        assert stored.applied_product_ids == [product.product_id]
        assert [item.quantity for item in stored.order_items] == [1]

    @pytest.mark.asyncio
    async def test_order_written_pending_before_stock_moves(self, store, cart, checkout, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 1)

        await checkout.checkout(cart, user)

        orders_table = Config.TABLES["orders"]
        added = next(call for call in store.calls if call[0] == "add_item" and call[1] == orders_table)
        assert added[2]["order_status"] == "pending"
        assert added[2]["applied_product_ids"] == "[]"

    @pytest.mark.asyncio
    async def test_committed_lines_are_not_released(self, cart, checkout, user, reservations, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 3)
        released = []
        reservations.add_release_listener(released.append)

        await checkout.checkout(cart, user)

        assert released == []
        assert reservations.active == []

    @pytest.mark.asyncio
    async def test_free_shipping(self, cart, checkout, user, add_product):
        product = await add_product(price=2600, current_stock=10)
        await cart.add_item(product, 2)

        result = await checkout.checkout(cart, user)

        assert result.order.shipping_cost == 0
        assert result.order.total_amount == 5200 + 416

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, cart, checkout, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 1)

        result = await checkout.checkout(cart, None)

        assert result.success is False
        assert "sign in" in result.error
        assert cart.total_items() == 1

    @pytest.mark.asyncio
    async def test_empty_cart(self, cart, checkout, user):
        result = await checkout.checkout(cart, user)
        assert result.success is False
        assert result.error == "Cart is empty"

    @pytest.mark.asyncio
    async def test_expired_lines_are_dropped_first(self, store, cart, checkout, user, clock, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 2)
        clock.advance(minutes=16)

        result = await checkout.checkout(cart, user)

        assert result.error == "Cart is empty"
        assert store.inventory_row(product.product_id)["reserved_stock"] == 0

    @pytest.mark.asyncio
    async def test_order_creation_failure_moves_no_stock(self, store, cart, checkout, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 2)
        store.fail_next("add_item", NetworkFailure("offline"))

        result = await checkout.checkout(cart, user)

        assert result.success is False
        assert store.inventory_row(product.product_id)["current_stock"] == 10
        assert cart.item_count(product.product_id) == 2

    @pytest.mark.asyncio
    async def test_transient_commit_failure_is_retried(self, store, cart, checkout, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 2)
        # the first commit attempt fails while reading the record
        store.fail_next("get_items", NetworkFailure("timeout"))

        result = await checkout.checkout(cart, user)

        assert result.success is True
        assert store.inventory_row(product.product_id)["current_stock"] == 8


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_failed_line_stays_in_cart_and_resume_completes(self, store, cart, user, add_product):
        # Given: two lines, and the second one cannot be committed
        a = await add_product(name="A", price=1000, current_stock=10)
        b = await add_product(name="B", price=1500, current_stock=10)
        await cart.add_item(a, 2)
        await cart.add_item(b, 1)
        flaky = FlakyInventory(store, broken={b.product_id})
        service = CheckoutService(store, flaky, retry_delay=0)

        # When
        result = await service.checkout(cart, user)

        # Then: the order is failed, A is applied and B is still held in the cart
        assert result.success is False
        assert "B" in result.error
        assert result.order.order_status == OrderStatus.FAILED
        assert result.order.applied_product_ids == [a.product_id]
        assert [line.product_id for line in cart.items] == [b.product_id]
        assert store.inventory_row(a.product_id)["current_stock"] == 8
        assert store.inventory_row(b.product_id)["reserved_stock"] == 1

        # When: the problem clears and the order is resumed
        flaky.broken.clear()
        resumed = await service.resume(result.order.order_number, cart)

        # Then: only B is applied; A is not committed twice
        assert resumed.success is True
        assert resumed.order.order_status == OrderStatus.CONFIRMED
        assert flaky.commits == [(a.product_id, 2), (b.product_id, 1)]
        assert store.inventory_row(a.product_id)["current_stock"] == 8
        assert store.inventory_row(b.product_id)["current_stock"] == 9
        assert cart.items == []

    @pytest.mark.asyncio
    async def test_resume_confirmed_order_is_noop(self, store, cart, checkout, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 1)
        result = await checkout.checkout(cart, user)

        again = await checkout.resume(result.order.order_number)

        assert again.success is True
        assert store.inventory_row(product.product_id)["current_stock"] == 9

    @pytest.mark.asyncio
    async def test_resume_unknown_order(self, checkout):
        result = await checkout.resume("AC00000000")
        assert result.success is False
        assert "not found" in result.error


class TestCustomerOrders:
    @pytest.mark.asyncio
    async def test_orders_for_email(self, cart, checkout, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 1)
        await checkout.checkout(cart, user)

        orders = await checkout.get_customer_orders("ana@example.com")
        assert len(orders) == 1
        assert await checkout.get_customer_orders("nobody@example.com") == []


class TestCheckoutHoldsTheCart:
    @pytest.mark.asyncio
    async def test_quantity_change_waits_for_checkout(self, store, cart, checkout, user, reservations, add_product):
        # Given: 2 of 10 units held, and a quantity change racing the checkout
        product = await add_product(current_stock=10)
        await cart.add_item(product, 2)

        # When
        result, updated = await asyncio.gather(
            checkout.checkout(cart, user),
            cart.update_quantity(product.product_id, 5)
        )

        # Then: the order took the 2 held units and nothing is left reserved
        assert result.success is True
        assert [item.quantity for item in result.order.order_items] == [2]
        assert updated is False
        row = store.inventory_row(product.product_id)
        assert (row["current_stock"], row["reserved_stock"]) == (8, 0)
        assert cart.items == []
        assert reservations.active == []

    @pytest.mark.asyncio
    async def test_failed_checkout_keeps_line_held(self, store, cart, user, reservations, clock, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 2)
        service = CheckoutService(store, FlakyInventory(store, broken={product.product_id}), retry_delay=0)

        await service.checkout(cart, user)

        line = cart.get_item(product.product_id)
        assert line.is_held
        assert reservations.get(line.reservation_id).quantity == 2
        # the hold still lapses on its original schedule
        clock.advance(minutes=16)
        await cart.refresh()
        assert cart.items == []
        assert store.inventory_row(product.product_id)["reserved_stock"] == 0


class TestLedger:
    @pytest.mark.asyncio
    async def test_lost_ledger_write_never_reapplies(self, store, cart, user, add_product):
        # Given: A commits, B is refused and the first ledger write is lost
        a = await add_product(name="A", current_stock=10)
        b = await add_product(name="B", current_stock=10)
        await cart.add_item(a, 2)
        await cart.add_item(b, 1)
        flaky = FlakyInventory(store, broken={b.product_id})
        service = CheckoutService(store, flaky, max_retries=0, retry_delay=0)
        store.fail_next("update_item", NetworkFailure("offline"), table_id=Config.TABLES["orders"])

        # When
        result = await service.checkout(cart, user)

        # Then: the stored order still knows A was applied
        stored = await service.get_order(result.order.order_number)
        assert stored.order_status == OrderStatus.FAILED
        assert stored.applied_product_ids == [a.product_id]

        # When: the order is resumed
        flaky.broken.clear()
        resumed = await service.resume(result.order.order_number, cart)

        # Then: A was committed exactly once
        assert resumed.success is True
        assert store.inventory_row(a.product_id)["current_stock"] == 8
        assert store.inventory_row(b.product_id)["current_stock"] == 9

    @pytest.mark.asyncio
    async def test_ledger_write_is_retried(self, store, cart, checkout, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 2)
        store.fail_next("update_item", NetworkFailure("timeout"), table_id=Config.TABLES["orders"])

        result = await checkout.checkout(cart, user)

        assert result.success is True
        stored = await checkout.get_order(result.order.order_number)
        assert stored.applied_product_ids == [product.product_id]

    @pytest.mark.asyncio
    async def test_unrecorded_order_is_not_reported_confirmed(self, store, cart, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 1)
        service = CheckoutService(store, TableInventoryRepository(store), max_retries=0, retry_delay=0)
        store.fail_next("update_item", NetworkFailure("offline"), times=2, table_id=Config.TABLES["orders"])

        result = await service.checkout(cart, user)

        assert result.success is False
        assert "could not be recorded" in result.error


class TestResumeAfterHoldLapsed:
    @pytest.mark.asyncio
    async def test_other_shoppers_hold_survives(self, store, inventory, cart, user, clock, add_product):
        # Given: B's commit is refused and its hold then lapses
        a = await add_product(name="A", current_stock=10)
        b = await add_product(name="B", current_stock=10)
        await cart.add_item(a, 1)
        await cart.add_item(b, 3)
        flaky = FlakyInventory(store, broken={b.product_id})
        service = CheckoutService(store, flaky, retry_delay=0)
        result = await service.checkout(cart, user)
        clock.advance(minutes=16)
        await cart.refresh()
        assert cart.items == []

        # And: another shopper holds 3 units of B
        await inventory.reserve(b.product_id, 3)

        # When
        flaky.broken.clear()
        resumed = await service.resume(result.order.order_number, cart)

        # Then: B's units were claimed again and the other hold is intact
        assert resumed.success is True
        row = store.inventory_row(b.product_id)
        assert (row["current_stock"], row["reserved_stock"]) == (7, 3)

    @pytest.mark.asyncio
    async def test_resume_fails_when_units_are_gone(self, store, inventory, user, cart, clock, add_product):
        b = await add_product(name="B", current_stock=4)
        await cart.add_item(b, 3)
        flaky = FlakyInventory(store, broken={b.product_id})
        service = CheckoutService(store, flaky, retry_delay=0)
        result = await service.checkout(cart, user)
        clock.advance(minutes=16)
        await cart.refresh()
        await inventory.reserve(b.product_id, 2)

        flaky.broken.clear()
        resumed = await service.resume(result.order.order_number)

        assert resumed.success is False
        row = store.inventory_row(b.product_id)
        assert (row["current_stock"], row["reserved_stock"]) == (4, 2)


class TestRetries:
    @pytest.mark.asyncio
    async def test_zero_retries_means_one_attempt(self, store, cart, user, add_product):
        product = await add_product(current_stock=10)
        await cart.add_item(product, 2)
        service = CheckoutService(store, TableInventoryRepository(store), max_retries=0, retry_delay=0)
        store.fail_next("get_items", NetworkFailure("timeout"), table_id=Config.TABLES["inventory"])

        result = await service.checkout(cart, user)

        assert service.max_retries == 0
        assert result.success is False
        assert store.inventory_row(product.product_id)["current_stock"] == 10
        assert cart.item_count(product.product_id) == 2
