# coffeeshop/services/checkout_service.py
import logging
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential
from ..config import Config
from ..exceptions import NetworkFailure, ShopError
from ..models.cart import CartLineItem, LineState
from ..models.order import Order, OrderItem, OrderStatus, OrderTotals
from ..models.user import User
from ..utils.formatters import percent_of, utc_now
from ..utils.security import generate_order_number

class CheckoutResult(BaseModel):
    success: bool
    order: Optional[Order] = None
    error: Optional[str] = None

def calculate_totals(subtotal: int) -> OrderTotals:
    """Shipping, tax and total for a subtotal in cents"""
    shipping_cost = 0 if subtotal > Config.FREE_SHIPPING_THRESHOLD else Config.SHIPPING_FLAT_FEE
    tax_amount = percent_of(subtotal, Config.TAX_RATE)
    return OrderTotals(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax_amount=tax_amount,
        total_amount=subtotal + shipping_cost + tax_amount
    )

class CheckoutService:
    """Turns a held cart into a committed order.

    The order row is written as ``pending`` before any stock moves. Each
    line's commit is then applied and recorded on the order, keyed by the
    order number, so a retry or a later ``resume`` never applies a line
    twice. The order becomes ``confirmed`` only once every line is applied.
    The cart is held still for the whole run.
    """

    def __init__(self, store, inventory, table_id: Optional[str] = None,
                 max_retries: Optional[int] = None, retry_delay: float = 0.5):
        self.store = store
        self.inventory = inventory
        self.table_id = table_id or Config.TABLES["orders"]
        self.max_retries = Config.CHECKOUT_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = retry_delay
        self.logger = logging.getLogger(__name__)

    async def checkout(self, cart, user: Optional[User]) -> CheckoutResult:
        """Place an order for everything in the cart"""
        if user is None:
            return CheckoutResult(success=False, error="Please sign in to proceed with checkout")

        async with cart.checking_out() as lines:
            if not lines:
                return CheckoutResult(success=False, error="Cart is empty")

            items = [
                OrderItem(
                    product_id=line.product_id,
                    name=line.product.product.name,
                    price=line.unit_price,
                    quantity=line.quantity
                )
                for line in lines
            ]
            totals = calculate_totals(sum(line.total_price for line in lines))
            now = utc_now()
            order = Order(
                order_number=generate_order_number(),
                customer_email=user.email,
                order_items=items,
                created_at=now,
                updated_at=now,
                **totals.model_dump()
            )

            try:
                created = await self.store.add_item(self.table_id, order.to_record())
            except ShopError as e:
                self.logger.error(f"Failed to create order: {e}")
                return CheckoutResult(success=False, error="Could not create order, please try again")
            order.id = created.get("_id", order.id)
            order.uid = created.get("_uid", order.uid)

            await self._apply(order, lines)

        return await self._finish(order)

    async def resume(self, order_number: str, cart=None) -> CheckoutResult:
        """Apply whatever is still outstanding for a pending or failed order.

        Lines the cart still holds at the ordered quantity are committed from
        that hold. Any other outstanding line has lost its hold, so its units
        are reserved again before the commit.
        """
        try:
            order = await self.get_order(order_number)
        except ShopError as e:
            self.logger.error(f"Failed to load order {order_number}: {e}")
            return CheckoutResult(success=False, error="Could not load order, please try again")
        if order is None:
            return CheckoutResult(success=False, error=f"Order {order_number} not found")
        if order.is_completed:
            return CheckoutResult(success=order.order_status == OrderStatus.CONFIRMED, order=order)

        if cart is None:
            await self._apply(order, [])
        else:
            async with cart.checking_out() as lines:
                await self._apply(order, lines)
        return await self._finish(order)

    async def get_order(self, order_number: str) -> Optional[Order]:
        items = await self.store.get_items(self.table_id, query={"order_number": order_number}, limit=1)
        return Order.model_validate(items[0]) if items else None

    async def get_customer_orders(self, email: str, limit: int = 20) -> List[Order]:
        try:
            items = await self.store.get_items(
                self.table_id,
                query={"customer_email": email},
                sort="_id",
                order="desc",
                limit=limit
            )
        except ShopError as e:
            self.logger.error(f"Failed to fetch orders for {email}: {e}")
            return []
        return [Order.model_validate(item) for item in items]

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, max=10),
            retry=retry_if_exception_type(NetworkFailure),
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            reraise=True
        )

    async def _apply(self, order: Order, lines: List[CartLineItem]):
        held = {line.product_id: line for line in lines}
        for item in order.pending_items:
            line = held.get(item.product_id)
            from_hold = line is not None and line.quantity == item.quantity
            if not await self._commit_item(order, item, from_hold):
                continue

            order.applied_product_ids.append(item.product_id)
            if from_hold:
                line.state = LineState.COMMITTED
            if not await self._save_progress(order, applied_product_ids=order.applied_product_ids):
                # nothing more is applied while the stored ledger is behind
                break

    async def _commit_item(self, order: Order, item: OrderItem, from_hold: bool) -> bool:
        if not from_hold:
            try:
                await self.inventory.reserve(item.product_id, item.quantity)
            except ShopError as e:
                self.logger.error(f"Cannot reserve {item.product_id} again for {order.order_number}: {e}")
                return False

        try:
            async for attempt in self._retrying():
                with attempt:
                    await self.inventory.commit(item.product_id, item.quantity)
        except ShopError as e:
            self.logger.error(f"Cannot commit {item.product_id} for {order.order_number}: {e}")
            if not from_hold:
                await self._give_back(order, item)
            return False
        return True

    async def _give_back(self, order: Order, item: OrderItem):
        try:
            await self.inventory.release(item.product_id, item.quantity)
        except ShopError as e:
            self.logger.error(f"Failed to release {item.product_id} for {order.order_number}: {e}")

    async def _finish(self, order: Order) -> CheckoutResult:
        status = OrderStatus.FAILED if order.pending_items else OrderStatus.CONFIRMED
        recorded = await self._save_progress(
            order, order_status=status, applied_product_ids=order.applied_product_ids
        )

        if not recorded:
            return CheckoutResult(
                success=False,
                order=order,
                error=f"Order {order.order_number} could not be recorded, please contact support"
            )
        if status == OrderStatus.FAILED:
            missing = ", ".join(item.name for item in order.pending_items)
            return CheckoutResult(
                success=False,
                order=order,
                error=f"Order {order.order_number} could not reserve stock for: {missing}"
            )

        self.logger.info(f"Order {order.order_number} confirmed ({order.total_amount} cents)")
        return CheckoutResult(success=True, order=order)

    async def _save_progress(self, order: Order, **changes: Any) -> bool:
        for field, value in changes.items():
            setattr(order, field, value)
        order.updated_at = utc_now()

        serialized = order.to_record()
        payload: Dict[str, Any] = {key: serialized[key] for key in ("_uid", "_id") if key in serialized}
        for field in [*changes, "updated_at"]:
            payload[field] = serialized[field]
        try:
            async for attempt in self._retrying():
                with attempt:
                    await self.store.update_item(self.table_id, payload)
        except ShopError as e:
            self.logger.error(f"Failed to record progress for {order.order_number}: {e}")
            return False
        return True
