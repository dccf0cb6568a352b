# coffeeshop/services/cart_service.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
from pydantic import ValidationError
from ..exceptions import ShopError
from ..models.cart import CartLineItem, LineState, Reservation
from ..models.product import ProductWithInventory
from ..utils.storage import CartStorage

class Cart:
    """Client-side cart whose lines are backed by stock reservations.

    Mutations run one at a time through an internal lock. Operations that
    can fail return False instead of raising; ``last_error`` keeps the
    reason for the UI.
    """

    def __init__(self, reservations, storage: Optional[CartStorage] = None):
        self.reservations = reservations
        self.storage = storage
        self._items: List[CartLineItem] = []
        self._lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()
        self.last_error: Optional[ShopError] = None
        self.logger = logging.getLogger(__name__)
        reservations.add_release_listener(self._on_reservation_released)

    @property
    def items(self) -> List[CartLineItem]:
        return list(self._items)

    def get_item(self, product_id: str) -> Optional[CartLineItem]:
        return next((item for item in self._items if item.product_id == product_id), None)

    async def add_item(self, product: ProductWithInventory, quantity: int = 1) -> bool:
        """Add units of a product, merging with an existing line"""
        if quantity <= 0:
            return False

        async with self._lock:
            self.last_error = None
            existing = self.get_item(product.product_id)
            previous_token = existing.reservation_id if existing else None

            try:
                token = await self.reservations.reserve(
                    product.product_id, quantity, absorb=previous_token
                )
            except ShopError as e:
                self.logger.warning(f"Could not add {quantity} of {product.product_id} to cart: {e}")
                self.last_error = e
                return False

            reservation = self.reservations.get(token)
            # the previous hold may have expired while this one was being made
            if existing is not None and self._contains(existing):
                line = existing
                line.product = product
            else:
                line = CartLineItem(product=product, quantity=reservation.quantity,
                                    reserved_at=reservation.created_at)
                self._items.append(line)
            self._hold(line, reservation)

        await self.save()
        return True

    async def update_quantity(self, product_id: str, quantity: int) -> bool:
        """Set a line's quantity; zero or less removes the line"""
        if quantity <= 0:
            await self.remove_item(product_id)
            return True

        async with self._lock:
            self.last_error = None
            line = self.get_item(product_id)
            if line is None:
                return False
            if quantity == line.quantity and line.is_held:
                return True

            old_token = line.reservation_id
            held = line.quantity if line.is_held else 0
            try:
                record = await self.reservations.inventory.get(product_id)
            except ShopError as e:
                self.last_error = e
                return False

            if not self._contains(line) or line.reservation_id != old_token:
                return False
            # the line's own units count towards what it can have
            if quantity > record.available_stock + held:
                self.logger.info(f"Not enough stock to set {product_id} to {quantity}")
                return False

            line.state = LineState.PENDING
            if old_token:
                await self.reservations.release(old_token, notify=False)

            try:
                token = await self.reservations.reserve(product_id, quantity)
            except ShopError as e:
                self.last_error = e
                self.logger.warning(f"Could not reserve {quantity} of {product_id}: {e}")
                await self._restore(line, held)
                await self.save()
                return False

            self._hold(line, self.reservations.get(token))

        await self.save()
        return True

    async def remove_item(self, product_id: str) -> None:
        async with self._lock:
            line = self.get_item(product_id)
            if line is None:
                return
            await self._release_line(line)
        await self.save()

    async def clear(self) -> None:
        """Release every reservation, then empty the cart"""
        async with self._lock:
            for line in list(self._items):
                await self._release_line(line)
            self._items = []
        await self.save()

    @asynccontextmanager
    async def checking_out(self) -> AsyncIterator[List[CartLineItem]]:
        """Hold the cart still while an order is placed from it.

        Takes the update queue for the whole block, so no other mutation can
        change a line between the order snapshot and the stock commit. Lapsed
        holds are released first and the remaining lines' expiry timers are
        stopped. On exit, lines marked COMMITTED leave the cart without a
        release; every other line is held again from its original
        reservation time.
        """
        async with self._lock:
            await self.reservations.refresh()
            paused = []
            for line in self._items:
                if not line.is_held:
                    continue
                reservation = self.reservations.forget(line.reservation_id)
                if reservation is None:
                    continue
                line.state = LineState.PENDING
                paused.append((line, reservation))

            try:
                yield [line for line, _ in paused]
            finally:
                for line, reservation in paused:
                    if line.state == LineState.COMMITTED:
                        line.reservation_id = None
                        self._discard(line)
                    else:
                        line.reservation_id = self.reservations.adopt(
                            reservation.product_id, reservation.quantity, reservation.created_at
                        )
                        line.state = LineState.HELD

        # a hold may have lapsed while its timer was stopped
        await self.refresh()
        await self.save()

    async def refresh(self) -> int:
        """Release holds that outlived their TTL"""
        return await self.reservations.refresh()

    def total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    def total_price(self) -> int:
        """Cart total in cents"""
        return sum(item.unit_price * item.quantity for item in self._items)

    def item_count(self, product_id: str) -> int:
        item = self.get_item(product_id)
        return item.quantity if item else 0

    async def save(self) -> None:
        if self.storage is None:
            return
        async with self._save_lock:
            try:
                await self.storage.save([item.snapshot() for item in self._items])
            except OSError as e:
                self.logger.error(f"Failed to persist cart: {e}")

    async def load(self) -> int:
        """Restore lines from storage and reconcile their holds.

        Stored lines carry no token. Their units are still held remotely,
        so each one is tracked again from its original reservation time and
        anything past the TTL is released by ``refresh``.
        """
        if self.storage is None:
            return 0
        stored = await self.storage.load() or []
        async with self._lock:
            for data in stored:
                try:
                    line = CartLineItem.model_validate(data)
                except ValidationError as e:
                    self.logger.error(f"Dropping unreadable cart line: {e}")
                    continue
                if self.get_item(line.product_id):
                    continue
                token = self.reservations.adopt(line.product_id, line.quantity, line.reserved_at)
                line.reservation_id = token
                line.state = LineState.HELD
                self._items.append(line)
        await self.refresh()
        await self.save()
        return len(self._items)

    def _hold(self, line: CartLineItem, reservation: Reservation):
        line.quantity = reservation.quantity
        line.reservation_id = reservation.token
        line.reserved_at = reservation.created_at
        line.state = LineState.HELD

    async def _release_line(self, line: CartLineItem):
        if line.reservation_id:
            await self.reservations.release(line.reservation_id, notify=False)
        line.state = LineState.RELEASED
        line.reservation_id = None
        self._discard(line)

    async def _restore(self, line: CartLineItem, held: int):
        """Try to get back the hold a failed update gave up"""
        if held > 0:
            try:
                token = await self.reservations.reserve(line.product_id, held)
                self._hold(line, self.reservations.get(token))
                return
            except ShopError as e:
                self.logger.error(f"Could not restore hold for {line.product_id}: {e}")
        line.state = LineState.RELEASED
        line.reservation_id = None
        self._discard(line)

    async def _on_reservation_released(self, reservation: Reservation):
        line = next((item for item in self._items if item.reservation_id == reservation.token), None)
        if line is None:
            return
        line.state = LineState.RELEASED
        line.reservation_id = None
        self._discard(line)
        await self.save()

    def _contains(self, line: CartLineItem) -> bool:
        return any(item is line for item in self._items)

    def _discard(self, line: CartLineItem):
        self._items = [item for item in self._items if item is not line]
