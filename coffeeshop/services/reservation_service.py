# coffeeshop/services/reservation_service.py
import asyncio
import inspect
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set
from ..config import Config
from ..exceptions import ShopError
from ..models.cart import Reservation
from ..utils.formatters import utc_now
from ..utils.security import generate_reservation_token

ReleaseListener = Callable[[Reservation], object]

class ReservationManager:
    """Holds stock for cart lines and makes sure every hold is eventually released.

    Each reservation is a delta applied to the product's ``reserved_stock``
    plus a timer that applies the inverse delta after the TTL. The TTL runs
    from reservation creation and is never extended; replacing a line's
    quantity creates a new token with a fresh timer.
    """

    def __init__(self, inventory, ttl: Optional[timedelta] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.inventory = inventory
        self.ttl = ttl or timedelta(minutes=Config.RESERVATION_TTL_MINUTES)
        self.clock = clock or utc_now
        self._reservations: Dict[str, Reservation] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[ReleaseListener] = []
        self.logger = logging.getLogger(__name__)

    def add_release_listener(self, listener: ReleaseListener):
        """Call ``listener`` whenever a hold is released on its own (timer, refresh, explicit release)"""
        self._listeners.append(listener)

    def get(self, token: str) -> Optional[Reservation]:
        return self._reservations.get(token)

    @property
    def active(self) -> List[Reservation]:
        return list(self._reservations.values())

    def is_expired(self, created_at: datetime) -> bool:
        return self.clock() - created_at > self.ttl

    async def reserve(self, product_id: str, quantity: int,
                      absorb: Optional[str] = None) -> str:
        """Reserve ``quantity`` units and return a new token.

        Raises NotFound, InsufficientStock or NetworkFailure from the
        repository. When ``absorb`` names a live token, that hold is folded
        into the new one, so a single token covers the line's whole quantity.
        """
        await self.inventory.reserve(product_id, quantity)

        now = self.clock()
        if absorb and absorb in self._reservations:
            quantity += self._pop(absorb).quantity

        token = generate_reservation_token()
        self._track(Reservation(
            token=token,
            product_id=product_id,
            quantity=quantity,
            created_at=now,
            expires_at=now + self.ttl
        ))
        self.logger.info(f"Reserved {quantity} of {product_id} as {token}")
        return token

    def adopt(self, product_id: str, quantity: int, created_at: datetime) -> str:
        """Track a hold that already exists remotely (a cart restored from storage)"""
        token = generate_reservation_token()
        self._track(Reservation(
            token=token,
            product_id=product_id,
            quantity=quantity,
            created_at=created_at,
            expires_at=created_at + self.ttl
        ))
        return token

    async def release(self, token: str, notify: bool = True) -> bool:
        """Release a hold. Unknown or already released tokens are a no-op.

        Failures talking to the store are logged and the hold is still
        dropped locally.
        """
        reservation = self._pop(token)
        if reservation is None:
            return False

        try:
            await self.inventory.release(reservation.product_id, reservation.quantity)
        except ShopError as e:
            self.logger.error(f"Failed to release reservation {token}: {e}")

        self.logger.info(f"Released {reservation.quantity} of {reservation.product_id} ({token})")
        if notify:
            for listener in self._listeners:
                result = listener(reservation)
                if inspect.isawaitable(result):
                    await result
        return True

    def forget(self, token: str) -> Optional[Reservation]:
        """Stop tracking a hold without touching the store (its units were committed or are paused for checkout)"""
        return self._pop(token)

    async def refresh(self) -> int:
        """Release every hold older than the TTL, returning how many were released"""
        expired = [r.token for r in self.active if self.is_expired(r.created_at)]
        released = 0
        for token in expired:
            if await self.release(token):
                released += 1
        if released:
            self.logger.info(f"Released {released} expired reservations")
        return released

    async def shutdown(self):
        """Cancel timers without releasing, leaving holds to be reconciled on next load"""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()

    def _track(self, reservation: Reservation):
        self._reservations[reservation.token] = reservation
        delay = (reservation.expires_at - self.clock()).total_seconds()
        if delay > 0:
            loop = asyncio.get_running_loop()
            self._timers[reservation.token] = loop.call_later(delay, self._expire, reservation.token)

    def _pop(self, token: str) -> Optional[Reservation]:
        handle = self._timers.pop(token, None)
        if handle:
            handle.cancel()
        return self._reservations.pop(token, None)

    def _expire(self, token: str):
        self._timers.pop(token, None)
        task = asyncio.ensure_future(self.release(token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
