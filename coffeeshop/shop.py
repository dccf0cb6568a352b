# coffeeshop/shop.py
import logging
from typing import Optional
from .config import Config
from .database.auth_client import RemoteAuthClient
from .database.database import Database
from .database.table_store import RemoteTableStore
from .services.auth_service import AuthService
from .services.cart_service import Cart
from .services.catalog_service import CatalogService
from .services.checkout_service import CheckoutResult, CheckoutService
from .services.inventory_repository import PostgresInventoryRepository, TableInventoryRepository
from .services.inventory_service import InventoryService
from .services.reservation_service import ReservationManager
from .services.subscription_service import SubscriptionService
from .utils.storage import CartStorage, SessionStorage

class CoffeeShop:
    """Wires the storefront services to the hosted backend"""

    def __init__(self, store=None, auth_client=None, inventory=None,
                 database: Optional[Database] = None):
        self.logger = logging.getLogger(__name__)
        self.store = store or RemoteTableStore()
        self.database = database

        if inventory is None:
            if Config.INVENTORY_BACKEND == "postgres":
                self.database = self.database or Database()
                inventory = PostgresInventoryRepository(self.database)
            else:
                inventory = TableInventoryRepository(self.store)
        self.inventory = inventory

        self.reservations = ReservationManager(self.inventory)
        self.cart = Cart(self.reservations, CartStorage(Config.DATA_DIR / "cart.json"))
        self.auth = AuthService(
            auth_client or RemoteAuthClient(),
            self.store,
            SessionStorage(Config.DATA_DIR / "session.json")
        )
        self.catalog = CatalogService(self.store, self.inventory)
        self.admin = InventoryService(self.store, self.inventory)
        self.subscriptions = SubscriptionService(self.store)
        self.checkout_service = CheckoutService(self.store, self.inventory)

    async def start(self):
        """Connect backends and restore the persisted session and cart"""
        if self.database is not None and self.database.pool is None:
            await self.database.connect()
        await self.auth.restore_session()
        restored = await self.cart.load()
        self.logger.info(f"Storefront ready, {restored} cart lines restored")

    async def checkout(self) -> CheckoutResult:
        return await self.checkout_service.checkout(self.cart, self.auth.user)

    async def stop(self):
        await self.cart.save()
        await self.reservations.shutdown()
        if isinstance(self.store, RemoteTableStore):
            await self.store.close()
        if self.database is not None:
            await self.database.close()
