"""
Shared fixtures: an in-memory table store standing in for the hosted
backend, a controllable clock, and helpers to seed products with stock.
"""
import asyncio
import copy
import itertools
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from coffeeshop.config import Config
from coffeeshop.exceptions import AuthenticationError, NetworkFailure, NotFound
from coffeeshop.models.inventory import derive_stock_status
from coffeeshop.models.product import CoffeeProduct, ProductWithInventory
from coffeeshop.services.cart_service import Cart
from coffeeshop.services.inventory_repository import TableInventoryRepository
from coffeeshop.services.reservation_service import ReservationManager
from coffeeshop.services.sample_data import sample_inventory


class FakeTableStore:
    """Dict-backed table store with the hosted API's shape."""

    def __init__(self):
        self.tables = defaultdict(dict)
        self.failures = defaultdict(list)
        self.calls = []
        self._ids = itertools.count(1)

    def fail_next(self, method: str, exc: Exception, times: int = 1, table_id: str = None):
        """Make the next calls of ``method`` raise, optionally only for one table"""
        self.failures[(method, table_id)].extend([exc] * times)

    async def _enter(self, method: str, table_id: str):
        # every call yields to the loop, as a real request would
        await asyncio.sleep(0)
        for key in [(method, table_id), (method, None)]:
            if self.failures[key]:
                raise self.failures[key].pop(0)

    async def get_items(self, table_id, query=None, sort=None, order=None, limit=None):
        self.calls.append(("get_items", table_id, query))
        await self._enter("get_items", table_id)
        rows = [
            row for row in self.tables[table_id].values()
            if all(row.get(key) == value for key, value in (query or {}).items())
        ]
        if sort:
            rows.sort(key=lambda row: row.get(sort), reverse=order == "desc")
        if limit:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def add_item(self, table_id, record):
        self.calls.append(("add_item", table_id, record))
        await self._enter("add_item", table_id)
        row_id = f"{table_id}-{next(self._ids):04d}"
        row = {**copy.deepcopy(record), "_id": row_id, "_uid": "owner-1"}
        self.tables[table_id][row_id] = row
        return copy.deepcopy(row)

    async def update_item(self, table_id, record):
        self.calls.append(("update_item", table_id, record))
        await self._enter("update_item", table_id)
        row = self.tables[table_id].get(record["_id"])
        if row is None:
            raise NotFound(f"No row {record['_id']} in {table_id}")
        row.update(copy.deepcopy(record))

    def inventory_row(self, product_id: str) -> dict:
        table = self.tables[Config.TABLES["inventory"]]
        return next(row for row in table.values() if row["product_id"] == product_id)


class FakeAuthClient:
    """Accepts one fixed OTP code."""

    def __init__(self, valid_code="123456"):
        self.valid_code = valid_code
        self.sent = []
        self.logged_out = False
        self.fail_logout = False

    async def send_otp(self, email):
        self.sent.append(email)

    async def verify_otp(self, email, code):
        if code != self.valid_code:
            raise AuthenticationError("Invalid verification code")
        return {"uid": "auth-1", "email": email, "name": "Ana"}

    async def logout(self):
        self.logged_out = True
        if self.fail_logout:
            raise NetworkFailure("offline")


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def store():
    return FakeTableStore()


@pytest.fixture
def inventory(store):
    return TableInventoryRepository(store)


@pytest.fixture
def auth_client():
    return FakeAuthClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reservations(inventory, clock):
    return ReservationManager(inventory, clock=clock)


@pytest_asyncio.fixture
async def cart(reservations):
    cart = Cart(reservations)
    yield cart
    await reservations.shutdown()


@pytest.fixture
def add_product(store, inventory, clock):
    """Create a product row plus its inventory record."""

    async def _add(name="House Blend", price=1000, current_stock=10, reserved_stock=0,
                   roast_level="medium", intensity=5, reorder_level=15, total_sold=0):
        product = CoffeeProduct(
            name=name,
            origin="Huila, Colombia",
            roast_level=roast_level,
            intensity=intensity,
            price=price,
            created_at=clock.now,
        )
        record = product.to_record()
        record.pop("_id", None)
        stored = await store.add_item(Config.TABLES["products"], record)

        stock = sample_inventory(stored["_id"], clock.now, current_stock=current_stock)
        stock.reserved_stock = reserved_stock
        stock.reorder_level = reorder_level
        stock.total_sold = total_sold
        stock.stock_status = derive_stock_status(current_stock, reorder_level)
        created = await inventory.create(stock)
        return ProductWithInventory(product=CoffeeProduct.model_validate(stored), inventory=created)

    return _add
