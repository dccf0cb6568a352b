# coffeeshop/services/inventory_repository.py
"""
Inventory repositories.

Cart, reservation and checkout code depend on the ``InventoryRepository``
protocol only. Two backends implement it:

``TableInventoryRepository``
    Talks to the hosted table store, which has no transactions and no
    conditional writes. Every change is "read record, compute, write back",
    so two clients reserving the same product at the same moment can both
    pass the availability check. Counters are still validated before each
    write so a single client never writes a negative or over-reserved row.

``PostgresInventoryRepository``
    Uses a single conditional ``UPDATE ... WHERE`` per change
    (decrement-if-available), so concurrent reservations cannot
    over-reserve. This is the backend to use when overselling matters.
"""
import logging
from typing import List, Protocol
from ..config import Config
from ..exceptions import InsufficientStock, InvariantViolation, NotFound
from ..models.inventory import InventoryRecord, MovementType, StockMovement, derive_stock_status
from ..utils.formatters import utc_now

class InventoryRepository(Protocol):
    async def get(self, product_id: str) -> InventoryRecord: ...

    async def list_all(self) -> List[InventoryRecord]: ...

    async def create(self, record: InventoryRecord) -> InventoryRecord: ...

    async def reserve(self, product_id: str, quantity: int) -> InventoryRecord: ...

    async def release(self, product_id: str, quantity: int) -> InventoryRecord: ...

    async def commit(self, product_id: str, quantity: int) -> InventoryRecord: ...

    async def set_stock(self, product_id: str, new_stock: int) -> InventoryRecord: ...

def check_counters(product_id: str, current_stock: int, reserved_stock: int) -> None:
    """Refuse counter values that break the stock invariants"""
    if current_stock < 0:
        raise InvariantViolation(f"current_stock for '{product_id}' would become {current_stock}")
    if reserved_stock < 0:
        raise InvariantViolation(f"reserved_stock for '{product_id}' would become {reserved_stock}")
    if reserved_stock > current_stock:
        raise InvariantViolation(
            f"reserved_stock {reserved_stock} would exceed current_stock {current_stock} for '{product_id}'"
        )

def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")

class TableInventoryRepository:
    """Inventory counters stored in the hosted table store"""

    def __init__(self, store, table_id: str = None):
        self.store = store
        self.table_id = table_id or Config.TABLES["inventory"]
        self.movements: List[StockMovement] = []
        self.logger = logging.getLogger(__name__)

    async def get(self, product_id: str) -> InventoryRecord:
        items = await self.store.get_items(self.table_id, query={"product_id": product_id}, limit=1)
        if not items:
            raise NotFound(f"No inventory record for product '{product_id}'")
        return InventoryRecord.model_validate(items[0])

    async def list_all(self) -> List[InventoryRecord]:
        items = await self.store.get_items(self.table_id, limit=100)
        return [InventoryRecord.model_validate(item) for item in items]

    async def create(self, record: InventoryRecord) -> InventoryRecord:
        check_counters(record.product_id, record.current_stock, record.reserved_stock)
        data = record.to_record()
        data.pop("_id", None)
        stored = await self.store.add_item(self.table_id, data)
        return InventoryRecord.model_validate(stored)

    async def _write(self, record: InventoryRecord, movement: MovementType, quantity: int,
                     reason: str, **changes) -> InventoryRecord:
        check_counters(
            record.product_id,
            changes.get("current_stock", record.current_stock),
            changes.get("reserved_stock", record.reserved_stock)
        )
        changes["updated_at"] = utc_now()
        changes["version"] = record.version + 1
        updated = record.model_copy(update=changes)

        serialized = updated.to_record()
        payload = {key: serialized[key] for key in ("_uid", "_id") if key in serialized}
        payload.update({key: serialized[key] for key in changes})
        await self.store.update_item(self.table_id, payload)

        self.movements.append(StockMovement(
            product_id=record.product_id,
            movement_type=movement,
            quantity=quantity,
            reason=reason,
            timestamp=changes["updated_at"]
        ))
        return updated

    async def reserve(self, product_id: str, quantity: int) -> InventoryRecord:
        """Hold units for a cart if enough are available"""
        _check_quantity(quantity)
        record = await self.get(product_id)
        if quantity > record.available_stock:
            raise InsufficientStock(product_id, quantity, record.available_stock)
        return await self._write(
            record, MovementType.RESERVED, quantity, "cart reservation",
            reserved_stock=record.reserved_stock + quantity
        )

    async def release(self, product_id: str, quantity: int) -> InventoryRecord:
        """Return held units to the available pool, floored at zero"""
        _check_quantity(quantity)
        record = await self.get(product_id)
        return await self._write(
            record, MovementType.UNRESERVED, quantity, "reservation released",
            reserved_stock=max(0, record.reserved_stock - quantity)
        )

    async def commit(self, product_id: str, quantity: int) -> InventoryRecord:
        """Turn held units into a permanent deduction"""
        _check_quantity(quantity)
        record = await self.get(product_id)
        new_stock = record.current_stock - quantity
        return await self._write(
            record, MovementType.OUT, quantity, "order committed",
            current_stock=new_stock,
            reserved_stock=max(0, record.reserved_stock - quantity),
            total_sold=record.total_sold + quantity,
            stock_status=derive_stock_status(new_stock, record.reorder_level)
        )

    async def set_stock(self, product_id: str, new_stock: int) -> InventoryRecord:
        record = await self.get(product_id)
        changes = {
            "current_stock": new_stock,
            "stock_status": derive_stock_status(new_stock, record.reorder_level),
        }
        if new_stock > record.current_stock:
            changes["last_restock_date"] = utc_now()
            changes["last_restock_quantity"] = new_stock - record.current_stock
        return await self._write(
            record, MovementType.IN, new_stock - record.current_stock, "stock adjusted", **changes
        )

_STATUS_CASE = """
    CASE WHEN {stock} <= 0 THEN 'out_of_stock'
         WHEN {stock} <= reorder_level THEN 'low_stock'
         ELSE 'in_stock' END
"""

class PostgresInventoryRepository:
    """Inventory counters in Postgres, changed with conditional updates"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _to_record(row) -> InventoryRecord:
        data = dict(row)
        data["_id"] = data["product_id"]
        return InventoryRecord.model_validate(data)

    async def _fetch(self, conn, product_id: str):
        return await conn.fetchrow("SELECT * FROM inventory WHERE product_id = $1", product_id)

    async def _log_movement(self, conn, product_id: str, movement: MovementType,
                            quantity: int, reason: str):
        await conn.execute("""
            INSERT INTO inventory_movements (product_id, movement_type, quantity, reason)
            VALUES ($1, $2, $3, $4)
        """, product_id, movement.value, quantity, reason)

    async def get(self, product_id: str) -> InventoryRecord:
        async with self.db.pool.acquire() as conn:
            row = await self._fetch(conn, product_id)
            if not row:
                raise NotFound(f"No inventory record for product '{product_id}'")
            return self._to_record(row)

    async def list_all(self) -> List[InventoryRecord]:
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM inventory ORDER BY product_id")
            return [self._to_record(row) for row in rows]

    async def create(self, record: InventoryRecord) -> InventoryRecord:
        check_counters(record.product_id, record.current_stock, record.reserved_stock)
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO inventory (
                    product_id, current_stock, reserved_stock, reorder_level,
                    reorder_quantity, stock_status, warehouse_location, batch_number,
                    last_restock_date, last_restock_quantity, expiry_date
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                ON CONFLICT (product_id) DO NOTHING
                RETURNING *
            """,
                record.product_id,
                record.current_stock,
                record.reserved_stock,
                record.reorder_level,
                record.reorder_quantity,
                record.stock_status.value,
                record.warehouse_location,
                record.batch_number,
                record.last_restock_date,
                record.last_restock_quantity,
                record.expiry_date
            )
            if row is None:
                row = await self._fetch(conn, record.product_id)
            return self._to_record(row)

    async def reserve(self, product_id: str, quantity: int) -> InventoryRecord:
        """Reserve only if the units are still available at write time"""
        _check_quantity(quantity)
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow("""
                    UPDATE inventory
                    SET reserved_stock = reserved_stock + $2,
                        version = version + 1,
                        updated_at = NOW()
                    WHERE product_id = $1
                      AND current_stock - reserved_stock >= $2
                    RETURNING *
                """, product_id, quantity)

                if not row:
                    current = await self._fetch(conn, product_id)
                    if not current:
                        raise NotFound(f"No inventory record for product '{product_id}'")
                    available = max(0, current["current_stock"] - current["reserved_stock"])
                    raise InsufficientStock(product_id, quantity, available)

                await self._log_movement(conn, product_id, MovementType.RESERVED, quantity, "cart reservation")
                return self._to_record(row)

    async def release(self, product_id: str, quantity: int) -> InventoryRecord:
        _check_quantity(quantity)
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow("""
                    UPDATE inventory
                    SET reserved_stock = GREATEST(reserved_stock - $2, 0),
                        version = version + 1,
                        updated_at = NOW()
                    WHERE product_id = $1
                    RETURNING *
                """, product_id, quantity)

                if not row:
                    raise NotFound(f"No inventory record for product '{product_id}'")

                await self._log_movement(conn, product_id, MovementType.UNRESERVED, quantity, "reservation released")
                return self._to_record(row)

    async def commit(self, product_id: str, quantity: int) -> InventoryRecord:
        _check_quantity(quantity)
        status = _STATUS_CASE.format(stock="current_stock - $2")
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(f"""
                    UPDATE inventory
                    SET current_stock = current_stock - $2,
                        reserved_stock = GREATEST(reserved_stock - $2, 0),
                        total_sold = total_sold + $2,
                        stock_status = {status},
                        version = version + 1,
                        updated_at = NOW()
                    WHERE product_id = $1
                      AND current_stock >= $2
                      AND GREATEST(reserved_stock - $2, 0) <= current_stock - $2
                    RETURNING *
                """, product_id, quantity)

                if not row:
                    current = await self._fetch(conn, product_id)
                    if not current:
                        raise NotFound(f"No inventory record for product '{product_id}'")
                    raise InvariantViolation(
                        f"Committing {quantity} of '{product_id}' would break stock counters "
                        f"(current={current['current_stock']}, reserved={current['reserved_stock']})"
                    )

                await self._log_movement(conn, product_id, MovementType.OUT, quantity, "order committed")
                return self._to_record(row)

    async def set_stock(self, product_id: str, new_stock: int) -> InventoryRecord:
        status = _STATUS_CASE.format(stock="$2")
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                previous = await self._fetch(conn, product_id)
                if not previous:
                    raise NotFound(f"No inventory record for product '{product_id}'")

                row = await conn.fetchrow(f"""
                    UPDATE inventory
                    SET current_stock = $2,
                        stock_status = {status},
                        last_restock_date = CASE WHEN $2 > current_stock THEN NOW() ELSE last_restock_date END,
                        last_restock_quantity = CASE WHEN $2 > current_stock THEN $2 - current_stock
                                                     ELSE last_restock_quantity END,
                        version = version + 1,
                        updated_at = NOW()
                    WHERE product_id = $1
                      AND $2 >= 0
                      AND reserved_stock <= $2
                    RETURNING *
                """, product_id, new_stock)

                if not row:
                    raise InvariantViolation(
                        f"Stock {new_stock} for '{product_id}' is below reserved {previous['reserved_stock']}"
                    )

                await self._log_movement(
                    conn, product_id, MovementType.IN,
                    new_stock - previous["current_stock"], "stock adjusted"
                )
                return self._to_record(row)
