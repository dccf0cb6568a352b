# coffeeshop/services/inventory_service.py
import logging
from typing import Dict, List, Optional
from ..config import Config
from ..exceptions import ShopError
from ..models.inventory import AlertType, InventoryAlert, InventoryRecord, InventoryStats, StockStatus

class InventoryService:
    """Stock oversight for the admin dashboard"""

    def __init__(self, store, inventory):
        self.store = store
        self.inventory = inventory
        self.logger = logging.getLogger(__name__)

    async def _product_index(self) -> Dict[str, dict]:
        products = await self.store.get_items(Config.TABLES["products"], limit=100)
        return {p["_id"]: p for p in products if "_id" in p}

    async def load_stats(self) -> Optional[InventoryStats]:
        """Counts by stock status plus the value of available stock"""
        try:
            records = await self.inventory.list_all()
            products = await self._product_index()
        except ShopError as e:
            self.logger.error(f"Failed to load inventory stats: {e}")
            return None

        stats = InventoryStats(total_products=len(records))
        for record in records:
            price = products.get(record.product_id, {}).get("price", 0) or 0
            stats.total_value += record.available_stock * price

            if record.stock_status == StockStatus.IN_STOCK:
                stats.in_stock += 1
            elif record.stock_status == StockStatus.LOW_STOCK:
                stats.low_stock += 1
            elif record.stock_status == StockStatus.OUT_OF_STOCK:
                stats.out_of_stock += 1

            if record.needs_reorder:
                stats.needs_reorder += 1
        return stats

    async def update_stock(self, product_id: str, new_stock: int) -> Optional[InventoryRecord]:
        """Set a product's physical stock; refused below what carts hold"""
        try:
            record = await self.inventory.set_stock(product_id, new_stock)
        except ShopError as e:
            self.logger.error(f"Failed to update stock for {product_id}: {e}")
            return None
        self.logger.info(f"Stock for {product_id} set to {new_stock} ({record.stock_status.value})")
        return record

    async def get_inventory_alerts(self) -> List[InventoryAlert]:
        try:
            records = await self.inventory.list_all()
            products = await self._product_index()
        except ShopError as e:
            self.logger.error(f"Failed to fetch inventory alerts: {e}")
            return []

        alerts = []
        for record in records:
            if record.stock_status not in [StockStatus.LOW_STOCK, StockStatus.OUT_OF_STOCK]:
                continue
            product = products.get(record.product_id)
            if not product:
                continue
            name = product.get("name", record.product_id)
            if record.current_stock == 0:
                alert_type = AlertType.OUT_OF_STOCK
                message = f"{name} is out of stock"
            else:
                alert_type = AlertType.LOW_STOCK
                message = f"{name} is running low ({record.current_stock} left)"
            alerts.append(InventoryAlert(
                product_id=record.product_id,
                product_name=name,
                alert_type=alert_type,
                current_stock=record.current_stock,
                reorder_level=record.reorder_level,
                expiry_date=record.expiry_date,
                message=message
            ))
        return alerts
