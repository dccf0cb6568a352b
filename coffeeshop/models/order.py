# coffeeshop/models/order.py
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_serializer, field_validator
import json
from .base import TimeStampedModel

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"

class OrderType(str, Enum):
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"

class OrderItem(BaseModel):
    """Itemized snapshot of a purchased product"""
    product_id: str
    name: str
    price: int  # cents per unit
    quantity: int = Field(gt=0)

    @property
    def total(self) -> int:
        return self.price * self.quantity

class Order(TimeStampedModel):
    """Order placed from a cart"""
    order_number: str
    customer_email: str
    order_type: OrderType = OrderType.ONE_TIME
    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_items: List[OrderItem]
    subtotal: int
    shipping_cost: int
    tax_amount: int
    total_amount: int
    # product ids whose inventory delta has been applied for this order
    applied_product_ids: List[str] = []

    @field_validator("order_items", "applied_product_ids", mode="before")
    @classmethod
    def _decode_json(cls, value):
        # the table store keeps nested lists as JSON strings
        if isinstance(value, str):
            return json.loads(value) if value else []
        return value

    @field_serializer("order_items", "applied_product_ids")
    def _encode_json(self, value, _info):
        return json.dumps([v.model_dump() if isinstance(v, BaseModel) else v for v in value])

    @property
    def pending_items(self) -> List[OrderItem]:
        return [item for item in self.order_items if item.product_id not in self.applied_product_ids]

    @property
    def is_completed(self) -> bool:
        return self.order_status in [OrderStatus.CONFIRMED, OrderStatus.CANCELLED]

class OrderTotals(BaseModel):
    subtotal: int
    shipping_cost: int
    tax_amount: int
    total_amount: int
