# coffeeshop/models/subscription.py
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field
from .base import TimeStampedModel

class SubscriptionPlanId(str, Enum):
    DISCOVERY = "discovery"
    SIGNATURE = "signature"
    PREMIUM = "premium"

class DeliveryFrequency(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"

class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    PENDING = "pending"

class SubscriptionPlan(BaseModel):
    id: SubscriptionPlanId
    name: str
    description: str
    price: int  # cents per delivery
    features: List[str]
    bags_per_delivery: int

class ShippingAddress(BaseModel):
    name: str
    street: str
    city: str
    state: str
    zip_code: str
    country: str

class BillingInfo(BaseModel):
    card_number: str  # masked
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int
    cardholder_name: str
    billing_address: ShippingAddress

class BillingForm(BaseModel):
    card_number: str
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int
    cardholder_name: str
    use_shipping_for_billing: bool = True
    billing_address: Optional[ShippingAddress] = None

class SubscriptionFormData(BaseModel):
    """Signup form input"""
    customer_email: EmailStr
    customer_name: str
    preferred_intensity: int = Field(ge=1, le=10)
    preferred_roast_levels: List[str] = []
    delivery_frequency: DeliveryFrequency
    subscription_plan: SubscriptionPlanId
    shipping_address: ShippingAddress
    billing_info: BillingForm
    special_instructions: Optional[str] = None

class CoffeeSubscription(TimeStampedModel):
    """Stored subscription row"""
    customer_email: str
    customer_name: str
    preferred_intensity: int
    preferred_roast_levels: str  # comma separated
    delivery_frequency: DeliveryFrequency
    bag_quantity: int
    subscription_plan: SubscriptionPlanId
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    next_delivery_date: datetime
    last_delivery_date: Optional[datetime] = None
    shipping_address: str  # JSON string
    billing_info: str  # JSON string
    special_instructions: str = ""
    total_deliveries: int = 0
