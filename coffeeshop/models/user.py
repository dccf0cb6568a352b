# coffeeshop/models/user.py
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel

class SubscriptionState(str, Enum):
    NONE = "none"
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"

class EmailVerification(str, Enum):
    VERIFIED = "verified"
    PENDING = "pending"
    FAILED = "failed"

class UserPreferences(BaseModel):
    intensity: Optional[int] = None
    roast_levels: List[str] = []
    allergies: List[str] = []

class UserAddress(BaseModel):
    """Saved shipping address on a user profile"""
    id: str
    name: str
    street: str
    city: str
    state: str
    zip: str
    country: str
    is_default: bool = False

class User(BaseModel):
    """Signed-in customer profile"""
    uid: str
    email: str
    name: str = ""
    profile_picture: Optional[str] = None
    phone: Optional[str] = None
    preferences: UserPreferences = UserPreferences()
    shipping_addresses: List[UserAddress] = []
    subscription_status: SubscriptionState = SubscriptionState.NONE
    total_orders: int = 0
    email_verified: EmailVerification = EmailVerification.PENDING
    created_at: datetime
    last_login: datetime

    @property
    def default_address(self) -> Optional[UserAddress]:
        return next((a for a in self.shipping_addresses if a.is_default), None)
