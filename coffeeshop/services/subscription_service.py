# coffeeshop/services/subscription_service.py
import calendar
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from ..config import Config
from ..exceptions import ShopError
from ..models.subscription import (
    BillingInfo,
    CoffeeSubscription,
    DeliveryFrequency,
    SubscriptionFormData,
    SubscriptionPlan,
    SubscriptionPlanId,
)
from ..utils.formatters import utc_now
from ..utils.security import mask_card_number

PLANS: Dict[SubscriptionPlanId, SubscriptionPlan] = {
    SubscriptionPlanId.DISCOVERY: SubscriptionPlan(
        id=SubscriptionPlanId.DISCOVERY,
        name="Discovery",
        description="One rotating single-origin bag per delivery",
        price=1899,
        features=["1 bag per delivery", "Rotating origins", "Tasting notes card"],
        bags_per_delivery=1
    ),
    SubscriptionPlanId.SIGNATURE: SubscriptionPlan(
        id=SubscriptionPlanId.SIGNATURE,
        name="Signature",
        description="Two bags matched to your intensity profile",
        price=3499,
        features=["2 bags per delivery", "Matched to your profile", "Free shipping"],
        bags_per_delivery=2
    ),
    SubscriptionPlanId.PREMIUM: SubscriptionPlan(
        id=SubscriptionPlanId.PREMIUM,
        name="Premium",
        description="Three bags including rare micro-lots",
        price=4999,
        features=["3 bags per delivery", "Rare micro-lots", "Free shipping", "Priority support"],
        bags_per_delivery=3
    ),
}

def add_months(dt: datetime, months: int) -> datetime:
    """Same day next month, clamped to the month's last day"""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)

def next_delivery_date(frequency: DeliveryFrequency, start: datetime) -> datetime:
    if frequency == DeliveryFrequency.WEEKLY:
        return start + timedelta(days=7)
    if frequency == DeliveryFrequency.BI_WEEKLY:
        return start + timedelta(days=14)
    return add_months(start, 1)

class SubscriptionService:
    def __init__(self, store):
        self.store = store
        self.table_id = Config.TABLES["subscriptions"]
        self.logger = logging.getLogger(__name__)

    def get_plans(self) -> List[SubscriptionPlan]:
        return list(PLANS.values())

    async def create_subscription(self, form: SubscriptionFormData,
                                  now: Optional[datetime] = None) -> Dict[str, Any]:
        """Store a new pending subscription"""
        now = now or utc_now()
        billing_address = (
            form.shipping_address
            if form.billing_info.use_shipping_for_billing or form.billing_info.billing_address is None
            else form.billing_info.billing_address
        )
        billing = BillingInfo(
            card_number=mask_card_number(form.billing_info.card_number),
            expiry_month=form.billing_info.expiry_month,
            expiry_year=form.billing_info.expiry_year,
            cardholder_name=form.billing_info.cardholder_name,
            billing_address=billing_address
        )

        subscription = CoffeeSubscription(
            customer_email=form.customer_email,
            customer_name=form.customer_name,
            preferred_intensity=form.preferred_intensity,
            preferred_roast_levels=",".join(form.preferred_roast_levels),
            delivery_frequency=form.delivery_frequency,
            bag_quantity=PLANS[form.subscription_plan].bags_per_delivery,
            subscription_plan=form.subscription_plan,
            next_delivery_date=next_delivery_date(form.delivery_frequency, now),
            shipping_address=form.shipping_address.model_dump_json(),
            billing_info=billing.model_dump_json(),
            special_instructions=form.special_instructions or "",
            created_at=now,
            updated_at=now
        )

        record = subscription.to_record()
        record.pop("_id", None)
        try:
            stored = await self.store.add_item(self.table_id, record)
        except ShopError as e:
            self.logger.error(f"Failed to create subscription: {e}")
            return {
                "success": False,
                "error": str(e)
            }

        return {
            "success": True,
            "subscription_id": stored.get("_id")
        }

    async def get_user_subscriptions(self, email: str) -> List[CoffeeSubscription]:
        try:
            items = await self.store.get_items(
                self.table_id,
                query={"customer_email": email},
                sort="_id",
                order="desc"
            )
        except ShopError as e:
            self.logger.error(f"Failed to fetch subscriptions for {email}: {e}")
            return []
        return [CoffeeSubscription.model_validate(item) for item in items]

