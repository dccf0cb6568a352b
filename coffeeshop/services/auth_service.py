# coffeeshop/services/auth_service.py
import json
import logging
from typing import Any, Dict, Optional
from pydantic import ValidationError
from ..config import Config
from ..exceptions import AuthenticationError, ShopError
from ..models.user import EmailVerification, User, UserAddress, UserPreferences
from ..utils.formatters import utc_now
from ..utils.security import generate_address_id
from ..utils.storage import SessionStorage

class AuthService:
    """Signed-in customer session on top of the hosted OTP auth"""

    def __init__(self, auth_client, store, storage: Optional[SessionStorage] = None):
        self.auth_client = auth_client
        self.store = store
        self.storage = storage
        self.table_id = Config.TABLES["users"]
        self.user: Optional[User] = None
        self.error: Optional[str] = None
        self.logger = logging.getLogger(__name__)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def restore_session(self) -> Optional[User]:
        if self.storage is None:
            return None
        data = await self.storage.load()
        if data:
            try:
                self.user = User.model_validate(data)
            except ValidationError as e:
                self.logger.error(f"Discarding stored session: {e}")
                await self.storage.clear()
        return self.user

    async def send_verification_code(self, email: str):
        self.error = None
        try:
            await self.auth_client.send_otp(email)
        except ShopError as e:
            self.error = str(e)
            raise

    async def verify_and_login(self, email: str, code: str) -> User:
        """Verify an OTP code and load or create the customer profile"""
        self.error = None
        try:
            auth_user = await self.auth_client.verify_otp(email, code)
            user = await self._get_user_data(email, auth_user)
        except ShopError as e:
            self.error = str(e)
            self.user = None
            raise

        self.user = user
        await self._persist()
        self.logger.info(f"User {email} signed in")
        return user

    async def logout(self):
        try:
            await self.auth_client.logout()
        except ShopError as e:
            self.logger.error(f"Logout error: {e}")
        finally:
            self.user = None
            self.error = None
            if self.storage is not None:
                await self.storage.clear()

    async def update_profile(self, **updates: Any) -> User:
        user = self._require_user()
        updated = user.model_copy(update=updates)
        await self._save_user_data(updated)
        self.user = updated
        await self._persist()
        return updated

    async def add_shipping_address(self, name: str, street: str, city: str, state: str,
                                   zip: str, country: str, is_default: bool = False) -> UserAddress:
        user = self._require_user()
        addresses = [a.model_copy() for a in user.shipping_addresses]
        make_default = is_default or not addresses
        if make_default:
            for address in addresses:
                address.is_default = False

        new_address = UserAddress(
            id=generate_address_id(),
            name=name,
            street=street,
            city=city,
            state=state,
            zip=zip,
            country=country,
            is_default=make_default
        )
        addresses.append(new_address)
        await self.update_profile(shipping_addresses=addresses)
        return new_address

    async def update_shipping_address(self, address_id: str, **updates: Any) -> User:
        user = self._require_user()
        if not any(a.id == address_id for a in user.shipping_addresses):
            raise ValueError(f"Unknown address {address_id}")

        addresses = []
        for address in user.shipping_addresses:
            if address.id == address_id:
                address = address.model_copy(update=updates)
            elif updates.get("is_default"):
                address = address.model_copy(update={"is_default": False})
            addresses.append(address)
        return await self.update_profile(shipping_addresses=addresses)

    async def remove_shipping_address(self, address_id: str) -> User:
        user = self._require_user()
        removed = next((a for a in user.shipping_addresses if a.id == address_id), None)
        remaining = [a.model_copy() for a in user.shipping_addresses if a.id != address_id]
        # the first remaining address inherits the default flag
        if removed and removed.is_default and remaining:
            remaining[0].is_default = True
        return await self.update_profile(shipping_addresses=remaining)

    async def set_default_address(self, address_id: str) -> User:
        return await self.update_shipping_address(address_id, is_default=True)

    def _require_user(self) -> User:
        if self.user is None:
            raise AuthenticationError("No authenticated user")
        return self.user

    async def _persist(self):
        if self.storage is not None and self.user is not None:
            await self.storage.save(self.user.model_dump(mode="json"))

    async def _get_user_data(self, email: str, auth_user: Dict[str, Any]) -> User:
        items = await self.store.get_items(self.table_id, query={"email": email}, limit=1)
        now = utc_now()
        if items:
            row = items[0]
            user = User(
                uid=row.get("_id") or auth_user.get("uid", ""),
                email=row["email"],
                name=row.get("name") or "",
                profile_picture=row.get("profile_picture"),
                phone=row.get("phone"),
                preferences=UserPreferences.model_validate(json.loads(row.get("preferences") or "{}")),
                shipping_addresses=json.loads(row.get("shipping_addresses") or "[]"),
                subscription_status=row.get("subscription_status") or "none",
                total_orders=row.get("total_orders") or 0,
                email_verified=row.get("email_verified") or EmailVerification.PENDING,
                created_at=row.get("created_at") or now,
                last_login=now
            )
            await self._save_user_data(user)
            return user

        user = User(
            uid=auth_user.get("uid", ""),
            email=email,
            name=auth_user.get("name") or "",
            email_verified=EmailVerification.VERIFIED,
            created_at=now,
            last_login=now
        )
        stored = await self.store.add_item(self.table_id, self._to_row(user))
        user.uid = stored.get("_id") or user.uid
        return user

    async def _save_user_data(self, user: User):
        await self.store.update_item(self.table_id, {"_uid": user.uid, "_id": user.uid, **self._to_row(user)})

    @staticmethod
    def _to_row(user: User) -> Dict[str, Any]:
        data = user.model_dump(mode="json", exclude={"uid"})
        data["preferences"] = json.dumps(data["preferences"])
        data["shipping_addresses"] = json.dumps(data["shipping_addresses"])
        return data
