"""
Session lifecycle for the logged-in customer.

SessionService is the single owner of the in-memory identity, token and order
list. Every change replaces the held (immutable) value and, for the identity,
re-persists it through PersistentSessionStore. Orders and loyalty are loaded
through FetchCache so concurrent consumers share one backend call.
"""
import asyncio
import logging
from collections.abc import Coroutine
from enum import Enum
from typing import Any

from pydantic import ValidationError

from clients.auth import AuthClient
from clients.commerce import CommerceClient
from clients.loyalty import LoyaltyClient
from core.config import Settings, get_settings
from core.fetch_cache import FetchCache
from core.session_store import PersistentSessionStore
from schemas.loyalty import LoyaltySnapshot, RedeemEligibility, RedeemResult
from schemas.order import Order
from schemas.user import (
    Address,
    AddressInput,
    AddressUpdate,
    ProfileUpdate,
    Registration,
    User,
)
from services.address_identity import SoftDeleteRegistry, address_identity
from services.customer_mapping import (
    customer_from_account,
    customer_update_payload,
    loyalty_from_record,
    order_from_record,
    registration_payload,
    to_decimal,
    user_from_customer,
)
from services.exceptions import AuthFailure, SyncError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 4
ADMIN_ROLE = "administrator"
# Points deducted when the backend doesn't report the remaining balance
REDEEM_COST_POINTS = 60

SHORT_PASSWORD_ERROR = "Wachtwoord moet minimaal 4 karakters zijn"
NO_ACCOUNT_ERROR = "Kan accountgegevens niet ophalen"
LOGIN_UNAVAILABLE_ERROR = "Er is een fout opgetreden bij het inloggen"
REGISTRATION_UNAVAILABLE_ERROR = "Er is een fout opgetreden bij het registreren"
PROFILE_UPDATE_ERROR = "Kan profiel niet bijwerken"
NOT_LOGGED_IN_ERROR = "User not logged in or email not available"
PASSWORD_RESET_UNAVAILABLE_ERROR = "An error occurred. Please try again later."


class SessionState(str, Enum):
    """Whether persisted state has been read yet."""

    UNRESTORED = "unrestored"
    RESTORED = "restored"


class SessionService:
    """
    Owns the customer session: restore, login, logout and everything that
    mutates the held identity.

    Consumers must await `wait_restored()` (or `restore()`) before deciding
    whether the customer is logged in; until then `user` is None for reasons
    that have nothing to do with the customer being logged out.

    Public operations never raise for backend failures. Boolean operations
    return False and leave a displayable message in `last_error`.
    """

    def __init__(
        self,
        *,
        store: PersistentSessionStore,
        auth: AuthClient,
        commerce: CommerceClient,
        loyalty: LoyaltyClient,
        registry: SoftDeleteRegistry,
        settings: Settings | None = None,
        orders_cache: FetchCache[tuple[Order, ...]] | None = None,
        loyalty_cache: FetchCache[LoyaltySnapshot] | None = None,
    ) -> None:
        self._store = store
        self._auth = auth
        self._commerce = commerce
        self._loyalty = loyalty
        self._registry = registry
        self._settings = settings or get_settings()
        ttl = self._settings.cache_ttl_seconds
        self._orders_cache = orders_cache or FetchCache("orders", ttl)
        self._loyalty_cache = loyalty_cache or FetchCache("loyalty", ttl)

        self._state = SessionState.UNRESTORED
        self._restored = asyncio.Event()
        self._user: User | None = None
        self._token: str | None = None
        self._orders: tuple[Order, ...] = ()
        self._background_tasks: set[asyncio.Task[None]] = set()
        self.last_error: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def orders(self) -> tuple[Order, ...]:
        return self._orders

    @property
    def is_logged_in(self) -> bool:
        return self._user is not None

    @property
    def is_loading_orders(self) -> bool:
        """True while an orders fetch for the current customer is in flight."""
        user = self._user
        return user is not None and self._orders_cache.is_fetching(f"orders:{user.id}")

    @property
    def is_loading_loyalty(self) -> bool:
        """True while a loyalty fetch for the current customer is in flight."""
        user = self._user
        return user is not None and self._loyalty_cache.is_fetching(f"loyalty:{user.email}")

    @property
    def is_admin(self) -> bool:
        """Administrative accounts update their profile locally only."""
        user = self._user
        if user is None:
            return False
        return user.role == ADMIN_ROLE or user.email.lower() in self._settings.admin_emails

    async def wait_restored(self) -> None:
        """Block until restore() has completed."""
        await self._restored.wait()

    async def wait_background_tasks(self) -> None:
        """Wait for scheduled background hydration to finish."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))

    async def restore(self) -> User | None:
        """
        Load the persisted session. Makes no network call.

        A missing or malformed record leaves the customer logged out. Calling
        restore() again after it completed is a no-op.
        """
        if self._state is SessionState.RESTORED:
            return self._user
        record = await self._store.load()
        if record is not None:
            self._user = record.user
            self._token = record.token
            logger.info("session_restored user_id=%s", record.user.id)
        else:
            logger.info("session_restore_empty")
        self._state = SessionState.RESTORED
        self._restored.set()
        return self._user

    async def login(self, email: str, password: str) -> bool:
        """
        Authenticate, build the identity from the commerce profile and persist it.

        Loyalty is fetched in the background afterwards; its failure does not
        affect the login result.
        """
        self.last_error = None
        try:
            user, token = await self._authenticate(email, password)
        except AuthFailure as e:
            self.last_error = str(e)
            logger.info("login_rejected email=%s reason=%s", email, e)
            return False
        except (SyncError, ValidationError) as e:
            self.last_error = LOGIN_UNAVAILABLE_ERROR
            logger.warning("login_failed email=%s error=%s", email, e)
            return False

        await self._commit(user, token)
        self._orders = ()
        self._state = SessionState.RESTORED
        self._restored.set()
        logger.info("login_succeeded user_id=%s", user.id)
        self._schedule(self._hydrate_loyalty())
        return True

    async def _authenticate(self, email: str, password: str) -> tuple[User, str]:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthFailure(SHORT_PASSWORD_ERROR)
        token = await self._auth.obtain_token(email, password)

        customer = None
        try:
            customer = await self._commerce.find_customer_by_email(email)
        except SyncError as e:
            logger.warning("customer_lookup_failed email=%s error=%s", email, e)

        if customer is None:
            # Authenticated without a commerce profile; not an error
            account = await self._auth.fetch_current_account(token)
            if account is None:
                raise SyncError(NO_ACCOUNT_ERROR)
            logger.info("login_using_account_fallback email=%s", email)
            customer = customer_from_account(account, email)

        return user_from_customer(customer, email), token

    async def register(self, registration: Registration) -> bool:
        """Create the commerce customer, then log in with the same credentials."""
        self.last_error = None
        try:
            await self._commerce.create_customer(registration_payload(registration))
        except AuthFailure as e:
            self.last_error = str(e)
            logger.info("registration_rejected email=%s reason=%s", registration.email, e)
            return False
        except SyncError as e:
            self.last_error = REGISTRATION_UNAVAILABLE_ERROR
            logger.warning("registration_failed email=%s error=%s", registration.email, e)
            return False
        logger.info("customer_registered email=%s", registration.email)
        return await self.login(registration.email, registration.password)

    async def logout(self) -> None:
        """Forget the identity, token and orders, and clear the persisted session."""
        user_id = self._user.id if self._user else None
        self._user = None
        self._token = None
        self._orders = ()
        self.last_error = None
        await self._store.clear()
        logger.info("logout user_id=%s", user_id)

    async def validate_token(self) -> bool:
        """Introspect the held token with the auth collaborator."""
        if not self._token:
            return False
        return await self._auth.validate_token(self._token)

    async def forgot_password(self, email: str) -> tuple[bool, str]:
        """Request a reset mail; returns (success, message to display)."""
        try:
            data = await self._auth.forgot_password(email)
        except SyncError as e:
            logger.warning("forgot_password_failed error=%s", e)
            return False, PASSWORD_RESET_UNAVAILABLE_ERROR
        if data.get("success"):
            return True, data.get("message") or "Password reset link has been sent to your email."
        return False, data.get("message") or "Failed to send password reset email."

    async def reset_password(self, token: str, password: str) -> tuple[bool, str]:
        """Set a new password from a reset token; returns (success, message to display)."""
        try:
            data = await self._auth.reset_password(token, password)
        except SyncError as e:
            logger.warning("reset_password_failed error=%s", e)
            return False, PASSWORD_RESET_UNAVAILABLE_ERROR
        if data.get("success"):
            return True, data.get("message") or "Password has been reset successfully."
        return False, data.get("message") or "Failed to reset password."

    async def update_profile(self, update: ProfileUpdate) -> bool:
        """
        Apply a partial profile update.

        The backend is written first and local state only changes once it
        accepted the update, so a failure leaves the held identity untouched.
        Administrative accounts have no commerce profile and update locally.
        """
        user = self._user
        if user is None:
            return False
        self.last_error = None

        if not self.is_admin:
            try:
                await self._commerce.update_customer(user.id, customer_update_payload(update))
            except SyncError as e:
                self.last_error = str(e) or PROFILE_UPDATE_ERROR
                logger.warning("profile_update_failed user_id=%s error=%s", user.id, e)
                return False

        # The identity may have changed (loyalty merge, logout) while awaiting
        current = self._user
        if current is None or current.id != user.id:
            return False
        self._user = _apply_profile_update(current, update)
        await self._persist()
        logger.info("profile_updated user_id=%s", user.id)
        return True

    async def visible_addresses(self) -> list[Address]:
        """The held addresses minus everything tombstoned on this device."""
        if self._user is None or not self._user.addresses:
            return []
        return await self._registry.filter_visible(self._user.addresses)

    async def add_address(self, data: AddressInput) -> Address | None:
        """
        Add an address to the held identity.

        Its id is the content identity, so adding the same content twice
        returns the existing address. The first address becomes default.
        """
        user = self._user
        if user is None:
            return None
        fields = data.model_dump()
        fields["first_name"] = fields["first_name"] or user.first_name
        fields["last_name"] = fields["last_name"] or user.last_name
        address = Address(id=address_identity(data), **fields)

        existing = list(user.addresses or ())
        for current in existing:
            if current.id == address.id:
                return current
        if not existing:
            address = address.model_copy(update={"is_default": True})
        if address.is_default:
            existing = [a.model_copy(update={"is_default": False}) for a in existing]

        await self._replace_addresses((*existing, address))
        logger.info("address_added user_id=%s address_id=%s", user.id, address.id)
        return address

    async def update_address(self, address_id: str, changes: AddressUpdate) -> Address | None:
        """Edit an address in place; its id stays the same."""
        user = self._user
        if user is None or not user.addresses:
            return None
        target = next((a for a in user.addresses if a.id == address_id), None)
        if target is None:
            return None

        updated = target.model_copy(update=changes.model_dump(exclude_none=True))
        addresses = []
        for current in user.addresses:
            if current.id == address_id:
                addresses.append(updated)
            elif updated.is_default and current.is_default:
                addresses.append(current.model_copy(update={"is_default": False}))
            else:
                addresses.append(current)
        await self._replace_addresses(tuple(addresses))
        return updated

    async def delete_address(self, address_id: str) -> bool:
        """
        Soft-delete an address.

        Its content identity and id are tombstoned before it is dropped from
        the held list, so a later backend refresh returning it again keeps it
        hidden.
        """
        user = self._user
        if user is None or not user.addresses:
            return False
        target = next((a for a in user.addresses if a.id == address_id), None)
        if target is None:
            return False
        await self._registry.mark_deleted(target)
        await self._replace_addresses(tuple(a for a in user.addresses if a.id != address_id))
        return True

    async def set_default_address(self, address_id: str) -> bool:
        """Make exactly one address the default."""
        user = self._user
        if user is None or not user.addresses:
            return False
        if not any(a.id == address_id for a in user.addresses):
            return False
        await self._replace_addresses(
            tuple(
                a.model_copy(update={"is_default": a.id == address_id})
                for a in user.addresses
            ),
        )
        return True

    async def _replace_addresses(self, addresses: tuple[Address, ...]) -> None:
        if self._user is None:
            return
        self._user = self._user.model_copy(update={"addresses": addresses})
        await self._persist()

    async def fetch_orders(self) -> tuple[Order, ...]:
        """
        Load the customer's orders through the cache and hold them.

        Returns an empty tuple when logged out or when the order endpoint
        fails; the failure is logged, not raised.
        """
        user = self._user
        if user is None:
            return ()
        customer_id = user.id
        try:
            orders = await self._orders_cache.get(
                f"orders:{customer_id}",
                lambda: self._load_orders(customer_id),
            )
        except SyncError as e:
            logger.warning("orders_fetch_failed user_id=%s error=%s", customer_id, e)
            return ()
        # Discard a result that arrived after logout or a different login
        if self._user is not None and self._user.id == customer_id:
            self._orders = orders
        return orders

    async def _load_orders(self, customer_id: str) -> tuple[Order, ...]:
        records = await self._commerce.list_orders(customer_id)
        return tuple(order_from_record(record) for record in records)

    async def fetch_loyalty(self) -> LoyaltySnapshot | None:
        """
        Load the loyalty balance through the cache and merge it into the identity.

        Returns None when logged out or when the loyalty endpoint fails.
        """
        user = self._user
        if user is None:
            return None
        email = user.email
        try:
            snapshot = await self._loyalty_cache.get(
                f"loyalty:{email}",
                lambda: self._load_loyalty(email),
            )
        except SyncError as e:
            logger.warning("loyalty_fetch_failed email=%s error=%s", email, e)
            return None
        await self._merge_loyalty(email, snapshot)
        return snapshot

    async def _load_loyalty(self, email: str) -> LoyaltySnapshot:
        return loyalty_from_record(await self._loyalty.get_points(email), email)

    async def _merge_loyalty(self, email: str, snapshot: LoyaltySnapshot) -> None:
        current = self._user
        if current is None or current.email != email or current.loyalty == snapshot:
            return
        self._user = current.model_copy(update={"loyalty": snapshot})
        await self._persist()

    async def _hydrate_loyalty(self) -> None:
        snapshot = await self.fetch_loyalty()
        if snapshot is not None:
            logger.info("loyalty_hydrated points=%s", snapshot.points)

    async def redeem_points(self) -> RedeemResult:
        """
        Redeem the customer's points for a coupon.

        On success the held balance is updated immediately, then the loyalty
        cache entry is invalidated and refetched.
        """
        user = self._user
        if user is None or not user.email:
            return RedeemResult(success=False, error=NOT_LOGGED_IN_ERROR)
        email = user.email
        points = user.loyalty.points if user.loyalty else 0

        try:
            data = await self._loyalty.redeem(email, points)
        except SyncError as e:
            logger.warning("redeem_failed email=%s error=%s", email, e)
            return RedeemResult(success=False, error=str(e))

        remaining = data.get("remaining_points")
        result = RedeemResult(
            success=bool(data.get("success")),
            message=data.get("message"),
            coupon_code=data.get("coupon_code"),
            discount_amount=to_decimal(data.get("discount_amount"), default=None),
            remaining_points=int(remaining) if remaining is not None else None,
            error=data.get("error"),
        )
        if not result.success:
            return result

        new_points = (
            result.remaining_points
            if result.remaining_points is not None
            else max(points - REDEEM_COST_POINTS, 0)
        )
        current = self._user
        if current is not None and current.email == email and current.loyalty is not None:
            loyalty = current.loyalty.model_copy(
                update={"points": new_points, "rewards_available": new_points // 100},
            )
            self._user = current.model_copy(update={"loyalty": loyalty})
            await self._persist()
        logger.info("points_redeemed email=%s remaining=%s", email, new_points)

        self._loyalty_cache.invalidate(f"loyalty:{email}")
        await self.fetch_loyalty()
        return result

    async def check_redeem_eligibility(self) -> RedeemEligibility:
        """Ask the loyalty endpoint whether a redemption is currently possible."""
        user = self._user
        if user is None:
            return RedeemEligibility()
        local_points = user.loyalty.points if user.loyalty else 0
        try:
            data = await self._loyalty.get_eligibility(user.email)
        except SyncError as e:
            logger.warning("redeem_eligibility_failed email=%s error=%s", user.email, e)
            return RedeemEligibility(current_points=local_points)
        return RedeemEligibility(
            eligible=bool(data.get("eligible")),
            can_redeem_times=int(data.get("can_redeem_times") or 0),
            current_points=int(data.get("current_points") or local_points),
        )

    async def _commit(self, user: User, token: str) -> None:
        self._user = user
        self._token = token
        await self._persist()

    async def _persist(self) -> None:
        if self._user is not None and self._token:
            await self._store.save(self._user, self._token)

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        # Keep a reference so the task isn't garbage collected mid-flight
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)


def _apply_profile_update(user: User, update: ProfileUpdate) -> User:
    """
    Merge a profile update into an identity.

    Addresses still carrying the previous name (or no name) follow a rename.
    """
    changes = update.model_dump(exclude_none=True)
    if update.address is not None:
        changes["address"] = update.address
    if update.preferences is not None:
        changes["preferences"] = update.preferences

    first_name = changes.get("first_name", user.first_name)
    last_name = changes.get("last_name", user.last_name)
    renamed = (first_name, last_name) != (user.first_name, user.last_name)
    if renamed:
        if user.display_name == f"{user.first_name} {user.last_name}".strip():
            changes["display_name"] = f"{first_name} {last_name}".strip()
        if user.addresses:
            changes["addresses"] = tuple(
                a.model_copy(update={"first_name": first_name, "last_name": last_name})
                if (not a.first_name and not a.last_name)
                or (a.first_name == user.first_name and a.last_name == user.last_name)
                else a
                for a in user.addresses
            )
    return user.model_copy(update=changes)
