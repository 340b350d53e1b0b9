"""Translation between commerce backend records and the sync core's value types."""
import base64
import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from schemas.loyalty import LoyaltySnapshot
from schemas.order import Order, OrderItem, OrderStatus, ShippingSnapshot
from schemas.user import Address, LegacyAddress, Preferences, ProfileUpdate, Registration, User
from services.address_identity import address_identity, parse_street_line

logger = logging.getLogger(__name__)

BILLING_LABEL = "Factuuradres"
SHIPPING_LABEL = "Bezorgadres"
DEFAULT_COUNTRY = "NL"
DEFAULT_ITEM_NAME = "Wasparfum"

# Backend status -> customer-facing status; anything unlisted is pending
_STATUS_MAP = {
    "completed": OrderStatus.DELIVERED,
    "processing": OrderStatus.PROCESSING,
    "on-hold": OrderStatus.PENDING,
    "cancelled": OrderStatus.CANCELLED,
    "refunded": OrderStatus.CANCELLED,
    "failed": OrderStatus.CANCELLED,
}

_TRACKING_META_KEYS = ("tracking_code", "tracking_number", "_tracking_number")

DEFAULT_ITEM_IMAGE = "/figma/products/Wasgeurtje_Blossom_Drip.png"
_DEFAULT_IMAGES = {
    "Blossom Drip": "/figma/products/Wasgeurtje_Blossom_Drip.png",
    "Full Moon": "/figma/products/Wasgeurtje_Full_Moon.png",
    "Summer Vibes": "/figma/products/Wasgeurtje_Summer_Vibes.png",
    "Proefpakket": "/figma/products/Wasparfum_Proefpakket.png",
}


def to_decimal(value: Any, default: Decimal | None = Decimal("0")) -> Decimal | None:
    """Parse a backend money value ("14.95", 14.95, "") into a Decimal."""
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return default


def _meta_value(record: dict[str, Any], key: str) -> Any:
    meta = record.get("meta_data")
    if not isinstance(meta, list):
        return None
    for entry in meta:
        if isinstance(entry, dict) and entry.get("key") == key:
            return entry.get("value")
    return None


def _block(record: dict[str, Any], name: str) -> dict[str, Any]:
    block = record.get(name)
    return block if isinstance(block, dict) else {}


def _address_from_block(
    block: dict[str, Any],
    *,
    label: str,
    is_default: bool,
    first_name: str,
    last_name: str,
) -> Address:
    parsed = parse_street_line(block.get("address_1") or "")
    fields = {
        "label": label,
        "first_name": block.get("first_name") or first_name,
        "last_name": block.get("last_name") or last_name,
        "street": parsed.street,
        "house_number": parsed.house_number,
        "house_addition": parsed.house_addition,
        "city": block.get("city") or "",
        "postal_code": block.get("postcode") or "",
        "country": block.get("country") or DEFAULT_COUNTRY,
        "is_default": is_default,
    }
    # Billing/shipping blocks carry no id of their own
    provisional = Address(id="", **fields)
    return Address(id=address_identity(provisional), **fields)


def addresses_from_customer(customer: dict[str, Any]) -> tuple[Address, ...]:
    """
    Build the address list from a customer's billing and shipping blocks.

    Billing becomes the default address. Shipping is added only when its street
    line differs from billing's. A block without a street line or postcode is
    skipped; a street line that can't be split is kept whole as the street.
    """
    first_name = customer.get("first_name") or ""
    last_name = customer.get("last_name") or ""
    billing = _block(customer, "billing")
    shipping = _block(customer, "shipping")
    billing_line = billing.get("address_1") or ""
    shipping_line = shipping.get("address_1") or ""

    addresses: list[Address] = []
    if billing_line and billing.get("postcode"):
        addresses.append(
            _address_from_block(
                billing,
                label=BILLING_LABEL,
                is_default=True,
                first_name=first_name,
                last_name=last_name,
            ),
        )
    if shipping_line and shipping.get("postcode") and shipping_line != billing_line:
        addresses.append(
            _address_from_block(
                shipping,
                label=SHIPPING_LABEL,
                is_default=not addresses,
                first_name=first_name,
                last_name=last_name,
            ),
        )
    return tuple(addresses)


def user_from_customer(customer: dict[str, Any], email: str = "") -> User:
    """Build the session identity from a commerce customer record."""
    first_name = customer.get("first_name") or ""
    last_name = customer.get("last_name") or ""
    resolved_email = customer.get("email") or customer.get("user_email") or email
    billing = _block(customer, "billing")
    shipping = _block(customer, "shipping")

    if customer.get("user_display_name"):
        display_name = customer["user_display_name"]
    elif first_name and last_name:
        display_name = f"{first_name} {last_name}".strip()
    else:
        display_name = (
            customer.get("username")
            or (resolved_email.split("@")[0] if resolved_email else "")
            or "Gebruiker"
        )

    newsletter = _meta_value(customer, "newsletter_subscription")
    sms_updates = _meta_value(customer, "sms_updates")
    addresses = addresses_from_customer(customer)

    return User(
        id=str(customer.get("id") or ""),
        email=resolved_email,
        first_name=first_name,
        last_name=last_name,
        display_name=display_name,
        avatar=customer.get("avatar_url") or None,
        phone=billing.get("phone") or None,
        role=customer.get("role") or None,
        address=LegacyAddress(
            street=billing.get("address_1") or shipping.get("address_1") or "",
            city=billing.get("city") or shipping.get("city") or "",
            postal_code=billing.get("postcode") or shipping.get("postcode") or "",
            country=billing.get("country") or shipping.get("country") or DEFAULT_COUNTRY,
        ),
        addresses=addresses or None,
        preferences=Preferences(
            newsletter=str(newsletter).lower() != "false" if newsletter is not None else True,
            sms_updates=str(sms_updates).lower() == "true",
        ),
    )


def customer_from_account(account: dict[str, Any], email: str) -> dict[str, Any]:
    """
    Shape a bare WordPress account like a commerce customer record.

    Used when the customer authenticated but has no commerce profile yet.
    """
    name = account.get("name") or ""
    name_parts = name.split(" ")
    first_name = account.get("first_name") or name_parts[0] or "Gebruiker"
    last_name = account.get("last_name") or " ".join(name_parts[1:])
    account_email = account.get("email") or email
    roles = account.get("roles") or []
    avatar_urls = account.get("avatar_urls") or {}
    return {
        "id": str(account.get("id") or ""),
        "email": account_email,
        "first_name": first_name,
        "last_name": last_name,
        "username": account.get("username") or email.split("@")[0],
        "role": roles[0] if roles else "customer",
        "avatar_url": avatar_urls.get("96") if isinstance(avatar_urls, dict) else None,
        "billing": {
            "first_name": first_name,
            "last_name": last_name,
            "email": account_email,
            "country": DEFAULT_COUNTRY,
        },
        "shipping": {
            "first_name": first_name,
            "last_name": last_name,
            "country": DEFAULT_COUNTRY,
        },
        "meta_data": [],
    }


def map_order_status(status: str | None) -> OrderStatus:
    """Map a backend order status onto the customer-facing statuses."""
    return _STATUS_MAP.get(status or "", OrderStatus.PENDING)


def _default_image(name: str) -> str:
    for keyword, image in _DEFAULT_IMAGES.items():
        if keyword in name:
            return image
    return DEFAULT_ITEM_IMAGE


def _item_from_line(line: dict[str, Any]) -> OrderItem:
    name = line.get("name") or DEFAULT_ITEM_NAME
    image = line.get("image")
    image_src = image.get("src") if isinstance(image, dict) else None
    return OrderItem(
        id=str(line.get("product_id") or ""),
        name=name,
        quantity=int(line.get("quantity") or 1),
        unit_price=to_decimal(line.get("price")),
        image=image_src or _default_image(name),
    )


def _join_lines(block: dict[str, Any]) -> str:
    return f"{block.get('address_1') or ''} {block.get('address_2') or ''}".strip()


def _shipping_from_order(record: dict[str, Any]) -> ShippingSnapshot:
    billing = _block(record, "billing")
    shipping = _block(record, "shipping")
    billing_name = f"{billing.get('first_name') or ''} {billing.get('last_name') or ''}".strip()
    shipping_name = f"{shipping.get('first_name') or ''} {shipping.get('last_name') or ''}".strip()

    # An order without a shipping street shipped to the billing address
    source = shipping if shipping.get("address_1") else billing
    return ShippingSnapshot(
        name=shipping_name or billing_name,
        street=_join_lines(source),
        city=shipping.get("city") or billing.get("city") or "",
        postal_code=shipping.get("postcode") or billing.get("postcode") or "",
        country=shipping.get("country") or billing.get("country") or DEFAULT_COUNTRY,
    )


def order_from_record(record: dict[str, Any]) -> Order:
    """Build an immutable Order from a backend order record."""
    order_id = str(record.get("id") or "")
    tracking_code = None
    for key in _TRACKING_META_KEYS:
        value = _meta_value(record, key)
        if value:
            tracking_code = str(value)
            break
    lines = record.get("line_items")
    return Order(
        id=order_id,
        order_number=str(
            record.get("number") or f"WG-{datetime.now(UTC).year}-{order_id or '000'}",
        ),
        date=record.get("date_created") or datetime.now(UTC).isoformat(),
        status=map_order_status(record.get("status") or "processing"),
        total=to_decimal(record.get("total")),
        items=tuple(_item_from_line(line) for line in lines if isinstance(line, dict))
        if isinstance(lines, list) else (),
        shipping_address=_shipping_from_order(record),
        tracking_code=tracking_code,
    )


def default_referral_code(email: str) -> str:
    """Derive a display referral code (REF-XXX-YYY) from an email."""
    encoded = base64.b64encode(email.encode("utf-8")).decode("ascii")[:6].upper()
    return f"REF-{encoded[:3]}-{encoded[3:6]}"


def loyalty_from_record(data: dict[str, Any], email: str) -> LoyaltySnapshot:
    """Build a LoyaltySnapshot from the loyalty endpoint's {points, earned, level_id}."""
    points = int(data.get("points") or 0)
    return LoyaltySnapshot(
        points=points,
        total_earned=int(data.get("earned") or 0),
        rewards_available=points // 100,
        refer_code=data.get("refer_code") or default_referral_code(email),
        level_id=str(data.get("level_id") or "0"),
    )


def _flag(value: bool | None) -> str:
    return "true" if value else "false"


def customer_update_payload(update: ProfileUpdate) -> dict[str, Any]:
    """
    Build the commerce partial-update body for a profile update.

    Only fields present on the update are sent.
    """
    billing: dict[str, Any] = {}
    shipping: dict[str, Any] = {}
    payload: dict[str, Any] = {}
    if update.first_name is not None:
        payload["first_name"] = billing["first_name"] = shipping["first_name"] = update.first_name
    if update.last_name is not None:
        payload["last_name"] = billing["last_name"] = shipping["last_name"] = update.last_name
    if update.email is not None:
        payload["email"] = billing["email"] = update.email
    if update.phone is not None:
        billing["phone"] = update.phone
    if update.address is not None:
        for block in (billing, shipping):
            block["address_1"] = update.address.street
            block["city"] = update.address.city
            block["postcode"] = update.address.postal_code
            block["country"] = update.address.country or DEFAULT_COUNTRY
    if billing:
        payload["billing"] = billing
    if shipping:
        payload["shipping"] = shipping
    if update.preferences is not None:
        payload["meta_data"] = [
            {"key": "newsletter_subscription", "value": _flag(update.preferences.newsletter)},
            {"key": "sms_updates", "value": _flag(update.preferences.sms_updates)},
        ]
    return payload


def registration_payload(registration: Registration) -> dict[str, Any]:
    """Build the commerce customer-creation body for a registration."""
    return {
        "email": registration.email,
        "first_name": registration.first_name,
        "last_name": registration.last_name,
        "username": registration.email,
        "password": registration.password,
        "billing": {
            "first_name": registration.first_name,
            "last_name": registration.last_name,
            "email": registration.email,
            "phone": registration.phone,
            "country": DEFAULT_COUNTRY,
        },
        "shipping": {
            "first_name": registration.first_name,
            "last_name": registration.last_name,
            "country": DEFAULT_COUNTRY,
        },
        "meta_data": [
            {
                "key": "newsletter_subscription",
                "value": _flag(registration.preferences.newsletter),
            },
            {"key": "sms_updates", "value": _flag(registration.preferences.sms_updates)},
        ],
    }
