"""Tests for mapping commerce records to identity, order and loyalty values."""
from decimal import Decimal
from typing import Any

import pytest

from schemas.order import OrderStatus
from schemas.user import LegacyAddress, Preferences, ProfileUpdate, Registration
from services.address_identity import content_hash
from services.customer_mapping import (
    BILLING_LABEL,
    SHIPPING_LABEL,
    addresses_from_customer,
    customer_from_account,
    customer_update_payload,
    default_referral_code,
    loyalty_from_record,
    map_order_status,
    order_from_record,
    registration_payload,
    to_decimal,
    user_from_customer,
)


class TestUserFromCustomer:
    """Tests for building the identity from a customer record."""

    def test__user__basic_fields(self, customer_record: dict[str, Any]) -> None:
        """Names, email, phone and role are copied over."""
        user = user_from_customer(customer_record)

        assert user.id == "42"
        assert user.email == "jan@example.com"
        assert user.display_name == "Jan Jansen"
        assert user.phone == "0612345678"
        assert user.role == "customer"

    def test__user__preferences_from_meta(self, customer_record: dict[str, Any]) -> None:
        """Meta flags are read as strings."""
        user = user_from_customer(customer_record)
        assert user.preferences == Preferences(newsletter=False, sms_updates=True)

    def test__user__newsletter_defaults_on(self, customer_record: dict[str, Any]) -> None:
        """Without meta the newsletter is on and SMS is off."""
        customer_record["meta_data"] = []
        assert user_from_customer(customer_record).preferences == Preferences()

    def test__user__display_name_falls_back_to_email(
        self, customer_record: dict[str, Any],
    ) -> None:
        """Without names or username the email's local part is shown."""
        customer_record.update(first_name="", last_name="", username="")
        assert user_from_customer(customer_record).display_name == "jan"


class TestAddressesFromCustomer:
    """Tests for normalizing billing and shipping into addresses."""

    def test__addresses__billing_default_and_shipping(
        self, customer_record: dict[str, Any],
    ) -> None:
        """Billing is the default address; a different shipping address is added."""
        billing, shipping = addresses_from_customer(customer_record)

        assert billing.label == BILLING_LABEL
        assert billing.is_default is True
        assert (billing.street, billing.house_number) == ("Kerkstraat", "12")
        assert billing.id == content_hash("Kerkstraat123511AB")

        assert shipping.label == SHIPPING_LABEL
        assert shipping.is_default is False
        assert (shipping.street, shipping.house_number, shipping.house_addition) == (
            "Dorpsweg", "7", "a",
        )

    def test__addresses__same_shipping_not_duplicated(
        self, customer_record: dict[str, Any],
    ) -> None:
        """Shipping equal to billing is not added twice."""
        customer_record["shipping"] = dict(customer_record["billing"])

        addresses = addresses_from_customer(customer_record)

        assert len(addresses) == 1

    def test__addresses__missing_postcode_skipped(
        self, customer_record: dict[str, Any],
    ) -> None:
        """A block without a postcode yields no address."""
        customer_record["billing"]["postcode"] = ""

        addresses = addresses_from_customer(customer_record)

        assert [a.label for a in addresses] == [SHIPPING_LABEL]
        assert addresses[0].is_default is True

    def test__addresses__unparseable_street_kept_whole(
        self, customer_record: dict[str, Any],
    ) -> None:
        """A street line without a number is kept as the street."""
        customer_record["billing"]["address_1"] = "Postbus"
        customer_record["shipping"] = {}

        (address,) = addresses_from_customer(customer_record)

        assert (address.street, address.house_number) == ("Postbus", "")


class TestCustomerFromAccount:
    """Tests for shaping a bare account like a customer."""

    def test__account__name_split(self) -> None:
        """The full name is split into first and last name."""
        customer = customer_from_account(
            {"id": 7, "name": "Piet van Dijk", "roles": ["subscriber"]},
            "piet@example.com",
        )
        user = user_from_customer(customer, "piet@example.com")

        assert user.id == "7"
        assert (user.first_name, user.last_name) == ("Piet", "van Dijk")
        assert user.email == "piet@example.com"
        assert user.role == "subscriber"
        assert user.addresses is None


class TestOrders:
    """Tests for order mapping."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("completed", OrderStatus.DELIVERED),
            ("processing", OrderStatus.PROCESSING),
            ("on-hold", OrderStatus.PENDING),
            ("cancelled", OrderStatus.CANCELLED),
            ("refunded", OrderStatus.CANCELLED),
            ("failed", OrderStatus.CANCELLED),
            ("something-new", OrderStatus.PENDING),
        ],
    )
    def test__map_order_status(self, status: str, expected: OrderStatus) -> None:
        """Backend statuses map to customer-facing statuses."""
        assert map_order_status(status) is expected

    def test__order__fields(self, order_record: dict[str, Any]) -> None:
        """Totals, items and tracking are mapped."""
        order = order_from_record(order_record)

        assert order.id == "1001"
        assert order.status is OrderStatus.DELIVERED
        assert order.total == Decimal("29.90")
        assert order.tracking_code == "3STRACK123"
        assert [(i.id, i.quantity, i.unit_price) for i in order.items] == [
            ("11", 2, Decimal("10.00")),
            ("12", 1, Decimal("9.9")),
        ]
        assert order.items[0].image == "https://shop.test/blossom.png"
        assert order.items[1].image.endswith("Wasgeurtje_Full_Moon.png")

    def test__order__ships_to_billing_without_shipping_street(
        self, order_record: dict[str, Any],
    ) -> None:
        """An order without a shipping street uses the billing address."""
        order = order_from_record(order_record)

        assert order.shipping_address.name == "Jan Jansen"
        assert order.shipping_address.street == "Kerkstraat 12"
        assert order.shipping_address.postal_code == "3511AB"

    def test__order__number_fallback(self, order_record: dict[str, Any]) -> None:
        """Orders without a number get a WG- number."""
        del order_record["number"]
        order = order_from_record(order_record)
        assert order.order_number.startswith("WG-")
        assert order.order_number.endswith("-1001")


class TestLoyalty:
    """Tests for loyalty mapping."""

    def test__loyalty__rewards_from_points(self) -> None:
        """Every 100 points is one available reward."""
        snapshot = loyalty_from_record(
            {"points": 250, "earned": 400, "level_id": 2}, "jan@example.com",
        )

        assert snapshot.points == 250
        assert snapshot.total_earned == 400
        assert snapshot.rewards_available == 2
        assert snapshot.level_id == "2"
        assert snapshot.refer_code == default_referral_code("jan@example.com")

    def test__referral_code__format(self) -> None:
        """Referral codes are REF- plus six characters in two groups."""
        # base64("jan@example.com") starts with "amFuQG"
        assert default_referral_code("jan@example.com") == "REF-AMF-UQG"


class TestPayloads:
    """Tests for request bodies sent to the commerce backend."""

    def test__update_payload__only_present_fields(self) -> None:
        """Fields left unset are not sent."""
        payload = customer_update_payload(ProfileUpdate(first_name="Piet"))

        assert payload == {
            "first_name": "Piet",
            "billing": {"first_name": "Piet"},
            "shipping": {"first_name": "Piet"},
        }

    def test__update_payload__address_and_preferences(self) -> None:
        """Address goes to both blocks; preferences become meta flags."""
        payload = customer_update_payload(
            ProfileUpdate(
                address=LegacyAddress(street="Kerkstraat 12", city="Utrecht", postal_code="3511AB"),
                preferences=Preferences(newsletter=False, sms_updates=True),
            ),
        )

        assert payload["billing"]["address_1"] == "Kerkstraat 12"
        assert payload["shipping"]["postcode"] == "3511AB"
        assert payload["meta_data"] == [
            {"key": "newsletter_subscription", "value": "false"},
            {"key": "sms_updates", "value": "true"},
        ]

    def test__registration_payload__username_is_email(self) -> None:
        """New customers use their email as username."""
        payload = registration_payload(
            Registration(email="nieuw@example.com", password="geheim", first_name="Nina"),
        )

        assert payload["username"] == "nieuw@example.com"
        assert payload["billing"]["email"] == "nieuw@example.com"
        assert payload["meta_data"][0] == {"key": "newsletter_subscription", "value": "false"}


class TestToDecimal:
    """Tests for money parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("14.95", Decimal("14.95")),
            (10, Decimal("10")),
            ("", Decimal("0")),
            (None, Decimal("0")),
        ],
    )
    def test__to_decimal(self, value: Any, expected: Decimal) -> None:
        """Strings, numbers and blanks are parsed."""
        assert to_decimal(value) == expected

    def test__to_decimal__garbage_uses_default(self) -> None:
        """Unparseable values fall back to the default."""
        assert to_decimal("n/a", default=None) is None
