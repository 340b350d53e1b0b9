"""Pydantic schemas for the locally held customer identity."""
from pydantic import BaseModel, ConfigDict, Field

from schemas.loyalty import LoyaltySnapshot


class Address(BaseModel):
    """
    A saved customer address.

    `id` is either backend-issued or the content-derived address identity (see
    services.address_identity). At most one address per collection is default.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    first_name: str = ""
    last_name: str = ""
    street: str = ""
    house_number: str = ""
    house_addition: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "NL"
    is_default: bool = False


class AddressInput(BaseModel):
    """Address fields supplied by a consumer when adding or editing an address."""

    model_config = ConfigDict(frozen=True)

    label: str = ""
    first_name: str = ""
    last_name: str = ""
    street: str = ""
    house_number: str = ""
    house_addition: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "NL"
    is_default: bool = False


class AddressUpdate(BaseModel):
    """Partial address edit; fields left as None are unchanged."""

    model_config = ConfigDict(frozen=True)

    label: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    street: str | None = None
    house_number: str | None = None
    house_addition: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None
    is_default: bool | None = None


class LegacyAddress(BaseModel):
    """Single-address block carried by identities persisted before multi-address support."""

    model_config = ConfigDict(frozen=True)

    street: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "NL"


class Preferences(BaseModel):
    """Marketing preferences stored as commerce customer meta flags."""

    model_config = ConfigDict(frozen=True)

    newsletter: bool = True
    sms_updates: bool = False


class User(BaseModel):
    """
    The logged-in customer as held in memory and persisted on the device.

    Instances are immutable; SessionService replaces the held reference on every
    change.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    email: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""
    avatar: str | None = None
    phone: str | None = None
    role: str | None = None
    address: LegacyAddress | None = None
    addresses: tuple[Address, ...] | None = None
    preferences: Preferences = Preferences()
    loyalty: LoyaltySnapshot | None = None


class ProfileUpdate(BaseModel):
    """Partial profile update; fields left as None are unchanged."""

    model_config = ConfigDict(frozen=True)

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: LegacyAddress | None = None
    preferences: Preferences | None = None


class Registration(BaseModel):
    """Data for creating a new customer account."""

    email: str = Field(min_length=1)
    password: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    preferences: Preferences = Preferences(newsletter=False)


class SessionRecord(BaseModel):
    """The persisted session: identity and bearer token written together."""

    model_config = ConfigDict(frozen=True)

    user: User
    token: str = Field(min_length=1)
