"""Pytest fixtures for testing."""
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

import httpx
import pytest
import respx

from clients.api_client import create_http_client
from core.config import Settings
from core.storage import FileStorage

API_BASE_URL = "https://shop.test"
WP_JSON_URL = f"{API_BASE_URL}/wp-json"


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and any local .env file."""
    return Settings(
        _env_file=None,
        api_base_url=API_BASE_URL,
        wc_consumer_key="ck_test",
        wc_consumer_secret="cs_test",
        storage_dir=tmp_path / "storage",
        admin_emails_str="admin@wasgeurtje.nl",
    )


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    """File storage in a per-test directory."""
    return FileStorage(tmp_path / "storage")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Context manager for mocking backend responses."""
    with respx.mock(base_url=WP_JSON_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
async def http_client(
    settings: Settings, mock_api: respx.MockRouter,
) -> AsyncGenerator[httpx.AsyncClient]:
    """HTTP client created inside the respx context so requests are captured."""
    client = create_http_client(settings)
    yield client
    await client.aclose()


@pytest.fixture
def customer_record() -> dict[str, Any]:
    """A commerce customer with distinct billing and shipping addresses."""
    return {
        "id": 42,
        "email": "jan@example.com",
        "first_name": "Jan",
        "last_name": "Jansen",
        "username": "jan",
        "role": "customer",
        "avatar_url": "https://shop.test/avatar.png",
        "billing": {
            "first_name": "Jan",
            "last_name": "Jansen",
            "address_1": "Kerkstraat 12",
            "city": "Utrecht",
            "postcode": "3511AB",
            "country": "NL",
            "email": "jan@example.com",
            "phone": "0612345678",
        },
        "shipping": {
            "first_name": "Jan",
            "last_name": "Jansen",
            "address_1": "Dorpsweg 7a",
            "city": "Zeist",
            "postcode": "3701CD",
            "country": "NL",
        },
        "meta_data": [
            {"key": "newsletter_subscription", "value": "false"},
            {"key": "sms_updates", "value": "true"},
        ],
    }


@pytest.fixture
def order_record() -> dict[str, Any]:
    """A completed commerce order with two line items."""
    return {
        "id": 1001,
        "number": "1001",
        "date_created": "2024-03-01T10:00:00",
        "status": "completed",
        "total": "29.90",
        "line_items": [
            {
                "product_id": 11,
                "name": "Blossom Drip",
                "quantity": 2,
                "price": "10.00",
                "image": {"src": "https://shop.test/blossom.png"},
            },
            {
                "product_id": 12,
                "name": "Full Moon",
                "quantity": 1,
                "price": 9.9,
            },
        ],
        "billing": {
            "first_name": "Jan",
            "last_name": "Jansen",
            "address_1": "Kerkstraat 12",
            "city": "Utrecht",
            "postcode": "3511AB",
            "country": "NL",
        },
        "shipping": {
            "first_name": "",
            "last_name": "",
            "address_1": "",
            "city": "",
            "postcode": "",
            "country": "",
        },
        "meta_data": [{"key": "_tracking_number", "value": "3STRACK123"}],
    }
