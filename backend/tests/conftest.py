"""Shared pytest fixtures for analytics core tests."""
import tempfile
from typing import Generator

import pytest

from seller_analytics.config import Settings
from seller_analytics.core.cache_manager import CacheStore
from seller_analytics.db.storage import InMemoryStorage
from seller_analytics.services.fetch_cache import CachedFetcher


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


# === Test Settings ===

def get_test_settings() -> Settings:
    """Create test-specific settings."""
    return Settings(
        debug=True,
        cache_backend="memory",
        retry_backoff_seconds=0.0,
    )


@pytest.fixture
def test_settings() -> Settings:
    return get_test_settings()


# === Cache Fixtures ===

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def cache_store(memory_storage: InMemoryStorage, clock: FakeClock) -> CacheStore:
    """Cache store over in-memory storage with a controllable clock."""
    return CacheStore(memory_storage, clock=clock)


@pytest.fixture
def cached_fetcher(cache_store: CacheStore) -> CachedFetcher:
    return CachedFetcher(cache_store)


@pytest.fixture
def temp_cache_dir() -> Generator[str, None, None]:
    """Temporary directory for file-backed storage tests."""
    with tempfile.TemporaryDirectory() as directory:
        yield directory


# === Sample Data Fixtures ===

@pytest.fixture
def sale_record() -> dict:
    """A single sale of two units at 100 with delivery and storage fees."""
    return {
        "doc_type_name": "Продажа",
        "retail_price": 100,
        "quantity": 2,
        "nm_id": "A",
        "ppvz_for_pay": 150,
        "delivery_rub": 10,
        "storage_fee": 5,
        "penalty": 0,
        "additional_payment": 0,
        "deduction": 0,
        "acceptance": 0,
    }


@pytest.fixture
def sample_records() -> list:
    """Mixed report lines across three products."""
    return [
        {
            "doc_type_name": "Продажа", "nm_id": 1001, "subject_name": "Футболки",
            "retail_price": 500, "quantity": 1, "retail_amount": 500,
            "ppvz_for_pay": 400, "delivery_rub": 50, "storage_fee": 3,
            "penalty": 0, "additional_payment": 0, "deduction": 0, "acceptance": 1,
        },
        {
            "doc_type_name": "Продажа", "nm_id": 1001, "subject_name": "Футболки",
            "retail_price": 520, "quantity": 2, "retail_amount": 1040,
            "ppvz_for_pay": 830, "delivery_rub": 60, "storage_fee": 4,
            "penalty": 0, "additional_payment": 0, "deduction": 0, "acceptance": 2,
        },
        {
            "doc_type_name": "Возврат", "nm_id": 1001, "subject_name": "Футболки",
            "retail_price": 500, "quantity": 1, "retail_amount": 500,
            "ppvz_for_pay": 0, "delivery_rub": 50, "storage_fee": 0,
            "penalty": 0, "additional_payment": 0, "deduction": 0, "acceptance": 0,
        },
        {
            "doc_type_name": "Продажа", "nm_id": 2002, "subject_name": "Кружки",
            "retail_price": 300, "quantity": 3, "retail_amount": 900,
            "ppvz_for_pay": 700, "delivery_rub": 30, "storage_fee": 6,
            "penalty": 20, "additional_payment": 0, "deduction": 5, "acceptance": 0,
        },
        {
            "doc_type_name": "Логистика", "nm_id": 2002, "subject_name": "Кружки",
            "retail_price": 0, "quantity": 0, "retail_amount": 0,
            "ppvz_for_pay": 0, "delivery_rub": 45, "storage_fee": 0,
            "penalty": 0, "additional_payment": 0, "deduction": 0, "acceptance": 0,
        },
        {
            "doc_type_name": "Возврат", "nm_id": 3003, "subject_name": "Носки",
            "retail_price": 150, "quantity": 1, "retail_amount": 150,
            "ppvz_for_pay": 0, "delivery_rub": 25, "storage_fee": 0,
            "penalty": 0, "additional_payment": 0, "deduction": 0, "acceptance": 0,
        },
    ]
