import bcrypt
import pytest
from fastapi.testclient import TestClient

from config import Settings
from fakes import FakeStore
from main import create_app


@pytest.fixture
def settings():
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_role_key="service-key",
        supabase_bucket="receipts",
        frontend_urls=["https://collections.example.com"],
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def client(settings, store):
    return TestClient(create_app(settings=settings, store=store))


@pytest.fixture(scope="session")
def password_hash():
    return bcrypt.hashpw(b"s3cret", bcrypt.gensalt(rounds=4)).decode("utf-8")
