import os

os.environ["TESTING"] = "True"

import pytest
import fakeredis
from fastapi.testclient import TestClient
from datetime import datetime, timezone

from linkshortener.database import Base, get_db, SessionLocal, engine
from linkshortener.main import app as fastapi_app
from linkshortener.models import User
from linkshortener.utils import get_password_hash, create_access_token
from linkshortener.dependencies import get_client_info
import linkshortener.cache
from fastapi import Request

# Mock Redis client
@pytest.fixture(scope="function")
def redis_mock():
    original_redis = linkshortener.cache.redis_client

    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)

    linkshortener.cache.redis_client = fake_redis

    yield fake_redis

    linkshortener.cache.redis_client = original_redis

@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

        Base.metadata.drop_all(bind=engine)

async def mock_client_info(request: Request = None):
    return {
        "ip_address": "127.0.0.1",
        "user_agent": "Test Client",
        "referer": "https://test.com",
        "timestamp": datetime.now(timezone.utc)
    }

def make_user(db, username="testuser", email="test@example.com", password="testpassword"):
    user = User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def token_for(user):
    return create_access_token({"sub": user.username, "user_id": user.id})

@pytest.fixture
def client(db, redis_mock):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_client_info] = mock_client_info

    with TestClient(fastapi_app) as client:
        yield client

    fastapi_app.dependency_overrides = {}

@pytest.fixture
def test_user(db):
    return make_user(db)

@pytest.fixture
def other_user(db):
    return make_user(db, username="otheruser", email="other@example.com")

@pytest.fixture
def auth_client(client, test_user):
    """Клиент JSON API с Bearer-токеном"""
    client.headers.update({"Authorization": f"Bearer {token_for(test_user)}"})
    return client

@pytest.fixture
def browser(client, test_user):
    """Клиент HTML-страниц с cookie сессии"""
    response = client.post(
        "/sign-in",
        data={"username": "testuser", "password": "testpassword"},
        follow_redirects=False
    )
    assert response.status_code == 303
    return client

@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {token_for(user)}"}
    return _headers
