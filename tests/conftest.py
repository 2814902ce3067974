import base64
import os
import time
from typing import AsyncGenerator

import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from pymongo import MongoClient
from pymongo.errors import PyMongoError

_SESSION_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
SESSION_PRIVATE_PEM = _SESSION_KEY.private_bytes(
    serialization.Encoding.PEM,
    serialization.PrivateFormat.PKCS8,
    serialization.NoEncryption(),
).decode()
SESSION_PUBLIC_PEM = _SESSION_KEY.public_key().public_bytes(
    serialization.Encoding.PEM,
    serialization.PublicFormat.SubjectPublicKeyInfo,
).decode()
WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"test-webhook-secret-0123456789").decode()

# Use test DB and test keys
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "user_records_test")
os.environ["CLERK_JWT_KEY"] = SESSION_PUBLIC_PEM
os.environ["CLERK_WEBHOOK_SECRET"] = WEBHOOK_SECRET
os.environ.pop("CLERK_JWKS_URL", None)
os.environ.pop("REVALIDATE_URL", None)


def make_session_token(sub: str = "user_1", key: str = SESSION_PRIVATE_PEM, **claims) -> str:
    now = int(time.time())
    payload = {"sub": sub, "sid": "sess_1", "iat": now, "nbf": now, "exp": now + 60}
    payload.update(claims)
    return jwt.encode(payload, key, algorithm="RS256")


_mongo_reachable: bool | None = None


def mongo_reachable() -> bool:
    """Ping the test server once per run; store-backed tests skip without one."""
    global _mongo_reachable
    if _mongo_reachable is None:
        client = MongoClient(os.environ["MONGODB_URI"], serverSelectionTimeoutMS=1000)
        try:
            client.admin.command("ping")
            _mongo_reachable = True
        except PyMongoError:
            _mongo_reachable = False
        finally:
            client.close()
    return _mongo_reachable


@pytest_asyncio.fixture
async def db():
    """Connect the app to the test database with an empty users collection."""
    if not mongo_reachable():
        pytest.skip(f"MongoDB not reachable at {os.environ['MONGODB_URI']}")
    from app.db import init as db_init
    from app.models.user import User

    await db_init.close_database()
    database = await db_init.connect_to_database()
    await User.delete_all()
    yield database
    await User.delete_all()
    await db_init.close_database()


@pytest.fixture
def revalidations(monkeypatch):
    """Record revalidated paths instead of calling the hook."""
    from app.services import users as user_service

    calls = []

    async def record(path):
        calls.append(path)
        return True

    monkeypatch.setattr(user_service, "revalidate_path", record)
    return calls


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    from app.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
