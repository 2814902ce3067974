import asyncio

import certifi
from beanie import init_beanie
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from app.core.config import get_settings
from app.core.logging import get_logger
from app.models.user import User

log = get_logger(__name__)

DOCUMENT_MODELS = [User]

_client: AsyncMongoClient | None = None
_database: AsyncDatabase | None = None
_lock: asyncio.Lock | None = None


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


def _create_client(uri: str) -> AsyncMongoClient:
    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs = {}
    if _use_tls(uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    return AsyncMongoClient(uri, **kwargs)


async def connect_to_database() -> AsyncDatabase:
    """Return the shared database, initialising Beanie on first use.

    Concurrent first calls wait on one lock, so only one client is ever created.
    """
    global _client, _database, _lock
    if _database is not None:
        return _database
    if _lock is None:
        _lock = asyncio.Lock()
    async with _lock:
        if _database is not None:
            return _database
        settings = get_settings()
        client = _create_client(settings.mongodb_uri)
        database = client[settings.mongodb_db_name]
        try:
            await init_beanie(database=database, document_models=DOCUMENT_MODELS)
        except Exception:
            await client.close()
            raise
        _client, _database = client, database
        log.info("db_connected", db=settings.mongodb_db_name)
    return _database


async def close_database() -> None:
    global _client, _database, _lock
    if _client is not None:
        await _client.close()
        log.info("db_closed")
    _client = None
    _database = None
    _lock = None
