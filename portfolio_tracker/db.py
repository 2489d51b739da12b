# portfolio_tracker/db.py
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from portfolio_tracker.settings import Settings, settings as default_settings


def connect_to_mongo(cfg: Settings = default_settings) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    """
    Create the client once per process and return it with the DB handle.
    Callers own the client and pass the handle down explicitly.
    """
    client = AsyncIOMotorClient(cfg.mongodb_uri)
    return client, client[cfg.mongodb_db]


def close_mongo_connection(client: AsyncIOMotorClient | None):
    if client:
        client.close()
