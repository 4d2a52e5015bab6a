"""
MongoDB connection management.

Holds the process-wide motor client with connection pooling and a cached
health check used by the /health endpoint.
"""

from typing import Optional, Any, Dict
import logging
import time

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from .config import settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Async database manager with connection pooling"""

    def __init__(self, url: Optional[str] = None, database_name: Optional[str] = None):
        self.url = url or settings.mongodb_url
        self.database_name = database_name or settings.database_name
        self.async_client: Optional[AsyncIOMotorClient] = None
        self.async_database: Optional[AsyncIOMotorDatabase] = None
        self._connection_healthy = False
        self._last_health_check = 0.0
        self._health_check_interval = 30  # seconds

    def _get_async_client_options(self) -> Dict[str, Any]:
        """Connection options for the async client"""
        return {
            "maxPoolSize": 100,
            "minPoolSize": 5,
            "maxIdleTimeMS": 900000,
            "waitQueueTimeoutMS": 5000,
            "connectTimeoutMS": 5000,
            "socketTimeoutMS": 20000,
            "serverSelectionTimeoutMS": 5000,
            "retryWrites": True,
            "retryReads": True,
            "tz_aware": True,
        }

    async def connect_async(self) -> None:
        """Create asynchronous MongoDB connection"""
        try:
            self.async_client = AsyncIOMotorClient(self.url, **self._get_async_client_options())
            self.async_database = self.async_client[self.database_name]

            await self.async_client.admin.command("ping", maxTimeMS=5000)
            self._connection_healthy = True
            self._last_health_check = time.time()

            logger.info("MongoDB connected (database=%s)", self.database_name)

        except Exception as e:
            logger.error(f"MongoDB connection failed: {e}")
            self._connection_healthy = False
            raise

    async def close_async_connection(self) -> None:
        """Close asynchronous MongoDB connection"""
        if self.async_client:
            self.async_client.close()
            self.async_client = None
            self.async_database = None
            logger.info("MongoDB connection closed")

    async def get_async_database(self) -> AsyncIOMotorDatabase:
        """Get asynchronous database instance"""
        if self.async_database is None:
            await self.connect_async()
        return self.async_database

    async def async_is_healthy(self) -> bool:
        """Cached ping-based health check"""
        current_time = time.time()

        if (current_time - self._last_health_check) < self._health_check_interval:
            return self._connection_healthy

        try:
            if self.async_client is None:
                raise RuntimeError("not connected")
            await self.async_client.admin.command("ping", maxTimeMS=2000)
            self._connection_healthy = True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            self._connection_healthy = False

        self._last_health_check = current_time
        return self._connection_healthy


# Global database manager instance
db_manager = DatabaseManager()


async def connect_to_mongo_async() -> None:
    await db_manager.connect_async()


async def close_mongo_connection_async() -> None:
    await db_manager.close_async_connection()


async def get_database_async() -> AsyncIOMotorDatabase:
    return await db_manager.get_async_database()


async def is_database_healthy_async() -> bool:
    return await db_manager.async_is_healthy()
