"""
MongoDB connection management for the court session service.

This module provides:
- Motor client lifecycle (connect, ping, disconnect)
- Health checking for the /health endpoint
- Index creation for the session and chat collections
"""

import asyncio
import time
from typing import Any, Dict, Optional

import pymongo
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from courtroom.app.core.exceptions import (
    BaseCustomException,
    ErrorCode,
    raise_database_error
)
from courtroom.app.utils.logging import (
    database_logger,
    get_logger,
    performance_context
)
from courtroom.config.settings import Settings, get_settings

logger = get_logger(__name__)


class MongoDBManager:
    """
    MongoDB connection and lifecycle management.

    Holds a single pooled Motor client for the process; repositories obtain
    the database handle through ``get_database``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.is_connected: bool = False
        self._connection_lock = asyncio.Lock()

    async def connect(self) -> None:
        """
        Establish connection to MongoDB.

        Raises:
            DatabaseError: If connection fails
        """
        if self.is_connected:
            return

        async with self._connection_lock:
            if self.is_connected:
                return

            db_settings = self.settings.database

            try:
                with performance_context("mongodb_connection"):
                    self.client = AsyncIOMotorClient(
                        db_settings.mongodb_url,
                        serverSelectionTimeoutMS=db_settings.server_selection_timeout_ms,
                        connectTimeoutMS=db_settings.server_selection_timeout_ms,
                        maxPoolSize=db_settings.max_pool_size,
                        minPoolSize=db_settings.min_pool_size,
                        tz_aware=True,
                        retryWrites=True,
                        retryReads=True
                    )

                    self.database = self.client[db_settings.mongodb_database]

                    await self.client.admin.command('ping')

                    self.is_connected = True

                    database_logger.connection_established(
                        database_type="mongodb",
                        database_name=db_settings.mongodb_database
                    )

                    logger.info(
                        "MongoDB connection established",
                        database=db_settings.mongodb_database,
                        uri=db_settings.mongodb_url.split('@')[-1]
                    )

            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                database_logger.connection_failed("mongodb", str(e))
                raise_database_error(
                    f"Failed to connect to MongoDB: {e}",
                    database_type="mongodb",
                    operation="connect",
                    error_code=ErrorCode.DATABASE_CONNECTION_ERROR
                )

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client is not None and self.is_connected:
            self.client.close()
            self.is_connected = False
            self.database = None
            logger.info("MongoDB connection closed")

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform MongoDB health check.

        Returns:
            Health status information
        """
        if not self.is_connected or self.client is None:
            return {
                "status": "disconnected",
                "error": "Not connected to MongoDB"
            }

        try:
            start_time = time.time()
            await self.client.admin.command('ping')
            latency = (time.time() - start_time) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency, 2),
                "database": self.settings.database.mongodb_database
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    async def create_indexes(self) -> None:
        """Create the indexes used by session listing, chat paging and case lookups."""
        database = self.get_database()
        db_settings = self.settings.database

        try:
            with performance_context("mongodb_create_indexes"):
                sessions = database[db_settings.sessions_collection]
                await sessions.create_index(
                    [
                        ("courtSession.communityID", pymongo.ASCENDING),
                        ("_id", pymongo.DESCENDING)
                    ],
                    name="community_newest_first"
                )
                await sessions.create_index(
                    [
                        ("courtSession.communityID", pymongo.ASCENDING),
                        ("courtSession.status", pymongo.ASCENDING),
                        ("courtSession.departmentID", pymongo.ASCENDING)
                    ],
                    name="community_status_department"
                )

                chat = database[db_settings.chat_collection]
                await chat.create_index(
                    [
                        ("sessionID", pymongo.ASCENDING),
                        ("createdAt", pymongo.ASCENDING),
                        ("_id", pymongo.ASCENDING)
                    ],
                    name="session_chronological"
                )

                cases = database[db_settings.cases_collection]
                await cases.create_index(
                    [("courtCase.courtSessionID", pymongo.ASCENDING)],
                    name="court_session_backref"
                )

                logger.info("MongoDB indexes created successfully")

        except BaseCustomException:
            raise
        except Exception as e:
            raise_database_error(
                f"Failed to create MongoDB indexes: {e}",
                database_type="mongodb",
                operation="create_indexes"
            )

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the MongoDB database instance.

        Raises:
            DatabaseError: If not connected
        """
        if self.database is None:
            raise_database_error(
                "MongoDB not connected",
                database_type="mongodb",
                operation="get_database",
                error_code=ErrorCode.DATABASE_CONNECTION_ERROR
            )
        return self.database


# Global database manager instance
_db_manager: Optional[MongoDBManager] = None


def get_database_manager() -> MongoDBManager:
    """Get the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = MongoDBManager()
    return _db_manager


async def init_databases(create_indexes: bool = True) -> None:
    """Connect to MongoDB and make sure the service indexes exist."""
    db_manager = get_database_manager()
    await db_manager.connect()
    if create_indexes:
        await db_manager.create_indexes()


async def close_databases() -> None:
    """Close all database connections."""
    global _db_manager
    if _db_manager is not None:
        await _db_manager.disconnect()
        _db_manager = None


async def get_mongodb_database() -> AsyncIOMotorDatabase:
    """FastAPI dependency to get the MongoDB database."""
    db_manager = get_database_manager()
    if not db_manager.is_connected:
        await db_manager.connect()
    return db_manager.get_database()
