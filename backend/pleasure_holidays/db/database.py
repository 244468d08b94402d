"""
MongoDB Database Configuration and Connection
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

from pleasure_holidays.core.errors import InternalError

logger = logging.getLogger(__name__)


def connect(mongodb_uri: str | None, database_name: str) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    """
    Create a MongoDB client and return it with the database handle.
    The caller owns the client and must close it on shutdown.
    """
    if not mongodb_uri:
        raise InternalError("MONGODB_URI environment variable is not set")

    # Create MongoDB client with server API version
    client = AsyncIOMotorClient(mongodb_uri, server_api=ServerApi("1"))
    database = client[database_name]

    logger.info(f"✅ Connected to MongoDB database: {database_name}")
    return client, database


async def init_indexes(db: AsyncIOMotorDatabase) -> None:
    """
    Initialize database indexes for uniqueness and query performance
    """
    try:
        # Users indexes
        await db.users.create_index("email", unique=True)
        await db.users.create_index("role")
        await db.users.create_index("password_reset_token_hash")

        # Packages indexes
        await db.packages.create_index(
            [("destination.country", ASCENDING), ("destination.city", ASCENDING)]
        )
        await db.packages.create_index("category")
        await db.packages.create_index("pricing.base_price")
        await db.packages.create_index([("is_approved", ASCENDING), ("availability.is_active", ASCENDING)])
        await db.packages.create_index("tags")
        await db.packages.create_index("created_by")

        # Bookings indexes
        await db.bookings.create_index("booking_id", unique=True)
        await db.bookings.create_index("customer")
        await db.bookings.create_index("agent")
        await db.bookings.create_index("package")
        await db.bookings.create_index("status")
        await db.bookings.create_index("payment.status")
        await db.bookings.create_index("approval.status")
        await db.bookings.create_index([("created_at", DESCENDING)])

        # Reviews indexes
        await db.reviews.create_index("package")
        await db.reviews.create_index("user")
        await db.reviews.create_index([("user", ASCENDING), ("booking", ASCENDING)], unique=True, name="uniq_user_booking")
        await db.reviews.create_index("is_approved")

        # Transport options indexes
        await db.transport_options.create_index([("type", ASCENDING), ("is_active", ASCENDING)])
        await db.transport_options.create_index("pricing.base_price")

        logger.info("✅ Database indexes created successfully")
    except PyMongoError as e:
        logger.warning(f"⚠️  Index creation warning: {e}")


async def close_database_connection(client: AsyncIOMotorClient | None) -> None:
    """
    Close the MongoDB connection
    Call this when shutting down the application
    """
    if client:
        client.close()
        logger.info("🔌 Closed MongoDB connection")


async def test_connection(db: AsyncIOMotorDatabase) -> bool:
    """
    Test the MongoDB connection
    """
    try:
        # Ping the database
        await db.command("ping")
        logger.info("✅ MongoDB connection successful!")
        return True
    except PyMongoError as e:
        logger.error(f"❌ MongoDB connection failed: {e}")
        return False
