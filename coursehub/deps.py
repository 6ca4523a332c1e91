# deps.py
"""Connection lifecycle for MongoDB and Redis, and the request-scoped accessors routes depend on."""
import logging

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from pymongo import MongoClient
from pymongo.database import Database
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

MONGO_POOL_SIZE = 100
MONGO_SELECTION_TIMEOUT_MS = 5000

def create_mongo_client(uri: str) -> MongoClient:
    # sync client; services run its calls through run_in_threadpool
    return MongoClient(uri, maxPoolSize=MONGO_POOL_SIZE, serverSelectionTimeoutMS=MONGO_SELECTION_TIMEOUT_MS)

def create_redis_client(url: str) -> Redis:
    return aioredis.from_url(url, encoding="utf-8", decode_responses=True)

async def connect(app: FastAPI, mongo_uri: str, redis_url: str) -> None:
    """Open both clients and park them on app.state. Raises if either store is unreachable."""
    app.state.mongo_client = create_mongo_client(mongo_uri)
    app.state.db = app.state.mongo_client.get_default_database()
    logger.info(f"MongoDB client ready for database '{app.state.db.name}'")

    app.state.redis = create_redis_client(redis_url)
    await app.state.redis.ping()
    logger.info("Redis connection established")

async def disconnect(app: FastAPI) -> None:
    redis = getattr(app.state, "redis", None)
    if redis is not None:
        try:
            await redis.aclose()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {str(e)}")

    mongo_client = getattr(app.state, "mongo_client", None)
    if mongo_client is not None:
        mongo_client.close()
        logger.info("MongoDB connection closed")

def get_db(request: Request) -> Database:
    return request.app.state.db

def get_redis(request: Request) -> Redis:
    return request.app.state.redis
