"""
Application configuration loaded from environment variables.
"""
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables"""

    # MongoDB
    MONGO_URL: str = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "chatpulse")

    # Redis pub/sub for realtime fanout; leave unset to run single-process
    REDIS_URL: Optional[str] = os.getenv("REDIS_URL")

    # JWT
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Typing indicators older than this are stale
    TYPING_EXPIRY_MS: int = int(os.getenv("TYPING_EXPIRY_MS", "2000"))

    # Presence heartbeat
    PRESENCE_TTL_SECONDS: int = int(os.getenv("PRESENCE_TTL_SECONDS", "60"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
