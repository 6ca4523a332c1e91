from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Literal
from dotenv import load_dotenv
import logging
import sys

load_dotenv()
logger = logging.getLogger(__name__)

# accepted URI schemes per store
_SCHEMES = {
    "MONGO_URI": ("mongodb://", "mongodb+srv://"),
    "REDIS_URL": ("redis://", "rediss://"),
}

class Settings(BaseSettings):
    # Storage and identity (required)
    MONGO_URI: str = Field(..., description="MongoDB connection URI, including the database name")
    REDIS_URL: str = Field(..., description="Redis connection URL")
    JWT_SECRET: str = Field(..., min_length=32, description="Shared HS256 secret of the identity service")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15, ge=1, le=1440)

    # Progress tracking
    COMPLETION_THRESHOLD: float = Field(default=90.0, gt=0, le=100, description="Percent at which a video counts as completed")
    PROGRESS_TICK_INTERVAL_SECONDS: float = Field(default=5.0, ge=0, description="Minimum seconds between player progress saves")

    # Course cache (L1 memory + L2 Redis)
    COURSE_CACHE_TTL: int = Field(default=300, ge=1)
    COURSE_LIST_CACHE_TTL: int = Field(default=120, ge=1)
    L1_CACHE_MAX_ENTRIES: int = Field(default=1024, ge=1)

    # HTTP
    CORS_ORIGINS: str = Field(default="*", description="Comma separated allowed origins")

    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True)

    @field_validator("MONGO_URI", "REDIS_URL")
    @classmethod
    def validate_scheme(cls, v, info):
        if not v.startswith(_SCHEMES[info.field_name]):
            raise ValueError(f"{info.field_name} must start with one of {', '.join(_SCHEMES[info.field_name])}")
        return v

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

try:
    settings = Settings()
    logger.info("Configuration loaded successfully")
except Exception as e:
    logger.critical(f"Failed to load configuration: {str(e)}")
    sys.exit(1)
