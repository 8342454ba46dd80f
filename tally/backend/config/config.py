import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """
    Settings read straight from environment variables (and an optional .env file).
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    DB_MIN_POOL_SIZE: int = int(os.environ.get("DB_MIN_POOL_SIZE", 2))
    DB_MAX_POOL_SIZE: int = int(os.environ.get("DB_MAX_POOL_SIZE", 10))
    DB_COMMAND_TIMEOUT_SECONDS: float = float(os.environ.get("DB_COMMAND_TIMEOUT_SECONDS", 10))

    # Redis: change notifications + pending onboarding on one, rate limits on the other
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL", "memory://")

    # JWT
    SECRET_KEY: str = os.environ.get("SECRET_KEY")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")

    ONBOARDING_TTL_SECONDS: int = int(os.environ.get("ONBOARDING_TTL_SECONDS", 7 * 24 * 3600))
    RECONCILE_INTERVAL_MINUTES: int = int(os.environ.get("RECONCILE_INTERVAL_MINUTES", 15))

    CORS_ORIGINS: list = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")

# Single importable instance
settings = Config()
