from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Database Connection
    DATABASE_URL: str = "sqlite:///./transactions.db"
    DATABASE_TIMEOUT_SECONDS: int = 30

    # HTTP Server
    PORT: int = 5000
    LOG_LEVEL: str = "INFO"

    # Response Cache (seconds)
    CACHE_DEFAULT_TTL: int = 60
    CACHE_CHECK_PERIOD: int = 120
    LIST_CACHE_TTL: int = 3600
    STATS_CACHE_TTL: int = 3600
    OPTIONS_CACHE_TTL: int = 86400

    # Batch Tools
    SEED_CSV_PATH: str = "data.csv"
    SEED_BATCH_SIZE: int = 1000
    RETENTION_KEEP: int = 5000

    class Config:
        env_file = ".env"

settings = Settings()
