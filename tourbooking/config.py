from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    # Tokens are issued by the identity provider, this service only verifies them
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_TTL_SECONDS: int = 300

    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_BOOKING_TOPIC: str = "booking_events"

    # Background loops
    OUTBOX_POLL_INTERVAL_SECONDS: int = 5
    SCHEDULER_INTERVAL_SECONDS: int = 3600

    BOOKING_RATE_LIMIT_PER_MINUTE: int = 30
    CURRENCY: str = "ETB"

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
