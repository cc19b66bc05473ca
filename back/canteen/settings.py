from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """
    App configuration.

    This project uses `config.env` (non-dot env file) because some environments
    block creating `.env*` files. If you do have a `.env`, it will also be read.
    """

    model_config = SettingsConfigDict(
        env_file=(
            str(_PROJECT_ROOT / "config.env"),
            str(_PROJECT_ROOT / ".env"),
            "config.env",
            ".env",
        ),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    db_host: str = Field(default="localhost", validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_user: str = Field(default="canteen", validation_alias="DB_USER")
    db_password: str = Field(default="canteen", validation_alias="DB_PASSWORD")
    db_name: str = Field(default="canteen", validation_alias="DB_NAME")
    # Full SQLAlchemy URL; wins over the DB_* parts when set (e.g. sqlite for local runs)
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    secret_key: str = Field(default="CHANGE_THIS_IN_PRODUCTION", validation_alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", validation_alias="ALGORITHM")
    access_token_expire_minutes: int = Field(default=720, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_channel_prefix: str = Field(default="canteen:", validation_alias="REDIS_CHANNEL_PREFIX")

    # Used by the websocket bridge to check that an order room exists
    api_url: str = Field(default="http://localhost:8020", validation_alias="API_URL")

    cors_origins: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS"
    )

    canteen_timezone: str = Field(default="UTC", validation_alias="CANTEEN_TIMEZONE")
    default_upi_id: str = Field(default="canteen@oksbi", validation_alias="DEFAULT_UPI_ID")
    default_canteen_name: str = Field(default="College Canteen", validation_alias="DEFAULT_CANTEEN_NAME")

    order_id_max_attempts: int = Field(default=5, validation_alias="ORDER_ID_MAX_ATTEMPTS")
    phone_history_limit: int = Field(default=20, validation_alias="PHONE_HISTORY_LIMIT")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        # SQLModel uses SQLAlchemy under the hood; this uses the psycopg driver (v3).
        return (
            f"postgresql+psycopg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


settings = Settings()
