"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveFloat = Annotated[float, Field(gt=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    session_signing_secret: NonEmptyStr = Field(validation_alias="SESSION_SIGNING_SECRET")
    blob_store_mode: Literal["filesystem", "http"] = Field(
        default="filesystem",
        validation_alias="BLOB_STORE_MODE",
    )
    blob_store_root: NonEmptyStr = Field(
        default="./var/blobs",
        validation_alias="BLOB_STORE_ROOT",
    )
    blob_store_url: HttpUrl | None = Field(default=None, validation_alias="BLOB_STORE_URL")
    blob_store_api_key: NonEmptyStr | None = Field(
        default=None,
        validation_alias="BLOB_STORE_API_KEY",
    )
    blob_store_timeout_seconds: PositiveFloat = Field(
        default=5.0,
        validation_alias="BLOB_STORE_TIMEOUT_SECONDS",
    )
    blob_download_url_ttl_seconds: PositiveInt = Field(
        default=300,
        validation_alias="BLOB_DOWNLOAD_URL_TTL_SECONDS",
    )
    public_base_url: HttpUrl | None = Field(default=None, validation_alias="PUBLIC_BASE_URL")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
