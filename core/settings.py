from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: Literal["DEV", "TEST", "PROD"] = "DEV"
    database_url: str
    aws_region: str = "us-east-1"
    s3_endpoint: str | None = None
    problems_bucket: str = "mdf-problems"
    solutions_bucket: str = "mdf-solutions"
    proof_code_bucket: str = "mdf-lean4"
    exports_bucket: str = "mdf-exports"
    signed_url_expiry_seconds: int = 3600
    signed_url_max_expiry_seconds: int = 3600
    user_pool_id: str | None = None
    admin_group: str = "admin"
    notification_topic_arn: str | None = None
    event_bus_name: str = "default"
    event_source: str = "mdf.submissions"
    notify_max_retries: int = 3
    notify_backoff_factor: float = 0.5
    jwt_secret: str = "change-me"
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
