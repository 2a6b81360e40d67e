"""Application configuration module."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the targeting composition root, sourced from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="TARGETING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"

    # Entity snapshot exported by the admin backend (YAML or JSON)
    catalog_path: str | None = None

    # Selection policies, see targeting.selection.policy_from_name
    ad_selection_policy: str = "impression_weighted"
    sponsor_selection_policy: str = "sticky"


def get_settings() -> Settings:
    """Build a fresh :class:`Settings` instance from the current environment."""

    return Settings()


__all__ = ["Settings", "get_settings"]
