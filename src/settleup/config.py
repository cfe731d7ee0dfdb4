"""Configuration management for SettleUp."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Acting user for the CLI and MCP server (unset = anonymous, read paths soft-fail)
    user_id: str | None = None

    # Display settings
    currency_symbol: str = "₹"

    # Reject expenses whose shares don't sum to the amount when writing to the store
    enforce_share_sum: bool = True

    # Database path
    database_path: Path = Path.home() / ".settleup" / "settleup.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your SETTLEUP_* environment "
            f"variables or .env file. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
