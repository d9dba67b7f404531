"""
Configuration loading for FVG Monitor.

Non-secret settings live in config.yaml; secrets (API keys, database URL
override) are read from environment variables, optionally loaded from a
.env file with python-dotenv. Everything is validated into pydantic models
that are passed explicitly to the components that need them.

Environment variables:
    BINGX_API_URL, BINGX_API_KEY, BINGX_API_SECRET: Market data API
    EMAIL_API_URL, EMAIL_API_KEY: E-mail service (SendGrid compatible)
    DATABASE_URL: Overrides database.url from config.yaml
"""

import os
from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ConfigError, CredentialError
from .retry import RetryPolicy

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config.yaml"

_PLACEHOLDER_TEXTS = ("your_", "_here", "placeholder")


class MarketDataSettings(BaseModel):
    """Symbol, interval and lookback window requested from the exchange."""

    symbol: str = Field(
        default="BTC-USDT",
        pattern=r"^[A-Z0-9]+-[A-Z0-9]+$",
        description="Trading pair, hyphenated (e.g. BTC-USDT)"
    )
    interval: str = Field(default="1m", min_length=1, description="Kline interval")
    limit: int = Field(default=1440, ge=1, le=1440, description="Number of klines")
    timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP timeout")


class ScheduleSettings(BaseModel):
    interval_seconds: float = Field(default=300.0, gt=0, description="Seconds between cycles")


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite:///fvg_monitor.db", min_length=1)
    echo: bool = False


class NotificationSettings(BaseModel):
    """
    Notification recipients and e-mail retry policy.

    E-mail is only sent when recipient_email is set; in-app notifications
    are sent whenever notifications are enabled.
    """

    enabled: bool = False
    user_id: str = Field(default="default", min_length=1)
    recipient_email: Optional[str] = None
    sender_email: Optional[str] = None
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @model_validator(mode="after")
    def validate_email_addresses(self) -> "NotificationSettings":
        """Ensure a sender is configured whenever a recipient is."""
        if self.recipient_email and not self.sender_email:
            raise ValueError(
                "notifications.sender_email is required when "
                "notifications.recipient_email is set"
            )
        return self


LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseModel):
    """
    loguru sink settings.

    rotation and retention use loguru's own syntax ("10 MB", "1 week",
    "14 days") and are checked when the file sink is added.
    """

    level: LogLevel = "INFO"
    file: Optional[str] = "logs/fvg_monitor.log"
    rotation: str = "10 MB"
    retention: str = "14 days"


class AppConfig(BaseModel):
    """
    Complete application configuration.

    Every section has defaults, so an empty mapping yields a usable
    configuration (SQLite database, notifications disabled).

    Examples:
        >>> config = AppConfig.model_validate({"market_data": {"interval": "5m"}})
        >>> config.market_data.symbol, config.market_data.interval
        ('BTC-USDT', '5m')
    """

    market_data: MarketDataSettings = Field(default_factory=MarketDataSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class ApiCredentials(BaseModel):
    """Market data API endpoint and signing credentials."""

    base_url: str
    api_key: str
    api_secret: str

    def __repr__(self) -> str:
        return f"ApiCredentials(base_url='{self.base_url}', api_key=***, api_secret=***)"

    __str__ = __repr__


class EmailCredentials(BaseModel):
    """E-mail service endpoint and bearer token."""

    api_url: str
    api_key: str

    def __repr__(self) -> str:
        return f"EmailCredentials(api_url='{self.api_url}', api_key=***)"

    __str__ = __repr__


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> AppConfig:
    """
    Load config.yaml and the environment into an AppConfig.

    Args:
        config_path: Path to config.yaml. Defaults to the project root.
        env_file: Optional .env file to load before reading the environment.
            When omitted, python-dotenv searches for a .env file.

    Returns:
        AppConfig: Validated configuration

    Raises:
        ConfigError: If the file is missing, empty, unparsable or invalid
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file: {e}") from e

    if raw is None:
        raise ConfigError("Configuration file is empty")

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Configuration file must contain a mapping, got {type(raw).__name__}"
        )

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        database_section = raw.get("database") or {}
        raw["database"] = {**database_section, "url": database_url}

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.debug(f"Loaded configuration from {path}")
    return config


def _read_env(variables: tuple, service: str) -> dict:
    """
    Read required environment variables, rejecting missing or placeholder values.

    Values are never logged or included in error messages.
    """
    values = {name: os.getenv(name) for name in variables}

    missing_vars = [name for name, value in values.items() if not value]
    if missing_vars:
        raise CredentialError(
            f"Missing required {service} credentials: {', '.join(missing_vars)}. "
            f"Please set these environment variables in your .env file or environment."
        )

    for name, value in values.items():
        if any(placeholder in value.lower() for placeholder in _PLACEHOLDER_TEXTS):
            raise CredentialError(
                f"{name} appears to be a placeholder value. "
                f"Please set your actual {service} credentials."
            )

    return values


def load_market_data_credentials() -> ApiCredentials:
    """
    Load BingX credentials from BINGX_API_URL, BINGX_API_KEY, BINGX_API_SECRET.

    Raises:
        CredentialError: If any variable is missing or a placeholder
    """
    values = _read_env(("BINGX_API_URL", "BINGX_API_KEY", "BINGX_API_SECRET"), "BingX")
    logger.debug("Loaded BingX credentials successfully")
    return ApiCredentials(
        base_url=values["BINGX_API_URL"].rstrip("/"),
        api_key=values["BINGX_API_KEY"],
        api_secret=values["BINGX_API_SECRET"],
    )


def load_email_credentials() -> EmailCredentials:
    """
    Load e-mail service credentials from EMAIL_API_URL and EMAIL_API_KEY.

    Raises:
        CredentialError: If any variable is missing or a placeholder
    """
    values = _read_env(("EMAIL_API_URL", "EMAIL_API_KEY"), "e-mail service")
    logger.debug("Loaded e-mail service credentials successfully")
    return EmailCredentials(
        api_url=values["EMAIL_API_URL"],
        api_key=values["EMAIL_API_KEY"],
    )
