"""Configuration management for the Airtable export."""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class LogFormat(str, Enum):
    """Console log renderers."""
    TEXT = "text"
    JSON = "json"


class Tables(str, Enum):
    """Table names in the Airtable base."""
    MATTRESSES = "allMatresses"
    PHOTOGRAPHER = "photographer"
    LOCATION = "location"


class AppSettings(BaseSettings):
    """Application settings with dotenv support.

    Environment variables can be set directly or via a .env file in the
    working directory. Credentials have no defaults; everything else does.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # ===================
    # Credentials
    # ===================
    BASE_ID: str = Field(..., description='Airtable base identifier')
    BASE_API_KEY: str = Field(..., description='Airtable personal access token')

    # ===================
    # API
    # ===================
    API_URL: str = Field(
        default='https://api.airtable.com/v0',
        description='Airtable REST API root'
    )
    VIEW: str = Field(default='Grid view', description='View used to list records')
    TIMEOUT_S: float = Field(default=30.0, description='HTTP request timeout in seconds')

    # ===================
    # Rate Limits
    # ===================
    API_DELAY: float = Field(
        default=1.0,
        ge=0,
        description='Fixed delay in seconds before every request'
    )
    RATE_LIMIT_COOLDOWN: float = Field(
        default=30.0,
        ge=0,
        description='Wait in seconds after a 429 before replaying the request'
    )

    # ===================
    # Sampling
    # ===================
    MATTRESS_MAX_RECORDS: Optional[int] = Field(
        default=None, gt=0, description='Cap on mattress records, unset fetches all'
    )
    PHOTOGRAPHER_MAX_RECORDS: Optional[int] = Field(
        default=None, gt=0, description='Cap on photographer records, unset fetches all'
    )
    LOCATION_MAX_RECORDS: Optional[int] = Field(
        default=None, gt=0, description='Cap on location records, unset fetches all'
    )

    # ===================
    # Output
    # ===================
    OUTPUT_DIR: Path = Field(default=Path('data'), description='Root of all exported files')

    # ===================
    # Logging
    # ===================
    LOG_LEVEL: str = Field(default='INFO', description='Logging level')
    LOG_FORMAT: LogFormat = Field(default=LogFormat.TEXT, description='Log format: text or json')

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator('BASE_ID', 'BASE_API_KEY')
    @classmethod
    def validate_credential(cls, v: str) -> str:
        """Reject blank credentials."""
        v = v.strip()
        if not v:
            raise ValueError("credential must not be empty")
        return v

    @property
    def max_records(self) -> Dict[str, Optional[int]]:
        """Per-table record caps keyed by table name."""
        return {
            Tables.MATTRESSES.value: self.MATTRESS_MAX_RECORDS,
            Tables.PHOTOGRAPHER.value: self.PHOTOGRAPHER_MAX_RECORDS,
            Tables.LOCATION.value: self.LOCATION_MAX_RECORDS,
        }

    def masked_api_key(self) -> str:
        """First ten characters of the API key, for display."""
        return f"{self.BASE_API_KEY[:10]}..."


@lru_cache()
def get_settings() -> AppSettings:
    """Get cached application settings.

    Loads settings from:
    1. Environment variables
    2. .env file (if exists)
    3. Default values

    Raises:
        ConfigurationError: if the credentials are missing or invalid
    """
    try:
        return AppSettings()
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
