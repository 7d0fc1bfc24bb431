"""Library settings loaded from environment variables.

Environment Configuration:
    QUIRE_ENV: Deployment environment (local | test | prod)
    QUIRE_LOG_JSON: Force JSON (true) or console (false) log output

Positions Configuration:
    QUIRE_POSITIONS_PAGE_LENGTH: Bytes per position in reflowable resources
    QUIRE_POSITIONS_STRATEGY: archive_entry_length | original_length
    QUIRE_POSITIONS_MAX_WORKERS: Threads used for resource length lookups

Archive Safety Configuration:
    QUIRE_MAX_ARCHIVE_ENTRIES
    QUIRE_MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES
    QUIRE_MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES
    QUIRE_MAX_ARCHIVE_COMPRESSION_RATIO

Archive limits may only be tightened: a value weaker than the default is
rejected at load time.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class PositionsStrategy(str, Enum):
    """How the number of positions in a reflowable resource is computed."""

    ARCHIVE_ENTRY_LENGTH = "archive_entry_length"
    ORIGINAL_LENGTH = "original_length"


DEFAULT_PAGE_LENGTH = 1024

# Floors for archive safety limits (field name -> (env var, default))
_ARCHIVE_LIMIT_FLOORS: dict[str, tuple[str, int]] = {
    "max_archive_entries": ("QUIRE_MAX_ARCHIVE_ENTRIES", 10_000),
    "max_archive_total_uncompressed_bytes": (
        "QUIRE_MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES",
        536_870_912,
    ),
    "max_archive_single_entry_uncompressed_bytes": (
        "QUIRE_MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES",
        67_108_864,
    ),
    "max_archive_compression_ratio": ("QUIRE_MAX_ARCHIVE_COMPRESSION_RATIO", 100),
}


class Settings(BaseSettings):
    """Library configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - Page length and worker count must be >= 1
    - Archive limits must be >= 1 and no weaker than their defaults
    """

    quire_env: Environment = Field(default=Environment.LOCAL, alias="QUIRE_ENV")
    log_json: bool | None = Field(default=None, alias="QUIRE_LOG_JSON")

    # Positions
    positions_page_length: int = Field(
        default=DEFAULT_PAGE_LENGTH, alias="QUIRE_POSITIONS_PAGE_LENGTH"
    )
    positions_strategy: PositionsStrategy = Field(
        default=PositionsStrategy.ARCHIVE_ENTRY_LENGTH, alias="QUIRE_POSITIONS_STRATEGY"
    )
    positions_max_workers: int = Field(default=4, alias="QUIRE_POSITIONS_MAX_WORKERS")

    # Archive safety
    max_archive_entries: int = Field(default=10_000, alias="QUIRE_MAX_ARCHIVE_ENTRIES")
    max_archive_total_uncompressed_bytes: int = Field(
        default=536_870_912, alias="QUIRE_MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES"
    )  # 512 MiB
    max_archive_single_entry_uncompressed_bytes: int = Field(
        default=67_108_864, alias="QUIRE_MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES"
    )  # 64 MiB
    max_archive_compression_ratio: int = Field(
        default=100, alias="QUIRE_MAX_ARCHIVE_COMPRESSION_RATIO"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject non-positive values and archive limits weaker than the floor."""
        if self.positions_page_length < 1:
            raise ValueError("QUIRE_POSITIONS_PAGE_LENGTH must be >= 1")
        if self.positions_max_workers < 1:
            raise ValueError("QUIRE_POSITIONS_MAX_WORKERS must be >= 1")

        for field_name, (env_var, floor) in _ARCHIVE_LIMIT_FLOORS.items():
            value = getattr(self, field_name)
            if value < 1:
                raise ValueError(f"{env_var} must be >= 1 (got {value})")
            if value > floor:
                raise ValueError(
                    f"{env_var}={value} is weaker than the safety floor ({floor}); "
                    "archive limits may only be tightened"
                )

        return self

    @property
    def json_logs(self) -> bool:
        """Whether logs should be rendered as JSON."""
        if self.log_json is not None:
            return self.log_json
        return self.quire_env != Environment.LOCAL


@lru_cache
def get_settings() -> Settings:
    """Get cached library settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
