"""Configuration for the FleetLedger reconciliation engine.

This module provides Pydantic Settings-based configuration with environment
variable support and defaults matching the ledger's business rules.

Usage:
    from fleetledger_core.config import FleetLedgerConfig

    # Load from environment variables and .env file
    config = FleetLedgerConfig()

    print(config.amount_tolerance)
    print(config.split_default_category)
"""

import logging
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import SPLIT_ENTRY_TAG
from .money import AMOUNT_TOLERANCE
from .taxonomy import DEFAULT_TAX_RATE, ExpenseCategory, is_allowed_sub_category, is_tax_slab


class FleetLedgerConfig(BaseSettings):
    """Root configuration for the reconciliation engine.

    Environment Variables:
        FLEETLEDGER_ENV: Environment name (development, staging, production, test)
        FLEETLEDGER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        FLEETLEDGER_AMOUNT_TOLERANCE: Largest difference treated as equal amounts
        FLEETLEDGER_DEFAULT_TAX_RATE: Rate for unrecognised categories
        FLEETLEDGER_SPLIT_DEFAULT_CATEGORY: Category of a new split's first line
        FLEETLEDGER_SPLIT_DEFAULT_SUB_CATEGORY: Sub-category of a new split's first line
        FLEETLEDGER_SPLIT_EXTRA_CATEGORY: Category of lines added to a split
        FLEETLEDGER_SPLIT_EXTRA_SUB_CATEGORY: Sub-category of lines added to a split
        FLEETLEDGER_SPLIT_TAG: Tag placed on every expense created by a split

    Example:
        config = FleetLedgerConfig(amount_tolerance=Decimal("0.05"))
        session = SplitSession(txn, config=config)
    """

    model_config = SettingsConfigDict(
        env_prefix="FLEETLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = Field(
        default="development",
        description="Environment name (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    amount_tolerance: Decimal = Field(
        default=AMOUNT_TOLERANCE,
        gt=0,
        description="Amounts closer than this are considered equal",
    )
    default_tax_rate: Decimal = Field(
        default=DEFAULT_TAX_RATE,
        description="GST rate used when the taxonomy has no entry",
    )
    split_default_category: ExpenseCategory = Field(
        default=ExpenseCategory.FUEL,
        description="Category of the line a split session starts with",
    )
    split_default_sub_category: str = Field(default="Diesel")
    split_extra_category: ExpenseCategory = Field(
        default=ExpenseCategory.OTHER,
        description="Category of lines added for the unallocated remainder",
    )
    split_extra_sub_category: str = Field(default="Misc")
    split_tag: str = Field(
        default=SPLIT_ENTRY_TAG,
        min_length=1,
        description="Tag marking expenses created by a split",
    )

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production", "test"}
        v_lower = v.lower().strip()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("default_tax_rate")
    @classmethod
    def validate_default_rate(cls, v: Decimal) -> Decimal:
        if not is_tax_slab(v):
            raise ValueError(f"Default tax rate {v} is not a GST slab")
        return v

    @model_validator(mode="after")
    def validate_split_defaults(self) -> "FleetLedgerConfig":
        """Split defaults must name sub-categories their category allows."""
        pairs = [
            (self.split_default_category, self.split_default_sub_category),
            (self.split_extra_category, self.split_extra_sub_category),
        ]
        for category, sub_category in pairs:
            if not is_allowed_sub_category(category, sub_category):
                raise ValueError(
                    f"Sub-category {sub_category!r} is not allowed for {category.value}"
                )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"

    @property
    def is_debug(self) -> bool:
        return self.log_level == "DEBUG"


_default_config: Optional[FleetLedgerConfig] = None


def get_config() -> FleetLedgerConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _default_config
    if _default_config is None:
        _default_config = FleetLedgerConfig()
    return _default_config


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structlog for the engine.

    Args:
        level: Log level name; defaults to the configured log_level
    """
    level_name = level or get_config().log_level
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level_name.upper())
        ),
        cache_logger_on_first_use=False,
    )
