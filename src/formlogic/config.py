"""Engine configuration — reads settings from environment variables.

All settings have sensible defaults so the engine works out of the box.
Deployments override them via ``FORMLOGIC_*`` env vars.
"""

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class EngineSettings:
    """Immutable engine configuration read from environment at startup."""

    # Logging
    log_level: str = "INFO"

    # Prefix used by the ``currency`` display type
    currency_symbol: str = "$"

    # Range applied to rating/scale fields that carry no explicit min/max
    default_range_min: float = 1
    default_range_max: float = 10


def load_settings() -> EngineSettings:
    """Build settings from ``FORMLOGIC_*`` environment variables."""
    return EngineSettings(
        log_level=os.getenv("FORMLOGIC_LOG_LEVEL", "INFO").upper(),
        currency_symbol=os.getenv("FORMLOGIC_CURRENCY_SYMBOL", "$"),
        default_range_min=float(os.getenv("FORMLOGIC_DEFAULT_RANGE_MIN", "1")),
        default_range_max=float(os.getenv("FORMLOGIC_DEFAULT_RANGE_MAX", "10")),
    )


def configure_logging(settings: EngineSettings | None = None) -> None:
    """Configure root logging for scripts that embed the engine."""
    if settings is None:
        settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
