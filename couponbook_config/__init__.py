"""
couponbook_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.

Architecture position:
    Configuration -- YAML-driven settings.  This package sits above
    ``couponbook_kernel`` and below ``couponbook_services``.  The kernel
    MUST NEVER import from ``couponbook_config``; services pass the
    relevant settings into kernel constructors.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
      ``bootstrap()`` loads through it and applies the database and logging
      sections.
    - Validation before use: an invalid set raises before any value is
      returned.
    - Deterministic identity: the same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the sets directory or the named set is missing.
    - ``ValueError`` -- validation failures (all problems listed).

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``COUPONBOOK_CONFIG_TRACE`` log entry with the config_id, version and
    checksum.
"""

from __future__ import annotations

from pathlib import Path

from couponbook_config.loader import load_config_set
from couponbook_config.schema import (
    CouponBookConfig,
    DatabaseSettings,
    GrantSettings,
    LoggingSettings,
    PayoutSettings,
    RateLimitRule,
)
from couponbook_kernel.db.engine import init_engine_from_url
from couponbook_kernel.logging_config import configure_logging, get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "CouponBookConfig",
    "DatabaseSettings",
    "GrantSettings",
    "LoggingSettings",
    "PayoutSettings",
    "RateLimitRule",
    "bootstrap",
    "get_active_config",
]


def get_active_config(
    config_set: str = "default",
    config_dir: Path | None = None,
) -> CouponBookConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_set: Name of the subdirectory holding ``root.yaml``.
        config_dir: Override path to the configuration sets directory.
            Defaults to couponbook_config/sets/.

    Returns:
        CouponBookConfig -- frozen, validated settings.

    Raises:
        FileNotFoundError: If the sets directory or the named set is missing.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    set_dir = sets_dir / config_set
    if not (set_dir / "root.yaml").exists():
        raise FileNotFoundError(
            f"No configuration set '{config_set}' found in {sets_dir}"
        )

    config = load_config_set(set_dir)

    _logger.info(
        "COUPONBOOK_CONFIG_TRACE",
        extra={
            "trace_type": "COUPONBOOK_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "rate_limit_count": len(config.rate_limits),
        },
    )
    return config


def bootstrap(
    config_set: str = "default",
    config_dir: Path | None = None,
) -> CouponBookConfig:
    """Load a configuration set and apply its logging and database sections.

    Configures the ``couponbook`` JSON logger at ``logging.level`` and
    initializes the process-wide engine from ``database``.  Returns the
    loaded config so callers can pass the remaining sections on to
    services.
    """
    config = get_active_config(config_set, config_dir)
    configure_logging(level=config.logging.level)
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    return config
