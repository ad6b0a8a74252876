"""
Configuration Loader (``couponbook_config.loader``).

Responsibility
--------------
Loads a configuration set's ``root.yaml`` and parses it into the typed,
frozen dataclasses of ``couponbook_config.schema``.  No service calls this
directly; the runtime entry point is
``couponbook_config.get_active_config()``.

Invariants enforced
-------------------
* ``validate_config_data`` reports every structural problem at once; the
  parser then raises ``ValueError`` rather than applying silent defaults
  to invalid values.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` listing every problem found.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from couponbook_config.schema import (
    DEFAULT_RATE_LIMITS,
    CouponBookConfig,
    DatabaseSettings,
    GrantSettings,
    LoggingSettings,
    PayoutSettings,
    RateLimitRule,
)

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config_data(data: dict[str, Any]) -> list[str]:
    """Return a list of problems with a raw configuration mapping."""
    errors: list[str] = []

    if not data.get("config_id"):
        errors.append("config_id is required")
    if not _is_positive_int(data.get("version")):
        errors.append("version must be a positive integer")

    grant = data.get("grant") or {}
    for key in ("expiry_days", "redemption_code_length"):
        if key in grant and not _is_positive_int(grant[key]):
            errors.append(f"grant.{key} must be a positive integer")

    payout = data.get("payout") or {}
    if "points_rate" in payout:
        try:
            rate = Decimal(str(payout["points_rate"]))
        except InvalidOperation:
            errors.append("payout.points_rate must be a number")
        else:
            if not rate.is_finite() or rate < 0 or rate > 1:
                errors.append("payout.points_rate must be between 0 and 1")
    fee = payout.get("default_fee_cents", 0)
    if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
        errors.append("payout.default_fee_cents must be a non-negative integer")

    database = data.get("database") or {}
    if "url" in database and not database["url"]:
        errors.append("database.url must not be empty")

    level = (data.get("logging") or {}).get("level", "INFO")
    if str(level).upper() not in _LOG_LEVELS:
        errors.append(f"logging.level '{level}' is not a valid level")

    rate_limits = data.get("rate_limits") or {}
    if not isinstance(rate_limits, dict):
        errors.append("rate_limits must be a mapping of name to rule")
    else:
        for name, rule in rate_limits.items():
            if not isinstance(rule, dict):
                errors.append(f"rate_limits.{name} must be a mapping")
                continue
            if not _is_positive_int(rule.get("limit")):
                errors.append(f"rate_limits.{name}.limit must be a positive integer")
            if not _is_positive_int(rule.get("window_ms")):
                errors.append(f"rate_limits.{name}.window_ms must be a positive integer")

    return errors


def parse_rate_limits(data: dict[str, Any]) -> tuple[RateLimitRule, ...]:
    """Parse rate limit rules, keeping built-in defaults for unnamed ones."""
    by_name = {rule.name: rule for rule in DEFAULT_RATE_LIMITS}
    for name, rule in (data or {}).items():
        by_name[name] = RateLimitRule(
            name=name,
            limit=rule["limit"],
            window_ms=rule["window_ms"],
        )
    return tuple(by_name.values())


def parse_config(data: dict[str, Any]) -> CouponBookConfig:
    """
    Parse a raw configuration mapping into a CouponBookConfig.

    Raises:
        ValueError: listing every validation problem found.
    """
    errors = validate_config_data(data)
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    grant = data.get("grant") or {}
    payout = data.get("payout") or {}
    database = data.get("database") or {}
    logging_section = data.get("logging") or {}

    return CouponBookConfig(
        config_id=data["config_id"],
        version=data["version"],
        checksum=compute_checksum(data),
        database=DatabaseSettings(
            url=database.get("url", DatabaseSettings.url),
            echo=bool(database.get("echo", False)),
            pool_size=database.get("pool_size", DatabaseSettings.pool_size),
            max_overflow=database.get("max_overflow", DatabaseSettings.max_overflow),
        ),
        grant=GrantSettings(
            expiry_days=grant.get("expiry_days", GrantSettings.expiry_days),
            redemption_code_length=grant.get(
                "redemption_code_length", GrantSettings.redemption_code_length
            ),
        ),
        payout=PayoutSettings(
            points_rate=Decimal(str(payout.get("points_rate", PayoutSettings.points_rate))),
            default_fee_cents=payout.get("default_fee_cents", 0),
        ),
        logging=LoggingSettings(level=str(logging_section.get("level", "INFO")).upper()),
        rate_limits=parse_rate_limits(data.get("rate_limits") or {}),
    )


def load_config_set(directory: Path) -> CouponBookConfig:
    """Load and parse ``<directory>/root.yaml``."""
    return parse_config(load_yaml_file(directory / "root.yaml"))
