"""
CouponBookConfig schema.

Typed, frozen view of a configuration set.  YAML fragments are parsed
into these types by the loader; the runtime receives them only through
``couponbook_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitRule:
    """A fixed-window budget: ``limit`` requests per ``window_ms``."""

    name: str
    limit: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError(f"Rate limit '{self.name}' must allow at least 1 request")
        if self.window_ms <= 0:
            raise ValueError(f"Rate limit '{self.name}' window must be positive")

    @property
    def window(self) -> timedelta:
        return timedelta(milliseconds=self.window_ms)


DEFAULT_RATE_LIMITS: tuple[RateLimitRule, ...] = (
    RateLimitRule("api", 100, 60_000),
    RateLimitRule("auth", 5, 300_000),
    RateLimitRule("upload", 10, 60_000),
    RateLimitRule("payment", 20, 60_000),
    RateLimitRule("notification", 50, 60_000),
    RateLimitRule("admin", 200, 60_000),
)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GrantSettings:
    """Coupon grant issuance parameters."""

    expiry_days: int = 30
    redemption_code_length: int = 8


@dataclass(frozen=True)
class PayoutSettings:
    """School payout parameters."""

    points_rate: Decimal = Decimal("0.5")
    default_fee_cents: int = 0


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CouponBookConfig:
    """
    A loaded, validated configuration set.

    Attributes:
        config_id: Identifier of the set (e.g. "couponbook-default").
        version: Version number of the set.
        checksum: SHA-256 of the canonical source mapping.
        rate_limits: Named rate limit rules.
    """

    config_id: str
    version: int
    checksum: str
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    grant: GrantSettings = field(default_factory=GrantSettings)
    payout: PayoutSettings = field(default_factory=PayoutSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    rate_limits: tuple[RateLimitRule, ...] = DEFAULT_RATE_LIMITS

    def rate_limit(self, name: str) -> RateLimitRule:
        """Look up a named rate limit rule.

        Raises:
            KeyError: If no rule has that name.
        """
        for rule in self.rate_limits:
            if rule.name == name:
                return rule
        raise KeyError(f"No rate limit rule named '{name}'")
