"""
couponbook_services.rate_limit -- Fixed-window request rate limiting.

Responsibility:
    Decide whether an identifier (client address, user id, API key) may
    make another request under a named RateLimitRule, and report the
    remaining budget and reset time.

Architecture position:
    Services -- stateful infrastructure.  State lives behind the
    RateLimitStore interface so a shared store (e.g. Redis) can replace
    the in-process one without touching RateLimiter.  Time comes from an
    injected Clock.

Invariants enforced:
    - Within one window an identifier is allowed at most ``rule.limit``
      requests; refused requests do not consume budget.
    - A window covers [start, start + rule.window); the first request at
      or after reset_at opens a new window.
    - Windows are keyed by (rule name, identifier), so budgets under
      different rules are independent.
    - Expired windows are evicted on every hit; the in-memory store does
      not grow with identifiers that stopped sending requests.

Failure modes:
    - RateLimitExceededError from ``enforce()`` when the budget is spent.
    - KeyError from ``check_named()`` for an unknown rule name.
"""

from __future__ import annotations

import math
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from couponbook_config.schema import DEFAULT_RATE_LIMITS, RateLimitRule
from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.exceptions import RateLimitExceededError
from couponbook_kernel.logging_config import get_logger

logger = get_logger("orchestration.rate_limit")


@dataclass(frozen=True)
class RateLimitWindow:
    """State of one window after a hit."""

    count: int
    reset_at: datetime
    allowed: bool


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime

    def headers(self, now: datetime) -> dict[str, str]:
        """Standard X-RateLimit-* response headers (plus Retry-After when refused)."""
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at.isoformat(),
        }
        if not self.allowed:
            seconds = max(0.0, (self.reset_at - now).total_seconds())
            out["Retry-After"] = str(math.ceil(seconds))
        return out


class RateLimitStore(ABC):
    """Window storage.  ``hit`` must be atomic per key."""

    @abstractmethod
    def hit(self, key: str, now: datetime, window: timedelta, limit: int) -> RateLimitWindow:
        """Count one request for ``key`` and return the resulting window."""

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget the window for ``key``."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store guarded by a lock."""

    def __init__(self) -> None:
        self._windows: dict[str, tuple[int, datetime]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: datetime, window: timedelta, limit: int) -> RateLimitWindow:
        with self._lock:
            self._evict_expired(now)
            current = self._windows.get(key)
            if current is None:
                reset_at = now + window
                self._windows[key] = (1, reset_at)
                return RateLimitWindow(count=1, reset_at=reset_at, allowed=True)

            count, reset_at = current
            if count >= limit:
                return RateLimitWindow(count=count, reset_at=reset_at, allowed=False)

            self._windows[key] = (count + 1, reset_at)
            return RateLimitWindow(count=count + 1, reset_at=reset_at, allowed=True)

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def _evict_expired(self, now: datetime) -> None:
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class RateLimiter:
    """
    Fixed-window rate limiter over a RateLimitStore.

    Usage:
        limiter = RateLimiter(rules=config.rate_limits)
        result = limiter.check_named("auth", client_ip)
        if not result.allowed:
            ...
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        clock: Clock | None = None,
        rules: tuple[RateLimitRule, ...] = DEFAULT_RATE_LIMITS,
    ) -> None:
        self._store = store or InMemoryRateLimitStore()
        self._clock = clock or SystemClock()
        self._rules: Mapping[str, RateLimitRule] = {rule.name: rule for rule in rules}

    @staticmethod
    def _key(rule: RateLimitRule, identifier: str) -> str:
        return f"{rule.name}:{identifier}"

    def rule(self, name: str) -> RateLimitRule:
        try:
            return self._rules[name]
        except KeyError:
            raise KeyError(f"No rate limit rule named '{name}'") from None

    def check(self, identifier: str, rule: RateLimitRule) -> RateLimitResult:
        """Count a request and report whether it is allowed."""
        now = self._clock.now_utc()
        window = self._store.hit(self._key(rule, identifier), now, rule.window, rule.limit)
        result = RateLimitResult(
            allowed=window.allowed,
            limit=rule.limit,
            remaining=max(0, rule.limit - window.count),
            reset_at=window.reset_at,
        )
        if not result.allowed:
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "identifier": identifier,
                    "rule": rule.name,
                    "limit": rule.limit,
                    "reset_at": result.reset_at,
                },
            )
        return result

    def check_named(self, name: str, identifier: str) -> RateLimitResult:
        return self.check(identifier, self.rule(name))

    def enforce(self, identifier: str, rule: RateLimitRule | str) -> RateLimitResult:
        """Like check, but raise when the request is refused.

        Raises:
            RateLimitExceededError: If the identifier's budget is spent.
        """
        if isinstance(rule, str):
            rule = self.rule(rule)
        result = self.check(identifier, rule)
        if not result.allowed:
            raise RateLimitExceededError(identifier, rule.limit, result.reset_at)
        return result

    def reset(self, identifier: str, rule: RateLimitRule | str) -> None:
        if isinstance(rule, str):
            rule = self.rule(rule)
        self._store.reset(self._key(rule, identifier))
