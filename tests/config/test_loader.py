"""
Tests for configuration loading.

Covers:
- The shipped default set
- Validation listing every problem
- Rate limit overrides merged over built-in defaults
- Missing sets and directories
- Config trace logging
- bootstrap applying the database and logging sections
"""

import logging
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from couponbook_config import bootstrap, get_active_config
from couponbook_config.loader import (
    compute_checksum,
    parse_config,
    parse_rate_limits,
    validate_config_data,
)
from couponbook_config.schema import RateLimitRule
from couponbook_kernel.db.engine import get_engine, reset_engine
from couponbook_kernel.logging_config import configure_logging, reset_logging
from couponbook_services.rate_limit import RateLimiter

MINIMAL = {"config_id": "test", "version": 1}


def _write_set(base: Path, name: str, data) -> Path:
    set_dir = base / name
    set_dir.mkdir(parents=True)
    (set_dir / "root.yaml").write_text(yaml.safe_dump(data))
    return base


class TestDefaultSet:

    def test_values(self):
        config = get_active_config()
        assert config.config_id == "couponbook-default"
        assert config.version == 1
        assert config.grant.expiry_days == 30
        assert config.grant.redemption_code_length == 8
        assert config.payout.points_rate == Decimal("0.5")
        assert config.logging.level == "INFO"
        assert len(config.rate_limits) == 6
        auth = config.rate_limit("auth")
        assert (auth.limit, auth.window_ms) == (5, 300_000)

    def test_checksum_deterministic(self):
        assert get_active_config().checksum == get_active_config().checksum
        assert compute_checksum({"b": 1, "a": 2}) == compute_checksum({"a": 2, "b": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_unknown_rate_limit(self):
        with pytest.raises(KeyError):
            get_active_config().rate_limit("login")

    def test_trace_logged(self, captured_logs):
        config = get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "COUPONBOOK_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_set_id"] == "couponbook-default"
        assert traces[0]["checksum"] == config.checksum

    def test_limiter_from_config(self, clock):
        limiter = RateLimiter(clock=clock, rules=get_active_config().rate_limits)
        assert limiter.rule("upload").limit == 10


class TestValidation:

    def test_minimal_is_valid(self):
        assert validate_config_data(MINIMAL) == []
        config = parse_config(MINIMAL)
        assert config.grant.expiry_days == 30
        assert config.payout.default_fee_cents == 0

    def test_every_problem_listed(self):
        errors = validate_config_data(
            {
                "version": 0,
                "payout": {"points_rate": "1.5"},
                "logging": {"level": "loud"},
                "rate_limits": {"api": {"limit": 0, "window_ms": 1000}},
            }
        )
        assert errors == [
            "config_id is required",
            "version must be a positive integer",
            "payout.points_rate must be between 0 and 1",
            "logging.level 'loud' is not a valid level",
            "rate_limits.api.limit must be a positive integer",
        ]

    @pytest.mark.parametrize(
        "section,message",
        [
            ({"grant": {"expiry_days": -1}}, "grant.expiry_days must be a positive integer"),
            ({"payout": {"points_rate": "lots"}}, "payout.points_rate must be a number"),
            (
                {"payout": {"default_fee_cents": True}},
                "payout.default_fee_cents must be a non-negative integer",
            ),
            ({"database": {"url": ""}}, "database.url must not be empty"),
            ({"rate_limits": ["api"]}, "rate_limits must be a mapping of name to rule"),
        ],
    )
    def test_section_errors(self, section, message):
        assert validate_config_data({**MINIMAL, **section}) == [message]

    def test_parse_raises_with_all_errors(self):
        with pytest.raises(ValueError, match="Configuration validation failed") as exc_info:
            parse_config({"version": "1"})
        assert "config_id is required" in str(exc_info.value)
        assert "version must be a positive integer" in str(exc_info.value)

    def test_rate_limit_override_merges(self):
        rules = parse_rate_limits(
            {"auth": {"limit": 3, "window_ms": 60_000}, "export": {"limit": 2, "window_ms": 1000}}
        )
        by_name = {r.name: r for r in rules}
        assert by_name["auth"] == RateLimitRule("auth", 3, 60_000)
        assert by_name["export"] == RateLimitRule("export", 2, 1000)
        assert by_name["api"].limit == 100
        assert len(rules) == 7


class TestConfigSets:

    def test_custom_set(self, tmp_path):
        base = _write_set(
            tmp_path,
            "staging",
            {**MINIMAL, "grant": {"expiry_days": 7}, "logging": {"level": "debug"}},
        )
        config = get_active_config("staging", config_dir=base)
        assert config.grant.expiry_days == 7
        assert config.logging.level == "DEBUG"

    def test_invalid_set(self, tmp_path):
        base = _write_set(tmp_path, "broken", {"config_id": "broken"})
        with pytest.raises(ValueError, match="version must be a positive integer"):
            get_active_config("broken", config_dir=base)

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="nope"):
            get_active_config("nope", config_dir=tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(config_dir=tmp_path / "absent")


class TestBootstrap:

    @pytest.fixture
    def fresh_runtime(self):
        reset_logging()
        yield
        reset_engine()
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def test_applies_database_and_logging(self, tmp_path, fresh_runtime):
        db_path = tmp_path / "couponbook.db"
        base = _write_set(
            tmp_path / "sets",
            "local",
            {
                **MINIMAL,
                "database": {"url": f"sqlite:///{db_path}", "echo": True},
                "logging": {"level": "warning"},
            },
        )

        config = bootstrap("local", config_dir=base)

        engine = get_engine()
        assert engine.url.database == str(db_path)
        assert engine.echo is True
        assert logging.getLogger("couponbook").level == logging.WARNING
        assert config.database.url == f"sqlite:///{db_path}"

    def test_invalid_set_initializes_nothing(self, tmp_path, fresh_runtime):
        base = _write_set(tmp_path, "broken", {"config_id": "broken"})
        with pytest.raises(ValueError):
            bootstrap("broken", config_dir=base)
        with pytest.raises(RuntimeError, match="Engine not initialized"):
            get_engine()
