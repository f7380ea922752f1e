"""Tests for settings parsing and validation."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from lingoguard.app.core.config import Settings, parse_duration


class TestParseDuration:

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("7d", timedelta(days=7)),
            ("15m", timedelta(minutes=15)),
            ("1h", timedelta(hours=1)),
            ("2w", timedelta(weeks=2)),
            ("500ms", timedelta(milliseconds=500)),
            ("30s", timedelta(seconds=30)),
            ("3600", timedelta(hours=1)),
            (" 7D ", timedelta(days=7)),
            (90, timedelta(seconds=90)),
            (timedelta(minutes=5), timedelta(minutes=5)),
        ],
    )
    def test_valid_durations(self, raw, expected):
        assert parse_duration(raw) == expected

    @pytest.mark.parametrize("raw", ["", "seven days", "7y", "-1d", "1.5h"])
    def test_invalid_durations(self, raw):
        with pytest.raises(ValueError):
            parse_duration(raw)


class TestDefaults:

    def test_reference_values(self):
        config = Settings(_env_file=None)

        assert config.rate_limit_window_seconds == 900
        assert config.rate_limit_max_requests == 100
        assert config.rate_limit_cleanup_interval_seconds == 3600
        assert config.bcrypt_rounds == 12
        assert config.jwt_algorithm == "HS256"
        assert config.jwt_expires_delta == timedelta(days=7)
        assert config.csrf_protection_enabled is False
        assert config.is_production is False

    def test_is_production(self):
        assert Settings(_env_file=None, environment="Production").is_production is True

    def test_loaded_from_environment(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "5")
        monkeypatch.setenv("JWT_EXPIRES_IN", "1h")
        monkeypatch.setenv("CSRF_PROTECTION_ENABLED", "true")

        config = Settings(_env_file=None)

        assert config.rate_limit_max_requests == 5
        assert config.jwt_expires_delta == timedelta(hours=1)
        assert config.csrf_protection_enabled is True


class TestValidators:

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_bcrypt_rounds_out_of_range(self, rounds):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, bcrypt_rounds=rounds)

    @pytest.mark.parametrize("rounds", [4, 31])
    def test_bcrypt_rounds_bounds(self, rounds):
        assert Settings(_env_file=None, bcrypt_rounds=rounds).bcrypt_rounds == rounds

    @pytest.mark.parametrize("value", ["0s", "soon"])
    def test_invalid_jwt_expiry(self, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, jwt_expires_in=value)

    @pytest.mark.parametrize("key", ["abc", "g" * 64, "a" * 63])
    def test_invalid_encryption_key(self, key):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, encryption_key=key)

    def test_encryption_key_trimmed(self):
        key = "ab" * 32

        assert Settings(_env_file=None, encryption_key=f" {key}\n").encryption_key == key

    @pytest.mark.parametrize(
        "field",
        [
            "rate_limit_window_seconds",
            "rate_limit_max_requests",
            "rate_limit_cleanup_interval_seconds",
            "audit_sink_queue_size",
        ],
    )
    def test_counts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})

    def test_audit_sink_timeout_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, audit_sink_timeout=0)


class TestCorsOrigins:

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("https://a.example,https://b.example", ["https://a.example", "https://b.example"]),
            ("https://a.example https://b.example", ["https://a.example", "https://b.example"]),
            ('["https://a.example", "https://b.example"]', ["https://a.example", "https://b.example"]),
            ("https://a.example,https://a.example", ["https://a.example"]),
            ("*", ["*"]),
            ("https://a.example,*", ["*"]),
            ("", []),
            ("[]", []),
        ],
    )
    def test_env_values(self, monkeypatch, raw, expected):
        monkeypatch.setenv("CORS_ORIGINS", raw)

        assert Settings(_env_file=None).cors_origins == expected

    def test_list_value(self):
        config = Settings(_env_file=None, cors_origins=[" https://a.example ", ""])

        assert config.cors_origins == ["https://a.example"]

    def test_default_allows_all(self, monkeypatch):
        monkeypatch.delenv("CORS_ORIGINS", raising=False)

        assert Settings(_env_file=None).cors_origins == ["*"]
