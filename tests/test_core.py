import pydantic
import pytest

from buildpay.core import monitoring
from buildpay.core.config import Settings, settings_env_file
from buildpay.exceptions import (
    ConcurrentModificationError,
    EntryNotFoundError,
    InvalidTransitionError,
    RunNotFoundError,
    UnknownStateError,
    ValidationError,
)


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("BUILDPAY_LOG_LEVEL", "debug")
    monkeypatch.setenv("BUILDPAY_TAX_TABLE_VERSION", "2025_v1")
    monkeypatch.setenv("BUILDPAY_STRICT_STATE_CODES", "true")

    settings = Settings()

    assert settings.log_level == "DEBUG"
    assert settings.tax_table_version == "2025_v1"
    assert settings.strict_state_codes is True
    assert settings.sentry_dsn is None


def test_monitoring_is_off_without_dsn(monkeypatch):
    calls = []
    monkeypatch.setattr(monitoring.sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))

    assert monitoring.configure_error_monitoring(Settings(sentry_dsn=None)) is False
    assert calls == []


def test_monitoring_initializes_sentry_with_environment(monkeypatch):
    calls = []
    tags = {}
    monkeypatch.setattr(monitoring.sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(monitoring.sentry_sdk, "set_tag", lambda key, value: tags.update({key: value}))

    enabled = monitoring.configure_error_monitoring(Settings(sentry_dsn="https://key@example.invalid/1", env="prod"))

    assert enabled is True
    assert calls[0]["environment"] == "prod"
    assert tags == {"tax_table_version": "2024_v1"}


def test_payroll_errors_are_tagged_and_user_errors_dropped():
    error = UnknownStateError("ZZ", "2024_v1")
    event = monitoring._tag_payroll_errors({}, {"exc_info": (type(error), error, None)})
    assert event["tags"]["payroll.error_code"] == "UNKNOWN_STATE"

    for expected in (
        ConcurrentModificationError("run-1", 1, 2),
        ValidationError(["bad rate"]),
        RunNotFoundError("run-1"),
        EntryNotFoundError("run-1", "entry-1"),
        InvalidTransitionError("Can only delete draft payroll runs"),
    ):
        assert monitoring._tag_payroll_errors({}, {"exc_info": (type(expected), expected, None)}) is None
    assert monitoring._tag_payroll_errors({"message": "x"}, {}) == {"message": "x"}


def test_only_unexpected_errors_are_captured(monkeypatch):
    captured = []
    monkeypatch.setattr(monitoring.sentry_sdk, "capture_exception", captured.append)

    monitoring.report_payroll_error(ValidationError(["field 'bonuses' must be a number"]))
    monitoring.report_payroll_error(RunNotFoundError("missing"))
    failure = UnknownStateError("ZZ", "2024_v1")
    monitoring.report_payroll_error(failure)

    assert captured == [failure]


def test_unknown_tax_table_version_is_rejected(monkeypatch):
    monkeypatch.setenv("BUILDPAY_TAX_TABLE_VERSION", "1999_v1")

    with pytest.raises(pydantic.ValidationError, match="1999_v1"):
        Settings()


def test_env_file_prefers_environment_specific_file(tmp_path):
    assert settings_env_file(tmp_path, "prod") is None

    (tmp_path / ".env").write_text("BUILDPAY_LOG_LEVEL=warning\n", encoding="utf-8")
    assert settings_env_file(tmp_path, "prod") == tmp_path / ".env"

    (tmp_path / ".env.prod").write_text("BUILDPAY_LOG_LEVEL=error\n", encoding="utf-8")
    env_file = settings_env_file(tmp_path, "prod")
    assert env_file == tmp_path / ".env.prod"
    assert Settings(_env_file=env_file).log_level == "ERROR"
