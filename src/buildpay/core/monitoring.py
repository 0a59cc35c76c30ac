import sentry_sdk

from ..exceptions import (
    ConcurrentModificationError,
    EntryNotFoundError,
    InvalidTransitionError,
    PayrollError,
    RunNotFoundError,
    ValidationError,
)
from .config import Settings

# Bad input and expected conflicts; the caller sees these, Sentry does not.
UNREPORTED_ERRORS = (
    ConcurrentModificationError,
    EntryNotFoundError,
    InvalidTransitionError,
    RunNotFoundError,
    ValidationError,
)


def _tag_payroll_errors(event, hint):
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], PayrollError):
        if isinstance(exc_info[1], UNREPORTED_ERRORS):
            return None
        event.setdefault("tags", {})["payroll.error_code"] = exc_info[1].code
    return event


def configure_error_monitoring(settings: Settings) -> bool:
    if not settings.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.env,
        traces_sample_rate=0.2,
        before_send=_tag_payroll_errors,
    )
    sentry_sdk.set_tag("tax_table_version", settings.tax_table_version)
    return True


def report_payroll_error(exc: PayrollError) -> None:
    """Forward a failure to Sentry; a no-op when monitoring is not configured."""
    if isinstance(exc, UNREPORTED_ERRORS):
        return
    sentry_sdk.capture_exception(exc)
