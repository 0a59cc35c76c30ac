import logging
import sys

import structlog


def _stderr_logger(*args) -> structlog.PrintLogger:
    # looked up per logger so a swapped sys.stderr is honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "INFO") -> None:
    """JSON log lines on stderr so command output on stdout stays parseable."""
    level = level.upper()
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        logger_factory=_stderr_logger,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
    )
    logging.basicConfig(level=level)


def bind_payroll_context(**values: str) -> None:
    """Attach org/user/command identifiers to every log line of this invocation."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**{key: value for key, value in values.items() if value})


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
