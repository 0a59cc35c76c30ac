"""Typed failures raised by the payroll core.

Callers catch by type and may surface ``str(exc)`` directly; every class
carries a machine-readable ``code``.
"""

from __future__ import annotations

from typing import List, Optional


class PayrollError(Exception):
    code: str = "PAYROLL_ERROR"


class RunNotFoundError(PayrollError):
    code = "RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__("Payroll run not found")


class EntryNotFoundError(PayrollError):
    code = "ENTRY_NOT_FOUND"

    def __init__(self, run_id: str, entry_id: str):
        self.run_id = run_id
        self.entry_id = entry_id
        super().__init__("Payroll entry not found")


class InvalidTransitionError(PayrollError):
    code = "INVALID_TRANSITION"

    def __init__(self, message: str, current: Optional[str] = None, requested: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(message)


class ValidationError(PayrollError):
    code = "VALIDATION_FAILED"

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class UnknownStateError(PayrollError):
    code = "UNKNOWN_STATE"

    def __init__(self, state_code: str, table_version: str):
        self.state_code = state_code
        self.table_version = table_version
        super().__init__(f"State {state_code} not configured in tax table {table_version}")


class ConcurrentModificationError(PayrollError):
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, run_id: str, expected_version: int, actual_version: int):
        self.run_id = run_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Payroll run {run_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class TaxTableNotFoundError(PayrollError, FileNotFoundError):
    code = "TAX_TABLE_NOT_FOUND"
