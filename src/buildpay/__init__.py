"""Payroll, overtime and withholding calculations for construction crews."""

from .entry_calculator import PayrollEntryCalculator
from .pay_periods import generate_pay_period
from .runs import PayrollRunService
from .tax_engine import TaxCalculator
from .tax_tables import TaxTableRepository

__all__ = [
    "PayrollEntryCalculator",
    "PayrollRunService",
    "TaxCalculator",
    "TaxTableRepository",
    "generate_pay_period",
]
