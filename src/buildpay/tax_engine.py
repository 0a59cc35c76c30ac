from __future__ import annotations

from typing import Dict, Iterable

from .core.logging import get_logger
from .exceptions import UnknownStateError
from .models import (
    FilingStatus,
    PaySchedule,
    PayrollSettings,
    TaxCalculationInput,
    TaxCalculationResult,
    periods_per_year,
)
from .money import round_currency
from .tax_tables import TaxBracket, TaxTable

logger = get_logger(__name__)


class TaxCalculator:
    """Per-period employee withholding and employer payroll taxes.

    Every figure is for a single pay period. Year-to-date arguments are the
    totals accumulated *before* the period being calculated.
    """

    def __init__(self, tax_table: TaxTable, strict_state_codes: bool = False):
        self.tax_table = tax_table
        self.strict_state_codes = strict_state_codes

    @staticmethod
    def _apply_brackets(amount: float, brackets: Iterable[TaxBracket]) -> float:
        remaining = amount
        last_cap = 0.0
        total_tax = 0.0
        for bracket in brackets:
            if bracket.up_to is None:
                total_tax += remaining * bracket.rate
                remaining = 0.0
                break
            taxable_at_rate = max(min(remaining, bracket.up_to - last_cap), 0)
            total_tax += taxable_at_rate * bracket.rate
            remaining -= taxable_at_rate
            last_cap = bracket.up_to
            if remaining <= 0:
                break
        return total_tax

    def federal_withholding(
        self,
        gross_pay: float,
        schedule: PaySchedule | str,
        filing_status: FilingStatus | str = FilingStatus.SINGLE,
        allowances: int = 0,
        additional_withholding: float = 0.0,
        is_exempt: bool = False,
    ) -> float:
        if is_exempt or gross_pay <= 0:
            return 0.0

        periods = periods_per_year(schedule)
        annual_income = gross_pay * periods
        annual_taxable = max(
            annual_income
            - self.tax_table.standard_deduction_for(filing_status)
            - self.tax_table.allowance * allowances,
            0,
        )
        annual_tax = self._apply_brackets(annual_taxable, self.tax_table.brackets_for(filing_status))
        withholding = annual_tax / periods + additional_withholding
        return round_currency(max(withholding, 0))

    def state_withholding(self, gross_pay: float, state_code: str) -> float:
        if gross_pay <= 0 or not state_code:
            return 0.0
        if not self.tax_table.has_state(state_code):
            if self.strict_state_codes:
                raise UnknownStateError(state_code, self.tax_table.version)
            logger.warning("unknown_state_code", state_code=state_code, table_version=self.tax_table.version)
            return 0.0
        return round_currency(gross_pay * self.tax_table.state_rate(state_code))

    def social_security(self, gross_pay: float, ytd_gross_before: float = 0.0) -> float:
        fica = self.tax_table.fica
        if gross_pay <= 0 or ytd_gross_before >= fica.social_security_wage_base:
            return 0.0
        taxable = min(gross_pay, fica.social_security_wage_base - ytd_gross_before)
        return round_currency(taxable * fica.social_security_rate)

    def medicare(self, gross_pay: float, ytd_gross_before: float = 0.0) -> float:
        if gross_pay <= 0:
            return 0.0
        fica = self.tax_table.fica
        threshold = fica.additional_medicare_threshold
        base_tax = gross_pay * fica.medicare_rate

        ytd_after = ytd_gross_before + gross_pay
        additional_taxable = max(0, ytd_after - threshold) - max(0, ytd_gross_before - threshold)
        additional_tax = additional_taxable * fica.additional_medicare_rate
        return round_currency(base_tax + additional_tax)

    def calculate_taxes(self, tax_input: TaxCalculationInput) -> TaxCalculationResult:
        federal = self.federal_withholding(
            tax_input.gross_pay,
            tax_input.schedule,
            tax_input.filing_status,
            tax_input.allowances,
            tax_input.additional_withholding,
            tax_input.is_exempt,
        )
        state = self.state_withholding(tax_input.gross_pay, tax_input.state_code)
        social_security = self.social_security(tax_input.gross_pay, tax_input.ytd_gross_pay)
        medicare = self.medicare(tax_input.gross_pay, tax_input.ytd_gross_pay)

        total_tax = round_currency(federal + state + social_security + medicare)
        effective_rate = round(total_tax / tax_input.gross_pay * 100, 2) if tax_input.gross_pay else 0.0

        return TaxCalculationResult(
            gross_pay=round_currency(tax_input.gross_pay),
            federal_withholding=federal,
            state_withholding=state,
            social_security=social_security,
            medicare=medicare,
            total_tax=total_tax,
            effective_rate=effective_rate,
        )

    def employer_taxes(self, gross_pay: float, ytd_gross_before: float, settings: PayrollSettings) -> Dict[str, float]:
        """Employer-side matching taxes; these never reduce net pay."""
        if gross_pay <= 0:
            return {"social_security": 0.0, "medicare": 0.0, "futa": 0.0}

        ss_base = self.tax_table.fica.social_security_wage_base
        ss_taxable = max(min(gross_pay, ss_base - ytd_gross_before), 0)
        futa_taxable = max(min(gross_pay, self.tax_table.futa_wage_base - ytd_gross_before), 0)
        return {
            "social_security": round_currency(ss_taxable * settings.employer_social_security_rate),
            "medicare": round_currency(gross_pay * settings.employer_medicare_rate),
            "futa": round_currency(futa_taxable * settings.employer_futa_rate),
        }
