import pytest

from buildpay.exceptions import UnknownStateError
from buildpay.models import FilingStatus, PaySchedule, PayrollSettings, TaxCalculationInput
from buildpay.tax_engine import TaxCalculator
from buildpay.tax_tables import TaxBracket, TaxTableRepository


def test_apply_brackets_handles_open_top_bracket():
    brackets = [TaxBracket(up_to=100, rate=0.1), TaxBracket(up_to=None, rate=0.5)]

    assert TaxCalculator._apply_brackets(50, brackets) == pytest.approx(5)
    assert TaxCalculator._apply_brackets(300, brackets) == pytest.approx(10 + 100)


def test_federal_withholding_annualizes_per_schedule(tax_calculator):
    # (2000 * 26 - 14600) = 37400 taxable; 1160 + 25800 * 0.12 = 4256 per year
    assert tax_calculator.federal_withholding(2000, PaySchedule.BI_WEEKLY) == 163.69


def test_allowances_reduce_federal_withholding(tax_calculator):
    without = tax_calculator.federal_withholding(2000, PaySchedule.BI_WEEKLY, allowances=0)
    with_one = tax_calculator.federal_withholding(2000, PaySchedule.BI_WEEKLY, allowances=1)

    assert with_one == 143.85
    assert with_one < without


def test_filing_status_changes_withholding(tax_calculator):
    single = tax_calculator.federal_withholding(3000, "bi-weekly", FilingStatus.SINGLE)
    joint = tax_calculator.federal_withholding(3000, "bi-weekly", FilingStatus.MARRIED_FILING_JOINTLY)

    assert joint < single


def test_exempt_employees_only_skip_federal_withholding(tax_calculator):
    assert tax_calculator.federal_withholding(2000, PaySchedule.WEEKLY, is_exempt=True, additional_withholding=25) == 0
    result = tax_calculator.calculate_taxes(
        TaxCalculationInput(gross_pay=1000, schedule=PaySchedule.WEEKLY, is_exempt=True, state_code="NC")
    )
    assert result.federal_withholding == 0
    assert result.state_withholding == 45.0
    assert result.social_security == 62.0


def test_additional_withholding_is_added_per_period(tax_calculator):
    base = tax_calculator.federal_withholding(2000, PaySchedule.BI_WEEKLY)

    assert tax_calculator.federal_withholding(2000, PaySchedule.BI_WEEKLY, additional_withholding=20) == pytest.approx(
        base + 20
    )


def test_income_below_standard_deduction_withholds_nothing(tax_calculator):
    assert tax_calculator.federal_withholding(200, PaySchedule.WEEKLY) == 0


@pytest.mark.parametrize("status", list(FilingStatus))
@pytest.mark.parametrize("schedule", list(PaySchedule))
def test_federal_withholding_never_decreases_with_gross(tax_calculator, status, schedule):
    previous = 0.0
    for gross in range(0, 20001, 250):
        current = tax_calculator.federal_withholding(gross, schedule, status)
        assert current >= previous
        previous = current


def test_state_withholding_uses_flat_rate(tax_calculator):
    assert tax_calculator.state_withholding(1000, "NC") == 45.0
    assert tax_calculator.state_withholding(1000, "TX") == 0.0


def test_unknown_state_withholds_nothing_unless_strict(tax_table):
    assert TaxCalculator(tax_table).state_withholding(1000, "ZZ") == 0.0

    with pytest.raises(UnknownStateError) as excinfo:
        TaxCalculator(tax_table, strict_state_codes=True).state_withholding(1000, "ZZ")
    assert excinfo.value.state_code == "ZZ"


def test_social_security_stops_at_wage_base(tax_calculator):
    base = 168600

    assert tax_calculator.social_security(500, ytd_gross_before=base - 100) == 6.2
    assert tax_calculator.social_security(500, ytd_gross_before=base) == 0.0
    assert tax_calculator.social_security(500, ytd_gross_before=base + 1000) == 0.0


def test_medicare_adds_surtax_only_above_threshold(tax_calculator):
    assert tax_calculator.medicare(1000, ytd_gross_before=0) == 14.5
    # 200 * 1.45% + 150 * 0.9%
    assert tax_calculator.medicare(200, ytd_gross_before=200000 - 50) == 4.25
    assert tax_calculator.medicare(1000, ytd_gross_before=250000) == pytest.approx(14.5 + 9.0)


def test_calculate_taxes_totals_and_effective_rate(tax_calculator):
    result = tax_calculator.calculate_taxes(
        TaxCalculationInput(gross_pay=2000, schedule=PaySchedule.BI_WEEKLY, state_code="NC")
    )

    assert result.federal_withholding == 163.69
    assert result.state_withholding == 90.0
    assert result.social_security == 124.0
    assert result.medicare == 29.0
    assert result.total_tax == pytest.approx(163.69 + 90 + 124 + 29)
    assert result.effective_rate == round(result.total_tax / 2000 * 100, 2)


def test_zero_gross_yields_zero_taxes(tax_calculator):
    result = tax_calculator.calculate_taxes(TaxCalculationInput(gross_pay=0, schedule=PaySchedule.WEEKLY))

    assert result.total_tax == 0
    assert result.effective_rate == 0


def test_tax_year_changes_state_withholding():
    table_2025 = TaxTableRepository().load("2025_v1")

    assert TaxCalculator(table_2025).state_withholding(1000, "NC") == 42.5


def test_employer_taxes_respect_wage_bases(tax_calculator):
    settings = PayrollSettings()

    first = tax_calculator.employer_taxes(1000, 0, settings)
    assert first == {"social_security": 62.0, "medicare": 14.5, "futa": 6.0}

    near_futa_cap = tax_calculator.employer_taxes(1000, 6500, settings)
    assert near_futa_cap["futa"] == 3.0

    past_caps = tax_calculator.employer_taxes(1000, 200000, settings)
    assert past_caps["social_security"] == 0.0
    assert past_caps["futa"] == 0.0
    assert past_caps["medicare"] == 14.5
