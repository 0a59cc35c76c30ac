import pytest

from buildpay.exceptions import TaxTableNotFoundError
from buildpay.models import FilingStatus
from buildpay.tax_tables import TaxTableRepository


def test_available_versions_lists_known_tables():
    versions = TaxTableRepository().available_versions()

    assert {"2024_v1", "2025_v1"} <= set(versions)
    assert versions == sorted(versions)


def test_latest_for_year_picks_last_revision():
    repo = TaxTableRepository()

    assert repo.latest_for_year(2025) == "2025_v1"
    with pytest.raises(TaxTableNotFoundError):
        repo.latest_for_year(1999)


def test_missing_version_raises_not_found():
    with pytest.raises(FileNotFoundError, match="1999_v1"):
        TaxTableRepository().load("1999_v1")


def test_table_exposes_federal_and_fica_figures(tax_table):
    brackets = tax_table.brackets_for(FilingStatus.SINGLE)

    assert brackets[0].up_to == 11600
    assert brackets[-1].up_to is None
    assert tax_table.standard_deduction_for("head_of_household") == 21900
    assert tax_table.fica.social_security_wage_base == 168600
    assert tax_table.fica.additional_medicare_threshold == 200000


def test_state_lookup_is_case_insensitive(tax_table):
    assert tax_table.has_state("nc")
    assert tax_table.state_rate("NC") == 0.045
    assert tax_table.state_rate("TX") == 0.0
    assert not tax_table.has_state("ZZ")


def test_loaded_tables_are_read_only(tax_table):
    with pytest.raises(TypeError):
        tax_table.state_rates["NC"] = 0.0


def test_versions_carry_different_rates():
    repo = TaxTableRepository()

    assert repo.load("2024_v1").state_rate("NC") != repo.load("2025_v1").state_rate("NC")
    assert repo.load("2025_v1").fica.social_security_wage_base == 176100
