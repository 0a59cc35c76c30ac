from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from .core.logging import get_logger
from .exceptions import TaxTableNotFoundError
from .models import FilingStatus

logger = get_logger(__name__)

DEFAULT_TABLES_PATH = Path(__file__).resolve().parent / "data" / "tax_tables"


@dataclass(frozen=True)
class TaxBracket:
    up_to: Optional[float]  # None for the top bracket
    rate: float


@dataclass(frozen=True)
class FicaRates:
    social_security_rate: float
    social_security_wage_base: float
    medicare_rate: float
    additional_medicare_rate: float
    additional_medicare_threshold: float


@dataclass(frozen=True)
class TaxTable:
    version: str
    tax_year: int
    allowance: float
    standard_deductions: Mapping[str, float]
    federal_brackets: Mapping[str, Tuple[TaxBracket, ...]]
    fica: FicaRates
    state_rates: Mapping[str, float]
    futa_wage_base: float = 7000.0

    def brackets_for(self, filing_status: FilingStatus | str) -> Tuple[TaxBracket, ...]:
        status = FilingStatus(filing_status).value
        if status not in self.federal_brackets:
            raise KeyError(f"Filing status {status} not configured in tax table {self.version}")
        return self.federal_brackets[status]

    def standard_deduction_for(self, filing_status: FilingStatus | str) -> float:
        status = FilingStatus(filing_status).value
        if status not in self.standard_deductions:
            raise KeyError(f"Filing status {status} not configured in tax table {self.version}")
        return self.standard_deductions[status]

    def has_state(self, state_code: str) -> bool:
        return state_code.upper() in self.state_rates

    def state_rate(self, state_code: str) -> float:
        return self.state_rates.get(state_code.upper(), 0.0)

    @classmethod
    def from_dict(cls, data: dict) -> "TaxTable":
        federal = data["federal"]
        brackets = {
            status: tuple(
                TaxBracket(
                    up_to=float(row["up_to"]) if row.get("up_to") is not None else None,
                    rate=float(row["rate"]),
                )
                for row in rows
            )
            for status, rows in federal["brackets"].items()
        }
        fica = data["fica"]
        return cls(
            version=data["version"],
            tax_year=int(data["tax_year"]),
            allowance=float(federal.get("allowance", 0)),
            standard_deductions=MappingProxyType(
                {status: float(value) for status, value in federal["standard_deduction"].items()}
            ),
            federal_brackets=MappingProxyType(brackets),
            fica=FicaRates(
                social_security_rate=float(fica["social_security_rate"]),
                social_security_wage_base=float(fica["social_security_wage_base"]),
                medicare_rate=float(fica["medicare_rate"]),
                additional_medicare_rate=float(fica["additional_medicare_rate"]),
                additional_medicare_threshold=float(fica["additional_medicare_threshold"]),
            ),
            state_rates=MappingProxyType({code.upper(): float(rate) for code, rate in data.get("states", {}).items()}),
            futa_wage_base=float(data.get("futa_wage_base", 7000)),
        )


class TaxTableRepository:
    def __init__(self, base_path: Path = DEFAULT_TABLES_PATH):
        self.base_path = Path(base_path)

    def available_versions(self) -> List[str]:
        return sorted([p.stem for p in self.base_path.glob("*.json")])

    def latest_for_year(self, tax_year: int) -> str:
        versions = [v for v in self.available_versions() if v.startswith(f"{tax_year}_")]
        if not versions:
            raise TaxTableNotFoundError(f"No tax table configured for {tax_year} in {self.base_path}")
        return versions[-1]

    def load(self, version: str) -> TaxTable:
        file_path = self.base_path / f"{version}.json"
        if not file_path.exists():
            raise TaxTableNotFoundError(f"Tax table version {version} not found at {file_path}")
        with file_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        table = TaxTable.from_dict(data)
        logger.debug("tax_table_loaded", version=table.version, path=str(file_path))
        return table
