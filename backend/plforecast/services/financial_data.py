from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from plforecast.models.enums import (
    BalanceSheetSection,
    CategoryType,
    ForecastMethod,
    RecordStatus,
    ScenarioType,
)


HORIZON_START_YEAR = 2024
HORIZON_END_YEAR = 2030
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class FinancialValue:
    value: Decimal
    year: int
    month: int
    date: date
    is_projected: bool = True


@dataclass(frozen=True)
class MonthPeriod:
    year: int
    month: int
    label: str
    date: date


@dataclass(frozen=True)
class FinancialRow:
    id: str
    name: str
    type: CategoryType
    category_id: str
    subcategory_id: str
    order: int
    values: list[FinancialValue] = field(default_factory=list)


@dataclass(frozen=True)
class Subcategory:
    id: str
    name: str
    order: int
    rows: list[FinancialRow] = field(default_factory=list)


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: CategoryType
    order: int
    is_expanded: bool = True
    subcategories: list[Subcategory] = field(default_factory=list)
    is_calculated: bool = False
    formula: str | None = None


@dataclass(frozen=True)
class BalanceSheetAccount:
    id: str
    name: str
    section: BalanceSheetSection
    order: int
    values: list[FinancialValue] = field(default_factory=list)


@dataclass(frozen=True)
class FinancialData:
    categories: list[Category]
    forecast_periods: list[MonthPeriod]
    last_updated: datetime
    tax_rate: Decimal = Decimal("25")
    target_income: Decimal = Decimal("0")
    balance_sheet_accounts: list[BalanceSheetAccount] = field(default_factory=list)


@dataclass(frozen=True)
class ForecastRecord:
    id: str
    name: str
    account_ids: list[str]
    method: ForecastMethod
    parameters: dict[str, Any]
    start_date: date
    end_date: date
    created_at: datetime
    status: RecordStatus = RecordStatus.active


@dataclass(frozen=True)
class ScenarioConfig:
    id: str
    name: str
    type: ScenarioType
    value: Decimal
    account_ids: list[str]
    start_date: date
    end_date: date
    created_at: datetime
    description: str = ""
    status: RecordStatus = RecordStatus.active


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_forecast_periods(
    start_year: int = HORIZON_START_YEAR,
    end_year: int = HORIZON_END_YEAR,
) -> list[MonthPeriod]:
    return [
        MonthPeriod(
            year=year,
            month=month,
            label=f"{year} {MONTH_LABELS[month - 1]}",
            date=date(year, month, 1),
        )
        for year in range(start_year, end_year + 1)
        for month in range(1, 13)
    ]


def create_empty_values(
    start_year: int = HORIZON_START_YEAR,
    end_year: int = HORIZON_END_YEAR,
) -> list[FinancialValue]:
    return [
        FinancialValue(value=Decimal("0"), year=p.year, month=p.month, date=p.date, is_projected=True)
        for p in generate_forecast_periods(start_year, end_year)
    ]


def densify_values(
    values: list[FinancialValue],
    start_year: int = HORIZON_START_YEAR,
    end_year: int = HORIZON_END_YEAR,
) -> list[FinancialValue]:
    """Rebuild a dense horizon from sparse storage; missing months become 0 / projected."""
    stored = {(item.year, item.month): item for item in values}
    dense: list[FinancialValue] = []
    for default in create_empty_values(start_year, end_year):
        dense.append(stored.pop((default.year, default.month), default))
    # values outside the horizon are kept, in calendar order
    dense.extend(sorted(stored.values(), key=lambda item: (item.year, item.month)))
    return dense


def iter_rows(data: FinancialData) -> Iterator[FinancialRow]:
    for category in data.categories:
        for subcategory in category.subcategories:
            yield from subcategory.rows


def find_category(data: FinancialData, category_id: str) -> Category | None:
    return next((category for category in data.categories if category.id == category_id), None)


def find_row(data: FinancialData, row_id: str) -> FinancialRow | None:
    return next((row for row in iter_rows(data) if row.id == row_id), None)


def map_rows(data: FinancialData, transform: Callable[[FinancialRow], FinancialRow]) -> FinancialData:
    categories = [
        replace(
            category,
            subcategories=[
                replace(subcategory, rows=[transform(row) for row in subcategory.rows])
                for subcategory in category.subcategories
            ],
        )
        for category in data.categories
    ]
    return replace(data, categories=categories)


def touch(data: FinancialData, now: datetime | None = None) -> FinancialData:
    return replace(data, last_updated=now or utcnow())
