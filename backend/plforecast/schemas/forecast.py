from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from plforecast.models.enums import (
    BalanceSheetSection,
    CategoryType,
    ForecastMethod,
    RecordStatus,
    ScenarioType,
)
from plforecast.schemas.common import DateWindow, ORMModel
from plforecast.services.financial_data import (
    BalanceSheetAccount,
    Category,
    FinancialData,
    FinancialRow,
    FinancialValue,
    MonthPeriod,
    Subcategory,
)


class FinancialValueSchema(ORMModel):
    value: Decimal
    year: int = Field(ge=1900, le=9999)
    month: int = Field(ge=1, le=12)
    date: date
    is_projected: bool = True

    def to_domain(self) -> FinancialValue:
        return FinancialValue(
            value=self.value,
            year=self.year,
            month=self.month,
            date=self.date,
            is_projected=self.is_projected,
        )


class FinancialRowSchema(ORMModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(max_length=200)
    type: CategoryType
    category_id: str
    subcategory_id: str
    order: int = 0
    values: list[FinancialValueSchema] = []

    def to_domain(self) -> FinancialRow:
        return FinancialRow(
            id=self.id,
            name=self.name,
            type=CategoryType(self.type),
            category_id=self.category_id,
            subcategory_id=self.subcategory_id,
            order=self.order,
            values=[item.to_domain() for item in self.values],
        )


class SubcategorySchema(ORMModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(max_length=200)
    order: int = 0
    rows: list[FinancialRowSchema] = []

    def to_domain(self) -> Subcategory:
        return Subcategory(
            id=self.id,
            name=self.name,
            order=self.order,
            rows=[row.to_domain() for row in self.rows],
        )


class CategorySchema(ORMModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(max_length=200)
    type: CategoryType
    order: int = 0
    is_expanded: bool = True
    subcategories: list[SubcategorySchema] = []
    is_calculated: bool = False
    formula: str | None = None

    def to_domain(self) -> Category:
        return Category(
            id=self.id,
            name=self.name,
            type=CategoryType(self.type),
            order=self.order,
            is_expanded=self.is_expanded,
            subcategories=[subcategory.to_domain() for subcategory in self.subcategories],
            is_calculated=self.is_calculated,
            formula=self.formula,
        )


class MonthPeriodSchema(ORMModel):
    year: int
    month: int = Field(ge=1, le=12)
    label: str
    date: date

    def to_domain(self) -> MonthPeriod:
        return MonthPeriod(year=self.year, month=self.month, label=self.label, date=self.date)


class BalanceSheetAccountSchema(ORMModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(max_length=200)
    section: BalanceSheetSection
    order: int = 0
    values: list[FinancialValueSchema] = []

    def to_domain(self) -> BalanceSheetAccount:
        return BalanceSheetAccount(
            id=self.id,
            name=self.name,
            section=BalanceSheetSection(self.section),
            order=self.order,
            values=[item.to_domain() for item in self.values],
        )


class FinancialDataSchema(ORMModel):
    categories: list[CategorySchema]
    forecast_periods: list[MonthPeriodSchema] = []
    last_updated: datetime | None = None
    tax_rate: Decimal = Field(default=Decimal("25"), ge=0, le=100)
    target_income: Decimal = Decimal("0")
    balance_sheet_accounts: list[BalanceSheetAccountSchema] = []

    def to_domain(self, *, last_updated: datetime) -> FinancialData:
        return FinancialData(
            categories=[category.to_domain() for category in self.categories],
            forecast_periods=[period.to_domain() for period in self.forecast_periods],
            last_updated=last_updated,
            tax_rate=self.tax_rate,
            target_income=self.target_income,
            balance_sheet_accounts=[account.to_domain() for account in self.balance_sheet_accounts],
        )


class ForecastCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    load_sample: bool = False
    sample_seed: int = 2024


class ForecastOut(ORMModel):
    id: int
    name: str
    tax_rate: Decimal
    target_income: Decimal
    last_updated: datetime
    created_at: datetime


class TaxRateRequest(BaseModel):
    tax_rate: Decimal = Field(ge=0, le=100)


class ForecastRecordCreateRequest(DateWindow):
    name: str = Field(min_length=1, max_length=200)
    method: ForecastMethod
    parameters: dict[str, Any] = {}
    status: RecordStatus = RecordStatus.active


class ForecastRecordOut(ORMModel):
    id: str
    name: str
    account_ids: list[str]
    method: ForecastMethod
    parameters: dict[str, Any]
    start_date: date
    end_date: date
    created_at: datetime
    status: RecordStatus


class RecordStatusRequest(BaseModel):
    status: RecordStatus


class ScenarioCreateRequest(DateWindow):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=3000)
    type: ScenarioType
    value: Decimal
    status: RecordStatus = RecordStatus.active

    @field_validator("status")
    @classmethod
    def check_status(cls, value: RecordStatus) -> RecordStatus:
        if value not in (RecordStatus.active, RecordStatus.paused):
            raise ValueError("Scenario status must be active or paused.")
        return value


class ScenarioOut(ORMModel):
    id: str
    name: str
    description: str
    type: ScenarioType
    value: Decimal
    account_ids: list[str]
    start_date: date
    end_date: date
    created_at: datetime
    status: RecordStatus


class OverlapCheckRequest(DateWindow):
    exclude_id: str | None = None


class RecordOverlapResponse(BaseModel):
    has_overlap: bool
    overlapping_records: list[ForecastRecordOut]
    overlapping_account_ids: list[str]


class ScenarioOverlapResponse(BaseModel):
    has_overlap: bool
    overlapping_scenarios: list[ScenarioOut]
    overlapping_account_ids: list[str]
