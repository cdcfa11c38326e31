from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class CategoryTotalResponse(BaseModel):
    category_type: str
    year: int | None
    total: Decimal


class MonthlyDataResponse(BaseModel):
    year: int
    series: dict[str, list[Decimal]]


class YearlyTotalsResponse(BaseModel):
    totals: dict[str, Decimal]


class CashFlowResponse(BaseModel):
    year: int | None
    cash_flow: list[Decimal]


class RatiosResponse(BaseModel):
    year: int
    ratios: dict[str, Decimal]


class GrowthRatesResponse(BaseModel):
    rates: dict[str, Decimal]


class BalanceSheetTotalsResponse(BaseModel):
    year: int
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal


class ValidationResponse(BaseModel):
    passed: bool
    issues: list[str]
    formula_cycles: list[list[str]]
    unresolved_tokens: dict[str, list[str]]
    duplicate_types: list[str]
    duplicate_values: list[str]
