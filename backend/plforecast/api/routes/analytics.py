from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from plforecast.api.deps import get_db, get_forecast_or_404
from plforecast.models.enums import CategoryType
from plforecast.schemas.analytics import (
    BalanceSheetTotalsResponse,
    CashFlowResponse,
    CategoryTotalResponse,
    GrowthRatesResponse,
    MonthlyDataResponse,
    RatiosResponse,
    ValidationResponse,
    YearlyTotalsResponse,
)
from plforecast.services.persistence import load_financial_data, load_store
from plforecast.services.ratios import default_year
from plforecast.services.validation import validate_financial_data


router = APIRouter(prefix="/forecasts/{forecast_id}/analytics", tags=["analytics"])


@router.get("/category-total", response_model=CategoryTotalResponse)
def get_category_total(
    forecast_id: int,
    category_type: CategoryType = Query(...),
    year: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> CategoryTotalResponse:
    get_forecast_or_404(db, forecast_id)
    store = load_store(db, forecast_id)
    return CategoryTotalResponse(
        category_type=category_type.value,
        year=year,
        total=store.get_category_yearly_total_by_type(category_type, year),
    )


@router.get("/monthly", response_model=MonthlyDataResponse)
def get_monthly_data(
    forecast_id: int,
    year: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> MonthlyDataResponse:
    get_forecast_or_404(db, forecast_id)
    store = load_store(db, forecast_id)
    year = year if year is not None else default_year(store.data)
    return MonthlyDataResponse(year=year, series=store.get_monthly_data(year))


@router.get("/yearly-totals", response_model=YearlyTotalsResponse)
def get_yearly_totals(forecast_id: int, db: Session = Depends(get_db)) -> YearlyTotalsResponse:
    get_forecast_or_404(db, forecast_id)
    return YearlyTotalsResponse(totals=load_store(db, forecast_id).get_yearly_totals())


@router.get("/cash-flow", response_model=CashFlowResponse)
def get_cash_flow(
    forecast_id: int,
    year: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> CashFlowResponse:
    get_forecast_or_404(db, forecast_id)
    return CashFlowResponse(year=year, cash_flow=load_store(db, forecast_id).get_cash_flow_data(year))


@router.get("/ratios", response_model=RatiosResponse)
def get_ratios(
    forecast_id: int,
    year: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> RatiosResponse:
    get_forecast_or_404(db, forecast_id)
    store = load_store(db, forecast_id)
    year = year if year is not None else default_year(store.data)
    return RatiosResponse(year=year, ratios=store.get_financial_ratios(year))


@router.get("/growth-rates", response_model=GrowthRatesResponse)
def get_growth_rates(forecast_id: int, db: Session = Depends(get_db)) -> GrowthRatesResponse:
    get_forecast_or_404(db, forecast_id)
    return GrowthRatesResponse(rates=load_store(db, forecast_id).get_growth_rates())


@router.get("/balance-sheet", response_model=BalanceSheetTotalsResponse)
def get_balance_sheet_totals(
    forecast_id: int,
    year: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> BalanceSheetTotalsResponse:
    get_forecast_or_404(db, forecast_id)
    store = load_store(db, forecast_id)
    year = year if year is not None else default_year(store.data)
    totals = store.service().balance_sheet_totals(year)
    return BalanceSheetTotalsResponse(
        year=year,
        total_assets=totals.total_assets,
        total_liabilities=totals.total_liabilities,
        total_equity=totals.total_equity,
    )


@router.get("/validation", response_model=ValidationResponse)
def get_validation_report(forecast_id: int, db: Session = Depends(get_db)) -> ValidationResponse:
    get_forecast_or_404(db, forecast_id)
    report = validate_financial_data(load_financial_data(db, forecast_id))
    return ValidationResponse(
        passed=report.passed,
        issues=report.issues,
        formula_cycles=report.formula_cycles,
        unresolved_tokens=report.unresolved_tokens,
        duplicate_types=report.duplicate_types,
        duplicate_values=report.duplicate_values,
    )
