from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from plforecast.core.config import get_settings
from plforecast.core.errors import NotFoundError
from plforecast.models.enums import RecordStatus
from plforecast.models.forecast import (
    BalanceAccountEntry,
    BalanceValueEntry,
    CategoryEntry,
    Forecast,
    ForecastRecordEntry,
    RowEntry,
    ScenarioEntry,
    SubcategoryEntry,
    ValueEntry,
)
from plforecast.services.financial_data import (
    BalanceSheetAccount,
    Category,
    FinancialData,
    FinancialRow,
    FinancialValue,
    ForecastRecord,
    ScenarioConfig,
    Subcategory,
    densify_values,
    generate_forecast_periods,
    utcnow,
)
from plforecast.services.seed import build_empty_financial_data
from plforecast.services.store import ForecastState, ForecastStore
from plforecast.services.validation import check_storable
from plforecast.utils.decimal_math import as_decimal, money


logger = logging.getLogger("plforecast.persistence")


def create_forecast(
    db: Session,
    name: str,
    tax_rate: Decimal | int | float | str | None = None,
    data: FinancialData | None = None,
) -> Forecast:
    """Create a forecast seeded with ``data`` or the standard empty chart."""
    settings = get_settings()
    if data is None:
        data = build_empty_financial_data(
            tax_rate=tax_rate if tax_rate is not None else settings.default_tax_rate,
            start_year=settings.horizon_start_year,
            end_year=settings.horizon_end_year,
        )
    forecast = Forecast(name=name, tax_rate=data.tax_rate, target_income=data.target_income)
    db.add(forecast)
    db.flush()
    save_financial_data(db, forecast.id, data)
    logger.info("Created forecast %s (%s).", forecast.id, name)
    return forecast


def get_forecast(db: Session, forecast_id: int) -> Forecast:
    forecast = db.get(Forecast, forecast_id)
    if forecast is None:
        raise NotFoundError("Forecast", str(forecast_id))
    return forecast


def list_forecasts(db: Session) -> list[Forecast]:
    return list(db.scalars(select(Forecast).order_by(Forecast.id)).all())


def delete_forecast(db: Session, forecast_id: int) -> None:
    forecast = get_forecast(db, forecast_id)
    db.delete(forecast)
    db.flush()


def _sync_values(
    stored: list[Any],
    values: list[FinancialValue],
    factory: type[ValueEntry] | type[BalanceValueEntry],
) -> list[Any]:
    """Sparse upsert: non-zero values are written, zeroed or dropped ones are removed."""
    existing = {(entry.year, entry.month): entry for entry in stored}
    kept: list[Any] = []
    for item in values:
        entry = existing.pop((item.year, item.month), None)
        # stored at cent precision; anything that rounds to zero is not kept
        amount = money(item.value)
        if amount == 0:
            continue
        if entry is None:
            entry = factory(year=item.year, month=item.month)
        entry.value = amount
        entry.is_projected = item.is_projected
        kept.append(entry)
    return kept


def _sync_row(entry: RowEntry, row: FinancialRow, position: int) -> None:
    entry.name = row.name
    entry.type = row.type
    entry.position = position
    entry.values = _sync_values(entry.values, row.values, ValueEntry)


def _sync_subcategory(entry: SubcategoryEntry, subcategory: Subcategory, position: int) -> None:
    entry.name = subcategory.name
    entry.position = position
    existing = {row.key: row for row in entry.rows}
    rows: list[RowEntry] = []
    for row_position, row in enumerate(subcategory.rows, 1):
        row_entry = existing.pop(row.id, None) or RowEntry(key=row.id)
        _sync_row(row_entry, row, row.order or row_position)
        rows.append(row_entry)
    entry.rows = rows


def _sync_category(entry: CategoryEntry, category: Category, position: int) -> None:
    entry.name = category.name
    entry.type = category.type
    entry.position = position
    entry.is_expanded = category.is_expanded
    entry.is_calculated = category.is_calculated
    entry.formula = category.formula
    existing = {subcategory.key: subcategory for subcategory in entry.subcategories}
    subcategories: list[SubcategoryEntry] = []
    for sub_position, subcategory in enumerate(category.subcategories, 1):
        sub_entry = existing.pop(subcategory.id, None) or SubcategoryEntry(key=subcategory.id)
        _sync_subcategory(sub_entry, subcategory, subcategory.order or sub_position)
        subcategories.append(sub_entry)
    entry.subcategories = subcategories


def save_financial_data(db: Session, forecast_id: int, data: FinancialData) -> Forecast:
    """Write the whole tree for ``forecast_id``; entries missing from ``data`` are removed."""
    check_storable(data)
    forecast = get_forecast(db, forecast_id)
    forecast.tax_rate = as_decimal(data.tax_rate)
    forecast.target_income = as_decimal(data.target_income)
    forecast.last_updated = data.last_updated

    existing = {category.key: category for category in forecast.categories}
    categories: list[CategoryEntry] = []
    for position, category in enumerate(data.categories, 1):
        entry = existing.pop(category.id, None) or CategoryEntry(key=category.id)
        _sync_category(entry, category, category.order or position)
        categories.append(entry)
    forecast.categories = categories

    existing_accounts = {account.key: account for account in forecast.balance_accounts}
    accounts: list[BalanceAccountEntry] = []
    for position, account in enumerate(data.balance_sheet_accounts, 1):
        account_entry = existing_accounts.pop(account.id, None) or BalanceAccountEntry(key=account.id)
        account_entry.name = account.name
        account_entry.section = account.section
        account_entry.position = account.order or position
        account_entry.values = _sync_values(account_entry.values, account.values, BalanceValueEntry)
        accounts.append(account_entry)
    forecast.balance_accounts = accounts

    db.flush()
    logger.debug("Saved financial data for forecast %s.", forecast_id)
    return forecast


def _load_values(entries: list[Any], start_year: int, end_year: int) -> list[FinancialValue]:
    stored = [
        FinancialValue(
            value=as_decimal(entry.value),
            year=entry.year,
            month=entry.month,
            date=date(entry.year, entry.month, 1),
            is_projected=entry.is_projected,
        )
        for entry in entries
    ]
    return densify_values(stored, start_year, end_year)


def load_financial_data(db: Session, forecast_id: int) -> FinancialData:
    """Rebuild the dense tree; months without a stored value come back as 0 / projected."""
    settings = get_settings()
    start_year, end_year = settings.horizon_start_year, settings.horizon_end_year
    forecast = get_forecast(db, forecast_id)

    categories = [
        Category(
            id=category.key,
            name=category.name,
            type=category.type,
            order=category.position,
            is_expanded=category.is_expanded,
            is_calculated=category.is_calculated,
            formula=category.formula,
            subcategories=[
                Subcategory(
                    id=subcategory.key,
                    name=subcategory.name,
                    order=subcategory.position,
                    rows=[
                        FinancialRow(
                            id=row.key,
                            name=row.name,
                            type=row.type,
                            category_id=category.key,
                            subcategory_id=subcategory.key,
                            order=row.position,
                            values=_load_values(row.values, start_year, end_year),
                        )
                        for row in subcategory.rows
                    ],
                )
                for subcategory in category.subcategories
            ],
        )
        for category in forecast.categories
    ]
    accounts = [
        BalanceSheetAccount(
            id=account.key,
            name=account.name,
            section=account.section,
            order=account.position,
            values=_load_values(account.values, start_year, end_year),
        )
        for account in forecast.balance_accounts
    ]
    return FinancialData(
        categories=categories,
        forecast_periods=generate_forecast_periods(start_year, end_year),
        last_updated=forecast.last_updated or utcnow(),
        tax_rate=as_decimal(forecast.tax_rate),
        target_income=as_decimal(forecast.target_income),
        balance_sheet_accounts=accounts,
    )


def _json_parameters(parameters: dict[str, Any]) -> dict[str, Any]:
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in parameters.items()}


def record_from_entry(entry: ForecastRecordEntry) -> ForecastRecord:
    return ForecastRecord(
        id=entry.key,
        name=entry.name,
        account_ids=list(entry.account_ids),
        method=entry.method,
        parameters=dict(entry.parameters),
        start_date=entry.start_date,
        end_date=entry.end_date,
        created_at=entry.created_at,
        status=entry.status,
    )


def scenario_from_entry(entry: ScenarioEntry) -> ScenarioConfig:
    return ScenarioConfig(
        id=entry.key,
        name=entry.name,
        type=entry.type,
        value=as_decimal(entry.value),
        account_ids=list(entry.account_ids),
        start_date=entry.start_date,
        end_date=entry.end_date,
        created_at=entry.created_at,
        description=entry.description,
        status=entry.status,
    )


def save_forecast_record(db: Session, forecast_id: int, record: ForecastRecord) -> ForecastRecord:
    get_forecast(db, forecast_id)
    entry = db.scalar(
        select(ForecastRecordEntry).where(
            ForecastRecordEntry.forecast_id == forecast_id,
            ForecastRecordEntry.key == record.id,
        )
    )
    if entry is None:
        entry = ForecastRecordEntry(forecast_id=forecast_id, key=record.id, created_at=record.created_at)
        db.add(entry)
    entry.name = record.name
    entry.account_ids = list(record.account_ids)
    entry.method = record.method
    entry.parameters = _json_parameters(record.parameters)
    entry.start_date = record.start_date
    entry.end_date = record.end_date
    entry.status = record.status
    db.flush()
    return record_from_entry(entry)


def save_scenario(db: Session, forecast_id: int, scenario: ScenarioConfig) -> ScenarioConfig:
    get_forecast(db, forecast_id)
    entry = db.scalar(
        select(ScenarioEntry).where(
            ScenarioEntry.forecast_id == forecast_id,
            ScenarioEntry.key == scenario.id,
        )
    )
    if entry is None:
        entry = ScenarioEntry(forecast_id=forecast_id, key=scenario.id, created_at=scenario.created_at)
        db.add(entry)
    entry.name = scenario.name
    entry.description = scenario.description
    entry.type = scenario.type
    entry.value = as_decimal(scenario.value)
    entry.account_ids = list(scenario.account_ids)
    entry.start_date = scenario.start_date
    entry.end_date = scenario.end_date
    entry.status = scenario.status
    db.flush()
    return scenario_from_entry(entry)


def list_forecast_records(db: Session, forecast_id: int) -> list[ForecastRecord]:
    get_forecast(db, forecast_id)
    entries = db.scalars(
        select(ForecastRecordEntry)
        .where(ForecastRecordEntry.forecast_id == forecast_id)
        .order_by(ForecastRecordEntry.id)
    ).all()
    return [record_from_entry(entry) for entry in entries]


def list_scenarios(db: Session, forecast_id: int) -> list[ScenarioConfig]:
    get_forecast(db, forecast_id)
    entries = db.scalars(
        select(ScenarioEntry).where(ScenarioEntry.forecast_id == forecast_id).order_by(ScenarioEntry.id)
    ).all()
    return [scenario_from_entry(entry) for entry in entries]


def _record_entry(db: Session, forecast_id: int, record_id: str) -> ForecastRecordEntry:
    entry = db.scalar(
        select(ForecastRecordEntry).where(
            ForecastRecordEntry.forecast_id == forecast_id,
            ForecastRecordEntry.key == record_id,
        )
    )
    if entry is None:
        raise NotFoundError("Forecast record", record_id)
    return entry


def _scenario_entry(db: Session, forecast_id: int, scenario_id: str) -> ScenarioEntry:
    entry = db.scalar(
        select(ScenarioEntry).where(
            ScenarioEntry.forecast_id == forecast_id,
            ScenarioEntry.key == scenario_id,
        )
    )
    if entry is None:
        raise NotFoundError("Scenario", scenario_id)
    return entry


def get_forecast_record(db: Session, forecast_id: int, record_id: str) -> ForecastRecord:
    return record_from_entry(_record_entry(db, forecast_id, record_id))


def get_scenario(db: Session, forecast_id: int, scenario_id: str) -> ScenarioConfig:
    return scenario_from_entry(_scenario_entry(db, forecast_id, scenario_id))


def delete_forecast_record(db: Session, forecast_id: int, record_id: str) -> None:
    db.delete(_record_entry(db, forecast_id, record_id))
    db.flush()


def delete_scenario(db: Session, forecast_id: int, scenario_id: str) -> None:
    db.delete(_scenario_entry(db, forecast_id, scenario_id))
    db.flush()


def update_record_status(db: Session, forecast_id: int, record_id: str, status: RecordStatus) -> ForecastRecord:
    entry = _record_entry(db, forecast_id, record_id)
    entry.status = status
    db.flush()
    return record_from_entry(entry)


def load_store(db: Session, forecast_id: int) -> ForecastStore:
    """Store holding the saved tree together with its records and scenarios."""
    return ForecastStore(
        ForecastState(
            data=load_financial_data(db, forecast_id),
            forecast_records=list_forecast_records(db, forecast_id),
            scenarios=list_scenarios(db, forecast_id),
        )
    )
