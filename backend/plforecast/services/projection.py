from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import date
from decimal import Decimal

from plforecast.models.enums import ForecastMethod, ScenarioType
from plforecast.services.financial_data import (
    FinancialData,
    FinancialRow,
    FinancialValue,
    ForecastRecord,
    ScenarioConfig,
    map_rows,
)
from plforecast.utils.decimal_math import ZERO, as_decimal, whole


logger = logging.getLogger("plforecast.projection")

COMPOUNDING = frozenset({ForecastMethod.growth_rate.value, ScenarioType.percentage.value})
FIXED = frozenset({ForecastMethod.fixed_amount.value, ScenarioType.amount.value})


def _method_key(method: enum.Enum | str) -> str:
    return method.value if isinstance(method, enum.Enum) else str(method)


def month_window(start: date, end: date) -> list[tuple[int, int]]:
    """Inclusive (year, month) pairs from ``start`` to ``end``; day of month is ignored."""
    months: list[tuple[int, int]] = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append((year, month))
        month += 1
        if month > 12:
            month = 1
            year += 1
    return months


def _previous_month(year: int, month: int) -> tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


def _position(values: list[FinancialValue], year: int, month: int) -> int:
    return next((i for i, item in enumerate(values) if item.year == year and item.month == month), -1)


def project_row(
    row: FinancialRow,
    method: ForecastMethod | ScenarioType | str,
    amount: Decimal | int | float | str,
    months: list[tuple[int, int]],
) -> FinancialRow:
    """Return a copy of ``row`` with the projection written into ``months``.

    Compounding methods chain month over month: the first month grows from
    the value stored just before it, every later month from the already
    projected previous calendar month. Fixed methods write the rounded
    amount. Months the row does not carry are skipped.
    """
    key = _method_key(method)
    values = list(row.values)

    if key in COMPOUNDING:
        rate = as_decimal(amount) / Decimal("100")
        base: Decimal | None = None
        for offset, (year, month) in enumerate(months):
            i = _position(values, year, month)
            if i == -1:
                continue
            if offset == 0:
                base = as_decimal(values[i - 1].value) if i > 0 else ZERO
                previous = base
            else:
                prev_year, prev_month = _previous_month(year, month)
                j = _position(values, prev_year, prev_month)
                if j != -1:
                    previous = as_decimal(values[j].value)
                else:
                    previous = base if base is not None else ZERO
            values[i] = replace(values[i], value=whole(previous * (1 + rate)), is_projected=True)
    elif key in FIXED:
        fixed = whole(amount)
        for year, month in months:
            i = _position(values, year, month)
            if i == -1:
                continue
            values[i] = replace(values[i], value=fixed, is_projected=True)
    else:
        logger.warning("Projection method %s is not applied; row %s left unchanged.", key, row.id)

    return replace(row, values=values)


def apply_projection(
    rows: Iterable[FinancialRow],
    account_ids: Iterable[str],
    method: ForecastMethod | ScenarioType | str,
    amount: Decimal | int | float | str,
    start: date,
    end: date,
) -> list[FinancialRow]:
    targets = set(account_ids)
    months = month_window(start, end)
    return [project_row(row, method, amount, months) if row.id in targets else row for row in rows]


def _apply_to_data(
    data: FinancialData,
    account_ids: Iterable[str],
    method: ForecastMethod | ScenarioType | str,
    amount: Decimal | int | float | str,
    start: date,
    end: date,
) -> FinancialData:
    targets = set(account_ids)
    months = month_window(start, end)
    return map_rows(
        data,
        lambda row: project_row(row, method, amount, months) if row.id in targets else row,
    )


def forecast_amount(record: ForecastRecord) -> Decimal:
    key = _method_key(record.method)
    if key == ForecastMethod.growth_rate.value:
        return as_decimal(record.parameters.get("growth_rate", 0))
    if key == ForecastMethod.fixed_amount.value:
        return as_decimal(record.parameters.get("fixed_amount", 0))
    return ZERO


def apply_forecast_config(data: FinancialData, record: ForecastRecord) -> FinancialData:
    """New tree with ``record`` projected onto its rows. ``last_updated`` is left to the caller."""
    logger.info(
        "Applying forecast %s (%s) to %d account(s) %s..%s.",
        record.name,
        _method_key(record.method),
        len(record.account_ids),
        record.start_date.isoformat(),
        record.end_date.isoformat(),
    )
    return _apply_to_data(
        data,
        record.account_ids,
        record.method,
        forecast_amount(record),
        record.start_date,
        record.end_date,
    )


def apply_scenario_config(data: FinancialData, scenario: ScenarioConfig) -> FinancialData:
    logger.info(
        "Applying scenario %s (%s %s) to %d account(s) %s..%s.",
        scenario.name,
        _method_key(scenario.type),
        scenario.value,
        len(scenario.account_ids),
        scenario.start_date.isoformat(),
        scenario.end_date.isoformat(),
    )
    return _apply_to_data(
        data,
        scenario.account_ids,
        scenario.type,
        scenario.value,
        scenario.start_date,
        scenario.end_date,
    )
