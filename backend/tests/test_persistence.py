from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from plforecast.core.errors import FinancialDataError, NotFoundError
from plforecast.db.base import Base
from plforecast.models.enums import ForecastMethod, RecordStatus, ScenarioType
from plforecast.models.forecast import CategoryEntry, ValueEntry
from plforecast.services.financial_data import (
    FinancialData,
    FinancialValue,
    ForecastRecord,
    ScenarioConfig,
    find_category,
    find_row,
    map_rows,
)
from plforecast.services.persistence import (
    create_forecast,
    delete_forecast,
    delete_forecast_record,
    delete_scenario,
    get_forecast,
    list_forecast_records,
    list_forecasts,
    list_scenarios,
    load_financial_data,
    load_store,
    save_financial_data,
    save_forecast_record,
    save_scenario,
    update_record_status,
)
from plforecast.services.seed import build_sample_financial_data
from plforecast.services.store import DeleteRow, UpdateRowValue, reduce


CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _value_count(db: Session) -> int:
    return db.scalar(select(func.count()).select_from(ValueEntry))


def _with_row_values(data: FinancialData, row_id: str, values: list[FinancialValue]) -> FinancialData:
    return map_rows(data, lambda row: replace(row, values=values) if row.id == row_id else row)


def test_new_forecast_stores_chart_without_values() -> None:
    db = _session()
    forecast = create_forecast(db, "Plan 2024")
    db.commit()

    assert db.scalar(select(func.count()).select_from(CategoryEntry)) == 11
    assert _value_count(db) == 0

    data = load_financial_data(db, forecast.id)
    rent = find_row(data, "rent")
    assert len(rent.values) == 84
    assert all(item.value == 0 and item.is_projected for item in rent.values)
    assert find_category(data, "income_tax_expense").formula == "net_profit_before_tax*taxRate/100"
    assert data.tax_rate == Decimal("25")
    assert len(data.balance_sheet_accounts) == 42


def test_save_is_sparse_and_reload_is_dense() -> None:
    db = _session()
    forecast = create_forecast(db, "Plan")
    data = load_financial_data(db, forecast.id)

    rent = find_row(data, "rent")
    values = list(rent.values)
    values[0] = replace(values[0], value=Decimal("2500"), is_projected=False)
    values[13] = replace(values[13], value=Decimal("2600"))
    data = _with_row_values(data, "rent", values)
    save_financial_data(db, forecast.id, data)
    db.commit()

    assert _value_count(db) == 2
    reloaded = find_row(load_financial_data(db, forecast.id), "rent")
    assert reloaded.values[0].value == Decimal("2500")
    assert reloaded.values[0].is_projected is False
    assert reloaded.values[13].value == Decimal("2600")
    assert reloaded.values[1].value == 0
    assert reloaded.values[1].is_projected is True


def test_zeroed_values_are_deleted() -> None:
    db = _session()
    forecast = create_forecast(db, "Plan")
    store = load_store(db, forecast.id)
    store.dispatch(UpdateRowValue("rent", 0, 1000))
    save_financial_data(db, forecast.id, store.data)
    db.commit()
    assert _value_count(db) == 1

    store.dispatch(UpdateRowValue("rent", 0, 0))
    save_financial_data(db, forecast.id, store.data)
    db.commit()
    assert _value_count(db) == 0


def test_removed_rows_are_deleted_with_their_values() -> None:
    db = _session()
    forecast = create_forecast(db, "Plan")
    state = load_store(db, forecast.id).state
    state = reduce(state, UpdateRowValue("rent", 0, 1000))
    save_financial_data(db, forecast.id, state.data)
    db.commit()

    state = reduce(state, DeleteRow("rent"))
    save_financial_data(db, forecast.id, state.data)
    db.commit()

    assert find_row(load_financial_data(db, forecast.id), "rent") is None
    assert _value_count(db) == 0


def test_sample_data_round_trips_totals() -> None:
    db = _session()
    sample = build_sample_financial_data(seed=9, today=date(2024, 6, 1))
    forecast = create_forecast(db, "Sample", data=sample)
    db.commit()

    reloaded = load_financial_data(db, forecast.id)
    store = load_store(db, forecast.id)
    assert find_row(reloaded, "main_product_sales").values[:12] == find_row(sample, "main_product_sales").values[:12]
    assert store.get_yearly_totals()["net_profit_after_tax"] != 0


def test_records_and_scenarios_persist() -> None:
    db = _session()
    forecast = create_forecast(db, "Plan")
    record = ForecastRecord(
        id="r1",
        name="Growth",
        account_ids=["rent", "utilities"],
        method=ForecastMethod.growth_rate,
        parameters={"growth_rate": Decimal("7.5")},
        start_date=date(2024, 1, 1),
        end_date=date(2024, 6, 30),
        created_at=CREATED,
    )
    scenario = ScenarioConfig(
        id="s1",
        name="Downside",
        type=ScenarioType.percentage,
        value=Decimal("-5"),
        account_ids=["main_product_sales"],
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        created_at=CREATED,
        description="Soft demand",
    )
    save_forecast_record(db, forecast.id, record)
    save_scenario(db, forecast.id, scenario)
    db.commit()

    [stored_record] = list_forecast_records(db, forecast.id)
    [stored_scenario] = list_scenarios(db, forecast.id)
    assert stored_record.account_ids == ["rent", "utilities"]
    assert stored_record.parameters == {"growth_rate": "7.5"}
    assert stored_scenario.value == Decimal("-5")
    assert stored_scenario.description == "Soft demand"

    updated = update_record_status(db, forecast.id, "r1", RecordStatus.paused)
    assert updated.status == RecordStatus.paused
    assert load_store(db, forecast.id).check_date_overlap(["rent"], date(2024, 1, 1), date(2024, 1, 1)).has_overlap is False

    delete_forecast_record(db, forecast.id, "r1")
    delete_scenario(db, forecast.id, "s1")
    db.commit()
    assert list_forecast_records(db, forecast.id) == []
    assert list_scenarios(db, forecast.id) == []


def test_missing_entities_raise_not_found() -> None:
    db = _session()
    with pytest.raises(NotFoundError):
        get_forecast(db, 42)
    with pytest.raises(NotFoundError):
        load_financial_data(db, 42)

    forecast = create_forecast(db, "Plan")
    with pytest.raises(NotFoundError):
        delete_forecast_record(db, forecast.id, "missing")
    with pytest.raises(NotFoundError):
        update_record_status(db, forecast.id, "missing", RecordStatus.completed)


def test_delete_forecast_cascades() -> None:
    db = _session()
    first = create_forecast(db, "First")
    create_forecast(db, "Second")
    db.commit()

    delete_forecast(db, first.id)
    db.commit()
    assert [forecast.name for forecast in list_forecasts(db)] == ["Second"]
    assert db.scalar(select(func.count()).select_from(CategoryEntry)) == 11


def test_values_are_stored_at_cent_precision() -> None:
    db = _session()
    forecast = create_forecast(db, "Plan")
    store = load_store(db, forecast.id)
    store.dispatch(UpdateRowValue("rent", 0, "1000.456"))
    store.dispatch(UpdateRowValue("rent", 1, "0.004"))
    save_financial_data(db, forecast.id, store.data)
    db.commit()

    assert _value_count(db) == 1
    rent = find_row(load_financial_data(db, forecast.id), "rent")
    assert rent.values[0].value == Decimal("1000.46")
    assert rent.values[1].value == 0


def test_duplicate_entries_are_rejected_before_writing() -> None:
    db = _session()
    forecast = create_forecast(db, "Plan")
    data = load_financial_data(db, forecast.id)
    rent = find_row(data, "rent")
    doubled = _with_row_values(data, "rent", [*rent.values, replace(rent.values[0], value=Decimal("5"))])

    with pytest.raises(FinancialDataError) as excinfo:
        save_financial_data(db, forecast.id, doubled)
    assert excinfo.value.issues == ["Duplicate value entry rent@2024-01."]

    repeated = replace(data, categories=[*data.categories, data.categories[0]])
    with pytest.raises(FinancialDataError) as excinfo:
        save_financial_data(db, forecast.id, repeated)
    assert "Duplicate category sales_revenue." in excinfo.value.issues
    assert _value_count(db) == 0
