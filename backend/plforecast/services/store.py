from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from plforecast.models.enums import CategoryType
from plforecast.services import overlap, projection, ratios
from plforecast.services.aggregation import AggregationService
from plforecast.services.financial_data import (
    Category,
    FinancialData,
    FinancialRow,
    FinancialValue,
    ForecastRecord,
    ScenarioConfig,
    Subcategory,
    find_category,
    iter_rows,
    map_rows,
    touch,
    utcnow,
)
from plforecast.services.seed import build_empty_financial_data, build_sample_financial_data
from plforecast.utils.decimal_math import as_decimal


logger = logging.getLogger("plforecast.store")

USER_DATA_BACKUP_NAME = "User Data Backup"


@dataclass(frozen=True)
class DataBackup:
    id: str
    name: str
    data: FinancialData
    created_at: datetime
    is_user_data: bool = False


@dataclass(frozen=True)
class ForecastState:
    data: FinancialData
    forecast_records: list[ForecastRecord] = field(default_factory=list)
    scenarios: list[ScenarioConfig] = field(default_factory=list)
    backups: list[DataBackup] = field(default_factory=list)
    current_backup_id: str | None = None


# Chart structure


@dataclass(frozen=True)
class ToggleCategory:
    category_id: str


@dataclass(frozen=True)
class ReorderCategories:
    source_index: int
    destination_index: int


@dataclass(frozen=True)
class ReorderSubcategories:
    category_id: str
    source_index: int
    destination_index: int


@dataclass(frozen=True)
class ReorderRows:
    subcategory_id: str
    source_index: int
    destination_index: int


@dataclass(frozen=True)
class AddCategory:
    name: str
    type: CategoryType
    is_calculated: bool = False
    formula: str | None = None
    category_id: str | None = None


@dataclass(frozen=True)
class UpdateCategory:
    category: Category


@dataclass(frozen=True)
class DeleteCategory:
    category_id: str


@dataclass(frozen=True)
class AddSubcategory:
    category_id: str
    name: str
    subcategory_id: str | None = None


@dataclass(frozen=True)
class UpdateSubcategory:
    subcategory: Subcategory


@dataclass(frozen=True)
class DeleteSubcategory:
    subcategory_id: str


@dataclass(frozen=True)
class AddRow:
    subcategory_id: str
    name: str
    row_id: str | None = None


@dataclass(frozen=True)
class UpdateRow:
    row: FinancialRow


@dataclass(frozen=True)
class DeleteRow:
    row_id: str


# Values and settings


@dataclass(frozen=True)
class UpdateRowValue:
    row_id: str
    value_index: int
    value: Decimal | int | float | str


@dataclass(frozen=True)
class UpdateRowValues:
    row_id: str
    values: list[FinancialValue]


@dataclass(frozen=True)
class UpdateBalanceSheetValue:
    account_id: str
    value_index: int
    value: Decimal | int | float | str


@dataclass(frozen=True)
class SetTaxRate:
    rate: Decimal | int | float | str


@dataclass(frozen=True)
class SetTargetIncome:
    target: Decimal | int | float | str


# Forecast records and scenarios


@dataclass(frozen=True)
class AddForecastRecord:
    record: ForecastRecord


@dataclass(frozen=True)
class UpdateForecastRecord:
    record_id: str
    changes: dict[str, Any]


@dataclass(frozen=True)
class DeleteForecastRecord:
    record_id: str


@dataclass(frozen=True)
class ApplyForecastRecord:
    record_id: str


@dataclass(frozen=True)
class ApplyForecastConfig:
    record: ForecastRecord


@dataclass(frozen=True)
class AddScenario:
    scenario: ScenarioConfig


@dataclass(frozen=True)
class UpdateScenario:
    scenario_id: str
    changes: dict[str, Any]


@dataclass(frozen=True)
class DeleteScenario:
    scenario_id: str


@dataclass(frozen=True)
class ApplyScenario:
    scenario_id: str


@dataclass(frozen=True)
class ApplyScenarioConfig:
    scenario: ScenarioConfig


# Backups and templates


@dataclass(frozen=True)
class CreateBackup:
    name: str
    is_user_data: bool = False
    backup_id: str | None = None


@dataclass(frozen=True)
class RestoreBackup:
    backup_id: str


@dataclass(frozen=True)
class DeleteBackup:
    backup_id: str


@dataclass(frozen=True)
class ResetToEmpty:
    pass


@dataclass(frozen=True)
class LoadSampleData:
    seed: int = 2024
    today: date | None = None


def _new_id() -> str:
    return str(uuid.uuid4())


def _move(items: Sequence[Any], source_index: int, destination_index: int) -> list[Any]:
    moved = list(items)
    if not 0 <= source_index < len(moved):
        return moved
    item = moved.pop(source_index)
    moved.insert(destination_index, item)
    return [replace(entry, order=position) for position, entry in enumerate(moved, 1)]


def _with_categories(state: ForecastState, transform: Callable[[Category], Category]) -> ForecastState:
    data = replace(state.data, categories=[transform(category) for category in state.data.categories])
    return replace(state, data=touch(data))


def _with_subcategories(state: ForecastState, transform: Callable[[Subcategory], Subcategory]) -> ForecastState:
    return _with_categories(
        state,
        lambda category: replace(
            category,
            subcategories=[transform(subcategory) for subcategory in category.subcategories],
        ),
    )


def _with_rows(state: ForecastState, transform: Callable[[FinancialRow], FinancialRow]) -> ForecastState:
    return replace(state, data=touch(map_rows(state.data, transform)))


def _set_value(values: list[FinancialValue], index: int, amount: Decimal | int | float | str) -> list[FinancialValue]:
    if not 0 <= index < len(values):
        return values
    updated = list(values)
    updated[index] = replace(updated[index], value=as_decimal(amount))
    return updated


def has_user_values(data: FinancialData) -> bool:
    return any(item.value != 0 for row in iter_rows(data) for item in row.values)


def _toggle_category(state: ForecastState, action: ToggleCategory) -> ForecastState:
    return _with_categories(
        state,
        lambda c: replace(c, is_expanded=not c.is_expanded) if c.id == action.category_id else c,
    )


def _reorder_categories(state: ForecastState, action: ReorderCategories) -> ForecastState:
    categories = _move(state.data.categories, action.source_index, action.destination_index)
    return replace(state, data=touch(replace(state.data, categories=categories)))


def _reorder_subcategories(state: ForecastState, action: ReorderSubcategories) -> ForecastState:
    return _with_categories(
        state,
        lambda c: replace(c, subcategories=_move(c.subcategories, action.source_index, action.destination_index))
        if c.id == action.category_id
        else c,
    )


def _reorder_rows(state: ForecastState, action: ReorderRows) -> ForecastState:
    return _with_subcategories(
        state,
        lambda s: replace(s, rows=_move(s.rows, action.source_index, action.destination_index))
        if s.id == action.subcategory_id
        else s,
    )


def _add_category(state: ForecastState, action: AddCategory) -> ForecastState:
    order = max((category.order for category in state.data.categories), default=0) + 1
    category = Category(
        id=action.category_id or _new_id(),
        name=action.name,
        type=action.type,
        order=order,
        is_expanded=True,
        subcategories=[],
        is_calculated=action.is_calculated,
        formula=action.formula,
    )
    data = replace(state.data, categories=[*state.data.categories, category])
    return replace(state, data=touch(data))


def _update_category(state: ForecastState, action: UpdateCategory) -> ForecastState:
    return _with_categories(state, lambda c: action.category if c.id == action.category.id else c)


def _delete_category(state: ForecastState, action: DeleteCategory) -> ForecastState:
    categories = [category for category in state.data.categories if category.id != action.category_id]
    return replace(state, data=touch(replace(state.data, categories=categories)))


def _add_subcategory(state: ForecastState, action: AddSubcategory) -> ForecastState:
    def add(category: Category) -> Category:
        if category.id != action.category_id:
            return category
        order = max((s.order for s in category.subcategories), default=0) + 1
        subcategory = Subcategory(id=action.subcategory_id or _new_id(), name=action.name, order=order, rows=[])
        return replace(category, subcategories=[*category.subcategories, subcategory])

    return _with_categories(state, add)


def _update_subcategory(state: ForecastState, action: UpdateSubcategory) -> ForecastState:
    return _with_subcategories(state, lambda s: action.subcategory if s.id == action.subcategory.id else s)


def _delete_subcategory(state: ForecastState, action: DeleteSubcategory) -> ForecastState:
    return _with_categories(
        state,
        lambda c: replace(c, subcategories=[s for s in c.subcategories if s.id != action.subcategory_id]),
    )


def _add_row(state: ForecastState, action: AddRow) -> ForecastState:
    periods = state.data.forecast_periods

    def add(category: Category) -> Category:
        if not any(s.id == action.subcategory_id for s in category.subcategories):
            return category
        subcategories: list[Subcategory] = []
        for subcategory in category.subcategories:
            if subcategory.id == action.subcategory_id:
                row = FinancialRow(
                    id=action.row_id or _new_id(),
                    name=action.name,
                    type=category.type,
                    category_id=category.id,
                    subcategory_id=subcategory.id,
                    order=max((r.order for r in subcategory.rows), default=0) + 1,
                    values=[
                        FinancialValue(value=Decimal("0"), year=p.year, month=p.month, date=p.date)
                        for p in periods
                    ],
                )
                subcategory = replace(subcategory, rows=[*subcategory.rows, row])
            subcategories.append(subcategory)
        return replace(category, subcategories=subcategories)

    return _with_categories(state, add)


def _update_row(state: ForecastState, action: UpdateRow) -> ForecastState:
    return _with_rows(state, lambda r: action.row if r.id == action.row.id else r)


def _delete_row(state: ForecastState, action: DeleteRow) -> ForecastState:
    return _with_subcategories(state, lambda s: replace(s, rows=[r for r in s.rows if r.id != action.row_id]))


def _update_row_value(state: ForecastState, action: UpdateRowValue) -> ForecastState:
    return _with_rows(
        state,
        lambda r: replace(r, values=_set_value(r.values, action.value_index, action.value))
        if r.id == action.row_id
        else r,
    )


def _update_row_values(state: ForecastState, action: UpdateRowValues) -> ForecastState:
    return _with_rows(state, lambda r: replace(r, values=list(action.values)) if r.id == action.row_id else r)


def _update_balance_sheet_value(state: ForecastState, action: UpdateBalanceSheetValue) -> ForecastState:
    accounts = [
        replace(account, values=_set_value(account.values, action.value_index, action.value))
        if account.id == action.account_id
        else account
        for account in state.data.balance_sheet_accounts
    ]
    return replace(state, data=touch(replace(state.data, balance_sheet_accounts=accounts)))


def _set_tax_rate(state: ForecastState, action: SetTaxRate) -> ForecastState:
    return replace(state, data=touch(replace(state.data, tax_rate=as_decimal(action.rate))))


def _set_target_income(state: ForecastState, action: SetTargetIncome) -> ForecastState:
    return replace(state, data=touch(replace(state.data, target_income=as_decimal(action.target))))


def _add_forecast_record(state: ForecastState, action: AddForecastRecord) -> ForecastState:
    record = replace(action.record, id=action.record.id or _new_id(), created_at=utcnow())
    return replace(state, forecast_records=[*state.forecast_records, record])


def _update_forecast_record(state: ForecastState, action: UpdateForecastRecord) -> ForecastState:
    records = [
        replace(record, **action.changes) if record.id == action.record_id else record
        for record in state.forecast_records
    ]
    return replace(state, forecast_records=records)


def _delete_forecast_record(state: ForecastState, action: DeleteForecastRecord) -> ForecastState:
    records = [record for record in state.forecast_records if record.id != action.record_id]
    return replace(state, forecast_records=records)


def _apply_forecast_config(state: ForecastState, action: ApplyForecastConfig) -> ForecastState:
    return replace(state, data=touch(projection.apply_forecast_config(state.data, action.record)))


def _apply_forecast_record(state: ForecastState, action: ApplyForecastRecord) -> ForecastState:
    record = next((r for r in state.forecast_records if r.id == action.record_id), None)
    if record is None:
        logger.debug("Forecast record %s not found; nothing applied.", action.record_id)
        return state
    return _apply_forecast_config(state, ApplyForecastConfig(record))


def _add_scenario(state: ForecastState, action: AddScenario) -> ForecastState:
    scenario = replace(action.scenario, id=action.scenario.id or _new_id(), created_at=utcnow())
    return replace(state, scenarios=[*state.scenarios, scenario])


def _update_scenario(state: ForecastState, action: UpdateScenario) -> ForecastState:
    scenarios = [
        replace(scenario, **action.changes) if scenario.id == action.scenario_id else scenario
        for scenario in state.scenarios
    ]
    return replace(state, scenarios=scenarios)


def _delete_scenario(state: ForecastState, action: DeleteScenario) -> ForecastState:
    return replace(state, scenarios=[s for s in state.scenarios if s.id != action.scenario_id])


def _apply_scenario_config(state: ForecastState, action: ApplyScenarioConfig) -> ForecastState:
    return replace(state, data=touch(projection.apply_scenario_config(state.data, action.scenario)))


def _apply_scenario(state: ForecastState, action: ApplyScenario) -> ForecastState:
    scenario = next((s for s in state.scenarios if s.id == action.scenario_id), None)
    if scenario is None:
        logger.debug("Scenario %s not found; nothing applied.", action.scenario_id)
        return state
    return _apply_scenario_config(state, ApplyScenarioConfig(scenario))


def _create_backup(state: ForecastState, action: CreateBackup) -> ForecastState:
    backup = DataBackup(
        id=action.backup_id or _new_id(),
        name=action.name,
        data=state.data,
        created_at=utcnow(),
        is_user_data=action.is_user_data,
    )
    return replace(state, backups=[*state.backups, backup], current_backup_id=backup.id)


def _restore_backup(state: ForecastState, action: RestoreBackup) -> ForecastState:
    backup = next((b for b in state.backups if b.id == action.backup_id), None)
    if backup is None:
        logger.debug("Backup %s not found; nothing restored.", action.backup_id)
        return state
    return replace(state, data=touch(backup.data), current_backup_id=backup.id)


def _delete_backup(state: ForecastState, action: DeleteBackup) -> ForecastState:
    current = None if state.current_backup_id == action.backup_id else state.current_backup_id
    return replace(
        state,
        backups=[b for b in state.backups if b.id != action.backup_id],
        current_backup_id=current,
    )


def _keep_user_data(state: ForecastState) -> ForecastState:
    if has_user_values(state.data) and not any(b.is_user_data for b in state.backups):
        logger.info("Backing up existing values before replacing the data tree.")
        return _create_backup(state, CreateBackup(USER_DATA_BACKUP_NAME, is_user_data=True))
    return state


def _reset_to_empty(state: ForecastState, action: ResetToEmpty) -> ForecastState:
    return replace(state, data=build_empty_financial_data())


def _load_sample_data(state: ForecastState, action: LoadSampleData) -> ForecastState:
    state = _keep_user_data(state)
    return replace(state, data=build_sample_financial_data(seed=action.seed, today=action.today))


_HANDLERS: dict[type, Callable[[ForecastState, Any], ForecastState]] = {
    ToggleCategory: _toggle_category,
    ReorderCategories: _reorder_categories,
    ReorderSubcategories: _reorder_subcategories,
    ReorderRows: _reorder_rows,
    AddCategory: _add_category,
    UpdateCategory: _update_category,
    DeleteCategory: _delete_category,
    AddSubcategory: _add_subcategory,
    UpdateSubcategory: _update_subcategory,
    DeleteSubcategory: _delete_subcategory,
    AddRow: _add_row,
    UpdateRow: _update_row,
    DeleteRow: _delete_row,
    UpdateRowValue: _update_row_value,
    UpdateRowValues: _update_row_values,
    UpdateBalanceSheetValue: _update_balance_sheet_value,
    SetTaxRate: _set_tax_rate,
    SetTargetIncome: _set_target_income,
    AddForecastRecord: _add_forecast_record,
    UpdateForecastRecord: _update_forecast_record,
    DeleteForecastRecord: _delete_forecast_record,
    ApplyForecastRecord: _apply_forecast_record,
    ApplyForecastConfig: _apply_forecast_config,
    AddScenario: _add_scenario,
    UpdateScenario: _update_scenario,
    DeleteScenario: _delete_scenario,
    ApplyScenario: _apply_scenario,
    ApplyScenarioConfig: _apply_scenario_config,
    CreateBackup: _create_backup,
    RestoreBackup: _restore_backup,
    DeleteBackup: _delete_backup,
    ResetToEmpty: _reset_to_empty,
    LoadSampleData: _load_sample_data,
}


def reduce(state: ForecastState, action: object) -> ForecastState:
    """Return the state that follows ``action``; ``state`` itself is never modified.

    Actions that name an id which does not exist leave the state as it was.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unsupported action: {type(action).__name__}")
    return handler(state, action)


class ForecastStore:
    """Holds the current ``ForecastState`` and answers queries against it."""

    def __init__(self, state: ForecastState | None = None):
        self.state = state or ForecastState(data=build_empty_financial_data())

    @property
    def data(self) -> FinancialData:
        return self.state.data

    def dispatch(self, action: object) -> ForecastState:
        self.state = reduce(self.state, action)
        return self.state

    def service(self) -> AggregationService:
        return AggregationService(self.state.data)

    def get_category_total(self, category_id: str, year: int | None = None) -> Decimal:
        return self.service().category_total(category_id, year)

    def get_category_yearly_total_by_type(self, category_type: CategoryType | str, year: int | None = None) -> Decimal:
        return self.service().category_yearly_total_by_type(category_type, year)

    def get_calculated_category_monthly_value(self, category_id: str, month_index: int, year: int) -> Decimal:
        return self.service().category_monthly_value(category_id, month_index, year)

    def get_monthly_data(self, year: int) -> dict[str, list[Decimal]]:
        return self.service().monthly_series(year)

    def get_yearly_totals(self) -> dict[str, Decimal]:
        return self.service().yearly_totals()

    def get_growth_rates(self) -> dict[str, Decimal]:
        return ratios.growth_rates(self.state.data)

    def get_cash_flow_data(self, year: int | None = None) -> list[Decimal]:
        return self.service().cash_flow_series(year)

    def get_financial_ratios(self, year: int | None = None) -> dict[str, Decimal]:
        return ratios.financial_ratios(self.state.data, year)

    def check_date_overlap(
        self,
        account_ids: Sequence[str],
        start: date,
        end: date,
        exclude_id: str | None = None,
    ) -> overlap.DateOverlap:
        return overlap.check_date_overlap(self.state.forecast_records, account_ids, start, end, exclude_id)

    def check_scenario_overlap(
        self,
        account_ids: Sequence[str],
        start: date,
        end: date,
        exclude_id: str | None = None,
    ) -> overlap.ScenarioOverlap:
        return overlap.check_scenario_overlap(self.state.scenarios, account_ids, start, end, exclude_id)

    def apply_forecast_config(self, record: ForecastRecord) -> FinancialData:
        return self.dispatch(ApplyForecastConfig(record)).data

    def apply_scenario_config(self, scenario: ScenarioConfig) -> FinancialData:
        return self.dispatch(ApplyScenarioConfig(scenario)).data

    def list_backups(self) -> list[DataBackup]:
        return sorted(self.state.backups, key=lambda backup: backup.created_at, reverse=True)

    def has_user_data_backup(self) -> bool:
        return any(backup.is_user_data for backup in self.state.backups)

    def restore_user_data(self) -> bool:
        backup = next((b for b in self.state.backups if b.is_user_data), None)
        if backup is None:
            return False
        self.dispatch(RestoreBackup(backup.id))
        return True

    def find_category(self, category_id: str) -> Category | None:
        return find_category(self.state.data, category_id)
