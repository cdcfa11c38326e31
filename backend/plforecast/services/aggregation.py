from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from plforecast.models.enums import BalanceSheetSection, CategoryType
from plforecast.services.category_index import (
    CategoryIndex,
    ValueSelector,
    category_leaf_sum,
    row_sum,
    subcategory_sum,
    type_key,
)
from plforecast.services.financial_data import Category, FinancialData
from plforecast.services.formula import FormulaEvaluator
from plforecast.utils.decimal_math import ZERO, as_decimal


logger = logging.getLogger("plforecast.aggregation")


@dataclass(frozen=True)
class BalanceSheetTotals:
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal


def _zeros() -> list[Decimal]:
    return [ZERO] * 12


class AggregationService:
    """Totals and monthly series over one ``FinancialData`` snapshot.

    Leaf categories sum their rows. Calculated categories go through the
    formula evaluator, which reads leaf sums back from the same index. Any id
    or type that cannot be found totals to 0.
    """

    def __init__(self, data: FinancialData):
        self.data = data
        self.index = CategoryIndex.build(data)
        self.evaluator = FormulaEvaluator(data, self.index)

    def row_total(self, row_id: str, year: int | None = None) -> Decimal:
        row = self.index.rows.get(row_id)
        if row is None:
            return ZERO
        return row_sum(row, ValueSelector.whole_total(year))

    def subcategory_total(self, subcategory_id: str, year: int | None = None) -> Decimal:
        subcategory = self.index.subcategories.get(subcategory_id)
        if subcategory is None:
            return ZERO
        return subcategory_sum(subcategory, ValueSelector.whole_total(year))

    def category_total(self, category_id: str, year: int | None = None) -> Decimal:
        category = self.index.by_id.get(category_id)
        if category is None:
            return ZERO
        return self._category_value(category, ValueSelector.whole_total(year))

    def category_yearly_total_by_type(self, category_type: CategoryType | str, year: int | None = None) -> Decimal:
        category = self.index.by_type.get(type_key(category_type))
        if category is None:
            logger.debug("No category of type %s; total is 0.", type_key(category_type))
            return ZERO
        return self._category_value(category, ValueSelector.whole_total(year))

    def category_monthly_value(self, category_id: str, month_index: int, year: int) -> Decimal:
        category = self.index.by_id.get(category_id)
        if category is None:
            return ZERO
        return self._category_value(category, ValueSelector.monthly(month_index, year))

    def monthly_series(self, year: int) -> dict[str, list[Decimal]]:
        series: dict[str, list[Decimal]] = {}
        for category in self.data.categories:
            if category.is_calculated:
                values = [
                    self.evaluator.evaluate_category(category, ValueSelector.monthly(index, year))
                    for index in range(12)
                ]
            else:
                values = _zeros()
                for subcategory in category.subcategories:
                    for row in subcategory.rows:
                        for item in row.values:
                            if item.year == year and 1 <= item.month <= 12:
                                values[item.month - 1] += as_decimal(item.value)
            series.setdefault(category.id, values)
            series.setdefault(type_key(category.type), values)

        if CategoryType.operating_profit.value not in series:
            revenue = series.get(CategoryType.sales_revenue.value, _zeros())
            cogs = series.get(CategoryType.cogs.value, _zeros())
            opex = series.get(CategoryType.operating_expenses.value, _zeros())
            series[CategoryType.operating_profit.value] = [
                revenue[index] - abs(cogs[index]) - abs(opex[index]) for index in range(12)
            ]
        return series

    def yearly_totals(self) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {}
        for category in self.data.categories:
            totals.setdefault(category.id, self._category_value(category, ValueSelector.whole_total()))
        return totals

    def horizon_years(self) -> list[int]:
        return sorted({period.year for period in self.data.forecast_periods})

    def cash_flow_series(self, year: int | None = None) -> list[Decimal]:
        if year is None:
            years = self.horizon_years()
            if not years:
                return _zeros()
            year = years[0]
        cash_flow = _zeros()
        for category in self.data.categories:
            for index in range(12):
                cash_flow[index] += self._category_value(category, ValueSelector.monthly(index, year))
        return cash_flow

    def balance_sheet_totals(self, year: int | None = None) -> BalanceSheetTotals:
        selector = ValueSelector.whole_total(year)

        def section_total(*sections: BalanceSheetSection) -> Decimal:
            return sum(
                (
                    as_decimal(item.value)
                    for account in self.data.balance_sheet_accounts
                    if account.section in sections
                    for item in account.values
                    if selector.matches(item)
                ),
                ZERO,
            )

        return BalanceSheetTotals(
            total_assets=section_total(BalanceSheetSection.current_assets, BalanceSheetSection.non_current_assets),
            total_liabilities=section_total(
                BalanceSheetSection.current_liabilities,
                BalanceSheetSection.non_current_liabilities,
            ),
            total_equity=section_total(BalanceSheetSection.equity),
        )

    def _category_value(self, category: Category, selector: ValueSelector) -> Decimal:
        if category.is_calculated:
            return self.evaluator.evaluate_category(category, selector)
        return category_leaf_sum(category, selector)
