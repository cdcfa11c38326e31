from __future__ import annotations

from datetime import date
from decimal import Decimal

from plforecast.models.enums import CategoryType
from plforecast.services.aggregation import AggregationService
from plforecast.services.financial_data import FinancialData
from plforecast.utils.decimal_math import ZERO, as_decimal, money, pct


DEPRECIATION_SUBCATEGORY_ID = "depreciation"
NO_INTEREST_COVERAGE = Decimal("999")


def _safe_div(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == 0:
        return ZERO
    return numerator / denominator


def _safe_pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    return pct(_safe_div(numerator, denominator) * Decimal("100"))


def default_year(data: FinancialData) -> int:
    if data.forecast_periods:
        return data.forecast_periods[0].year
    return date.today().year


def financial_ratios(
    data: FinancialData,
    year: int | None = None,
    *,
    service: AggregationService | None = None,
) -> dict[str, Decimal]:
    """Headline P&L ratios for one year. Every denominator is zero-guarded."""
    service = service or AggregationService(data)
    year = year if year is not None else default_year(data)

    revenue = service.category_yearly_total_by_type(CategoryType.sales_revenue, year)
    cogs = abs(service.category_yearly_total_by_type(CategoryType.cogs, year))
    operating_expenses = abs(service.category_yearly_total_by_type(CategoryType.operating_expenses, year))
    other_income = service.category_yearly_total_by_type(CategoryType.other_income, year)
    financial_expenses = abs(service.category_yearly_total_by_type(CategoryType.financial_expenses, year))
    other_expenses = abs(service.category_yearly_total_by_type(CategoryType.other_expenses, year))

    gross_profit = revenue - cogs
    operating_profit = gross_profit - operating_expenses
    net_profit_before_tax = operating_profit + other_income - financial_expenses - other_expenses
    tax_rate = as_decimal(data.tax_rate if data.tax_rate is not None else 25)
    tax_expense = net_profit_before_tax * tax_rate / Decimal("100") if net_profit_before_tax > 0 else ZERO
    net_profit_after_tax = net_profit_before_tax - tax_expense

    depreciation = ZERO
    opex_category = service.index.by_type.get(CategoryType.operating_expenses.value)
    if opex_category is not None:
        for subcategory in opex_category.subcategories:
            if subcategory.id == DEPRECIATION_SUBCATEGORY_ID:
                depreciation += service.subcategory_total(subcategory.id, year)

    ratios: dict[str, Decimal] = {}
    has_revenue = revenue > 0
    ratios["Gross Profit Margin"] = _safe_pct(gross_profit, revenue) if has_revenue else pct(0)
    ratios["Operating Profit Margin"] = _safe_pct(operating_profit, revenue) if has_revenue else pct(0)
    ratios["Net Profit Margin"] = _safe_pct(net_profit_after_tax, revenue) if has_revenue else pct(0)
    ratios["EBITDA Margin"] = (
        _safe_pct(operating_profit + abs(depreciation), revenue) if has_revenue else pct(0)
    )

    ratios["COGS as % of Revenue"] = _safe_pct(cogs, revenue) if has_revenue else pct(0)
    ratios["Operating Expenses as % of Revenue"] = (
        _safe_pct(operating_expenses, revenue) if has_revenue else pct(0)
    )
    ratios["Total Expense Ratio"] = _safe_pct(cogs + operating_expenses, revenue) if has_revenue else pct(0)

    ratios["Gross Profit per Dollar of Revenue"] = pct(_safe_div(gross_profit, revenue)) if has_revenue else pct(0)
    # contribution margin
    ratios["Operating Leverage"] = pct(_safe_div(revenue - cogs, revenue)) if cogs > 0 else pct(0)

    ratios["Monthly Revenue"] = money(revenue / 12)
    ratios["Monthly Operating Profit"] = money(operating_profit / 12)
    ratios["Monthly Net Profit"] = money(net_profit_after_tax / 12)

    fixed_costs = operating_expenses
    variable_cost_ratio = _safe_div(cogs, revenue) if has_revenue else ZERO
    contribution_margin = 1 - variable_cost_ratio
    break_even = _safe_div(fixed_costs, contribution_margin) if contribution_margin > 0 else ZERO
    ratios["Break-even Revenue"] = money(break_even)
    ratios["Margin of Safety"] = (
        _safe_pct(revenue - break_even, revenue) if has_revenue and contribution_margin > 0 else pct(0)
    )

    # no balance sheet feed yet: asset and equity bases are revenue-scaled estimates
    profitable = net_profit_after_tax > 0
    estimated_assets = revenue * (Decimal("0.8") if profitable else Decimal("1.2"))
    estimated_equity = revenue * (Decimal("0.4") if profitable else Decimal("0.2"))
    estimated_current_assets = revenue * Decimal("0.25")
    estimated_current_liabilities = revenue * Decimal("0.15")

    ratios["Current Ratio"] = (
        pct(_safe_div(estimated_current_assets, estimated_current_liabilities))
        if estimated_current_liabilities > 0
        else pct(0)
    )
    ratios["Return on Assets"] = (
        _safe_pct(net_profit_after_tax, estimated_assets) if estimated_assets > 0 else pct(0)
    )
    ratios["Return on Equity"] = (
        _safe_pct(net_profit_after_tax, estimated_equity) if estimated_equity > 0 else pct(0)
    )

    estimated_debt = financial_expenses * 10 if financial_expenses > 0 else revenue * Decimal("0.1")
    ratios["Debt to Equity Ratio"] = (
        pct(_safe_div(estimated_debt, estimated_equity)) if estimated_equity > 0 else pct(0)
    )
    ratios["Interest Coverage Ratio"] = (
        pct(_safe_div(operating_profit, financial_expenses)) if financial_expenses > 0 else NO_INTEREST_COVERAGE
    )
    return ratios


def growth_rates(data: FinancialData, *, service: AggregationService | None = None) -> dict[str, Decimal]:
    """Percent change of each category between the last two horizon years."""
    service = service or AggregationService(data)
    years = service.horizon_years()
    rates: dict[str, Decimal] = {}
    for category in data.categories:
        if len(years) < 2:
            rates[category.id] = pct(0)
            continue
        current = service.category_total(category.id, years[-1])
        previous = service.category_total(category.id, years[-2])
        rates[category.id] = _safe_pct(current - previous, previous)
    return rates
