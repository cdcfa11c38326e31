from dataclasses import replace
from decimal import Decimal

from plforecast.models.enums import CategoryType
from plforecast.services.financial_data import (
    Category,
    FinancialData,
    FinancialRow,
    Subcategory,
    create_empty_values,
    generate_forecast_periods,
    map_rows,
    utcnow,
)
from plforecast.services.ratios import NO_INTEREST_COVERAGE, financial_ratios, growth_rates
from plforecast.services.seed import build_empty_financial_data, build_sample_financial_data
from plforecast.utils.decimal_math import money, pct


def _leaf(category_id: str, category_type: CategoryType, january: int, subcategory_id: str | None = None) -> Category:
    subcategory_id = subcategory_id or f"{category_id}_sub"
    values = create_empty_values(2024, 2025)
    values[0] = replace(values[0], value=Decimal(january))
    row = FinancialRow(
        id=f"{category_id}_row",
        name=category_id,
        type=category_type,
        category_id=category_id,
        subcategory_id=subcategory_id,
        order=1,
        values=values,
    )
    return Category(
        id=category_id,
        name=category_id,
        type=category_type,
        order=1,
        subcategories=[Subcategory(id=subcategory_id, name=category_id, order=1, rows=[row])],
    )


def _data(*categories: Category) -> FinancialData:
    return FinancialData(
        categories=list(categories),
        forecast_periods=generate_forecast_periods(2024, 2025),
        last_updated=utcnow(),
    )


def test_ratios_without_revenue_are_zero_not_errors() -> None:
    ratios = financial_ratios(build_empty_financial_data(), 2024)

    assert ratios["Gross Profit Margin"] == pct(0)
    assert ratios["Net Profit Margin"] == pct(0)
    assert ratios["Current Ratio"] == pct(0)
    assert ratios["Break-even Revenue"] == money(0)
    assert ratios["Interest Coverage Ratio"] == NO_INTEREST_COVERAGE


def test_margins_from_signed_leaf_totals() -> None:
    data = _data(
        _leaf("sales_revenue", CategoryType.sales_revenue, 1000),
        _leaf("cogs", CategoryType.cogs, -400),
        _leaf("operating_expenses", CategoryType.operating_expenses, -100, subcategory_id="depreciation"),
        _leaf("financial_expenses", CategoryType.financial_expenses, -50),
    )
    ratios = financial_ratios(data, 2024)

    assert ratios["Gross Profit Margin"] == pct(60)
    assert ratios["Operating Profit Margin"] == pct(50)
    # pre-tax 450, tax 112.5, after tax 337.5
    assert ratios["Net Profit Margin"] == pct("33.75")
    assert ratios["EBITDA Margin"] == pct(60)
    assert ratios["COGS as % of Revenue"] == pct(40)
    assert ratios["Interest Coverage Ratio"] == pct(10)
    assert ratios["Monthly Revenue"] == money(Decimal("1000") / 12)
    assert ratios["Break-even Revenue"] == money(Decimal("100") / Decimal("0.6"))


def test_ratios_default_to_first_horizon_year() -> None:
    data = build_sample_financial_data(seed=5)
    assert financial_ratios(data) == financial_ratios(data, 2024)


def test_growth_rates_guard_zero_previous_year() -> None:
    data = build_sample_financial_data(seed=5)
    rates = growth_rates(data)
    # 2029 and 2030 are empty in the sample
    assert rates["sales_revenue"] == pct(0)


def test_growth_rates_between_last_two_years() -> None:
    data = _data(_leaf("sales_revenue", CategoryType.sales_revenue, 0))

    def fill(row: FinancialRow) -> FinancialRow:
        values = [
            replace(item, value=Decimal("100") if item.year == 2024 else Decimal("150")) for item in row.values
        ]
        return replace(row, values=values)

    rates = growth_rates(map_rows(data, fill))
    assert rates["sales_revenue"] == pct(50)
