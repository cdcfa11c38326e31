from datetime import date
from decimal import Decimal

from plforecast.models.enums import BalanceSheetSection, CategoryType
from plforecast.services.financial_data import find_category, find_row, iter_rows
from plforecast.services.seed import build_empty_financial_data, build_sample_financial_data


def test_empty_chart_layout() -> None:
    data = build_empty_financial_data(tax_rate=30)

    assert [category.order for category in data.categories] == list(range(1, 12))
    assert data.tax_rate == Decimal("30")
    assert len(data.forecast_periods) == 84
    assert find_category(data, "net_profit_before_tax").formula == (
        "operating_profit+other_income-financial_expenses-other_expenses"
    )
    opex = find_category(data, "operating_expenses")
    assert len(opex.subcategories) == 7
    assert all(category.is_calculated for category in data.categories)
    assert all(len(row.values) == 84 and row.type == find_category(data, row.category_id).type for row in iter_rows(data))


def test_balance_sheet_accounts_by_section() -> None:
    accounts = build_empty_financial_data().balance_sheet_accounts
    equity = [account.name for account in accounts if account.section == BalanceSheetSection.equity]

    assert len(accounts) == 42
    assert equity[0] == "Share Capital / Owner's Capital"
    assert len({account.id for account in accounts}) == 42


def test_sample_data_is_deterministic_and_signed() -> None:
    first = build_sample_financial_data(seed=21, today=date(2024, 6, 1))
    second = build_sample_financial_data(seed=21, today=date(2024, 6, 1))
    assert first.categories == second.categories

    for row in iter_rows(first):
        january = row.values[0].value
        if row.type == CategoryType.sales_revenue or row.type == CategoryType.other_income:
            assert january > 0, row.id
        else:
            assert january < 0, row.id
        assert all(item.value == 0 for item in row.values[12:])


def test_sample_projection_flags_follow_today() -> None:
    data = build_sample_financial_data(seed=1, today=date(2024, 6, 1))
    rent = find_row(data, "rent")
    assert [item.is_projected for item in rent.values[:12]] == [False] * 6 + [True] * 6
    assert rent.values[0].value == Decimal("-2500")
