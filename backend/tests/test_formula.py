from dataclasses import replace
from decimal import Decimal

import pytest

from plforecast.models.enums import CategoryType
from plforecast.services.aggregation import AggregationService
from plforecast.services.category_index import ValueSelector
from plforecast.services.financial_data import (
    Category,
    FinancialData,
    FinancialRow,
    Subcategory,
    create_empty_values,
    generate_forecast_periods,
    utcnow,
)
from plforecast.services.formula import (
    CategoryRef,
    FormulaEvaluator,
    FormulaKind,
    TAX_FORMULA,
    TaxRateRef,
    parse_formula,
)
from plforecast.services.seed import build_sample_financial_data


JAN_2024 = ValueSelector.monthly(0, 2024)


def _leaf(category_id: str, category_type: CategoryType, january: int | str) -> Category:
    values = create_empty_values(2024, 2024)
    values[0] = replace(values[0], value=Decimal(str(january)))
    row = FinancialRow(
        id=f"{category_id}_row",
        name=category_id,
        type=category_type,
        category_id=category_id,
        subcategory_id=f"{category_id}_sub",
        order=1,
        values=values,
    )
    return Category(
        id=category_id,
        name=category_id,
        type=category_type,
        order=1,
        subcategories=[Subcategory(id=f"{category_id}_sub", name=category_id, order=1, rows=[row])],
    )


def _calculated(category_id: str, formula: str, category_type: CategoryType = CategoryType.calculated) -> Category:
    return Category(
        id=category_id,
        name=category_id,
        type=category_type,
        order=99,
        is_expanded=False,
        is_calculated=True,
        formula=formula,
    )


def _data(*categories: Category, tax_rate: str = "25") -> FinancialData:
    return FinancialData(
        categories=list(categories),
        forecast_periods=generate_forecast_periods(2024, 2024),
        last_updated=utcnow(),
        tax_rate=Decimal(tax_rate),
    )


def _gross_profit_data() -> FinancialData:
    return _data(
        _leaf("sales_revenue", CategoryType.sales_revenue, 1000),
        _leaf("cogs", CategoryType.cogs, -400),
        _calculated("gross_profit", "sales_revenue-cogs", CategoryType.gross_profit),
    )


def test_parse_expression_into_operator_terms() -> None:
    parsed = parse_formula("operating_profit+other_income-financial_expenses*taxRate")
    assert parsed.kind == FormulaKind.expression
    assert [term.operator for term in parsed.terms] == ["+", "+", "-", "*"]
    assert parsed.terms[0].operand == CategoryRef("operating_profit")
    assert parsed.terms[3].operand == TaxRateRef()
    assert parsed.category_tokens == ["operating_profit", "other_income", "financial_expenses"]


def test_parse_special_forms() -> None:
    assert parse_formula("revenue_subcategories").kind == FormulaKind.subcategory_sum
    assert parse_formula(TAX_FORMULA).kind == FormulaKind.tax
    assert parse_formula("").terms == ()


def test_formula_is_evaluated_left_to_right() -> None:
    data = _data(
        _leaf("a", CategoryType.other_income, 2),
        _leaf("b", CategoryType.other_expenses, 3),
        _leaf("c", CategoryType.financial_expenses, 4),
        _calculated("result", "a+b*c"),
    )
    assert FormulaEvaluator(data).evaluate("result", JAN_2024) == Decimal("20")


def test_gross_profit_subtracts_signed_cogs() -> None:
    evaluator = FormulaEvaluator(_gross_profit_data())
    assert evaluator.evaluate("gross_profit", JAN_2024) == Decimal("1400")
    assert evaluator.evaluate("gross_profit", ValueSelector.monthly(1, 2024)) == Decimal("0")


@pytest.mark.parametrize("profit", ["-500", "0"])
@pytest.mark.parametrize("tax_rate", ["25", "80"])
def test_tax_is_zero_without_positive_profit(profit: str, tax_rate: str) -> None:
    data = _data(
        _leaf("net_profit_before_tax", CategoryType.net_profit_before_tax, profit),
        _calculated("income_tax_expense", TAX_FORMULA, CategoryType.income_tax_expense),
        tax_rate=tax_rate,
    )
    evaluator = FormulaEvaluator(data)
    assert evaluator.evaluate("income_tax_expense", JAN_2024) == 0
    assert evaluator.evaluate("income_tax_expense") == 0


def test_tax_applies_rate_to_positive_profit() -> None:
    data = _data(
        _leaf("net_profit_before_tax", CategoryType.net_profit_before_tax, 1000),
        _calculated("income_tax_expense", TAX_FORMULA, CategoryType.income_tax_expense),
    )
    assert FormulaEvaluator(data).evaluate("income_tax_expense", JAN_2024) == Decimal("250")


def test_tax_rate_literal_in_expression() -> None:
    data = _data(
        _leaf("sales_revenue", CategoryType.sales_revenue, 1000),
        _calculated("levy", "sales_revenue*taxRate/100"),
        tax_rate="10",
    )
    evaluator = FormulaEvaluator(data)
    # "100" is not a category, so it is skipped and "/" never applies
    assert evaluator.evaluate("levy", JAN_2024) == Decimal("10000")


def test_unknown_tokens_are_skipped_and_keep_pending_operator() -> None:
    data = _data(
        _leaf("sales_revenue", CategoryType.sales_revenue, 1000),
        _leaf("cogs", CategoryType.cogs, -400),
        _calculated("gross_profit", "sales_revenue+missing-cogs", CategoryType.gross_profit),
    )
    evaluator = FormulaEvaluator(data)
    assert evaluator.evaluate("gross_profit", JAN_2024) == Decimal("1400")
    assert evaluator.unresolved_tokens("gross_profit") == ["missing"]


def test_zero_divisor_divides_by_one() -> None:
    data = _data(
        _leaf("sales_revenue", CategoryType.sales_revenue, 1000),
        _leaf("cogs", CategoryType.cogs, 0),
        _calculated("ratio", "sales_revenue/cogs"),
    )
    assert FormulaEvaluator(data).evaluate("ratio", JAN_2024) == Decimal("1000")


def test_type_match_wins_over_id_match() -> None:
    data = _data(
        _leaf("cogs", CategoryType.other_expenses, 50),
        _leaf("direct_costs", CategoryType.cogs, -400),
        _leaf("sales_revenue", CategoryType.sales_revenue, 1000),
        _calculated("gross_profit", "sales_revenue-cogs", CategoryType.gross_profit),
    )
    assert FormulaEvaluator(data).evaluate("gross_profit", JAN_2024) == Decimal("1400")


def test_first_category_of_a_type_wins() -> None:
    data = _data(
        _leaf("revenue_a", CategoryType.sales_revenue, 1000),
        _leaf("revenue_b", CategoryType.sales_revenue, 7000),
        _calculated("copy", "sales_revenue"),
    )
    assert FormulaEvaluator(data).evaluate("copy", JAN_2024) == Decimal("1000")


def test_formula_cycle_contributes_zero() -> None:
    data = _data(
        _leaf("sales_revenue", CategoryType.sales_revenue, 1000),
        _calculated("first", "sales_revenue+second"),
        _calculated("second", "first"),
    )
    evaluator = FormulaEvaluator(data)
    assert evaluator.evaluate("first", JAN_2024) == Decimal("1000")


def test_unknown_category_and_leaf_categories_evaluate_to_zero() -> None:
    evaluator = FormulaEvaluator(_gross_profit_data())
    assert evaluator.evaluate("does_not_exist", JAN_2024) == 0
    assert evaluator.evaluate("sales_revenue", JAN_2024) == 0


def test_parsed_formula_is_cached_per_category() -> None:
    data = _gross_profit_data()
    evaluator = FormulaEvaluator(data)
    category = data.categories[2]
    assert evaluator.parsed(category) is evaluator.parsed(category)


def test_monthly_results_sum_to_the_yearly_total() -> None:
    data = build_sample_financial_data(seed=7)
    service = AggregationService(data)
    for category in data.categories:
        if not category.is_calculated:
            continue
        monthly = sum(
            (service.category_monthly_value(category.id, index, 2024) for index in range(12)),
            Decimal("0"),
        )
        assert monthly == service.category_total(category.id, 2024), category.id
