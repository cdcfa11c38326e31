from __future__ import annotations

import math
import random
from datetime import date
from decimal import Decimal

from plforecast.models.enums import BalanceSheetSection, CategoryType
from plforecast.services.financial_data import (
    HORIZON_END_YEAR,
    HORIZON_START_YEAR,
    BalanceSheetAccount,
    Category,
    FinancialData,
    FinancialRow,
    FinancialValue,
    Subcategory,
    create_empty_values,
    generate_forecast_periods,
    map_rows,
    utcnow,
)
from plforecast.utils.decimal_math import as_decimal, whole


# (category id, name, type, is_expanded, formula, [(subcategory id, name, [(row id, name)])])
STANDARD_CHART: list[tuple[str, str, CategoryType, bool, str, list[tuple[str, str, list[tuple[str, str]]]]]] = [
    (
        "sales_revenue",
        "1. Sales Revenue",
        CategoryType.sales_revenue,
        True,
        "revenue_subcategories",
        [
            ("product_sales", "Product Sales", [("main_product_sales", "Main Product Line")]),
            ("service_revenue", "Service Revenue", [("consulting_services", "Consulting Services")]),
        ],
    ),
    (
        "cogs",
        "2. Cost of Goods Sold",
        CategoryType.cogs,
        True,
        "cogs_subcategories",
        [
            ("direct_materials", "Direct Materials", [("raw_materials", "Raw Materials")]),
            ("direct_labor", "Direct Labor", [("production_wages", "Production Wages")]),
        ],
    ),
    ("gross_profit", "Gross Profit", CategoryType.gross_profit, False, "sales_revenue-cogs", []),
    (
        "operating_expenses",
        "3. Operating Expenses",
        CategoryType.operating_expenses,
        True,
        "operating_expenses_subcategories",
        [
            ("staff_costs", "3.1 Staff Costs", [("salaries_wages", "Salaries & Wages"), ("superannuation", "Superannuation")]),
            ("premises_expenses", "3.2 Premises Expenses", [("rent", "Rent"), ("utilities", "Utilities")]),
            ("office_admin", "3.3 Office & Administrative", [("office_supplies", "Office Supplies"), ("it_costs", "IT & Software")]),
            ("marketing", "3.4 Marketing & Advertising", [("digital_marketing", "Digital Marketing"), ("advertising", "Advertising")]),
            ("travel_vehicle", "3.5 Travel & Vehicle", [("vehicle_expenses", "Vehicle Expenses"), ("travel_expenses", "Travel Expenses")]),
            (
                "depreciation",
                "3.6 Depreciation & Amortisation",
                [("depreciation_expense", "Depreciation Expense"), ("amortisation_expense", "Amortisation Expense")],
            ),
            ("other_operating", "3.7 Other Operating Expenses", [("professional_fees", "Professional Fees"), ("insurance", "Insurance")]),
        ],
    ),
    (
        "operating_profit",
        "4. Operating Profit (EBIT)",
        CategoryType.operating_profit,
        False,
        "gross_profit-operating_expenses",
        [],
    ),
    (
        "other_income",
        "5. Other Income",
        CategoryType.other_income,
        True,
        "other_income_subcategories",
        [
            ("investment_income", "5.1 Investment Income", [("interest_income", "Interest Income"), ("dividend_income", "Dividend Income")]),
            ("other_income_items", "5.2 Other Income Items", [("foreign_exchange_gain", "Foreign Exchange Gain")]),
        ],
    ),
    (
        "financial_expenses",
        "6. Financial Expenses",
        CategoryType.financial_expenses,
        True,
        "financial_expenses_subcategories",
        [("interest_expenses", "6.1 Interest Expenses", [("loan_interest", "Loan Interest"), ("bank_charges", "Bank Charges")])],
    ),
    (
        "other_expenses",
        "7. Other Expenses",
        CategoryType.other_expenses,
        True,
        "other_expenses_subcategories",
        [
            ("extraordinary_items", "7.1 Extraordinary Items", [("litigation_expense", "Litigation Expense")]),
            ("tax_penalties", "7.2 Tax & Penalties", [("tax_penalty", "Tax Penalties")]),
        ],
    ),
    (
        "net_profit_before_tax",
        "8. Net Profit Before Tax",
        CategoryType.net_profit_before_tax,
        False,
        "operating_profit+other_income-financial_expenses-other_expenses",
        [],
    ),
    (
        "income_tax_expense",
        "9. Income Tax Expense",
        CategoryType.income_tax_expense,
        False,
        "net_profit_before_tax*taxRate/100",
        [],
    ),
    (
        "net_profit_after_tax",
        "10. Net Profit After Tax",
        CategoryType.net_profit_after_tax,
        False,
        "net_profit_before_tax-income_tax_expense",
        [],
    ),
]

BALANCE_SHEET_ACCOUNTS: list[tuple[str, BalanceSheetSection]] = [
    ("Cash on Hand", BalanceSheetSection.current_assets),
    ("Bank Accounts", BalanceSheetSection.current_assets),
    ("Petty Cash", BalanceSheetSection.current_assets),
    ("Accounts Receivable", BalanceSheetSection.current_assets),
    ("Allowance for Doubtful Debts (negative)", BalanceSheetSection.current_assets),
    ("Inventory - Raw Materials", BalanceSheetSection.current_assets),
    ("Inventory - Finished Goods", BalanceSheetSection.current_assets),
    ("Prepaid Expenses", BalanceSheetSection.current_assets),
    ("Short-Term Investments", BalanceSheetSection.current_assets),
    ("GST Receivable", BalanceSheetSection.current_assets),
    ("Other Current Assets", BalanceSheetSection.current_assets),
    ("Land", BalanceSheetSection.non_current_assets),
    ("Buildings", BalanceSheetSection.non_current_assets),
    ("Furniture & Fixtures", BalanceSheetSection.non_current_assets),
    ("Office Equipment", BalanceSheetSection.non_current_assets),
    ("Vehicles", BalanceSheetSection.non_current_assets),
    ("Accumulated Depreciation (negative)", BalanceSheetSection.non_current_assets),
    ("Intangible Assets (e.g., Software, Patents)", BalanceSheetSection.non_current_assets),
    ("Long-Term Investments", BalanceSheetSection.non_current_assets),
    ("Deferred Tax Assets", BalanceSheetSection.non_current_assets),
    ("Other Non-Current Assets", BalanceSheetSection.non_current_assets),
    ("Accounts Payable", BalanceSheetSection.current_liabilities),
    ("Wages Payable", BalanceSheetSection.current_liabilities),
    ("Superannuation Payable", BalanceSheetSection.current_liabilities),
    ("GST Payable", BalanceSheetSection.current_liabilities),
    ("PAYG Withholding Payable", BalanceSheetSection.current_liabilities),
    ("Accrued Expenses", BalanceSheetSection.current_liabilities),
    ("Short-Term Loans / Bank Overdraft", BalanceSheetSection.current_liabilities),
    ("Customer Deposits / Unearned Revenue", BalanceSheetSection.current_liabilities),
    ("Current Portion of Long-Term Debt", BalanceSheetSection.current_liabilities),
    ("Other Current Liabilities", BalanceSheetSection.current_liabilities),
    ("Long-Term Loans / Borrowings", BalanceSheetSection.non_current_liabilities),
    ("Lease Liabilities", BalanceSheetSection.non_current_liabilities),
    ("Bonds Payable", BalanceSheetSection.non_current_liabilities),
    ("Provisions for Employee Benefits", BalanceSheetSection.non_current_liabilities),
    ("Deferred Tax Liabilities", BalanceSheetSection.non_current_liabilities),
    ("Other Non-Current Liabilities", BalanceSheetSection.non_current_liabilities),
    ("Share Capital / Owner's Capital", BalanceSheetSection.equity),
    ("Additional Paid-In Capital", BalanceSheetSection.equity),
    ("Retained Earnings", BalanceSheetSection.equity),
    ("Current Year Profit / (Loss)", BalanceSheetSection.equity),
    ("Reserves (General, Revaluation, etc.)", BalanceSheetSection.equity),
]


def build_balance_sheet_accounts(
    start_year: int = HORIZON_START_YEAR,
    end_year: int = HORIZON_END_YEAR,
) -> list[BalanceSheetAccount]:
    return [
        BalanceSheetAccount(
            id=f"bs_{section.value}_{index}",
            name=name,
            section=section,
            order=index + 1,
            values=create_empty_values(start_year, end_year),
        )
        for index, (name, section) in enumerate(BALANCE_SHEET_ACCOUNTS)
    ]


def build_standard_categories(
    start_year: int = HORIZON_START_YEAR,
    end_year: int = HORIZON_END_YEAR,
) -> list[Category]:
    categories: list[Category] = []
    for order, (category_id, name, category_type, expanded, formula, subcategories) in enumerate(STANDARD_CHART, 1):
        categories.append(
            Category(
                id=category_id,
                name=name,
                type=category_type,
                order=order,
                is_expanded=expanded,
                is_calculated=True,
                formula=formula,
                subcategories=[
                    Subcategory(
                        id=sub_id,
                        name=sub_name,
                        order=sub_order,
                        rows=[
                            FinancialRow(
                                id=row_id,
                                name=row_name,
                                type=category_type,
                                category_id=category_id,
                                subcategory_id=sub_id,
                                order=row_order,
                                values=create_empty_values(start_year, end_year),
                            )
                            for row_order, (row_id, row_name) in enumerate(rows, 1)
                        ],
                    )
                    for sub_order, (sub_id, sub_name, rows) in enumerate(subcategories, 1)
                ],
            )
        )
    return categories


def build_empty_financial_data(
    tax_rate: Decimal | int | float | str = 25,
    target_income: Decimal | int | float | str = 0,
    *,
    start_year: int = HORIZON_START_YEAR,
    end_year: int = HORIZON_END_YEAR,
) -> FinancialData:
    return FinancialData(
        categories=build_standard_categories(start_year, end_year),
        forecast_periods=generate_forecast_periods(start_year, end_year),
        last_updated=utcnow(),
        tax_rate=as_decimal(tax_rate),
        target_income=as_decimal(target_income),
        balance_sheet_accounts=build_balance_sheet_accounts(start_year, end_year),
    )


def _sample_amount(rng: random.Random, row: FinancialRow, month: int) -> float:
    seasonality = 1 + 0.1 * math.sin(((month - 1) * math.pi) / 6)
    revenue = (15000 + month * 800) * seasonality

    if row.type == CategoryType.sales_revenue:
        return revenue + (rng.random() * 2000 - 1000)
    if row.type == CategoryType.cogs:
        if "Materials" in row.name:
            return -(revenue * 0.25 + rng.random() * 500)
        if "Labor" in row.name or "Wages" in row.name:
            return -(revenue * 0.15 + rng.random() * 300)
        return -(revenue * 0.1 + rng.random() * 200)
    if row.type == CategoryType.operating_expenses:
        subcategory = row.subcategory_id
        if subcategory == "staff_costs":
            if "Salaries" in row.name:
                return -(8000 + month * 100 + rng.random() * 1000)
            return -(800 + month * 10 + rng.random() * 100)
        if subcategory == "premises_expenses":
            return -2500 if "Rent" in row.name else -(300 + rng.random() * 100)
        if subcategory == "office_admin":
            return -(500 + month * 25 + rng.random() * 200)
        if subcategory == "marketing":
            return -(1000 + month * 50 + rng.random() * 500)
        if subcategory == "travel_vehicle":
            return -(200 + rng.random() * 100)
        if subcategory == "depreciation":
            return -(400 + rng.random() * 50)
        if subcategory == "other_operating":
            return -(300 + rng.random() * 150)
        return -(150 + rng.random() * 75)
    if row.type == CategoryType.other_income:
        return 100 + rng.random() * 300
    if row.type == CategoryType.financial_expenses:
        return -(150 + rng.random() * 50)
    if row.type == CategoryType.other_expenses:
        return -(50 + rng.random() * 25)
    return 0.0


def build_sample_financial_data(
    *,
    seed: int = 2024,
    sample_year: int = HORIZON_START_YEAR,
    today: date | None = None,
    tax_rate: Decimal | int | float | str = 25,
) -> FinancialData:
    """Standard chart with one year of plausible values.

    Costs are stored negative. Months after ``today``'s month are flagged as
    projected.
    """
    rng = random.Random(seed)
    current_month = (today or date.today()).month
    data = build_empty_financial_data(tax_rate=tax_rate)

    def fill(row: FinancialRow) -> FinancialRow:
        values: list[FinancialValue] = []
        for item in row.values:
            if item.year != sample_year:
                values.append(item)
                continue
            amount = whole(_sample_amount(rng, row, item.month))
            values.append(
                FinancialValue(
                    value=amount,
                    year=item.year,
                    month=item.month,
                    date=item.date,
                    is_projected=item.month > current_month,
                )
            )
        return FinancialRow(
            id=row.id,
            name=row.name,
            type=row.type,
            category_id=row.category_id,
            subcategory_id=row.subcategory_id,
            order=row.order,
            values=values,
        )

    return map_rows(data, fill)
