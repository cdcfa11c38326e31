import enum


class CategoryType(str, enum.Enum):
    sales_revenue = "sales_revenue"
    cogs = "cogs"
    gross_profit = "gross_profit"
    operating_expenses = "operating_expenses"
    operating_profit = "operating_profit"
    other_income = "other_income"
    financial_expenses = "financial_expenses"
    other_expenses = "other_expenses"
    net_profit_before_tax = "net_profit_before_tax"
    income_tax_expense = "income_tax_expense"
    net_profit_after_tax = "net_profit_after_tax"
    calculated = "calculated"


class BalanceSheetSection(str, enum.Enum):
    current_assets = "current_assets"
    non_current_assets = "non_current_assets"
    current_liabilities = "current_liabilities"
    non_current_liabilities = "non_current_liabilities"
    equity = "equity"


class ForecastMethod(str, enum.Enum):
    growth_rate = "growth_rate"
    fixed_amount = "fixed_amount"
    # stored for compatibility, applying them is a no-op
    linear_trend = "linear_trend"
    exponential_smoothing = "exponential_smoothing"
    seasonal = "seasonal"
    percentage_of_revenue = "percentage_of_revenue"
    arima = "arima"
    monte_carlo = "monte_carlo"
    machine_learning = "machine_learning"
    polynomial_regression = "polynomial_regression"
    seasonal_decomposition = "seasonal_decomposition"
    holt_winters = "holt_winters"


class ScenarioType(str, enum.Enum):
    percentage = "percentage"
    amount = "amount"


class RecordStatus(str, enum.Enum):
    active = "active"
    paused = "paused"
    completed = "completed"
