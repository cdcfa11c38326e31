"""Formula evaluation for calculated P&L categories.

A formula is a flat string of operands (category types, category ids or the
``taxRate`` literal) joined by ``+ - * /``. Evaluation is strictly left to
right with no precedence and no parentheses, so ``a+b*c`` means ``(a+b)*c``.

Two formulas are special forms:

* ``<x>_subcategories`` sums the category's own rows. Used by categories that
  are flagged calculated but are still backed by user-entered rows.
* ``net_profit_before_tax*taxRate/100`` is clamped to 0 when the pre-tax
  figure is not positive (no tax benefit on a loss).

Lookups that fail resolve to 0 and a zero divisor is treated as 1. Neither
raises; see ``plforecast.services.validation`` for a strict pass.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from plforecast.services.category_index import (
    WHOLE_TOTAL,
    CategoryIndex,
    ValueSelector,
    category_leaf_sum,
)
from plforecast.services.financial_data import Category, FinancialData
from plforecast.utils.decimal_math import ZERO, as_decimal


logger = logging.getLogger("plforecast.formula")

OPERATORS = frozenset({"+", "-", "*", "/"})
TAX_RATE_TOKEN = "taxRate"
TAX_BASE_TOKEN = "net_profit_before_tax"
TAX_FORMULA = "net_profit_before_tax*taxRate/100"
SUBCATEGORY_SUM_FORMULAS = frozenset(
    {
        "revenue_subcategories",
        "cogs_subcategories",
        "operating_expenses_subcategories",
        "other_income_subcategories",
        "financial_expenses_subcategories",
        "other_expenses_subcategories",
    }
)

_TOKEN_RE = re.compile(r"[+\-*/]|\w+")


class FormulaKind(str, enum.Enum):
    expression = "expression"
    subcategory_sum = "subcategory_sum"
    tax = "tax"


@dataclass(frozen=True)
class CategoryRef:
    token: str


@dataclass(frozen=True)
class TaxRateRef:
    pass


Operand = CategoryRef | TaxRateRef


@dataclass(frozen=True)
class FormulaTerm:
    operator: str
    operand: Operand


@dataclass(frozen=True)
class ParsedFormula:
    source: str
    kind: FormulaKind
    terms: tuple[FormulaTerm, ...] = ()

    @property
    def category_tokens(self) -> list[str]:
        return [term.operand.token for term in self.terms if isinstance(term.operand, CategoryRef)]


def parse_formula(text: str) -> ParsedFormula:
    formula = text.strip()
    if formula in SUBCATEGORY_SUM_FORMULAS:
        return ParsedFormula(source=formula, kind=FormulaKind.subcategory_sum)
    if formula == TAX_FORMULA:
        return ParsedFormula(
            source=formula,
            kind=FormulaKind.tax,
            terms=(FormulaTerm("+", CategoryRef(TAX_BASE_TOKEN)),),
        )

    terms: list[FormulaTerm] = []
    operator = "+"
    for token in _TOKEN_RE.findall(formula):
        if token in OPERATORS:
            operator = token
            continue
        operand: Operand = TaxRateRef() if token == TAX_RATE_TOKEN else CategoryRef(token)
        terms.append(FormulaTerm(operator, operand))
    return ParsedFormula(source=formula, kind=FormulaKind.expression, terms=tuple(terms))


def _fold(result: Decimal, operator: str, value: Decimal) -> Decimal:
    if operator == "+":
        return result + value
    if operator == "-":
        return result - value
    if operator == "*":
        return result * value
    # zero divisor divides by one
    return result / (value if value != 0 else Decimal("1"))


class FormulaEvaluator:
    def __init__(self, data: FinancialData, index: CategoryIndex | None = None):
        self.data = data
        self.index = index if index is not None else CategoryIndex.build(data)
        self.tax_rate = as_decimal(data.tax_rate)
        self._parsed: dict[str, ParsedFormula] = {}
        self._resolving: set[str] = set()

    def parsed(self, category: Category) -> ParsedFormula:
        cached = self._parsed.get(category.id)
        if cached is None:
            cached = parse_formula(category.formula or "")
            self._parsed[category.id] = cached
        return cached

    def evaluate(self, category_id: str, selector: ValueSelector = WHOLE_TOTAL) -> Decimal:
        category = self.index.by_id.get(category_id)
        if category is None:
            logger.debug("Unknown category %s evaluates to 0.", category_id)
            return ZERO
        return self.evaluate_category(category, selector)

    def evaluate_category(self, category: Category, selector: ValueSelector = WHOLE_TOTAL) -> Decimal:
        if not category.is_calculated or not category.formula:
            return ZERO
        if not selector.is_monthly and selector.year is not None:
            # a year total is the sum of its months so both modes agree
            return sum((self.evaluate_category(category, month) for month in selector.months()), ZERO)
        if category.id in self._resolving:
            logger.warning("Formula cycle through category %s; contributing 0.", category.id)
            return ZERO

        self._resolving.add(category.id)
        try:
            return self._evaluate_parsed(category, self.parsed(category), selector)
        finally:
            self._resolving.discard(category.id)

    def operand_value(self, category: Category, selector: ValueSelector) -> Decimal:
        if category.is_calculated:
            return self.evaluate_category(category, selector)
        return category_leaf_sum(category, selector)

    def unresolved_tokens(self, category_id: str) -> list[str]:
        category = self.index.by_id.get(category_id)
        if category is None or not category.is_calculated or not category.formula:
            return []
        parsed = self.parsed(category)
        if parsed.kind == FormulaKind.subcategory_sum:
            return []
        return [token for token in parsed.category_tokens if self.index.resolve(token) is None]

    def _evaluate_parsed(self, category: Category, parsed: ParsedFormula, selector: ValueSelector) -> Decimal:
        if parsed.kind == FormulaKind.subcategory_sum:
            return category_leaf_sum(category, selector)

        if parsed.kind == FormulaKind.tax:
            base = self.index.resolve(TAX_BASE_TOKEN)
            if base is None:
                return ZERO
            profit = self.operand_value(base, selector)
            if profit <= 0:
                return ZERO
            return profit * self.tax_rate / Decimal("100")

        result = ZERO
        for term in parsed.terms:
            if isinstance(term.operand, TaxRateRef):
                value = self.tax_rate
            else:
                target = self.index.resolve(term.operand.token)
                if target is None:
                    logger.debug(
                        "Skipping unknown token %r in formula of %s.", term.operand.token, category.id
                    )
                    continue
                value = self.operand_value(target, selector)
            result = _fold(result, term.operator, value)
        return result
