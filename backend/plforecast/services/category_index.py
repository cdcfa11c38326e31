from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from plforecast.services.financial_data import (
    Category,
    FinancialData,
    FinancialRow,
    FinancialValue,
    Subcategory,
)
from plforecast.utils.decimal_math import ZERO, as_decimal


@dataclass(frozen=True)
class ValueSelector:
    """Which slice of a row's values a computation reads.

    ``month_index`` is zero-based (0 = January). Without a month the selector
    is a whole total, optionally narrowed to one ``year``.
    """

    month_index: int | None = None
    year: int | None = None

    @classmethod
    def whole_total(cls, year: int | None = None) -> ValueSelector:
        return cls(month_index=None, year=year)

    @classmethod
    def monthly(cls, month_index: int, year: int) -> ValueSelector:
        return cls(month_index=month_index, year=year)

    @property
    def is_monthly(self) -> bool:
        return self.month_index is not None

    def matches(self, value: FinancialValue) -> bool:
        if self.year is not None and value.year != self.year:
            return False
        if self.month_index is not None and value.month != self.month_index + 1:
            return False
        return True

    def months(self) -> list[ValueSelector]:
        if self.is_monthly or self.year is None:
            return [self]
        return [ValueSelector.monthly(index, self.year) for index in range(12)]


WHOLE_TOTAL = ValueSelector.whole_total()


def type_key(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def row_sum(row: FinancialRow, selector: ValueSelector = WHOLE_TOTAL) -> Decimal:
    return sum((as_decimal(item.value) for item in row.values if selector.matches(item)), ZERO)


def subcategory_sum(subcategory: Subcategory, selector: ValueSelector = WHOLE_TOTAL) -> Decimal:
    return sum((row_sum(row, selector) for row in subcategory.rows), ZERO)


def category_leaf_sum(category: Category, selector: ValueSelector = WHOLE_TOTAL) -> Decimal:
    return sum((subcategory_sum(sub, selector) for sub in category.subcategories), ZERO)


@dataclass
class CategoryIndex:
    """Lookups for one data snapshot. First category in traversal order wins."""

    by_id: dict[str, Category] = field(default_factory=dict)
    by_type: dict[str, Category] = field(default_factory=dict)
    subcategories: dict[str, Subcategory] = field(default_factory=dict)
    rows: dict[str, FinancialRow] = field(default_factory=dict)

    @classmethod
    def build(cls, data: FinancialData) -> CategoryIndex:
        index = cls()
        for category in data.categories:
            index.by_id.setdefault(category.id, category)
            index.by_type.setdefault(type_key(category.type), category)
            for subcategory in category.subcategories:
                index.subcategories.setdefault(subcategory.id, subcategory)
                for row in subcategory.rows:
                    index.rows.setdefault(row.id, row)
        return index

    def resolve(self, token: str) -> Category | None:
        category = self.by_type.get(token)
        if category is None:
            category = self.by_id.get(token)
        return category
