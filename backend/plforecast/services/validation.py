from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from plforecast.core.errors import FinancialDataError
from plforecast.services.category_index import CategoryIndex, type_key
from plforecast.services.financial_data import FinancialData, iter_rows
from plforecast.services.formula import FormulaEvaluator, FormulaKind, TAX_BASE_TOKEN


@dataclass(frozen=True)
class ValidationReport:
    formula_cycles: list[list[str]] = field(default_factory=list)
    unresolved_tokens: dict[str, list[str]] = field(default_factory=dict)
    duplicate_types: list[str] = field(default_factory=list)
    duplicate_values: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not (self.formula_cycles or self.unresolved_tokens or self.duplicate_types or self.duplicate_values)

    @property
    def issues(self) -> list[str]:
        reasons: list[str] = []
        for cycle in self.formula_cycles:
            reasons.append(f"Formula cycle: {' -> '.join(cycle)}.")
        for category_id, tokens in self.unresolved_tokens.items():
            reasons.append(f"Category {category_id} references unknown token(s): {', '.join(tokens)}.")
        for category_type in self.duplicate_types:
            reasons.append(f"More than one category has type {category_type}; the first one is used.")
        for entry in self.duplicate_values:
            reasons.append(f"Duplicate value entry {entry}.")
        return reasons


def _dependencies(evaluator: FormulaEvaluator, index: CategoryIndex) -> dict[str, list[str]]:
    graph: dict[str, list[str]] = {}
    for category in index.by_id.values():
        if not category.is_calculated or not category.formula:
            continue
        parsed = evaluator.parsed(category)
        if parsed.kind == FormulaKind.subcategory_sum:
            tokens: list[str] = []
        elif parsed.kind == FormulaKind.tax:
            tokens = [TAX_BASE_TOKEN]
        else:
            tokens = parsed.category_tokens
        targets = [index.resolve(token) for token in tokens]
        graph[category.id] = [target.id for target in targets if target is not None and target.is_calculated]
    return graph


def find_formula_cycles(data: FinancialData) -> list[list[str]]:
    index = CategoryIndex.build(data)
    graph = _dependencies(FormulaEvaluator(data, index), index)
    cycles: list[list[str]] = []
    state: dict[str, int] = {}  # 1 visiting, 2 done
    stack: list[str] = []

    def visit(node: str) -> None:
        state[node] = 1
        stack.append(node)
        for target in graph.get(node, []):
            if state.get(target) == 1:
                cycles.append(stack[stack.index(target):] + [target])
            elif target not in state:
                visit(target)
        stack.pop()
        state[node] = 2

    for node in graph:
        if node not in state:
            visit(node)
    return cycles


def find_duplicate_values(data: FinancialData) -> list[str]:
    duplicates: list[str] = []
    for row in iter_rows(data):
        counts = Counter((item.year, item.month) for item in row.values)
        duplicates.extend(
            f"{row.id}@{year:04d}-{month:02d}" for (year, month), count in counts.items() if count > 1
        )
    return duplicates


def validate_financial_data(data: FinancialData, *, strict: bool = False) -> ValidationReport:
    index = CategoryIndex.build(data)
    evaluator = FormulaEvaluator(data, index)

    unresolved = {
        category.id: tokens
        for category in data.categories
        if (tokens := evaluator.unresolved_tokens(category.id))
    }
    type_counts = Counter(type_key(category.type) for category in data.categories)
    duplicate_types = [category_type for category_type, count in type_counts.items() if count > 1]

    report = ValidationReport(
        formula_cycles=find_formula_cycles(data),
        unresolved_tokens=unresolved,
        duplicate_types=duplicate_types,
        duplicate_values=find_duplicate_values(data),
    )
    if strict and not report.passed:
        raise FinancialDataError(report.issues)
    return report


def _repeated(keys: list[str]) -> list[str]:
    return [key for key, count in Counter(keys).items() if count > 1]


def find_duplicate_keys(data: FinancialData) -> list[str]:
    """Ids that share a storage scope: categories and accounts per forecast, children per parent."""
    duplicates = [f"category {key}" for key in _repeated([category.id for category in data.categories])]
    for category in data.categories:
        duplicates.extend(
            f"subcategory {category.id}/{key}"
            for key in _repeated([subcategory.id for subcategory in category.subcategories])
        )
        for subcategory in category.subcategories:
            duplicates.extend(
                f"row {subcategory.id}/{key}" for key in _repeated([row.id for row in subcategory.rows])
            )
    accounts = data.balance_sheet_accounts
    duplicates.extend(f"balance sheet account {key}" for key in _repeated([account.id for account in accounts]))
    for account in accounts:
        duplicates.extend(
            f"balance sheet value {account.id}@{key}"
            for key in _repeated([f"{item.year:04d}-{item.month:02d}" for item in account.values])
        )
    return duplicates


def check_storable(data: FinancialData) -> None:
    """Raise ``FinancialDataError`` when ``data`` cannot be written one entry per key."""
    issues = [f"Duplicate {entry}." for entry in find_duplicate_keys(data)]
    issues.extend(f"Duplicate value entry {entry}." for entry in find_duplicate_values(data))
    if issues:
        raise FinancialDataError(issues)
