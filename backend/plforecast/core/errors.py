class FinancialDataError(ValueError):
    """Raised by strict validation, or before storage, when a data tree breaks an engine invariant."""

    def __init__(self, issues: list[str]):
        self.issues = issues
        super().__init__("; ".join(issues) if issues else "Invalid financial data.")


class NotFoundError(LookupError):
    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")
