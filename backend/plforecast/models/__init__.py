from plforecast.models.enums import (
    BalanceSheetSection,
    CategoryType,
    ForecastMethod,
    RecordStatus,
    ScenarioType,
)
from plforecast.models.forecast import (
    BalanceAccountEntry,
    BalanceValueEntry,
    CategoryEntry,
    Forecast,
    ForecastRecordEntry,
    RowEntry,
    ScenarioEntry,
    SubcategoryEntry,
    ValueEntry,
)

__all__ = [
    "BalanceSheetSection",
    "CategoryType",
    "ForecastMethod",
    "RecordStatus",
    "ScenarioType",
    "Forecast",
    "CategoryEntry",
    "SubcategoryEntry",
    "RowEntry",
    "ValueEntry",
    "BalanceAccountEntry",
    "BalanceValueEntry",
    "ForecastRecordEntry",
    "ScenarioEntry",
]
