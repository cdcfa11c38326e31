from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Generic, Protocol, TypeVar

from plforecast.models.enums import RecordStatus
from plforecast.services.financial_data import ForecastRecord, ScenarioConfig


class DatedProjection(Protocol):
    id: str
    account_ids: list[str]
    start_date: date
    end_date: date
    status: RecordStatus


T = TypeVar("T", bound=DatedProjection)


@dataclass(frozen=True)
class OverlapResult(Generic[T]):
    has_overlap: bool
    overlapping_items: list[T]
    overlapping_account_ids: list[str]


DateOverlap = OverlapResult[ForecastRecord]
ScenarioOverlap = OverlapResult[ScenarioConfig]


def dates_overlap(start: date, end: date, other_start: date, other_end: date) -> bool:
    """Closed-interval intersection; touching on a boundary day counts."""
    return start <= other_end and end >= other_start


def check_overlap(
    items: Iterable[T],
    account_ids: Sequence[str],
    start: date,
    end: date,
    exclude_id: str | None = None,
) -> OverlapResult[T]:
    wanted = set(account_ids)
    overlapping: list[T] = []
    shared_ids: list[str] = []

    for item in items:
        if exclude_id is not None and item.id == exclude_id:
            continue
        if item.status != RecordStatus.active:
            continue
        if not wanted.intersection(item.account_ids):
            continue
        if not dates_overlap(start, end, item.start_date, item.end_date):
            continue
        overlapping.append(item)
        for account_id in item.account_ids:
            if account_id in wanted and account_id not in shared_ids:
                shared_ids.append(account_id)

    return OverlapResult(
        has_overlap=len(overlapping) > 0,
        overlapping_items=overlapping,
        overlapping_account_ids=shared_ids,
    )


def check_date_overlap(
    records: Iterable[ForecastRecord],
    account_ids: Sequence[str],
    start: date,
    end: date,
    exclude_id: str | None = None,
) -> DateOverlap:
    return check_overlap(records, account_ids, start, end, exclude_id)


def check_scenario_overlap(
    scenarios: Iterable[ScenarioConfig],
    account_ids: Sequence[str],
    start: date,
    end: date,
    exclude_id: str | None = None,
) -> ScenarioOverlap:
    return check_overlap(scenarios, account_ids, start, end, exclude_id)
