import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plforecast.api.deps import get_db, get_forecast_or_404
from plforecast.schemas.common import MessageResponse
from plforecast.schemas.forecast import (
    FinancialDataSchema,
    ForecastRecordCreateRequest,
    ForecastRecordOut,
    OverlapCheckRequest,
    RecordOverlapResponse,
    RecordStatusRequest,
)
from plforecast.services.financial_data import ForecastRecord, utcnow
from plforecast.services.persistence import (
    delete_forecast_record,
    get_forecast_record,
    list_forecast_records,
    load_store,
    save_financial_data,
    save_forecast_record,
    update_record_status,
)
from plforecast.services.store import ApplyForecastRecord


router = APIRouter(prefix="/forecasts/{forecast_id}/records", tags=["forecast-records"])
logger = logging.getLogger("plforecast.api")


def _record_out(record: ForecastRecord) -> ForecastRecordOut:
    return ForecastRecordOut.model_validate(record, from_attributes=True)


def _build_record(payload: ForecastRecordCreateRequest) -> ForecastRecord:
    return ForecastRecord(
        id=str(uuid.uuid4()),
        name=payload.name,
        account_ids=list(payload.account_ids),
        method=payload.method,
        parameters=dict(payload.parameters),
        start_date=payload.start_date,
        end_date=payload.end_date,
        created_at=utcnow(),
        status=payload.status,
    )


@router.post("", response_model=ForecastRecordOut, status_code=status.HTTP_201_CREATED)
def create_record(
    forecast_id: int,
    payload: ForecastRecordCreateRequest,
    db: Session = Depends(get_db),
) -> ForecastRecordOut:
    get_forecast_or_404(db, forecast_id)
    record = save_forecast_record(db, forecast_id, _build_record(payload))
    db.commit()
    return _record_out(record)


@router.get("", response_model=list[ForecastRecordOut])
def list_records(forecast_id: int, db: Session = Depends(get_db)) -> list[ForecastRecordOut]:
    get_forecast_or_404(db, forecast_id)
    return [_record_out(record) for record in list_forecast_records(db, forecast_id)]


@router.post("/overlap", response_model=RecordOverlapResponse)
def check_record_overlap(
    forecast_id: int,
    payload: OverlapCheckRequest,
    db: Session = Depends(get_db),
) -> RecordOverlapResponse:
    get_forecast_or_404(db, forecast_id)
    result = load_store(db, forecast_id).check_date_overlap(
        payload.account_ids,
        payload.start_date,
        payload.end_date,
        payload.exclude_id,
    )
    return RecordOverlapResponse(
        has_overlap=result.has_overlap,
        overlapping_records=[_record_out(record) for record in result.overlapping_items],
        overlapping_account_ids=result.overlapping_account_ids,
    )


@router.post("/apply", response_model=FinancialDataSchema)
def apply_record_config(
    forecast_id: int,
    payload: ForecastRecordCreateRequest,
    db: Session = Depends(get_db),
) -> FinancialDataSchema:
    """Project an unsaved configuration onto the stored values."""
    get_forecast_or_404(db, forecast_id)
    store = load_store(db, forecast_id)
    data = store.apply_forecast_config(_build_record(payload))
    save_financial_data(db, forecast_id, data)
    db.commit()
    return FinancialDataSchema.model_validate(data, from_attributes=True)


@router.post("/{record_id}/apply", response_model=FinancialDataSchema)
def apply_record(
    forecast_id: int,
    record_id: str,
    db: Session = Depends(get_db),
) -> FinancialDataSchema:
    get_forecast_or_404(db, forecast_id)
    get_forecast_record(db, forecast_id, record_id)
    store = load_store(db, forecast_id)
    data = store.dispatch(ApplyForecastRecord(record_id)).data
    save_financial_data(db, forecast_id, data)
    db.commit()
    logger.info("Applied forecast record %s to forecast %s.", record_id, forecast_id)
    return FinancialDataSchema.model_validate(data, from_attributes=True)


@router.patch("/{record_id}/status", response_model=ForecastRecordOut)
def set_record_status(
    forecast_id: int,
    record_id: str,
    payload: RecordStatusRequest,
    db: Session = Depends(get_db),
) -> ForecastRecordOut:
    get_forecast_or_404(db, forecast_id)
    record = update_record_status(db, forecast_id, record_id, payload.status)
    db.commit()
    return _record_out(record)


@router.delete("/{record_id}", response_model=MessageResponse)
def delete_record(forecast_id: int, record_id: str, db: Session = Depends(get_db)) -> MessageResponse:
    get_forecast_or_404(db, forecast_id)
    delete_forecast_record(db, forecast_id, record_id)
    db.commit()
    return MessageResponse(message="Forecast record deleted.")
