import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plforecast.api.deps import get_db, get_forecast_or_404
from plforecast.core.config import get_settings
from plforecast.schemas.common import MessageResponse
from plforecast.schemas.forecast import (
    FinancialDataSchema,
    ForecastCreateRequest,
    ForecastOut,
    TaxRateRequest,
)
from plforecast.services.financial_data import FinancialData, utcnow
from plforecast.services.persistence import (
    create_forecast,
    delete_forecast,
    list_forecasts,
    load_financial_data,
    load_store,
    save_financial_data,
)
from plforecast.services.seed import build_sample_financial_data
from plforecast.services.store import SetTaxRate


router = APIRouter(prefix="/forecasts", tags=["forecasts"])
logger = logging.getLogger("plforecast.api")


def _data_response(data: FinancialData) -> FinancialDataSchema:
    return FinancialDataSchema.model_validate(data, from_attributes=True)


@router.post("", response_model=ForecastOut, status_code=status.HTTP_201_CREATED)
def create_forecast_endpoint(
    payload: ForecastCreateRequest,
    db: Session = Depends(get_db),
) -> ForecastOut:
    settings = get_settings()
    tax_rate = payload.tax_rate if payload.tax_rate is not None else settings.default_tax_rate
    data = None
    if payload.load_sample:
        data = build_sample_financial_data(seed=payload.sample_seed, tax_rate=tax_rate)
    forecast = create_forecast(db, payload.name, tax_rate=tax_rate, data=data)
    db.commit()
    return ForecastOut.model_validate(forecast)


@router.get("", response_model=list[ForecastOut])
def list_forecasts_endpoint(db: Session = Depends(get_db)) -> list[ForecastOut]:
    return [ForecastOut.model_validate(forecast) for forecast in list_forecasts(db)]


@router.get("/{forecast_id}", response_model=ForecastOut)
def get_forecast_endpoint(forecast_id: int, db: Session = Depends(get_db)) -> ForecastOut:
    return ForecastOut.model_validate(get_forecast_or_404(db, forecast_id))


@router.get("/{forecast_id}/data", response_model=FinancialDataSchema)
def get_forecast_data(forecast_id: int, db: Session = Depends(get_db)) -> FinancialDataSchema:
    get_forecast_or_404(db, forecast_id)
    return _data_response(load_financial_data(db, forecast_id))


@router.put("/{forecast_id}/data", response_model=FinancialDataSchema)
def save_forecast_data(
    forecast_id: int,
    payload: FinancialDataSchema,
    db: Session = Depends(get_db),
) -> FinancialDataSchema:
    get_forecast_or_404(db, forecast_id)
    save_financial_data(db, forecast_id, payload.to_domain(last_updated=utcnow()))
    db.commit()
    return _data_response(load_financial_data(db, forecast_id))


@router.put("/{forecast_id}/tax-rate", response_model=ForecastOut)
def set_tax_rate(
    forecast_id: int,
    payload: TaxRateRequest,
    db: Session = Depends(get_db),
) -> ForecastOut:
    forecast = get_forecast_or_404(db, forecast_id)
    store = load_store(db, forecast_id)
    store.dispatch(SetTaxRate(payload.tax_rate))
    save_financial_data(db, forecast_id, store.data)
    db.commit()
    logger.info("Forecast %s tax rate set to %s.", forecast_id, payload.tax_rate)
    return ForecastOut.model_validate(forecast)


@router.delete("/{forecast_id}", response_model=MessageResponse)
def delete_forecast_endpoint(forecast_id: int, db: Session = Depends(get_db)) -> MessageResponse:
    get_forecast_or_404(db, forecast_id)
    delete_forecast(db, forecast_id)
    db.commit()
    return MessageResponse(message="Forecast deleted.")
