import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plforecast.api.deps import get_db, get_forecast_or_404
from plforecast.schemas.common import MessageResponse
from plforecast.schemas.forecast import (
    FinancialDataSchema,
    OverlapCheckRequest,
    ScenarioCreateRequest,
    ScenarioOut,
    ScenarioOverlapResponse,
)
from plforecast.services.financial_data import ScenarioConfig, utcnow
from plforecast.services.persistence import (
    delete_scenario,
    get_scenario,
    list_scenarios,
    load_store,
    save_financial_data,
    save_scenario,
)
from plforecast.services.store import ApplyScenario


router = APIRouter(prefix="/forecasts/{forecast_id}/scenarios", tags=["scenarios"])
logger = logging.getLogger("plforecast.api")


def _scenario_out(scenario: ScenarioConfig) -> ScenarioOut:
    return ScenarioOut.model_validate(scenario, from_attributes=True)


def _build_scenario(payload: ScenarioCreateRequest) -> ScenarioConfig:
    return ScenarioConfig(
        id=str(uuid.uuid4()),
        name=payload.name,
        type=payload.type,
        value=payload.value,
        account_ids=list(payload.account_ids),
        start_date=payload.start_date,
        end_date=payload.end_date,
        created_at=utcnow(),
        description=payload.description,
        status=payload.status,
    )


@router.post("", response_model=ScenarioOut, status_code=status.HTTP_201_CREATED)
def create_scenario(
    forecast_id: int,
    payload: ScenarioCreateRequest,
    db: Session = Depends(get_db),
) -> ScenarioOut:
    get_forecast_or_404(db, forecast_id)
    scenario = save_scenario(db, forecast_id, _build_scenario(payload))
    db.commit()
    return _scenario_out(scenario)


@router.get("", response_model=list[ScenarioOut])
def list_scenarios_endpoint(forecast_id: int, db: Session = Depends(get_db)) -> list[ScenarioOut]:
    get_forecast_or_404(db, forecast_id)
    return [_scenario_out(scenario) for scenario in list_scenarios(db, forecast_id)]


@router.post("/overlap", response_model=ScenarioOverlapResponse)
def check_scenario_overlap(
    forecast_id: int,
    payload: OverlapCheckRequest,
    db: Session = Depends(get_db),
) -> ScenarioOverlapResponse:
    get_forecast_or_404(db, forecast_id)
    result = load_store(db, forecast_id).check_scenario_overlap(
        payload.account_ids,
        payload.start_date,
        payload.end_date,
        payload.exclude_id,
    )
    return ScenarioOverlapResponse(
        has_overlap=result.has_overlap,
        overlapping_scenarios=[_scenario_out(scenario) for scenario in result.overlapping_items],
        overlapping_account_ids=result.overlapping_account_ids,
    )


@router.post("/apply", response_model=FinancialDataSchema)
def apply_scenario_config(
    forecast_id: int,
    payload: ScenarioCreateRequest,
    db: Session = Depends(get_db),
) -> FinancialDataSchema:
    get_forecast_or_404(db, forecast_id)
    store = load_store(db, forecast_id)
    data = store.apply_scenario_config(_build_scenario(payload))
    save_financial_data(db, forecast_id, data)
    db.commit()
    return FinancialDataSchema.model_validate(data, from_attributes=True)


@router.post("/{scenario_id}/apply", response_model=FinancialDataSchema)
def apply_scenario(
    forecast_id: int,
    scenario_id: str,
    db: Session = Depends(get_db),
) -> FinancialDataSchema:
    get_forecast_or_404(db, forecast_id)
    get_scenario(db, forecast_id, scenario_id)
    store = load_store(db, forecast_id)
    data = store.dispatch(ApplyScenario(scenario_id)).data
    save_financial_data(db, forecast_id, data)
    db.commit()
    logger.info("Applied scenario %s to forecast %s.", scenario_id, forecast_id)
    return FinancialDataSchema.model_validate(data, from_attributes=True)


@router.delete("/{scenario_id}", response_model=MessageResponse)
def delete_scenario_endpoint(forecast_id: int, scenario_id: str, db: Session = Depends(get_db)) -> MessageResponse:
    get_forecast_or_404(db, forecast_id)
    delete_scenario(db, forecast_id, scenario_id)
    db.commit()
    return MessageResponse(message="Scenario deleted.")
