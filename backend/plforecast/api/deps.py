from collections.abc import Generator

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from plforecast.core.errors import NotFoundError
from plforecast.db.session import SessionLocal
from plforecast.models.forecast import Forecast
from plforecast.services.persistence import get_forecast


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_forecast_or_404(db: Session, forecast_id: int) -> Forecast:
    try:
        return get_forecast(db, forecast_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Forecast not found.") from None
