from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class MessageResponse(BaseModel):
    message: str


class DateWindow(BaseModel):
    """Accounts plus an inclusive date range, shared by records, scenarios and overlap checks."""

    account_ids: list[str] = Field(min_length=1)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_window(self) -> "DateWindow":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        return self
