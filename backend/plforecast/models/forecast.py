from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plforecast.db.base import Base
from plforecast.models.enums import (
    BalanceSheetSection,
    CategoryType,
    ForecastMethod,
    RecordStatus,
    ScenarioType,
)


class Forecast(Base):
    __tablename__ = "forecasts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(8, 4), default=25, nullable=False)
    target_income: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    categories: Mapped[list["CategoryEntry"]] = relationship(
        "CategoryEntry",
        back_populates="forecast",
        cascade="all, delete-orphan",
        order_by="CategoryEntry.position",
    )
    balance_accounts: Mapped[list["BalanceAccountEntry"]] = relationship(
        "BalanceAccountEntry",
        back_populates="forecast",
        cascade="all, delete-orphan",
        order_by="BalanceAccountEntry.position",
    )
    records: Mapped[list["ForecastRecordEntry"]] = relationship(
        "ForecastRecordEntry", back_populates="forecast", cascade="all, delete-orphan"
    )
    scenarios: Mapped[list["ScenarioEntry"]] = relationship(
        "ScenarioEntry", back_populates="forecast", cascade="all, delete-orphan"
    )


class CategoryEntry(Base):
    __tablename__ = "forecast_categories"
    __table_args__ = (UniqueConstraint("forecast_id", "key", name="uq_categories_forecast_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    forecast_id: Mapped[int] = mapped_column(
        ForeignKey("forecasts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[CategoryType] = mapped_column(Enum(CategoryType, name="category_type"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_expanded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_calculated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    formula: Mapped[str | None] = mapped_column(Text, nullable=True)

    forecast: Mapped["Forecast"] = relationship("Forecast", back_populates="categories")
    subcategories: Mapped[list["SubcategoryEntry"]] = relationship(
        "SubcategoryEntry",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="SubcategoryEntry.position",
    )


class SubcategoryEntry(Base):
    __tablename__ = "forecast_subcategories"
    __table_args__ = (UniqueConstraint("category_id", "key", name="uq_subcategories_category_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("forecast_categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    category: Mapped["CategoryEntry"] = relationship("CategoryEntry", back_populates="subcategories")
    rows: Mapped[list["RowEntry"]] = relationship(
        "RowEntry",
        back_populates="subcategory",
        cascade="all, delete-orphan",
        order_by="RowEntry.position",
    )


class RowEntry(Base):
    __tablename__ = "forecast_rows"
    __table_args__ = (UniqueConstraint("subcategory_id", "key", name="uq_rows_subcategory_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    subcategory_id: Mapped[int] = mapped_column(
        ForeignKey("forecast_subcategories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[CategoryType] = mapped_column(Enum(CategoryType, name="category_type"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    subcategory: Mapped["SubcategoryEntry"] = relationship("SubcategoryEntry", back_populates="rows")
    values: Mapped[list["ValueEntry"]] = relationship(
        "ValueEntry", back_populates="row", cascade="all, delete-orphan"
    )


class ValueEntry(Base):
    __tablename__ = "forecast_values"
    __table_args__ = (UniqueConstraint("row_id", "year", "month", name="uq_values_row_year_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    row_id: Mapped[int] = mapped_column(
        ForeignKey("forecast_rows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(24, 2), nullable=False, default=0)
    is_projected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    row: Mapped["RowEntry"] = relationship("RowEntry", back_populates="values")


class BalanceAccountEntry(Base):
    __tablename__ = "balance_sheet_accounts"
    __table_args__ = (UniqueConstraint("forecast_id", "key", name="uq_balance_accounts_forecast_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    forecast_id: Mapped[int] = mapped_column(
        ForeignKey("forecasts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    section: Mapped[BalanceSheetSection] = mapped_column(
        Enum(BalanceSheetSection, name="balance_sheet_section"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    forecast: Mapped["Forecast"] = relationship("Forecast", back_populates="balance_accounts")
    values: Mapped[list["BalanceValueEntry"]] = relationship(
        "BalanceValueEntry", back_populates="account", cascade="all, delete-orphan"
    )


class BalanceValueEntry(Base):
    __tablename__ = "balance_sheet_values"
    __table_args__ = (
        UniqueConstraint("account_id", "year", "month", name="uq_balance_values_account_year_month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("balance_sheet_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(24, 2), nullable=False, default=0)
    is_projected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    account: Mapped["BalanceAccountEntry"] = relationship("BalanceAccountEntry", back_populates="values")


class ForecastRecordEntry(Base):
    __tablename__ = "forecast_records"
    __table_args__ = (UniqueConstraint("forecast_id", "key", name="uq_records_forecast_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    forecast_id: Mapped[int] = mapped_column(
        ForeignKey("forecasts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    method: Mapped[ForecastMethod] = mapped_column(Enum(ForecastMethod, name="forecast_method"), nullable=False)
    parameters: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[RecordStatus] = mapped_column(
        Enum(RecordStatus, name="record_status"), nullable=False, default=RecordStatus.active
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    forecast: Mapped["Forecast"] = relationship("Forecast", back_populates="records")


class ScenarioEntry(Base):
    __tablename__ = "forecast_scenarios"
    __table_args__ = (UniqueConstraint("forecast_id", "key", name="uq_scenarios_forecast_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    forecast_id: Mapped[int] = mapped_column(
        ForeignKey("forecasts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[ScenarioType] = mapped_column(Enum(ScenarioType, name="scenario_type"), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(24, 4), nullable=False)
    account_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[RecordStatus] = mapped_column(
        Enum(RecordStatus, name="record_status"), nullable=False, default=RecordStatus.active
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    forecast: Mapped["Forecast"] = relationship("Forecast", back_populates="scenarios")
