from collections.abc import Generator
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from plforecast.api.deps import get_db
from plforecast.db.base import Base
from plforecast.main import app


def _client() -> TestClient:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    def override_db() -> Generator[Session, None, None]:
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    return TestClient(app)


def _set_january(client: TestClient, forecast_id: int, amounts: dict[str, int]) -> None:
    data = client.get(f"/api/v1/forecasts/{forecast_id}/data").json()
    for category in data["categories"]:
        for subcategory in category["subcategories"]:
            for row in subcategory["rows"]:
                if row["id"] in amounts:
                    row["values"][0]["value"] = amounts[row["id"]]
    response = client.put(f"/api/v1/forecasts/{forecast_id}/data", json=data)
    assert response.status_code == 200


def test_health() -> None:
    client = _client()
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_forecast_lifecycle_and_gross_profit() -> None:
    client = _client()
    created = client.post("/api/v1/forecasts", json={"name": "Plan 2024"})
    assert created.status_code == 201
    forecast_id = created.json()["id"]

    _set_january(client, forecast_id, {"main_product_sales": 1000, "raw_materials": -400})

    total = client.get(
        f"/api/v1/forecasts/{forecast_id}/analytics/category-total",
        params={"category_type": "gross_profit", "year": 2024},
    )
    assert total.status_code == 200
    assert Decimal(str(total.json()["total"])) == Decimal("1400")

    monthly = client.get(f"/api/v1/forecasts/{forecast_id}/analytics/monthly", params={"year": 2024}).json()
    assert Decimal(str(monthly["series"]["gross_profit"][0])) == Decimal("1400")
    assert Decimal(str(monthly["series"]["cogs"][0])) == Decimal("-400")

    ratios = client.get(f"/api/v1/forecasts/{forecast_id}/analytics/ratios").json()
    assert ratios["year"] == 2024
    assert Decimal(str(ratios["ratios"]["Gross Profit Margin"])) == Decimal("60")

    listed = client.get("/api/v1/forecasts").json()
    assert [item["name"] for item in listed] == ["Plan 2024"]

    deleted = client.delete(f"/api/v1/forecasts/{forecast_id}")
    assert deleted.status_code == 200
    assert client.get(f"/api/v1/forecasts/{forecast_id}").status_code == 404


def test_tax_rate_validation_and_update() -> None:
    client = _client()
    forecast_id = client.post("/api/v1/forecasts", json={"name": "Plan"}).json()["id"]

    assert client.put(f"/api/v1/forecasts/{forecast_id}/tax-rate", json={"tax_rate": 150}).status_code == 422
    updated = client.put(f"/api/v1/forecasts/{forecast_id}/tax-rate", json={"tax_rate": 30})
    assert updated.status_code == 200
    assert Decimal(str(updated.json()["tax_rate"])) == Decimal("30")


def test_record_overlap_and_apply() -> None:
    client = _client()
    forecast_id = client.post("/api/v1/forecasts", json={"name": "Plan"}).json()["id"]
    _set_january(client, forecast_id, {"rent": 1000})

    payload = {
        "name": "Rent growth",
        "account_ids": ["rent"],
        "method": "growth_rate",
        "parameters": {"growth_rate": 10},
        "start_date": "2024-02-01",
        "end_date": "2024-04-30",
    }
    created = client.post(f"/api/v1/forecasts/{forecast_id}/records", json=payload)
    assert created.status_code == 201
    record_id = created.json()["id"]

    overlap = client.post(
        f"/api/v1/forecasts/{forecast_id}/records/overlap",
        json={"account_ids": ["rent", "utilities"], "start_date": "2024-04-30", "end_date": "2024-06-30"},
    ).json()
    assert overlap["has_overlap"] is True
    assert overlap["overlapping_account_ids"] == ["rent"]

    excluded = client.post(
        f"/api/v1/forecasts/{forecast_id}/records/overlap",
        json={
            "account_ids": ["rent"],
            "start_date": "2024-02-01",
            "end_date": "2024-04-30",
            "exclude_id": record_id,
        },
    ).json()
    assert excluded["has_overlap"] is False

    applied = client.post(f"/api/v1/forecasts/{forecast_id}/records/{record_id}/apply")
    assert applied.status_code == 200

    data = client.get(f"/api/v1/forecasts/{forecast_id}/data").json()
    opex = next(category for category in data["categories"] if category["id"] == "operating_expenses")
    rent = next(row for sub in opex["subcategories"] for row in sub["rows"] if row["id"] == "rent")
    assert [Decimal(str(item["value"])) for item in rent["values"][:4]] == [
        Decimal("1000"),
        Decimal("1100"),
        Decimal("1210"),
        Decimal("1331"),
    ]
    assert rent["values"][1]["is_projected"] is True

    paused = client.patch(
        f"/api/v1/forecasts/{forecast_id}/records/{record_id}/status", json={"status": "paused"}
    )
    assert paused.json()["status"] == "paused"
    assert client.delete(f"/api/v1/forecasts/{forecast_id}/records/{record_id}").status_code == 200
    assert client.delete(f"/api/v1/forecasts/{forecast_id}/records/{record_id}").status_code == 404


def test_record_payload_validation() -> None:
    client = _client()
    forecast_id = client.post("/api/v1/forecasts", json={"name": "Plan"}).json()["id"]
    base = {
        "name": "Bad",
        "method": "fixed_amount",
        "parameters": {"fixed_amount": 10},
    }

    backwards = {**base, "account_ids": ["rent"], "start_date": "2024-05-01", "end_date": "2024-01-01"}
    empty_accounts = {**base, "account_ids": [], "start_date": "2024-01-01", "end_date": "2024-02-01"}
    assert client.post(f"/api/v1/forecasts/{forecast_id}/records", json=backwards).status_code == 422
    assert client.post(f"/api/v1/forecasts/{forecast_id}/records", json=empty_accounts).status_code == 422


def test_scenario_apply_and_status_rules() -> None:
    client = _client()
    forecast_id = client.post("/api/v1/forecasts", json={"name": "Plan"}).json()["id"]
    payload = {
        "name": "Flat rent",
        "type": "amount",
        "value": 2400,
        "account_ids": ["rent"],
        "start_date": "2024-01-01",
        "end_date": "2024-03-31",
    }

    assert client.post(
        f"/api/v1/forecasts/{forecast_id}/scenarios", json={**payload, "status": "completed"}
    ).status_code == 422

    created = client.post(f"/api/v1/forecasts/{forecast_id}/scenarios", json=payload)
    assert created.status_code == 201
    scenario_id = created.json()["id"]

    overlap = client.post(
        f"/api/v1/forecasts/{forecast_id}/scenarios/overlap",
        json={"account_ids": ["rent"], "start_date": "2024-03-31", "end_date": "2024-05-01"},
    ).json()
    assert overlap["has_overlap"] is True
    assert [item["id"] for item in overlap["overlapping_scenarios"]] == [scenario_id]

    applied = client.post(f"/api/v1/forecasts/{forecast_id}/scenarios/{scenario_id}/apply")
    assert applied.status_code == 200

    totals = client.get(f"/api/v1/forecasts/{forecast_id}/analytics/yearly-totals").json()["totals"]
    assert Decimal(str(totals["operating_expenses"])) == Decimal("7200")


def test_missing_forecast_is_404() -> None:
    client = _client()
    assert client.get("/api/v1/forecasts/999/data").status_code == 404
    assert client.get("/api/v1/forecasts/999/analytics/ratios").status_code == 404
    assert client.post("/api/v1/forecasts/999/records/missing/apply").status_code == 404


def test_sample_forecast_validation_report() -> None:
    client = _client()
    forecast_id = client.post("/api/v1/forecasts", json={"name": "Sample", "load_sample": True}).json()["id"]
    report = client.get(f"/api/v1/forecasts/{forecast_id}/analytics/validation").json()
    assert report["passed"] is True
    growth = client.get(f"/api/v1/forecasts/{forecast_id}/analytics/growth-rates").json()
    assert "sales_revenue" in growth["rates"]


def test_save_rejects_duplicate_entries() -> None:
    client = _client()
    forecast_id = client.post("/api/v1/forecasts", json={"name": "Plan"}).json()["id"]
    data = client.get(f"/api/v1/forecasts/{forecast_id}/data").json()

    row = data["categories"][0]["subcategories"][0]["rows"][0]
    row["values"].append({**row["values"][0], "value": 50})
    response = client.put(f"/api/v1/forecasts/{forecast_id}/data", json=data)
    assert response.status_code == 422
    assert response.json()["issues"] == ["Duplicate value entry main_product_sales@2024-01."]

    data = client.get(f"/api/v1/forecasts/{forecast_id}/data").json()
    data["categories"].append(data["categories"][0])
    response = client.put(f"/api/v1/forecasts/{forecast_id}/data", json=data)
    assert response.status_code == 422
    assert response.json()["issues"] == ["Duplicate category sales_revenue."]

    stored = client.get(f"/api/v1/forecasts/{forecast_id}/data").json()
    assert len(stored["categories"]) == 11
