"""
HTTP tests for the JSON API, using Flask's test client.
"""

from __future__ import annotations

import json
import logging
from io import BytesIO

import pytest
from flask.testing import FlaskClient

from app import create_app
from cashflow.config import PipelineConfig
from cashflow.pipeline import CashFlowPipeline, Ledger


STATEMENT = (
    b"First National Bank\n"
    b"Posting Date,Description,Debit,Credit\n"
    b"01/02/2024,FOOD LION #42,82.17,\n"
    b"01/15/2024,PAYROLL ACME,,2500.00\n"
    b"02/01/2024,RENT PAYMENT,1400.00,\n"
    b"02/09/2024,Acme Corp,35.00,\n"
    b"02/10/2024,TRANSFER,,\n"
)

MAPPING = json.dumps({"credit": "Credit"})


@pytest.fixture
def ledger() -> Ledger:
    return Ledger(pipeline=CashFlowPipeline(PipelineConfig(log_level=logging.WARNING)))


@pytest.fixture
def client(ledger: Ledger) -> FlaskClient:
    app = create_app(ledger)
    app.config["TESTING"] = True
    return app.test_client()


def _upload(client: FlaskClient, path: str, filename: str = "jan.csv", data: bytes = STATEMENT, **form: str):  # noqa: ANN202
    payload = {"file": (BytesIO(data), filename), **form}
    return client.post(path, data=payload, content_type="multipart/form-data")


@pytest.fixture
def imported(client: FlaskClient) -> FlaskClient:
    resp = _upload(client, "/api/import", mapping=MAPPING)
    assert resp.status_code == 200
    return client


# ======================================================================
# Upload
# ======================================================================

class TestUpload:
    def test_health(self, client: FlaskClient) -> None:
        assert client.get("/api/health").get_json()["status"] == "online"

    def test_preview(self, client: FlaskClient) -> None:
        resp = _upload(client, "/api/preview")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["header_detected"] is True
        assert body["headers"] == ["Posting Date", "Description", "Debit", "Credit"]
        assert body["mapping"]["credit"] == "Posting Date"
        assert body["row_count"] == 5

    def test_missing_file(self, client: FlaskClient) -> None:
        resp = client.post("/api/preview", data={}, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_bad_extension(self, client: FlaskClient) -> None:
        resp = _upload(client, "/api/preview", filename="statement.pdf")
        assert resp.status_code == 400
        assert "Invalid file type" in resp.get_json()["error"]

    def test_corrupt_workbook(self, client: FlaskClient) -> None:
        resp = _upload(client, "/api/preview", filename="book.xlsx", data=b"garbage")
        assert resp.status_code == 422

    def test_import(self, client: FlaskClient) -> None:
        resp = _upload(client, "/api/import", mapping=MAPPING, name="jan")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["dataset"] == "jan"
        assert len(body["transactions"]) == 4
        assert body["rejected"] == [{"index": 4, "reason": "empty debit and credit"}]
        assert body["transactions"][0]["amount"] == -82.17
        assert body["transactions"][1]["amount"] == 2500.0

    def test_import_dataset_name_from_filename(self, client: FlaskClient) -> None:
        body = _upload(client, "/api/import", filename="march.csv", mapping=MAPPING).get_json()
        assert body["dataset"] == "march"

    def test_import_bad_mapping(self, client: FlaskClient) -> None:
        resp = _upload(client, "/api/import", mapping=json.dumps({"amount": "Nope"}))
        assert resp.status_code == 400
        assert resp.get_json()["errors"]

    def test_import_mapping_not_json(self, client: FlaskClient) -> None:
        resp = _upload(client, "/api/import", mapping="{oops")
        assert resp.status_code == 400


# ======================================================================
# Ledger views
# ======================================================================

class TestViews:
    def test_transactions(self, imported: FlaskClient) -> None:
        txns = imported.get("/api/transactions").get_json()["transactions"]
        assert [t["id"] for t in txns] == [0, 1, 2, 3]

    def test_csv_export(self, imported: FlaskClient) -> None:
        resp = imported.get("/api/transactions.csv")
        assert resp.mimetype == "text/csv"
        assert resp.get_data(as_text=True).splitlines()[1].startswith("0,2024-01-02,FOOD LION #42,-82.17")

    def test_summary_defaults_to_latest_month(self, imported: FlaskClient) -> None:
        body = imported.get("/api/summary").get_json()
        assert body["month"] == "2024-02"
        assert body["expenses"] == 1435.0

    def test_summary_range(self, imported: FlaskClient) -> None:
        body = imported.get("/api/summary?start=2024-01-01&end=2024-01-31").get_json()
        assert body["income"] == 2500.0
        assert body["count"] == 2

    def test_summary_bad_date(self, imported: FlaskClient) -> None:
        assert imported.get("/api/summary?start=yesterday").status_code == 400

    def test_monthly(self, imported: FlaskClient) -> None:
        body = imported.get("/api/monthly").get_json()
        assert [m["month"] for m in body["monthly"]] == ["2024-01", "2024-02"]
        assert len(body["forecast"]) == 3
        assert all(f["forecast"] for f in body["forecast"])


# ======================================================================
# Re-categorisation
# ======================================================================

class TestRecategorize:
    def test_recategorize(self, imported: FlaskClient, ledger: Ledger) -> None:
        resp = imported.post("/api/transactions/3/category", json={"category": "shopping"})
        assert resp.status_code == 200
        assert resp.get_json()["transaction"]["category"] == "Shopping"
        assert ledger.overrides.get("acme corp") == "Shopping"

    def test_unknown_id(self, imported: FlaskClient) -> None:
        resp = imported.post("/api/transactions/42/category", json={"category": "Travel"})
        assert resp.status_code == 404

    def test_unknown_category(self, imported: FlaskClient) -> None:
        resp = imported.post("/api/transactions/0/category", json={"category": "zzzzqqq"})
        assert resp.status_code == 400

    def test_missing_category(self, imported: FlaskClient) -> None:
        assert imported.post("/api/transactions/0/category", json={}).status_code == 400


# ======================================================================
# Budgets and datasets
# ======================================================================

class TestBudgetsAndDatasets:
    def test_budgets(self, client: FlaskClient) -> None:
        resp = client.put("/api/budgets", json={"groceries": 400})
        assert resp.get_json()["budgets"] == {"Groceries": 400.0}
        assert client.get("/api/budgets").get_json()["budgets"] == {"Groceries": 400.0}

    def test_budgets_bad_payload(self, client: FlaskClient) -> None:
        assert client.put("/api/budgets", json=[1, 2]).status_code == 400
        assert client.put("/api/budgets", json={"Groceries": "lots"}).status_code == 400

    def test_dataset_lifecycle(self, client: FlaskClient) -> None:
        _upload(client, "/api/import", mapping=MAPPING, name="jan")
        listing = client.get("/api/datasets").get_json()
        assert listing["active"] == "jan"
        assert listing["datasets"][0]["name"] == "jan"
        assert listing["datasets"][0]["count"] == 4

        assert client.post("/api/datasets/jan/load").get_json()["count"] == 4
        assert client.delete("/api/datasets/jan").status_code == 200
        assert client.get("/api/datasets").get_json()["datasets"] == []

    def test_unknown_dataset(self, client: FlaskClient) -> None:
        assert client.post("/api/datasets/nope/load").status_code == 404
        assert client.delete("/api/datasets/nope").status_code == 404
