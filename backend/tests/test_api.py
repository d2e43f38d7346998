"""
Tests for the Flask API and the audit store.

Run with: cd backend && python -m pytest tests/ -v
"""

import sys
from pathlib import Path

# Ensure backend directory is on path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd
import pytest

from validators import InvalidInput

# ═══════════════════════════════════════════════════════════════════════════════
# AUDIT STORE TESTS
# ═══════════════════════════════════════════════════════════════════════════════

from database import (
    container_name,
    generate_audit_summary,
    list_audits,
    period_from_token,
    save_audit,
)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "audits.db"


def audit_table(**values):
    return pd.DataFrame(
        {"category": list(values), "note": ["" for _ in values], "value": list(values.values())}
    )


class TestAuditTokens:

    @pytest.mark.parametrize(
        "token, period",
        [("audit_2024-03.rda", "2024-03"), ("audit_2024-03", "2024-03"), ("2024-Q1", "2024-Q1")],
    )
    def test_period_from_token(self, token, period):
        assert period_from_token(token) == period

    def test_container_name(self):
        assert container_name("2024-03") == "audit_2024-03"

    def test_empty_token(self):
        with pytest.raises(InvalidInput):
            period_from_token("")


class TestAuditStore:

    def test_save_returns_container(self, db_path):
        table = audit_table(**{"Tax Computed": 1_000.0})
        assert save_audit(table, "2024-01", db_path=db_path) == "audit_2024-01"
        assert list_audits(db_path=db_path) == ["audit_2024-01"]

    def test_summary_by_period(self, db_path):
        save_audit(audit_table(**{"Tax Computed": 1_000.0, "Penalty": 50.0}), "2024-01", db_path=db_path)
        save_audit(audit_table(**{"Tax Computed": 2_000.0}), "2024-02", db_path=db_path)

        summary = generate_audit_summary(db_path=db_path)
        assert list(summary.columns) == ["2024-01", "2024-02"]
        assert summary.loc["Tax Computed", "2024-01"] == 1_000.0
        assert summary.loc["Tax Computed", "2024-02"] == 2_000.0
        assert summary.loc["Penalty", "2024-01"] == 50.0
        assert pd.isna(summary.loc["Penalty", "2024-02"])

    def test_default_categories_in_order(self, db_path):
        save_audit(audit_table(**{"Interest": 10.0}), "2024-01", db_path=db_path)
        summary = generate_audit_summary(db_path=db_path)
        assert list(summary.index) == [
            "Tax Computed", "Remittance", "Shortfall", "Penalty", "Interest", "Total Shortfall",
        ]

    def test_custom_categories(self, db_path):
        save_audit(audit_table(**{"Levy": 10.0}), "2024-01", db_path=db_path)
        summary = generate_audit_summary(["Levy"], db_path=db_path)
        assert summary.loc["Levy", "2024-01"] == 10.0

    def test_resave_replaces(self, db_path):
        save_audit(audit_table(**{"Tax Computed": 1_000.0}), "2024-01", db_path=db_path)
        save_audit(audit_table(**{"Tax Computed": 1_500.0}), "2024-01", db_path=db_path)
        summary = generate_audit_summary(db_path=db_path)
        assert summary.loc["Tax Computed", "2024-01"] == 1_500.0

    def test_repeated_category_is_blank(self, db_path):
        table = pd.DataFrame({"category": ["Penalty", "Penalty"], "value": [1.0, 2.0]})
        save_audit(table, "2024-01", db_path=db_path)
        assert pd.isna(generate_audit_summary(db_path=db_path).loc["Penalty", "2024-01"])

    def test_nothing_saved(self, db_path):
        with pytest.raises(InvalidInput, match="No audits"):
            generate_audit_summary(db_path=db_path)

    def test_rejects_single_column(self, db_path):
        with pytest.raises(InvalidInput):
            save_audit(pd.DataFrame({"category": ["Penalty"]}), "2024-01", db_path=db_path)

    def test_rejects_non_frame(self, db_path):
        with pytest.raises(InvalidInput):
            save_audit([("Penalty", 1.0)], "2024-01", db_path=db_path)


# ═══════════════════════════════════════════════════════════════════════════════
# API TESTS
# ═══════════════════════════════════════════════════════════════════════════════

from app import app


@pytest.fixture
def client(db_path):
    app.config["TESTING"] = True
    app.config["AUDIT_DB_PATH"] = db_path
    with app.test_client() as client:
        yield client
    app.config["AUDIT_DB_PATH"] = None


class TestHealthAndErrors:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"

    def test_unknown_route(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert "error" in response.get_json()


class TestTaxEndpoints:

    def test_tax_liability_with_bands(self, client):
        response = client.get("/api/tax-liability?taxable_income=381600")
        assert response.status_code == 200
        data = response.get_json()
        assert data["tax_liability"] == 29_976.0
        assert data["period"] == "yearly"
        assert len(data["bands"]) == 2

    def test_tax_liability_requires_income(self, client):
        assert client.get("/api/tax-liability").status_code == 400

    def test_tax_liability_rejects_negative(self, client):
        assert client.get("/api/tax-liability?taxable_income=-5").status_code == 400

    @pytest.mark.parametrize("value", ["inf", "Infinity", "nan"])
    def test_tax_liability_rejects_non_finite(self, client, value):
        response = client.get(f"/api/tax-liability?taxable_income={value}")
        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_tax_liability_rejects_period(self, client):
        response = client.get("/api/tax-liability?taxable_income=100&period=weekly")
        assert response.status_code == 400

    def test_consolidated_relief(self, client):
        response = client.get("/api/consolidated-relief?gross_income=2000000")
        assert response.get_json()["consolidated_relief"] == 600_000

    def test_consolidated_relief_monthly(self, client):
        response = client.get("/api/consolidated-relief?gross_income=3600000&period=Monthly")
        assert response.get_json()["consolidated_relief"] == pytest.approx(756_000)


class TestAssessEndpoint:

    PAYLOAD = {
        "rows": [
            {"employee_id": "E001", "basic_salary": 500000, "housing": 200000, "transport": 150000},
            {"employee_id": "E002", "basic_salary": 300000, "housing": 100000, "transport": None},
        ],
        "earnings_columns": ["basic_salary", "housing", "transport"],
    }

    def test_assess_with_total(self, client):
        response = client.post("/api/assess", json=self.PAYLOAD)
        assert response.status_code == 200
        data = response.get_json()
        assert data["count"] == 2
        rows = data["rows"]
        assert rows[0]["tax_liability"] == pytest.approx(29_976)
        assert rows[-1]["row"] == "Total"
        assert rows[-1]["tax_liability"] == pytest.approx(35_044)
        assert rows[-1]["employee_id"] is None

    def test_assess_without_total(self, client):
        payload = dict(self.PAYLOAD, include_total=False)
        data = client.post("/api/assess", json=payload).get_json()
        assert len(data["rows"]) == data["count"] == 2
        assert all(row.get("row") != "Total" for row in data["rows"])

    @pytest.mark.parametrize("flag", ["false", 0, None, "no"])
    def test_assess_include_total_must_be_boolean(self, client, flag):
        payload = dict(self.PAYLOAD, include_total=flag)
        response = client.post("/api/assess", json=payload)
        assert response.status_code == 400
        assert "include_total" in response.get_json()["error"]

    def test_assess_rent_regime_missing_column(self, client):
        payload = dict(self.PAYLOAD, relief_regime="rent")
        response = client.post("/api/assess", json=payload)
        assert response.status_code == 400
        assert "Rent column" in response.get_json()["error"]

    def test_assess_rejects_bad_regime(self, client):
        payload = dict(self.PAYLOAD, relief_regime="housing")
        assert client.post("/api/assess", json=payload).status_code == 400

    def test_assess_requires_rows(self, client):
        assert client.post("/api/assess", json={"earnings_columns": ["x"]}).status_code == 400

    def test_assess_requires_json_object(self, client):
        assert client.post("/api/assess", data="not json").status_code == 400


class TestRemittanceEndpoints:

    def test_late_fixed_corporate(self, client):
        response = client.get(
            "/api/remittance?unpaid_tax=100000&due_date=2024-01-31"
            "&payment_date=2024-02-01&penalty_policy=fixed"
        )
        data = response.get_json()
        assert response.status_code == 200
        assert data["days_overdue"] == 1
        assert data["total_liability"] == pytest.approx(600_057.53)
        assert data["message"] is None

    def test_on_time(self, client):
        response = client.get(
            "/api/remittance?unpaid_tax=100000&due_date=2024-01-31"
            "&payment_date=2024-01-31&penalty_policy=proportional&employer_class=individual"
        )
        data = response.get_json()
        assert data["on_time"] is True
        assert data["total_liability"] == 100_000

    def test_policy_required(self, client):
        response = client.get(
            "/api/remittance?unpaid_tax=100000&due_date=2024-01-31&payment_date=2024-02-01"
        )
        assert response.status_code == 400
        assert "penalty_policy" in response.get_json()["error"]

    def test_bad_date(self, client):
        response = client.get(
            "/api/remittance?unpaid_tax=100000&due_date=yesterday"
            "&payment_date=2024-02-01&penalty_policy=fixed"
        )
        assert response.status_code == 400

    def test_outstanding_liability_vectorized(self, client):
        response = client.post(
            "/api/outstanding-liability",
            json={"actual_liability": [50000, 60000, 55000], "payment_made": [30000, 45000, 50000]},
        )
        assert response.get_json()["outstanding_liability"] == [20000, 15000, 5000]

    def test_outstanding_liability_overpayment(self, client):
        response = client.post(
            "/api/outstanding-liability", json={"actual_liability": 50000, "payment_made": 60000}
        )
        assert response.status_code == 400
        assert "cannot exceed" in response.get_json()["error"]


class TestWhtAndAuditEndpoints:

    def test_wht_rate(self, client):
        response = client.get("/api/wht-rate/professional_services")
        assert response.get_json()["rate"] == 0.10

    def test_unknown_wht_type(self, client):
        assert client.get("/api/wht-rate/lottery").status_code == 404

    def test_audit_round_trip(self, client):
        rows = [{"category": "Tax Computed", "value": 1000.0}, {"category": "Penalty", "value": 50.0}]
        response = client.post("/api/audits/2024-01", json={"rows": rows})
        assert response.status_code == 201
        assert response.get_json()["saved"] == "audit_2024-01"

        summary = client.get("/api/audits/summary").get_json()
        assert summary["periods"] == ["2024-01"]
        by_category = {row["row"]: row for row in summary["rows"]}
        assert by_category["Tax Computed"]["2024-01"] == 1000.0
        assert by_category["Shortfall"]["2024-01"] is None

    def test_summary_custom_category(self, client):
        client.post("/api/audits/2024-01", json={"rows": [{"category": "Levy", "value": 5.0}]})
        summary = client.get("/api/audits/summary?category=Levy").get_json()
        assert [row["row"] for row in summary["rows"]] == ["Levy"]

    def test_summary_without_audits(self, client):
        response = client.get("/api/audits/summary")
        assert response.status_code == 400
        assert "No audits" in response.get_json()["error"]
