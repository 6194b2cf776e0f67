from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from bizpulse.api.app import app
from bizpulse.api.dependencies import get_engine, get_usage_meter
from bizpulse.data.usage import UsageMeter
from bizpulse.engine.core import AnalyticsEngine

NOW = "2024-06-30T12:00:00"


def _sales_payload():
    return [
        {"date": "2024-01-15T00:00:00", "amount": 1000, "customerName": "Alice", "product": "Widget"},
        {"date": "2024-02-15T00:00:00", "amount": 1200, "customerName": "Bob", "customerEmail": "bob@example.com"},
        {"date": "2024-03-15T00:00:00", "amount": 900, "customerName": "Alice"},
        {"date": "2024-04-15T00:00:00", "amount": 1500, "customer_name": "Carol"},
    ]


def _invoice_payload():
    return [
        {"id": "INV1", "customerId": "C1", "amount": 5000,
         "issueDate": "2024-04-21T12:00:00", "dueDate": "2024-05-21T12:00:00"},
        {"id": "INV2", "customerId": "C2", "amount": 800,
         "issueDate": "2024-05-01T00:00:00", "dueDate": "2024-05-31T00:00:00",
         "paidDate": "2024-05-20T00:00:00", "status": "paid"},
    ]


@pytest.fixture
def meter():
    return UsageMeter(default_plan='free')


@pytest.fixture
def client(meter):
    """替换引擎和用量计数器的测试客户端"""
    engine = AnalyticsEngine(clock=lambda: datetime(2024, 6, 30, 12, 0))
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_usage_meter] = lambda: meter
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["name"] == "BizPulse Analytics API"


def test_api_health_check(monkeypatch, tmp_path):
    """测试API健康检查"""
    monkeypatch.setenv("BIZPULSE_CONFIG_PATH", str(tmp_path / "missing.json"))

    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["engine_status"] == "running"


class TestAnalyticsEndpoint:
    """测试分析接口"""

    def test_sales_forecasting(self, client):
        response = client.post("/api/v1/analytics", json={
            "analysisType": "sales_forecasting",
            "userId": "u1",
            "data": _sales_payload(),
            "now": NOW,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "sales_forecasting completed"
        assert body["data"]["analysis_type"] == "sales_forecasting"
        assert [p["predicted"] for p in body["data"]["forecast"]] == pytest.approx([1450, 1570, 1690])

    def test_payment_analysis_takes_invoices(self, client):
        response = client.post("/api/v1/analytics", json={
            "analysisType": "payment_analysis",
            "data": _invoice_payload(),
            "now": NOW,
        })

        assert response.status_code == 200
        overdue = response.json()["data"]["overdue_payments"]
        assert [p["invoice_id"] for p in overdue] == ["INV1"]
        assert overdue[0]["days_past_due"] == 40
        assert overdue[0]["urgency"] == "high"

    def test_unknown_analysis_type(self, client, meter):
        response = client.post("/api/v1/analytics", json={"analysisType": "mind_reading", "userId": "u1"})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["message"] == "Unknown analysis type: mind_reading"
        assert meter.runs_used("u1") == 0

    def test_malformed_record(self, client, meter):
        data = _sales_payload()
        data[1]["amount"] = "lots"
        response = client.post("/api/v1/analytics", json={
            "analysisType": "customer_analysis", "userId": "u1", "data": data
        })

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"][:2] == ["data", 1]
        assert meter.runs_used("u1") == 0

    def test_quota_exceeded(self, client):
        """免费套餐每月 5 次"""
        payload = {"analysisType": "product_performance", "userId": "free-user", "data": _sales_payload()}
        for _ in range(5):
            assert client.post("/api/v1/analytics", json=payload).status_code == 200

        response = client.post("/api/v1/analytics", json=payload)

        assert response.status_code == 429
        assert response.json()["success"] is False

    def test_paid_plan(self, client, meter):
        meter.set_plan("pro-user", "pro")
        payload = {"analysisType": "product_performance", "userId": "pro-user", "data": _sales_payload()}
        for _ in range(6):
            assert client.post("/api/v1/analytics", json=payload).status_code == 200

        assert meter.remaining("pro-user") == 1994


class TestLeadEndpoints:
    """测试线索接口"""

    def test_generate_leads(self, client):
        response = client.post("/api/v1/leads", json={
            "leadType": "overdue_payment_recovery",
            "data": _invoice_payload(),
            "now": NOW,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Generated 1 overdue_payment_recovery leads"
        assert body["data"][0]["id"] == "overdue_INV1"
        assert body["data"][0]["contact"]["email"] is None

    def test_unknown_lead_type(self, client):
        response = client.post("/api/v1/leads", json={"leadType": "cold_calls", "data": []})

        assert response.status_code == 400
        assert response.json()["message"] == "Unknown lead type: cold_calls"

    def test_export_csv(self, client):
        response = client.post("/api/v1/leads/export", json={
            "leadType": "top_customer_upsell",
            "data": _sales_payload(),
            "now": NOW,
        })

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "top_customer_upsell-leads.csv" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("Name,Email,Phone,Type")
        assert len(lines) == 2

    def test_leads_include_actions(self, client):
        response = client.post("/api/v1/leads", json={
            "leadType": "top_customer_upsell",
            "data": _sales_payload(),
            "now": NOW,
        })

        assert response.status_code == 200
        lead = response.json()["data"][0]
        assert lead["contact"]["name"] == "Alice"
        assert lead["actions"] == []

    def test_lead_actions_follow_contact(self, client):
        data = _sales_payload()
        data[2]["customerEmail"] = "alice@example.com"
        response = client.post("/api/v1/leads", json={
            "leadType": "top_customer_upsell",
            "data": data,
            "now": NOW,
        })

        actions = response.json()["data"][0]["actions"]
        assert [a["channel"] for a in actions] == ["email"]
        assert "Exclusive Upgrade Opportunity" in actions[0]["message"]

    def test_failed_run_not_counted(self, client, meter, monkeypatch):
        """引擎出错时归还占用的次数"""
        def _fail(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(AnalyticsEngine, "run_lead_generation", _fail)
        failing = TestClient(app, raise_server_exceptions=False)
        response = failing.post("/api/v1/leads", json={
            "leadType": "top_customer_upsell", "userId": "u1", "data": _sales_payload()
        })

        assert response.status_code == 500
        assert meter.runs_used("u1") == 0
