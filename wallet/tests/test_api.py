"""
API Tests for the wallet HTTP surface

Tests cover:
1. Full redemption over HTTP
2. Error mapping (404 / 409 / 500)
3. Balance, ledger, card and risk endpoints
"""

from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from wallet.api import create_app
from wallet.config import Settings
from wallet.models import RiskAssessment, RiskLevel, Voucher
from wallet.service import DEMO_USER_ID, WalletService


PIN = "123456"


@pytest.fixture
def service():
    return WalletService(settings=Settings(pbkdf2_iterations=1_000), assessor=MagicMock())


@pytest.fixture
def client(service):
    return TestClient(create_app(service=service))


def start(client):
    response = client.post(f"/users/{DEMO_USER_ID}/redemptions")
    assert response.status_code == 201
    return response.json()["workflow_id"]


class TestRedemptionEndpoints:
    """Tests for the redemption flow over HTTP."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_full_redemption(self, client):
        workflow_id = start(client)

        validated = client.post(f"/redemptions/{workflow_id}/code", json={"code": "1234567890"})
        assert validated.status_code == 200
        body = validated.json()
        assert body["state"] == "AWAITING_CONFIRMATION"
        assert Decimal(body["pending"]["net_amount"]) == Decimal("492.50")
        assert "code" not in body["pending"]

        confirmed = client.post(f"/redemptions/{workflow_id}/confirm")
        assert confirmed.json()["state"] == "AWAITING_AUTH"

        completed = client.post(f"/redemptions/{workflow_id}/pin", json={"pin": PIN})
        assert completed.json()["state"] == "COMPLETE"
        assert Decimal(completed.json()["transaction"]["amount"]) == Decimal("492.50")

        balance = client.get(f"/users/{DEMO_USER_ID}/balance").json()
        assert Decimal(balance["current_balance"]) == Decimal("492.50")

        view = client.get(f"/redemptions/{workflow_id}").json()
        assert view["state"] == "COMPLETE"

    def test_user_facing_failure_is_reported_in_body(self, client):
        workflow_id = start(client)

        response = client.post(f"/redemptions/{workflow_id}/code", json={"code": "998877665511"})

        assert response.status_code == 200
        assert response.json()["state"] == "FAILED"
        assert response.json()["error_code"] == "ALREADY_CONSUMED"

    def test_incorrect_pin(self, client):
        workflow_id = start(client)
        client.post(f"/redemptions/{workflow_id}/code", json={"code": "1234567890"})
        client.post(f"/redemptions/{workflow_id}/confirm")

        response = client.post(f"/redemptions/{workflow_id}/pin", json={"pin": "111111"})

        assert response.json()["state"] == "AWAITING_AUTH"
        assert response.json()["error_code"] == "INCORRECT_CREDENTIAL"

    def test_wrong_state_is_conflict(self, client):
        workflow_id = start(client)

        response = client.post(f"/redemptions/{workflow_id}/confirm")

        assert response.status_code == 409

    def test_cancel(self, client):
        workflow_id = start(client)
        client.post(f"/redemptions/{workflow_id}/code", json={"code": "1234567890"})

        response = client.post(f"/redemptions/{workflow_id}/cancel")

        assert response.json()["state"] == "CANCELLED"
        assert client.post(f"/redemptions/{workflow_id}/cancel").status_code == 409

    def test_unknown_workflow(self, client):
        response = client.post(f"/redemptions/{uuid4()}/confirm")

        assert response.status_code == 404

    def test_unknown_user(self, client):
        assert client.post("/users/usr_missing/redemptions").status_code == 404
        assert client.get("/users/usr_missing/balance").status_code == 404

    def test_fatal_configuration_is_server_error(self, client, service):
        service.storage.vouchers.add(Voucher(code="4444444444", amount=Decimal("1.00"), provider="Tiny"))
        workflow_id = start(client)

        response = client.post(f"/redemptions/{workflow_id}/code", json={"code": "4444444444"})

        assert response.status_code == 500
        assert response.json()["error_code"] == "FATAL_CONFIGURATION"


class TestWalletEndpoints:
    """Tests for ledger, card and risk endpoints."""

    def test_ledger(self, client):
        workflow_id = start(client)
        client.post(f"/redemptions/{workflow_id}/code", json={"code": "12a"})

        ledger = client.get(f"/users/{DEMO_USER_ID}/ledger").json()

        assert ledger["total_count"] == 1
        assert ledger["entries"][0]["status"] == "FAILED"
        assert ledger["entries"][0]["metadata"]["error_code"] == "INVALID_FORMAT"

    def test_card_masked(self, client):
        card = client.get(f"/users/{DEMO_USER_ID}/card").json()

        assert card["card_number"].endswith("1928")
        assert card["card_number"].startswith("****")
        assert "cvv" not in card

    def test_risk_assessment(self, client, service):
        service.assessor.assess.return_value = RiskAssessment(
            risk_score=95,
            risk_level=RiskLevel.CRITICAL,
            analysis="Burst of failed vouchers.",
            recommended_action="Block User",
        )

        response = client.post(f"/users/{DEMO_USER_ID}/risk-assessment")

        assert response.status_code == 200
        assert response.json()["risk_level"] == "CRITICAL"
        assert response.json()["critical_alert"] is True

    def test_risk_assessment_degraded(self, client, service):
        service.assessor.assess.side_effect = ConnectionError("down")

        response = client.post(f"/users/{DEMO_USER_ID}/risk-assessment")

        assert response.status_code == 200
        assert response.json()["degraded"] is True
        assert response.json()["recommended_action"] == "Manual Review"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
