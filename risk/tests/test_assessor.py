"""
Unit Tests for the Groq-backed risk assessor

Tests cover:
1. Transaction log construction
2. Response normalization and defaults
3. Unavailability reporting
"""

import json
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from groq import GroqError

from risk.assessor import RiskAssessor, build_transaction_log, normalize_response
from wallet.errors import AssessmentUnavailableError
from wallet.models import RiskLevel, Transaction, TransactionStatus, TransactionType


def failed_attempt(reason="Invalid Voucher Code."):
    return Transaction(
        amount=Decimal("0.00"),
        type=TransactionType.DEPOSIT,
        description="Voucher redemption failed",
        status=TransactionStatus.FAILED,
        metadata={"failure_reason": reason},
    )


def completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def assessor_with(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        client.chat.completions.create.return_value = completion(content)
    return RiskAssessor(api_key="test-key", client=client), client


class TestTransactionLog:
    """Tests for the request payload."""

    def test_rows(self):
        rows = build_transaction_log([failed_attempt()])

        assert rows == [{
            "time": rows[0]["time"],
            "type": "DEPOSIT",
            "amount": 0.0,
            "status": "FAILED",
            "reason": "Invalid Voucher Code.",
        }]

    def test_success_has_no_reason(self):
        tx = Transaction(
            amount=Decimal("492.50"),
            type=TransactionType.DEPOSIT,
            description="Redeemed FNB eWallet",
            status=TransactionStatus.SUCCESS,
        )

        row = build_transaction_log([tx])[0]

        assert row["reason"] is None
        assert row["amount"] == 492.5


class TestNormalizeResponse:
    """Tests for defaulting malformed model output."""

    def test_well_formed(self):
        result = normalize_response({
            "riskScore": 72,
            "riskLevel": "HIGH",
            "analysis": "Velocity attack suspected.",
            "recommendedAction": "Flag for Review",
        })

        assert result.risk_score == 72
        assert result.risk_level == RiskLevel.HIGH
        assert result.recommended_action == "Flag for Review"
        assert result.degraded is False

    def test_missing_fields_default(self):
        result = normalize_response({})

        assert result.risk_score == 0
        assert result.risk_level == RiskLevel.LOW
        assert result.analysis == "No anomalies detected."
        assert result.recommended_action == "None"

    def test_malformed_fields_default(self):
        result = normalize_response({
            "riskScore": "very high",
            "riskLevel": "APOCALYPTIC",
            "analysis": 42,
            "recommendedAction": "",
        })

        assert result.risk_score == 0
        assert result.risk_level == RiskLevel.LOW
        assert result.analysis == "No anomalies detected."
        assert result.recommended_action == "None"

    def test_score_clamped_and_level_case_insensitive(self):
        result = normalize_response({"riskScore": 250, "riskLevel": "critical"})

        assert result.risk_score == 100
        assert result.risk_level == RiskLevel.CRITICAL
        assert result.critical_alert is True

    def test_non_dict(self):
        assert normalize_response(["riskScore", 90]).risk_score == 0


class TestRiskAssessor:
    """Tests for calls to the model."""

    def test_assess(self):
        payload = {"riskScore": 88, "riskLevel": "CRITICAL", "analysis": "Brute force.", "recommendedAction": "Block User"}
        assessor, client = assessor_with(json.dumps(payload))

        result = assessor.assess([failed_attempt()] * 3)

        assert result.risk_level == RiskLevel.CRITICAL
        assert result.risk_score == 88
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        user_message = kwargs["messages"][1]["content"]
        assert "Invalid Voucher Code." in user_message

    def test_json_wrapped_in_prose(self):
        assessor, _ = assessor_with('Here you go: {"riskScore": 15, "riskLevel": "LOW"} thanks')

        result = assessor.assess([])

        assert result.risk_score == 15

    def test_unparseable_answer_defaults(self):
        assessor, _ = assessor_with("{not json}")

        result = assessor.assess([])

        assert result.risk_level == RiskLevel.LOW
        assert result.degraded is False

    def test_empty_answer_is_unavailable(self):
        assessor, _ = assessor_with("")

        with pytest.raises(AssessmentUnavailableError):
            assessor.assess([])

    def test_client_error_is_unavailable(self):
        assessor, _ = assessor_with(error=GroqError("connection reset"))

        with pytest.raises(AssessmentUnavailableError):
            assessor.assess([failed_attempt()])

    def test_without_key(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        monkeypatch.delenv("VOUCHERVAULT_GROQ_API_KEY", raising=False)
        from wallet.config import get_settings
        get_settings.cache_clear()

        assessor = RiskAssessor()

        assert assessor.is_available is False
        with pytest.raises(AssessmentUnavailableError):
            assessor.assess([])
        get_settings.cache_clear()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
