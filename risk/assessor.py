import json
import logging
import re
from typing import Any, Iterable, Optional

from groq import Groq, GroqError

from wallet.config import get_settings
from wallet.errors import AssessmentUnavailableError
from wallet.models import RiskAssessment, RiskLevel, Transaction

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Act as a Senior Financial Fraud Analyst for a South African remittance app.
Analyze the transaction log (JSON) you are given for suspicious activity.

Specific risk indicators to look for:
1. Velocity attacks: multiple failed voucher attempts in short succession (brute force).
2. Replay attacks: attempts to use previously successful vouchers again.
3. Smurfing: many small deposits just under reportable limits.

Return a JSON response (strictly valid JSON) with this schema:
{
    "riskScore": number (0-100),
    "riskLevel": "LOW" | "MEDIUM" | "HIGH" | "CRITICAL",
    "analysis": "A concise paragraph explaining the findings.",
    "recommendedAction": "One sentence on what the system should do (e.g., Block User, Flag for Review, None)."
}

Return ONLY valid JSON, no explanations."""


def build_transaction_log(history: Iterable[Transaction]) -> list[dict]:
    return [
        {
            "time": t.timestamp.isoformat(),
            "type": t.type.value,
            "amount": float(t.amount),
            "status": t.status.value,
            "reason": t.metadata.get("failure_reason"),
        }
        for t in history
    ]


def normalize_response(data: Any) -> RiskAssessment:
    """Turn whatever the model returned into a RiskAssessment, defaulting bad fields."""
    if not isinstance(data, dict):
        data = {}
    defaults = RiskAssessment()

    try:
        score = int(round(float(data.get("riskScore"))))
        score = max(0, min(100, score))
    except (TypeError, ValueError, OverflowError):
        score = defaults.risk_score

    try:
        level = RiskLevel(str(data.get("riskLevel", "")).strip().upper())
    except ValueError:
        level = defaults.risk_level

    analysis = data.get("analysis")
    action = data.get("recommendedAction")
    return RiskAssessment(
        risk_score=score,
        risk_level=level,
        analysis=analysis.strip() if isinstance(analysis, str) and analysis.strip() else defaults.analysis,
        recommended_action=action.strip() if isinstance(action, str) and action.strip() else defaults.recommended_action,
    )


class RiskAssessor:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[Groq] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.groq_api_key
        self.model = model or settings.groq_model
        self.client = client

        if self.client is None and self.api_key:
            self.client = Groq(
                api_key=self.api_key,
                timeout=timeout or settings.risk_timeout_seconds,
                max_retries=1,
            )

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def assess(self, history: Iterable[Transaction]) -> RiskAssessment:
        if not self.client:
            raise AssessmentUnavailableError("No Groq API key configured")

        tx_log = build_transaction_log(history)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Transactions:\n{json.dumps(tx_log, indent=2)}"},
                ],
                temperature=0.1,
                max_tokens=1024,
                response_format={"type": "json_object"},
            )
        except GroqError as e:
            raise AssessmentUnavailableError(f"Groq request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AssessmentUnavailableError("No response from risk model")

        logger.debug("risk model answered for %d transactions", len(tx_log))
        return normalize_response(self._extract_json(content))

    def _extract_json(self, text: str) -> dict:
        json_match = re.search(r'\{[\s\S]*\}', text)
        if json_match:
            try:
                return json.loads(json_match.group())
            except json.JSONDecodeError:
                logger.warning("risk model returned malformed JSON")
        return {}
