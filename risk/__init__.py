"""
Risk Assessment Package

Sends a wallet's transaction log to an LLM fraud analyst and turns the
answer into a structured RiskAssessment.
"""

from .assessor import (
    RiskAssessor,
    build_transaction_log,
    normalize_response,
)

__all__ = [
    "RiskAssessor",
    "build_transaction_log",
    "normalize_response",
]
