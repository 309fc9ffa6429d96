"""
VoucherVault Wallet Core

This module provides:
- A keyed voucher store with single-use (anti-replay) enforcement
- Fee-aware voucher validation and finalization
- Constant-time PIN authorization
- An append-only ledger with a derived balance
- The redemption workflow state machine tying them together
"""

from .errors import ErrorCode, WalletServiceError
from .ledger import Ledger
from .models import (
    PendingRedemption,
    RiskAssessment,
    RiskLevel,
    StepResult,
    Transaction,
    TransactionStatus,
    TransactionType,
    Voucher,
    WorkflowState,
)
from .service import WalletService
from .store import VoucherStore
from .workflow import RedemptionWorkflow

__all__ = [
    "ErrorCode",
    "Ledger",
    "PendingRedemption",
    "RedemptionWorkflow",
    "RiskAssessment",
    "RiskLevel",
    "StepResult",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "Voucher",
    "VoucherStore",
    "WalletService",
    "WalletServiceError",
    "WorkflowState",
]
