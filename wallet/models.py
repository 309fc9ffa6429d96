from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
    model_validator,
)

from .errors import ErrorCode

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize to two decimal places without passing through float."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    SPEND = "SPEND"
    FEE = "FEE"


class TransactionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class WorkflowState(str, Enum):
    AWAITING_CODE = "AWAITING_CODE"
    VALIDATING = "VALIDATING"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    AWAITING_AUTH = "AWAITING_AUTH"
    FINALIZING = "FINALIZING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.COMPLETE, WorkflowState.FAILED, WorkflowState.CANCELLED)


class Voucher(BaseModel):
    code: str
    amount: Decimal
    provider: str
    consumed: bool = False

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "code": "1234567890",
            "amount": 500.00,
            "provider": "FNB eWallet",
            "consumed": False,
        }
    })


class PendingRedemption(BaseModel):
    amount: Decimal
    fee: Decimal
    provider: str

    @computed_field
    @property
    def net_amount(self) -> Decimal:
        return self.amount - self.fee


class Transaction(BaseModel):
    """Immutable audit record. Amount is signed: positive credits the wallet."""

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    amount: Decimal
    type: TransactionType
    description: str
    status: TransactionStatus
    metadata: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    model_config = ConfigDict(frozen=True)

    @field_validator("metadata", mode="after")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("metadata")
    def _serialize_metadata(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    @model_validator(mode="after")
    def _check_sign(self) -> "Transaction":
        if self.type == TransactionType.DEPOSIT and self.amount < 0:
            raise ValueError("DEPOSIT amount cannot be negative")
        if self.type == TransactionType.SPEND and self.amount > 0:
            raise ValueError("SPEND amount cannot be positive")
        return self

    @property
    def affects_balance(self) -> bool:
        return self.status == TransactionStatus.SUCCESS and self.type in (
            TransactionType.DEPOSIT, TransactionType.SPEND,
        )


class RiskAssessment(BaseModel):
    risk_score: int = Field(default=0, ge=0, le=100)
    risk_level: RiskLevel = RiskLevel.LOW
    analysis: str = "No anomalies detected."
    recommended_action: str = "None"
    degraded: bool = False

    @computed_field
    @property
    def critical_alert(self) -> bool:
        return self.risk_level == RiskLevel.CRITICAL


class UserProfile(BaseModel):
    user_id: str
    name: str


class VirtualCard(BaseModel):
    card_number: str
    expiry: str
    holder_name: str
    balance: Decimal
    currency: str = "ZAR"
    is_hidden: bool = True


class StepResult(BaseModel):
    workflow_id: UUID
    state: WorkflowState
    message: str
    error_code: Optional[ErrorCode] = None
    pending: Optional[PendingRedemption] = None
    transaction: Optional[Transaction] = None


class WorkflowView(BaseModel):
    workflow_id: UUID
    user_id: str
    state: WorkflowState
    pending: Optional[PendingRedemption] = None
    failed_attempts: int = 0
    created_at: datetime


class SubmitCodeRequest(BaseModel):
    code: str = Field(..., description="Voucher code, 10-12 digits")

    model_config = ConfigDict(json_schema_extra={"example": {"code": "1234567890"}})


class SubmitPinRequest(BaseModel):
    pin: str = Field(..., repr=False, description="User secret, compared in constant time")


class UserBalance(BaseModel):
    user_id: str
    currency: str
    current_balance: Decimal
    total_entries: int
    last_transaction_at: Optional[datetime] = None


class LedgerHistoryResponse(BaseModel):
    user_id: str
    entries: list[Transaction]
    total_count: int
    current_balance: Decimal
