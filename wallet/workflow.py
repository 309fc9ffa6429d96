"""
Redemption workflow state machine.

AWAITING_CODE -> VALIDATING -> AWAITING_CONFIRMATION -> AWAITING_AUTH
-> FINALIZING -> COMPLETE | FAILED

Only ``finalize`` and ``Ledger.append`` commit anything. Every earlier step
is side-effect free, so an instance can be dropped or cancelled at any point
before FINALIZING without touching the store or the ledger.
"""

import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from . import auth
from .errors import (
    FatalConfigurationError,
    IncorrectCredentialError,
    InvalidStateTransitionError,
    VoucherError,
    WalletServiceError,
)
from .models import (
    PendingRedemption,
    StepResult,
    Transaction,
    TransactionStatus,
    TransactionType,
    WorkflowState,
    WorkflowView,
)
from .redemption import VoucherRedemptionService
from .session import UserSession

logger = logging.getLogger(__name__)


class RedemptionWorkflow:
    def __init__(
        self,
        session: UserSession,
        redemption: VoucherRedemptionService,
        retry_limit: Optional[int] = None,
    ):
        if retry_limit is not None and retry_limit < 1:
            raise ValueError("retry_limit must be at least 1")
        self.id = uuid4()
        self.session = session
        self.redemption = redemption
        self.retry_limit = retry_limit
        self.state = WorkflowState.AWAITING_CODE
        self.code: Optional[str] = None
        self.pending: Optional[PendingRedemption] = None
        self.failed_attempts = 0
        self.created_at = datetime.now(timezone.utc)
        self._lock = threading.Lock()

    def submit_code(self, code: str) -> StepResult:
        with self._lock:
            self._expect(WorkflowState.AWAITING_CODE, "submit a voucher code")
            self.state = WorkflowState.VALIDATING
            try:
                pending = self.redemption.validate(code)
            except VoucherError as e:
                return self._fail(e, code)
            except FatalConfigurationError:
                self.state = WorkflowState.FAILED
                raise

            self.code = code
            self.pending = pending
            self.state = WorkflowState.AWAITING_CONFIRMATION
            logger.info("workflow %s validated a %s voucher", self.id, pending.provider)
            return self._result(
                f"{pending.provider} voucher of {pending.amount}. "
                f"{pending.net_amount} will be credited after a {pending.fee} network fee.",
            )

    def confirm(self) -> StepResult:
        with self._lock:
            self._expect(WorkflowState.AWAITING_CONFIRMATION, "confirm")
            self.state = WorkflowState.AWAITING_AUTH
            return self._result("Enter your PIN to authorize the redemption.")

    def submit_secret(self, secret: str) -> StepResult:
        with self._lock:
            self._expect(WorkflowState.AWAITING_AUTH, "submit a PIN")
            self.state = WorkflowState.FINALIZING

            if not auth.verify(secret, self.session.credential):
                return self._reject_credential()

            # From here on the commit runs to completion: consume, then credit.
            pending = self.pending
            try:
                self.redemption.finalize(self.code)
            except VoucherError as e:
                logger.warning("workflow %s lost the finalize race: %s", self.id, e.code.value)
                return self._fail(e, self.code)

            transaction = Transaction(
                amount=pending.net_amount,
                type=TransactionType.DEPOSIT,
                description=f"Redeemed {pending.provider}",
                status=TransactionStatus.SUCCESS,
                metadata={
                    "original_amount": str(pending.amount),
                    "fee": str(pending.fee),
                    "voucher_code_hash": self.redemption.fingerprint(self.code),
                },
            )
            self.session.ledger.append(transaction)
            self.pending = None
            self.state = WorkflowState.COMPLETE
            logger.info(
                "workflow %s credited %s to user %s",
                self.id, transaction.amount, self.session.user_id,
            )
            return self._result(
                f"{transaction.amount} credited to your wallet.", transaction=transaction
            )

    def cancel(self) -> StepResult:
        with self._lock:
            if self.state.is_terminal or self.state == WorkflowState.FINALIZING:
                raise InvalidStateTransitionError(
                    f"Cannot cancel redemption in {self.state.value} state"
                )
            self.pending = None
            self.state = WorkflowState.CANCELLED
            return self._result("Redemption cancelled.")

    def view(self) -> WorkflowView:
        with self._lock:
            return WorkflowView(
                workflow_id=self.id,
                user_id=self.session.user_id,
                state=self.state,
                pending=self.pending,
                failed_attempts=self.failed_attempts,
                created_at=self.created_at,
            )

    def _expect(self, state: WorkflowState, action: str) -> None:
        if self.state != state:
            raise InvalidStateTransitionError(
                f"Cannot {action} in {self.state.value} state"
            )

    def _reject_credential(self) -> StepResult:
        self.failed_attempts += 1
        error = IncorrectCredentialError()
        exhausted = self.retry_limit is not None and self.failed_attempts >= self.retry_limit
        transaction = self._record_failure(
            error,
            description="PIN authorization failed",
            attempt=self.failed_attempts,
        )
        if exhausted:
            self.pending = None
            self.state = WorkflowState.FAILED
            logger.warning(
                "workflow %s failed after %d incorrect PIN attempts",
                self.id, self.failed_attempts,
            )
            message = f"{error.message}. Too many incorrect attempts, redemption cancelled."
        else:
            self.state = WorkflowState.AWAITING_AUTH
            message = f"{error.message}. Please try again."
        return self._result(message, error_code=error.code, transaction=transaction)

    def _fail(self, error: WalletServiceError, code) -> StepResult:
        pending = self.pending
        transaction = self._record_failure(
            error,
            description="Voucher redemption failed",
            voucher_code_hash=self.redemption.fingerprint(code),
            original_amount=str(pending.amount) if pending else None,
        )
        self.pending = None
        self.state = WorkflowState.FAILED
        logger.info("workflow %s failed: %s", self.id, error.code.value)
        return self._result(error.message, error_code=error.code, transaction=transaction)

    def _record_failure(self, error: WalletServiceError, description: str, **metadata) -> Transaction:
        metadata = {k: v for k, v in metadata.items() if v is not None}
        transaction = Transaction(
            amount=Decimal("0.00"),
            type=TransactionType.DEPOSIT,
            description=description,
            status=TransactionStatus.FAILED,
            metadata={
                "failure_reason": error.message,
                "error_code": error.code.value,
                **metadata,
            },
        )
        self.session.ledger.append(transaction)
        return transaction

    def _result(self, message: str, error_code=None, transaction=None) -> StepResult:
        return StepResult(
            workflow_id=self.id,
            state=self.state,
            message=message,
            error_code=error_code,
            pending=self.pending,
            transaction=transaction,
        )
