import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from .auth import UserCredential
from .config import Settings, get_settings
from .errors import UserNotFoundError, WorkflowNotFoundError
from .ledger import Ledger
from .models import (
    LedgerHistoryResponse,
    RiskAssessment,
    RiskLevel,
    StepResult,
    UserBalance,
    UserProfile,
    VirtualCard,
)
from .redemption import VoucherRedemptionService
from .session import UserSession
from .store import VoucherStore
from .workflow import RedemptionWorkflow

logger = logging.getLogger(__name__)

DEMO_USER_ID = "usr_839201"


def degraded_assessment() -> RiskAssessment:
    return RiskAssessment(
        risk_score=0,
        risk_level=RiskLevel.LOW,
        analysis="Risk assessor unreachable. Defaulting to rule-based checks.",
        recommended_action="Manual Review",
        degraded=True,
    )


class InMemoryStorage:
    def __init__(self, settings: Settings, vouchers=None, seed: bool = True):
        self.settings = settings
        self.vouchers = VoucherStore(vouchers)
        self.sessions: dict[str, UserSession] = {}
        self.workflows: dict[UUID, RedemptionWorkflow] = {}
        self.cards: dict[str, dict] = {}
        self.lock = threading.Lock()
        if seed:
            self._seed_data()

    def _seed_data(self):
        profile = UserProfile(user_id=DEMO_USER_ID, name="Test User")
        self.sessions[DEMO_USER_ID] = UserSession(
            profile=profile,
            credential=UserCredential.create(
                DEMO_USER_ID, "123456", iterations=self.settings.pbkdf2_iterations
            ),
        )
        self.cards[DEMO_USER_ID] = {
            "card_number": "4532 0192 8374 1928",
            "expiry": "12/28",
            "holder_name": "VoucherVault User",
        }


class WalletService:
    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        settings: Optional[Settings] = None,
        assessor=None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage or InMemoryStorage(self.settings)
        self.redemption = VoucherRedemptionService(
            self.storage.vouchers,
            fee=self.settings.network_fee,
            hash_key=self.settings.voucher_hash_key.get_secret_value().encode("utf-8"),
        )
        if assessor is None:
            from risk import RiskAssessor

            assessor = RiskAssessor(
                api_key=self.settings.groq_api_key,
                model=self.settings.groq_model,
                timeout=self.settings.risk_timeout_seconds,
            )
        self.assessor = assessor

    def register_user(self, user_id: str, name: str, pin: str) -> UserSession:
        session = UserSession(
            profile=UserProfile(user_id=user_id, name=name),
            credential=UserCredential.create(
                user_id, pin, iterations=self.settings.pbkdf2_iterations
            ),
        )
        with self.storage.lock:
            if user_id in self.storage.sessions:
                raise ValueError(f"User {user_id} already registered")
            self.storage.sessions[user_id] = session
        return session

    def get_session(self, user_id: str) -> UserSession:
        session = self.storage.sessions.get(user_id)
        if session is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return session

    def start_redemption(self, user_id: str) -> RedemptionWorkflow:
        workflow = RedemptionWorkflow(
            self.get_session(user_id),
            self.redemption,
            retry_limit=self.settings.pin_retry_limit,
        )
        with self.storage.lock:
            self._sweep_workflows()
            self.storage.workflows[workflow.id] = workflow
        logger.info("started redemption %s for user %s", workflow.id, user_id)
        return workflow

    def _sweep_workflows(self) -> None:
        """Drop redemptions past their TTL, finished or abandoned. Caller holds the lock."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.settings.workflow_ttl_seconds)
        expired = [wid for wid, w in self.storage.workflows.items() if w.created_at < cutoff]
        for workflow_id in expired:
            del self.storage.workflows[workflow_id]
        if expired:
            logger.info("dropped %d expired redemptions", len(expired))

    def get_workflow(self, workflow_id: UUID) -> RedemptionWorkflow:
        workflow = self.storage.workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Redemption {workflow_id} not found")
        return workflow

    def submit_code(self, workflow_id: UUID, code: str) -> StepResult:
        return self.get_workflow(workflow_id).submit_code(code)

    def confirm(self, workflow_id: UUID) -> StepResult:
        return self.get_workflow(workflow_id).confirm()

    def submit_pin(self, workflow_id: UUID, pin: str) -> StepResult:
        return self.get_workflow(workflow_id).submit_secret(pin)

    def cancel(self, workflow_id: UUID) -> StepResult:
        return self.get_workflow(workflow_id).cancel()

    def get_balance(self, user_id: str) -> UserBalance:
        ledger = self.get_session(user_id).ledger
        balance, history = ledger.state()
        return UserBalance(
            user_id=user_id,
            currency=self.settings.currency,
            current_balance=balance,
            total_entries=len(history),
            last_transaction_at=history[-1].timestamp if history else None,
        )

    def get_ledger_history(self, user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
        ledger: Ledger = self.get_session(user_id).ledger
        balance, history = ledger.state()
        entries = list(reversed(history))[offset:offset + limit]
        return LedgerHistoryResponse(
            user_id=user_id,
            entries=entries,
            total_count=len(history),
            current_balance=balance,
        )

    def assess_risk(self, user_id: str) -> RiskAssessment:
        """Advisory only. Never raises because the assessor is down."""
        history = self.get_session(user_id).ledger.snapshot()
        try:
            return self.assessor.assess(history)
        except Exception:
            logger.warning("risk assessment for user %s unavailable", user_id, exc_info=True)
            return degraded_assessment()

    def get_virtual_card(self, user_id: str, reveal: bool = False) -> VirtualCard:
        session = self.get_session(user_id)
        card = self.storage.cards.get(user_id)
        if card is None:
            raise UserNotFoundError(f"No virtual card issued for user {user_id}")
        number = card["card_number"]
        if not reveal:
            number = "**** **** **** " + number.replace(" ", "")[-4:]
        return VirtualCard(
            card_number=number,
            expiry=card["expiry"],
            holder_name=card["holder_name"],
            balance=session.ledger.balance,
            currency=self.settings.currency,
            is_hidden=not reveal,
        )
