import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .errors import (
    FatalConfigurationError,
    InvalidStateTransitionError,
    UserNotFoundError,
    WorkflowNotFoundError,
)
from .models import (
    LedgerHistoryResponse,
    RiskAssessment,
    StepResult,
    SubmitCodeRequest,
    SubmitPinRequest,
    UserBalance,
    VirtualCard,
    WorkflowView,
)
from .service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_wallet_service(request: Request) -> WalletService:
    return request.app.state.wallet_service


def _workflow_step(call, workflow_id: UUID, *args) -> StepResult:
    try:
        return call(workflow_id, *args)
    except WorkflowNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Redemption {workflow_id} not found")
    except InvalidStateTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "vouchervault-wallet"}


@router.post(
    "/users/{user_id}/redemptions",
    response_model=WorkflowView,
    status_code=status.HTTP_201_CREATED,
    tags=["Redemptions"],
)
def start_redemption(user_id: str, service: WalletService = Depends(get_wallet_service)) -> WorkflowView:
    try:
        return service.start_redemption(user_id).view()
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/redemptions/{workflow_id}", response_model=WorkflowView, tags=["Redemptions"])
def get_redemption(workflow_id: UUID, service: WalletService = Depends(get_wallet_service)) -> WorkflowView:
    try:
        return service.get_workflow(workflow_id).view()
    except WorkflowNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Redemption {workflow_id} not found")


@router.post("/redemptions/{workflow_id}/code", response_model=StepResult, tags=["Redemptions"])
def submit_code(
    workflow_id: UUID,
    request: SubmitCodeRequest,
    service: WalletService = Depends(get_wallet_service),
) -> StepResult:
    return _workflow_step(service.submit_code, workflow_id, request.code)


@router.post("/redemptions/{workflow_id}/confirm", response_model=StepResult, tags=["Redemptions"])
def confirm_redemption(workflow_id: UUID, service: WalletService = Depends(get_wallet_service)) -> StepResult:
    return _workflow_step(service.confirm, workflow_id)


@router.post("/redemptions/{workflow_id}/pin", response_model=StepResult, tags=["Redemptions"])
def submit_pin(
    workflow_id: UUID,
    request: SubmitPinRequest,
    service: WalletService = Depends(get_wallet_service),
) -> StepResult:
    return _workflow_step(service.submit_pin, workflow_id, request.pin)


@router.post("/redemptions/{workflow_id}/cancel", response_model=StepResult, tags=["Redemptions"])
def cancel_redemption(workflow_id: UUID, service: WalletService = Depends(get_wallet_service)) -> StepResult:
    return _workflow_step(service.cancel, workflow_id)


@router.get("/users/{user_id}/balance", response_model=UserBalance, tags=["Wallet"])
def get_user_balance(user_id: str, service: WalletService = Depends(get_wallet_service)) -> UserBalance:
    try:
        return service.get_balance(user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/users/{user_id}/ledger", response_model=LedgerHistoryResponse, tags=["Wallet"])
def get_user_ledger(
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    service: WalletService = Depends(get_wallet_service),
) -> LedgerHistoryResponse:
    try:
        return service.get_ledger_history(user_id, limit, offset)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/users/{user_id}/card", response_model=VirtualCard, tags=["Wallet"])
def get_virtual_card(
    user_id: str,
    reveal: bool = False,
    service: WalletService = Depends(get_wallet_service),
) -> VirtualCard:
    try:
        return service.get_virtual_card(user_id, reveal=reveal)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/users/{user_id}/risk-assessment", response_model=RiskAssessment, tags=["Risk"])
def assess_user_risk(user_id: str, service: WalletService = Depends(get_wallet_service)) -> RiskAssessment:
    try:
        return service.assess_risk(user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def create_app(service: Optional[WalletService] = None, root_path: str = "") -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="VoucherVault Wallet API",
        description="Voucher redemption with anti-replay protection, PIN authorization and an audit ledger",
        version="1.0.0",
        root_path=root_path,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.wallet_service = service or WalletService(settings=settings)
    app.include_router(router)

    @app.exception_handler(FatalConfigurationError)
    async def fatal_configuration_handler(request: Request, exc: FatalConfigurationError):
        logger.critical("fatal configuration error on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": exc.message, "error_code": exc.code.value},
        )

    return app
