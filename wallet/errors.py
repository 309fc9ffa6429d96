from enum import Enum


class ErrorCode(str, Enum):
    INVALID_FORMAT = "INVALID_FORMAT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_CONSUMED = "ALREADY_CONSUMED"
    INCORRECT_CREDENTIAL = "INCORRECT_CREDENTIAL"
    ASSESSMENT_UNAVAILABLE = "ASSESSMENT_UNAVAILABLE"
    FATAL_CONFIGURATION = "FATAL_CONFIGURATION"


class WalletServiceError(Exception):
    code: ErrorCode = None
    default_message = "Wallet operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class VoucherError(WalletServiceError):
    """User-facing voucher outcome; recorded as a FAILED audit entry."""


class InvalidFormatError(VoucherError):
    code = ErrorCode.INVALID_FORMAT
    default_message = "Invalid Format. Code must be 10-12 digits."


class VoucherNotFoundError(VoucherError):
    code = ErrorCode.NOT_FOUND
    default_message = "Invalid Voucher Code."


class VoucherAlreadyConsumedError(VoucherError):
    code = ErrorCode.ALREADY_CONSUMED
    default_message = "REPLAY DETECTED: Voucher already redeemed."


class IncorrectCredentialError(WalletServiceError):
    code = ErrorCode.INCORRECT_CREDENTIAL
    default_message = "Incorrect PIN"


class AssessmentUnavailableError(WalletServiceError):
    code = ErrorCode.ASSESSMENT_UNAVAILABLE
    default_message = "Risk assessor unavailable"


class FatalConfigurationError(WalletServiceError):
    """Fee/amount configuration is invalid. Never recovered locally."""

    code = ErrorCode.FATAL_CONFIGURATION
    default_message = "Invalid fee configuration"


class InvalidStateTransitionError(WalletServiceError):
    pass


class UserNotFoundError(WalletServiceError):
    pass


class WorkflowNotFoundError(WalletServiceError):
    pass
