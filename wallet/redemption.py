import hashlib
import hmac
import logging
import re
import secrets
from decimal import Decimal
from typing import Optional

from .errors import FatalConfigurationError, InvalidFormatError, VoucherAlreadyConsumedError
from .models import PendingRedemption, Voucher, to_money
from .store import VoucherStore

logger = logging.getLogger(__name__)

VOUCHER_CODE_PATTERN = re.compile(r"[0-9]{10,12}")
DEFAULT_FEE = Decimal("7.50")


class VoucherRedemptionService:
    def __init__(
        self,
        store: VoucherStore,
        fee: Optional[Decimal] = None,
        hash_key: Optional[bytes] = None,
    ):
        self.store = store
        self._hash_key = hash_key or secrets.token_bytes(32)
        self.fee = to_money(DEFAULT_FEE if fee is None else fee)
        if self.fee < 0:
            raise FatalConfigurationError(f"Network fee {self.fee} cannot be negative")
        # Refuse to start with a catalogue that would produce a negative credit.
        for voucher in store.vouchers():
            self._check_fee(voucher)

    def validate(self, code: str) -> PendingRedemption:
        """Check a code and price it. Side-effect free apart from the store read.

        Format is checked first so malformed input never reaches the store.
        """
        if not isinstance(code, str) or not VOUCHER_CODE_PATTERN.fullmatch(code):
            raise InvalidFormatError()

        voucher = self.store.lookup(code)
        if voucher.consumed:
            raise VoucherAlreadyConsumedError()

        self._check_fee(voucher)
        return PendingRedemption(
            amount=voucher.amount,
            fee=self.fee,
            provider=voucher.provider,
        )

    def finalize(self, code: str) -> None:
        self.store.mark_consumed(code)

    def fingerprint(self, code) -> str:
        """Keyed digest of a voucher code for the audit log."""
        return hmac.new(self._hash_key, str(code).encode("utf-8"), hashlib.sha256).hexdigest()

    def _check_fee(self, voucher: Voucher) -> None:
        if self.fee >= voucher.amount:
            logger.error(
                "fee %s does not leave a positive credit for a %s voucher of %s",
                self.fee, voucher.provider, voucher.amount,
            )
            raise FatalConfigurationError(
                f"Fee {self.fee} must be lower than voucher amount {voucher.amount}"
            )
