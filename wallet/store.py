import threading
from decimal import Decimal
from typing import Iterable, Optional

from .errors import VoucherAlreadyConsumedError, VoucherNotFoundError
from .models import Voucher, to_money


SEED_VOUCHERS = (
    Voucher(code="1234567890", amount=Decimal("500.00"), provider="FNB eWallet"),
    Voucher(code="0987654321", amount=Decimal("250.00"), provider="Absa CashSend"),
    Voucher(code="1122334455", amount=Decimal("1000.00"), provider="Standard Bank Instant Money"),
    Voucher(code="998877665511", amount=Decimal("150.00"), provider="Capitec Send", consumed=True),
)


class VoucherStore:
    """Keyed voucher storage. Every read and write goes through one lock,
    so ``mark_consumed`` is the single serialization point for anti-replay."""

    def __init__(self, vouchers: Optional[Iterable[Voucher]] = None):
        self._lock = threading.Lock()
        self._vouchers: dict[str, Voucher] = {}
        self.lookup_count = 0
        for voucher in SEED_VOUCHERS if vouchers is None else vouchers:
            self.add(voucher)

    def add(self, voucher: Voucher) -> None:
        with self._lock:
            if voucher.code in self._vouchers:
                raise ValueError(f"Voucher {voucher.code} already issued")
            self._vouchers[voucher.code] = voucher.model_copy(
                update={"amount": to_money(voucher.amount)}
            )

    def lookup(self, code: str) -> Voucher:
        with self._lock:
            self.lookup_count += 1
            voucher = self._vouchers.get(code)
            if voucher is None:
                raise VoucherNotFoundError()
            return voucher.model_copy()

    def mark_consumed(self, code: str) -> None:
        with self._lock:
            voucher = self._vouchers.get(code)
            if voucher is None:
                raise VoucherNotFoundError()
            if voucher.consumed:
                raise VoucherAlreadyConsumedError()
            self._vouchers[code] = voucher.model_copy(update={"consumed": True})

    def vouchers(self) -> list[Voucher]:
        with self._lock:
            return [v.model_copy() for v in self._vouchers.values()]
