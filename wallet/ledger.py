import threading
from decimal import Decimal

from .models import Transaction


class Ledger:
    """Append-only transaction log with a derived running balance."""

    def __init__(self):
        self._lock = threading.Lock()
        self._history: list[Transaction] = []
        self._balance = Decimal("0.00")

    @property
    def balance(self) -> Decimal:
        with self._lock:
            return self._balance

    def append(self, transaction: Transaction) -> None:
        if not isinstance(transaction, Transaction):
            raise TypeError("Ledger only accepts Transaction records")
        with self._lock:
            self._history.append(transaction)
            if transaction.affects_balance:
                self._balance += transaction.amount

    def snapshot(self) -> tuple[Transaction, ...]:
        with self._lock:
            return tuple(self._history)

    def state(self) -> tuple[Decimal, tuple[Transaction, ...]]:
        """Balance and history read under one lock acquisition."""
        with self._lock:
            return self._balance, tuple(self._history)

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
