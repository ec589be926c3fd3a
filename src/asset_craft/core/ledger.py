"""
Gemstone ledger.

A CreditStore holds a non-negative balance. CreditLedger routes each
operation to a primary (usually remote) store and falls back to a local one
when the primary cannot be reached. Whichever store answers owns that
operation; it is never applied to both.
"""

import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Optional

from ..api.exceptions import CreditServiceError
from ..config import DAILY_FREE_GEMSTONES, STARTING_GEMSTONES
from ..logging_utils import log_credit_event, log_warning


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"Gemstone amount must be a positive integer, got {amount!r}")


class CreditStore(ABC):
    """A gemstone balance that can never go below zero."""

    name: str = "store"

    @abstractmethod
    def get_balance(self) -> int:
        """Return the spendable balance."""

    @abstractmethod
    def debit(self, amount: int) -> bool:
        """
        Spend `amount` if the balance covers it.

        The balance must be checked immediately before the decrement.
        Returns False, without changing anything, when it does not.
        """

    @abstractmethod
    def credit(self, amount: int) -> None:
        """Add `amount` unconditionally."""


class LocalCreditStore(CreditStore):
    """
    In-memory balance with a daily free allowance.

    Daily gemstones are refilled to `daily_allowance` on the first use of a
    new calendar day and are spent before purchased ones. Refunds and
    purchases go to the purchased balance.
    """

    name = "local"

    def __init__(
        self,
        balance: int = STARTING_GEMSTONES,
        daily_allowance: int = DAILY_FREE_GEMSTONES,
        today: Callable[[], date] = date.today,
    ):
        if balance < 0 or daily_allowance < 0:
            raise ValueError("Balances cannot be negative")
        self._purchased = balance
        self._daily_allowance = daily_allowance
        self._daily = 0
        self._last_daily_reset: Optional[date] = None
        self._today = today
        self._lock = threading.Lock()

    def _refresh_daily(self) -> None:
        today = self._today()
        if self._last_daily_reset is None or today > self._last_daily_reset:
            self._daily = self._daily_allowance
            self._last_daily_reset = today

    @property
    def purchased(self) -> int:
        return self._purchased

    @property
    def daily(self) -> int:
        with self._lock:
            self._refresh_daily()
            return self._daily

    def get_balance(self) -> int:
        with self._lock:
            self._refresh_daily()
            return self._purchased + self._daily

    def debit(self, amount: int) -> bool:
        _check_amount(amount)
        with self._lock:
            self._refresh_daily()
            if self._purchased + self._daily < amount:
                return False
            from_daily = min(amount, self._daily)
            self._daily -= from_daily
            self._purchased -= amount - from_daily
            balance = self._purchased + self._daily
        log_credit_event("debited", amount, self.name, balance)
        return True

    def credit(self, amount: int) -> None:
        _check_amount(amount)
        with self._lock:
            self._purchased += amount
            balance = self._purchased + self._daily
        log_credit_event("credited", amount, self.name, balance)

    def grant_daily(self) -> None:
        """Refill the daily allowance now, regardless of the date."""
        with self._lock:
            self._daily = self._daily_allowance
            self._last_daily_reset = self._today()


class CreditLedger:
    """
    Front door for gemstone operations.

    Args:
        fallback: Store used when there is no primary or it fails.
        primary: Authoritative store, typically remote. Optional.
    """

    def __init__(self, fallback: CreditStore, primary: Optional[CreditStore] = None):
        self.primary = primary
        self.fallback = fallback

    def get_balance(self) -> int:
        if self.primary is not None:
            try:
                return self.primary.get_balance()
            except CreditServiceError as e:
                log_warning(f"Primary gemstone store unavailable, using {self.fallback.name}: {e}")
        return self.fallback.get_balance()

    def debit(self, amount: int) -> Optional[CreditStore]:
        """
        Spend gemstones from the first store that answers.

        Returns:
            The store that took the gemstones, so a refund can be paired with
            it, or None when the balance is insufficient.
        """
        _check_amount(amount)
        if self.primary is not None:
            try:
                return self.primary if self.primary.debit(amount) else None
            except CreditServiceError as e:
                log_warning(f"Primary gemstone debit failed, using {self.fallback.name}: {e}")
        return self.fallback if self.fallback.debit(amount) else None

    def credit(self, amount: int, store: Optional[CreditStore] = None) -> None:
        """
        Add gemstones.

        With `store`, the credit goes to that store only (refund of a debit it
        took) and its failure propagates. Without it, primary first, then
        fallback.
        """
        _check_amount(amount)
        if store is not None:
            store.credit(amount)
            return
        if self.primary is not None:
            try:
                self.primary.credit(amount)
                return
            except CreditServiceError as e:
                log_warning(f"Primary gemstone credit failed, using {self.fallback.name}: {e}")
        self.fallback.credit(amount)
