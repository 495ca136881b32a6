"""
Account Ledger Module

Per-identity balance records. Nominal balances compound at the account's
effective rate and a real (purchasing-power) balance is derived from the
current inflation rate. Nothing accrues in the background: every touch of an
account first runs ``resync`` over the time elapsed since the last touch.
"""

from dataclasses import dataclass, replace
from typing import Optional

from .accrual import (
    PRECISION, mul_div, checked_add, checked_sub, compound_factor,
    inflation_factor, apply_rate_bonus, real_value
)
from .audit import AuditTrail, AuditEventType
from .clock import LogicalClock
from .errors import AccountExists, AccountNotFound, InsufficientBalance, InvalidAmount
from .logging_config import get_logger, log_action
from .oracle import InflationOracle
from .storage import StorageInterface, StorageRecord


logger = get_logger("treasury.accounts")


@dataclass
class LedgerAccount(StorageRecord):
    """
    Balance record keyed by owner identity (``id``)
    """
    balance: int
    real_balance: int
    total_deposited: int
    last_adjusted_at: int
    last_compounded_at: int
    compound_rate_bps: int

    @property
    def owner(self) -> str:
        return self.id


def resync(account: LedgerAccount, now: int, current_rate_bps: int) -> LedgerAccount:
    """
    Apply compounding and inflation adjustment for the time elapsed since
    the account was last touched.

    Pure: returns an updated copy and leaves ``account`` untouched.

    Args:
        account: Stored account state
        now: Current logical time
        current_rate_bps: Oracle's current annual inflation rate

    Returns:
        Account state as of ``now``
    """
    elapsed = now - account.last_compounded_at
    balance = mul_div(account.balance, compound_factor(account.compound_rate_bps, elapsed), PRECISION)
    deflator = inflation_factor(current_rate_bps, now - account.last_adjusted_at)

    return replace(
        account,
        balance=balance,
        real_balance=real_value(balance, deflator),
        compound_rate_bps=apply_rate_bonus(account.compound_rate_bps, current_rate_bps),
        last_compounded_at=now,
        last_adjusted_at=now
    )


def require_positive(amount: int) -> None:
    """Reject zero, negative and non-integer amounts"""
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")


class AccountLedger:
    """
    Manages account creation, deposits and withdrawals with lazy accrual
    """

    def __init__(
        self,
        storage: StorageInterface,
        clock: LogicalClock,
        oracle: InflationOracle,
        audit_trail: AuditTrail,
        base_interest_rate_bps: int = 300
    ):
        self.storage = storage
        self.clock = clock
        self.oracle = oracle
        self.audit_trail = audit_trail
        self.base_interest_rate_bps = base_interest_rate_bps
        self.accounts_table = "accounts"

    def get_account(self, owner: str) -> Optional[LedgerAccount]:
        """Stored account record, without applying accrual"""
        data = self.storage.load(self.accounts_table, owner)
        if data:
            return LedgerAccount.from_dict(data)
        return None

    def exists(self, owner: str) -> bool:
        return self.storage.exists(self.accounts_table, owner)

    def synced_account(self, owner: str) -> LedgerAccount:
        """
        Account state as of now, computed in memory.

        Raises:
            AccountNotFound: if the owner has no account
        """
        account = self.get_account(owner)
        if account is None:
            raise AccountNotFound(f"No account for {owner}")
        return resync(account, self.clock.now(), self.oracle.current_rate_bps)

    def touch(self, owner: str) -> LedgerAccount:
        """Resync the account and persist the result"""
        account = self.synced_account(owner)
        self._save_account(account)
        return account

    def create_account(self, owner: str) -> LedgerAccount:
        """
        Open a zero-balance account for ``owner``

        Raises:
            AccountExists: if the owner already has an account
        """
        if self.exists(owner):
            raise AccountExists(f"Account already exists for {owner}")

        now = self.clock.now()
        account = LedgerAccount(
            id=owner,
            created_at=now,
            balance=0,
            real_balance=0,
            total_deposited=0,
            last_adjusted_at=now,
            last_compounded_at=now,
            compound_rate_bps=self.base_interest_rate_bps
        )
        self._save_account(account)

        self.audit_trail.log_event(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=owner,
            logical_time=now,
            user_id=owner,
            metadata={"compound_rate_bps": account.compound_rate_bps}
        )
        log_action(logger, "info", "Account created", user_id=owner,
                   action="create_account", resource="account", logical_time=now)

        return account

    def deposit(self, owner: str, amount: int) -> int:
        """
        Credit a deposit to the account.

        Fresh funds are already in present-value terms, so the amount is added
        to the real balance unchanged.

        Returns:
            The deposited amount
        """
        require_positive(amount)
        account = self.synced_account(owner)

        account = replace(
            account,
            balance=checked_add(account.balance, amount),
            real_balance=checked_add(account.real_balance, amount),
            total_deposited=checked_add(account.total_deposited, amount)
        )
        self._save_account(account)

        self._log_balance_change(AuditEventType.DEPOSIT_MADE, account, amount, "deposit")
        return amount

    def withdraw(self, owner: str, amount: int) -> int:
        """
        Debit a withdrawal from the account.

        Raises:
            InsufficientBalance: if ``amount`` exceeds the resynced balance

        Returns:
            The withdrawn amount
        """
        require_positive(amount)
        account = self.synced_account(owner)
        if amount > account.balance:
            raise InsufficientBalance(f"Balance {account.balance} is less than {amount}")

        account = replace(
            account,
            balance=checked_sub(account.balance, amount),
            # The real balance can sit below the nominal one
            real_balance=max(account.real_balance - amount, 0)
        )
        self._save_account(account)

        self._log_balance_change(AuditEventType.WITHDRAWAL_MADE, account, amount, "withdraw")
        return amount

    def credit_bonus(self, owner: str, amount: int) -> LedgerAccount:
        """Add a bonus to both balances without counting it as a deposit"""
        account = self.synced_account(owner)
        account = replace(
            account,
            balance=checked_add(account.balance, amount),
            real_balance=checked_add(account.real_balance, amount)
        )
        self._save_account(account)
        return account

    def debit_nominal(self, owner: str, amount: int) -> LedgerAccount:
        """
        Remove ``amount`` from the nominal balance only, leaving the real
        balance as it was after resync.
        """
        require_positive(amount)
        account = self.synced_account(owner)
        if account.balance < amount:
            raise InsufficientBalance(f"Balance {account.balance} is less than {amount}")
        account = replace(account, balance=checked_sub(account.balance, amount))
        self._save_account(account)
        return account

    def _log_balance_change(self, event_type: AuditEventType, account: LedgerAccount,
                            amount: int, action: str) -> None:
        self.audit_trail.log_event(
            event_type=event_type,
            entity_type="account",
            entity_id=account.owner,
            logical_time=account.last_compounded_at,
            user_id=account.owner,
            metadata={
                "amount": amount,
                "balance": account.balance,
                "real_balance": account.real_balance
            }
        )
        log_action(logger, "info", f"{action} of {amount}", user_id=account.owner,
                   action=action, resource="account",
                   logical_time=account.last_compounded_at,
                   extra={"balance": account.balance, "real_balance": account.real_balance})

    def _save_account(self, account: LedgerAccount) -> None:
        self.storage.save(self.accounts_table, account.id, account.to_dict())
