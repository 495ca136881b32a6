"""
Inflation Treasury Module

Wires the oracle, account ledger, locked deposit registry and savings goal
tracker over one store, and exposes every caller-facing operation. Each
operation runs as a single atomic step: either all of its writes commit or
none do.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .accrual import PRECISION, mul_div, inflation_factor, real_value
from .accounts import AccountLedger, LedgerAccount
from .audit import AuditTrail
from .clock import LogicalClock, ManualClock
from .config import TreasuryConfig, get_config
from .deposits import LockedDepositRegistry
from .errors import InvalidAmount, TreasuryError
from .goals import SavingsGoalTracker
from .logging_config import get_logger, log_action, setup_logging
from .oracle import InflationOracle, InflationSnapshot
from .storage import InMemoryStorage, SQLiteStorage, StorageInterface


logger = get_logger("treasury")


@dataclass(frozen=True)
class AccountView:
    """Account as of the query time"""
    owner: str
    balance: int
    real_balance: int
    purchasing_power: int
    total_deposited: int
    created_at: int
    last_adjusted_at: int
    last_compounded_at: int
    effective_interest_rate_bps: int


@dataclass(frozen=True)
class LockedDepositView:
    owner: str
    deposit_id: int
    amount: int
    lock_period: int
    deposited_at: int
    unlock_at: int
    bonus_rate_bps: int
    projected_bonus: int
    withdrawn: bool
    can_withdraw: bool


@dataclass(frozen=True)
class GoalView:
    owner: str
    goal_id: int
    name: str
    target_amount: int
    adjusted_target: int
    current_amount: int
    progress_percentage: int
    target_at: int
    created_at: int
    is_achieved: bool
    auto_adjust: bool


@dataclass(frozen=True)
class InflationInfo:
    current_rate_bps: int
    cumulative_index: int
    last_update_at: int
    base_interest_rate_bps: int


@dataclass(frozen=True)
class RealValueQuote:
    """Purchasing power of a nominal amount held since ``from_time``"""
    nominal: int
    real_value: int
    purchasing_power_loss: int
    inflation_factor: int


def create_storage(config: TreasuryConfig) -> StorageInterface:
    """Build the storage backend named in configuration"""
    if config.storage_backend == "sqlite":
        return SQLiteStorage(config.sqlite_path)
    if config.storage_backend == "memory":
        return InMemoryStorage()
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")


class InflationTreasury:
    """
    Accrual ledger with inflation oracle, time-locked deposits and savings goals
    """

    def __init__(
        self,
        clock: Optional[LogicalClock] = None,
        storage: Optional[StorageInterface] = None,
        config: Optional[TreasuryConfig] = None
    ):
        self.config = config or get_config()
        self.clock = clock or ManualClock()
        self.storage = storage or create_storage(self.config)
        self._lock = threading.RLock()

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        with self.storage.atomic():
            self.oracle = InflationOracle(
                self.storage, self.clock, self.audit_trail,
                operator=self.config.oracle_operator,
                initial_rate_bps=self.config.initial_inflation_rate_bps
            )
        self.account_ledger = AccountLedger(
            self.storage, self.clock, self.oracle, self.audit_trail,
            base_interest_rate_bps=self.config.base_interest_rate_bps
        )
        self.deposit_registry = LockedDepositRegistry(
            self.storage, self.clock, self.account_ledger, self.audit_trail
        )
        self.goal_tracker = SavingsGoalTracker(
            self.storage, self.clock, self.oracle, self.account_ledger, self.audit_trail
        )

    @classmethod
    def from_config(cls, clock: Optional[LogicalClock] = None,
                    config: Optional[TreasuryConfig] = None) -> 'InflationTreasury':
        """Build a treasury with logging and storage set up from configuration"""
        config = config or get_config()
        setup_logging(
            level=config.log_level,
            logger_name="treasury",
            log_format=config.log_format,
            log_file=config.log_file
        )
        return cls(clock=clock, storage=create_storage(config), config=config)

    @contextmanager
    def _operation(self, caller: str, action: str):
        """Serialize one public operation and make its writes atomic"""
        with self._lock:
            try:
                with self.storage.atomic():
                    yield
            except TreasuryError as e:
                log_action(logger, "warning", f"{action} rejected: {e}", user_id=caller,
                           action=action, logical_time=self.clock.now(),
                           extra={"error": e.code})
                raise

    # Mutating operations

    def create_account(self, caller: str) -> bool:
        with self._operation(caller, "create_account"):
            self.account_ledger.create_account(caller)
        return True

    def deposit(self, caller: str, amount: int) -> int:
        with self._operation(caller, "deposit"):
            return self.account_ledger.deposit(caller, amount)

    def withdraw(self, caller: str, amount: int) -> int:
        with self._operation(caller, "withdraw"):
            return self.account_ledger.withdraw(caller, amount)

    def lock(self, caller: str, amount: int, lock_duration: int, bonus_rate_bps: int) -> int:
        with self._operation(caller, "lock"):
            return self.deposit_registry.lock(caller, amount, lock_duration, bonus_rate_bps)

    def withdraw_bonus(self, caller: str, deposit_id: int) -> int:
        with self._operation(caller, "withdraw_bonus"):
            return self.deposit_registry.withdraw_bonus(caller, deposit_id)

    def create_goal(self, caller: str, target_amount: int, target_at: int,
                    name: str, auto_adjust: bool) -> int:
        with self._operation(caller, "create_goal"):
            self.goal_tracker.check_goal(target_amount, target_at)
            self._touch_if_present(caller)
            return self.goal_tracker.create_goal(caller, target_amount, target_at, name, auto_adjust)

    def allocate(self, caller: str, goal_id: int, amount: int) -> int:
        with self._operation(caller, "allocate"):
            return self.goal_tracker.allocate(caller, goal_id, amount)

    def update_rate(self, caller: str, new_rate_bps: int, period_duration: int) -> int:
        with self._operation(caller, "update_rate"):
            self.oracle.check_update(caller, new_rate_bps, period_duration)
            # Accrue under the outgoing rate before it changes
            self._touch_if_present(caller)
            return self.oracle.update_rate(caller, new_rate_bps, period_duration)

    def _touch_if_present(self, owner: str) -> None:
        if self.account_ledger.exists(owner):
            self.account_ledger.touch(owner)

    # Queries

    def get_account(self, owner: str) -> Optional[AccountView]:
        """
        Account as of now.

        The resync is computed in memory; it is written back only when
        ``persist_query_resync`` is enabled.
        """
        with self._lock:
            if not self.account_ledger.exists(owner):
                return None
            if self.config.persist_query_resync:
                with self.storage.atomic():
                    account = self.account_ledger.touch(owner)
            else:
                account = self.account_ledger.synced_account(owner)
            return self._account_view(account)

    def get_locked_deposit(self, owner: str, deposit_id: int) -> Optional[LockedDepositView]:
        with self._lock:
            deposit = self.deposit_registry.get_deposit(owner, deposit_id)
            if deposit is None:
                return None
            now = self.clock.now()
            return LockedDepositView(
                owner=deposit.owner,
                deposit_id=deposit.deposit_id,
                amount=deposit.amount,
                lock_period=deposit.lock_period,
                deposited_at=deposit.deposited_at,
                unlock_at=deposit.unlock_at,
                bonus_rate_bps=deposit.bonus_rate_bps,
                projected_bonus=deposit.projected_bonus,
                withdrawn=deposit.withdrawn,
                can_withdraw=not deposit.withdrawn and deposit.is_mature(now)
            )

    def get_goal(self, owner: str, goal_id: int) -> Optional[GoalView]:
        with self._lock:
            goal = self.goal_tracker.get_goal(owner, goal_id)
            if goal is None:
                return None
            return GoalView(
                owner=goal.owner,
                goal_id=goal.goal_id,
                name=goal.name,
                target_amount=goal.target_amount,
                adjusted_target=goal.adjusted_target,
                current_amount=goal.current_amount,
                progress_percentage=goal.progress_percentage,
                target_at=goal.target_at,
                created_at=goal.created_at,
                is_achieved=goal.is_achieved,
                auto_adjust=goal.auto_adjust
            )

    def get_inflation_state(self) -> InflationInfo:
        with self._lock:
            state = self.oracle.get_state()
            return InflationInfo(
                current_rate_bps=state.current_rate_bps,
                cumulative_index=state.cumulative_index,
                last_update_at=state.last_update_at,
                base_interest_rate_bps=self.config.base_interest_rate_bps
            )

    def get_inflation_snapshot(self, bucket: int) -> Optional[InflationSnapshot]:
        with self._lock:
            return self.oracle.get_snapshot(bucket)

    def get_inflation_history(self) -> List[InflationSnapshot]:
        with self._lock:
            return self.oracle.history()

    def compute_real_value(self, nominal_amount: int, from_time: int) -> RealValueQuote:
        """
        Deflate ``nominal_amount`` held since ``from_time`` at the current
        inflation rate.
        """
        if nominal_amount < 0:
            raise InvalidAmount(f"Nominal amount cannot be negative: {nominal_amount}")
        with self._lock:
            now = self.clock.now()
            if from_time > now:
                raise InvalidAmount(f"Start time {from_time} is in the future")
            factor = inflation_factor(self.oracle.current_rate_bps, now - from_time)
            value = real_value(nominal_amount, factor)
            return RealValueQuote(
                nominal=nominal_amount,
                real_value=value,
                purchasing_power_loss=max(nominal_amount - value, 0),
                inflation_factor=factor
            )

    def verify_audit_integrity(self) -> Dict[str, Any]:
        with self._lock:
            return self.audit_trail.verify_integrity()

    def _account_view(self, account: LedgerAccount) -> AccountView:
        cumulative_index = self.oracle.get_state().cumulative_index
        return AccountView(
            owner=account.owner,
            balance=account.balance,
            real_balance=account.real_balance,
            purchasing_power=mul_div(account.real_balance, PRECISION, cumulative_index),
            total_deposited=account.total_deposited,
            created_at=account.created_at,
            last_adjusted_at=account.last_adjusted_at,
            last_compounded_at=account.last_compounded_at,
            effective_interest_rate_bps=account.compound_rate_bps
        )
