"""
Time-Locked Deposit Registry Module

Locked positions earn a bonus that can be claimed once the lock matures.
The principal itself is credited to the main balance at lock time; the lock
only gates the bonus payout.
"""

from dataclasses import dataclass
from typing import List, Optional

from .accrual import MIN_LOCK_PERIOD, MAX_BONUS, checked_add, lock_bonus
from .accounts import AccountLedger, require_positive
from .audit import AuditTrail, AuditEventType
from .clock import LogicalClock
from .errors import (
    AccountNotFound, AlreadyWithdrawn, DepositNotFound, InvalidAmount, WithdrawalTooEarly
)
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord, composite_key, next_sequence


logger = get_logger("treasury.deposits")


@dataclass
class LockedDeposit(StorageRecord):
    """Locked position keyed by (owner, deposit_id)"""
    owner: str
    deposit_id: int
    amount: int
    lock_period: int
    deposited_at: int
    bonus_rate_bps: int
    withdrawn: bool = False

    @property
    def unlock_at(self) -> int:
        return self.deposited_at + self.lock_period

    @property
    def projected_bonus(self) -> int:
        return lock_bonus(self.amount, self.bonus_rate_bps, self.lock_period)

    def is_mature(self, now: int) -> bool:
        return now >= self.unlock_at


class LockedDepositRegistry:
    """
    Creates locks and pays out matured bonuses
    """

    def __init__(
        self,
        storage: StorageInterface,
        clock: LogicalClock,
        account_ledger: AccountLedger,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.clock = clock
        self.account_ledger = account_ledger
        self.audit_trail = audit_trail
        self.deposits_table = "locked_deposits"

    def get_deposit(self, owner: str, deposit_id: int) -> Optional[LockedDeposit]:
        data = self.storage.load(self.deposits_table, composite_key(owner, deposit_id))
        if data:
            return LockedDeposit.from_dict(data)
        return None

    def get_owner_deposits(self, owner: str) -> List[LockedDeposit]:
        deposits = [LockedDeposit.from_dict(d) for d in self.storage.find(self.deposits_table, {"owner": owner})]
        return sorted(deposits, key=lambda d: d.deposit_id)

    def lock(self, owner: str, amount: int, lock_duration: int, bonus_rate_bps: int) -> int:
        """
        Lock ``amount`` for ``lock_duration`` time units.

        Args:
            owner: Caller identity; must already have an account
            amount: Principal, credited to the main balance immediately
            lock_duration: Lock length, at least MIN_LOCK_PERIOD
            bonus_rate_bps: Annual bonus rate, at most MAX_BONUS

        Returns:
            The new deposit id
        """
        if not self.account_ledger.exists(owner):
            raise AccountNotFound(f"No account for {owner}")
        require_positive(amount)
        if lock_duration < MIN_LOCK_PERIOD:
            raise InvalidAmount(f"Lock period {lock_duration} is shorter than {MIN_LOCK_PERIOD}")
        if bonus_rate_bps < 0 or bonus_rate_bps > MAX_BONUS:
            raise InvalidAmount(f"Bonus rate {bonus_rate_bps} outside [0, {MAX_BONUS}]")

        # Credits the principal, or raises before anything is written
        self.account_ledger.deposit(owner, amount)

        now = self.clock.now()
        deposit_id = next_sequence(self.storage, owner, "locked_deposit")
        deposit = LockedDeposit(
            id=composite_key(owner, deposit_id),
            created_at=now,
            owner=owner,
            deposit_id=deposit_id,
            amount=amount,
            lock_period=lock_duration,
            deposited_at=now,
            bonus_rate_bps=bonus_rate_bps
        )
        self._save_deposit(deposit)

        self.audit_trail.log_event(
            event_type=AuditEventType.DEPOSIT_LOCKED,
            entity_type="locked_deposit",
            entity_id=deposit.id,
            logical_time=now,
            user_id=owner,
            metadata={
                "amount": amount,
                "lock_period": lock_duration,
                "bonus_rate_bps": bonus_rate_bps,
                "unlock_at": deposit.unlock_at
            }
        )
        log_action(logger, "info", f"Locked {amount} until {deposit.unlock_at}",
                   user_id=owner, action="lock", resource="locked_deposit",
                   logical_time=now,
                   extra={"deposit_id": deposit_id})

        return deposit_id

    def withdraw_bonus(self, owner: str, deposit_id: int) -> int:
        """
        Claim the bonus of a matured lock.

        Only whole years of lock time earn a bonus.

        Returns:
            Principal plus bonus
        """
        deposit = self.get_deposit(owner, deposit_id)
        if deposit is None:
            raise DepositNotFound(f"No locked deposit {deposit_id} for {owner}")
        if deposit.withdrawn:
            raise AlreadyWithdrawn(f"Locked deposit {deposit_id} already withdrawn")

        now = self.clock.now()
        if not deposit.is_mature(now):
            raise WithdrawalTooEarly(f"Locked deposit {deposit_id} unlocks at {deposit.unlock_at}")

        bonus = deposit.projected_bonus
        payout = checked_add(deposit.amount, bonus)

        self.account_ledger.credit_bonus(owner, bonus)
        deposit.withdrawn = True
        self._save_deposit(deposit)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOCK_BONUS_WITHDRAWN,
            entity_type="locked_deposit",
            entity_id=deposit.id,
            logical_time=now,
            user_id=owner,
            metadata={"amount": deposit.amount, "bonus": bonus, "payout": payout}
        )
        log_action(logger, "info", f"Bonus {bonus} paid on locked deposit {deposit_id}",
                   user_id=owner, action="withdraw_bonus", resource="locked_deposit",
                   logical_time=now)

        return payout

    def _save_deposit(self, deposit: LockedDeposit) -> None:
        self.storage.save(self.deposits_table, deposit.id, deposit.to_dict())
