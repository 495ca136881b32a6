"""
Savings Goal Tracker Module

Tracks progress toward per-owner savings targets. A goal created with
``auto_adjust`` re-indexes its target to inflation, measured over the goal's
age, each time funds are allocated to it.
"""

from dataclasses import dataclass
from typing import List, Optional

from .accrual import PRECISION, mul_div, checked_add, inflation_factor
from .accounts import AccountLedger, require_positive
from .audit import AuditTrail, AuditEventType
from .clock import LogicalClock
from .errors import AccountNotFound, GoalAlreadyAchieved, GoalNotFound, InvalidAmount
from .logging_config import get_logger, log_action
from .oracle import InflationOracle
from .storage import StorageInterface, StorageRecord, composite_key, next_sequence


logger = get_logger("treasury.goals")


@dataclass
class SavingsGoal(StorageRecord):
    """Savings target keyed by (owner, goal_id)"""
    owner: str
    goal_id: int
    name: str
    target_amount: int
    adjusted_target: int
    current_amount: int
    target_at: int
    auto_adjust: bool
    is_achieved: bool = False

    @property
    def progress_percentage(self) -> int:
        return self.current_amount * 100 // self.adjusted_target


class SavingsGoalTracker:
    """
    Creates goals and allocates account funds to them
    """

    def __init__(
        self,
        storage: StorageInterface,
        clock: LogicalClock,
        oracle: InflationOracle,
        account_ledger: AccountLedger,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.clock = clock
        self.oracle = oracle
        self.account_ledger = account_ledger
        self.audit_trail = audit_trail
        self.goals_table = "savings_goals"

    def get_goal(self, owner: str, goal_id: int) -> Optional[SavingsGoal]:
        data = self.storage.load(self.goals_table, composite_key(owner, goal_id))
        if data:
            return SavingsGoal.from_dict(data)
        return None

    def get_owner_goals(self, owner: str) -> List[SavingsGoal]:
        goals = [SavingsGoal.from_dict(d) for d in self.storage.find(self.goals_table, {"owner": owner})]
        return sorted(goals, key=lambda g: g.goal_id)

    def adjusted_target_at(self, goal: SavingsGoal, now: int) -> int:
        """Target re-indexed to inflation over the goal's age"""
        factor = inflation_factor(self.oracle.current_rate_bps, now - goal.created_at)
        return mul_div(goal.target_amount, factor, PRECISION)

    def check_goal(self, target_amount: int, target_at: int) -> int:
        """Validate a new goal's terms and return the current time"""
        require_positive(target_amount)
        now = self.clock.now()
        if target_at <= now:
            raise InvalidAmount(f"Target time {target_at} is not after {now}")
        return now

    def create_goal(self, owner: str, target_amount: int, target_at: int,
                    name: str, auto_adjust: bool) -> int:
        """
        Create a savings goal.

        Args:
            owner: Caller identity
            target_amount: Amount to save, in today's terms
            target_at: Logical time the goal should be reached by; must be
                in the future
            name: Display name
            auto_adjust: Re-index the target to inflation on each allocation

        Returns:
            The new goal id
        """
        now = self.check_goal(target_amount, target_at)

        goal_id = next_sequence(self.storage, owner, "savings_goal")
        goal = SavingsGoal(
            id=composite_key(owner, goal_id),
            created_at=now,
            owner=owner,
            goal_id=goal_id,
            name=name,
            target_amount=target_amount,
            adjusted_target=target_amount,
            current_amount=0,
            target_at=target_at,
            auto_adjust=bool(auto_adjust)
        )
        self._save_goal(goal)

        self.audit_trail.log_event(
            event_type=AuditEventType.GOAL_CREATED,
            entity_type="savings_goal",
            entity_id=goal.id,
            logical_time=now,
            user_id=owner,
            metadata={
                "name": name,
                "target_amount": target_amount,
                "target_at": target_at,
                "auto_adjust": goal.auto_adjust
            }
        )
        log_action(logger, "info", f"Goal '{name}' created", user_id=owner,
                   action="create_goal", resource="savings_goal",
                   logical_time=now,
                   extra={"goal_id": goal_id, "target_amount": target_amount})

        return goal_id

    def allocate(self, owner: str, goal_id: int, amount: int) -> int:
        """
        Move ``amount`` of the nominal balance toward a goal.

        Returns:
            The allocated amount
        """
        goal = self.get_goal(owner, goal_id)
        if goal is None:
            raise GoalNotFound(f"No goal {goal_id} for {owner}")
        if not self.account_ledger.exists(owner):
            raise AccountNotFound(f"No account for {owner}")
        require_positive(amount)
        if goal.is_achieved:
            raise GoalAlreadyAchieved(f"Goal {goal_id} is already achieved")

        now = self.clock.now()
        adjusted_target = goal.adjusted_target
        if goal.auto_adjust:
            adjusted_target = self.adjusted_target_at(goal, now)
        current_amount = checked_add(goal.current_amount, amount)

        # Raises InsufficientBalance before the goal is written
        self.account_ledger.debit_nominal(owner, amount)

        goal.adjusted_target = adjusted_target
        goal.current_amount = current_amount
        goal.is_achieved = current_amount >= adjusted_target
        self._save_goal(goal)

        self.audit_trail.log_event(
            event_type=AuditEventType.GOAL_ALLOCATED,
            entity_type="savings_goal",
            entity_id=goal.id,
            logical_time=now,
            user_id=owner,
            metadata={
                "amount": amount,
                "current_amount": current_amount,
                "adjusted_target": adjusted_target
            }
        )
        if goal.is_achieved:
            self.audit_trail.log_event(
                event_type=AuditEventType.GOAL_ACHIEVED,
                entity_type="savings_goal",
                entity_id=goal.id,
                logical_time=now,
                user_id=owner,
                metadata={"current_amount": current_amount, "adjusted_target": adjusted_target}
            )
        log_action(logger, "info", f"Allocated {amount} to goal {goal_id}", user_id=owner,
                   action="allocate", resource="savings_goal",
                   logical_time=now,
                   extra={"achieved": goal.is_achieved})

        return amount

    def _save_goal(self, goal: SavingsGoal) -> None:
        self.storage.save(self.goals_table, goal.id, goal.to_dict())
