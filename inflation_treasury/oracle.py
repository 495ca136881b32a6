"""
Inflation Oracle Module

Holds the current annual inflation rate and the cumulative inflation index.
A single authorized operator pushes new readings, subject to a cooldown and
a rate ceiling. Updates only influence future accrual; stored balances are
never rewritten.
"""

from dataclasses import dataclass
from typing import List, Optional

from .accrual import (
    PRECISION, MAX_RATE, ORACLE_COOLDOWN, mul_div, period_factor, history_bucket
)
from .audit import AuditTrail, AuditEventType
from .clock import LogicalClock
from .errors import (
    NotAuthorized, InvalidInflationRate, InvalidAmount, OracleUpdateTooFrequent
)
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


logger = get_logger("treasury.oracle")


@dataclass
class InflationState(StorageRecord):
    """Global inflation reading"""
    current_rate_bps: int
    cumulative_index: int
    last_update_at: int


@dataclass
class InflationSnapshot(StorageRecord):
    """Inflation reading recorded for one history bucket"""
    bucket: int
    rate_bps: int
    cumulative_index: int
    recorded_at: int


class InflationOracle:
    """
    Controlled-write holder of the inflation state.

    Each instance is independent; the treasury constructs one and passes it
    to the components that need the current rate.
    """

    STATE_ID = "inflation"

    def __init__(
        self,
        storage: StorageInterface,
        clock: LogicalClock,
        audit_trail: AuditTrail,
        operator: str,
        initial_rate_bps: int = 0
    ):
        if not 0 <= initial_rate_bps <= MAX_RATE:
            raise InvalidInflationRate(f"Initial inflation rate {initial_rate_bps} outside [0, {MAX_RATE}]")

        self.storage = storage
        self.clock = clock
        self.audit_trail = audit_trail
        self.operator = operator
        self.state_table = "inflation_state"
        self.history_table = "inflation_history"

        # Reuse persisted state when reopening an existing store
        if not self.storage.exists(self.state_table, self.STATE_ID):
            now = self.clock.now()
            self._save_state(InflationState(
                id=self.STATE_ID,
                created_at=now,
                current_rate_bps=initial_rate_bps,
                cumulative_index=PRECISION,
                last_update_at=now
            ))

    def get_state(self) -> InflationState:
        """Current inflation state"""
        return InflationState.from_dict(self.storage.load(self.state_table, self.STATE_ID))

    @property
    def current_rate_bps(self) -> int:
        return self.get_state().current_rate_bps

    def check_update(self, caller: str, new_rate_bps: int, period_duration: int) -> InflationState:
        """
        Run every precondition of ``update_rate`` without writing anything.

        Returns:
            The current state the update would apply to
        """
        if caller != self.operator:
            raise NotAuthorized(f"{caller} is not the inflation oracle operator")
        if new_rate_bps < 0 or new_rate_bps > MAX_RATE:
            raise InvalidInflationRate(f"Inflation rate {new_rate_bps} outside [0, {MAX_RATE}]")
        if period_duration < 0:
            raise InvalidAmount(f"Period duration cannot be negative: {period_duration}")

        state = self.get_state()
        if self.clock.now() - state.last_update_at < ORACLE_COOLDOWN:
            raise OracleUpdateTooFrequent(
                f"Last update at {state.last_update_at}; next allowed at {state.last_update_at + ORACLE_COOLDOWN}"
            )
        return state

    def update_rate(self, caller: str, new_rate_bps: int, period_duration: int) -> int:
        """
        Record a new annual inflation rate.

        Args:
            caller: Verified caller identity; must be the operator
            new_rate_bps: New annual rate in basis points, at most MAX_RATE
            period_duration: Length of the period the reading covers, in
                logical time units; scales the cumulative index growth

        Returns:
            The new cumulative inflation index
        """
        state = self.check_update(caller, new_rate_bps, period_duration)
        now = self.clock.now()

        factor = period_factor(new_rate_bps, period_duration)
        new_index = mul_div(state.cumulative_index, factor, PRECISION)

        previous_rate = state.current_rate_bps
        state.current_rate_bps = new_rate_bps
        state.cumulative_index = new_index
        state.last_update_at = now
        self._save_state(state)

        bucket = history_bucket(now)
        snapshot = InflationSnapshot(
            id=str(bucket),
            created_at=now,
            bucket=bucket,
            rate_bps=new_rate_bps,
            cumulative_index=new_index,
            recorded_at=now
        )
        self.storage.save(self.history_table, snapshot.id, snapshot.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.INFLATION_RATE_UPDATED,
            entity_type="oracle",
            entity_id=self.STATE_ID,
            logical_time=now,
            user_id=caller,
            metadata={
                "previous_rate_bps": previous_rate,
                "new_rate_bps": new_rate_bps,
                "period_duration": period_duration,
                "period_factor": factor,
                "cumulative_index": new_index,
                "bucket": bucket
            }
        )
        log_action(
            logger, "info", f"Inflation rate set to {new_rate_bps} bps",
            user_id=caller, action="update_rate", resource="oracle",
            logical_time=now,
            extra={"cumulative_index": new_index, "bucket": bucket}
        )

        return new_index

    def get_snapshot(self, bucket: int) -> Optional[InflationSnapshot]:
        """Snapshot recorded for ``bucket``, if any"""
        data = self.storage.load(self.history_table, str(bucket))
        if data:
            return InflationSnapshot.from_dict(data)
        return None

    def history(self) -> List[InflationSnapshot]:
        """All snapshots ordered by bucket"""
        snapshots = [InflationSnapshot.from_dict(data) for data in self.storage.load_all(self.history_table)]
        return sorted(snapshots, key=lambda s: s.bucket)

    def _save_state(self, state: InflationState) -> None:
        self.storage.save(self.state_table, state.id, state.to_dict())
