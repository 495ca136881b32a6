"""
Treasury Error Module

Caller-visible error kinds. Every error is a ValueError carrying a stable
``code`` so hosts can map failures without parsing messages.
"""

from typing import Optional


class TreasuryError(ValueError):
    """Base class for all rejected treasury operations"""
    code = "treasury_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)


class NotAuthorized(TreasuryError):
    code = "not_authorized"


class AccountNotFound(TreasuryError):
    code = "account_not_found"


class AccountExists(TreasuryError):
    code = "account_exists"


class InsufficientBalance(TreasuryError):
    code = "insufficient_balance"


class InvalidAmount(TreasuryError):
    """Non-positive or out-of-range amount, duration or rate"""
    code = "invalid_amount"


class GoalNotFound(TreasuryError):
    code = "goal_not_found"


class GoalAlreadyAchieved(TreasuryError):
    code = "goal_already_achieved"


class DepositNotFound(TreasuryError):
    code = "deposit_not_found"


class WithdrawalTooEarly(TreasuryError):
    code = "withdrawal_too_early"


class AlreadyWithdrawn(TreasuryError):
    code = "already_withdrawn"


class InvalidInflationRate(TreasuryError):
    code = "invalid_inflation_rate"


class OracleUpdateTooFrequent(TreasuryError):
    code = "oracle_update_too_frequent"


class ArithmeticOverflow(TreasuryError):
    """Fixed-point result outside the representable unsigned range"""
    code = "arithmetic_overflow"
