"""
Accrual Engine Module

Pure fixed-point functions that turn elapsed logical time and a rate into
compounding and deflation factors. Every factor is scaled by PRECISION
(10000 == 1.0). Intermediate products use unbounded Python integers and
results are checked against the unsigned 128-bit ceiling of the ledger.
"""

from .errors import ArithmeticOverflow, InvalidAmount

# Protocol constants
PRECISION = 10000
MIN_LOCK_PERIOD = 144         # ~1 day of logical time units
ORACLE_COOLDOWN = 144
MAX_RATE = 2000               # 20% annual inflation ceiling
MAX_BONUS = 1000              # 10% lock bonus ceiling
BLOCKS_PER_YEAR = 52560       # 144 units/day * 365
HISTORY_BUCKET_SIZE = 1440    # ~10 days per inflation snapshot

MAX_UINT = 2 ** 128 - 1


def _check_range(value: int) -> int:
    if value > MAX_UINT:
        raise ArithmeticOverflow(f"Value {value} exceeds unsigned 128-bit range")
    return value


def checked_add(a: int, b: int) -> int:
    """Add two unsigned amounts, rejecting results above MAX_UINT"""
    if a < 0 or b < 0:
        raise InvalidAmount("Operands must be non-negative")
    return _check_range(a + b)


def checked_sub(a: int, b: int) -> int:
    """Subtract unsigned amounts, rejecting underflow"""
    if b > a:
        raise ArithmeticOverflow(f"Subtraction underflow: {a} - {b}")
    return a - b


def mul_div(a: int, b: int, divisor: int) -> int:
    """
    Compute ``a * b // divisor`` with a wide intermediate.

    Multiplication always happens before division so that no precision is
    lost to an early truncation.
    """
    if a < 0 or b < 0:
        raise InvalidAmount("Operands must be non-negative")
    if divisor <= 0:
        raise ArithmeticOverflow("Division by zero in fixed-point computation")
    _check_range(a)
    _check_range(b)
    return _check_range(a * b // divisor)


def _rate_factor(rate_bps: int, elapsed: int) -> int:
    if elapsed < 0:
        raise InvalidAmount(f"Elapsed time cannot be negative: {elapsed}")
    return checked_add(PRECISION, mul_div(rate_bps, elapsed, BLOCKS_PER_YEAR))


def compound_factor(rate_bps: int, elapsed: int) -> int:
    """
    First-order compounding factor for ``elapsed`` time units.

    Simple (linear) approximation ``1 + r * t``, valid for the short windows
    between account touches.
    """
    return _rate_factor(rate_bps, elapsed)


def inflation_factor(current_rate_bps: int, elapsed: int) -> int:
    """
    Deflation divisor for ``elapsed`` time units at the current oracle rate.

    The current rate is applied uniformly to the whole window; rate changes
    inside the window are not integrated.
    """
    return _rate_factor(current_rate_bps, elapsed)


def period_factor(rate_bps: int, period_duration: int) -> int:
    """Growth of the cumulative inflation index over one reported period"""
    return _rate_factor(rate_bps, period_duration)


def inflation_bonus_bps(current_rate_bps: int) -> int:
    """Half the current inflation rate"""
    return current_rate_bps // 2


def apply_rate_bonus(compound_rate_bps: int, current_rate_bps: int) -> int:
    """
    Return the account's effective rate after one resync.

    The bonus accumulates on every resync, so the effective rate only ever
    grows. Replace this function to recompute the rate from a base instead.
    """
    return checked_add(compound_rate_bps, inflation_bonus_bps(current_rate_bps))


def real_value(nominal: int, factor: int) -> int:
    """Deflate a nominal amount by an inflation factor"""
    return mul_div(nominal, PRECISION, factor)


def lock_bonus(amount: int, bonus_rate_bps: int, lock_period: int) -> int:
    """
    Bonus paid on a matured lock.

    Whole years only: a lock shorter than BLOCKS_PER_YEAR earns nothing.
    """
    lock_years = lock_period // BLOCKS_PER_YEAR
    annual_bonus = mul_div(amount, bonus_rate_bps, PRECISION)
    return mul_div(annual_bonus, lock_years, 1)


def history_bucket(now: int) -> int:
    """History bucket a logical time falls into"""
    return now // HISTORY_BUCKET_SIZE
