"""
Inflation Treasury

An accrual ledger whose balances compound at an inflation-boosted rate and
are tracked in real (purchasing-power) terms, with time-locked deposits and
inflation-indexed savings goals. All accrual is computed lazily from elapsed
logical time.
"""

__version__ = "1.0.0"
