"""
Payout rules for prode settlement.

A rule is one of two variants:

- ``PointsPayout``: correct outcome and exact score earn points that stack.
- ``PoolPayout``: stakes form a pari-mutuel pool; after the house fee the
  pool is shared among the stakes on the real outcome.
"""

from dataclasses import dataclass

POINTS_MODE = "points"
POOL_MODE = "pool"

DEFAULT_RESULT_POINTS = 3
DEFAULT_EXACT_POINTS = 5
DEFAULT_FEE_PERCENT = 10.0


@dataclass(frozen=True)
class PointsPayout:
    result_points: int = DEFAULT_RESULT_POINTS
    exact_points: int = DEFAULT_EXACT_POINTS
    # Recorded in the audit trail only; points mode credits no wallet
    fee_percent: float = DEFAULT_FEE_PERCENT

    mode = POINTS_MODE


@dataclass(frozen=True)
class PoolPayout:
    fee_percent: float = DEFAULT_FEE_PERCENT

    mode = POOL_MODE


def build_payout_rule(mode, result_points=None, exact_points=None, fee_percent=None):
    """Build the rule for a stored mode name, filling in defaults"""
    if mode == POINTS_MODE:
        return PointsPayout(
            result_points=int(
                DEFAULT_RESULT_POINTS if result_points is None else result_points
            ),
            exact_points=int(
                DEFAULT_EXACT_POINTS if exact_points is None else exact_points
            ),
            fee_percent=float(
                DEFAULT_FEE_PERCENT if fee_percent is None else fee_percent
            ),
        )
    if mode == POOL_MODE:
        return PoolPayout(
            fee_percent=float(
                DEFAULT_FEE_PERCENT if fee_percent is None else fee_percent
            )
        )
    raise ValueError(f"Unknown payout mode: {mode}")


DEFAULT_PAYOUT_RULE = PoolPayout()
