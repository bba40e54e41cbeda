"""
Prode settlement engine.

Settles every unsettled prediction of a played match, either awarding points
or sharing the stake pool among the winners, and hands the computed rows to
the repository in one batch.

Settlement is resumable: the ``settled`` flag marks finished rows, so calling
``settle`` again after a partial failure only processes what is left.
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal

from liga.errors import MatchWithoutResult, StorageWriteFailure
from liga.models.match import outcome_for
from liga.services.payout_rules import PointsPayout, PoolPayout
from liga.utils.logging_config import ContextualLogger
from liga.utils.performance import PerformanceMonitor

logger = logging.getLogger(__name__)

# A missing predicted score never equals a real one
MISSING_SCORE = -999

CENT = Decimal("0.01")


@dataclass(frozen=True)
class PoolTotals:
    pool_total: float
    winners_total: float
    fee: float
    distributable: float

    def to_dict(self):
        return {
            "pool_total": self.pool_total,
            "winners_total": self.winners_total,
            "fee": self.fee,
            "distributable": self.distributable,
        }


@dataclass(frozen=True)
class SettlementRow:
    """Computed outcome for one prediction, ready to persist"""

    prediction_id: int
    user_id: int
    is_correct: bool
    points_awarded: int
    payout_amount: float
    wallet_credit: float
    currency: str


@dataclass
class SettlementResult:
    match_id: int
    mode: str
    pool: PoolTotals
    settled_prediction_ids: list = field(default_factory=list)
    failed_prediction_ids: list = field(default_factory=list)

    @property
    def settled_count(self):
        return len(self.settled_prediction_ids)

    def to_dict(self):
        return {
            "match_id": self.match_id,
            "mode": self.mode,
            "settled": self.settled_count,
            "failed": list(self.failed_prediction_ids),
            "pool": self.pool.to_dict(),
        }


def _stake(prediction):
    return float(prediction.stake or 0)


def pool_share(distributable, stake, winners_total):
    """
    A winner's cut of the distributable pool, truncated to cents.

    The shares of all winners never add up to more than ``distributable``.
    """
    share = (
        Decimal(str(distributable)) * Decimal(str(stake)) / Decimal(str(winners_total))
    )
    return float(share.quantize(CENT, rounding=ROUND_DOWN))


def compute_pool_totals(predictions, real_outcome, fee_percent):
    """Stake pool accounting for a set of predictions"""
    pool_total = 0.0
    winners_total = 0.0
    for prediction in predictions:
        stake = _stake(prediction)
        pool_total += stake
        if prediction.predicted_outcome == real_outcome:
            winners_total += stake

    fee = pool_total * fee_percent / 100
    # A fee above 100% must not produce a negative pool
    distributable = max(0.0, pool_total - fee)
    return PoolTotals(pool_total, winners_total, fee, distributable)


def is_exact_score(prediction, home_score, away_score):
    predicted_home = prediction.predicted_home_score
    predicted_away = prediction.predicted_away_score
    if predicted_home is None:
        predicted_home = MISSING_SCORE
    if predicted_away is None:
        predicted_away = MISSING_SCORE
    return predicted_home == home_score and predicted_away == away_score


def settle_prediction(prediction, match, rule, totals):
    """Compute points or payout for one prediction"""
    real_outcome = outcome_for(match.home_score, match.away_score)
    correct_outcome = prediction.predicted_outcome == real_outcome
    exact = is_exact_score(prediction, match.home_score, match.away_score)

    points_awarded = 0
    payout_amount = 0.0

    if isinstance(rule, PointsPayout):
        if correct_outcome:
            points_awarded += rule.result_points
        if exact:
            points_awarded += rule.exact_points
        wallet_credit = 0.0
    elif isinstance(rule, PoolPayout):
        if correct_outcome and totals.winners_total > 0:
            payout_amount = pool_share(
                totals.distributable, _stake(prediction), totals.winners_total
            )
        wallet_credit = payout_amount
    else:
        raise TypeError(f"Unsupported payout rule: {rule!r}")

    return SettlementRow(
        prediction_id=prediction.id,
        user_id=prediction.user_id,
        is_correct=correct_outcome,
        points_awarded=points_awarded,
        payout_amount=payout_amount,
        wallet_credit=wallet_credit,
        currency=getattr(prediction, "currency", None) or "ARS",
    )


class SettlementEngine:
    """Settles a match's predictions against its official result"""

    def __init__(self, repository):
        self.repository = repository

    def settle(self, match_id, actor_user_id=None):
        """
        Settle all unsettled predictions of a match.

        Raises:
            MatchNotFound: the match does not exist
            MatchWithoutResult: the match is unplayed or a score is missing
            StorageReadFailure: loading data failed; nothing was written
        """
        match = self.repository.get_match(match_id)
        if (
            not match.is_played
            or match.home_score is None
            or match.away_score is None
        ):
            raise MatchWithoutResult(match_id)

        rule = self.repository.get_payout_rule()
        predictions = self.repository.get_unsettled_predictions(match_id)

        run_log = ContextualLogger(
            __name__, {"match_id": match_id, "mode": rule.mode}
        )

        real_outcome = outcome_for(match.home_score, match.away_score)
        totals = compute_pool_totals(predictions, real_outcome, rule.fee_percent)
        result = SettlementResult(match_id=match_id, mode=rule.mode, pool=totals)

        if predictions:
            rows = [
                settle_prediction(prediction, match, rule, totals)
                for prediction in predictions
            ]

            with PerformanceMonitor(f"settle match {match_id}"):
                applied, failed = self.repository.apply_settlement_batch(match, rows)

            result.settled_prediction_ids = list(applied)
            result.failed_prediction_ids = list(failed)

            if failed:
                run_log.warning(
                    f"{len(failed)} predictions failed to settle and stay pending: {failed}"
                )
        else:
            run_log.info("No unsettled predictions")

        try:
            self.repository.log_audit(
                "settle_match",
                actor_user_id=actor_user_id,
                payload={
                    "match_id": match_id,
                    "payout_mode": rule.mode,
                    "fee_percent": rule.fee_percent,
                    "settled": result.settled_count,
                },
            )
        except StorageWriteFailure as e:
            # Rows and credits are already committed
            run_log.error(f"Settlement audit entry not written: {e}")

        run_log.info(
            f"Settled {result.settled_count}/{len(predictions)} predictions "
            f"(outcome {real_outcome}, pool {totals.pool_total:.2f}, "
            f"distributable {totals.distributable:.2f})"
        )
        return result
