"""
Settlement and standings workflows shared by the API, CLI and scheduler.

Each workflow runs the core service and then refreshes caches and pushes
real-time updates.
"""

import logging

from liga.models import Prediction
from liga.repository import LeagueRepository
from liga.services.settlement import SettlementEngine
from liga.services.standings import StandingsAggregator, ranked_zone_table
from liga.utils.cache_utils import invalidate_leaderboard, invalidate_zone_standings

logger = logging.getLogger(__name__)


def settle_match(match_id, actor_user_id=None, repository=None):
    """Settle a match, refresh the leaderboard and notify prediction owners"""
    from liga.socketio_handlers import notify_prediction_settled

    repository = repository or LeagueRepository()
    result = SettlementEngine(repository).settle(match_id, actor_user_id=actor_user_id)

    if result.settled_prediction_ids:
        invalidate_leaderboard()
        settled = Prediction.query.filter(
            Prediction.id.in_(result.settled_prediction_ids)
        ).all()
        notify_prediction_settled(settled)

    return result


def recompute_zone(zone_id, actor_user_id=None, repository=None):
    """Rebuild a zone table, drop its cached copy and broadcast the ranked table"""
    from liga.socketio_handlers import broadcast_standings

    repository = repository or LeagueRepository()
    StandingsAggregator(repository).aggregate(zone_id)
    invalidate_zone_standings(zone_id)

    payload = ranked_zone_table(repository, zone_id)
    broadcast_standings(zone_id, payload)

    if actor_user_id is not None:
        repository.log_audit(
            "recompute_standings",
            actor_user_id=actor_user_id,
            payload={"zone_id": zone_id},
        )
    return payload


def zones_of_match(match):
    """Zones whose tables include the match"""
    zone_ids = {match.zone_id}
    if match.fixture is not None:
        zone_ids.add(match.fixture.zone_id)
    return sorted(zone_ids)
