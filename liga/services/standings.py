"""
Standings aggregation and ranking.

``StandingsAggregator`` rebuilds a zone's table from its played matches and
replaces the stored rows wholesale. ``rank_standings`` orders a table at read
time, honouring manual positions set by an administrator.
"""

import logging
from dataclasses import dataclass

from liga.utils.performance import PerformanceMonitor

logger = logging.getLogger(__name__)

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1


@dataclass
class StandingRow:
    team_id: int
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0

    @property
    def goal_difference(self):
        return self.goals_for - self.goals_against

    def record(self, scored, conceded):
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.won += 1
            self.points += POINTS_FOR_WIN
        elif scored == conceded:
            self.drawn += 1
            self.points += POINTS_FOR_DRAW
        else:
            self.lost += 1


def compute_standings(team_ids, matches, zone_id=None):
    """
    Tally played matches into one row per team.

    Unplayed matches and matches missing a score contribute nothing. Matches
    involving a team outside ``team_ids`` are skipped.
    """
    rows = {team_id: StandingRow(team_id=team_id) for team_id in team_ids}

    for match in matches:
        if not match.is_played or match.home_score is None or match.away_score is None:
            continue

        home = rows.get(match.home_team_id)
        away = rows.get(match.away_team_id)
        if home is None or away is None:
            logger.warning(
                f"Skipping match {match.id} in zone {zone_id}: "
                f"team outside the zone roster"
            )
            continue

        home.record(match.home_score, match.away_score)
        away.record(match.away_score, match.home_score)

    return list(rows.values())


class StandingsAggregator:
    """Recomputes a zone's standings from scratch"""

    def __init__(self, repository):
        self.repository = repository

    def aggregate(self, zone_id):
        """
        Rebuild and store the standings of a zone.

        Raises:
            ZoneNotFound: unknown zone
            StorageReadFailure: loading teams or matches failed
            StorageWriteFailure: the table could not be replaced
        """
        zone = self.repository.get_zone(zone_id)
        teams = self.repository.get_zone_teams(zone_id)
        matches = self.repository.get_zone_matches(zone_id)

        with PerformanceMonitor(f"aggregate zone {zone_id}"):
            rows = compute_standings([team.id for team in teams], matches, zone_id)
            standings = self.repository.replace_standings(zone, rows)

        logger.info(
            f"Recomputed zone {zone_id}: {len(standings)} teams, {len(matches)} matches"
        )
        return standings


def computed_sort_key(standing, team_name):
    return (
        -standing.points,
        -standing.goal_difference,
        -standing.goals_for,
        standing.played,
        (team_name or "").casefold(),
    )


def rank_standings(standings, team_names, manual_orders=None):
    """
    Order a zone table and number it from 1.

    Args:
        standings: rows with team_id, played, won, drawn, lost, goals_for,
            goals_against and points
        team_names: team id to name, used as the last tiebreaker
        manual_orders: team id to manual position. Once any team has a
            positive position the whole table sorts by it ascending, with
            missing positions counted as 0 and the computed order breaking ties

    Returns:
        list of dicts, one per team, with ``position`` and ``team_name``
    """
    manual_orders = manual_orders or {}

    computed = sorted(
        standings,
        key=lambda s: computed_sort_key(s, team_names.get(s.team_id)),
    )

    if any(position > 0 for position in manual_orders.values()):
        # Stable sort keeps the computed order among equal manual positions
        computed.sort(key=lambda s: manual_orders.get(s.team_id, 0))

    ranked = []
    for position, standing in enumerate(computed, start=1):
        ranked.append(
            {
                "position": position,
                "team_id": standing.team_id,
                "team_name": team_names.get(standing.team_id),
                "played": standing.played,
                "won": standing.won,
                "drawn": standing.drawn,
                "lost": standing.lost,
                "goals_for": standing.goals_for,
                "goals_against": standing.goals_against,
                "goal_difference": standing.goal_difference,
                "points": standing.points,
                "manual_position": manual_orders.get(standing.team_id) or None,
            }
        )
    return ranked


def ranked_zone_table(repository, zone_id):
    """Stored standings of a zone, ranked, as a JSON-ready payload"""
    zone = repository.get_zone(zone_id)
    standings = repository.get_standings(zone_id)

    team_names = {team.id: team.name for team in repository.get_zone_teams(zone_id)}
    for standing in standings:
        if standing.team_id not in team_names and standing.team is not None:
            team_names[standing.team_id] = standing.team.name

    manual_orders = repository.get_manual_orders(zone_id, zone.category_id)
    return {
        "zone": zone.to_dict(),
        "standings": rank_standings(standings, team_names, manual_orders),
    }
