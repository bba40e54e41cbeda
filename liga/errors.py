class LeagueError(Exception):
    """Base exception for league and prode operations."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class MatchNotFound(LeagueError):
    """Match id does not reference an existing match."""

    code = "match_not_found"
    status_code = 404

    def __init__(self, match_id):
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id


class MatchWithoutResult(LeagueError):
    """Match is not played or one of its scores is missing."""

    code = "match_without_result"
    status_code = 400

    def __init__(self, match_id):
        super().__init__(f"Match {match_id} has no recorded result")
        self.match_id = match_id


class ZoneNotFound(LeagueError):
    """Zone id does not reference an existing zone."""

    code = "zone_not_found"
    status_code = 404

    def __init__(self, zone_id):
        super().__init__(f"Zone {zone_id} not found")
        self.zone_id = zone_id


class StorageReadFailure(LeagueError):
    """Reading from the database failed before anything was written."""

    code = "storage_read_failure"


class StorageWriteFailure(LeagueError):
    """Writing a single row failed; other rows are unaffected."""

    code = "storage_write_failure"

    def __init__(self, message: str, row_id=None):
        super().__init__(message)
        self.row_id = row_id
