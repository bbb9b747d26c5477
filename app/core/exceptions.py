"""
Error taxonomy for the sync pipeline and the read API.

Only StorageUnavailableError is allowed to escape a sync cycle; everything
else is recovered at the adapter, entity, or request level.
"""


class SportsTrackerError(Exception):
    """Base class for all application errors."""


class PayloadValidationError(SportsTrackerError):
    """An upstream record cannot be turned into a game (missing id, teams, bad score)."""


class VersionConflictError(SportsTrackerError):
    """Another writer already appended an event with this version for the game."""

    def __init__(self, game_id: str, version: int):
        self.game_id = game_id
        self.version = version
        super().__init__(f"Version {version} already taken for game '{game_id}'")


class AppendRetriesExhaustedError(SportsTrackerError):
    """Version conflicts kept happening after the configured number of retries."""

    def __init__(self, game_id: str, attempts: int):
        self.game_id = game_id
        self.attempts = attempts
        super().__init__(f"Gave up appending event for game '{game_id}' after {attempts} attempts")


class StorageUnavailableError(SportsTrackerError):
    """The database is unreachable. Fatal for the running cycle."""


class GameNotFoundError(SportsTrackerError):
    """No snapshot exists for the requested game."""

    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game with ID '{game_id}' not found")


class InvalidQueryError(SportsTrackerError):
    """A read API filter value (sport, status, event type) is not recognised."""
