"""Trivia error hierarchy.

Routes translate these into JSON responses; the round controller never lets
them escape a tick.
"""


class TriviaError(Exception):
    """Base class for all trivia errors."""
    status_code = 500

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self):
        data = {'error': self.message}
        data.update(self.payload)
        return data


class ValidationError(TriviaError):
    """Malformed settings or answer submission. Rejected, never retried."""
    status_code = 400


class CollaboratorUnavailable(TriviaError):
    """A store or the broadcast channel failed."""
    status_code = 503


class LogicConflict(TriviaError):
    """Request does not fit the current round state (e.g. start while running)."""
    status_code = 409
