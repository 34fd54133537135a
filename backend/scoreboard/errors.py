"""Error taxonomy shared by services and HTTP routes.

Services raise these; the app-level handler registered in ``create_app``
renders them as ``{"error": message}`` with the matching status code.
"""


class ScoreboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(ScoreboardError):
    """Malformed or missing input."""
    status_code = 400


class ConflictError(ScoreboardError):
    """A unique player name is already taken."""
    status_code = 409


class NotFoundError(ScoreboardError):
    status_code = 404


class StorageError(ScoreboardError):
    """The underlying store failed; the unit of work was rolled back."""
    status_code = 500
