# app/utils/errors.py
"""
Business error taxonomy shared by every service.
Services raise these; only app/main.py maps a kind to an HTTP status.
"""


class ServiceError(Exception):
    kind = "ServerError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self):
        return f"<{self.kind}: {self.message}>"


class InvalidInput(ServiceError):
    """Malformed or missing fields, bad time ranges. Never retried."""
    kind = "InvalidInput"


class NotFound(ServiceError):
    kind = "NotFound"


class Conflict(ServiceError):
    """Overlap, duplicate order, cap exceeded. Change parameters before retrying."""
    kind = "Conflict"


class Forbidden(ServiceError):
    kind = "Forbidden"


class ServerError(ServiceError):
    """Infrastructure trouble. Safe to retry with backoff."""
    kind = "ServerError"
