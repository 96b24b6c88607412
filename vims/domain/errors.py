"""
Domain exceptions.

Raised by registration and management use cases. Access decisions at a
checkpoint are never exceptions; they are returned as AccessDecision values.
"""


class VimsError(Exception):
    """Base class for all visitor management errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(VimsError):
    """
    One or more input fields are invalid.

    Attributes:
        errors: Field name to message for every failing rule.
    """

    def __init__(self, errors: dict[str, str]):
        super().__init__("Validation failed")
        self.errors = dict(errors)


class BlacklistedError(VimsError):
    """An identifier matched an active blacklist record."""

    def __init__(self, reason: str, record_id: str):
        super().__init__(f"Blacklisted: {reason}")
        self.reason = reason
        self.record_id = record_id


class NotFoundError(VimsError):
    """Requested record does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key} not found")
        self.kind = kind
        self.key = key


class InvalidTransitionError(VimsError):
    """A status change not allowed from the record's current status."""
