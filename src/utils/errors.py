"""Custom exception types for consistent error handling."""


class InvalidCoordinateError(ValueError):
    """Raised when a latitude/longitude is non-finite or out of range."""


class MissingLocationError(ValueError):
    """Raised when distance filtering needs a location that is not available."""


class InvalidCriteriaError(ValueError):
    """Raised when preference criteria are structurally invalid."""


class ExternalStoreError(Exception):
    """Raised when a user, preference, or swipe store call fails."""


class FirestoreUnavailableError(ExternalStoreError):
    """Raised when Firestore queries fail or are unavailable."""


class ProfileNotFoundError(ExternalStoreError):
    """Raised when the requesting user's profile does not exist."""


# Caller/programmer errors that must reach the caller instead of triggering
# the degraded discovery fallback.
PRECONDITION_ERRORS = (
    InvalidCriteriaError,
    InvalidCoordinateError,
    MissingLocationError,
)
