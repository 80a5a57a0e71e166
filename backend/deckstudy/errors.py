"""
Service Exceptions

Exception hierarchy raised by the scheduling core. Every exception carries an
HTTP-style status code and a stable error code so the surrounding service can
render a response without knowing each class.

Taxonomy:
    - ParametersUnavailable: the user has no usable scheduling parameters.
      Never replaced by defaults, since that would silently change a schedule.
    - InvalidRating / InvalidCard: malformed caller input (programmer errors).
    - DeckNotFound: the deck does not exist or is not owned by the caller.

Collaborator I/O errors (database, network) are not wrapped; they propagate
to the caller unchanged.

Usage:
    from deckstudy.errors import ParametersUnavailable

    raise ParametersUnavailable(
        "No scheduling parameters for user", details={"user_id": user_id}
    )
"""

from typing import Optional


class ServiceError(Exception):
    """
    Base exception for service errors.

    Provides consistent error handling with:
    - HTTP status code
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise ServiceError("Settings store unreachable", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class ParametersUnavailable(ServiceError):
    """
    Configuration error.

    Raised when a user has no resolvable scheduling parameters, or when the
    stored parameter set is rejected by the FSRS algorithm.
    """

    status_code = 409
    error_code = "parameters_unavailable"


class ValidationError(ServiceError):
    """
    Data validation error.

    Raised when input data fails validation.
    """

    status_code = 422
    error_code = "validation_error"


class InvalidRating(ValidationError):
    """Rating is not one of the four defined grades."""

    error_code = "invalid_rating"


class InvalidCard(ValidationError):
    """Card argument is missing or its schedule fields are inconsistent."""

    error_code = "invalid_card"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a requested resource doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class DeckNotFound(NotFoundError):
    """Deck does not exist or belongs to another user."""

    error_code = "deck_not_found"
