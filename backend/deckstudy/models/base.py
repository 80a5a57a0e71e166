"""
Base Models for Scheduling Values

This module provides the pydantic base classes shared by the learning models.

Usage:
    # For values read from storage (ignores extra columns)
    class CardRow(StrictResponse):
        id: str

    # For immutable values produced by the scheduler
    class Outcome(FrozenModel):
        due: datetime

Architecture:
    DB Model → StrictResponse (extra="ignore") → Service
    Scheduler → FrozenModel (frozen, extra="forbid") → Storage / Audit log
"""

from pydantic import BaseModel, ConfigDict


class StrictResponse(BaseModel):
    """
    Base model for values loaded from storage.

    Still enforces type validation but allows extra fields.

    Features:
        - extra="ignore": Silently ignores extra fields (DB may have more columns)
        - validate_default=True: Validates default values
        - from_attributes=True: Allows ORM model conversion

    Example:
        >>> Card.model_validate(card_record)
    """

    model_config = ConfigDict(
        extra="ignore",  # Allow extra fields from the DB
        validate_default=True,  # Validate defaults
        from_attributes=True,  # Enable ORM conversion
    )


class FrozenModel(BaseModel):
    """
    Base model for immutable values.

    Instances are hashable and cannot be modified after construction; a
    change always produces a new instance via model_copy(update=...).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        from_attributes=True,
        populate_by_name=True,
    )
