"""
Shared Pydantic base models for strict validation.

All Pydantic models in the application should inherit from StrictModel.
Models persisted to journal files inherit from JournalModel instead, which
adds camelCase aliases for the on-disk format.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StrictModel(BaseModel):
    """Base model with strict validation settings."""

    model_config = ConfigDict(
        extra='forbid',  # Raise error on unexpected fields
        strict=True,  # Strict type validation
        frozen=True,  # Immutable (cannot modify after creation)
    )


class JournalModel(StrictModel):
    """Strict model serialized with camelCase keys (journal and manifest files).

    Python code uses snake_case attribute names; files on disk use camelCase.
    Both spellings are accepted on input.
    """

    model_config = ConfigDict(
        extra='forbid',
        strict=True,
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )
