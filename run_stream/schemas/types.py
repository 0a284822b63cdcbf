"""
Shared type definitions for schemas.

Centralizes the foundation models and annotations used by the event and run schemas.

Layering:
- This module provides FOUNDATION types (BaseStrictModel, PermissiveModel, JsonDatetime)
- events.py builds the open stream-event union on PermissiveModel
- runs.py builds run metadata and metrics on BaseStrictModel
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

import pydantic

# Pydantic-enhanced datetime for JSON serialization (allows string→datetime conversion)
JsonDatetime = Annotated[datetime, pydantic.Field(strict=False)]


# ==============================================================================
# Base Strict Model (Foundation)
# ==============================================================================


class BaseStrictModel(pydantic.BaseModel):
    """
    Foundation strict model for data this package owns.

    Uses extra='forbid' to reject unknown fields - any field not modeled
    causes immediate validation failure (fail-fast).
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',  # Reject unknown fields (fail-fast)
        strict=True,  # Strict type coercion
        frozen=True,  # Immutable after creation
    )


# ==============================================================================
# Permissive Model (Foundation)
# ==============================================================================


class PermissiveModel(pydantic.BaseModel):
    """
    Foundation permissive model for data produced upstream.

    Symmetry with BaseStrictModel:
    - BaseStrictModel: extra='forbid' (rejects unknown fields)
    - PermissiveModel: extra='allow' (accepts unknown fields)

    The agent output format is extensible and not fully known in advance, so
    every stream event keeps the fields it does not model. They survive
    model_dump() and are available through get_extra_fields().

    Lax coercion is used for known fields: upstream numbers arrive as int or
    float interchangeably and a single odd field must not reject a whole line.
    """

    model_config = pydantic.ConfigDict(
        extra='allow',  # Accept unknown fields (graceful fallback)
        frozen=True,  # Immutable after creation
    )

    def get_extra_fields(self) -> dict[str, object]:
        """Get extra fields captured by this permissive model.

        Returns only the unknown fields, not defined model fields.
        Useful for inspection and logging of untyped structures.
        """
        return dict(self.__pydantic_extra__) if self.__pydantic_extra__ else {}
