"""
Pydantic models describing slug configuration and save-time snapshots.
"""

from typing import Any, Callable, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import Column, Table

from unique_slug.utils.constants import DEFAULT_SLUG_COLUMN, DEFAULT_SUBJECT


class NoScope(BaseModel):
    """Slugs are unique across every record sharing the root type's table."""

    model_config = ConfigDict(frozen=True)


class FieldScope(BaseModel):
    """Slugs are unique among records with equal values in these columns."""

    model_config = ConfigDict(frozen=True)

    names: Tuple[str, ...] = Field(min_length=1)


class PredicateScope(BaseModel):
    """Slugs are unique among records matching the criteria returned by ``predicate``."""

    model_config = ConfigDict(frozen=True)

    predicate: Callable[[Any], Any]


ScopeSpec = Union[NoScope, FieldScope, PredicateScope]


class SlugConfig(BaseModel):
    """Per record type slug configuration, built once by ``configure()``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    record_type: type
    root_type: type
    slug_field: str = Field(DEFAULT_SLUG_COLUMN, min_length=1)
    subject: Union[str, Callable[[Any], Any]] = DEFAULT_SUBJECT
    scope: ScopeSpec = Field(default_factory=NoScope)

    # Resolved against the root type's table
    table: Table
    slug_column: Column
    primary_key: Tuple[Column, ...]
    scope_columns: Tuple[Column, ...] = ()

    @model_validator(mode="after")
    def validate_scope_columns(self):
        """Ensure field scopes carry one column per scope name."""
        if isinstance(self.scope, FieldScope) and len(self.scope_columns) != len(self.scope.names):
            raise ValueError("scope_columns must match the field scope names")
        return self


class SlugChange(BaseModel):
    """
    Before/after snapshot of the attributes that drive slug resolution.

    ``previous_*`` hold the last persisted values (``None`` for new records).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    is_new: bool
    identity: Optional[Tuple[Any, ...]] = None
    previous_subject: Any = None
    current_subject: Any = None
    previous_slug: Any = None
    current_slug: Optional[str] = None

    @property
    def subject_changed(self) -> bool:
        return self.previous_subject != self.current_subject

    @property
    def slug_changed(self) -> bool:
        return self.previous_slug != self.current_slug
