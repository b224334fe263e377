"""
Storage collaborator for slug resolution.

``SlugStore`` is the read-only query contract the resolver relies on;
``SQLAlchemySlugStore`` answers it with Core SELECTs on the flushing session.
"""

from typing import Any, Optional, Set, Tuple

from sqlalchemy import Column, and_, not_, or_, select
from sqlalchemy.orm import Session

from unique_slug.services.scope_service import ResolvedScope
from unique_slug.utils.constants import SUFFIX_SEPARATOR
from unique_slug.utils.slugify import suffix_of


def _escape_like(value: str) -> str:
    """Escape LIKE-special characters (%, _) so they match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SlugStore:
    """Queries the resolver needs from whatever persists the records."""

    def exists(
        self,
        scope: ResolvedScope,
        column: Column,
        value: str,
        exclude_identity: Optional[Tuple[Any, ...]] = None,
    ) -> bool:
        """Return True if another record in ``scope`` holds ``value`` in ``column``."""
        raise NotImplementedError

    def taken_suffixes(
        self,
        scope: ResolvedScope,
        column: Column,
        base: str,
        exclude_identity: Optional[Tuple[Any, ...]] = None,
    ) -> Optional[Set[int]]:
        """
        Return every suffix in use for ``base`` in ``scope`` (1 = the bare base).

        Stores without a prefix query return None and the resolver falls back
        to probing with ``exists``.
        """
        return None


class SQLAlchemySlugStore(SlugStore):
    """SlugStore backed by a (sync) SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def _select(self, scope: ResolvedScope, column: Column, exclude_identity):
        stmt = select(column).select_from(scope.table).where(*scope.criteria)
        if exclude_identity is not None:
            stmt = stmt.where(
                not_(and_(*[pk == value for pk, value in zip(scope.primary_key, exclude_identity)]))
            )
        return stmt

    def exists(self, scope, column, value, exclude_identity=None) -> bool:
        stmt = self._select(scope, column, exclude_identity).where(column == value).limit(1)
        with self.session.no_autoflush:
            return self.session.execute(stmt).first() is not None

    def taken_suffixes(self, scope, column, base, exclude_identity=None) -> Set[int]:
        pattern = f"{_escape_like(base)}{_escape_like(SUFFIX_SEPARATOR)}%"
        stmt = self._select(scope, column, exclude_identity).where(
            or_(column == base, column.like(pattern, escape="\\"))
        )
        with self.session.no_autoflush:
            slugs = self.session.execute(stmt).scalars().all()

        # LIKE may be case-insensitive; suffix_of re-checks the exact prefix
        taken = {suffix_of(base, slug) for slug in slugs}
        taken.discard(None)
        return taken
