"""
Slug resolution service - decide, derive and de-duplicate a record's slug.

The resolver runs at save time. It leaves an existing slug alone unless the
subject changed or the caller assigned a new slug, then makes the candidate
unique within the record's scope by appending the smallest free numeric
suffix (``-2``, ``-3``, ...).
"""

import logging
from typing import Any, Dict, Hashable, Optional, Set, Tuple

from sqlalchemy import Column, inspect as sa_inspect
from sqlalchemy.orm import InstanceState

from unique_slug.models.schemas import SlugChange, SlugConfig
from unique_slug.services.scope_service import ResolvedScope, resolve_scope
from unique_slug.services.slug_store import SlugStore
from unique_slug.utils.constants import FIRST_SUFFIX, SUFFIX_SEPARATOR
from unique_slug.utils.slugify import slugify, suffix_of

logger = logging.getLogger(__name__)

# Previous value of an attribute that was modified before it was ever loaded
_UNKNOWN = object()


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def _previous_value(state: InstanceState, key: str) -> Any:
    history = state.attrs[key].history
    if history.deleted:
        return history.deleted[0]
    if history.added:
        return _UNKNOWN if state.has_identity else None
    return getattr(state.obj(), key)


class _CommittedView:
    """Read-only view of a record exposing its last persisted attribute values."""

    def __init__(self, record: Any):
        self._record = record
        self._state = sa_inspect(record)

    def __getattr__(self, name: str) -> Any:
        if name in self._state.mapper.attrs:
            return _previous_value(self._state, name)
        attr = getattr(type(self._record), name, None)
        if isinstance(attr, property):
            return attr.fget(self)
        return getattr(self._record, name)


def subject_of(config: SlugConfig, record: Any) -> Any:
    """Return the text ``record`` is slugged from (attribute or callable)."""
    if callable(config.subject):
        return config.subject(record)
    return getattr(record, config.subject)


def snapshot(config: SlugConfig, record: Any) -> SlugChange:
    """
    Build the before/after comparison for a record about to be persisted.

    Args:
        config: Slug configuration of the record's type
        record: Mapped instance (transient, pending or persistent)

    Returns:
        SlugChange with the persisted and current subject/slug values
    """
    state = sa_inspect(record)
    is_new = not state.has_identity

    if is_new:
        previous_subject = None
    elif callable(config.subject) or config.subject not in state.mapper.attrs:
        previous_subject = subject_of(config, _CommittedView(record))
    else:
        previous_subject = _previous_value(state, config.subject)

    return SlugChange(
        is_new=is_new,
        identity=state.identity,
        previous_subject=previous_subject,
        current_subject=subject_of(config, record),
        previous_slug=None if is_new else _previous_value(state, config.slug_field),
        current_slug=getattr(record, config.slug_field),
    )


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def is_manual_override(change: SlugChange) -> bool:
    """True when the caller assigned a new, non-blank slug."""
    return change.slug_changed and not _is_blank(change.current_slug)


def should_recompute(change: SlugChange) -> bool:
    """
    Decide whether the slug has to be (re)resolved on this save.

    Re-saving an unmodified record, or changing unrelated fields, never
    touches an existing slug.
    """
    if _is_blank(change.current_slug):
        return True
    return change.subject_changed or is_manual_override(change)


def candidate_for(change: SlugChange) -> str:
    """Return the base slug: the manual override as given, else the normalized subject."""
    if is_manual_override(change):
        return change.current_slug
    subject = change.current_subject
    return slugify(None if subject is None else str(subject))


# ---------------------------------------------------------------------------
# Collision resolution
# ---------------------------------------------------------------------------


def with_suffix(base: str, n: int) -> str:
    if n == 1:
        return base
    return f"{base}{SUFFIX_SEPARATOR}{n}"


def smallest_free_suffix(taken: Set[int]) -> int:
    """Smallest suffix not in ``taken``: 1 (the bare base) or the first free n >= 2."""
    if 1 not in taken:
        return 1
    n = FIRST_SUFFIX
    while n in taken:
        n += 1
    return n


class SlugResolver:
    """
    Resolves slugs against a SlugStore.

    One resolver is used per flush so records pending together never receive
    the same slug; it remembers every slug it has handed out, per scope.
    """

    def __init__(self, store: SlugStore):
        self.store = store
        self._claimed: Dict[Hashable, Set[str]] = {}

    def _taken_by_pending(self, scope: ResolvedScope, base: str) -> Set[int]:
        suffixes = {suffix_of(base, slug) for slug in self._claimed.get(scope.key, ())}
        suffixes.discard(None)
        return suffixes

    def _probe(
        self,
        scope: ResolvedScope,
        column: Column,
        base: str,
        exclude_identity: Optional[Tuple[Any, ...]],
    ) -> int:
        claimed = self._claimed.get(scope.key, set())

        def taken(n: int) -> bool:
            candidate = with_suffix(base, n)
            return candidate in claimed or self.store.exists(scope, column, candidate, exclude_identity)

        if not taken(1):
            return 1
        n = FIRST_SUFFIX
        while taken(n):
            n += 1
        return n

    def resolve(
        self,
        scope: ResolvedScope,
        column: Column,
        base: str,
        exclude_identity: Optional[Tuple[Any, ...]] = None,
    ) -> str:
        """
        Make ``base`` unique within ``scope``.

        Args:
            scope: Resolved scope of the record being saved
            column: Slug column to check
            base: Candidate slug (may be empty)
            exclude_identity: Primary key of the record being saved, so it
                never collides with itself

        Returns:
            ``base`` if free, else ``"{base}-{n}"`` with the smallest free n >= 2
        """
        taken = self.store.taken_suffixes(scope, column, base, exclude_identity)
        if taken is None:
            n = self._probe(scope, column, base, exclude_identity)
        else:
            n = smallest_free_suffix(taken | self._taken_by_pending(scope, base))

        slug = with_suffix(base, n)
        self._claimed.setdefault(scope.key, set()).add(slug)
        if n > 1:
            logger.debug(f"Slug '{base}' taken in scope, using '{slug}'")
        return slug

    def apply(self, config: SlugConfig, record: Any) -> Optional[str]:
        """
        Resolve and write the slug of one record about to be persisted.

        Returns:
            The slug the record will be saved with
        """
        change = snapshot(config, record)
        if not should_recompute(change):
            return change.current_slug

        base = candidate_for(change)
        scope = resolve_scope(config, record)
        slug = self.resolve(scope, config.slug_column, base, change.identity)
        if slug != change.current_slug:
            setattr(record, config.slug_field, slug)
        logger.debug(
            f"Resolved {config.slug_field} for {type(record).__name__}: "
            f"base='{base}' slug='{slug}'"
        )
        return slug
