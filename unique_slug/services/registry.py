"""
Slug configuration registry and the SQLAlchemy save hook.

Record types opt in with ``configure()`` (or the ``has_unique_slug``
decorator). ``install()`` registers a ``before_flush`` listener that resolves
the slug of every new or modified configured record right before SQLAlchemy
writes it.
"""

import logging
from typing import Any, Callable, Dict, Optional, Union

from pydantic import ValidationError
from sqlalchemy import event, inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper, Session

from unique_slug.errors import SlugConfigurationError
from unique_slug.models.schemas import FieldScope, SlugConfig
from unique_slug.services.scope_service import ScopeOption, build_scope
from unique_slug.services.slug_service import SlugResolver
from unique_slug.services.slug_store import SQLAlchemySlugStore
from unique_slug.utils.constants import DEFAULT_SLUG_COLUMN, DEFAULT_SUBJECT

logger = logging.getLogger(__name__)

_configs: Dict[type, SlugConfig] = {}


def _column_for(mapper: Mapper, table, name: str):
    """Return the root-table column mapped to attribute ``name``."""
    column = mapper.columns.get(name)
    if column is None:
        raise SlugConfigurationError(f"{mapper.class_.__name__} has no column attribute '{name}'")
    if getattr(column, "table", None) is not table:
        raise SlugConfigurationError(
            f"Column '{name}' of {mapper.class_.__name__} is not stored on the root table '{table.name}'"
        )
    return column


def configure(
    record_type: type,
    slug_field: str = DEFAULT_SLUG_COLUMN,
    subject: Union[str, Callable[[Any], Any]] = DEFAULT_SUBJECT,
    scope: ScopeOption = None,
) -> SlugConfig:
    """
    Opt a mapped record type into unique slug resolution.

    Subclasses inherit the configuration; uniqueness is always checked
    against the root type's table so every subtype shares one scope.

    Args:
        record_type: SQLAlchemy mapped class
        slug_field: Attribute holding the slug
        subject: Attribute name, or callable ``record -> str``, to slug from
        scope: None, a column name, a list of column names, or a callable
            ``record -> criterion`` (SQLAlchemy clause or list of clauses)

    Returns:
        The registered SlugConfig

    Raises:
        SlugConfigurationError: if the type is not mapped or an option is invalid
    """
    try:
        mapper = sa_inspect(record_type)
    except NoInspectionAvailable:
        mapper = None
    if not isinstance(mapper, Mapper):
        raise SlugConfigurationError(f"{record_type!r} is not a mapped SQLAlchemy class")

    root_mapper = mapper.base_mapper
    table = root_mapper.local_table
    slug_column = _column_for(mapper, table, slug_field)

    scope_spec = build_scope(scope)
    scope_columns = ()
    if isinstance(scope_spec, FieldScope):
        scope_columns = tuple(_column_for(mapper, table, name) for name in scope_spec.names)

    if isinstance(subject, str) and not hasattr(record_type, subject):
        raise SlugConfigurationError(f"{record_type.__name__} has no attribute '{subject}'")

    try:
        config = SlugConfig(
            record_type=record_type,
            root_type=root_mapper.class_,
            slug_field=slug_field,
            subject=subject,
            scope=scope_spec,
            table=table,
            slug_column=slug_column,
            primary_key=tuple(root_mapper.primary_key),
            scope_columns=scope_columns,
        )
    except ValidationError as e:
        raise SlugConfigurationError(f"Invalid slug configuration for {record_type.__name__}: {e}") from e

    _configs[record_type] = config
    logger.info(
        f"Configured unique slug for {record_type.__name__} "
        f"(column={slug_field}, root={config.root_type.__name__}, scope={type(scope_spec).__name__})"
    )
    return config


def has_unique_slug(
    column: str = DEFAULT_SLUG_COLUMN,
    subject: Union[str, Callable[[Any], Any]] = DEFAULT_SUBJECT,
    scope: ScopeOption = None,
):
    """
    Class decorator form of ``configure()``.

    Usage:
        @has_unique_slug(column="permalink", subject="name")
        class Page(Base):
            ...
    """

    def decorator(record_type: type) -> type:
        configure(record_type, slug_field=column, subject=subject, scope=scope)
        return record_type

    return decorator


def get_config(record_or_type: Any) -> Optional[SlugConfig]:
    """Return the slug configuration for a record or type, inherited along the MRO."""
    cls = record_or_type if isinstance(record_or_type, type) else type(record_or_type)
    for klass in cls.__mro__:
        config = _configs.get(klass)
        if config is not None:
            return config
    return None


def unregister(record_type: type) -> None:
    """Remove a record type's own configuration (subclasses fall back to ancestors)."""
    _configs.pop(record_type, None)


def before_save(session: Session, record: Any, resolver: Optional[SlugResolver] = None) -> Optional[str]:
    """
    Resolve the slug of ``record`` ahead of persistence.

    Args:
        session: Sync session the record is being saved with
        record: Mapped instance about to be inserted or updated
        resolver: Resolver shared across one flush; a fresh one is created if omitted

    Returns:
        The slug the record will be saved with, or None if its type is not configured
    """
    config = get_config(record)
    if config is None:
        return None
    if resolver is None:
        resolver = SlugResolver(SQLAlchemySlugStore(session))
    return resolver.apply(config, record)


def _before_flush(session: Session, flush_context, instances) -> None:
    resolver = None
    pending = list(session.new) + [obj for obj in session.dirty if session.is_modified(obj)]
    for record in pending:
        if get_config(record) is None:
            continue
        if resolver is None:
            resolver = SlugResolver(SQLAlchemySlugStore(session))
        before_save(session, record, resolver)


def install(target: Any = Session) -> None:
    """Register the slug hook on a Session class, sessionmaker or session (idempotent)."""
    if not event.contains(target, "before_flush", _before_flush):
        event.listen(target, "before_flush", _before_flush)
        logger.info(f"Installed unique slug hook on {target!r}")


def uninstall(target: Any = Session) -> None:
    """Remove the slug hook from ``target`` if it is installed."""
    if event.contains(target, "before_flush", _before_flush):
        event.remove(target, "before_flush", _before_flush)
