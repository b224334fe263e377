"""
Scope evaluation - which sibling records a slug must be unique against.

A scope is resolved per save into SQLAlchemy criteria against the root
type's table, so subtypes sharing one table (single-table inheritance)
always share one uniqueness domain.
"""

from typing import Any, Callable, Hashable, List, NamedTuple, Optional, Sequence, Tuple, Union

from sqlalchemy import Column, Table

from unique_slug.errors import SlugConfigurationError
from unique_slug.models.schemas import FieldScope, NoScope, PredicateScope, ScopeSpec, SlugConfig

ScopeOption = Union[None, str, Sequence[str], Callable[[Any], Any], ScopeSpec]


class ResolvedScope(NamedTuple):
    """Scope of a single save: table, criteria and a key for in-flush bookkeeping."""

    table: Optional[Table]
    criteria: List[Any]
    key: Hashable
    primary_key: Tuple[Column, ...] = ()


def build_scope(option: ScopeOption) -> ScopeSpec:
    """
    Turn the ``scope`` option given to ``configure()`` into a scope variant.

    Args:
        option: ``None`` (root type scope), a column name, a sequence of column
            names, a callable ``record -> criterion``, or a scope variant.

    Returns:
        NoScope, FieldScope or PredicateScope

    Raises:
        SlugConfigurationError: if the option has none of the supported shapes
    """
    if option is None:
        return NoScope()
    if isinstance(option, (NoScope, FieldScope, PredicateScope)):
        return option
    if isinstance(option, str):
        return FieldScope(names=(option,))
    if callable(option):
        return PredicateScope(predicate=option)
    if isinstance(option, (list, tuple)) and option and all(isinstance(n, str) for n in option):
        return FieldScope(names=tuple(option))
    raise SlugConfigurationError(
        f"scope must be None, a column name, a list of column names or a callable, got {option!r}"
    )


def _as_criteria(result: Any) -> List[Any]:
    if result is None:
        return []
    if isinstance(result, (list, tuple)):
        return list(result)
    return [result]


def scope_key(config: SlugConfig, record: Any) -> Hashable:
    """
    Fingerprint of the scope ``record`` falls in, for records pending in one flush.

    Predicate scopes cannot be evaluated in memory, so every pending record of
    the root type is treated as sharing one predicate scope.
    """
    if isinstance(config.scope, FieldScope):
        values = tuple(getattr(record, name) for name in config.scope.names)
        return (config.root_type, config.scope.names, values)
    return (config.root_type,)


def resolve_scope(config: SlugConfig, record: Any) -> ResolvedScope:
    """
    Compute the effective uniqueness scope of ``record`` for this save.

    Errors raised by a scope predicate propagate unchanged.
    """
    scope = config.scope
    if isinstance(scope, FieldScope):
        criteria = []
        for name, column in zip(scope.names, config.scope_columns):
            value = getattr(record, name)
            criteria.append(column.is_(None) if value is None else column == value)
    elif isinstance(scope, PredicateScope):
        criteria = _as_criteria(scope.predicate(record))
    else:
        criteria = []

    return ResolvedScope(
        table=config.table,
        criteria=criteria,
        key=scope_key(config, record),
        primary_key=config.primary_key,
    )
