"""
Unique, URL-safe slugs for SQLAlchemy models.
"""

from unique_slug.errors import SlugConfigurationError, UniqueSlugError
from unique_slug.models.schemas import FieldScope, NoScope, PredicateScope, SlugChange, SlugConfig
from unique_slug.services.registry import (
    before_save,
    configure,
    get_config,
    has_unique_slug,
    install,
    uninstall,
    unregister,
)
from unique_slug.services.slug_service import SlugResolver
from unique_slug.services.slug_store import SlugStore, SQLAlchemySlugStore
from unique_slug.utils.slugify import slugify

__all__ = [
    "FieldScope",
    "NoScope",
    "PredicateScope",
    "SQLAlchemySlugStore",
    "SlugChange",
    "SlugConfig",
    "SlugConfigurationError",
    "SlugResolver",
    "SlugStore",
    "UniqueSlugError",
    "before_save",
    "configure",
    "get_config",
    "has_unique_slug",
    "install",
    "slugify",
    "uninstall",
    "unregister",
]
