"""
Exceptions raised by the unique slug package.

Storage and scope-predicate errors are never wrapped; they reach the caller
exactly as SQLAlchemy (or the predicate) raised them.
"""


class UniqueSlugError(Exception):
    """Base class for unique slug errors."""


class SlugConfigurationError(UniqueSlugError, ValueError):
    """Raised when a record type is configured with invalid slug options."""
