"""URL-safe slug generation utilities."""

import re
import unicodedata
from typing import Optional

from unique_slug.utils.constants import FIRST_SUFFIX, SUFFIX_SEPARATOR

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")
_SUFFIX = re.compile(r"[1-9][0-9]*")


def slugify(text: Optional[str]) -> str:
    """Convert text to a URL-safe slug (lowercase, hyphens, no special chars).

    Args:
        text: Text to slugify (e.g. "Sample Record"). ``None`` is treated as blank.

    Returns:
        Slugified text (e.g. "sample-record"), or "" when nothing is left.
    """
    if text is None:
        return ""
    text = unicodedata.normalize("NFKD", str(text)).encode("ascii", "ignore").decode("ascii")
    text = _NON_ALPHANUMERIC.sub("-", text.lower())
    return text.strip("-")


def suffix_of(base: str, slug: Optional[str]) -> Optional[int]:
    """Return the collision suffix ``slug`` carries relative to ``base``.

    The bare base slug counts as suffix 1. Anything that is not ``base`` or
    ``"{base}-{n}"`` with ``n >= 2`` (no leading zeros) returns ``None``.
    """
    if slug is None:
        return None
    if slug == base:
        return 1
    prefix = f"{base}{SUFFIX_SEPARATOR}"
    if not slug.startswith(prefix):
        return None
    match = _SUFFIX.fullmatch(slug[len(prefix):])
    if match is None:
        return None
    n = int(match.group(0))
    return n if n >= FIRST_SUFFIX else None
