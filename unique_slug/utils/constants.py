"""
Constants used across the slug resolution system.
"""

# Default attribute names used by configure() / has_unique_slug()
DEFAULT_SLUG_COLUMN = "slug"
DEFAULT_SUBJECT = "title"

# Collision suffixes: "{base}{SUFFIX_SEPARATOR}{n}" with n starting at FIRST_SUFFIX.
# The bare base slug implicitly holds suffix 1.
SUFFIX_SEPARATOR = "-"
FIRST_SUFFIX = 2
