# core/utils.py
"""
Core Utility Functions.

Small helpers shared by the gallery operations: URL slugs for collection
titles and the random tokens used in slugs and storage keys.
"""
import re
import secrets
import string

BASE36_ALPHABET = string.digits + string.ascii_lowercase
SLUG_SUFFIX_LENGTH = 6
SLUG_SEPARATOR = "-"

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def random_token(length: int) -> str:
    """Returns `length` random lowercase base36 characters."""
    return ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def slugify(title: str) -> str:
    """
    Generates a URL-friendly slug from a title.

    The title is lowercased, every run of characters outside [a-z0-9] becomes a
    single '-', and edge separators are trimmed. A random 6-character suffix is
    appended so titles that collapse to the same text rarely collide; the
    database's unique constraint is still the final word.

    >>> slugify("My Trip 2024!")  # doctest: +SKIP
    'my-trip-2024-k3x9qa'
    """
    base = _NON_ALNUM_RUN.sub(SLUG_SEPARATOR, (title or "").lower()).strip(SLUG_SEPARATOR)
    suffix = random_token(SLUG_SUFFIX_LENGTH)
    # Symbol-only titles collapse to nothing; the suffix alone is still a valid slug
    return f"{base}{SLUG_SEPARATOR}{suffix}" if base else suffix
