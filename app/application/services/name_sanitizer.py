"""Name sanitizer — turns file names and header cells into schema identifiers."""

import ntpath
import posixpath
import re

from app.config import SanitizerVariant
from app.core.exceptions import InvalidIdentifierError

_NON_IDENTIFIER_CHARS = re.compile(r"[^a-z0-9_]")
_WHITESPACE_RUN = re.compile(r"\s+")
_SAFE_IDENTIFIER = re.compile(r"[a-z0-9_]+")


def sanitize_identifier(value: str, variant: SanitizerVariant = SanitizerVariant.ALPHANUMERIC) -> str:
    """Lower-case ``value`` and replace unsafe characters with ``_``.

    The alphanumeric variant replaces every character outside ``[a-z0-9_]``,
    one underscore per character. The whitespace variant only collapses runs of
    whitespace. Never raises; the result may be empty.
    """
    lowered = value.lower()
    if variant == SanitizerVariant.WHITESPACE:
        return _WHITESPACE_RUN.sub("_", lowered)
    return _NON_IDENTIFIER_CHARS.sub("_", lowered)


def table_name_for(original_name: str, variant: SanitizerVariant = SanitizerVariant.ALPHANUMERIC) -> str:
    """Derive a table name from a client-supplied file name.

    Directory components (either separator) are discarded and the last
    extension is stripped: ``reports/Q1 Sales.csv`` -> ``q1_sales``.
    """
    base = posixpath.basename(ntpath.basename(original_name))
    stem, _ = posixpath.splitext(base)
    return sanitize_identifier(stem, variant)


def validate_identifier(name: str, kind: str = "identifier") -> str:
    """Return ``name`` unchanged if it is safe to place in SQL text."""
    if not _SAFE_IDENTIFIER.fullmatch(name):
        raise InvalidIdentifierError(
            f"Invalid {kind} {name!r}: must match [a-z0-9_]+",
            details={"kind": kind, "name": name},
        )
    return name
