"""
Cache key derivation for opening-explorer positions.

Keys have the form ``lichess:explorer:<database>:<normalized FEN>``. A FEN is
made key-safe by collapsing whitespace runs into ``_`` and turning rank
separators ``/`` into ``.``. Neither placeholder belongs to the FEN alphabet,
so distinct FENs never share a key. Two FENs that only differ in their
whitespace runs do share one.
"""

import re


EXPLORER_KEY_PREFIX = "lichess:explorer:"

WHITESPACE_PLACEHOLDER = "_"
SEPARATOR_PLACEHOLDER = "."
POSITION_SEPARATOR = "/"

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_position(fen: str) -> str:
    """Canonicalize a position descriptor into a key-safe string."""
    collapsed = _WHITESPACE_RUN.sub(WHITESPACE_PLACEHOLDER, fen.strip())
    return collapsed.replace(POSITION_SEPARATOR, SEPARATOR_PLACEHOLDER)


def is_key_safe_position(fen: str) -> bool:
    """Whether a FEN can be normalized without colliding with another one."""
    if not fen or not fen.strip():
        return False
    return WHITESPACE_PLACEHOLDER not in fen and SEPARATOR_PLACEHOLDER not in fen


def variant_key_prefix(database: str) -> str:
    return f"{EXPLORER_KEY_PREFIX}{database}:"


def explorer_key(fen: str, database: str) -> str:
    """Derive the logical cache key for a position under one database."""
    return f"{variant_key_prefix(database)}{normalize_position(fen)}"
