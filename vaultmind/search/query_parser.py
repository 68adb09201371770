"""Parser for the vault search mini-language.

Supported syntax::

    "exact phrase"   chunk content must contain the phrase
    #tag             chunks mentioning the tag are boosted
    ext:md           file extension filter
    path:folder      path must contain the substring
    -path:folder     path must not contain the substring
    -word            content must not contain the word

Anything else is free text. Extractors run in the order above, each on the
residue of the previous ones, so e.g. a ``#tag`` inside a quoted phrase stays
part of the phrase.
"""

import re
from collections.abc import Callable

from vaultmind.models.query import ParsedQuery

QUOTE_PATTERN = re.compile(r'"([^"]+)"')
# IGNORECASE also admits the Kelvin sign and dotted capital I, which lower-case to ASCII
TAG_PATTERN = re.compile(r"#[a-zA-Z][a-zA-Z0-9_/-]*", re.IGNORECASE)
EXTENSION_PATTERN = re.compile(r"ext:(\w+)", re.IGNORECASE)
PATH_INCLUDE_PATTERN = re.compile(r"(?<!-)path:(\S+)", re.IGNORECASE)
PATH_EXCLUDE_PATTERN = re.compile(r"-path:(\S+)", re.IGNORECASE)
# Only a hyphen that starts a word counts, "well-known" stays free text
TEXT_EXCLUDE_PATTERN = re.compile(r"(?<!\S)-(\w+)")


def _extract(
    pattern: re.Pattern[str],
    remaining: str,
    found: list[str],
    value: Callable[[re.Match[str]], str],
) -> str:
    """Move every match of ``pattern`` from ``remaining`` into ``found``.

    Stripping a match can join its neighbours into a new match, so the
    pattern is re-applied until the residue is stable.
    """
    while True:
        matches = list(pattern.finditer(remaining))
        if not matches:
            return remaining
        for match in matches:
            item = value(match)
            if item not in found:
                found.append(item)
        remaining = pattern.sub("", remaining)


def parse_query(raw_query: str) -> ParsedQuery:
    """Split a raw query into free text and structured facets.

    Never fails: input that matches no operator ends up as free text.

    Args:
        raw_query: Query string typed by the user

    Returns:
        ParsedQuery with lower-cased facets
    """
    exact_terms: list[str] = []
    tags: list[str] = []
    extensions: list[str] = []
    path_includes: list[str] = []
    path_excludes: list[str] = []
    text_excludes: list[str] = []

    remaining = raw_query or ""
    remaining = _extract(QUOTE_PATTERN, remaining, exact_terms, lambda m: m.group(1).lower())
    remaining = _extract(TAG_PATTERN, remaining, tags, lambda m: m.group(0))
    remaining = _extract(EXTENSION_PATTERN, remaining, extensions, lambda m: m.group(1).lower())
    remaining = _extract(
        PATH_INCLUDE_PATTERN, remaining, path_includes, lambda m: m.group(1).lower()
    )
    remaining = _extract(
        PATH_EXCLUDE_PATTERN, remaining, path_excludes, lambda m: m.group(1).lower()
    )
    remaining = _extract(
        TEXT_EXCLUDE_PATTERN, remaining, text_excludes, lambda m: m.group(1).lower()
    )

    text = [token.strip().lower() for token in remaining.split()]

    return ParsedQuery(
        text=tuple(token for token in text if token),
        exact_terms=tuple(exact_terms),
        tags=tuple(tags),
        extensions=tuple(extensions),
        path_includes=tuple(path_includes),
        path_excludes=tuple(path_excludes),
        text_excludes=tuple(text_excludes),
    )
