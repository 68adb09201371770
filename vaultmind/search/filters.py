"""Facet predicates applied to reranked chunks."""

from vaultmind.models.query import ParsedQuery


def path_extension(path: str) -> str:
    """Lower-cased text after the last dot of ``path`` (the whole path if none)."""
    return path.lower().rsplit(".", 1)[-1]


def matches_filters(path: str, content: str, parsed: ParsedQuery) -> bool:
    """Check whether a chunk satisfies every filter facet of a query.

    Tags are deliberately not checked here; they only boost scores.

    Args:
        path: Source file path of the chunk
        content: Chunk text
        parsed: Parsed query

    Returns:
        True if all non-empty facets pass
    """
    path_lower = path.lower()
    content_lower = content.lower()

    if parsed.extensions:
        ext = path_extension(path)
        if not any(ext == e or ext.startswith(e) for e in parsed.extensions):
            return False

    if parsed.path_includes:
        if not any(p in path_lower for p in parsed.path_includes):
            return False

    if parsed.path_excludes:
        if any(p in path_lower for p in parsed.path_excludes):
            return False

    if parsed.exact_terms:
        if not all(term in content_lower for term in parsed.exact_terms):
            return False

    if parsed.text_excludes:
        if any(term in content_lower for term in parsed.text_excludes):
            return False

    return True
