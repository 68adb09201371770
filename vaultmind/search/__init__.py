"""Search mini-language parsing and facet filtering."""

from vaultmind.search.filters import matches_filters
from vaultmind.search.query_parser import parse_query

__all__ = [
    "matches_filters",
    "parse_query",
]
