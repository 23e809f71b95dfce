"""
Query construction helpers.

Builds Elasticsearch query DSL clauses from caller supplied filters.
"""

from typing import Any, Dict, List, Mapping, Sequence


def match_query(field: str, value: Any) -> Dict[str, Any]:
    """Single match clause; an equality filter on keyword-typed fields."""
    return {"match": {field: value}}


def build_match_queries(filters: Mapping[str, str]) -> List[Dict[str, Any]]:
    """Create one match clause per filter entry.

    Field names are not validated; an unknown field simply matches nothing.
    An empty mapping yields an empty list, so callers must add their own
    required clauses.

    Args:
        filters: Field name to value mapping

    Returns:
        List of match clauses to be combined with logical AND
    """
    return [match_query(name, value) for name, value in filters.items()]


def must_query(clauses: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Combine clauses into a conjunctive bool query."""
    return {"bool": {"must": list(clauses)}}
