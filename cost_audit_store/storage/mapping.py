"""
Index mapping for event documents.

Match queries on ResourceName, ExecutionID and EventType only behave as
equality filters when those fields are mapped as ``keyword``.
"""

from typing import Any, Dict, List, Mapping

KEYWORD_FIELDS = ("ResourceName", "ExecutionID", "EventType")

INDEX_MAPPING: Dict[str, Any] = {
    "properties": {field: {"type": "keyword"} for field in KEYWORD_FIELDS}
}


def missing_keyword_fields(mapping: Mapping[str, Any]) -> List[str]:
    """Return the keyword fields that ``mapping`` does not declare as keyword.

    Accepts either a bare ``{"properties": ...}`` body or one wrapped in
    ``{"mappings": ...}`` as returned by the get-mapping API.
    """
    if "mappings" in mapping:
        mapping = mapping["mappings"] or {}
    properties = mapping.get("properties") or {}
    return [
        field for field in KEYWORD_FIELDS
        if (properties.get(field) or {}).get("type") != "keyword"
    ]
