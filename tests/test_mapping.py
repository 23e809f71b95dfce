"""
Tests for the event index mapping.
"""

from cost_audit_store.storage.mapping import INDEX_MAPPING, KEYWORD_FIELDS, missing_keyword_fields


class TestIndexMapping:
    """Test keyword field typing."""

    def test_mapping_declares_keyword_fields(self):
        for field in ("ResourceName", "ExecutionID", "EventType"):
            assert INDEX_MAPPING["properties"][field] == {"type": "keyword"}

    def test_default_mapping_is_complete(self):
        assert missing_keyword_fields(INDEX_MAPPING) == []
        assert missing_keyword_fields({"mappings": INDEX_MAPPING}) == []

    def test_dynamic_text_fields_are_reported(self):
        """Fields inferred as text would make match queries full-text."""
        mapping = {
            "mappings": {
                "properties": {
                    "ResourceName": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
                    "ExecutionID": {"type": "keyword"},
                }
            }
        }

        assert missing_keyword_fields(mapping) == ["ResourceName", "EventType"]

    def test_empty_mapping_reports_everything(self):
        assert missing_keyword_fields({}) == list(KEYWORD_FIELDS)
