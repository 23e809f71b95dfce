"""
Tests for query construction helpers.
"""

from cost_audit_store.core.query import build_match_queries, match_query, must_query


class TestBuildMatchQueries:
    """Test dynamic match query assembly."""

    def test_one_clause_per_filter(self):
        """Each filter entry becomes a match clause."""
        clauses = build_match_queries({"ResourceName": "ec2", "Data.Region": "us-east-1"})

        assert len(clauses) == 2
        assert {"match": {"ResourceName": "ec2"}} in clauses
        assert {"match": {"Data.Region": "us-east-1"}} in clauses

    def test_empty_filters_yield_no_clauses(self):
        assert build_match_queries({}) == []

    def test_unknown_fields_are_passed_through(self):
        """Field names are not validated."""
        assert build_match_queries({"NoSuchField": "x"}) == [{"match": {"NoSuchField": "x"}}]

    def test_returned_list_is_fresh(self):
        """Callers append fixed clauses without touching later results."""
        first = build_match_queries({"a": "1"})
        first.append(match_query("b", "2"))

        assert build_match_queries({"a": "1"}) == [{"match": {"a": "1"}}]


class TestMustQuery:
    """Test conjunctive query wrapping."""

    def test_wraps_clauses_in_bool_must(self):
        clauses = [match_query("EventType", "service_status"), match_query("ExecutionID", "run_1")]

        assert must_query(clauses) == {
            "bool": {
                "must": [
                    {"match": {"EventType": "service_status"}},
                    {"match": {"ExecutionID": "run_1"}},
                ]
            }
        }
