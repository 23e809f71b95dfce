"""
Repository pattern for data access.

Handles event persistence and the read views built on top of the
Elasticsearch query and aggregation API.
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from elasticsearch import ApiError, Elasticsearch, TransportError

from cost_audit_store.config.loader import ElasticsearchConfig
from cost_audit_store.core.executions import (
    EXECUTION_IDS_AGG,
    MAX_EVENT_TIME_AGG,
    ORDERED_EXECUTIONS_AGG,
    executions_from_aggregation,
)
from cost_audit_store.core.logging import get_logger
from cost_audit_store.core.query import build_match_queries, match_query, must_query
from cost_audit_store.core.summary import reduce_status_events, with_cost
from .client import connect
from .mapping import INDEX_MAPPING, missing_keyword_fields
from .models import (
    CollectorsSummary,
    DocumentDecodeError,
    EventDocument,
    EventType,
    Execution,
)

logger = get_logger("storage.repository")

# Fixed result windows; there is no cursor, larger result sets are truncated
MAX_SEARCH_RESULTS = 100

PRICE_FIELD = "Data.PricePerMonth"
SUM_AGG = "sum"

StoreError = (ApiError, TransportError)


class QueryError(Exception):
    """Raised when a read query fails or returns an unusable response."""


def _body(response: Any) -> Any:
    """Unwrap a client response into plain data."""
    return getattr(response, "body", response)


def _hits(response: Any) -> List[Dict[str, Any]]:
    hits = None
    if isinstance(response, Mapping) and isinstance(response.get("hits"), Mapping):
        hits = response["hits"].get("hits")
    if not isinstance(hits, list):
        logger.error("search response has no hits list")
        raise QueryError("search response has no hits list")
    return hits


class StorageManager:
    """Repository for writing and querying collector event documents.

    The client handle is the only shared state; every read is an
    independent request/response round trip, safe for concurrent callers.
    """

    def __init__(self, client: Elasticsearch, default_index: str):
        """Initialize the repository.

        Args:
            client: Connected Elasticsearch client
            default_index: Index documents are written to and read from
        """
        self.client = client
        self.default_index = default_index

    @classmethod
    def from_config(cls, config: ElasticsearchConfig) -> "StorageManager":
        """Connect to the store and make sure the index exists.

        Raises:
            StoreConnectionError: If the store is unreachable at startup
        """
        manager = cls(connect(config), config.index)
        manager.create_index()
        return manager

    def save(self, document: Union[str, Mapping[str, Any]]) -> bool:
        """Index a single event document.

        Args:
            document: Document body, as a mapping or a JSON string

        Returns:
            True when the store accepted the document
        """
        try:
            body = json.loads(document) if isinstance(document, str) else dict(document)
            self.client.index(index=self.default_index, document=body)
        except (ValueError, TypeError, *StoreError):
            logger.exception(
                "Fail to save document",
                extra={"index": self.default_index, "document": document},
            )
            return False
        return True

    def get_summary(
        self,
        execution_id: str,
        filters: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, CollectorsSummary]:
        """Return the latest status and cost of every resource of an execution.

        Status documents are reduced to the newest per resource name; each
        row is then enriched with the summed monthly price and the number of
        detected resources. A failing cost query for one resource leaves
        that row at zero cost and count.

        Args:
            execution_id: Collector execution identifier
            filters: Extra field filters applied to the cost query

        Returns:
            Mapping of resource name to summary row

        Raises:
            QueryError: If the status documents cannot be fetched
        """
        filters = dict(filters or {})
        logger.debug(
            "Going to get summary with the following fields",
            extra={"execution_id": execution_id, "filters": filters},
        )
        try:
            response = _body(self.client.search(
                index=self.default_index,
                query=must_query([
                    match_query("EventType", EventType.SERVICE_STATUS.value),
                    match_query("ExecutionID", execution_id),
                ]),
                size=MAX_SEARCH_RESULTS,
            ))
        except StoreError as e:
            logger.exception(
                "error when trying to get summary data",
                extra={"execution_id": execution_id},
            )
            raise QueryError(f"could not get summary for execution {execution_id}") from e

        hits = _hits(response)
        logger.debug(
            "get summary status documents response time",
            extra={"milliseconds": response.get("took"), "hits": len(hits)},
        )

        events = []
        for hit in hits:
            try:
                if not isinstance(hit, Mapping):
                    raise DocumentDecodeError("search hit must be an object")
                events.append(EventDocument.from_source(hit.get("_source")))
            except DocumentDecodeError:
                logger.exception("could not parse summary row")
        summary = reduce_status_events(events)

        for resource_name, row in list(summary.items()):
            resource_filters = {**filters, "ResourceName": resource_name}
            logger.debug(
                "Going to get resources summary details with the following filters",
                extra={"filters": resource_filters},
            )
            try:
                total_spent, resource_count = self._get_resource_summary_details(
                    execution_id, resource_filters
                )
            except QueryError:
                continue
            summary[resource_name] = with_cost(row, total_spent, resource_count)

        return summary

    def _get_resource_summary_details(
        self,
        execution_id: str,
        filters: Mapping[str, str],
    ) -> Tuple[float, int]:
        """Return total monthly spend and number of detected resources.

        Uses an aggregation-only search so detected documents never leave
        the store.

        Raises:
            QueryError: If the aggregation query fails or is malformed
        """
        clauses = build_match_queries(filters)
        clauses.append(match_query("ExecutionID", execution_id))
        clauses.append(match_query("EventType", EventType.RESOURCE_DETECTED.value))

        try:
            response = _body(self.client.search(
                index=self.default_index,
                query=must_query(clauses),
                aggs={SUM_AGG: {"sum": {"field": PRICE_FIELD}}},
                size=0,
            ))
            aggregation = response["aggregations"][SUM_AGG]
            total_spent = float(aggregation.get("value") or 0.0)
            resource_count = int(response["hits"]["total"]["value"])
        except (*StoreError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.exception(
                "error when trying to get summary details",
                extra={"filters": dict(filters), "execution_id": execution_id},
            )
            raise QueryError(f"could not get summary details for {dict(filters)}") from e

        logger.debug(
            "get execution details",
            extra={"filters": dict(filters), "milliseconds": response.get("took")},
        )
        return total_spent, resource_count

    def get_executions(self, limit: int) -> List[Execution]:
        """Return collector executions, most recent first.

        Executions are the distinct ExecutionID values of status documents,
        ordered by their latest EventTime and capped at ``limit``. When the
        store cannot answer, an empty list is returned: callers poll this
        and treat it as "no executions yet".
        """
        aggs = {
            ORDERED_EXECUTIONS_AGG: {
                "filters": {
                    "filters": [
                        {"bool": {"filter": [{"bool": {"should": [
                            match_query("EventType", EventType.SERVICE_STATUS.value)
                        ]}}]}}
                    ]
                },
                "aggs": {
                    EXECUTION_IDS_AGG: {
                        "terms": {
                            "field": "ExecutionID",
                            "size": limit,
                            "order": {MAX_EVENT_TIME_AGG: "desc"},
                        },
                        "aggs": {
                            MAX_EVENT_TIME_AGG: {"max": {"field": "EventTime"}}
                        },
                    }
                },
            }
        }

        try:
            response = _body(self.client.search(
                index=self.default_index, aggs=aggs, size=0
            ))
        except StoreError:
            logger.exception(
                "error when trying to get executions collectors",
                extra={"limit": limit},
            )
            return []

        aggregation = None
        if isinstance(response, Mapping):
            aggregation = (response.get("aggregations") or {}).get(ORDERED_EXECUTIONS_AGG)
        if not isinstance(aggregation, Mapping):
            logger.error(f"{ORDERED_EXECUTIONS_AGG} field term does not exist")
            return []

        return executions_from_aggregation(aggregation)

    def get_resources(self, resource_type: str, execution_id: str) -> List[Dict[str, Any]]:
        """Return raw detected-resource documents of one type and execution.

        Documents are returned as stored, without projecting them onto the
        event schema, in store order and capped at MAX_SEARCH_RESULTS.

        Raises:
            QueryError: If the search fails
        """
        query = must_query([
            match_query("EventType", EventType.RESOURCE_DETECTED.value),
            match_query("ExecutionID", execution_id),
            match_query("ResourceName", resource_type),
        ])
        try:
            response = _body(self.client.search(
                index=self.default_index, query=query, size=MAX_SEARCH_RESULTS
            ))
        except StoreError as e:
            logger.exception(
                "elasticsearch query error",
                extra={"resource_type": resource_type, "execution_id": execution_id},
            )
            raise QueryError(
                f"could not get {resource_type} resources for execution {execution_id}"
            ) from e

        resources = []
        hits = _hits(response)
        for hit in hits:
            try:
                if not isinstance(hit, Mapping):
                    raise DocumentDecodeError("search hit must be an object")
                source = hit.get("_source")
                if isinstance(source, (str, bytes)):
                    source = json.loads(source)
                if not isinstance(source, dict):
                    raise DocumentDecodeError("document body must be an object")
            except ValueError:
                logger.exception("error when trying to parse search result hits data")
                continue
            resources.append(source)
        return resources

    def create_index(self, index: Optional[str] = None) -> bool:
        """Create the index with the keyword mapping if it does not exist.

        Failures are logged and reported through the return value; nothing
        is retried.
        """
        index = index or self.default_index
        try:
            if self.client.indices.exists(index=index):
                logger.info("index already exists", extra={"index": index})
                self._check_mapping(index)
                return True
            self.client.indices.create(index=index, mappings=INDEX_MAPPING)
        except StoreError:
            logger.exception(
                "Error when trying to create elasticsearch index",
                extra={"index": index},
            )
            return False

        logger.info("index created", extra={"index": index})
        return True

    def _check_mapping(self, index: str) -> None:
        try:
            response = _body(self.client.indices.get_mapping(index=index))
        except StoreError:
            logger.exception("could not read index mapping", extra={"index": index})
            return
        for mapping in response.values():
            missing = missing_keyword_fields(mapping)
            if missing:
                logger.warning(
                    f"index mapping does not declare keyword fields {missing}; "
                    "filters on them may not match exactly",
                    extra={"index": index},
                )
