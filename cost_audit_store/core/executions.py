"""
Execution listing decoding.

Turns the nested bucket aggregation returned for collector executions into
Execution records. Kept free of any client code so it can be exercised with
plain dictionaries.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Mapping

from cost_audit_store.core.logging import get_logger
from cost_audit_store.storage.models import Execution

logger = get_logger("core.executions")

EXECUTION_ID_DELIMITER = "_"
# Signed base-10 integer, ASCII digits only
TIMESTAMP_PATTERN = re.compile(r"[+-]?[0-9]+")

# Aggregation names shared with the query built in the repository
ORDERED_EXECUTIONS_AGG = "orderedExecutionID"
EXECUTION_IDS_AGG = "ExecutionIDDesc"
MAX_EVENT_TIME_AGG = "MaxEventTime"


class BucketDecodeError(ValueError):
    """Raised when a bucket payload does not have the expected shape."""


class ExecutionIdError(ValueError):
    """Raised when an execution identifier has no timestamp suffix."""


@dataclass(frozen=True)
class ExecutionBucket:
    """One ``{key}`` entry of the inner terms aggregation."""
    key: str


def decode_execution_buckets(payload: Any) -> List[ExecutionBucket]:
    """Decode a ``{"buckets": [{"key": ...}, ...]}`` payload.

    Raises:
        BucketDecodeError: If the payload is not a bucket list
    """
    if not isinstance(payload, Mapping):
        raise BucketDecodeError("bucket payload must be an object")
    buckets = payload.get("buckets")
    if not isinstance(buckets, list):
        raise BucketDecodeError("bucket payload has no 'buckets' list")

    decoded = []
    for bucket in buckets:
        if not isinstance(bucket, Mapping) or "key" not in bucket:
            raise BucketDecodeError(f"bucket entry has no key: {bucket!r}")
        decoded.append(ExecutionBucket(key=str(bucket["key"])))
    return decoded


def parse_execution_id(execution_id: str) -> Execution:
    """Split ``<name>_<unixSeconds>`` into an Execution record.

    The name may itself contain underscores; only the last segment is the
    timestamp.

    Raises:
        ExecutionIdError: If there is no delimiter or the timestamp is not
            a base-10 integer
    """
    name, delimiter, timestamp = execution_id.rpartition(EXECUTION_ID_DELIMITER)
    if not delimiter:
        raise ExecutionIdError(f"execution id has no timestamp: {execution_id!r}")
    if not TIMESTAMP_PATTERN.fullmatch(timestamp):
        raise ExecutionIdError(
            f"execution id timestamp is not an integer: {execution_id!r}"
        )
    seconds = int(timestamp, 10)
    return Execution(id=execution_id, name=name, time=seconds)


def executions_from_aggregation(aggregation: Mapping[str, Any]) -> List[Execution]:
    """Collect Execution records from the outer filters aggregation.

    Undecodable buckets and identifiers are logged and skipped; store order
    (most recent first) is preserved.
    """
    executions = []
    for outer_bucket in aggregation.get("buckets") or []:
        payload = outer_bucket.get(EXECUTION_IDS_AGG) if isinstance(outer_bucket, Mapping) else None
        try:
            buckets = decode_execution_buckets(payload)
        except BucketDecodeError:
            logger.exception("could not parse bucket aggregations execution ids")
            continue

        for bucket in buckets:
            try:
                executions.append(parse_execution_id(bucket.key))
            except ExecutionIdError as e:
                logger.error(
                    f"could not parse collector execution time: {e}",
                    extra={"execution_id": bucket.key},
                )
    return executions
