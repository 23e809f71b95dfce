"""
Document store connection management.

Provides the Elasticsearch client used by the repository, retrying the
initial connection until a startup deadline.
"""

import time
from typing import Callable, Optional

from elasticsearch import ApiError, Elasticsearch, TransportError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_delay,
)

from cost_audit_store.config.loader import ElasticsearchConfig
from cost_audit_store.core.logging import get_logger

logger = get_logger("storage.client")

RETRYABLE_ERRORS = (ValueError, ApiError, TransportError)


class StoreConnectionError(Exception):
    """Raised when the document store cannot be reached before the deadline."""


def get_es_client(config: ElasticsearchConfig) -> Elasticsearch:
    """Create an Elasticsearch client and check that the cluster answers.

    A client whose check fails is closed before the error propagates.

    Args:
        config: Connection settings

    Returns:
        A verified client

    Raises:
        ValueError: If the endpoints are malformed
        elasticsearch.TransportError: If the cluster is unreachable
        elasticsearch.ApiError: If the cluster rejects the request
    """
    kwargs = {}
    if config.username:
        kwargs["basic_auth"] = (config.username, config.password or "")
    client = Elasticsearch(hosts=list(config.endpoints), **kwargs)
    try:
        client.info()
    except (ApiError, TransportError):
        client.close()
        raise
    return client


def wait_until_deadline(retry_interval: float, timeout: float) -> Callable[[RetryCallState], float]:
    """Fixed wait between attempts, cut short so it never passes the deadline."""
    def wait(retry_state: RetryCallState) -> float:
        remaining = timeout - (retry_state.seconds_since_start or 0.0)
        return max(0.0, min(retry_interval, remaining))
    return wait


def connect(
    config: ElasticsearchConfig,
    retry_interval: Optional[float] = None,
    timeout: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Elasticsearch:
    """Connect to the store, retrying until ``timeout`` seconds have passed.

    Args:
        config: Connection settings
        retry_interval: Seconds between attempts (defaults to config)
        timeout: Overall startup deadline in seconds (defaults to config)
        sleep: Function used to wait between attempts

    Returns:
        A verified Elasticsearch client

    Raises:
        StoreConnectionError: If no attempt succeeds before the deadline
    """
    retry_interval = retry_interval if retry_interval is not None else config.retry_interval
    timeout = timeout if timeout is not None else config.connect_timeout
    endpoints = list(config.endpoints)

    def log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            f"could not initialize connection to elasticsearch, "
            f"retrying in {retry_interval:g} seconds: {retry_state.outcome.exception()}",
            extra={"endpoint": endpoints},
        )

    retryer = Retrying(
        stop=stop_after_delay(timeout),
        wait=wait_until_deadline(retry_interval, timeout),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=log_retry,
        sleep=sleep,
        reraise=True,
    )
    try:
        return retryer(get_es_client, config)
    except RETRYABLE_ERRORS as e:
        logger.error(
            f"could not connect elasticsearch, timed out after {timeout:g} seconds",
            extra={"endpoint": endpoints},
        )
        raise StoreConnectionError(
            f"could not connect to elasticsearch at {endpoints}"
        ) from e
