"""
Execution summary reduction.

Folds service status documents into one row per resource name.
"""

from dataclasses import replace
from typing import Dict, Iterable

from cost_audit_store.storage.models import CollectorsSummary, EventDocument


def summary_row_from_event(event: EventDocument) -> CollectorsSummary:
    """Build a summary row from a decoded status document."""
    error_message = event.data.get("ErrorMessage")
    return CollectorsSummary(
        resource_name=event.resource_name,
        event_time=event.event_time,
        status=event.data.get("Status"),
        error_message=error_message if error_message else None,
    )


def merge_summary_row(
    summary: Dict[str, CollectorsSummary],
    row: CollectorsSummary,
) -> None:
    """Insert ``row`` unless the existing row for its resource is newer.

    The incumbent is kept only when its event time is strictly greater;
    on equal times the row seen last wins.
    """
    current = summary.get(row.resource_name)
    if current is not None and row.event_time < current.event_time:
        return
    summary[row.resource_name] = row


def reduce_status_events(
    events: Iterable[EventDocument],
) -> Dict[str, CollectorsSummary]:
    """Keep the latest status per resource name.

    Store result order is not guaranteed to follow time, so this is an
    explicit max-by-key fold rather than relying on sort order.
    """
    summary: Dict[str, CollectorsSummary] = {}
    for event in events:
        merge_summary_row(summary, summary_row_from_event(event))
    return summary


def with_cost(
    row: CollectorsSummary,
    total_spent: float,
    resource_count: int,
) -> CollectorsSummary:
    """Return a copy of ``row`` carrying aggregated cost details."""
    return replace(row, total_spent=total_spent, resource_count=resource_count)
