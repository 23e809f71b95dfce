"""
Data models for storage layer.

Defines stored event documents and the read views derived from them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class EventType(Enum):
    """Kinds of event documents written by collector runs."""
    SERVICE_STATUS = "service_status"
    RESOURCE_DETECTED = "resource_detected"


class DocumentDecodeError(ValueError):
    """Raised when a stored document does not have the expected shape."""


@dataclass(frozen=True)
class EventDocument:
    """Immutable view of a stored event document.

    Documents are append-only: once a collector writes one it is never
    updated or deleted.
    """
    resource_name: str
    execution_id: str
    event_type: str
    event_time: int
    data: Mapping[str, Any]

    @classmethod
    def from_source(cls, source: Any) -> "EventDocument":
        """Decode a raw ``_source`` body.

        Raises:
            DocumentDecodeError: If required fields are missing or mistyped
        """
        if not isinstance(source, Mapping):
            raise DocumentDecodeError("document body must be an object")

        resource_name = source.get("ResourceName")
        if not isinstance(resource_name, str) or not resource_name:
            raise DocumentDecodeError("ResourceName must be a non-empty string")

        event_time = source.get("EventTime")
        if isinstance(event_time, bool) or not isinstance(event_time, int):
            raise DocumentDecodeError("EventTime must be an integer")

        data = source.get("Data") or {}
        if not isinstance(data, Mapping):
            raise DocumentDecodeError("Data must be an object")

        return cls(
            resource_name=resource_name,
            execution_id=str(source.get("ExecutionID", "")),
            event_type=str(source.get("EventType", "")),
            event_time=event_time,
            data=data,
        )


@dataclass(frozen=True)
class CollectorsSummary:
    """Latest status of one resource within an execution, with its cost."""
    resource_name: str
    event_time: int
    status: Any = None
    error_message: Optional[str] = None
    total_spent: float = 0.0
    resource_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ResourceName": self.resource_name,
            "EventTime": self.event_time,
            "Status": self.status,
            "ErrorMessage": self.error_message,
            "TotalSpent": self.total_spent,
            "ResourceCount": self.resource_count,
        }


@dataclass(frozen=True)
class Execution:
    """One collector run, decomposed from its identifier."""
    id: str
    name: str
    time: int

    def to_dict(self) -> Dict[str, Any]:
        return {"ID": self.id, "Name": self.name, "Time": self.time}
