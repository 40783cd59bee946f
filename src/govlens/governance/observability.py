"""
Observability for the delegation integrity and analytics engine.

This module provides typed governance events with a hash-chained event log,
listener notification, and the append-only AnalyticsSnapshot log.
"""

import logging

logger = logging.getLogger(__name__)
import hashlib
import json
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

from ..errors.exceptions import NotFoundError


def _digest(payload: Dict[str, Any]) -> str:
    encoded = json.dumps(payload, sort_keys=True, default=str).encode()
    return hashlib.sha256(encoded).hexdigest()


class EventType(Enum):
    """Types of governance events."""

    DELEGATION_RECORDED = "delegation_recorded"
    DELEGATION_DEACTIVATED = "delegation_deactivated"
    DELEGATION_DEPTH_WARNING = "delegation_depth_warning"
    DELEGATION_BLOCKED = "delegation_blocked"
    DELEGATION_LOOP_DETECTED = "delegation_loop_detected"
    ANALYSIS_TOO_COMPLEX = "analysis_too_complex"
    SNAPSHOT_APPENDED = "snapshot_appended"


@dataclass
class GovernanceEvent:
    """A governance event for the event log."""

    event_id: str
    event_type: EventType
    timestamp: float = field(default_factory=time.time)
    delegator_address: Optional[str] = None
    delegatee_address: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Chain integrity
    event_hash: Optional[str] = None
    previous_event_hash: Optional[str] = None

    def __post_init__(self):
        """Calculate event hash after initialization."""
        self.event_hash = self._calculate_hash()

    def _calculate_hash(self) -> str:
        return _digest(
            {
                "event_id": self.event_id,
                "event_type": self.event_type.value,
                "timestamp": self.timestamp,
                "delegator_address": self.delegator_address,
                "delegatee_address": self.delegatee_address,
                "metadata": self.metadata,
                "previous_event_hash": self.previous_event_hash,
            }
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "delegator_address": self.delegator_address,
            "delegatee_address": self.delegatee_address,
            "metadata": self.metadata,
            "event_hash": self.event_hash,
            "previous_event_hash": self.previous_event_hash,
        }


class EventLog:
    """Hash-chained log of governance events.

    Holds at most max_events entries; once full, the oldest event is evicted
    along with its per-address index entries.
    """

    def __init__(self, max_events: int = 10000):
        self.max_events = max_events
        self.events: Deque[GovernanceEvent] = deque(maxlen=max_events)
        self.address_events: Dict[str, Deque[GovernanceEvent]] = {}
        self.evicted = 0
        self._lock = threading.Lock()

    def add_event(self, event: GovernanceEvent) -> None:
        """Add an event to the log."""
        with self._lock:
            if self.events:
                event.previous_event_hash = self.events[-1].event_hash
            if len(self.events) == self.max_events:
                self._evict(self.events[0])
            event.event_hash = event._calculate_hash()
            self.events.append(event)

            for address in {event.delegator_address, event.delegatee_address}:
                if address:
                    self.address_events.setdefault(address, deque()).append(event)

    def _evict(self, oldest: GovernanceEvent) -> None:
        self.evicted += 1
        for address in {oldest.delegator_address, oldest.delegatee_address}:
            indexed = self.address_events.get(address) if address else None
            if not indexed:
                continue
            if indexed[0] is oldest:
                indexed.popleft()
            if not indexed:
                del self.address_events[address]

    def get_address_events(self, address: str) -> List[GovernanceEvent]:
        return list(self.address_events.get(address, []))

    def get_events_by_type(self, event_type: EventType) -> List[GovernanceEvent]:
        return [event for event in self.events if event.event_type == event_type]

    def verify_integrity(self) -> bool:
        """Verify the hash chain across the retained events."""
        previous = None
        for i, event in enumerate(self.events):
            if event.event_hash != event._calculate_hash():
                return False
            if i > 0 and event.previous_event_hash != previous:
                return False
            previous = event.event_hash
        return True

    def get_summary(self) -> Dict[str, Any]:
        event_counts: Dict[str, int] = {}
        for event in self.events:
            event_type = event.event_type.value
            event_counts[event_type] = event_counts.get(event_type, 0) + 1

        return {
            "total_events": len(self.events),
            "evicted_events": self.evicted,
            "event_counts": event_counts,
            "unique_addresses": len(self.address_events),
            "integrity_verified": self.verify_integrity(),
        }


class GovernanceEvents:
    """Event system for governance observability."""

    def __init__(self, max_events: int = 10000):
        self.event_log = EventLog(max_events)
        self.event_listeners: Dict[EventType, List[Callable[[GovernanceEvent], None]]] = {}
        self._sequence = 0

    def add_event_listener(
        self, event_type: EventType, listener: Callable[[GovernanceEvent], None]
    ) -> None:
        """Add an event listener."""
        self.event_listeners.setdefault(event_type, []).append(listener)

    def emit_event(
        self,
        event_type: EventType,
        delegator_address: Optional[str] = None,
        delegatee_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GovernanceEvent:
        """Emit a governance event."""
        self._sequence += 1
        event = GovernanceEvent(
            event_id=f"{event_type.value}_{self._sequence}",
            event_type=event_type,
            delegator_address=delegator_address,
            delegatee_address=delegatee_address,
            metadata=metadata or {},
        )
        self.event_log.add_event(event)

        for listener in self.event_listeners.get(event_type, []):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Error in event listener for {event_type.value}: {e}")

        return event


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Immutable, hash-chained record of aggregated metrics."""

    sequence: int
    timestamp: float
    metrics: Mapping[str, Any]
    previous_hash: Optional[str]
    snapshot_hash: str

    def compute_hash(self) -> str:
        return _snapshot_digest(
            self.sequence, self.timestamp, self.metrics, self.previous_hash
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "metrics": _thaw(self.metrics),
            "previous_hash": self.previous_hash,
            "snapshot_hash": self.snapshot_hash,
        }


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


def _snapshot_digest(
    sequence: int, timestamp: float, metrics: Mapping[str, Any], previous: Optional[str]
) -> str:
    return _digest(
        {
            "sequence": sequence,
            "timestamp": timestamp,
            "metrics": _thaw(metrics),
            "previous_hash": previous,
        }
    )


class AnalyticsSnapshotLog:
    """Append-only log of analytics snapshots.

    Appends are serialised by a lock; entries are frozen and chained by hash
    so that any later tampering is detected by verify_integrity().
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: List[AnalyticsSnapshot] = []
        self._lock = threading.Lock()
        self._clock = clock

    def append(self, metrics: Dict[str, Any]) -> AnalyticsSnapshot:
        """Append a snapshot of the given metrics and return it."""
        with self._lock:
            previous = self._entries[-1].snapshot_hash if self._entries else None
            sequence = len(self._entries) + 1
            timestamp = self._clock()
            frozen = _freeze(metrics)
            snapshot_hash = _snapshot_digest(sequence, timestamp, frozen, previous)
            entry = AnalyticsSnapshot(
                sequence=sequence,
                timestamp=timestamp,
                metrics=frozen,
                previous_hash=previous,
                snapshot_hash=snapshot_hash,
            )
            self._entries.append(entry)

        logger.info(f"Appended analytics snapshot #{sequence}")
        return entry

    def entries(self) -> Tuple[AnalyticsSnapshot, ...]:
        return tuple(self._entries)

    def latest(self) -> Optional[AnalyticsSnapshot]:
        return self._entries[-1] if self._entries else None

    def get(self, sequence: int) -> AnalyticsSnapshot:
        if sequence < 1 or sequence > len(self._entries):
            raise NotFoundError(f"Snapshot #{sequence} not found", key=sequence)
        return self._entries[sequence - 1]

    def __len__(self) -> int:
        return len(self._entries)

    def verify_integrity(self) -> bool:
        previous = None
        for entry in self._entries:
            if entry.previous_hash != previous:
                return False
            if entry.snapshot_hash != entry.compute_hash():
                return False
            previous = entry.snapshot_hash
        return True
