"""
JOURNEYMAP MUTATION LOGGER - The Edit Trail

Records every structural and field edit made to a journey tree so a
session can be inspected after the fact ("why did this node disappear?").

Architecture:
- MutationLogger: Core logging interface used by core.mutations
- EventBuffer: In-memory ring buffer for recent events
- FileLogger: Optional newline-delimited JSON trail (off by default)

Usage:
    events = MutationLogger()
    tree = add_child(tree, "n1", ids, events=events)

    for event in events.get_recent_events(10):
        print(f"{event.sequence}: {event.mutation_type} {event.node_id}")

Design:
- The edit trail is diagnostic output, not persistence: nothing here can
  rebuild a tree, and there is no undo
- Every event is also emitted through the stdlib logger at DEBUG level
"""
import msgspec
import logging
from typing import Optional, Dict, List, Any, Callable, Iterator
from datetime import datetime, timezone
from dataclasses import dataclass
from pathlib import Path
from collections import deque
from contextlib import contextmanager
import io

from viz.core import MutationType, MutationEvent

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the mutation logger."""
    enable_file_log: bool = False       # Enable NDJSON edit trail
    log_path: Optional[Path] = None     # Directory for trail files
    buffer_size: int = 1000             # In-memory buffer size

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./workspace/logs")
        elif not isinstance(self.log_path, Path):
            self.log_path = Path(self.log_path)


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Ring buffer for recent mutation events.

    O(1) append; queries are linear scans, which is fine at editor scale.
    """

    def __init__(self, max_size: int = 1000):
        self._buffer: deque[MutationEvent] = deque(maxlen=max_size)
        self._sequence = 0

    def append(self, event: MutationEvent) -> None:
        """Add an event to the buffer."""
        self._buffer.append(event)

    def get_since(self, timestamp: str) -> List[MutationEvent]:
        """Get all events since a timestamp."""
        return [e for e in self._buffer if e.timestamp >= timestamp]

    def get_last(self, n: int) -> List[MutationEvent]:
        """Get the last n events."""
        if n <= 0:
            return []
        return list(self._buffer)[-n:]

    def get_by_node(self, node_id: str) -> List[MutationEvent]:
        """Get all events that touched a node, including subtree removals."""
        return [
            e for e in self._buffer
            if e.node_id == node_id or node_id in e.removed_ids
        ]

    def get_by_type(self, mutation_type: str) -> List[MutationEvent]:
        """Get all events of a specific type."""
        return [e for e in self._buffer if e.mutation_type == mutation_type]

    def next_sequence(self) -> int:
        """Get next sequence number."""
        self._sequence += 1
        return self._sequence

    def clear(self) -> None:
        """Clear the buffer."""
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)


# =============================================================================
# FILE LOGGER
# =============================================================================

class FileLogger:
    """
    File-based event trail.

    Writes events as newline-delimited JSON, one file per UTC day.
    """

    def __init__(self, log_path: Path):
        self._log_path = log_path
        self._current_file: Optional[io.TextIOWrapper] = None
        self._current_date: Optional[str] = None
        self._encoder = msgspec.json.Encoder()

        log_path.mkdir(parents=True, exist_ok=True)

    def write(self, event: MutationEvent) -> None:
        """Write an event to the trail file."""
        self._ensure_file()
        line = self._encoder.encode(event).decode("utf-8") + "\n"
        self._current_file.write(line)
        self._current_file.flush()

    def _ensure_file(self) -> None:
        """Ensure we have a valid file handle for today."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        if self._current_date != today:
            if self._current_file:
                self._current_file.close()

            filepath = self._log_path / f"mutations_{today}.jsonl"
            self._current_file = open(filepath, "a", encoding="utf-8")
            self._current_date = today

    def close(self) -> None:
        """Close the file handle."""
        if self._current_file:
            self._current_file.close()
            self._current_file = None

    def read_log(self, date: str) -> List[MutationEvent]:
        """Read events from a specific date's trail. Corrupt lines are skipped with a warning."""
        filepath = self._log_path / f"mutations_{date}.jsonl"

        if not filepath.exists():
            return []

        events = []
        decoder = msgspec.json.Decoder(type=MutationEvent)

        with open(filepath, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(decoder.decode(line.encode()))
                except msgspec.DecodeError as e:
                    logger.warning("Skipping corrupt event at %s:%d: %s", filepath, lineno, e)

        return events


# =============================================================================
# MUTATION LOGGER (Main Interface)
# =============================================================================

class MutationLogger:
    """
    Main logging interface for journey tree mutations.

    Provides a unified API for logging events to:
    - In-memory buffer (always)
    - File-based trail (configurable)
    - Subscribers (callbacks)

    Usage:
        events = MutationLogger()
        events.log_node_created("n9", "action", parent_id="n1")
        events.log_node_retyped("n1", "action", "branch")

        timeline = events.get_node_timeline("n1")
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()

        self._buffer = EventBuffer(self.config.buffer_size)
        self._file_logger: Optional[FileLogger] = None

        if self.config.enable_file_log and self.config.log_path:
            self._file_logger = FileLogger(self.config.log_path)

        self._subscribers: List[Callable[[MutationEvent], None]] = []
        self._held: Optional[List[MutationEvent]] = None

    def _now(self) -> str:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc).isoformat()

    def _event(self, mutation_type: MutationType, **fields) -> MutationEvent:
        return MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            mutation_type=mutation_type.value,
            **fields,
        )

    def _emit(self, event: MutationEvent) -> None:
        """Emit an event to all destinations (or stage it while held)."""
        if self._held is not None:
            self._held.append(event)
            return

        self._buffer.append(event)
        logger.debug("mutation #%d %s node=%s", event.sequence, event.mutation_type, event.node_id)

        if self._file_logger:
            self._file_logger.write(event)

        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.exception("Mutation subscriber %r failed", subscriber)

    # =========================================================================
    # LOGGING METHODS
    # =========================================================================

    def log_node_created(
        self,
        node_id: str,
        node_kind: str,
        parent_id: Optional[str] = None,
    ) -> MutationEvent:
        """Log a node creation event."""
        event = self._event(
            MutationType.NODE_CREATED,
            node_id=node_id,
            node_kind=node_kind,
            parent_id=parent_id,
        )
        self._emit(event)
        return event

    def log_node_updated(self, node_id: str, node_kind: str) -> MutationEvent:
        """Log a field update event."""
        event = self._event(MutationType.NODE_UPDATED, node_id=node_id, node_kind=node_kind)
        self._emit(event)
        return event

    def log_node_deleted(
        self,
        node_id: str,
        node_kind: str,
        removed_ids: Optional[List[str]] = None,
        parent_id: Optional[str] = None,
    ) -> MutationEvent:
        """Log a subtree deletion event."""
        event = self._event(
            MutationType.NODE_DELETED,
            node_id=node_id,
            node_kind=node_kind,
            parent_id=parent_id,
            removed_ids=list(removed_ids or [node_id]),
        )
        self._emit(event)
        return event

    def log_node_retyped(
        self,
        node_id: str,
        old_kind: str,
        new_kind: str,
        removed_ids: Optional[List[str]] = None,
    ) -> MutationEvent:
        """Log a kind change, with any subtree ids the reshape dropped."""
        event = self._event(
            MutationType.NODE_RETYPED,
            node_id=node_id,
            node_kind=new_kind,
            old_kind=old_kind,
            new_kind=new_kind,
            removed_ids=list(removed_ids or []),
        )
        self._emit(event)
        return event

    def log_noop(self, operation: str, node_id: str, reason: str) -> MutationEvent:
        """Log an operation that left the tree unchanged."""
        event = self._event(
            MutationType.NOOP,
            node_id=node_id,
            operation=operation,
            reason=reason,
        )
        self._emit(event)
        return event

    @contextmanager
    def hold(self) -> Iterator[None]:
        """
        Stage events logged inside the block.

        They are emitted when the block exits normally and discarded when
        it raises, so an edit rejected after the fact leaves no trail.
        Nested holds join the outermost one.
        """
        if self._held is not None:
            yield
            return

        self._held = []
        try:
            yield
        except Exception:
            logger.debug("Discarding %d held mutation event(s)", len(self._held))
            self._held = None
            raise

        held, self._held = self._held, None
        for event in held:
            self._emit(event)

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        """Get the n most recent events."""
        return self._buffer.get_last(n)

    def get_events_since(self, timestamp: str) -> List[MutationEvent]:
        """Get all events since a timestamp."""
        return self._buffer.get_since(timestamp)

    def get_events_for_node(self, node_id: str) -> List[MutationEvent]:
        """Get all events for a specific node."""
        return self._buffer.get_by_node(node_id)

    def get_events_by_type(self, mutation_type: str) -> List[MutationEvent]:
        """Get all events of a specific type."""
        return self._buffer.get_by_type(mutation_type)

    def get_node_timeline(self, node_id: str) -> List[Dict[str, Any]]:
        """
        Get a timeline of mutations for a node.

        Returns a simplified list of mutations for debugging.
        """
        return [
            {
                "time": e.timestamp,
                "type": e.mutation_type,
                "old_kind": e.old_kind,
                "new_kind": e.new_kind,
                "reason": e.reason,
            }
            for e in self.get_events_for_node(node_id)
        ]

    def __len__(self) -> int:
        return len(self._buffer)

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Subscribe to mutation events."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Unsubscribe from mutation events."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Close all resources."""
        if self._file_logger:
            self._file_logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

# Global logger instance
_global_logger: Optional[MutationLogger] = None


def get_logger() -> MutationLogger:
    """Get or create the global mutation logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = MutationLogger()
    return _global_logger


def configure_logger(config: LoggerConfig) -> MutationLogger:
    """Configure and return a new global mutation logger."""
    global _global_logger
    if _global_logger:
        _global_logger.close()
    _global_logger = MutationLogger(config)
    return _global_logger
