"""
Activity log for create, update, delete and status-change actions.

Entries are append-only. ``InMemoryActivityLog`` backs the dashboard's
recent-activity feed; ``JsonlActivityLog`` also keeps every entry on disk,
one JSON object per line.
"""

import json
import logging
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .id_source import IdentifierSource, get_default_source

logger = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path("audit_logs") / "activity.jsonl"


class ActivityType(str, Enum):
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    STATUS_CHANGE = 'status_change'


class ActivityLogEntry(BaseModel):
    """One audit record. Frozen: entries are never changed once built."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: ActivityType
    entity: str
    entity_id: str
    entity_name: str
    description: str
    timestamp: datetime
    user_name: str = 'admin'


def build_entry(activity_type: Union[ActivityType, str], entity: str, entity_id: str, entity_name: str,
                description: str, user_name: str = 'admin',
                id_source: Optional[IdentifierSource] = None) -> ActivityLogEntry:
    """
    Create an entry stamped with a new id and the current time.

    Args:
        activity_type: What happened
        entity: Document type the action applied to (``footer``, ``inquiries`` ...)
        entity_id: Id of the page or collection item
        entity_name: Human-readable name shown in the activity feed
        description: Free-text description
        user_name: Who did it
        id_source: Source of ids and timestamps (process default when omitted)
    """
    source = id_source or get_default_source()
    return ActivityLogEntry(
        id=source.new_id('activity'),
        type=ActivityType(activity_type),
        entity=entity,
        entity_id=entity_id,
        entity_name=entity_name,
        description=description,
        timestamp=source.now(),
        user_name=user_name,
    )


class InMemoryActivityLog:
    """Activity sink keeping entries in the order they were recorded."""

    def __init__(self):
        self._entries: List[ActivityLogEntry] = []
        self._lock = threading.Lock()

    def record(self, entry: ActivityLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)
        logger.info(f"Activity recorded: {entry.type.value} {entry.entity}/{entry.entity_id}")

    @property
    def entries(self) -> List[ActivityLogEntry]:
        """All entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def recent(self, limit: int = 10) -> List[ActivityLogEntry]:
        """Newest entries first, at most ``limit`` of them."""
        with self._lock:
            return list(reversed(self._entries[-limit:])) if limit > 0 else []

    def __len__(self) -> int:
        return len(self._entries)


class JsonlActivityLog(InMemoryActivityLog):
    """
    Activity sink that also appends every entry to a JSONL file.

    Existing lines are loaded on construction so the feed survives restarts.
    A failed write is logged; the entry is still kept in memory.
    """

    def __init__(self, log_path: Union[str, Path] = DEFAULT_LOG_PATH):
        super().__init__()
        self.log_path = Path(log_path)
        self._load_existing()

    def _load_existing(self) -> None:
        if not self.log_path.exists():
            return

        loaded = 0
        try:
            with open(self.log_path, 'r', encoding='utf-8') as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        self._entries.append(ActivityLogEntry.model_validate_json(line))
                        loaded += 1
                    except ValidationError as e:
                        logger.warning(f"Skipping invalid activity line {line_number} in {self.log_path}: {e}")
        except (IOError, OSError) as e:
            logger.error(f"Failed to read activity log {self.log_path}: {e}")
            return

        logger.info(f"Loaded {loaded} activity entries from {self.log_path}")

    def record(self, entry: ActivityLogEntry) -> None:
        super().record(entry)
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, 'a', encoding='utf-8') as f:
                json.dump(entry.model_dump(mode='json'), f, ensure_ascii=False)
                f.write('\n')
        except (IOError, OSError) as e:
            logger.error(f"Failed to append activity log {self.log_path}: {e}")
