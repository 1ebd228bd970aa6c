# gitlab_watch/aggregator.py
import datetime
import logging
from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

from gitlab_watch.models import AggregatorStats, Event


def pending_key(event: Event) -> Tuple[Optional[int], int]:
    project_id = event.project.id if event.project is not None else event.project_id
    return project_id, event.id


class Aggregator:
    """
    Pending queue shared by all pollers and the renderer.

    append() and drain() run under the same lock, so a drain sees either all
    or none of a batch. Event ids are only unique within a project, so pending
    events are keyed by (project, id). A newer version appended before the
    next drain replaces the older one and takes its arrival position.
    """

    def __init__(self):
        self._pending: Dict[Tuple[Optional[int], int], Event] = {}
        self._lock = Lock()
        self.appended_count = 0
        self.superseded_count = 0
        self.drained_count = 0
        self.start_time = datetime.datetime.now()

    def append(self, events: Iterable[Event]) -> int:
        batch = list(events)
        if not batch:
            return 0
        with self._lock:
            for event in batch:
                key = pending_key(event)
                if self._pending.pop(key, None) is not None:
                    self.superseded_count += 1
                self._pending[key] = event
            self.appended_count += len(batch)
        logging.debug(f"QUEUED: {len(batch)} event(s)")
        return len(batch)

    def drain(self) -> List[Event]:
        with self._lock:
            drained, self._pending = self._pending, {}
            self.drained_count += len(drained)
        return list(drained.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def get_stats(self) -> AggregatorStats:
        uptime = int((datetime.datetime.now() - self.start_time).total_seconds())
        with self._lock:
            return AggregatorStats(
                appended=self.appended_count,
                superseded=self.superseded_count,
                drained=self.drained_count,
                pending=len(self._pending),
                started_at=self.start_time,
                uptime=uptime,
            )
