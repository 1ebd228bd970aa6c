# gitlab_watch/detector.py
from typing import Dict, Iterable, List

from gitlab_watch.models import ChangeKind, DetectorStats, Event


class ChangeDetector:
    """
    Remembers the last fingerprint of every event id it has seen.

    Not thread-safe; each poller owns its own detector.
    """

    def __init__(self):
        self.seen: Dict[int, str] = {}
        self.new_count = 0
        self.updated_count = 0
        self.unchanged_count = 0

    def classify(self, event: Event) -> ChangeKind:
        fingerprint = event.fingerprint()
        known = self.seen.get(event.id)

        if known is None:
            self.seen[event.id] = fingerprint
            self.new_count += 1
            return ChangeKind.NEW

        if known != fingerprint:
            self.seen[event.id] = fingerprint
            self.updated_count += 1
            return ChangeKind.UPDATED

        self.unchanged_count += 1
        return ChangeKind.UNCHANGED

    def changed(self, events: Iterable[Event]) -> List[Event]:
        return [event for event in events if self.classify(event) is not ChangeKind.UNCHANGED]

    def get_stats(self) -> DetectorStats:
        return DetectorStats(
            new=self.new_count,
            updated=self.updated_count,
            unchanged=self.unchanged_count,
            tracked=len(self.seen),
        )
