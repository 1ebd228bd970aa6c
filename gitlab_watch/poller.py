# gitlab_watch/poller.py
import asyncio
import logging
from enum import Enum
from typing import List, Optional

from gitlab_watch.aggregator import Aggregator
from gitlab_watch.detector import ChangeDetector
from gitlab_watch.errors import DecodeError, TransportError
from gitlab_watch.fetcher import Fetcher
from gitlab_watch.models import Event, Project

POLL_INTERVAL = 5.0
RETRY_DELAY = 1.0


class PollerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DETECTING = "detecting"
    SLEEPING = "sleeping"


async def wait_or_stop(stop: asyncio.Event, delay: float) -> bool:
    """Sleep for `delay` seconds; returns True early if `stop` got set."""
    try:
        await asyncio.wait_for(stop.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


class Poller:
    def __init__(
        self,
        project: Project,
        fetcher: Fetcher,
        aggregator: Aggregator,
        detector: Optional[ChangeDetector] = None,
        interval: float = POLL_INTERVAL,
        retry_delay: float = RETRY_DELAY,
    ):
        self.project = project
        self.fetcher = fetcher
        self.aggregator = aggregator
        self.detector = detector or ChangeDetector()
        self.interval = interval
        self.retry_delay = retry_delay
        self.state = PollerState.IDLE
        self.failure_count = 0

    async def poll_once(self) -> List[Event]:
        self.state = PollerState.FETCHING
        events = await self.fetcher.fetch_events(self.project)

        self.state = PollerState.DETECTING
        changed = self.detector.changed(events)
        self.aggregator.append(changed)
        logging.info(
            f"POLLED: {self.project.path_with_namespace} | {len(events)} fetched, {len(changed)} new or updated"
        )
        return changed

    async def run(self, stop: asyncio.Event) -> None:
        logging.info(f"Watching project {self.project.id} ({self.project.path_with_namespace})")
        while not stop.is_set():
            try:
                await self.poll_once()
                delay = self.interval
            except (TransportError, DecodeError) as e:
                self.failure_count += 1
                logging.warning(f"Error when fetching events for project {self.project.id}: {e}")
                delay = self.retry_delay

            self.state = PollerState.SLEEPING
            if await wait_or_stop(stop, delay):
                break
        self.state = PollerState.IDLE
