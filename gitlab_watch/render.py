# gitlab_watch/render.py
import asyncio
import datetime
import logging
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO

from gitlab_watch.aggregator import Aggregator
from gitlab_watch.models import Event
from gitlab_watch.poller import wait_or_stop

TITLE_MAX_LEN = 100
BODY_MAX_LEN = 400


@dataclass(frozen=True)
class Palette:
    green: str = ""
    gray: str = ""
    reset: str = ""

    @classmethod
    def ansi(cls) -> "Palette":
        return cls(green="\x1b[32m", gray="\x1b[38;5;250m", reset="\x1b[0m")

    @classmethod
    def for_stream(cls, stream: TextIO) -> "Palette":
        """ANSI colors only when writing to an interactive terminal."""
        isatty = getattr(stream, "isatty", None)
        if isatty is not None and isatty():
            return cls.ansi()
        return cls()


def truncate(text: Optional[str], max_len: int, palette: Palette) -> str:
    text = text or ""
    if len(text) <= max_len:
        return text
    return f"{text[:max_len]}{palette.gray}...{palette.reset}"


def parse_timestamp(value: str) -> datetime.datetime:
    parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def format_time_since(delta: datetime.timedelta) -> str:
    s = int(delta.total_seconds())
    m = s // 60
    h = m // 60

    if h >= 30 * 24 * 12:
        return f"{h // 12 // 30 // 24} years ago"
    if h >= 30 * 24:
        return f"{h // 30 // 24} months ago"
    if h >= 24:
        return f"{h // 24} days ago"
    if h > 0:
        return f"{h} hours ago"
    if m > 0:
        return f"{m} minutes ago"
    if s > 0:
        return f"{s} seconds ago"
    return "just now"


def event_url(event: Event, base_url: str) -> str:
    url = f"{base_url}/{event.project.path_with_namespace}"
    if event.note is not None:
        url += f"/-/merge_requests/{event.note.noteable_iid}"
    elif event.target_type == "MergeRequest":
        url += f"/-/merge_requests/{event.target_iid}"
    return url


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Renderer:
    def __init__(
        self,
        aggregator: Aggregator,
        stream: Optional[TextIO] = None,
        json_output: bool = False,
        palette: Optional[Palette] = None,
        base_url: str = "https://gitlab.com",
        now: Callable[[], datetime.datetime] = _utcnow,
    ):
        self.aggregator = aggregator
        self.stream = stream or sys.stdout
        self.json_output = json_output
        self.palette = palette if palette is not None else Palette.for_stream(self.stream)
        self.base_url = base_url.rstrip("/")
        self.now = now

    def time_since(self, timestamp: str) -> str:
        try:
            updated_at = parse_timestamp(timestamp)
        except ValueError as e:
            logging.warning(f"Failed to parse date: updated_at={timestamp} err={e}")
            return "unknown"
        return format_time_since(self.now() - updated_at)

    def format_event(self, event: Event) -> str:
        if self.json_output:
            return event.canonical_json() + "\n"

        p = self.palette
        path = event.project.path_with_namespace if event.project else str(event.project_id)
        lines = [
            "",
            f"{p.green}{path}{p.gray} {event.updated_at} ({self.time_since(event.updated_at)})"
            f"{p.green} {event.author_username}{p.gray}: {event.action_name}{p.reset} "
            f"{truncate(event.target_title, TITLE_MAX_LEN, p)}",
        ]

        note = event.note
        if note is not None:
            if note.type == "DiffNote" and note.position is not None:
                lines.append(f"📃 {p.gray}{note.position.new_path}:{note.position.new_line}{p.reset}")
            resolved = f" {p.green}✔{p.reset}" if note.resolved else ""
            lines.append(f"💬 {truncate(note.body, BODY_MAX_LEN, p)}{resolved}")
        elif event.push_data is not None:
            push = event.push_data
            lines.append(
                f"⬆️  {push.ref} {truncate(push.commit_title, TITLE_MAX_LEN, p)} ({push.commit_count} commits)"
            )

        if event.project is not None:
            lines.append(f"🔗 {event_url(event, self.base_url)}")
        return "\n".join(lines) + "\n"

    def render(self, events: List[Event]) -> int:
        written = 0
        # sorted() is stable, ties keep arrival order.
        for event in sorted(events, key=lambda e: e.updated_at):
            try:
                text = self.format_event(event)
            except Exception as e:
                logging.error(f"Error rendering event {event.id}: {e}")
                continue
            try:
                self.stream.write(text)
            except (UnicodeEncodeError, OSError) as e:
                # Non UTF-8 terminal or a closed pipe.
                logging.error(f"Error writing event {event.id}: {e}")
                continue
            written += 1
        try:
            self.stream.flush()
        except OSError as e:
            logging.error(f"Error flushing output: {e}")
        return written

    def render_once(self) -> int:
        return self.render(self.aggregator.drain())

    async def run(self, stop: asyncio.Event, tick: float = 1.0) -> None:
        while True:
            self.render_once()
            if await wait_or_stop(stop, tick):
                break
        # Flush whatever the pollers queued before shutting down.
        self.render_once()
