# gitlab_watch/main.py
import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from typing import List, Optional, TextIO, Union

import httpx

from gitlab_watch.aggregator import Aggregator
from gitlab_watch.config import DEFAULT_URL, WatchConfig
from gitlab_watch.errors import ConfigError, DecodeError, TransportError
from gitlab_watch.fetcher import Fetcher
from gitlab_watch.models import Project
from gitlab_watch.poller import Poller
from gitlab_watch.render import Renderer

HTTP_TIMEOUT = 10.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitlab-watch",
        description="Watch GitLab projects and print new or edited activity as it happens.",
    )
    parser.add_argument("projects", nargs="+", metavar="PROJECT", help="Project id or namespace/project path")
    parser.add_argument("--verbose", action="store_true", help="Verbose")
    parser.add_argument(
        "--token",
        default=os.environ.get("GITLAB_TOKEN", ""),
        help="Gitlab API token (private, do not share with others). Defaults to $GITLAB_TOKEN",
    )
    parser.add_argument(
        "--url",
        default=DEFAULT_URL,
        help="Gitlab URL. Might be different from gitlab.com when self-hosting.",
    )
    parser.add_argument("--json", action="store_true", help="Output json for scripts to consume")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between two polls of a project")
    parser.add_argument("--retry-delay", type=float, default=1.0, help="Seconds to wait after a failed poll")
    parser.add_argument("--tick", type=float, default=1.0, help="Seconds between two renders")
    return parser


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.CRITICAL + 1,
        stream=sys.stderr,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    # httpx logs every request at INFO, which drowns the poll logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def resolve_projects(fetcher: Fetcher, identifiers: List[Union[int, str]]) -> List[Project]:
    projects = await asyncio.gather(*(fetcher.fetch_project(identifier) for identifier in identifiers))
    for identifier, project in zip(identifiers, projects):
        logging.info(f"Fetched info for project {identifier}: id={project.id} path={project.path_with_namespace}")
    return list(projects)


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)


async def watch(
    config: WatchConfig,
    client: Optional[httpx.AsyncClient] = None,
    stream: Optional[TextIO] = None,
    stop: Optional[asyncio.Event] = None,
) -> Aggregator:
    """Resolve every project, then poll and render until `stop` is set."""
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=HTTP_TIMEOUT)
    if stop is None:
        stop = asyncio.Event()
        _install_signal_handlers(stop)

    aggregator = Aggregator()
    try:
        fetcher = Fetcher(client, config.base_url, config.token)
        projects = await resolve_projects(fetcher, config.projects)

        pollers = [
            Poller(project, fetcher, aggregator, interval=config.interval, retry_delay=config.retry_delay)
            for project in projects
        ]
        renderer = Renderer(aggregator, stream=stream, json_output=config.json_output, base_url=config.base_url)

        await asyncio.gather(
            *(poller.run(stop) for poller in pollers),
            renderer.run(stop, tick=config.tick),
        )

        for poller in pollers:
            logging.info(f"STATS {poller.project.path_with_namespace}: {poller.detector.get_stats().model_dump()}")
        logging.info(f"STATS aggregator: {aggregator.get_stats().model_dump(mode='json')}")
    finally:
        if owns_client:
            await client.aclose()
    return aggregator


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = WatchConfig.from_args(args)
    except ConfigError as e:
        print(f"gitlab-watch: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(watch(config))
    except (TransportError, DecodeError) as e:
        print(f"Failed to fetch the project information: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
