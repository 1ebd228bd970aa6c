# gitlab_watch/fetcher.py
import logging
from typing import List, Optional, Union
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from gitlab_watch.errors import DecodeError, TransportError
from gitlab_watch.models import Event, Project

_EVENTS_ADAPTER = TypeAdapter(List[Event])


class Fetcher:
    """Thin GitLab REST v4 reader. One GET per call, no retries."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, token: Optional[str] = None):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.token = token

    def _params(self, **extra) -> dict:
        params = dict(extra)
        if self.token:
            params["private_token"] = self.token
        return params

    async def _get(self, url: str, params: dict) -> bytes:
        try:
            resp = await self.client.get(url, params=params)
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {e}") from e

        body = resp.content
        logging.debug(f"GET {url} -> {resp.status_code}: {body[:2000]!r}")

        # 5xx from the proxy comes back as an HTML page, 404 as a JSON message.
        if not resp.is_success:
            raise DecodeError(f"GET {url} returned HTTP {resp.status_code}")
        return body

    async def fetch_project(self, identifier: Union[int, str]) -> Project:
        url = f"{self.base_url}/api/v4/projects/{quote(str(identifier), safe='')}"
        body = await self._get(url, self._params(simple="true"))
        try:
            return Project.model_validate_json(body)
        except ValidationError as e:
            raise DecodeError(f"Unexpected project payload for {identifier}: {e.error_count()} error(s)") from e

    async def fetch_events(self, project: Project) -> List[Event]:
        url = f"{self.base_url}/api/v4/projects/{project.id}/events"
        body = await self._get(url, self._params())
        try:
            events = _EVENTS_ADAPTER.validate_json(body)
        except ValidationError as e:
            raise DecodeError(f"Unexpected events payload for project {project.id}: {e.error_count()} error(s)") from e
        return [event.with_project(project) for event in events]
