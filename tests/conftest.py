import datetime
from typing import Any, Dict, List, Union

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse

from gitlab_watch.models import Event, Project

BASE_URL = "https://gitlab.test"
TOKEN = "s3cr3t"

GATEWAY_TIMEOUT_HTML = "<html><body><h1>504 Gateway Time-out</h1></body></html>"


class HtmlError:
    def __init__(self, status_code: int = 504, body: str = GATEWAY_TIMEOUT_HTML):
        self.status_code = status_code
        self.body = body


class FakeGitLab:
    """
    In-process stand-in for the two GitLab endpoints we read.

    `feeds[project_id]` is a list of canned responses; each poll consumes one
    and the last one keeps being served.
    """

    def __init__(self):
        self.projects: Dict[int, Dict[str, Any]] = {}
        self.feeds: Dict[int, List[Union[list, HtmlError]]] = {}
        self.requests: List[Request] = []
        self.app = self._build_app()

    def add_project(self, project_id: int, path: str, *feed) -> None:
        self.projects[project_id] = {
            "id": project_id,
            "name": path.rsplit("/", 1)[-1],
            "path_with_namespace": path,
            "web_url": f"{BASE_URL}/{path}",
        }
        self.feeds[project_id] = list(feed) or [[]]

    def event_requests(self, project_id: int) -> int:
        return sum(1 for r in self.requests if r.url.path == f"/api/v4/projects/{project_id}/events")

    def _next_response(self, project_id: int):
        feed = self.feeds[project_id]
        return feed.pop(0) if len(feed) > 1 else feed[0]

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Fake GitLab")

        @app.get("/api/v4/projects/{project_id}/events")
        async def project_events(project_id: int, request: Request):
            self.requests.append(request)
            if project_id not in self.feeds:
                raise HTTPException(status_code=404, detail="404 Project Not Found")
            response = self._next_response(project_id)
            if isinstance(response, HtmlError):
                return HTMLResponse(response.body, status_code=response.status_code)
            return JSONResponse(response)

        @app.get("/api/v4/projects/{project_ref:path}")
        async def project_info(project_ref: str, request: Request):
            self.requests.append(request)
            for project in self.projects.values():
                if project_ref in (str(project["id"]), project["path_with_namespace"]):
                    return project
            return JSONResponse({"message": "404 Project Not Found"}, status_code=404)

        return app


def make_event_payload(event_id: int, created_at: str = "2024-05-01T10:00:00.000Z", **fields) -> Dict[str, Any]:
    payload = {
        "id": event_id,
        "project_id": 42,
        "created_at": created_at,
        "author_username": "alice",
        "action_name": "opened",
        "target_title": "Add change detector",
        "target_iid": 7,
        "target_type": "MergeRequest",
    }
    payload.update(fields)
    return payload


def make_event(event_id: int, created_at: str = "2024-05-01T10:00:00.000Z", project: Project = None, **fields) -> Event:
    event = Event.model_validate(make_event_payload(event_id, created_at, **fields))
    if project is not None:
        event = event.with_project(project)
    return event


@pytest.fixture
def project():
    return Project(id=42, path_with_namespace="acme/widgets", name="widgets")


@pytest.fixture
def fake_gitlab():
    return FakeGitLab()


@pytest_asyncio.fixture
async def http_client(fake_gitlab):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=fake_gitlab.app), base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def fixed_now():
    return lambda: datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)
