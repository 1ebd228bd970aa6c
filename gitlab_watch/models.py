# gitlab_watch/models.py
import datetime
import hashlib
import json
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    path_with_namespace: str = Field(..., description="e.g. group/subgroup/project")
    name: str = ""
    web_url: Optional[str] = None


class Position(BaseModel):
    new_path: Optional[str] = None
    new_line: Optional[int] = None


class Note(BaseModel):
    type: Optional[str] = Field(None, description="DiffNote, DiscussionNote or null")
    body: str = ""
    resolved: bool = False
    noteable_iid: Optional[int] = None
    position: Optional[Position] = None


class Push(BaseModel):
    action: Optional[str] = None
    ref_type: Optional[str] = None
    ref: Optional[str] = None
    commit_title: Optional[str] = None
    commit_count: int = 0


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Unique across the GitLab instance")
    project_id: Optional[int] = None
    created_at: str = Field(..., description="ISO8601 format.")
    updated_at: str = ""
    author_username: str = ""
    action_name: str = ""
    target_title: Optional[str] = None
    target_iid: Optional[int] = None
    target_type: Optional[str] = None
    note: Optional[Note] = None
    push_data: Optional[Push] = None
    project: Optional[Project] = Field(None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _default_updated_at(cls, data):
        # Events that were never edited come without updated_at.
        if isinstance(data, dict) and not data.get("updated_at"):
            data = {**data, "updated_at": data.get("created_at")}
        return data

    def with_project(self, project: Project) -> "Event":
        return self.model_copy(update={"project": project})

    def canonical_json(self) -> str:
        """Key-sorted compact JSON of the event's own fields, without the project."""
        return json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    def fingerprint(self) -> str:
        return hashlib.sha1(self.canonical_json().encode("utf-8")).hexdigest()


class ChangeKind(str, Enum):
    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class DetectorStats(BaseModel):
    new: int
    updated: int
    unchanged: int
    tracked: int


class AggregatorStats(BaseModel):
    appended: int
    superseded: int
    drained: int
    pending: int
    started_at: datetime.datetime
    uptime: int
