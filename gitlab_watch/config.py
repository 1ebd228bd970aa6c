# gitlab_watch/config.py
import re
from typing import List, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from gitlab_watch.errors import ConfigError

DEFAULT_URL = "gitlab.com"

_PROJECT_PATH = re.compile(r"^[\w.-]+(/[\w.-]+)+$")


def parse_project_id(raw: str) -> Union[int, str]:
    """Numeric project id, or a namespace/project path."""
    raw = raw.strip()
    if raw.isdigit():
        return int(raw)
    if _PROJECT_PATH.match(raw):
        return raw
    raise ValueError(f"Invalid project id {raw!r}: expected a number or a namespace/project path")


def normalize_base_url(raw: str) -> str:
    raw = raw.strip().rstrip("/")
    if not raw:
        raise ValueError("GitLab URL must not be empty")
    if "://" not in raw:
        raw = f"https://{raw}"
    return raw


class WatchConfig(BaseModel):
    projects: List[Union[int, str]] = Field(..., min_length=1)
    base_url: str = DEFAULT_URL
    token: str = ""
    json_output: bool = False
    verbose: bool = False
    interval: float = Field(5.0, gt=0)
    retry_delay: float = Field(1.0, gt=0)
    tick: float = Field(1.0, gt=0)

    @field_validator("projects", mode="before")
    @classmethod
    def _parse_projects(cls, value):
        return [parse_project_id(str(v)) for v in value]

    @field_validator("base_url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        return normalize_base_url(value)

    @classmethod
    def from_args(cls, args) -> "WatchConfig":
        try:
            return cls(
                projects=args.projects,
                base_url=args.url,
                token=args.token or "",
                json_output=args.json,
                verbose=args.verbose,
                interval=args.interval,
                retry_delay=args.retry_delay,
                tick=args.tick,
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = first["loc"][0] if first["loc"] else "config"
            raise ConfigError(f"{field}: {first['msg'].removeprefix('Value error, ')}") from e
