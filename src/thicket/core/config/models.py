"""
Configuration data models for thicket.

ThicketConfig is the content of .thicket/config.json. ThicketPaths holds the
resolved file locations for one project and is what Store.open() consumes.
"""

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from thicket.core.tickets.models import validate_project_code

DATA_DIR_NAME = ".thicket"
CONFIG_FILE = "config.json"
TICKETS_FILE = "tickets.jsonl"
CACHE_FILE = "cache.db"


class ThicketConfig(BaseModel):
    """
    Project configuration stored in .thicket/config.json.

    Unknown keys written by newer versions are kept on save.
    """

    model_config = ConfigDict(extra="allow")

    project_code: str = Field(
        ...,
        description="Two uppercase letters prefixed to every ticket ID (e.g. 'TH')",
    )

    @field_validator("project_code")
    @classmethod
    def check_project_code(cls, v: str) -> str:
        return validate_project_code(v)


@dataclass(frozen=True)
class ThicketPaths:
    """Resolved locations of a project's thicket files."""

    root: Path
    data_dir: Path

    @property
    def config(self) -> Path:
        return self.data_dir / CONFIG_FILE

    @property
    def tickets(self) -> Path:
        return self.data_dir / TICKETS_FILE

    @property
    def cache(self) -> Path:
        return self.data_dir / CACHE_FILE

    @property
    def gitignore(self) -> Path:
        return self.data_dir / ".gitignore"
