"""Project and output records for the filesystem project store.

Nothing here is an ORM model: a project is a directory, and these
dataclasses are what the store derives from it on every read.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from reelforge.modules.transcoding.schemas import ProbeSummary


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ProjectMetadata:
    """The ``metadata.json`` document stored in each project directory."""
    id: str
    original_name: str
    stored_name: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    def to_document(self) -> dict:
        doc = {
            "id": self.id,
            "originalName": self.original_name,
            "storedName": self.stored_name,
        }
        if self.created_at is not None:
            doc["createdAt"] = format_timestamp(self.created_at)
        if self.updated_at is not None:
            doc["updatedAt"] = format_timestamp(self.updated_at)
        return doc

    @classmethod
    def from_document(cls, doc: dict, project_id: str) -> "ProjectMetadata":
        """Build metadata from a possibly partial document.

        Missing names come back empty and missing timestamps as None;
        callers decide how to recover them.
        """
        created_at = parse_timestamp(doc.get("createdAt"))
        updated_at = parse_timestamp(doc.get("updatedAt"))
        stored_name = doc.get("storedName") if isinstance(doc.get("storedName"), str) else ""
        original_name = doc.get("originalName") if isinstance(doc.get("originalName"), str) else ""
        return cls(
            id=project_id,
            original_name=original_name,
            stored_name=stored_name,
            created_at=created_at or updated_at,
            updated_at=updated_at or created_at,
        )


@dataclass
class ProjectOutput:
    """One rendered file in a project's ``outputs`` directory."""
    filename: str
    path: str
    size: int
    modified_at: datetime
    probe: ProbeSummary
    file_path: str


@dataclass
class Project:
    """An uploaded source video with its render history."""
    id: str
    original_name: str
    stored_name: str
    size: int
    created_at: datetime
    updated_at: datetime
    modified_at: datetime
    path: str
    source_probe: Optional[ProbeSummary]
    outputs: list[ProjectOutput] = field(default_factory=list)
    source_path: str = ""
    project_dir: str = ""

    @property
    def last_activity(self) -> datetime:
        return max(self.modified_at, self.updated_at)
