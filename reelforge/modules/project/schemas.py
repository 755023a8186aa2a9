"""Pydantic schemas for the project API.

Responses never carry filesystem paths, only public media URLs.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from reelforge.modules.project.models import Project, ProjectOutput
from reelforge.modules.transcoding.schemas import OutputResponse, ProbeSummary


class ProjectResponse(BaseModel):
    """Schema for a project with its render history."""
    id: str
    filename: str
    stored_name: str
    size: int
    created_at: datetime
    updated_at: datetime
    modified_at: datetime
    path: str
    probe: Optional[ProbeSummary]
    outputs: list[OutputResponse]


class UploadResponse(BaseModel):
    projects: list[ProjectResponse]


class ProjectListResponse(BaseModel):
    videos: list[ProjectResponse]


class SourceReference(BaseModel):
    filename: str
    path: str


class OutputHistoryEntry(OutputResponse):
    """An output annotated with the project it was rendered from."""
    source: SourceReference


class OutputHistoryResponse(BaseModel):
    videos: list[OutputHistoryEntry]


def output_to_response(output: ProjectOutput, project_id: Optional[str] = None) -> OutputResponse:
    return OutputResponse(
        filename=output.filename,
        path=output.path,
        size=output.size,
        modified_at=output.modified_at,
        probe=output.probe,
        project_id=project_id,
    )


def project_to_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        filename=project.original_name,
        stored_name=project.stored_name,
        size=project.size,
        created_at=project.created_at,
        updated_at=project.updated_at,
        modified_at=project.modified_at,
        path=project.path,
        probe=project.source_probe,
        outputs=[output_to_response(o) for o in project.outputs],
    )


def output_history(projects: list[Project]) -> list[OutputHistoryEntry]:
    """Flatten every project's outputs into one list, newest first."""
    entries = []
    for project in projects:
        source = SourceReference(filename=project.original_name, path=project.path)
        for output in project.outputs:
            entries.append(OutputHistoryEntry(
                filename=output.filename,
                path=output.path,
                size=output.size,
                modified_at=output.modified_at,
                probe=output.probe,
                project_id=project.id,
                source=source,
            ))
    entries.sort(key=lambda e: (e.modified_at, e.filename), reverse=True)
    return entries
