"""Project API router.

Upload, listing and render history endpoints. The handlers are plain
``def`` functions: the store does blocking filesystem and ffprobe work, so
FastAPI runs them in its threadpool.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from reelforge.core.logging import log_error
from reelforge.dependencies import get_project_service
from reelforge.modules.project.schemas import (
    OutputHistoryResponse,
    ProjectListResponse,
    ProjectResponse,
    UploadResponse,
    output_history,
    project_to_response,
)
from reelforge.modules.project.service import InvalidUploadError, ProjectService
from reelforge.modules.project.store import ProjectNotFoundError, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["projects"])


@router.post("/upload", response_model=UploadResponse)
def upload_videos(
    videos: Optional[list[UploadFile]] = File(None),
    service: ProjectService = Depends(get_project_service),
):
    """Upload one or more videos, one project per file."""
    try:
        projects = service.create_projects(videos or [])
    except InvalidUploadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        log_error(logger, "Upload failed", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to receive upload.",
        )

    return UploadResponse(projects=[project_to_response(p) for p in projects])


@router.get("/videos", response_model=ProjectListResponse)
def list_videos(service: ProjectService = Depends(get_project_service)):
    """List every project with its source probe and render history."""
    try:
        projects = service.list_projects()
    except (StorageError, OSError) as e:
        log_error(logger, "Listing projects failed", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list input videos.",
        )
    return ProjectListResponse(videos=[project_to_response(p) for p in projects])


@router.get("/videos/{project_id}", response_model=ProjectResponse)
def get_video(project_id: str, service: ProjectService = Depends(get_project_service)):
    """Get one project by id."""
    try:
        project = service.get_project(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    except StorageError as e:
        log_error(logger, "Reading project failed", e, project_id=project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read project.",
        )
    return project_to_response(project)


@router.get("/output", response_model=OutputHistoryResponse)
def list_outputs(service: ProjectService = Depends(get_project_service)):
    """Flat render history across all projects."""
    try:
        projects = service.list_projects()
    except (StorageError, OSError) as e:
        log_error(logger, "Listing outputs failed", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list output videos.",
        )
    return OutputHistoryResponse(videos=output_history(projects))
