"""Project module: uploads stored as project directories on disk."""

from reelforge.modules.project.models import Project, ProjectMetadata, ProjectOutput
from reelforge.modules.project.store import (
    ProjectStore,
    ProjectStoreError,
    ProjectNotFoundError,
    StorageError,
    SourceTooLargeError,
    sanitize_filename,
    is_video_file,
)
from reelforge.modules.project.service import (
    ProjectService,
    ProjectServiceError,
    InvalidUploadError,
    validate_video_file,
)

__all__ = [
    # Models
    "Project",
    "ProjectMetadata",
    "ProjectOutput",
    # Store
    "ProjectStore",
    "ProjectStoreError",
    "ProjectNotFoundError",
    "StorageError",
    "SourceTooLargeError",
    "sanitize_filename",
    "is_video_file",
    # Service
    "ProjectService",
    "ProjectServiceError",
    "InvalidUploadError",
    "validate_video_file",
]
