"""Project service for upload and listing.

Validates upload batches and turns each accepted file into a project.
"""

import logging
from typing import BinaryIO, Optional, Protocol

from reelforge.core.logging import log_warning
from reelforge.core.metrics import UPLOADS_TOTAL
from reelforge.modules.project.models import Project
from reelforge.modules.project.store import (
    DEFAULT_UPLOAD_NAME,
    ProjectStore,
    SourceTooLargeError,
    is_video_file,
)

logger = logging.getLogger(__name__)


class ProjectServiceError(Exception):
    """Base exception for project service errors."""

    pass


class InvalidUploadError(ProjectServiceError):
    """Raised when an upload batch fails validation."""

    pass


class UploadedFile(Protocol):
    """What the service needs from an upload (FastAPI's UploadFile fits)."""
    filename: Optional[str]
    file: BinaryIO
    size: Optional[int]


def validate_video_file(filename: str, file_size: Optional[int], max_size: int) -> None:
    """Validate one uploaded file before anything is written.

    Args:
        filename: Name supplied by the client
        file_size: Size in bytes when the client declared it
        max_size: Per-file ceiling in bytes

    Raises:
        InvalidUploadError: If file validation fails
    """
    if not is_video_file(filename):
        raise InvalidUploadError("Unsupported file type")

    if file_size is not None and file_size > max_size:
        raise InvalidUploadError(
            f"File {filename!r} exceeds maximum allowed size of {max_size} bytes"
        )


class ProjectService:
    """Service for project upload and listing."""

    def __init__(self, store: ProjectStore, max_file_size: int, max_files: int):
        self.store = store
        self.max_file_size = max_file_size
        self.max_files = max_files

    def validate_batch(self, files: list[UploadedFile]) -> None:
        """Check every file of a batch before any project is created.

        Raises:
            InvalidUploadError: If the batch is empty, too large or contains
                a file with a disallowed type or size
        """
        if not files:
            raise InvalidUploadError("No videos found in upload payload.")
        if len(files) > self.max_files:
            raise InvalidUploadError(f"Too many files: at most {self.max_files} per upload")
        for upload in files:
            validate_video_file(upload.filename or DEFAULT_UPLOAD_NAME, upload.size, self.max_file_size)

    def create_projects(self, files: list[UploadedFile]) -> list[Project]:
        """Create one project per uploaded file.

        The batch is all or nothing: if any file fails, projects already
        created for earlier files of the same batch are removed again.

        Raises:
            InvalidUploadError: If validation fails or a file is too large
            StorageError: If the store cannot write a project
        """
        try:
            self.validate_batch(files)
        except InvalidUploadError:
            UPLOADS_TOTAL.labels(status="rejected").inc()
            raise

        created: list[Project] = []
        try:
            for upload in files:
                created.append(self.store.create_project(
                    upload.filename,
                    upload.file,
                    max_size=self.max_file_size,
                ))
        except SourceTooLargeError as e:
            self._rollback(created)
            UPLOADS_TOTAL.labels(status="rejected").inc()
            raise InvalidUploadError(str(e)) from e
        except Exception:
            self._rollback(created)
            UPLOADS_TOTAL.labels(status="failed").inc()
            raise

        UPLOADS_TOTAL.labels(status="accepted").inc(len(created))
        return created

    def _rollback(self, created: list[Project]) -> None:
        if not created:
            return
        log_warning(
            logger,
            "Rolling back partially stored upload batch",
            project_ids=[p.id for p in created],
        )
        for project in created:
            self.store.discard_project(project.id)

    def list_projects(self) -> list[Project]:
        return self.store.list_projects()

    def get_project(self, project_id: str) -> Project:
        return self.store.get_project(project_id)
