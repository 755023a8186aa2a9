"""Filesystem project store.

Each upload becomes one directory under the store root::

    <root>/<project-id>/<stored-name>        source video
    <root>/<project-id>/metadata.json        ProjectMetadata document
    <root>/<project-id>/outputs/<render>     rendered files

The directory tree is the only index. Listings scan, stat and filter on
every call, so they always agree with what is on disk.
"""

import json
import logging
import os
import re
import shutil
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

from reelforge.modules.project.models import (
    Project,
    ProjectMetadata,
    ProjectOutput,
    utcnow,
)
from reelforge.modules.transcoding.probe import Prober
from reelforge.modules.transcoding.schemas import ProbeSummary

logger = logging.getLogger(__name__)

PROJECT_PREFIX = "dir-video-"
METADATA_FILENAME = "metadata.json"
OUTPUTS_DIRNAME = "outputs"
PARTIAL_PREFIX = ".partial-"
PLACEHOLDER_BASE = "clip"
DEFAULT_UPLOAD_NAME = "video.mp4"
DEFAULT_EXTENSION = ".mp4"

VIDEO_EXTENSIONS = (".mp4", ".mov", ".m4v", ".webm", ".mkv")

PROJECT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_UNSAFE_RUN = re.compile(r"[^a-zA-Z0-9_-]+")
_HYPHEN_RUN = re.compile(r"-+")
_UNSAFE_EXT_CHARS = re.compile(r"[^a-z0-9]+")

DEFAULT_CHUNK_SIZE = 1024 * 1024


class ProjectStoreError(Exception):
    """Base exception for project store errors."""

    pass


class ProjectNotFoundError(ProjectStoreError):
    """Raised when a project id is unknown or its source file is missing."""

    pass


class StorageError(ProjectStoreError):
    """Raised when a filesystem operation fails."""

    pass


class SourceTooLargeError(ProjectStoreError):
    """Raised when an uploaded source exceeds the size ceiling."""

    def __init__(self, filename: str, limit: int):
        super().__init__(f"File {filename!r} exceeds maximum allowed size of {limit} bytes")
        self.filename = filename
        self.limit = limit


def sanitize_filename(name: Optional[str]) -> str:
    """Turn an arbitrary user filename into a filesystem-safe one.

    Keeps the extension lower-cased (``.mp4`` when there is none), replaces
    every run of characters outside ``[a-zA-Z0-9_-]`` with one hyphen, trims
    hyphens from both ends and falls back to ``clip`` for an empty base.
    Applying it to its own output returns the same name.
    """
    trimmed = (name or "").strip() or "video"
    base, ext = os.path.splitext(trimmed)
    ext = _UNSAFE_EXT_CHARS.sub("", ext.lower())
    ext = f".{ext}" if ext else DEFAULT_EXTENSION

    safe_base = _UNSAFE_RUN.sub("-", base)
    safe_base = _HYPHEN_RUN.sub("-", safe_base).strip("-") or PLACEHOLDER_BASE
    return f"{safe_base}{ext}"


def is_video_file(name: str) -> bool:
    return name.lower().endswith(VIDEO_EXTENSIONS)


def new_project_id() -> str:
    return f"{PROJECT_PREFIX}{uuid.uuid4()}"


def _mtime(stat_result: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)


def _atomic_write_json(path: Path, payload: dict) -> None:
    fd, tmp_path = tempfile.mkstemp(prefix=".metadata-", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class ProjectStore:
    """Durable mapping from project id to source, metadata and outputs.

    Reads never mutate the tree beyond recreating missing directories.
    """

    def __init__(
        self,
        root: Union[str, Path],
        prober: Optional[Prober] = None,
        media_url_prefix: str = "/media/input",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize the store.

        Args:
            root: Directory holding one sub-directory per project
            prober: Callable returning a ProbeSummary (or None) for a file
            media_url_prefix: Public URL prefix the root is served under
            chunk_size: Read size used when copying uploads to disk
        """
        self.root = Path(root)
        self.prober = prober
        self.media_url_prefix = media_url_prefix.rstrip("/")
        self.chunk_size = chunk_size

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def project_dir(self, project_id: str) -> Path:
        """Resolve a project directory, rejecting ids that are not plain names."""
        if not project_id or not PROJECT_ID_PATTERN.match(project_id):
            raise ProjectNotFoundError(f"Project {project_id!r} not found")
        return self.root / project_id

    def outputs_dir(self, project_id: str) -> Path:
        return self.project_dir(project_id) / OUTPUTS_DIRNAME

    def public_path(self, project_id: str, *parts: str) -> str:
        segments = [quote(project_id, safe="")] + [quote(p, safe="") for p in parts]
        return "/".join([self.media_url_prefix] + segments)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_project(
        self,
        original_name: Optional[str],
        source: BinaryIO,
        max_size: Optional[int] = None,
    ) -> Project:
        """Store an uploaded file as a new project.

        Allocates an id, creates the project and outputs directories, copies
        the sanitized source file, then writes the initial metadata document.
        If the copy fails the partial directory is removed. A failed metadata
        write only degrades the project: later reads find the source by
        scanning the directory.

        Args:
            original_name: Filename supplied by the client
            source: Readable binary stream with the upload contents
            max_size: Optional size ceiling in bytes

        Returns:
            The created Project

        Raises:
            SourceTooLargeError: If the stream exceeds max_size
            StorageError: If a directory or file cannot be written
        """
        original_name = original_name or DEFAULT_UPLOAD_NAME
        stored_name = sanitize_filename(original_name)
        project_id = new_project_id()
        project_dir = self.root / project_id

        try:
            (project_dir / OUTPUTS_DIRNAME).mkdir(parents=True)
        except OSError as e:
            raise StorageError(f"Could not create project directory for {original_name!r}: {e}") from e

        try:
            self._copy_source(source, project_dir / stored_name, original_name, max_size)
        except SourceTooLargeError:
            shutil.rmtree(project_dir, ignore_errors=True)
            raise
        except OSError as e:
            shutil.rmtree(project_dir, ignore_errors=True)
            raise StorageError(f"Could not store upload {original_name!r}: {e}") from e

        now = utcnow()
        metadata = ProjectMetadata(
            id=project_id,
            original_name=original_name,
            stored_name=stored_name,
            created_at=now,
            updated_at=now,
        )
        try:
            _atomic_write_json(project_dir / METADATA_FILENAME, metadata.to_document())
        except OSError as e:
            # The source is on disk; reads recover it by scanning the directory.
            logger.warning(f"Could not write metadata for project {project_id}: {e}")

        logger.info(
            "Project created",
            extra={"project_id": project_id, "stored_name": stored_name, "original_name": original_name},
        )
        return self.get_project(project_id)

    def _copy_source(
        self,
        source: BinaryIO,
        destination: Path,
        original_name: str,
        max_size: Optional[int],
    ) -> int:
        written = 0
        with open(destination, "xb") as f:
            while True:
                chunk = source.read(self.chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                if max_size is not None and written > max_size:
                    raise SourceTooLargeError(original_name, max_size)
                f.write(chunk)
        return written

    def discard_project(self, project_id: str) -> None:
        """Remove a project directory and everything in it.

        Only used to roll back a failed batch upload; there is no public
        delete operation.
        """
        shutil.rmtree(self.project_dir(project_id), ignore_errors=True)
        logger.info("Project discarded", extra={"project_id": project_id})

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def read_metadata(self, project_id: str) -> Optional[ProjectMetadata]:
        """Read the metadata document, or None if it is missing or corrupt."""
        path = self.project_dir(project_id) / METADATA_FILENAME
        try:
            with open(path, encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError):
            return None
        if not isinstance(doc, dict):
            return None
        return ProjectMetadata.from_document(doc, project_id)

    def find_source_filename(self, project_id: str) -> Optional[str]:
        """Scan a project directory for a plausible source video."""
        project_dir = self.project_dir(project_id)
        try:
            entries = sorted(os.scandir(project_dir), key=lambda e: e.name)
        except FileNotFoundError:
            return None
        except NotADirectoryError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read project {project_id}: {e}") from e

        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_file() and is_video_file(entry.name):
                return entry.name
        return None

    def record_output(self, project_id: str) -> ProjectMetadata:
        """Refresh ``updatedAt`` after a successful conversion.

        A missing or corrupt document is rebuilt from what the directory
        still shows.

        Raises:
            ProjectNotFoundError: If no source file can be found
            StorageError: If the document cannot be written
        """
        project_dir = self.project_dir(project_id)
        metadata = self.read_metadata(project_id)
        now = utcnow()

        if metadata is None or not metadata.stored_name:
            stored_name = self.find_source_filename(project_id)
            if stored_name is None:
                raise ProjectNotFoundError(f"Project {project_id!r} not found")
            if metadata is None:
                metadata = ProjectMetadata(
                    id=project_id,
                    original_name=stored_name,
                    stored_name=stored_name,
                    created_at=now,
                    updated_at=now,
                )
            metadata.stored_name = stored_name
            metadata.original_name = metadata.original_name or stored_name

        if metadata.created_at is None:
            # Undated document: the source file's ctime is the best creation time
            try:
                stats = (project_dir / metadata.stored_name).stat()
            except OSError as e:
                raise ProjectNotFoundError(f"Project {project_id!r} not found") from e
            metadata.created_at = datetime.fromtimestamp(stats.st_ctime, tz=timezone.utc)
        metadata.updated_at = now
        try:
            _atomic_write_json(project_dir / METADATA_FILENAME, metadata.to_document())
        except OSError as e:
            raise StorageError(f"Could not update metadata for {project_id}: {e}") from e
        return metadata

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_project(self, project_id: str, include_details: bool = True) -> Project:
        """Load a project with its source probe and output history.

        With ``include_details=False`` the probe and output scan are skipped;
        the source file is still required to exist.

        Raises:
            ProjectNotFoundError: If the id is unknown or the source file is
                missing, even when the directory still exists
            StorageError: If the project directory cannot be read
        """
        project_dir = self.project_dir(project_id)
        metadata = self.read_metadata(project_id)

        stored_name = metadata.stored_name if metadata else ""
        if not stored_name:
            stored_name = self.find_source_filename(project_id)
            if stored_name is None:
                raise ProjectNotFoundError(f"Project {project_id!r} not found")
            if project_dir.is_dir():
                logger.info(
                    "Recovered project source without metadata",
                    extra={"project_id": project_id, "stored_name": stored_name},
                )

        source_path = project_dir / stored_name
        try:
            stats = source_path.stat()
        except OSError as e:
            logger.warning(f"Missing source for project {project_id}: {e}")
            raise ProjectNotFoundError(f"Project {project_id!r} not found") from e

        modified_at = _mtime(stats)
        created_at = (metadata.created_at if metadata else None) or datetime.fromtimestamp(
            stats.st_ctime, tz=timezone.utc
        )
        updated_at = (metadata.updated_at if metadata else None) or created_at

        return Project(
            id=project_id,
            original_name=(metadata.original_name if metadata else "") or stored_name,
            stored_name=stored_name,
            size=stats.st_size,
            created_at=created_at,
            updated_at=updated_at,
            modified_at=modified_at,
            path=self.public_path(project_id, stored_name),
            source_probe=self._probe(str(source_path)) if include_details else None,
            outputs=self.list_project_outputs(project_id) if include_details else [],
            source_path=str(source_path),
            project_dir=str(project_dir),
        )

    def list_projects(self) -> list[Project]:
        """Return every valid project, most recently active first.

        Directories without a source file are skipped silently; directories
        that cannot be read are skipped with a warning.
        """
        self.ensure_root()
        projects = []
        for entry in sorted(os.scandir(self.root), key=lambda e: e.name):
            if not entry.is_dir() or not PROJECT_ID_PATTERN.match(entry.name):
                continue
            try:
                projects.append(self.get_project(entry.name))
            except ProjectNotFoundError:
                continue
            except ProjectStoreError as e:
                logger.warning(f"Skipping unreadable project {entry.name}: {e}")
                continue

        projects.sort(key=lambda p: (p.last_activity, p.id), reverse=True)
        return projects

    def list_project_outputs(self, project_id: str) -> list[ProjectOutput]:
        """Scan the outputs directory, newest first.

        Hidden files, including in-progress ``.partial-`` renders, are not
        outputs. Files that vanish between listing and stat are skipped.
        """
        outputs_dir = self.outputs_dir(project_id)
        try:
            names = os.listdir(outputs_dir)
        except FileNotFoundError:
            outputs_dir.mkdir(parents=True, exist_ok=True)
            return []
        except OSError as e:
            raise StorageError(f"Could not read outputs of {project_id}: {e}") from e

        outputs = []
        for name in names:
            output = self._load_output(project_id, outputs_dir, name)
            if output is not None:
                outputs.append(output)

        outputs.sort(key=lambda o: (o.modified_at, o.filename), reverse=True)
        return outputs

    def get_output(self, project_id: str, filename: str) -> ProjectOutput:
        """Load one output by filename.

        Raises:
            ProjectNotFoundError: If the file does not exist
        """
        output = self._load_output(project_id, self.outputs_dir(project_id), filename)
        if output is None:
            raise ProjectNotFoundError(f"Output {filename!r} not found in project {project_id!r}")
        return output

    def _load_output(self, project_id: str, outputs_dir: Path, name: str) -> Optional[ProjectOutput]:
        if name.startswith(".") or "/" in name or not is_video_file(name):
            return None
        full_path = outputs_dir / name
        try:
            stats = full_path.stat()
        except OSError:
            return None
        if not full_path.is_file():
            return None
        return ProjectOutput(
            filename=name,
            path=self.public_path(project_id, OUTPUTS_DIRNAME, name),
            size=stats.st_size,
            modified_at=_mtime(stats),
            probe=self._probe(str(full_path)) or ProbeSummary.unavailable(),
            file_path=str(full_path),
        )

    def _probe(self, path: str) -> Optional[ProbeSummary]:
        if self.prober is None:
            return None
        return self.prober(path)
