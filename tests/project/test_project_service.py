"""Tests for upload batch validation and rollback in ProjectService."""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

import pytest
from hypothesis import given, settings, strategies as st

from reelforge.modules.project.service import (
    InvalidUploadError,
    ProjectService,
    validate_video_file,
)
from reelforge.modules.project.store import ProjectStore, VIDEO_EXTENSIONS


MAX_SIZE = 1024


@dataclass
class FakeUpload:
    filename: Optional[str]
    file: BinaryIO
    size: Optional[int] = None


def make_upload(name: Optional[str], data: bytes = b"video", declare_size: bool = False) -> FakeUpload:
    return FakeUpload(filename=name, file=io.BytesIO(data), size=len(data) if declare_size else None)


@pytest.fixture
def store(tmp_path: Path) -> ProjectStore:
    return ProjectStore(tmp_path / "input", prober=lambda path: None)


@pytest.fixture
def service(store: ProjectStore) -> ProjectService:
    return ProjectService(store, max_file_size=MAX_SIZE, max_files=3)


class TestValidateVideoFile:
    """Property tests for per-file upload validation."""

    @given(
        base=st.text(min_size=1, max_size=20, alphabet="abcdefghij-_ "),
        ext=st.sampled_from(VIDEO_EXTENSIONS),
        upper=st.booleans(),
    )
    @settings(max_examples=100)
    def test_video_extensions_are_accepted(self, base: str, ext: str, upper: bool) -> None:
        """**Feature: reelforge, Property 2: Upload Type Filter**

        Any name ending in a video extension, in any case, passes.
        """
        validate_video_file(base + (ext.upper() if upper else ext), None, MAX_SIZE)

    @pytest.mark.parametrize("name", ["notes.txt", "image.png", "archive.mp4.zip", "noext", "clip.avi"])
    def test_other_extensions_are_rejected(self, name: str) -> None:
        with pytest.raises(InvalidUploadError, match="Unsupported file type"):
            validate_video_file(name, None, MAX_SIZE)

    @pytest.mark.parametrize("name", [".mp4", ".MOV", ".webm"])
    def test_bare_extension_name_is_accepted(self, name: str) -> None:
        validate_video_file(name, None, MAX_SIZE)

    def test_declared_size_over_limit_is_rejected(self) -> None:
        with pytest.raises(InvalidUploadError, match="exceeds maximum allowed size"):
            validate_video_file("clip.mp4", MAX_SIZE + 1, MAX_SIZE)

    def test_declared_size_at_limit_is_accepted(self) -> None:
        validate_video_file("clip.mp4", MAX_SIZE, MAX_SIZE)


class TestCreateProjects:
    """Tests for ProjectService.create_projects."""

    def test_one_project_per_file(self, service: ProjectService, store: ProjectStore) -> None:
        projects = service.create_projects([make_upload("a.mp4"), make_upload("b.webm")])

        assert [p.stored_name for p in projects] == ["a.mp4", "b.webm"]
        assert len({p.id for p in projects}) == 2
        assert len(store.list_projects()) == 2

    def test_empty_batch_is_rejected(self, service: ProjectService) -> None:
        with pytest.raises(InvalidUploadError, match="No videos found in upload payload."):
            service.create_projects([])

    def test_too_many_files_are_rejected(self, service: ProjectService, store: ProjectStore) -> None:
        uploads = [make_upload(f"clip{i}.mp4") for i in range(4)]

        with pytest.raises(InvalidUploadError, match="Too many files"):
            service.create_projects(uploads)

        assert store.list_projects() == []

    def test_bad_extension_rejects_whole_batch_before_writing(
        self, service: ProjectService, store: ProjectStore
    ) -> None:
        with pytest.raises(InvalidUploadError, match="Unsupported file type"):
            service.create_projects([make_upload("good.mp4"), make_upload("bad.txt")])

        assert store.list_projects() == []

    def test_missing_filename_is_stored_as_video_mp4(self, service: ProjectService) -> None:
        projects = service.create_projects([make_upload(None)])

        assert projects[0].stored_name == "video.mp4"

    def test_bare_extension_name_is_stored(self, service: ProjectService, store: ProjectStore) -> None:
        projects = service.create_projects([make_upload(".mp4")])

        assert projects[0].stored_name == "mp4.mp4"
        assert [p.id for p in store.list_projects()] == [projects[0].id]

    def test_oversized_stream_rolls_back_earlier_files(
        self, service: ProjectService, store: ProjectStore
    ) -> None:
        uploads = [make_upload("first.mp4"), make_upload("second.mp4", data=b"x" * (MAX_SIZE + 1))]

        with pytest.raises(InvalidUploadError, match="exceeds maximum allowed size"):
            service.create_projects(uploads)

        assert list(store.root.iterdir()) == []
