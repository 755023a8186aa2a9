"""FastAPI dependencies wiring settings to the store, builder and tools.

Each collaborator is built once per process; tests swap them through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Mapping

from fastapi import Depends

from reelforge.core.config import settings
from reelforge.modules.project.service import ProjectService
from reelforge.modules.project.store import ProjectStore
from reelforge.modules.transcoding.builder import ConversionRequestBuilder
from reelforge.modules.transcoding.ffmpeg import FFmpegTranscoder
from reelforge.modules.transcoding.models import DEFAULT_PROFILES, Profile
from reelforge.modules.transcoding.probe import FFprobeProber
from reelforge.modules.transcoding.schemas import load_profiles
from reelforge.modules.transcoding.service import ConversionService, Transcoder


@lru_cache
def get_profiles() -> Mapping[str, Profile]:
    """Profile table, read from ``PROFILES_FILE`` when configured."""
    if settings.PROFILES_FILE:
        return load_profiles(settings.PROFILES_FILE)
    return DEFAULT_PROFILES


@lru_cache
def get_prober() -> FFprobeProber:
    return FFprobeProber(settings.FFPROBE_PATH, timeout=settings.FFPROBE_TIMEOUT_SECONDS)


@lru_cache
def get_project_store() -> ProjectStore:
    return ProjectStore(
        settings.STORAGE_ROOT,
        prober=get_prober(),
        media_url_prefix=settings.MEDIA_URL_PREFIX,
        chunk_size=settings.UPLOAD_CHUNK_SIZE,
    )


@lru_cache
def get_transcoder() -> FFmpegTranscoder:
    return FFmpegTranscoder(settings.FFMPEG_PATH, timeout=settings.FFMPEG_TIMEOUT_SECONDS)


def get_request_builder(
    profiles: Mapping[str, Profile] = Depends(get_profiles),
) -> ConversionRequestBuilder:
    return ConversionRequestBuilder(profiles)


def get_project_service(
    store: ProjectStore = Depends(get_project_store),
) -> ProjectService:
    return ProjectService(
        store,
        max_file_size=settings.MAX_UPLOAD_SIZE,
        max_files=settings.MAX_UPLOAD_FILES,
    )


def get_conversion_service(
    store: ProjectStore = Depends(get_project_store),
    builder: ConversionRequestBuilder = Depends(get_request_builder),
    transcoder: Transcoder = Depends(get_transcoder),
) -> ConversionService:
    return ConversionService(store, builder, transcoder)
