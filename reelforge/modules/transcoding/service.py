"""Service layer for conversions.

Resolves the project, builds the job, runs ffmpeg and reads the new output
back from disk.
"""

import asyncio
import logging
from typing import Mapping, Protocol

from reelforge.core.logging import log_warning
from reelforge.modules.project.models import ProjectOutput
from reelforge.modules.project.store import ProjectStore, ProjectStoreError
from reelforge.modules.transcoding.builder import ConversionRequestBuilder
from reelforge.modules.transcoding.ffmpeg import TranscodeOutput
from reelforge.modules.transcoding.models import (
    ConversionJob,
    ConversionValidationError,
    Profile,
)
from reelforge.modules.transcoding.schemas import ConvertRequest

logger = logging.getLogger(__name__)


class Transcoder(Protocol):
    async def transcode(self, job: ConversionJob) -> TranscodeOutput:
        ...


class ConversionService:
    """Service for converting project sources into new outputs."""

    def __init__(
        self,
        store: ProjectStore,
        builder: ConversionRequestBuilder,
        transcoder: Transcoder,
    ):
        self.store = store
        self.builder = builder
        self.transcoder = transcoder

    @property
    def profiles(self) -> Mapping[str, Profile]:
        return self.builder.profiles

    async def convert(self, request: ConvertRequest) -> ProjectOutput:
        """Convert a project's source with the requested settings.

        Validation happens before ffmpeg is started, so a bad request never
        spawns a process.

        Raises:
            ConversionValidationError: If the project id is missing
            ProjectNotFoundError: If the project does not exist
            InvalidFormatError: If the target format is not supported
            ConversionFailedError: If ffmpeg fails
        """
        if not request.project_id:
            raise ConversionValidationError("projectId is required")

        project = await asyncio.to_thread(
            self.store.get_project, request.project_id, False,
        )
        job = self.builder.build(project, request)

        await self.transcoder.transcode(job)

        output = await asyncio.to_thread(self.store.get_output, project.id, job.output_name)

        try:
            await asyncio.to_thread(self.store.record_output, project.id)
        except ProjectStoreError as e:
            # The render itself is on disk and listed from there.
            log_warning(
                logger,
                f"Could not refresh metadata after conversion: {e}",
                project_id=project.id,
            )

        return output
