"""FFmpeg transcoding utilities.

Runs ffmpeg as a child process for one ``ConversionJob``. The render is
written to a hidden ``.partial-`` sibling and renamed into place only after
ffmpeg exits cleanly, so a failed run never leaves a file that listings
would pick up as an output.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

from reelforge.core.metrics import CONVERSIONS_TOTAL, CONVERSION_DURATION_SECONDS
from reelforge.modules.project.store import PARTIAL_PREFIX
from reelforge.modules.transcoding.models import (
    AUDIO_BITRATE,
    ConversionFailedError,
    ConversionJob,
    X264_PRESET,
)

logger = logging.getLogger(__name__)

DIAGNOSTICS_TAIL_CHARS = 4000


@dataclass
class TranscodeOutput:
    """Result of a successful transcoding run."""
    output_path: str
    file_size: int
    elapsed_seconds: float


def partial_path_for(output_path: str) -> str:
    directory, name = os.path.split(output_path)
    return os.path.join(directory, f"{PARTIAL_PREFIX}{name}")


class FFmpegTranscoder:
    """FFmpeg-based video transcoder."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        timeout: Optional[float] = None,
    ):
        """Initialize transcoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            timeout: Seconds before a run is killed; None waits forever
        """
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    def build_transcode_command(self, job: ConversionJob, output_path: Optional[str] = None) -> list[str]:
        """Build FFmpeg command for a conversion job.

        Scales into the target box keeping the aspect ratio with even
        dimensions, resamples to the target frame rate, picks the encoder
        pair for the container and overwrites any existing output.

        Args:
            job: Conversion job
            output_path: Destination override (the partial path while running)

        Returns:
            FFmpeg command as list of arguments
        """
        encoders = job.encoders
        scale = (
            f"scale={job.width}:{job.height}"
            ":force_original_aspect_ratio=decrease:force_divisible_by=2"
        )
        filters = ",".join([scale, f"fps={job.fps}"])

        cmd = [
            self.ffmpeg_path,
            "-y",  # Overwrite output
            "-i", job.input_path,
            "-vf", filters,
            # Video settings
            "-c:v", encoders.video_codec,
        ]

        if encoders.video_codec == "libvpx-vp9":
            # Constant quality mode needs the bitrate cap removed
            cmd.extend(["-b:v", "0", "-crf", str(job.crf)])
        else:
            cmd.extend(["-crf", str(job.crf), "-preset", X264_PRESET])

        cmd.extend([
            # Audio settings
            "-c:a", encoders.audio_codec,
            "-b:a", AUDIO_BITRATE,
        ])

        if encoders.faststart:
            cmd.extend(["-movflags", "+faststart"])

        cmd.extend(["-f", encoders.muxer, output_path or job.output_path])
        return cmd

    async def transcode(self, job: ConversionJob) -> TranscodeOutput:
        """Run ffmpeg for ``job`` and move the render into place.

        Raises:
            ConversionFailedError: If ffmpeg cannot be started, exits
                non-zero or exceeds the timeout
        """
        os.makedirs(os.path.dirname(job.output_path), exist_ok=True)
        partial_path = partial_path_for(job.output_path)
        cmd = self.build_transcode_command(job, output_path=partial_path)
        fmt = job.format.value

        logger.info(
            "Conversion started",
            extra={
                "project_id": job.project_id,
                "output_name": job.output_name,
                "target": f"{job.width}x{job.height}@{job.fps} crf={job.crf} {fmt}",
            },
        )
        start_time = time.perf_counter()

        try:
            await self._run(cmd)
            os.replace(partial_path, job.output_path)
        except ConversionFailedError as e:
            self._discard_partial(partial_path)
            CONVERSIONS_TOTAL.labels(format=fmt, status="failed").inc()
            logger.error(
                "Conversion failed",
                extra={
                    "project_id": job.project_id,
                    "output_name": job.output_name,
                    "returncode": e.returncode,
                    "error": str(e),
                },
            )
            raise
        except OSError as e:
            self._discard_partial(partial_path)
            CONVERSIONS_TOTAL.labels(format=fmt, status="failed").inc()
            raise ConversionFailedError(f"Could not finalize {job.output_name}: {e}") from e

        elapsed = time.perf_counter() - start_time
        CONVERSIONS_TOTAL.labels(format=fmt, status="completed").inc()
        CONVERSION_DURATION_SECONDS.labels(format=fmt).observe(elapsed)

        file_size = os.path.getsize(job.output_path)
        logger.info(
            "Conversion complete",
            extra={
                "project_id": job.project_id,
                "output_name": job.output_name,
                "file_size": file_size,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )
        return TranscodeOutput(
            output_path=job.output_path,
            file_size=file_size,
            elapsed_seconds=elapsed,
        )

    async def _run(self, cmd: list[str]) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConversionFailedError(f"Could not start ffmpeg: {e}", diagnostics=str(e)) from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ConversionFailedError(
                f"ffmpeg timed out after {self.timeout} seconds",
                returncode=process.returncode,
            )

        if process.returncode != 0:
            diagnostics = (stderr or b"").decode("utf-8", errors="replace")[-DIAGNOSTICS_TAIL_CHARS:]
            raise ConversionFailedError(
                f"ffmpeg exited with code {process.returncode}",
                returncode=process.returncode,
                diagnostics=diagnostics,
            )

    def _discard_partial(self, partial_path: str) -> None:
        try:
            os.remove(partial_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial render {partial_path}: {e}")
