"""FFprobe adapter.

Runs ffprobe on a media file and normalizes its JSON report into a
``ProbeSummary``. Probing is diagnostic only: any failure yields ``None``
and is logged, never raised.
"""

import json
import logging
import math
import subprocess
from typing import Any, Callable, Optional

from reelforge.core.metrics import PROBE_FAILURES_TOTAL
from reelforge.modules.transcoding.schemas import ProbeSummary, UNKNOWN

logger = logging.getLogger(__name__)

Prober = Callable[[str], Optional[ProbeSummary]]

PROBE_ENTRIES = (
    "format=duration,size,bit_rate"
    ":stream=index,codec_type,codec_name,width,height,bit_rate,r_frame_rate"
)


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None


def _positive_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def _parse_frame_rate(value: Any) -> Optional[float]:
    """Parse ffprobe rationals such as ``30000/1001``."""
    if not isinstance(value, str):
        return _positive_float(value)
    numerator, _, denominator = value.partition("/")
    num = _positive_float(numerator)
    if num is None:
        return None
    if not denominator:
        return round(num, 3)
    den = _positive_float(denominator)
    if den is None:
        return None
    return round(num / den, 3)


def select_stream(streams: list[dict]) -> tuple[Optional[dict], bool]:
    """Pick the stream a summary describes.

    The first stream with both a width and a height is the video stream.
    Without one, the first stream overall is used for codec and bitrate.

    Returns:
        Tuple of (stream or None, whether it is a video stream)
    """
    for stream in streams:
        if _positive_int(stream.get("width")) and _positive_int(stream.get("height")):
            return stream, True
    if streams:
        return streams[0], False
    return None, False


def summarize_probe(info: dict) -> ProbeSummary:
    """Normalize a raw ffprobe JSON document.

    Args:
        info: Parsed ``ffprobe -of json`` output

    Returns:
        ProbeSummary with unmeasured fields set to "unknown"
    """
    fmt = info.get("format") or {}
    streams = [s for s in (info.get("streams") or []) if isinstance(s, dict)]
    stream, is_video = select_stream(streams)
    stream = stream or {}

    resolution = UNKNOWN
    if is_video:
        resolution = f"{_positive_int(stream['width'])}x{_positive_int(stream['height'])}"

    duration = _positive_float(fmt.get("duration")) or _positive_float(stream.get("duration"))
    bitrate = _positive_int(stream.get("bit_rate")) or _positive_int(fmt.get("bit_rate"))
    frame_rate = _parse_frame_rate(stream.get("r_frame_rate")) if is_video else None

    return ProbeSummary(
        resolution=resolution,
        duration_seconds=duration if duration is not None else UNKNOWN,
        codec_name=stream.get("codec_name") or UNKNOWN,
        bitrate_bps=bitrate if bitrate is not None else UNKNOWN,
        frame_rate=frame_rate if frame_rate is not None else UNKNOWN,
    )


class FFprobeProber:
    """Callable prober backed by the ffprobe binary."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: Optional[float] = 30.0):
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def build_command(self, path: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", PROBE_ENTRIES,
            "-of", "json",
            path,
        ]

    def get_video_info(self, path: str) -> Optional[dict]:
        """Run ffprobe and return its parsed JSON report, or None on failure."""
        cmd = self.build_command(path)

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=self.timeout,
            )
            info = json.loads(result.stdout)
        except subprocess.CalledProcessError as e:
            self._record_failure(path, (e.stderr or "").strip() or f"exit code {e.returncode}")
            return None
        except (OSError, subprocess.TimeoutExpired, json.JSONDecodeError) as e:
            self._record_failure(path, str(e))
            return None

        if not isinstance(info, dict):
            self._record_failure(path, "unexpected probe output")
            return None
        return info

    def __call__(self, path: str) -> Optional[ProbeSummary]:
        info = self.get_video_info(path)
        if info is None:
            return None
        return summarize_probe(info)

    def _record_failure(self, path: str, reason: str) -> None:
        PROBE_FAILURES_TOTAL.inc()
        logger.warning(f"ffprobe failed for {path}: {reason}")
