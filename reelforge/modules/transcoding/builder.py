"""Conversion request builder.

Turns a client's requested settings, plus an optional named profile, into a
fully specified ``ConversionJob``. Building is pure: nothing touches the
filesystem and no process is started.

Precedence when a profile is chosen:

* ``format`` and ``fps`` from the request win over the profile.
* ``width``, ``height`` and ``crf`` always come from the profile.

Without a profile every field comes from the request, with defaults.
"""

import logging
import math
import os
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from reelforge.modules.project.models import Project
from reelforge.modules.project.store import OUTPUTS_DIRNAME, PLACEHOLDER_BASE
from reelforge.modules.transcoding.models import (
    ConversionJob,
    ConversionValidationError,
    DEFAULT_FORMAT,
    DEFAULT_FPS,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    FORMAT_ENCODERS,
    InvalidFormatError,
    MIN_HEIGHT,
    MIN_WIDTH,
    OutputFormat,
    Profile,
    SUPPORTED_FORMATS,
)
from reelforge.modules.transcoding.schemas import ConvertRequest

logger = logging.getLogger(__name__)

_UNSAFE_RUN = re.compile(r"[^a-zA-Z0-9_-]+")


def _to_number(value: Any) -> Optional[float]:
    """Loose numeric conversion; None for anything non-finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def coerce_even_dimension(value: Any, default: int, floor: int) -> int:
    """Coerce a frame dimension to an even integer no smaller than ``floor``.

    Missing, zero, negative and non-finite values use ``default``. Odd values
    round down to the next even number.
    """
    number = _to_number(value)
    if number is None or number <= 0:
        number = default
    even = int(number // 2) * 2
    floor = floor + (floor % 2)
    return max(floor, even)


def resolve_fps(requested: Any, fallback: Optional[int] = None) -> int:
    """Requested frame rate when positive, else ``fallback``, else 24."""
    number = _to_number(requested)
    if number is not None and int(number) > 0:
        return int(number)
    if fallback is not None and fallback > 0:
        return fallback
    return DEFAULT_FPS


def resolve_crf(requested: Any, fmt: OutputFormat) -> int:
    """Requested CRF clamped to the encoder's range, else its default."""
    encoders = FORMAT_ENCODERS[fmt]
    number = _to_number(requested)
    if number is None:
        return encoders.default_crf
    low, high = encoders.crf_range
    return min(high, max(low, int(round(number))))


def resolve_format(requested: Optional[str], profile: Optional[Profile] = None) -> OutputFormat:
    """Pick the target format, request first.

    Raises:
        InvalidFormatError: If the result is not a supported format
    """
    raw = (requested or "").strip()
    if not raw and profile is not None:
        raw = profile.format.value
    raw = (raw or DEFAULT_FORMAT.value).lower()
    if raw not in SUPPORTED_FORMATS:
        raise InvalidFormatError(raw)
    return OutputFormat(raw)


def format_output_timestamp(now: datetime) -> str:
    """Sortable ISO-like stamp with ``:`` and ``.`` replaced by ``-``.

    ``2026-10-18T04:23:00.123Z`` becomes ``2026-10-18T04-23-00-123Z``.
    """
    now = now.astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def build_output_filename(
    stored_name: str,
    fmt: OutputFormat,
    now: datetime,
    token: str = "",
) -> str:
    """Name a render ``<source-base>-<format>-<timestamp>[-<token>].<ext>``."""
    base = os.path.splitext(stored_name)[0]
    base = _UNSAFE_RUN.sub("-", base).strip("-") or PLACEHOLDER_BASE
    stamp = format_output_timestamp(now)
    suffix = f"-{token}" if token else ""
    return f"{base}-{fmt.value}-{stamp}{suffix}.{fmt.value}"


def _random_token() -> str:
    return secrets.token_hex(2)


class ConversionRequestBuilder:
    """Builds validated conversion jobs against an injected profile table."""

    def __init__(
        self,
        profiles: Mapping[str, Profile],
        token_factory: Callable[[], str] = _random_token,
    ):
        """Initialize builder.

        Args:
            profiles: Profile table, loaded once at startup
            token_factory: Source of the short suffix that keeps renders
                started in the same millisecond apart
        """
        self.profiles = profiles
        self.token_factory = token_factory

    def resolve_profile(self, profile_id: Optional[str]) -> Optional[Profile]:
        if not profile_id:
            return None
        profile = self.profiles.get(profile_id)
        if profile is None:
            logger.warning(f"Unknown profile {profile_id!r}, using request settings")
        return profile

    def build(
        self,
        project: Project,
        request: ConvertRequest,
        now: Optional[datetime] = None,
    ) -> ConversionJob:
        """Build the job for converting ``project`` with ``request``.

        Args:
            project: Project whose source is converted
            request: Client settings
            now: Timestamp used in the output name (defaults to now)

        Returns:
            ConversionJob with every field resolved

        Raises:
            ConversionValidationError: If the project id is missing
            InvalidFormatError: If the target format is not supported
        """
        if not request.project_id:
            raise ConversionValidationError("projectId is required")

        profile = self.resolve_profile(request.profile_id)
        fmt = resolve_format(request.format, profile)
        fps = resolve_fps(request.fps, profile.fps if profile else None)

        if profile is not None:
            width = coerce_even_dimension(profile.width, DEFAULT_WIDTH, MIN_WIDTH)
            height = coerce_even_dimension(profile.height, DEFAULT_HEIGHT, MIN_HEIGHT)
            crf = resolve_crf(profile.crf, fmt)
        else:
            width = coerce_even_dimension(request.width, DEFAULT_WIDTH, MIN_WIDTH)
            height = coerce_even_dimension(request.height, DEFAULT_HEIGHT, MIN_HEIGHT)
            crf = resolve_crf(request.crf, fmt)

        output_name = build_output_filename(
            project.stored_name,
            fmt,
            now or datetime.now(timezone.utc),
            self.token_factory(),
        )
        output_path = os.path.join(project.project_dir, OUTPUTS_DIRNAME, output_name)

        return ConversionJob(
            project_id=project.id,
            input_path=project.source_path,
            output_path=output_path,
            output_name=output_name,
            width=width,
            height=height,
            crf=crf,
            format=fmt,
            fps=fps,
            profile_id=profile.id if profile else None,
        )
