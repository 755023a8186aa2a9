"""Pydantic schemas for conversion requests, profiles and probe summaries."""

import json
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from reelforge.modules.transcoding.models import OutputFormat, Profile

UNKNOWN = "unknown"

Unknown = Literal["unknown"]


class ProbeSummary(BaseModel):
    """Normalized subset of an ffprobe report.

    Fields the probe could not measure hold the literal ``"unknown"``
    rather than zero.
    """
    resolution: str = UNKNOWN
    duration_seconds: Union[float, Unknown] = UNKNOWN
    codec_name: str = UNKNOWN
    bitrate_bps: Union[int, Unknown] = UNKNOWN
    frame_rate: Union[float, Unknown] = UNKNOWN

    @classmethod
    def unavailable(cls) -> "ProbeSummary":
        """Summary used when the probe produced nothing."""
        return cls()


class ConvertRequest(BaseModel):
    """Body of ``POST /api/convert``.

    Numeric fields are loosely typed on purpose; the request builder coerces
    them, so zero, negative or non-finite values fall back to defaults.
    """
    model_config = ConfigDict(populate_by_name=True)

    project_id: Optional[str] = Field(None, alias="projectId")
    width: Optional[float] = None
    height: Optional[float] = None
    crf: Optional[float] = None
    format: Optional[str] = None
    fps: Optional[float] = None
    profile_id: Optional[str] = Field(None, alias="profileId")


class ProfileResponse(BaseModel):
    """One named preset as returned by ``GET /api/profiles``."""
    id: str
    label: str
    width: int
    height: int
    crf: int
    format: OutputFormat
    fps: int


class ProfileConfig(BaseModel):
    """Profile entry in a ``PROFILES_FILE`` document."""
    label: str
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    crf: int = Field(..., ge=0, le=63)
    format: OutputFormat
    fps: int = Field(..., gt=0)


class OutputResponse(BaseModel):
    """A rendered output of a project."""
    filename: str
    path: str
    size: int
    modified_at: datetime
    probe: ProbeSummary
    project_id: Optional[str] = None


class ConvertResponse(BaseModel):
    message: str = "Conversion complete"
    output: OutputResponse


def profile_to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        label=profile.label,
        width=profile.width,
        height=profile.height,
        crf=profile.crf,
        format=profile.format,
        fps=profile.fps,
    )


_PROFILE_TABLE = TypeAdapter(dict[str, ProfileConfig])


def load_profiles(path: Union[str, Path]) -> Mapping[str, Profile]:
    """Load a profile table from a JSON file.

    The document maps profile ids to ``ProfileConfig`` objects and keeps
    declaration order.

    Args:
        path: Path to the JSON document

    Returns:
        Read-only mapping of profile id to Profile

    Raises:
        OSError: If the file cannot be read
        pydantic.ValidationError: If an entry is malformed
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    table = _PROFILE_TABLE.validate_python(raw)
    return MappingProxyType({
        profile_id: Profile(
            id=profile_id,
            label=entry.label,
            width=entry.width,
            height=entry.height,
            crf=entry.crf,
            format=entry.format,
            fps=entry.fps,
        )
        for profile_id, entry in table.items()
    })
