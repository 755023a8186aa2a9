"""Conversion formats, encoder pairs and the built-in profile table."""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class OutputFormat(str, Enum):
    """Supported target containers."""
    MP4 = "mp4"
    WEBM = "webm"
    MOV = "mov"


SUPPORTED_FORMATS = tuple(fmt.value for fmt in OutputFormat)


@dataclass(frozen=True)
class EncoderPair:
    """Video/audio encoders used for one container."""
    video_codec: str
    audio_codec: str
    muxer: str
    default_crf: int
    crf_range: tuple[int, int]
    faststart: bool


# H.264/AAC for the MP4 family, VP9/Opus for WebM
FORMAT_ENCODERS = MappingProxyType({
    OutputFormat.MP4: EncoderPair("libx264", "aac", "mp4", 24, (0, 51), True),
    OutputFormat.MOV: EncoderPair("libx264", "aac", "mov", 24, (0, 51), True),
    OutputFormat.WEBM: EncoderPair("libvpx-vp9", "libopus", "webm", 32, (0, 63), False),
})

AUDIO_BITRATE = "128k"
X264_PRESET = "medium"

# Request defaults when no profile is chosen (portrait 9:16)
DEFAULT_WIDTH = 720
DEFAULT_HEIGHT = 1280
DEFAULT_FPS = 24
DEFAULT_FORMAT = OutputFormat.MP4

# Smallest frame accepted after coercion, portrait oriented
MIN_WIDTH = 144
MIN_HEIGHT = 256


@dataclass(frozen=True)
class Profile:
    """Named bundle of default conversion settings."""
    id: str
    label: str
    width: int
    height: int
    crf: int
    format: OutputFormat
    fps: int


DEFAULT_PROFILES: Mapping[str, Profile] = MappingProxyType({
    "statusSaver": Profile("statusSaver", "Status Saver 9:16", 608, 1080, 26, OutputFormat.MP4, 24),
    "storyLite": Profile("storyLite", "Story Lite 9:16", 720, 1280, 24, OutputFormat.MP4, 24),
    "storyFull": Profile("storyFull", "Story Full HD 9:16", 1080, 1920, 23, OutputFormat.MP4, 30),
})


@dataclass(frozen=True)
class ConversionJob:
    """Fully specified transcode job handed to the transcoder."""
    project_id: str
    input_path: str
    output_path: str
    output_name: str
    width: int
    height: int
    crf: int
    format: OutputFormat
    fps: int
    profile_id: Optional[str] = None

    @property
    def encoders(self) -> EncoderPair:
        return FORMAT_ENCODERS[self.format]


class ConversionError(Exception):
    """Base exception for conversion errors."""

    pass


class ConversionValidationError(ConversionError):
    """Raised when a conversion request is incomplete or malformed."""

    pass


class InvalidFormatError(ConversionValidationError):
    """Raised when the target format is not supported."""

    def __init__(self, fmt: str):
        super().__init__(f"Unsupported format: {fmt}")
        self.format = fmt


class ConversionFailedError(ConversionError):
    """Raised when ffmpeg cannot be spawned or exits non-zero.

    ``diagnostics`` holds the tail of ffmpeg's stderr.
    """

    def __init__(self, message: str, returncode: Optional[int] = None, diagnostics: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.diagnostics = diagnostics
