"""Reelforge video converter.

Keeps each uploaded video as a project directory on disk and renders
resized, re-encoded copies of it with ffmpeg.

Modules:
    - core: Configuration, logging, metrics and middleware
    - modules.project: Filesystem project store, uploads and listings
    - modules.transcoding: Profiles, request building, ffprobe and ffmpeg
"""

__version__ = "0.1.0"
