"""Application modules.

- project: Filesystem project store, uploads and listings
- transcoding: Conversion profiles, request building, ffprobe and ffmpeg
"""
