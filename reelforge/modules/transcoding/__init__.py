"""Transcoding module for video conversion.

Builds conversion jobs from profiles and request settings, runs ffmpeg and
summarizes ffprobe reports.
"""
