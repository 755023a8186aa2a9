"""Tests for the built-in profile table and PROFILES_FILE loading."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from reelforge.modules.transcoding.models import DEFAULT_PROFILES, OutputFormat
from reelforge.modules.transcoding.schemas import load_profiles, profile_to_response


class TestDefaultProfiles:
    def test_built_in_profiles(self) -> None:
        assert list(DEFAULT_PROFILES) == ["statusSaver", "storyLite", "storyFull"]
        assert DEFAULT_PROFILES["statusSaver"].width == 608
        assert DEFAULT_PROFILES["storyLite"].crf == 24
        assert DEFAULT_PROFILES["storyFull"].fps == 30

    def test_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_PROFILES["custom"] = DEFAULT_PROFILES["storyLite"]

    def test_response_carries_every_field(self) -> None:
        response = profile_to_response(DEFAULT_PROFILES["storyLite"])

        assert response.model_dump(mode="json") == {
            "id": "storyLite",
            "label": "Story Lite 9:16",
            "width": 720,
            "height": 1280,
            "crf": 24,
            "format": "mp4",
            "fps": 24,
        }


class TestLoadProfiles:
    def test_loads_entries_in_file_order(self, tmp_path: Path) -> None:
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({
            "square": {"label": "Square", "width": 1080, "height": 1080, "crf": 28, "format": "webm", "fps": 25},
            "tiny": {"label": "Tiny", "width": 240, "height": 426, "crf": 30, "format": "mp4", "fps": 15},
        }))

        profiles = load_profiles(path)

        assert list(profiles) == ["square", "tiny"]
        assert profiles["square"].id == "square"
        assert profiles["square"].format == OutputFormat.WEBM

    @pytest.mark.parametrize(
        "entry",
        [
            {"label": "Bad", "width": 0, "height": 1280, "crf": 24, "format": "mp4", "fps": 24},
            {"label": "Bad", "width": 720, "height": 1280, "crf": 24, "format": "avi", "fps": 24},
            {"label": "Bad", "width": 720, "height": 1280, "crf": 99, "format": "mp4", "fps": 24},
            {"width": 720, "height": 1280, "crf": 24, "format": "mp4", "fps": 24},
        ],
    )
    def test_malformed_entries_are_rejected(self, tmp_path: Path, entry: dict) -> None:
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({"broken": entry}))

        with pytest.raises(ValidationError):
            load_profiles(path)
