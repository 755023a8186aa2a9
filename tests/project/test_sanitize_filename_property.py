"""Property-based tests for upload filename sanitization.

**Feature: reelforge, Property 1: Stored Filename Safety**

Stored names are built only from ``[a-zA-Z0-9_-]`` plus a lower-cased
extension, and sanitizing a sanitized name changes nothing.
"""

import re

from hypothesis import given, settings, strategies as st

from reelforge.modules.project.store import sanitize_filename


SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+\.[a-z0-9]+$")

# Arbitrary client-supplied names, including unicode, separators and dots
any_name_strategy = st.one_of(st.none(), st.text(max_size=80))

# Names that carry a real video extension in mixed case
extension_strategy = st.sampled_from([".mp4", ".MP4", ".Mov", ".webm", ".MKV", ".m4v"])
base_strategy = st.text(
    min_size=1,
    max_size=40,
    alphabet=st.characters(whitelist_categories=("L", "N", "Zs", "Pd", "Ps", "Pe")),
).filter(lambda s: "." not in s and s.strip())


class TestSanitizeFilename:
    """Property tests for sanitize_filename."""

    @given(name=any_name_strategy)
    @settings(max_examples=300)
    def test_output_uses_safe_charset(self, name) -> None:
        """**Feature: reelforge, Property 1: Stored Filename Safety**

        For any input, the result is a non-empty safe base plus extension.
        """
        result = sanitize_filename(name)

        assert SAFE_NAME.match(result), f"Unsafe result {result!r} for {name!r}"
        base = result.rsplit(".", 1)[0]
        assert not base.startswith("-")
        assert not base.endswith("-")
        assert "--" not in base

    @given(name=any_name_strategy)
    @settings(max_examples=300)
    def test_sanitize_is_idempotent(self, name) -> None:
        """**Feature: reelforge, Property 1: Stored Filename Safety**

        Sanitizing an already sanitized name returns it unchanged.
        """
        once = sanitize_filename(name)

        assert sanitize_filename(once) == once

    @given(base=base_strategy, ext=extension_strategy)
    @settings(max_examples=200)
    def test_extension_is_kept_lower_cased(self, base: str, ext: str) -> None:
        """**Feature: reelforge, Property 1: Stored Filename Safety**

        A recognizable extension survives, lower-cased.
        """
        result = sanitize_filename(f"{base}{ext}")

        assert result.endswith(ext.lower())

    def test_unsafe_runs_collapse_to_single_hyphen(self) -> None:
        assert sanitize_filename("my video (1).MOV") == "my-video-1.mov"
        assert sanitize_filename("  holiday   clip!!.mp4 ") == "holiday-clip.mp4"
        assert sanitize_filename("vidéo.mp4") == "vid-o.mp4"

    def test_empty_base_falls_back_to_placeholder(self) -> None:
        assert sanitize_filename("***.mov") == "clip.mov"
        assert sanitize_filename("(  ).webm") == "clip.webm"

    def test_missing_extension_defaults_to_mp4(self) -> None:
        assert sanitize_filename("recording") == "recording.mp4"
        assert sanitize_filename(None) == "video.mp4"
        assert sanitize_filename("   ") == "video.mp4"

    def test_underscores_are_preserved(self) -> None:
        assert sanitize_filename("take_02-final.mp4") == "take_02-final.mp4"
