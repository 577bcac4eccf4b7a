"""Unit tests for the exception hierarchy."""

import pytest

from vast_playback.exceptions import (
    AdLoadError,
    AssetError,
    AssetStorageError,
    CaptionLoadError,
    CreativeDownloadError,
    InvalidSourceError,
    MediaLoadError,
    NoPlayableAdError,
    VastDurationError,
    VastParseError,
    VastPlaybackError,
)
from vast_playback.types import parse_duration_string


class TestHierarchy:
    """Test exception inheritance."""

    @pytest.mark.parametrize(
        "exc_type",
        [
            VastParseError,
            NoPlayableAdError,
            InvalidSourceError,
            AssetError,
            CaptionLoadError,
            MediaLoadError,
            AdLoadError,
        ],
    )
    def test_base_class(self, exc_type):
        assert issubclass(exc_type, VastPlaybackError)

    def test_asset_errors(self):
        assert issubclass(CreativeDownloadError, AssetError)
        assert issubclass(AssetStorageError, AssetError)
        assert issubclass(VastDurationError, VastParseError)


class TestContext:
    """Test message and context handling."""

    def test_str_without_context(self):
        assert str(VastPlaybackError("boom")) == "boom"

    def test_download_error_context(self):
        error = CreativeDownloadError("failed", url="https://cdn.example.com/a.mp4", http_status=404)
        assert error.http_status == 404
        assert error.context == {"url": "https://cdn.example.com/a.mp4", "http_status": 404}
        assert str(error) == "failed (url=https://cdn.example.com/a.mp4; http_status=404)"

    def test_long_urls_truncated(self):
        url = "https://cdn.example.com/" + "a" * 200
        assert len(AssetError("x", url=url).context["url"]) == 100

    def test_ad_load_error_cause(self):
        cause = NoPlayableAdError("nothing to play")
        error = AdLoadError("Failed to load video ad", cause=cause)
        assert error.cause is cause
        assert error.context["cause"] == "NoPlayableAdError"


class TestDurationParsing:
    """Test duration string parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [("00:00:17", 17.0), ("00:00:30.020", 30.02), ("01:02:03", 3723.0)],
    )
    def test_valid(self, text, expected):
        assert parse_duration_string(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["17", "00:17", "aa:bb:cc"])
    def test_invalid(self, text):
        with pytest.raises(VastDurationError) as exc_info:
            parse_duration_string(text)
        assert exc_info.value.duration_text == text
