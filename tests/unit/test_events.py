"""Unit tests for log event names."""

import structlog
from structlog.testing import capture_logs

from vast_playback.events import PlaybackLogEvents


class TestPlaybackLogEvents:
    """Test event names render as their dotted value."""

    def test_str_and_format(self):
        event = PlaybackLogEvents.SESSION_FAILED
        assert str(event) == "vast.session.failed"
        assert f"{event}" == "vast.session.failed"
        assert f"{event:>22}" == "   vast.session.failed"

    def test_equal_to_plain_string(self):
        assert PlaybackLogEvents.BEACON_SUCCEEDED == "vast.beacon.succeeded"

    def test_console_output_uses_value(self):
        """Test rendered log lines carry the dotted event name."""
        renderer = structlog.dev.ConsoleRenderer(colors=False)
        line = renderer(None, "info", {"event": PlaybackLogEvents.PARSE_COMPLETED})
        assert "vast.parse.completed" in line
        assert "PlaybackLogEvents" not in line

    def test_captured_event(self):
        with capture_logs() as logs:
            structlog.get_logger().info(PlaybackLogEvents.STATE_SAVED, identifier="ad-1")
        assert str(logs[0]["event"]) == "vast.session.state_saved"
