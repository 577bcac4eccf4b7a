"""Pytest configuration and shared fixtures for playback tests."""

import sys
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest


sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vast_playback.beacon import BeaconDispatcher
from vast_playback.config import BeaconConfig, FetcherConfig, VastParserConfig
from vast_playback.measurement import MeasurementAdapter, MeasurementSession, MediaEvents
from vast_playback.media import SimulatedMediaPlayer
from vast_playback.parser import VastParser
from vast_playback.persistence import InMemoryStateStore


# ==================== Path Fixtures ====================


@pytest.fixture(scope="session")
def tests_dir() -> Path:
    """Get tests directory path."""
    return Path(__file__).parent


@pytest.fixture(scope="session")
def fixtures_dir(tests_dir) -> Path:
    """Get fixtures directory path."""
    return tests_dir / "fixtures"


# ==================== VAST XML Fixtures ====================


@pytest.fixture(scope="session")
def sample_vast_xml(fixtures_dir) -> str:
    """Single 640x360 mp4, document-level captions, 9 tracking events, verification."""
    return (fixtures_dir / "sample_vast.xml").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def sample_vast_click_through_xml(fixtures_dir) -> str:
    """Same as sample_vast_xml plus a ClickThrough."""
    return (fixtures_dir / "sample_vast_click_through.xml").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def sample_captions_path(fixtures_dir) -> Path:
    return fixtures_dir / "sample_captions.vtt"


@pytest.fixture
def multi_rendition_vast_xml() -> str:
    """Several renditions with per-rendition captions and mixed MIME types."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<VAST version="4.2">
  <Ad id="multi-001">
    <InLine>
      <Impression><![CDATA[https://tracking.example.com/impression/1]]></Impression>
      <Impression><![CDATA[https://tracking.example.com/impression/2]]></Impression>
      <Creatives>
        <Creative>
          <Linear>
            <Duration>00:00:20.500</Duration>
            <MediaFiles>
              <MediaFile type="video/webm" width="1280" height="720"><![CDATA[https://cdn.example.com/ad.webm]]></MediaFile>
              <MediaFile type="video/mp4" width="640" height="360">
                <![CDATA[https://cdn.example.com/ad-360.mp4]]>
                <ClosedCaptionFile type="text/vtt"><![CDATA[https://cdn.example.com/ad-360.vtt]]></ClosedCaptionFile>
              </MediaFile>
              <MediaFile type="video/mp4" width="1280" height="720"><![CDATA[https://cdn.example.com/ad-720.mp4]]></MediaFile>
              <MediaFile type="video/mp4" width="1080" height="1920"><![CDATA[https://cdn.example.com/ad-vertical.mp4]]></MediaFile>
              <MediaFile type="video/mp4"><![CDATA[https://cdn.example.com/ad-unknown.mp4]]></MediaFile>
            </MediaFiles>
            <TrackingEvents>
              <Tracking event="start"><![CDATA[https://tracking.example.com/start/old]]></Tracking>
              <Tracking event="start"><![CDATA[https://tracking.example.com/start/new]]></Tracking>
            </TrackingEvents>
          </Linear>
        </Creative>
      </Creatives>
    </InLine>
  </Ad>
</VAST>"""


@pytest.fixture
def parser() -> VastParser:
    return VastParser(VastParserConfig())


@pytest.fixture
def sample_document(parser, sample_vast_xml):
    return parser.parse(sample_vast_xml)


@pytest.fixture
def click_through_document(parser, sample_vast_click_through_xml):
    return parser.parse(sample_vast_click_through_xml)


# ==================== Mock HTTP Client Fixtures ====================


@pytest.fixture
def mock_http_response():
    """Create mock HTTP response."""
    response = MagicMock(spec=httpx.Response)
    response.status_code = 200
    response.headers = {"content-type": "application/xml"}
    response.content = b""
    return response


@pytest.fixture
def mock_http_client(mock_http_response):
    """Create mock async HTTP client."""
    client = AsyncMock(spec=httpx.AsyncClient)
    client.get = AsyncMock(return_value=mock_http_response)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def transport_client():
    """Factory building an AsyncClient over an httpx.MockTransport handler."""
    clients = []

    def _make(handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    return _make


# ==================== Beacon Fixtures ====================


class RecordingSleep:
    """Async sleep stand-in recording requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


class RecordingBeaconDispatcher(BeaconDispatcher):
    """Dispatcher that records fired beacons instead of sending them."""

    def __init__(self):
        super().__init__(client=AsyncMock(spec=httpx.AsyncClient), config=BeaconConfig())
        self.fired: list[tuple[str, str]] = []
        self.cancel_calls = 0

    def fire(self, url, event_type):
        self.fired.append((event_type, url))
        return None

    def cancel_all(self) -> int:
        self.cancel_calls += 1
        return 0

    def events(self) -> list[str]:
        return [event for event, _ in self.fired]

    def count(self, event_type: str) -> int:
        return self.events().count(event_type)


@pytest.fixture
def beacons() -> RecordingBeaconDispatcher:
    return RecordingBeaconDispatcher()


# ==================== Measurement Fixtures ====================


class RecordingMediaEvents(MediaEvents):
    def __init__(self, calls: list):
        self.calls = calls

    def start(self, duration, volume):
        self.calls.append(("start", duration, volume))

    def first_quartile(self):
        self.calls.append(("first_quartile",))

    def midpoint(self):
        self.calls.append(("midpoint",))

    def third_quartile(self):
        self.calls.append(("third_quartile",))

    def complete(self):
        self.calls.append(("complete",))

    def pause(self):
        self.calls.append(("pause",))

    def resume(self):
        self.calls.append(("resume",))

    def volume_change(self, volume):
        self.calls.append(("volume_change", volume))

    def ad_user_interaction(self, interaction="click"):
        self.calls.append(("ad_user_interaction", interaction))


class RecordingMeasurementSession(MeasurementSession):
    def __init__(self, calls: list):
        self.calls = calls
        self._media_events = RecordingMediaEvents(calls)

    @property
    def media_events(self):
        return self._media_events

    def start(self):
        self.calls.append(("session_start",))

    def add_obstruction(self, view, purpose="mediaControls"):
        self.calls.append(("add_obstruction", view))

    def fire_ad_loaded(self):
        self.calls.append(("ad_loaded",))

    def fire_impression(self):
        self.calls.append(("impression",))

    def stop(self):
        self.calls.append(("session_stop",))


class RecordingMeasurementAdapter(MeasurementAdapter):
    """Adapter recording every session and media event call in order."""

    def __init__(self):
        self.calls: list[tuple[Any, ...]] = []
        self.sessions: list[tuple[Any, str, str, str]] = []

    def create_session(self, ad_view, vendor_key, script_url, parameters):
        self.sessions.append((ad_view, vendor_key, script_url, parameters))
        self.calls.append(("create_session", vendor_key))
        return RecordingMeasurementSession(self.calls)

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def measurement() -> RecordingMeasurementAdapter:
    return RecordingMeasurementAdapter()


# ==================== Player / Storage Fixtures ====================


@pytest.fixture
def media_player() -> SimulatedMediaPlayer:
    return SimulatedMediaPlayer(duration=20.0, volume=0.8)


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def fetcher_config(tmp_path) -> FetcherConfig:
    return FetcherConfig(download_dir=tmp_path / "downloads")
