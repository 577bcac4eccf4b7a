"""Unit tests for the ad session orchestrator."""

import asyncio

import httpx
import pytest

from vast_playback.config import AdSessionConfig, VastPlaybackConfig
from vast_playback.exceptions import (
    AdLoadError,
    CreativeDownloadError,
    InvalidSourceError,
    MediaLoadError,
    NoPlayableAdError,
)
from vast_playback.media import SimulatedMediaPlayer
from vast_playback.metrics import InMemoryMetrics, PlaybackMetrics
from vast_playback.orchestrator import (
    AdSessionOrchestrator,
    AdSessionState,
    VastSource,
    aspect_ratio_for,
)
from vast_playback.persistence import FileStateStore, PersistedState, PersistedStateRepository
from vast_playback.playback_session import PlaybackState


VAST_URL = "https://ads.example.com/vast?id=42"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42video"


class AssetServer:
    """MockTransport handler serving VAST, video and caption responses."""

    def __init__(self, vast_xml: str, captions: str):
        self.vast_xml = vast_xml
        self.captions = captions
        self.video_status = 200
        self.caption_status = 200
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        path = request.url.path
        if path.endswith(".mp4"):
            return httpx.Response(self.video_status, content=VIDEO_BYTES)
        if path.endswith(".vtt"):
            return httpx.Response(self.caption_status, text=self.captions)
        if path == "/vast":
            return httpx.Response(200, text=self.vast_xml)
        return httpx.Response(404)


class PlayerFactory:
    """Creates simulated players and keeps them for inspection."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.players: list[SimulatedMediaPlayer] = []

    def __call__(self) -> SimulatedMediaPlayer:
        player = SimulatedMediaPlayer(**{"duration": 17.0, **self.kwargs})
        self.players.append(player)
        return player

    @property
    def last(self) -> SimulatedMediaPlayer:
        return self.players[-1]


@pytest.fixture
def server(sample_vast_xml, sample_captions_path) -> AssetServer:
    return AssetServer(sample_vast_xml, sample_captions_path.read_text(encoding="utf-8"))


@pytest.fixture
def players() -> PlayerFactory:
    return PlayerFactory()


@pytest.fixture
def playback_config(fetcher_config) -> VastPlaybackConfig:
    return VastPlaybackConfig(fetcher=fetcher_config)


@pytest.fixture
def make_session(
    server, players, playback_config, transport_client, beacons, measurement, state_store
):
    """Factory building orchestrators sharing one HTTP server and state store."""

    def _make(source=VAST_URL, identifier="ad-1", **overrides):
        kwargs = {
            "config": playback_config,
            "http_client": transport_client(server),
            "beacons": beacons,
            "measurement": measurement,
            "state_store": state_store,
            "player_factory": players,
            "url_opener": lambda url: True,
        }
        kwargs.update(overrides)
        return AdSessionOrchestrator(source, identifier, **kwargs)

    return _make


async def load_ready(session: AdSessionOrchestrator) -> AdSessionOrchestrator:
    task = session.load_video_ad()
    await task
    return session


class TestHelpers:
    """Test module-level helpers."""

    def test_aspect_ratio_for(self):
        assert aspect_ratio_for(1920, 1080) == pytest.approx(16 / 9)
        assert aspect_ratio_for(1080, 1920) == pytest.approx(0.5625)
        assert aspect_ratio_for(100, 0) is None

    @pytest.mark.parametrize(
        "source,kind",
        [
            ("https://ads.example.com/vast", "url"),
            ("<VAST version='4.2'/>", "xml"),
            ("   \n<?xml version='1.0'?><VAST/>", "xml"),
            ("ads.example.com/vast", "url"),
        ],
    )
    def test_vast_source_coerce(self, source, kind):
        assert VastSource.coerce(source).kind == kind

    def test_vast_source_passthrough(self):
        source = VastSource.from_xml("<VAST/>")
        assert VastSource.coerce(source) is source
        assert source.is_url is False


class TestRenditionSelection:
    """Test choosing the rendition to download."""

    def test_closest_aspect_ratio(self, parser, multi_rendition_vast_xml):
        """Test the rendition nearest the viewport ratio wins."""
        doc = parser.parse(multi_rendition_vast_xml)
        chosen = AdSessionOrchestrator.select_rendition(doc, 9 / 16)
        assert chosen.url == "https://cdn.example.com/ad-vertical.mp4"

    def test_tie_goes_to_first(self, parser, multi_rendition_vast_xml):
        """Test equal distances keep document order."""
        doc = parser.parse(multi_rendition_vast_xml)
        chosen = AdSessionOrchestrator.select_rendition(doc, 16 / 9)
        assert chosen.url == "https://cdn.example.com/ad-360.mp4"

    def test_non_mp4_ignored(self, parser, multi_rendition_vast_xml):
        """Test non-mp4 renditions are never selected even if closer."""
        doc = parser.parse(multi_rendition_vast_xml)
        chosen = AdSessionOrchestrator.select_rendition(doc, 1280 / 720)
        assert chosen.mime_type == "video/mp4"

    def test_default_ratio(self, parser, multi_rendition_vast_xml):
        """Test a missing viewport ratio falls back to 16:9."""
        doc = parser.parse(multi_rendition_vast_xml)
        chosen = AdSessionOrchestrator.select_rendition(doc, None)
        assert chosen.url == "https://cdn.example.com/ad-360.mp4"

    def test_unknown_dimensions_only(self, parser):
        """Test renditions without dimensions are still selectable."""
        doc = parser.parse(
            "<VAST><MediaFile type='video/mp4'>https://cdn.example.com/a.mp4</MediaFile>"
            "<MediaFile type='video/mp4'>https://cdn.example.com/b.mp4</MediaFile></VAST>"
        )
        assert AdSessionOrchestrator.select_rendition(doc, 1.0).url == "https://cdn.example.com/a.mp4"

    def test_no_mp4(self, parser):
        """Test no selection without mp4 renditions."""
        doc = parser.parse(
            "<VAST><MediaFile type='video/webm'>https://cdn.example.com/a.webm</MediaFile></VAST>"
        )
        assert AdSessionOrchestrator.select_rendition(doc, 1.0) is None

    def test_caption_resolution(self, parser, multi_rendition_vast_xml, sample_document):
        """Test rendition captions win over document-level captions."""
        doc = parser.parse(multi_rendition_vast_xml)
        with_caption = doc.media_renditions[1]
        without_caption = doc.media_renditions[2]

        assert (
            AdSessionOrchestrator.resolve_caption_url(doc, with_caption)
            == "https://cdn.example.com/ad-360.vtt"
        )
        assert AdSessionOrchestrator.resolve_caption_url(doc, without_caption) is None
        assert (
            AdSessionOrchestrator.resolve_caption_url(
                sample_document, sample_document.media_renditions[0]
            )
            == "https://cdn.example.com/creatives/ad.vtt"
        )


class TestLoadPipeline:
    """Test loading an ad to READY."""

    @pytest.mark.asyncio
    async def test_load_from_url(self, make_session, server, fetcher_config):
        """Test the full pipeline downloads video and captions."""
        metrics = InMemoryMetrics()
        session = make_session(metrics=metrics)
        loaded = []
        session.on_loaded = lambda: loaded.append(True)

        task = session.load_video_ad()
        assert session.state == AdSessionState.LOADING
        await task

        assert session.state == AdSessionState.READY
        assert loaded == [True]
        assert session.error is None
        assert session.document.video_url == "https://cdn.example.com/creatives/ad.mp4"
        assert session.rendition.width == 640
        assert session.video_path.suffix == ".mp4"
        assert session.video_path.read_bytes() == VIDEO_BYTES
        assert session.caption_path.suffix == ".vtt"
        assert session.video_path.parent == fetcher_config.download_dir
        assert server.requests == [
            VAST_URL,
            "https://cdn.example.com/creatives/ad.mp4",
            "https://cdn.example.com/creatives/ad.vtt",
        ]
        assert metrics.count(PlaybackMetrics.SESSION_LOADS, result="succeeded") == 1

    @pytest.mark.asyncio
    async def test_load_from_inline_xml(self, make_session, server, sample_vast_xml):
        """Test inline XML skips the VAST request."""
        session = await load_ready(make_session(source=sample_vast_xml))

        assert session.state == AdSessionState.READY
        assert VAST_URL not in server.requests

    @pytest.mark.asyncio
    async def test_load_video_ad_only_once(self, make_session):
        """Test a second load request is ignored."""
        session = make_session()
        task = session.load_video_ad()
        assert session.load_video_ad() is None
        await task
        assert session.load_video_ad() is None

    @pytest.mark.asyncio
    async def test_preload_assets(self, make_session):
        """Test preloading reaches READY without a LOADING phase."""
        session = make_session()
        task = session.preload_assets()
        assert session.state == AdSessionState.NOT_LOADED
        await task
        assert session.state == AdSessionState.READY

    @pytest.mark.asyncio
    async def test_caption_failure_is_not_fatal(self, make_session, server):
        """Test a caption download error still reaches READY."""
        server.caption_status = 500
        session = await load_ready(make_session())

        assert session.state == AdSessionState.READY
        assert session.caption_path is None

    @pytest.mark.asyncio
    async def test_video_failure(self, make_session, server):
        """Test a video download error ends in ERROR with the cause."""
        server.video_status = 404
        metrics = InMemoryMetrics()
        session = make_session(metrics=metrics)
        errors = []
        session.on_error = errors.append

        await load_ready(session)

        assert session.state == AdSessionState.ERROR
        assert isinstance(session.error, AdLoadError)
        assert isinstance(session.error.cause, CreativeDownloadError)
        assert session.error.cause.http_status == 404
        assert errors == [session.error]
        assert metrics.count(PlaybackMetrics.SESSION_LOADS, result="failed") == 1

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, make_session, server):
        """Test retry restarts the pipeline from scratch."""
        server.video_status = 503
        session = await load_ready(make_session())
        assert session.state == AdSessionState.ERROR

        server.video_status = 200
        task = session.retry()
        assert session.state == AdSessionState.LOADING
        await task

        assert session.state == AdSessionState.READY
        assert session.error is None

    @pytest.mark.asyncio
    async def test_no_playable_media(self, make_session):
        """Test a document without media fails with NoPlayableAdError."""
        session = await load_ready(make_session(source="<VAST version='4.2'/>"))

        assert session.state == AdSessionState.ERROR
        assert isinstance(session.error.cause, NoPlayableAdError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["ftp://ads.example.com/vast", "not a url", "https://"])
    async def test_invalid_source_url(self, make_session, url):
        """Test unusable URLs fail before any request."""
        session = await load_ready(make_session(source=url))

        assert session.state == AdSessionState.ERROR
        assert isinstance(session.error.cause, InvalidSourceError)

    @pytest.mark.asyncio
    async def test_vast_request_failure(self, make_session, transport_client):
        """Test VAST transport failures are reported as download errors."""

        def offline(request):
            raise httpx.ConnectError("offline", request=request)

        session = await load_ready(make_session(http_client=transport_client(offline)))

        assert session.state == AdSessionState.ERROR
        assert isinstance(session.error.cause, CreativeDownloadError)

    @pytest.mark.asyncio
    async def test_close_cancels_load(self, make_session):
        """Test closing during a load cancels it."""
        session = make_session()
        task = session.load_video_ad()

        session.close()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()

    def test_auto_load_without_loop(self, make_session, playback_config):
        """Test auto_load outside an event loop leaves the session unloaded."""
        playback_config.session = AdSessionConfig(auto_load=True)
        session = make_session()
        assert session.state == AdSessionState.NOT_LOADED


class TestPlayback:
    """Test engine lifecycle through the orchestrator."""

    @pytest.mark.asyncio
    async def test_resume_playback_starts_engine(
        self, make_session, players, beacons, measurement
    ):
        """Test the first resume attaches an engine and fires the impression."""
        session = await load_ready(make_session())
        started = []
        session.on_started = lambda: started.append(True)

        session.resume_playback()

        assert session.engine is not None
        assert session.is_playing
        assert started == [True]
        assert players.last.source == str(session.video_path)
        assert beacons.count("impression") == 1
        assert measurement.names()[:4] == [
            "create_session",
            "session_start",
            "ad_loaded",
            "impression",
        ]
        assert session.engine.has_captions

    @pytest.mark.asyncio
    async def test_resume_before_ready_is_ignored(self, make_session):
        """Test resume does nothing until READY."""
        session = make_session()
        session.resume_playback()
        assert session.engine is None

    @pytest.mark.asyncio
    async def test_impression_fires_once(self, make_session, beacons):
        """Test recreating the engine does not repeat the impression."""
        session = await load_ready(make_session())

        session.resume_playback()
        session.pause_and_detach()
        session.resume_playback()

        assert beacons.count("impression") == 1

    @pytest.mark.asyncio
    async def test_progress_callback(self, make_session, players):
        """Test time updates reach on_progress."""
        session = await load_ready(make_session())
        progress = []
        session.on_progress = lambda current, duration: progress.append((current, duration))
        session.resume_playback()

        players.last.advance(1.0)

        assert progress == [(1.0, 17.0)]
        assert session.current_time == 1.0
        assert session.duration == 17.0

    @pytest.mark.asyncio
    async def test_programmatic_pause_play_fire_no_beacons(self, make_session, players, beacons):
        """Test orchestrator pause/play record intent without tracking."""
        session = await load_ready(make_session())
        session.resume_playback()
        players.last.advance(0.1)
        fired_before = list(beacons.fired)
        pauses = []
        session.on_user_pause_state_changed = pauses.append

        session.pause()
        assert session.is_user_paused is True
        assert not session.is_playing

        session.play()
        assert session.is_user_paused is False
        assert session.is_playing

        assert beacons.fired == fired_before
        assert pauses == [True, False]

    @pytest.mark.asyncio
    async def test_tap_without_click_through_pauses(self, make_session, beacons):
        """Test a tap on an ad without a landing page toggles pause."""
        session = await load_ready(make_session())
        session.resume_playback()
        tapped = []
        paused = []
        session.on_tapped = lambda: tapped.append(True)
        session.on_paused = lambda: paused.append(True)

        assert session.handle_tap() is None

        assert tapped == [True]
        assert paused == [True]
        assert session.is_user_paused is True
        assert beacons.count("click") == 1
        assert beacons.count("pause") == 1

    @pytest.mark.asyncio
    async def test_tap_with_click_through(
        self, make_session, sample_vast_click_through_xml
    ):
        """Test a tap opens the landing page."""
        opened = []
        session = await load_ready(
            make_session(source=sample_vast_click_through_xml, url_opener=opened.append)
        )
        session.resume_playback()

        assert session.handle_tap() == "https://www.example.com/landing"
        assert opened == ["https://www.example.com/landing"]
        assert session.is_playing

    @pytest.mark.asyncio
    async def test_toggle_captions(self, make_session):
        """Test caption toggling reaches the engine."""
        session = await load_ready(make_session())
        session.resume_playback()

        assert session.toggle_captions() is False
        assert session.engine.captions_enabled is False
        assert session.toggle_captions() is True

    @pytest.mark.asyncio
    async def test_seek_to(self, make_session, players):
        """Test seeking moves the player."""
        session = await load_ready(make_session())
        session.resume_playback()

        session.seek_to(8.0)

        assert players.last.current_time == 8.0

    @pytest.mark.asyncio
    async def test_media_error_fails_session(self, make_session):
        """Test a media load failure ends the session in ERROR."""
        session = await load_ready(make_session(player_factory=PlayerFactory(fail_load=True)))
        errors = []
        session.on_error = errors.append

        session.resume_playback()

        assert session.state == AdSessionState.ERROR
        assert session.engine is None
        assert isinstance(session.error.cause, MediaLoadError)
        assert errors == [session.error]


class TestPersistence:
    """Test state carried across engine and orchestrator recreation."""

    @pytest.mark.asyncio
    async def test_pause_and_detach_saves_state(self, make_session, players, state_store):
        """Test detaching persists position, mute and captions."""
        session = await load_ready(make_session())
        session.resume_playback()
        players.last.advance(5.0)
        session.toggle_mute()
        session.toggle_captions()

        session.pause_and_detach()

        assert session.engine is None
        stored = PersistedStateRepository(state_store).get("ad-1")
        assert stored == PersistedState(
            last_playback_position=5.0,
            is_user_paused=False,
            closed_captions_enabled=False,
            muted=True,
        )
        assert state_store.keys() == ["VastPlayback_ad-1"]

    @pytest.mark.asyncio
    async def test_resume_restores_position_and_mute(self, make_session, players):
        """Test a recreated engine continues where the previous one stopped."""
        session = await load_ready(make_session())
        session.resume_playback()
        players.last.advance(5.0)
        session.toggle_mute()
        session.pause_and_detach()

        session.resume_playback()

        player = players.last
        assert len(players.players) == 2
        assert player.seek_log[0] == (5.0, 0.0, 0.0)
        assert player.current_time == 5.0
        assert player.is_playing
        assert session.is_muted is True

    @pytest.mark.asyncio
    async def test_existing_engine_resume_seeks_to_last_position(self, make_session, players):
        """Test resuming a paused, still-attached engine."""
        session = await load_ready(make_session())
        session.resume_playback()
        players.last.advance(3.0)
        session.engine.pause()
        session.seek_to(6.0)

        session.resume_playback()

        assert players.last.seek_log[-1] == (6.0, 0.0, 0.0)
        assert session.is_playing

    @pytest.mark.asyncio
    async def test_resume_continues_from_latest_position(self, make_session, players):
        """Test resuming after playing on past an earlier pause keeps the playhead."""
        session = await load_ready(make_session())
        session.resume_playback()
        players.last.advance(3.0)
        session.pause()
        session.play()
        players.last.advance(5.0)
        session.engine.pause()

        session.resume_playback()

        assert players.last.current_time == 8.0
        assert players.last.seek_log[-1] == (8.0, 0.0, 0.0)
        assert session.is_playing

    @pytest.mark.asyncio
    async def test_detach_keeps_restored_pause_position(self, make_session, players, state_store):
        """Test detaching a restored, user-paused engine keeps the stored position."""
        PersistedStateRepository(state_store).put(
            "ad-1", PersistedState(last_playback_position=4.0, is_user_paused=True)
        )
        session = await load_ready(make_session())
        session.resume_playback()

        session.pause_and_detach()

        stored = PersistedStateRepository(state_store).get("ad-1")
        assert stored.last_playback_position == 4.0
        assert stored.is_user_paused is True

    @pytest.mark.asyncio
    async def test_user_pause_survives_orchestrator_recreation(
        self, make_session, players, state_store
    ):
        """Test a user pause is still honoured by a fresh orchestrator."""
        first = await load_ready(make_session())
        first.resume_playback()
        players.last.advance(4.0)
        first.handle_tap()
        first.close()

        stored = PersistedStateRepository(state_store).get("ad-1")
        assert stored.is_user_paused is True
        assert stored.last_playback_position == 4.0

        second = await load_ready(make_session())
        assert second.is_user_paused is True
        second.resume_playback()

        assert second.engine.state == PlaybackState.PAUSED
        assert not players.last.is_playing

        second.play()
        assert players.last.seek_log[-1] == (4.0, 0.0, 0.0)
        assert players.last.is_playing
        assert second.is_user_paused is False

    @pytest.mark.asyncio
    async def test_corrupt_state_file_does_not_fail_load(self, make_session, players, tmp_path):
        """Test a damaged state file is ignored and the ad still plays."""
        path = tmp_path / "playback.json"
        path.write_text('{"VastPlayback_ad-1": {', encoding="utf-8")
        session = await load_ready(make_session(state_store=FileStateStore(path)))

        assert session.state == AdSessionState.READY
        session.resume_playback()
        assert players.last.is_playing
        assert players.last.seek_log == []

    @pytest.mark.asyncio
    async def test_mistyped_state_record_is_defaulted(self, make_session, players, state_store):
        """Test a record with a string position resumes from the start."""
        state_store.set(
            "VastPlayback_ad-1", b'{"lastPlaybackPosition": "12.5", "muted": true}'
        )
        session = await load_ready(make_session())

        session.resume_playback()
        players.last.advance(1.0)
        session.engine.pause()
        session.resume_playback()

        assert session.state == AdSessionState.READY
        assert session.is_muted is True
        assert players.last.current_time == 1.0
        assert session.is_playing

    @pytest.mark.asyncio
    async def test_different_identifiers_are_isolated(self, make_session, players, state_store):
        """Test state is keyed by ad identifier."""
        first = await load_ready(make_session(identifier="ad-1"))
        first.resume_playback()
        players.last.advance(4.0)
        first.close()

        other = await load_ready(make_session(identifier="ad-2"))
        other.resume_playback()

        assert players.last.seek_log == []
        assert sorted(state_store.keys()) == ["VastPlayback_ad-1"]

    @pytest.mark.asyncio
    async def test_no_identifier_no_persistence(self, make_session, players, state_store):
        """Test anonymous sessions never persist."""
        session = await load_ready(make_session(identifier=None))
        session.resume_playback()
        players.last.advance(2.0)
        session.close()

        assert state_store.keys() == []

    @pytest.mark.asyncio
    async def test_starts_muted_default(self, make_session, playback_config, players):
        """Test the configured initial mute applies without persisted state."""
        playback_config.session = AdSessionConfig(starts_muted=True)
        session = await load_ready(make_session())
        session.resume_playback()

        assert players.last.muted is True
