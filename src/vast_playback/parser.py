"""Streaming VAST XML parser producing immutable AdDocument models."""

import time
from typing import Any
from urllib.parse import urlsplit

from lxml import etree

from .config import VastParserConfig
from .events import PlaybackLogEvents
from .log_config import LogCategory, get_context_logger
from .metrics import MetricsCollector, NoOpMetrics, PlaybackMetrics
from .types import AdDocument, MediaRendition, is_mp4


# Recognized element names; everything else is ignored
IMPRESSION = "Impression"
ERROR = "Error"
DURATION = "Duration"
MEDIA_FILE = "MediaFile"
TRACKING = "Tracking"
CLICK_TRACKING = "ClickTracking"
CLICK_THROUGH = "ClickThrough"
CLOSED_CAPTION_FILE = "ClosedCaptionFile"
JAVASCRIPT_RESOURCE = "JavaScriptResource"
VERIFICATION_PARAMETERS = "VerificationParameters"
VERIFICATION = "Verification"

RECOGNIZED_ELEMENTS = frozenset(
    {
        IMPRESSION,
        ERROR,
        DURATION,
        MEDIA_FILE,
        TRACKING,
        CLICK_TRACKING,
        CLICK_THROUGH,
        CLOSED_CAPTION_FILE,
        JAVASCRIPT_RESOURCE,
        VERIFICATION_PARAMETERS,
        VERIFICATION,
    }
)


def _local_name(tag: Any) -> str:
    """Strip any ``{namespace}`` prefix from an lxml tag."""
    if not isinstance(tag, str):
        return ""
    return tag.rpartition("}")[2]


def _to_url(value: str) -> str | None:
    """Return ``value`` if it looks like a URL reference, else None."""
    value = value.strip()
    if not value or any(ch.isspace() for ch in value):
        return None
    try:
        urlsplit(value)
    except ValueError:
        return None
    return value


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class _VastTarget:
    """lxml parser target collecting VAST elements as SAX-style callbacks arrive.

    Character data is accumulated across fragments and trimmed when the
    enclosing element closes.
    """

    def __init__(self, logger):
        self.logger = logger
        self.reset()

    def reset(self) -> None:
        self.media_renditions: list[MediaRendition] = []
        self.video_url: str | None = None
        self.duration: str | None = None
        self.impression_urls: list[str] = []
        self.error_urls: list[str] = []
        self.click_tracking_urls: list[str] = []
        self.tracking_events: dict[str, str] = {}
        self.click_through_url: str | None = None
        self.closed_caption_url: str | None = None
        self.vendor_key: str | None = None
        self.verification_script_url: str | None = None
        self.verification_parameters: str | None = None
        self.verification_tracking: dict[str, str] = {}

        self.current_element = ""
        self.current_tracking_event: str | None = None
        self.found_characters = ""
        self.in_verification = False
        self.in_media_file = False
        self.in_caption_file = False
        self.media_attributes: tuple[int | None, int | None, str | None] = (None, None, None)
        self.media_url_buffer = ""
        self.caption_url_buffer = ""

    # lxml target interface

    def start(self, tag, attrib) -> None:
        name = _local_name(tag)
        self.current_element = name
        self.found_characters = ""

        if name == TRACKING and attrib.get("event"):
            self.current_tracking_event = attrib.get("event")

        if name == VERIFICATION:
            self.in_verification = True
            vendor = attrib.get("vendor")
            if vendor:
                self.vendor_key = vendor

        if name == MEDIA_FILE:
            self.in_media_file = True
            self.media_attributes = (
                _to_int(attrib.get("width")),
                _to_int(attrib.get("height")),
                attrib.get("type"),
            )
            self.media_url_buffer = ""
            self.caption_url_buffer = ""

        if self.in_media_file and name == CLOSED_CAPTION_FILE:
            self.in_caption_file = True
            self.caption_url_buffer = ""

    def data(self, data: str) -> None:
        self.found_characters += data
        if (
            self.in_media_file
            and not self.in_caption_file
            and self.current_element == MEDIA_FILE
        ):
            self.media_url_buffer += data
        if (
            self.in_media_file
            and self.in_caption_file
            and self.current_element == CLOSED_CAPTION_FILE
        ):
            self.caption_url_buffer += data

    def end(self, tag) -> None:
        name = _local_name(tag)
        if name not in RECOGNIZED_ELEMENTS:
            self.found_characters = ""
            return

        value = self.found_characters.strip()

        if name == IMPRESSION:
            url = _to_url(value)
            if url:
                self.impression_urls.append(url)
                self.logger.debug("Found impression URL")
        elif name == ERROR:
            url = _to_url(value)
            if url:
                self.error_urls.append(url)
                self.logger.debug("Found error URL")
        elif name == DURATION:
            self.duration = value
            self.logger.debug("Found duration", duration=value)
        elif name == MEDIA_FILE:
            self._finish_media_file()
        elif name == TRACKING:
            url = _to_url(value)
            event = self.current_tracking_event
            if event and url:
                if self.in_verification:
                    self.verification_tracking[event] = url
                    self.logger.debug("Found verification tracking event", event_type=event)
                else:
                    self.tracking_events[event] = url
                    self.logger.debug("Found tracking event", event_type=event)
            self.current_tracking_event = None
        elif name == CLICK_TRACKING:
            url = _to_url(value)
            if url:
                self.click_tracking_urls.append(url)
                self.logger.debug("Found click tracking URL")
        elif name == CLICK_THROUGH:
            url = _to_url(value)
            if url:
                self.click_through_url = url
                self.logger.debug("Found click-through URL", url=url)
        elif name == CLOSED_CAPTION_FILE:
            if self.in_media_file:
                if not self.caption_url_buffer.strip():
                    self.caption_url_buffer = value
                self.in_caption_file = False
            else:
                url = _to_url(value)
                if url:
                    self.closed_caption_url = url
                    self.logger.debug("Found closed caption URL", url=url)
        elif name == JAVASCRIPT_RESOURCE:
            url = _to_url(value)
            if self.in_verification and url:
                self.verification_script_url = url
                self.logger.debug("Found verification script URL")
        elif name == VERIFICATION_PARAMETERS:
            if self.in_verification:
                self.verification_parameters = value
                self.logger.debug("Found verification parameters")
        elif name == VERIFICATION:
            self.in_verification = False
            self.logger.debug("Exiting verification block")

        self.found_characters = ""

    def comment(self, text) -> None:
        pass

    def close(self) -> AdDocument:
        return self.build()

    # helpers

    def _finish_media_file(self) -> None:
        url = _to_url(self.media_url_buffer)
        if url:
            width, height, mime_type = self.media_attributes
            rendition = MediaRendition(
                url=url,
                width=width,
                height=height,
                mime_type=mime_type,
                caption_url=_to_url(self.caption_url_buffer),
            )
            self.media_renditions.append(rendition)
            self.logger.debug("Found media file URL", url=url, type=mime_type)
        self.in_media_file = False
        self.in_caption_file = False
        self.media_attributes = (None, None, None)
        self.media_url_buffer = ""
        self.caption_url_buffer = ""

    def _primary_video_url(self) -> str | None:
        for rendition in self.media_renditions:
            if is_mp4(rendition.mime_type):
                return rendition.url
        if self.media_renditions:
            return self.media_renditions[0].url
        return None

    def build(self) -> AdDocument:
        return AdDocument(
            media_renditions=tuple(self.media_renditions),
            video_url=self._primary_video_url(),
            duration=self.duration,
            impression_urls=tuple(self.impression_urls),
            error_urls=tuple(self.error_urls),
            click_tracking_urls=tuple(self.click_tracking_urls),
            tracking_events=dict(self.tracking_events),
            click_through_url=self.click_through_url,
            closed_caption_url=self.closed_caption_url,
            verification_vendor_key=self.vendor_key,
            verification_script_url=self.verification_script_url,
            verification_parameters=self.verification_parameters,
            verification_tracking_events=dict(self.verification_tracking),
        )


class VastParser:
    """Parser for VAST XML responses.

    Never raises for malformed input: whatever was collected before the
    parser gave up is returned, so an empty or partial AdDocument is the
    error signal.
    """

    def __init__(
        self,
        config: VastParserConfig | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.logger = get_context_logger("vast_parser", LogCategory.VAST)
        self.config = config or VastParserConfig()
        self.metrics = metrics or NoOpMetrics()

    def parse(self, xml: bytes | str) -> AdDocument:
        """Parse raw VAST XML into an AdDocument.

        Args:
            xml: Raw VAST XML bytes or text

        Returns:
            Parsed document; partial or empty on malformed input
        """
        if isinstance(xml, str):
            xml = xml.encode(self.config.encoding)
        self.logger.debug(PlaybackLogEvents.PARSE_STARTED, xml_length=len(xml))
        start_time = time.perf_counter()

        target = _VastTarget(self.logger)
        parser = etree.XMLParser(
            target=target,
            recover=self.config.recover_on_error,
            resolve_entities=False,
            no_network=True,
        )
        try:
            parser.feed(xml)
            document = parser.close()
        except (etree.LxmlError, ValueError) as e:
            self.logger.error(
                PlaybackLogEvents.PARSE_FAILED,
                error=str(e),
                xml_preview=xml[:200].decode(self.config.encoding, errors="replace"),
            )
            document = target.build()

        self.metrics.timing(
            PlaybackMetrics.PARSE_DURATION_MS, (time.perf_counter() - start_time) * 1000
        )

        self.logger.info(
            PlaybackLogEvents.PARSE_COMPLETED,
            summary=document.summary(),
            media_files_count=len(document.media_renditions),
            impressions_count=len(document.impression_urls),
            tracking_events_count=len(document.tracking_events),
            duration=document.duration,
        )
        return document

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "VastParser":
        """Create parser from configuration dictionary.

        Args:
            config: Configuration dictionary

        Returns:
            VastParser: Configured parser instance
        """
        return cls(config=VastParserConfig(**config))


__all__ = ["VastParser", "RECOGNIZED_ELEMENTS"]
