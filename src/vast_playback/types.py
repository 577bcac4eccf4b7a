"""Ad document model produced by the VAST parser."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .exceptions import VastDurationError


def is_mp4(mime_type: str | None) -> bool:
    """Return True for mp4-compatible MIME types (``video/mp4``, ``video/x-mp4``...)."""
    return "mp4" in (mime_type or "").lower()


def parse_duration_string(duration_text: str) -> float:
    """Parse duration string in HH:MM:SS[.mmm] format.

    Args:
        duration_text: Duration string (e.g., "00:00:30.020")

    Returns:
        Duration in seconds

    Raises:
        VastDurationError: If duration format is invalid
    """
    duration_parts = duration_text.strip().split(":")
    if len(duration_parts) != 3:
        raise VastDurationError(
            f"Invalid duration format: {duration_text}. Expected HH:MM:SS",
            duration_text=duration_text,
        )
    try:
        hours, minutes, seconds = (float(part) for part in duration_parts)
    except ValueError as e:
        raise VastDurationError(
            f"Failed to parse duration value: {str(e)}",
            duration_text=duration_text,
        ) from e
    return hours * 3600 + minutes * 60 + seconds


@dataclass(frozen=True)
class MediaRendition:
    """One encoded variant of the creative video."""

    url: str
    width: int | None = None
    height: int | None = None
    mime_type: str | None = None
    caption_url: str | None = None

    @property
    def aspect_ratio(self) -> float | None:
        """width/height, or None unless both dimensions are known and height > 0."""
        if self.width is None or self.height is None or self.height <= 0:
            return None
        return self.width / self.height

    @property
    def is_mp4(self) -> bool:
        return is_mp4(self.mime_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "type": self.mime_type,
            "caption_url": self.caption_url,
        }


@dataclass(frozen=True)
class AdDocument:
    """Immutable result of parsing a VAST response.

    Sequences keep document order and allow duplicates. Tracking maps hold a
    single URL per event name (last occurrence wins).

    Attributes:
        media_renditions: Media files in document order
        video_url: Back-compat primary video (first mp4 rendition, else first rendition)
        duration: Raw ``<Duration>`` text
        impression_urls: Impression beacons
        error_urls: Error beacons
        click_tracking_urls: Click tracking beacons
        tracking_events: Event name to beacon URL
        click_through_url: Landing page opened on tap
        closed_caption_url: Document-level caption fallback
        verification_vendor_key: ``vendor`` attribute of ``<Verification>``
        verification_script_url: Measurement script (``<JavaScriptResource>``)
        verification_parameters: Opaque parameters passed to the measurement script
        verification_tracking_events: Tracking scoped to the verification block
    """

    media_renditions: tuple[MediaRendition, ...] = ()
    video_url: str | None = None
    duration: str | None = None
    impression_urls: tuple[str, ...] = ()
    error_urls: tuple[str, ...] = ()
    click_tracking_urls: tuple[str, ...] = ()
    tracking_events: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    click_through_url: str | None = None
    closed_caption_url: str | None = None
    verification_vendor_key: str | None = None
    verification_script_url: str | None = None
    verification_parameters: str | None = None
    verification_tracking_events: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self):
        # Freeze mutable inputs so the document can be shared read-only
        object.__setattr__(self, "media_renditions", tuple(self.media_renditions))
        object.__setattr__(self, "impression_urls", tuple(self.impression_urls))
        object.__setattr__(self, "error_urls", tuple(self.error_urls))
        object.__setattr__(self, "click_tracking_urls", tuple(self.click_tracking_urls))
        object.__setattr__(
            self, "tracking_events", MappingProxyType(dict(self.tracking_events))
        )
        object.__setattr__(
            self,
            "verification_tracking_events",
            MappingProxyType(dict(self.verification_tracking_events)),
        )

    @property
    def has_playable_media(self) -> bool:
        return bool(self.media_renditions) or self.video_url is not None

    @property
    def has_verification(self) -> bool:
        """True when the measurement session can be bootstrapped."""
        return bool(
            self.verification_vendor_key
            and self.verification_script_url
            and self.verification_parameters
        )

    @property
    def duration_seconds(self) -> float | None:
        if not self.duration:
            return None
        try:
            return parse_duration_string(self.duration)
        except VastDurationError:
            return None

    def rendition_for_url(self, url: str) -> MediaRendition | None:
        for rendition in self.media_renditions:
            if rendition.url == url:
                return rendition
        return None

    def summary(self) -> str:
        """Short human-readable list of what the document carries."""
        details = []
        if self.video_url is not None:
            details.append("video")
        if self.closed_caption_url is not None or any(
            r.caption_url for r in self.media_renditions
        ):
            details.append("captions")
        if self.impression_urls:
            details.append(f"{len(self.impression_urls)} impressions")
        if self.click_tracking_urls:
            details.append(f"{len(self.click_tracking_urls)} click trackers")
        if self.tracking_events:
            details.append(f"{len(self.tracking_events)} tracking events")
        if self.verification_script_url is not None:
            details.append("measurement verification")
        return ", ".join(details) if details else "empty ad"

    def to_dict(self) -> dict[str, Any]:
        return {
            "media_renditions": [r.to_dict() for r in self.media_renditions],
            "video_url": self.video_url,
            "duration": self.duration,
            "impression_urls": list(self.impression_urls),
            "error_urls": list(self.error_urls),
            "click_tracking_urls": list(self.click_tracking_urls),
            "tracking_events": dict(self.tracking_events),
            "click_through_url": self.click_through_url,
            "closed_caption_url": self.closed_caption_url,
            "verification_vendor_key": self.verification_vendor_key,
            "verification_script_url": self.verification_script_url,
            "verification_parameters": self.verification_parameters,
            "verification_tracking_events": dict(self.verification_tracking_events),
        }


__all__ = ["AdDocument", "MediaRendition", "is_mp4", "parse_duration_string"]
