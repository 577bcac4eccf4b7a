"""Playback exception hierarchy.

Provides specific exception types for the failure modes of ad loading and
playback. Parsing never raises to callers (an incomplete AdDocument is the
error signal) and beacon delivery never raises at all; the types below cover
everything that does propagate.

Exception Hierarchy:
    VastPlaybackError (base)
    ├── VastParseError
    │   └── VastDurationError
    ├── NoPlayableAdError
    ├── InvalidSourceError
    ├── AssetError
    │   ├── CreativeDownloadError
    │   └── AssetStorageError
    ├── CaptionLoadError
    ├── MediaLoadError
    └── AdLoadError
"""

from typing import Optional


class VastPlaybackError(Exception):
    """Base exception for all playback errors.

    All package-specific exceptions inherit from this class to allow
    catching them with a single except clause.
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        """Initialize playback exception.

        Args:
            message: Error message
            context: Optional context dictionary for debugging
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation with context."""
        if self.context:
            context_str = "; ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


# Parsing Errors

class VastParseError(VastPlaybackError):
    """Base exception for VAST value parsing errors."""

    pass


class VastDurationError(VastParseError):
    """Raised when a ``<Duration>`` value cannot be interpreted.

    Attributes:
        duration_text: The duration string that failed to parse
    """

    def __init__(
        self,
        message: str,
        duration_text: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if duration_text:
            context["duration_text"] = duration_text
        super().__init__(message, context)
        self.duration_text = duration_text


class NoPlayableAdError(VastPlaybackError):
    """Raised when a parsed document has no usable media rendition."""

    pass


class InvalidSourceError(VastPlaybackError):
    """Raised when a VAST source URL cannot be used.

    Attributes:
        source: The rejected source string
    """

    def __init__(self, message: str, source: Optional[str] = None, context: Optional[dict] = None):
        if context is None:
            context = {}
        if source:
            context["source"] = source[:100]
        super().__init__(message, context)
        self.source = source


# Asset Errors

class AssetError(VastPlaybackError):
    """Base exception for creative asset acquisition errors.

    Attributes:
        url: Remote URL of the asset
    """

    def __init__(self, message: str, url: Optional[str] = None, context: Optional[dict] = None):
        if context is None:
            context = {}
        if url:
            context["url"] = url[:100]  # Redact long URLs
        super().__init__(message, context)
        self.url = url


class CreativeDownloadError(AssetError):
    """Raised when downloading an asset fails on the network or HTTP level.

    Attributes:
        http_status: HTTP status code if a response was received
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if http_status:
            context["http_status"] = http_status
        super().__init__(message, url=url, context=context)
        self.http_status = http_status


class AssetStorageError(AssetError):
    """Raised when a downloaded asset cannot be written or moved locally.

    Attributes:
        path: Local destination path
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        path: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if path:
            context["path"] = path
        super().__init__(message, url=url, context=context)
        self.path = path


# Playback Errors

class CaptionLoadError(VastPlaybackError):
    """Raised when a caption file cannot be read. Never escapes the engine."""

    pass


class MediaLoadError(VastPlaybackError):
    """Raised (and reported to listeners) when the media primitive fails to load.

    Attributes:
        source: Local media source that failed
    """

    def __init__(self, message: str, source: Optional[str] = None, context: Optional[dict] = None):
        if context is None:
            context = {}
        if source:
            context["source"] = source
        super().__init__(message, context)
        self.source = source


class AdLoadError(VastPlaybackError):
    """Single terminal error exposed by the ad session orchestrator.

    Attributes:
        cause: The exception that aborted the load pipeline
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if cause is not None:
            context["cause"] = type(cause).__name__
        super().__init__(message, context)
        self.cause = cause


__all__ = [
    "VastPlaybackError",
    "VastParseError",
    "VastDurationError",
    "NoPlayableAdError",
    "InvalidSourceError",
    "AssetError",
    "CreativeDownloadError",
    "AssetStorageError",
    "CaptionLoadError",
    "MediaLoadError",
    "AdLoadError",
]
