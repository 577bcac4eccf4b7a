"""
Viewability measurement session contract.

The playback engine talks to measurement only through ``MeasurementAdapter``
and the ``MeasurementSession`` / ``MediaEvents`` objects it creates. Two
adapters exist: ``OmidMeasurementAdapter`` bridging a host-provided
measurement SDK, and ``NoOpMeasurementAdapter`` used when no SDK is
available. Both accept the same call sequence.
"""

from abc import ABC, abstractmethod
from typing import Any, Protocol

from .events import PlaybackLogEvents
from .log_config import LogCategory, get_context_logger


MEDIA_CONTROLS_PURPOSE = "mediaControls"


class MediaEvents(ABC):
    """Video media events published into a measurement session."""

    @abstractmethod
    def start(self, duration: float, volume: float) -> None: ...

    @abstractmethod
    def first_quartile(self) -> None: ...

    @abstractmethod
    def midpoint(self) -> None: ...

    @abstractmethod
    def third_quartile(self) -> None: ...

    @abstractmethod
    def complete(self) -> None: ...

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def resume(self) -> None: ...

    @abstractmethod
    def volume_change(self, volume: float) -> None: ...

    @abstractmethod
    def ad_user_interaction(self, interaction: str = "click") -> None: ...


class MeasurementSession(ABC):
    """One measurement session bound to an ad view."""

    @property
    @abstractmethod
    def media_events(self) -> MediaEvents: ...

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def add_obstruction(self, view: Any, purpose: str = MEDIA_CONTROLS_PURPOSE) -> None:
        """Register a view drawn over the ad (controls) as a friendly obstruction."""

    @abstractmethod
    def fire_ad_loaded(self) -> None: ...

    @abstractmethod
    def fire_impression(self) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...


class MeasurementAdapter(ABC):
    """Factory for measurement sessions."""

    @abstractmethod
    def create_session(
        self, ad_view: Any, vendor_key: str, script_url: str, parameters: str
    ) -> MeasurementSession: ...


# No-op implementation


class NoOpMediaEvents(MediaEvents):
    def __init__(self, logger):
        self.logger = logger

    def start(self, duration: float, volume: float) -> None:
        self.logger.debug("MediaEvents.start", duration=duration, volume=volume)

    def first_quartile(self) -> None:
        self.logger.debug("MediaEvents.first_quartile")

    def midpoint(self) -> None:
        self.logger.debug("MediaEvents.midpoint")

    def third_quartile(self) -> None:
        self.logger.debug("MediaEvents.third_quartile")

    def complete(self) -> None:
        self.logger.debug("MediaEvents.complete")

    def pause(self) -> None:
        self.logger.debug("MediaEvents.pause")

    def resume(self) -> None:
        self.logger.debug("MediaEvents.resume")

    def volume_change(self, volume: float) -> None:
        self.logger.debug("MediaEvents.volume_change", volume=volume)

    def ad_user_interaction(self, interaction: str = "click") -> None:
        self.logger.debug("MediaEvents.ad_user_interaction", interaction=interaction)


class NoOpMeasurementSession(MeasurementSession):
    """Session stand-in that only logs."""

    def __init__(self, vendor_key: str, script_url: str):
        self.logger = get_context_logger("measurement_stub", LogCategory.MEASUREMENT).bind(
            vendor_key=vendor_key
        )
        self._media_events = NoOpMediaEvents(self.logger)
        self.logger.info("Measurement stub session created", script_url=script_url)

    @property
    def media_events(self) -> MediaEvents:
        return self._media_events

    def start(self) -> None:
        self.logger.info(PlaybackLogEvents.MEASUREMENT_STARTED, stub=True)

    def add_obstruction(self, view: Any, purpose: str = MEDIA_CONTROLS_PURPOSE) -> None:
        self.logger.debug("Obstruction added", view_type=type(view).__name__, purpose=purpose)

    def fire_ad_loaded(self) -> None:
        self.logger.info("Ad loaded", stub=True)

    def fire_impression(self) -> None:
        self.logger.info("Impression", stub=True)

    def stop(self) -> None:
        self.logger.info(PlaybackLogEvents.MEASUREMENT_STOPPED, stub=True)


class NoOpMeasurementAdapter(MeasurementAdapter):
    def create_session(self, ad_view, vendor_key, script_url, parameters) -> MeasurementSession:
        return NoOpMeasurementSession(vendor_key, script_url)


# SDK bridge


class SdkAdSession(Protocol):
    """Session object returned by a measurement SDK."""

    media_events: Any

    def start(self) -> None: ...

    def add_friendly_obstruction(self, view: Any, purpose: str, reason: str) -> None: ...

    def loaded(self) -> None: ...

    def impression_occurred(self) -> None: ...

    def finish(self) -> None: ...


class MeasurementSdk(Protocol):
    """Host-provided viewability SDK."""

    def create_ad_session(
        self,
        *,
        ad_view: Any,
        partner_name: str,
        partner_version: str,
        vendor_key: str,
        script_url: str,
        parameters: str,
    ) -> SdkAdSession: ...


class _SdkMediaEvents(MediaEvents):
    """Translates MediaEvents calls onto the SDK's media event publisher."""

    def __init__(self, publisher: Any):
        self._publisher = publisher

    def start(self, duration: float, volume: float) -> None:
        self._publisher.start(duration, volume)

    def first_quartile(self) -> None:
        self._publisher.first_quartile()

    def midpoint(self) -> None:
        self._publisher.midpoint()

    def third_quartile(self) -> None:
        self._publisher.third_quartile()

    def complete(self) -> None:
        self._publisher.complete()

    def pause(self) -> None:
        self._publisher.pause()

    def resume(self) -> None:
        self._publisher.resume()

    def volume_change(self, volume: float) -> None:
        self._publisher.volume_change(volume)

    def ad_user_interaction(self, interaction: str = "click") -> None:
        self._publisher.ad_user_interaction(interaction)


class OmidMeasurementSession(MeasurementSession):
    def __init__(self, sdk_session: SdkAdSession, vendor_key: str):
        self._session = sdk_session
        self._media_events = _SdkMediaEvents(sdk_session.media_events)
        self.logger = get_context_logger("measurement_session", LogCategory.MEASUREMENT).bind(
            vendor_key=vendor_key
        )

    @property
    def media_events(self) -> MediaEvents:
        return self._media_events

    def start(self) -> None:
        self.logger.info(PlaybackLogEvents.MEASUREMENT_STARTED)
        self._session.start()

    def add_obstruction(self, view: Any, purpose: str = MEDIA_CONTROLS_PURPOSE) -> None:
        self.logger.debug("Adding obstruction", purpose=purpose)
        self._session.add_friendly_obstruction(view, purpose, "Media Controls over video")

    def fire_ad_loaded(self) -> None:
        self.logger.info("Firing ad loaded")
        self._session.loaded()

    def fire_impression(self) -> None:
        self.logger.info("Firing impression")
        self._session.impression_occurred()

    def stop(self) -> None:
        self.logger.info(PlaybackLogEvents.MEASUREMENT_STOPPED)
        self._session.finish()


class OmidMeasurementAdapter(MeasurementAdapter):
    """Adapter creating sessions through a ``MeasurementSdk``."""

    def __init__(self, sdk: MeasurementSdk, partner_name: str, partner_version: str):
        self.sdk = sdk
        self.partner_name = partner_name
        self.partner_version = partner_version

    def create_session(self, ad_view, vendor_key, script_url, parameters) -> MeasurementSession:
        sdk_session = self.sdk.create_ad_session(
            ad_view=ad_view,
            partner_name=self.partner_name,
            partner_version=self.partner_version,
            vendor_key=vendor_key,
            script_url=script_url,
            parameters=parameters,
        )
        return OmidMeasurementSession(sdk_session, vendor_key)


def create_measurement_adapter(
    enabled: bool = True,
    sdk: MeasurementSdk | None = None,
    partner_name: str = "vast-playback",
    partner_version: str = "1.0.0",
) -> MeasurementAdapter:
    """Select the measurement adapter once, at construction time.

    Example:
        >>> isinstance(create_measurement_adapter(sdk=None), NoOpMeasurementAdapter)
        True
    """
    if enabled and sdk is not None:
        return OmidMeasurementAdapter(sdk, partner_name, partner_version)
    return NoOpMeasurementAdapter()


__all__ = [
    "MediaEvents",
    "MeasurementSession",
    "MeasurementAdapter",
    "NoOpMediaEvents",
    "NoOpMeasurementSession",
    "NoOpMeasurementAdapter",
    "SdkAdSession",
    "MeasurementSdk",
    "OmidMeasurementSession",
    "OmidMeasurementAdapter",
    "create_measurement_adapter",
    "MEDIA_CONTROLS_PURPOSE",
]
