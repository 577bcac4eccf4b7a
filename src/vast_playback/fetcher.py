"""Creative asset downloads to local storage."""

import contextlib
import os
import time
import uuid
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

import httpx

from .config import FetcherConfig
from .events import PlaybackLogEvents
from .exceptions import AssetStorageError, CreativeDownloadError
from .http_client_manager import get_download_http_client
from .log_config import LogCategory, get_context_logger
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, PlaybackMetrics


def url_extension(url: str) -> str:
    """File extension of the URL path including the dot, or ``""``.

    Example:
        >>> url_extension("https://cdn.example.com/ad/video.mp4?cb=1")
        '.mp4'
    """
    return PurePosixPath(urlsplit(url).path).suffix


def _discard(path: Path) -> None:
    with contextlib.suppress(OSError):
        path.unlink()


class CreativeFetcher:
    """Downloads remote assets into a local directory.

    Files are written under a temporary name and renamed to ``<uuid><ext>``
    once complete, keeping the remote extension since media and caption
    loaders dispatch on it. No retries are attempted here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: FetcherConfig | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.client = client
        self.config = config or FetcherConfig()
        self.metrics = metrics or NoOpMetrics()
        self.logger = get_context_logger("creative_fetcher", LogCategory.NETWORK)

    def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = get_download_http_client(timeout=self.config.timeout)
        return self.client

    async def fetch(self, url: str) -> Path:
        """Download ``url`` and return the local file path.

        Raises:
            CreativeDownloadError: On network failure or a non-2xx response
            AssetStorageError: If the file cannot be written or renamed
        """
        extension = url_extension(url)
        file_type = extension.lstrip(".").upper() or "UNKNOWN"
        labels = {MetricLabels.FILE_TYPE: file_type}
        download_dir = Path(self.config.download_dir)
        final_path = download_dir / f"{uuid.uuid4().hex}{extension}"
        partial_path = final_path.with_name(final_path.name + ".part")

        self.logger.info(PlaybackLogEvents.DOWNLOAD_STARTED, url=url[:100], file_type=file_type)
        start_time = time.perf_counter()
        size = 0

        try:
            download_dir.mkdir(parents=True, exist_ok=True)
            async with self._get_client().stream(
                "GET", url, timeout=self.config.timeout
            ) as response:
                if not 200 <= response.status_code < 300:
                    raise CreativeDownloadError(
                        f"Asset request returned HTTP {response.status_code}",
                        url=url,
                        http_status=response.status_code,
                    )
                with open(partial_path, "wb") as f:
                    async for chunk in response.aiter_bytes(self.config.chunk_size):
                        f.write(chunk)
                        size += len(chunk)
            os.replace(partial_path, final_path)
        except CreativeDownloadError as e:
            self._record_failure(e, url, labels)
            raise
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            _discard(partial_path)
            error = CreativeDownloadError(f"Asset download failed: {str(e)}", url=url)
            self._record_failure(error, url, labels)
            raise error from e
        except OSError as e:
            _discard(partial_path)
            error = AssetStorageError(
                f"Failed to store asset: {str(e)}", url=url, path=str(final_path)
            )
            self._record_failure(error, url, labels)
            raise error from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        self.metrics.increment(PlaybackMetrics.DOWNLOAD_COMPLETED, labels=labels)
        self.metrics.histogram(PlaybackMetrics.DOWNLOAD_BYTES, size, labels=labels)
        self.metrics.timing(PlaybackMetrics.DOWNLOAD_DURATION_MS, duration_ms, labels=labels)
        self.logger.info(
            PlaybackLogEvents.DOWNLOAD_COMPLETED,
            file_type=file_type,
            path=str(final_path),
            size=size,
            duration_ms=round(duration_ms, 1),
        )
        return final_path

    def _record_failure(self, error: Exception, url: str, labels: dict[str, str]) -> None:
        self.metrics.increment(
            PlaybackMetrics.DOWNLOAD_FAILED,
            labels={**labels, MetricLabels.ERROR_TYPE: type(error).__name__},
        )
        self.logger.error(PlaybackLogEvents.DOWNLOAD_FAILED, url=url[:100], error=str(error))


__all__ = ["CreativeFetcher", "url_extension"]
