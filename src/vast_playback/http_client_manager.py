"""HTTP client manager for connection pooling and lifecycle management."""

from typing import Any

import httpx

from .settings import get_settings


# Global HTTP client instances (keyed by config tuple)
_beacon_http_clients: dict[tuple[Any, ...], httpx.AsyncClient] = {}
_download_http_clients: dict[tuple[Any, ...], httpx.AsyncClient] = {}


def _load_http_config(kind: str) -> dict[str, Any]:
    """Load HTTP client configuration for a client kind ("beacon" or "download")."""
    settings = get_settings()
    http_cfg = getattr(settings, "http", None) or {}
    kind_cfg = http_cfg.get(kind, {}) if isinstance(http_cfg, dict) else {}

    def _get(key: str, default: Any) -> Any:
        if key in kind_cfg:
            return kind_cfg[key]
        if isinstance(http_cfg, dict) and key in http_cfg:
            return http_cfg[key]
        return default

    return {
        "timeout": _get("timeout", 10.0 if kind == "beacon" else 60.0),
        "max_connections": _get("max_connections", 50 if kind == "beacon" else 10),
        "max_keepalive_connections": _get(
            "max_keepalive_connections", 20 if kind == "beacon" else 5
        ),
        "keepalive_expiry": _get("keepalive_expiry", 5.0),
        "verify": _get("verify_ssl", True),
        "follow_redirects": _get("follow_redirects", True),
    }


def _client_cache_key(kind: str, cfg: dict[str, Any]) -> tuple[Any, ...]:
    return (
        kind,
        cfg.get("verify"),
        cfg.get("timeout"),
        cfg.get("max_connections"),
        cfg.get("max_keepalive_connections"),
        cfg.get("keepalive_expiry"),
        cfg.get("follow_redirects"),
    )


def _get_client(
    kind: str,
    cache: dict[tuple[Any, ...], httpx.AsyncClient],
    overrides: dict[str, Any],
) -> httpx.AsyncClient:
    cfg = _load_http_config(kind)
    cfg.update({k: v for k, v in overrides.items() if v is not None})

    key = _client_cache_key(kind, cfg)
    client = cache.get(key)
    if client is None or client.is_closed:
        client = httpx.AsyncClient(
            timeout=cfg["timeout"],
            limits=httpx.Limits(
                max_keepalive_connections=cfg["max_keepalive_connections"],
                max_connections=cfg["max_connections"],
                keepalive_expiry=cfg["keepalive_expiry"],
            ),
            verify=cfg["verify"],
            follow_redirects=cfg["follow_redirects"],
        )
        cache[key] = client
    return client


def get_beacon_http_client(
    *, timeout: float | None = None, ssl_verify: bool | None = None
) -> httpx.AsyncClient:
    """Get the pooled client used for tracking beacons."""
    return _get_client(
        "beacon", _beacon_http_clients, {"timeout": timeout, "verify": ssl_verify}
    )


def get_download_http_client(
    *, timeout: float | None = None, ssl_verify: bool | None = None
) -> httpx.AsyncClient:
    """Get the pooled client used for VAST documents and creative downloads."""
    return _get_client(
        "download", _download_http_clients, {"timeout": timeout, "verify": ssl_verify}
    )


async def close_http_clients() -> None:
    """Close every pooled client."""
    for cache in (_beacon_http_clients, _download_http_clients):
        clients = list(cache.values())
        cache.clear()
        for client in clients:
            await client.aclose()


__all__ = [
    "get_beacon_http_client",
    "get_download_http_client",
    "close_http_clients",
]
