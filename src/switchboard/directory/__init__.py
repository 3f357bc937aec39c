"""Directory service clients."""

from __future__ import annotations

import httpx
from loguru import logger

from switchboard.config import Settings

from .base import (
    DirectoryClient,
    DirectoryEntry,
    EntryId,
    Registration,
    clean_title,
    dedup_facilities,
    deduplicate_items,
)
from .http import HttpDirectory
from .stub import StubDirectory


def build_directory(settings: Settings, lang: str, client: httpx.AsyncClient | None = None) -> DirectoryClient:
    """Pick the real or the stub directory from configuration."""

    cfg = settings.swb_api
    if cfg is None:
        logger.debug("directory.using_stub")
        return StubDirectory(lang=lang)
    logger.debug("directory.using_http url={}", cfg.url)
    return HttpDirectory(
        cfg.url,
        username=cfg.username,
        password=cfg.password,
        lang=lang,
        client=client,
        timeout_seconds=settings.request_timeout_seconds,
    )


__all__ = [
    "DirectoryClient",
    "DirectoryEntry",
    "EntryId",
    "HttpDirectory",
    "Registration",
    "StubDirectory",
    "build_directory",
    "clean_title",
    "dedup_facilities",
    "deduplicate_items",
]
