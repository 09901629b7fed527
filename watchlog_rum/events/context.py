"""
Host environment description and context snapshots.

``HostEnvironment`` stands in for the page: the host updates it as the
user navigates (``navigate()``) and the agent snapshots it synchronously
whenever an event is built.
"""

from __future__ import annotations

import locale
import logging
import platform
import sys
from datetime import datetime
from typing import Optional
from urllib.parse import urlsplit

from watchlog_rum.events.models import PageInfo, Viewport
from watchlog_rum.routing import PathNormalizer, normalize_path

logger = logging.getLogger(__name__)


def origin_and_path(url: str) -> str:
    """Strip query string and fragment: ``scheme://host/path``."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}{parts.path}"
    return parts.path or url


def _default_language() -> Optional[str]:
    try:
        lang = locale.getlocale()[0]
    except (ValueError, TypeError):
        return None
    return lang.replace("_", "-") if lang else None


def _default_timezone() -> Optional[str]:
    try:
        return datetime.now().astimezone().tzname()
    except (OSError, ValueError, OverflowError):
        return None


def default_user_agent() -> str:
    from watchlog_rum import __version__

    return (
        f"watchlog-rum/{__version__} "
        f"Python/{sys.version_info.major}.{sys.version_info.minor} "
        f"({platform.system() or 'unknown'})"
    )


class HostEnvironment:
    """
    Mutable description of the current page, viewport and locale.

    Example:
        host = HostEnvironment(url="https://shop.example/")
        host.navigate("https://shop.example/cart", title="Cart")
        host.referrer  # "https://shop.example/"
    """

    def __init__(
        self,
        url: str = "",
        title: Optional[str] = None,
        referrer: Optional[str] = None,
        viewport: Optional[Viewport] = None,
        user_agent: Optional[str] = None,
        language: Optional[str] = None,
        timezone: Optional[str] = None,
    ):
        self.url = url
        self.title = title
        self.referrer = referrer
        self.viewport = viewport or Viewport()
        self.user_agent = user_agent or default_user_agent()
        self.language = language if language is not None else _default_language()
        self.timezone = timezone if timezone is not None else _default_timezone()

    @property
    def path(self) -> Optional[str]:
        if not self.url:
            return None
        try:
            return urlsplit(self.url).path or "/"
        except ValueError:
            return None

    def navigate(self, url: str, title: Optional[str] = None) -> None:
        """Move to ``url``; the previous url becomes the referrer."""
        if self.url:
            self.referrer = self.url
        self.url = url
        self.title = title

    def set_viewport(self, w: int, h: int, dpr: Optional[float] = None) -> None:
        self.viewport = Viewport(w=w, h=h, dpr=dpr)

    def snapshot_page(self, normalizer: Optional[PathNormalizer] = None) -> PageInfo:
        path = self.path
        return PageInfo(
            url=self.url,
            title=self.title,
            referrer=self.referrer or None,
            path=path,
            normalized_path=normalize_path(path, normalizer) if path else None,
        )
