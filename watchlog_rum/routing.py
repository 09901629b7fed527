"""
Route normalisation and late binding of routing integrations.

Routing tables are often only known after the host framework has finished
its own (possibly asynchronous) setup, after the agent already started.
``RouteBinding`` accepts the route manifest and path normaliser at any
time: before startup the values are cached and consumed by the next
``start_rum()``; afterwards they replace the live configuration in place.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, Sequence, Union

if TYPE_CHECKING:
    from watchlog_rum.config.base_config import RumConfig

logger = logging.getLogger(__name__)

PathNormalizer = Callable[[str], str]


class RouteResolver(Protocol):
    """Anything that maps a concrete path to its route template."""

    def normalize(self, path: str) -> str:
        ...


def normalize_path(path: Optional[str], normalizer: Optional[PathNormalizer]) -> str:
    """Apply ``normalizer`` to ``path``, falling back to the literal path."""
    if normalizer is not None and path:
        try:
            result = normalizer(path)
            if result:
                return result
        except Exception as e:
            logger.debug(f"[Routing] Normalizer failed for {path!r}: {e}")
    return path or "/"


class TemplateRouteResolver:
    """
    Match paths against route templates such as ``/users/:id``.

    ``:name`` matches one segment and a trailing ``*`` matches the rest of
    the path. When several templates match, the one with the most static
    segments wins. Bare catch-alls (``*``, ``/*``) never count as a
    template; unmatched paths come back unchanged.

    Example:
        resolver = TemplateRouteResolver(["/users/:id", "/users/me"])
        resolver.normalize("/users/42")   # "/users/:id"
        resolver.normalize("/users/me")   # "/users/me"
    """

    def __init__(self, templates: Sequence[str]):
        self.templates: List[str] = [
            t if t.startswith("/") else f"/{t}"
            for t in templates
            if t and t not in ("*", "/*")
        ]

    @staticmethod
    def _segments(path: str) -> List[str]:
        return [s for s in path.split("/") if s]

    def _score(self, template: str, path_segments: List[str]) -> Optional[int]:
        """Number of static segments matched, or None when no match."""
        tpl_segments = self._segments(template)
        wildcard = bool(tpl_segments) and tpl_segments[-1] == "*"
        if wildcard:
            tpl_segments = tpl_segments[:-1]
            if len(path_segments) < len(tpl_segments):
                return None
        elif len(path_segments) != len(tpl_segments):
            return None

        static = 0
        for tpl, seg in zip(tpl_segments, path_segments):
            if tpl.startswith(":"):
                continue
            if tpl != seg:
                return None
            static += 1
        return static

    def normalize(self, path: str) -> str:
        path_segments = self._segments(path)
        best: Optional[str] = None
        best_score = -1
        for template in self.templates:
            score = self._score(template, path_segments)
            if score is not None and score > best_score:
                best, best_score = template, score
        return best if best is not None else (path or "/")

    __call__ = normalize


class RouteBinding:
    """
    Holder for late-bound routing values.

    One binding is shared process-wide (``default_binding``) so setters can
    be called from framework code that has no reference to the agent.
    """

    def __init__(self) -> None:
        self.pending_manifest: Optional[List[str]] = None
        self.pending_normalizer: Optional[PathNormalizer] = None
        self.manifest_ready = False
        self._live_config: Optional["RumConfig"] = None

    def attach(self, config: "RumConfig") -> None:
        """Route subsequent setter calls to a started agent's config."""
        self._live_config = config
        if config.route_manifest is not None:
            self.manifest_ready = True

    def detach(self) -> None:
        self._live_config = None

    def set_route_manifest(self, routes: Sequence[str]) -> None:
        routes = list(routes)
        if self._live_config is not None:
            self._live_config.route_manifest = routes
        else:
            self.pending_manifest = routes
        self.manifest_ready = True
        logger.debug(f"[Routing] Route manifest set ({len(routes)} routes)")

    def set_path_normalizer(self, normalizer: Union[PathNormalizer, RouteResolver]) -> None:
        fn = getattr(normalizer, "normalize", normalizer)
        if self._live_config is not None:
            self._live_config.path_normalizer = fn
        else:
            self.pending_normalizer = fn

    def bind_templates(self, templates: Sequence[str]) -> TemplateRouteResolver:
        """Set the manifest and a template-matching normaliser in one call."""
        resolver = TemplateRouteResolver(templates)
        self.set_route_manifest(templates)
        self.set_path_normalizer(resolver.normalize)
        return resolver

    def reset(self) -> None:
        self.pending_manifest = None
        self.pending_normalizer = None
        self.manifest_ready = False
        self._live_config = None


default_binding = RouteBinding()
