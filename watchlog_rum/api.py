"""
Process-wide entry points.

``start_rum()`` creates at most one running agent per process; the
module-level functions forward to it and quietly do nothing before it is
started or after it is shut down. Route setters work at any time: before
start they are cached and consumed by ``start_rum()``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence, Union

from watchlog_rum.agent import RumAgent, SessionInfo
from watchlog_rum.config.base_config import RumConfig, resolve_config
from watchlog_rum.routing import PathNormalizer, RouteResolver, default_binding

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON ACCESS
# =============================================================================

_agent: Optional[RumAgent] = None


def start_rum(
    config: Optional[Union[RumConfig, Dict[str, Any]]] = None,
    **kwargs: Any,
) -> Optional[RumAgent]:
    """
    Start the process-wide agent, or return the one already running.

    Args:
        config: A RumConfig or a mapping of options.
        **kwargs: Option overrides, plus the ``RumAgent`` collaborators
            (``storage``, ``transport``, ``beacon``, ``host``,
            ``collectors``, ``clock``, ``rng``, ``register_atexit``).

    Returns:
        The running agent, or None if startup failed.
    """
    global _agent

    if _agent is not None and not _agent.closed:
        return _agent

    agent_options = {
        key: kwargs.pop(key)
        for key in (
            "storage",
            "transport",
            "beacon",
            "host",
            "collectors",
            "clock",
            "rng",
            "register_atexit",
        )
        if key in kwargs
    }

    try:
        resolved = resolve_config(config, routes=default_binding, **kwargs)
        agent = RumAgent(resolved, routes=default_binding, **agent_options)
    except Exception as e:
        logger.warning(f"[RUM] Startup failed, telemetry disabled: {e}")
        return None

    _agent = agent
    agent.add_teardown(lambda: _release(agent))
    agent.start()
    return agent


def _release(agent: RumAgent) -> None:
    global _agent
    if _agent is agent:
        _agent = None


def get_agent() -> Optional[RumAgent]:
    """Get the running agent. Returns None if not started."""
    return _agent


def shutdown() -> None:
    if _agent is not None:
        _agent.shutdown()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def track_page_view(
    extra: Optional[Dict[str, Any]] = None,
    nav_type: Optional[str] = None,
) -> None:
    if _agent is not None:
        _agent.track_page_view(extra, nav_type)


def track_event(name: str, data: Any = None) -> None:
    if _agent is not None:
        _agent.track_event(name, data)


def identify(user_id: str, traits: Optional[Dict[str, Any]] = None) -> None:
    if _agent is not None:
        _agent.identify(user_id, traits)


def set_context(extra: Optional[Dict[str, Any]]) -> None:
    if _agent is not None:
        _agent.set_context(extra)


def track_error(error: Union[BaseException, str], source: Optional[str] = None) -> None:
    if _agent is not None:
        _agent.track_error(error, source)


def flush() -> None:
    if _agent is not None:
        _agent.flush()


def get_session_info() -> Optional[SessionInfo]:
    if _agent is None:
        return None
    return _agent.get_session_info()


def record_activity() -> None:
    if _agent is not None:
        _agent.record_activity()


def on_page_hide() -> None:
    if _agent is not None:
        _agent.on_page_hide()


# =============================================================================
# ROUTING
# =============================================================================

def set_route_manifest(routes: Sequence[str]) -> None:
    """Register the app's route templates; unblocks the initial page view."""
    try:
        default_binding.set_route_manifest(routes)
    except Exception as e:
        logger.debug(f"[RUM] set_route_manifest failed: {e}")


def set_path_normalizer(normalizer: Union[PathNormalizer, RouteResolver]) -> None:
    """Install the function that maps a concrete path to its route template."""
    try:
        default_binding.set_path_normalizer(normalizer)
    except Exception as e:
        logger.debug(f"[RUM] set_path_normalizer failed: {e}")
