"""Gateway services — singleton registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wakegate.config import Settings
    from wakegate.services.bypass import BypassSession
    from wakegate.services.health_monitor import HealthMonitor
    from wakegate.services.lifecycle import LifecycleOrchestrator

logger = logging.getLogger(__name__)

_health_monitor: HealthMonitor | None = None
_bypass_session: BypassSession | None = None
_orchestrator: LifecycleOrchestrator | None = None


def init_services(settings: Settings) -> None:
    """Create and wire up all service singletons.

    Raises InvalidAddressFormat for a bad MAC; nothing is registered then.
    """
    global _health_monitor, _bypass_session, _orchestrator

    from wakegate.services.bypass import BypassSession
    from wakegate.services.health_monitor import HealthMonitor
    from wakegate.services.lifecycle import LifecycleOrchestrator
    from wakegate.utils.network import build_wake_target

    target = build_wake_target(
        settings.mac_address,
        port=settings.port,
        ip_address=settings.ip_address,
        broadcast_address=settings.broadcast_address,
        interface=settings.network_interface,
    )

    health = HealthMonitor(settings.health_check, interval=settings.health_check_interval)
    orchestrator = LifecycleOrchestrator(
        health,
        target,
        timeout=settings.timeout,
        retry_attempts=settings.retry_attempts,
        retry_interval=settings.retry_interval,
        power_off_command=settings.power_off_command,
    )

    _health_monitor = health
    _bypass_session = BypassSession()
    _orchestrator = orchestrator

    logger.info(
        "Services initialized — %s via %s, %d destination(s), %s mode",
        settings.mac_address,
        settings.health_check,
        len(target.destinations),
        "control page" if settings.enable_control_page else "autonomous",
    )


async def shutdown_services() -> None:
    """Cancel background sequences and drop singletons."""
    global _health_monitor, _bypass_session, _orchestrator
    if _orchestrator:
        await _orchestrator.stop()
    _health_monitor = None
    _bypass_session = None
    _orchestrator = None


def get_health_monitor() -> HealthMonitor:
    if _health_monitor is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _health_monitor


def get_bypass_session() -> BypassSession:
    if _bypass_session is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _bypass_session


def get_orchestrator() -> LifecycleOrchestrator:
    if _orchestrator is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _orchestrator
