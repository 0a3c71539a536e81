"""Wake / power-off lifecycle state machine with progress reporting."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from wakegate.utils.wol import AllDestinationsFailed, WakeTarget, build_magic_packet, deliver

if TYPE_CHECKING:
    from wakegate.services.health_monitor import HealthMonitor

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    WAKING = "waking"
    POWERING_OFF = "powering_off"


IN_PROGRESS_MESSAGES: dict[Phase, str] = {
    Phase.WAKING: "Wake-up already in progress",
    Phase.POWERING_OFF: "Power-off already in progress",
}


@dataclass(frozen=True)
class OperationState:
    phase: Phase = Phase.IDLE
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    message: str = ""
    progress: int = 0

    @property
    def is_waking(self) -> bool:
        return self.phase == Phase.WAKING

    @property
    def is_powering_off(self) -> bool:
        return self.phase == Phase.POWERING_OFF


class LifecycleOrchestrator:
    """Runs wake and power-off sequences one at a time, publishing progress."""

    POLL_INTERVAL = 2  # seconds between probes while waiting for the service
    SETTLE_DELAY = 3  # seconds, power-off notice -> idle

    def __init__(
        self,
        health: HealthMonitor,
        target: WakeTarget,
        *,
        timeout: float = 30,
        retry_attempts: int = 3,
        retry_interval: float = 5,
        power_off_command: str = "",
        poll_interval: Optional[float] = None,
        settle_delay: Optional[float] = None,
    ):
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._health = health
        self._target = target
        self._packet = build_magic_packet(target.hardware_address)
        self._timeout = timeout
        self._retry_attempts = retry_attempts
        self._retry_interval = retry_interval
        self._power_off_command = power_off_command
        self._poll_interval = self.POLL_INTERVAL if poll_interval is None else poll_interval
        self._settle_delay = self.SETTLE_DELAY if settle_delay is None else settle_delay

        self._state = OperationState()
        self._lock = threading.Lock()
        self._task: asyncio.Task | None = None

    def state(self) -> OperationState:
        return self._state

    def request_wake(self) -> tuple[bool, str]:
        """Admit a wake sequence in the background."""
        accepted, message, _ = self._admit(Phase.WAKING, self._run_wake, "Wake-up started")
        return accepted, message

    def request_power_off(self) -> tuple[bool, str]:
        """Admit a power-off sequence in the background."""
        accepted, message, _ = self._admit(Phase.POWERING_OFF, self._run_power_off, "Power-off started")
        return accepted, message

    async def wake_and_wait(self) -> bool:
        """Wake inline (autonomous mode); joins a wake that is already running."""
        with self._lock:
            phase = self._state.phase
            task = self._task if phase == Phase.WAKING else None
        if phase == Phase.POWERING_OFF:
            logger.info("Not waking: power-off in progress")
            return False

        if task is None:
            _, _, task = self._admit(Phase.WAKING, self._run_wake, "Wake-up started")
            if task is None:
                return False

        # Shielded so a disconnecting client does not cancel the shared sequence
        return bool(await asyncio.shield(task))

    def _admit(
        self,
        phase: Phase,
        sequence: Callable[[], Awaitable[bool]],
        message: str,
    ) -> tuple[bool, str, Optional[asyncio.Task]]:
        with self._lock:
            current = self._state.phase
            if current != Phase.IDLE:
                logger.info("Rejected %s: %s", phase.value, IN_PROGRESS_MESSAGES[current])
                return False, IN_PROGRESS_MESSAGES[current], None

            self._state = OperationState(phase=phase, message=message, progress=0)
            task = asyncio.create_task(self._guarded(sequence), name=f"wakegate-{phase.value}")
            self._task = task

        logger.info("Admitted %s sequence", phase.value)
        return True, message, task

    def _publish(self, message: Optional[str] = None, progress: Optional[int] = None) -> None:
        with self._lock:
            changes: dict = {}
            if message is not None:
                changes["message"] = message
            if progress is not None:
                changes["progress"] = max(0, min(100, int(progress)))
            self._state = replace(self._state, **changes)

    def _finish(self, message: str, progress: Optional[int] = None) -> None:
        with self._lock:
            self._state = replace(
                self._state,
                phase=Phase.IDLE,
                message=message,
                progress=self._state.progress if progress is None else progress,
            )

    async def _guarded(self, sequence: Callable[[], Awaitable[bool]]) -> bool:
        """Ensure the phase returns to idle whatever happens."""
        try:
            return await sequence()
        except asyncio.CancelledError:
            self._finish("Operation cancelled")
            raise
        except Exception:
            logger.exception("Lifecycle sequence failed")
            self._finish("Operation failed unexpectedly")
            return False
        finally:
            if self._state.phase != Phase.IDLE:
                self._finish(self._state.message)

    async def _run_wake(self) -> bool:
        attempts = self._retry_attempts

        for attempt in range(1, attempts + 1):
            self._publish(
                f"Sending wake signal (attempt {attempt}/{attempts})",
                40 * (attempt - 1) // attempts,
            )
            logger.info("Wake attempt %d/%d", attempt, attempts)

            try:
                await asyncio.to_thread(deliver, self._packet, self._target)
            except AllDestinationsFailed as e:
                logger.warning("Failed to send WOL packet (attempt %d): %s", attempt, e)
                if attempt < attempts:
                    self._publish(
                        f"Failed to send wake signal (attempt {attempt}/{attempts}): {e}; "
                        f"retrying in {self._retry_interval:g}s"
                    )
                    await asyncio.sleep(self._retry_interval)
                    continue
                self._finish(f"Failed to send wake signal after {attempts} attempts: {e}")
                return False

            self._publish("Wake signal sent, waiting for service", 40 + 30 * attempt // attempts)

            if await self._wait_for_service():
                self._health.record(True)
                logger.info("Service is now online")
                self._finish("Service is online", 100)
                return True

            if attempt < attempts:
                logger.info("Service not responding, retrying in %gs", self._retry_interval)
                self._publish(
                    f"Service not responding (attempt {attempt}/{attempts}), "
                    f"retrying in {self._retry_interval:g}s"
                )
                await asyncio.sleep(self._retry_interval)

        logger.warning("Service did not come online after %d attempts", attempts)
        self._finish(f"Service did not come online after {attempts} attempts")
        return False

    async def _wait_for_service(self) -> bool:
        """Probe until healthy or ``timeout`` elapses; always probes at least once."""
        loop = asyncio.get_running_loop()
        start = loop.time()
        deadline = start + self._timeout

        while True:
            if await self._health.probe():
                return True

            now = loop.time()
            remaining = deadline - now
            if remaining <= 0:
                return False

            self._publish(
                f"Waiting for service to respond ({remaining:.0f}s remaining)",
                min(95, 70 + int(25 * (now - start) / self._timeout)),
            )
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def _run_power_off(self) -> bool:
        # Picked up by whatever executes the shutdown (log watcher, webhook, cron)
        logger.warning("Power-off requested: %s", self._power_off_command)
        self._publish(f"Shutdown signaled: {self._power_off_command}", 50)

        await asyncio.sleep(self._settle_delay)

        self._finish("Power-off signal sent", 100)
        return True

    async def stop(self) -> None:
        """Cancel an outstanding sequence (process shutdown only)."""
        task = self._task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
