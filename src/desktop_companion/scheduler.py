"""
Update Scheduler

Pushes sensor readings through the device webhook on a recurring timer.

Periodic sensors are pushed on every tick; static sensors only through
``push_static`` (at registration and at startup). Pushes inside a tick run
concurrently, one webhook call per sensor id, and the next timer is only
armed after every push of the current tick has finished.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .adapters.collector import SensorCollector
from .config_store import ConfigStore, PersistedState
from .exceptions import PushError, StorageError, WebhookGoneError
from .ha_client import HaClient
from .sensor_registry import SensorRegistry

logger = logging.getLogger("desktop_companion.scheduler")

ClientFactory = Callable[[str, str, Optional[str]], HaClient]


@dataclass
class PushResult:
    """Outcome of one push round."""
    pushed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    deregistered: bool = False


class UpdateScheduler:
    """
    Cancellable, reschedulable periodic sensor push.

    Timers are keyed by device id; arming a new period always cancels the
    existing timer for that device first.
    """

    def __init__(
        self,
        store: ConfigStore,
        registry: SensorRegistry,
        collector: SensorCollector,
        client_factory: ClientFactory,
        on_deregistered: Optional[Callable[[], None]] = None,
        max_workers: int = 4,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self._store = store
        self._registry = registry
        self._collector = collector
        self._client_factory = client_factory
        self._on_deregistered = on_deregistered
        self._timer_factory = timer_factory
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="SensorPush")

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}
        self._device_id: Optional[str] = None
        self._interval: Optional[float] = None
        self._running = False

        self.tick_count = 0
        self.push_count = 0
        self.failure_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval(self) -> Optional[float]:
        return self._interval

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, interval: Optional[float] = None) -> bool:
        """
        Start periodic pushes for the registered device.

        The first tick fires one interval from now.

        Returns:
            False when the device is not registered (nothing scheduled)
        """
        state = self._load_state()
        if state is None or not state.identity.is_registered or not state.identity.webhook_id:
            logger.warning("Scheduler not started: device is not registered")
            return False

        with self._lock:
            self._device_id = state.identity.device_id
            self._interval = float(interval if interval is not None else state.settings.update_interval)
            self._running = True
            self._arm()

        logger.info(f"Scheduler started (interval: {self._interval:g}s)")
        return True

    def reschedule(self, interval: float) -> None:
        """
        Change the period. Only the next tick moves; nothing fires now.
        """
        if interval <= 0:
            raise ValueError("Interval must be positive")
        with self._lock:
            self._interval = float(interval)
            if self._running:
                self._arm()
                logger.info(f"Scheduler rescheduled (interval: {interval:g}s)")

    def stop(self) -> None:
        """Cancel the pending tick. Safe to call repeatedly."""
        with self._lock:
            was_running = self._running
            self._running = False
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
        if was_running:
            logger.info("Scheduler stopped")

    def shutdown(self) -> None:
        """Stop and release the push worker pool."""
        self.stop()
        self._executor.shutdown(wait=True)

    def _arm(self) -> None:
        """Cancel any timer for this device and arm the next tick (lock held)."""
        key = self._device_id or ""
        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()

        timer = self._timer_factory(self._interval, self._on_timer)
        timer.daemon = True
        timer.name = f"SensorTick-{key[:8]}"
        self._timers[key] = timer
        timer.start()

    def _on_timer(self) -> None:
        if not self._running:
            return
        try:
            self.tick()
        except Exception as e:
            logger.error(f"Tick failed: {e}")
        with self._lock:
            if self._running:
                self._arm()

    # -------------------------------------------------------------------------
    # Pushing
    # -------------------------------------------------------------------------

    def tick(self) -> PushResult:
        """Push every enabled periodic sensor once."""
        self.tick_count += 1
        return self._push(updates_at_interval=True)

    def push_static(self) -> PushResult:
        """Push every enabled static sensor once."""
        return self._push(updates_at_interval=False)

    def _load_state(self) -> Optional[PersistedState]:
        try:
            return self._store.get()
        except StorageError as e:
            logger.error(f"Cannot load settings: {e}")
            return None

    def _push(self, updates_at_interval: bool) -> PushResult:
        result = PushResult()

        with self._tick_lock:
            state = self._load_state()
            if state is None or not state.identity.is_registered or not state.identity.webhook_id:
                logger.debug("Push skipped: device is not registered")
                return result

            sensor_ids = self._registry.enabled_ids(updates_at_interval=updates_at_interval)
            if not sensor_ids:
                return result

            client = self._client_factory(
                state.settings.server_url,
                state.settings.access_token,
                state.identity.webhook_id,
            )
            try:
                futures = {
                    sensor_id: self._executor.submit(self._push_one, client, sensor_id)
                    for sensor_id in sensor_ids
                }
                for sensor_id, future in futures.items():
                    try:
                        pushed = future.result()
                    except WebhookGoneError as e:
                        self.failure_count += 1
                        result.failed[sensor_id] = str(e)
                        result.deregistered = True
                        logger.warning(f"Push of {sensor_id} rejected, webhook gone: {e}")
                    except Exception as e:
                        self.failure_count += 1
                        result.failed[sensor_id] = str(e)
                        logger.warning(f"Push of {sensor_id} failed: {e}")
                    else:
                        if pushed:
                            result.pushed.append(sensor_id)
                            self.push_count += 1
            finally:
                client.close()

        if result.deregistered:
            self._handle_deregistered()

        kind = "periodic" if updates_at_interval else "static"
        logger.debug(
            f"Pushed {len(result.pushed)} {kind} sensors, {len(result.failed)} failed"
        )
        return result

    def _push_one(self, client: HaClient, sensor_id: str) -> bool:
        """Read one sensor and push its readings. Returns False if nothing to push."""
        if not self._collector.supports(sensor_id):
            # No adapter on this machine (e.g. no NVIDIA GPU)
            return False
        try:
            readings = self._collector.read(sensor_id)
        except Exception as e:
            raise PushError(f"Read failed: {e}", sensor_id=sensor_id) from e
        if not readings:
            return False
        client.update_sensors(readings, sensor_id=sensor_id)
        return True

    def _handle_deregistered(self) -> None:
        logger.warning("Hub reports the webhook no longer exists; stopping updates")
        self.stop()
        try:
            self._store.save(is_registered=False, webhook_id=None)
        except StorageError as e:
            logger.error(f"Could not persist de-registration: {e}")
        if self._on_deregistered is not None:
            try:
                self._on_deregistered()
            except Exception as e:
                logger.error(f"De-registration callback failed: {e}")
