"""
Tests for the Update Scheduler

Covers:
    - Periodic vs static pushes
    - Per-sensor failure isolation
    - Webhook-gone de-registration
    - Enablement changes between ticks
    - Timer arming, rescheduling and cancellation
"""

import time
import threading
import pytest

from desktop_companion.adapters.collector import SensorCollector
from desktop_companion.const import SENSOR_CATALOG
from desktop_companion.exceptions import PushError, WebhookGoneError
from desktop_companion.scheduler import UpdateScheduler
from desktop_companion.sensor_registry import SensorRegistry

from conftest import FakeAdapter

PERIODIC = [s for s, periodic in SENSOR_CATALOG.items() if periodic]
STATIC = [s for s, periodic in SENSOR_CATALOG.items() if not periodic]


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture(autouse=True)
def reset_timers():
    FakeTimer.created = []
    yield


def make_scheduler(store, collector, hub, **kwargs):
    kwargs.setdefault("timer_factory", FakeTimer)
    return UpdateScheduler(store, SensorRegistry(store), collector, hub.factory, **kwargs)


class TestPushing:
    """What gets pushed when."""

    def test_tick_pushes_periodic_only(self, registered_store, collector, hub):
        """Test a tick pushes every enabled periodic sensor and nothing static."""
        result = make_scheduler(registered_store, collector, hub).tick()
        assert sorted(hub.pushes) == sorted(PERIODIC)
        assert sorted(result.pushed) == sorted(PERIODIC)
        assert result.failed == {}

    def test_push_static(self, registered_store, collector, hub):
        """Test push_static pushes static sensors only."""
        make_scheduler(registered_store, collector, hub).push_static()
        assert sorted(hub.pushes) == sorted(STATIC)

    def test_static_not_repeated_by_ticks(self, registered_store, collector, hub):
        """Test three ticks after startup never push a static sensor again."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.push_static()
        for _ in range(3):
            scheduler.tick()
        for sensor_id in STATIC:
            assert hub.pushes.count(sensor_id) == 1
        for sensor_id in PERIODIC:
            assert hub.pushes.count(sensor_id) == 3

    def test_disabled_static_not_pushed(self, registered_store, collector, hub):
        """Test static pushes honor enablement."""
        SensorRegistry(registered_store).toggle("hostname", False)
        make_scheduler(registered_store, collector, hub).push_static()
        assert "hostname" not in hub.pushes

    def test_toggle_applies_to_next_tick(self, registered_store, collector, hub):
        """Test disabling a sensor removes it from the following tick."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.tick()
        assert "cpu_usage" in hub.pushes

        SensorRegistry(registered_store).toggle("cpu_usage", False)
        hub.pushes.clear()
        scheduler.tick()
        assert "cpu_usage" not in hub.pushes
        assert "memory_usage" in hub.pushes

    def test_not_registered_pushes_nothing(self, configured_store, collector, hub):
        """Test an unregistered device never contacts the hub."""
        result = make_scheduler(configured_store, collector, hub).tick()
        assert hub.clients == []
        assert result.pushed == []

    def test_client_uses_persisted_webhook(self, registered_store, collector, hub):
        """Test pushes go through the stored webhook id."""
        make_scheduler(registered_store, collector, hub).tick()
        assert hub.clients[0].webhook_id == "hook-1"
        assert hub.clients[0].closed

    def test_empty_readings_not_pushed(self, registered_store, hub):
        """Test sensors with nothing to report are skipped quietly."""
        adapter = FakeAdapter()
        adapter.collect = lambda sensor_id: [] if sensor_id == "battery" else FakeAdapter.collect(adapter, sensor_id)
        collector = SensorCollector(adapters=[adapter])
        result = make_scheduler(registered_store, collector, hub).tick()
        assert "battery" not in hub.pushes
        assert "battery" not in result.failed


class TestIsolation:
    """One failing sensor never blocks the others."""

    def test_missing_hardware_is_not_a_failure(self, registered_store, hub):
        """Test a sensor with no adapter on this machine is skipped quietly."""

        class NoGpuAdapter(FakeAdapter):
            SENSOR_IDS = tuple(s for s in SENSOR_CATALOG if s != "gpu")

        collector = SensorCollector(adapters=[NoGpuAdapter()])
        scheduler = make_scheduler(registered_store, collector, hub)
        for _ in range(3):
            result = scheduler.tick()
            assert "gpu" not in result.failed
            assert "gpu" not in result.pushed

        assert scheduler.failure_count == 0
        assert "gpu" not in hub.pushes
        assert "cpu_usage" in hub.pushes

    def test_push_failure_isolated(self, registered_store, collector, hub):
        """Test a transient push error only affects its own sensor."""
        hub.push_errors["cpu_usage"] = PushError("500", sensor_id="cpu_usage", status=500)
        scheduler = make_scheduler(registered_store, collector, hub)
        result = scheduler.tick()

        assert "cpu_usage" in result.failed
        assert sorted(result.pushed) == sorted(s for s in PERIODIC if s != "cpu_usage")
        assert result.deregistered is False
        assert scheduler.failure_count == 1

    def test_read_failure_isolated(self, registered_store, hub):
        """Test an unreadable sensor does not stop the rest."""
        collector = SensorCollector(adapters=[FakeAdapter(failing={"gpu"})])
        result = make_scheduler(registered_store, collector, hub).tick()
        assert "gpu" in result.failed
        assert "gpu" not in hub.pushes
        assert "cpu_usage" in hub.pushes

    def test_transient_failure_keeps_registration(self, registered_store, collector, hub):
        """Test non-404/410 errors never de-register."""
        hub.push_errors["network"] = PushError("503", sensor_id="network", status=503)
        make_scheduler(registered_store, collector, hub).tick()
        assert registered_store.get().identity.is_registered is True


class TestWebhookGone:
    """The hub forgot the device."""

    def test_gone_stops_and_deregisters(self, registered_store, collector, hub):
        """Test a 410 stops the scheduler and clears the registration."""
        hub.push_errors["cpu_usage"] = WebhookGoneError("410", sensor_id="cpu_usage", status=410)
        callback_calls = []
        scheduler = make_scheduler(
            registered_store, collector, hub, on_deregistered=lambda: callback_calls.append(1)
        )
        scheduler.start()
        result = scheduler.tick()

        assert result.deregistered is True
        assert not scheduler.is_running
        identity = registered_store.get().identity
        assert identity.is_registered is False
        assert identity.webhook_id is None
        assert identity.device_id == "device-1"
        assert callback_calls == [1]
        assert "cpu_usage" in result.failed
        assert scheduler.failure_count == 1

    def test_no_pushes_after_gone(self, registered_store, collector, hub):
        """Test later ticks do nothing once de-registered."""
        hub.push_errors["cpu_usage"] = WebhookGoneError("404", sensor_id="cpu_usage", status=404)
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.tick()
        clients_before = len(hub.clients)
        scheduler.tick()
        assert len(hub.clients) == clients_before


class TestTimer:
    """Timer arming and cancellation."""

    def test_start_requires_registration(self, configured_store, collector, hub):
        """Test start() refuses to run for an unregistered device."""
        scheduler = make_scheduler(configured_store, collector, hub)
        assert scheduler.start() is False
        assert FakeTimer.created == []

    def test_start_arms_one_interval_ahead(self, registered_store, collector, hub):
        """Test the first tick is scheduled one interval from now."""
        scheduler = make_scheduler(registered_store, collector, hub)
        assert scheduler.start() is True
        assert FakeTimer.created[0].interval == 60
        assert FakeTimer.created[0].started
        assert hub.pushes == []

    def test_fire_pushes_and_rearms(self, registered_store, collector, hub):
        """Test a timer firing pushes and arms the next tick."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.start(interval=5)
        FakeTimer.created[0].fire()
        assert sorted(hub.pushes) == sorted(PERIODIC)
        assert len(FakeTimer.created) == 2
        assert FakeTimer.created[1].interval == 5
        assert scheduler.tick_count == 1

    def test_reschedule_does_not_fire(self, registered_store, collector, hub):
        """Test an interval change replaces the timer without pushing now."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.start(interval=60)
        scheduler.reschedule(10)

        assert FakeTimer.created[0].cancelled
        assert FakeTimer.created[1].interval == 10
        assert hub.pushes == []

    def test_reschedule_when_stopped(self, registered_store, collector, hub):
        """Test rescheduling a stopped scheduler only stores the interval."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.reschedule(10)
        assert scheduler.interval == 10
        assert FakeTimer.created == []

    def test_reschedule_rejects_non_positive(self, registered_store, collector, hub):
        """Test a zero interval is rejected."""
        with pytest.raises(ValueError):
            make_scheduler(registered_store, collector, hub).reschedule(0)

    def test_restart_keeps_single_timer(self, registered_store, collector, hub):
        """Test starting twice leaves exactly one live timer."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.start()
        scheduler.start()
        live = [t for t in FakeTimer.created if not t.cancelled]
        assert len(live) == 1

    def test_stop_is_idempotent(self, registered_store, collector, hub):
        """Test stop() cancels the timer and can be repeated."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.start()
        scheduler.stop()
        scheduler.stop()
        assert FakeTimer.created[0].cancelled
        assert not scheduler.is_running

    def test_fire_after_stop_does_nothing(self, registered_store, collector, hub):
        """Test a timer racing with stop() does not push."""
        scheduler = make_scheduler(registered_store, collector, hub)
        scheduler.start()
        timer = FakeTimer.created[0]
        scheduler.stop()
        timer.function()
        assert hub.pushes == []


class TestRealTimer:
    """End-to-end timing with threading.Timer."""

    def test_short_interval_ticks(self, registered_store, collector, hub):
        """Test a short interval produces repeated ticks until stopped."""
        scheduler = UpdateScheduler(
            registered_store, SensorRegistry(registered_store), collector, hub.factory
        )
        scheduler.start(interval=0.05)
        deadline = time.monotonic() + 5
        while scheduler.tick_count < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        scheduler.shutdown()
        time.sleep(0.1)

        assert scheduler.tick_count >= 2
        ticks = scheduler.tick_count
        time.sleep(0.15)
        assert scheduler.tick_count == ticks

    def test_pushes_within_tick_run_concurrently(self, registered_store, hub):
        """Test a slow sensor does not serialize the other pushes."""
        release = threading.Event()

        class SlowAdapter(FakeAdapter):
            def collect(self, sensor_id):
                if sensor_id == "cpu_usage":
                    release.wait(2)
                return super().collect(sensor_id)

        collector = SensorCollector(adapters=[SlowAdapter()])
        scheduler = UpdateScheduler(
            registered_store, SensorRegistry(registered_store), collector, hub.factory, max_workers=4
        )

        worker = threading.Thread(target=scheduler.tick)
        worker.start()
        deadline = time.monotonic() + 2
        while len(hub.pushes) < len(PERIODIC) - 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        pushed_while_blocked = list(hub.pushes)
        release.set()
        worker.join()
        scheduler.shutdown()

        assert "cpu_usage" not in pushed_while_blocked
        assert len(pushed_while_blocked) == len(PERIODIC) - 1
