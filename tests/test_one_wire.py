import asyncio

import pytest

from broadcast import BroadcastChannel
from hardware import HardwareType, SourceType
from one_wire import OneWireScanner, TemperaturePoller, millidegrees_to_celsius, parse_resolution
from services.shutdown import ShutdownCoordinator


def test_millidegrees_conversion():
    assert millidegrees_to_celsius("1234") == pytest.approx(1.234)
    assert millidegrees_to_celsius("-1250\n") == pytest.approx(-1.25)
    assert millidegrees_to_celsius("garbage") is None
    assert millidegrees_to_celsius("nan") is None


def test_resolution_must_fit_a_byte():
    assert parse_resolution("12\n") == 12
    assert parse_resolution("255") == 255
    assert parse_resolution("256") is None
    assert parse_resolution("-1") is None
    assert parse_resolution("twelve") is None


def test_read_all_returns_valid_sensors(sensor_tree):
    base, add_sensor = sensor_tree
    add_sensor("28-00000a0b0c0d", temperature="1234\n", resolution="12\n")

    readings = OneWireScanner(base).read_all()

    assert len(readings) == 1
    reading = readings[0]
    assert reading.meta.id == "28-00000a0b0c0d"
    assert reading.meta.hardware_type is HardwareType.TEMPERATURE_SENSOR
    assert reading.meta.source_type is SourceType.ONE_WIRE
    assert reading.temperature == pytest.approx(1.234)
    assert reading.resolution == 12


def test_scan_ignores_entries_that_are_not_sensors(sensor_tree):
    base, add_sensor = sensor_tree
    add_sensor("28-00000a0b0c0d")
    add_sensor("w1_bus_master1")
    add_sensor("28-00000A0B0C0E")           # uppercase hex
    add_sensor("28-0000")                   # too short
    add_sensor("28-00000a0b0c0f", resolution=None)
    add_sensor("28-00000a0b0c10", temperature=None)
    (base / "28-00000a0b0c11").write_text("not a directory")

    devices = OneWireScanner(base).scan()

    assert [d.meta.id for d in devices] == ["28-00000a0b0c0d"]


def test_unreadable_values_become_absent(sensor_tree):
    base, add_sensor = sensor_tree
    add_sensor("28-000000000001", temperature="85000\n", resolution="300\n")
    add_sensor("28-000000000002", temperature="YES\n")

    readings = OneWireScanner(base).read_all()

    # Bad temperature drops the sensor, bad resolution only clears the field
    assert [r.meta.id for r in readings] == ["28-000000000001"]
    assert readings[0].temperature == pytest.approx(85.0)
    assert readings[0].resolution is None


def test_missing_base_path_yields_nothing(tmp_path, caplog):
    scanner = OneWireScanner(tmp_path / "missing")

    assert scanner.read_all() == []
    assert "not a directory" in caplog.text


def test_every_scan_starts_from_scratch(sensor_tree):
    base, add_sensor = sensor_tree
    scanner = OneWireScanner(base)
    first = add_sensor("28-000000000001")
    assert len(scanner.read_all()) == 1

    add_sensor("28-000000000002")
    assert [r.meta.id for r in scanner.read_all()] == ["28-000000000001", "28-000000000002"]

    (first / "temperature").unlink()
    assert [r.meta.id for r in scanner.read_all()] == ["28-000000000002"]


def test_poller_cooldown_has_a_floor():
    poller = TemperaturePoller({'enabled': True, 'cooldown_seconds': 0}, BroadcastChannel("t"), ShutdownCoordinator())
    assert poller.cooldown == pytest.approx(0.2)


def test_poller_publishes_only_when_someone_listens(sensor_tree):
    base, add_sensor = sensor_tree
    add_sensor("28-000000000001", temperature="20000")

    async def scenario():
        channel = BroadcastChannel("temperature")
        poller = TemperaturePoller(
            {'enabled': True, 'base_path': str(base)}, channel, ShutdownCoordinator()
        )

        await poller.poll_once()
        assert poller.published_count == 0

        subscription = channel.subscribe()
        await poller.poll_once()
        assert poller.published_count == 1
        readings = await subscription.recv()
        assert [r.temperature for r in readings] == [pytest.approx(20.0)]

    asyncio.run(scenario())


def test_poller_run_stops_on_shutdown(sensor_tree, wait_until):
    base, add_sensor = sensor_tree
    add_sensor("28-000000000001")

    async def scenario():
        channel = BroadcastChannel("temperature")
        shutdown = ShutdownCoordinator()
        poller = TemperaturePoller(
            {'enabled': True, 'base_path': str(base), 'cooldown_seconds': 0.2}, channel, shutdown
        )
        subscription = channel.subscribe()

        task = asyncio.create_task(poller.run())
        await wait_until(lambda: subscription.pending() >= 1)
        shutdown.fire()
        await asyncio.wait_for(task, timeout=1.0)

        assert poller.cycle_count >= 1

    asyncio.run(scenario())


def test_disabled_poller_returns_immediately():
    async def scenario():
        poller = TemperaturePoller({'enabled': False}, BroadcastChannel("t"), ShutdownCoordinator())
        await asyncio.wait_for(poller.run(), timeout=1.0)
        assert poller.cycle_count == 0

    asyncio.run(scenario())
