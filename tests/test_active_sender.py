import asyncio
import logging

from active_sender import ActiveDispatcher, EndpointWorker, SnapshotMerger
from broadcast import BroadcastChannel, WatchChannel
from hardware import (
    Endpoint,
    HardwareMetadata,
    HardwareType,
    MeasuredTemperature,
    PowerSupplyReading,
    Snapshot,
    SourceType,
)
from http_helper import PushConnectionError
from services.shutdown import ShutdownCoordinator


def sensor(device_id, temperature):
    meta = HardwareMetadata(device_id, HardwareType.TEMPERATURE_SENSOR, SourceType.ONE_WIRE)
    return MeasuredTemperature(meta=meta, temperature=temperature, resolution=12)


def supply(device_id, status="OL"):
    meta = HardwareMetadata(device_id, HardwareType.UNINTERRUPTIBLE_POWER_SUPPLY, SourceType.NETWORK_UPS_TOOLS)
    return PowerSupplyReading(meta=meta, variables={'ups.status': status})


def test_snapshot_wire_format():
    snapshot = Snapshot(sensors=[sensor("28-000000000001", 21.5)], supplies=[supply("[ups1]@nut:3493")])

    assert snapshot.to_dict() == {
        "sensors": [{
            "meta": {"hw": {"id": "28-000000000001", "hardware_type": "TemperatureSensor"},
                     "source": {"source_type": "OneWire"}},
            "temperature": 21.5,
            "resolution": 12,
        }],
        "upses": [{
            "meta": {"hw": {"id": "[ups1]@nut:3493", "hardware_type": "UninterruptiblePowerSupply"},
                     "source": {"source_type": "NetworkUpsTools"}},
            "variables": {"ups.status": "OL"},
        }],
    }


def test_merger_republishes_full_snapshot_on_each_family_update(wait_until):
    async def scenario():
        shutdown = ShutdownCoordinator()
        temperatures, supplies = BroadcastChannel("temperature"), BroadcastChannel("ups")
        merger = SnapshotMerger(temperatures, supplies, shutdown)
        assert temperatures.receiver_count == 1 and supplies.receiver_count == 1

        task = asyncio.create_task(merger.run())
        temperatures.publish([sensor("28-000000000001", 20.0)])
        await wait_until(lambda: merger.merge_count == 1)
        assert merger.current().supplies == []

        supplies.publish([supply("[ups1]@nut:3493")])
        await wait_until(lambda: merger.merge_count == 2)
        snapshot = merger.current()
        assert [s.meta.id for s in snapshot.sensors] == ["28-000000000001"]
        assert [s.meta.id for s in snapshot.supplies] == ["[ups1]@nut:3493"]

        temperatures.publish([])
        await wait_until(lambda: merger.merge_count == 3)
        assert merger.current().sensors == []
        assert len(merger.current().supplies) == 1
        assert merger.snapshot_channel.version == 3

        shutdown.fire()
        await asyncio.wait_for(task, timeout=1.0)
        assert temperatures.receiver_count == 0

    asyncio.run(scenario())


def make_worker(channel, transport, clock, shutdown, cooldown=10, ignore=False, token="TOKEN"):
    return EndpointWorker(
        Endpoint("http://panel.lan/push", token),
        channel.subscribe(),
        transport,
        cooldown,
        shutdown,
        ignore_connection_errors=ignore,
        clock=clock,
    )


def test_changes_inside_cooldown_are_skipped(fake_transport, clock, wait_until):
    async def scenario():
        shutdown = ShutdownCoordinator()
        channel = WatchChannel("snapshot", Snapshot())
        transport = fake_transport()
        worker = make_worker(channel, transport, clock, shutdown)
        task = asyncio.create_task(worker.run())

        channel.send(Snapshot(sensors=[sensor("28-000000000001", 1.0)]))
        await wait_until(lambda: len(transport.posts) == 1)

        clock.advance(5)
        channel.send(Snapshot(sensors=[sensor("28-000000000001", 2.0)]))
        await wait_until(lambda: worker.stats['skipped'] == 1)

        # Exactly at the cooldown boundary still counts as inside
        clock.advance(5)
        channel.send(Snapshot(sensors=[sensor("28-000000000001", 3.0)]))
        await wait_until(lambda: worker.stats['skipped'] == 2)

        clock.advance(0.5)
        channel.send(Snapshot(sensors=[sensor("28-000000000001", 4.0)]))
        await wait_until(lambda: len(transport.posts) == 2)

        shutdown.fire()
        await asyncio.wait_for(task, timeout=1.0)

        assert [p['body']['sensors'][0]['temperature'] for p in transport.posts] == [1.0, 4.0]
        assert transport.posts[0]['bearer_token'] == "TOKEN"
        assert transport.posts[0]['timeout'] == 5.0
        assert worker.stats == {'sent': 2, 'skipped': 2, 'failed': 0}
        assert transport.closed

    asyncio.run(scenario())


def test_cooldown_has_a_one_second_floor(fake_transport, clock):
    worker = make_worker(WatchChannel("snapshot", Snapshot()), fake_transport(), clock, ShutdownCoordinator(), cooldown=0)
    assert worker.cooldown == 1.0


def test_failed_attempt_restarts_cooldown(fake_transport, clock):
    async def scenario():
        channel = WatchChannel("snapshot", Snapshot())
        worker = make_worker(channel, fake_transport(status=503), clock, ShutdownCoordinator())

        assert await worker.send_current() is False
        assert worker.stats['failed'] == 1
        assert worker.in_cooldown()

        clock.advance(10.1)
        assert not worker.in_cooldown()

    asyncio.run(scenario())


def test_non_success_status_is_logged(fake_transport, clock, caplog):
    async def scenario():
        worker = make_worker(WatchChannel("snapshot", Snapshot()), fake_transport(status=500), clock,
                             ShutdownCoordinator())
        await worker.send_current()

    asyncio.run(scenario())
    assert "Got 500 response from http://panel.lan/push" in caplog.text


def test_connection_errors_can_be_silenced(fake_transport, clock, caplog):
    async def attempt(ignore, error):
        worker = make_worker(WatchChannel("snapshot", Snapshot()), fake_transport(error=error), clock,
                             ShutdownCoordinator(), ignore=ignore)
        await worker.send_current()
        return worker.stats['failed']

    caplog.set_level(logging.WARNING, logger="active_sender.dispatcher")

    assert asyncio.run(attempt(True, PushConnectionError("refused"))) == 1
    assert caplog.records == []

    assert asyncio.run(attempt(False, PushConnectionError("refused"))) == 1
    assert "Connection to http://panel.lan/push failed" in caplog.text

    caplog.clear()
    assert asyncio.run(attempt(True, asyncio.TimeoutError())) == 1
    assert "TimeoutError" in caplog.text


def test_slow_endpoint_does_not_delay_others(fake_transport, wait_until):
    async def scenario():
        shutdown = ShutdownCoordinator()
        channel = WatchChannel("snapshot", Snapshot())
        slow, fast = fake_transport(), fake_transport()
        slow.release = asyncio.Event()
        transports = iter([slow, fast])
        dispatcher = ActiveDispatcher(
            {'enabled': True, 'cooldown_seconds': 1,
             'endpoints': [{'url': 'http://slow.lan/push'}, {'url': 'http://fast.lan/push', 'bearer_token': 'T'}]},
            channel,
            shutdown,
            transport_factory=lambda: next(transports),
        )
        task = asyncio.create_task(dispatcher.run())

        channel.send(Snapshot(sensors=[sensor("28-000000000001", 1.0)]))
        await wait_until(lambda: len(fast.posts) == 1 and len(slow.posts) == 1)
        assert dispatcher.get_status()['http://fast.lan/push']['sent'] == 1
        assert dispatcher.get_status()['http://slow.lan/push']['sent'] == 0
        assert slow.posts[0]['bearer_token'] is None

        shutdown.fire()
        slow.release.set()
        await asyncio.wait_for(task, timeout=1.0)
        assert slow.closed and fast.closed

    asyncio.run(scenario())


def test_no_sends_after_shutdown(fake_transport, clock, wait_until):
    async def scenario():
        shutdown = ShutdownCoordinator()
        channel = WatchChannel("snapshot", Snapshot())
        transport = fake_transport()
        worker = make_worker(channel, transport, clock, shutdown)
        task = asyncio.create_task(worker.run())

        shutdown.fire()
        await asyncio.wait_for(task, timeout=1.0)
        channel.send(Snapshot(sensors=[sensor("28-000000000001", 1.0)]))
        await asyncio.sleep(0.01)

        assert transport.posts == []

    asyncio.run(scenario())


def test_disabled_dispatcher_does_nothing(fake_transport):
    async def scenario():
        transport = fake_transport()
        dispatcher = ActiveDispatcher(
            {'enabled': False, 'endpoints': [{'url': 'http://panel.lan/push'}]},
            WatchChannel("snapshot", Snapshot()),
            ShutdownCoordinator(),
            transport_factory=lambda: transport,
        )
        await asyncio.wait_for(dispatcher.run(), timeout=1.0)
        assert transport.posts == []

    asyncio.run(scenario())
