"""End-to-end tests for the bridge with a fake server, bus and clock."""

import pytest
import pytest_asyncio

from conftest import settle
from rover_bridge.bridge import RoverBridge
from rover_bridge.config import load_config
from rover_bridge.connection import ConnectionState


@pytest.fixture
def config(tmp_path):
    return load_config(tmp_path / "missing.cfg", environ={"ROVER_ID": "R_TEST"})


@pytest_asyncio.fixture
async def bridge(config, fake_bus, opener, scheduler):
    instance = RoverBridge(config, bus=fake_bus, opener=opener, scheduler=scheduler)
    await instance.start()
    await settle()
    yield instance
    await instance.stop()


async def _identify(bridge, opener, rover_id=42):
    opener.socket.feed_json(
        {"type": "CONNECT", "payload": {"success": True, "roverId": rover_id}}
    )
    await settle()


@pytest.mark.asyncio
async def test_start_registers_rover(bridge, opener, fake_bus):
    await bridge.connection.flush()

    assert opener.socket.documents() == [
        {"type": "CONNECT", "payload": {"type": "rover", "identifier": "R_TEST"}}
    ]
    assert "temperature" in fake_bus.handlers
    assert bridge.state == ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_sensor_values_flow_into_telemetry(bridge, opener, fake_bus, scheduler):
    await _identify(bridge, opener)
    fake_bus.emit("temperature", {"temperature": 22.5})
    fake_bus.emit("rover_velocity", {"linear": {"x": 0.4}})
    fake_bus.emit("battery_state", {"percentage": 0.91})

    scheduler.advance(5.0)
    await bridge.connection.flush()

    telemetry, status = opener.socket.documents()[-2:]
    assert telemetry["type"] == "TELEMETRY"
    assert telemetry["roverId"] == 42
    sensor_data = telemetry["payload"]["sensorData"]
    assert sensor_data["temperature"] == 22.5
    assert sensor_data["speed"] == 0.4
    assert sensor_data["batteryLevel"] == pytest.approx(91.0)
    assert status == {"type": "STATUS_UPDATE", "roverId": 42, "payload": {"status": "active"}}


@pytest.mark.asyncio
async def test_command_round_trip(bridge, opener, fake_bus):
    await _identify(bridge, opener)

    opener.socket.feed_json(
        {"type": "COMMAND", "payload": {"commandId": 17, "command": "move north 5"}}
    )
    await settle()
    await bridge.connection.flush()

    assert fake_bus.published == [("rover_commands", "move north 5")]
    assert opener.socket.documents()[-1] == {
        "type": "COMMAND",
        "roverId": 42,
        "payload": {
            "commandId": 17,
            "status": "success",
            "response": "Moving north 5 units",
        },
    }


@pytest.mark.asyncio
async def test_reconnect_reregisters_and_requires_new_ack(bridge, opener, scheduler):
    await _identify(bridge, opener)

    opener.socket.drop()
    await settle()
    assert bridge.identity.assigned_id is None

    scheduler.advance(5.0)
    await settle()
    await bridge.connection.flush()

    assert opener.attempts == 2
    assert opener.socket.documents() == [
        {"type": "CONNECT", "payload": {"type": "rover", "identifier": "R_TEST"}}
    ]
    assert bridge.state == ConnectionState.CONNECTED

    await _identify(bridge, opener, rover_id=43)
    assert bridge.state == ConnectionState.IDENTIFIED
    assert bridge.identity.assigned_id == 43


@pytest.mark.asyncio
async def test_health_tracks_link_state(bridge, opener):
    snapshot = await bridge.health.snapshot()
    assert snapshot["status"] == "degraded"

    await _identify(bridge, opener)
    snapshot = await bridge.health.snapshot()

    assert snapshot["status"] == "ok"
    assert snapshot["link"] == {
        "state": "identified",
        "roverId": 42,
        "updatedAt": snapshot["link"]["updatedAt"],
    }


@pytest.mark.asyncio
async def test_stop_closes_everything_and_stays_down(config, fake_bus, opener, scheduler):
    bridge = RoverBridge(config, bus=fake_bus, opener=opener, scheduler=scheduler)
    await bridge.start()
    await settle()
    await _identify(bridge, opener)

    await bridge.stop()
    scheduler.advance(60.0)
    await settle()

    assert opener.socket.closed is True
    assert fake_bus.closed is False
    assert bridge.bus is fake_bus
    assert bridge.executor.bus is None
    assert opener.attempts == 1
    assert bridge.state == ConnectionState.DISCONNECTED
    assert bridge.connection.telemetry_running is False
    assert bridge.connection.reconnect_scheduled is False


@pytest.mark.asyncio
async def test_disabled_bus_reports_failed_commands(config, opener, scheduler):
    config.bus.enabled = False
    bridge = RoverBridge(config, opener=opener, scheduler=scheduler)
    await bridge.start()
    await settle()

    try:
        opener.socket.feed_json(
            {"type": "COMMAND", "payload": {"commandId": 1, "command": "stop"}}
        )
        await settle()
        await bridge.connection.flush()

        response = opener.socket.documents()[-1]
        assert response["payload"] == {
            "commandId": 1,
            "status": "failed",
            "response": "Actuator bus is not available.",
        }
    finally:
        await bridge.stop()


@pytest.mark.asyncio
async def test_bridge_can_start_again_after_stop(config, fake_bus, opener, scheduler):
    bridge = RoverBridge(config, bus=fake_bus, opener=opener, scheduler=scheduler)
    await bridge.start()
    await settle()
    await bridge.stop()

    await bridge.start()
    await settle()

    try:
        assert opener.attempts == 2
        assert bridge.state == ConnectionState.CONNECTED
        assert bridge.bus is fake_bus

        await _identify(bridge, opener, rover_id=7)
        opener.socket.feed_json(
            {"type": "COMMAND", "payload": {"commandId": 1, "command": "stop"}}
        )
        await settle()
        await bridge.connection.flush()

        assert fake_bus.published == [("rover_commands", "stop")]
        assert opener.socket.documents()[-1]["payload"]["status"] == "success"
    finally:
        await bridge.stop()


@pytest.mark.asyncio
async def test_stop_closes_bus_it_created(config, opener, scheduler, fake_bus, monkeypatch):
    bridge = RoverBridge(config, opener=opener, scheduler=scheduler)

    async def _created_bus():
        return fake_bus

    monkeypatch.setattr(bridge, "_connect_bus", _created_bus)
    await bridge.start()
    await settle()
    await bridge.stop()

    assert fake_bus.closed is True
    assert bridge.bus is None
