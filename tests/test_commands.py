"""Tests for the command executor."""

import pytest

from rover_bridge.adapters import MQTTConnectionError
from rover_bridge.commands import CommandExecutor
from rover_bridge.core import CommandResponseMessage, CommandStatus


class RecordingResponder:
    def __init__(self) -> None:
        self.messages: list[CommandResponseMessage] = []

    def __call__(self, message: CommandResponseMessage) -> None:
        self.messages.append(message)

    @property
    def results(self):
        return [message.result for message in self.messages]


@pytest.fixture
def executor_setup(fake_bus):
    def _create(*, with_bus: bool = True):
        responder = RecordingResponder()
        executor = CommandExecutor(
            fake_bus if with_bus else None, responder, command_topic="rover_commands"
        )
        return executor, responder

    return _create


def test_move_publishes_and_succeeds(executor_setup, fake_bus):
    executor, responder = executor_setup()

    result = executor.execute(1, "move north 5")

    assert result is not None
    assert result.status is CommandStatus.SUCCESS
    assert result.response == "Moving north 5 units"
    assert fake_bus.published == [("rover_commands", "move north 5")]
    assert responder.results == [result]


def test_move_accepts_fractional_distance(executor_setup):
    executor, _ = executor_setup()

    result = executor.execute(1, "MOVE left 2.5")

    assert result.status is CommandStatus.SUCCESS
    assert result.response == "Moving left 2.5 units"


@pytest.mark.parametrize(
    "command, message",
    [
        ("move north abc", "Invalid distance value for move command."),
        ("move north nan", "Invalid distance value for move command."),
        ("move north inf", "Invalid distance value for move command."),
        (
            "move north",
            "Move command format is incorrect. Expected: move <direction> <distance>",
        ),
        (
            "move",
            "Move command format is incorrect. Expected: move <direction> <distance>",
        ),
        (
            "move north 5 fast",
            "Move command format is incorrect. Expected: move <direction> <distance>",
        ),
        (
            "camera",
            "Camera command format is incorrect. Expected: camera <action>",
        ),
        (
            "camera zoom in",
            "Camera command format is incorrect. Expected: camera <action>",
        ),
        ("dance wildly", "Unknown command: dance"),
    ],
)
def test_validation_failures_report_failed_without_publish(
    executor_setup, fake_bus, command, message
):
    executor, responder = executor_setup()

    result = executor.execute(10, command)

    assert result.status is CommandStatus.FAILED
    assert result.response == message
    assert fake_bus.published == []
    assert len(responder.messages) == 1


@pytest.mark.parametrize("command", ["stop", "STOP", "stop now please"])
def test_stop_always_succeeds_with_bus(executor_setup, fake_bus, command):
    executor, _ = executor_setup()

    result = executor.execute(3, command)

    assert result.status is CommandStatus.SUCCESS
    assert result.response == "Emergency stop engaged"
    assert fake_bus.published == [("rover_commands", command)]


def test_camera_command(executor_setup, fake_bus):
    executor, _ = executor_setup()

    result = executor.execute(4, "camera snapshot")

    assert result.status is CommandStatus.SUCCESS
    assert result.response == "Camera snapshot command executed"
    assert fake_bus.published == [("rover_commands", "camera snapshot")]


def test_duplicate_id_produces_single_response(executor_setup, fake_bus):
    executor, responder = executor_setup()

    first = executor.execute(7, "move north 5")
    second = executor.execute(7, "move north 5")

    assert first is not None
    assert second is None
    assert len(responder.messages) == 1
    assert len(fake_bus.published) == 1


def test_distinct_ids_with_same_text_both_run(executor_setup, fake_bus):
    executor, responder = executor_setup()

    executor.execute(7, "stop")
    executor.execute(8, "stop")

    assert [result.command_id for result in responder.results] == [7, 8]
    assert len(fake_bus.published) == 2


def test_dedup_window_is_a_single_slot(executor_setup):
    """An id seen two commands ago is processed again."""
    executor, responder = executor_setup()

    executor.execute(1, "stop")
    executor.execute(2, "stop")
    executor.execute(1, "stop")

    assert [result.command_id for result in responder.results] == [1, 2, 1]
    assert executor.last_command_id == 1


def test_failed_command_is_still_deduplicated(executor_setup):
    executor, responder = executor_setup()

    executor.execute(5, "move north abc")
    executor.execute(5, "move north abc")

    assert len(responder.messages) == 1


def test_missing_bus_reports_failure(executor_setup):
    executor, responder = executor_setup(with_bus=False)

    result = executor.execute(1, "stop")

    assert result.status is CommandStatus.FAILED
    assert result.response == "Actuator bus is not available."
    assert len(responder.messages) == 1


def test_bus_publish_error_reports_failure(executor_setup, fake_bus):
    executor, _ = executor_setup()
    fake_bus.publish_error = MQTTConnectionError("MQTT bus not connected")

    result = executor.execute(2, "stop")

    assert result.status is CommandStatus.FAILED
    assert result.response == "MQTT bus not connected"


def test_unexpected_exception_is_converted(executor_setup, fake_bus):
    executor, responder = executor_setup()
    fake_bus.publish_error = KeyError("topic")

    result = executor.execute(2, "move east 1")

    assert result.status is CommandStatus.FAILED
    assert result.response.startswith("Error executing command:")
    assert len(responder.messages) == 1


def test_responder_failure_does_not_propagate(fake_bus):
    def _broken(message):
        raise RuntimeError("socket gone")

    executor = CommandExecutor(fake_bus, _broken)

    result = executor.execute(1, "stop")

    assert result.status is CommandStatus.SUCCESS


def test_response_message_wire_shape(executor_setup):
    executor, responder = executor_setup()

    executor.execute(11, "move north abc")

    document = responder.messages[0].to_document(42)
    assert document == {
        "type": "COMMAND",
        "roverId": 42,
        "payload": {
            "commandId": 11,
            "status": "failed",
            "response": "Invalid distance value for move command.",
        },
    }


def test_bus_can_be_attached_later(executor_setup, fake_bus):
    executor, _ = executor_setup(with_bus=False)

    assert executor.execute(1, "stop").status is CommandStatus.FAILED

    executor.bus = fake_bus
    assert executor.execute(2, "stop").status is CommandStatus.SUCCESS
