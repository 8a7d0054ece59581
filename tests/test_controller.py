from nhlaunch.controller import Gamepad

CROSS = 0x4000
CIRCLE = 0x2000


def active_low(buttons):
    return 0xFFFF ^ buttons


class ScriptedReader:
    def __init__(self, port0, port1=()):
        self.scripts = {0: list(port0), 1: list(port1)}

    def __call__(self, port):
        script = self.scripts[port]
        if not script:
            return active_low(0)
        return script.pop(0)


def test_read_reports_only_new_presses():
    pad = Gamepad(ScriptedReader([active_low(CROSS), active_low(CROSS), active_low(CROSS | CIRCLE)]))
    assert pad.read(0) == CROSS
    assert pad.read(0) == 0
    assert pad.read(0) == CIRCLE


def test_read_after_release_reports_again():
    pad = Gamepad(ScriptedReader([active_low(CROSS), active_low(0), active_low(CROSS)]))
    assert [pad.read(0) for _ in range(3)] == [CROSS, 0, CROSS]


def test_failed_read_returns_nothing_and_keeps_state():
    pad = Gamepad(ScriptedReader([active_low(CROSS), None, active_low(CROSS)]))
    assert pad.read(0) == CROSS
    assert pad.read(0) == 0
    assert pad.read(0) == 0


def test_poll_reports_held_buttons():
    pad = Gamepad(ScriptedReader([active_low(CROSS), active_low(CROSS)]))
    assert pad.poll(0) == CROSS
    assert pad.poll(0) == CROSS


def test_poll_updates_state_used_by_read():
    pad = Gamepad(ScriptedReader([active_low(CROSS), active_low(CROSS)]))
    assert pad.poll(0) == CROSS
    assert pad.read(0) == 0


def test_poll_input_combines_ports():
    pad = Gamepad(ScriptedReader([active_low(CROSS)], [active_low(CIRCLE)]))
    assert pad.poll_input() == CROSS | CIRCLE


def test_wait_for_input_waits_for_requested_button():
    reader = ScriptedReader(
        [active_low(0), active_low(CIRCLE), active_low(CIRCLE), active_low(CIRCLE | CROSS)],
    )
    pad = Gamepad(reader)
    assert pad.wait_for_input(CROSS) == CROSS
    assert reader.scripts[0] == []


def test_wait_for_input_any_button_from_second_port():
    pad = Gamepad(ScriptedReader([], [active_low(0), active_low(CIRCLE)]))
    assert pad.wait_for_input(-1) == CIRCLE