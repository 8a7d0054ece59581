import struct

import pytest

from nhlaunch.devices import Device, Mode
from nhlaunch.launcher import (
    ElfSegment,
    LaunchError,
    assemble_argv,
    bsd_value,
    build_launch_arguments,
    load_elf_segments,
)
from nhlaunch.options import Argument, ArgumentList
from nhlaunch.target import Target


def make_target(tmp_path, mode, syncs=None):
    device = Device(
        mountpoint=str(tmp_path),
        mode=mode,
        sync=(lambda: syncs.append(True)) if syncs is not None else None,
    )
    return Target(idx=0, full_path=str(tmp_path / "DVD" / "game.iso"), name="game", id="SLUS_000.00", device=device)


@pytest.mark.parametrize(
    "mode, expected",
    [
        (Mode.ATA, "ata"),
        (Mode.MX4SIO, "mx4sio"),
        (Mode.UDPBD, "udpbd"),
        (Mode.USB, "usb"),
        (Mode.ILINK, "ilink"),
        (Mode.MMCE, "mmce"),
        (Mode.HDL, "ata"),
    ],
)
def test_bsd_value(mode, expected):
    assert bsd_value(mode) == expected


def test_bsd_value_rejects_combined_modes():
    with pytest.raises(LaunchError):
        bsd_value(Mode.ALL)


def test_assemble_argv_skips_disabled_and_formats_values():
    arguments = ArgumentList(
        [
            Argument("gc", "3"),
            Argument("dbc", ""),
            Argument("mt", "dvd", is_disabled=True),
        ]
    )
    argv = assemble_argv(arguments, "mc0:/neutrino.elf")
    assert argv == ["mc0:/neutrino.elf", "-gc=3", "-dbc"]


def test_build_launch_arguments_for_usb(tmp_path):
    syncs = []
    target = make_target(tmp_path, Mode.USB, syncs)
    arguments = ArgumentList([Argument("gc", "3")])
    result = build_launch_arguments(target, arguments)
    assert result is arguments
    assert [(a.arg, a.value) for a in result] == [
        ("gc", "3"),
        ("bsd", "usb"),
        ("dvd", target.full_path),
        ("qb", ""),
    ]
    assert syncs == [True]
    record = (tmp_path / "nhddl" / "lastTitle.bin").read_bytes()
    assert record[4:] == target.full_path.encode() + b"\0"


def test_build_launch_arguments_for_hdl(tmp_path):
    target = make_target(tmp_path, Mode.HDL)
    result = build_launch_arguments(target, ArgumentList())
    assert [(a.arg, a.value) for a in result] == [
        ("bsdfs", "hdl"),
        ("bsd", "ata"),
        ("dvd", target.full_path),
    ]


def test_build_launch_arguments_unsupported_mode(tmp_path):
    target = make_target(tmp_path, Mode.NONE)
    arguments = ArgumentList()
    with pytest.raises(LaunchError):
        build_launch_arguments(target, arguments)
    assert len(arguments) == 0


def build_elf(entry, headers, payload):
    phoff = 52
    header = struct.pack(
        "<16sHHIIIIIHHHHHH",
        b"\x7fELF" + bytes(12), 2, 8, 1, entry, phoff, 0, 0, 52, 32, len(headers), 0, 0, 0,
    )
    table = b"".join(struct.pack("<IIIIIIII", *h) for h in headers)
    return header + table + payload


def test_load_elf_segments_returns_load_segments_only():
    payload_offset = 52 + 2 * 32
    payload = b"CODEdata"
    data = build_elf(
        0x84000,
        [
            (1, payload_offset, 0x84000, 0, 4, 4, 5, 16),
            (4, payload_offset + 4, 0x90000, 0, 4, 4, 4, 4),
        ],
        payload,
    )
    entry, segments = load_elf_segments(data)
    assert entry == 0x84000
    assert segments == [ElfSegment(0x84000, b"CODE")]


def test_load_elf_segments_rejects_bad_magic():
    data = bytearray(build_elf(0, [], b""))
    data[0] = 0
    with pytest.raises(LaunchError):
        load_elf_segments(bytes(data))


def test_load_elf_segments_rejects_truncated_segment():
    data = build_elf(0, [(1, 84, 0x84000, 0, 100, 100, 5, 16)], b"xy")
    with pytest.raises(LaunchError):
        load_elf_segments(data)