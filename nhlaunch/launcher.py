"""Preparation of launch arguments and parsing of the embedded loader ELF."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from nhlaunch.devices import Mode
from nhlaunch.options import Argument, ArgumentList, OptionsError, update_last_launched_title
from nhlaunch.target import Target

logger = logging.getLogger(__name__)

ISO_ARGUMENT = "dvd"
BSD_ARGUMENT = "bsd"
BSDFS_ARGUMENT = "bsdfs"
BSDFS_HDL = "hdl"

_BSD_VALUES = {
    Mode.ATA: "ata",
    Mode.MX4SIO: "mx4sio",
    Mode.UDPBD: "udpbd",
    Mode.USB: "usb",
    Mode.ILINK: "ilink",
    Mode.MMCE: "mmce",
    Mode.HDL: "ata",
}

_ELF_MAGIC = b"\x7fELF"
_ELF_PT_LOAD = 1
_ELF_HEADER = struct.Struct("<16sHHIIIIIHHHHHH")
_PROGRAM_HEADER = struct.Struct("<IIIIIIII")


class LaunchError(Exception):
    """Raised when a title cannot be prepared for launching."""


@dataclass(frozen=True)
class ElfSegment:
    """A loadable segment: its target address and file contents."""

    vaddr: int
    data: bytes


def bsd_value(mode: Mode) -> str:
    """Return the block device name passed to the loader for a device mode."""
    try:
        return _BSD_VALUES[mode]
    except KeyError:
        raise LaunchError(f"unsupported mode: {mode!r}") from None


def assemble_argv(arguments: ArgumentList, neutrino_path: str) -> list[str]:
    """Build the loader argv: the loader path followed by enabled arguments."""
    argv = [neutrino_path]
    for argument in arguments:
        if argument.is_disabled:
            continue
        if argument.value:
            argv.append(f"-{argument.arg}={argument.value}")
        else:
            argv.append(f"-{argument.arg}")
    return argv


def build_launch_arguments(target: Target, arguments: ArgumentList) -> ArgumentList:
    """Prepare the target's device and append the device and image arguments.

    Records the target as last launched and syncs the device on the way.
    Returns ``arguments`` with the new entries appended.
    """
    device = target.device
    if device is None:
        raise LaunchError(f"target {target.name!r} has no device")
    bsd = bsd_value(device.mode)
    if device.mode == Mode.HDL:
        arguments.append(Argument(BSDFS_ARGUMENT, BSDFS_HDL))

    logger.info("Updating last launched title")
    try:
        update_last_launched_title(device, target.full_path)
    except OptionsError as exc:
        logger.error("Failed to update last launched title: %s", exc)

    if device.sync is not None:
        device.sync()

    arguments.append(Argument(BSD_ARGUMENT, bsd))
    arguments.append(Argument(ISO_ARGUMENT, target.full_path))
    # Quickboot shortens load times; HDL mode needs the hdlfs module instead
    if device.mode != Mode.HDL:
        arguments.append(Argument("qb", ""))
    return arguments


def load_elf_segments(data: bytes) -> tuple[int, list[ElfSegment]]:
    """Parse a 32-bit little-endian ELF and return its entry point and load segments."""
    if len(data) < _ELF_HEADER.size:
        raise LaunchError("ELF image is truncated")
    header = _ELF_HEADER.unpack_from(data)
    ident, entry, phoff, phnum = header[0], header[4], header[5], header[10]
    if ident[:4] != _ELF_MAGIC:
        raise LaunchError("not an ELF image")

    segments = []
    for number in range(phnum):
        offset = phoff + number * _PROGRAM_HEADER.size
        if offset + _PROGRAM_HEADER.size > len(data):
            raise LaunchError("ELF program headers are truncated")
        p_type, p_offset, vaddr, _paddr, filesz, _memsz, _flags, _align = _PROGRAM_HEADER.unpack_from(
            data, offset
        )
        if p_type != _ELF_PT_LOAD:
            continue
        if p_offset + filesz > len(data):
            raise LaunchError("ELF segment is truncated")
        segments.append(ElfSegment(vaddr, bytes(data[p_offset : p_offset + filesz])))
    return entry, segments