"""Launch argument lists, their configuration files and last-title tracking."""

from __future__ import annotations

import dataclasses
import datetime
import itertools
import logging
import os
import struct
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from nhlaunch.devices import MAX_DEVICES, Device, Mode
from nhlaunch.target import Target

logger = logging.getLogger(__name__)

BASE_CONFIG_PATH = "/nhddl"
GLOBAL_OPTIONS_PATH = "/global.yaml"
LAST_TITLE_PATH = "/lastTitle.bin"

_WHITESPACE = " \t\n\v\f\r"
_VALUE_TERMINATORS = "#\r\n"
_TIMESTAMP = struct.Struct("<I")
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class OptionsError(Exception):
    """Raised when configuration files cannot be read or written."""


@dataclass
class Argument:
    """A single launch argument from a configuration file."""

    arg: str
    value: str = ""
    is_disabled: bool = False
    is_global: bool = False

    def copy(self) -> "Argument":
        """Return an independent copy of this argument."""
        return dataclasses.replace(self)


class ArgumentList:
    """An ordered collection of launch arguments."""

    def __init__(self, arguments: Iterable[Argument] = ()) -> None:
        self._arguments: list[Argument] = list(arguments)

    def append(self, argument: Argument) -> None:
        """Append an argument to the end of the list."""
        self._arguments.append(argument)

    def append_copy(self, argument: Argument) -> None:
        """Append a copy of an argument to the end of the list."""
        self._arguments.append(argument.copy())

    def get(self, name: str) -> Optional[Argument]:
        """Return the first argument with the given name, or None."""
        return next((a for a in self._arguments if a.arg == name), None)

    def insert(self, name: str, value: str) -> Argument:
        """Create a new argument, append it and return it."""
        argument = Argument(name, value)
        self.append(argument)
        return argument

    def merge(self, other: "ArgumentList") -> None:
        """Add copies of arguments from ``other`` whose names are not yet present.

        An argument already in this list that is disabled and has no value
        takes over the name, value and flags of the matching argument from
        ``other`` while staying disabled.
        """
        for incoming in other:
            existing = self.get(incoming.arg)
            if existing is None:
                self.append_copy(incoming)
            elif existing.is_disabled and existing.value == "":
                existing.arg = incoming.arg
                existing.value = incoming.value
                existing.is_global = incoming.is_global
                existing.is_disabled = True

    def __len__(self) -> int:
        return len(self._arguments)

    def __iter__(self) -> Iterator[Argument]:
        return iter(self._arguments)


def relative_path_index(path: str) -> int:
    """Return the index where the path follows its device prefix, or -1.

    For ``mass0:/DVD/game.iso`` this is the index of the first '/'.
    Values without a device prefix followed by a path separator give -1.
    """
    colon = path.find(":")
    if colon < 1 or colon + 1 >= len(path) or path[colon + 1] not in "/\\":
        return -1
    return colon + 1


def build_config_path(mountpoint: str, file_name: Optional[str] = None) -> str:
    """Return the configuration directory path, or a file inside it."""
    path = mountpoint + BASE_CONFIG_PATH
    if file_name is None:
        return path
    if not file_name.startswith("/"):
        path += "/"
    return path + file_name


def _parse_line(line: str, device: Optional[Device]) -> Optional[Argument]:
    content = line.lstrip(_WHITESPACE)
    if not content or content.startswith("#"):
        return None
    key_part, colon, rest = content.partition(":")
    if not colon:
        return None

    is_disabled = "$" in key_part
    name = key_part.rsplit("$", 1)[-1].strip(_WHITESPACE)

    value = rest.lstrip(_WHITESPACE)
    end = next((i for i, ch in enumerate(value) if ch in _VALUE_TERMINATORS), len(value))
    value = value[:end].rstrip(_WHITESPACE)

    if device is not None and value[:1] in ("/", "\\"):
        mountpoint = device.mountpoint or ""
        number = device.device_number_index()
        value = mountpoint[:number] + str(device.index) + mountpoint[number + 1 :] + value

    return Argument(name, value, is_disabled=is_disabled)


def parse_options(lines: Iterable[str], device: Optional[Device] = None) -> ArgumentList:
    """Parse configuration lines of the form ``[$]name: value  # comment``.

    A leading '$' marks the argument as disabled. When ``device`` is given,
    values starting with '/' or '\\' are prefixed with the device mountpoint,
    its device number replaced by the device index.
    """
    result = ArgumentList()
    for line in lines:
        argument = _parse_line(line, device)
        if argument is not None:
            result.append(argument)
    return result


def load_argument_list(path: str | os.PathLike, device: Optional[Device] = None) -> ArgumentList:
    """Read and parse an options file."""
    name = os.fspath(path)
    try:
        with open(name, encoding=_ENCODING, errors=_ERRORS, newline="") as file:
            return parse_options(file, device)
    except FileNotFoundError as exc:
        raise OptionsError(f"failed to open {name}") from exc
    except OSError as exc:
        raise OptionsError(f"failed to read config file {name}: {exc}") from exc


def get_last_launched_title(devices: Iterable[Device]) -> Optional[str]:
    """Return the most recently launched title path across all devices.

    The path is stored without its mountpoint. Returns None when no device
    holds a readable record; raises OptionsError when no device is usable.
    """
    logger.info("Reading last launched title")
    examined = False
    max_timestamp = 0
    title: Optional[str] = None
    for device in itertools.islice(devices, MAX_DEVICES):
        if device.mode == Mode.NONE or device.mountpoint is None:
            break
        examined = True
        path = build_config_path(device.metadata_device().mountpoint or "", LAST_TITLE_PATH)
        try:
            with open(path, "rb") as file:
                data = file.read()
        except OSError as exc:
            logger.warning("Failed to open last launched title file on device %s: %s", device.mountpoint, exc)
            continue
        if len(data) < _TIMESTAMP.size:
            logger.warning("Failed to read last launched title file on device %s", device.mountpoint)
            continue
        (timestamp,) = _TIMESTAMP.unpack_from(data)
        if timestamp < max_timestamp:
            continue
        max_timestamp = timestamp
        body = data[_TIMESTAMP.size :]
        if not body:
            logger.warning("Failed to read last launched title")
            continue
        title = body.split(b"\0", 1)[0].decode(_ENCODING, _ERRORS)
    if not examined:
        raise OptionsError("no devices to read the last launched title from")
    return title


def update_last_launched_title(
    device: Device, title_path: str, timestamp: Optional[int] = None
) -> None:
    """Record ``title_path`` as the last launched title on the device."""
    target_device = device.metadata_device()
    if timestamp is None:
        timestamp = pack_timestamp(datetime.datetime.now())
    logger.info("Writing last launched title as %s", title_path)

    config_dir = build_config_path(target_device.mountpoint or "")
    if not os.path.exists(config_dir):
        logger.info("Creating config directory: %s", config_dir)
        try:
            os.mkdir(config_dir)
        except OSError:
            pass

    offset = max(relative_path_index(title_path), 0)
    payload = title_path[offset:].encode(_ENCODING, _ERRORS) + b"\0"
    path = config_dir + LAST_TITLE_PATH
    try:
        with open(path, "wb") as file:
            file.write(_TIMESTAMP.pack(timestamp & 0xFFFFFFFF))
            file.write(payload)
    except OSError as exc:
        raise OptionsError(f"failed to write last launched title file: {exc}") from exc


def get_global_launch_arguments(device: Device) -> ArgumentList:
    """Load the global options file of a device, marking every argument global."""
    target_device = device.metadata_device()
    path = build_config_path(target_device.mountpoint or "", GLOBAL_OPTIONS_PATH)
    result = load_argument_list(path, target_device)
    for argument in result:
        argument.is_global = True
    return result


def _target_device(target: Target) -> Device:
    if target.device is None:
        raise OptionsError(f"target {target.name!r} has no device")
    return target.device.metadata_device()


def get_title_launch_arguments(target: Target) -> ArgumentList:
    """Load the title-specific options file, or return an empty list if none exists."""
    device = _target_device(target)
    logger.info("Looking for title-specific config for %s (%s)", target.name, target.id)
    config_dir = build_config_path(device.mountpoint or "")
    try:
        with os.scandir(config_dir) as entries:
            match = next(
                (
                    entry.name
                    for entry in sorted(entries, key=lambda e: e.name)
                    if not entry.is_dir() and entry.name.startswith(target.name)
                ),
                None,
            )
    except OSError as exc:
        raise OptionsError(f"can't open {config_dir}") from exc

    if match is None:
        logger.info("Title-specific config not found")
        return ArgumentList()

    path = build_config_path(device.mountpoint or "", match)
    logger.info("Loading title-specific config from %s", path)
    try:
        return load_argument_list(path, device)
    except OptionsError as exc:
        logger.error("Failed to load argument list: %s", exc)
        return ArgumentList()


def _format_argument(argument: Argument) -> Optional[str]:
    if not argument.is_global:
        value = argument.value
        offset = relative_path_index(value)
        if offset > 0:
            value = value[offset:]
        prefix = "$" if argument.is_disabled else ""
        return f"{prefix}{argument.arg}: {value}\n"
    if argument.is_disabled:
        return f"${argument.arg}:\n"
    return None


def update_title_launch_arguments(target: Target, arguments: Iterable[Argument]) -> None:
    """Save title launch arguments to the title-specific options file.

    Enabled global arguments are skipped; disabled global arguments are
    written as disabled arguments without a value.
    """
    device = _target_device(target)
    path = build_config_path(device.mountpoint or "", target.name) + ".yaml"
    logger.info("Saving title-specific config to %s", path)
    try:
        with open(path, "w", encoding=_ENCODING, errors=_ERRORS, newline="") as file:
            for argument in arguments:
                line = _format_argument(argument)
                if line is not None:
                    file.write(line)
    except OSError as exc:
        raise OptionsError(f"failed to write {path}: {exc}") from exc


def load_launch_arguments(target: Target) -> ArgumentList:
    """Load global and title arguments and return them merged."""
    try:
        global_arguments = get_global_launch_arguments(_target_device(target))
    except OptionsError as exc:
        logger.warning("Failed to load global launch arguments: %s", exc)
        global_arguments = ArgumentList()
    try:
        title_arguments = get_title_launch_arguments(target)
    except OptionsError as exc:
        logger.warning("Failed to load title arguments: %s", exc)
        title_arguments = ArgumentList()

    if len(title_arguments):
        title_arguments.merge(global_arguments)
        return title_arguments
    return global_arguments


def pack_timestamp(moment: datetime.datetime) -> int:
    """Pack a date and time into 32 bits; wraps around every 64th year.

    Layout from the top bit: year (two-digit), month, day, hour, minute, second.
    """
    packed = (
        (moment.year % 100) << 26
        | (moment.month & 0xF) << 22
        | moment.day << 17
        | moment.hour << 12
        | moment.minute << 6
        | (moment.second & 0x3F)
    )
    return packed & 0xFFFFFFFF