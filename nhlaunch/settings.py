"""Launcher settings from the command line, the options file and fallback paths."""

from __future__ import annotations

import itertools
import logging
import os
from typing import Iterable, Iterator, Optional, Sequence

from nhlaunch.devices import MAX_DEVICES, Device, LauncherOptions, Mode, VMode
from nhlaunch.modules import InitType
from nhlaunch.options import OptionsError, load_argument_list

logger = logging.getLogger(__name__)

OPTION_VMODE = "video"
OPTION_MODE = "mode"
OPTION_UDPBD_IP = "udpbd_ip"

OPTIONS_FILE = "nhddl.yaml"
NHDDL_STORAGE_FALLBACK_PATH = "/nhddl/nhddl.yaml"
NHDDL_MC_FALLBACK_PATHS: tuple[str, ...] = ("mc{card}:/APP_NHDDL/nhddl.yaml",)

NEUTRINO_ELF = "neutrino.elf"
NEUTRINO_STORAGE_FALLBACK_PATH = "/neutrino/neutrino.elf"
NEUTRINO_MC_FALLBACK_PATHS: tuple[str, ...] = (
    "mc{card}:/APPS/neutrino/neutrino.elf",
    "mc{card}:/NEUTRINO/NEUTRINO.ELF",
    "mc{card}:/NEUTRINO/neutrino.elf",
)

_MEMORY_CARDS = (0, 1)
_MMCE_SLOTS = (0, 1)
_VERSION_FILE = "/version.txt"
_VERSION_LINE_LIMIT = 4096 - 2

_MODES = {
    "ata": Mode.ATA,
    "mx4sio": Mode.MX4SIO,
    "udpbd": Mode.UDPBD,
    "usb": Mode.USB,
    "ilink": Mode.ILINK,
    "mmce": Mode.MMCE,
    "hdl": Mode.HDL,
}

_FILENAME_MODES = (
    ("ata", Mode.ATA),
    ("m4s", Mode.MX4SIO),
    ("udpbd", Mode.UDPBD),
    ("usb", Mode.USB),
    ("ilink", Mode.ILINK),
    ("mmce", Mode.MMCE),
    ("hdl", Mode.HDL),
)

_VMODES = {"ntsc": VMode.NTSC, "pal": VMode.PAL, "480p": VMode.P480}


class SettingsError(Exception):
    """Raised when a settings file or the loader cannot be found or read."""


def parse_mode(value: str) -> Mode:
    """Return the mode named by ``value``; unknown names enable every mode."""
    return _MODES.get(value, Mode.ALL)


def parse_filename(path: str) -> Mode:
    """Return the mode given by the postfix after the last '-' in a file name."""
    dash = path.rfind("-")
    if dash < 0:
        return Mode.NONE
    postfix = path[dash + 1 :]
    return next((mode for prefix, mode in _FILENAME_MODES if postfix.startswith(prefix)), Mode.NONE)


def parse_vmode(value: str) -> VMode:
    """Return the video mode named by ``value``, or VMode.NONE."""
    return _VMODES.get(value, VMode.NONE)


def apply_argv(options: LauncherOptions, argv: Iterable[Optional[str]]) -> None:
    """Apply ``-name=value`` arguments to ``options``."""
    for raw in argv:
        if not raw or not raw.startswith("-"):
            continue
        name, sep, value = raw[1:].partition("=")
        if not sep:
            continue
        if name == OPTION_VMODE:
            logger.info("Using VMode %s", value)
            options.vmode = parse_vmode(value)
        elif name == OPTION_MODE:
            logger.info("Using mode %s", value)
            options.mode |= parse_mode(value)
        elif name == OPTION_UDPBD_IP:
            logger.info("Using UDPBD IP %s", value)
            options.udpbd_ip = value


def _file_exists(path: str) -> bool:
    try:
        with open(path, "rb"):
            return True
    except OSError:
        return False


def _storage_candidates(devices: Iterable[Device], suffix: str) -> Iterator[str]:
    for device in itertools.islice(devices, MAX_DEVICES):
        if device.mode == Mode.NONE:
            break
        mountpoint = device.metadata_device().mountpoint
        if mountpoint is not None:
            yield mountpoint + suffix


def _memory_card_candidates(templates: Sequence[str], card: int) -> Iterator[str]:
    return (template.format(card=card) for template in templates)


def _find_options_file(cwd: Optional[str], init_type: InitType, devices: Iterable[Device]) -> Optional[str]:
    if cwd:
        path = cwd + OPTIONS_FILE
        if _file_exists(path):
            return path

    if init_type == InitType.FULL:
        found = next(
            (p for p in _storage_candidates(devices, NHDDL_STORAGE_FALLBACK_PATH) if _file_exists(p)),
            None,
        )
        if found is not None:
            return found

    # The later memory card takes precedence when both hold an options file
    found = None
    for card in _MEMORY_CARDS:
        match = next(
            (p for p in _memory_card_candidates(NHDDL_MC_FALLBACK_PATHS, card) if _file_exists(p)),
            None,
        )
        if match is not None:
            found = match
    return found


def load_options(
    options: LauncherOptions,
    cwd: Optional[str],
    init_type: InitType,
    devices: Iterable[Device],
) -> str:
    """Find the options file, apply it to ``options`` and return its path.

    The file is looked for in ``cwd``, then on storage devices after a full
    init, then on memory cards.
    """
    path = _find_options_file(cwd, init_type, devices)
    if path is None:
        logger.info("Can't load options file, will use defaults")
        raise SettingsError("options file not found")

    try:
        arguments = load_argument_list(path)
    except OptionsError as exc:
        logger.info("Can't load options file, will use defaults")
        raise SettingsError(f"can't load options file {path}: {exc}") from exc

    for argument in arguments:
        if argument.is_disabled:
            continue
        if argument.arg == OPTION_VMODE:
            options.vmode = parse_vmode(argument.value)
        elif argument.arg == OPTION_MODE:
            # An explicit mode replaces the default of every mode
            if options.mode == Mode.ALL:
                options.mode = Mode.NONE
            options.mode |= parse_mode(argument.value)
        elif argument.arg == OPTION_UDPBD_IP:
            options.udpbd_ip = argument.value
    return path


def find_neutrino_elf(cwd: Optional[str], init_type: InitType, devices: Iterable[Device]) -> str:
    """Return the path of the loader ELF found in ``cwd`` or a fallback location."""
    if cwd:
        path = cwd + NEUTRINO_ELF
        if _file_exists(path):
            return path

    if init_type == InitType.FULL:
        for path in _storage_candidates(devices, NEUTRINO_STORAGE_FALLBACK_PATH):
            if _file_exists(path):
                return path

    if init_type > InitType.BASIC:
        for slot in _MMCE_SLOTS:
            path = f"mmce{slot}:{NEUTRINO_STORAGE_FALLBACK_PATH}"
            if _file_exists(path):
                return path

    for card in _MEMORY_CARDS:
        for path in _memory_card_candidates(NEUTRINO_MC_FALLBACK_PATHS, card):
            if _file_exists(path):
                return path

    raise SettingsError("couldn't find neutrino.elf")


def get_neutrino_version(elf_path: str) -> str:
    """Return the first line of version.txt next to the ELF, prefixed with a space.

    Returns an empty string when the file cannot be read.
    """
    slash = elf_path.rfind("/")
    if slash < 0:
        return ""
    version_path = elf_path[:slash] + _VERSION_FILE
    try:
        with open(version_path, encoding="utf-8", errors="replace", newline="") as file:
            line = file.readline(_VERSION_LINE_LIMIT)
    except OSError:
        return ""
    if not line:
        return ""
    if line.endswith("\n"):
        line = line[:-1]
    return " " + line