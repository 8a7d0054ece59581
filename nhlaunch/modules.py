"""Ordered loading of I/O processor driver modules for the enabled modes."""

from __future__ import annotations

import enum
import errno
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from nhlaunch.devices import LauncherOptions, Mode

logger = logging.getLogger(__name__)

IP_CONFIG_PATHS: tuple[str, ...] = tuple(f"mc{n}:/SYS-CONF/IPCONFIG.DAT" for n in "01")

_IP_MAX_LENGTH = 15
_SMAP_ARGUMENT_LENGTH = 19

# Up to 4 descriptors, 20 buffers
_PS2HDD_ARGUMENTS = b"-o\x004\x00-n\x0020\x00"
# Up to 10 descriptors, 40 buffers
_PS2FS_ARGUMENTS = b"-o\x0010\x00-n\x0040\x00"


class InitType(enum.IntEnum):
    """How many modules to initialise."""

    BASIC = 0  # base modules only
    EXTENDED = 1  # base modules plus input and memory card drivers
    FULL = 2  # every module required by the enabled modes


class ModuleError(Exception):
    """Raised when a module or its arguments cannot be set up."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


ArgumentFunction = Callable[[LauncherOptions], bytes]
# Loads a module by name with the given argument bytes and returns
# (load result, module result).
Executor = Callable[[str, bytes], "tuple[int, int]"]


@dataclass
class ModuleEntry:
    """A driver module and the conditions under which it is loaded."""

    name: str
    mode: Mode
    init_type: InitType
    argument_function: Optional[ArgumentFunction] = None
    loaded: bool = False


def parse_ip_config(options: LauncherOptions, paths: Sequence[str] = IP_CONFIG_PATHS) -> str:
    """Read the IP address from the first IPCONFIG.DAT that opens.

    The address is stored in ``options.udpbd_ip`` and returned.
    """
    data: Optional[bytes] = None
    for path in paths:
        try:
            with open(path, "rb") as file:
                data = file.read(_IP_MAX_LENGTH)
        except OSError:
            continue
        break

    if data is None or len(data) < _IP_MAX_LENGTH:
        if options.mode & Mode.UDPBD:
            logger.warning("Failed to get IP address from IPCONFIG.DAT")
        raise ModuleError("failed to get IP address from IPCONFIG.DAT", -errno.ENOENT)

    text = data.decode("ascii", "replace")
    end = next((i for i, ch in enumerate(text) if ch.isspace()), len(text))
    options.udpbd_ip = text[:end]
    return options.udpbd_ip


def smap_arguments(options: LauncherOptions, paths: Sequence[str] = IP_CONFIG_PATHS) -> bytes:
    """Build the ``ip=`` argument for the network driver."""
    if not options.udpbd_ip and not parse_ip_config(options, paths):
        raise ModuleError("no IP address for the network driver", -errno.EINVAL)
    argument = f"ip={options.udpbd_ip}".encode("ascii", "replace")[: _SMAP_ARGUMENT_LENGTH - 1]
    return argument.ljust(_SMAP_ARGUMENT_LENGTH, b"\0")


def ps2hdd_arguments() -> bytes:
    """Return the argument block for the HDD driver."""
    return _PS2HDD_ARGUMENTS


def ps2fs_arguments() -> bytes:
    """Return the argument block for the PFS driver."""
    return _PS2FS_ARGUMENTS


def _default_modules(ip_config_paths: Sequence[str]) -> list[ModuleEntry]:
    def smap(options: LauncherOptions) -> bytes:
        return smap_arguments(options, ip_config_paths)

    basic, extended, full = InitType.BASIC, InitType.EXTENDED, InitType.FULL
    return [
        ModuleEntry("iomanX", Mode.ALL, basic),
        ModuleEntry("fileXio", Mode.ALL, basic),
        ModuleEntry("sio2man", Mode.ALL, basic),
        ModuleEntry("mcman", Mode.ALL, basic),
        ModuleEntry("mcserv", Mode.ALL, basic),
        ModuleEntry("freepad", Mode.ALL, extended),
        ModuleEntry("mmceman", Mode.ALL, extended),
        ModuleEntry("ps2dev9", Mode.UDPBD | Mode.ATA | Mode.HDL, full),
        ModuleEntry("bdm", Mode.BDM, full),
        ModuleEntry("bdmfs_fatfs", Mode.BDM, full),
        ModuleEntry("smap_udpbd", Mode.UDPBD, full, smap),
        ModuleEntry("ata_bd", Mode.ATA | Mode.HDL, full),
        ModuleEntry("usbd_mini", Mode.USB, full),
        ModuleEntry("usbmass_bd_mini", Mode.USB, full),
        ModuleEntry("mx4sio_bd_mini", Mode.MX4SIO, full),
        ModuleEntry("iLinkman", Mode.ILINK, full),
        ModuleEntry("IEEE1394_bd_mini", Mode.ILINK, full),
        ModuleEntry("ps2hdd", Mode.HDL, full, lambda _options: ps2hdd_arguments()),
        ModuleEntry("ps2fs", Mode.HDL, full, lambda _options: ps2fs_arguments()),
    ]


class ModuleLoader:
    """Loads driver modules in order, tracking which are already loaded."""

    def __init__(
        self,
        options: LauncherOptions,
        executor: Executor,
        modules: Optional[Iterable[ModuleEntry]] = None,
        *,
        reset: Optional[Callable[[], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_loaded: Optional[Callable[[str], None]] = None,
        ip_config_paths: Sequence[str] = IP_CONFIG_PATHS,
    ) -> None:
        self.options = options
        self.modules = list(modules) if modules is not None else _default_modules(ip_config_paths)
        self._executor = executor
        self._reset = reset
        self._sleep = sleep
        self._on_loaded = on_loaded

    def init_modules(self, init_type: InitType) -> None:
        """Load every module needed up to ``init_type`` that is not loaded yet."""
        if self.modules and not self.modules[0].loaded and self._reset is not None:
            logger.info("Rebooting IOP")
            self._reset()

        for entry in self.modules:
            if entry.init_type > init_type:
                return
            # The memory card driver conflicts with MX4SIO
            if self.options.mode & Mode.MX4SIO and entry.name == "mmceman":
                continue
            if entry.loaded:
                continue
            if entry.mode & self.options.mode:
                self.load_module(entry)
                entry.loaded = True
                # The HDD driver hangs without a pause after the ATA driver
                if self.options.mode & Mode.HDL and entry.name == "ata_bd":
                    self._sleep(1)
                if self._on_loaded is not None:
                    self._on_loaded(entry.name)

    def load_module(self, entry: ModuleEntry) -> None:
        """Load one module, dropping its modes if it is optional and fails."""
        logger.info("Loading %s", entry.name)
        try:
            arguments = entry.argument_function(self.options) if entry.argument_function else b""
        except ModuleError:
            ret = -errno.EINVAL
        else:
            ret, module_ret = self._executor(entry.name, arguments)
            if ret >= 0:
                ret = 0
            if module_ret == 1:
                ret = 1

        if ret == 0:
            return

        if entry.mode != Mode.ALL and (entry.mode & self.options.mode) ^ self.options.mode:
            logger.warning("Failed to load module %s; some modes might not be available", entry.name)
            self.options.mode ^= entry.mode
            return

        logger.error("Failed to initialize module %s: %d", entry.name, ret)
        raise ModuleError(f"failed to initialize module {entry.name}: {ret}", ret)