"""Storage device descriptions and launcher-wide option types."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Optional

MAX_DEVICES = 20


class Mode(enum.IntFlag):
    """Device drivers a title can be launched from."""

    NONE = 0
    ATA = 1 << 0
    MX4SIO = 1 << 1
    UDPBD = 1 << 2
    USB = 1 << 3
    ILINK = 1 << 4
    MMCE = 1 << 5
    HDL = 1 << 6
    BDM = ATA | MX4SIO | UDPBD | USB | ILINK
    ALL = ATA | MX4SIO | UDPBD | USB | ILINK | MMCE | HDL


class VMode(enum.Enum):
    """Video mode requested for the launcher UI."""

    NONE = "none"
    NTSC = "ntsc"
    PAL = "pal"
    P480 = "480p"


@dataclass
class LauncherOptions:
    """Options controlling which devices are initialised and how."""

    vmode: VMode = VMode.NONE
    mode: Mode = Mode.NONE
    udpbd_ip: str = ""


@dataclass(eq=False)
class Device:
    """A mounted storage device that may hold titles.

    ``scan`` adds titles found on the device to a target list; it may be
    None when the device must be ignored during scanning. When ``metadev``
    is set, configuration and metadata are read from that device instead.
    """

    mountpoint: Optional[str]
    mode: Mode
    index: int = 0
    sync: Optional[Callable[[], None]] = None
    scan: Optional[Callable[..., object]] = None
    metadev: Optional["Device"] = None

    def metadata_device(self) -> "Device":
        """Return the device that holds configuration for this one."""
        return self.metadev if self.metadev is not None else self

    def device_number_index(self) -> int:
        """Return the position of the device number in the mountpoint.

        The number is the character right before the ':' that ends the
        device name, as in ``mass0:``.
        """
        if not self.mountpoint:
            raise ValueError("device has no mountpoint")
        colon = self.mountpoint.find(":")
        if colon < 1:
            raise ValueError(f"mountpoint {self.mountpoint!r} has no device number")
        return colon - 1