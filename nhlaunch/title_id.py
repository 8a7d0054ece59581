"""Extraction of the title ID from SYSTEM.CNF inside an ISO image."""

from __future__ import annotations

import os
import struct
from typing import BinaryIO, Optional

SECTOR_SIZE = 2048
TOC_LBA = 16
SYSTEM_CNF_NAME = b"SYSTEM.CNF;1"

_PVD_ROOT_OFFSET = 0x9C
_TOC_SCAN_LIMIT = 2016
_RECORD_HEADER = struct.Struct("<hI")
_FILENAME_LENGTH_OFFSET = 32
_FILENAME_OFFSET = 33
_FILENAME_MAX = 128
_TITLE_ID_LENGTH = 11


class TitleIDError(Exception):
    """Raised when the title ID cannot be read from an image."""


def _read_sector(file: BinaryIO, lba: int) -> Optional[bytes]:
    file.seek(lba * SECTOR_SIZE, os.SEEK_SET)
    data = file.read(SECTOR_SIZE)
    return data if len(data) == SECTOR_SIZE else None


def _root_directory(file: BinaryIO, path: str) -> tuple[int, int]:
    sector = _read_sector(file, TOC_LBA)
    if sector is None:
        raise TitleIDError(f"{path}: failed to read ISO PVD")
    if sector[0] != 1 or sector[1:6] != b"CD001":
        raise TitleIDError(f"{path}: failed to parse ISO PVD")
    length, lba = _RECORD_HEADER.unpack_from(sector, _PVD_ROOT_OFFSET)
    return lba, length


def _find_system_cnf(file: BinaryIO, toc_lba: int, toc_length: int) -> Optional[tuple[int, int]]:
    """Return (lba, length) of the SYSTEM.CNF directory record."""
    while toc_length > 0:
        sector = _read_sector(file, toc_lba)
        if sector is None:
            return None
        position = 0
        while position < _TOC_SCAN_LIMIT and position + _FILENAME_OFFSET <= SECTOR_SIZE:
            length, lba = _RECORD_HEADER.unpack_from(sector, position)
            if length <= 0:
                break
            name_length = sector[position + _FILENAME_LENGTH_OFFSET]
            start = position + _FILENAME_OFFSET
            name = sector[start : start + _FILENAME_MAX].split(b"\0", 1)[0]
            if name_length and name == SYSTEM_CNF_NAME:
                return lba, length
            position += length
        toc_length -= SECTOR_SIZE
        toc_lba += 1
    return None


def _parse_system_cnf(data: bytes, path: str) -> str:
    text = bytearray(data.split(b"\0", 1)[0])
    boot2 = text.find(b"BOOT2")
    if boot2 < 0:
        raise TitleIDError(f"{path}: BOOT2 not found in SYSTEM.CNF")
    self_file = text.find(b"cdrom0:", boot2)
    arg_end = text.find(b";", boot2)
    if self_file < 0 or arg_end < 0:
        raise TitleIDError(f"{path}: file name not found in SYSTEM.CNF")
    # Normalise the version suffix to ";1" before taking the ID
    for offset, value in ((1, ord("1")), (2, 0)):
        if arg_end + offset < len(text):
            text[arg_end + offset] = value
    start = self_file + 8
    title = bytes(text[start : start + _TITLE_ID_LENGTH]).split(b"\0", 1)[0]
    return title.decode("latin-1")


def get_title_id(path: str | os.PathLike) -> str:
    """Read SYSTEM.CNF from the ISO at ``path`` and return its title ID."""
    name = os.fspath(path)
    try:
        file = open(name, "rb")
    except OSError as exc:
        raise TitleIDError(f"{name}: failed to open file: {exc}") from exc
    with file:
        try:
            root_lba, root_length = _root_directory(file, name)
            entry = _find_system_cnf(file, root_lba, root_length)
            if entry is None:
                raise TitleIDError(f"{name}: failed to find SYSTEM.CNF")
            lba, length = entry
            file.seek(lba * SECTOR_SIZE, os.SEEK_SET)
            data = file.read(length)
        except OSError as exc:
            raise TitleIDError(f"{name}: failed to read SYSTEM.CNF: {exc}") from exc
    if len(data) != length:
        raise TitleIDError(f"{name}: failed to read SYSTEM.CNF")
    return _parse_system_cnf(data, name)