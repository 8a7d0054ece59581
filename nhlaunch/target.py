"""Launch candidates and the alphabetically ordered list that holds them."""

from __future__ import annotations

import bisect
import dataclasses
import string
from dataclasses import dataclass
from typing import Iterator, Optional

from nhlaunch.devices import Device

_ASCII_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)


def _sort_key(target: "Target") -> str:
    return target.name.translate(_ASCII_UPPER)


@dataclass
class Target:
    """A title that can be launched."""

    idx: int
    full_path: str
    name: str
    id: Optional[str]
    device: Optional[Device] = None

    def copy(self) -> "Target":
        """Return an independent copy sharing the same device."""
        return dataclasses.replace(self)


class TargetList:
    """Targets kept in case-insensitive alphabetical order of their names."""

    def __init__(self) -> None:
        self._targets: list[Target] = []

    def insert(self, target: Target) -> None:
        """Insert a target after every target whose name sorts at or before it."""
        bisect.insort_right(self._targets, target, key=_sort_key)

    def by_index(self, idx: int) -> Optional[Target]:
        """Return the target with the given idx, or None."""
        return next((t for t in self._targets if t.idx == idx), None)

    def remove(self, target: Target) -> Optional[Target]:
        """Remove a target and return the one that followed it, or None."""
        for position, current in enumerate(self._targets):
            if current is target:
                del self._targets[position]
                return self._targets[position] if position < len(self._targets) else None
        raise ValueError("target is not in the list")

    def __len__(self) -> int:
        return len(self._targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets)