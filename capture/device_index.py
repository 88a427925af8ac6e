"""Stable device index assignment in discovery order."""

from __future__ import annotations

import threading
from typing import Dict, List

from exceptions import DeviceError


class DeviceIndex:
    """Maps device unique ids to the index they were discovered at.

    Indices are assigned once and never change or get reused for the
    lifetime of the process.
    """

    def __init__(self) -> None:
        self._by_id: Dict[str, int] = {}
        self._order: List[str] = []
        self._lock = threading.Lock()

    def register(self, unique_id: str) -> int:
        """Assign the next index to a newly discovered device.

        Raises:
            DeviceError: If the id was already registered
        """
        with self._lock:
            if unique_id in self._by_id:
                raise DeviceError(
                    f"Device already registered at index {self._by_id[unique_id]}",
                    device_id=unique_id,
                )
            index = len(self._order)
            self._by_id[unique_id] = index
            self._order.append(unique_id)
            return index

    def index_of(self, unique_id: str) -> int:
        try:
            return self._by_id[unique_id]
        except KeyError:
            raise DeviceError("Unknown device", device_id=unique_id) from None

    def __contains__(self, unique_id: object) -> bool:
        return unique_id in self._by_id

    def __len__(self) -> int:
        return len(self._order)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._order)
