"""Mapping between global device ids, local ids, GPU ids and processes."""

from __future__ import annotations

from collections.abc import Sequence

from ctrkit.common import WrongInputError


class DeviceMap:
    """Maps the devices of all nodes onto global, local and GPU ids.

    With two nodes holding GPUs ``[[0, 1, 2, 3], [1, 2]]``::

        global id: 0 1 2 3 4 5
        local id:  0 1 2 3 0 1
        device id: 0 1 2 3 1 2

    Lookups that find nothing return -1.
    """

    def __init__(self, device_list_total: Sequence[Sequence[int]], my_pid: int) -> None:
        total = tuple(tuple(int(device) for device in node) for node in device_list_total)
        if not 0 <= my_pid < len(total):
            raise WrongInputError("device_list_total.size() <= my_pid")
        self._device_list_total = total
        self._my_pid = my_pid
        self._device_list = total[my_pid]

        self._global_device: dict[int, int] = {}
        self._device_global: dict[int, int] = {}
        self._global_local: dict[int, int] = {}
        self._global_pid: dict[int, int] = {}

        global_id = 0
        for pid, node in enumerate(total):
            for local_id, device in enumerate(node):
                if pid == my_pid:
                    self._global_device.setdefault(global_id, device)
                    self._device_global.setdefault(device, global_id)
                    self._global_local.setdefault(global_id, local_id)
                self._global_pid[global_id] = pid
                global_id += 1

    @property
    def device_list(self) -> tuple[int, ...]:
        """GPU ids of the local node."""
        return self._device_list

    @property
    def device_list_total(self) -> tuple[tuple[int, ...], ...]:
        """GPU ids of every node."""
        return self._device_list_total

    @property
    def my_pid(self) -> int:
        return self._my_pid

    def get_global_id(self, local_device_id: int) -> int:
        """Global id of a GPU of the local node, or -1."""
        return self._device_global.get(local_device_id, -1)

    def get_local_id(self, global_id: int) -> int:
        """Position within the local node of a global id, or -1."""
        return self._global_local.get(global_id, -1)

    def get_local_device_id(self, global_id: int) -> int:
        """GPU id of a global id on the local node, or -1."""
        return self._global_device.get(global_id, -1)

    def get_pid(self, global_id: int) -> int:
        """Process that owns a global id, or -1."""
        return self._global_pid.get(global_id, -1)

    def num_nodes(self) -> int:
        """Number of nodes (processes)."""
        return len(self._device_list_total)

    def __len__(self) -> int:
        """Total number of devices over all nodes."""
        return len(self._global_pid)