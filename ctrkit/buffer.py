"""A buffer that tensors reserve space in before it is allocated at once."""

from __future__ import annotations

import numpy as np

from ctrkit.common import IllegalCallError, NotInitializedError, OutOfBoundError

_SUPPORTED_DTYPES = (np.dtype(np.float32), np.dtype(np.int64), np.dtype(np.uint32))


def _resolve_range(num_elements: int, begin: int, end: int) -> tuple[int, int] | None:
    """Turn a print range into absolute indices, or None if it is invalid."""
    if begin >= 0 and end <= num_elements and end > begin:
        return begin, end
    if end < 0 and -begin <= num_elements and end > begin:
        return num_elements + begin, num_elements + end
    return None


def _format_values(values: np.ndarray) -> str:
    if np.issubdtype(values.dtype, np.floating):
        return "".join(f"{float(v):g}," for v in values)
    return "".join(f"{int(v)}," for v in values)


class GeneralBuffer:
    """Contiguous storage shared by several tensors.

    Call :meth:`reserve` one or more times to register sizes, then
    :meth:`init` to allocate all of it, zero-filled, in one go.
    """

    def __init__(self, dtype=np.float32, size: int = 0, device_id: int | None = None) -> None:
        dt = np.dtype(dtype)
        if dt not in _SUPPORTED_DTYPES:
            raise TypeError(f"unsupported buffer dtype: {dt}")
        self._dtype = dt
        self._current_offset = int(size)
        self._device_id = -1
        self._data: np.ndarray | None = None
        if device_id is not None:
            self.init(device_id)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def device_id(self) -> int:
        return self._device_id

    @property
    def initialized(self) -> bool:
        return self._data is not None

    @property
    def num_elements(self) -> int:
        return self._current_offset

    @property
    def size(self) -> int:
        """Size of the buffer in bytes."""
        return self._current_offset * self._dtype.itemsize

    def init(self, device_id: int) -> None:
        """Allocate the registered space, filled with zeros."""
        if self.initialized:
            raise IllegalCallError("Initialized general buffer")
        self._device_id = device_id
        self._data = np.zeros(self._current_offset, dtype=self._dtype)

    def reset_sync(self) -> None:
        """Set every element back to zero."""
        if self._data is None:
            raise IllegalCallError("Not initialized")
        self._data.fill(0)

    def reserve(self, num_elements: int) -> int:
        """Register ``num_elements`` more elements; return the previous offset."""
        if self.initialized:
            raise IllegalCallError("cannot reserve in an initialized general buffer")
        previous = self._current_offset
        self._current_offset += int(num_elements)
        return previous

    def view(self, offset: int = 0, count: int | None = None) -> np.ndarray:
        """Return a writable view of ``count`` elements starting at ``offset``."""
        if self._data is None:
            raise NotInitializedError("GeneralBuffer is not initialized")
        if count is None:
            count = self._current_offset - offset
        if offset < 0 or count < 0 or offset + count > self._current_offset:
            raise OutOfBoundError("view exceeds the general buffer")
        return self._data[offset : offset + count]


def print_buffer(buffer: GeneralBuffer, begin: int, end: int) -> bool:
    """Print a range of the buffer; negative bounds count from the end.

    Returns False, printing nothing, when the range is not valid.
    """
    resolved = _resolve_range(buffer.num_elements, begin, end)
    if resolved is None:
        return False
    first, last = resolved
    values = buffer.view(first, last - first)
    print(f"Buffer: {buffer.num_elements}")
    print(f"begin: {first} end: {last}")
    print(_format_values(values))
    return True