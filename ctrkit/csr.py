"""A fixed-capacity sparse matrix in compressed sparse row form."""

from __future__ import annotations

import numpy as np

from ctrkit.common import OutOfBoundError, WrongInputError

_SUPPORTED_DTYPES = (np.dtype(np.int64), np.dtype(np.uint32))


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class CSR:
    """Row offsets and values kept in one contiguous buffer.

    Rows ``4,5,1,2`` / ``3,5,1`` / ``3,2`` become row offsets ``0,4,7,9``
    and values ``4,5,1,2,3,5,1,3,2``. Call :meth:`new_row` before the values
    of each row and once more after the last row.
    """

    def __init__(self, num_rows: int, max_value_size: int, dtype=np.int64) -> None:
        dt = np.dtype(dtype)
        if dt not in _SUPPORTED_DTYPES:
            raise TypeError(f"unsupported CSR dtype: {dt}")
        if num_rows < 0 or max_value_size < 0:
            raise WrongInputError("num_rows and max_value_size must be non-negative")
        self._num_rows = num_rows
        self._max_value_size = max_value_size
        self._buffer = np.zeros(num_rows + 1 + max_value_size, dtype=dt)
        self._row_offset = self._buffer[: num_rows + 1]
        self._value = self._buffer[num_rows + 1 :]
        self._size_of_value = 0
        self._size_of_row_offset = 0

    @property
    def dtype(self) -> np.dtype:
        return self._buffer.dtype

    @property
    def num_rows(self) -> int:
        return self._num_rows

    @property
    def max_value_size(self) -> int:
        return self._max_value_size

    @property
    def size_of_value(self) -> int:
        """Number of values pushed so far."""
        return self._size_of_value

    @property
    def buffer(self) -> np.ndarray:
        """The whole unified buffer: row offsets followed by values."""
        return self._buffer

    def push_back(self, value: int) -> None:
        """Append a value to the current row."""
        if self._size_of_value >= self._max_value_size:
            raise OutOfBoundError("CSR out of bound")
        self._value[self._size_of_value] = value
        self._size_of_value += 1

    def new_row(self) -> None:
        """Start a new row (or close the last one)."""
        if self._size_of_row_offset > self._num_rows:
            raise OutOfBoundError("CSR out of bound")
        self._row_offset[self._size_of_row_offset] = self._size_of_value
        self._size_of_row_offset += 1

    def reset(self) -> None:
        """Forget all rows and values so the buffer can be refilled."""
        self._size_of_value = 0
        self._size_of_row_offset = 0

    def row_offsets(self) -> np.ndarray:
        """Read-only view of the row offsets written so far."""
        return _read_only(self._row_offset[: self._size_of_row_offset])

    def values(self) -> np.ndarray:
        """Read-only view of the values pushed so far."""
        return _read_only(self._value[: self._size_of_value])