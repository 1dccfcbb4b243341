"""Shaped views into a GeneralBuffer."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ctrkit.buffer import GeneralBuffer, _format_values, _resolve_range
from ctrkit.common import TensorFormat, WrongInputError, get_size_from_dims


def _validate(dims: tuple[int, ...], fmt: TensorFormat) -> None:
    if len(dims) == 2 and fmt not in (TensorFormat.WH, TensorFormat.HW):
        raise WrongInputError("input dims doesn't match format")
    if len(dims) == 3 and fmt is not TensorFormat.HSW:
        raise WrongInputError("input dims doesn't match format")
    if len(dims) not in (2, 3):
        raise WrongInputError("doesn't support dims != 2 and != 3")
    if any(d <= 0 for d in dims):
        raise WrongInputError("dims vector cannot have 0 or smaller elements")


class Tensor:
    """A 2-D or 3-D region of a GeneralBuffer.

    The last dimension is the leading one. Constructing a tensor reserves its
    space in the buffer; the contents exist once the buffer is initialized.
    """

    def __init__(
        self,
        dims: Sequence[int],
        buffer: GeneralBuffer,
        format: TensorFormat = TensorFormat.WH,
    ) -> None:
        self._dims = tuple(int(d) for d in dims)
        self._format = TensorFormat(format)
        _validate(self._dims, self._format)
        self._buffer = buffer
        self._offset = buffer.reserve(get_size_from_dims(self._dims))

    @property
    def dims(self) -> tuple[int, ...]:
        return self._dims

    @property
    def format(self) -> TensorFormat:
        return self._format

    @property
    def buffer(self) -> GeneralBuffer:
        return self._buffer

    @property
    def offset(self) -> int:
        """Element offset of this tensor inside its buffer."""
        return self._offset

    @property
    def device_id(self) -> int:
        return self._buffer.device_id

    @property
    def dtype(self) -> np.dtype:
        return self._buffer.dtype

    @property
    def num_elements(self) -> int:
        return get_size_from_dims(self._dims)

    @property
    def size(self) -> int:
        """Size of the tensor in bytes."""
        return self.num_elements * self._buffer.dtype.itemsize

    def reshape(self, new_dims: Sequence[int], new_format: TensorFormat) -> Tensor:
        """Return a tensor with new dims that shares this tensor's storage."""
        dims = tuple(int(d) for d in new_dims)
        fmt = TensorFormat(new_format)
        _validate(dims, fmt)
        if get_size_from_dims(dims) != self.num_elements:
            raise WrongInputError("new_dims should match the input Tensor")
        other = Tensor.__new__(Tensor)
        other._dims = dims
        other._format = fmt
        other._buffer = self._buffer
        other._offset = self._offset
        return other

    def data(self) -> np.ndarray:
        """Writable view of the contents, shaped as ``dims``."""
        return self._buffer.view(self._offset, self.num_elements).reshape(self._dims)


def print_tensor(tensor: Tensor, begin: int, end: int) -> bool:
    """Print a range of the flattened tensor; negative bounds count from the end.

    Returns False, printing nothing, when the range is not valid.
    """
    resolved = _resolve_range(tensor.num_elements, begin, end)
    if resolved is None:
        return False
    first, last = resolved
    values = tensor.data().reshape(-1)[first:last]
    print("Tensor: <" + "".join(f"{d}," for d in tensor.dims) + ">")
    print(f"begin: {first} end: {last}")
    print(_format_values(values))
    return True