"""Shared error types, tensor formats and small helpers."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable


class HugeCTRError(RuntimeError):
    """Base class of every error raised by this package."""


class WrongInputError(HugeCTRError):
    """An argument is out of the accepted range or inconsistent."""


class OutOfBoundError(HugeCTRError):
    """A fixed-capacity container was asked to hold more than it can."""


class IllegalCallError(HugeCTRError):
    """A method was called in a state that does not allow it."""


class NotInitializedError(HugeCTRError):
    """Storage was accessed before it was allocated."""


class TensorFormat(enum.Enum):
    """Memory layout of a tensor; the last letter is the leading dimension."""

    WH = "WH"
    HW = "HW"
    HSW = "HSW"


def get_size_from_dims(dims: Iterable[int]) -> int:
    """Return the number of elements described by ``dims``."""
    return math.prod(int(d) for d in dims)