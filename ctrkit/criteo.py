"""Convert space-separated Criteo samples into the binary dataset format.

Every input line holds a label followed by 39 integer keys. Keys are spread
over ``slot_num`` slots by ``key % slot_num``. Samples are written in files of
at most ``records_per_file`` records, named ``<prefix><n>.data``. A file list
is written whose first line is a count followed by one data file per line.
"""

from __future__ import annotations

import argparse
import os
import re
import struct
import sys
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import BinaryIO

from ctrkit.common import OutOfBoundError, WrongInputError

RECORDS_PER_FILE = 40960
KEYS_PER_SAMPLE = 39
LABEL_DIM = 1

_HEADER = struct.Struct("<4q")
_INT32 = struct.Struct("<i")
_INT_PREFIX = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")


@dataclass(frozen=True)
class DataSetHeader:
    """Fixed 32-byte header at the start of every data file."""

    number_of_records: int
    label_dim: int
    slot_num: int
    reserved: int = 0

    def pack(self) -> bytes:
        return _HEADER.pack(self.number_of_records, self.label_dim, self.slot_num, self.reserved)

    @classmethod
    def unpack(cls, data: bytes) -> DataSetHeader:
        if len(data) < _HEADER.size:
            raise WrongInputError(f"header needs {_HEADER.size} bytes, got {len(data)}")
        return cls(*_HEADER.unpack_from(data))


def _parse_int(text: str) -> int:
    """Parse a leading 32-bit integer, ignoring any trailing characters."""
    match = _INT_PREFIX.match(text)
    if match is None:
        raise WrongInputError(f"invalid integer: {text!r}")
    value = int(match.group(1))
    if not -(2**31) <= value < 2**31:
        raise OutOfBoundError(f"integer out of range: {text!r}")
    return value


def _split(line: str, delim: str) -> list[str]:
    """Split like reading delimited items from a stream: no trailing empty item."""
    if not line:
        return []
    parts = line.split(delim)
    if parts[-1] == "":
        parts.pop()
    return parts


def encode_sample(line: str, slot_num: int = 1) -> bytes:
    """Encode one text sample as label, then per slot a count and its keys."""
    if slot_num < 1:
        raise WrongInputError("slot_num must be at least 1")
    fields = _split(line, " ")
    if len(fields) != KEYS_PER_SAMPLE + 1:
        raise WrongInputError(
            f"expected {KEYS_PER_SAMPLE + 1} fields, got {len(fields)}: {line!r}"
        )
    label = _parse_int(fields[0])
    slots: list[list[int]] = [[] for _ in range(slot_num)]
    for field in fields[1:]:
        key = _parse_int(field)
        if key < 0:
            raise WrongInputError(f"negative key: {key}")
        slots[key % slot_num].append(key)

    out = bytearray(_INT32.pack(label))
    for keys in slots:
        out += _INT32.pack(len(keys))
        out += struct.pack(f"<{len(keys)}q", *keys)
    return bytes(out)


def _write_data_file(
    path: str, lines: Iterator[bytes], slot_num: int, limit: int
) -> tuple[int, bool]:
    """Write up to ``limit`` records; return the count and whether input ran out.

    Only newline-terminated lines count as records.
    """
    with open(path, "wb") as out:
        out.write(DataSetHeader(limit, LABEL_DIM, slot_num).pack())
        for count in range(limit):
            raw = next(lines, b"")
            if not raw.endswith(b"\n"):
                out.seek(0)
                out.write(DataSetHeader(count, LABEL_DIM, slot_num).pack())
                return count, True
            out.write(encode_sample(raw[:-1].decode("latin-1"), slot_num))
    return limit, False


def _read_lines(stream: BinaryIO) -> Iterator[bytes]:
    yield from stream


def convert(
    input_path: str | os.PathLike,
    prefix: str | os.PathLike,
    file_list_path: str | os.PathLike,
    slot_num: int = 1,
    records_per_file: int = RECORDS_PER_FILE,
) -> list[str]:
    """Convert ``input_path`` into data files; return their names in order."""
    if slot_num < 1:
        raise WrongInputError("slot_num must be at least 1")
    if records_per_file < 1:
        raise WrongInputError("records_per_file must be at least 1")
    prefix = os.fspath(prefix)
    slash = prefix.rfind("/")
    if slash > 0:
        os.makedirs(prefix[:slash], exist_ok=True)

    names: list[str] = []
    counter = 0
    with open(input_path, "rb") as source:
        lines = _read_lines(source)
        while True:
            name = f"{prefix}{counter}.data"
            names.append(name)
            _, exhausted = _write_data_file(name, lines, slot_num, records_per_file)
            if exhausted:
                break
            counter += 1

    with open(file_list_path, "w", encoding="utf-8") as file_list:
        file_list.write(f"{counter}\n")
        file_list.writelines(f"{name}\n" for name in names)
    return names


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="criteo2ctr",
        description="Convert Criteo text samples into binary data files.",
    )
    parser.add_argument("input", help="text file with one sample per line")
    parser.add_argument("prefix", help="output prefix, e.g. dir/prefix")
    parser.add_argument("file_list", help="file list to write")
    parser.add_argument("--slot-num", type=int, default=1, help="number of slots (default 1)")
    parser.add_argument(
        "--records-per-file",
        type=int,
        default=RECORDS_PER_FILE,
        help=f"samples per data file (default {RECORDS_PER_FILE})",
    )
    args = parser.parse_args(argv)
    try:
        names = convert(
            args.input, args.prefix, args.file_list, args.slot_num, args.records_per_file
        )
    except (WrongInputError, OutOfBoundError, OSError) as err:
        print(err, file=sys.stderr)
        return 1
    for name in names:
        print(name)
    print(f"Opening {args.file_list}")
    return 0