import struct

import pytest

from ctrkit.common import OutOfBoundError, WrongInputError
from ctrkit.criteo import (
    KEYS_PER_SAMPLE,
    DataSetHeader,
    convert,
    encode_sample,
    main,
)


def _line(label, keys):
    return " ".join(str(v) for v in [label, *keys])


def _decode_sample(data, offset, slot_num):
    (label,) = struct.unpack_from("<i", data, offset)
    offset += 4
    slots = []
    for _ in range(slot_num):
        (nnz,) = struct.unpack_from("<i", data, offset)
        offset += 4
        slots.append(list(struct.unpack_from(f"<{nnz}q", data, offset)))
        offset += 8 * nnz
    return label, slots, offset


def _read_data_file(path, slot_num):
    data = open(path, "rb").read()
    header = DataSetHeader.unpack(data[:32])
    offset = 32
    samples = []
    for _ in range(header.number_of_records):
        label, slots, offset = _decode_sample(data, offset, slot_num)
        samples.append((label, slots))
    assert offset == len(data)
    return header, samples


def test_header_round_trip():
    header = DataSetHeader(40960, 1, 10, 0)
    assert DataSetHeader.unpack(header.pack()) == header


def test_header_wire_bytes():
    packed = DataSetHeader(1, 1, 1).pack()
    assert len(packed) == 32
    assert packed == (b"\x01" + b"\x00" * 7) * 3 + b"\x00" * 8


def test_header_unpack_too_short():
    with pytest.raises(WrongInputError):
        DataSetHeader.unpack(b"\x00" * 31)


def test_encode_single_slot():
    keys = list(range(100, 100 + KEYS_PER_SAMPLE))
    data = encode_sample(_line(1, keys), 1)
    label, slots, end = _decode_sample(data, 0, 1)
    assert label == 1
    assert slots == [keys]
    assert end == len(data)


def test_encode_ten_slots_groups_by_remainder():
    keys = list(range(KEYS_PER_SAMPLE))
    data = encode_sample(_line(0, keys), 10)
    label, slots, end = _decode_sample(data, 0, 10)
    assert label == 0
    assert end == len(data)
    assert sum(len(s) for s in slots) == KEYS_PER_SAMPLE
    for slot_id, slot_keys in enumerate(slots):
        assert all(k % 10 == slot_id for k in slot_keys)
        assert slot_keys == sorted(slot_keys)


def test_encode_tolerates_carriage_return():
    keys = list(range(KEYS_PER_SAMPLE))
    assert encode_sample(_line(1, keys) + "\r", 1) == encode_sample(_line(1, keys), 1)


def test_encode_wrong_field_count():
    with pytest.raises(WrongInputError):
        encode_sample(_line(1, range(KEYS_PER_SAMPLE - 1)), 1)


def test_encode_non_integer():
    keys = ["x"] + [str(k) for k in range(KEYS_PER_SAMPLE - 1)]
    with pytest.raises(WrongInputError):
        encode_sample(_line(1, keys), 1)


def test_encode_out_of_range_integer():
    keys = [2**40] + list(range(KEYS_PER_SAMPLE - 1))
    with pytest.raises(OutOfBoundError):
        encode_sample(_line(1, keys), 1)


def _write_input(path, count, terminate_last=True):
    lines = [_line(i % 2, range(i, i + KEYS_PER_SAMPLE)) for i in range(count)]
    text = "\n".join(lines) + ("\n" if terminate_last else "")
    path.write_text(text)
    return lines


def test_convert_splits_into_files(tmp_path):
    src = tmp_path / "in.txt"
    _write_input(src, 5)
    prefix = tmp_path / "out" / "part_"
    file_list = tmp_path / "list.txt"
    names = convert(src, str(prefix), file_list, 1, 2)
    assert names == [f"{prefix}{i}.data" for i in range(3)]
    counts = [_read_data_file(n, 1)[0].number_of_records for n in names]
    assert counts == [2, 2, 1]
    listed = file_list.read_text().splitlines()
    assert listed[0] == str(len(names) - 1)
    assert listed[1:] == names


def test_convert_exact_multiple_leaves_empty_last_file(tmp_path):
    src = tmp_path / "in.txt"
    _write_input(src, 4)
    names = convert(src, str(tmp_path / "p"), tmp_path / "list.txt", 1, 2)
    counts = [_read_data_file(n, 1)[0].number_of_records for n in names]
    assert counts == [2, 2, 0]


def test_convert_preserves_samples(tmp_path):
    src = tmp_path / "in.txt"
    lines = _write_input(src, 3)
    names = convert(src, str(tmp_path / "p"), tmp_path / "list.txt", 10, 10)
    header, samples = _read_data_file(names[0], 10)
    assert header.slot_num == 10
    assert header.label_dim == 1
    for line, (label, slots) in zip(lines, samples):
        fields = [int(f) for f in line.split()]
        assert label == fields[0]
        assert sorted(k for s in slots for k in s) == sorted(fields[1:])


def test_convert_drops_unterminated_last_line(tmp_path):
    src = tmp_path / "in.txt"
    _write_input(src, 3, terminate_last=False)
    names = convert(src, str(tmp_path / "p"), tmp_path / "list.txt", 1, 10)
    header, samples = _read_data_file(names[0], 1)
    assert header.number_of_records == 2
    assert len(samples) == 2


def test_convert_rejects_bad_records_per_file(tmp_path):
    src = tmp_path / "in.txt"
    _write_input(src, 1)
    with pytest.raises(WrongInputError):
        convert(src, str(tmp_path / "p"), tmp_path / "list.txt", 1, 0)


def test_main_converts(tmp_path, capsys):
    src = tmp_path / "in.txt"
    _write_input(src, 3)
    file_list = tmp_path / "list.txt"
    prefix = str(tmp_path / "d" / "x")
    assert main([str(src), prefix, str(file_list), "--slot-num", "10"]) == 0
    out = capsys.readouterr().out
    assert f"{prefix}0.data" in out
    assert file_list.read_text().splitlines()[1] == f"{prefix}0.data"


def test_main_reports_bad_input(tmp_path):
    src = tmp_path / "in.txt"
    src.write_text("1 2 3\n")
    assert main([str(src), str(tmp_path / "p"), str(tmp_path / "l.txt")]) == 1


def test_main_usage_error():
    with pytest.raises(SystemExit):
        main(["only-one-arg"])