import math
import random
import struct

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sperr.helper import (
    MAX_D,
    MAX_SIZE,
    CompMode,
    HeaderInfo,
    SperrError,
    calc_approx_detail_len,
    calc_stats,
    calc_variance,
    chunk_volume,
    compression_mode,
    gather_chunk,
    kahan_summation,
    num_of_partitions,
    num_of_xforms,
    pack_8_booleans,
    pack_booleans,
    parse_header,
    read_n_bytes,
    read_whole_file,
    scatter_chunk,
    unpack_8_booleans,
    unpack_booleans,
    write_n_bytes,
)


@pytest.mark.parametrize(
    "length, expected",
    [
        (1, 0), (7, 0), (8, 1), (9, 1), (15, 1), (16, 2), (17, 2), (31, 2),
        (32, 3), (63, 3), (64, 4), (127, 4), (128, 5),
    ],
)
def test_num_of_xforms(length, expected):
    assert num_of_xforms(length) == expected


def test_num_of_xforms_capped_at_six():
    assert num_of_xforms(1 << 20) == 6


def test_num_of_xforms_rejects_zero():
    with pytest.raises(ValueError):
        num_of_xforms(0)


@pytest.mark.parametrize("length, expected", [(1, 0), (2, 1), (3, 2), (4, 2), (5, 3), (8, 3)])
def test_num_of_partitions(length, expected):
    assert num_of_partitions(length) == expected


@pytest.mark.parametrize(
    "orig, lev, expected",
    [(7, 0, (7, 0)), (7, 1, (4, 3)), (8, 1, (4, 4)), (8, 2, (2, 2)), (16, 2, (4, 4))],
)
def test_approx_detail_len(orig, lev, expected):
    assert calc_approx_detail_len(orig, lev) == expected


def test_bit_packing():
    bits = [
        True, True, True, True, True, True, True, True,
        False, False, False, False, False, False, False, False,
        True, False, True, False, True, False, True, False,
        False, True, False, True, False, True, False, True,
        True, True, False, False, True, True, False, False,
        False, False, True, True, False, False, True, True,
        False, False, True, True, False, False, True, False,
        True, False, False, False, True, True, True, False,
        False, False, False, True, False, False, False, True,
        True, True, True, False, True, True, True, False,
        False, False, True, True, True, False, False, True,
    ]
    packed = pack_booleans(bits)
    assert len(packed) == 11
    assert packed[0] == 0xFF and packed[1] == 0x00 and packed[2] == 0xAA
    data = b"\x5a" + packed
    assert unpack_booleans(data, 1) == bits


def test_bit_packing_1032_bools():
    rng = random.Random(1234)
    bits = [rng.random() < 0.5 for _ in range(1032)]
    data = bytes(23) + pack_booleans(bits)
    assert unpack_booleans(data, 23) == bits


@given(st.lists(st.booleans(), max_size=40).map(lambda b: b[: len(b) - len(b) % 8]))
def test_pack_unpack_round_trip(bits):
    assert unpack_booleans(pack_booleans(bits)) == bits


def test_pack_booleans_rejects_partial_byte():
    with pytest.raises(SperrError):
        pack_booleans([True] * 7)


def test_unpack_booleans_offset_too_large():
    with pytest.raises(SperrError):
        unpack_booleans(b"\x01\x02", 3)


def test_bit_packing_one_byte():
    cases = [
        [True] * 8,
        [True, False] * 4,
        [False] * 8,
        [False, True] * 4,
    ]
    for bits in cases:
        assert list(unpack_8_booleans(pack_8_booleans(bits))) == bits


def test_pack_8_booleans_msb_first():
    assert pack_8_booleans([True] + [False] * 7) == 0x80
    assert pack_8_booleans([False] * 7 + [True]) == 0x01


def test_domain_decomposition():
    chunks = chunk_volume((4, 4, 4), (1, 2, 3))
    assert chunks == [
        (0, 1, 0, 2, 0, 4), (1, 1, 0, 2, 0, 4), (2, 1, 0, 2, 0, 4), (3, 1, 0, 2, 0, 4),
        (0, 1, 2, 2, 0, 4), (1, 1, 2, 2, 0, 4), (2, 1, 2, 2, 0, 4), (3, 1, 2, 2, 0, 4),
    ]
    chunks = chunk_volume((4, 4, 1), (1, 2, 3))
    assert chunks == [
        (0, 1, 0, 2, 0, 1), (1, 1, 0, 2, 0, 1), (2, 1, 0, 2, 0, 1), (3, 1, 0, 2, 0, 1),
        (0, 1, 2, 2, 0, 1), (1, 1, 2, 2, 0, 1), (2, 1, 2, 2, 0, 1), (3, 1, 2, 2, 0, 1),
    ]


def test_chunk_volume_short_tail_merged():
    chunks = chunk_volume((32, 32, 59), (32, 32, 32))
    assert chunks == [(0, 32, 0, 32, 0, 32), (0, 32, 0, 32, 32, 27)]


def test_gather_scatter_round_trip():
    dims = (5, 4, 3)
    vol = [float(i) for i in range(60)]
    out = [0.0] * 60
    for chunk in chunk_volume(dims, (2, 2, 2)):
        scatter_chunk(out, dims, gather_chunk(vol, dims, chunk), chunk)
    assert out == vol


def test_gather_chunk_values():
    dims = (4, 4, 1)
    vol = list(range(16))
    assert gather_chunk(vol, dims, (1, 2, 2, 2, 0, 1)) == [9.0, 10.0, 13.0, 14.0]


def test_gather_chunk_out_of_bounds():
    with pytest.raises(ValueError):
        gather_chunk([0.0] * 8, (2, 2, 2), (1, 2, 0, 1, 0, 1))


def test_calc_stats_identical():
    stats = calc_stats([1.0, 2.0, 5.0], [1.0, 2.0, 5.0])
    assert stats.psnr == math.inf
    assert stats.rmse == 0.0 and stats.linfty == 0.0
    assert (stats.arr1min, stats.arr1max) == (1.0, 5.0)


def test_calc_stats_values():
    stats = calc_stats([0.0, 1.0, 2.0, 3.0], [0.0, 1.0, 2.0, 4.0])
    assert stats.rmse == pytest.approx(0.5)
    assert stats.linfty == pytest.approx(1.0)
    assert stats.psnr == pytest.approx(15.563025, rel=1e-6)


def test_calc_stats_length_mismatch():
    with pytest.raises(ValueError):
        calc_stats([1.0], [1.0, 2.0])


def test_kahan_summation():
    assert kahan_summation([0.1] * 10) == pytest.approx(1.0, abs=1e-15)
    assert kahan_summation([]) == 0.0


def test_calc_variance():
    assert calc_variance([1.0, 2.0, 3.0, 4.0]) == pytest.approx(1.25)
    assert calc_variance([]) == math.inf


def test_compression_mode():
    assert compression_mode(100, MAX_D, 0.0) is CompMode.FIXED_SIZE
    assert compression_mode(MAX_SIZE, 80.0, 0.0) is CompMode.FIXED_PSNR
    assert compression_mode(MAX_SIZE, MAX_D, 0.5) is CompMode.FIXED_PWE
    assert compression_mode(100, 80.0, 0.5) is CompMode.UNKNOWN


def test_parse_header_3d_multi_chunk():
    flags = pack_8_booleans([False, True, True, True, False, False, False, False])
    data = bytes([1, flags]) + struct.pack("<6I", 32, 32, 59, 32, 32, 32)
    assert parse_header(data) == HeaderInfo(1, False, True, True, (32, 32, 59), (32, 32, 32))


def test_parse_header_3d_single_chunk():
    flags = pack_8_booleans([True, True, False, False, False, False, False, False])
    data = bytes([2, flags]) + struct.pack("<3I", 10, 20, 30)
    header = parse_header(data)
    assert header.zstd_applied and not header.orig_is_float
    assert header.vol_dims == (10, 20, 30) and header.chunk_dims == (10, 20, 30)


def test_parse_header_2d():
    data = bytes([1, 0]) + struct.pack("<2I", 90, 80)
    header = parse_header(data)
    assert not header.is_3d
    assert header.vol_dims == (90, 80, 1)


def test_parse_header_too_short():
    with pytest.raises(SperrError):
        parse_header(bytes([1, 0x40, 0, 0]))


def test_file_round_trip(tmp_path):
    path = tmp_path / "vals.bin"
    payload = struct.pack("<3f", 1.5, -2.0, 3.25) + b"\x01"
    write_n_bytes(path, payload)
    assert list(read_whole_file(path, "f")) == [1.5, -2.0, 3.25]
    assert read_n_bytes(path, 4) == payload[:4]
    assert len(read_whole_file(path, "B")) == 13


def test_read_n_bytes_too_short(tmp_path):
    path = tmp_path / "short.bin"
    write_n_bytes(path, b"abc")
    with pytest.raises(SperrError):
        read_n_bytes(path, 10)


def test_read_whole_file_bad_dtype(tmp_path):
    path = tmp_path / "x.bin"
    write_n_bytes(path, b"abcd")
    with pytest.raises(ValueError):
        read_whole_file(path, "q")