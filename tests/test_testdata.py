import array

import pytest

from sperr.helper import SperrError, read_whole_file
from sperr.testdata import generate_step_volume, pgm_to_float

_F32_PI = array.array("f", [3.14])[0]


def test_step_volume_size_and_values(tmp_path):
    out = tmp_path / "buf.bin"
    generate_step_volume(out)
    assert out.stat().st_size == 32 * 32 * 59 * 4
    values = read_whole_file(out, "f")
    assert len(values) == 32 * 32 * 59
    half = 32 * 32 * 32
    assert all(v == _F32_PI for v in values[:half])
    assert all(v == -_F32_PI for v in values[half:])


def test_step_volume_overwrites(tmp_path):
    out = tmp_path / "buf.bin"
    out.write_bytes(b"x" * 10)
    generate_step_volume(out)
    assert out.stat().st_size == 32 * 32 * 59 * 4


def test_pgm_to_float_short_file_raises(tmp_path):
    src = tmp_path / "short.pgm"
    src.write_bytes(b"P5\n")
    with pytest.raises(SperrError):
        pgm_to_float(src, tmp_path / "out.float")


def test_pgm_to_float_body_larger_than_total(tmp_path):
    src = tmp_path / "img.pgm"
    src.write_bytes(b"\x00" * 10)
    with pytest.raises(ValueError):
        pgm_to_float(src, tmp_path / "out.float", 4, 8)