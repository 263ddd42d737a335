"""Generators of small input files used to exercise the compressor."""

from __future__ import annotations

import array
import sys
from pathlib import Path

from sperr.helper import read_n_bytes, write_n_bytes

STEP_DIMS = (32, 32, 59)
STEP_HALF_LEN = 32 * 32 * 32
STEP_VALUE = 3.14

LENA_TOTAL_SIZE = 6434
LENA_BODY_SIZE = 6400


def _float32_bytes(values: array.array) -> bytes:
    if sys.byteorder != "little":
        values = array.array("f", values)
        values.byteswap()
    return values.tobytes()


def generate_step_volume(path: str | Path) -> None:
    """Write a 32x32x59 float32 volume: the first 32^3 values +3.14, the rest -3.14."""
    total = STEP_DIMS[0] * STEP_DIMS[1] * STEP_DIMS[2]
    values = array.array("f", [STEP_VALUE]) * STEP_HALF_LEN
    values.extend(array.array("f", [-STEP_VALUE]) * (total - STEP_HALF_LEN))
    write_n_bytes(path, _float32_bytes(values))


def pgm_to_float(
    in_path: str | Path,
    out_path: str | Path,
    total_size: int = LENA_TOTAL_SIZE,
    body_size: int = LENA_BODY_SIZE,
) -> None:
    """Convert the 8-bit pixels of a binary PGM file into little-endian float32 values.

    The last `body_size` of the first `total_size` bytes are taken as pixels.
    """
    if body_size > total_size:
        raise ValueError("body size cannot exceed total size")
    raw = read_n_bytes(in_path, total_size)
    body = raw[total_size - body_size :]
    write_n_bytes(out_path, _float32_bytes(array.array("f", body)))