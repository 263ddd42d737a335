"""Shared helpers: transform sizing, boolean packing, file I/O, statistics and chunking."""

from __future__ import annotations

import array
import math
import struct
import sys
from dataclasses import dataclass
from enum import Enum
from itertools import product
from pathlib import Path
from typing import Iterable, MutableSequence, NamedTuple, Sequence

MAX_SIZE = 2**64 - 1
MAX_D = sys.float_info.max

_FILE_TYPECODES = {"f", "d", "B"}


class SperrError(Exception):
    """Raised when a bitstream or buffer is malformed."""


class CompMode(Enum):
    FIXED_SIZE = "fixed_size"
    FIXED_PSNR = "fixed_psnr"
    FIXED_PWE = "fixed_pwe"
    UNKNOWN = "unknown"


@dataclass
class HeaderInfo:
    """Information carried in the header of a bitstream."""

    version_major: int = 0
    zstd_applied: bool = False
    is_3d: bool = False
    orig_is_float: bool = False
    vol_dims: tuple[int, int, int] = (0, 0, 0)
    chunk_dims: tuple[int, int, int] = (0, 0, 0)


class Stats(NamedTuple):
    rmse: float
    linfty: float
    psnr: float
    arr1min: float
    arr1max: float


def num_of_xforms(length: int) -> int:
    """Number of wavelet transform levels for a dimension of the given length (at most 6)."""
    if length <= 0:
        raise ValueError("length must be positive")
    f = math.log2(length / 8.0)
    num = 0 if f < 0.0 else int(f) + 1
    return min(num, 6)


def num_of_partitions(length: int) -> int:
    """Number of times a length can be halved (rounding the kept half up) until it reaches 1."""
    parts = 0
    while length > 1:
        parts += 1
        length -= length // 2
    return parts


def calc_approx_detail_len(orig_len: int, lev: int) -> tuple[int, int]:
    """Lengths of the approximation and detail parts after `lev` transform levels."""
    low_len, high_len = orig_len, 0
    for _ in range(lev):
        high_len = low_len // 2
        low_len -= high_len
    return low_len, high_len


def pack_8_booleans(bits: Sequence[bool]) -> int:
    """Pack eight booleans into a byte, the first boolean being the most significant bit."""
    if len(bits) != 8:
        raise ValueError("exactly 8 booleans are required")
    value = 0
    for bit in bits:
        value = (value << 1) | (1 if bit else 0)
    return value


def unpack_8_booleans(byte: int) -> tuple[bool, ...]:
    """Unpack a byte into eight booleans, most significant bit first."""
    if not 0 <= byte <= 0xFF:
        raise ValueError("byte must be in [0, 255]")
    return tuple(bool((byte >> (7 - i)) & 1) for i in range(8))


def pack_booleans(bits: Sequence[bool]) -> bytes:
    """Pack booleans into bytes; the number of booleans must be a multiple of 8."""
    if len(bits) % 8 != 0:
        raise SperrError("number of booleans must be a multiple of 8")
    return bytes(pack_8_booleans(bits[i : i + 8]) for i in range(0, len(bits), 8))


def unpack_booleans(data: bytes, offset: int = 0) -> list[bool]:
    """Unpack every byte of `data` starting at `offset` into booleans."""
    if data is None:
        raise ValueError("data must not be None")
    if len(data) < offset:
        raise SperrError("offset lies beyond the end of the data")
    return [bit for byte in data[offset:] for bit in unpack_8_booleans(byte)]


def read_n_bytes(filename: str | Path, n_bytes: int) -> bytes:
    """Read the first `n_bytes` bytes of a file."""
    with open(filename, "rb") as fh:
        buf = fh.read(n_bytes)
    if len(buf) != n_bytes:
        raise SperrError(f"file holds fewer than {n_bytes} bytes")
    return buf


def read_whole_file(filename: str | Path, dtype: str = "B") -> array.array:
    """Read a file as an array of values with typecode 'f', 'd' or 'B'.

    Trailing bytes that do not fill a whole value are ignored.
    """
    if dtype not in _FILE_TYPECODES:
        raise ValueError(f"unsupported dtype {dtype!r}")
    raw = Path(filename).read_bytes()
    values = array.array(dtype)
    usable = len(raw) - len(raw) % values.itemsize
    values.frombytes(raw[:usable])
    return values


def write_n_bytes(filename: str | Path, data: bytes) -> None:
    """Write bytes to a file, replacing any existing content."""
    with open(filename, "wb") as fh:
        fh.write(data)


def calc_stats(arr1: Sequence[float], arr2: Sequence[float]) -> Stats:
    """RMSE, L-infinity error, PSNR (dB) between two arrays, plus min and max of the first."""
    if len(arr1) != len(arr2):
        raise ValueError("arrays must have the same length")
    if not arr1:
        raise ValueError("arrays must not be empty")
    arr1min, arr1max = min(arr1), max(arr1)
    if all(a == b for a, b in zip(arr1, arr2)):
        return Stats(0.0, 0.0, math.inf, arr1min, arr1max)

    diffs = [abs(a - b) for a, b in zip(arr1, arr2)]
    linfty = max(diffs)
    mse = sum(d * d for d in diffs) / len(arr1)
    rmse = math.sqrt(mse)
    range_sq = (arr1max - arr1min) ** 2
    if mse == 0.0:
        psnr = math.inf
    elif range_sq == 0.0:
        psnr = -math.inf
    else:
        psnr = math.log10(range_sq / mse) * 10.0
    return Stats(rmse, linfty, psnr, arr1min, arr1max)


def kahan_summation(arr: Iterable[float]) -> float:
    """Compensated summation of the values."""
    total = 0.0
    comp = 0.0
    for value in arr:
        y = value - comp
        t = total + y
        comp = (t - total) - y
        total = t
    return total


def chunk_volume(
    vol_dim: Sequence[int], chunk_dim: Sequence[int]
) -> list[tuple[int, int, int, int, int, int]]:
    """Split a volume into chunks of (x_start, x_len, y_start, y_len, z_start, z_len), X fastest."""
    if any(c == 0 for c in chunk_dim):
        raise ValueError("chunk dimensions must be positive")
    tics = []
    for vol, chk in zip(vol_dim, chunk_dim):
        n_segs = vol // chk
        if vol % chk > chk // 2:
            n_segs += 1
        n_segs = max(n_segs, 1)
        axis = [i * chk for i in range(n_segs)] + [vol]
        tics.append(list(zip(axis[:-1], axis[1:])))

    x_tics, y_tics, z_tics = tics
    return [
        (x0, x1 - x0, y0, y1 - y0, z0, z1 - z0)
        for (z0, z1), (y0, y1), (x0, x1) in product(z_tics, y_tics, x_tics)
    ]


def _chunk_indices(vol_dim: Sequence[int], chunk: Sequence[int]) -> Iterable[int]:
    x0, xl, y0, yl, z0, zl = chunk
    plane = vol_dim[0] * vol_dim[1]
    for z in range(z0, z0 + zl):
        for y in range(y0, y0 + yl):
            start = z * plane + y * vol_dim[0] + x0
            yield from range(start, start + xl)


def gather_chunk(
    vol: Sequence[float], vol_dim: Sequence[int], chunk: Sequence[int]
) -> list[float]:
    """Copy the values of one chunk out of a volume, X fastest."""
    x0, xl, y0, yl, z0, zl = chunk
    if x0 + xl > vol_dim[0] or y0 + yl > vol_dim[1] or z0 + zl > vol_dim[2]:
        raise ValueError("chunk lies outside the volume")
    return [float(vol[i]) for i in _chunk_indices(vol_dim, chunk)]


def scatter_chunk(
    big_vol: MutableSequence[float],
    vol_dim: Sequence[int],
    small_vol: Sequence[float],
    chunk: Sequence[int],
) -> None:
    """Write the values of one chunk back into a volume in place."""
    for idx, value in zip(_chunk_indices(vol_dim, chunk), small_vol):
        big_vol[idx] = value


def parse_header(data: bytes) -> HeaderInfo:
    """Parse the leading header of a 2D or 3D bitstream."""
    try:
        version = data[0]
        flags = unpack_8_booleans(data[1])
        header = HeaderInfo(
            version_major=version,
            zstd_applied=flags[0],
            is_3d=flags[1],
            orig_is_float=flags[2],
        )
        if header.is_3d:
            if flags[3]:
                dims = struct.unpack_from("<6I", data, 2)
                header.vol_dims = tuple(dims[:3])
                header.chunk_dims = tuple(dims[3:])
            else:
                dims = struct.unpack_from("<3I", data, 2)
                header.vol_dims = tuple(dims)
                header.chunk_dims = tuple(dims)
        else:
            dx, dy = struct.unpack_from("<2I", data, 2)
            header.vol_dims = (dx, dy, 1)
    except (IndexError, struct.error) as exc:
        raise SperrError("bitstream too short to hold a header") from exc
    return header


def calc_variance(arr: Sequence[float]) -> float:
    """Population variance of the values; infinity for an empty sequence."""
    if not arr:
        return math.inf
    mean = sum(arr) / len(arr)
    return sum((v - mean) * (v - mean) for v in arr) / len(arr)


def compression_mode(bit_budget: int, psnr: float, pwe: float) -> CompMode:
    """Decide which compression mode a combination of termination criteria selects."""
    if bit_budget < MAX_SIZE and psnr == MAX_D and pwe == 0.0:
        return CompMode.FIXED_SIZE
    if bit_budget == MAX_SIZE and psnr < MAX_D and pwe == 0.0:
        return CompMode.FIXED_PSNR
    if bit_budget == MAX_SIZE and psnr == MAX_D and pwe > 0.0:
        return CompMode.FIXED_PWE
    return CompMode.UNKNOWN