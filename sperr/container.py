"""Chunked 3D container: compression targets, per-chunk budgets, header layout and parsing."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from typing import NamedTuple, Sequence

from sperr.helper import (
    MAX_D,
    MAX_SIZE,
    CompMode,
    SperrError,
    chunk_volume,
    compression_mode,
    gather_chunk,
    pack_8_booleans,
    scatter_chunk,
    unpack_8_booleans,
)

VERSION_MAJOR = 0

# Version byte + flag byte + volume dims (3 x uint32), optionally + chunk dims (3 x uint32).
HEADER_MAGIC_1CHUNK = 14
HEADER_MAGIC_NCHUNKS = 26

_UINT32_MAX = 2**32 - 1

Chunk = tuple[int, int, int, int, int, int]


def _header_size(num_chunks: int) -> int:
    magic = HEADER_MAGIC_NCHUNKS if num_chunks > 1 else HEADER_MAGIC_1CHUNK
    return magic + num_chunks * 4


def _chunk_len(chunk: Sequence[int]) -> int:
    return chunk[1] * chunk[3] * chunk[5]


@dataclass(frozen=True)
class CompressionTarget:
    """Termination criteria for compression: a bit budget, a target PSNR or a point-wise error."""

    bit_budget: int = MAX_SIZE
    psnr: float = MAX_D
    pwe: float = 0.0

    @classmethod
    def from_bpp(
        cls, bpp: float, dims: Sequence[int], chunk_dims: Sequence[int]
    ) -> "CompressionTarget":
        """A fixed-size target of `bpp` bits per value over the whole volume."""
        if bpp <= 0.0 or bpp > 64.0:
            raise ValueError("bits per value must be in (0, 64]")
        if any(d == 0 for d in dims) or any(c == 0 for c in chunk_dims):
            raise SperrError("volume and chunk dimensions must be set before the bit rate")
        total_vals = dims[0] * dims[1] * dims[2]
        return cls(bit_budget=int(bpp * float(total_vals)), psnr=MAX_D, pwe=0.0)

    @classmethod
    def from_psnr(cls, psnr: float) -> "CompressionTarget":
        """A target PSNR in dB; negative values are taken as zero."""
        return cls(bit_budget=MAX_SIZE, psnr=max(psnr, 0.0), pwe=0.0)

    @classmethod
    def from_pwe(cls, pwe: float) -> "CompressionTarget":
        """A target point-wise error; negative values are taken as zero."""
        return cls(bit_budget=MAX_SIZE, psnr=MAX_D, pwe=max(pwe, 0.0))

    def mode(self) -> CompMode:
        return compression_mode(self.bit_budget, self.psnr, self.pwe)


class VolumeChunks(NamedTuple):
    chunk_dims: tuple[int, int, int]
    chunks: list[Chunk]
    buffers: list[list[float]]


@dataclass(frozen=True)
class ChunkedStream:
    """A parsed chunked bitstream: its geometry and where every chunk's stream lies."""

    dims: tuple[int, int, int]
    chunk_dims: tuple[int, int, int]
    chunks: list[Chunk]
    offsets: list[int]
    data: bytes
    orig_is_float: bool

    def chunk_streams(self) -> list[bytes]:
        """The bitstream of each chunk, in chunk order."""
        return [self.data[a:b] for a, b in zip(self.offsets[:-1], self.offsets[1:])]


def split_volume(
    vol: Sequence[float], vol_dims: Sequence[int], chunk_dims: Sequence[int]
) -> VolumeChunks:
    """Cut a volume into chunks; preferred chunk sizes are clamped to [1, volume size]."""
    if len(vol) != vol_dims[0] * vol_dims[1] * vol_dims[2]:
        raise SperrError("volume length does not match its dimensions")
    if any(d == 0 for d in vol_dims):
        raise SperrError("volume dimensions must be positive")
    clamped = tuple(min(max(1, c), d) for c, d in zip(chunk_dims, vol_dims))
    chunks = chunk_volume(vol_dims, clamped)
    buffers = [gather_chunk(vol, vol_dims, chunk) for chunk in chunks]
    return VolumeChunks(clamped, chunks, buffers)


def chunk_budgets(
    target: CompressionTarget, dims: Sequence[int], chunks: Sequence[Chunk]
) -> list[int]:
    """Bit budget of every chunk, proportional to its size and a multiple of 8."""
    if target.bit_budget == MAX_SIZE:
        return [MAX_SIZE] * len(chunks)
    header_bits = _header_size(len(chunks)) * 8
    if target.bit_budget < header_bits:
        raise SperrError("bit budget is too small to hold the header")
    avail_bits = target.bit_budget - header_bits
    total_vals = dims[0] * dims[1] * dims[2]
    budgets = []
    for chunk in chunks:
        budget = int((_chunk_len(chunk) / total_vals) * avail_bits)
        budgets.append(budget - budget % 8)
    return budgets


def build_header(
    dims: Sequence[int],
    chunk_dims: Sequence[int],
    stream_lengths: Sequence[int],
    orig_is_float: bool,
    zstd: bool,
) -> bytes:
    """Header: version, flag byte, dimensions and the length of every chunk stream."""
    num_chunks = len(chunk_volume(dims, chunk_dims))
    if num_chunks != len(stream_lengths):
        raise SperrError("number of streams does not match the number of chunks")
    if any(not 0 <= v <= _UINT32_MAX for v in (*dims, *chunk_dims, *stream_lengths)):
        raise SperrError("a dimension or stream length does not fit in 32 bits")
    multi = num_chunks > 1
    flags = pack_8_booleans([zstd, True, orig_is_float, multi, False, False, False, False])
    parts = [bytes([VERSION_MAJOR, flags])]
    if multi:
        parts.append(struct.pack("<6I", *dims, *chunk_dims))
    else:
        parts.append(struct.pack("<3I", *dims))
    parts.append(struct.pack(f"<{num_chunks}I", *stream_lengths))
    header = b"".join(parts)
    assert len(header) == _header_size(num_chunks)
    return header


def assemble(
    dims: Sequence[int],
    chunk_dims: Sequence[int],
    streams: Sequence[bytes],
    orig_is_float: bool,
    zstd: bool,
) -> bytes:
    """Concatenate the header and every chunk stream into one bitstream."""
    if any(len(s) == 0 for s in streams):
        raise SperrError("a chunk produced an empty stream")
    header = build_header(dims, chunk_dims, [len(s) for s in streams], orig_is_float, zstd)
    return header + b"".join(bytes(s) for s in streams)


def parse_bitstream(data: bytes, zstd: bool) -> ChunkedStream:
    """Parse the header of a chunked 3D bitstream and locate every chunk stream."""
    data = bytes(data)
    if len(data) < 2:
        raise SperrError("bitstream too short to hold a header")
    if data[0] != VERSION_MAJOR:
        raise SperrError("major version does not match")
    flags = unpack_8_booleans(data[1])
    if flags[0] != bool(zstd):
        raise SperrError("ZSTD usage does not match")
    if not flags[1]:
        raise SperrError("bitstream holds a 2D slice, not a 3D volume")
    multi = flags[3]
    try:
        if multi:
            vc = struct.unpack_from("<6I", data, 2)
            dims, chunk_dims = tuple(vc[:3]), tuple(vc[3:])
            loc = HEADER_MAGIC_NCHUNKS
        else:
            dims = tuple(struct.unpack_from("<3I", data, 2))
            chunk_dims = dims
            loc = HEADER_MAGIC_1CHUNK
    except struct.error as exc:
        raise SperrError("bitstream too short to hold a header") from exc
    if any(d == 0 for d in (*dims, *chunk_dims)):
        raise SperrError("dimensions in the header must be positive")

    chunks = chunk_volume(dims, chunk_dims)
    num_chunks = len(chunks)
    if multi != (num_chunks > 1):
        raise SperrError("chunk flag disagrees with the number of chunks")
    try:
        sizes = struct.unpack_from(f"<{num_chunks}I", data, loc)
    except struct.error as exc:
        raise SperrError("bitstream too short to hold chunk lengths") from exc

    header_size = _header_size(num_chunks)
    if header_size + sum(sizes) != len(data):
        raise SperrError("bitstream length does not match the header")
    offsets = [header_size]
    for size in sizes:
        offsets.append(offsets[-1] + size)
    return ChunkedStream(
        dims=dims,
        chunk_dims=chunk_dims,
        chunks=chunks,
        offsets=offsets,
        data=data,
        orig_is_float=flags[2],
    )


def reassemble_volume(
    dims: Sequence[int], chunks: Sequence[Chunk], pieces: Sequence[Sequence[float]]
) -> list[float]:
    """Place decoded chunks back into a full volume."""
    if len(pieces) != len(chunks):
        raise SperrError("number of pieces does not match the number of chunks")
    vol = [0.0] * math.prod(dims)
    for chunk, piece in zip(chunks, pieces):
        if not piece:
            raise SperrError("a chunk decoded to no data")
        if len(piece) != _chunk_len(chunk):
            raise SperrError("a decoded chunk has the wrong number of values")
        scatter_chunk(vol, dims, piece, chunk)
    return vol