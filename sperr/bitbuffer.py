"""A growable sequence of booleans that can be dumped as, and rebuilt from, packed bytes."""

from __future__ import annotations

from typing import Iterator

from sperr.helper import SperrError, pack_8_booleans, unpack_8_booleans


def _bytes_for(num_bits: int) -> int:
    return (num_bits + 7) // 8


class BitBuffer:
    """Booleans stored eight to a byte, the first boolean of each byte as its most significant bit.

    Behaves like a list of booleans that only grows at the end, and can hand out
    its content as bytes or take it in from bytes.
    """

    def __init__(self) -> None:
        self._full = bytearray()
        self._tail: list[bool] = []
        self._capacity_bits = 0

    def reserve(self, n: int) -> None:
        """Note that about `n` bits are expected; content and length are unchanged."""
        if n < 0:
            raise ValueError("cannot reserve a negative number of bits")
        self._capacity_bits = max(self._capacity_bits, n)

    @property
    def capacity(self) -> int:
        """Number of bits the buffer holds or has been told to expect."""
        return max(self._capacity_bits, len(self))

    def clear(self) -> None:
        """Remove every bit."""
        self._full.clear()
        self._tail.clear()

    def __len__(self) -> int:
        return len(self._full) * 8 + len(self._tail)

    def __bool__(self) -> bool:
        return len(self) > 0

    def __iter__(self) -> Iterator[bool]:
        for byte in self._full:
            yield from unpack_8_booleans(byte)
        yield from self._tail

    def __getitem__(self, idx: int) -> bool:
        return self.peek(idx)

    def append(self, val: bool) -> None:
        """Add one bit at the end."""
        self._tail.append(bool(val))
        if len(self._tail) == 8:
            self._full.append(pack_8_booleans(self._tail))
            self._tail.clear()

    def data(self) -> bytes:
        """The bits packed into bytes; a partial last byte is padded with zero bits."""
        if not self._tail:
            return bytes(self._full)
        padded = self._tail + [False] * (8 - len(self._tail))
        return bytes(self._full) + bytes([pack_8_booleans(padded)])

    def data_size(self) -> int:
        """Number of bytes that `data()` returns."""
        return _bytes_for(len(self))

    def peek(self, idx: int) -> bool:
        """The bit at position `idx`."""
        size = len(self)
        if idx < 0:
            idx += size
        if not 0 <= idx < size:
            raise IndexError("bit index out of range")
        byte_idx, bit_idx = divmod(idx, 8)
        if byte_idx < len(self._full):
            return unpack_8_booleans(self._full[byte_idx])[bit_idx]
        return self._tail[bit_idx]

    def par_peek(self, idx: int) -> bool:
        """The bit at position `idx`, without touching any shared state."""
        return self.peek(idx)

    def populate(self, memory: bytes, num_bits: int) -> None:
        """Replace the content with the first `num_bits` bits of `memory`.

        `memory` must hold exactly as many bytes as `num_bits` bits need.
        """
        if num_bits < 0:
            raise ValueError("number of bits must not be negative")
        if _bytes_for(num_bits) != len(memory):
            raise SperrError(
                f"{num_bits} bits need {_bytes_for(num_bits)} bytes, got {len(memory)}"
            )
        self.clear()
        full_bytes, rest = divmod(num_bits, 8)
        self._full.extend(memory[:full_bytes])
        if rest:
            self._tail.extend(unpack_8_booleans(memory[full_bytes])[:rest])