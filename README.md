# sperr

Pure-Python building blocks for a wavelet-based lossy compressor of
scientific floating-point data. The package handles what lies around the
core coder: splitting a volume into chunks, budgeting bits per chunk,
writing and parsing the chunked container header, packing booleans into
bytes and measuring reconstruction error.

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `sperr.helper` – shared utilities:
  - transform sizing: `num_of_xforms` (at most 6 levels),
    `num_of_partitions`, `calc_approx_detail_len`;
  - boolean packing, first boolean as the most significant bit:
    `pack_8_booleans`, `unpack_8_booleans`, `pack_booleans` (length must be a
    multiple of 8), `unpack_booleans(data, offset)`;
  - file I/O: `read_n_bytes`, `read_whole_file(filename, dtype)` with
    typecode `"f"`, `"d"` or `"B"` returning an `array.array`,
    `write_n_bytes`;
  - statistics: `calc_stats` returning a `Stats` named tuple
    (`rmse`, `linfty`, `psnr`, `arr1min`, `arr1max`), `calc_variance`,
    `kahan_summation`;
  - chunking: `chunk_volume` (chunks as
    `(x_start, x_len, y_start, y_len, z_start, z_len)`, X fastest),
    `gather_chunk`, `scatter_chunk`;
  - `parse_header` returning a `HeaderInfo`, and `compression_mode`
    returning a `CompMode` member; the constants `MAX_SIZE` and `MAX_D`
    mark an unset bit budget and PSNR.
- `sperr.bitbuffer` – `BitBuffer`, a growable bit sequence supporting
  `append`, `peek`/indexing, `len`, iteration, `data()` (packed bytes, last
  byte zero-padded), `data_size()`, `populate(memory, num_bits)`, `clear()`
  and `reserve()`.
- `sperr.container` – the multi-chunk 3D container:
  `CompressionTarget` (`from_bpp`, `from_psnr`, `from_pwe`, `mode()`),
  `split_volume`, `chunk_budgets`, `build_header`, `assemble`,
  `parse_bitstream` (returning a `ChunkedStream` with `chunk_streams()`)
  and `reassemble_volume`.
- `sperr.testdata` – sample input generators: `generate_step_volume` (a
  32×32×59 float32 volume, +3.14 then −3.14) and `pgm_to_float` (8-bit PGM
  pixels to little-endian float32).

## Example

```python
from sperr.helper import chunk_volume, calc_stats

chunks = chunk_volume((4, 4, 4), (1, 2, 3))
print(len(chunks))   # 8
print(chunks[0])     # (0, 1, 0, 2, 0, 4)

stats = calc_stats([1.0, 2.0, 3.0], [1.0, 2.0, 3.0])
print(stats.psnr)    # inf
```

Packing a container around already-encoded chunk streams:

```python
from sperr.container import assemble, parse_bitstream

blob = assemble((8, 8, 8), (8, 8, 8), [b"\x01\x02\x03"], orig_is_float=True, zstd=False)
parsed = parse_bitstream(blob, zstd=False)
print(parsed.chunk_streams())  # [b'\x01\x02\x03']
```

## Errors

Malformed headers, wrong bitstream lengths, version or flag mismatches and
short files raise `sperr.helper.SperrError`. Out-of-range arguments, such as
a bit rate outside (0, 64] or an unsupported `dtype`, raise `ValueError`.

## What this package does not do

The package does not transform or encode data itself. It has no wavelet
transform, no coefficient coder, no outlier coder and no ZSTD stage, so it
cannot turn a volume into a compressed stream or decode one back; the chunk
streams handed to `assemble` and taken from `parse_bitstream` must be
produced and consumed elsewhere. There is no command-line tool.