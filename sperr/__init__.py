"""Chunking, chunked container format, bit packing and error statistics for lossy compression of floating-point volumes."""

__version__ = "0.1.0"
__all__ = ["helper", "bitbuffer", "container", "testdata"]