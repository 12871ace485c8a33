"""Compression utilities for stored build artifacts."""

import brotli

BROTLI_QUALITY = 11


def compress_bytes(raw: bytes) -> bytes:
  """Compress artifact bytes using Brotli (Level 11)."""
  return brotli.compress(raw, quality=BROTLI_QUALITY)


def decompress_bytes(blob: bytes) -> bytes:
  """Decompress a Brotli-compressed artifact blob."""
  return brotli.decompress(blob)
