"""Byte-level builders for explicit VR little endian test streams."""

import struct

import numpy as np

LONG_FORM_VRS = ("OB", "OW", "OF", "SQ", "UT", "UN")


def element(group, elem, vr, value=b"", length=None, pad=True):
    """Encode one element; odd values get a padding byte unless pad is False."""
    if length is None:
        length = len(value)
    if vr in LONG_FORM_VRS:
        header = struct.pack("<HH2s2xI", group, elem, vr.encode("ascii"), length)
    else:
        header = struct.pack("<HH2sH", group, elem, vr.encode("ascii"), length)
    if pad and len(value) % 2 == 1:
        value += b" " if vr not in LONG_FORM_VRS else b"\x00"
    return header + value


def marker(group, elem, length=0):
    """Item or delimiter header (no VR)."""
    return struct.pack("<HHI", group, elem, length)


def us(group, elem, value):
    return element(group, elem, "US", struct.pack("<H", value))


def text(group, elem, vr, value):
    return element(group, elem, vr, value.encode("ascii"))


def with_preamble(body):
    return b"\x00" * 128 + b"DICM" + body


def slice_stream(rows, cols, pixels, instance=None, bits=8, preamble=True, extra=b""):
    """Minimal single-frame stream with the given pixels."""
    pixels = np.asarray(pixels, dtype=np.uint16 if bits == 16 else np.uint8)
    body = us(0x0028, 0x0010, rows) + us(0x0028, 0x0011, cols) + us(0x0028, 0x0100, bits)
    if instance is not None:
        body = text(0x0020, 0x0013, "IS", str(instance)) + body
    body += extra
    raw = pixels.astype("<u2").tobytes() if bits == 16 else pixels.tobytes()
    body += element(0x7FE0, 0x0010, "OW" if bits == 16 else "OB", raw)
    return with_preamble(body) if preamble else body
