"""
DICOM Element Stream Parser

Decodes single-frame, uncompressed, explicit VR little endian DICOM
streams into Slice objects without going through a full DICOM toolkit.

Only the handful of tags needed to build a volume are interpreted; every
other element is skipped by its declared length. Damage in the middle of
a stream does not raise: parsing stops and whatever was collected so far
is returned with ``truncated`` set.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple
import logging
import math
import struct

import numpy as np

from config import DecoderConfig, DEFAULT_DECODER
from core.errors import FormatError


# Tags of interest, (group << 16) | element
TAG_SOP_INSTANCE_UID = 0x00080018
TAG_INSTANCE_NUMBER = 0x00200013
TAG_IMAGE_POSITION = 0x00200032
TAG_ROWS = 0x00280010
TAG_COLUMNS = 0x00280011
TAG_PIXEL_SPACING = 0x00280030
TAG_BITS_ALLOCATED = 0x00280100
TAG_BITS_STORED = 0x00280101
TAG_WINDOW_CENTER = 0x00281050
TAG_WINDOW_WIDTH = 0x00281051
TAG_PIXEL_DATA = 0x7FE00010

# Item and delimiter markers carry no VR
ITEM_GROUP = 0xFFFE
TAG_ITEM = 0xFFFEE000
TAG_ITEM_DELIMITATION = 0xFFFEE00D
TAG_SEQUENCE_DELIMITATION = 0xFFFEE0DD

UNDEFINED_LENGTH = 0xFFFFFFFF

TAG_NAMES = {
    TAG_SOP_INSTANCE_UID: "SOPInstanceUID",
    TAG_INSTANCE_NUMBER: "InstanceNumber",
    TAG_IMAGE_POSITION: "ImagePositionPatient",
    TAG_ROWS: "Rows",
    TAG_COLUMNS: "Columns",
    TAG_PIXEL_SPACING: "PixelSpacing",
    TAG_BITS_ALLOCATED: "BitsAllocated",
    TAG_BITS_STORED: "BitsStored",
    TAG_WINDOW_CENTER: "WindowCenter",
    TAG_WINDOW_WIDTH: "WindowWidth",
    TAG_PIXEL_DATA: "PixelData",
}

_SIGNED_VRS = ("SS", "SL")
_UNSIGNED_VRS = ("US", "UL")
_NUMERIC_STRING_VRS = ("IS", "DS")


@dataclass(frozen=True)
class Element:
    """
    One decoded element header.

    Attributes:
        tag: 32-bit key, group in the high half
        vr: Two character value representation ('' for item markers)
        length: Value length in bytes (UNDEFINED_LENGTH if open-ended)
        value_offset: Offset of the first value byte in the stream
        depth: Sequence nesting level, 0 for top-level elements
    """
    tag: int
    vr: str
    length: int
    value_offset: int
    depth: int = 0

    @property
    def group(self) -> int:
        return self.tag >> 16

    @property
    def element(self) -> int:
        return self.tag & 0xFFFF

    @property
    def name(self) -> str:
        return TAG_NAMES.get(self.tag, "Unknown")

    def __str__(self) -> str:
        return f"({self.group:04X},{self.element:04X}) {self.vr or '--'} len={self.length}"


@dataclass
class Slice:
    """
    One decoded 2D image.

    Attributes:
        rows: Image height in pixels
        columns: Image width in pixels
        bits_allocated: 8 or 16
        instance_number: Ordering key within the series (0 if absent)
        pixel_data: Flat row-major samples (uint8 or uint16)
        truncated: True if the stream was damaged and parsing stopped early
    """
    rows: int = 0
    columns: int = 0
    bits_allocated: int = 8
    instance_number: int = 0
    pixel_data: Optional[np.ndarray] = None
    bits_stored: Optional[int] = None
    window_center: Optional[float] = None
    window_width: Optional[float] = None
    pixel_spacing: Optional[Tuple[float, ...]] = None
    image_position: Optional[Tuple[float, ...]] = None
    sop_instance_uid: Optional[str] = None
    source: str = ""
    truncated: bool = False

    @property
    def num_pixels(self) -> int:
        return self.rows * self.columns

    @property
    def is_valid(self) -> bool:
        """Whether the slice carries everything a volume needs."""
        return (
            self.pixel_data is not None
            and self.rows > 0
            and self.columns > 0
            and self.pixel_data.size >= self.num_pixels
        )

    def image(self) -> np.ndarray:
        """Pixel data as a (rows, columns) array."""
        if not self.is_valid:
            raise ValueError(f"Slice {self.source or self.instance_number} has no complete image")
        return self.pixel_data[:self.num_pixels].reshape(self.rows, self.columns)


class DicomParser:
    """
    Streaming parser for explicit VR little endian element streams.

    The parser is stateless between calls; one instance may decode many
    buffers, from several threads at once.
    """

    RECOGNIZED_TAGS = frozenset(TAG_NAMES)

    def __init__(self, config: DecoderConfig = DEFAULT_DECODER):
        self.config = config

    def data_offset(self, buffer: bytes) -> int:
        """
        Offset of the first element.

        Files with a 128-byte preamble and the magic word start after it;
        anything else is treated as a headerless stream.
        """
        header_end = self.config.preamble_length + len(self.config.magic)
        if len(buffer) > header_end and bytes(buffer[self.config.preamble_length:header_end]) == self.config.magic:
            return header_end
        return 0

    def iter_elements(self, buffer: bytes, offset: Optional[int] = None) -> Iterator[Element]:
        """
        Yield element headers in stream order.

        Sequences of undefined length are descended into, so their
        contents come out with ``depth`` > 0. Sequences of defined length
        are skipped as a single value.

        Raises:
            FormatError: At the first inconsistency (bad VR, header or
                value running past the end of the buffer)
        """
        if offset is None:
            offset = self.data_offset(buffer)
        end = len(buffer)
        depth = 0

        while end - offset >= 8:
            group, elem = struct.unpack_from("<HH", buffer, offset)
            tag = (group << 16) | elem

            if group == ITEM_GROUP:
                length = struct.unpack_from("<I", buffer, offset + 4)[0]
                if tag == TAG_SEQUENCE_DELIMITATION:
                    depth = max(0, depth - 1)
                yield Element(tag, "", length, offset + 8, depth)
                # Items are transparent: their contents are parsed as elements
                offset += 8
                continue

            vr_bytes = bytes(buffer[offset + 4:offset + 6])
            if not (vr_bytes.isalpha() and vr_bytes.isupper()):
                raise FormatError(f"Invalid VR {vr_bytes!r} at offset {offset}")
            vr = vr_bytes.decode("ascii")

            if vr in self.config.long_form_vrs:
                if end - offset < 12:
                    raise FormatError(f"Truncated {vr} header at offset {offset}")
                length = struct.unpack_from("<I", buffer, offset + 8)[0]
                value_offset = offset + 12
            else:
                length = struct.unpack_from("<H", buffer, offset + 6)[0]
                value_offset = offset + 8

            if length == UNDEFINED_LENGTH:
                if vr != "SQ":
                    raise FormatError(
                        f"Undefined length {vr} element {tag:08X} at offset {offset} "
                        f"(encapsulated data is not supported)"
                    )
                yield Element(tag, vr, length, value_offset, depth)
                depth += 1
                offset = value_offset
                continue

            if value_offset + length > end:
                raise FormatError(
                    f"Element {tag:08X} length {length} overruns buffer at offset {offset}"
                )

            yield Element(tag, vr, length, value_offset, depth)

            offset = value_offset + length
            if length % 2 == 1 and vr not in self.config.unpadded_vrs:
                offset += 1

    def decode(self, buffer: bytes, source: str = "") -> Slice:
        """
        Decode one element stream into a Slice.

        Args:
            buffer: Raw file contents
            source: Name used in log messages

        Returns:
            Slice with every recognized field that could be read

        Raises:
            FormatError: If the stream is too short to hold an element or no
                recognized element was found
        """
        label = source or "<buffer>"
        result = Slice(source=source)
        start = self.data_offset(buffer)
        if len(buffer) - start < 8:
            raise FormatError(f"{label}: stream too short ({len(buffer)} bytes)")

        recognized = 0
        try:
            for element in self.iter_elements(buffer, start):
                if element.depth > 0 or element.tag not in self.RECOGNIZED_TAGS:
                    continue
                self._apply(result, element, buffer)
                recognized += 1
        except (FormatError, struct.error) as e:
            result.truncated = True
            logging.warning(f"Partial parse of {label}: {e}")

        if recognized == 0:
            raise FormatError(f"{label}: no recognizable elements found")

        if result.truncated:
            logging.info(f"  {label}: recovered {recognized} recognized elements before damage")
        return result

    def _apply(self, result: Slice, element: Element, buffer: bytes) -> None:
        """Copy the value of a recognized element into the slice."""
        tag = element.tag

        if tag == TAG_PIXEL_DATA:
            result.pixel_data = self._read_pixels(result, element, buffer)
        elif tag == TAG_ROWS:
            result.rows = self._read_int(element, buffer) or 0
        elif tag == TAG_COLUMNS:
            result.columns = self._read_int(element, buffer) or 0
        elif tag == TAG_BITS_ALLOCATED:
            bits = self._read_int(element, buffer)
            if bits is not None:
                if bits not in (8, 16):
                    logging.warning(f"Unsupported BitsAllocated {bits} in {result.source or '<buffer>'}")
                result.bits_allocated = bits
        elif tag == TAG_BITS_STORED:
            result.bits_stored = self._read_int(element, buffer)
        elif tag == TAG_INSTANCE_NUMBER:
            value = self._read_int(element, buffer)
            result.instance_number = value if value is not None else 0
        elif tag == TAG_WINDOW_CENTER:
            result.window_center = self._read_number(element, buffer, signed=True)
        elif tag == TAG_WINDOW_WIDTH:
            result.window_width = self._read_number(element, buffer, signed=False)
        elif tag == TAG_PIXEL_SPACING:
            result.pixel_spacing = self._read_floats(element, buffer)
        elif tag == TAG_IMAGE_POSITION:
            result.image_position = self._read_floats(element, buffer)
        elif tag == TAG_SOP_INSTANCE_UID:
            result.sop_instance_uid = self._read_text(element, buffer)

    @staticmethod
    def _read_text(element: Element, buffer: bytes) -> str:
        raw = bytes(buffer[element.value_offset:element.value_offset + element.length])
        return raw.decode("ascii", errors="replace").strip(" \x00")

    def _read_floats(self, element: Element, buffer: bytes) -> Optional[Tuple[float, ...]]:
        """Decode a backslash separated decimal string."""
        text = self._read_text(element, buffer)
        try:
            return tuple(float(part) for part in text.split("\\") if part.strip())
        except ValueError:
            logging.debug(f"Unparseable {element.name} value {text!r}")
            return None

    def _read_number(self, element: Element, buffer: bytes, signed: bool) -> Optional[float]:
        """
        Decode a numeric value by VR and declared length.

        Numeric strings (IS/DS) yield their first value, with NaN and
        infinities treated as unparseable; binary values are read as 16-bit
        or 32-bit integers depending on length.
        """
        if element.vr in _NUMERIC_STRING_VRS:
            text = self._read_text(element, buffer).split("\\")[0].strip()
            try:
                value = float(text)
            except ValueError:
                value = None
            if value is None or not math.isfinite(value):
                logging.debug(f"Unparseable {element.name} value {text!r}")
                return None
            return value

        if element.vr in _SIGNED_VRS:
            signed = True
        elif element.vr in _UNSIGNED_VRS:
            signed = False

        if element.length == 2:
            fmt = "<h" if signed else "<H"
        elif element.length == 4:
            fmt = "<i" if signed else "<I"
        else:
            logging.debug(f"Skipping {element.name} with unexpected length {element.length}")
            return None
        return float(struct.unpack_from(fmt, buffer, element.value_offset)[0])

    def _read_int(self, element: Element, buffer: bytes) -> Optional[int]:
        value = self._read_number(element, buffer, signed=False)
        return int(value) if value is not None else None

    @staticmethod
    def _read_pixels(result: Slice, element: Element, buffer: bytes) -> np.ndarray:
        """
        Materialize pixel data using the bit depth parsed so far.

        Trailing padding beyond rows * columns samples is dropped.
        """
        start = element.value_offset
        raw = bytes(buffer[start:start + element.length])

        if result.bits_allocated == 16:
            usable = len(raw) - len(raw) % 2
            pixels = np.frombuffer(raw[:usable], dtype="<u2").astype(np.uint16)
        else:
            pixels = np.frombuffer(raw, dtype=np.uint8).copy()

        expected = result.num_pixels
        if expected and pixels.size > expected:
            pixels = pixels[:expected]
        return pixels


def decode(buffer: bytes, source: str = "") -> Slice:
    """Decode a buffer with the default parser."""
    return _DEFAULT_PARSER.decode(buffer, source)


_DEFAULT_PARSER = DicomParser()
