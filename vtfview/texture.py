"""Texture handle used by the viewer, backed by :mod:`srctools.vtf`.

``srctools`` parses the VTF container and decodes every frame into 32-bit
RGBA.  This module wraps a :class:`srctools.vtf.VTF` in :class:`VTFTexture`,
which exposes the small query surface the viewer needs (dimensions, counts,
per-slice data, format metadata) together with the two helper routines the
decode cache relies on: :func:`compute_mipmap_dimensions` and
:func:`convert`.
"""
from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple, Union

import numpy as np
from srctools.vtf import VTF, CubeSide, ImageFormats, ResourceID, SheetSequence, VTFFlags

logger = logging.getLogger(__name__)


class TextureLoadError(Exception):
    """Raised when a VTF file cannot be read."""


@dataclass(frozen=True)
class FormatInfo:
    name: str
    bits_per_pixel: int
    alpha_bits: int
    compressed: bool = False


# Alpha bits follow VTFLib's format table rather than srctools' channel sizes,
# so DXT3/DXT5 report alpha and BGRX8888 does not.
IMAGE_FORMAT_INFO: Dict[ImageFormats, FormatInfo] = {
    ImageFormats.RGBA8888: FormatInfo("RGBA8888", 32, 8),
    ImageFormats.ABGR8888: FormatInfo("ABGR8888", 32, 8),
    ImageFormats.RGB888: FormatInfo("RGB888", 24, 0),
    ImageFormats.BGR888: FormatInfo("BGR888", 24, 0),
    ImageFormats.RGB565: FormatInfo("RGB565", 16, 0),
    ImageFormats.I8: FormatInfo("I8", 8, 0),
    ImageFormats.IA88: FormatInfo("IA88", 16, 8),
    ImageFormats.P8: FormatInfo("P8", 8, 0),
    ImageFormats.A8: FormatInfo("A8", 8, 8),
    ImageFormats.RGB888_BLUESCREEN: FormatInfo("RGB888 Bluescreen", 24, 0),
    ImageFormats.BGR888_BLUESCREEN: FormatInfo("BGR888 Bluescreen", 24, 0),
    ImageFormats.ARGB8888: FormatInfo("ARGB8888", 32, 8),
    ImageFormats.BGRA8888: FormatInfo("BGRA8888", 32, 8),
    ImageFormats.DXT1: FormatInfo("DXT1", 4, 0, True),
    ImageFormats.DXT3: FormatInfo("DXT3", 8, 8, True),
    ImageFormats.DXT5: FormatInfo("DXT5", 8, 8, True),
    ImageFormats.BGRX8888: FormatInfo("BGRX8888", 32, 0),
    ImageFormats.BGR565: FormatInfo("BGR565", 16, 0),
    ImageFormats.BGRX5551: FormatInfo("BGRX5551", 16, 0),
    ImageFormats.BGRA4444: FormatInfo("BGRA4444", 16, 4),
    ImageFormats.DXT1_ONEBITALPHA: FormatInfo("DXT1 One Bit Alpha", 4, 1, True),
    ImageFormats.BGRA5551: FormatInfo("BGRA5551", 16, 1),
    ImageFormats.UV88: FormatInfo("UV88", 16, 0),
    ImageFormats.UVWQ8888: FormatInfo("UVWQ8888", 32, 8),
    ImageFormats.RGBA16161616F: FormatInfo("RGBA16161616F", 64, 16),
    ImageFormats.RGBA16161616: FormatInfo("RGBA16161616", 64, 16),
    ImageFormats.UVLX8888: FormatInfo("UVLX8888", 32, 8),
    ImageFormats.NONE: FormatInfo("None", 0, 0),
    ImageFormats.ATI1N: FormatInfo("ATI1N", 4, 0, True),
    ImageFormats.ATI2N: FormatInfo("ATI2N", 8, 0, True),
}


def image_format_info(fmt: ImageFormats) -> FormatInfo:
    """Return the :class:`FormatInfo` entry for ``fmt``."""
    return IMAGE_FORMAT_INFO[fmt]


def compute_mipmap_dimensions(width: int, height: int, depth: int, mip: int) -> Tuple[int, int, int]:
    """Dimensions of mip level ``mip``; each axis halves and bottoms out at 1."""
    return max(1, width >> mip), max(1, height >> mip), max(1, depth >> mip)


def compute_image_size(width: int, height: int, depth: int, fmt: ImageFormats) -> int:
    """Number of bytes needed for an image of ``fmt`` with the given size."""
    info = image_format_info(fmt)
    if info.compressed:
        blocks = ((width + 3) // 4) * ((height + 3) // 4)
        return blocks * 16 * info.bits_per_pixel // 8 * depth
    return width * height * depth * info.bits_per_pixel // 8


# Byte order of each convertible source format.  "i" is intensity (copied to
# R, G and B) and "x" is padding.  Missing alpha is filled with 255.
_CHANNEL_LAYOUT: Dict[ImageFormats, Tuple[str, ...]] = {
    ImageFormats.RGBA8888: ("r", "g", "b", "a"),
    ImageFormats.ABGR8888: ("a", "b", "g", "r"),
    ImageFormats.ARGB8888: ("a", "r", "g", "b"),
    ImageFormats.BGRA8888: ("b", "g", "r", "a"),
    ImageFormats.BGRX8888: ("b", "g", "r", "x"),
    ImageFormats.UVWQ8888: ("r", "g", "b", "a"),
    ImageFormats.UVLX8888: ("r", "g", "b", "a"),
    ImageFormats.RGB888: ("r", "g", "b"),
    ImageFormats.RGB888_BLUESCREEN: ("r", "g", "b"),
    ImageFormats.BGR888: ("b", "g", "r"),
    ImageFormats.BGR888_BLUESCREEN: ("b", "g", "r"),
    ImageFormats.I8: ("i",),
    ImageFormats.IA88: ("i", "a"),
    ImageFormats.A8: ("a",),
}

_TARGET_CHANNELS = {
    ImageFormats.RGBA8888: 4,
    ImageFormats.RGB888: 3,
}


def _expand_rgba(src: np.ndarray, layout: Tuple[str, ...]) -> np.ndarray:
    pixels = src.reshape(-1, len(layout))
    out = np.zeros((pixels.shape[0], 4), dtype=np.uint8)
    out[:, 3] = 255
    for index, channel in enumerate(layout):
        if channel == "i":
            out[:, 0:3] = pixels[:, index, None]
        elif channel == "x":
            continue
        else:
            out[:, "rgba".index(channel)] = pixels[:, index]
    return out


def convert(
    src: Union[bytes, bytearray, memoryview],
    dst: bytearray,
    width: int,
    height: int,
    src_format: ImageFormats,
    dst_format: ImageFormats,
) -> bool:
    """Convert ``src`` into ``dst`` in place.

    Only uncompressed 8-bit-per-channel sources are handled; the target must
    be RGBA8888 or RGB888.  Returns ``False`` instead of raising when the
    conversion is not possible, including when either buffer has the wrong
    length for ``width`` x ``height``.
    """
    layout = _CHANNEL_LAYOUT.get(src_format)
    channels = _TARGET_CHANNELS.get(dst_format)
    if layout is None or channels is None:
        logger.debug("No conversion from %s to %s", src_format.name, dst_format.name)
        return False

    count = width * height
    if len(src) != count * len(layout) or len(dst) != count * channels:
        logger.debug(
            "Buffer size mismatch for %dx%d %s -> %s (src=%d, dst=%d)",
            width, height, src_format.name, dst_format.name, len(src), len(dst),
        )
        return False

    rgba = _expand_rgba(np.frombuffer(src, dtype=np.uint8), layout)
    target = np.frombuffer(dst, dtype=np.uint8).reshape(count, channels)
    target[:] = rgba[:, :channels]
    return True


# ---------------------------------------------------------------------------
# Flags and resources
# ---------------------------------------------------------------------------

TEXTURE_FLAGS: List[Tuple[int, str]] = [
    (0x00000001, "Point Sample"),
    (0x00000002, "Trilinear"),
    (0x00000004, "Clamp S"),
    (0x00000008, "Clamp T"),
    (0x02000000, "Clamp U"),
    (0x00000010, "Anisotropic"),
    (0x00000020, "Hint DXT5"),
    (0x00000040, "sRGB"),
    (0x00000040, "Nocompress (Deprecated)"),
    (0x00000080, "Normal"),
    (0x00000100, "No MIP"),
    (0x00000200, "No LOD"),
    (0x00000400, "Min Mip"),
    (0x00000800, "Procedural"),
    (0x00001000, "One-bit Alpha"),
    (0x00002000, "Eight-bit Alpha"),
    (0x00004000, "Envmap"),
    (0x00008000, "Render Target"),
    (0x00010000, "Depth Render Target"),
    (0x00020000, "No Debug Override"),
    (0x00040000, "Single Copy"),
    (0x00080000, "One Over Mip Level Linear Alpha (Deprecated)"),
    (0x00100000, "Pre-multiply Colors by One Over Mip Level (Deprecated)"),
    (0x00200000, "Normal To DuDv"),
    (0x00400000, "Alpha Test Mip Generation (Deprecated)"),
    (0x00800000, "No Depth Buffer"),
    (0x01000000, "Nice Filtered (Deprecated)"),
    (0x04000000, "Vertex Texture"),
    (0x08000000, "SSBump"),
    (0x10000000, "Unfilterable OK (Deprecated)"),
    (0x20000000, "Border"),
    (0x40000000, "Specvar Red (Deprecated)"),
    (0x80000000, "Specvar Alpha (Deprecated)"),
]


def describe_flags(value: int) -> List[str]:
    """Return the labels of every flag set in ``value``."""
    return [name for bit, name in TEXTURE_FLAGS if value & bit]


RESOURCE_NAMES: Dict[bytes, str] = {
    ResourceID.LOW_RES.value: "Low Resolution Image",
    ResourceID.HIGH_RES.value: "High Resolution Image",
    ResourceID.PARTICLE_SHEET.value: "Animated Particle Sheet",
    ResourceID.CRC.value: "CRC",
    ResourceID.LOD_SETTINGS.value: "Texture LOD Settings",
    ResourceID.EXTRA_FLAGS.value: "Texture Settings Ex",
    ResourceID.KEYVALUES.value: "KeyValues Data",
}

# Resource entries with this flag keep their value inline in the header.
RESOURCE_NO_DATA_CHUNK = 0x02


@dataclass(frozen=True)
class ResourceInfo:
    name: str
    type_id: int
    size: int


def resource_type_id(res_id: bytes, flags: int = 0) -> int:
    """Pack a 3-byte resource tag and its flag byte into one integer."""
    return int.from_bytes(res_id[:3].ljust(3, b"\0") + bytes([flags & 0xFF]), "little")


# ---------------------------------------------------------------------------
# Texture handle
# ---------------------------------------------------------------------------


class VTFTexture:
    """A loaded VTF file.

    The handle is owned by the application; viewer components only keep a
    reference to it.  Pixel data is decoded lazily by ``srctools`` the first
    time a slice is requested.
    """

    #: Format of the bytes returned by :meth:`get_data`.
    data_format = ImageFormats.RGBA8888

    compute_mipmap_dimensions = staticmethod(compute_mipmap_dimensions)
    image_format_info = staticmethod(image_format_info)
    convert = staticmethod(convert)

    def __init__(self, vtf: VTF, size: int = 0, path: Path | None = None) -> None:
        self.vtf = vtf
        self.size = size
        self.path = path

    # ------------------------------------------------------------------
    @classmethod
    def from_bytes(cls, data: bytes, path: Path | None = None) -> "VTFTexture":
        """Parse ``data``.  The backing stream stays alive with the handle."""
        stream = io.BytesIO(data)
        try:
            vtf = VTF.read(stream)
        except (ValueError, KeyError, EOFError, struct.error) as exc:
            raise TextureLoadError(f"Not a valid VTF file: {exc}") from exc
        logger.debug(
            "Loaded %dx%d %s VTF %d.%d (%d bytes)",
            vtf.width, vtf.height, vtf.format.name, *vtf.version, len(data),
        )
        return cls(vtf, len(data), path)

    # ------------------------------------------------------------------
    @classmethod
    def load(cls, path: Union[str, Path]) -> "VTFTexture":
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise TextureLoadError(f"Could not read {path}: {exc}") from exc
        return cls.from_bytes(data, path)

    # ------------------------------------------------------------------
    def save(self, path: Union[str, Path]) -> None:
        """Write the texture to ``path`` and remember it as the file's path."""
        path = Path(path)
        buf = io.BytesIO()
        self.vtf.save(buf)
        path.write_bytes(buf.getvalue())
        self.path = path
        self.size = buf.tell()
        logger.debug("Saved %s (%d bytes)", path, self.size)

    # ------------------------------------------------------------------
    @property
    def width(self) -> int:
        return self.vtf.width

    @property
    def height(self) -> int:
        return self.vtf.height

    @property
    def depth(self) -> int:
        return self.vtf.depth

    @property
    def frame_count(self) -> int:
        return self.vtf.frame_count

    @property
    def mipmap_count(self) -> int:
        return self.vtf.mipmap_count

    @property
    def is_cubemap(self) -> bool:
        return VTFFlags.ENVMAP in self.vtf.flags

    @property
    def face_count(self) -> int:
        if not self.is_cubemap:
            return 1
        # Spheremaps were dropped in 7.5.
        return 6 if self.vtf.version[1] >= 5 else 7

    @property
    def pixel_format(self) -> ImageFormats:
        return self.vtf.format

    @property
    def version(self) -> Tuple[int, int]:
        return self.vtf.version

    @property
    def reflectivity(self) -> Tuple[float, float, float]:
        ref = self.vtf.reflectivity
        return ref.x, ref.y, ref.z

    @property
    def flags(self) -> int:
        return self.vtf.flags.value

    @property
    def start_frame(self) -> int:
        return self.vtf.first_frame_index

    @start_frame.setter
    def start_frame(self, value: int) -> None:
        self.vtf.first_frame_index = value

    # ------------------------------------------------------------------
    def set_flag(self, bit: int, enabled: bool) -> None:
        value = self.flags | bit if enabled else self.flags & ~bit
        self.vtf.flags = VTFFlags(value)

    # ------------------------------------------------------------------
    def get_data(self, frame: int, face: int, slice_index: int, mip: int) -> bytes:
        """Return the decoded pixels of one slice in :attr:`data_format`."""
        if self.is_cubemap:
            side = list(CubeSide)[face]
            image = self.vtf.get(frame=frame, side=side, mipmap=mip)
        else:
            image = self.vtf.get(frame=frame, depth=slice_index, mipmap=mip)
        return image.to_PIL().tobytes()

    # ------------------------------------------------------------------
    def resources(self) -> List[ResourceInfo]:
        """List the auxiliary resources stored in the file (7.3+)."""
        result: List[ResourceInfo] = []
        for res_id, resource in self.vtf.resources.items():
            tag = getattr(res_id, "value", res_id)
            if isinstance(resource.data, bytes):
                size = len(resource.data)
                flags = resource.flags & ~RESOURCE_NO_DATA_CHUNK
            else:
                size = 4
                flags = resource.flags | RESOURCE_NO_DATA_CHUNK
            result.append(ResourceInfo(
                RESOURCE_NAMES.get(tag, "Unknown"),
                resource_type_id(tag, flags),
                size,
            ))
        if self.vtf.sheet_info:
            tag = ResourceID.PARTICLE_SHEET.value
            result.append(ResourceInfo(
                RESOURCE_NAMES[tag],
                resource_type_id(tag),
                len(SheetSequence.make_data(self.vtf.sheet_info)),
            ))
        return result
