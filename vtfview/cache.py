"""Decode-on-demand cache for the slice currently shown by the viewer.

Converting a slice into a displayable pixel buffer is the expensive step, so
the cache remembers which ``(frame, face, mip)`` key its buffer was decoded
from and only converts again when the requested key changes.  The mip
dimensions are cheap and needed for layout, so they are recomputed on every
request.

The cache never owns the texture handle it is bound to.
"""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import NamedTuple, Optional, Protocol, Tuple

from srctools.vtf import ImageFormats

logger = logging.getLogger(__name__)

RGB_LAYOUT = "RGB888"
RGBA_LAYOUT = "RGBA8888"

# Pixel data is read lazily, so truncated or undecodable data only fails once
# a slice is fetched. KeyError and IndexError mean the slice does not exist.
SLICE_ERRORS = (
    KeyError, IndexError, BufferError, ValueError, NotImplementedError, EOFError, struct.error,
)


class DecodeFailure(Exception):
    """The texture's conversion routine could not produce the slice."""


class SliceKey(NamedTuple):
    frame: int
    face: int
    mip: int


class RenderResult(NamedTuple):
    buffer: Optional[bytearray]
    width: int
    height: int


@dataclass
class ViewTransform:
    zoom: float = 1.0
    offset_x: int = 0
    offset_y: int = 0

    def reset(self) -> None:
        self.zoom = 1.0
        self.offset_x = 0
        self.offset_y = 0


class TextureHandle(Protocol):
    """What the cache needs from a texture.  See :class:`vtfview.texture.VTFTexture`."""

    width: int
    height: int
    depth: int
    pixel_format: ImageFormats
    data_format: ImageFormats

    def get_data(self, frame: int, face: int, slice_index: int, mip: int) -> bytes: ...

    def compute_mipmap_dimensions(self, width: int, height: int, depth: int, mip: int) -> Tuple[int, int, int]: ...

    def image_format_info(self, fmt: ImageFormats): ...

    def convert(self, src, dst: bytearray, width: int, height: int,
                src_format: ImageFormats, dst_format: ImageFormats) -> bool: ...


class Surface(Protocol):
    """Anything that can draw a packed pixel buffer."""

    def width(self) -> int: ...

    def height(self) -> int: ...

    def blit(self, buffer: bytearray, width: int, height: int, layout: str,
             x: int, y: int, zoom: float) -> None: ...


def fit_display_size(current: Tuple[int, int], texture: TextureHandle) -> Tuple[int, int]:
    """Grow ``current`` so the texture's base image fits; never shrink it."""
    return max(current[0], texture.width), max(current[1], texture.height)


class SliceDecodeCache:
    """Keeps one decoded slice of the bound texture."""

    def __init__(self) -> None:
        self.texture: Optional[TextureHandle] = None
        self.transform = ViewTransform()
        self.key: Optional[SliceKey] = None
        self.buffer: Optional[bytearray] = None
        self.layout = RGB_LAYOUT
        self.draw_size: Tuple[int, int] = (0, 0)
        self.last_error: Optional[str] = None
        self.decode_count = 0

    # ------------------------------------------------------------------
    def bind(self, texture: Optional[TextureHandle]) -> None:
        """Replace the bound texture and force the next request to decode."""
        self.texture = texture
        self.key = None
        self.buffer = None
        self.draw_size = (0, 0)
        self.last_error = None
        self.transform.reset()
        if texture is not None:
            logger.debug("Bound %dx%d texture", texture.width, texture.height)

    # ------------------------------------------------------------------
    def unbind(self) -> None:
        self.bind(None)

    # ------------------------------------------------------------------
    def request_render(self, frame: int, face: int, mip: int) -> RenderResult:
        """Return the pixels for ``(frame, face, mip)``, decoding if needed.

        A failed decode is logged and recorded in :attr:`last_error`; the
        returned buffer is ``None`` and the next request tries again.
        """
        texture = self.texture
        if texture is None:
            return RenderResult(None, 0, 0)

        width, height, _depth = texture.compute_mipmap_dimensions(
            texture.width, texture.height, texture.depth, mip
        )
        self.draw_size = (width, height)

        key = SliceKey(frame, face, mip)
        if key == self.key:
            return RenderResult(self.buffer, width, height)

        try:
            self._decode(texture, key, width, height)
        except DecodeFailure as exc:
            logger.warning("Could not convert image for display: %s", exc)
            self.last_error = str(exc)
            return RenderResult(None, width, height)

        self.last_error = None
        return RenderResult(self.buffer, width, height)

    # ------------------------------------------------------------------
    def _decode(self, texture: TextureHandle, key: SliceKey, width: int, height: int) -> None:
        has_alpha = texture.image_format_info(texture.pixel_format).alpha_bits > 0
        target = ImageFormats.RGBA8888 if has_alpha else ImageFormats.RGB888
        size = width * height * (4 if has_alpha else 3)

        # Drop the old slice first; nothing may read it past this point.
        self.key = None
        self.buffer = None

        try:
            source = texture.get_data(key.frame, key.face, 0, key.mip)
        except SLICE_ERRORS as exc:
            raise DecodeFailure(f"No image data for {key}: {exc}") from exc

        buffer = bytearray(size)
        self.decode_count += 1
        logger.debug("Decoding %s at %dx%d into %s", key, width, height, target.name)
        if not texture.convert(source, buffer, width, height, texture.data_format, target):
            raise DecodeFailure(
                f"Conversion from {texture.data_format.name} to {target.name} failed for {key}"
            )

        self.buffer = buffer
        self.layout = RGBA_LAYOUT if has_alpha else RGB_LAYOUT
        self.key = key

    # ------------------------------------------------------------------
    def draw_origin(self, target_width: int, target_height: int) -> Tuple[int, int]:
        """Top-left corner that centres the scaled slice, plus the pan offset."""
        zoom = self.transform.zoom
        width, height = self.draw_size
        x = target_width // 2 - int(width * zoom) // 2 + self.transform.offset_x
        y = target_height // 2 - int(height * zoom) // 2 + self.transform.offset_y
        return x, y

    # ------------------------------------------------------------------
    def render_to(self, surface: Surface) -> bool:
        """Blit the decoded slice onto ``surface``.  Returns ``False`` if there is none."""
        if self.buffer is None:
            return False
        x, y = self.draw_origin(surface.width(), surface.height())
        width, height = self.draw_size
        surface.blit(self.buffer, width, height, self.layout, x, y, self.transform.zoom)
        return True
