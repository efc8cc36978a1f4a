"""Qt widget displaying one slice of a VTF texture."""
from __future__ import annotations

from typing import Optional

from PIL import Image
from PyQt5.QtCore import QPoint, QRectF, Qt
from PyQt5.QtGui import QImage, QPainter
from PyQt5.QtWidgets import QWidget

from .cache import RGBA_LAYOUT, SliceDecodeCache, fit_display_size
from .texture import VTFTexture


class _PainterSurface:
    """Adapts a :class:`QPainter` on an :class:`ImageViewWidget` to the cache's surface protocol."""

    def __init__(self, painter: QPainter, widget: ImageViewWidget) -> None:
        self.painter = painter
        self.widget = widget

    def width(self) -> int:
        return self.widget.width()

    def height(self) -> int:
        return self.widget.height()

    def blit(self, buffer: bytearray, width: int, height: int, layout: str,
             x: int, y: int, zoom: float) -> None:
        image = self.widget.slice_image(buffer, width, height, layout)
        self.painter.drawImage(QRectF(x, y, width * zoom, height * zoom), image)


class ImageViewWidget(QWidget):
    """Central view rendering the selected frame, face and mip level.

    The wheel zooms and a left-button drag pans the image.
    """

    ZOOM_STEP = 1.25
    MIN_ZOOM = 0.125
    MAX_ZOOM = 32.0

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setMinimumSize(256, 256)
        self.cache = SliceDecodeCache()
        self.frame = 0
        self.face = 0
        self.mip = 0
        self._drag_origin: Optional[QPoint] = None
        # QImage built from the cache buffer it was made for.
        self._image_source: Optional[bytearray] = None
        self._image: Optional[QImage] = None
        self._image_data = b""

    # ------------------------------------------------------------------
    def set_vtf(self, texture: Optional[VTFTexture]) -> None:
        self.cache.bind(texture)
        self._image_source = self._image = None
        self._image_data = b""
        if texture is not None:
            width, height = fit_display_size((self.width(), self.height()), texture)
            if (width, height) != (self.width(), self.height()):
                self.resize(width, height)
        self.update()

    # ------------------------------------------------------------------
    def set_frame(self, frame: int) -> None:
        self.frame = frame
        self.update()

    def set_face(self, face: int) -> None:
        self.face = face
        self.update()

    def set_mip(self, mip: int) -> None:
        self.mip = mip
        self.update()

    # ------------------------------------------------------------------
    def slice_image(self, buffer: bytearray, width: int, height: int, layout: str) -> QImage:
        """QImage over ``buffer``, rebuilt only when the cache decodes a new slice."""
        if buffer is not self._image_source or self._image is None:
            channels = 4 if layout == RGBA_LAYOUT else 3
            fmt = QImage.Format_RGBA8888 if channels == 4 else QImage.Format_RGB888
            # QImage does not copy; the bytes must outlive the image.
            self._image_data = bytes(buffer)
            self._image = QImage(self._image_data, width, height, width * channels, fmt)
            self._image_source = buffer
        return self._image

    # ------------------------------------------------------------------
    def reset_view(self) -> None:
        self.cache.transform.reset()
        self.update()

    # ------------------------------------------------------------------
    def current_image(self) -> Optional[Image.Image]:
        """Copy of the selected slice as a Pillow image, or ``None`` if it cannot be decoded."""
        if self.cache.texture is None:
            return None
        buffer = self.cache.request_render(self.frame, self.face, self.mip).buffer
        if buffer is None:
            return None
        mode = "RGBA" if self.cache.layout == RGBA_LAYOUT else "RGB"
        return Image.frombytes(mode, self.cache.draw_size, bytes(buffer))

    # ------------------------------------------------------------------
    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        try:
            if self.cache.texture is None:
                return
            result = self.cache.request_render(self.frame, self.face, self.mip)
            if result.buffer is None:
                painter.drawText(self.rect(), Qt.AlignCenter, self.cache.last_error or "No preview")
                return
            self.cache.render_to(_PainterSurface(painter, self))
        finally:
            painter.end()

    # ------------------------------------------------------------------
    def wheelEvent(self, event) -> None:  # type: ignore[override]
        transform = self.cache.transform
        factor = self.ZOOM_STEP if event.angleDelta().y() > 0 else 1 / self.ZOOM_STEP
        transform.zoom = min(self.MAX_ZOOM, max(self.MIN_ZOOM, transform.zoom * factor))
        self.update()

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.LeftButton:
            self._drag_origin = event.pos()
        else:
            super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if self._drag_origin is None:
            super().mouseMoveEvent(event)
            return
        delta = event.pos() - self._drag_origin
        self._drag_origin = event.pos()
        self.cache.transform.offset_x += delta.x()
        self.cache.transform.offset_y += delta.y()
        self.update()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.LeftButton:
            self._drag_origin = None
        else:
            super().mouseReleaseEvent(event)
