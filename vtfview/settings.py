"""Viewer settings dock: slice selection, start frame and texture flags."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from PyQt5.QtCore import pyqtSignal
from PyQt5.QtWidgets import (
    QCheckBox,
    QGridLayout,
    QGroupBox,
    QLabel,
    QScrollArea,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from .preview import ImageViewWidget
from .texture import TEXTURE_FLAGS, VTFTexture


@dataclass(frozen=True)
class EditContext:
    """Describes where an edit comes from.

    Edits made while controls are being populated from a freshly bound
    texture carry ``initializing=True`` and never mark the file modified.
    """

    initializing: bool = False


INTERACTIVE = EditContext()
INITIALIZING = EditContext(initializing=True)


class TextureEditor:
    """Applies edits to the bound texture and reports real modifications."""

    def __init__(self, on_modified: Callable[[], None]) -> None:
        self.texture: Optional[VTFTexture] = None
        self.on_modified = on_modified

    def bind(self, texture: Optional[VTFTexture]) -> None:
        self.texture = texture

    # ------------------------------------------------------------------
    def set_start_frame(self, value: int, context: EditContext = INTERACTIVE) -> bool:
        if self.texture is None or self.texture.start_frame == value:
            return False
        self.texture.start_frame = value
        self._changed(context)
        return True

    # ------------------------------------------------------------------
    def set_flag(self, bit: int, enabled: bool, context: EditContext = INTERACTIVE) -> bool:
        if self.texture is None or bool(self.texture.flags & bit) == enabled:
            return False
        self.texture.set_flag(bit, enabled)
        self._changed(context)
        return True

    # ------------------------------------------------------------------
    def _changed(self, context: EditContext) -> None:
        if not context.initializing:
            self.on_modified()


@contextmanager
def _signals_blocked(widgets: Iterable[QWidget]) -> Iterator[None]:
    previous = [(widget, widget.blockSignals(True)) for widget in widgets]
    try:
        yield
    finally:
        for widget, state in previous:
            widget.blockSignals(state)


class ImageSettingsWidget(QWidget):
    """Controls for the image view and the editable texture settings."""

    fileModified = pyqtSignal()

    def __init__(self, viewer: ImageViewWidget, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.viewer = viewer
        self.editor = TextureEditor(self.fileModified.emit)

        layout = QGridLayout(self)
        self.frame_spin = self._add_spin(layout, 0, "Frame:")
        self.mip_spin = self._add_spin(layout, 1, "Mip:")
        self.face_spin = self._add_spin(layout, 2, "Face:")
        self.start_frame_spin = self._add_spin(layout, 3, "Start Frame:")

        self.frame_spin.valueChanged.connect(viewer.set_frame)
        self.mip_spin.valueChanged.connect(viewer.set_mip)
        self.face_spin.valueChanged.connect(viewer.set_face)
        self.start_frame_spin.valueChanged.connect(lambda value: self.editor.set_start_frame(value))

        flags_group = QGroupBox("Flags", self)
        flags_layout = QVBoxLayout(flags_group)
        self.flag_checks: List[Tuple[int, QCheckBox]] = []
        for bit, name in TEXTURE_FLAGS:
            check = QCheckBox(name, flags_group)
            check.toggled.connect(lambda checked, bit=bit: self._flag_toggled(bit, checked))
            flags_layout.addWidget(check)
            self.flag_checks.append((bit, check))

        scroll = QScrollArea(self)
        scroll.setWidgetResizable(True)
        scroll.setWidget(flags_group)
        layout.addWidget(scroll, 4, 0, 1, 2)

        self.setEnabled(False)

    # ------------------------------------------------------------------
    def _add_spin(self, layout: QGridLayout, row: int, label: str) -> QSpinBox:
        spin = QSpinBox(self)
        spin.setRange(0, 0)
        layout.addWidget(QLabel(label, self), row, 0)
        layout.addWidget(spin, row, 1)
        return spin

    # ------------------------------------------------------------------
    def _controls(self) -> List[QWidget]:
        spins: List[QWidget] = [self.frame_spin, self.mip_spin, self.face_spin, self.start_frame_spin]
        return spins + [check for _, check in self.flag_checks]

    # ------------------------------------------------------------------
    def _flag_toggled(self, bit: int, checked: bool) -> None:
        self.editor.set_flag(bit, checked)
        # Several labels share a bit; keep them consistent.
        self._sync_flag_checks()

    # ------------------------------------------------------------------
    def _sync_flag_checks(self) -> None:
        texture = self.editor.texture
        flags = texture.flags if texture is not None else 0
        with _signals_blocked(check for _, check in self.flag_checks):
            for bit, check in self.flag_checks:
                check.setChecked(bool(flags & bit))

    # ------------------------------------------------------------------
    def set_vtf(self, texture: Optional[VTFTexture]) -> None:
        """Populate the controls from ``texture`` without marking it modified."""
        self.editor.bind(texture)
        self.setEnabled(texture is not None)

        with _signals_blocked(self._controls()):
            if texture is None:
                for spin in (self.frame_spin, self.mip_spin, self.face_spin, self.start_frame_spin):
                    spin.setRange(0, 0)
            else:
                last_frame = max(0, texture.frame_count - 1)
                self.frame_spin.setRange(0, last_frame)
                # Files may store a start frame past the last frame; keep it as is.
                self.start_frame_spin.setRange(0, max(last_frame, texture.start_frame))
                self.mip_spin.setRange(0, max(0, texture.mipmap_count - 1))
                self.face_spin.setRange(0, max(0, texture.face_count - 1))

                self.start_frame_spin.setValue(texture.start_frame)
                self.frame_spin.setValue(min(texture.start_frame, last_frame))
                self.mip_spin.setValue(0)
                self.face_spin.setValue(0)
            self._sync_flag_checks()

        self._apply(INITIALIZING)

    # ------------------------------------------------------------------
    def _apply(self, context: EditContext) -> None:
        self.viewer.set_frame(self.frame_spin.value())
        self.viewer.set_mip(self.mip_spin.value())
        self.viewer.set_face(self.face_spin.value())
        self.editor.set_start_frame(self.start_frame_spin.value(), context)
