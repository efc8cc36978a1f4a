"""Dock panels showing texture metadata and embedded resources."""
from __future__ import annotations

from typing import Dict, Optional

from PyQt5.QtWidgets import (
    QAbstractItemView,
    QGridLayout,
    QGroupBox,
    QLabel,
    QLineEdit,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from .info import FILE_FIELDS, INFO_FIELDS, describe_texture, resource_rows
from .texture import VTFTexture


class InfoWidget(QWidget):
    """Read-only fields describing the file and the image it holds."""

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.fields: Dict[str, QLineEdit] = {}

        layout = QVBoxLayout(self)
        layout.addWidget(self._build_group("File Metadata", FILE_FIELDS))
        layout.addWidget(self._build_group("Image Info", INFO_FIELDS))
        # Keep the groups packed at the top.
        layout.addStretch(1)

    # ------------------------------------------------------------------
    def _build_group(self, title: str, names) -> QGroupBox:
        group = QGroupBox(title, self)
        grid = QGridLayout(group)
        grid.setColumnStretch(1, 1)
        grid.setRowStretch(len(names), 1)
        for row, name in enumerate(names):
            edit = QLineEdit(group)
            edit.setReadOnly(True)
            grid.addWidget(QLabel(f"{name}:", group), row, 0)
            grid.addWidget(edit, row, 1)
            self.fields[name] = edit
        return group

    # ------------------------------------------------------------------
    def update_info(self, texture: Optional[VTFTexture]) -> None:
        if texture is None:
            self.clear()
            return
        for name, text in describe_texture(texture).items():
            self.fields[name].setText(text)

    # ------------------------------------------------------------------
    def clear(self) -> None:
        for edit in self.fields.values():
            edit.clear()


class ResourceWidget(QWidget):
    """Table listing the resources stored in a 7.3+ VTF."""

    HEADERS = ("Resource Name", "Resource Type", "Data Size")

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        self.table = QTableWidget(self)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.verticalHeader().hide()
        self.table.setColumnCount(len(self.HEADERS))
        self.table.setHorizontalHeaderLabels(list(self.HEADERS))
        self.table.horizontalHeader().setStretchLastSection(True)
        layout.addWidget(self.table)

    # ------------------------------------------------------------------
    def set_vtf(self, texture: Optional[VTFTexture]) -> None:
        self.table.clearContents()
        if texture is None:
            self.table.setRowCount(0)
            return
        rows = resource_rows(texture)
        self.table.setRowCount(len(rows))
        for row, values in enumerate(rows):
            for column, text in enumerate(values):
                self.table.setItem(row, column, QTableWidgetItem(text))
