#!/usr/bin/env python3
"""Desktop viewer for Valve Texture Format (VTF) files.

The main window hosts the image view in the centre, an *Info* and a
*Resources* dock on the right and the *Viewer Settings* dock on the left.
Every panel listens to :attr:`ViewerMainWindow.vtfFileChanged`, so binding a
new texture is a single signal emission.

Editing is limited to the texture flags and the start frame.  Edits mark the
window dirty (a trailing ``*`` in the title) and the user is asked to save
before the window closes.
"""

from __future__ import annotations

import argparse
import logging
import struct
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from PyQt5.QtCore import QSettings, Qt, pyqtSignal
from PyQt5.QtGui import QCloseEvent
from PyQt5.QtWidgets import (
    QAction,
    QApplication,
    QDockWidget,
    QFileDialog,
    QMainWindow,
    QMessageBox,
    QTabWidget,
)

from vtfview.panels import InfoWidget, ResourceWidget
from vtfview.preview import ImageViewWidget
from vtfview.settings import ImageSettingsWidget
from vtfview.texture import TextureLoadError, VTFTexture

logger = logging.getLogger("vtfview")

APP_NAME = "VTFView"
RECENT_LIMIT = 10
VTF_FILTER = "Valve Texture File (*.vtf)"


class ViewerMainWindow(QMainWindow):
    """Main window of the viewer."""

    settings = QSettings("vtfview", "viewer")

    vtfFileChanged = pyqtSignal(object)

    def __init__(self) -> None:
        super().__init__()
        self.texture: Optional[VTFTexture] = None
        self.dirty = False

        self.resize(1000, 700)
        self.setTabPosition(Qt.LeftDockWidgetArea, QTabWidget.North)
        self.setTabPosition(Qt.RightDockWidgetArea, QTabWidget.North)

        # ------------------------------------------------------------------
        # Panels
        # ------------------------------------------------------------------
        self.image_view = ImageViewWidget(self)
        self.vtfFileChanged.connect(self.image_view.set_vtf)
        self.setCentralWidget(self.image_view)

        self.info_widget = InfoWidget(self)
        self.vtfFileChanged.connect(self.info_widget.update_info)
        info_dock = self._add_dock("Info", self.info_widget, Qt.RightDockWidgetArea)

        self.resource_widget = ResourceWidget(self)
        self.vtfFileChanged.connect(self.resource_widget.set_vtf)
        resource_dock = self._add_dock("Resources", self.resource_widget, Qt.RightDockWidgetArea)

        self.settings_widget = ImageSettingsWidget(self.image_view, self)
        self.vtfFileChanged.connect(self.settings_widget.set_vtf)
        self.settings_widget.fileModified.connect(self.mark_modified)
        self._add_dock("Viewer Settings", self.settings_widget, Qt.LeftDockWidgetArea)

        self.tabifyDockWidget(info_dock, resource_dock)
        info_dock.raise_()

        # ------------------------------------------------------------------
        # Actions
        # ------------------------------------------------------------------
        self.open_action = QAction("&Open…", self)
        self.open_action.setShortcut("Ctrl+O")
        self.open_action.triggered.connect(self._open_file)
        self.save_action = QAction("&Save", self)
        self.save_action.setShortcut("Ctrl+S")
        self.save_action.triggered.connect(self.save)
        self.save_as_action = QAction("Save &As…", self)
        self.save_as_action.triggered.connect(self.save_as)
        self.export_action = QAction("&Export Image…", self)
        self.export_action.triggered.connect(self.export_image)
        self.close_action = QAction("&Close", self)
        self.close_action.triggered.connect(self.unload_file)
        self.exit_action = QAction("E&xit", self)
        self.exit_action.triggered.connect(self.close)

        self.reset_view_action = QAction("&Reset View", self)
        self.reset_view_action.triggered.connect(self.image_view.reset_view)

        self.about_action = QAction("&About", self)
        self.about_action.triggered.connect(self._about)
        self.about_qt_action = QAction("About &Qt", self)
        self.about_qt_action.triggered.connect(QApplication.instance().aboutQt)

        # ------------------------------------------------------------------
        # Menus
        # ------------------------------------------------------------------
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        file_menu.addAction(self.open_action)
        self.recent_menu = file_menu.addMenu("Open &Recent")
        self._rebuild_recent_menu()
        file_menu.addSeparator()
        file_menu.addAction(self.save_action)
        file_menu.addAction(self.save_as_action)
        file_menu.addAction(self.export_action)
        file_menu.addSeparator()
        file_menu.addAction(self.close_action)
        file_menu.addAction(self.exit_action)

        view_menu = menubar.addMenu("&View")
        view_menu.addAction(self.reset_view_action)

        help_menu = menubar.addMenu("&Help")
        help_menu.addAction(self.about_action)
        help_menu.addAction(self.about_qt_action)

        self.setAcceptDrops(True)
        self._update_actions()
        self._update_title()

    # ------------------------------------------------------------------
    def _add_dock(self, title: str, widget, area) -> QDockWidget:
        dock = QDockWidget(title, self)
        dock.setObjectName(title)
        dock.setWidget(widget)
        self.addDockWidget(area, dock)
        return dock

    # ------------------------------------------------------------------
    def _update_title(self) -> None:
        title = APP_NAME
        if self.texture is not None:
            name = self.texture.path.name if self.texture.path else "untitled"
            title = f"{APP_NAME} - [{name}]"
        if self.dirty:
            title += "*"
        self.setWindowTitle(title)

    # ------------------------------------------------------------------
    def _update_actions(self) -> None:
        loaded = self.texture is not None
        for action in (self.save_action, self.save_as_action, self.export_action, self.close_action):
            action.setEnabled(loaded)

    # ------------------------------------------------------------------
    # Drag and drop
    # ------------------------------------------------------------------

    def dragEnterEvent(self, event):  # type: ignore[override]
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):  # type: ignore[override]
        for url in event.mimeData().urls():
            path = url.toLocalFile()
            if path:
                self.load_file(Path(path))
                break

    # ------------------------------------------------------------------
    # Recent files
    # ------------------------------------------------------------------

    def _rebuild_recent_menu(self) -> None:
        self.recent_menu.clear()
        recent = self.settings.value("recent", [], list)
        for path in recent:
            action = QAction(path, self)
            action.triggered.connect(lambda checked=False, p=path: self.load_file(Path(p)))
            self.recent_menu.addAction(action)
        self.recent_menu.setEnabled(bool(recent))

    def _add_to_recent(self, path: Path) -> None:
        recent = self.settings.value("recent", [], list)
        path_str = str(path)
        if path_str in recent:
            recent.remove(path_str)
        recent.insert(0, path_str)
        self.settings.setValue("recent", recent[:RECENT_LIMIT])
        self._rebuild_recent_menu()

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    def _open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Open texture", "", f"{VTF_FILTER};;All Files (*)"
        )
        if path:
            self.load_file(Path(path))

    # ------------------------------------------------------------------
    def load_file(self, path: Path) -> bool:
        """Load ``path`` and bind it to every panel.  Returns ``False`` on failure."""
        try:
            texture = VTFTexture.load(path)
        except TextureLoadError as exc:
            traceback.print_exc()
            QMessageBox.critical(self, "Error", str(exc))
            return False

        logger.info("Loaded %s", path)
        self.load_texture(texture)
        self._add_to_recent(path)
        self.statusBar().showMessage(str(path))
        return True

    # ------------------------------------------------------------------
    def load_texture(self, texture: VTFTexture) -> None:
        self.texture = texture
        self.dirty = False
        self.vtfFileChanged.emit(texture)
        self._update_actions()
        self._update_title()

    # ------------------------------------------------------------------
    def unload_file(self) -> None:
        if self.texture is None:
            return
        self.texture = None
        self.dirty = False
        self.vtfFileChanged.emit(None)
        self._update_actions()
        self._update_title()
        self.statusBar().clearMessage()

    # ------------------------------------------------------------------
    def mark_modified(self) -> None:
        if self.dirty:
            return
        self.dirty = True
        self._update_title()

    # ------------------------------------------------------------------
    def save(self) -> bool:
        """Save pending changes, asking for a path when the texture has none."""
        if self.texture is None or not self.dirty:
            return False
        return self._save_to(self.texture.path)

    # ------------------------------------------------------------------
    def save_as(self) -> bool:
        if self.texture is None:
            return False
        return self._save_to(None)

    # ------------------------------------------------------------------
    def _save_to(self, path: Optional[Path]) -> bool:
        if path is None:
            name, _ = QFileDialog.getSaveFileName(self, "Save as", "", VTF_FILTER)
            if not name:
                return False
            path = Path(name)

        try:
            self.texture.save(path)
        except (OSError, ValueError, NotImplementedError, struct.error) as exc:
            traceback.print_exc()
            QMessageBox.warning(self, "Could not save file!", f"Failed to save file: {exc}")
            return False

        logger.info("Saved %s", path)
        self.dirty = False
        self._add_to_recent(path)
        self._update_title()
        self.statusBar().showMessage(f"Saved {path}", 3000)
        return True

    # ------------------------------------------------------------------
    def export_image(self) -> bool:
        """Write the displayed slice to an image file through Pillow."""
        image = self.image_view.current_image()
        if image is None:
            QMessageBox.information(self, "Export Image", "There is no decoded image to export.")
            return False

        view = self.image_view
        stem = self.texture.path.stem if self.texture and self.texture.path else "texture"
        default = f"{stem}_f{view.frame}_face{view.face}_mip{view.mip}.png"
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Image", default, "PNG Images (*.png);;All Files (*)"
        )
        if not path:
            return False

        try:
            image.save(path)
        except (OSError, ValueError) as exc:
            traceback.print_exc()
            QMessageBox.warning(self, "Export Image", f"Failed to export image: {exc}")
            return False
        self.statusBar().showMessage(f"Exported {path}", 3000)
        return True

    # ------------------------------------------------------------------
    def _about(self) -> None:
        QMessageBox.about(
            self,
            f"About {APP_NAME}",
            f"<b>{APP_NAME}</b><br>"
            "Inspect the metadata, resources and images of Valve Texture Format files.",
        )

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def closeEvent(self, event: QCloseEvent) -> None:  # type: ignore[override]
        if self.dirty:
            res = QMessageBox.question(
                self,
                "Quit without saving?",
                "You have unsaved changes. Would you like to save?",
                QMessageBox.Save | QMessageBox.Cancel | QMessageBox.Close,
            )
            if res == QMessageBox.Cancel:
                event.ignore()
                return
            if res == QMessageBox.Save and not self.save():
                event.ignore()
                return
        self.image_view.set_vtf(None)
        event.accept()


# ---------------------------------------------------------------------------
# Application entry point
# ---------------------------------------------------------------------------


def main(argv: List[str] | None = None) -> int:
    """Run the GUI application."""

    parser = argparse.ArgumentParser(description="View Valve Texture Format files")
    parser.add_argument("path", nargs="?", help="VTF file to open at start-up")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv[:1])
    window = ViewerMainWindow()
    window.show()
    if args.path:
        window.load_file(Path(args.path))
    return app.exec_()


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
