"""Material Remapper form."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ...core.exceptions import MaterialRemapperError
from ...core.models import DEFAULT_PREFIX, RemapSettings
from ...core.workflow import can_remap, run_remap
from ...version import get_version
from .logging_utils import LOG_LEVELS, set_log_level
from .project import UnityProject
from .qt_compat import (
    QAbstractItemView,
    QCheckBox,
    QDialog,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QIcon,
    QLabel,
    QLineEdit,
    QListWidget,
    QMenuBar,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
    Qt,
)

HELP_TEXT = (
    "1. Select one or more FBX / OBJ / USD / Prefab assets.\n"
    "2. Choose the folder with the target .mat files.\n"
    f"3. Enter the prefix those materials use (default: {DEFAULT_PREFIX}).\n"
    "4. Click the button below to remap."
)
ASSET_FILE_FILTER = (
    "Assets (*.prefab *.fbx *.obj *.usd *.usda *.usdc *.usdz);;All Files (*)"
)


@dataclass
class RemapFormState:
    """
    Values collected from the form.

    Attributes:
        project_root (str): Unity project directory.
        materials_folder (str): Folder holding the target materials.
        prefix (str): Prefix the target materials use.
        recursive (bool): Include materials from subfolders.
        selection (List[str]): Selected asset files.
        log_level (str): Logging verbosity.
    """

    project_root: str
    materials_folder: str
    prefix: str = DEFAULT_PREFIX
    recursive: bool = True
    selection: List[str] = field(default_factory=list)
    log_level: str = "Info"

    def to_settings(self, project: UnityProject) -> RemapSettings:
        """Build run settings with the folder expressed as an asset path."""
        return RemapSettings(
            materials_folder=project.asset_path(self.materials_folder),
            prefix=self.prefix,
            recursive=self.recursive,
        )


class MaterialRemapperView(QDialog):
    """
    Form that remaps materials of the selected assets.
    """

    def __init__(
        self,
        parent=None,
        logger: Optional[logging.Logger] = None,
        project_root: Optional[str] = None,
    ) -> None:
        """Build the form.

        Args:
            parent: Optional parent widget.
            logger: Optional logger to use for UI-related messages.
            project_root: Optional project directory to preselect.
        """
        super().__init__(parent)
        self._logger = logger or logging.getLogger(__name__)
        self.setWindowTitle("Material Remapper")
        self.setWindowIcon(QIcon())
        self.setMinimumSize(520, 420)
        self._plugin_version = get_version()

        root_layout = QVBoxLayout()
        root_layout.setContentsMargins(10, 10, 10, 10)
        root_layout.setSpacing(6)
        self.setLayout(root_layout)

        menu_bar = QMenuBar()
        menu_bar.setNativeMenuBar(False)
        help_menu = menu_bar.addMenu("Help")
        help_menu.addAction("Help", self._show_help)
        help_menu.addAction("About", self._show_about)
        advanced_menu = menu_bar.addMenu("Advanced")
        log_menu = advanced_menu.addMenu("Logging Verbosity")
        self._log_level_name = "Info"
        self._log_level_actions = {}
        for level_name in LOG_LEVELS.keys():
            action = log_menu.addAction(level_name)
            action.setCheckable(True)
            action.triggered.connect(
                lambda _checked, name=level_name: self._set_log_level(name)
            )
            self._log_level_actions[level_name] = action
        for name, action in self._log_level_actions.items():
            action.setChecked(name == self._log_level_name)
        root_layout.setMenuBar(menu_bar)

        settings_box = QGroupBox("Settings")
        settings_layout = QFormLayout()
        settings_layout.setContentsMargins(8, 6, 8, 8)
        settings_layout.setSpacing(4)

        self.project_edit = QLineEdit(project_root or "")
        self.project_edit.setPlaceholderText("Unity project folder")
        self.project_edit.textChanged.connect(self._update_remap_enabled)
        project_btn = QPushButton("Browse...")
        project_btn.clicked.connect(self._browse_project)
        settings_layout.addRow("Project", self._with_button(self.project_edit, project_btn))

        self.folder_edit = QLineEdit()
        self.folder_edit.setPlaceholderText("Folder with the target .mat files")
        self.folder_edit.textChanged.connect(self._update_remap_enabled)
        folder_btn = QPushButton("Browse...")
        folder_btn.clicked.connect(self._browse_folder)
        settings_layout.addRow(
            "Materials Folder", self._with_button(self.folder_edit, folder_btn)
        )

        self.prefix_edit = QLineEdit(DEFAULT_PREFIX)
        settings_layout.addRow("Prefix", self.prefix_edit)

        self.recursive = QCheckBox("Include subfolders")
        self.recursive.setChecked(True)
        settings_layout.addRow("", self.recursive)
        settings_box.setLayout(settings_layout)
        root_layout.addWidget(settings_box)

        selection_box = QGroupBox("Selected Assets")
        selection_layout = QVBoxLayout()
        selection_layout.setContentsMargins(8, 6, 8, 8)
        self.selection_list = QListWidget()
        self.selection_list.setSelectionMode(QAbstractItemView.ExtendedSelection)
        selection_layout.addWidget(self.selection_list)
        selection_buttons = QHBoxLayout()
        add_btn = QPushButton("Add Assets...")
        add_btn.clicked.connect(self._add_assets)
        remove_btn = QPushButton("Remove")
        remove_btn.clicked.connect(self._remove_selected)
        clear_btn = QPushButton("Clear")
        clear_btn.clicked.connect(self._clear_selection)
        selection_buttons.addWidget(add_btn)
        selection_buttons.addWidget(remove_btn)
        selection_buttons.addWidget(clear_btn)
        selection_buttons.addStretch(1)
        selection_layout.addLayout(selection_buttons)
        selection_box.setLayout(selection_layout)
        root_layout.addWidget(selection_box, 1)

        help_label = QLabel(HELP_TEXT)
        help_label.setWordWrap(True)
        help_label.setAlignment(Qt.AlignLeft | Qt.AlignVCenter)
        root_layout.addWidget(help_label)

        self.remap_btn = QPushButton("Remap Selected Assets")
        self.remap_btn.setMinimumHeight(32)
        self.remap_btn.clicked.connect(self._remap_selected)
        root_layout.addWidget(self.remap_btn)

        self._update_remap_enabled()

    @staticmethod
    def _with_button(edit: QLineEdit, button: QPushButton) -> QWidget:
        row = QHBoxLayout()
        row.setContentsMargins(0, 0, 0, 0)
        row.addWidget(edit, 1)
        row.addWidget(button, 0)
        widget = QWidget()
        widget.setLayout(row)
        return widget

    def _start_dir(self) -> str:
        return self.project_edit.text().strip() or str(Path.home())

    def _browse_project(self) -> None:
        path = QFileDialog.getExistingDirectory(self, "Unity Project", self._start_dir())
        if path:
            self.project_edit.setText(path)

    def _browse_folder(self) -> None:
        start = self.folder_edit.text().strip() or self._start_dir()
        path = QFileDialog.getExistingDirectory(self, "Materials Folder", start)
        if path:
            self.folder_edit.setText(path)

    def _add_assets(self) -> None:
        paths, _filter = QFileDialog.getOpenFileNames(
            self, "Select Assets", self._start_dir(), ASSET_FILE_FILTER
        )
        existing = set(self._selection_paths())
        for path in paths:
            if path not in existing:
                self.selection_list.addItem(path)
                existing.add(path)
        self._update_remap_enabled()

    def _remove_selected(self) -> None:
        for item in self.selection_list.selectedItems():
            self.selection_list.takeItem(self.selection_list.row(item))
        self._update_remap_enabled()

    def _clear_selection(self) -> None:
        self.selection_list.clear()
        self._update_remap_enabled()

    def _selection_paths(self) -> List[str]:
        return [
            self.selection_list.item(row).text()
            for row in range(self.selection_list.count())
        ]

    def _update_remap_enabled(self) -> None:
        enabled = bool(self.project_edit.text().strip()) and can_remap(
            self.folder_edit.text(), self.selection_list.count()
        )
        self.remap_btn.setEnabled(enabled)

    def _set_log_level(self, name: str) -> None:
        if name not in LOG_LEVELS:
            return
        self._log_level_name = name
        for level_name, action in self._log_level_actions.items():
            action.setChecked(level_name == name)
        set_log_level(name)

    def _show_help(self) -> None:
        """Show a short help dialog."""
        QMessageBox.information(self, "Material Remapper Help", HELP_TEXT)

    def _show_about(self) -> None:
        """Show an about dialog with version details."""
        message = (
            f"Material Remapper\n"
            f"Version {self._plugin_version}\n\n"
            "Points model and prefab material slots at prefixed materials on disk."
        )
        QMessageBox.information(self, "About Material Remapper", message)

    def get_state(self) -> RemapFormState:
        """
        Read UI state into RemapFormState.

        Returns:
            RemapFormState: Values collected from the form.
        """
        return RemapFormState(
            project_root=self.project_edit.text().strip(),
            materials_folder=self.folder_edit.text().strip(),
            prefix=self.prefix_edit.text(),
            recursive=self.recursive.isChecked(),
            selection=self._selection_paths(),
            log_level=self._log_level_name,
        )

    def _remap_selected(self) -> None:
        state = self.get_state()
        try:
            project = UnityProject(state.project_root)
            settings = state.to_settings(project)
            selection = [project.asset_path(path) for path in state.selection]
        except MaterialRemapperError as exc:
            self._logger.error("Cannot start remap: %s", exc.message)
            QMessageBox.critical(self, "Material Remapper", exc.message)
            return

        report = run_remap(settings, selection, project)
        if report is None:
            QMessageBox.warning(
                self,
                "Material Remapper",
                "Nothing was remapped. Check the log for details.",
            )
            return
        if report.aborted:
            QMessageBox.warning(
                self,
                "Material Remapper",
                f"Material remap stopped early:\n{report.summary()}",
            )
            return
        QMessageBox.information(
            self, "Material Remapper", f"Material remap finished:\n{report.summary()}"
        )
