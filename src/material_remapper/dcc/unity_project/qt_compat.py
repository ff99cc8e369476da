"""
Qt bindings used by the Material Remapper form.

PySide6 is preferred; PySide2 is used when only the older binding is present.
"""
from __future__ import annotations

try:
    from PySide6 import QtCore, QtGui, QtWidgets  # type: ignore
    QT_BINDING = "PySide6"
except ImportError:
    from PySide2 import QtCore, QtGui, QtWidgets  # type: ignore
    QT_BINDING = "PySide2"

Qt = QtCore.Qt
QIcon = QtGui.QIcon

QAbstractItemView = QtWidgets.QAbstractItemView
QApplication = QtWidgets.QApplication
QCheckBox = QtWidgets.QCheckBox
QDialog = QtWidgets.QDialog
QFileDialog = QtWidgets.QFileDialog
QFormLayout = QtWidgets.QFormLayout
QGroupBox = QtWidgets.QGroupBox
QHBoxLayout = QtWidgets.QHBoxLayout
QLabel = QtWidgets.QLabel
QLineEdit = QtWidgets.QLineEdit
QListWidget = QtWidgets.QListWidget
QMenuBar = QtWidgets.QMenuBar
QMessageBox = QtWidgets.QMessageBox
QPushButton = QtWidgets.QPushButton
QVBoxLayout = QtWidgets.QVBoxLayout
QWidget = QtWidgets.QWidget


def run_event_loop(app: QApplication) -> int:
    """Run the application event loop; PySide2 only offers ``exec_``."""
    run = getattr(app, "exec", None) or app.exec_
    return run()


__all__ = [
    "QT_BINDING",
    "Qt",
    "QIcon",
    "QAbstractItemView",
    "QApplication",
    "QCheckBox",
    "QDialog",
    "QFileDialog",
    "QFormLayout",
    "QGroupBox",
    "QHBoxLayout",
    "QLabel",
    "QLineEdit",
    "QListWidget",
    "QMenuBar",
    "QMessageBox",
    "QPushButton",
    "QVBoxLayout",
    "QWidget",
    "run_event_loop",
]
