"""Qt main window for the vitals monitor application."""

from __future__ import annotations

from typing import Dict, Optional

import pyqtgraph as pg
from PyQt6 import QtCore, QtWidgets
from qasync import asyncSlot

pg.setConfigOptions(antialias=False, useOpenGL=False)

from .. import config
from ..adapter import BleAdapter, DeviceHandle
from ..config import ChannelId
from ..device_manager import SessionSupervisor
from ..scanner import ScanSnapshot
from ..session import SessionState, SessionStatus

PLOTS = (
    (ChannelId.ECG, "ECG (0xAA21)", "r"),
    (ChannelId.PPG, "PPG (0xAA03)", "g"),
)


class SupervisorBridge(QtCore.QObject):
    """Bridge raw supervisor callbacks to Qt signals."""

    snapshot_changed = QtCore.pyqtSignal(object)
    state_changed = QtCore.pyqtSignal(object)
    error_raised = QtCore.pyqtSignal(str)

    def emit_snapshot(self, snapshot: ScanSnapshot) -> None:
        self.snapshot_changed.emit(snapshot)

    def emit_state(self, status: SessionStatus) -> None:
        self.state_changed.emit(status)

    def emit_error(self, message: str) -> None:
        self.error_raised.emit(message)


class MainWindow(QtWidgets.QMainWindow):
    """Device list page and live-data page in a stacked layout."""

    def __init__(
        self,
        adapter: BleAdapter,
        address_prefix: str = config.ADDRESS_PREFIX,
        scan_timeout: float = config.DEFAULT_SCAN_TIMEOUT,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Bluetooth Devices")
        self._scan_timeout = scan_timeout
        self._prefix = address_prefix.upper()

        self._bridge = SupervisorBridge()
        self._bridge.snapshot_changed.connect(self._handle_snapshot)
        self._bridge.state_changed.connect(self._handle_state)
        self._bridge.error_raised.connect(self._handle_error)

        self._supervisor = SessionSupervisor(
            adapter=adapter,
            on_snapshot=self._bridge.emit_snapshot,
            on_state=self._bridge.emit_state,
            on_error=self._bridge.emit_error,
            address_prefix=address_prefix,
        )
        self._devices: Dict[int, DeviceHandle] = {}
        self._curves: Dict[ChannelId, pg.PlotDataItem] = {}
        self._plots: Dict[ChannelId, pg.PlotItem] = {}
        self._progress: Optional[QtWidgets.QProgressDialog] = None

        self._build_ui()

        self._timer = QtCore.QTimer(self)
        self._timer.timeout.connect(self._refresh_plots)
        self._timer.start(config.PLOT_REFRESH_MS)

        QtCore.QTimer.singleShot(0, self._on_scan_clicked)

    def _build_ui(self) -> None:
        self._pages = QtWidgets.QStackedWidget(self)

        # Device list page
        list_page = QtWidgets.QWidget()
        list_layout = QtWidgets.QVBoxLayout(list_page)
        controls = QtWidgets.QHBoxLayout()
        self._scan_button = QtWidgets.QPushButton("Refresh")
        self._scan_button.clicked.connect(self._on_scan_clicked)
        controls.addWidget(self._scan_button)
        self._connect_button = QtWidgets.QPushButton("Connect")
        self._connect_button.clicked.connect(self._on_connect_clicked)
        controls.addWidget(self._connect_button)
        controls.addStretch()
        list_layout.addLayout(controls)

        self._scan_label = QtWidgets.QLabel()
        self._scan_label.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        list_layout.addWidget(self._scan_label)
        self._device_list = QtWidgets.QListWidget()
        self._device_list.itemDoubleClicked.connect(self._on_connect_clicked)
        list_layout.addWidget(self._device_list, stretch=1)
        self._pages.addWidget(list_page)

        # Live data page
        live_page = QtWidgets.QWidget()
        live_layout = QtWidgets.QVBoxLayout(live_page)
        header = QtWidgets.QHBoxLayout()
        self._live_title = QtWidgets.QLabel()
        self._live_title.setStyleSheet("font-weight: bold;")
        header.addWidget(self._live_title)
        header.addStretch()
        self._disconnect_button = QtWidgets.QPushButton("Disconnect")
        self._disconnect_button.clicked.connect(self._on_disconnect_clicked)
        header.addWidget(self._disconnect_button)
        live_layout.addLayout(header)

        graphs = pg.GraphicsLayoutWidget()
        for row, (channel, title, color) in enumerate(PLOTS):
            plot = graphs.addPlot(row=row, col=0, title=title)
            plot.showGrid(x=True, y=True)
            plot.hideAxis("bottom")
            self._curves[channel] = plot.plot(pen=pg.mkPen(color, width=2))
            self._plots[channel] = plot
        live_layout.addWidget(graphs, stretch=1)
        self._pages.addWidget(live_page)

        self.setCentralWidget(self._pages)
        self._render_snapshot(self._supervisor.snapshot)
        self.resize(900, 700)

    # -------------------------------------------------------------- Helpers --
    def _render_snapshot(self, snapshot: ScanSnapshot) -> None:
        self._scan_button.setEnabled(not snapshot.scanning)
        self._device_list.clear()
        self._devices = {}
        if snapshot.scanning:
            self._scan_label.setText("Scanning...")
        elif not snapshot.devices:
            self._scan_label.setText(f"No devices found with MAC starting {self._prefix}")
        else:
            self._scan_label.setText("")
        for idx, device in enumerate(snapshot.devices):
            item = QtWidgets.QListWidgetItem(f"{device.display_name}\n{device.address}")
            self._device_list.addItem(item)
            self._devices[idx] = device
        self._connect_button.setEnabled(bool(snapshot.devices) and not snapshot.scanning)

    def _close_progress(self) -> None:
        if self._progress is not None:
            self._progress.close()
            self._progress = None

    def _show_device_list(self) -> None:
        self._close_progress()
        self.setWindowTitle("Bluetooth Devices")
        self._pages.setCurrentIndex(0)

    # ------------------------------------------------------------ Callbacks --
    def _handle_snapshot(self, snapshot: ScanSnapshot) -> None:
        self._render_snapshot(snapshot)

    def _handle_state(self, status: SessionStatus) -> None:
        if status.state is SessionState.STREAMING:
            self._close_progress()
            device = self._supervisor.session.device if self._supervisor.session else None
            name = device.display_name if device else ""
            self.setWindowTitle(f"Live Data - {name}")
            self._live_title.setText(f"Live Data - {name}")
            self._pages.setCurrentIndex(1)
        elif status.state in (SessionState.DISCONNECTED, SessionState.FAILED, SessionState.IDLE):
            self._show_device_list()

    def _handle_error(self, message: str) -> None:
        self._close_progress()
        box = QtWidgets.QMessageBox(
            QtWidgets.QMessageBox.Icon.Warning,
            "Connection",
            message,
            QtWidgets.QMessageBox.StandardButton.Ok,
            self,
        )
        box.setAttribute(QtCore.Qt.WidgetAttribute.WA_DeleteOnClose)
        box.open()

    def _refresh_plots(self) -> None:
        if self._pages.currentIndex() != 1:
            return
        for channel, curve in self._curves.items():
            positions, values = self._supervisor.channel_snapshot(channel)
            curve.setData(positions, values, skipFiniteCheck=True)
            low, high = self._supervisor.channel_bounds(channel)
            if high > low:
                self._plots[channel].setYRange(low, high, padding=0.05)

    # ---------------------------------------------------------- UI actions --
    @asyncSlot()
    async def _on_scan_clicked(self) -> None:
        await self._supervisor.start_scan(self._scan_timeout)

    @asyncSlot()
    async def _on_connect_clicked(self) -> None:
        device = self._devices.get(self._device_list.currentRow())
        if device is None:
            return
        self._progress = QtWidgets.QProgressDialog("Connecting...", None, 0, 0, self)
        self._progress.setWindowModality(QtCore.Qt.WindowModality.WindowModal)
        self._progress.show()
        await self._supervisor.select_device(device)
        if not self._supervisor.connected:
            self._close_progress()

    @asyncSlot()
    async def _on_disconnect_clicked(self) -> None:
        await self._supervisor.teardown()

    async def shutdown(self) -> None:
        """Release the active session before the event loop closes."""
        self._timer.stop()
        await self._supervisor.teardown()
