"""Pose service: wires devices, trackers, the listener, and the broadcaster.

Each device gets its own worker thread that reads frame batches and runs
them through that device's coordinator. The listener accepts subscribers
on a separate thread. The connection registry is the only state shared
between them.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from app.events import ErrorCategory, ErrorSeverity, get_error_bus, publish_error
from app.lifecycle import CleanupManager
from app.pipeline.frame_cycle import FrameCycleCoordinator
from broadcast.fanout import BroadcastFanOut
from broadcast.listener import PoseListener
from broadcast.registry import ConnectionRegistry
from capture.device_index import DeviceIndex
from capture.sensor_device import SensorDevice, StreamConfig
from configs.settings import AppConfig
from estimate.pose_estimator import EstimatorFactory
from exceptions import DeviceError, PoseCastError
from log_config.logger import get_logger
from telemetry.monitor import TelemetryMonitor
from track.table import SubjectTrackerTable

logger = get_logger(__name__)


class DeviceWorker:
    """Reads batches from one device and feeds its coordinator sequentially."""

    def __init__(
        self,
        device: SensorDevice,
        coordinator: FrameCycleCoordinator,
        read_timeout_ms: int = 100,
    ) -> None:
        self.device = device
        self.coordinator = coordinator
        self._read_timeout_ms = read_timeout_ms
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        self._thread = threading.Thread(
            target=self._run,
            name=f"device-{self.coordinator.device_index}",
            daemon=True,
        )
        self._thread.start()

    @property
    def is_alive(self) -> bool:
        """The worker thread is still running, even if asked to stop."""
        return self._thread is not None and self._thread.is_alive()

    def stop(self, timeout: float = 1.0) -> None:
        """Stop the worker thread. Idempotent.

        A thread that does not exit within the timeout is kept so
        ``is_alive`` keeps reporting it.
        """
        self._running.clear()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning(f"Device worker {self.device.unique_id} did not stop within timeout")
            return
        self._thread = None

    def run_once(self) -> None:
        """Read and process a single batch on the calling thread."""
        try:
            batch = self.device.read_batch(self._read_timeout_ms)
        except DeviceError as exc:
            publish_error(
                category=ErrorCategory.DEVICE,
                severity=ErrorSeverity.WARNING,
                message=f"Frame batch unavailable: {exc}",
                source="DeviceWorker",
                exception=exc,
                device_id=self.device.unique_id,
            )
            self.coordinator.process_batch(None)
            return
        if batch is None:
            return
        self.coordinator.process_batch(batch)

    def _run(self) -> None:
        logger.info(f"Device worker started for {self.device.unique_id}")
        while self._running.is_set():
            try:
                self.run_once()
            except Exception:
                # Keep the device alive; one bad batch must not end tracking
                logger.exception(f"Unexpected error processing batch from {self.device.unique_id}")
        logger.info(f"Device worker stopped for {self.device.unique_id}")


@dataclass(frozen=True)
class DeviceSlot:
    index: int
    device: SensorDevice
    worker: DeviceWorker
    near_range: bool


class PoseService:
    """Owns the full tracking and broadcast pipeline.

    Shutdown is a sequence of cleanup tasks (workers, listener, devices,
    clients, telemetry report) run by a ``CleanupManager``: either a private
    one in ``stop()`` or the process-wide one the launcher hands to
    ``register_cleanup()``.

    Args:
        config: Application configuration
        devices: Discovered devices, in discovery order
        estimator_factory: Creates one estimator handle per tracker
        telemetry: Optional shared telemetry monitor
    """

    CLEANUP_TASKS = ("pose_telemetry", "pose_clients", "pose_devices", "pose_listener", "pose_workers")

    def __init__(
        self,
        config: AppConfig,
        devices: Sequence[SensorDevice],
        estimator_factory: EstimatorFactory,
        telemetry: Optional[TelemetryMonitor] = None,
    ) -> None:
        self._config = config
        self._devices = list(devices)
        self._estimator_factory = estimator_factory
        self.telemetry = telemetry or TelemetryMonitor()
        self.registry = ConnectionRegistry(self.telemetry)
        self.fanout = BroadcastFanOut(
            self.registry, self.telemetry, echo=config.logging.echo_broadcasts
        )
        self.device_index = DeviceIndex()
        self.listener = PoseListener(
            self.registry,
            host=config.server.host,
            port=config.server.port,
            backlog=config.server.backlog,
            write_timeout_s=config.server.write_timeout_s,
            accept_timeout_s=config.server.accept_timeout_s,
        )
        self._slots: Dict[str, DeviceSlot] = {}
        self._lock = threading.Lock()
        self._running = False

    @property
    def slots(self) -> List[DeviceSlot]:
        return sorted(self._slots.values(), key=lambda slot: slot.index)

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the listener, then open, configure, and start every device.

        A device that cannot be opened or configured is reported and
        skipped; its index stays reserved. Any other failure tears down
        whatever was already started before it propagates. A restarted
        service keeps the indices from its first start.

        Raises:
            DeviceError: If two devices share a unique id
            ListenerError: If the listening socket cannot be bound
        """
        with self._lock:
            if self._running:
                raise RuntimeError("Pose service already started")
            self._check_unique_ids()

            self.listener.start()
            get_error_bus().subscribe(self.telemetry.record_error)
            self._slots.clear()
            try:
                self._start_devices()
            except BaseException:
                logger.error("Pose service start failed, releasing started resources")
                self._stop_workers()
                self.listener.stop()
                self._close_devices()
                get_error_bus().unsubscribe(self.telemetry.record_error)
                self._slots.clear()
                raise
            self._running = True

    def stop(self) -> bool:
        """Stop workers, the listener, devices, and clients. Idempotent.

        Returns:
            True if every critical shutdown step finished in time
        """
        with self._lock:
            if not self._running:
                return True
            manager = CleanupManager(default_timeout=5.0)
            self.register_cleanup(manager)
            return manager.cleanup()

    def register_cleanup(self, manager: CleanupManager) -> None:
        """Register the shutdown steps; the manager runs them newest first."""
        worker_timeout = 1.5 * max(1, len(self._devices)) + 0.5
        manager.register_cleanup("pose_telemetry", self._report_telemetry, timeout=1.0)
        manager.register_cleanup("pose_clients", self._close_clients, timeout=2.0)
        manager.register_cleanup("pose_devices", self._close_devices, critical=True)
        manager.register_cleanup("pose_listener", self.listener.stop, timeout=3.0, critical=True)
        manager.register_cleanup("pose_workers", self._stop_workers, timeout=worker_timeout, critical=True)

    def unregister_cleanup(self, manager: CleanupManager) -> None:
        for name in self.CLEANUP_TASKS:
            manager.unregister_cleanup(name)

    def _check_unique_ids(self) -> None:
        seen = set()
        for device in self._devices:
            if device.unique_id in seen:
                raise DeviceError("Duplicate device id", device_id=device.unique_id)
            seen.add(device.unique_id)

    def _index_for(self, device: SensorDevice) -> int:
        if device.unique_id in self.device_index:
            return self.device_index.index_of(device.unique_id)
        return self.device_index.register(device.unique_id)

    def _start_devices(self) -> None:
        streams = StreamConfig(
            color_format=self._config.devices.color_format,
            depth_format=self._config.devices.depth_format,
            near_range=self._config.devices.near_range,
            seated=self._config.devices.seated,
        )
        for device in self._devices:
            index = self._index_for(device)
            try:
                device.open()
            except PoseCastError as exc:
                self._report_device_failure(index, device, exc)
                continue
            try:
                near_range = device.configure(streams)
            except PoseCastError as exc:
                self._report_device_failure(index, device, exc)
                device.close()
                continue
            except BaseException:
                device.close()
                raise
            self._slots[device.unique_id] = self._build_slot(index, device, near_range)
            logger.info(
                f"Device {index} ({device.unique_id}) started, "
                f"near_range={near_range}, seated={streams.seated}"
            )

        for slot in self.slots:
            slot.worker.start()

    def _report_device_failure(self, index: int, device: SensorDevice, exc: PoseCastError) -> None:
        publish_error(
            category=ErrorCategory.DEVICE,
            severity=ErrorSeverity.ERROR,
            message=f"Device {index} could not be started: {exc}",
            source="PoseService",
            exception=exc,
            device_id=device.unique_id,
        )

    def _stop_workers(self) -> None:
        self._running = False
        for slot in self.slots:
            slot.worker.stop()

    def _close_devices(self) -> None:
        for slot in self.slots:
            try:
                slot.device.close()
            except PoseCastError as exc:
                logger.error(f"Error closing device {slot.index}: {exc}")
            if slot.worker.is_alive:
                # The worker thread still owns the table
                logger.warning(f"Device {slot.index} worker still running, trackers not released")
                continue
            slot.worker.coordinator.reset()

    def _close_clients(self) -> None:
        closed = self.registry.close_all()
        logger.info(f"Pose service stopped, closed {closed} client connection(s)")

    def _report_telemetry(self) -> None:
        get_error_bus().unsubscribe(self.telemetry.record_error)
        snapshot = self.telemetry.snapshot()
        logger.info(
            f"Telemetry: batches={snapshot.batches_by_device} "
            f"skipped={snapshot.skipped_by_device} poses={snapshot.poses_estimated} "
            f"deliveries={snapshot.deliveries} dropped={snapshot.dropped_connections} "
            f"errors={snapshot.errors_by_category} p95={snapshot.latency.p95_ms:.2f}ms"
        )

    def _build_slot(self, index: int, device: SensorDevice, near_range: bool) -> DeviceSlot:
        table = SubjectTrackerTable(
            device,
            self._estimator_factory,
            max_missed_frames=self._config.tracking.max_missed_frames,
        )
        coordinator = FrameCycleCoordinator(index, table, self.fanout, self.telemetry)
        worker = DeviceWorker(device, coordinator, self._config.devices.read_timeout_ms)
        return DeviceSlot(index=index, device=device, worker=worker, near_range=near_range)
