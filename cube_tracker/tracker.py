from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from .capture import BaseCapture, CameraNotFoundError, SyntheticCapture, USBOpenCVCapture, probe_devices, resolve_device
from .config import TrackerConfig
from .detect import default_intrinsics, load_calib
from .filter import FrameContext, PoseFusionFilter, SmoothedPose
from .logging_utils import add_file_handler, setup_logger
from .marker_source import ArucoMarkerSource, ManualMarkerSource, MarkerSource
from .output import CsvPoseSink, TransformSink


@dataclass
class TrackerSummary:
    frames_processed: int
    frames_with_markers: int
    errors: int
    avg_fps: float
    final_pose: SmoothedPose


class CubeTracker:
    def __init__(
        self,
        config: TrackerConfig,
        logger=None,
        sinks: Optional[list[TransformSink]] = None,
        capture: Optional[BaseCapture] = None,
        source: Optional[MarkerSource] = None,
    ):
        self.config = config.validate()
        self.logger = logger or setup_logger(config.camera_name, config.log_level)

        if sinks is None:
            sinks = []
            if config.csv_path:
                sinks.append(CsvPoseSink(config.csv_path))
        self.sinks = sinks

        self.capture = capture
        self.source = source
        self.filter = PoseFusionFilter(
            config.face_table(),
            marker_size=config.marker_length_m,
            smoothing_factor=config.smoothing_factor,
            position_blend=config.position_blend,
            logger=self.logger,
        )
        self.frames = 0
        self.frames_with_markers = 0
        self.errors = 0
        self._started = False
        self._file_handler = None
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(self.config.fps, self.config.width, self.config.height)

        found = probe_devices(self.config.probe_max_devices)
        if not found:
            raise CameraNotFoundError("no camera device was found")
        self.logger.info(
            "%d camera devices were found:\n%s",
            len(found),
            "\n".join(f" - {idx}" for idx in found),
        )
        return USBOpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
        )

    def _build_source(self) -> MarkerSource:
        if self.source is not None:
            return self.source
        if self.config.dry_run:
            return ManualMarkerSource()
        if self.config.calibration_path:
            K, dist, _ = load_calib(self.config.calibration_path)
        else:
            self.logger.warning("no calibration configured; using pinhole approximation")
            K, dist = default_intrinsics(self.config.width, self.config.height)
        return ArucoMarkerSource(K, dist, self.config.aruco_dict, logger=self.logger)

    def start(self) -> None:
        if self._started:
            return
        if self.config.log_path and self._file_handler is None:
            self._file_handler = add_file_handler(
                self.logger,
                self.config.camera_name,
                self.config.log_path,
                level=self.config.log_file_level,
            )

        self.capture = self._build_capture()
        self.source = self._build_source()

        self.logger.info(
            "camera %r selected, %dx%d@%d requested",
            resolve_device(self.config.device),
            self.config.width,
            self.config.height,
            self.config.fps,
        )
        self.logger.info("config: %s", self.config.as_dict())

        # bind before the camera and sinks are acquired
        if self.filter.binding is None:
            self.filter.bind(self.source)
        self.capture.start()
        for sink in self.sinks:
            sink.open()
        self._started = True

    def step(self) -> Optional[SmoothedPose]:
        """Process one frame. Returns None when no frame was available."""
        f = self.capture.next_frame()
        if f is None:
            self.errors += 1
            return None

        self.source.update(f)
        pose = self.filter.update(self.source, FrameContext(f.idx, f.ts_iso))
        if self.filter.last_result.visible:
            self.frames_with_markers += 1

        for sink in self.sinks:
            sink.apply(pose.position, pose.rotation, f.idx)

        self.frames += 1
        return pose

    def _shutdown(self) -> None:
        if self.capture is not None:
            try:
                self.capture.stop()
            except Exception as e:
                self.logger.warning("capture stop failed: %s", e)

        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                self.logger.warning("sink close failed: %s", e)
        self._started = False

    def run(self) -> TrackerSummary:
        try:
            self.start()
            t0 = time.time()
            while True:
                if self._stop_event.is_set():
                    break
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and self.frames >= self.config.max_frames:
                    break
                self.step()
        finally:
            self._shutdown()

        avg = self.frames / max(1e-6, (time.time() - t0))
        self.logger.info(
            "summary frames=%d with_markers=%d avg_fps=%.2f errors=%d",
            self.frames,
            self.frames_with_markers,
            avg,
            self.errors,
        )
        return TrackerSummary(
            self.frames,
            self.frames_with_markers,
            self.errors,
            avg,
            self.filter.pose,
        )
