"""Marker sources: the tracking layer the pose filter queries each frame."""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Hashable, Optional, Tuple

import numpy as np

from .capture import Frame
from .detect import build_detector, detect_markers, dictionary_size, estimate_marker_pose
from .transforms import has_nan, q_normalize, rvec_to_q

MarkerPose = Tuple[np.ndarray, np.ndarray]


class MarkerSource(ABC):
    """
    Tracking layer contract.

    Handles returned by register_face_marker are opaque to callers.
    is_visible never raises; unknown handles are simply not visible.
    """

    @abstractmethod
    def register_face_marker(self, marker_id: int, size: float) -> Hashable: ...

    @abstractmethod
    def is_visible(self, handle: Hashable) -> bool: ...

    @abstractmethod
    def get_pose(self, handle: Hashable) -> MarkerPose: ...

    def update(self, frame: Optional[Frame]) -> None:
        return None


class _RegistryMixin:
    """Handle allocation shared by the concrete sources."""

    def _init_registry(self, first_handle: int = 1) -> None:
        self._handles = itertools.count(first_handle)
        self._id_by_handle: dict[int, int] = {}
        self._handle_by_id: dict[int, int] = {}
        self._size_by_id: dict[int, float] = {}

    def register_face_marker(self, marker_id: int, size: float) -> int:
        marker_id = int(marker_id)
        if marker_id in self._handle_by_id:
            raise ValueError(f"Marker {marker_id} is already registered")
        if size <= 0:
            raise ValueError(f"Marker size must be positive, got {size}")
        handle = next(self._handles)
        self._id_by_handle[handle] = marker_id
        self._handle_by_id[marker_id] = handle
        self._size_by_id[marker_id] = float(size)
        return handle


class ManualMarkerSource(_RegistryMixin, MarkerSource):
    """In-memory source whose visible poses are set by the caller."""

    def __init__(self):
        self._init_registry(first_handle=100)
        self._poses: dict[int, MarkerPose] = {}

    def show(self, marker_id: int, position, rotation) -> None:
        pos = np.asarray(position, dtype=np.float64).reshape(3).copy()
        rot = np.asarray(rotation, dtype=np.float64).reshape(4).copy()
        self._poses[int(marker_id)] = (pos, rot)

    def hide(self, marker_id: int) -> None:
        self._poses.pop(int(marker_id), None)

    def clear(self) -> None:
        self._poses.clear()

    def is_visible(self, handle: Hashable) -> bool:
        marker_id = self._id_by_handle.get(handle)
        return marker_id is not None and marker_id in self._poses

    def get_pose(self, handle: Hashable) -> MarkerPose:
        pos, rot = self._poses[self._id_by_handle[handle]]
        return pos.copy(), rot.copy()


class ArucoMarkerSource(_RegistryMixin, MarkerSource):
    """
    OpenCV ArUco tracking layer.

    Poses are expressed in the camera frame (x right, y down, z forward),
    position in the same unit as the registered marker size.
    """

    def __init__(
        self,
        K: np.ndarray,
        dist: Optional[np.ndarray],
        dict_name: str = "4x4_100",
        logger: Optional[logging.Logger] = None,
    ):
        self._init_registry()
        self.K = K
        self.dist = dist
        self.detector_state = build_detector(dict_name)
        self.logger = logger or logging.getLogger(__name__)
        self._poses: dict[int, MarkerPose] = {}

    def register_face_marker(self, marker_id: int, size: float) -> int:
        limit = dictionary_size(self.detector_state[0])
        if not 0 <= int(marker_id) < limit:
            raise ValueError(f"Marker id {marker_id} is outside the dictionary (0..{limit - 1})")
        return super().register_face_marker(marker_id, size)

    def update(self, frame: Optional[Frame]) -> None:
        self._poses = {}
        if frame is None or frame.image is None:
            return

        for det in detect_markers(frame.image, self.detector_state):
            size = self._size_by_id.get(det.marker_id)
            if size is None:
                continue
            result = estimate_marker_pose(det.corners, size, self.K, self.dist)
            if result is None:
                self.logger.debug("pose estimation failed for marker %d", det.marker_id)
                continue
            rvec, tvec = result
            if has_nan(rvec):
                rot = np.full(4, np.nan)
            else:
                rot = q_normalize(rvec_to_q(rvec))
            self._poses[det.marker_id] = (np.asarray(tvec, dtype=np.float64), rot)

    def is_visible(self, handle: Hashable) -> bool:
        marker_id = self._id_by_handle.get(handle)
        return marker_id is not None and marker_id in self._poses

    def get_pose(self, handle: Hashable) -> MarkerPose:
        pos, rot = self._poses[self._id_by_handle[handle]]
        return pos.copy(), rot.copy()
