from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple

import cv2
import numpy as np


DetectorState = Tuple[Any, Any, Any]


@dataclass
class Detection:
    marker_id: int
    corners: Any  # (4,2) ndarray


def get_dict(name: str):
    """
    ArUco dictionary resolver.
    Falls back to 4x4_50 if name not recognized.
    """
    key = (name or "").strip().lower()
    if key.startswith("dict_"):
        key = key[5:]
    table = {
        "4x4_50":  cv2.aruco.DICT_4X4_50,
        "4x4_100": cv2.aruco.DICT_4X4_100,
        "5x5_50":  cv2.aruco.DICT_5X5_50,
        "5x5_100": cv2.aruco.DICT_5X5_100,
        "6x6_50":  cv2.aruco.DICT_6X6_50,
        "6x6_100": cv2.aruco.DICT_6X6_100,
        "7x7_50":  cv2.aruco.DICT_7X7_50,
        "7x7_100": cv2.aruco.DICT_7X7_100,
    }
    code = table.get(key, cv2.aruco.DICT_4X4_50)

    if hasattr(cv2.aruco, "getPredefinedDictionary"):           # OpenCV >= 4.7
        return cv2.aruco.getPredefinedDictionary(code)
    return cv2.aruco.Dictionary_get(code)                        # Older OpenCV


def dictionary_size(dictionary) -> int:
    return int(np.asarray(dictionary.bytesList).shape[0])


def _make_params():
    """Create detector parameters across OpenCV versions."""
    if hasattr(cv2.aruco, "DetectorParameters_create"):
        return cv2.aruco.DetectorParameters_create()
    return cv2.aruco.DetectorParameters()


def build_detector(dict_name: str) -> DetectorState:
    dictionary = get_dict(dict_name)
    params = _make_params()
    detector = None
    if hasattr(cv2.aruco, "ArucoDetector"):
        detector = cv2.aruco.ArucoDetector(dictionary, params)
    return dictionary, params, detector


def detect_markers(image, detector_state: DetectorState) -> list[Detection]:
    dictionary, params, detector = detector_state
    if detector is not None:
        corners, ids, _rej = detector.detectMarkers(image)
    else:
        corners, ids, _rej = cv2.aruco.detectMarkers(
            image, dictionary, parameters=params
        )

    dets: list[Detection] = []
    if ids is not None and len(ids) > 0:
        for i, mid in enumerate(ids.flatten()):
            dets.append(Detection(int(mid), np.asarray(corners[i]).reshape(4, 2)))
    return dets


def marker_object_points(size: float) -> np.ndarray:
    """Marker corners in the marker frame, in ArUco corner order."""
    h = float(size) / 2.0
    return np.array(
        [[-h, h, 0.0], [h, h, 0.0], [h, -h, 0.0], [-h, -h, 0.0]],
        dtype=np.float32,
    )


def load_calib(path: str | Path) -> Tuple[np.ndarray, np.ndarray, tuple[int, int]]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Calibration not found: {p}")
    fs = cv2.FileStorage(str(p), cv2.FILE_STORAGE_READ)
    K = fs.getNode("camera_matrix").mat()
    dist = fs.getNode("dist_coeffs").mat()
    w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    fs.release()
    if K is None:
        raise ValueError(f"Calibration file has no camera_matrix: {p}")
    return K, dist, (w, h)


def default_intrinsics(width: int, height: int) -> Tuple[np.ndarray, np.ndarray]:
    """Pinhole approximation for an uncalibrated camera: f ~ image width."""
    f = float(width)
    K = np.array(
        [[f, 0.0, width / 2.0], [0.0, f, height / 2.0], [0.0, 0.0, 1.0]],
        dtype=np.float64,
    )
    return K, np.zeros((5, 1), dtype=np.float64)


def estimate_marker_pose(
    corners: np.ndarray,
    size: float,
    K: np.ndarray,
    dist: Optional[np.ndarray],
) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Solve one square marker's pose. Returns (rvec, tvec) or None."""
    img_pts = np.asarray(corners, dtype=np.float32).reshape(4, 2)
    ok, rvec, tvec = cv2.solvePnP(
        marker_object_points(size),
        img_pts,
        K,
        dist,
        flags=cv2.SOLVEPNP_IPPE_SQUARE,
    )
    if not ok:
        return None
    return rvec.reshape(3), tvec.reshape(3)
