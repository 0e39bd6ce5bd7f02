from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Optional

from .detect import dictionary_size, get_dict
from .faces import FaceOffset, FaceOffsetTable
from .logging_utils import resolve_level


@dataclass
class FaceConfig:
    marker_id: int
    position: list[float]
    rotation: list[float]
    name: str = ""

    def to_offset(self) -> FaceOffset:
        return FaceOffset(self.marker_id, self.position, self.rotation, self.name)


@dataclass
class TrackerConfig:
    camera_name: str = "cube"
    device: int | str = ""  # empty = default camera
    width: int = 640
    height: int = 480
    fps: int = 30
    marker_length_m: float = 0.05
    smoothing_factor: float = 0.2
    position_blend: str = "slerp"  # "slerp" or "lerp"
    aruco_dict: str = "4x4_100"
    calibration_path: Optional[str] = None
    faces: Optional[list[FaceConfig]] = None  # None = default six-face cube
    dry_run: bool = False
    max_frames: Optional[int] = None
    duration_sec: Optional[float] = None
    csv_path: Optional[str] = None
    log_path: Optional[str] = None
    log_level: str = "INFO"
    log_file_level: Optional[str] = None  # None = same as log_level
    probe_max_devices: int = 4

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "TrackerConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "TrackerConfig":
        if self.marker_length_m <= 0:
            raise ValueError(f"marker_length_m must be positive, got {self.marker_length_m}")
        if not (0.0 < self.smoothing_factor <= 1.0):
            raise ValueError(
                f"smoothing_factor must be in (0, 1], got {self.smoothing_factor}"
            )
        if self.position_blend not in ("slerp", "lerp"):
            raise ValueError(f"position_blend must be 'slerp' or 'lerp', got {self.position_blend!r}")
        table = self.face_table()
        limit = dictionary_size(get_dict(self.aruco_dict))
        outside = [marker_id for marker_id in table.ids() if not 0 <= marker_id < limit]
        if outside:
            raise ValueError(
                f"face ids {outside} are outside aruco_dict {self.aruco_dict!r} (0..{limit - 1})"
            )
        resolve_level(self.log_level)
        if self.log_file_level is not None:
            resolve_level(self.log_file_level)
        return self

    def face_table(self) -> FaceOffsetTable:
        if self.faces is None:
            return FaceOffsetTable()
        return FaceOffsetTable(f.to_offset() for f in self.faces)


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _parse_faces(value: Any) -> Optional[list[FaceConfig]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise ValueError("faces must be a list of {marker_id, position, rotation} mappings")
    faces = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError("each face must be a mapping")
        try:
            position = [float(v) for v in item["position"]]
            rotation = [float(v) for v in item.get("rotation", (0.0, 0.0, 0.0))]
            marker_id = int(item["marker_id"])
        except KeyError as exc:
            raise ValueError(f"face entry missing {exc.args[0]!r}: {item}") from exc
        if len(position) != 3 or len(rotation) != 3:
            raise ValueError(f"face {marker_id}: position and rotation need 3 components")
        faces.append(FaceConfig(marker_id, position, rotation, str(item.get("name", ""))))
    return faces


def load_config(path: str | Path) -> TrackerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = TrackerConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    cfg.device = raw.get("device", cfg.device)
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.marker_length_m = float(raw.get("marker_length_m", cfg.marker_length_m))
    cfg.smoothing_factor = float(raw.get("smoothing_factor", cfg.smoothing_factor))
    cfg.position_blend = str(raw.get("position_blend", cfg.position_blend))
    cfg.aruco_dict = str(raw.get("aruco_dict", cfg.aruco_dict))
    cfg.calibration_path = raw.get("calibration_path", cfg.calibration_path)
    cfg.faces = _parse_faces(raw.get("faces"))
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.duration_sec = raw.get("duration_sec", cfg.duration_sec)
    if cfg.duration_sec is not None:
        cfg.duration_sec = float(cfg.duration_sec)
    cfg.csv_path = raw.get("csv_path", cfg.csv_path)
    cfg.log_path = raw.get("log_path", cfg.log_path)
    cfg.log_level = str(raw.get("log_level", cfg.log_level))
    cfg.log_file_level = raw.get("log_file_level", cfg.log_file_level)
    cfg.probe_max_devices = int(raw.get("probe_max_devices", cfg.probe_max_devices))

    return cfg.validate()
