from __future__ import annotations

import csv
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np

from .transforms import q_identity


class TransformSink(ABC):
    """Consumer of the fused cube pose, called once per frame."""

    def open(self) -> None:
        return None

    @abstractmethod
    def apply(self, position: np.ndarray, rotation: np.ndarray, frame_idx: int = 0) -> None: ...

    def close(self) -> None:
        return None


class NullTransformSink(TransformSink):
    def apply(self, position: np.ndarray, rotation: np.ndarray, frame_idx: int = 0) -> None:
        return None


@dataclass
class Transform:
    local_position: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    local_rotation: np.ndarray = field(default_factory=q_identity)


class TransformTargetSink(TransformSink):
    """Writes the pose into a target's local transform; no target is a no-op."""

    def __init__(self, target: Optional[Transform]):
        self.target = target

    def apply(self, position: np.ndarray, rotation: np.ndarray, frame_idx: int = 0) -> None:
        if self.target is None:
            return
        self.target.local_position = np.array(position, dtype=np.float64)
        self.target.local_rotation = np.array(rotation, dtype=np.float64)


class CsvPoseSink(TransformSink):
    HEADER = [
        "recorded_at",
        "frame_idx",
        "pos_x", "pos_y", "pos_z",
        "rot_w", "rot_x", "rot_y", "rot_z",
    ]

    def __init__(self, csv_path: str | Path):
        self.csv_path = Path(csv_path)
        self._fh = None
        self._w = None

    def open(self) -> None:
        self.csv_path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)

    def apply(self, position: np.ndarray, rotation: np.ndarray, frame_idx: int = 0) -> None:
        if self._w is None:
            return
        p = np.asarray(position, dtype=np.float64).reshape(-1).tolist()
        q = np.asarray(rotation, dtype=np.float64).reshape(-1).tolist()
        self._w.writerow([f"{time.time():.6f}", frame_idx, *p, *q])

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._w = None
