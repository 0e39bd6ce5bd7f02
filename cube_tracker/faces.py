"""Fixed relationship between each face marker and the cube center."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

import numpy as np

from .transforms import euler_to_q


def _vec3(value) -> np.ndarray:
    arr = np.array(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"Expected 3 components, got {arr.size}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class FaceOffset:
    """
    One cube face.

    local_position:
      Offset from the marker to the cube center, in units of one marker
      edge length. Scaled by the marker size at use time.
    local_rotation_euler:
      Engine-style Euler angles (degrees) mapping the marker orientation
      onto the cube's canonical orientation.
    """

    marker_id: int
    local_position: np.ndarray
    local_rotation_euler: np.ndarray
    name: str = ""
    _rotation: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "marker_id", int(self.marker_id))
        object.__setattr__(self, "local_position", _vec3(self.local_position))
        object.__setattr__(self, "local_rotation_euler", _vec3(self.local_rotation_euler))
        rot = euler_to_q(*self.local_rotation_euler)
        rot.setflags(write=False)
        object.__setattr__(self, "_rotation", rot)

    def scaled_position(self, marker_size: float) -> np.ndarray:
        return self.local_position * float(marker_size)

    def rotation(self) -> np.ndarray:
        return self._rotation


def _face(name: str, marker_id: int, px, py, pz, rx, ry, rz) -> FaceOffset:
    return FaceOffset(marker_id, (px, py, pz), (rx, ry, rz), name)


DEFAULT_FACES: tuple[FaceOffset, ...] = (
    _face("top", 0, 0.0, 0.0, 0.5, 0.0, 180.0, 90.0),
    _face("front", 10, 0.0, -0.5, 0.0, 0.0, -90.0, -90.0),
    _face("right", 20, -0.5, 0.0, 0.0, 0.0, -90.0, 0.0),
    _face("back", 30, 0.0, 0.5, 0.0, 0.0, 90.0, -90.0),
    _face("bottom", 40, 0.0, 0.0, -0.5, 0.0, 0.0, 90.0),
    _face("left", 50, 0.5, 0.0, 0.0, 0.0, 90.0, 0.0),
)


class FaceOffsetTable:
    """Immutable face offsets indexed by logical marker id, iterated in ascending id."""

    def __init__(self, faces: Optional[Iterable[FaceOffset]] = None):
        items = list(DEFAULT_FACES if faces is None else faces)
        if not items:
            raise ValueError("Face offset table must contain at least one face")

        by_id: dict[int, FaceOffset] = {}
        for face in items:
            if face.marker_id in by_id:
                raise ValueError(f"Duplicate face marker id: {face.marker_id}")
            by_id[face.marker_id] = face

        self._ids = tuple(sorted(by_id))
        self._faces = tuple(by_id[i] for i in self._ids)
        self._index = {mid: i for i, mid in enumerate(self._ids)}

    def __len__(self) -> int:
        return len(self._faces)

    def __iter__(self) -> Iterator[FaceOffset]:
        return iter(self._faces)

    def __contains__(self, marker_id: object) -> bool:
        return marker_id in self._index

    def __getitem__(self, marker_id: int) -> FaceOffset:
        return self._faces[self._index[marker_id]]

    def get(self, marker_id: int) -> Optional[FaceOffset]:
        idx = self._index.get(marker_id)
        return None if idx is None else self._faces[idx]

    def ids(self) -> tuple[int, ...]:
        return self._ids

    def __repr__(self) -> str:
        return f"FaceOffsetTable(ids={list(self._ids)})"
