"""Multi-marker pose fusion with exponential smoothing.

Each visible face marker yields a candidate pose for the cube center. The
candidates are folded one at a time, in ascending marker id, into a single
retained pose:

    position = blend(position, candidate_position, smoothing_factor)
    rotation = slerp(rotation, candidate_rotation, smoothing_factor)

A candidate with a NaN component ends fusion for the rest of the frame.
Updates already applied earlier in that frame are kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from .binding import MarkerBinding
from .faces import FaceOffset, FaceOffsetTable
from .transforms import has_nan, q_identity, q_mul, q_rotate_vec, q_slerp, v_lerp, v_slerp

_BLENDS: dict[str, Callable[[np.ndarray, np.ndarray, float], np.ndarray]] = {
    "slerp": v_slerp,
    "lerp": v_lerp,
}


@dataclass
class SmoothedPose:
    """
    position:
      Cube center [x, y, z].
    rotation:
      Orientation quaternion [w, x, y, z].
    """

    position: np.ndarray
    rotation: np.ndarray

    @classmethod
    def identity(cls) -> "SmoothedPose":
        return cls(np.zeros(3, dtype=np.float64), q_identity())

    def copy(self) -> "SmoothedPose":
        return SmoothedPose(self.position.copy(), self.rotation.copy())

    def as_tuple(self) -> tuple[np.ndarray, np.ndarray]:
        return self.position.copy(), self.rotation.copy()


@dataclass
class FrameContext:
    frame_idx: int = 0
    timestamp: Optional[str] = None


@dataclass
class FusionResult:
    visible: list[int] = field(default_factory=list)
    applied: list[int] = field(default_factory=list)
    aborted_at: Optional[int] = None

    @property
    def aborted(self) -> bool:
        return self.aborted_at is not None


def compose_candidate(
    face: FaceOffset,
    raw_position: np.ndarray,
    raw_rotation: np.ndarray,
    marker_size: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Cube-center pose implied by one face marker's raw pose."""
    raw_position = np.asarray(raw_position, dtype=np.float64).reshape(3)
    raw_rotation = np.asarray(raw_rotation, dtype=np.float64).reshape(4)
    position = raw_position + q_rotate_vec(raw_rotation, face.scaled_position(marker_size))
    rotation = q_mul(raw_rotation, face.rotation())
    return position, rotation


class PoseFusionFilter:
    def __init__(
        self,
        faces: Optional[FaceOffsetTable] = None,
        marker_size: float = 0.05,
        smoothing_factor: float = 0.2,
        position_blend: str = "slerp",
        logger: Optional[logging.Logger] = None,
    ):
        if marker_size <= 0:
            raise ValueError(f"marker_size must be positive, got {marker_size}")
        if not (0.0 < smoothing_factor <= 1.0):
            raise ValueError(f"smoothing_factor must be in (0, 1], got {smoothing_factor}")
        if position_blend not in _BLENDS:
            raise ValueError(
                f"position_blend must be one of {sorted(_BLENDS)}, got {position_blend!r}"
            )

        self.faces = faces if faces is not None else FaceOffsetTable()
        self.marker_size = float(marker_size)
        self.smoothing_factor = float(smoothing_factor)
        self.position_blend = position_blend
        self._blend = _BLENDS[position_blend]
        self.logger = logger or logging.getLogger(__name__)

        self.binding: Optional[MarkerBinding] = None
        self.last_result = FusionResult()
        self._pose = SmoothedPose.identity()

    @property
    def pose(self) -> SmoothedPose:
        return self._pose.copy()

    def bind(self, source) -> MarkerBinding:
        self.binding = MarkerBinding.register(source, self.faces, self.marker_size)
        self.logger.info(
            "registered %d face markers: %s", len(self.binding), list(self.faces.ids())
        )
        return self.binding

    def reset(self) -> None:
        self._pose = SmoothedPose.identity()
        self.last_result = FusionResult()

    def update(self, source, context: Optional[FrameContext] = None) -> SmoothedPose:
        if self.binding is None:
            self.bind(source)

        result = FusionResult()
        for marker_id, handle in self.binding.entries():
            if not source.is_visible(handle):
                continue
            result.visible.append(marker_id)

            raw_position, raw_rotation = source.get_pose(handle)
            position, rotation = compose_candidate(
                self.faces[marker_id], raw_position, raw_rotation, self.marker_size
            )

            # TODO: confirm whether a NaN candidate should skip only its own
            # marker instead of the rest of the frame.
            if has_nan(position, rotation):
                result.aborted_at = marker_id
                self.logger.warning(
                    "frame=%s marker %d produced a NaN pose; skipping remaining markers",
                    context.frame_idx if context is not None else "-",
                    marker_id,
                )
                break

            self._pose.position = self._blend(self._pose.position, position, self.smoothing_factor)
            self._pose.rotation = q_slerp(self._pose.rotation, rotation, self.smoothing_factor)
            result.applied.append(marker_id)

        self.last_result = result
        if context is not None:
            self.logger.debug(
                "frame=%d visible=%s applied=%s",
                context.frame_idx,
                result.visible,
                result.applied,
            )
        return self._pose.copy()
