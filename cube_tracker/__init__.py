"""Six-marker cube tracking with multi-marker pose fusion."""

from .config import TrackerConfig
from .faces import DEFAULT_FACES, FaceOffset, FaceOffsetTable
from .filter import PoseFusionFilter, SmoothedPose
from .tracker import CubeTracker

__all__ = [
    "CubeTracker",
    "DEFAULT_FACES",
    "FaceOffset",
    "FaceOffsetTable",
    "PoseFusionFilter",
    "SmoothedPose",
    "TrackerConfig",
]
