from __future__ import annotations

from types import MappingProxyType
from typing import Hashable, Iterable

from .faces import FaceOffsetTable


class MarkerBinding:
    """Read-only lookup between marker-source handles and logical marker ids."""

    def __init__(self, pairs: Iterable[tuple[int, Hashable]]):
        by_id: dict[int, Hashable] = {}
        by_handle: dict[Hashable, int] = {}
        for marker_id, handle in pairs:
            marker_id = int(marker_id)
            if marker_id in by_id:
                raise ValueError(f"Marker id {marker_id} bound twice")
            if handle in by_handle:
                raise ValueError(
                    f"Handle {handle!r} already bound to marker {by_handle[handle]}"
                )
            by_id[marker_id] = handle
            by_handle[handle] = marker_id

        self._by_id = MappingProxyType(dict(sorted(by_id.items())))
        self._by_handle = MappingProxyType(by_handle)

    @classmethod
    def register(cls, source, faces: FaceOffsetTable, marker_size: float) -> "MarkerBinding":
        pairs = []
        for face in faces:
            handle = source.register_face_marker(face.marker_id, marker_size)
            pairs.append((face.marker_id, handle))
        return cls(pairs)

    def logical_id(self, handle: Hashable) -> int:
        return self._by_handle[handle]

    def handle(self, marker_id: int) -> Hashable:
        return self._by_id[marker_id]

    def entries(self) -> list[tuple[int, Hashable]]:
        return list(self._by_id.items())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, handle: object) -> bool:
        return handle in self._by_handle

    def __repr__(self) -> str:
        return f"MarkerBinding({dict(self._by_id)})"
