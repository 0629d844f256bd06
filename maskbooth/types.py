"""Common dataclasses and type aliases used across the maskbooth package."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Normalized (x, y) in the unit square of the source frame
Point = Tuple[float, float]
Landmarks = Sequence[Any]


@dataclass
class Detection:
    """One face observed in one frame, before identity assignment."""

    landmarks: Optional[Landmarks]
    center: Optional[Point]
    size: float
    rotation: float
    index: int = 0

    @classmethod
    def from_landmarks(cls, landmarks: Optional[Landmarks], index: int = 0) -> "Detection":
        from maskbooth.geometry.landmarks import face_center, face_size, head_rotation

        return cls(
            landmarks=landmarks,
            center=face_center(landmarks),
            size=face_size(landmarks),
            rotation=head_rotation(landmarks),
            index=index,
        )


@dataclass
class Track:
    """Persistent identity-bearing record of one face across frames."""

    track_id: int
    slot: int
    center: Point
    size: float
    rotation: float
    landmarks: Optional[Landmarks] = None
    frames_missing: int = 0
    first_seen_ms: float = 0.0
    last_seen_ms: float = 0.0

    def observe(self, detection: Detection, timestamp_ms: float) -> None:
        self.center = detection.center
        self.size = detection.size
        self.rotation = detection.rotation
        self.landmarks = detection.landmarks
        self.frames_missing = 0
        self.last_seen_ms = timestamp_ms

    def age_ms(self, now_ms: float) -> float:
        return now_ms - self.last_seen_ms


@dataclass
class TrackedFace:
    """A detection tagged with the identity and slot of the track it belongs to."""

    track_id: int
    slot: int
    center: Point
    size: float
    rotation: float
    landmarks: Optional[Landmarks] = None
    registered: bool = True

    def to_dict(self) -> Dict:
        return {
            "track_id": self.track_id,
            "slot": self.slot,
            "center_x": self.center[0],
            "center_y": self.center[1],
            "size": self.size,
            "rotation": self.rotation,
            "registered": self.registered,
        }


@dataclass(frozen=True)
class DisplayGeometry:
    """On-screen rectangle plus the intrinsic size of the source frame, in pixels."""

    display_width: float
    display_height: float
    video_width: float
    video_height: float

    @property
    def is_valid(self) -> bool:
        values = (self.display_width, self.display_height, self.video_width, self.video_height)
        return all(math.isfinite(v) and v > 0 for v in values)


@dataclass(frozen=True)
class CoverFit:
    """How the source frame is scaled and cropped to fill the display rectangle."""

    width: float
    height: float
    offset_x: float
    offset_y: float


@dataclass
class SmoothedPose:
    """Screen-space mask pose handed to the renderer."""

    track_id: int
    slot: int
    x: float
    y: float
    rotation: float
    size: float

    @property
    def asset_name(self) -> str:
        return mask_asset_name(self.slot)

    def to_dict(self) -> Dict:
        return {
            "track_id": self.track_id,
            "slot": self.slot,
            "asset": self.asset_name,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
            "size": self.size,
        }


@dataclass
class RegistryStats:
    """Snapshot of the registry used for debug logging and replay summaries."""

    tracked_faces: int
    track_ids: List[int] = field(default_factory=list)
    assignments: List[Dict[str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "tracked_faces": self.tracked_faces,
            "track_ids": list(self.track_ids),
            "assignments": [dict(a) for a in self.assignments],
        }


def mask_asset_name(slot: int) -> str:
    """Name of the decoration asset a renderer should use for ``slot``."""
    return f"mask{slot}"


def distance(a: Point, b: Point) -> float:
    """Euclidean distance between two normalized points."""
    return math.hypot(a[0] - b[0], a[1] - b[1])
