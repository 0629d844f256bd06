"""Per-frame driver wiring landmark extraction, the registry and the pose engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from maskbooth.config import PipelineConfig
from maskbooth.smoothing.projection import MaskPoseEngine
from maskbooth.tracking.registry import FaceRegistry
from maskbooth.types import DisplayGeometry, Landmarks, SmoothedPose, TrackedFace

LOGGER = logging.getLogger("maskbooth.pipeline")


@dataclass
class FrameResult:
    frame_idx: int
    timestamp_ms: float
    faces: List[TrackedFace] = field(default_factory=list)
    poses: List[SmoothedPose] = field(default_factory=list)

    def pose_rows(self) -> List[Dict]:
        rows = []
        for pose in self.poses:
            row = {"frame_idx": self.frame_idx, "timestamp_ms": self.timestamp_ms}
            row.update(pose.to_dict())
            rows.append(row)
        return rows


class FramePacer:
    """Decides which incoming frames get a detection pass at ``target_fps``."""

    def __init__(self, target_fps: float = 30.0) -> None:
        if target_fps <= 0:
            raise ValueError(f"target_fps must be positive, got {target_fps}")
        self.interval_ms = 1000.0 / target_fps
        self._last_ms: Optional[float] = None

    def should_run(self, timestamp_ms: float) -> bool:
        if self._last_ms is None or timestamp_ms < self._last_ms:
            self._last_ms = timestamp_ms
            return True
        # 1 ms tolerance for timestamp jitter
        if timestamp_ms - self._last_ms >= self.interval_ms - 1.0:
            self._last_ms = timestamp_ms
            return True
        return False

    def reset(self) -> None:
        self._last_ms = None


class MaskPipeline:
    """One tracking session: a registry, a pose engine and a frame counter."""

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()
        self.registry = FaceRegistry(self.config.registry)
        self.engine = MaskPoseEngine(self.config.smoothing)
        self.frame_idx = 0

    def process_frame(
        self,
        faces: Iterable[Optional[Landmarks]],
        geometry: DisplayGeometry,
        timestamp_ms: Optional[float] = None,
    ) -> FrameResult:
        tracked = self.registry.process_landmarks(faces, now_ms=timestamp_ms)
        poses = self.engine.update(tracked, geometry)
        result = FrameResult(
            frame_idx=self.frame_idx,
            timestamp_ms=float(timestamp_ms) if timestamp_ms is not None else float("nan"),
            faces=tracked,
            poses=poses,
        )
        if tracked and self.frame_idx % 60 == 0:
            stats = self.registry.get_stats()
            LOGGER.debug(
                "Frame %d: %d faces, tracked=%d assignments=%s",
                self.frame_idx,
                len(tracked),
                stats.tracked_faces,
                stats.assignments,
            )
        self.frame_idx += 1
        return result

    def reset(self) -> None:
        """End the session: drop all identities and smoothing history."""
        self.registry.reset()
        self.engine.reset()
        self.frame_idx = 0
